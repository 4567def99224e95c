"""
Exception hierarchy for hotconf.

Absent or blank configuration files are not errors; they surface as
``PersistenceResult.is_new``. Everything else that can go wrong while
binding, loading or saving a configuration is raised as one of the classes
below, or as the unmodified ``OSError`` for permanent filesystem failures.
"""

from typing import Any, Optional


class HotConfError(Exception):
    """Base class for all hotconf errors."""

    def __init__(self, message: str, details: Optional[Any] = None):
        self.message = message
        self.details = details
        super().__init__(message)


class DescriptorError(HotConfError, ValueError):
    """A configuration descriptor is missing required values."""
    pass


class UnsupportedFormatError(HotConfError, LookupError):
    """No codec is registered for the requested file format."""

    def __init__(self, format_name: str):
        super().__init__(f"No codec registered for format '{format_name}'", format_name)
        self.format_name = format_name


class DeserializationError(HotConfError, ValueError):
    """Configuration text could not be parsed by its codec."""
    pass


class DecryptionError(HotConfError, ValueError):
    """Encrypted configuration text is malformed or the secret is wrong."""
    pass


class ConfigNotBoundError(HotConfError, LookupError):
    """A configuration type was used before it was bound to a file."""

    def __init__(self, model_type: type, message: Optional[str] = None):
        name = f"{model_type.__module__}.{model_type.__qualname__}"
        super().__init__(
            message or f"Configuration type {name} is not bound; call bind() with a descriptor first",
            model_type,
        )
        self.model_type = model_type


class UnboundSaveError(ConfigNotBoundError):
    """save() was called for a shared configuration type that was never bound."""

    def __init__(self, model_type: type):
        name = f"{model_type.__module__}.{model_type.__qualname__}"
        super().__init__(
            model_type,
            f"Cannot save {name}: no descriptor cached for this type, call bind() first",
        )


class WatcherUnavailableError(HotConfError):
    """The operating system file notification mechanism could not be started."""
    pass

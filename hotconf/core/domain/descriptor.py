"""
Configuration descriptor domain model.

A descriptor names the file a configuration type is bound to: its logical
name, format, directory, encryption settings and how changes are watched.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from ..exceptions import DescriptorError


class ConfigFormat(str, Enum):
    """Built-in configuration file formats."""
    JSON = "json"
    YAML = "yaml"
    INI = "ini"
    XML = "xml"


class ReloadMode(Enum):
    """How a bound configuration file is watched for external changes."""
    EVENT_DRIVEN = "event_driven"
    POLLING = "polling"
    NONE = "none"


@dataclass(eq=False)
class ConfigDescriptor:
    """
    Describes where and how a configuration type is persisted.

    The canonical path is resolved lazily by ``PathResolver`` and memoized
    on the instance; it is never recomputed for the same descriptor.
    """

    name: str
    """Logical name or file name. A name with an extension is used verbatim."""

    format: Union[ConfigFormat, str] = ConfigFormat.JSON
    """File format; selects the codec and the default extension."""

    directory: Optional[str] = None
    """Containing directory. Defaults to the runtime ``default_directory``."""

    encrypted: bool = False
    """Whether file contents are encrypted at rest."""

    secret: Optional[str] = field(default=None, repr=False)
    """Secret used to derive the encryption key."""

    reload_mode: ReloadMode = ReloadMode.EVENT_DRIVEN
    """Change watching strategy."""

    _resolved_path: Optional[Path] = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        """Validate and normalize the descriptor after initialization."""
        if not self.name or not self.name.strip():
            raise DescriptorError("Configuration name cannot be empty")

        fmt = self.format.value if isinstance(self.format, ConfigFormat) else str(self.format)
        fmt = fmt.strip().lstrip(".").lower()
        if not fmt:
            raise DescriptorError(f"Configuration '{self.name}' has no format")
        self.format = fmt

        if self.encrypted and (self.secret is None or not self.secret.strip()):
            raise DescriptorError(
                f"Configuration '{self.name}' is encrypted but no secret was provided")

        if not isinstance(self.reload_mode, ReloadMode):
            self.reload_mode = ReloadMode(self.reload_mode)

    @property
    def file_name(self) -> str:
        """File name of the configuration, with the format extension when the name has none."""
        if Path(self.name).suffix:
            return self.name
        return f"{self.name}.{self.format}"

    @property
    def resolved_path(self) -> Optional[Path]:
        """Canonical path, or None until the descriptor has been resolved."""
        return self._resolved_path

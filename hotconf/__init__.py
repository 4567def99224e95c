"""
hotconf - Typed configuration files with hot reload and atomic persistence.

This package binds typed in-memory configuration objects to JSON, YAML, INI
or XML files, keeps them synchronized when the files change externally and
saves changes back atomically, optionally encrypted.
"""

__version__ = "0.1.0"

# Public API exports
from .core.domain.descriptor import ConfigDescriptor, ConfigFormat, ReloadMode
from .core.domain.state import PersistenceResult
from .core.exceptions import (
    ConfigNotBoundError,
    DecryptionError,
    DescriptorError,
    DeserializationError,
    HotConfError,
    UnboundSaveError,
    UnsupportedFormatError,
    WatcherUnavailableError,
)
from .core.interfaces import ICipher, ICodec
from .infrastructure.config.engine import PersistenceEngine
from .infrastructure.config.models import RuntimeSettings, get_runtime_settings, set_runtime_settings
from .infrastructure.logging.setup import setup_logging
from .application.shared import SharedBinding, shared_bindings
from .application.singleton import ConfigBase, SingletonBinding

__all__ = [
    "ConfigDescriptor",
    "ConfigFormat",
    "ReloadMode",
    "PersistenceResult",
    "HotConfError",
    "DescriptorError",
    "UnsupportedFormatError",
    "DeserializationError",
    "DecryptionError",
    "ConfigNotBoundError",
    "UnboundSaveError",
    "WatcherUnavailableError",
    "ICodec",
    "ICipher",
    "PersistenceEngine",
    "RuntimeSettings",
    "get_runtime_settings",
    "set_runtime_settings",
    "setup_logging",
    "ConfigBase",
    "SingletonBinding",
    "SharedBinding",
    "shared_bindings",
]

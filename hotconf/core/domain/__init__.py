"""
Domain models for configuration bindings.

Pure value objects without filesystem or library dependencies.
"""

from .descriptor import ConfigDescriptor, ConfigFormat, ReloadMode
from .state import PersistenceResult, WatchState

__all__ = [
    "ConfigDescriptor",
    "ConfigFormat",
    "ReloadMode",
    "PersistenceResult",
    "WatchState",
]

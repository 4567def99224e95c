"""
Application layer: the two configuration binding strategies.

``SingletonBinding`` replaces the bound instance on every reload;
``SharedBinding`` keeps one instance per type and updates it in place.
"""

from .shared import SharedBinding, shared_bindings
from .singleton import ConfigBase, SingletonBinding

__all__ = [
    "ConfigBase",
    "SingletonBinding",
    "SharedBinding",
    "shared_bindings",
]

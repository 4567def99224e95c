"""
Configuration persistence infrastructure.

This module provides path resolution, codecs, encryption, the persistence
engine and the file change watchers used by the bindings.
"""

from .codecs import CodecRegistry, IniCodec, JsonCodec, XmlCodec, YamlCodec
from .crypto import AesGcmCipher
from .engine import PersistenceEngine, atomic_write_text
from .headers import CommentHeaderBuilder
from .models import (
    LoggingConfig,
    PersistenceSettings,
    RuntimeSettings,
    WatcherSettings,
    get_runtime_settings,
    set_runtime_settings,
)
from .paths import PathResolver
from .schema import ModelSchema
from .watcher import (
    ChangeWatcher,
    FileEventWatcher,
    IConfigWatcher,
    PollingWatcher,
    create_config_watcher,
    start_watcher,
)

__all__ = [
    "CodecRegistry",
    "JsonCodec",
    "YamlCodec",
    "IniCodec",
    "XmlCodec",
    "AesGcmCipher",
    "PersistenceEngine",
    "atomic_write_text",
    "CommentHeaderBuilder",
    "LoggingConfig",
    "PersistenceSettings",
    "RuntimeSettings",
    "WatcherSettings",
    "get_runtime_settings",
    "set_runtime_settings",
    "PathResolver",
    "ModelSchema",
    "ChangeWatcher",
    "FileEventWatcher",
    "IConfigWatcher",
    "PollingWatcher",
    "create_config_watcher",
    "start_watcher",
]

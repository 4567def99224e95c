"""
Shared configuration binding.

A ``SharedBinding`` keeps one cached instance per configuration type and
never replaces it: reloads and saves copy field values onto the cached
instance, so references held anywhere in the application stay current.
Use it for types that cannot adopt the ``ConfigBase`` shape.
"""

import logging
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Type, TypeVar

from ..core.domain.descriptor import ConfigDescriptor
from ..core.exceptions import ConfigNotBoundError, UnboundSaveError
from ..infrastructure.config.engine import PersistenceEngine
from ..infrastructure.config.models import RuntimeSettings, get_runtime_settings
from ..infrastructure.config.schema import ModelSchema
from ..infrastructure.config.watcher import ChangeWatcher, start_watcher

logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass
class BindingEntry:
    """Per-type state of a shared binding."""
    descriptor: Optional[ConfigDescriptor] = None
    instance: Any = None
    watcher: Optional[ChangeWatcher] = None
    watch_started: bool = False
    is_new: bool = False
    lock: Any = field(default_factory=threading.RLock, repr=False)


class SharedBinding:
    """
    Per-type configuration store with in-place write-back.

    Each bound type has its own entry and lock; different types never block
    each other.
    """

    def __init__(
        self,
        engine: Optional[PersistenceEngine] = None,
        settings: Optional[RuntimeSettings] = None,
    ):
        """
        Initialize the store.

        Args:
            engine: Persistence engine
            settings: Runtime settings (defaults to the process-wide settings)
        """
        self.settings = settings or get_runtime_settings()
        self.engine = engine or PersistenceEngine(settings=self.settings.persistence)
        self._entries: Dict[type, BindingEntry] = {}
        self._entries_lock = threading.Lock()

    def bind(
        self,
        model_type: Type[T],
        descriptor: Optional[ConfigDescriptor] = None,
        model: Optional[T] = None,
    ) -> T:
        """
        Bind a configuration type to a file and return its cached instance.

        The last descriptor bound for a type wins. When the file does not
        exist yet, ``model`` (or a default instance) is saved first so there
        is a file to edit.

        Args:
            model_type: Configuration type
            descriptor: Configuration descriptor; may be omitted once cached
            model: Initial content written when the file is absent

        Returns:
            Cached instance of the type

        Raises:
            ConfigNotBoundError: If no descriptor is given or cached
        """
        entry = self._entry(model_type)
        with entry.lock:
            if descriptor is not None:
                entry.descriptor = descriptor
            if entry.descriptor is None:
                raise ConfigNotBoundError(model_type)
            if entry.instance is not None:
                return entry.instance

            path = self.engine.resolve(entry.descriptor)
            materialized = False
            if not path.is_file():
                self._write(entry, model if model is not None else self._schema(model_type).new_instance())
                materialized = True

            if not entry.watch_started:
                entry.watch_started = True
                entry.watcher = start_watcher(
                    path,
                    lambda: self._reload(model_type),
                    entry.descriptor.reload_mode,
                    self.settings.watcher,
                )

            result = self.engine.load(model_type, entry.descriptor)
            entry.instance = result.model
            entry.is_new = materialized or result.is_new
            logger.info(f"Bound configuration {model_type.__qualname__} to {path}")
            return entry.instance

    def current(self, model_type: Type[T]) -> T:
        """
        Get the cached instance of a type, binding it lazily if only a
        descriptor is cached.

        Raises:
            ConfigNotBoundError: If the type was never bound
        """
        entry = self._entries.get(model_type)
        if entry is None or entry.descriptor is None:
            raise ConfigNotBoundError(model_type)
        instance = entry.instance
        if instance is not None:
            return instance
        return self.bind(model_type)

    def save(self, model_type: Type[T], model: Optional[T] = None, path: Optional[Path] = None) -> bool:
        """
        Persist a model and write its values back onto the cached instance.

        Args:
            model_type: Configuration type
            model: Model to save; defaults to a fresh default instance
            path: Optional path overriding the bound file. Writes elsewhere
                are not suppressed on the bound file's watcher.

        Returns:
            True when the file was written

        Raises:
            UnboundSaveError: If the type was never bound
        """
        entry = self._entries.get(model_type)
        if entry is None or entry.descriptor is None:
            raise UnboundSaveError(model_type)

        with entry.lock:
            if model is None:
                model = self._schema(model_type).new_instance()

            success = self._write(entry, model, path)
            if entry.instance is None:
                entry.instance = model
            else:
                self._schema(model_type).copy_into(model, entry.instance)
            entry.is_new = False
            return success

    def is_new(self, model_type: type) -> bool:
        entry = self._entries.get(model_type)
        return entry is not None and entry.is_new

    def path(self, model_type: type) -> Path:
        entry = self._entries.get(model_type)
        if entry is None or entry.descriptor is None:
            raise ConfigNotBoundError(model_type)
        return self.engine.resolve(entry.descriptor)

    def watcher(self, model_type: type) -> Optional[ChangeWatcher]:
        entry = self._entries.get(model_type)
        return entry.watcher if entry is not None else None

    def stop(self, model_type: type) -> None:
        """Stop watching the file of one type."""
        entry = self._entries.get(model_type)
        if entry is None:
            return
        watcher, entry.watcher = entry.watcher, None
        if watcher is not None:
            watcher.stop()

    def stop_all(self) -> None:
        """Stop every watcher started by this store."""
        with self._entries_lock:
            model_types = list(self._entries)
        for model_type in model_types:
            self.stop(model_type)

    def _entry(self, model_type: type) -> BindingEntry:
        entry = self._entries.get(model_type)
        if entry is not None:
            return entry
        with self._entries_lock:
            return self._entries.setdefault(model_type, BindingEntry())

    def _reload(self, model_type: type) -> None:
        entry = self._entries[model_type]
        with entry.lock:
            result = self.engine.load(model_type, entry.descriptor)  # type: ignore[arg-type]
            if entry.instance is None:
                entry.instance = result.model
            else:
                self._schema(model_type).copy_into(result.model, entry.instance)
            entry.is_new = result.is_new
        logger.info(f"Reloaded configuration {model_type.__qualname__} in place")

    def _write(self, entry: BindingEntry, model: Any, path: Optional[Path] = None) -> bool:
        watched = self.engine.resolve(entry.descriptor)  # type: ignore[arg-type]
        watcher = entry.watcher
        if path is not None and Path(os.path.abspath(path)) != watched:
            watcher = None

        if watcher is not None:
            watcher.mark_file_changed()
        try:
            return self.engine.save(model, entry.descriptor, path)  # type: ignore[arg-type]
        finally:
            if watcher is not None:
                watcher.mark_file_changed()

    @staticmethod
    def _schema(model_type: type) -> ModelSchema:
        return ModelSchema.for_type(model_type)


shared_bindings = SharedBinding()
"""Process-wide default store."""

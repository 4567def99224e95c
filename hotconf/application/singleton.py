"""
Singleton configuration binding.

A ``SingletonBinding`` owns the one live instance of a configuration type.
The instance is loaded on first access and replaced wholesale whenever the
bound file changes externally, so callers should fetch it again through
``get()`` (or ``ConfigBase.current()``) instead of holding on to it.
"""

import logging
import threading
from pathlib import Path
from typing import Any, Callable, ClassVar, Dict, Generic, Optional, Type, TypeVar

from ..core.domain.descriptor import ConfigDescriptor
from ..core.exceptions import ConfigNotBoundError
from ..infrastructure.config.engine import PersistenceEngine
from ..infrastructure.config.models import RuntimeSettings, get_runtime_settings
from ..infrastructure.config.watcher import ChangeWatcher, start_watcher

logger = logging.getLogger(__name__)

T = TypeVar('T')
C = TypeVar('C', bound='ConfigBase')


class SingletonBinding(Generic[T]):
    """
    Binds one configuration type to its file with reference replacement.

    Bindings are kept in a registry keyed by type for the process lifetime;
    use ``SingletonBinding.of()`` to obtain them.
    """

    _registry: Dict[type, 'SingletonBinding[Any]'] = {}
    _registry_lock = threading.Lock()

    def __init__(
        self,
        model_type: Type[T],
        descriptor: ConfigDescriptor,
        engine: Optional[PersistenceEngine] = None,
        settings: Optional[RuntimeSettings] = None,
        on_loaded: Optional[Callable[[T], None]] = None,
    ):
        """
        Initialize the binding.

        Args:
            model_type: Configuration type
            descriptor: Configuration descriptor
            engine: Persistence engine
            settings: Runtime settings (defaults to the process-wide settings)
            on_loaded: Hook invoked with every freshly loaded instance
        """
        self.model_type = model_type
        self.descriptor = descriptor
        self.settings = settings or get_runtime_settings()
        self.engine = engine or PersistenceEngine(settings=self.settings.persistence)
        self._on_loaded = on_loaded

        self._lock = threading.RLock()
        self._instance: Optional[T] = None
        self._is_new = False
        self._watcher: Optional[ChangeWatcher] = None
        self._watch_started = False

    @classmethod
    def of(
        cls,
        model_type: Type[T],
        descriptor: Optional[ConfigDescriptor] = None,
        engine: Optional[PersistenceEngine] = None,
        settings: Optional[RuntimeSettings] = None,
        on_loaded: Optional[Callable[[T], None]] = None,
    ) -> 'SingletonBinding[T]':
        """
        Get the binding of a configuration type, creating it on first use.

        The descriptor is taken from the argument or, failing that, from the
        type's ``config_descriptor`` attribute. Arguments are ignored once the
        binding exists.

        Raises:
            ConfigNotBoundError: If the binding does not exist and no
                descriptor is available
        """
        binding = cls._registry.get(model_type)
        if binding is not None:
            return binding

        with cls._registry_lock:
            binding = cls._registry.get(model_type)
            if binding is None:
                descriptor = descriptor or getattr(model_type, "config_descriptor", None)
                if descriptor is None:
                    raise ConfigNotBoundError(model_type)
                binding = cls(model_type, descriptor, engine, settings, on_loaded)
                cls._registry[model_type] = binding
            return binding

    @property
    def path(self) -> Path:
        return self.engine.resolve(self.descriptor)

    @property
    def is_new(self) -> bool:
        """True when the file was absent or blank at the last load and nothing was saved since."""
        return self._is_new

    @property
    def watcher(self) -> Optional[ChangeWatcher]:
        return self._watcher

    def get(self) -> T:
        """
        Get the current instance, loading it on first access.

        First access loads the file, runs the post-load hook, writes a
        default file when none existed and starts the change watcher.
        """
        instance = self._instance
        if instance is not None:
            return instance

        with self._lock:
            if self._instance is None:
                self._initialize()
            return self._instance  # type: ignore[return-value]

    def save(self, model: Optional[T] = None) -> bool:
        """
        Persist a model and make it the current instance.

        Args:
            model: Model to save; defaults to the current instance

        Returns:
            True when the file was written
        """
        with self._lock:
            if model is None:
                model = self.get()

            success = self._write(model)
            self._instance = model
            self._is_new = False
            self._ensure_watcher()
            return success

    def reload(self) -> T:
        """
        Load the file again and replace the current instance.

        This is also the change watcher's callback.
        """
        with self._lock:
            if self._instance is None:
                self._initialize()
                return self._instance  # type: ignore[return-value]

            result = self.engine.load(self.model_type, self.descriptor)
            model = self._after_load(result.model)
            self._instance = model
            self._is_new = result.is_new
            logger.info(f"Reloaded configuration {self.model_type.__qualname__} from {self.path}")
            return model

    def stop(self) -> None:
        """Stop watching the file. A reload already in progress may still complete."""
        watcher, self._watcher = self._watcher, None
        if watcher is not None:
            watcher.stop()

    def _initialize(self) -> None:
        result = self.engine.load(self.model_type, self.descriptor)
        model = self._after_load(result.model)
        self._instance = model
        self._is_new = result.is_new

        if result.is_new:
            self._write(model)

        self._ensure_watcher()
        logger.info(
            f"Initialized configuration {self.model_type.__qualname__} "
            f"({'new' if result.is_new else 'loaded'}): {self.path}")

    def _ensure_watcher(self) -> None:
        if self._watch_started:
            return
        self._watch_started = True
        self._watcher = start_watcher(
            self.path, self.reload, self.descriptor.reload_mode, self.settings.watcher)

    def _write(self, model: T) -> bool:
        watcher = self._watcher
        if watcher is not None:
            watcher.mark_file_changed()
        try:
            return self.engine.save(model, self.descriptor)
        finally:
            if watcher is not None:
                watcher.mark_file_changed()

    def _after_load(self, model: T) -> T:
        if self._on_loaded is not None:
            self._on_loaded(model)
        if isinstance(model, ConfigBase):
            model.on_loaded()
        return model


class ConfigBase:
    """
    Mixin for configuration classes bound through ``SingletonBinding``.

    Subclasses declare where they are stored::

        @dataclass
        class ServerConfig(ConfigBase):
            config_descriptor: ClassVar[ConfigDescriptor] = ConfigDescriptor("server")
            port: int = 8080

        ServerConfig.current().port
    """

    config_descriptor: ClassVar[Optional[ConfigDescriptor]] = None

    @classmethod
    def binding(cls: Type[C]) -> SingletonBinding[C]:
        return SingletonBinding.of(cls)

    @classmethod
    def current(cls: Type[C]) -> C:
        """Get the current instance of this configuration type."""
        return cls.binding().get()

    @property
    def is_new(self) -> bool:
        return type(self).binding().is_new

    def save(self) -> bool:
        """Persist this instance and make it the current one."""
        return type(self).binding().save(self)

    def on_loaded(self) -> None:
        """Hook called after every load, before the instance is published."""
        pass

"""
Runtime settings models.

These dataclasses hold the tunable constants of the persistence engine and
the change watchers, plus the logging configuration used by
``setup_logging``. Settings are supplied programmatically.
"""

import threading
from dataclasses import asdict, dataclass, field
from typing import Any, Dict


@dataclass
class PersistenceSettings:
    """Persistence engine settings."""
    default_directory: str = "./config"
    encoding: str = "utf-8"
    retry_attempts: int = 5
    retry_delay: float = 0.1


@dataclass
class WatcherSettings:
    """Change watcher settings."""
    # Both windows are empirical; slow filesystems may need a wider suppression window.
    suppress_window: float = 0.8
    poll_interval: float = 5.0
    poll_initial_delay: float = 5.0
    stop_timeout: float = 5.0


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    # loguru format of the file sink
    format: str = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}"
    log_directory: str = "logs"
    max_file_size: str = "10 MB"
    backup_count: int = 5
    console_enabled: bool = True
    file_enabled: bool = False


@dataclass
class RuntimeSettings:
    """Aggregated runtime settings."""

    persistence: PersistenceSettings = field(default_factory=PersistenceSettings)
    watcher: WatcherSettings = field(default_factory=WatcherSettings)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def __post_init__(self) -> None:
        """Validate settings after initialization."""
        self._validate_retries()
        self._validate_intervals()

    def _validate_retries(self) -> None:
        if self.persistence.retry_attempts < 0:
            raise ValueError(
                f"retry_attempts must be non-negative, got {self.persistence.retry_attempts}")
        if self.persistence.retry_delay < 0:
            raise ValueError(
                f"retry_delay must be non-negative, got {self.persistence.retry_delay}")
        if not self.persistence.default_directory:
            raise ValueError("default_directory cannot be empty")

    def _validate_intervals(self) -> None:
        intervals = [
            ("suppress_window", self.watcher.suppress_window, False),
            ("poll_interval", self.watcher.poll_interval, True),
            ("poll_initial_delay", self.watcher.poll_initial_delay, False),
            ("stop_timeout", self.watcher.stop_timeout, True),
        ]

        for name, value, strictly_positive in intervals:
            if value < 0 or (strictly_positive and value == 0):
                raise ValueError(f"{name} must be positive, got {value}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert settings to a dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RuntimeSettings':
        """Create settings from a dictionary."""
        return cls(
            persistence=PersistenceSettings(**data.get('persistence', {})),
            watcher=WatcherSettings(**data.get('watcher', {})),
            logging=LoggingConfig(**data.get('logging', {})),
        )


_settings_lock = threading.Lock()
_runtime_settings = RuntimeSettings()


def get_runtime_settings() -> RuntimeSettings:
    """Return the process-wide default settings."""
    with _settings_lock:
        return _runtime_settings


def set_runtime_settings(settings: RuntimeSettings) -> None:
    """
    Replace the process-wide default settings.

    Only bindings created afterwards pick up the new values.
    """
    global _runtime_settings
    with _settings_lock:
        _runtime_settings = settings

"""
Value objects shared between the persistence engine, watchers and bindings.
"""

import threading
from dataclasses import dataclass, field
from typing import Generic, Optional, TypeVar

T = TypeVar('T')


@dataclass
class PersistenceResult(Generic[T]):
    """Outcome of loading a configuration file."""

    model: T
    """Loaded model, or a default instance when the file was absent or blank."""

    is_new: bool = False
    """True when the file did not exist or was empty at load time."""


@dataclass
class WatchState:
    """
    Debounce and suppression state of a change watcher.

    ``suppress_until`` is a monotonic timestamp and only ever moves forward.
    ``last_observed_mtime`` is the modification time (ns) of the last change
    that was either handled or caused by this process.
    """

    last_observed_mtime: Optional[int] = None
    suppress_until: float = 0.0
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False,
                                  repr=False, compare=False)

    def extend_suppression(self, until: float) -> None:
        with self._lock:
            if until > self.suppress_until:
                self.suppress_until = until

    def is_suppressed(self, now: float) -> bool:
        with self._lock:
            return now < self.suppress_until

    def set_baseline(self, mtime: Optional[int]) -> None:
        with self._lock:
            self.last_observed_mtime = mtime

    def observe(self, mtime: int) -> bool:
        """Record ``mtime`` and return True if it is a genuine change."""
        with self._lock:
            if self.last_observed_mtime is None or mtime > self.last_observed_mtime:
                self.last_observed_mtime = mtime
                return True
            return False

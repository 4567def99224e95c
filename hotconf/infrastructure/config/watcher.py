"""
Configuration file watchers.

This module provides change detection for bound configuration files, either
from operating system notifications (watchdog) or by polling the file's
modification time. Both share the same suppression logic so that a save made
by this process does not trigger a reload of the same content.
"""

import logging
import os
import threading
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from ...core.domain.descriptor import ReloadMode
from ...core.domain.state import WatchState
from ...core.exceptions import WatcherUnavailableError
from .models import WatcherSettings

logger = logging.getLogger(__name__)


class IConfigWatcher(ABC):
    """Interface for configuration file watchers."""

    @abstractmethod
    def start(self) -> None:
        """Start watching for configuration changes."""
        pass

    @abstractmethod
    def stop(self) -> None:
        """Stop watching for configuration changes."""
        pass

    @abstractmethod
    def is_running(self) -> bool:
        """Check if the watcher is currently running."""
        pass

    @abstractmethod
    def mark_file_changed(self) -> None:
        """Record a write made by this process."""
        pass


class ChangeWatcher(IConfigWatcher):
    """
    Base class holding the shared reload and suppression logic.

    Subclasses decide *when* to call ``reload()``; this class decides whether
    a call corresponds to a genuine external change.
    """

    def __init__(
        self,
        config_path: Path,
        reload_callback: Optional[Callable[[], Any]] = None,
        settings: Optional[WatcherSettings] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the watcher.

        Args:
            config_path: Path to the configuration file to watch
            reload_callback: Callback invoked once per genuine change
            settings: Watcher settings
            clock: Monotonic clock used for the suppression window
        """
        self.config_path = Path(os.path.abspath(config_path))
        self.reload_callback = reload_callback
        self.settings = settings or WatcherSettings()
        self.state = WatchState()
        self._clock = clock
        self._running = False
        self._lifecycle_lock = threading.Lock()

    def mark_file_changed(self) -> None:
        """
        Record a write made by this process.

        Call it immediately before and immediately after saving: the first
        call opens the suppression window covering the temporary file write
        and rename, the second moves the baseline to the final modification
        time.
        """
        self.state.extend_suppression(self._clock() + self.settings.suppress_window)
        mtime = self._current_mtime()
        if mtime is not None:
            self.state.set_baseline(mtime)

    def reload(self) -> bool:
        """
        Check the file and invoke the callback if it genuinely changed.

        Returns:
            True if the reload callback was invoked
        """
        if self.state.is_suppressed(self._clock()):
            logger.debug(f"Ignoring change inside suppression window: {self.config_path}")
            return False

        mtime = self._current_mtime()
        if mtime is None:
            return False
        if not self.state.observe(mtime):
            return False

        logger.info(f"Configuration file changed: {self.config_path}")
        callback = self.reload_callback
        if callback is None:
            return True

        try:
            callback()
        except Exception as e:
            logger.error(f"Error reloading configuration {self.config_path}: {e}")
        return True

    def _set_initial_baseline(self) -> None:
        self.state.set_baseline(self._current_mtime())

    def _current_mtime(self) -> Optional[int]:
        try:
            return os.stat(self.config_path).st_mtime_ns
        except OSError:
            return None


class ConfigFileHandler(FileSystemEventHandler):
    """Forwards watchdog events for one file to a change callback."""

    def __init__(self, config_path: Path, on_change: Callable[[], Any]):
        """
        Initialize the file handler.

        Args:
            config_path: Path to the configuration file to watch
            on_change: Callback for events touching the file
        """
        super().__init__()
        self.config_path = config_path
        self.on_change = on_change
        self._target = os.path.normcase(str(config_path))

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._matches(event.src_path):
            self.on_change()

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._matches(event.src_path):
            self.on_change()

    def on_moved(self, event: FileSystemEvent) -> None:
        # Atomic saves arrive as a rename of a temporary file onto the target.
        if not event.is_directory and self._matches(getattr(event, "dest_path", "")):
            self.on_change()

    def _matches(self, path: Any) -> bool:
        if not path:
            return False
        return os.path.normcase(os.path.abspath(os.fsdecode(path))) == self._target


class FileEventWatcher(ChangeWatcher):
    """
    Configuration watcher using operating system notifications.

    Watches the containing directory non-recursively and reacts only to
    events for the configuration file itself.
    """

    def __init__(
        self,
        config_path: Path,
        reload_callback: Optional[Callable[[], Any]] = None,
        settings: Optional[WatcherSettings] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(config_path, reload_callback, settings, clock)
        self._observer: Optional[Any] = None
        self._handler: Optional[ConfigFileHandler] = None

    def start(self) -> None:
        """
        Start watching for configuration file changes.

        Raises:
            WatcherUnavailableError: If the notification mechanism cannot start
        """
        with self._lifecycle_lock:
            if self._running:
                logger.debug(f"Configuration watcher is already running: {self.config_path}")
                return

            self._set_initial_baseline()
            handler = ConfigFileHandler(self.config_path, self.reload)
            observer = Observer()

            try:
                observer.schedule(handler, str(self.config_path.parent), recursive=False)
                observer.start()
            except Exception as e:
                logger.debug(f"Observer failed to start for {self.config_path}: {e}")
                if observer.is_alive():
                    observer.stop()
                raise WatcherUnavailableError(
                    f"File notifications unavailable for {self.config_path}: {e}", e) from e

            self._observer = observer
            self._handler = handler
            self._running = True

        logger.info(f"Started watching configuration file: {self.config_path}")

    def stop(self) -> None:
        """Stop watching for configuration file changes."""
        with self._lifecycle_lock:
            if not self._running:
                return
            observer, self._observer = self._observer, None
            self._handler = None
            self._running = False

        if observer is not None:
            observer.stop()
            if threading.current_thread() is not observer:
                observer.join(timeout=self.settings.stop_timeout)

        logger.info(f"Stopped configuration file watcher: {self.config_path}")

    def is_running(self) -> bool:
        """Check if the watcher is currently running."""
        return self._running and self._observer is not None and self._observer.is_alive()


class PollingWatcher(ChangeWatcher):
    """
    Configuration watcher polling the file's modification time.

    Used when file system events are unavailable or explicitly not wanted.
    A tick that starts while another is still running is dropped.
    """

    def __init__(
        self,
        config_path: Path,
        reload_callback: Optional[Callable[[], Any]] = None,
        settings: Optional[WatcherSettings] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(config_path, reload_callback, settings, clock)
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._tick_guard = threading.Lock()

    def start(self) -> None:
        """Start polling for configuration file changes."""
        with self._lifecycle_lock:
            if self._running:
                logger.debug(f"Polling watcher is already running: {self.config_path}")
                return

            self._set_initial_baseline()
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._poll_loop,
                args=(self._stop_event,),
                name=f"hotconf-poll-{self.config_path.name}",
                daemon=True,
            )
            self._running = True
            self._thread.start()

        logger.info(
            f"Started polling configuration file every {self.settings.poll_interval}s: "
            f"{self.config_path}")

    def stop(self) -> None:
        """Stop polling for configuration file changes."""
        with self._lifecycle_lock:
            if not self._running:
                return
            self._running = False
            self._stop_event.set()
            thread, self._thread = self._thread, None

        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.settings.stop_timeout)

        logger.info(f"Stopped polling configuration file watcher: {self.config_path}")

    def is_running(self) -> bool:
        """Check if the watcher is currently running."""
        return self._running and self._thread is not None and self._thread.is_alive()

    def tick(self) -> bool:
        """
        Run one polling check.

        Returns:
            True if the reload callback was invoked; False if nothing changed
            or another tick was still in progress
        """
        if not self._tick_guard.acquire(blocking=False):
            logger.debug(f"Skipping poll tick, previous tick still running: {self.config_path}")
            return False
        try:
            return self.reload()
        finally:
            self._tick_guard.release()

    def _poll_loop(self, stop_event: threading.Event) -> None:
        if stop_event.wait(self.settings.poll_initial_delay):
            return
        while True:
            try:
                self.tick()
            except Exception as e:
                logger.error(f"Error in polling loop: {e}")
            if stop_event.wait(self.settings.poll_interval):
                return


def create_config_watcher(
    config_path: Path,
    reload_callback: Callable[[], Any],
    mode: ReloadMode = ReloadMode.EVENT_DRIVEN,
    settings: Optional[WatcherSettings] = None,
) -> Optional[ChangeWatcher]:
    """
    Create a configuration file watcher without starting it.

    Args:
        config_path: Path to the configuration file to watch
        reload_callback: Callback function to call when file changes
        mode: Watching strategy
        settings: Watcher settings

    Returns:
        Watcher instance, or None for ``ReloadMode.NONE``
    """
    if mode is ReloadMode.NONE:
        return None
    if mode is ReloadMode.POLLING:
        return PollingWatcher(config_path, reload_callback, settings)
    return FileEventWatcher(config_path, reload_callback, settings)


def start_watcher(
    config_path: Path,
    reload_callback: Callable[[], Any],
    mode: ReloadMode = ReloadMode.EVENT_DRIVEN,
    settings: Optional[WatcherSettings] = None,
) -> Optional[ChangeWatcher]:
    """
    Create and start a configuration file watcher.

    Falls back to polling when operating system notifications cannot be
    started, so a missing notification backend never fails the caller.

    Returns:
        Running watcher, or None for ``ReloadMode.NONE``
    """
    watcher = create_config_watcher(config_path, reload_callback, mode, settings)
    if watcher is None:
        return None

    try:
        watcher.start()
        return watcher
    except WatcherUnavailableError as e:
        logger.warning(f"{e.message}; falling back to polling watcher")

    fallback = PollingWatcher(config_path, reload_callback, settings)
    fallback.start()
    return fallback

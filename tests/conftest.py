"""
Shared fixtures for hotconf tests.
"""

import os
import time
from pathlib import Path
from typing import Callable

import pytest

from hotconf.infrastructure.config.models import (
    PersistenceSettings,
    RuntimeSettings,
    WatcherSettings,
)


@pytest.fixture
def watcher_settings() -> WatcherSettings:
    """Short intervals so watcher threads react within a test."""
    return WatcherSettings(
        suppress_window=0.2,
        poll_interval=0.05,
        poll_initial_delay=0.05,
        stop_timeout=2.0,
    )


@pytest.fixture
def runtime_settings(tmp_path: Path, watcher_settings: WatcherSettings) -> RuntimeSettings:
    return RuntimeSettings(
        persistence=PersistenceSettings(default_directory=str(tmp_path), retry_delay=0.01),
        watcher=watcher_settings,
    )


@pytest.fixture
def wait_until() -> Callable[..., bool]:
    """Poll a condition until it holds or the timeout expires."""

    def _wait(condition: Callable[[], bool], timeout: float = 5.0, interval: float = 0.02) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if condition():
                return True
            time.sleep(interval)
        return condition()

    return _wait


@pytest.fixture
def external_write() -> Callable[[Path, str], None]:
    """Rewrite a file as another process would, with a strictly newer mtime."""

    def _write(path: Path, text: str) -> None:
        previous = path.stat().st_mtime_ns if path.exists() else time.time_ns()
        path.write_text(text, encoding="utf-8")
        newer = max(previous, path.stat().st_mtime_ns) + 2_000_000_000
        os.utime(path, ns=(newer, newer))

    return _write

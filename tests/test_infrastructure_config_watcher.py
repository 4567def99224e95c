"""
Tests for configuration file watcher.

测试配置文件监控功能。
"""

import os
import threading
from pathlib import Path
from typing import Callable, Optional
from unittest.mock import Mock, patch

import pytest

from hotconf.core.domain.descriptor import ReloadMode
from hotconf.core.exceptions import WatcherUnavailableError
from hotconf.infrastructure.config.models import WatcherSettings
from hotconf.infrastructure.config.watcher import (
    ConfigFileHandler,
    FileEventWatcher,
    IConfigWatcher,
    PollingWatcher,
    create_config_watcher,
    start_watcher,
)

WATCHER_MODULE = "hotconf.infrastructure.config.watcher"


class MockFileSystemEvent:
    """Mock文件系统事件"""

    def __init__(self, src_path: str, dest_path: Optional[str] = None, is_directory: bool = False) -> None:
        self.src_path = src_path
        self.dest_path = dest_path or ""
        self.is_directory = is_directory


class FakeClock:
    """可控的单调时钟"""

    def __init__(self, now: float = 100.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def bump_mtime(path: Path, seconds: int = 2) -> int:
    """Move the file's modification time forward and return it."""
    mtime = path.stat().st_mtime_ns + seconds * 1_000_000_000
    os.utime(path, ns=(mtime, mtime))
    return mtime


class TestConfigFileHandler:
    """测试ConfigFileHandler类"""

    def setup_method(self) -> None:
        """测试前设置"""
        self.config_path = Path(os.path.abspath("/test/config.yaml"))
        self.on_change = Mock()
        self.handler = ConfigFileHandler(self.config_path, self.on_change)

    def test_on_modified_file_match(self) -> None:
        """测试文件修改事件匹配"""
        self.handler.on_modified(MockFileSystemEvent(str(self.config_path)))  # type: ignore[arg-type]

        self.on_change.assert_called_once()

    def test_on_modified_file_no_match(self) -> None:
        """测试文件修改事件不匹配"""
        self.handler.on_modified(MockFileSystemEvent("/test/other.yaml"))  # type: ignore[arg-type]

        self.on_change.assert_not_called()

    def test_on_modified_directory_event(self) -> None:
        """测试目录事件被忽略"""
        event = MockFileSystemEvent(str(self.config_path), is_directory=True)

        self.handler.on_modified(event)  # type: ignore[arg-type]

        self.on_change.assert_not_called()

    def test_on_created_file_match(self) -> None:
        """测试文件创建事件"""
        self.handler.on_created(MockFileSystemEvent(str(self.config_path)))  # type: ignore[arg-type]

        self.on_change.assert_called_once()

    def test_on_moved_to_config_file(self) -> None:
        """测试临时文件重命名为配置文件"""
        event = MockFileSystemEvent("/test/config.yaml.abc123.tmp", str(self.config_path))

        self.handler.on_moved(event)  # type: ignore[arg-type]

        self.on_change.assert_called_once()

    def test_on_moved_away_from_config_file(self) -> None:
        """测试配置文件被移走"""
        event = MockFileSystemEvent(str(self.config_path), "/test/config.yaml.bak")

        self.handler.on_moved(event)  # type: ignore[arg-type]

        self.on_change.assert_not_called()

    def test_bytes_paths(self) -> None:
        """测试字节路径"""
        self.handler.on_modified(MockFileSystemEvent(os.fsencode(str(self.config_path))))  # type: ignore[arg-type]

        self.on_change.assert_called_once()


class TestReloadLogic:
    """测试重载判定和自写入抑制"""

    @pytest.fixture(autouse=True)
    def setup_watcher(self, tmp_path: Path) -> None:
        """测试前设置"""
        self.config_path = tmp_path / "config.json"
        self.config_path.write_text("{}", encoding="utf-8")
        self.callback = Mock()
        self.clock = FakeClock()
        self.watcher = PollingWatcher(
            self.config_path, self.callback, WatcherSettings(suppress_window=0.8), clock=self.clock)
        self.watcher._set_initial_baseline()

    def test_implements_interface(self) -> None:
        assert isinstance(self.watcher, IConfigWatcher)

    def test_unchanged_file_ignored(self) -> None:
        """测试文件未变化"""
        assert self.watcher.reload() is False
        self.callback.assert_not_called()

    def test_genuine_change(self) -> None:
        """测试真实的外部修改只触发一次"""
        mtime = bump_mtime(self.config_path)

        assert self.watcher.reload() is True
        assert self.watcher.reload() is False

        self.callback.assert_called_once()
        assert self.watcher.state.last_observed_mtime == mtime

    def test_older_mtime_ignored(self) -> None:
        past = self.config_path.stat().st_mtime_ns - 5_000_000_000
        os.utime(self.config_path, ns=(past, past))

        assert self.watcher.reload() is False

    def test_missing_file_ignored(self) -> None:
        """测试文件不存在"""
        self.config_path.unlink()

        assert self.watcher.reload() is False
        self.callback.assert_not_called()

    def test_no_baseline_fires(self) -> None:
        """测试没有基线时视为变化"""
        self.watcher.state.set_baseline(None)

        assert self.watcher.reload() is True

    def test_self_write_suppressed(self) -> None:
        """测试自身保存不会触发重载"""
        self.watcher.mark_file_changed()
        bump_mtime(self.config_path)
        self.watcher.mark_file_changed()

        self.clock.now += 0.5
        assert self.watcher.reload() is False

        self.clock.now += 1.0
        assert self.watcher.reload() is False
        self.callback.assert_not_called()

    def test_change_inside_window_detected_after_window(self) -> None:
        """测试抑制窗口内的外部修改在窗口结束后被检测到"""
        self.watcher.mark_file_changed()
        bump_mtime(self.config_path)

        self.clock.now += 0.5
        assert self.watcher.reload() is False

        self.clock.now += 0.5
        assert self.watcher.reload() is True
        self.callback.assert_called_once()

    def test_mark_extends_window(self) -> None:
        self.watcher.mark_file_changed()
        self.clock.now += 0.5
        self.watcher.mark_file_changed()

        assert self.watcher.state.suppress_until == pytest.approx(101.3)

    def test_mark_missing_file_keeps_baseline(self) -> None:
        baseline = self.watcher.state.last_observed_mtime
        self.config_path.unlink()

        self.watcher.mark_file_changed()

        assert self.watcher.state.last_observed_mtime == baseline

    def test_callback_error_is_logged(self) -> None:
        """测试回调异常不会抛出"""
        self.callback.side_effect = ValueError("bad config")
        bump_mtime(self.config_path)

        with patch(f"{WATCHER_MODULE}.logger") as mock_logger:
            assert self.watcher.reload() is True

        mock_logger.error.assert_called_once()

    def test_overlapping_tick_dropped(self) -> None:
        """测试重叠的轮询被丢弃"""
        bump_mtime(self.config_path)

        with self.watcher._tick_guard:
            assert self.watcher.tick() is False

        self.callback.assert_not_called()
        assert self.watcher.tick() is True

    def test_tick_guard_released_after_error(self) -> None:
        with patch.object(self.watcher, "reload", side_effect=RuntimeError("boom")):
            with pytest.raises(RuntimeError):
                self.watcher.tick()

        assert self.watcher._tick_guard.acquire(blocking=False)
        self.watcher._tick_guard.release()


class TestPollingWatcher:
    """测试PollingWatcher类"""

    def setup_method(self) -> None:
        """测试前设置"""
        self.settings = WatcherSettings(
            suppress_window=0.2, poll_interval=0.05, poll_initial_delay=0.05, stop_timeout=2.0)

    def test_start_and_stop(self, tmp_path: Path) -> None:
        """测试启动和停止"""
        watcher = PollingWatcher(tmp_path / "config.json", Mock(), self.settings)

        watcher.start()
        thread = watcher._thread
        assert watcher.is_running() is True
        assert thread is not None and thread.daemon is True

        watcher.start()
        assert watcher._thread is thread

        watcher.stop()
        assert watcher.is_running() is False
        assert not thread.is_alive()

        watcher.stop()

    def test_detects_external_change(self, tmp_path: Path) -> None:
        """测试轮询检测外部修改"""
        config_path = tmp_path / "config.json"
        config_path.write_text("{}", encoding="utf-8")
        fired = threading.Event()
        watcher = PollingWatcher(config_path, fired.set, self.settings)
        watcher.start()

        try:
            bump_mtime(config_path)
            assert fired.wait(5.0)
        finally:
            watcher.stop()

    def test_stop_before_first_tick(self, tmp_path: Path) -> None:
        settings = WatcherSettings(poll_initial_delay=60.0, stop_timeout=2.0)
        callback = Mock()
        watcher = PollingWatcher(tmp_path / "config.json", callback, settings)

        watcher.start()
        watcher.stop()

        assert watcher.is_running() is False
        callback.assert_not_called()

    def test_restart(self, tmp_path: Path) -> None:
        watcher = PollingWatcher(tmp_path / "config.json", Mock(), self.settings)

        watcher.start()
        watcher.stop()
        watcher.start()

        try:
            assert watcher.is_running() is True
        finally:
            watcher.stop()


class TestFileEventWatcher:
    """测试FileEventWatcher类"""

    def test_observer_failure_raises(self, tmp_path: Path) -> None:
        """测试通知机制不可用"""
        observer = Mock()
        observer.start.side_effect = OSError(28, "inotify watch limit reached")
        observer.is_alive.return_value = False

        with patch(f"{WATCHER_MODULE}.Observer", return_value=observer):
            watcher = FileEventWatcher(tmp_path / "config.json", Mock())
            with pytest.raises(WatcherUnavailableError):
                watcher.start()

        assert watcher.is_running() is False

    def test_schedules_parent_directory(self, tmp_path: Path) -> None:
        """测试监控父目录且不递归"""
        observer = Mock()
        observer.is_alive.return_value = True
        config_path = tmp_path / "config.json"

        with patch(f"{WATCHER_MODULE}.Observer", return_value=observer):
            watcher = FileEventWatcher(config_path, Mock())
            watcher.start()
            watcher.start()

        handler, directory = observer.schedule.call_args[0]
        assert isinstance(handler, ConfigFileHandler)
        assert directory == str(tmp_path)
        assert observer.schedule.call_args[1] == {"recursive": False}
        observer.start.assert_called_once()
        assert watcher.is_running() is True

        watcher.stop()
        observer.stop.assert_called_once()
        observer.join.assert_called_once_with(timeout=5.0)
        assert watcher.is_running() is False

    def test_detects_external_change(self, tmp_path: Path, external_write: Callable[[Path, str], None]) -> None:
        """测试真实文件系统事件"""
        config_path = tmp_path / "config.json"
        config_path.write_text("{}", encoding="utf-8")
        fired = threading.Event()
        watcher = FileEventWatcher(config_path, fired.set, WatcherSettings(stop_timeout=2.0))

        try:
            watcher.start()
        except WatcherUnavailableError:
            pytest.skip("file system notifications unavailable")

        try:
            external_write(config_path, '{"port": 9090}')
            assert fired.wait(5.0)
        finally:
            watcher.stop()


class TestCreateConfigWatcher:
    """测试create_config_watcher和start_watcher函数"""

    def test_create_none(self, tmp_path: Path) -> None:
        assert create_config_watcher(tmp_path / "c.json", Mock(), ReloadMode.NONE) is None

    def test_create_polling(self, tmp_path: Path) -> None:
        watcher = create_config_watcher(tmp_path / "c.json", Mock(), ReloadMode.POLLING)

        assert isinstance(watcher, PollingWatcher)
        assert watcher.is_running() is False

    def test_create_event_driven(self, tmp_path: Path) -> None:
        watcher = create_config_watcher(tmp_path / "c.json", Mock())

        assert isinstance(watcher, FileEventWatcher)
        assert watcher.is_running() is False

    def test_start_none(self, tmp_path: Path) -> None:
        assert start_watcher(tmp_path / "c.json", Mock(), ReloadMode.NONE) is None

    def test_start_sets_baseline(self, tmp_path: Path) -> None:
        """测试启动时记录基线"""
        config_path = tmp_path / "c.json"
        config_path.write_text("{}", encoding="utf-8")
        settings = WatcherSettings(poll_initial_delay=60.0, stop_timeout=2.0)

        watcher = start_watcher(config_path, Mock(), ReloadMode.POLLING, settings)

        try:
            assert watcher is not None
            assert watcher.state.last_observed_mtime == config_path.stat().st_mtime_ns
        finally:
            watcher.stop()  # type: ignore[union-attr]

    def test_fallback_to_polling(self, tmp_path: Path) -> None:
        """测试事件通知失败时回退到轮询"""
        observer = Mock()
        observer.start.side_effect = OSError(28, "inotify watch limit reached")
        observer.is_alive.return_value = False
        settings = WatcherSettings(poll_initial_delay=60.0, stop_timeout=2.0)

        with patch(f"{WATCHER_MODULE}.Observer", return_value=observer):
            watcher = start_watcher(tmp_path / "c.json", Mock(), ReloadMode.EVENT_DRIVEN, settings)

        try:
            assert isinstance(watcher, PollingWatcher)
            assert watcher.is_running() is True
        finally:
            watcher.stop()  # type: ignore[union-attr]

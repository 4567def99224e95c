"""
Tests for configuration path resolution.
"""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from hotconf.core.domain.descriptor import ConfigDescriptor, ConfigFormat
from hotconf.infrastructure.config.models import PersistenceSettings
from hotconf.infrastructure.config.paths import PathResolver


class TestPathResolver:
    """Test cases for PathResolver."""

    def test_resolve_in_directory(self, tmp_path: Path) -> None:
        """Test resolving a descriptor with an explicit directory."""
        descriptor = ConfigDescriptor("app", ConfigFormat.YAML, directory=str(tmp_path))

        path = PathResolver().resolve(descriptor)

        assert path == Path(os.path.abspath(tmp_path / "app.yaml"))
        assert path.is_absolute()
        assert descriptor.resolved_path == path

    def test_resolve_creates_directory(self, tmp_path: Path) -> None:
        """Test that missing directories are created."""
        target = tmp_path / "nested" / "config"
        descriptor = ConfigDescriptor("app", directory=str(target))

        path = PathResolver().resolve(descriptor)

        assert target.is_dir()
        assert not path.exists()

    def test_resolve_uses_default_directory(self, tmp_path: Path) -> None:
        """Test that descriptors without a directory use the settings default."""
        settings = PersistenceSettings(default_directory=str(tmp_path / "defaults"))
        descriptor = ConfigDescriptor("server.ini")

        path = PathResolver(settings).resolve(descriptor)

        assert path == Path(os.path.abspath(tmp_path / "defaults" / "server.ini"))

    def test_relative_directory_made_absolute(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        descriptor = ConfigDescriptor("app", directory="conf")

        path = PathResolver().resolve(descriptor)

        assert path == Path(os.path.abspath(os.path.join("conf", "app.json")))
        assert (tmp_path / "conf").is_dir()

    def test_resolve_is_idempotent(self, tmp_path: Path) -> None:
        """Test that a second resolution returns the memoized path without touching the filesystem."""
        resolver = PathResolver()
        descriptor = ConfigDescriptor("app", directory=str(tmp_path / "cfg"))

        first = resolver.resolve(descriptor)
        with patch.object(Path, "mkdir") as mock_mkdir:
            second = resolver.resolve(descriptor)
            third = PathResolver().resolve(descriptor)

        assert first is second
        assert third is first
        mock_mkdir.assert_not_called()

"""
Configuration path resolution.
"""

import logging
import os
import threading
from pathlib import Path
from typing import Optional

from ...core.domain.descriptor import ConfigDescriptor
from .models import PersistenceSettings

logger = logging.getLogger(__name__)


class PathResolver:
    """
    Derives the canonical absolute path of a descriptor.

    The first resolution creates the containing directory and memoizes the
    path on the descriptor; later resolutions return the memoized path
    without touching the filesystem.
    """

    def __init__(self, settings: Optional[PersistenceSettings] = None):
        self.settings = settings or PersistenceSettings()
        self._lock = threading.Lock()

    def resolve(self, descriptor: ConfigDescriptor) -> Path:
        """
        Resolve the canonical path of a descriptor.

        Args:
            descriptor: Configuration descriptor

        Returns:
            Absolute path of the configuration file
        """
        cached = descriptor.resolved_path
        if cached is not None:
            return cached

        with self._lock:
            if descriptor.resolved_path is not None:
                return descriptor.resolved_path

            base = Path(descriptor.directory or self.settings.default_directory).expanduser()
            path = Path(os.path.abspath(base / descriptor.file_name))
            path.parent.mkdir(parents=True, exist_ok=True)

            descriptor._resolved_path = path
            logger.debug(f"Resolved configuration '{descriptor.name}' to {path}")
            return path

"""
Infrastructure layer containing filesystem and library dependencies.

This layer handles file persistence, codecs, encryption, change watching
and logging.
"""

from .config.engine import PersistenceEngine
from .logging.setup import setup_logging

__all__ = [
    "PersistenceEngine",
    "setup_logging",
]

"""
Configuration persistence engine.

This module loads configuration files into typed models (read, decrypt,
deserialize, retry while the file is locked) and saves models back
(serialize, comment header, encrypt, atomic replace).
"""

import contextlib
import errno
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Any, Callable, Optional, Type, TypeVar

from ...core.domain.descriptor import ConfigDescriptor
from ...core.domain.state import PersistenceResult
from ...core.interfaces.crypto import ICipher
from .codecs import CodecRegistry
from .crypto import AesGcmCipher
from .headers import CommentHeaderBuilder
from .models import PersistenceSettings
from .paths import PathResolver
from .schema import ModelSchema

logger = logging.getLogger(__name__)

T = TypeVar('T')

# ERROR_SHARING_VIOLATION and ERROR_LOCK_VIOLATION on Windows
_WINDOWS_LOCK_ERRORS = (32, 33)
_POSIX_LOCK_ERRORS = (errno.EAGAIN, errno.EBUSY, errno.EWOULDBLOCK)


def is_transient_lock_error(error: OSError) -> bool:
    """Check whether an I/O error means the file is temporarily locked by another process."""
    if getattr(error, "winerror", None) in _WINDOWS_LOCK_ERRORS:
        return True
    return error.errno in _POSIX_LOCK_ERRORS


def atomic_write_text(path: Path, text: str, encoding: str = "utf-8") -> None:
    """
    Write text to ``path`` atomically.

    The text is written to a temporary file in the same directory and then
    renamed over the target, so readers observe either the previous or the
    new content in full. The temporary file is removed on failure.

    Args:
        path: Target file path
        text: Full file content
        encoding: Text encoding
    """
    fd, tmp_name = tempfile.mkstemp(prefix=f"{path.name}.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding=encoding, newline="") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_name)
        raise


class PersistenceEngine:
    """
    Loads and saves configuration models.

    Codecs and the cipher are injected so new formats or ciphers never
    require changes here.
    """

    def __init__(
        self,
        codecs: Optional[CodecRegistry] = None,
        cipher: Optional[ICipher] = None,
        resolver: Optional[PathResolver] = None,
        headers: Optional[CommentHeaderBuilder] = None,
        settings: Optional[PersistenceSettings] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the engine.

        Args:
            codecs: Codec registry (defaults to the built-in codecs)
            cipher: Cipher for encrypted descriptors (defaults to AES-GCM)
            resolver: Path resolver
            headers: Comment header builder
            settings: Persistence settings (retry policy, encoding)
            sleep: Function used to wait between retries
        """
        self.settings = settings or PersistenceSettings()
        self.codecs = codecs or CodecRegistry.default()
        self.cipher = cipher or AesGcmCipher()
        self.resolver = resolver or PathResolver(self.settings)
        self.headers = headers or CommentHeaderBuilder()
        self._sleep = sleep

    def resolve(self, descriptor: ConfigDescriptor) -> Path:
        return self.resolver.resolve(descriptor)

    def load(
        self,
        model_type: Type[T],
        descriptor: ConfigDescriptor,
        path: Optional[Path] = None,
    ) -> PersistenceResult[T]:
        """
        Load a configuration model.

        Args:
            model_type: Type of the model
            descriptor: Configuration descriptor
            path: Optional path overriding the descriptor's canonical path

        Returns:
            Loaded model; a default instance with ``is_new`` set when the
            file is absent or blank

        Raises:
            OSError: On permanent I/O errors, or when the file stays locked
                after all retries
            DeserializationError: If the content cannot be parsed
            DecryptionError: If encrypted content cannot be decrypted
        """
        file_path = Path(path) if path is not None else self.resolve(descriptor)
        codec = self.codecs.get(descriptor.format)
        schema = ModelSchema.for_type(model_type)

        if not file_path.is_file():
            logger.debug(f"Configuration file not found, using defaults: {file_path}")
            return PersistenceResult(schema.new_instance(), is_new=True)

        content = self._read_with_retry(file_path)
        if content is None or not content.strip():
            logger.debug(f"Configuration file is empty, using defaults: {file_path}")
            return PersistenceResult(schema.new_instance(), is_new=True)

        if descriptor.encrypted:
            content = self.cipher.decrypt(content, descriptor.secret or "")

        model = codec.deserialize(content, model_type)
        if model is None:
            model = schema.new_instance()

        logger.debug(f"Loaded configuration {model_type.__qualname__} from {file_path}")
        return PersistenceResult(model, is_new=False)

    def save(
        self,
        model: Any,
        descriptor: ConfigDescriptor,
        path: Optional[Path] = None,
    ) -> bool:
        """
        Save a configuration model atomically.

        Args:
            model: Model instance
            descriptor: Configuration descriptor
            path: Optional path overriding the descriptor's canonical path

        Returns:
            True when the file was written

        Raises:
            OSError: If the file cannot be written; the target is left untouched
        """
        if model is None:
            raise ValueError("Cannot save an empty configuration model")

        file_path = Path(path) if path is not None else self.resolve(descriptor)
        codec = self.codecs.get(descriptor.format)

        text = codec.serialize(model)
        if descriptor.encrypted:
            text = self.cipher.encrypt(text, descriptor.secret or "")
        else:
            text = self.headers.inject(text, type(model), descriptor.format, codec)

        file_path.parent.mkdir(parents=True, exist_ok=True)
        atomic_write_text(file_path, text, self.settings.encoding)

        logger.debug(f"Saved configuration {type(model).__qualname__} to {file_path}")
        return True

    def _read_with_retry(self, path: Path) -> Optional[str]:
        attempts = self.settings.retry_attempts
        for attempt in range(attempts + 1):
            try:
                with open(path, "r", encoding=self.settings.encoding) as f:
                    return f.read()
            except FileNotFoundError:
                return None
            except OSError as e:
                if not is_transient_lock_error(e) or attempt >= attempts:
                    raise
                logger.debug(
                    f"Configuration file is locked, retrying ({attempt + 1}/{attempts}): {path}")
                self._sleep(self.settings.retry_delay)
        return None

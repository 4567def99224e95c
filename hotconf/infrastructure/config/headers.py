"""
Comment headers for human-editable configuration files.

A header lists each described field as ``name : description`` in the
comment syntax of the file format. Headers are built once per (type,
format) pair and cached.
"""

import logging
import threading
from typing import Dict, Tuple

from ...core.interfaces.codecs import ICodec
from .schema import ModelSchema

logger = logging.getLogger(__name__)


class CommentHeaderBuilder:
    """Builds and caches field description headers."""

    def __init__(self) -> None:
        self._cache: Dict[Tuple[type, str], str] = {}
        self._lock = threading.Lock()

    def build(self, model_type: type, format_name: str, codec: ICodec) -> str:
        """
        Build the header of a model type for one format.

        Returns:
            Header text ending with a blank line, or an empty string when no
            field has a description
        """
        key = (model_type, format_name)
        header = self._cache.get(key)
        if header is not None:
            return header

        lines = [
            codec.comment_line(f"{spec.name} : {spec.description.strip()}")
            for spec in ModelSchema.for_type(model_type).fields
            if spec.description and spec.description.strip()
        ]
        header = "\n".join(lines) + "\n\n" if lines else ""

        with self._lock:
            header = self._cache.setdefault(key, header)
        logger.debug(f"Built {len(lines)}-line comment header for {model_type.__qualname__} ({format_name})")
        return header

    def inject(self, text: str, model_type: type, format_name: str, codec: ICodec) -> str:
        """Insert the header of ``model_type`` into serialized text."""
        if not text:
            return text
        header = self.build(model_type, format_name, codec)
        if not header:
            return text
        return codec.inject_header(text, header)

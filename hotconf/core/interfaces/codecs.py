"""
Codec interface for configuration file formats.

A codec converts between a typed model and its textual representation for
one file format. Adding a format means adding a codec, never changing the
persistence engine.
"""

from abc import ABC, abstractmethod
from typing import Any, Type, TypeVar

T = TypeVar('T')


class ICodec(ABC):
    """Interface for format-specific serializers."""

    format_name: str = ""
    """Format identifier, also used as the default file extension."""

    comment_prefix: str = "#"
    """Marker that starts a single-line comment in this format."""

    comment_suffix: str = ""
    """Marker that ends a comment, for formats with block comments."""

    @abstractmethod
    def serialize(self, model: Any) -> str:
        """
        Serialize a model to text.

        Args:
            model: Configuration model instance

        Returns:
            Text representation of the model
        """
        pass

    @abstractmethod
    def deserialize(self, text: str, model_type: Type[T]) -> T:
        """
        Deserialize text into a model.

        Args:
            text: Text produced by ``serialize`` or edited by a user
            model_type: Type of the model to build

        Returns:
            Model instance

        Raises:
            DeserializationError: If the text cannot be parsed
        """
        pass

    def comment_line(self, text: str) -> str:
        """Format ``text`` as a single comment line."""
        return f"{self.comment_prefix} {text}{self.comment_suffix}"

    def inject_header(self, text: str, header: str) -> str:
        """Insert a comment header into serialized text."""
        return header + text

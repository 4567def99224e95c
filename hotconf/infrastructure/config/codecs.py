"""
Configuration codecs.

This module provides the built-in text codecs (JSON, YAML, INI and XML) and
the registry the persistence engine selects them from.
"""

import configparser
import io
import json
import logging
import re
import threading
import xml.etree.ElementTree as ET
from typing import Any, Dict, List, Optional, Type, TypeVar

import yaml

from ...core.exceptions import DeserializationError, UnsupportedFormatError
from ...core.interfaces.codecs import ICodec
from .schema import ModelSchema

logger = logging.getLogger(__name__)

T = TypeVar('T')

_XML_NAME = re.compile(r"^[A-Za-z_][\w.-]*$")
_XML_DECLARATION = '<?xml version="1.0" encoding="utf-8"?>'


class JsonCodec(ICodec):
    """
    JSON codec.

    Output is indented and keeps non-ASCII text; ``None`` values are omitted.
    Full-line ``//`` comments are stripped before parsing so that files with
    an injected header stay loadable.
    """

    format_name = "json"
    comment_prefix = "//"

    def serialize(self, model: Any) -> str:
        data = _drop_none(ModelSchema.for_type(type(model)).to_dict(model))
        return json.dumps(data, indent=2, ensure_ascii=False) + "\n"

    def deserialize(self, text: str, model_type: Type[T]) -> Optional[T]:
        content = "\n".join(
            line for line in text.splitlines()
            if not line.lstrip().startswith(self.comment_prefix)
        )
        if not content.strip():
            return None

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise DeserializationError(f"Invalid JSON: {e}", e.pos) from e

        if data is None:
            return None
        if not isinstance(data, dict):
            raise DeserializationError(
                f"Expected a JSON object for {model_type.__name__}, got {type(data).__name__}")
        return ModelSchema.for_type(model_type).from_dict(data)


class YamlCodec(ICodec):
    """YAML codec based on PyYAML safe dump/load."""

    format_name = "yaml"
    comment_prefix = "#"

    def __init__(self, omit_defaults: bool = False):
        """
        Initialize the codec.

        Args:
            omit_defaults: Drop top-level values equal to the model's defaults
        """
        self.omit_defaults = omit_defaults

    def serialize(self, model: Any) -> str:
        schema = ModelSchema.for_type(type(model))
        data = schema.to_dict(model)

        if self.omit_defaults:
            defaults = schema.to_dict(schema.new_instance())
            data = {k: v for k, v in data.items() if k not in defaults or defaults[k] != v}

        return yaml.safe_dump(
            data, default_flow_style=False, sort_keys=False, allow_unicode=True, indent=2)

    def deserialize(self, text: str, model_type: Type[T]) -> Optional[T]:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise DeserializationError(f"Invalid YAML: {e}") from e

        if data is None:
            return None
        if not isinstance(data, dict):
            raise DeserializationError(
                f"Expected a YAML mapping for {model_type.__name__}, got {type(data).__name__}")
        return ModelSchema.for_type(model_type).from_dict(data)


class IniCodec(ICodec):
    """
    INI codec based on ``configparser``.

    Scalar fields are written to a section named after the model class;
    nested models get a section named after their field. Lists and deeper
    structures are stored as JSON text.
    """

    format_name = "ini"
    comment_prefix = ";"

    def serialize(self, model: Any) -> str:
        data = ModelSchema.for_type(type(model)).to_dict(model)
        parser = self._parser()
        main = type(model).__name__
        parser.add_section(main)

        for key, value in data.items():
            if isinstance(value, dict):
                parser.add_section(key)
                for sub_key, sub_value in value.items():
                    parser.set(key, sub_key, self._format_value(sub_value))
            else:
                parser.set(main, key, self._format_value(value))

        buffer = io.StringIO()
        parser.write(buffer)
        return buffer.getvalue()

    def deserialize(self, text: str, model_type: Type[T]) -> Optional[T]:
        parser = self._parser()
        try:
            parser.read_string(text)
        except configparser.Error as e:
            raise DeserializationError(f"Invalid INI: {e}") from e

        schema = ModelSchema.for_type(model_type)
        main = model_type.__name__
        data: Dict[str, Any] = {}
        if parser.has_section(main):
            data.update(parser.items(main, raw=True))

        for section in parser.sections():
            if section != main and schema.field(section) is not None:
                data[section] = dict(parser.items(section, raw=True))

        return schema.from_dict(data)

    @staticmethod
    def _parser() -> configparser.ConfigParser:
        parser = configparser.ConfigParser(
            interpolation=None, comment_prefixes=(';', '#'), strict=False)
        parser.optionxform = str  # type: ignore[assignment,method-assign]
        return parser

    @staticmethod
    def _format_value(value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (list, dict)):
            return json.dumps(value, ensure_ascii=False)
        return str(value)


class XmlCodec(ICodec):
    """
    XML codec based on ``xml.etree.ElementTree``.

    The root element is named after the model class, each field becomes a
    child element, list entries become ``item`` elements and dictionary keys
    that are not valid element names become ``entry`` elements with a
    ``key`` attribute. Empty lists and dictionaries carry a ``type`` attribute
    so they read back as empty collections. Comments are ignored on read.
    """

    format_name = "xml"
    comment_prefix = "<!--"
    comment_suffix = " -->"

    def serialize(self, model: Any) -> str:
        data = ModelSchema.for_type(type(model)).to_dict(model)
        root = ET.Element(type(model).__name__)
        for key, value in data.items():
            self._append(root, key, value)

        ET.indent(root, space="  ")
        return f"{_XML_DECLARATION}\n{ET.tostring(root, encoding='unicode')}\n"

    def deserialize(self, text: str, model_type: Type[T]) -> Optional[T]:
        try:
            root = ET.fromstring(text.encode("utf-8"))
        except ET.ParseError as e:
            raise DeserializationError(f"Invalid XML: {e}") from e

        if root.tag != model_type.__name__:
            logger.debug(f"XML root <{root.tag}> does not match {model_type.__name__}")

        data = self._read(root)
        if not isinstance(data, dict):
            data = {}
        return ModelSchema.for_type(model_type).from_dict(data)

    def comment_line(self, text: str) -> str:
        return super().comment_line(text.replace("--", "- -"))

    def inject_header(self, text: str, header: str) -> str:
        # The declaration must stay on the first line.
        if text.startswith("<?xml"):
            end = text.find("?>")
            if end >= 0:
                declaration = text[:end + 2]
                body = text[end + 2:].lstrip("\r\n")
                return f"{declaration}\n{header}{body}"
        return header + text

    def _append(self, parent: ET.Element, key: str, value: Any) -> None:
        if value is None:
            return

        if _XML_NAME.match(key):
            element = ET.SubElement(parent, key)
        else:
            element = ET.SubElement(parent, "entry", key=key)

        if isinstance(value, dict):
            if not value:
                element.set("type", "dict")
            for sub_key, sub_value in value.items():
                self._append(element, str(sub_key), sub_value)
        elif isinstance(value, list):
            if not value:
                element.set("type", "list")
            for item in value:
                self._append(element, "item", item)
        elif isinstance(value, bool):
            element.text = "true" if value else "false"
        else:
            element.text = str(value)

    def _read(self, element: ET.Element) -> Any:
        children = list(element)
        if not children:
            marker = element.get("type")
            if marker == "list":
                return []
            if marker == "dict":
                return {}
            return element.text or ""
        if all(child.tag == "item" for child in children):
            return [self._read(child) for child in children]

        result: Dict[str, Any] = {}
        for child in children:
            key = child.get("key") if child.tag == "entry" and "key" in child.attrib else child.tag
            result[key] = self._read(child)
        return result


class CodecRegistry:
    """Maps format names to codecs."""

    def __init__(self, codecs: Optional[Dict[str, ICodec]] = None):
        self._codecs: Dict[str, ICodec] = {}
        self._lock = threading.Lock()
        for format_name, codec in (codecs or {}).items():
            self.register(format_name, codec)

    @classmethod
    def default(cls) -> 'CodecRegistry':
        """Create a registry with the built-in codecs."""
        yaml_codec = YamlCodec()
        return cls({
            "json": JsonCodec(),
            "yaml": yaml_codec,
            "yml": yaml_codec,
            "ini": IniCodec(),
            "xml": XmlCodec(),
        })

    def register(self, format_name: str, codec: ICodec) -> None:
        """
        Register a codec for a format, replacing any previous one.

        Args:
            format_name: Format identifier (case-insensitive)
            codec: Codec instance
        """
        with self._lock:
            self._codecs[format_name.lower()] = codec
        logger.debug(f"Registered codec {type(codec).__name__} for format '{format_name}'")

    def get(self, format_name: str) -> ICodec:
        """
        Get the codec of a format.

        Raises:
            UnsupportedFormatError: If no codec is registered for the format
        """
        codec = self._codecs.get(format_name.lower())
        if codec is None:
            raise UnsupportedFormatError(format_name)
        return codec

    def formats(self) -> List[str]:
        return sorted(self._codecs)


def _drop_none(data: Any) -> Any:
    if isinstance(data, dict):
        return {k: _drop_none(v) for k, v in data.items() if v is not None}
    if isinstance(data, list):
        return [_drop_none(v) for v in data]
    return data

"""
Per-type model introspection.

``ModelSchema.for_type`` inspects a configuration type once and caches the
result: its persisted fields, their type hints and descriptions, and which
of them can be written back onto an existing instance. Codecs use the schema
to convert models to plain dictionaries and back; bindings use it for
write-back on reload.

Supported model types are dataclasses, pydantic models and plain classes
whose public attributes are set in ``__init__``. All of them must be
constructible without arguments.
"""

import dataclasses
import enum
import inspect
import json
import logging
import threading
import types
import typing
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel

logger = logging.getLogger(__name__)

T = TypeVar('T')

_UNION_TYPES: Tuple[Any, ...] = (typing.Union,)
if hasattr(types, "UnionType"):
    _UNION_TYPES += (types.UnionType,)

_SEQUENCE_ORIGINS = (list, tuple, set, frozenset)


def parse_bool(value: str) -> bool:
    """Parse boolean value from string."""
    return value.strip().lower() in ('true', '1', 'yes', 'on', 'enabled')


class ModelKind(enum.Enum):
    """How a model type exposes its fields."""
    DATACLASS = "dataclass"
    PYDANTIC = "pydantic"
    PLAIN = "plain"


@dataclasses.dataclass(frozen=True)
class FieldSpec:
    """A persisted field of a model type."""
    name: str
    type_hint: Any = Any
    description: Optional[str] = None
    writable: bool = True


class ModelSchema:
    """Cached view of a model type's persisted fields."""

    _cache: Dict[type, 'ModelSchema'] = {}
    _cache_lock = threading.RLock()

    def __init__(self, model_type: type):
        self.model_type = model_type

        if isinstance(model_type, type) and issubclass(model_type, BaseModel):
            self.kind = ModelKind.PYDANTIC
            self.fields = self._pydantic_fields(model_type)
        elif dataclasses.is_dataclass(model_type):
            self.kind = ModelKind.DATACLASS
            self.fields = self._dataclass_fields(model_type)
        else:
            self.kind = ModelKind.PLAIN
            self.fields = self._plain_fields(model_type)

        self.writable: Tuple[str, ...] = tuple(f.name for f in self.fields if f.writable)
        self._by_name = {f.name: f for f in self.fields}

    @classmethod
    def for_type(cls, model_type: type) -> 'ModelSchema':
        """Return the cached schema of ``model_type``, building it on first use."""
        schema = cls._cache.get(model_type)
        if schema is not None:
            return schema

        with cls._cache_lock:
            schema = cls._cache.get(model_type)
            if schema is None:
                schema = cls(model_type)
                cls._cache[model_type] = schema
                logger.debug(
                    f"Built {schema.kind.value} schema for {model_type.__qualname__}: "
                    f"{len(schema.fields)} fields, {len(schema.writable)} writable")
            return schema

    def field(self, name: str) -> Optional[FieldSpec]:
        return self._by_name.get(name)

    def new_instance(self) -> Any:
        """Create a default instance of the model type."""
        return self.model_type()

    def to_dict(self, model: Any) -> Dict[str, Any]:
        """Convert a model to a dictionary of plain values."""
        if self.kind is ModelKind.PYDANTIC:
            return model.model_dump(mode="json")
        return {f.name: to_plain(getattr(model, f.name)) for f in self.fields}

    def from_dict(self, data: Dict[str, Any]) -> Any:
        """
        Build a model from a dictionary.

        Keys that are not fields of the model are ignored; missing keys keep
        the model's defaults. Text values are coerced to the field types.
        """
        if self.kind is ModelKind.PYDANTIC:
            return self.model_type.model_validate(data)

        values = {
            f.name: convert_value(data[f.name], f.type_hint)
            for f in self.fields if f.name in data
        }

        if self.kind is ModelKind.DATACLASS:
            init_names = {f.name for f in dataclasses.fields(self.model_type) if f.init}
            instance = self.model_type(**{k: v for k, v in values.items() if k in init_names})
            for name, value in values.items():
                if name not in init_names:
                    object.__setattr__(instance, name, value)
            return instance

        instance = self.model_type()
        for name, value in values.items():
            setattr(instance, name, value)
        return instance

    def copy_into(self, source: Any, target: Any) -> None:
        """
        Copy every writable field from ``source`` onto ``target``.

        The copy is shallow: reference-typed values are assigned, not merged.
        """
        if source is target:
            return
        for name in self.writable:
            setattr(target, name, getattr(source, name))

    @staticmethod
    def _pydantic_fields(model_type: Type[BaseModel]) -> Tuple[FieldSpec, ...]:
        frozen = bool(model_type.model_config.get("frozen", False))
        return tuple(
            FieldSpec(
                name=name,
                type_hint=info.annotation,
                description=info.description,
                writable=not frozen and not info.frozen,
            )
            for name, info in model_type.model_fields.items()
        )

    @staticmethod
    def _dataclass_fields(model_type: type) -> Tuple[FieldSpec, ...]:
        hints = _type_hints(model_type)
        frozen = model_type.__dataclass_params__.frozen  # type: ignore[attr-defined]
        return tuple(
            FieldSpec(
                name=f.name,
                type_hint=hints.get(f.name, f.type),
                description=f.metadata.get("description"),
                writable=not frozen,
            )
            for f in dataclasses.fields(model_type)
            if not f.name.startswith("_")
        )

    @staticmethod
    def _plain_fields(model_type: type) -> Tuple[FieldSpec, ...]:
        hints = _type_hints(model_type)
        instance = model_type()
        specs: List[FieldSpec] = []

        for name, value in vars(instance).items():
            if name.startswith("_"):
                continue
            hint = hints.get(name)
            if hint is None:
                hint = type(value) if value is not None else Any
            specs.append(FieldSpec(name=name, type_hint=hint))

        known = {s.name for s in specs}
        for name, prop in inspect.getmembers(model_type, lambda m: isinstance(m, property)):
            if name.startswith("_") or name in known or prop.fset is None:
                continue
            hint = _type_hints(prop.fget).get("return", Any)
            doc = inspect.getdoc(prop)
            specs.append(FieldSpec(
                name=name,
                type_hint=hint,
                description=doc.splitlines()[0] if doc else None,
            ))

        return tuple(specs)


def _type_hints(obj: Any) -> Dict[str, Any]:
    try:
        return typing.get_type_hints(obj)
    except Exception as e:
        logger.debug(f"Could not resolve type hints of {obj!r}: {e}")
        return dict(getattr(obj, "__annotations__", {}))


def to_plain(value: Any) -> Any:
    """Convert a field value to plain data (dict, list, str, int, float, bool, None)."""
    if value is None or isinstance(value, (bool, int, float, str)) and not isinstance(value, enum.Enum):
        return value
    if isinstance(value, enum.Enum):
        return to_plain(value.value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return ModelSchema.for_type(type(value)).to_dict(value)
    if isinstance(value, dict):
        return {str(k): to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_plain(v) for v in value]
    return value


def convert_value(value: Any, hint: Any) -> Any:
    """
    Convert plain data to the type described by ``hint``.

    Text produced by INI and XML codecs is coerced to scalars; dictionaries
    are turned into nested models.
    """
    if hint is None or hint is Any:
        return value

    origin = typing.get_origin(hint)
    args = typing.get_args(hint)

    if origin in _UNION_TYPES:
        options = [a for a in args if a is not type(None)]
        optional = len(options) < len(args)
        if value is None:
            return None
        if optional and value == "" and str not in options:
            return None
        if len(options) == 1:
            return convert_value(value, options[0])
        return value

    if value is None:
        return None

    if origin in _SEQUENCE_ORIGINS:
        items = _split_list(value) if isinstance(value, str) else value
        item_hint = args[0] if args and args[0] is not Ellipsis else Any
        converted = [convert_value(v, item_hint) for v in items]
        return converted if origin is list else origin(converted)

    if origin is dict:
        if isinstance(value, str):
            value = json.loads(value) if value.strip() else {}
        key_hint, value_hint = args if len(args) == 2 else (Any, Any)
        return {convert_value(k, key_hint): convert_value(v, value_hint) for k, v in value.items()}

    if not isinstance(hint, type):
        return value

    if hint in _SEQUENCE_ORIGINS:
        return _split_list(value) if isinstance(value, str) else hint(value)
    if hint is dict:
        return json.loads(value) if isinstance(value, str) and value.strip() else (value or {})
    if _is_object_text(value) and (issubclass(hint, BaseModel) or dataclasses.is_dataclass(hint)):
        # INI stores models nested below the first level as JSON text.
        value = json.loads(value)
    if issubclass(hint, BaseModel):
        return hint.model_validate(value) if isinstance(value, dict) else value
    if issubclass(hint, enum.Enum):
        return _to_enum(value, hint)
    if hint is bool:
        return parse_bool(value) if isinstance(value, str) else bool(value)
    if hint in (int, float):
        if isinstance(value, str):
            return hint(value.strip())
        return hint(value) if isinstance(value, (int, float)) else value
    if hint is str:
        return value if isinstance(value, str) else str(value)
    if hint is datetime:
        return datetime.fromisoformat(value) if isinstance(value, str) else value
    if hint is date:
        return date.fromisoformat(value) if isinstance(value, str) else value
    if hint is Path:
        return Path(value)
    if isinstance(value, dict):
        return ModelSchema.for_type(hint).from_dict(value)
    return value


def _is_object_text(value: Any) -> bool:
    return isinstance(value, str) and value.lstrip().startswith("{")


def _split_list(text: str) -> List[Any]:
    stripped = text.strip()
    if not stripped:
        return []
    if stripped.startswith("["):
        return list(json.loads(stripped))
    return [part.strip() for part in stripped.split(",")]


def _to_enum(value: Any, enum_type: Type[enum.Enum]) -> enum.Enum:
    if isinstance(value, enum_type):
        return value
    try:
        return enum_type(value)
    except ValueError:
        if not isinstance(value, str):
            raise
    if value in enum_type.__members__:
        return enum_type[value]
    try:
        return enum_type(int(value))
    except ValueError:
        raise ValueError(f"{value!r} is not a valid {enum_type.__name__}") from None

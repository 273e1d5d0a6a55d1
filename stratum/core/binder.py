"""Projection of the flat key space onto dataclass instances.

Each key is split on ``.`` and walked segment by segment. A segment is
matched against the fields of the current dataclass:

1. the ``config`` metadata tag, when present, is the only alias matched;
2. otherwise the ``json`` metadata tag (``"name,omitempty"`` style);
3. otherwise the field name.

Matching is case-insensitive. A ``validate`` metadata tag holds a rule
string checked by :func:`validate_struct` after binding. Example::

    @dataclass
    class Database:
        host: str = "localhost"
        pool_size: int = field(default=5, metadata={"config": "pool"})

    @dataclass
    class AppConfig:
        db: Database = field(default_factory=Database)
        hosts: List[str] = field(default_factory=list)

Binding ``{"db.pool": "10", "hosts": "a,b"}`` sets ``db.pool_size = 10``
and ``hosts = ["a", "b"]``.
"""

from __future__ import annotations

import dataclasses
import typing
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .converters import Kind, TypeConverterRegistry, field_types
from .errors import BindError, ConversionError
from .merge import join_keys
from .rules import RuleValidator


@dataclass(frozen=True)
class FieldDescriptor:
    name: str
    type: Any
    kind: Optional[Kind]
    config_tag: Optional[str] = None
    json_tag: Optional[str] = None
    rule: Optional[str] = None

    def matches(self, segment: str) -> bool:
        segment = segment.lower()
        if self.config_tag:
            return self.config_tag.lower() == segment
        if self.json_tag:
            return self.json_tag.lower() == segment
        return self.name.lower() == segment

    @property
    def element_type(self) -> Any:
        args = typing.get_args(self.type)
        return args[0] if args else Any

    @property
    def value_type(self) -> Any:
        args = typing.get_args(self.type)
        return args[1] if len(args) == 2 else Any


def _json_name(tag: Optional[str]) -> Optional[str]:
    if not tag:
        return None
    name = tag.split(",", 1)[0]
    return name if name and name != "-" else None


@lru_cache(maxsize=None)
def describe(cls: type) -> Tuple[FieldDescriptor, ...]:
    """Build (once per type) the descriptor table of a dataclass."""
    types = field_types(cls)
    table = []
    for f in dataclasses.fields(cls):
        if f.name.startswith("_"):
            continue
        tp = types[f.name]
        table.append(
            FieldDescriptor(
                name=f.name,
                type=tp,
                kind=TypeConverterRegistry.kind_of(tp),
                config_tag=f.metadata.get("config") or None,
                json_tag=_json_name(f.metadata.get("json")),
                rule=f.metadata.get("validate") or None,
            )
        )
    return tuple(table)


def find_field(cls: type, segment: str) -> Optional[FieldDescriptor]:
    for desc in describe(cls):
        if desc.matches(segment):
            return desc
    return None


def check_destination(dst: Any) -> None:
    """Raise :class:`BindError` unless ``dst`` is a dataclass instance."""
    if dst is None:
        raise BindError("destination must not be None")
    if isinstance(dst, type):
        raise BindError("destination must be an instance, not a class")
    if not dataclasses.is_dataclass(dst):
        raise BindError(f"destination must be a dataclass instance, got {type(dst).__name__}")


def _instantiate(tp: type, key: str) -> Any:
    try:
        return tp()
    except TypeError as e:
        raise BindError(f"cannot create {tp.__name__}: {e}", key) from e


class Binder:
    """Binds flat keys onto dataclass instances using a converter registry."""

    def __init__(self, converters: Optional[TypeConverterRegistry] = None):
        self.converters = converters or TypeConverterRegistry()

    def bind(self, data: Mapping[str, Any], dst: Any, prefix: Optional[str] = None) -> None:
        """Assign every matching key of ``data`` onto ``dst`` in place.

        Missing keys leave fields untouched.

        Args:
            data: Flat key space.
            dst: Dataclass instance to populate.
            prefix: When given, only keys under ``prefix.`` are bound, with
                the prefix stripped.

        Raises:
            BindError: On an invalid destination, an unknown field, or a value
                that cannot be converted to the field's type.
        """
        check_destination(dst)
        scope = f"{prefix}." if prefix else ""
        for key, raw in data.items():
            if scope:
                if not key.startswith(scope):
                    continue
                path = key[len(scope):].split(".")
            else:
                path = key.split(".")
            self._set_path(dst, path, raw, key)

    def _set_path(self, obj: Any, path: List[str], raw: Any, key: str) -> None:
        if not dataclasses.is_dataclass(obj) or isinstance(obj, type):
            return
        desc = find_field(type(obj), path[0])
        if desc is None:
            raise BindError(f"unknown config field {path[0]!r} on {type(obj).__name__}", key)
        if len(path) == 1:
            self._assign(obj, desc, raw, key)
            return

        rest = path[1:]
        if desc.kind is Kind.STRUCT:
            child = getattr(obj, desc.name, None)
            if child is None:
                child = _instantiate(desc.type, key)
                self._setattr(obj, desc.name, child, key)
            self._set_path(child, rest, raw, key)
        elif desc.kind is Kind.SEQUENCE and dataclasses.is_dataclass(desc.element_type):
            if len(rest) < 2 or not rest[0].isdigit():
                return
            element = self._element(obj, desc, int(rest[0]), key)
            self._set_path(element, rest[1:], raw, key)
        elif desc.kind is Kind.MAPPING:
            mapping = getattr(obj, desc.name, None)
            if mapping is None:
                mapping = {}
                self._setattr(obj, desc.name, mapping, key)
            mapping[".".join(rest)] = self._convert(raw, desc.value_type, key)

    def _element(self, obj: Any, desc: FieldDescriptor, index: int, key: str) -> Any:
        items = getattr(obj, desc.name, None)
        if items is None:
            items = []
            self._setattr(obj, desc.name, items, key)
        while len(items) <= index:
            items.append(_instantiate(desc.element_type, key))
        return items[index]

    def _assign(self, obj: Any, desc: FieldDescriptor, raw: Any, key: str) -> None:
        if (
            desc.kind is Kind.SEQUENCE
            and isinstance(raw, str)
            and dataclasses.is_dataclass(desc.element_type)
        ):
            # joined form of a list of objects; the indexed keys carry the data
            return
        self._setattr(obj, desc.name, self._convert(raw, desc.type, key), key)

    def _convert(self, raw: Any, tp: Any, key: str) -> Any:
        try:
            return self.converters.convert(raw, tp)
        except ConversionError as e:
            raise BindError(str(e), key) from e

    @staticmethod
    def _setattr(obj: Any, name: str, value: Any, key: str) -> None:
        try:
            setattr(obj, name, value)
        except dataclasses.FrozenInstanceError as e:
            raise BindError(f"cannot assign to frozen {type(obj).__name__}", key) from e


def validate_struct(obj: Any, validator: RuleValidator, path: str = "") -> Dict[str, str]:
    """Check every ``validate`` tag of ``obj`` and of the dataclasses it holds.

    Nested dataclasses are walked whether or not they carry a tag of their
    own, as are dataclasses inside lists, tuples and dict values. A field
    whose own rule fails is not descended into.

    Returns:
        Failure messages keyed by dotted field path (``server.port``,
        ``servers.1.host``); empty when everything passes.
    """
    errors: Dict[str, str] = {}
    for desc in describe(type(obj)):
        value = getattr(obj, desc.name, None)
        key = join_keys(path, desc.name)
        if desc.rule:
            message = validator.validate(value, desc.rule)
            if message:
                errors[key] = message
                continue
        errors.update(_validate_children(value, validator, key))
    return errors


def _is_instance(value: Any) -> bool:
    return dataclasses.is_dataclass(value) and not isinstance(value, type)


def _validate_children(value: Any, validator: RuleValidator, key: str) -> Dict[str, str]:
    if _is_instance(value):
        return validate_struct(value, validator, key)
    if isinstance(value, (list, tuple)):
        items = list(enumerate(value))
    elif isinstance(value, Mapping):
        items = list(value.items())
    else:
        return {}
    errors: Dict[str, str] = {}
    for index, item in items:
        if _is_instance(item):
            errors.update(validate_struct(item, validator, f"{key}.{index}"))
    return errors

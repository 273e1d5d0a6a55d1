"""Conversion of raw configuration values into typed Python values.

Lookup is two-tier: a converter registered for the exact target type wins,
otherwise the converter registered for the target's :class:`Kind` is used.
Converters are ``conv(raw, target_type) -> value`` callables and may raise
``ValueError``/``TypeError``; the registry reports those as
:class:`ConversionError`.
"""

from __future__ import annotations

import dataclasses
import enum
import re
import types
import typing
from collections.abc import Mapping as AbcMapping
from collections.abc import Sequence as AbcSequence
from datetime import timedelta
from functools import lru_cache
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import httpx

from .errors import ConversionError
from .merge import scalar_text

Converter = Callable[[Any, Any], Any]

TRUE_TOKENS = frozenset({"true", "1", "yes", "on", "y", "t"})
FALSE_TOKENS = frozenset({"false", "0", "no", "off", "n", "f"})


class Kind(enum.Enum):
    STRING = "string"
    BOOL = "bool"
    INT = "int"
    FLOAT = "float"
    SEQUENCE = "sequence"
    MAPPING = "mapping"
    STRUCT = "struct"


class SizedInt(int):
    """An ``int`` subclass carrying a fixed bit width for range checks."""

    bits = 64
    signed = True

    @classmethod
    def bounds(cls) -> Tuple[int, int]:
        if cls.signed:
            return -(1 << (cls.bits - 1)), (1 << (cls.bits - 1)) - 1
        return 0, (1 << cls.bits) - 1


class Int8(SizedInt):
    bits = 8


class Int16(SizedInt):
    bits = 16


class Int32(SizedInt):
    bits = 32


class Int64(SizedInt):
    bits = 64


class UInt8(SizedInt):
    bits = 8
    signed = False


class UInt16(SizedInt):
    bits = 16
    signed = False


class UInt32(SizedInt):
    bits = 32
    signed = False


class UInt64(SizedInt):
    bits = 64
    signed = False


_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+\.?\d*|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as ``"1h30m"``, ``"300ms"`` or ``"-1.5s"``.

    Raises:
        ValueError: If ``text`` is not a valid duration.
    """
    s = text.strip()
    sign = 1.0
    if s[:1] in ("+", "-"):
        sign = -1.0 if s[0] == "-" else 1.0
        s = s[1:]
    if s == "0":
        return timedelta(0)
    if not s:
        raise ValueError(f"invalid duration {text!r}")
    total = 0.0
    pos = 0
    while pos < len(s):
        m = _DURATION_PART.match(s, pos)
        if m is None:
            raise ValueError(f"invalid duration {text!r}")
        total += float(m.group(1)) * _DURATION_UNITS[m.group(2)]
        pos = m.end()
    return timedelta(seconds=sign * total)


def unwrap_optional(tp: Any) -> Any:
    """Return ``X`` for ``Optional[X]``/``X | None``, else ``tp`` unchanged."""
    if typing.get_origin(tp) in (Union, types.UnionType):
        args = [a for a in typing.get_args(tp) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return tp


def type_name(tp: Any) -> str:
    return getattr(tp, "__name__", None) or str(tp)


@lru_cache(maxsize=None)
def _type_hints(cls: type) -> Dict[str, Any]:
    return typing.get_type_hints(cls)


def field_types(cls: type) -> Dict[str, Any]:
    """Resolved dataclass field types, with ``Optional`` unwrapped."""
    hints = _type_hints(cls)
    return {f.name: unwrap_optional(hints.get(f.name, Any)) for f in dataclasses.fields(cls)}


def parse_bool(raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    token = scalar_text(raw).strip().lower()
    if token in TRUE_TOKENS:
        return True
    if token in FALSE_TOKENS:
        return False
    raise ValueError(f"invalid boolean {raw!r}")


def parse_int(raw: Any) -> int:
    if isinstance(raw, bool):
        raise TypeError("cannot convert bool to int")
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        if not raw.is_integer():
            raise ValueError(f"invalid integer {raw!r}")
        return int(raw)
    return int(scalar_text(raw).strip(), 10)


def parse_float(raw: Any) -> float:
    if isinstance(raw, bool):
        raise TypeError("cannot convert bool to float")
    if isinstance(raw, (int, float)):
        return float(raw)
    return float(scalar_text(raw).strip())


def to_duration(raw: Any) -> timedelta:
    """Coerce a timedelta, a number of seconds, or a duration string."""
    if isinstance(raw, timedelta):
        return raw
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return timedelta(seconds=raw)
    return parse_duration(scalar_text(raw))


def split_items(raw: Any) -> List[Any]:
    """Items of a sequence value; strings are split on commas."""
    if isinstance(raw, (list, tuple, set, frozenset)):
        return list(raw)
    if isinstance(raw, str):
        if raw == "":
            return []
        return raw.split(",") if "," in raw else [raw]
    return [raw]


class TypeConverterRegistry:
    """Exact-type and kind converters, owned by one engine.

    Sequence, mapping and struct converters recurse through this same
    registry, so custom converters apply to nested values too.
    """

    def __init__(self) -> None:
        self._types: Dict[Any, Converter] = {}
        self._kinds: Dict[Kind, Converter] = {}
        self._register_defaults()

    def _register_defaults(self) -> None:
        self.register_kind(Kind.STRING, lambda raw, tp: tp(scalar_text(raw)))
        self.register_kind(Kind.BOOL, lambda raw, tp: parse_bool(raw))
        self.register_kind(Kind.INT, self._convert_int)
        self.register_kind(Kind.FLOAT, lambda raw, tp: tp(parse_float(raw)))
        self.register_kind(Kind.SEQUENCE, self._convert_sequence)
        self.register_kind(Kind.MAPPING, self._convert_mapping)
        self.register_kind(Kind.STRUCT, self._convert_struct)
        self.register_type(timedelta, lambda raw, tp: to_duration(raw))
        self.register_type(httpx.URL, lambda raw, tp: httpx.URL(scalar_text(raw)))

    def register_type(self, tp: Any, converter: Converter) -> None:
        self._types[tp] = converter

    def register_kind(self, kind: Kind, converter: Converter) -> None:
        self._kinds[kind] = converter

    @staticmethod
    def kind_of(tp: Any) -> Optional[Kind]:
        origin = typing.get_origin(tp)
        if origin is not None:
            if origin in (list, tuple, set, frozenset, AbcSequence):
                return Kind.SEQUENCE
            if origin in (dict, AbcMapping):
                return Kind.MAPPING
            return None
        if not isinstance(tp, type):
            return None
        if dataclasses.is_dataclass(tp):
            return Kind.STRUCT
        if issubclass(tp, bool):
            return Kind.BOOL
        if issubclass(tp, int):
            return Kind.INT
        if issubclass(tp, float):
            return Kind.FLOAT
        if issubclass(tp, str):
            return Kind.STRING
        if issubclass(tp, (list, tuple, set, frozenset)):
            return Kind.SEQUENCE
        if issubclass(tp, dict):
            return Kind.MAPPING
        return None

    def convert(self, raw: Any, tp: Any) -> Any:
        """Convert ``raw`` to ``tp``.

        ``None`` converts to ``None``. A value that already is an instance of
        ``tp`` is returned as is.

        Raises:
            ConversionError: If no converter applies or conversion fails.
        """
        if raw is None:
            return None
        tp = unwrap_optional(tp)
        if tp is Any:
            return raw
        if isinstance(tp, type) and isinstance(raw, tp):
            if not isinstance(raw, bool) or issubclass(tp, bool):
                return raw
        converter = self._types.get(tp)
        if converter is None:
            kind = self.kind_of(tp)
            converter = self._kinds.get(kind) if kind is not None else None
        if converter is None:
            raise ConversionError(
                f"unsupported conversion: from {type(raw).__name__} to {type_name(tp)}"
            )
        try:
            return converter(raw, tp)
        except ConversionError:
            raise
        except (TypeError, ValueError, httpx.InvalidURL) as e:
            raise ConversionError(
                f"cannot convert {raw!r} to {type_name(tp)}: {e}"
            ) from e

    def _convert_int(self, raw: Any, tp: type) -> int:
        value = parse_int(raw)
        if issubclass(tp, SizedInt):
            low, high = tp.bounds()
            if not low <= value <= high:
                raise ValueError(f"value {value} out of range for {tp.__name__}")
        return tp(value)

    def _convert_sequence(self, raw: Any, tp: Any) -> Any:
        origin = typing.get_origin(tp) or tp
        args = typing.get_args(tp)
        if origin is tuple and args and args[-1] is not Ellipsis:
            items = split_items(raw)
            if len(items) != len(args):
                raise ValueError(f"expected {len(args)} items, got {len(items)}")
            return tuple(self.convert(i, t) for i, t in zip(items, args))
        elem = args[0] if args else Any
        values = [self.convert(item, elem) for item in split_items(raw)]
        if origin in (list, AbcSequence):
            return values
        return origin(values)

    def _convert_mapping(self, raw: Any, tp: Any) -> Dict[Any, Any]:
        if not isinstance(raw, AbcMapping):
            raise TypeError(f"cannot convert {type(raw).__name__} to mapping")
        args = typing.get_args(tp)
        key_tp, value_tp = args if len(args) == 2 else (Any, Any)
        return {self.convert(k, key_tp): self.convert(v, value_tp) for k, v in raw.items()}

    def _convert_struct(self, raw: Any, tp: type) -> Any:
        # Flat field-name match only; the binder handles tags and nesting.
        if not isinstance(raw, AbcMapping):
            raise TypeError(f"cannot convert {type(raw).__name__} to {tp.__name__}")
        lowered = {str(k).lower(): v for k, v in raw.items()}
        settable = {f.name for f in dataclasses.fields(tp) if f.init}
        kwargs: Dict[str, Any] = {}
        for name, ftype in field_types(tp).items():
            if name in settable and name.lower() in lowered:
                try:
                    kwargs[name] = self.convert(lowered[name.lower()], ftype)
                except ConversionError as e:
                    raise ConversionError(f"binding field {name}: {e}") from e
        return tp(**kwargs)

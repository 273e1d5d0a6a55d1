"""Flat key-space helpers: flattening, deep-merge and change detection."""

from __future__ import annotations

import copy
from typing import Any, Dict, Iterator, Mapping, Tuple

FlatMap = Dict[str, Any]


def scalar_text(value: Any) -> str:
    """Render a value in its canonical string form.

    Booleans render as ``true``/``false`` and ``None`` as an empty string so
    that string-based coercion (``get_bool``, converters) round-trips.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def join_keys(parent: str, key: str) -> str:
    return key if not parent else f"{parent}.{key}"


def iter_flat(value: Any, parent: str = "") -> Iterator[Tuple[str, Any]]:
    """Flatten nested mappings and lists using dot-notation.

    Lists yield their indexed children first and then a comma-joined scalar
    at the list's own key.

    Args:
        value: Nested structure to flatten.
        parent: Parent key prefix for recursion.

    Yields:
        Tuples of (flattened_key, value).
    """
    if isinstance(value, Mapping):
        for key, child in value.items():
            yield from iter_flat(child, join_keys(parent, scalar_text(key)))
    elif isinstance(value, (list, tuple)):
        for index, child in enumerate(value):
            yield from iter_flat(child, f"{parent}.{index}")
        yield parent, ",".join(scalar_text(item) for item in value)
    else:
        yield parent, value


def flatten(tree: Mapping[str, Any]) -> FlatMap:
    """Convert a nested structure into the flat key space.

    ``{"hosts": ["a", "b"]}`` becomes
    ``{"hosts.0": "a", "hosts.1": "b", "hosts": "a,b"}``.
    """
    return {k: v for k, v in iter_flat(tree)}


def deep_merge(dst: Dict[str, Any], src: Mapping[str, Any]) -> Dict[str, Any]:
    """Merge ``src`` into ``dst`` in place, right-biased at the leaves.

    Nested mappings present on both sides are merged recursively; any other
    value from ``src`` replaces the one in ``dst``. Mappings taken from
    ``src`` are copied so later merges never mutate a source's own data.

    Returns:
        ``dst``, for chaining.
    """
    for key, value in src.items():
        current = dst.get(key)
        if isinstance(current, dict) and isinstance(value, Mapping):
            deep_merge(current, value)
            continue
        dst[key] = copy.deepcopy(value) if isinstance(value, (dict, list)) else value
    return dst


def diff(old: Mapping[str, Any], new: Mapping[str, Any]) -> FlatMap:
    """Return the entries of ``new`` whose value differs from ``old``.

    Keys missing from ``old`` count as changed. Keys removed in ``new`` are
    not reported.
    """
    changed: FlatMap = {}
    for key, value in new.items():
        if key not in old or old[key] != value:
            changed[key] = value
    return changed


def clone(data: Mapping[str, Any]) -> FlatMap:
    return copy.deepcopy(dict(data))

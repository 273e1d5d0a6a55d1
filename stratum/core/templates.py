"""Template expansion of configuration values using Jinja2.

Any string value containing both ``{{`` and ``}}`` is rendered against the
key space it was loaded with. Dotted keys are reachable as attributes, so
``"{{ db.host }}:{{ db.port }}"`` reads ``db.host`` and ``db.port``.
Undefined variables are errors, never empty strings.
"""

from __future__ import annotations

import os
from typing import Any, Callable, Dict, Iterator, List, Mapping

import jinja2
from jinja2 import StrictUndefined

from .errors import TemplateError
from .merge import scalar_text

OPEN_MARKER = "{{"
CLOSE_MARKER = "}}"
FUNCTIONS_NAME = "fn"


def is_template(value: str) -> bool:
    return OPEN_MARKER in value and CLOSE_MARKER in value


class KeyView(Mapping[str, Any]):
    """Read-only nested view over a flat key space.

    ``view["db"]`` is a sub-view when any ``db.*`` key exists, otherwise the
    value stored at ``db``. A sub-view renders as the value stored at its
    own key, so ``{{ hosts }}`` and ``{{ hosts[0] }}`` both work after list
    flattening.
    """

    def __init__(self, data: Mapping[str, Any], prefix: str = ""):
        self._data = data
        self._prefix = prefix

    def __getitem__(self, name: Any) -> Any:
        key = f"{self._prefix}{name}"
        nested = f"{key}."
        if any(k.startswith(nested) for k in self._data):
            return KeyView(self._data, nested)
        if key in self._data:
            return self._data[key]
        raise KeyError(name)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self[name]
        except KeyError:
            raise AttributeError(name) from None

    def __iter__(self) -> Iterator[str]:
        seen: List[str] = []
        for key in self._data:
            if not key.startswith(self._prefix):
                continue
            head = key[len(self._prefix):].split(".", 1)[0]
            if head and head not in seen:
                seen.append(head)
        return iter(seen)

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def __str__(self) -> str:
        own = self._prefix[:-1]
        if own in self._data:
            return scalar_text(self._data[own])
        return str({k: self[k] for k in self})


def _default(default: Any, value: Any) -> Any:
    return default if value in (None, "") else value


def _trim_prefix(s: str, prefix: str) -> str:
    return s[len(prefix):] if prefix and s.startswith(prefix) else s


def _trim_suffix(s: str, suffix: str) -> str:
    return s[: -len(suffix)] if suffix and s.endswith(suffix) else s


def default_functions() -> Dict[str, Callable[..., Any]]:
    return {
        "env": lambda name, default="": os.environ.get(name, default),
        "lower": lambda s: str(s).lower(),
        "upper": lambda s: str(s).upper(),
        "title": lambda s: str(s).title(),
        "trim": lambda s: str(s).strip(),
        "trim_prefix": _trim_prefix,
        "trim_suffix": _trim_suffix,
        "split": lambda s, sep=",": str(s).split(sep),
        "join": lambda items, sep=",": sep.join(scalar_text(i) for i in items),
        "replace": lambda s, old, new: str(s).replace(old, new),
        "contains": lambda s, sub: sub in str(s),
        "has_prefix": lambda s, prefix: str(s).startswith(prefix),
        "has_suffix": lambda s, suffix: str(s).endswith(suffix),
        "repeat": lambda s, n: str(s) * int(n),
        "eq": lambda a, b: a == b,
        "ne": lambda a, b: a != b,
        "lt": lambda a, b: a < b,
        "le": lambda a, b: a <= b,
        "gt": lambda a, b: a > b,
        "ge": lambda a, b: a >= b,
        "default": _default,
        "format": lambda fmt, *args: fmt % args,
    }


class TemplateProcessor:
    """Expands templated values; owns its own function set.

    Functions are exposed as template globals (``{{ upper(name) }}``), under
    the ``fn`` namespace (``{{ fn.env("HOME") }}``) and, unless Jinja2 already
    has a filter of that name, as filters (``{{ name | has_prefix("x") }}``).
    Configuration keys take precedence over same-named globals.
    """

    def __init__(self) -> None:
        self._env = jinja2.Environment(
            undefined=StrictUndefined,
            autoescape=False,
            keep_trailing_newline=True,
        )
        self._builtin_filters = frozenset(self._env.filters)
        self._functions: Dict[str, Callable[..., Any]] = {}
        for name, fn in default_functions().items():
            self.add_function(name, fn)

    def add_function(self, name: str, fn: Callable[..., Any]) -> None:
        self._functions[name] = fn
        self._env.globals[name] = fn
        if name not in self._builtin_filters:
            self._env.filters[name] = fn

    def process(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        """Return a copy of ``data`` with every templated string rendered.

        Raises:
            TemplateError: If a template is malformed or references an
                undefined variable.
        """
        view = KeyView(data)
        context: Dict[str, Any] = dict(self._functions)
        context[FUNCTIONS_NAME] = dict(self._functions)
        context["config"] = view
        context["lookup"] = lambda key, default=None: data.get(key, default)
        # keys shadow same-named functions; those stay reachable via fn.<name> and as filters
        context.update((name, view[name]) for name in view)
        result: Dict[str, Any] = {}
        for key, value in data.items():
            try:
                result[key] = self._process_value(value, context)
            except TemplateError as e:
                raise TemplateError(f"processing key {key!r}: {e}") from e.__cause__
        return result

    def render(self, text: str, context: Mapping[str, Any]) -> str:
        try:
            return self._env.from_string(text).render(context)
        except jinja2.TemplateError as e:
            raise TemplateError(str(e.message or e)) from e
        except Exception as e:
            raise TemplateError(f"{type(e).__name__}: {e}") from e

    def _process_value(self, value: Any, context: Mapping[str, Any]) -> Any:
        if isinstance(value, str):
            return self.render(value, context) if is_template(value) else value
        if isinstance(value, dict):
            return {k: self._process_value(v, context) for k, v in value.items()}
        if isinstance(value, list):
            return [self._process_value(v, context) for v in value]
        return value

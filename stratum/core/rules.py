"""Declarative per-key validation rules.

A rule is a comma-separated list of tags, optionally with a parameter:
``"required,min=1,max=65535"``. ``regexp`` consumes the remainder of the
rule, so its pattern may contain commas and must come last.

Size tags (``min``, ``max``, ``gt``, ``gte``, ``lt``, ``lte``, ``len``,
``eq``, ``ne``) compare numbers by value and strings, lists and mappings by
length. Durations compare in seconds.

``omitempty`` skips the remaining tags when the value is empty. ``dive`` is
a structural marker for nested dataclasses and checks nothing itself.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import urlparse

from .merge import scalar_text

REQUIRED = "required"
MIN = "min"
MAX = "max"
GT = "gt"
LT = "lt"
GTE = "gte"
LTE = "lte"
EQ = "eq"
NE = "ne"
LEN = "len"
EMAIL = "email"
URL = "url"
UUID = "uuid"
UUID4 = "uuid4"
ONE_OF = "oneof"
REGEXP = "regexp"
OMITEMPTY = "omitempty"
DIVE = "dive"

EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9-]+(\.[A-Za-z0-9-]+)*\.[A-Za-z]{2,}$")

Check = Callable[[Any, Optional[str]], bool]


def parse_rule(rule: str) -> List[Tuple[str, Optional[str]]]:
    """Split a rule string into ``(tag, param)`` pairs."""
    tags: List[Tuple[str, Optional[str]]] = []
    rest = rule.strip()
    while rest:
        if rest.startswith(f"{REGEXP}="):
            tags.append((REGEXP, rest[len(REGEXP) + 1:]))
            break
        part, _, rest = rest.partition(",")
        part = part.strip()
        if not part:
            continue
        tag, sep, param = part.partition("=")
        tags.append((tag.strip(), param if sep else None))
    return tags


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, list, tuple, dict, set)):
        return len(value) == 0
    return False


def _measure(value: Any) -> float:
    if isinstance(value, timedelta):
        return value.total_seconds()
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, (str, list, tuple, dict, set)):
        return float(len(value))
    return float(len(scalar_text(value)))


def _number(param: Optional[str]) -> float:
    if param is None:
        raise ValueError("missing parameter")
    return float(param)


def _equals(value: Any, param: Optional[str]) -> bool:
    if isinstance(value, str):
        return value == (param or "")
    return _measure(value) == _number(param)


def _is_url(value: Any, _: Optional[str]) -> bool:
    parsed = urlparse(scalar_text(value))
    return bool(parsed.scheme) and bool(parsed.netloc or parsed.path)


def _is_uuid(value: Any, version: Optional[int]) -> bool:
    try:
        parsed = uuid.UUID(scalar_text(value))
    except ValueError:
        return False
    return version is None or parsed.version == version


def default_checks() -> Dict[str, Check]:
    return {
        REQUIRED: lambda v, _: not is_empty(v),
        MIN: lambda v, p: _measure(v) >= _number(p),
        MAX: lambda v, p: _measure(v) <= _number(p),
        GT: lambda v, p: _measure(v) > _number(p),
        LT: lambda v, p: _measure(v) < _number(p),
        GTE: lambda v, p: _measure(v) >= _number(p),
        LTE: lambda v, p: _measure(v) <= _number(p),
        LEN: lambda v, p: _measure(v) == _number(p),
        EQ: _equals,
        NE: lambda v, p: not _equals(v, p),
        EMAIL: lambda v, _: bool(EMAIL_PATTERN.match(scalar_text(v))),
        URL: _is_url,
        UUID: lambda v, _: _is_uuid(v, None),
        UUID4: lambda v, _: _is_uuid(v, 4),
        ONE_OF: lambda v, p: scalar_text(v) in (p or "").split(),
        REGEXP: lambda v, p: re.search(p or "", scalar_text(v)) is not None,
    }


def message_for(tag: str, param: Optional[str]) -> str:
    if tag == REQUIRED:
        return "is required"
    if tag in (MIN, GTE):
        return f"must be >= {param}"
    if tag in (MAX, LTE):
        return f"must be <= {param}"
    if tag == GT:
        return f"must be > {param}"
    if tag == LT:
        return f"must be < {param}"
    if tag == EMAIL:
        return "must be a valid email"
    if tag == URL:
        return "must be a valid URL"
    if tag == ONE_OF:
        return f"must be one of: {param}"
    return f"validation failed: {tag}"


class RuleValidator:
    """Evaluates rule strings; each engine owns one.

    Custom tags registered here are visible only to the owning engine.
    """

    def __init__(self) -> None:
        self._checks: Dict[str, Check] = default_checks()
        self._messages: Dict[str, Callable[[Optional[str]], str]] = {}

    def register(
        self,
        tag: str,
        check: Check,
        message: Optional[Callable[[Optional[str]], str]] = None,
    ) -> None:
        """Register (or override) a tag.

        Args:
            tag: Tag name used in rule strings.
            check: ``check(value, param) -> bool``; False means invalid.
            message: Optional ``message(param) -> str`` for failures.
        """
        self._checks[tag] = check
        if message is not None:
            self._messages[tag] = message
        else:
            self._messages.pop(tag, None)

    def is_required(self, rule: str) -> bool:
        return any(tag == REQUIRED for tag, _ in parse_rule(rule))

    def validate(self, value: Any, rule: str) -> Optional[str]:
        """Return the first failure message for ``value``, or None if valid."""
        for tag, param in parse_rule(rule):
            if tag == OMITEMPTY:
                if is_empty(value):
                    return None
                continue
            if tag == DIVE:
                continue
            check = self._checks.get(tag)
            if check is None:
                return f"unknown validation tag: {tag}"
            try:
                ok = check(value, param)
            except Exception as e:
                spelled = tag if param is None else f"{tag}={param}"
                return f"invalid rule {spelled}: {e}"
            if not ok:
                custom = self._messages.get(tag)
                return custom(param) if custom else message_for(tag, param)
        return None


@dataclass
class RuleSet:
    """A chainable set of rule tags for one key."""

    key: str
    tags: List[str] = field(default_factory=list)

    def add(self, tag: str, param: Any = None) -> "RuleSet":
        self.tags.append(tag if param is None else f"{tag}={param}")
        return self

    def __str__(self) -> str:
        return ",".join(self.tags)


class Rules:
    """Factory methods for common rule sets."""

    @staticmethod
    def required(key: str) -> RuleSet:
        return RuleSet(key).add(REQUIRED)

    @staticmethod
    def range(key: str, low: float, high: float) -> RuleSet:
        return RuleSet(key).add(MIN, low).add(MAX, high)

    @staticmethod
    def min(key: str, low: float) -> RuleSet:
        return RuleSet(key).add(MIN, low)

    @staticmethod
    def max(key: str, high: float) -> RuleSet:
        return RuleSet(key).add(MAX, high)

    @staticmethod
    def email(key: str) -> RuleSet:
        return RuleSet(key).add(EMAIL)

    @staticmethod
    def url(key: str) -> RuleSet:
        return RuleSet(key).add(URL)

    @staticmethod
    def uuid(key: str, version: Optional[int] = None) -> RuleSet:
        return RuleSet(key).add(UUID4 if version == 4 else UUID)

    @staticmethod
    def length(key: str, n: int) -> RuleSet:
        return RuleSet(key).add(LEN, n)

    @staticmethod
    def one_of(key: str, *values: str) -> RuleSet:
        return RuleSet(key).add(ONE_OF, " ".join(values))

    @staticmethod
    def pattern(key: str, pattern: str) -> RuleSet:
        return RuleSet(key).add(REGEXP, pattern)

    @staticmethod
    def gt(key: str, value: Any) -> RuleSet:
        return RuleSet(key).add(GT, value)

    @staticmethod
    def lt(key: str, value: Any) -> RuleSet:
        return RuleSet(key).add(LT, value)

    @staticmethod
    def gte(key: str, value: Any) -> RuleSet:
        return RuleSet(key).add(GTE, value)

    @staticmethod
    def lte(key: str, value: Any) -> RuleSet:
        return RuleSet(key).add(LTE, value)

    @staticmethod
    def eq(key: str, value: Any) -> RuleSet:
        return RuleSet(key).add(EQ, value)

    @staticmethod
    def ne(key: str, value: Any) -> RuleSet:
        return RuleSet(key).add(NE, value)

    @staticmethod
    def tag(key: str, tag: str, param: Any = None) -> RuleSet:
        return RuleSet(key).add(tag, param)

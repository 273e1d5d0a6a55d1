"""Source decorators: caching, retry, template expansion and decryption.

Each decorator owns exactly one inner source, keeps its priority, and
delegates ``watch_paths``. Decorators compose; data flows inside-out, so
the innermost source loads first and each layer transforms its result.
"""

from __future__ import annotations

import threading
import time
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional, Union

from ..observability.logging import get_logger
from .encryption import EncryptionProcessor
from .errors import RetryExhaustedError
from .merge import clone
from .source import Source
from .templates import TemplateProcessor

logger = get_logger(__name__)

Seconds = Union[float, timedelta]
SourceMiddleware = Callable[[Source], Source]


def to_seconds(value: Seconds) -> float:
    if isinstance(value, timedelta):
        return value.total_seconds()
    return float(value)


class SourceDecorator:
    """Base for sources wrapping a single inner source."""

    prefix = ""

    def __init__(self, source: Source):
        self.source = source
        self.name = f"{self.prefix}{source.name}"

    @property
    def priority(self) -> int:
        return self.source.priority

    def load(self) -> Dict[str, Any]:
        return self.source.load()

    def watch_paths(self) -> List[str]:
        return self.source.watch_paths()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.source!r})"


class CachedSource(SourceDecorator):
    """Serves the last successful load for ``ttl`` seconds.

    A failed inner load leaves the cached value and timestamp untouched.
    """

    prefix = "cached:"

    def __init__(
        self,
        source: Source,
        ttl: Seconds,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(source)
        self.ttl = to_seconds(ttl)
        self._clock = clock
        self._cache: Optional[Dict[str, Any]] = None
        self._cached_at = 0.0
        self._lock = threading.Lock()

    def load(self) -> Dict[str, Any]:
        with self._lock:
            if self._cache is not None and self._clock() - self._cached_at < self.ttl:
                logger.debug("cache_hit", source=self.name)
                return clone(self._cache)
            logger.debug("cache_miss", source=self.name)
            data = self.source.load()
            self._cache = clone(data)
            self._cached_at = self._clock()
            return data

    def invalidate(self) -> None:
        with self._lock:
            self._cache = None


class RetrySource(SourceDecorator):
    """Retries a failing inner load with linear backoff.

    Attempt ``n`` (1-based) that fails is followed by a sleep of
    ``backoff * n`` seconds, except after the last attempt.
    """

    prefix = "retry:"

    def __init__(
        self,
        source: Source,
        max_attempts: int,
        backoff: Seconds = 0.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        super().__init__(source)
        self.max_attempts = max_attempts
        self.backoff = to_seconds(backoff)
        self._sleep = sleep

    def load(self) -> Dict[str, Any]:
        attempt = 1
        while True:
            try:
                return self.source.load()
            except Exception as e:
                logger.warning(
                    "source_retry",
                    source=self.source.name,
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                    error=str(e),
                )
                if attempt >= self.max_attempts:
                    raise RetryExhaustedError(self.max_attempts, e) from e
            self._sleep(self.backoff * attempt)
            attempt += 1


class TemplateSource(SourceDecorator):
    """Renders templated values against the just-loaded key space."""

    prefix = "template:"

    def __init__(self, source: Source, processor: TemplateProcessor):
        super().__init__(source)
        self.processor = processor

    def load(self) -> Dict[str, Any]:
        return self.processor.process(self.source.load())


class DecryptingSource(SourceDecorator):
    """Decrypts marker-prefixed values of the inner source."""

    prefix = "encryption:"

    def __init__(self, source: Source, processor: EncryptionProcessor):
        super().__init__(source)
        self.processor = processor

    def load(self) -> Dict[str, Any]:
        return self.processor.process(self.source.load())


def with_caching(ttl: Seconds) -> SourceMiddleware:
    return lambda src: CachedSource(src, ttl)


def with_retry(max_attempts: int, backoff: Seconds = 0.0) -> SourceMiddleware:
    return lambda src: RetrySource(src, max_attempts, backoff)


def with_template(processor: TemplateProcessor) -> SourceMiddleware:
    return lambda src: TemplateSource(src, processor)


def with_decryption(processor: EncryptionProcessor) -> SourceMiddleware:
    return lambda src: DecryptingSource(src, processor)


def chain(*middleware: SourceMiddleware) -> SourceMiddleware:
    """Compose middleware so the first listed ends up outermost.

    ``chain(with_retry(3), with_caching(60))(src)`` is
    ``RetrySource(CachedSource(src))``.
    """

    def apply(src: Source) -> Source:
        for mw in reversed(middleware):
            src = mw(src)
        return src

    return apply

"""Creation of sources by kind, with auto-detection."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping, Optional, Union

from .source import Source

# Lazy imports inside create_source keep redis/httpx off the import path
# until a remote source is actually requested.

MEMORY = "memory"
FILE = "file"
GLOB = "glob"
ENV = "env"
REDIS = "redis"
HTTP = "http"

GLOB_CHARS = frozenset("*?[")


def detect_kind(path: Optional[Union[str, Path]]) -> str:
    """Guess the source kind for ``path``.

    No path means memory; ``redis://`` and ``http(s)://`` URLs map to the
    remote sources; glob metacharacters mean a glob; anything else is a
    single file.
    """
    if path is None or str(path) == "":
        return MEMORY
    s = str(path)
    if s.startswith(("redis://", "rediss://")):
        return REDIS
    if s.startswith(("http://", "https://")):
        return HTTP
    if GLOB_CHARS.intersection(s):
        return GLOB
    return FILE


def create_source(
    kind: Optional[str] = None,
    *,
    path: Optional[Union[str, Path]] = None,
    data: Optional[Mapping[str, Any]] = None,
    prefix: str = "",
    priority: Optional[int] = None,
    name: Optional[str] = None,
) -> Source:
    """Create a source instance.

    Args:
        kind: One of ``memory``, ``file``, ``glob``, ``env``, ``redis``,
            ``http``; anything else is auto-detected from ``path``.
        path: File path, glob pattern or URL.
        data: Initial data for a memory source.
        prefix: Environment variable prefix, or redis key prefix.
        priority: Explicit priority; each kind's default when omitted.
        name: Optional custom name for the source.

    Returns:
        Source instance.
    """
    if kind not in (MEMORY, FILE, GLOB, ENV, REDIS, HTTP):
        kind = detect_kind(path)
    opts: dict = {}
    if priority is not None:
        opts["priority"] = priority
    if name is not None:
        opts["name"] = name

    if kind == MEMORY:
        from ..sources.memory import MemorySource
        return MemorySource(data, **opts)
    if kind == ENV:
        from ..sources.environment import EnvironmentSource
        return EnvironmentSource(prefix or (str(path) if path else ""), **opts)
    if path is None:
        raise ValueError(f"source kind {kind!r} requires a path")
    if kind == GLOB:
        from ..sources.multifile import GlobSource
        return GlobSource(str(path), **opts)
    if kind == REDIS:
        from ..sources.redis_kv import RedisSource
        return RedisSource(str(path), prefix=prefix, **opts)
    if kind == HTTP:
        from ..sources.http_remote import HttpSource
        return HttpSource(str(path), **opts)
    from ..sources.file import FileSource
    return FileSource(path, **opts)


class SourceFactory:
    """Creates sources with a shared default priority.

    With ``default_priority=None`` every kind keeps its own default.
    """

    def __init__(self, default_priority: Optional[int] = None):
        self.default_priority = default_priority

    def memory(self, data: Optional[Mapping[str, Any]] = None) -> Source:
        return create_source(MEMORY, data=data, priority=self.default_priority)

    def file(self, path: Union[str, Path]) -> Source:
        return create_source(FILE, path=path, priority=self.default_priority)

    def env(self, prefix: str = "") -> Source:
        return create_source(ENV, prefix=prefix, priority=self.default_priority)

    def glob(self, pattern: str) -> Source:
        return create_source(GLOB, path=pattern, priority=self.default_priority)

    def create(
        self,
        kind: Optional[str] = None,
        path: Optional[Union[str, Path]] = None,
        data: Optional[Mapping[str, Any]] = None,
        prefix: str = "",
    ) -> Source:
        return create_source(kind, path=path, data=data, prefix=prefix, priority=self.default_priority)

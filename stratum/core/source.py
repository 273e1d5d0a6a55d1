"""Source protocol and base class for configuration providers."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, Sequence, runtime_checkable

DEFAULT_MEMORY_PRIORITY = 0
DEFAULT_FILE_PRIORITY = 10
DEFAULT_GLOB_PRIORITY = 10
DEFAULT_REMOTE_PRIORITY = 15
DEFAULT_ENV_PRIORITY = 20


@runtime_checkable
class Source(Protocol):
    """Protocol defining the interface for configuration sources.

    A source is a named, prioritized provider of a flat key-value snapshot.
    Sources with a higher priority override lower ones on key conflict.
    """

    name: str
    priority: int

    def load(self) -> Dict[str, Any]:
        """Load a snapshot of the source's key space.

        Must return equivalent data on repeated calls when nothing external
        changed, and raise (never return partial data) when the underlying
        resource is inaccessible or malformed.

        Returns:
            Dictionary of configuration key-value pairs.
        """
        ...

    def watch_paths(self) -> List[str]:
        """Filesystem paths whose modification signals a possible change.

        Returns:
            List of paths; empty when the source is not watchable.
        """
        ...


class BaseSource:
    """Convenience base holding name, priority and static watch paths."""

    def __init__(
        self,
        name: str,
        priority: int,
        paths: Optional[Sequence[str]] = None,
    ):
        self.name = name
        self.priority = priority
        self._paths: List[str] = list(paths or [])

    def load(self) -> Dict[str, Any]:
        raise NotImplementedError

    def watch_paths(self) -> List[str]:
        return list(self._paths)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, priority={self.priority})"

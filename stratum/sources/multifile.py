"""Glob-pattern source merging several files."""

from __future__ import annotations

import glob
from typing import Any, Dict, List, Optional

from ..core.errors import SourceError
from ..core.source import DEFAULT_GLOB_PRIORITY, BaseSource
from .decoders import DecoderRegistry
from .file import FileSource


class GlobSource(BaseSource):
    """Loads every file matching ``pattern`` as a :class:`FileSource`.

    Matches are taken in sorted order and merged left to right, so later
    files win on key collisions. No match yields an empty snapshot. Watch
    paths are the files matching at call time.
    """

    def __init__(
        self,
        pattern: str,
        priority: int = DEFAULT_GLOB_PRIORITY,
        name: Optional[str] = None,
        registry: Optional[DecoderRegistry] = None,
    ):
        super().__init__(name or f"glob:{pattern}", priority)
        self.pattern = pattern
        self._registry = registry

    def _matches(self) -> List[str]:
        return sorted(glob.glob(self.pattern, recursive=True))

    def load(self) -> Dict[str, Any]:
        try:
            files = self._matches()
        except (OSError, ValueError) as e:
            raise ValueError(f"glob pattern {self.pattern!r}: {e}") from e
        out: Dict[str, Any] = {}
        for path in files:
            src = FileSource(path, self.priority, registry=self._registry)
            try:
                data = src.load()
            except Exception as e:
                raise SourceError(src.name, str(e)) from e
            out.update(data)
        return out

    def watch_paths(self) -> List[str]:
        return self._matches()

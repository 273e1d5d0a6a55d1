"""Sources built from other sources."""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Sequence

from ..core.errors import SourceError
from ..core.merge import deep_merge
from ..core.source import BaseSource, Source


class CompositeSource(BaseSource):
    """Merges a list of sub-sources as one logical source.

    Sub-sources are merged in list order with the same deep-merge the
    engine uses; their own priorities are ignored. Watch paths are the
    union of the sub-sources' paths.
    """

    def __init__(self, name: str, priority: int, sources: Optional[Sequence[Source]] = None):
        super().__init__(name, priority)
        self.sources: List[Source] = list(sources or [])

    def add_source(self, source: Source) -> None:
        self.sources.append(source)

    def load(self) -> Dict[str, Any]:
        merged: Dict[str, Any] = {}
        for src in self.sources:
            try:
                data = src.load()
            except Exception as e:
                raise SourceError(self.name, f"source {src.name}: {e}") from e
            deep_merge(merged, data)
        return merged

    def watch_paths(self) -> List[str]:
        paths: List[str] = []
        for src in self.sources:
            for path in src.watch_paths():
                if path not in paths:
                    paths.append(path)
        return paths


class ConditionalSource(BaseSource):
    """Gates a source behind a predicate evaluated on every call.

    When the predicate is false, ``load`` returns an empty mapping and
    ``watch_paths`` returns nothing.
    """

    def __init__(self, source: Source, condition: Callable[[], bool]):
        super().__init__(f"conditional:{source.name}", source.priority)
        self.source = source
        self.condition = condition

    def load(self) -> Dict[str, Any]:
        if not self.condition():
            return {}
        return self.source.load()

    def watch_paths(self) -> List[str]:
        if self.condition():
            return self.source.watch_paths()
        return []

"""In-process mapping source."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from ..core.merge import clone
from ..core.source import DEFAULT_MEMORY_PRIORITY, BaseSource


class MemorySource(BaseSource):
    """Serves a private copy of a caller-supplied mapping.

    Nested mappings are kept as-is (not flattened) so they can bind onto
    nested destinations directly. Never fails and is never watchable.
    """

    def __init__(
        self,
        data: Optional[Mapping[str, Any]] = None,
        priority: int = DEFAULT_MEMORY_PRIORITY,
        name: str = "memory",
    ):
        super().__init__(name, priority)
        self._data: Dict[str, Any] = clone(data or {})

    def load(self) -> Dict[str, Any]:
        return clone(self._data)

    def update(self, data: Mapping[str, Any]) -> None:
        """Replace the stored mapping; takes effect on the next load."""
        self._data = clone(data)

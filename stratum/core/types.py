"""Type definitions shared across the engine."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Protocol, runtime_checkable


@dataclass(frozen=True)
class ProvenanceRecord:
    """Record tracking the source of a configuration value.

    Attributes:
        key: Top-level configuration key.
        source_name: Name of the source that supplied the winning value.
        timestamp_loaded: When this value was loaded.
    """

    key: str
    source_name: str
    timestamp_loaded: datetime


@runtime_checkable
class Observer(Protocol):
    """Receives the changed subset of keys after a load."""

    def on_config_change(self, changed: Dict[str, Any]) -> None:
        ...


@dataclass(frozen=True)
class ObserverFunc:
    """Adapts a plain callable to the :class:`Observer` protocol."""

    fn: Callable[[Dict[str, Any]], None]

    def on_config_change(self, changed: Dict[str, Any]) -> None:
        self.fn(changed)

"""Lifecycle hooks around load and bind.

A hook is any object with ``name`` and ``priority`` attributes plus one or
more of ``on_pre_load(config)``, ``on_post_load(config, data)``,
``on_pre_bind(config, dst)`` and ``on_post_bind(config, dst)``. Lower
priorities run first; registration order breaks ties.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Dict, List, Mapping, Optional, Protocol

from ..observability.logging import get_logger
from .errors import HookError

if TYPE_CHECKING:
    from .config import Config

logger = get_logger(__name__)

PRE_LOAD = "pre-load"
POST_LOAD = "post-load"
PRE_BIND = "pre-bind"
POST_BIND = "post-bind"

_METHODS = {
    PRE_LOAD: "on_pre_load",
    POST_LOAD: "on_post_load",
    PRE_BIND: "on_pre_bind",
    POST_BIND: "on_post_bind",
}


class Hook(Protocol):
    name: str
    priority: int


class HookManager:
    """Keeps hooks per phase, sorted by priority."""

    def __init__(self) -> None:
        self._hooks: Dict[str, List[Hook]] = {phase: [] for phase in _METHODS}

    def register(self, hook: Hook) -> None:
        registered = False
        for phase, method in _METHODS.items():
            if callable(getattr(hook, method, None)):
                hooks = self._hooks[phase]
                hooks.append(hook)
                hooks.sort(key=lambda h: h.priority)
                registered = True
        if not registered:
            raise TypeError(f"hook {getattr(hook, 'name', hook)!r} implements no lifecycle method")

    def hooks(self, phase: str) -> List[Hook]:
        return list(self._hooks[phase])

    def _run(self, phase: str, *args: Any) -> None:
        method = _METHODS[phase]
        for hook in self._hooks[phase]:
            try:
                getattr(hook, method)(*args)
            except Exception as e:
                raise HookError(hook.name, phase, str(e)) from e

    def execute_pre_load(self, config: "Config") -> None:
        self._run(PRE_LOAD, config)

    def execute_post_load(self, config: "Config", data: Dict[str, Any]) -> None:
        self._run(POST_LOAD, config, data)

    def execute_pre_bind(self, config: "Config", dst: Any) -> None:
        self._run(PRE_BIND, config, dst)

    def execute_post_bind(self, config: "Config", dst: Any) -> None:
        self._run(POST_BIND, config, dst)


class LoggingHook:
    """Logs load activity; runs after every other hook."""

    name = "logging"
    priority = 1000

    def __init__(self, log: Optional[Any] = None):
        self.log = log or logger

    def on_pre_load(self, config: "Config") -> None:
        self.log.info("config_loading", sources=len(config.sources))

    def on_post_load(self, config: "Config", data: Mapping[str, Any]) -> None:
        self.log.info("config_loaded", keys=len(data))


class ValidationHook:
    """Runs a callable over the merged map after load; raising aborts the load."""

    name = "validation"
    priority = 50

    def __init__(self, validator: Callable[[Dict[str, Any]], None]):
        self.validator = validator

    def on_post_load(self, config: "Config", data: Dict[str, Any]) -> None:
        self.validator(data)


class DefaultsHook:
    """Fills in keys missing after load."""

    name = "defaults"
    priority = 10

    def __init__(self, defaults: Mapping[str, Any]):
        self.defaults = dict(defaults)

    def on_post_load(self, config: "Config", data: Dict[str, Any]) -> None:
        for key, value in self.defaults.items():
            data.setdefault(key, value)

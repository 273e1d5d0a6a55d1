"""Unit tests for lifecycle hooks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List
from unittest.mock import MagicMock

import pytest

from stratum.core.config import Config
from stratum.core.errors import HookError
from stratum.core.hooks import POST_LOAD, PRE_LOAD, DefaultsHook, HookManager, LoggingHook, ValidationHook
from stratum.sources import MemorySource


class RecordingHook:
    """Hook recording every phase it sees."""

    def __init__(self, name: str, priority: int, log: List[str]):
        self.name = name
        self.priority = priority
        self.log = log

    def on_pre_load(self, config):
        self.log.append(f"{self.name}:pre-load")

    def on_post_load(self, config, data):
        self.log.append(f"{self.name}:post-load")

    def on_pre_bind(self, config, dst):
        self.log.append(f"{self.name}:pre-bind")

    def on_post_bind(self, config, dst):
        self.log.append(f"{self.name}:post-bind")


class FailingPreLoad:
    name = "gate"
    priority = 0

    def on_pre_load(self, config):
        raise RuntimeError("not allowed")


@dataclass
class Settings:
    port: int = 0


class TestHookManager:
    """Test suite for HookManager."""

    def test_priority_order_and_stability(self):
        """Lower priorities run first; ties keep registration order."""
        log: List[str] = []
        manager = HookManager()
        manager.register(RecordingHook("late", 10, log))
        manager.register(RecordingHook("first", 1, log))
        manager.register(RecordingHook("tie", 10, log))
        manager.execute_pre_load(MagicMock())
        assert log == ["first:pre-load", "late:pre-load", "tie:pre-load"]

    def test_partial_hooks(self):
        """Hooks join only the phases they implement."""
        manager = HookManager()
        manager.register(FailingPreLoad())
        assert len(manager.hooks(PRE_LOAD)) == 1
        assert manager.hooks(POST_LOAD) == []

    def test_no_methods(self):
        """Objects without lifecycle methods are rejected."""

        class Inert:
            name = "inert"
            priority = 0

        with pytest.raises(TypeError):
            HookManager().register(Inert())

    def test_failure_wrapped(self):
        """Hook exceptions surface as HookError."""
        manager = HookManager()
        manager.register(FailingPreLoad())
        with pytest.raises(HookError, match="pre-load hook gate: not allowed") as exc:
            manager.execute_pre_load(MagicMock())
        assert exc.value.hook_name == "gate"
        assert isinstance(exc.value.__cause__, RuntimeError)


class TestHooksInEngine:
    """Hooks wired through Config."""

    def test_full_lifecycle(self):
        """Load and bind run their hooks in order."""
        log: List[str] = []
        cfg = Config().add_source(MemorySource({"port": 1}))
        cfg.register_hook(RecordingHook("h", 0, log))
        cfg.load()
        cfg.bind(Settings())
        assert log == ["h:pre-load", "h:post-load", "h:pre-bind", "h:post-bind"]

    def test_pre_load_failure_keeps_state(self):
        """A failing hook aborts the load before commit."""
        source = MemorySource({"a": 1})
        cfg = Config().add_source(source)
        cfg.load()
        source.update({"a": 2})
        cfg.register_hook(FailingPreLoad())
        with pytest.raises(HookError):
            cfg.load()
        assert cfg.get("a") == 1

    def test_defaults_hook(self):
        """Defaults fill only missing keys."""
        cfg = Config().add_source(MemorySource({"a": 1}))
        cfg.register_hook(DefaultsHook({"a": 0, "b": 2}))
        cfg.load()
        assert cfg.values() == {"a": 1, "b": 2}

    def test_validation_hook(self):
        """A raising validation callable aborts the load."""

        def require_port(data: Dict[str, Any]) -> None:
            if "port" not in data:
                raise ValueError("port missing")

        cfg = Config().add_source(MemorySource({}))
        cfg.register_hook(ValidationHook(require_port))
        with pytest.raises(HookError, match="post-load hook validation: port missing"):
            cfg.load()

    def test_logging_hook(self):
        """The logging hook reports source and key counts."""
        log = MagicMock()
        cfg = Config().add_source(MemorySource({"a": 1, "b": 2}))
        cfg.register_hook(LoggingHook(log))
        cfg.load()
        log.info.assert_any_call("config_loading", sources=1)
        log.info.assert_any_call("config_loaded", keys=2)

    def test_bind_hook_failure(self):
        """A failing bind hook aborts the bind."""

        class Reject:
            name = "reject"
            priority = 0

            def on_pre_bind(self, config, dst):
                raise ValueError("no")

        cfg = Config()
        cfg.register_hook(Reject())
        with pytest.raises(HookError, match="pre-bind"):
            cfg.bind(Settings())

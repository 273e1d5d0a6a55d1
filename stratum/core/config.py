"""The configuration resolution engine."""

from __future__ import annotations

import os
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..observability.logging import get_logger
from ._rwlock import ReadWriteLock
from .binder import Binder, check_destination, validate_struct
from .converters import (
    FALSE_TOKENS,
    TRUE_TOKENS,
    Converter,
    Kind,
    TypeConverterRegistry,
    parse_float,
    parse_int,
    to_duration,
)
from .encryption import EncryptionProcessor
from .errors import ConfigError, SourceError, ValidationErrors, WatchError
from .hooks import Hook, HookManager
from .merge import clone, deep_merge, diff, scalar_text
from .middleware import Seconds, SourceMiddleware, chain, to_seconds
from .profiles import ProfileManager
from .rules import Check, RuleSet, RuleValidator
from .source import Source
from .templates import TemplateProcessor
from .types import Observer, ObserverFunc, ProvenanceRecord

logger = get_logger(__name__)

SET_SOURCE_NAME = "set"

_MISSING = object()


class Config:
    """Merges prioritized sources into one flat key space.

    Sources are kept sorted by ascending priority (insertion order breaks
    ties) and merged in that order, so higher priorities win. The engine is
    safe to share between threads: reads take a shared lock, while ``load``
    and every mutation take the exclusive lock.

    Example:
        >>> cfg = Config().add_source(MemorySource({"port": 8080}))
        >>> cfg.load()
        >>> cfg.get_int("port")
        8080
    """

    def __init__(
        self,
        *,
        validator: Optional[RuleValidator] = None,
        converters: Optional[TypeConverterRegistry] = None,
        templates: Optional[TemplateProcessor] = None,
    ):
        self.validator = validator or RuleValidator()
        self.converters = converters or TypeConverterRegistry()
        self.templates = templates or TemplateProcessor()
        self.hooks = HookManager()
        self.encryption: Optional[EncryptionProcessor] = None
        self._binder = Binder(self.converters)
        self._lock = ReadWriteLock()
        self._sources: List[Source] = []
        self._data: Dict[str, Any] = {}
        self._provenance: Dict[str, ProvenanceRecord] = {}
        self._rules: Dict[str, str] = {}
        self._observers: List[Observer] = []
        self._profiles: Optional[ProfileManager] = None
        self._stop = threading.Event()
        self._watcher: Optional[threading.Thread] = None

    # -- sources -----------------------------------------------------------

    @property
    def sources(self) -> Tuple[Source, ...]:
        with self._lock.read():
            return tuple(self._sources)

    def add_source(self, source: Source) -> "Config":
        with self._lock.write():
            self._sources.append(source)
            self._sources.sort(key=lambda s: s.priority)
        return self

    def add_source_with_middleware(self, source: Source, *middleware: SourceMiddleware) -> "Config":
        return self.add_source(chain(*middleware)(source))

    def remove_source(self, name: str) -> "Config":
        with self._lock.write():
            self._sources = [s for s in self._sources if s.name != name]
        return self

    def replace_sources(self, prefix: str, source: Source) -> "Config":
        """Drop every source whose name starts with ``prefix``, then add ``source``."""
        with self._lock.write():
            self._sources = [s for s in self._sources if not s.name.startswith(prefix)]
            self._sources.append(source)
            self._sources.sort(key=lambda s: s.priority)
        return self

    # -- loading -----------------------------------------------------------

    def load(self) -> None:
        """Merge every source into a fresh key space and commit it.

        Pre-load hooks run first, then each source is loaded and
        deep-merged in priority order, then post-load hooks may edit the
        merged map. The result replaces the current state. Registered rules
        are checked after the commit; observers of changed keys are notified
        on background threads.

        Raises:
            HookError: A hook failed; the previous state is kept.
            SourceError: A source failed; the previous state is kept.
            ValidationErrors: Rules failed; the new state is already live.
        """
        with self._lock.write():
            changed = self._load_locked()
            errors = self._check_rules(self._rules, self._data, list(self._rules))
        if changed:
            self._notify(changed)
        if errors:
            raise ValidationErrors(errors)

    def _load_locked(self) -> Dict[str, Any]:
        logger.debug("config_load_started", sources=len(self._sources))
        self.hooks.execute_pre_load(self)

        merged: Dict[str, Any] = {}
        provenance: Dict[str, ProvenanceRecord] = {}
        now = datetime.now(timezone.utc)
        for source in list(self._sources):
            try:
                data = source.load()
            except Exception as e:
                logger.warning("source_load_failed", source=source.name, error=str(e))
                raise SourceError(source.name, str(e)) from e
            deep_merge(merged, data)
            for key in data:
                provenance[key] = ProvenanceRecord(key, source.name, now)

        self.hooks.execute_post_load(self, merged)

        changed = diff(self._data, merged)
        self._data = merged
        self._provenance = provenance
        logger.debug("config_loaded", keys=len(merged), changed=len(changed))
        return changed

    # -- reads -------------------------------------------------------------

    def _lookup(self, key: str) -> Any:
        with self._lock.read():
            return self._data.get(key, _MISSING)

    def get(self, key: str, default: Any = None) -> Any:
        value = self._lookup(key)
        return default if value is _MISSING else value

    def has(self, key: str) -> bool:
        return self._lookup(key) is not _MISSING

    def must_get(self, key: str) -> Any:
        value = self._lookup(key)
        if value is _MISSING:
            raise KeyError(f"required config key {key!r} not found")
        return value

    def get_string(self, key: str, default: str = "") -> str:
        value = self._lookup(key)
        return default if value is _MISSING else scalar_text(value)

    def get_int(self, key: str, default: int = 0) -> int:
        value = self._lookup(key)
        if value is _MISSING:
            return default
        try:
            return parse_int(value)
        except (TypeError, ValueError):
            return default

    def get_float(self, key: str, default: float = 0.0) -> float:
        value = self._lookup(key)
        if value is _MISSING:
            return default
        try:
            return parse_float(value)
        except (TypeError, ValueError):
            return default

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self._lookup(key)
        if value is _MISSING:
            return default
        if isinstance(value, bool):
            return value
        token = scalar_text(value).strip().lower()
        if token in TRUE_TOKENS:
            return True
        if token in FALSE_TOKENS or token == "":
            return False
        return default

    def get_duration(self, key: str, default: Optional[timedelta] = None) -> timedelta:
        fallback = default if default is not None else timedelta(0)
        value = self._lookup(key)
        if value is _MISSING:
            return fallback
        try:
            return to_duration(value)
        except (TypeError, ValueError):
            return fallback

    def get_string_slice(self, key: str, default: Optional[List[str]] = None) -> List[str]:
        """Return a list value.

        Lists are copied, comma-joined strings are split, and when only
        indexed keys (``key.0``, ``key.1``, ...) exist they are gathered in
        index order.
        """
        fallback = list(default) if default is not None else []
        with self._lock.read():
            value = self._data.get(key, _MISSING)
            indexed = self._indexed_locked(key) if value is _MISSING else []
        if value is _MISSING:
            return indexed or fallback
        if isinstance(value, (list, tuple)):
            return [scalar_text(v) for v in value]
        if isinstance(value, str):
            return value.split(",") if value else []
        return fallback

    def _indexed_locked(self, key: str) -> List[str]:
        items: List[str] = []
        while True:
            value = self._data.get(f"{key}.{len(items)}", _MISSING)
            if value is _MISSING:
                return items
            items.append(scalar_text(value))

    def all_keys(self) -> List[str]:
        with self._lock.read():
            return sorted(self._data)

    def values(self) -> Dict[str, Any]:
        with self._lock.read():
            return clone(self._data)

    def provenance(self, key: str) -> Optional[ProvenanceRecord]:
        with self._lock.read():
            return self._provenance.get(key)

    # -- writes ------------------------------------------------------------

    def set(self, key: str, value: Any) -> None:
        """Override ``key`` in the current state until the next ``load``."""
        with self._lock.write():
            self._data[key] = value
            self._provenance[key] = ProvenanceRecord(key, SET_SOURCE_NAME, datetime.now(timezone.utc))

    # -- validation --------------------------------------------------------

    def add_rule(self, key: str, rule: str) -> "Config":
        with self._lock.write():
            self._rules[key] = rule
        return self

    def add_rules(self, *rule_sets: RuleSet) -> "Config":
        with self._lock.write():
            for rule_set in rule_sets:
                self._rules[rule_set.key] = str(rule_set)
        return self

    def register_validation(
        self,
        tag: str,
        check: Check,
        message: Optional[Callable[[Optional[str]], str]] = None,
    ) -> "Config":
        self.validator.register(tag, check, message)
        return self

    def validate_key(self, key: str) -> None:
        """Check the rule registered for ``key``; a key without rules passes.

        Raises:
            ValidationErrors: With a single entry for ``key``.
        """
        rules, data = self._rules_snapshot()
        errors = self._check_rules(rules, data, [key])
        if errors:
            raise ValidationErrors(errors)

    def validate_all(self) -> None:
        """Check every registered rule and report all failures together.

        Checks run on a snapshot taken under the lock, so custom checks may
        read or modify the engine.

        Raises:
            ValidationErrors: Keyed by every failing key.
        """
        rules, data = self._rules_snapshot()
        errors = self._check_rules(rules, data, list(rules))
        if errors:
            raise ValidationErrors(errors)

    def validate(self, dst: Any) -> None:
        """Check the ``validate`` metadata tags of the dataclass ``dst``.

        Nested dataclasses, including those held in lists and dict values,
        are checked too.

        Raises:
            BindError: ``dst`` is not a dataclass instance.
            ValidationErrors: Keyed by dotted field path.
        """
        check_destination(dst)
        errors = validate_struct(dst, self.validator)
        if errors:
            raise ValidationErrors(errors)

    def _rules_snapshot(self) -> Tuple[Dict[str, str], Dict[str, Any]]:
        with self._lock.read():
            return dict(self._rules), dict(self._data)

    def _check_rules(self, rules: Dict[str, str], data: Dict[str, Any], keys: List[str]) -> Dict[str, str]:
        errors: Dict[str, str] = {}
        for key in keys:
            rule = rules.get(key)
            if rule is None:
                continue
            value = data.get(key, _MISSING)
            if value is _MISSING:
                if self.validator.is_required(rule):
                    errors[key] = "is required"
                continue
            message = self.validator.validate(value, rule)
            if message:
                errors[key] = message
        return errors

    # -- binding -----------------------------------------------------------

    def bind(self, dst: Any, prefix: Optional[str] = None) -> None:
        """Populate the dataclass instance ``dst`` from the current state.

        Args:
            dst: Dataclass instance, modified in place.
            prefix: Only bind keys under ``prefix.`` (stripped).

        Raises:
            BindError: Invalid destination, unknown field or bad value.
            HookError: A pre-bind or post-bind hook failed.
        """
        self.hooks.execute_pre_bind(self, dst)
        data = self.values()
        self._binder.bind(data, dst, prefix)
        self.hooks.execute_post_bind(self, dst)

    def bind_and_validate(self, dst: Any, prefix: Optional[str] = None) -> None:
        """Bind, then check the destination's ``validate`` tags."""
        self.bind(dst, prefix)
        self.validate(dst)

    def bind_with_rules(self, dst: Any, prefix: Optional[str] = None) -> None:
        """Bind, then check registered key rules and ``validate`` tags.

        Raises:
            ValidationErrors: Failing keys and failing field paths together.
        """
        self.bind(dst, prefix)
        rules, data = self._rules_snapshot()
        errors = self._check_rules(rules, data, list(rules))
        errors.update(validate_struct(dst, self.validator))
        if errors:
            raise ValidationErrors(errors)

    # -- observers ---------------------------------------------------------

    def observe(self, observer: Observer) -> "Config":
        with self._lock.write():
            self._observers.append(observer)
        return self

    def observe_func(self, fn: Callable[[Dict[str, Any]], None]) -> "Config":
        return self.observe(ObserverFunc(fn))

    def _notify(self, changed: Dict[str, Any]) -> None:
        with self._lock.read():
            observers = list(self._observers)
        for observer in observers:
            threading.Thread(
                target=self._run_observer,
                args=(observer, clone(changed)),
                name="stratum-observer",
                daemon=True,
            ).start()

    @staticmethod
    def _run_observer(observer: Observer, changed: Dict[str, Any]) -> None:
        try:
            observer.on_config_change(changed)
        except Exception:
            logger.exception("observer_failed", observer=repr(observer), keys=sorted(changed))

    # -- watching ----------------------------------------------------------

    def watch(self, interval: Seconds = 1.0) -> None:
        """Reload in the background whenever a watched file changes.

        Every ``interval`` seconds the modification times of all source
        watch paths are compared against the previous tick. Reload failures
        are logged as ``config_reload_failed`` and never raised.

        Raises:
            WatchError: No source exposes a watch path, the engine is
                closed, or a watch loop is already running.
        """
        seconds = to_seconds(interval)
        if seconds <= 0:
            raise WatchError("watch interval must be positive")
        if self._stop.is_set():
            raise WatchError("config is closed")
        if self._watcher is not None and self._watcher.is_alive():
            raise WatchError("watch loop already running")
        paths = self._watch_paths()
        if not paths:
            raise WatchError("no watchable sources")

        mtimes = self._snapshot(paths)
        self._watcher = threading.Thread(
            target=self._watch_loop,
            args=(seconds, mtimes),
            name="stratum-watch",
            daemon=True,
        )
        self._watcher.start()
        logger.info("watch_started", paths=paths, interval=seconds)

    def _watch_paths(self) -> List[str]:
        with self._lock.read():
            sources = list(self._sources)
        paths: List[str] = []
        for source in sources:
            for path in source.watch_paths():
                if path not in paths:
                    paths.append(path)
        return paths

    @staticmethod
    def _snapshot(paths: List[str]) -> Dict[str, int]:
        mtimes: Dict[str, int] = {}
        for path in paths:
            try:
                mtimes[path] = os.stat(path).st_mtime_ns
            except OSError:
                continue
        return mtimes

    def _has_changes(self, mtimes: Dict[str, int]) -> bool:
        current = self._snapshot(self._watch_paths())
        changed = any(mtime > mtimes.get(path, -1) for path, mtime in current.items())
        mtimes.clear()
        mtimes.update(current)
        return changed

    def _watch_loop(self, seconds: float, mtimes: Dict[str, int]) -> None:
        while not self._stop.wait(seconds):
            try:
                if self._has_changes(mtimes):
                    self.load()
            except ConfigError as e:
                logger.error("config_reload_failed", error=str(e))
            except Exception:
                logger.exception("config_reload_failed")
        logger.info("watch_stopped")

    def close(self) -> None:
        """Stop the watch loop. Safe to call more than once."""
        self._stop.set()
        watcher = self._watcher
        if watcher is not None and watcher is not threading.current_thread():
            watcher.join(timeout=1.0)

    def __enter__(self) -> "Config":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # -- extensions --------------------------------------------------------

    def register_hook(self, hook: Hook) -> "Config":
        self.hooks.register(hook)
        return self

    def enable_profiles(self) -> ProfileManager:
        if self._profiles is None:
            self._profiles = ProfileManager(self)
        return self._profiles

    @property
    def profiles(self) -> Optional[ProfileManager]:
        return self._profiles

    def set_encryption_processor(self, processor: EncryptionProcessor) -> None:
        self.encryption = processor

    def encrypt_value(self, plaintext: str) -> str:
        """Encrypt ``plaintext`` with the configured processor.

        Raises:
            ConfigError: If no encryption processor is configured.
        """
        if self.encryption is None:
            raise ConfigError("encryption is not configured")
        return self.encryption.encrypt_value(plaintext)

    def register_type_converter(self, tp: Any, converter: Converter) -> "Config":
        self.converters.register_type(tp, converter)
        return self

    def register_kind_converter(self, kind: Kind, converter: Converter) -> "Config":
        self.converters.register_kind(kind, converter)
        return self

    def add_template_function(self, name: str, fn: Callable[..., Any]) -> "Config":
        self.templates.add_function(name, fn)
        return self

    def __repr__(self) -> str:
        return f"Config(sources={[s.name for s in self.sources]!r})"

"""Fluent construction of a :class:`Config`."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from .config import Config
from .converters import Converter, Kind
from .encryption import DEFAULT_PREFIX, AESEncryptor, EncryptionProcessor
from .errors import ConfigError
from .factory import SourceFactory
from .hooks import DefaultsHook, Hook, LoggingHook, ValidationHook
from .middleware import (
    Seconds,
    SourceMiddleware,
    chain,
    with_caching,
    with_decryption,
    with_retry,
    with_template,
)
from .rules import Check, RuleSet
from .source import Source
from .types import Observer


class Builder:
    """Fluent interface for building configurations.

    Builder-level middleware applies to every source added *after* it is
    configured, in the order listed (first listed is outermost).

    Example:
        >>> cfg = (
        ...     Builder()
        ...     .with_caching(60)
        ...     .add_file("config.yaml")
        ...     .add_env("APP_")
        ...     .build_and_load()
        ... )
    """

    def __init__(self, config: Optional[Config] = None):
        self.config = config or Config()
        self.factory = SourceFactory()
        self.middleware: List[SourceMiddleware] = []

    # -- options -----------------------------------------------------------

    def with_default_priority(self, priority: int) -> "Builder":
        self.factory = SourceFactory(priority)
        return self

    def with_middleware(self, *middleware: SourceMiddleware) -> "Builder":
        self.middleware.extend(middleware)
        return self

    def with_template_processing(self) -> "Builder":
        return self.with_middleware(with_template(self.config.templates))

    def with_encryption(self, key: str, prefix: str = DEFAULT_PREFIX) -> "Builder":
        processor = EncryptionProcessor(AESEncryptor(key), prefix)
        self.config.set_encryption_processor(processor)
        return self.with_middleware(with_decryption(processor))

    def with_caching(self, ttl: Seconds) -> "Builder":
        return self.with_middleware(with_caching(ttl))

    def with_retry(self, attempts: int, backoff: Seconds = 0.0) -> "Builder":
        return self.with_middleware(with_retry(attempts, backoff))

    # -- sources -----------------------------------------------------------

    def add_source(self, source: Source) -> "Builder":
        if self.middleware:
            source = chain(*self.middleware)(source)
        self.config.add_source(source)
        return self

    def add_source_with_middleware(self, source: Source, *middleware: SourceMiddleware) -> "Builder":
        self.config.add_source_with_middleware(source, *middleware)
        return self

    def add_memory(self, data: Optional[Mapping[str, Any]] = None) -> "Builder":
        return self.add_source(self.factory.memory(data))

    def add_file(self, path: Union[str, Path]) -> "Builder":
        return self.add_source(self.factory.file(path))

    def add_files(self, *paths: Union[str, Path]) -> "Builder":
        for path in paths:
            self.add_file(path)
        return self

    def add_env(self, prefix: str = "") -> "Builder":
        return self.add_source(self.factory.env(prefix))

    def add_glob(self, pattern: str) -> "Builder":
        return self.add_source(self.factory.glob(pattern))

    def add_composite(self, name: str, priority: int, *sources: Source) -> "Builder":
        from ..sources.composite import CompositeSource
        return self.add_source(CompositeSource(name, priority, sources))

    def add_conditional(self, source: Source, condition: Callable[[], bool]) -> "Builder":
        from ..sources.composite import ConditionalSource
        return self.add_source(ConditionalSource(source, condition))

    # -- observers and hooks -------------------------------------------------

    def add_observer(self, observer: Observer) -> "Builder":
        self.config.observe(observer)
        return self

    def add_observer_func(self, fn: Callable[[Dict[str, Any]], None]) -> "Builder":
        self.config.observe_func(fn)
        return self

    def add_hook(self, hook: Hook) -> "Builder":
        self.config.register_hook(hook)
        return self

    def add_logging_hook(self, log: Optional[Any] = None) -> "Builder":
        return self.add_hook(LoggingHook(log))

    def add_validation_hook(self, validator: Callable[[Dict[str, Any]], None]) -> "Builder":
        return self.add_hook(ValidationHook(validator))

    def add_defaults_hook(self, defaults: Mapping[str, Any]) -> "Builder":
        return self.add_hook(DefaultsHook(defaults))

    # -- extensions ----------------------------------------------------------

    def enable_profiles(self) -> "Builder":
        self.config.enable_profiles()
        return self

    def add_profile(self, name: str, data: Mapping[str, Any]) -> "Builder":
        self.config.enable_profiles().add_profile(name, data)
        return self

    def set_active_profile(self, name: str) -> "Builder":
        """Activate a profile; this loads the configuration immediately."""
        self.config.enable_profiles().set_active_profile(name)
        return self

    def add_template_function(self, name: str, fn: Callable[..., Any]) -> "Builder":
        self.config.add_template_function(name, fn)
        return self

    def register_type_converter(self, tp: Any, converter: Converter) -> "Builder":
        self.config.register_type_converter(tp, converter)
        return self

    def register_kind_converter(self, kind: Kind, converter: Converter) -> "Builder":
        self.config.register_kind_converter(kind, converter)
        return self

    def register_validation(
        self,
        tag: str,
        check: Check,
        message: Optional[Callable[[Optional[str]], str]] = None,
    ) -> "Builder":
        self.config.register_validation(tag, check, message)
        return self

    def add_rule(self, key: str, rule: str) -> "Builder":
        self.config.add_rule(key, rule)
        return self

    def add_rules(self, *rule_sets: RuleSet) -> "Builder":
        self.config.add_rules(*rule_sets)
        return self

    # -- composition ---------------------------------------------------------

    def apply(self, fn: Callable[["Builder"], "Builder"]) -> "Builder":
        return fn(self)

    def apply_if(self, condition: bool, fn: Callable[["Builder"], "Builder"]) -> "Builder":
        return fn(self) if condition else self

    def clone(self) -> "Builder":
        """Branch the builder; the underlying Config is shared."""
        other = Builder(self.config)
        other.factory = SourceFactory(self.factory.default_priority)
        other.middleware = list(self.middleware)
        return other

    # -- terminal operations -------------------------------------------------

    def build(self) -> Config:
        """Return the configuration without loading it."""
        return self.config

    def build_and_load(self) -> Config:
        self.config.load()
        return self.config

    def build_and_watch(self, interval: Seconds = 1.0) -> Config:
        self.config.load()
        self.config.watch(interval)
        return self.config

    def must_build(self) -> Config:
        """Load or abort the process with the underlying error."""
        try:
            return self.build_and_load()
        except ConfigError as e:
            raise SystemExit(f"config: {e}") from e

    def must_build_and_watch(self, interval: Seconds = 1.0) -> Config:
        try:
            return self.build_and_watch(interval)
        except ConfigError as e:
            raise SystemExit(f"config: {e}") from e


def development_config() -> Builder:
    """``config.dev.yaml`` overlaid by ``DEV_*`` variables, with templating."""
    return (
        Builder()
        .with_default_priority(10)
        .with_template_processing()
        .add_file("config.dev.yaml")
        .add_env("DEV_")
    )


def production_config() -> Builder:
    """``/etc/app/config.yaml`` overlaid by ``APP_*`` variables.

    Each source is cached for five minutes and retried three times.
    """
    return (
        Builder()
        .with_default_priority(10)
        .with_caching(300)
        .with_retry(3, 1.0)
        .add_file("/etc/app/config.yaml")
        .add_env("APP_")
    )


def test_config() -> Builder:
    return Builder().add_memory({"env": "test"})

"""Unit tests for the fluent builder, presets and source factory."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from stratum.core import builder
from stratum.core.builder import Builder
from stratum.core.config import Config
from stratum.core.errors import ValidationErrors
from stratum.core.factory import SourceFactory, create_source, detect_kind
from stratum.core.middleware import CachedSource, RetrySource, TemplateSource
from stratum.core.source import DEFAULT_ENV_PRIORITY, DEFAULT_FILE_PRIORITY, DEFAULT_MEMORY_PRIORITY
from stratum.sources import EnvironmentSource, FileSource, GlobSource, MemorySource
from stratum.sources.http_remote import HttpSource
from stratum.sources.redis_kv import RedisSource


class TestDetectKind:
    @pytest.mark.parametrize(
        "path, kind",
        [
            (None, "memory"),
            ("", "memory"),
            ("redis://localhost:6379/0", "redis"),
            ("rediss://cache:6380", "redis"),
            ("https://example.com/config.yaml", "http"),
            ("http://example.com/config.json", "http"),
            ("conf.d/*.yaml", "glob"),
            ("conf/app-?.json", "glob"),
            ("config.yaml", "file"),
        ],
    )
    def test_detect(self, path, kind):
        assert detect_kind(path) == kind


class TestCreateSource:
    """Test suite for create_source."""

    def test_auto_detection(self, tmp_path):
        assert isinstance(create_source(data={"a": 1}), MemorySource)
        assert isinstance(create_source(path=tmp_path / "a.yaml"), FileSource)
        assert isinstance(create_source(path=str(tmp_path / "*.yaml")), GlobSource)
        assert isinstance(create_source(path="https://example.com/app.yaml"), HttpSource)
        assert isinstance(create_source(path="redis://localhost:6379/0", prefix="app:"), RedisSource)

    def test_unknown_kind_falls_back_to_detection(self, tmp_path):
        assert isinstance(create_source("bogus", path=tmp_path / "a.json"), FileSource)

    def test_env(self):
        source = create_source("env", prefix="APP_")
        assert isinstance(source, EnvironmentSource)
        assert source.prefix == "APP_"
        assert source.priority == DEFAULT_ENV_PRIORITY

    def test_priority_and_name(self):
        source = create_source("memory", data={}, priority=42, name="defaults")
        assert source.priority == 42
        assert source.name == "defaults"

    def test_missing_path(self):
        with pytest.raises(ValueError, match="requires a path"):
            create_source("file")


class TestSourceFactory:
    def test_per_kind_defaults(self, tmp_path):
        factory = SourceFactory()
        assert factory.memory().priority == DEFAULT_MEMORY_PRIORITY
        assert factory.file(tmp_path / "a.yaml").priority == DEFAULT_FILE_PRIORITY
        assert factory.env().priority == DEFAULT_ENV_PRIORITY

    def test_shared_default(self, tmp_path):
        factory = SourceFactory(7)
        assert factory.memory().priority == 7
        assert factory.glob(str(tmp_path / "*.json")).priority == 7
        assert factory.create(path=tmp_path / "a.json").priority == 7


class TestBuilder:
    """Test suite for Builder."""

    def test_build_and_load(self, tmp_path):
        path = tmp_path / "app.yaml"
        path.write_text("db:\n  host: file-host\n  port: 5432\n")
        cfg = (
            Builder()
            .add_memory({"db.host": "default", "name": "svc"})
            .add_file(path)
            .add_env("APP_")
            .build_and_load()
        )
        assert cfg.get("db.host") == "file-host"
        assert cfg.get_int("db.port") == 5432
        assert cfg.get("name") == "svc"

    def test_build_does_not_load(self):
        cfg = Builder().add_memory({"a": 1}).build()
        assert isinstance(cfg, Config)
        assert not cfg.has("a")

    def test_middleware_applies_to_later_sources(self):
        b = Builder().add_memory({"a": 1}).with_caching(60).add_memory({"b": 2})
        first, second = b.build().sources
        assert isinstance(first, MemorySource)
        assert isinstance(second, CachedSource)

    def test_middleware_order(self):
        """The first configured middleware is outermost."""
        b = Builder().with_caching(60).with_retry(2).add_memory({})
        (source,) = b.build().sources
        assert isinstance(source, CachedSource)
        assert isinstance(source.source, RetrySource)
        assert source.name == "cached:retry:memory"

    def test_template_processing(self):
        cfg = (
            Builder()
            .with_template_processing()
            .add_memory({"host": "db", "url": "postgres://{{ host }}:5432"})
            .build_and_load()
        )
        assert cfg.get("url") == "postgres://db:5432"

    def test_encryption(self):
        """Encrypted values are decrypted by sources added afterwards."""
        b = Builder().with_encryption("passphrase")
        token = b.build().encrypt_value("s3cret")
        cfg = b.add_memory({"db.password": token}).build_and_load()
        assert cfg.get("db.password") == "s3cret"

    def test_default_priority(self):
        b = Builder().with_default_priority(3).add_memory({}).add_env("X_")
        assert [s.priority for s in b.build().sources] == [3, 3]

    def test_composite_and_conditional(self):
        cfg = (
            Builder()
            .add_composite("bundle", 5, MemorySource({"a": 1}), MemorySource({"a": 2, "b": 1}))
            .add_conditional(MemorySource({"c": 1}, priority=9), lambda: False)
            .build_and_load()
        )
        assert cfg.values() == {"a": 2, "b": 1}

    def test_hooks_and_observers(self):
        observer = MagicMock()
        cfg = (
            Builder()
            .add_memory({"a": 1})
            .add_defaults_hook({"b": 2})
            .add_validation_hook(lambda data: None)
            .add_logging_hook(MagicMock())
            .add_observer(observer)
            .build_and_load()
        )
        assert cfg.get("b") == 2
        assert len(cfg.hooks.hooks("post-load")) == 3

    def test_rules(self):
        b = Builder().add_memory({"port": 0}).add_rule("port", "min=1")
        with pytest.raises(ValidationErrors, match="must be >= 1"):
            b.build_and_load()

    def test_profiles(self):
        cfg = (
            Builder()
            .add_memory({"debug": "false"})
            .add_profile("dev", {"debug": "true"})
            .set_active_profile("dev")
            .build()
        )
        assert cfg.get_bool("debug") is True

    def test_apply_and_clone(self):
        def with_defaults(b: Builder) -> Builder:
            return b.add_memory({"a": 1})

        b = Builder().apply(with_defaults).apply_if(False, lambda b: b.add_memory({"a": 2}))
        other = b.clone().with_caching(10)
        assert other.build() is b.build()
        assert b.middleware == []
        assert b.build_and_load().get("a") == 1

    def test_must_build_exits(self):
        b = Builder().add_source(MemorySource({})).add_rule("port", "required,min=1")
        with pytest.raises(SystemExit, match="^config: "):
            b.must_build()

    def test_must_build_and_watch_without_paths(self):
        with pytest.raises(SystemExit, match="no watchable sources"):
            Builder().add_memory({}).must_build_and_watch(0.1)


class TestPresets:
    def test_test_preset(self):
        cfg = builder.test_config().build_and_load()
        assert cfg.get("env") == "test"

    def test_development_preset(self):
        sources = builder.development_config().build().sources
        assert [s.priority for s in sources] == [10, 10]
        assert all(isinstance(s, TemplateSource) for s in sources)
        assert sources[0].name == "template:file:config.dev.yaml"
        assert sources[1].source.prefix == "DEV_"

    def test_production_preset(self):
        sources = builder.production_config().build().sources
        file_source = sources[0]
        assert isinstance(file_source, CachedSource)
        assert isinstance(file_source.source, RetrySource)
        assert file_source.source.max_attempts == 3
        assert file_source.source.source.path.as_posix() == "/etc/app/config.yaml"

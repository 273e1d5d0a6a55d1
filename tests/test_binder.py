"""Unit tests for the structural binder."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Dict, List, Optional

import pytest

from stratum.core.binder import Binder, describe, find_field, validate_struct
from stratum.core.converters import TypeConverterRegistry
from stratum.core.errors import BindError
from stratum.core.rules import RuleValidator


@dataclass
class Database:
    host: str = "localhost"
    port: int = 5432
    pool_size: int = field(default=5, metadata={"config": "pool"})
    password: str = field(default="", metadata={"json": "pass,omitempty"})


@dataclass
class Server:
    host: str = ""
    port: int = 0


@dataclass
class AppConfig:
    name: str = ""
    debug: bool = False
    timeout: timedelta = timedelta(seconds=1)
    db: Database = field(default_factory=Database)
    cache: Optional[Database] = None
    hosts: List[str] = field(default_factory=list)
    servers: List[Server] = field(default_factory=list)
    labels: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Frozen:
    name: str = ""


@dataclass
class NeedsArgs:
    required: str


@dataclass
class Holder:
    inner: Optional[NeedsArgs] = None


class TestBinder:
    """Test suite for Binder."""

    def setup_method(self):
        self.binder = Binder(TypeConverterRegistry())

    def test_flat_keys(self):
        """Dotted keys bind onto nested fields with conversion."""
        cfg = AppConfig()
        self.binder.bind(
            {
                "name": "svc",
                "debug": "true",
                "timeout": "30s",
                "db.host": "db.internal",
                "db.port": "6543",
                "hosts.0": "a",
                "hosts.1": "b",
                "hosts": "a,b",
            },
            cfg,
        )
        assert cfg.name == "svc"
        assert cfg.debug is True
        assert cfg.timeout == timedelta(seconds=30)
        assert cfg.db.host == "db.internal"
        assert cfg.db.port == 6543
        assert cfg.hosts == ["a", "b"]

    def test_missing_keys_keep_defaults(self):
        """Binding never fails on absent keys."""
        cfg = AppConfig()
        self.binder.bind({}, cfg)
        assert cfg == AppConfig()

    def test_config_tag_is_exclusive(self):
        """A config tag replaces the field name as the only alias."""
        cfg = AppConfig()
        self.binder.bind({"db.pool": "20"}, cfg)
        assert cfg.db.pool_size == 20
        with pytest.raises(BindError, match="unknown config field 'pool_size'"):
            self.binder.bind({"db.pool_size": "20"}, cfg)

    def test_json_tag(self):
        """The json tag name (before options) is matched."""
        cfg = AppConfig()
        self.binder.bind({"db.pass": "pw"}, cfg)
        assert cfg.db.password == "pw"

    def test_case_insensitive(self):
        """Segments match case-insensitively."""
        cfg = AppConfig()
        self.binder.bind({"DB.Host": "h", "NAME": "n"}, cfg)
        assert cfg.db.host == "h"
        assert cfg.name == "n"

    def test_none_nested_struct_is_created(self):
        """An unset optional dataclass field is instantiated on demand."""
        cfg = AppConfig()
        self.binder.bind({"cache.host": "redis"}, cfg)
        assert cfg.cache == Database(host="redis")

    def test_nested_struct_from_mapping(self):
        """A mapping value converts into a nested dataclass."""
        cfg = AppConfig()
        self.binder.bind({"db": {"host": "h", "port": 1}}, cfg)
        assert cfg.db.host == "h"
        assert cfg.db.port == 1

    def test_list_of_structs(self):
        """Indexed keys populate list elements; the joined form is skipped."""
        cfg = AppConfig()
        self.binder.bind(
            {
                "servers.0.host": "a",
                "servers.1.host": "b",
                "servers.1.port": "81",
                "servers": "{'host': 'a'},{'host': 'b', 'port': 81}",
            },
            cfg,
        )
        assert cfg.servers == [Server("a", 0), Server("b", 81)]

    def test_mapping_field(self):
        """Keys under a dict field become its entries."""
        cfg = AppConfig()
        self.binder.bind({"labels.team": "core", "labels.tier.name": "gold"}, cfg)
        assert cfg.labels == {"team": "core", "tier.name": "gold"}

    def test_segments_below_scalars_ignored(self):
        """Extra segments below a non-object field are ignored."""
        cfg = AppConfig()
        self.binder.bind({"name.extra": "x"}, cfg)
        assert cfg.name == ""

    def test_unknown_field(self):
        """Unknown fields on an object are errors naming the key."""
        with pytest.raises(BindError, match="bind 'db.nope'") as exc:
            self.binder.bind({"db.nope": 1}, AppConfig())
        assert exc.value.key == "db.nope"

    def test_type_mismatch(self):
        """Unconvertible values are errors naming the key."""
        with pytest.raises(BindError, match="bind 'db.port'"):
            self.binder.bind({"db.port": "abc"}, AppConfig())

    def test_prefix(self):
        """Only keys under the prefix bind, with the prefix stripped."""
        cfg = Database()
        self.binder.bind({"primary.host": "p", "replica.host": "r", "other": 1}, cfg, prefix="primary")
        assert cfg.host == "p"

    @pytest.mark.parametrize("dst", [None, AppConfig, {"name": "x"}])
    def test_invalid_destinations(self, dst):
        """None, classes and non-dataclasses are rejected."""
        with pytest.raises(BindError, match="destination"):
            self.binder.bind({"name": "x"}, dst)

    def test_frozen_destination(self):
        """Frozen dataclasses cannot be bound."""
        with pytest.raises(BindError, match="frozen"):
            self.binder.bind({"name": "x"}, Frozen())

    def test_uncreatable_nested(self):
        """Nested dataclasses without defaults cannot be created."""
        with pytest.raises(BindError, match="cannot create NeedsArgs"):
            self.binder.bind({"inner.required": "x"}, Holder())


class TestDescriptors:
    """Test suite for the field-descriptor table."""

    def test_cached_per_type(self):
        """Descriptors are built once per type."""
        assert describe(AppConfig) is describe(AppConfig)

    def test_find_field(self):
        """Field lookup by alias."""
        assert find_field(Database, "POOL").name == "pool_size"
        assert find_field(Database, "pass").name == "password"
        assert find_field(Database, "password") is None
        assert find_field(AppConfig, "cache").type is Database


@dataclass
class Listener:
    host: str = field(default="", metadata={"validate": "required"})
    port: int = field(default=0, metadata={"validate": "required,min=1024,max=65535"})


@dataclass
class Service:
    name: str = field(default="", metadata={"validate": "required,min=3"})
    admin: str = field(default="", metadata={"validate": "omitempty,email"})
    read_timeout: timedelta = field(default=timedelta(0), metadata={"validate": "gt=0"})
    listener: Listener = field(default_factory=Listener)
    replicas: List[Listener] = field(default_factory=list, metadata={"validate": "dive"})
    fallback: Optional[Listener] = field(default=None, metadata={"validate": "required"})


class TestValidateStruct:
    """Test suite for validate_struct."""

    def test_valid(self):
        svc = Service(
            name="api",
            read_timeout=timedelta(seconds=5),
            listener=Listener("0.0.0.0", 8080),
            replicas=[Listener("r1", 8081)],
            fallback=Listener("f", 9090),
        )
        assert validate_struct(svc, RuleValidator()) == {}

    def test_errors_keyed_by_field_path(self):
        """Nested and listed dataclasses report dotted paths."""
        svc = Service(
            name="ap",
            admin="not-an-email",
            listener=Listener("", 80),
            replicas=[Listener("r1", 8081), Listener("r2", 70000)],
        )
        assert validate_struct(svc, RuleValidator()) == {
            "name": "must be >= 3",
            "admin": "must be a valid email",
            "read_timeout": "must be > 0",
            "listener.host": "is required",
            "listener.port": "must be >= 1024",
            "replicas.1.port": "must be <= 65535",
            "fallback": "is required",
        }

    def test_rule_read_into_descriptor(self):
        assert find_field(Listener, "port").rule == "required,min=1024,max=65535"
        assert find_field(AppConfig, "name").rule is None

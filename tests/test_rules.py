"""Unit tests for the declarative rule language."""

from __future__ import annotations

from datetime import timedelta

import pytest

from stratum.core.rules import RuleSet, Rules, RuleValidator, parse_rule


class TestParseRule:
    """Test suite for parse_rule."""

    def test_tags_and_params(self):
        """Tags split on commas; params follow '='."""
        assert parse_rule("required,min=1,max=10") == [
            ("required", None),
            ("min", "1"),
            ("max", "10"),
        ]

    def test_regexp_consumes_rest(self):
        """A regexp pattern may contain commas."""
        assert parse_rule("required,regexp=^a{1,3}$") == [
            ("required", None),
            ("regexp", "^a{1,3}$"),
        ]

    def test_blank_parts_ignored(self):
        """Empty segments are skipped."""
        assert parse_rule(" required,, ") == [("required", None)]


class TestRuleValidator:
    """Test suite for RuleValidator."""

    @pytest.mark.parametrize(
        "value, rule, message",
        [
            ("", "required", "is required"),
            ([], "required", "is required"),
            (0, "min=1", "must be >= 1"),
            (70000, "min=1,max=65535", "must be <= 65535"),
            ("ab", "min=3", "must be >= 3"),
            ([1, 2, 3], "max=2", "must be <= 2"),
            (5, "gt=5", "must be > 5"),
            (5, "lt=5", "must be < 5"),
            ("abc", "len=2", "validation failed: len"),
            ("nope", "email", "must be a valid email"),
            ("not a url", "url", "must be a valid URL"),
            ("blue", "oneof=red green", "must be one of: red green"),
            ("x", "uuid", "validation failed: uuid"),
            ("ABC", "regexp=^[a-z]+$", "validation failed: regexp"),
            (3, "eq=4", "validation failed: eq"),
            ("a", "ne=a", "validation failed: ne"),
        ],
    )
    def test_failures(self, value, rule, message):
        """Failing values produce the expected message."""
        assert RuleValidator().validate(value, rule) == message

    @pytest.mark.parametrize(
        "value, rule",
        [
            ("x", "required"),
            (0, "required"),
            (False, "required"),
            (8080, "required,min=1,max=65535"),
            (2.5, "gte=2.5,lte=2.5"),
            ("abc", "len=3"),
            ("ops@example.com", "email"),
            ("https://example.com/path", "url"),
            ("green", "oneof=red green"),
            ("123e4567-e89b-12d3-a456-426614174000", "uuid"),
            ("6f1c1d1e-8a44-4b34-9a2e-0c7a8e4b8f10", "uuid4"),
            ("abc", "regexp=^[a-z]+$"),
            ("prod", "eq=prod"),
            (4, "ne=5"),
        ],
    )
    def test_passes(self, value, rule):
        """Valid values produce no message."""
        assert RuleValidator().validate(value, rule) is None

    def test_uuid4_rejects_other_versions(self):
        """uuid4 checks the version nibble."""
        assert RuleValidator().validate("123e4567-e89b-12d3-a456-426614174000", "uuid4") == (
            "validation failed: uuid4"
        )

    def test_unknown_tag(self):
        """Unknown tags fail with a descriptive message."""
        assert RuleValidator().validate(1, "frobnicate") == "unknown validation tag: frobnicate"

    def test_bad_parameter(self):
        """A non-numeric size parameter is reported, not raised."""
        assert RuleValidator().validate(1, "min=abc").startswith("invalid rule min=abc")

    def test_bad_pattern(self):
        """An uncompilable pattern is reported, not raised."""
        assert RuleValidator().validate("x", "regexp=(").startswith("invalid rule regexp=(:")

    def test_raising_custom_check(self):
        """Any exception from a custom check becomes a message."""
        v = RuleValidator()
        v.register("lookup", lambda value, _: {}[value])
        assert v.validate("x", "lookup") == "invalid rule lookup: 'x'"

    def test_omitempty(self):
        """omitempty skips the remaining tags for empty values only."""
        v = RuleValidator()
        assert v.validate("", "omitempty,email") is None
        assert v.validate("nope", "omitempty,email") == "must be a valid email"

    def test_durations_compare_in_seconds(self):
        v = RuleValidator()
        assert v.validate(timedelta(seconds=5), "gt=0") is None
        assert v.validate(timedelta(0), "gt=0") == "must be > 0"

    def test_custom_tag(self):
        """Custom tags with custom messages."""
        v = RuleValidator()
        v.register("even", lambda value, _: int(value) % 2 == 0, lambda _: "must be even")
        assert v.validate(3, "even") == "must be even"
        assert v.validate(4, "even") is None

    def test_custom_tags_are_per_instance(self):
        """Registrations do not leak between validators."""
        a, b = RuleValidator(), RuleValidator()
        a.register("never", lambda value, _: False)
        assert a.validate(1, "never") == "validation failed: never"
        assert b.validate(1, "never") == "unknown validation tag: never"

    def test_is_required(self):
        """is_required detects the required tag."""
        v = RuleValidator()
        assert v.is_required("min=1,required")
        assert not v.is_required("min=1")


class TestRules:
    """Test suite for the Rules factory."""

    def test_factories(self):
        """Factories produce rule strings for their key."""
        assert str(Rules.required("db.host")) == "required"
        assert str(Rules.range("port", 1, 65535)) == "min=1,max=65535"
        assert str(Rules.one_of("env", "dev", "prod")) == "oneof=dev prod"
        assert str(Rules.uuid("id", version=4)) == "uuid4"
        assert str(Rules.pattern("name", "^[a-z]+$")) == "regexp=^[a-z]+$"
        assert Rules.email("admin").key == "admin"

    def test_chaining(self):
        """RuleSets chain additional tags."""
        rule_set = Rules.required("port").add("min", 1).add("max", 10)
        assert isinstance(rule_set, RuleSet)
        assert str(rule_set) == "required,min=1,max=10"

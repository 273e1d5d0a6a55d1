"""Exception hierarchy for configuration resolution.

Every exception raised by stratum derives from :class:`ConfigError`. Source,
decoration and hook failures are always re-raised with ``raise ... from``
so the underlying cause stays on ``__cause__``.
"""

from __future__ import annotations

from typing import Dict, Optional


class ConfigError(Exception):
    """Base class for all configuration errors."""


class SourceError(ConfigError):
    """A source failed to load.

    Attributes:
        source_name: Name of the offending source.
    """

    def __init__(self, source_name: str, message: str):
        self.source_name = source_name
        super().__init__(f"source {source_name}: {message}")


class DecodeError(ConfigError):
    """Raw bytes could not be decoded into a mapping."""


class RetryExhaustedError(ConfigError):
    """Every attempt of a retried load failed."""

    def __init__(self, attempts: int, last_error: BaseException):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"failed after {attempts} attempts: {last_error}")


class TemplateError(ConfigError):
    """A templated value could not be expanded."""


class DecryptionError(ConfigError):
    """An encrypted value could not be decrypted."""


class HookError(ConfigError):
    """A lifecycle hook failed.

    Attributes:
        hook_name: Name of the failing hook.
        phase: One of ``pre-load``, ``post-load``, ``pre-bind``, ``post-bind``.
    """

    def __init__(self, hook_name: str, phase: str, message: str):
        self.hook_name = hook_name
        self.phase = phase
        super().__init__(f"{phase} hook {hook_name}: {message}")


class ValidationErrors(ConfigError):
    """Aggregate of per-key validation failures.

    Attributes:
        errors: Mapping of key (or field path) to failure message.
    """

    def __init__(self, errors: Dict[str, str]):
        self.errors = dict(errors)
        parts = [f"{field}: {msg}" for field, msg in sorted(self.errors.items())]
        super().__init__("configuration validation failed: " + "; ".join(parts))


class ConversionError(ConfigError):
    """A raw value could not be converted to the requested type."""


class BindError(ConfigError):
    """Binding the key space onto a destination failed."""

    def __init__(self, message: str, key: Optional[str] = None):
        self.key = key
        super().__init__(f"bind {key!r}: {message}" if key is not None else message)


class ProfileError(ConfigError):
    """Unknown profile or failed profile activation."""


class WatchError(ConfigError):
    """The watch loop could not be started."""

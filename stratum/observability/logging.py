"""Structured logging configuration using structlog.

stratum never configures logging on import; applications call
:func:`setup_logging` once at startup. Until then structlog's defaults apply.
"""

from __future__ import annotations

import sys
from collections.abc import MutableMapping
from typing import Any, cast

import structlog
from structlog.types import EventDict, WrappedLogger

SENSITIVE_KEYS: frozenset[str] = frozenset({
    "password",
    "passwd",
    "secret",
    "token",
    "key",
    "api_key",
    "passphrase",
    "private_key",
    "credentials",
    "authorization",
})

REDACTED = "[REDACTED]"


class SecretMasker:
    """Processor that masks secrets in log events.

    Values of sensitive keys and any string carrying an encryption marker
    prefix are replaced before rendering.
    """

    def __init__(self, markers: tuple[str, ...] = ("ENC:",)):
        self.markers = markers

    def __call__(
        self,
        _logger: WrappedLogger,
        _method_name: str,
        event_dict: EventDict,
    ) -> EventDict:
        return cast(EventDict, self._mask(event_dict))

    def _mask(self, data: MutableMapping[str, Any]) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for key, value in data.items():
            if key.lower() in SENSITIVE_KEYS:
                result[key] = REDACTED
            elif isinstance(value, MutableMapping):
                result[key] = self._mask(value)
            elif isinstance(value, str) and value.startswith(self.markers):
                result[key] = REDACTED
            else:
                result[key] = value
        return result


def setup_logging(
    level: str = "INFO",
    format: str = "console",
    mask_secrets: bool = True,
) -> None:
    """Configure structured logging.

    Args:
        level: Minimum log level (DEBUG, INFO, WARNING, ERROR)
        format: "json" for production, "console" for development
        mask_secrets: Whether to mask secret values in events
    """
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if mask_secrets:
        processors.append(SecretMasker())
    if format == "json":
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    level_map = {
        "DEBUG": 10,
        "INFO": 20,
        "WARNING": 30,
        "ERROR": 40,
        "CRITICAL": 50,
    }
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level_map.get(level.upper(), 20)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a logger instance bound to the given name."""
    return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name))

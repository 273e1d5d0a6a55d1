"""Logging setup for stratum."""

from .logging import SecretMasker, get_logger, setup_logging

__all__ = ["SecretMasker", "get_logger", "setup_logging"]

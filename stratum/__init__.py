"""Stratum - layered configuration resolution.

Merge prioritized sources (files, environment, memory, remote stores) into
one flat key space, decorate sources with caching, retry, templating and
decryption, bind the result onto dataclasses, and reload on file changes.
"""

from .core import (
    Builder,
    Config,
    ConfigError,
    Rules,
    Source,
    SourceFactory,
    ValidationErrors,
    create_source,
)
from .sources import (
    CompositeSource,
    ConditionalSource,
    EnvironmentSource,
    FileSource,
    GlobSource,
    MemorySource,
)

__all__ = [
    "Builder",
    "CompositeSource",
    "ConditionalSource",
    "Config",
    "ConfigError",
    "EnvironmentSource",
    "FileSource",
    "GlobSource",
    "MemorySource",
    "Rules",
    "Source",
    "SourceFactory",
    "ValidationErrors",
    "create_source",
]

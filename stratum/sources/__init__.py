"""Configuration source implementations.

This package contains in-process sources (memory, environment), file-based
sources (single file, glob) with a pluggable decoder registry, composites,
and remote sources (redis, http), which are not re-exported here: import
them from their own modules.
"""

from .composite import CompositeSource, ConditionalSource
from .decoders import DecoderRegistry, default_registry, register_decoder
from .environment import EnvironmentSource, KeyTransforms
from .file import FileSource
from .memory import MemorySource
from .multifile import GlobSource

__all__ = [
    "CompositeSource",
    "ConditionalSource",
    "DecoderRegistry",
    "EnvironmentSource",
    "FileSource",
    "GlobSource",
    "KeyTransforms",
    "MemorySource",
    "default_registry",
    "register_decoder",
]


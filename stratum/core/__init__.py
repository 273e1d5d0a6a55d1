from .builder import Builder, development_config, production_config, test_config
from .config import Config
from .converters import Kind, TypeConverterRegistry, parse_duration
from .errors import (
    BindError,
    ConfigError,
    ConversionError,
    DecodeError,
    DecryptionError,
    HookError,
    ProfileError,
    RetryExhaustedError,
    SourceError,
    TemplateError,
    ValidationErrors,
    WatchError,
)
from .factory import SourceFactory, create_source
from .merge import deep_merge, diff, flatten
from .middleware import chain, with_caching, with_decryption, with_retry, with_template
from .profiles import PROFILE_PRIORITY, ProfileManager
from .rules import RuleSet, Rules, RuleValidator
from .source import BaseSource, Source
from .types import Observer, ObserverFunc, ProvenanceRecord

__all__ = [
    "BaseSource",
    "BindError",
    "Builder",
    "Config",
    "ConfigError",
    "ConversionError",
    "DecodeError",
    "DecryptionError",
    "HookError",
    "Kind",
    "Observer",
    "ObserverFunc",
    "PROFILE_PRIORITY",
    "ProfileError",
    "ProfileManager",
    "ProvenanceRecord",
    "RetryExhaustedError",
    "RuleSet",
    "RuleValidator",
    "Rules",
    "Source",
    "SourceError",
    "SourceFactory",
    "TemplateError",
    "TypeConverterRegistry",
    "ValidationErrors",
    "WatchError",
    "chain",
    "create_source",
    "deep_merge",
    "development_config",
    "diff",
    "flatten",
    "parse_duration",
    "production_config",
    "test_config",
    "with_caching",
    "with_decryption",
    "with_retry",
    "with_template",
]

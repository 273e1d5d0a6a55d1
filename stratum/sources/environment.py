"""Process environment source."""

from __future__ import annotations

import os
import re
from typing import Any, Callable, Dict, Mapping, Optional

from ..core.source import DEFAULT_ENV_PRIORITY, BaseSource

KeyTransform = Callable[[str], str]

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


class KeyTransforms:
    """Common key transformations for environment variable names."""

    @staticmethod
    def lower(key: str) -> str:
        return key.lower()

    @staticmethod
    def upper(key: str) -> str:
        return key.upper()

    @staticmethod
    def dot_to_underscore(key: str) -> str:
        return key.replace(".", "_")

    @staticmethod
    def underscore_to_dot(key: str) -> str:
        return key.replace("_", ".").lower()

    @staticmethod
    def camel_to_snake(key: str) -> str:
        return _CAMEL_BOUNDARY.sub("_", key).lower()


class EnvironmentSource(BaseSource):
    """Exposes process environment variables as configuration keys.

    Variables are filtered by a case-sensitive ``prefix``, which is
    stripped, then renamed by ``transform`` (default: lowercase and
    underscores to dots, so ``APP_DB_HOST`` with prefix ``APP_`` becomes
    ``db.host``). Never fails and is never watchable.
    """

    def __init__(
        self,
        prefix: str = "",
        priority: int = DEFAULT_ENV_PRIORITY,
        name: str = "env",
        transform: Optional[KeyTransform] = KeyTransforms.underscore_to_dot,
        environ: Optional[Mapping[str, str]] = None,
    ):
        super().__init__(name, priority)
        self.prefix = prefix
        self.transform = transform
        self._environ = environ

    def with_key_transform(self, transform: Optional[KeyTransform]) -> "EnvironmentSource":
        self.transform = transform
        return self

    def load(self) -> Dict[str, Any]:
        environ = os.environ if self._environ is None else self._environ
        out: Dict[str, Any] = {}
        for key, value in list(environ.items()):
            if not key:
                continue
            if self.prefix:
                if not key.startswith(self.prefix):
                    continue
                key = key[len(self.prefix):]
            if self.transform is not None:
                key = self.transform(key)
            out[key] = value
        return out

"""Named override snapshots activated at the highest priority."""

from __future__ import annotations

import sys
import threading
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional

from ..observability.logging import get_logger
from .errors import ProfileError
from .merge import flatten

if TYPE_CHECKING:
    from .config import Config

logger = get_logger(__name__)

PROFILE_PRIORITY = sys.maxsize
PROFILE_SOURCE_PREFIX = "profile:"
PROFILES_KEY = "profiles"
ACTIVE_PROFILE_KEYS = ("active_profile", "activeProfile")


class ProfileManager:
    """Keeps named profiles and swaps the active one into an engine.

    Activating a profile replaces any previously active profile source with
    a memory source named ``profile:<name>`` at :data:`PROFILE_PRIORITY`
    and reloads the engine.
    """

    def __init__(self, config: "Config"):
        self.config = config
        self._profiles: Dict[str, Dict[str, Any]] = {}
        self._active: Optional[str] = None
        self._lock = threading.Lock()

    def add_profile(self, name: str, data: Mapping[str, Any]) -> None:
        """Store (or replace) a profile. Nested data is flattened."""
        with self._lock:
            self._profiles[name] = flatten(data)

    def set_active_profile(self, name: str) -> None:
        """Activate ``name`` and reload.

        Raises:
            ProfileError: If the profile is unknown.
            ConfigError: If the reload fails; the profile stays active.
        """
        # imported here: memory source lives in the sources package
        from ..sources.memory import MemorySource

        with self._lock:
            data = self._profiles.get(name)
            if data is None:
                raise ProfileError(f"profile {name!r} does not exist")
            self._active = name
        source = MemorySource(data, PROFILE_PRIORITY, name=f"{PROFILE_SOURCE_PREFIX}{name}")
        self.config.replace_sources(PROFILE_SOURCE_PREFIX, source)
        logger.info("profile_activated", profile=name, keys=len(data))
        self.config.load()

    @property
    def active_profile(self) -> Optional[str]:
        return self._active

    def list_profiles(self) -> List[str]:
        with self._lock:
            return sorted(self._profiles)

    def load_from_config(self) -> None:
        """Register profiles found in the engine's merged state.

        Profiles come from ``profiles.<name>.<key>`` entries (or a nested
        ``profiles`` mapping). A non-empty ``active_profile`` (or
        ``activeProfile``) key activates that profile.
        """
        values = self.config.values()
        found: Dict[str, Dict[str, Any]] = {}
        nested = values.get(PROFILES_KEY)
        if isinstance(nested, Mapping):
            for name, data in nested.items():
                if isinstance(data, Mapping):
                    found.setdefault(str(name), {}).update(flatten(data))
        prefix = f"{PROFILES_KEY}."
        for key, value in values.items():
            if not key.startswith(prefix):
                continue
            name, _, rest = key[len(prefix):].partition(".")
            if name and rest:
                found.setdefault(name, {})[rest] = value
        for name, data in found.items():
            self.add_profile(name, data)

        active = ""
        for key in ACTIVE_PROFILE_KEYS:
            active = self.config.get_string(key)
            if active:
                break
        if active:
            self.set_active_profile(active)

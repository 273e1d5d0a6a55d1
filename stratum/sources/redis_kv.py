from __future__ import annotations

from typing import Any, Dict, Optional

import redis

from ..core.source import DEFAULT_REMOTE_PRIORITY, BaseSource


class RedisSource(BaseSource):
    """Key-value source backed by Redis.

    Every key under ``prefix`` becomes a configuration key with the prefix
    stripped. Not watchable; pair with the engine's ``set`` or a periodic
    ``load`` for refreshes.
    """

    def __init__(
        self,
        url: str,
        priority: int = DEFAULT_REMOTE_PRIORITY,
        name: Optional[str] = None,
        prefix: str = "",
        client: Optional[redis.Redis] = None,
    ):
        super().__init__(name or f"redis:{url}", priority)
        self.url = url
        self.prefix = prefix
        self.client = client or redis.Redis.from_url(url, decode_responses=True)

    def _unprefixed(self, key: str) -> str:
        if self.prefix and key.startswith(self.prefix):
            return key[len(self.prefix):]
        return key

    def load(self) -> Dict[str, Any]:
        keys = sorted(self.client.keys(f"{self.prefix}*"))
        out: Dict[str, Any] = {}
        if keys:
            for key, value in zip(keys, self.client.mget(keys)):
                if value is None:
                    # deleted between KEYS and MGET
                    continue
                out[self._unprefixed(key)] = value
        return out

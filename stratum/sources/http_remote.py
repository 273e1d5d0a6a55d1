from __future__ import annotations

from pathlib import PurePosixPath
from typing import Any, Dict, Mapping, Optional

import httpx

from ..core.errors import DecodeError
from ..core.merge import flatten
from ..core.source import DEFAULT_REMOTE_PRIORITY, BaseSource
from .decoders import DecoderRegistry, default_registry


class HttpSource(BaseSource):
    """Fetches a configuration document over HTTP(S).

    The body is decoded by ``format`` (an extension such as ``"yaml"``) or,
    when omitted, by the extension of the URL path, then flattened. Non-2xx
    responses and transport errors fail the load. Not watchable.
    """

    def __init__(
        self,
        url: str,
        priority: int = DEFAULT_REMOTE_PRIORITY,
        name: Optional[str] = None,
        format: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout: float = 10.0,
        registry: Optional[DecoderRegistry] = None,
        client: Optional[httpx.Client] = None,
    ):
        super().__init__(name or f"http:{url}", priority)
        self.url = url
        registry = registry or default_registry
        if format:
            self.decoder = registry.for_extension(format)
        else:
            self.decoder = registry.for_extension(PurePosixPath(httpx.URL(url).path).suffix)
        self._client = client or httpx.Client(headers=dict(headers or {}), timeout=timeout)

    def load(self) -> Dict[str, Any]:
        resp = self._client.get(self.url)
        resp.raise_for_status()
        try:
            decoded = self.decoder.decode(resp.content)
        except DecodeError as e:
            raise DecodeError(f"decode {self.url}: {e}") from e
        return flatten(decoded)

    def close(self) -> None:
        self._client.close()

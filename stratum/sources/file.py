"""Single-file configuration source."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional, Union

from ..core.errors import DecodeError
from ..core.merge import flatten
from ..core.source import DEFAULT_FILE_PRIORITY, BaseSource
from .decoders import Decoder, DecoderRegistry, default_registry


class FileSource(BaseSource):
    """Reads one file, decodes it by extension and flattens the result.

    The file itself is the source's only watch path.
    """

    def __init__(
        self,
        path: Union[str, Path],
        priority: int = DEFAULT_FILE_PRIORITY,
        name: Optional[str] = None,
        decoder: Optional[Decoder] = None,
        registry: Optional[DecoderRegistry] = None,
    ):
        self.path = Path(path)
        super().__init__(name or f"file:{path}", priority, [str(self.path)])
        self.decoder = decoder or (registry or default_registry).for_path(self.path)

    def load(self) -> Dict[str, Any]:
        raw = self.path.read_bytes()
        try:
            decoded = self.decoder.decode(raw)
        except DecodeError as e:
            raise DecodeError(f"decode file {self.path}: {e}") from e
        return flatten(decoded)

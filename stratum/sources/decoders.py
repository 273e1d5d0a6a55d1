"""Decoders turning raw file bytes into nested mappings, keyed by extension."""

from __future__ import annotations

import configparser
import json
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple, Union

import yaml

from ..core.errors import DecodeError


class Decoder(Protocol):
    """Decodes bytes into a nested mapping."""

    extensions: Sequence[str]

    def decode(self, raw: bytes) -> Dict[str, Any]:
        ...


def _require_mapping(data: Any, fmt: str) -> Dict[str, Any]:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise DecodeError(f"{fmt} document root must be a mapping, got {type(data).__name__}")
    return data


class JsonDecoder:
    extensions = (".json",)

    def decode(self, raw: bytes) -> Dict[str, Any]:
        if not raw.strip():
            return {}
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise DecodeError(f"invalid JSON: {e}") from e
        return _require_mapping(data, "JSON")


class YamlDecoder:
    extensions = (".yaml", ".yml")

    def decode(self, raw: bytes) -> Dict[str, Any]:
        try:
            data = yaml.safe_load(raw)
        except yaml.YAMLError as e:
            raise DecodeError(f"invalid YAML: {e}") from e
        return _require_mapping(data, "YAML")


class IniDecoder:
    """INI files; each section becomes the first key segment.

    Keys from the ``DEFAULT`` section are inherited by every section, as
    configparser does, and are not emitted on their own.
    """

    extensions = (".ini", ".cfg")

    def decode(self, raw: bytes) -> Dict[str, Any]:
        parser = configparser.ConfigParser()
        try:
            parser.read_string(raw.decode("utf-8"))
        except (configparser.Error, UnicodeDecodeError) as e:
            raise DecodeError(f"invalid INI: {e}") from e
        nested: Dict[str, Any] = {}
        for section in parser.sections():
            nested[section] = dict(parser.items(section))
        return nested


_DOTENV_LINE = re.compile(r"^(?:export\s+)?([A-Za-z_][A-Za-z0-9_]*)\s*=\s*(.*)$")
_BRACED_VAR = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")
_SIMPLE_VAR = re.compile(r"\$([A-Za-z_][A-Za-z0-9_]*)")


class DotEnvDecoder:
    """``KEY=VALUE`` files with comments, quoting and ``${VAR}`` expansion.

    Variables expand from earlier lines of the same file first, then from
    the process environment. Keys are kept verbatim.
    """

    extensions = (".env",)

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self._environ = environ

    def decode(self, raw: bytes) -> Dict[str, Any]:
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"invalid dotenv encoding: {e}") from e
        values: Dict[str, str] = {}
        for line in text.splitlines():
            parsed = self._parse_line(line, values)
            if parsed:
                key, value = parsed
                values[key] = value
        return dict(values)

    def _parse_line(self, line: str, seen: Mapping[str, str]) -> Optional[Tuple[str, str]]:
        line = line.strip()
        if not line or line.startswith("#"):
            return None
        match = _DOTENV_LINE.match(line)
        if not match:
            return None
        key, value = match.groups()
        if len(value) >= 2 and value[0] == value[-1] == '"':
            value = (
                value[1:-1]
                .replace('\\"', '"')
                .replace("\\n", "\n")
                .replace("\\r", "\r")
                .replace("\\t", "\t")
            )
        elif len(value) >= 2 and value[0] == value[-1] == "'":
            # single quotes are literal
            return key, value[1:-1]
        else:
            value = value.split(" #", 1)[0].rstrip()
        return key, self._expand(value, seen)

    def _expand(self, value: str, seen: Mapping[str, str]) -> str:
        environ = os.environ if self._environ is None else self._environ

        def lookup(match: "re.Match[str]") -> str:
            name = match.group(1)
            return seen.get(name, environ.get(name, ""))

        value = _BRACED_VAR.sub(lookup, value)
        return _SIMPLE_VAR.sub(lookup, value)


class DecoderRegistry:
    """Maps file extensions to decoders.

    Later registrations win for an extension. Unknown extensions fall back
    to JSON.
    """

    def __init__(self, decoders: Optional[List[Decoder]] = None):
        self._by_ext: Dict[str, Decoder] = {}
        for decoder in decoders if decoders is not None else _default_decoders():
            self.register(decoder)

    def register(self, decoder: Decoder) -> None:
        for ext in decoder.extensions:
            self._by_ext[ext.lower()] = decoder

    def for_extension(self, ext: str) -> Decoder:
        ext = ext.lower()
        if ext and not ext.startswith("."):
            ext = f".{ext}"
        return self._by_ext.get(ext) or self._by_ext.get(".json") or JsonDecoder()

    def for_path(self, path: Union[str, Path]) -> Decoder:
        p = Path(path)
        # dotfiles such as ".env" have no suffix
        ext = p.suffix or (p.name if p.name.startswith(".") else "")
        return self.for_extension(ext)

    def extensions(self) -> List[str]:
        return sorted(self._by_ext)


def _default_decoders() -> List[Decoder]:
    return [JsonDecoder(), YamlDecoder(), IniDecoder(), DotEnvDecoder()]


default_registry = DecoderRegistry()


def register_decoder(decoder: Decoder) -> None:
    """Register a decoder on the shared default registry."""
    default_registry.register(decoder)

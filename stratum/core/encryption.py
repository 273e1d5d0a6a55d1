"""Authenticated encryption of configuration values.

Values are AES-256-GCM encrypted with a key derived by SHA-256 from a
passphrase. The wire form is base64(nonce || ciphertext || tag) using the
standard alphabet, carried behind a marker prefix (``ENC:`` by default).
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import os
from typing import Any, Dict, Mapping, Protocol

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .errors import DecryptionError

DEFAULT_PREFIX = "ENC:"
NONCE_SIZE = 12


class Encryptor(Protocol):
    def encrypt(self, value: str) -> str:
        ...

    def decrypt(self, encrypted: str) -> str:
        ...


class AESEncryptor:
    """AES-GCM encryptor keyed by a passphrase."""

    def __init__(self, passphrase: str):
        if not passphrase:
            raise ValueError("encryption passphrase must not be empty")
        key = hashlib.sha256(passphrase.encode("utf-8")).digest()
        self._aead = AESGCM(key)

    def encrypt(self, value: str) -> str:
        nonce = os.urandom(NONCE_SIZE)
        sealed = self._aead.encrypt(nonce, value.encode("utf-8"), None)
        return base64.b64encode(nonce + sealed).decode("ascii")

    def decrypt(self, encrypted: str) -> str:
        try:
            data = base64.b64decode(encrypted, validate=True)
        except (binascii.Error, ValueError) as e:
            raise DecryptionError(f"decoding base64: {e}") from e
        if len(data) < NONCE_SIZE:
            raise DecryptionError("ciphertext too short")
        nonce, sealed = data[:NONCE_SIZE], data[NONCE_SIZE:]
        try:
            plaintext = self._aead.decrypt(nonce, sealed, None)
        except InvalidTag as e:
            raise DecryptionError("decrypting ciphertext: authentication failed") from e
        return plaintext.decode("utf-8")


class EncryptionProcessor:
    """Decrypts every marker-prefixed string in a key space.

    Strings without the marker pass through unchanged; nested mappings and
    lists are walked recursively.
    """

    def __init__(self, encryptor: Encryptor, prefix: str = DEFAULT_PREFIX):
        self.encryptor = encryptor
        self.prefix = prefix

    def encrypt_value(self, plaintext: str) -> str:
        """Return ``plaintext`` in its marker-prefixed encrypted form."""
        return f"{self.prefix}{self.encryptor.encrypt(plaintext)}"

    def process(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        for key, value in data.items():
            try:
                result[key] = self._process_value(value)
            except DecryptionError as e:
                raise DecryptionError(f"processing key {key!r}: {e}") from e
        return result

    def _process_value(self, value: Any) -> Any:
        if isinstance(value, str):
            if value.startswith(self.prefix):
                return self.encryptor.decrypt(value[len(self.prefix):])
            return value
        if isinstance(value, dict):
            return {k: self._process_value(v) for k, v in value.items()}
        if isinstance(value, list):
            return [self._process_value(v) for v in value]
        return value

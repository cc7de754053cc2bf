from __future__ import annotations

import base64
import binascii
import os
from dataclasses import dataclass
from typing import Protocol

from services.vault.app.errors import KeyConfigError

KEY_SIZE = 32


@dataclass(frozen=True)
class KeyContext:
    # Caller/session the key is requested for. Unused by the static provider.
    subject: str | None = None


class KeyProvider(Protocol):
    def get_key(self, context: KeyContext | None = None) -> bytes: ...


class StaticKeyProvider:
    """
    Serves one process-wide key supplied by configuration.

    Stand-in until keys are derived per user from a master passphrase; such a
    provider only has to implement `get_key` with the same signature.
    """

    def __init__(self, key: bytes):
        if len(key) != KEY_SIZE:
            raise KeyConfigError(f"encryption key must be {KEY_SIZE} bytes, got {len(key)}")
        self._key = key

    @classmethod
    def from_encoded(cls, encoded: str) -> StaticKeyProvider:
        try:
            key = base64.urlsafe_b64decode(encoded.encode("ascii"))
        except (binascii.Error, UnicodeEncodeError, ValueError) as e:
            raise KeyConfigError("encryption key is not valid urlsafe base64") from e
        return cls(key)

    def get_key(self, context: KeyContext | None = None) -> bytes:
        return self._key


def new_encoded_key() -> str:
    """Random key in the format accepted by `StaticKeyProvider.from_encoded` (for ENCRYPTION_KEY)."""
    return base64.urlsafe_b64encode(os.urandom(KEY_SIZE)).decode("ascii")

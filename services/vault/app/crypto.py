from __future__ import annotations

import base64
import binascii
import hashlib
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from services.vault.app.errors import DecryptionError, KeyConfigError
from services.vault.app.keys import KEY_SIZE, KeyContext, KeyProvider


NONCE_SIZE = 12  # 96-bit nonce for AES-GCM
TAG_SIZE = 16
ENVELOPE_PREFIX = "v1."

# OpenSSL passphrase envelopes: base64("Salted__" + 8-byte salt + AES-256-CBC ciphertext).
LEGACY_PREFIX = "U2FsdGVkX1"
_LEGACY_MAGIC = b"Salted__"
_LEGACY_SALT_SIZE = 8


def _check_key(key: bytes) -> None:
    if len(key) != KEY_SIZE:
        raise KeyConfigError(f"encryption key must be {KEY_SIZE} bytes, got {len(key)}")


def encrypt(plaintext: str, key: bytes) -> str:
    """
    Encrypt a secret under `key` with AES-256-GCM.

    A fresh random nonce is drawn for every call, so encrypting the same
    plaintext twice yields different envelopes. The nonce travels inside the
    envelope: "v1." + urlsafe_b64(nonce || ciphertext || tag).
    """
    _check_key(key)
    nonce = os.urandom(NONCE_SIZE)
    sealed = AESGCM(key).encrypt(nonce, plaintext.encode("utf-8"), None)
    return ENVELOPE_PREFIX + base64.urlsafe_b64encode(nonce + sealed).decode("ascii")


def decrypt(ciphertext: str, key: bytes) -> str:
    """
    Invert `encrypt`.

    Raises DecryptionError on a wrong key, an unknown envelope version, or any
    tampering/truncation; never returns partial or garbled plaintext.
    """
    _check_key(key)
    if not ciphertext.startswith(ENVELOPE_PREFIX):
        raise DecryptionError("unrecognized ciphertext envelope")
    try:
        raw = base64.urlsafe_b64decode(ciphertext[len(ENVELOPE_PREFIX) :].encode("ascii"))
    except (binascii.Error, UnicodeEncodeError, ValueError) as e:
        raise DecryptionError("ciphertext envelope is not valid base64") from e
    if len(raw) < NONCE_SIZE + TAG_SIZE:
        raise DecryptionError("ciphertext envelope is truncated")

    nonce, sealed = raw[:NONCE_SIZE], raw[NONCE_SIZE:]
    try:
        plaintext = AESGCM(key).decrypt(nonce, sealed, None)
    except InvalidTag as e:
        raise DecryptionError("ciphertext could not be authenticated under the configured key") from e
    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecryptionError("decrypted secret is not valid UTF-8") from e


def _evp_bytes_to_key(passphrase: bytes, salt: bytes, key_len: int = 32, iv_len: int = 16) -> tuple[bytes, bytes]:
    # OpenSSL EVP_BytesToKey with MD5 and a single iteration.
    derived = b""
    block = b""
    while len(derived) < key_len + iv_len:
        block = hashlib.md5(block + passphrase + salt).digest()
        derived += block
    return derived[:key_len], derived[key_len : key_len + iv_len]


def decrypt_legacy(ciphertext: str, passphrase: str) -> str:
    """
    Read a secret written by the previous storage format (OpenSSL-compatible
    passphrase envelope, AES-256-CBC with PKCS#7 padding).

    CBC has no authentication tag, so a wrong passphrase is detected through
    the padding and UTF-8 checks only.
    """
    try:
        raw = base64.b64decode(ciphertext.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError, ValueError) as e:
        raise DecryptionError("legacy envelope is not valid base64") from e
    header = len(_LEGACY_MAGIC) + _LEGACY_SALT_SIZE
    body = raw[header:]
    if not raw.startswith(_LEGACY_MAGIC) or not body or len(body) % 16:
        raise DecryptionError("legacy envelope is malformed")

    salt = raw[len(_LEGACY_MAGIC) : header]
    key, iv = _evp_bytes_to_key(passphrase.encode("utf-8"), salt)
    decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
    unpadder = padding.PKCS7(128).unpadder()
    try:
        padded = decryptor.update(body) + decryptor.finalize()
        plaintext = unpadder.update(padded) + unpadder.finalize()
        return plaintext.decode("utf-8")
    except (ValueError, UnicodeDecodeError) as e:
        raise DecryptionError("legacy envelope could not be decrypted with the configured passphrase") from e


class PasswordCipher:
    """Encrypts and decrypts record secrets with the key served by a KeyProvider."""

    def __init__(self, key_provider: KeyProvider, legacy_passphrase: str | None = None):
        self._keys = key_provider
        self._legacy_passphrase = legacy_passphrase

    def encrypt(self, plaintext: str, context: KeyContext | None = None) -> str:
        return encrypt(plaintext, self._keys.get_key(context))

    def decrypt(self, ciphertext: str, context: KeyContext | None = None) -> str:
        if ciphertext.startswith(LEGACY_PREFIX):
            if self._legacy_passphrase is None:
                raise DecryptionError("legacy envelope found but no legacy passphrase is configured")
            return decrypt_legacy(ciphertext, self._legacy_passphrase)
        return decrypt(ciphertext, self._keys.get_key(context))

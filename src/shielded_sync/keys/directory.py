"""Storage-key directory — per-wallet storage-key suffixes across three generations.

Every persisted value is stored under ``<kind prefix><suffix>`` where the
suffix identifies the wallet. Three suffix generations exist:

- ``LEGACY``: ``<program prefix><wallet base58>`` (exposes the wallet).
- ``HASHED``: ``<program prefix>base64url(SHA256(wallet))``.
- ``ENCRYPTED``: ``<program prefix>base64url(iv || AES-GCM(wallet))`` with
  ``iv = SHA256(wallet)[:12]``. The IV is derived from the plaintext, so a
  given wallet and session key always map to the same suffix.

The current generation is ``ENCRYPTED`` when a session key is supplied,
``HASHED`` otherwise.
"""

from __future__ import annotations

import binascii
import enum
from base64 import b64decode
from typing import TYPE_CHECKING

from cryptography.exceptions import InvalidTag

from shielded_sync.errors.sync_errors import EncryptionError
from shielded_sync.utils.crypto import (
    NONCE_SIZE,
    aesgcm_decrypt,
    aesgcm_encrypt,
    b64url_decode,
    b64url_encode,
    sha256,
)

if TYPE_CHECKING:
    from shielded_sync.ledger.keys import WalletIdentity

PROGRAM_PREFIX_LENGTH = 6
_AES_KEY_LENGTHS = (16, 24, 32)


class Generation(enum.StrEnum):
    """Storage-key suffix generations, oldest first."""

    LEGACY = "legacy"
    HASHED = "hashed"
    ENCRYPTED = "encrypted"


def _decode_session_key(session_key: str) -> bytes:
    """Decode a base64 session key into raw AES key bytes.

    Raises:
        EncryptionError: If the key is not base64 or has an invalid AES length.
    """
    try:
        key = b64decode(session_key, validate=True)
    except (binascii.Error, ValueError) as exc:
        msg = "Session encryption key is not valid base64"
        raise EncryptionError(msg) from exc
    if len(key) not in _AES_KEY_LENGTHS:
        msg = f"Session encryption key must be 16, 24 or 32 bytes, got {len(key)}"
        raise EncryptionError(msg)
    return key


class StorageKeyDirectory:
    """Derives and memoizes storage-key suffixes for wallets.

    Two memo tables are kept for the lifetime of the directory: hashed
    suffix bodies keyed by wallet string, and encrypted suffix bodies keyed
    by ``(wallet string, session key)``. Neither is ever evicted.
    """

    def __init__(self, program_id: str) -> None:
        self._prefix = program_id[:PROGRAM_PREFIX_LENGTH]
        self._hash_cache: dict[str, str] = {}
        self._encryption_cache: dict[tuple[str, str], str] = {}

    @property
    def program_prefix(self) -> str:
        """First characters of the program id, shared by every suffix."""
        return self._prefix

    # ------------------------------------------------------------------
    # Generations
    # ------------------------------------------------------------------

    def legacy_suffix(self, wallet: WalletIdentity) -> str:
        return self._prefix + str(wallet)

    def hashed_suffix(self, wallet: WalletIdentity) -> str:
        wallet_str = str(wallet)
        body = self._hash_cache.get(wallet_str)
        if body is None:
            body = b64url_encode(sha256(wallet_str.encode("utf-8")))
            self._hash_cache[wallet_str] = body
        return self._prefix + body

    def encrypted_suffix(self, wallet: WalletIdentity, session_key: str) -> str:
        """Encrypted suffix for *wallet* under *session_key*.

        Raises:
            EncryptionError: If *session_key* is malformed.
        """
        wallet_str = str(wallet)
        cache_key = (wallet_str, session_key)
        body = self._encryption_cache.get(cache_key)
        if body is None:
            key = _decode_session_key(session_key)
            plaintext = wallet_str.encode("utf-8")
            iv = sha256(plaintext)[:NONCE_SIZE]
            body = b64url_encode(aesgcm_encrypt(key, iv, plaintext))
            self._encryption_cache[cache_key] = body
        return self._prefix + body

    def suffix(
        self,
        generation: Generation,
        wallet: WalletIdentity,
        session_key: str | None = None,
    ) -> str:
        """Suffix of the requested *generation*.

        ``ENCRYPTED`` without a session key falls back to ``HASHED``.
        """
        if generation == Generation.LEGACY:
            return self.legacy_suffix(wallet)
        if generation == Generation.ENCRYPTED and session_key:
            return self.encrypted_suffix(wallet, session_key)
        return self.hashed_suffix(wallet)

    def current_suffix(self, wallet: WalletIdentity, session_key: str | None = None) -> str:
        """Suffix new data is written under: encrypted if a key is given, else hashed."""
        return self.suffix(Generation.ENCRYPTED, wallet, session_key)

    # ------------------------------------------------------------------
    # Reverse lookup
    # ------------------------------------------------------------------

    def decrypt_suffix(self, suffix: str, session_key: str) -> str:
        """Recover the wallet string from an encrypted suffix.

        Accepts the suffix with or without the program prefix.

        Raises:
            EncryptionError: If the key is malformed or the suffix does not
                decrypt under it.
        """
        body = suffix[len(self._prefix) :] if suffix.startswith(self._prefix) else suffix
        key = _decode_session_key(session_key)
        try:
            plaintext = aesgcm_decrypt(key, b64url_decode(body))
        except (InvalidTag, ValueError, binascii.Error) as exc:
            msg = "Failed to decrypt storage key name"
            raise EncryptionError(msg) from exc
        return plaintext.decode("utf-8")

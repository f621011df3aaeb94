"""Ledger public keys — Base58 encoding and the wallet identity type.

Ledger accounts and wallets are identified by 32-byte ed25519 public keys
whose canonical text form is plain Base58 (no checksum, no version byte).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Self

PUBLIC_KEY_LENGTH = 32

_B58_ALPHABET = b"123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"


def base58_encode(payload: bytes) -> str:
    """Encode raw bytes to Base58 (no checksum)."""
    n = int.from_bytes(payload, "big")
    result: list[int] = []
    while n > 0:
        n, remainder = divmod(n, 58)
        result.append(_B58_ALPHABET[remainder])
    # Preserve leading zero bytes
    for byte in payload:
        if byte == 0:
            result.append(_B58_ALPHABET[0])
        else:
            break
    return bytes(reversed(result)).decode("ascii")


def base58_decode(s: str) -> bytes:
    """Decode Base58 string to raw bytes (no checksum).

    Raises:
        ValueError: If *s* contains a character outside the Base58 alphabet.
    """
    n = 0
    for char in s:
        try:
            n = n * 58 + _B58_ALPHABET.index(char.encode("ascii"))
        except (ValueError, UnicodeEncodeError) as exc:
            msg = f"Invalid Base58 character: {char!r}"
            raise ValueError(msg) from exc
    result = n.to_bytes((n.bit_length() + 7) // 8, "big") if n > 0 else b""
    # Preserve leading '1' chars as 0x00 bytes
    pad_count = 0
    for char in s:
        if char == "1":
            pad_count += 1
        else:
            break
    return b"\x00" * pad_count + result


@dataclass(frozen=True)
class PublicKey:
    """A 32-byte ledger public key (wallet identity or account address).

    ``str(key)`` is the canonical Base58 form used in storage-key names.
    """

    raw: bytes

    def __post_init__(self) -> None:
        if len(self.raw) != PUBLIC_KEY_LENGTH:
            msg = f"Public key must be {PUBLIC_KEY_LENGTH} bytes, got {len(self.raw)}"
            raise ValueError(msg)

    @classmethod
    def from_string(cls, text: str) -> Self:
        """Parse a Base58 public key string.

        Raises:
            ValueError: If the text is not Base58 or does not decode to 32 bytes.
        """
        return cls(base58_decode(text))

    def __str__(self) -> str:
        return base58_encode(self.raw)

    def __bytes__(self) -> bytes:
        return self.raw


# Wallet identities are plain public keys; the alias names the role.
WalletIdentity = PublicKey

"""Cryptographic helpers — hashing, base64url, deterministic AES-GCM."""

from __future__ import annotations

import base64
import hashlib

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

# AES-GCM nonce length (96 bits)
NONCE_SIZE = 12


def sha256(data: bytes) -> bytes:
    """Single SHA-256 hash."""
    return hashlib.sha256(data).digest()


def b64url_encode(data: bytes) -> str:
    """URL-safe base64 without ``=`` padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(text: str) -> bytes:
    """Inverse of :func:`b64url_encode`; tolerates missing padding."""
    padded = text + "=" * (-len(text) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii"))


def aesgcm_encrypt(key: bytes, nonce: bytes, plaintext: bytes) -> bytes:
    """Encrypt with AES-GCM and return ``nonce || ciphertext || tag``.

    The caller chooses the nonce. Storage-key encryption derives it from the
    plaintext so that equal inputs map to equal outputs.
    """
    return nonce + AESGCM(key).encrypt(nonce, plaintext, None)


def aesgcm_decrypt(key: bytes, blob: bytes) -> bytes:
    """Decrypt a ``nonce || ciphertext || tag`` blob produced by :func:`aesgcm_encrypt`.

    Raises:
        ValueError: If the blob is shorter than a nonce.
        cryptography.exceptions.InvalidTag: If authentication fails.
    """
    if len(blob) < NONCE_SIZE:
        msg = "Invalid encrypted blob: shorter than nonce"
        raise ValueError(msg)
    return AESGCM(key).decrypt(blob[:NONCE_SIZE], blob[NONCE_SIZE:], None)

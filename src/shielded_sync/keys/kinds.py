"""Persisted data kinds and their value formats.

Each kind is stored under ``<prefix><storage-key suffix>``. The prefixes are
the historical key names, kept so existing caches stay readable.

- ``FETCH_OFFSET``: decimal integer, how far the feed has been scanned.
- ``CIPHERTEXT_CACHE``: JSON array of ciphertexts known to be ours.
- ``RECENT_ACTIVITY``: comma-joined ledger indices, largest first, at most 20.
"""

from __future__ import annotations

import enum
import json
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

RECENT_ACTIVITY_LIMIT = 20


class DataKind(enum.StrEnum):
    """Per-wallet values tracked in persistent storage."""

    FETCH_OFFSET = "fetch_offset"
    CIPHERTEXT_CACHE = "encrypted_outputs"
    RECENT_ACTIVITY = "tradeHistory"

    def key(self, suffix: str) -> str:
        """Full storage key of this kind for a wallet suffix."""
        return self.value + suffix


# -- fetch offset ------------------------------------------------------------


def parse_offset(raw: str | None) -> int:
    """Parse a stored offset; absent or empty means 0.

    Raises:
        ValueError: If the value is not a non-negative integer.
    """
    if not raw:
        return 0
    offset = int(raw)
    if offset < 0:
        msg = f"Negative fetch offset: {offset}"
        raise ValueError(msg)
    return offset


# -- ciphertext cache ----------------------------------------------------------


def parse_ciphertexts(raw: str | None) -> list[str]:
    """Parse a stored ciphertext cache.

    Raises:
        ValueError: If the value is not a JSON array of strings.
    """
    if not raw:
        return []
    data = json.loads(raw)
    if not isinstance(data, list) or not all(isinstance(item, str) for item in data):
        msg = "Ciphertext cache is not a JSON array of strings"
        raise ValueError(msg)
    return data


def dump_ciphertexts(ciphertexts: Iterable[str]) -> str:
    """Serialize ciphertexts, dropping duplicates but keeping first-seen order."""
    return json.dumps(list(dict.fromkeys(ciphertexts)))


# -- recent activity -----------------------------------------------------------


def parse_index_set(raw: str | None) -> list[int]:
    """Parse a comma-joined index set.

    Raises:
        ValueError: If any entry is not an integer.
    """
    if not raw:
        return []
    return [int(part) for part in raw.split(",")]


def top_indices(indices: Iterable[int], limit: int = RECENT_ACTIVITY_LIMIT) -> list[int]:
    """Distinct indices, largest first, truncated to *limit*."""
    return sorted(set(indices), reverse=True)[:limit]


def dump_index_set(indices: Iterable[int]) -> str:
    return ",".join(str(i) for i in indices)

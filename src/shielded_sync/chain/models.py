"""Indexer and ledger data models — pages of ciphertexts, account records.

Data classes representing remote API objects.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from shielded_sync.errors.sync_errors import ProtocolError

# ---------------------------------------------------------------------------
# Indexer range page
# ---------------------------------------------------------------------------


@dataclass
class IndexerPage:
    """One page of the indexer's linear ciphertext feed.

    Attributes:
        ciphertexts: Raw encrypted outputs in feed order.
        has_more: Whether the feed continues past this page.
        total: Total feed length reported by the indexer (0 if unknown).
    """

    ciphertexts: list[str] = field(default_factory=list)
    has_more: bool = False
    total: int = 0

    @property
    def length(self) -> int:
        """Number of raw items consumed from the feed by this page."""
        return len(self.ciphertexts)

    @classmethod
    def from_json(cls, data: Any) -> IndexerPage:
        """Parse either response form of ``/utxos/range``.

        Object form: ``{"encrypted_outputs" | "items": [...], "hasMore", "total"}``.
        Array form: ``[{"encrypted_output": ..., "index": ...}, ...]``, which
        carries no continuation flag and is treated as the final page.

        Raises:
            ProtocolError: On an empty or unrecognised payload, on badly typed
                ``hasMore`` or ``total`` fields, and when an empty page claims
                more data follows.
        """
        if not data and not isinstance(data, list):
            msg = "Indexer returned empty data"
            raise ProtocolError(msg)

        if isinstance(data, list):
            ciphertexts = [
                item["encrypted_output"]
                for item in data
                if isinstance(item, dict) and item.get("encrypted_output")
            ]
            return cls(ciphertexts=ciphertexts, has_more=False, total=len(data))

        if isinstance(data, dict):
            outputs = data.get("encrypted_outputs", data.get("items"))
            if isinstance(outputs, list):
                page = cls(
                    ciphertexts=[_item_ciphertext(item) for item in outputs],
                    has_more=_flag(data.get("hasMore", data.get("has_more", False))),
                    total=_count(data.get("total", data.get("count"))),
                )
                # An empty continuing page would never advance the cursor.
                if page.has_more and page.length == 0:
                    msg = "Indexer reported more data on an empty page"
                    raise ProtocolError(msg)
                return page

        snippet = repr(data)[:100]
        msg = f"Indexer returned unexpected data format: {snippet}"
        raise ProtocolError(msg)


def _flag(value: Any) -> bool:
    if value is None:
        return False
    if not isinstance(value, bool):
        msg = f"Indexer returned non-boolean hasMore: {value!r}"
        raise ProtocolError(msg)
    return value


def _count(value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        msg = f"Indexer returned invalid total: {value!r}"
        raise ProtocolError(msg)
    return value


def _item_ciphertext(item: Any) -> str:
    """Ciphertext of an object-form feed item (plain string or record)."""
    if isinstance(item, dict):
        return item.get("encrypted_output") or ""
    return item or ""


# ---------------------------------------------------------------------------
# Ledger accounts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AccountInfo:
    """An existing ledger account as returned by the RPC node."""

    lamports: int = 0
    owner: str = ""
    executable: bool = False
    data: Any = None

    @classmethod
    def from_rpc(cls, value: dict[str, Any]) -> AccountInfo:
        """Create from a JSON-RPC account ``value`` object."""
        return cls(
            lamports=int(value.get("lamports", 0)),
            owner=value.get("owner", ""),
            executable=bool(value.get("executable", False)),
            data=value.get("data"),
        )

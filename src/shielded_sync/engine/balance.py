"""Balance aggregation over unspent notes."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from shielded_sync.engine.models import Note

LAMPORTS_PER_SOL = 10**9


@dataclass(frozen=True)
class Balance:
    """A shielded balance.

    Attributes:
        lamports: Exact sum of note amounts.
    """

    lamports: int = 0

    @property
    def sol(self) -> Decimal:
        """The balance in SOL, without rounding."""
        return Decimal(self.lamports) / LAMPORTS_PER_SOL


def get_balance(notes: Iterable[Note]) -> Balance:
    """Sum the amounts of *notes*.

    Args:
        notes: Unspent notes, typically from ``get_unspent_notes``.

    Returns:
        Total lamports held by the notes.
    """
    return Balance(lamports=sum(note.amount for note in notes))

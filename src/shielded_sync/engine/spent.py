"""Spent checker — look up nullifier marker accounts on the ledger.

A note can be spent through either of two nullifier slots, so each note has
two marker addresses. The note is spent iff at least one marker account
exists. Read failures are retried under the configured
:class:`~shielded_sync.engine.retry.RetryPolicy`; with the default unbounded
policy these calls only return once the ledger answers, which can take
arbitrarily long during an outage.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from shielded_sync.engine.retry import RetryPolicy
from shielded_sync.errors.chain_errors import LedgerRPCError
from shielded_sync.errors.sync_errors import ProtocolError
from shielded_sync.ledger.address import nullifier_marker_addresses

if TYPE_CHECKING:
    from shielded_sync.chain.rpc import LedgerRPCClient
    from shielded_sync.engine.models import Note
    from shielded_sync.ledger.keys import PublicKey
    from shielded_sync.metrics.collector import SyncMetrics

logger = logging.getLogger(__name__)

_RETRYABLE = (LedgerRPCError, ProtocolError, OSError)


class SpentChecker:
    """Determines which notes have already been spent."""

    def __init__(
        self,
        rpc: LedgerRPCClient,
        program_id: PublicKey,
        *,
        retry: RetryPolicy | None = None,
        metrics: SyncMetrics | None = None,
    ) -> None:
        self._rpc = rpc
        self._program_id = program_id
        self._retry = retry or RetryPolicy()
        self._metrics = metrics

    def markers(self, note: Note) -> tuple[PublicKey, PublicKey]:
        """The two marker addresses of *note*."""
        return nullifier_marker_addresses(note.nullifier, self._program_id)

    async def check_spent(self, notes: list[Note]) -> list[bool]:
        """Spent flag per note, same order as *notes*.

        All ``2 * len(notes)`` markers are read in one batch; a failed batch
        is retried as a whole.

        Raises:
            RetryExhaustedError: Only under a bounded retry policy.
        """
        if not notes:
            return []
        addresses: list[PublicKey] = []
        for note in notes:
            addresses.extend(self.markers(note))

        accounts = await self._retry.run(
            lambda: self._rpc.get_accounts(addresses),
            operation="spent check",
            retryable=_RETRYABLE,
            on_retry=self._count_retry,
        )
        flags = [
            accounts[2 * i] is not None or accounts[2 * i + 1] is not None
            for i in range(len(notes))
        ]
        logger.debug("Spent check: %d of %d notes spent", sum(flags), len(notes))
        return flags

    async def is_spent(self, note: Note) -> bool:
        """Spent flag for a single note, querying marker A before marker B.

        Raises:
            RetryExhaustedError: Only under a bounded retry policy.
        """
        marker_a, marker_b = self.markers(note)

        async def lookup() -> bool:
            if await self._rpc.get_account(marker_a) is not None:
                logger.debug("Note is spent (marker %s exists)", marker_a)
                return True
            if await self._rpc.get_account(marker_b) is not None:
                logger.debug("Note is spent (marker %s exists)", marker_b)
                return True
            return False

        return await self._retry.run(
            lookup,
            operation="spent check",
            retryable=_RETRYABLE,
            on_retry=self._count_retry,
        )

    def _count_retry(self, attempt: int, exc: BaseException) -> None:  # noqa: ARG002
        if self._metrics is not None:
            self._metrics.record_spent_check_retry()

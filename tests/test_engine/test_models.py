"""Tests for engine data models."""

from __future__ import annotations

import dataclasses

import pytest

from shielded_sync.engine.models import DecryptResult, DecryptStatus, Note, SyncProgress


class TestNote:
    def test_index_defaults_to_none(self) -> None:
        assert Note(amount=5, nullifier=1).index is None


class TestDecryptResult:
    def test_decrypted(self) -> None:
        note = Note(1, 2)
        result = DecryptResult.decrypted(note, "ct")
        assert result.status == DecryptStatus.DECRYPTED
        assert result.note is note
        assert result.ciphertext == "ct"

    def test_skipped_and_undecryptable(self) -> None:
        assert DecryptResult.skipped().status == "skipped"
        assert DecryptResult.undecryptable().status == "undecryptable"
        assert DecryptResult.undecryptable().note is None


class TestSyncProgress:
    def test_frozen(self) -> None:
        progress = SyncProgress(wallet="w", offset=1, decrypted=1, total=2, notes_found=0)
        with pytest.raises(dataclasses.FrozenInstanceError):
            progress.offset = 5  # type: ignore[misc]

    def test_not_done_by_default(self) -> None:
        assert SyncProgress("w", 0, 0, 0, 0).done is False

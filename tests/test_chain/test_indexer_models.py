"""Tests for indexer page and ledger account models."""

from __future__ import annotations

import pytest

from shielded_sync.chain.models import AccountInfo, IndexerPage
from shielded_sync.errors.sync_errors import ProtocolError


class TestIndexerPageObjectForm:
    def test_encrypted_outputs(self) -> None:
        page = IndexerPage.from_json({"encrypted_outputs": ["a", "b"], "hasMore": True, "total": 250})
        assert page.ciphertexts == ["a", "b"]
        assert page.has_more is True
        assert page.total == 250
        assert page.length == 2

    def test_items_with_records(self) -> None:
        page = IndexerPage.from_json(
            {
                "items": [{"encrypted_output": "a", "index": 3}, {"encrypted_output": "b"}],
                "hasMore": False,
                "count": 2,
            }
        )
        assert page.ciphertexts == ["a", "b"]
        assert page.total == 2

    def test_missing_has_more_means_final(self) -> None:
        page = IndexerPage.from_json({"encrypted_outputs": ["a"]})
        assert page.has_more is False
        assert page.total == 0

    def test_empty_items_keep_position(self) -> None:
        """Empty entries still count toward the page length."""
        page = IndexerPage.from_json({"encrypted_outputs": ["a", "", None], "hasMore": True})
        assert page.ciphertexts == ["a", "", ""]
        assert page.length == 3


class TestIndexerPageArrayForm:
    def test_treated_as_final_page(self) -> None:
        page = IndexerPage.from_json([{"encrypted_output": "a"}, {"encrypted_output": "b"}])
        assert page.ciphertexts == ["a", "b"]
        assert page.has_more is False

    def test_filters_records_without_ciphertext(self) -> None:
        page = IndexerPage.from_json([{"encrypted_output": "a"}, {"index": 1}, "junk"])
        assert page.ciphertexts == ["a"]

    def test_empty_array(self) -> None:
        page = IndexerPage.from_json([])
        assert page.ciphertexts == []
        assert page.has_more is False


class TestIndexerPageErrors:
    @pytest.mark.parametrize("payload", [None, {}, "", 0])
    def test_empty_payload(self, payload) -> None:
        with pytest.raises(ProtocolError, match="empty"):
            IndexerPage.from_json(payload)

    def test_unknown_shape(self) -> None:
        with pytest.raises(ProtocolError, match="unexpected data format"):
            IndexerPage.from_json({"data": []})

    @pytest.mark.parametrize("flag", ["false", "true", 1, 0])
    def test_non_boolean_has_more(self, flag) -> None:
        with pytest.raises(ProtocolError, match="non-boolean hasMore"):
            IndexerPage.from_json({"encrypted_outputs": ["a"], "hasMore": flag})

    @pytest.mark.parametrize("total", ["n/a", "250", 2.5, True, -1])
    def test_invalid_total(self, total) -> None:
        with pytest.raises(ProtocolError, match="invalid total"):
            IndexerPage.from_json({"encrypted_outputs": ["a"], "hasMore": False, "total": total})

    def test_continuing_page_must_not_be_empty(self) -> None:
        with pytest.raises(ProtocolError, match="empty page"):
            IndexerPage.from_json({"encrypted_outputs": [], "hasMore": True, "total": 10})

    def test_empty_final_page_allowed(self) -> None:
        page = IndexerPage.from_json({"encrypted_outputs": [], "hasMore": False, "total": 10})
        assert page.length == 0
        assert page.total == 10


class TestAccountInfo:
    def test_from_rpc(self) -> None:
        info = AccountInfo.from_rpc(
            {"lamports": 890880, "owner": "11111111111111111111111111111111", "executable": False}
        )
        assert info.lamports == 890880
        assert info.owner == "11111111111111111111111111111111"
        assert info.executable is False

    def test_defaults(self) -> None:
        assert AccountInfo.from_rpc({}) == AccountInfo()

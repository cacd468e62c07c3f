"""Tests for ozdocs.query.search: FTS query building and ranked search."""

from __future__ import annotations

import sqlite3
from typing import TYPE_CHECKING

import pytest

from ozdocs.query.search import search_docs, search_members, to_fts_query

if TYPE_CHECKING:
    from pathlib import Path


class TestToFtsQuery:
    def test_terms_are_quoted_prefixes(self) -> None:
        assert to_fts_query("access control") == '"access"* "control"*'

    def test_operators_are_literal(self) -> None:
        assert to_fts_query("ERC20 OR NOT") == '"ERC20"* "OR"* "NOT"*'

    def test_embedded_quotes_are_doubled(self) -> None:
        assert to_fts_query('say "hi"') == '"say"* """hi"""*'

    def test_blank_query(self) -> None:
        assert to_fts_query("   ") == ""


class TestSearchDocs:
    def test_hit_has_highlighted_snippet(self, conn: sqlite3.Connection) -> None:
        hits = search_docs(conn, "decimals")
        assert len(hits) == 1
        hit = hits[0]
        assert hit.title == "A Note on decimals"
        assert hit.module == "ERC20"
        assert hit.version == "5.x"
        assert "**decimals**" in hit.snippet
        assert hit.score > 0
        assert hit.source_url == "https://docs.openzeppelin.com/contracts/5.x/erc20"

    def test_prefix_matching(self, conn: sqlite3.Connection) -> None:
        titles = [h.title for h in search_docs(conn, "decim")]
        assert titles == ["A Note on decimals"]

    def test_version_filter(self, conn: sqlite3.Connection) -> None:
        assert search_docs(conn, "hooks") == []
        legacy = search_docs(conn, "hooks", version="4.x")
        assert [h.title for h in legacy] == ["Legacy ERC-20"]
        assert len(search_docs(conn, "hooks", version="all")) == 1

    def test_category_filter(self, conn: sqlite3.Connection) -> None:
        hits = search_docs(conn, "signature", category="utils")
        assert [h.title for h in hits] == ["Signatures"]
        assert search_docs(conn, "signature", category="token") == []

    def test_custom_highlight_markers(self, conn: sqlite3.Connection) -> None:
        hits = search_docs(conn, "decimals", highlight=("<b>", "</b>"))
        assert "<b>decimals</b>" in hits[0].snippet

    def test_results_are_ranked_and_limited(self, conn: sqlite3.Connection) -> None:
        hits = search_docs(conn, "token", version="all", limit=10)
        scores = [h.score for h in hits]
        assert scores == sorted(scores, reverse=True)
        assert len(search_docs(conn, "token", version="all", limit=1)) == 1

    def test_empty_query_and_zero_limit(self, conn: sqlite3.Connection) -> None:
        assert search_docs(conn, "") == []
        assert search_docs(conn, "decimals", limit=0) == []

    @pytest.mark.parametrize(
        "query", ['"', 'say "hi"', "(", "*", "NEAR(", "a OR", "-x", "col:term"]
    )
    def test_fts_syntax_never_raises(self, conn: sqlite3.Connection, query: str) -> None:
        assert isinstance(search_docs(conn, query), list)
        assert isinstance(search_members(conn, query), list)

    def test_missing_tables_yield_no_results(self, tmp_path: Path) -> None:
        empty = sqlite3.connect(str(tmp_path / "empty.db"))
        try:
            assert search_docs(empty, "anything") == []
            assert search_members(empty, "anything") == []
        finally:
            empty.close()


class TestSearchMembers:
    def test_overloads_are_all_found(self, conn: sqlite3.Connection) -> None:
        members = search_members(conn, "recover")
        assert [m.contract for m in members] == ["ECDSA", "ECDSA"]
        assert {len(m.params) for m in members} == {2, 4}

    def test_version_filter(self, conn: sqlite3.Connection) -> None:
        assert search_members(conn, "renounceOwnership") == []
        legacy = search_members(conn, "renounceOwnership", version="4.x")
        assert [m.name for m in legacy] == ["renounceOwnership"]

    def test_mocks_are_not_indexed(self, conn: sqlite3.Connection) -> None:
        assert search_members(conn, "mint", version="all") == []

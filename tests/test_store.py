"""Tests for ozdocs.infrastructure.db and store: schema, FTS sync, transactions."""

from __future__ import annotations

import sqlite3
from typing import TYPE_CHECKING

import pytest

from ozdocs.infrastructure.db import (
    create_schema,
    get_meta,
    open_db,
    open_readonly,
    set_meta,
    table_counts,
)
from ozdocs.infrastructure.store import insert_chunks, insert_contracts, resolve_inheritdoc
from ozdocs.models import (
    CONTRACT_KINDS,
    MEMBER_KINDS,
    MUTABILITIES,
    SOURCE_KINDS,
    VISIBILITIES,
    ContentChunk,
    ContractEntity,
    MemberEntity,
    ParamInfo,
)

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


@pytest.fixture()
def db(tmp_path: Path) -> Iterator[sqlite3.Connection]:
    conn = open_db(tmp_path / "test.db")
    create_schema(conn)
    yield conn
    conn.close()


def _chunk(title: str, content: str, **overrides: str) -> ContentChunk:
    fields = {
        "title": title,
        "content": content,
        "category": "token",
        "module": "ERC20",
        "version": "5.x",
    }
    fields.update(overrides)
    return ContentChunk(**fields)


def _contract(name: str, *members: MemberEntity, version: str = "5.x") -> ContractEntity:
    contract = ContractEntity(name=name, kind="contract", category="token", version=version)
    for member in members:
        contract.add_member(member)
    return contract


def _fn(name: str, **kwargs: str | None) -> MemberEntity:
    return MemberEntity(
        name=name,
        kind="function",
        signature=f"function {name}() public",
        visibility="public",
        mutability="",
        **kwargs,
    )


def _fts_ids(conn: sqlite3.Connection, table: str, query: str) -> list[int]:
    rows = conn.execute(f"SELECT rowid FROM {table} WHERE {table} MATCH ?", (query,)).fetchall()
    return [r[0] for r in rows]


class TestSchema:
    def test_create_schema_is_idempotent(self, db: sqlite3.Connection) -> None:
        create_schema(db)
        assert table_counts(db) == {"chunks": 0, "contracts": 0, "members": 0}

    def test_meta_roundtrip(self, db: sqlite3.Connection) -> None:
        assert get_meta(db, "built_at") is None
        assert get_meta(db, "built_at", "never") == "never"
        set_meta(db, "built_at", "2026-01-01")
        set_meta(db, "built_at", "2026-01-02")
        assert get_meta(db, "built_at") == "2026-01-02"

    def test_foreign_keys_enabled(self, db: sqlite3.Connection) -> None:
        assert db.execute("PRAGMA foreign_keys").fetchone()[0] == 1

    def test_open_readonly_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(sqlite3.OperationalError):
            open_readonly(tmp_path / "missing.db")

    def test_readonly_rejects_writes(self, tmp_path: Path) -> None:
        conn = open_db(tmp_path / "ro.db")
        create_schema(conn)
        conn.close()
        ro = open_readonly(tmp_path / "ro.db")
        try:
            with pytest.raises(sqlite3.OperationalError):
                ro.execute("INSERT INTO meta (key, value) VALUES ('a', 'b')")
        finally:
            ro.close()


class TestVocabularies:
    def test_schema_accepts_every_model_value(self, db: sqlite3.Connection) -> None:
        for kind in SOURCE_KINDS:
            insert_chunks(db, [_chunk(kind, "text", source_kind=kind)])
        for kind in CONTRACT_KINDS:
            contract = ContractEntity(name=kind, kind=kind, category="token", version="5.x")
            for member_kind in MEMBER_KINDS:
                contract.add_member(MemberEntity(name="m", kind=member_kind, signature="m()"))
            insert_contracts(db, [contract])
        for visibility in VISIBILITIES:
            for mutability in MUTABILITIES:
                member = _fn("f")
                member.visibility = visibility
                member.mutability = mutability
                insert_contracts(db, [_contract("V", member)])

        counts = table_counts(db)
        assert counts["chunks"] == len(SOURCE_KINDS)
        assert counts["contracts"] == len(CONTRACT_KINDS) + len(VISIBILITIES) * len(MUTABILITIES)

    def test_schema_rejects_unknown_visibility(self, db: sqlite3.Connection) -> None:
        member = _fn("f")
        member.visibility = "protected"
        with pytest.raises(sqlite3.IntegrityError):
            insert_contracts(db, [_contract("V", member)])


class TestInsertChunks:
    def test_inserted_chunks_are_searchable(self, db: sqlite3.Connection) -> None:
        count = insert_chunks(db, [_chunk("Allowance", "approve spending by a third party")])
        assert count == 1
        assert _fts_ids(db, "chunks_fts", "approve") == [1]

    def test_failure_rolls_back_whole_document(self, db: sqlite3.Connection) -> None:
        chunks = [
            _chunk("Good", "valid chunk"),
            _chunk("Bad", "invalid kind", source_kind="tutorial"),
        ]
        with pytest.raises(sqlite3.IntegrityError):
            insert_chunks(db, chunks)
        assert table_counts(db)["chunks"] == 0
        assert _fts_ids(db, "chunks_fts", "valid") == []

    def test_update_and_delete_keep_fts_in_sync(self, db: sqlite3.Connection) -> None:
        insert_chunks(db, [_chunk("Hooks", "transfer hooks")])
        db.execute("UPDATE chunks SET content = 'update callbacks' WHERE id = 1")
        assert _fts_ids(db, "chunks_fts", "hooks") == [1]  # title still matches
        assert _fts_ids(db, "chunks_fts", "transfer") == []
        assert _fts_ids(db, "chunks_fts", "callbacks") == [1]
        db.execute("DELETE FROM chunks WHERE id = 1")
        assert _fts_ids(db, "chunks_fts", "callbacks") == []


class TestInsertContracts:
    def test_members_and_params_are_stored(self, db: sqlite3.Connection) -> None:
        member = _fn("mint", notice="Creates tokens")
        member.params.append(ParamInfo("to", "address", "Receiver"))
        contracts, members = insert_contracts(db, [_contract("Token", member)])
        assert (contracts, members) == (1, 1)
        row = db.execute("SELECT params, returns FROM members").fetchone()
        assert row["params"] == '[{"name": "to", "type": "address", "description": "Receiver"}]'
        assert row["returns"] == "[]"
        assert _fts_ids(db, "members_fts", "creates") == [1]

    def test_extra_chunks_share_the_transaction(self, db: sqlite3.Connection) -> None:
        derived = _chunk("Token", "derived", source_kind="natspec-derived")
        insert_contracts(db, [_contract("Token")], [derived])
        assert table_counts(db) == {"chunks": 1, "contracts": 1, "members": 0}

    def test_failure_rolls_back_file(self, db: sqlite3.Connection) -> None:
        bad = _contract("Bad")
        bad.functions.append(MemberEntity(name="x", kind="variable", signature="x"))
        with pytest.raises(sqlite3.IntegrityError):
            insert_contracts(db, [_contract("Good", _fn("ok")), bad])
        assert table_counts(db) == {"chunks": 0, "contracts": 0, "members": 0}

    def test_deleting_contract_cascades(self, db: sqlite3.Connection) -> None:
        insert_contracts(db, [_contract("Token", _fn("burn", notice="Destroys tokens"))])
        db.execute("DELETE FROM contracts")
        assert table_counts(db)["members"] == 0
        assert _fts_ids(db, "members_fts", "destroys") == []


class TestResolveInheritdoc:
    def test_copies_documentation_from_target(self, db: sqlite3.Connection) -> None:
        insert_contracts(
            db,
            [
                _contract("IToken", _fn("supply", notice="Total tokens", dev="Never decreases")),
                _contract("Token", _fn("supply", inheritdoc="IToken")),
            ],
        )
        assert resolve_inheritdoc(db) == 1
        row = db.execute(
            "SELECT m.notice, m.dev FROM members m JOIN contracts c ON c.id = m.contract_id "
            "WHERE c.name = 'Token'"
        ).fetchone()
        assert (row["notice"], row["dev"]) == ("Total tokens", "Never decreases")
        assert len(_fts_ids(db, "members_fts", "decreases")) == 2

    def test_own_documentation_wins(self, db: sqlite3.Connection) -> None:
        insert_contracts(
            db,
            [
                _contract("IToken", _fn("supply", notice="Interface text")),
                _contract("Token", _fn("supply", notice="Own text", inheritdoc="IToken")),
            ],
        )
        assert resolve_inheritdoc(db) == 0

    def test_target_in_other_version_is_ignored(self, db: sqlite3.Connection) -> None:
        insert_contracts(
            db,
            [
                _contract("IToken", _fn("supply", notice="Old text"), version="4.x"),
                _contract("Token", _fn("supply", inheritdoc="IToken")),
            ],
        )
        assert resolve_inheritdoc(db) == 0

    def test_chain_resolves_in_any_storage_order(self, db: sqlite3.Connection) -> None:
        insert_contracts(db, [_contract("B", _fn("supply", inheritdoc="C"))])
        insert_contracts(db, [_contract("C", _fn("supply", inheritdoc="D"))])
        insert_contracts(db, [_contract("D", _fn("supply", notice="Documented"))])

        assert resolve_inheritdoc(db) == 2
        rows = db.execute(
            "SELECT c.name, m.notice FROM members m JOIN contracts c ON c.id = m.contract_id "
            "ORDER BY c.name"
        ).fetchall()
        assert {r["name"]: r["notice"] for r in rows} == {
            "B": "Documented",
            "C": "Documented",
            "D": "Documented",
        }

    def test_cycle_terminates_unresolved(self, db: sqlite3.Connection) -> None:
        insert_contracts(
            db,
            [
                _contract("A", _fn("supply", inheritdoc="B")),
                _contract("B", _fn("supply", inheritdoc="A")),
            ],
        )
        assert resolve_inheritdoc(db) == 0

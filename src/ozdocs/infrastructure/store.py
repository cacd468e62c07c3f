"""Store writers: one transaction per source document."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from ozdocs.models import params_to_json, returns_to_json

if TYPE_CHECKING:
    import sqlite3
    from collections.abc import Iterable

    from ozdocs.models import ContentChunk, ContractEntity, MemberEntity

logger = logging.getLogger(__name__)


def _insert_chunk(conn: sqlite3.Connection, chunk: ContentChunk) -> None:
    conn.execute(
        "INSERT INTO chunks (version, category, module, title, content, source_kind, "
        "source_url, file_path) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
        (
            chunk.version,
            chunk.category,
            chunk.module,
            chunk.title,
            chunk.content,
            chunk.source_kind,
            chunk.source_url,
            chunk.file_path,
        ),
    )


def _insert_member(conn: sqlite3.Connection, contract_id: int, member: MemberEntity) -> None:
    conn.execute(
        "INSERT INTO members (contract_id, name, kind, signature, visibility, mutability, "
        "params, returns, notice, dev, example, inheritdoc) "
        "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
        (
            contract_id,
            member.name,
            member.kind,
            member.signature,
            member.visibility,
            member.mutability,
            params_to_json(member.params),
            returns_to_json(member.returns),
            member.notice,
            member.dev,
            member.example,
            member.inheritdoc,
        ),
    )


def insert_chunks(conn: sqlite3.Connection, chunks: Iterable[ContentChunk]) -> int:
    """Insert all chunks of one documentation page in a single transaction.

    On failure the page's rows are rolled back and the error re-raised.
    Returns the number of chunks inserted.
    """
    count = 0
    try:
        for chunk in chunks:
            _insert_chunk(conn, chunk)
            count += 1
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    return count


def insert_contracts(
    conn: sqlite3.Connection,
    contracts: Iterable[ContractEntity],
    extra_chunks: Iterable[ContentChunk] = (),
) -> tuple[int, int]:
    """Insert the contracts (with members) of one Solidity file atomically.

    *extra_chunks* (NatSpec-derived chunks of the same file) share the
    transaction.  Returns ``(contracts_inserted, members_inserted)``.
    """
    contract_count = 0
    member_count = 0
    try:
        for contract in contracts:
            cursor = conn.execute(
                "INSERT INTO contracts (version, name, kind, category, inheritance, notice, "
                "source_url, file_path) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    contract.version,
                    contract.name,
                    contract.kind,
                    contract.category,
                    json.dumps(contract.inheritance, ensure_ascii=False),
                    contract.notice,
                    contract.source_url,
                    contract.file_path,
                ),
            )
            contract_id = cursor.lastrowid
            assert contract_id is not None
            contract_count += 1
            for member in contract.members():
                _insert_member(conn, contract_id, member)
                member_count += 1
        for chunk in extra_chunks:
            _insert_chunk(conn, chunk)
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    return contract_count, member_count


def _resolve_pass(conn: sqlite3.Connection) -> int:
    rows = conn.execute(
        "SELECT m.id, m.name, m.kind, m.inheritdoc, c.version "
        "FROM members m JOIN contracts c ON m.contract_id = c.id "
        "WHERE m.inheritdoc IS NOT NULL AND m.notice IS NULL AND m.dev IS NULL "
        "ORDER BY m.id"
    ).fetchall()

    updated = 0
    for row in rows:
        source = conn.execute(
            "SELECT m.notice, m.dev FROM members m "
            "JOIN contracts c ON m.contract_id = c.id "
            "WHERE c.name = ? AND c.version = ? AND m.name = ? AND m.kind = ? "
            "AND (m.notice IS NOT NULL OR m.dev IS NOT NULL) "
            "ORDER BY m.id LIMIT 1",
            (row["inheritdoc"], row["version"], row["name"], row["kind"]),
        ).fetchone()
        if source is None:
            continue
        conn.execute(
            "UPDATE members SET notice = ?, dev = ? WHERE id = ?",
            (source["notice"], source["dev"], row["id"]),
        )
        updated += 1
    return updated


def resolve_inheritdoc(conn: sqlite3.Connection) -> int:
    """Copy documentation into members that only carry ``@inheritdoc``.

    A member whose comment names a target contract and has no notice of its
    own takes notice and dev text from the same-named member of the same
    kind in that contract (same version).  Chains (``A`` inherits from
    ``B`` which inherits from ``C``) resolve regardless of storage order:
    passes repeat until one updates nothing.  Returns the number of
    members updated.
    """
    updated = 0
    try:
        while True:
            n = _resolve_pass(conn)
            if not n:
                break
            updated += n
        conn.commit()
    except Exception:
        conn.rollback()
        raise

    unresolved = conn.execute(
        "SELECT count(*) FROM members "
        "WHERE inheritdoc IS NOT NULL AND notice IS NULL AND dev IS NULL"
    ).fetchone()[0]
    if unresolved:
        logger.debug("%d @inheritdoc members left without documentation", unresolved)
    return updated

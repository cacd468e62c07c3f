"""Free-text search: FTS5 bm25-ranked queries over chunks and members."""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import asdict, dataclass
from typing import Any

from ozdocs.models import MemberEntity, params_from_json, returns_from_json
from ozdocs.taxonomy import ALL, DEFAULT_VERSION

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchHit:
    """One ranked documentation chunk."""

    id: int
    title: str
    module: str
    category: str
    version: str
    source_url: str | None
    snippet: str
    score: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def to_fts_query(query: str) -> str:
    """Turn free text into an FTS5 MATCH expression.

    Every whitespace-separated term is double-quoted (embedded quotes
    doubled) so operators and punctuation are taken literally, then
    suffixed with ``*`` for prefix matching.  Terms are implicitly ANDed.
    """
    terms = query.split()
    return " ".join('"' + term.replace('"', '""') + '"*' for term in terms)


def search_docs(
    conn: sqlite3.Connection,
    query: str,
    *,
    version: str = DEFAULT_VERSION,
    category: str = ALL,
    limit: int = 5,
    highlight: tuple[str, str] = ("**", "**"),
    snippet_tokens: int = 40,
) -> list[SearchHit]:
    """Rank documentation chunks against *query*, best first.

    ``"all"`` disables the version or category filter.  Returns ``[]`` for
    an empty query or one the FTS engine rejects.
    """
    fts_query = to_fts_query(query)
    if not fts_query or limit <= 0:
        return []

    try:
        rows = conn.execute(
            "SELECT c.id, c.title, c.module, c.category, c.version, c.source_url, "
            "snippet(chunks_fts, -1, ?, ?, '...', ?) AS snippet, "
            "chunks_fts.rank AS rank "
            "FROM chunks_fts JOIN chunks c ON c.id = chunks_fts.rowid "
            "WHERE chunks_fts MATCH ? "
            "AND (? = 'all' OR c.version = ?) "
            "AND (? = 'all' OR c.category = ?) "
            "ORDER BY chunks_fts.rank "
            "LIMIT ?",
            (
                highlight[0],
                highlight[1],
                snippet_tokens,
                fts_query,
                version,
                version,
                category,
                category,
                limit,
            ),
        ).fetchall()
    except sqlite3.OperationalError as exc:
        logger.warning("Search for %r failed: %s", query, exc)
        return []

    return [
        SearchHit(
            id=r["id"],
            title=r["title"],
            module=r["module"],
            category=r["category"],
            version=r["version"],
            source_url=r["source_url"],
            snippet=r["snippet"] or "",
            score=-float(r["rank"]),
        )
        for r in rows
    ]


def member_from_row(row: sqlite3.Row) -> MemberEntity:
    """Build a member record from a ``members`` row joined with its contract name."""
    return MemberEntity(
        name=row["name"],
        kind=row["kind"],
        signature=row["signature"],
        params=params_from_json(row["params"]),
        returns=returns_from_json(row["returns"]),
        visibility=row["visibility"],
        mutability=row["mutability"],
        notice=row["notice"],
        dev=row["dev"],
        example=row["example"],
        inheritdoc=row["inheritdoc"],
        contract=row["contract_name"],
    )


MEMBER_COLUMNS = (
    "m.name, m.kind, m.signature, m.visibility, m.mutability, m.params, m.returns, "
    "m.notice, m.dev, m.example, m.inheritdoc, c.name AS contract_name"
)


def search_members(
    conn: sqlite3.Connection,
    query: str,
    *,
    version: str = DEFAULT_VERSION,
    limit: int = 5,
) -> list[MemberEntity]:
    """Rank functions, events, errors and modifiers against *query*."""
    fts_query = to_fts_query(query)
    if not fts_query or limit <= 0:
        return []

    try:
        rows = conn.execute(
            f"SELECT {MEMBER_COLUMNS} "
            "FROM members_fts "
            "JOIN members m ON m.id = members_fts.rowid "
            "JOIN contracts c ON c.id = m.contract_id "
            "WHERE members_fts MATCH ? "
            "AND (? = 'all' OR c.version = ?) "
            "ORDER BY members_fts.rank "
            "LIMIT ?",
            (fts_query, version, version, limit),
        ).fetchall()
    except sqlite3.OperationalError as exc:
        logger.warning("Member search for %r failed: %s", query, exc)
        return []

    return [member_from_row(r) for r in rows]

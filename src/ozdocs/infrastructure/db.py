"""SQLite database layer: connection management, schema, meta helpers."""

from __future__ import annotations

import sqlite3
from typing import TYPE_CHECKING

from ozdocs.models import CONTRACT_KINDS, MEMBER_KINDS, MUTABILITIES, SOURCE_KINDS, VISIBILITIES

if TYPE_CHECKING:
    from pathlib import Path

# Bumped on incompatible schema changes.
SCHEMA_VERSION = "2"


def _sql_list(values: tuple[str, ...]) -> str:
    return ",".join(f"'{v}'" for v in values)


_SCHEMA_SQL = f"""\
-- Documentation chunks
CREATE TABLE IF NOT EXISTS chunks (
    id          INTEGER PRIMARY KEY,
    version     TEXT NOT NULL,
    category    TEXT NOT NULL,
    module      TEXT NOT NULL,
    title       TEXT NOT NULL,
    content     TEXT NOT NULL,
    source_kind TEXT NOT NULL CHECK(source_kind IN ({_sql_list(SOURCE_KINDS)})),
    source_url  TEXT,
    file_path   TEXT
);

-- Contracts, libraries and interfaces extracted from Solidity sources
CREATE TABLE IF NOT EXISTS contracts (
    id          INTEGER PRIMARY KEY,
    version     TEXT NOT NULL,
    name        TEXT NOT NULL,
    kind        TEXT NOT NULL CHECK(kind IN ({_sql_list(CONTRACT_KINDS)})),
    category    TEXT NOT NULL,
    inheritance TEXT NOT NULL DEFAULT '[]',
    notice      TEXT,
    source_url  TEXT,
    file_path   TEXT
);

-- Functions, events, errors and modifiers
CREATE TABLE IF NOT EXISTS members (
    id          INTEGER PRIMARY KEY,
    contract_id INTEGER NOT NULL REFERENCES contracts(id) ON DELETE CASCADE,
    name        TEXT NOT NULL,
    kind        TEXT NOT NULL CHECK(kind IN ({_sql_list(MEMBER_KINDS)})),
    signature   TEXT NOT NULL,
    visibility  TEXT CHECK(visibility IN ({_sql_list(VISIBILITIES)})),
    mutability  TEXT CHECK(mutability IN ({_sql_list(MUTABILITIES)})),
    params      TEXT NOT NULL DEFAULT '[]',
    returns     TEXT NOT NULL DEFAULT '[]',
    notice      TEXT,
    dev         TEXT,
    example     TEXT,
    inheritdoc  TEXT
);

-- Index metadata
CREATE TABLE IF NOT EXISTS meta (
    key   TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

-- Indexes
CREATE INDEX IF NOT EXISTS idx_chunks_version ON chunks(version);
CREATE INDEX IF NOT EXISTS idx_chunks_category ON chunks(category);
CREATE INDEX IF NOT EXISTS idx_chunks_module ON chunks(module);
CREATE INDEX IF NOT EXISTS idx_contracts_version ON contracts(version);
CREATE INDEX IF NOT EXISTS idx_contracts_name ON contracts(name);
CREATE INDEX IF NOT EXISTS idx_contracts_category ON contracts(category);
CREATE INDEX IF NOT EXISTS idx_members_contract ON members(contract_id);
CREATE INDEX IF NOT EXISTS idx_members_name ON members(name);
CREATE INDEX IF NOT EXISTS idx_members_kind ON members(kind);
"""

# External-content FTS5 tables, mirrored by triggers inside the writing
# transaction.
_FTS_SCHEMA_SQL = """\
CREATE VIRTUAL TABLE IF NOT EXISTS chunks_fts USING fts5(
    title, content, module, category,
    content='chunks', content_rowid='id'
);

CREATE VIRTUAL TABLE IF NOT EXISTS members_fts USING fts5(
    name, signature, notice, dev,
    content='members', content_rowid='id'
);

CREATE TRIGGER IF NOT EXISTS chunks_ai AFTER INSERT ON chunks BEGIN
    INSERT INTO chunks_fts(rowid, title, content, module, category)
    VALUES (new.id, new.title, new.content, new.module, new.category);
END;

CREATE TRIGGER IF NOT EXISTS chunks_ad AFTER DELETE ON chunks BEGIN
    INSERT INTO chunks_fts(chunks_fts, rowid, title, content, module, category)
    VALUES ('delete', old.id, old.title, old.content, old.module, old.category);
END;

CREATE TRIGGER IF NOT EXISTS chunks_au AFTER UPDATE ON chunks BEGIN
    INSERT INTO chunks_fts(chunks_fts, rowid, title, content, module, category)
    VALUES ('delete', old.id, old.title, old.content, old.module, old.category);
    INSERT INTO chunks_fts(rowid, title, content, module, category)
    VALUES (new.id, new.title, new.content, new.module, new.category);
END;

CREATE TRIGGER IF NOT EXISTS members_ai AFTER INSERT ON members BEGIN
    INSERT INTO members_fts(rowid, name, signature, notice, dev)
    VALUES (new.id, new.name, new.signature, new.notice, new.dev);
END;

CREATE TRIGGER IF NOT EXISTS members_ad AFTER DELETE ON members BEGIN
    INSERT INTO members_fts(members_fts, rowid, name, signature, notice, dev)
    VALUES ('delete', old.id, old.name, old.signature, old.notice, old.dev);
END;

CREATE TRIGGER IF NOT EXISTS members_au AFTER UPDATE ON members BEGIN
    INSERT INTO members_fts(members_fts, rowid, name, signature, notice, dev)
    VALUES ('delete', old.id, old.name, old.signature, old.notice, old.dev);
    INSERT INTO members_fts(rowid, name, signature, notice, dev)
    VALUES (new.id, new.name, new.signature, new.notice, new.dev);
END;
"""

_COUNTED_TABLES = ("chunks", "contracts", "members")


def open_db(db_path: Path) -> sqlite3.Connection:
    """Open (or create) a SQLite database for writing.

    Enables foreign keys (per-connection, required on every open).

    Returns a connection with ``sqlite3.Row`` row factory.
    """
    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


def open_readonly(db_path: Path) -> sqlite3.Connection:
    """Open an existing database read-only.

    Raises ``sqlite3.OperationalError`` if the file does not exist.
    """
    conn = sqlite3.connect(f"file:{db_path}?mode=ro", uri=True)
    conn.row_factory = sqlite3.Row
    return conn


def create_schema(conn: sqlite3.Connection) -> None:
    """Create all tables, FTS tables, triggers and indexes.

    Safe to call multiple times (uses IF NOT EXISTS).
    """
    conn.executescript(_SCHEMA_SQL)
    conn.executescript(_FTS_SCHEMA_SQL)


def get_meta(conn: sqlite3.Connection, key: str, default: str | None = None) -> str | None:
    """Read a value from the ``meta`` table.

    Returns *default* (``None``) if the key doesn't exist.
    """
    row = conn.execute("SELECT value FROM meta WHERE key = ?", (key,)).fetchone()
    if row is None:
        return default
    return str(row[0])


def set_meta(conn: sqlite3.Connection, key: str, value: str) -> None:
    """Insert or update a key in the ``meta`` table."""
    conn.execute(
        "INSERT INTO meta (key, value) VALUES (?, ?) "
        "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
        (key, value),
    )
    conn.commit()


def table_counts(conn: sqlite3.Connection) -> dict[str, int]:
    """Row counts of the base record tables."""
    return {
        table: int(conn.execute(f"SELECT count(*) FROM {table}").fetchone()[0])
        for table in _COUNTED_TABLES
    }

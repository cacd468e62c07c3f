"""Exact lookups: contract by name, function by qualified identifier, listings."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ozdocs.models import ContractEntity
from ozdocs.query.search import MEMBER_COLUMNS, member_from_row
from ozdocs.taxonomy import ALL

if TYPE_CHECKING:
    import sqlite3

    from ozdocs.models import MemberEntity

_CONTRACT_COLUMNS = "id, name, kind, category, version, inheritance, notice, source_url, file_path"


@dataclass
class ModuleSummary:
    """One contract as shown in a category listing."""

    name: str
    kind: str
    description: str | None = None


@dataclass
class ModuleListing:
    """Contracts of one version grouped by category."""

    version: str
    category: str
    categories: list[tuple[str, int]] = field(default_factory=list)
    modules: dict[str, list[ModuleSummary]] = field(default_factory=dict)

    @property
    def total_count(self) -> int:
        return sum(len(items) for items in self.modules.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "filter": self.category,
            "categories": [{"name": name, "count": count} for name, count in self.categories],
            "modules": {
                cat: [{"name": m.name, "type": m.kind, "description": m.description} for m in items]
                for cat, items in self.modules.items()
            },
            "totalCount": self.total_count,
        }


def _find_contract_row(conn: sqlite3.Connection, name: str, version: str) -> sqlite3.Row | None:
    row = conn.execute(
        f"SELECT {_CONTRACT_COLUMNS} FROM contracts WHERE name = ? AND version = ? "
        "ORDER BY id LIMIT 1",
        (name, version),
    ).fetchone()
    if row is not None:
        return row
    return conn.execute(
        f"SELECT {_CONTRACT_COLUMNS} FROM contracts WHERE LOWER(name) = LOWER(?) AND version = ? "
        "ORDER BY id LIMIT 1",
        (name, version),
    ).fetchone()


def get_contract(conn: sqlite3.Connection, name: str, version: str) -> ContractEntity | None:
    """Return the contract called *name* in *version*, with all its members.

    An exact name match wins over a case-insensitive one.  Members are
    grouped by kind and ordered by name.  Returns ``None`` when absent.
    """
    row = _find_contract_row(conn, name, version)
    if row is None:
        return None

    contract = ContractEntity(
        name=row["name"],
        kind=row["kind"],
        category=row["category"],
        version=row["version"],
        inheritance=json.loads(row["inheritance"] or "[]"),
        notice=row["notice"],
        source_url=row["source_url"],
        file_path=row["file_path"],
    )

    members = conn.execute(
        f"SELECT {MEMBER_COLUMNS} FROM members m JOIN contracts c ON c.id = m.contract_id "
        "WHERE m.contract_id = ? ORDER BY m.kind, m.name, m.id",
        (row["id"],),
    ).fetchall()
    for member_row in members:
        contract.add_member(member_from_row(member_row))
    return contract


def get_function(conn: sqlite3.Connection, identifier: str, version: str) -> list[MemberEntity]:
    """Find functions by ``name`` or ``Contract.name``.

    Only the first ``.`` separates the contract from the function name.
    Every match is returned since overloads and same-named functions in
    different contracts are common.
    """
    contract_name: str | None = None
    function_name = identifier
    if "." in identifier:
        contract_name, function_name = identifier.split(".", 1)

    sql = (
        f"SELECT {MEMBER_COLUMNS} FROM members m JOIN contracts c ON c.id = m.contract_id "
        "WHERE m.kind = 'function' AND m.name = ? AND c.version = ?"
    )
    params: list[Any] = [function_name, version]
    if contract_name:
        sql += " AND c.name = ?"
        params.append(contract_name)
    sql += " ORDER BY c.name, m.id"

    return [member_from_row(r) for r in conn.execute(sql, params).fetchall()]


def get_categories(conn: sqlite3.Connection, version: str) -> list[tuple[str, int]]:
    """Per-category contract counts for *version*, largest first."""
    rows = conn.execute(
        "SELECT category, COUNT(*) AS n FROM contracts WHERE version = ? "
        "GROUP BY category ORDER BY n DESC, category",
        (version,),
    ).fetchall()
    return [(r["category"], int(r["n"])) for r in rows]


def list_modules(conn: sqlite3.Connection, category: str, version: str) -> ModuleListing:
    """List contracts of *version*, optionally restricted to one *category*.

    Category counts always cover the whole version so callers can show
    what other filters would return.
    """
    rows = conn.execute(
        "SELECT name, kind, category, notice FROM contracts "
        "WHERE version = ? AND (? = 'all' OR category = ?) "
        "ORDER BY category, name",
        (version, category, category),
    ).fetchall()

    listing = ModuleListing(
        version=version,
        category=category or ALL,
        categories=get_categories(conn, version),
    )
    for r in rows:
        listing.modules.setdefault(r["category"], []).append(
            ModuleSummary(name=r["name"], kind=r["kind"], description=r["notice"])
        )
    return listing

"""MCP server: stdio-based tool server exposing the documentation index."""

from __future__ import annotations

import json
import logging
import sqlite3
from typing import TYPE_CHECKING, Any

import mcp
from mcp.server import Server
from mcp.types import TextContent

from ozdocs import __version__
from ozdocs.infrastructure.config import DEFAULT_VERSIONS
from ozdocs.infrastructure.db import open_readonly
from ozdocs.query.lookup import get_contract, get_function, list_modules
from ozdocs.query.search import search_docs, search_members
from ozdocs.taxonomy import ALL, CATEGORIES, DEFAULT_VERSION

if TYPE_CHECKING:
    from pathlib import Path

    from ozdocs.infrastructure.config import IndexConfig
    from ozdocs.models import MemberEntity

logger = logging.getLogger(__name__)

# Categories offered as tool filters: every stored category plus "all".
FILTER_CATEGORIES = [*CATEGORIES, ALL]

# Cap on member hits returned alongside documentation hits.
MAX_MEMBER_HITS = 5


def _describe(member: MemberEntity) -> str | None:
    return member.notice or member.dev or None


def _params(member: MemberEntity) -> list[dict[str, Any]]:
    return [{"name": p.name, "type": p.type, "description": p.description} for p in member.params]


def _returns(member: MemberEntity) -> list[dict[str, Any]]:
    return [{"name": r.name, "type": r.type, "description": r.description} for r in member.returns]


# --- Tool handler functions (sync, testable without transport) ---


def handle_search(
    conn: sqlite3.Connection,
    *,
    query: str,
    version: str = DEFAULT_VERSION,
    category: str = ALL,
    limit: int = 5,
    highlight: tuple[str, str] = ("**", "**"),
    snippet_tokens: int = 40,
) -> dict[str, Any]:
    """Search documentation chunks and API members together."""
    hits = search_docs(
        conn,
        query,
        version=version,
        category=category,
        limit=limit,
        highlight=highlight,
        snippet_tokens=snippet_tokens,
    )
    members = search_members(conn, query, version=version, limit=min(limit, MAX_MEMBER_HITS))

    documentation = [
        {
            "type": "documentation",
            "title": h.title,
            "module": h.module,
            "category": h.category,
            "version": h.version,
            "snippet": h.snippet,
            "sourceUrl": h.source_url,
            "relevance": h.score,
        }
        for h in hits
    ]
    api = [
        {
            "type": "api",
            "name": m.name,
            "contract": m.contract,
            "memberType": m.kind,
            "signature": m.signature,
            "description": _describe(m),
            "visibility": m.visibility,
        }
        for m in members
    ]
    return {
        "query": query,
        "version": version,
        "category": category,
        "documentation": documentation,
        "api": api,
        "totalResults": len(documentation) + len(api),
    }


def handle_get_contract(
    conn: sqlite3.Connection,
    *,
    name: str,
    version: str = DEFAULT_VERSION,
) -> dict[str, Any]:
    """Full API reference of one contract, or an error with a suggestion."""
    contract = get_contract(conn, name, version)
    if contract is None:
        return {
            "error": f"Contract '{name}' not found in OpenZeppelin Contracts {version}",
            "suggestion": "Try using list_oz_modules to see available contracts",
        }

    def _member(m: MemberEntity, *, with_call_info: bool = False) -> dict[str, Any]:
        data: dict[str, Any] = {"name": m.name, "signature": m.signature}
        if with_call_info:
            data["visibility"] = m.visibility
            data["mutability"] = m.mutability
        data["description"] = _describe(m)
        data["params"] = _params(m)
        if with_call_info:
            data["returns"] = _returns(m)
        return data

    return {
        "name": contract.name,
        "type": contract.kind,
        "category": contract.category,
        "version": contract.version,
        "description": contract.notice,
        "inheritance": contract.inheritance,
        "sourceUrl": contract.source_url,
        "functions": [_member(f, with_call_info=True) for f in contract.functions],
        "events": [_member(e) for e in contract.events],
        "errors": [_member(e) for e in contract.errors],
        "modifiers": [_member(m) for m in contract.modifiers],
    }


def handle_get_function(
    conn: sqlite3.Connection,
    *,
    function_name: str,
    version: str = DEFAULT_VERSION,
) -> dict[str, Any]:
    """All functions matching ``name`` or ``Contract.name``."""
    functions = get_function(conn, function_name, version)
    if not functions:
        return {
            "error": f"Function '{function_name}' not found in OpenZeppelin Contracts {version}",
            "suggestion": "Try searching with search_oz_docs or use Contract.function format",
        }

    matches = [
        {
            "name": f.name,
            "contract": f.contract,
            "signature": f.signature,
            "visibility": f.visibility,
            "mutability": f.mutability,
            "description": f.notice,
            "devNote": f.dev,
            "parameters": _params(f),
            "returns": _returns(f),
            "example": f.example,
        }
        for f in functions
    ]
    return {
        "functionName": function_name,
        "version": version,
        "matches": matches,
        "count": len(matches),
    }


def handle_list_modules(
    conn: sqlite3.Connection,
    *,
    category: str = ALL,
    version: str = DEFAULT_VERSION,
) -> dict[str, Any]:
    """Contracts grouped by category, with per-category counts."""
    return list_modules(conn, category, version).to_dict()


# --- MCP Server creation ---


def _version_schema(
    versions: list[str],
    default: str,
    *,
    allow_all: bool = False,
) -> dict[str, Any]:
    return {
        "type": "string",
        "enum": [*versions, ALL] if allow_all else list(versions),
        "default": default,
        "description": "OpenZeppelin Contracts version",
    }


def build_tools(versions: list[str], default_version: str = DEFAULT_VERSION) -> list[mcp.Tool]:
    """Tool definitions for the configured *versions*."""
    category_schema = {
        "type": "string",
        "enum": FILTER_CATEGORIES,
        "default": ALL,
        "description": "Filter by category",
    }
    return [
        mcp.Tool(
            name="search_oz_docs",
            description=(
                "Search OpenZeppelin Contracts documentation for guides, API references, "
                "and code examples"
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "query": {
                        "type": "string",
                        "description": (
                            "Search query (e.g., 'reentrancy guard', 'ERC20 approve', "
                            "'access control roles')"
                        ),
                    },
                    "version": _version_schema(versions, default_version, allow_all=True),
                    "category": category_schema,
                    "limit": {
                        "type": "integer",
                        "default": 5,
                        "description": "Max results to return",
                    },
                },
                "required": ["query"],
            },
        ),
        mcp.Tool(
            name="get_oz_contract",
            description=(
                "Get detailed API reference for a specific OpenZeppelin contract or library"
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "name": {
                        "type": "string",
                        "description": (
                            "Contract or library name (e.g., 'ERC20', 'Ownable', 'ECDSA', "
                            "'SafeERC20')"
                        ),
                    },
                    "version": _version_schema(versions, default_version),
                },
                "required": ["name"],
            },
        ),
        mcp.Tool(
            name="get_oz_function",
            description=(
                "Get detailed information about a specific function in OpenZeppelin Contracts"
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "function_name": {
                        "type": "string",
                        "description": (
                            "Function name, optionally with contract (e.g., 'transfer', "
                            "'ERC20.transfer', 'ECDSA.recover')"
                        ),
                    },
                    "version": _version_schema(versions, default_version),
                },
                "required": ["function_name"],
            },
        ),
        mcp.Tool(
            name="list_oz_modules",
            description=(
                "List all available OpenZeppelin contracts and libraries, optionally "
                "filtered by category"
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "category": category_schema,
                    "version": _version_schema(versions, default_version),
                },
            },
        ),
    ]


def create_server(db_path: Path, config: IndexConfig | None = None) -> Server:
    """Create and configure the MCP server over the index at *db_path*."""
    server = Server(
        name="ozdocs",
        version=__version__,
        instructions="OpenZeppelin Contracts documentation: search, contract and function lookup.",
    )
    if config is not None:
        tools = build_tools(list(config.versions), config.default_version)
    else:
        tools = build_tools(list(DEFAULT_VERSIONS))

    @server.list_tools()  # type: ignore[no-untyped-call,untyped-decorator]
    async def _list_tools() -> list[mcp.Tool]:
        return tools

    @server.call_tool()  # type: ignore[untyped-decorator]
    async def _call_tool(
        name: str,
        arguments: dict[str, Any] | None,
    ) -> list[TextContent]:
        args = arguments or {}
        try:
            conn = open_readonly(db_path)
        except sqlite3.OperationalError as exc:
            logger.error("Cannot open index %s: %s", db_path, exc)
            return [TextContent(type="text", text=f"Error: cannot open index: {exc}")]
        try:
            result = _dispatch_tool(conn, name, args, config=config)
            return [
                TextContent(
                    type="text",
                    text=json.dumps(result, ensure_ascii=False, indent=2),
                )
            ]
        except (KeyError, ValueError) as exc:
            return [TextContent(type="text", text=f"Error: {exc}")]
        finally:
            conn.close()

    return server


def _dispatch_tool(
    conn: sqlite3.Connection,
    name: str,
    args: dict[str, Any],
    config: IndexConfig | None = None,
) -> Any:
    """Route tool call to the appropriate handler."""
    default_version = config.default_version if config is not None else DEFAULT_VERSION
    if name == "search_oz_docs":
        search_opts: dict[str, Any] = {}
        if config is not None:
            search_opts = {
                "highlight": config.highlight,
                "snippet_tokens": config.snippet_tokens,
            }
        return handle_search(
            conn,
            query=args["query"],
            version=args.get("version", default_version),
            category=args.get("category", ALL),
            limit=int(args.get("limit", 5)),
            **search_opts,
        )
    if name == "get_oz_contract":
        return handle_get_contract(
            conn,
            name=args["name"],
            version=args.get("version", default_version),
        )
    if name == "get_oz_function":
        return handle_get_function(
            conn,
            function_name=args["function_name"],
            version=args.get("version", default_version),
        )
    if name == "list_oz_modules":
        return handle_list_modules(
            conn,
            category=args.get("category", ALL),
            version=args.get("version", default_version),
        )

    logger.warning("Unknown tool requested: %s", name)
    return {"error": f"Unknown tool: {name}"}

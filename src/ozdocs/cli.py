"""ozdocs CLI entry point."""

from __future__ import annotations

import json
import logging
import sqlite3
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any, NoReturn

import click

from ozdocs import __version__
from ozdocs.errors import OzDocsError
from ozdocs.taxonomy import ALL

if TYPE_CHECKING:
    from collections.abc import Callable

    from ozdocs.infrastructure.config import IndexConfig

logger = logging.getLogger(__name__)


def _setup_logging(*, verbose: bool, quiet: bool) -> None:
    from rich.console import Console
    from rich.logging import RichHandler

    level = logging.DEBUG if verbose else logging.WARNING if quiet else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _project_option(func: Callable[..., Any]) -> Callable[..., Any]:
    return click.option(
        "--project",
        type=click.Path(exists=True, file_okay=False, path_type=Path),
        default=None,
        help="Project root (default: current directory).",
    )(func)


def _fail(message: str) -> NoReturn:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def _load(project: Path | None) -> IndexConfig:
    from ozdocs.infrastructure.config import load_config

    try:
        return load_config(project or Path.cwd())
    except OzDocsError as exc:
        _fail(str(exc))


def _open_index(config: IndexConfig) -> sqlite3.Connection:
    from ozdocs.infrastructure.db import open_readonly

    if not config.db_path.exists():
        _fail("index not found. Run `ozdocs build` first.")
    try:
        return open_readonly(config.db_path)
    except sqlite3.Error as exc:
        _fail(f"cannot open {config.db_path}: {exc}")


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, ensure_ascii=False, indent=2))


@click.group()
@click.version_option(version=__version__, prog_name="ozdocs")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Minimal output (errors only).")
@click.pass_context
def main(ctx: click.Context, *, verbose: bool, quiet: bool) -> None:
    """ozdocs - offline OpenZeppelin Contracts documentation index."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    _setup_logging(verbose=verbose, quiet=quiet)


@main.command()
@_project_option
@click.option("--force", is_flag=True, help="Re-clone checkouts that already exist.")
def fetch(*, project: Path | None, force: bool) -> None:
    """Clone the documentation and contracts repositories."""
    from ozdocs.infrastructure.fetch import fetch_sources

    config = _load(project)
    try:
        paths = fetch_sources(config, force=force)
    except OzDocsError as exc:
        _fail(str(exc))
    for path in paths:
        click.echo(str(path))


@main.command()
@_project_option
@click.option("--skip-fetch", is_flag=True, help="Use existing checkouts without cloning.")
@click.option("--force", is_flag=True, help="Re-clone checkouts before building.")
def build(*, project: Path | None, skip_fetch: bool, force: bool) -> None:
    """Rebuild the SQLite index from the checked-out sources."""
    from ozdocs.infrastructure.build import build_index

    config = _load(project)
    try:
        result = build_index(config, skip_fetch=skip_fetch, force=force)
    except OzDocsError as exc:
        _fail(str(exc))

    click.echo(f"Docs:      {result.docs_indexed}")
    click.echo(f"Chunks:    {result.chunks_indexed}")
    click.echo(f"Files:     {result.files_parsed}")
    click.echo(f"Contracts: {result.contracts_indexed}")
    click.echo(f"Members:   {result.members_indexed}")
    if result.inheritdoc_resolved:
        click.echo(f"Inherited: {result.inheritdoc_resolved}")
    if result.errors:
        click.echo("")
        for err in result.errors:
            click.echo(f"  [ERR] {err}")
    if result.warnings:
        click.echo("")
        for warn in result.warnings:
            click.echo(f"  [warn] {warn}")


@main.command()
@click.argument("query")
@click.option("--version", "version", default=None, help="Contracts version, or 'all'.")
@click.option("--category", default=ALL, help="Category filter (default: all).")
@click.option("--limit", default=5, type=int, help="Max results.")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON.")
@_project_option
def search(
    query: str,
    *,
    version: str | None,
    category: str,
    limit: int,
    output_json: bool,
    project: Path | None,
) -> None:
    """Full-text search over documentation and API members."""
    from ozdocs.services.mcp_server import handle_search

    config = _load(project)
    conn = _open_index(config)
    try:
        result = handle_search(
            conn,
            query=query,
            version=version or config.default_version,
            category=category,
            limit=limit,
            highlight=config.highlight,
            snippet_tokens=config.snippet_tokens,
        )
    finally:
        conn.close()

    if output_json:
        _echo_json(result)
        return

    if not result["totalResults"]:
        click.echo("No results.")
        return

    from rich.console import Console
    from rich.markup import escape
    from rich.table import Table

    console = Console()
    if result["documentation"]:
        table = Table(title="Documentation")
        table.add_column("Title")
        table.add_column("Module")
        table.add_column("Category")
        table.add_column("Snippet")
        for hit in result["documentation"]:
            table.add_row(
                escape(hit["title"]), hit["module"], hit["category"], escape(hit["snippet"])
            )
        console.print(table)
    if result["api"]:
        table = Table(title="API")
        table.add_column("Contract")
        table.add_column("Kind")
        table.add_column("Signature")
        for member in result["api"]:
            table.add_row(
                member["contract"] or "", member["memberType"], escape(member["signature"])
            )
        console.print(table)


@main.command()
@click.argument("name")
@click.option("--version", "version", default=None, help="Contracts version.")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON.")
@_project_option
def contract(name: str, *, version: str | None, output_json: bool, project: Path | None) -> None:
    """Show the API reference of one contract, library or interface."""
    from ozdocs.services.mcp_server import handle_get_contract

    config = _load(project)
    conn = _open_index(config)
    try:
        result = handle_get_contract(conn, name=name, version=version or config.default_version)
    finally:
        conn.close()

    if output_json:
        _echo_json(result)
        if "error" in result:
            sys.exit(1)
        return
    if "error" in result:
        _fail(result["error"])

    from rich.console import Console
    from rich.markup import escape
    from rich.table import Table

    console = Console()
    console.print(f"[bold]{result['name']}[/bold] ({result['type']}, {result['category']})")
    if result["inheritance"]:
        console.print("Inherits: " + ", ".join(result["inheritance"]))
    if result["description"]:
        console.print(escape(result["description"]))
    if result["sourceUrl"]:
        console.print(result["sourceUrl"])

    for section in ("functions", "events", "errors", "modifiers"):
        members = result[section]
        if not members:
            continue
        table = Table(title=section.capitalize())
        table.add_column("Signature")
        table.add_column("Description")
        for member in members:
            table.add_row(escape(member["signature"]), escape(member["description"] or ""))
        console.print(table)


@main.command("function")
@click.argument("identifier")
@click.option("--version", "version", default=None, help="Contracts version.")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON.")
@_project_option
def function_cmd(
    identifier: str,
    *,
    version: str | None,
    output_json: bool,
    project: Path | None,
) -> None:
    """Look up a function as NAME or CONTRACT.NAME."""
    from ozdocs.services.mcp_server import handle_get_function

    config = _load(project)
    conn = _open_index(config)
    try:
        result = handle_get_function(
            conn,
            function_name=identifier,
            version=version or config.default_version,
        )
    finally:
        conn.close()

    if output_json:
        _echo_json(result)
        if "error" in result:
            sys.exit(1)
        return
    if "error" in result:
        _fail(result["error"])

    for match in result["matches"]:
        click.echo(f"{match['contract']}.{match['name']}")
        click.echo(f"  {match['signature']}")
        if match["description"]:
            click.echo(f"  {match['description']}")
        for param in match["parameters"]:
            desc = f" - {param['description']}" if param["description"] else ""
            click.echo(f"    @param {param['type']} {param['name']}{desc}")
        for ret in match["returns"]:
            label = f" {ret['name']}" if ret["name"] else ""
            desc = f" - {ret['description']}" if ret["description"] else ""
            click.echo(f"    @return {ret['type']}{label}{desc}")


@main.command()
@click.option("--category", default=ALL, help="Category filter (default: all).")
@click.option("--version", "version", default=None, help="Contracts version.")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON.")
@_project_option
def modules(*, category: str, version: str | None, output_json: bool, project: Path | None) -> None:
    """List contracts grouped by category."""
    from ozdocs.services.mcp_server import handle_list_modules

    config = _load(project)
    conn = _open_index(config)
    try:
        result = handle_list_modules(
            conn,
            category=category,
            version=version or config.default_version,
        )
    finally:
        conn.close()

    if output_json:
        _echo_json(result)
        return

    from rich.console import Console
    from rich.markup import escape
    from rich.table import Table

    console = Console()
    for cat, items in result["modules"].items():
        table = Table(title=f"{cat} ({len(items)})")
        table.add_column("Name")
        table.add_column("Kind")
        table.add_column("Description")
        for item in items:
            table.add_row(item["name"], item["type"], escape(item["description"] or ""))
        console.print(table)
    click.echo(f"Total: {result['totalCount']}")


@main.command()
@_project_option
def stats(*, project: Path | None) -> None:
    """Show row counts and build metadata of the index."""
    from rich.console import Console
    from rich.table import Table

    from ozdocs.infrastructure.db import get_meta, table_counts

    config = _load(project)
    conn = _open_index(config)
    try:
        counts = table_counts(conn)
        meta = {
            key: get_meta(conn, key)
            for key in ("built_at", "ozdocs_version", "schema_version", "versions")
        }
    finally:
        conn.close()

    table = Table(title="Index", show_header=False, box=None, padding=(0, 1))
    for label, value in counts.items():
        table.add_row(label, str(value))
    for label, value in meta.items():
        table.add_row(label, value or "-")
    Console().print(table)


@main.command("mcp-serve")
@_project_option
def mcp_serve(*, project: Path | None) -> None:
    """Run the ozdocs MCP server (stdio transport)."""
    import anyio

    from ozdocs.services.mcp_server import create_server

    config = _load(project)
    if not config.db_path.exists():
        _fail("index not found. Run `ozdocs build` first.")

    server = create_server(config.db_path, config)

    async def _run() -> None:
        from mcp import stdio_server

        async with stdio_server() as (read_stream, write_stream):
            await server.run(
                read_stream,
                write_stream,
                server.create_initialization_options(),
            )

    anyio.run(_run)

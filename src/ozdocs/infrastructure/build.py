"""Build orchestrator: full rebuild into a staging store, then atomic swap."""

from __future__ import annotations

import logging
import os
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from ozdocs import __version__
from ozdocs.docs.chunker import chunk_file
from ozdocs.errors import BuildError, FetchError
from ozdocs.infrastructure.db import SCHEMA_VERSION, create_schema, open_db, set_meta
from ozdocs.infrastructure.fetch import check_sources, fetch_sources
from ozdocs.infrastructure.store import insert_chunks, insert_contracts, resolve_inheritdoc
from ozdocs.natspec.walker import contract_chunk, load_solidity_parser, parse_contract_file

if TYPE_CHECKING:
    from pathlib import Path

    from ozdocs.infrastructure.config import IndexConfig
    from ozdocs.natspec.walker import SolidityParser

logger = logging.getLogger(__name__)

# Documentation file extensions.
_DOC_EXTENSIONS = frozenset({".mdx", ".md"})


@dataclass
class BuildResult:
    """Summary of a build."""

    docs_indexed: int = 0
    chunks_indexed: int = 0
    files_parsed: int = 0
    contracts_indexed: int = 0
    members_indexed: int = 0
    inheritdoc_resolved: int = 0
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def staging_path(db_path: Path) -> Path:
    """Location the build writes to before it is swapped into place."""
    return db_path.with_name(db_path.name + ".building")


def _doc_files(root: Path) -> list[Path]:
    return sorted(p for p in root.rglob("*") if p.suffix in _DOC_EXTENSIONS and p.is_file())


def _solidity_files(root: Path, skip_dirs: tuple[str, ...]) -> list[Path]:
    files: list[Path] = []
    for path in sorted(root.rglob("*.sol")):
        rel_parts = path.relative_to(root).parts[:-1]
        if any(part in skip_dirs for part in rel_parts):
            continue
        if path.is_file():
            files.append(path)
    return files


def _doc_source_url(config: IndexConfig, version: str, content_dir: Path, path: Path) -> str:
    rel = path.relative_to(content_dir).with_suffix("").as_posix()
    return f"{config.docs_site_url.rstrip('/')}/{version}/{rel}"


def _contract_source_url(config: IndexConfig, tag: str, rel_path: str) -> str:
    return f"{config.contracts_web_url}/blob/{tag}/{rel_path}"


def index_documentation(
    conn: sqlite3.Connection,
    config: IndexConfig,
    result: BuildResult,
) -> None:
    """Chunk every documentation page of every version into the store."""
    checkout = config.docs_checkout
    for version in config.versions:
        content_dir = checkout / config.docs_content_dir.format(version=version)
        if not content_dir.is_dir():
            msg = f"No documentation directory for {version}: {content_dir}"
            logger.warning(msg)
            result.warnings.append(msg)
            continue

        for path in _doc_files(content_dir):
            rel = path.relative_to(checkout).as_posix()
            try:
                chunks = chunk_file(
                    path,
                    checkout,
                    versions=config.version_names,
                    source_url=_doc_source_url(config, version, content_dir, path),
                )
            except (OSError, UnicodeDecodeError, ValueError) as exc:
                logger.warning("Failed to parse %s: %s", rel, exc)
                result.errors.append(f"{rel}: {exc}")
                continue

            try:
                result.chunks_indexed += insert_chunks(conn, chunks)
            except sqlite3.Error as exc:
                logger.error("Failed to store %s: %s", rel, exc)
                result.errors.append(f"{rel}: {exc}")
                continue
            result.docs_indexed += 1


def index_contracts(
    conn: sqlite3.Connection,
    handle: SolidityParser,
    config: IndexConfig,
    version: str,
    result: BuildResult,
) -> None:
    """Parse every Solidity file of one version's checkout into the store."""
    checkout = config.contracts_checkout(version)
    tag = config.versions[version]
    source_root = checkout / "contracts"
    if not source_root.is_dir():
        source_root = checkout

    for path in _solidity_files(source_root, config.skip_dirs):
        rel = path.relative_to(checkout).as_posix()
        try:
            contracts = parse_contract_file(
                handle,
                path,
                checkout,
                version=version,
                source_url=_contract_source_url(config, tag, rel),
            )
        except (OSError, UnicodeDecodeError, ValueError) as exc:
            logger.warning("Failed to parse %s: %s", rel, exc)
            result.errors.append(f"{rel}: {exc}")
            continue

        extra = [contract_chunk(c) for c in contracts] if config.natspec_chunks else []
        try:
            n_contracts, n_members = insert_contracts(conn, contracts, extra)
        except sqlite3.Error as exc:
            logger.error("Failed to store %s: %s", rel, exc)
            result.errors.append(f"{rel}: {exc}")
            continue

        result.files_parsed += 1
        result.contracts_indexed += n_contracts
        result.members_indexed += n_members
        result.chunks_indexed += len(extra)


def build_index(
    config: IndexConfig,
    *,
    skip_fetch: bool = False,
    force: bool = False,
) -> BuildResult:
    """Full rebuild of the store described by *config*.

    The new store is written next to the destination and renamed over it
    only once the build succeeds, so readers of the previous store are
    never exposed to a partial index.

    Raises :class:`FetchError` when sources are missing or cannot be
    acquired and :class:`BuildError` when the staging store cannot be
    created.  Per-file failures are recorded in the result instead.
    """
    result = BuildResult()

    if not skip_fetch:
        fetch_sources(config, force=force)
    missing = check_sources(config)
    if missing:
        msg = "Missing source checkouts: " + ", ".join(str(p) for p in missing)
        raise FetchError(msg)

    staging = staging_path(config.db_path)
    try:
        staging.parent.mkdir(parents=True, exist_ok=True)
        staging.unlink(missing_ok=True)
        conn = open_db(staging)
        create_schema(conn)
    except (OSError, sqlite3.Error) as exc:
        msg = f"Cannot create index at {staging}: {exc}"
        raise BuildError(msg) from exc

    handle = load_solidity_parser()
    try:
        logger.info("Indexing documentation from %s", config.docs_checkout)
        index_documentation(conn, config, result)

        for version in config.versions:
            logger.info("Indexing Solidity sources for %s", version)
            index_contracts(conn, handle, config, version, result)

        result.inheritdoc_resolved = resolve_inheritdoc(conn)

        set_meta(conn, "built_at", datetime.now(tz=timezone.utc).isoformat())
        set_meta(conn, "ozdocs_version", __version__)
        set_meta(conn, "schema_version", SCHEMA_VERSION)
        set_meta(conn, "versions", ",".join(config.versions))
    except BaseException:
        conn.close()
        staging.unlink(missing_ok=True)
        raise
    conn.close()

    os.replace(staging, config.db_path)
    logger.info(
        "Index built at %s: %d chunks, %d contracts, %d members",
        config.db_path,
        result.chunks_indexed,
        result.contracts_indexed,
        result.members_indexed,
    )
    return result

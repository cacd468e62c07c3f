"""Source acquisition: shallow git checkouts of the docs and contracts repos."""

from __future__ import annotations

import logging
import shutil
import subprocess
from typing import TYPE_CHECKING

from ozdocs.errors import FetchError

if TYPE_CHECKING:
    from pathlib import Path

    from ozdocs.infrastructure.config import IndexConfig

logger = logging.getLogger(__name__)

# Seconds allowed for a single clone.
CLONE_TIMEOUT = 600


def clone_repo(url: str, target: Path, *, ref: str | None = None, force: bool = False) -> bool:
    """Shallow-clone *url* (optionally at tag/branch *ref*) into *target*.

    Existing checkouts are kept unless *force* is set.  Returns ``True``
    when a clone was performed.  Raises :class:`FetchError` on failure.
    """
    if target.is_dir():
        if not force:
            logger.info("Skipping %s (already exists)", target.name)
            return False
        logger.info("Removing existing %s", target.name)
        shutil.rmtree(target)

    target.parent.mkdir(parents=True, exist_ok=True)
    cmd = ["git", "clone", "--depth", "1"]
    if ref:
        cmd += ["--branch", ref]
    cmd += [url, str(target)]

    logger.info("Cloning %s%s into %s", url, f" at {ref}" if ref else "", target.name)
    try:
        result = subprocess.run(  # noqa: S603
            cmd,
            capture_output=True,
            text=True,
            timeout=CLONE_TIMEOUT,
            check=False,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired) as exc:
        msg = f"git clone of {url} failed: {exc}"
        raise FetchError(msg) from exc

    if result.returncode != 0:
        msg = f"git clone of {url} failed: {result.stderr.strip()}"
        raise FetchError(msg)
    return True


def fetch_sources(config: IndexConfig, *, force: bool = False) -> list[Path]:
    """Acquire the docs checkout plus one contracts checkout per version.

    Returns the checkout paths in acquisition order.
    """
    targets: list[Path] = [config.docs_checkout]
    clone_repo(config.docs_repo, config.docs_checkout, ref=config.docs_ref, force=force)
    for version, tag in config.versions.items():
        target = config.contracts_checkout(version)
        clone_repo(config.contracts_repo, target, ref=tag, force=force)
        targets.append(target)
    return targets


def check_sources(config: IndexConfig) -> list[Path]:
    """Return the expected checkouts that are missing."""
    expected = [config.docs_checkout] + [config.contracts_checkout(v) for v in config.versions]
    return [path for path in expected if not path.is_dir()]

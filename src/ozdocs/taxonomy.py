"""Path-derived metadata: category, version, module name and source kind.

The same ordered category table is used for Solidity sources and for
documentation pages, so a contract and the guide describing it land in the
same facet.
"""

from __future__ import annotations

import re
from pathlib import PurePosixPath

GENERAL_CATEGORY = "general"
ALL = "all"

# Ordered (category, pattern) table; the first match wins.
_CATEGORY_RULES: list[tuple[str, re.Pattern[str]]] = [
    ("access", re.compile(r"/access/")),
    ("token", re.compile(r"/token/")),
    ("utils", re.compile(r"/utils/")),
    ("governance", re.compile(r"/governance/")),
    ("proxy", re.compile(r"/proxy/")),
    ("finance", re.compile(r"/finance/")),
    ("metatx", re.compile(r"/metatx/")),
    ("interfaces", re.compile(r"/interfaces/")),
    ("crosschain", re.compile(r"/crosschain/")),
    ("mocks", re.compile(r"/mocks/")),
    ("vendor", re.compile(r"/vendor/")),
]

CATEGORIES: tuple[str, ...] = (
    *(name for name, _ in _CATEGORY_RULES),
    GENERAL_CATEGORY,
)

DEFAULT_VERSION = "5.x"

_MODULE_SPLIT_RE = re.compile(r"[-_]")


def _as_rooted(path: str | PurePosixPath) -> str:
    """Normalize *path* to a POSIX string with a leading slash."""
    text = str(path).replace("\\", "/")
    if not text.startswith("/"):
        text = "/" + text
    return text


def detect_category(path: str | PurePosixPath) -> str:
    """Classify a source path into a category.

    *path* should be relative to the root of its source tree so that
    directories above the tree cannot influence the result.  Returns
    ``general`` when no pattern matches.
    """
    rooted = _as_rooted(path)
    for category, pattern in _CATEGORY_RULES:
        if pattern.search(rooted):
            return category
    return GENERAL_CATEGORY


def detect_version(
    path: str | PurePosixPath,
    versions: tuple[str, ...] = ("5.x", "4.x"),
    default: str = DEFAULT_VERSION,
) -> str:
    """Detect which version a path belongs to from substrings in it.

    For a version ``N.x`` the tokens ``/N.x/``, ``/vN`` and ``contracts-vN``
    are recognised.  Falls back to *default*.
    """
    rooted = _as_rooted(path)
    for version in versions:
        major = version.split(".", 1)[0]
        tokens = (f"/{version}/", f"/v{major}", f"contracts-v{major}", f"contracts-{version}")
        if any(token in rooted for token in tokens):
            return version
    return default


def derive_module(path: str | PurePosixPath) -> str:
    """Derive a display module name from a file name.

    ``erc-20.mdx`` -> ``ERC20``; ``access-control.mdx`` -> ``AccessControl``.
    """
    stem = PurePosixPath(_as_rooted(path)).stem
    if stem.lower().startswith("erc"):
        return _MODULE_SPLIT_RE.sub("", stem.upper())
    return "".join(part[:1].upper() + part[1:] for part in _MODULE_SPLIT_RE.split(stem))


def detect_source_kind(path: str | PurePosixPath) -> str:
    """``api`` for API reference pages, ``guide`` for everything else."""
    if "/api/" in _as_rooted(path):
        return "api"
    return "guide"

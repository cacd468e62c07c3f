"""Configuration: ``.ozdocs/config.yml`` with built-in defaults."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from ozdocs.errors import ConfigError

CONFIG_DIR = ".ozdocs"
CONFIG_FILE = "config.yml"

DEFAULT_DOCS_REPO = "https://github.com/OpenZeppelin/docs.git"
DEFAULT_CONTRACTS_REPO = "https://github.com/OpenZeppelin/openzeppelin-contracts.git"
DEFAULT_DOCS_SITE = "https://docs.openzeppelin.com/contracts"
DEFAULT_VERSIONS: dict[str, str] = {"5.x": "v5.3.0", "4.x": "v4.9.6"}


@dataclass(frozen=True)
class IndexConfig:
    """Resolved build and query settings."""

    data_dir: Path
    db_path: Path
    docs_repo: str = DEFAULT_DOCS_REPO
    docs_ref: str | None = None
    contracts_repo: str = DEFAULT_CONTRACTS_REPO
    versions: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_VERSIONS))
    default_version: str = "5.x"
    docs_site_url: str = DEFAULT_DOCS_SITE
    docs_content_dir: str = "content/contracts/{version}"
    skip_dirs: tuple[str, ...] = ("mocks", "test")
    natspec_chunks: bool = False
    snippet_tokens: int = 40
    highlight: tuple[str, str] = ("**", "**")

    @property
    def repos_dir(self) -> Path:
        return self.data_dir / "repos"

    @property
    def docs_checkout(self) -> Path:
        return self.repos_dir / "docs"

    def contracts_checkout(self, version: str) -> Path:
        return self.repos_dir / f"contracts-{version}"

    @property
    def version_names(self) -> tuple[str, ...]:
        return tuple(self.versions)

    @property
    def contracts_web_url(self) -> str:
        return self.contracts_repo.removesuffix(".git")


def _expect(data: dict[str, Any], key: str, kind: type | tuple[type, ...]) -> Any:
    value = data.get(key)
    if value is not None and not isinstance(value, kind):
        msg = f"config key '{key}' has invalid type {type(value).__name__}"
        raise ConfigError(msg)
    return value


def load_config(project_root: Path) -> IndexConfig:
    """Load ``<project_root>/.ozdocs/config.yml``, falling back to defaults.

    Relative ``data_dir`` / ``db_path`` values resolve against
    *project_root*.  Raises :class:`ConfigError` on malformed YAML or values
    of the wrong type.
    """
    config_path = project_root / CONFIG_DIR / CONFIG_FILE
    data: dict[str, Any] = {}
    if config_path.exists():
        try:
            loaded = yaml.safe_load(config_path.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            msg = f"cannot parse {config_path}: {exc}"
            raise ConfigError(msg) from exc
        if loaded is not None and not isinstance(loaded, dict):
            msg = f"{config_path} must contain a mapping"
            raise ConfigError(msg)
        data = loaded or {}

    data_dir = project_root / str(_expect(data, "data_dir", str) or CONFIG_DIR)
    db_path_value = _expect(data, "db_path", str)
    db_path = project_root / db_path_value if db_path_value else data_dir / "ozdocs.db"

    kwargs: dict[str, Any] = {}
    for key in ("docs_repo", "docs_ref", "contracts_repo", "default_version", "docs_site_url",
                "docs_content_dir"):
        value = _expect(data, key, str)
        if value:
            kwargs[key] = value

    versions = _expect(data, "versions", dict)
    if versions:
        kwargs["versions"] = {str(k): str(v) for k, v in versions.items()}

    skip_dirs = _expect(data, "skip_dirs", list)
    if skip_dirs is not None:
        kwargs["skip_dirs"] = tuple(str(d) for d in skip_dirs)

    natspec_chunks = _expect(data, "natspec_chunks", bool)
    if natspec_chunks is not None:
        kwargs["natspec_chunks"] = natspec_chunks

    search = _expect(data, "search", dict) or {}
    snippet_tokens = _expect(search, "snippet_tokens", int)
    if snippet_tokens is not None:
        if not 1 <= snippet_tokens <= 64:
            msg = "search.snippet_tokens must be between 1 and 64"
            raise ConfigError(msg)
        kwargs["snippet_tokens"] = snippet_tokens
    highlight = _expect(search, "highlight", list)
    if highlight is not None:
        if len(highlight) != 2:
            msg = "search.highlight must be a list of two strings"
            raise ConfigError(msg)
        kwargs["highlight"] = (str(highlight[0]), str(highlight[1]))

    config = IndexConfig(data_dir=data_dir, db_path=db_path, **kwargs)
    if config.default_version not in config.versions:
        msg = f"default_version '{config.default_version}' is not one of {list(config.versions)}"
        raise ConfigError(msg)
    return config

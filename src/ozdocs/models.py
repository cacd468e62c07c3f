"""Entity records shared by the indexers, the store and the query engine."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from typing import Any

# Closed vocabularies persisted in the store.
CONTRACT_KINDS = ("contract", "library", "interface", "abstract")
MEMBER_KINDS = ("function", "event", "error", "modifier")
VISIBILITIES = ("public", "external", "internal", "private")
MUTABILITIES = ("view", "pure", "payable", "")
SOURCE_KINDS = ("guide", "api", "natspec-derived")


@dataclass
class CommentBlock:
    """Parsed NatSpec tags of one logical comment."""

    notice: str | None = None
    dev: str | None = None
    params: dict[str, str] = field(default_factory=dict)
    returns: dict[str, str] = field(default_factory=dict)
    inheritdoc: str | None = None

    def is_empty(self) -> bool:
        return not (self.notice or self.dev or self.params or self.returns or self.inheritdoc)


@dataclass(frozen=True)
class ParamInfo:
    """One declared parameter, in declaration order."""

    name: str
    type: str
    description: str | None = None


@dataclass(frozen=True)
class ReturnInfo:
    """One declared return value, in declaration order."""

    type: str
    name: str | None = None
    description: str | None = None


@dataclass
class MemberEntity:
    """A function, event, error or modifier owned by a contract."""

    name: str
    kind: str
    signature: str
    params: list[ParamInfo] = field(default_factory=list)
    returns: list[ReturnInfo] = field(default_factory=list)
    visibility: str | None = None
    mutability: str | None = None
    notice: str | None = None
    dev: str | None = None
    example: str | None = None
    inheritdoc: str | None = None
    contract: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ContractEntity:
    """A top-level contract, library or interface declaration."""

    name: str
    kind: str
    category: str
    version: str
    inheritance: list[str] = field(default_factory=list)
    notice: str | None = None
    source_url: str | None = None
    file_path: str | None = None
    functions: list[MemberEntity] = field(default_factory=list)
    events: list[MemberEntity] = field(default_factory=list)
    errors: list[MemberEntity] = field(default_factory=list)
    modifiers: list[MemberEntity] = field(default_factory=list)

    def members(self) -> list[MemberEntity]:
        """All members, functions first, then events, errors, modifiers."""
        return [*self.functions, *self.events, *self.errors, *self.modifiers]

    def add_member(self, member: MemberEntity) -> None:
        _member_list(self, member.kind).append(member)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ContentChunk:
    """One retrievable unit of documentation text."""

    title: str
    content: str
    category: str
    module: str
    version: str
    source_kind: str = "guide"
    source_url: str | None = None
    file_path: str | None = None


def _member_list(contract: ContractEntity, kind: str) -> list[MemberEntity]:
    if kind == "function":
        return contract.functions
    if kind == "event":
        return contract.events
    if kind == "error":
        return contract.errors
    if kind == "modifier":
        return contract.modifiers
    msg = f"Unknown member kind: {kind!r}"
    raise ValueError(msg)


# ---------------------------------------------------------------------------
# Storage boundary: ordered record lists <-> JSON text
# ---------------------------------------------------------------------------


def params_to_json(params: list[ParamInfo]) -> str:
    return json.dumps([asdict(p) for p in params], ensure_ascii=False)


def returns_to_json(returns: list[ReturnInfo]) -> str:
    return json.dumps([asdict(r) for r in returns], ensure_ascii=False)


def params_from_json(text: str | None) -> list[ParamInfo]:
    if not text:
        return []
    return [
        ParamInfo(name=item.get("name", ""), type=item["type"], description=item.get("description"))
        for item in json.loads(text)
    ]


def returns_from_json(text: str | None) -> list[ReturnInfo]:
    if not text:
        return []
    return [
        ReturnInfo(type=item["type"], name=item.get("name"), description=item.get("description"))
        for item in json.loads(text)
    ]

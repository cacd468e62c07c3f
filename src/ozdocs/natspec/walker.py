"""Declaration walker: tree-sitter Solidity parsing into contract entities."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from tree_sitter import Language, Parser

from ozdocs.models import ContentChunk, ContractEntity, MemberEntity, ParamInfo, ReturnInfo
from ozdocs.natspec.extractor import comment_for_line, extract_comments
from ozdocs.taxonomy import detect_category

if TYPE_CHECKING:
    from pathlib import Path

    from tree_sitter import Node as TSNode

    from ozdocs.models import CommentBlock

logger = logging.getLogger(__name__)

# Top-level declaration node types and the kind they map to.
_CONTRACT_TYPES: dict[str, str] = {
    "contract_declaration": "contract",
    "interface_declaration": "interface",
    "library_declaration": "library",
}

_FUNCTION_TYPES = frozenset({
    "function_definition",
    "constructor_definition",
    "fallback_receive_definition",
})

# Member node types with plain parameter lists (no visibility/returns).
_SIMPLE_MEMBER_TYPES: dict[str, str] = {
    "event_definition": "event",
    "error_declaration": "error",
    "modifier_definition": "modifier",
}

_PARAMETER_TYPES = frozenset({"parameter", "event_parameter", "error_parameter"})
_VISIBILITY_TOKENS = frozenset({"public", "external", "internal", "private"})
_MUTABILITY_TOKENS = frozenset({"view", "pure", "payable"})


@dataclass(frozen=True)
class SolidityParser:
    """Parser handle: created once per build and passed explicitly."""

    language: Language
    parser: Parser


def load_solidity_parser() -> SolidityParser:
    """Load the Solidity grammar and return a ready parser handle."""
    import tree_sitter_solidity as tssolidity

    language = Language(tssolidity.language())
    return SolidityParser(language=language, parser=Parser(language))


# ---------------------------------------------------------------------------
# Node helpers
# ---------------------------------------------------------------------------


def _text(node: TSNode | None) -> str:
    if node is None or node.text is None:
        return ""
    return node.text.decode("utf-8")


def _line(node: TSNode) -> int:
    # tree-sitter uses 0-based rows; comments are keyed by 1-based lines.
    return node.start_point.row + 1


def _named(node: TSNode) -> list[TSNode]:
    return [c for c in node.named_children if c.type != "comment"]


def render_type(node: TSNode | None) -> str:
    """Render a type node as Solidity source text.

    Elementary types render literally, user-defined types as their dotted
    path, arrays as ``T[n]`` / ``T[]``, mappings as ``mapping(K => V)``.
    Function types collapse to the literal ``function``.
    """
    if node is None:
        return ""
    if node.type == "primitive_type":
        return " ".join(_text(node).split())
    if node.type in ("user_defined_type", "identifier", "member_expression"):
        return "".join(_text(node).split())

    children = [c for c in node.children if c.type != "comment"]
    if not children:
        return " ".join(_text(node).split())
    first = children[0].type

    if first == "function":
        return "function"

    if first == "mapping":
        key = node.child_by_field_name("key_type")
        value = node.child_by_field_name("value_type")
        named = _named(node)
        if key is None and named:
            key = named[0]
        if value is None:
            value = next((c for c in named if c.type == "type_name" and c != key), None)
        return f"mapping({render_type(key)} => {render_type(value)})"

    if any(c.type == "[" for c in children):
        base = render_type(children[0])
        length = ""
        inside = False
        for child in children[1:]:
            if child.type == "[":
                inside = True
            elif child.type == "]":
                break
            elif inside and child.is_named:
                length += "".join(_text(child).split())
        return f"{base}[{length}]"

    named = _named(node)
    if len(named) == 1:
        return render_type(named[0])
    return " ".join(_text(node).split())


def _param_parts(node: TSNode) -> tuple[str, str]:
    """Return ``(type, name)`` of a parameter node; name may be empty."""
    type_node = node.child_by_field_name("type")
    name_node = node.child_by_field_name("name")
    if type_node is None:
        type_node = next((c for c in _named(node) if c.type == "type_name"), None)
    if name_node is None:
        name_node = next(
            (c for c in reversed(_named(node)) if c.type == "identifier" and c != type_node),
            None,
        )
    return render_type(type_node), _text(name_node)


def _parameter_nodes(node: TSNode) -> list[TSNode]:
    return [c for c in node.children if c.type in _PARAMETER_TYPES]


def _build_params(node: TSNode, comment: CommentBlock | None) -> list[ParamInfo]:
    params: list[ParamInfo] = []
    for param in _parameter_nodes(node):
        type_str, name = _param_parts(param)
        description = comment.params.get(name) if comment is not None and name else None
        params.append(ParamInfo(name=name, type=type_str, description=description))
    return params


def _build_returns(node: TSNode, comment: CommentBlock | None) -> list[ReturnInfo]:
    return_node = node.child_by_field_name("return_type")
    if return_node is None:
        return_node = next((c for c in node.children if c.type == "return_type_definition"), None)
    if return_node is None:
        return []

    returns: list[ReturnInfo] = []
    for idx, param in enumerate(_parameter_nodes(return_node)):
        type_str, name = _param_parts(param)
        description = None
        if comment is not None:
            for key in (name, f"_{idx}", str(idx)):
                if key and key in comment.returns:
                    description = comment.returns[key]
                    break
        returns.append(ReturnInfo(type=type_str, name=name or None, description=description))
    return returns


def _render_params(params: list[ParamInfo]) -> str:
    return ", ".join(f"{p.type} {p.name}" if p.name else p.type for p in params)


def function_signature(
    name: str,
    params: list[ParamInfo],
    returns: list[ReturnInfo],
    visibility: str,
    mutability: str,
) -> str:
    """Render ``function NAME(...) VISIBILITY [MUTABILITY] [returns (...)]``."""
    sig = f"function {name}({_render_params(params)}) {visibility}"
    if mutability:
        sig += f" {mutability}"
    if returns:
        sig += f" returns ({', '.join(r.type for r in returns)})"
    return sig


def member_signature(kind: str, name: str, params: list[ParamInfo]) -> str:
    """Render ``<kind> NAME(...)`` for events, errors and modifiers."""
    return f"{kind} {name}({_render_params(params)})"


# ---------------------------------------------------------------------------
# Member walk
# ---------------------------------------------------------------------------


def _function_name(node: TSNode) -> str:
    if node.type == "constructor_definition":
        return "constructor"
    if node.type == "fallback_receive_definition":
        tokens = {c.type for c in node.children}
        if "receive" in tokens:
            return "receive"
        return "fallback"
    return _text(node.child_by_field_name("name"))


def _function_modifiers(node: TSNode) -> tuple[str | None, str]:
    """Return ``(visibility, mutability)`` declared on a function node."""
    visibility: str | None = None
    mutability = ""
    for child in node.children:
        if child.type == "visibility" or (
            node.type == "constructor_definition" and child.type in _VISIBILITY_TOKENS
        ):
            visibility = _text(child).strip()
        elif child.type == "state_mutability" or child.type == "payable":
            text = _text(child).strip()
            if text in _MUTABILITY_TOKENS:
                mutability = text
    return visibility, mutability


def _parse_function(node: TSNode, comment: CommentBlock | None) -> MemberEntity | None:
    name = _function_name(node)
    if not name:
        return None

    visibility, mutability = _function_modifiers(node)
    visibility = visibility or "public"
    params = _build_params(node, comment)
    returns = _build_returns(node, comment)

    return MemberEntity(
        name=name,
        kind="function",
        signature=function_signature(name, params, returns, visibility, mutability),
        params=params,
        returns=returns,
        visibility=visibility,
        mutability=mutability,
        notice=comment.notice if comment else None,
        dev=comment.dev if comment else None,
        inheritdoc=comment.inheritdoc if comment else None,
    )


def _parse_simple_member(
    node: TSNode,
    kind: str,
    comment: CommentBlock | None,
) -> MemberEntity | None:
    name = _text(node.child_by_field_name("name"))
    if not name:
        return None
    params = _build_params(node, comment)
    return MemberEntity(
        name=name,
        kind=kind,
        signature=member_signature(kind, name, params),
        params=params,
        notice=comment.notice if comment else None,
        dev=comment.dev if comment else None,
        inheritdoc=comment.inheritdoc if comment else None,
    )


# ---------------------------------------------------------------------------
# Contract walk
# ---------------------------------------------------------------------------


def _contract_kind(node: TSNode) -> str:
    kind = _CONTRACT_TYPES[node.type]
    if kind == "contract" and any(c.type == "abstract" for c in node.children):
        return "abstract"
    return kind


def _inheritance(node: TSNode) -> list[str]:
    """Base contracts named by user-defined type, in header order."""
    bases: list[str] = []
    for spec in node.children:
        if spec.type != "inheritance_specifier":
            continue
        ancestor = spec.child_by_field_name("ancestor")
        if ancestor is None:
            named = _named(spec)
            ancestor = named[0] if named else None
        if ancestor is None or ancestor.type not in ("user_defined_type", "identifier"):
            continue
        bases.append("".join(_text(ancestor).split()))
    return bases


def _contract_body(node: TSNode) -> TSNode | None:
    body = node.child_by_field_name("body")
    if body is None:
        body = next((c for c in node.children if c.type == "contract_body"), None)
    return body


def _parse_contract(
    node: TSNode,
    comments: dict[int, CommentBlock],
    *,
    category: str,
    version: str,
    source_url: str | None,
    file_path: str | None,
) -> ContractEntity | None:
    name = _text(node.child_by_field_name("name"))
    if not name:
        return None

    own_comment = comment_for_line(comments, _line(node))
    contract = ContractEntity(
        name=name,
        kind=_contract_kind(node),
        category=category,
        version=version,
        inheritance=_inheritance(node),
        notice=own_comment.notice if own_comment else None,
        source_url=source_url,
        file_path=file_path,
    )

    body = _contract_body(node)
    if body is None:
        return contract

    for member_node in body.named_children:
        comment = comment_for_line(comments, _line(member_node))
        member: MemberEntity | None = None
        if member_node.type in _FUNCTION_TYPES:
            member = _parse_function(member_node, comment)
        elif member_node.type in _SIMPLE_MEMBER_TYPES:
            member = _parse_simple_member(
                member_node, _SIMPLE_MEMBER_TYPES[member_node.type], comment
            )
        if member is not None:
            contract.add_member(member)

    return contract


def parse_contracts(
    handle: SolidityParser,
    source: str,
    *,
    rel_path: str,
    version: str,
    source_url: str | None = None,
    file_path: str | None = None,
) -> list[ContractEntity]:
    """Parse one Solidity source into contract entities.

    *rel_path* is the path relative to the source tree root and drives the
    category.  Syntax errors are tolerated: whatever the grammar recovered is
    walked and a warning is logged.
    """
    tree = handle.parser.parse(source.encode("utf-8"))
    if tree.root_node.has_error:
        logger.warning("Syntax errors in %s; indexing recovered declarations", rel_path)

    comments = extract_comments(source)
    category = detect_category(rel_path)

    contracts: list[ContractEntity] = []
    for child in tree.root_node.children:
        if child.type not in _CONTRACT_TYPES:
            continue
        contract = _parse_contract(
            child,
            comments,
            category=category,
            version=version,
            source_url=source_url,
            file_path=file_path,
        )
        if contract is not None:
            contracts.append(contract)
    return contracts


def parse_contract_file(
    handle: SolidityParser,
    path: Path,
    root: Path,
    *,
    version: str,
    source_url: str | None = None,
) -> list[ContractEntity]:
    """Read and parse a ``.sol`` file located under *root*.

    Raises ``OSError`` / ``UnicodeDecodeError`` when the file is unreadable.
    """
    source = path.read_text(encoding="utf-8")
    rel_path = path.relative_to(root).as_posix()
    return parse_contracts(
        handle,
        source,
        rel_path=rel_path,
        version=version,
        source_url=source_url,
        file_path=rel_path,
    )


def contract_chunk(contract: ContractEntity) -> ContentChunk:
    """Render a contract's NatSpec as a searchable ``natspec-derived`` chunk."""
    lines: list[str] = []
    if contract.notice:
        lines.append(contract.notice)
    if contract.inheritance:
        lines.append(f"Inherits: {', '.join(contract.inheritance)}")
    for member in contract.members():
        entry = f"`{member.signature}`"
        text = member.notice or member.dev
        if text:
            entry += f": {text}"
        lines.append(entry)

    return ContentChunk(
        title=contract.name,
        content="\n\n".join(lines),
        category=contract.category,
        module=contract.name,
        version=contract.version,
        source_kind="natspec-derived",
        source_url=contract.source_url,
        file_path=contract.file_path,
    )

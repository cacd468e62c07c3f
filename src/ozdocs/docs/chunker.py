"""Documentation chunker: MDX/Markdown scanning and section chunking.

Only level-2 and level-3 headings open a new chunk.  A chunk collects the
paragraphs and fenced code blocks that follow its heading.  Documents
without any such heading become a single chunk.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ozdocs.models import ContentChunk
from ozdocs.taxonomy import derive_module, detect_category, detect_source_kind, detect_version

if TYPE_CHECKING:
    from pathlib import Path

# Heading levels that start a chunk.
BOUNDARY_LEVELS = frozenset({2, 3})

_FRONTMATTER_RE = re.compile(r"\A---\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)", re.DOTALL)
_FRONTMATTER_KV_RE = re.compile(r"^(\w[\w-]*):\s*(.+)$")
_ATX_RE = re.compile(r"^ {0,3}(#{1,6})(?:[ \t]+(.*?))?(?:[ \t]+#+)?[ \t]*$")
_SETEXT_RE = re.compile(r"^ {0,3}(=+|-+)[ \t]*$")
_FENCE_RE = re.compile(r"^( {0,3})(`{3,}|~{3,})[ \t]*([^`\s]*)?.*$")
_ESM_RE = re.compile(r"^(?:import|export)\s")
_JSX_LINE_RE = re.compile(r"^</?[A-Za-z][\w.:-]*(?:\s[^<>]*)?/?>$")
_COMMENT_LINE_RE = re.compile(r"^(?:<!--.*-->|\{/\*.*\*/\})$")

# Inline markup reduced to plain text in heading titles.
_INLINE_RULES: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"!\[([^\]]*)\]\([^)]*\)"), r"\1"),
    (re.compile(r"\[([^\]]*)\]\([^)]*\)"), r"\1"),
    (re.compile(r"\[([^\]]*)\]\[[^\]]*\]"), r"\1"),
    (re.compile(r"<[^>]+>"), ""),
    (re.compile(r"`+([^`]*)`+"), r"\1"),
    (re.compile(r"\*\*(.+?)\*\*"), r"\1"),
    (re.compile(r"(?<!\w)__(.+?)__(?!\w)"), r"\1"),
    (re.compile(r"\*(.+?)\*"), r"\1"),
    (re.compile(r"(?<!\w)_(.+?)_(?!\w)"), r"\1"),
    (re.compile(r"~~(.+?)~~"), r"\1"),
]


@dataclass(frozen=True)
class Block:
    """A top-level block of a markup document."""

    kind: str  # heading | paragraph | code
    text: str
    level: int = 0
    lang: str = ""


def extract_frontmatter(text: str) -> tuple[dict[str, str], str]:
    """Split a leading ``---`` front-matter block from the document body.

    Values are plain strings with surrounding quotes stripped.
    """
    match = _FRONTMATTER_RE.match(text)
    if not match:
        return {}, text

    meta: dict[str, str] = {}
    for line in match.group(1).splitlines():
        kv = _FRONTMATTER_KV_RE.match(line.strip())
        if kv:
            value = kv.group(2).strip()
            if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
                value = value[1:-1]
            meta[kv.group(1)] = value
    return meta, text[match.end() :]


def plain_text(markup: str) -> str:
    """Reduce inline markup (links, emphasis, code, tags) to its text."""
    text = markup
    for pattern, repl in _INLINE_RULES:
        text = pattern.sub(repl, text)
    return " ".join(text.split())


def parse_blocks(body: str) -> list[Block]:
    """Scan a document body into heading, paragraph and fenced code blocks."""
    blocks: list[Block] = []
    paragraph: list[str] = []
    lines = body.splitlines()
    i = 0

    def flush() -> None:
        if paragraph:
            blocks.append(Block("paragraph", "\n".join(paragraph)))
            paragraph.clear()

    while i < len(lines):
        line = lines[i]
        stripped = line.strip()

        fence = _FENCE_RE.match(line)
        if fence:
            flush()
            indent, marker, lang = fence.group(1), fence.group(2), fence.group(3) or ""
            code: list[str] = []
            i += 1
            while i < len(lines):
                closing = lines[i].strip()
                if closing.startswith(marker[0] * len(marker)) and not closing.strip(marker[0]):
                    break
                code_line = lines[i]
                if indent and code_line.startswith(indent):
                    code_line = code_line[len(indent) :]
                code.append(code_line)
                i += 1
            blocks.append(Block("code", "\n".join(code), lang=lang))
            i += 1
            continue

        if not stripped:
            flush()
            i += 1
            continue

        heading = _ATX_RE.match(line)
        if heading:
            flush()
            title = plain_text(heading.group(2) or "")
            blocks.append(Block("heading", title, level=len(heading.group(1))))
            i += 1
            continue

        if paragraph and _SETEXT_RE.match(line):
            level = 1 if stripped.startswith("=") else 2
            title = plain_text(" ".join(paragraph))
            paragraph.clear()
            blocks.append(Block("heading", title, level=level))
            i += 1
            continue

        if _JSX_LINE_RE.match(stripped) or _COMMENT_LINE_RE.match(stripped):
            flush()
            i += 1
            continue

        if not paragraph and _ESM_RE.match(stripped):
            i += 1
            continue

        paragraph.append(stripped)
        i += 1

    flush()
    return blocks


def _render(block: Block) -> str:
    if block.kind == "code":
        return f"```{block.lang}\n{block.text}\n```"
    return block.text


def _sections(blocks: list[Block]) -> list[tuple[str, list[str]]]:
    """Group content blocks under their level-2/3 heading."""
    sections: list[tuple[str, list[str]]] = []
    current: tuple[str, list[str]] | None = None
    for block in blocks:
        if block.kind == "heading":
            if block.level in BOUNDARY_LEVELS:
                current = (block.text, [])
                sections.append(current)
            continue
        if current is not None:
            current[1].append(_render(block))
    return sections


def chunk_document(
    text: str,
    rel_path: str,
    *,
    versions: tuple[str, ...] = ("5.x", "4.x"),
    source_url: str | None = None,
    file_path: str | None = None,
) -> list[ContentChunk]:
    """Split one documentation page into chunks.

    *rel_path* (relative to the docs checkout) drives version, category,
    module and source kind.  When the page has level-2/3 headings, content
    before the first of them is not captured.
    """
    frontmatter, body = extract_frontmatter(text)
    blocks = parse_blocks(body)

    module = derive_module(rel_path)
    fallback_title = frontmatter.get("title") or module
    version = detect_version(rel_path, versions)
    category = detect_category(rel_path)
    source_kind = detect_source_kind(rel_path)

    def make(title: str, parts: list[str]) -> ContentChunk:
        return ContentChunk(
            title=title or fallback_title,
            content="\n\n".join(parts),
            category=category,
            module=module,
            version=version,
            source_kind=source_kind,
            source_url=source_url,
            file_path=file_path,
        )

    sections = _sections(blocks)
    if not any(b.kind == "heading" and b.level in BOUNDARY_LEVELS for b in blocks):
        parts = [_render(b) for b in blocks if b.kind != "heading"]
        if not "".join(parts).strip():
            return []
        return [make(fallback_title, parts)]

    return [make(title, parts) for title, parts in sections if "".join(parts).strip()]


def chunk_file(
    path: Path,
    root: Path,
    *,
    versions: tuple[str, ...] = ("5.x", "4.x"),
    source_url: str | None = None,
) -> list[ContentChunk]:
    """Read and chunk a documentation file located under *root*."""
    text = path.read_text(encoding="utf-8")
    rel_path = path.relative_to(root).as_posix()
    return chunk_document(
        text,
        rel_path,
        versions=versions,
        source_url=source_url,
        file_path=rel_path,
    )

"""NatSpec comment extraction: line scanning and tag parsing.

The extractor associates each doc comment with the line on which the
following declaration starts.  The association is a best-effort heuristic:
the only anchor is "the next non-blank line", so blank lines between a
comment and its declaration are tolerated, but a stray pragma or statement
in between receives the comment instead of the declaration.
"""

from __future__ import annotations

import re

from ozdocs.models import CommentBlock

_PARAM_RE = re.compile(r"@param\s+(\w+)\s*(.*)")
_RETURN_RE = re.compile(r"@return\b\s*(.*)")
_IDENT_RE = re.compile(r"^[A-Za-z_$][\w$]*$")


def _strip_star(line: str) -> str:
    """Drop the leading ``*`` of a block comment interior line."""
    if line.startswith("*"):
        return line[1:].strip()
    return line


def parse_natspec(text: str) -> CommentBlock | None:
    """Parse the text of one logical comment into a :class:`CommentBlock`.

    Returns ``None`` when no tag is populated.
    """
    block = CommentBlock()
    active: str | None = None
    return_count = 0

    for raw in text.split("\n"):
        line = raw.strip()
        if not line:
            continue

        if line.startswith("@notice"):
            active = "notice"
            _append(block, "notice", line[len("@notice") :].strip())
        elif line.startswith("@dev"):
            active = "dev"
            _append(block, "dev", line[len("@dev") :].strip())
        elif line.startswith("@param"):
            active = None
            match = _PARAM_RE.match(line)
            if match:
                block.params[match.group(1)] = match.group(2).strip()
        elif line.startswith("@return"):
            active = None
            match = _RETURN_RE.match(line)
            if match:
                _record_return(block, match.group(1).strip(), return_count)
                return_count += 1
        elif line.startswith("@inheritdoc"):
            active = None
            target = line[len("@inheritdoc") :].strip()
            if target:
                block.inheritdoc = target
        elif line.startswith("@"):
            # Unknown or custom tag: its text is discarded.
            active = None
        elif active is not None:
            _append(block, active, line)

    if block.is_empty():
        return None
    return block


def _append(block: CommentBlock, tag: str, text: str) -> None:
    if not text:
        return
    current = getattr(block, tag)
    setattr(block, tag, f"{current} {text}" if current else text)


def _record_return(block: CommentBlock, body: str, index: int) -> None:
    """Record one ``@return`` tag.

    The tag body is ambiguous: ``@return balance The balance`` names the
    return value, ``@return The balance`` does not.  The full body is always
    stored under the positional key; when the first word looks like an
    identifier and more text follows, the remainder is also stored under
    that word so named returns resolve by name.
    """
    block.returns[str(index)] = body
    first, _, rest = body.partition(" ")
    if rest.strip() and _IDENT_RE.match(first):
        block.returns.setdefault(first, rest.strip())


def _finish(lines: list[str]) -> CommentBlock | None:
    return parse_natspec("\n".join(lines))


def extract_comments(source: str) -> dict[int, CommentBlock]:
    """Map 1-indexed declaration lines to the NatSpec block preceding them.

    Single forward pass.  ``/** ... */`` blocks and runs of consecutive
    ``///`` lines each form one logical comment; the parsed block is keyed
    at the next non-blank line after the comment ends.
    """
    blocks: dict[int, CommentBlock] = {}
    pending: CommentBlock | None = None
    run: list[str] = []
    block_lines: list[str] = []
    in_doc_block = False
    in_plain_block = False

    for lineno, raw in enumerate(source.split("\n"), start=1):
        stripped = raw.strip()

        if in_doc_block:
            end = stripped.find("*/")
            if end == -1:
                block_lines.append(_strip_star(stripped))
                continue
            block_lines.append(_strip_star(stripped[:end].strip()))
            in_doc_block = False
            pending = _finish(block_lines)
            block_lines = []
            continue

        if in_plain_block:
            if "*/" in stripped:
                in_plain_block = False
            continue

        if run and not stripped.startswith("///"):
            pending = _finish(run)
            run = []

        if not stripped:
            continue

        if pending is not None:
            blocks[lineno] = pending
            pending = None

        if stripped.startswith("///"):
            run.append(stripped[3:].strip())
        elif stripped.startswith("/**") and not stripped.startswith("/**/"):
            rest = stripped[3:]
            end = rest.find("*/")
            if end == -1:
                in_doc_block = True
                block_lines = [_strip_star(rest.strip())]
            else:
                pending = _finish([rest[:end].strip()])
        elif stripped.startswith("/*") and "*/" not in stripped[2:]:
            in_plain_block = True

    return blocks


def comment_for_line(blocks: dict[int, CommentBlock], line: int) -> CommentBlock | None:
    """Return the comment for a declaration starting at *line*.

    Looks at *line* first, then at ``line - 1``.
    """
    block = blocks.get(line)
    if block is None:
        block = blocks.get(line - 1)
    return block

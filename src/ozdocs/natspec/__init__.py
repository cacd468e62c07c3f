"""NatSpec domain: comment extraction and tree-sitter declaration walking."""

from ozdocs.natspec.extractor import comment_for_line, extract_comments, parse_natspec
from ozdocs.natspec.walker import (
    SolidityParser,
    contract_chunk,
    load_solidity_parser,
    parse_contract_file,
    parse_contracts,
)

__all__ = [
    "SolidityParser",
    "comment_for_line",
    "contract_chunk",
    "extract_comments",
    "load_solidity_parser",
    "parse_contract_file",
    "parse_contracts",
    "parse_natspec",
]

"""Query domain: full-text search and exact lookups over a built index."""

from ozdocs.query.lookup import (
    ModuleListing,
    ModuleSummary,
    get_categories,
    get_contract,
    get_function,
    list_modules,
)
from ozdocs.query.search import SearchHit, search_docs, search_members, to_fts_query

__all__ = [
    "ModuleListing",
    "ModuleSummary",
    "SearchHit",
    "get_categories",
    "get_contract",
    "get_function",
    "list_modules",
    "search_docs",
    "search_members",
    "to_fts_query",
]

"""Infrastructure domain: database layer, store writers, config and source fetching.

``ozdocs.infrastructure.build`` is not re-exported here since it pulls in
the parsing domains.  Import it directly::

    from ozdocs.infrastructure.build import build_index
"""

from ozdocs.infrastructure.config import IndexConfig, load_config
from ozdocs.infrastructure.db import (
    SCHEMA_VERSION,
    create_schema,
    get_meta,
    open_db,
    open_readonly,
    set_meta,
    table_counts,
)
from ozdocs.infrastructure.fetch import check_sources, fetch_sources

__all__ = [
    "SCHEMA_VERSION",
    "IndexConfig",
    "check_sources",
    "create_schema",
    "fetch_sources",
    "get_meta",
    "load_config",
    "open_db",
    "open_readonly",
    "set_meta",
    "table_counts",
]

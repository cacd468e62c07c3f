"""Documentation domain: MDX/Markdown section chunking."""

from ozdocs.docs.chunker import chunk_document, chunk_file, extract_frontmatter

__all__ = ["chunk_document", "chunk_file", "extract_frontmatter"]

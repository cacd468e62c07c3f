"""ozdocs - offline index and query engine for OpenZeppelin Contracts docs."""

__version__ = "0.3.0"

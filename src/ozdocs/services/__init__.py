"""Services: MCP tool server over the query engine."""

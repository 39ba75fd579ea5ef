"""tutorkb MCP server package."""

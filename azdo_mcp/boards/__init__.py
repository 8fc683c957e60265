"""Azure DevOps teams, boards and iterations module for MCP server."""

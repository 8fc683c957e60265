"""Azure DevOps organizations, projects and user profile module for MCP server."""

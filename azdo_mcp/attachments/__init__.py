"""Azure DevOps work item attachments module for MCP server."""

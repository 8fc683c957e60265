"""MCP tool definitions for Azure DevOps Work Items."""

from azdo_mcp.work_items.comments_and_links import register_comment_tools
from azdo_mcp.work_items.crud_operations import register_crud_tools
from azdo_mcp.work_items.query_operations import register_query_tools
from azdo_mcp.work_items.type_introspection import register_type_tools


def register_work_item_tools(mcp_instance, client_container):
    """
    Register work item related tools with the FastMCP instance.

    Args:
        mcp_instance: The FastMCP instance to register tools with.
        client_container: Dictionary holding the AzureDevOpsClient instance.
    """
    register_crud_tools(mcp_instance, client_container)
    register_type_tools(mcp_instance, client_container)
    register_query_tools(mcp_instance, client_container)
    register_comment_tools(mcp_instance, client_container)

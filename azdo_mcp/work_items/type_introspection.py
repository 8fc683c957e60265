"""MCP tool definitions for work item type and tag introspection."""

import asyncio
import logging

from azdo_mcp.shaping import to_compact_json
from azdo_mcp.validation import get_client, resolve_scope
from azdo_mcp.work_items.client import WorkItemsClient

logger = logging.getLogger(__name__)


def register_type_tools(mcp_instance, client_container):
    """
    Register work item type introspection tools with the FastMCP instance.

    Args:
        mcp_instance: The FastMCP instance to register tools with.
        client_container: Dictionary holding the AzureDevOpsClient instance.
    """

    @mcp_instance.tool
    async def azdo_list_work_item_types(
        organization: str | None = None, project: str | None = None
    ) -> str:
        """
        List the work item types of a project (Bug, Task, User Story, ...).

        Disabled types are left out.

        Returns:
            str: Compact JSON array of type names.
        """
        client = get_client(client_container)
        organization, project = resolve_scope(client, organization, project)

        try:
            types = await asyncio.to_thread(
                WorkItemsClient(client).list_work_item_types, organization, project
            )
            return to_compact_json([t.name for t in types if not t.isDisabled])
        except Exception as e:
            logger.error(f"Failed to list work item types for project '{project}': {e}")
            raise

    @mcp_instance.tool
    async def azdo_list_tags(organization: str | None = None, project: str | None = None) -> str:
        """
        List the work item tags in use in a project.

        Returns:
            str: Compact JSON array of tag names.
        """
        client = get_client(client_container)
        organization, project = resolve_scope(client, organization, project)

        try:
            tags = await asyncio.to_thread(WorkItemsClient(client).list_tags, organization, project)
            return to_compact_json([tag.name for tag in tags])
        except Exception as e:
            logger.error(f"Failed to list tags for project '{project}': {e}")
            raise

"""MCP tool definitions for work item comments and links."""

import asyncio
import logging

from azdo_mcp.shaping import simplify_comment, to_compact_json
from azdo_mcp.validation import (
    get_client,
    require_positive_int,
    require_text,
    resolve_link_type,
    resolve_scope,
)
from azdo_mcp.work_items.client import WorkItemsClient
from azdo_mcp.work_items.crud_operations import format_work_item_json

logger = logging.getLogger(__name__)


def register_comment_tools(mcp_instance, client_container):
    """
    Register comment and link tools with the FastMCP instance.

    Args:
        mcp_instance: The FastMCP instance to register tools with.
        client_container: Dictionary holding the AzureDevOpsClient instance.
    """

    @mcp_instance.tool
    async def azdo_add_comment(
        work_item_id: int,
        text: str,
        organization: str | None = None,
        project: str | None = None,
    ) -> str:
        """
        Add a comment to a work item's discussion.

        Args:
            work_item_id: The work item ID.
            text: Comment text. Plain text or HTML; @mentions are not resolved.
            organization: Organization name. Defaults to the server's organization.
            project: Project name. Defaults to the server's project.

        Returns:
            str: The created comment as compact JSON (id, author, date, text).
        """
        client = get_client(client_container)
        organization, project = resolve_scope(client, organization, project)
        work_item_id = require_positive_int(work_item_id, "work_item_id")
        text = require_text(text, "text")

        try:
            comment = await asyncio.to_thread(
                WorkItemsClient(client).add_comment, organization, project, work_item_id, text
            )
            logger.info(f"Added comment {comment.id} to work item #{work_item_id}")
            return to_compact_json(simplify_comment(comment.model_dump(exclude_none=True)))

        except Exception as e:
            logger.error(f"Failed to add comment to work item {work_item_id}: {e}")
            raise

    @mcp_instance.tool
    async def azdo_link_work_items(
        source_id: int,
        target_id: int,
        link_type: str,
        organization: str | None = None,
        project: str | None = None,
    ) -> str:
        """
        Link two work items.

        ``link_type`` is the role of the source item relative to the target:

        - Parent: source becomes the parent of target
        - Child: source becomes a child of target
        - Related: plain related link
        - Duplicate: source is duplicated by target
        - Dependency: source is a predecessor of target

        A relation reference name such as "System.LinkTypes.Dependency-Reverse"
        is accepted as well.

        Args:
            source_id: The work item that receives the link.
            target_id: The linked work item.
            link_type: Parent, Child, Related, Duplicate or Dependency.
            organization: Organization name. Defaults to the server's organization.
            project: Project name. Defaults to the server's project.

        Returns:
            str: The source work item as compact JSON, including its Relations.

        Examples:
            azdo_link_work_items(source_id=100, target_id=101, link_type="Parent")
        """
        client = get_client(client_container)
        organization, project = resolve_scope(client, organization, project)
        source_id = require_positive_int(source_id, "source_id")
        target_id = require_positive_int(target_id, "target_id")
        relation = resolve_link_type(link_type)

        try:
            work_item = await asyncio.to_thread(
                WorkItemsClient(client).link_work_items,
                organization,
                project,
                source_id,
                target_id,
                relation,
            )
            logger.info(f"Linked work item #{source_id} -> #{target_id} ({relation})")
            return format_work_item_json(work_item)

        except Exception as e:
            logger.error(f"Failed to link work items {source_id} -> {target_id}: {e}")
            raise

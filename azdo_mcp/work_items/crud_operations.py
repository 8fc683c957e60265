"""MCP tool definitions for Azure DevOps Work Items CRUD operations."""

import asyncio
import logging
from typing import Any

from azdo_mcp.shaping import simplify_work_item_json, to_compact_json, work_items_to_csv
from azdo_mcp.validation import (
    get_client,
    parse_extra_fields,
    require_positive_int,
    require_text,
    resolve_scope,
    validate_comment_count,
    validate_ids,
)
from azdo_mcp.work_items.client import MAX_WORK_ITEMS, WorkItemsClient
from azdo_mcp.work_items.field_mapping import build_field_map
from azdo_mcp.work_items.models import WorkItem

logger = logging.getLogger(__name__)

PARENT_LINK = "System.LinkTypes.Hierarchy-Reverse"


def format_work_items_csv(work_items: list[WorkItem]) -> str:
    """Simplify work items and render them as CSV, one line per item."""
    return work_items_to_csv([simplify_work_item_json(wi.to_json()) for wi in work_items])


def format_work_item_json(work_item: WorkItem) -> str:
    return to_compact_json(simplify_work_item_json(work_item.to_json()))


def register_crud_tools(mcp_instance, client_container):
    """
    Register CRUD work item tools with the FastMCP instance.

    Args:
        mcp_instance: The FastMCP instance to register tools with.
        client_container: Dictionary holding the AzureDevOpsClient instance.
    """

    @mcp_instance.tool
    async def azdo_create_work_item(
        work_item_type: str,
        title: str,
        organization: str | None = None,
        project: str | None = None,
        description: str | None = None,
        assigned_to: str | None = None,
        area_path: str | None = None,
        iteration_path: str | None = None,
        state: str | None = None,
        board_column: str | None = None,
        board_row: str | None = None,
        priority: int | None = None,
        severity: str | None = None,
        story_points: float | None = None,
        effort: float | None = None,
        remaining_work: float | None = None,
        tags: str | None = None,
        activity: str | None = None,
        start_date: str | None = None,
        target_date: str | None = None,
        acceptance_criteria: str | None = None,
        repro_steps: str | None = None,
        parent_id: int | None = None,
        fields: dict[str, Any] | str | None = None,
    ) -> str:
        """
        Create a new work item in Azure DevOps.

        Creates work items of any type (Bug, Task, User Story, Feature, Epic, ...)
        with the common fields as named arguments and any other field by its
        reference name via ``fields``.

        Args:
            work_item_type: The type of work item (e.g., "Bug", "Task", "User Story").
            title: The title of the work item.
            organization: Organization name. Defaults to the server's organization.
            project: Project name. Defaults to the server's project.
            description: Description (HTML or plain text).
            assigned_to: Email address or display name of the assignee.
            area_path: Area path (e.g., "MyProject\\Team1").
            iteration_path: Iteration path (e.g., "MyProject\\Sprint 1").
            state: Initial state (e.g., "New"). Defaults to the type's default.
            board_column: Board column.
            board_row: Board row (swimlane).
            priority: Priority (1=highest, 4=lowest).
            severity: Severity (e.g., "2 - High").
            story_points: Story points.
            effort: Effort.
            remaining_work: Remaining work in hours.
            tags: Tags separated by ";" or ",".
            activity: Activity (e.g., "Development").
            start_date: Start date (ISO 8601).
            target_date: Target date (ISO 8601).
            acceptance_criteria: Acceptance criteria (HTML or plain text).
            repro_steps: Repro steps for bugs (HTML or plain text).
            parent_id: Optional parent work item; the new item becomes its child.
            fields: Extra fields keyed by reference name, as an object or a JSON
                string (e.g., {"Custom.Environment": "Staging"}). They win over
                the named arguments.

        Returns:
            str: The created work item as compact JSON.

        Examples:
            azdo_create_work_item(
                work_item_type="Bug",
                title="Login button not working",
                description="Users cannot click the login button on mobile",
                priority=2,
                tags="mobile, login"
            )

            azdo_create_work_item(
                work_item_type="Task",
                title="Write release notes",
                parent_id=1234,
                fields={"Microsoft.VSTS.Common.Activity": "Documentation"}
            )
        """
        client = get_client(client_container)
        organization, project = resolve_scope(client, organization, project)
        work_item_type = require_text(work_item_type, "work_item_type")
        title = require_text(title, "title")
        if parent_id is not None:
            parent_id = require_positive_int(parent_id, "parent_id")

        field_map = build_field_map(
            parse_extra_fields(fields),
            title=title,
            description=description,
            assigned_to=assigned_to,
            area_path=area_path,
            iteration_path=iteration_path,
            state=state,
            board_column=board_column,
            board_row=board_row,
            priority=priority,
            severity=severity,
            story_points=story_points,
            effort=effort,
            remaining_work=remaining_work,
            tags=tags,
            activity=activity,
            start_date=start_date,
            target_date=target_date,
            acceptance_criteria=acceptance_criteria,
            repro_steps=repro_steps,
        )

        work_items_client = WorkItemsClient(client)
        try:
            work_item = await asyncio.to_thread(
                work_items_client.create_work_item, organization, project, work_item_type, field_map
            )
            logger.info(f"Created {work_item_type} work item #{work_item.id}: {title}")

            if parent_id is not None:
                work_item = await asyncio.to_thread(
                    work_items_client.link_work_items,
                    organization,
                    project,
                    work_item.id,
                    parent_id,
                    PARENT_LINK,
                )
                logger.info(f"Linked work item #{work_item.id} to parent #{parent_id}")

            return format_work_item_json(work_item)

        except Exception as e:
            logger.error(f"Failed to create work item: {e}")
            raise

    @mcp_instance.tool
    async def azdo_get_work_item(
        id: int,
        organization: str | None = None,
        project: str | None = None,
        include_latest_n_comments: int | None = None,
        include_relations: bool = False,
    ) -> str:
        """
        Get a single work item as CSV.

        Fields are flattened to short names (Title, State, Column, ...),
        identities become "Name <email>" and rich text becomes plain text.

        Args:
            id: The work item ID.
            organization: Organization name. Defaults to the server's organization.
            project: Project name. Defaults to the server's project.
            include_latest_n_comments: -1 for all comments, N for the latest N.
            include_relations: Include links and attachments ("Parent:123", ...).

        Returns:
            str: CSV with a header row and one work item row.
        """
        client = get_client(client_container)
        organization, project = resolve_scope(client, organization, project)
        work_item_id = require_positive_int(id, "id")
        comment_count = validate_comment_count(include_latest_n_comments)

        try:
            work_item = await asyncio.to_thread(
                WorkItemsClient(client).get_work_item,
                organization,
                project,
                work_item_id,
                include_latest_n_comments=comment_count,
                include_relations=include_relations,
            )
            return format_work_items_csv([work_item])

        except Exception as e:
            logger.error(f"Failed to get work item {work_item_id}: {e}")
            raise

    @mcp_instance.tool
    async def azdo_get_work_items(
        ids: list[int],
        organization: str | None = None,
        project: str | None = None,
        include_latest_n_comments: int | None = None,
        include_relations: bool = False,
    ) -> str:
        """
        Get several work items as CSV, in the order requested.

        Args:
            ids: Work item IDs (at most 1000).
            organization: Organization name. Defaults to the server's organization.
            project: Project name. Defaults to the server's project.
            include_latest_n_comments: -1 for all comments, N for the latest N.
            include_relations: Include links and attachments.

        Returns:
            str: CSV with one row per work item, or "No work items found".
        """
        client = get_client(client_container)
        organization, project = resolve_scope(client, organization, project)
        work_item_ids = validate_ids(ids, "ids", limit=MAX_WORK_ITEMS)
        comment_count = validate_comment_count(include_latest_n_comments)

        try:
            work_items = await asyncio.to_thread(
                WorkItemsClient(client).get_work_items,
                organization,
                project,
                work_item_ids,
                include_latest_n_comments=comment_count,
                include_relations=include_relations,
            )
            if not work_items:
                return "No work items found"
            return format_work_items_csv(work_items)

        except Exception as e:
            logger.error(f"Failed to get work items {work_item_ids}: {e}")
            raise

    @mcp_instance.tool
    async def azdo_update_work_item(
        id: int,
        organization: str | None = None,
        project: str | None = None,
        title: str | None = None,
        description: str | None = None,
        assigned_to: str | None = None,
        area_path: str | None = None,
        iteration_path: str | None = None,
        state: str | None = None,
        board_column: str | None = None,
        board_row: str | None = None,
        priority: int | None = None,
        severity: str | None = None,
        story_points: float | None = None,
        effort: float | None = None,
        remaining_work: float | None = None,
        tags: str | None = None,
        activity: str | None = None,
        start_date: str | None = None,
        target_date: str | None = None,
        acceptance_criteria: str | None = None,
        repro_steps: str | None = None,
        fields: dict[str, Any] | str | None = None,
    ) -> str:
        """
        Update fields of an existing work item.

        Only the arguments you pass are changed. At least one field is required.

        Args:
            id: The work item ID.
            organization: Organization name. Defaults to the server's organization.
            project: Project name. Defaults to the server's project.
            title ... repro_steps: Same fields as azdo_create_work_item.
            fields: Extra fields keyed by reference name, as an object or JSON string.

        Returns:
            str: The updated work item as compact JSON.

        Examples:
            azdo_update_work_item(id=42, state="Active", assigned_to="dev@company.com")
            azdo_update_work_item(id=42, fields='{"System.History": "Moved to QA"}')
        """
        client = get_client(client_container)
        organization, project = resolve_scope(client, organization, project)
        work_item_id = require_positive_int(id, "id")
        if title is not None:
            title = require_text(title, "title")

        field_map = build_field_map(
            parse_extra_fields(fields),
            title=title,
            description=description,
            assigned_to=assigned_to,
            area_path=area_path,
            iteration_path=iteration_path,
            state=state,
            board_column=board_column,
            board_row=board_row,
            priority=priority,
            severity=severity,
            story_points=story_points,
            effort=effort,
            remaining_work=remaining_work,
            tags=tags,
            activity=activity,
            start_date=start_date,
            target_date=target_date,
            acceptance_criteria=acceptance_criteria,
            repro_steps=repro_steps,
        )

        try:
            work_item = await asyncio.to_thread(
                WorkItemsClient(client).update_work_item,
                organization,
                project,
                work_item_id,
                field_map,
            )
            logger.info(f"Updated work item #{work_item_id}: {', '.join(field_map)}")
            return format_work_item_json(work_item)

        except Exception as e:
            logger.error(f"Failed to update work item {work_item_id}: {e}")
            raise

"""MCP tool definitions for Azure DevOps Work Items query operations."""

import asyncio
import logging

from azdo_mcp.validation import (
    get_client,
    require_positive_int,
    require_text,
    resolve_scope,
    validate_comment_count,
)
from azdo_mcp.work_items.client import WorkItemsClient
from azdo_mcp.work_items.crud_operations import format_work_items_csv
from azdo_mcp.work_items.wiql import QueryFilters, build_wiql_from_filters

logger = logging.getLogger(__name__)

NO_RESULTS = "No work items found"


def register_query_tools(mcp_instance, client_container):
    """
    Register work item query tools with the FastMCP instance.

    Args:
        mcp_instance: The FastMCP instance to register tools with.
        client_container: Dictionary holding the AzureDevOpsClient instance.
    """

    async def run_query(
        organization: str,
        project: str,
        wiql: str,
        top: int | None,
        include_latest_n_comments: int | None,
    ) -> str:
        client = get_client(client_container)
        work_items = await asyncio.to_thread(
            WorkItemsClient(client).query_work_items,
            organization,
            project,
            wiql,
            top=top,
            include_latest_n_comments=include_latest_n_comments,
        )
        logger.info(f"Query returned {len(work_items)} work items")
        if not work_items:
            return NO_RESULTS
        return format_work_items_csv(work_items)

    @mcp_instance.tool
    async def azdo_query_work_items(
        organization: str | None = None,
        project: str | None = None,
        area_path: str | None = None,
        iteration_path: str | None = None,
        created_date_from: str | None = None,
        created_date_to: str | None = None,
        modified_date_from: str | None = None,
        modified_date_to: str | None = None,
        include_board_column: list[str] | None = None,
        include_board_row: list[str] | None = None,
        include_work_item_type: list[str] | None = None,
        include_state: list[str] | None = None,
        include_assigned_to: list[str] | None = None,
        include_tags: list[str] | None = None,
        exclude_board_column: list[str] | None = None,
        exclude_board_row: list[str] | None = None,
        exclude_work_item_type: list[str] | None = None,
        exclude_state: list[str] | None = None,
        exclude_assigned_to: list[str] | None = None,
        exclude_tags: list[str] | None = None,
        top: int | None = None,
        include_latest_n_comments: int | None = None,
    ) -> str:
        """
        Query work items of a project with structured filters.

        All filters are combined with AND. Paths match the node and everything
        under it; dates are inclusive (YYYY-MM-DD). Results are ordered by most
        recently changed first and capped at 1000 items.

        Args:
            organization: Organization name. Defaults to the server's organization.
            project: Project name. Defaults to the server's project.
            area_path: Only items under this area path.
            iteration_path: Only items under this iteration path.
            created_date_from: Created on or after this date.
            created_date_to: Created on or before this date.
            modified_date_from: Changed on or after this date.
            modified_date_to: Changed on or before this date.
            include_board_column: Only items in one of these board columns.
            include_board_row: Only items in one of these board rows.
            include_work_item_type: Only items of these types (e.g., ["Bug"]).
            include_state: Only items in these states.
            include_assigned_to: Only items assigned to one of these people.
            include_tags: Only items carrying every one of these tags.
            exclude_board_column: Skip items in these board columns.
            exclude_board_row: Skip items in these board rows.
            exclude_work_item_type: Skip items of these types.
            exclude_state: Skip items in these states (e.g., ["Closed", "Removed"]).
            exclude_assigned_to: Skip items assigned to these people.
            exclude_tags: Skip items carrying any of these tags.
            top: Maximum number of items to return.
            include_latest_n_comments: -1 for all comments, N for the latest N.

        Returns:
            str: CSV with one row per work item, or "No work items found".

        Examples:
            azdo_query_work_items(include_work_item_type=["Bug"], exclude_state=["Closed"])
            azdo_query_work_items(iteration_path="MyProject\\Sprint 5", include_tags=["api"])
        """
        client = get_client(client_container)
        organization, project = resolve_scope(client, organization, project)
        if top is not None:
            top = require_positive_int(top, "top")
        comment_count = validate_comment_count(include_latest_n_comments)

        filters = QueryFilters(
            area_path=area_path,
            iteration_path=iteration_path,
            created_date_from=created_date_from,
            created_date_to=created_date_to,
            modified_date_from=modified_date_from,
            modified_date_to=modified_date_to,
            include_board_column=include_board_column or [],
            include_board_row=include_board_row or [],
            include_work_item_type=include_work_item_type or [],
            include_state=include_state or [],
            include_assigned_to=include_assigned_to or [],
            include_tags=include_tags or [],
            exclude_board_column=exclude_board_column or [],
            exclude_board_row=exclude_board_row or [],
            exclude_work_item_type=exclude_work_item_type or [],
            exclude_state=exclude_state or [],
            exclude_assigned_to=exclude_assigned_to or [],
            exclude_tags=exclude_tags or [],
        )
        wiql = build_wiql_from_filters(project, filters)

        try:
            return await run_query(organization, project, wiql, top, comment_count)
        except Exception as e:
            logger.error(f"Failed to query work items in project '{project}': {e}")
            raise

    @mcp_instance.tool
    async def azdo_query_work_items_by_wiql(
        query: str,
        organization: str | None = None,
        project: str | None = None,
        top: int | None = None,
        include_latest_n_comments: int | None = None,
    ) -> str:
        """
        Run a raw WIQL (Work Item Query Language) query.

        The query must select from WorkItems; only the matching IDs are used,
        the items themselves are then fetched with all their fields.

        Args:
            query: WIQL query.
            organization: Organization name. Defaults to the server's organization.
            project: Project name. Defaults to the server's project.
            top: Maximum number of items to return.
            include_latest_n_comments: -1 for all comments, N for the latest N.

        Returns:
            str: CSV with one row per work item, or "No work items found".

        Examples:
            azdo_query_work_items_by_wiql(
                query="SELECT [System.Id] FROM WorkItems "
                      "WHERE [System.AssignedTo] = @Me AND [System.State] <> 'Closed'"
            )
        """
        client = get_client(client_container)
        organization, project = resolve_scope(client, organization, project)
        query = require_text(query, "query")
        if top is not None:
            top = require_positive_int(top, "top")
        comment_count = validate_comment_count(include_latest_n_comments)

        try:
            return await run_query(organization, project, query, top, comment_count)
        except Exception as e:
            logger.error(f"Failed to run WIQL query in project '{project}': {e}")
            raise

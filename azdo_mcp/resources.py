"""
MCP Resources for providing guidance to LLM clients.

The guide below is served to any client that lists the server's resources and
describes which tools to chain for common Boards tasks.
"""

import logging

logger = logging.getLogger(__name__)

WORK_ITEMS_GUIDE = """# Azure DevOps Boards MCP - Work Items Guide

## Scope
`organization` and `project` are optional on every tool when the server was
started with `--organization` / `--project` (or AZDO_ORGANIZATION /
AZDO_PROJECT). Pass them explicitly to work in another project.

## 1. Orient yourself
- `azdo_get_current_user` - who the server acts as
- `azdo_list_organizations`, `azdo_list_projects`
- `azdo_list_teams` -> `azdo_get_team` / `azdo_list_team_members`
- `azdo_list_work_item_types`, `azdo_list_tags`

## 2. Boards and sprints
- `azdo_list_team_boards` -> `azdo_list_board_columns` / `azdo_list_board_rows`
- `azdo_get_team_current_iteration` for the active sprint
- `azdo_get_team_iterations` or `azdo_list_iteration_paths` (team_id + timeframe)
- `azdo_list_area_paths` for valid area paths

## 3. Find work items
- `azdo_query_work_items` with structured filters, e.g.
  `include_work_item_type=["Bug"]`, `exclude_state=["Closed", "Removed"]`,
  `iteration_path="Project\\\\Sprint 5"`
- `azdo_query_work_items_by_wiql` for anything the filters cannot express
- `azdo_get_work_item` / `azdo_get_work_items` by id; set
  `include_latest_n_comments` (-1 = all) and `include_relations` as needed

Results are CSV. Columns without any value are left out; relations read as
`Parent:12`, `Child:34`, `Related:56`.

## 4. Change work items
- `azdo_create_work_item` (use `parent_id` to create a child directly)
- `azdo_update_work_item` - only the fields you pass change
- `azdo_add_comment`
- `azdo_link_work_items` with link_type Parent, Child, Related, Duplicate or
  Dependency (the role of the source item)
- `azdo_upload_attachment` (base64, optional `work_item_id`) and
  `azdo_download_attachment`

Fields without a named argument go in `fields` by reference name, e.g.
`{"Microsoft.VSTS.Common.ValueArea": "Business"}`.

## Common mistakes
- Assigning to a display name that is not unique: use the uniqueName from
  `azdo_list_team_members`.
- Moving an item to a board column that does not exist: check
  `azdo_list_board_columns` first.
- Deleting work items is not supported; set the state to Removed instead.
"""


def register_mcp_resources(mcp_instance):
    """Register MCP resources that provide guidance to LLMs."""

    @mcp_instance.resource("azdo://guide/work-items")
    def work_items_guide() -> str:
        """Workflow guide for finding, creating, updating and linking work items."""
        return WORK_ITEMS_GUIDE

    logger.info("Registered MCP resources")

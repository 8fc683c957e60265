"""MCP tool definitions for Azure DevOps teams, boards and iterations."""

import asyncio
import csv
import io
import logging

from azdo_mcp.boards.client import BoardsClient
from azdo_mcp.errors import AdoValidationError
from azdo_mcp.models import TeamIteration
from azdo_mcp.shaping import board_columns_to_csv, simplify_work_item_json, to_compact_json
from azdo_mcp.validation import (
    get_client,
    optional_text,
    require_text,
    resolve_scope,
    validate_timeframe,
)

logger = logging.getLogger(__name__)


def _date(value: str | None) -> str:
    """``2024-05-01T00:00:00Z`` -> ``2024-05-01``; missing dates render ``N/A``."""
    if not value:
        return "N/A"
    return value.split("T", 1)[0]


def _csv_rows(rows: list[list[str]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerows(rows)
    return buffer.getvalue()


def format_iterations(iterations: list[TeamIteration]) -> str:
    """Render iterations as ``name,timeframe,start,finish`` lines."""
    return _csv_rows(
        [
            [
                it.name,
                it.attributes.timeFrame or "N/A",
                _date(it.attributes.startDate),
                _date(it.attributes.finishDate),
            ]
            for it in iterations
        ]
    )


def register_board_tools(mcp_instance, client_container):
    """
    Register team, board, iteration and classification node tools.

    Args:
        mcp_instance: The FastMCP instance to register tools with.
        client_container: Dictionary holding the AzureDevOpsClient instance.
    """

    def boards_client() -> BoardsClient:
        return BoardsClient(get_client(client_container))

    @mcp_instance.tool
    async def azdo_list_teams(organization: str | None = None, project: str | None = None) -> str:
        """
        List the teams of a project.

        Returns:
            str: Compact JSON array of team names.
        """
        boards = boards_client()
        organization, project = resolve_scope(boards.client, organization, project)
        try:
            teams = await asyncio.to_thread(boards.list_teams, organization, project)
            return to_compact_json([team.name for team in teams])
        except Exception as e:
            logger.error(f"Failed to list teams for project '{project}': {e}")
            raise

    @mcp_instance.tool
    async def azdo_get_team(
        team_id: str, organization: str | None = None, project: str | None = None
    ) -> str:
        """
        Get team details (id, name, description, project).

        Args:
            team_id: Team name or ID.

        Returns:
            str: The team as compact JSON.
        """
        boards = boards_client()
        organization, project = resolve_scope(boards.client, organization, project)
        team_id = require_text(team_id, "team_id")
        try:
            team = await asyncio.to_thread(boards.get_team, organization, project, team_id)
            return to_compact_json(simplify_work_item_json(team.model_dump(exclude_none=True)))
        except Exception as e:
            logger.error(f"Failed to get team '{team_id}': {e}")
            raise

    @mcp_instance.tool
    async def azdo_list_team_members(
        team_id: str, organization: str | None = None, project: str | None = None
    ) -> str:
        """
        List the members of a team.

        Args:
            team_id: Team name or ID.

        Returns:
            str: One ``displayName,uniqueName`` line per member. Use the unique
            name (usually the email) for assigned_to.
        """
        boards = boards_client()
        organization, project = resolve_scope(boards.client, organization, project)
        team_id = require_text(team_id, "team_id")
        try:
            members = await asyncio.to_thread(
                boards.list_team_members, organization, project, team_id
            )
            return _csv_rows(
                [[m.identity.displayName, m.identity.uniqueName or ""] for m in members]
            )
        except Exception as e:
            logger.error(f"Failed to list members of team '{team_id}': {e}")
            raise

    @mcp_instance.tool
    async def azdo_get_team_current_iteration(
        team_id: str, organization: str | None = None, project: str | None = None
    ) -> str:
        """
        Get the current iteration (sprint) of a team.

        Args:
            team_id: Team name or ID.

        Returns:
            str: ``name,start,finish`` with dates as YYYY-MM-DD, or
            "No current iteration found".
        """
        boards = boards_client()
        organization, project = resolve_scope(boards.client, organization, project)
        team_id = require_text(team_id, "team_id")
        try:
            iteration = await asyncio.to_thread(
                boards.get_team_current_iteration, organization, project, team_id
            )
        except Exception as e:
            logger.error(f"Failed to get current iteration of team '{team_id}': {e}")
            raise

        if iteration is None:
            return "No current iteration found"
        return _csv_rows(
            [
                [
                    iteration.name,
                    _date(iteration.attributes.startDate),
                    _date(iteration.attributes.finishDate),
                ]
            ]
        )

    @mcp_instance.tool
    async def azdo_get_team_iterations(
        team_id: str,
        organization: str | None = None,
        project: str | None = None,
        timeframe: str | None = None,
    ) -> str:
        """
        List the iterations selected by a team.

        Args:
            team_id: Team name or ID.
            timeframe: Optional filter: "current", "past" or "future".

        Returns:
            str: One ``name,timeframe,start,finish`` line per iteration, or
            "No iterations found".
        """
        boards = boards_client()
        organization, project = resolve_scope(boards.client, organization, project)
        team_id = require_text(team_id, "team_id")
        timeframe = validate_timeframe(timeframe)
        try:
            iterations = await asyncio.to_thread(
                boards.get_team_iterations, organization, project, team_id, timeframe
            )
        except Exception as e:
            logger.error(f"Failed to get iterations of team '{team_id}': {e}")
            raise

        if not iterations:
            return "No iterations found"
        return format_iterations(iterations)

    @mcp_instance.tool
    async def azdo_list_team_boards(
        team_id: str, organization: str | None = None, project: str | None = None
    ) -> str:
        """
        List the boards of a team (one per backlog level, e.g. "Stories").

        Args:
            team_id: Team name or ID.

        Returns:
            str: Compact JSON array of board names.
        """
        boards = boards_client()
        organization, project = resolve_scope(boards.client, organization, project)
        team_id = require_text(team_id, "team_id")
        try:
            team_boards = await asyncio.to_thread(boards.list_boards, organization, project, team_id)
            return to_compact_json([board.name for board in team_boards])
        except Exception as e:
            logger.error(f"Failed to list boards of team '{team_id}': {e}")
            raise

    @mcp_instance.tool
    async def azdo_get_team_board(
        team_id: str,
        board_id: str,
        organization: str | None = None,
        project: str | None = None,
    ) -> str:
        """
        Get a board with its columns, rows and field mapping.

        Args:
            team_id: Team name or ID.
            board_id: Board name or ID (e.g. "Stories").

        Returns:
            str: The board as compact JSON.
        """
        boards = boards_client()
        organization, project = resolve_scope(boards.client, organization, project)
        team_id = require_text(team_id, "team_id")
        board_id = require_text(board_id, "board_id")
        try:
            board = await asyncio.to_thread(
                boards.get_board, organization, project, team_id, board_id
            )
            return to_compact_json(simplify_work_item_json(board.model_dump(exclude_none=True)))
        except Exception as e:
            logger.error(f"Failed to get board '{board_id}' of team '{team_id}': {e}")
            raise

    @mcp_instance.tool
    async def azdo_list_board_columns(
        team_id: str,
        board_id: str,
        organization: str | None = None,
        project: str | None = None,
    ) -> str:
        """
        List the columns of a board.

        Args:
            team_id: Team name or ID.
            board_id: Board name or ID.

        Returns:
            str: CSV with header ``name,item_limit,is_split,column_type``.
        """
        boards = boards_client()
        organization, project = resolve_scope(boards.client, organization, project)
        team_id = require_text(team_id, "team_id")
        board_id = require_text(board_id, "board_id")
        try:
            columns = await asyncio.to_thread(
                boards.list_board_columns, organization, project, team_id, board_id
            )
            return board_columns_to_csv([column.model_dump() for column in columns])
        except Exception as e:
            logger.error(f"Failed to list columns of board '{board_id}': {e}")
            raise

    @mcp_instance.tool
    async def azdo_list_board_rows(
        team_id: str,
        board_id: str,
        organization: str | None = None,
        project: str | None = None,
    ) -> str:
        """
        List the rows (swimlanes) of a board. The default row has an empty name.

        Args:
            team_id: Team name or ID.
            board_id: Board name or ID.

        Returns:
            str: Compact JSON array of row names.
        """
        boards = boards_client()
        organization, project = resolve_scope(boards.client, organization, project)
        team_id = require_text(team_id, "team_id")
        board_id = require_text(board_id, "board_id")
        try:
            rows = await asyncio.to_thread(
                boards.list_board_rows, organization, project, team_id, board_id
            )
            return to_compact_json([row.name or "" for row in rows])
        except Exception as e:
            logger.error(f"Failed to list rows of board '{board_id}': {e}")
            raise

    @mcp_instance.tool
    async def azdo_list_area_paths(
        organization: str | None = None,
        project: str | None = None,
        parent_path: str | None = None,
    ) -> str:
        """
        List the area paths of a project.

        Args:
            parent_path: Only list the subtree under this path, relative to the
                project root (e.g. "Team1" or "Team1\\Mobile").

        Returns:
            str: Compact JSON array of full area paths.
        """
        boards = boards_client()
        organization, project = resolve_scope(boards.client, organization, project)
        parent_path = optional_text(parent_path)
        try:
            paths = await asyncio.to_thread(
                boards.list_area_paths, organization, project, parent_path
            )
            return to_compact_json(paths)
        except Exception as e:
            logger.error(f"Failed to list area paths for project '{project}': {e}")
            raise

    @mcp_instance.tool
    async def azdo_list_iteration_paths(
        organization: str | None = None,
        project: str | None = None,
        team_id: str | None = None,
        timeframe: str | None = None,
    ) -> str:
        """
        List iteration paths of a project, or the iterations of a team.

        Without team_id the whole iteration tree of the project is returned.
        With team_id only the team's iterations are listed, optionally
        filtered by timeframe.

        Args:
            team_id: Optional team name or ID.
            timeframe: "current", "past" or "future". Requires team_id.

        Returns:
            str: Compact JSON array of iteration paths; with team_id one
            ``name,timeframe,start,finish`` line per iteration. "No iterations
            found" when empty.
        """
        boards = boards_client()
        organization, project = resolve_scope(boards.client, organization, project)
        team_id = optional_text(team_id)
        timeframe = validate_timeframe(timeframe)
        if timeframe and not team_id:
            raise AdoValidationError(
                "timeframe requires team_id: only team iterations carry a timeframe",
                fields=["team_id"],
            )

        try:
            if team_id:
                iterations = await asyncio.to_thread(
                    boards.get_team_iterations, organization, project, team_id, timeframe
                )
                if not iterations:
                    return "No iterations found"
                return format_iterations(iterations)

            paths = await asyncio.to_thread(boards.list_iteration_paths, organization, project)
        except Exception as e:
            logger.error(f"Failed to list iteration paths for project '{project}': {e}")
            raise

        if not paths:
            return "No iterations found"
        return to_compact_json(paths)

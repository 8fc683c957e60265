"""Client for Azure DevOps teams, boards, iterations and classification nodes."""

import logging
import re

from azdo_mcp.client import AzureDevOpsClient, path_segment
from azdo_mcp.errors import AdoApiError
from azdo_mcp.models import (
    Board,
    BoardColumn,
    BoardReference,
    BoardRow,
    ClassificationNode,
    Team,
    TeamIteration,
    TeamMember,
)

logger = logging.getLogger(__name__)

CLASSIFICATION_DEPTH = 10
NO_CURRENT_ITERATION = "CurrentIterationDoesNotExistException"


def classification_path(path: str | None) -> str:
    """
    Turn an area/iteration path into the URL suffix of a classification node.

    Both ``\\`` and ``/`` separate path levels. Each level is percent-encoded.
    """
    if not path:
        return ""
    parts = [part.strip() for part in re.split(r"[\\/]+", path) if part.strip()]
    return "/".join(path_segment(part) for part in parts)


class BoardsClient:
    """
    Client for team-scoped Boards APIs.

    Args:
        client: The AzureDevOpsClient used for every request.
    """

    def __init__(self, client: AzureDevOpsClient):
        self.client = client

    # Teams

    def list_teams(self, organization: str, project: str) -> list[Team]:
        url = self.client.org_url(organization, f"projects/{path_segment(project)}/teams")
        with self.client.trace_operation("list_teams", **{"azdo.project": project}):
            teams = [Team(**team) for team in self.client.get_list(url)]
        logger.info(f"Found {len(teams)} teams in project '{project}'")
        return teams

    def get_team(self, organization: str, project: str, team_id: str) -> Team:
        url = self.client.org_url(
            organization, f"projects/{path_segment(project)}/teams/{path_segment(team_id)}"
        )
        with self.client.trace_operation(
            "get_team", **{"azdo.project": project, "azdo.team": team_id}
        ):
            return Team(**self.client.get_json(url))

    def list_team_members(self, organization: str, project: str, team_id: str) -> list[TeamMember]:
        url = self.client.org_url(
            organization,
            f"projects/{path_segment(project)}/teams/{path_segment(team_id)}/members",
        )
        with self.client.trace_operation(
            "list_team_members", **{"azdo.project": project, "azdo.team": team_id}
        ):
            return [TeamMember(**member) for member in self.client.get_list(url)]

    # Iterations

    def get_team_iterations(
        self, organization: str, project: str, team_id: str, timeframe: str | None = None
    ) -> list[TeamIteration]:
        """
        List the iterations selected by a team.

        Args:
            timeframe: Optional "current", "past" or "future" filter. The service
                only filters on "current"; past and future are filtered here.
        """
        url = self.client.team_url(organization, project, team_id, "work/teamsettings/iterations")
        params = {"$timeframe": timeframe} if timeframe == "current" else None
        with self.client.trace_operation(
            "get_team_iterations",
            **{"azdo.project": project, "azdo.team": team_id, "iteration.timeframe": timeframe},
        ):
            try:
                data = self.client.get_list(url, params=params)
            except AdoApiError as e:
                no_current = e.context.get("type_key") == NO_CURRENT_ITERATION
                if no_current or NO_CURRENT_ITERATION in str(e):
                    logger.info(f"Team '{team_id}' has no current iteration")
                    return []
                raise
            iterations = [TeamIteration(**it) for it in data]

        if timeframe and timeframe != "current":
            iterations = [
                it for it in iterations if (it.attributes.timeFrame or "").lower() == timeframe
            ]
        return iterations

    def get_team_current_iteration(
        self, organization: str, project: str, team_id: str
    ) -> TeamIteration | None:
        """
        Get the team's current iteration.

        Returns:
            The current iteration, or None if the team has none.
        """
        iterations = self.get_team_iterations(organization, project, team_id, "current")
        return iterations[0] if iterations else None

    # Boards

    def list_boards(self, organization: str, project: str, team_id: str) -> list[BoardReference]:
        url = self.client.team_url(organization, project, team_id, "work/boards")
        with self.client.trace_operation(
            "list_boards", **{"azdo.project": project, "azdo.team": team_id}
        ):
            return [BoardReference(**board) for board in self.client.get_list(url)]

    def _board_url(self, organization, project, team_id, board_id, suffix=""):
        return self.client.team_url(
            organization, project, team_id, f"work/boards/{path_segment(board_id)}{suffix}"
        )

    def get_board(self, organization: str, project: str, team_id: str, board_id: str) -> Board:
        url = self._board_url(organization, project, team_id, board_id)
        with self.client.trace_operation(
            "get_board", **{"azdo.project": project, "azdo.team": team_id, "azdo.board": board_id}
        ):
            return Board(**self.client.get_json(url))

    def list_board_columns(
        self, organization: str, project: str, team_id: str, board_id: str
    ) -> list[BoardColumn]:
        url = self._board_url(organization, project, team_id, board_id, "/columns")
        with self.client.trace_operation(
            "list_board_columns",
            **{"azdo.project": project, "azdo.team": team_id, "azdo.board": board_id},
        ):
            return [BoardColumn(**column) for column in self.client.get_list(url)]

    def list_board_rows(
        self, organization: str, project: str, team_id: str, board_id: str
    ) -> list[BoardRow]:
        url = self._board_url(organization, project, team_id, board_id, "/rows")
        with self.client.trace_operation(
            "list_board_rows",
            **{"azdo.project": project, "azdo.team": team_id, "azdo.board": board_id},
        ):
            return [BoardRow(**row) for row in self.client.get_list(url)]

    # Classification nodes

    def _classification_node(
        self, organization: str, project: str, group: str, parent_path: str | None
    ) -> ClassificationNode:
        suffix = classification_path(parent_path)
        path = f"wit/classificationnodes/{group}" + (f"/{suffix}" if suffix else "")
        url = self.client.project_url(organization, project, path)
        with self.client.trace_operation(
            f"list_{group}", **{"azdo.project": project, "classification.parent": parent_path}
        ):
            data = self.client.get_json(url, params={"$depth": CLASSIFICATION_DEPTH})
        return ClassificationNode(**data)

    def list_area_paths(
        self, organization: str, project: str, parent_path: str | None = None
    ) -> list[str]:
        """Full paths of the area tree (or of the subtree under ``parent_path``)."""
        return self._classification_node(organization, project, "areas", parent_path).collect_paths()

    def list_iteration_paths(
        self, organization: str, project: str, parent_path: str | None = None
    ) -> list[str]:
        """Full paths of the iteration tree (or of the subtree under ``parent_path``)."""
        return self._classification_node(
            organization, project, "iterations", parent_path
        ).collect_paths()

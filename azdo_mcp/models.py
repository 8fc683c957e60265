from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Project(BaseModel):
    """
    Represents an Azure DevOps project.
    """

    id: str
    name: str
    description: str | None = None
    url: str | None = None
    state: str | None = None
    revision: int | None = None
    visibility: str | None = None
    lastUpdateTime: str | None = None


class Profile(BaseModel):
    """
    Represents the profile of the signed-in user.
    """

    id: str
    displayName: str | None = None
    emailAddress: str | None = None
    publicAlias: str | None = None


class Account(BaseModel):
    """
    Represents an organization (account) the user is a member of.
    """

    accountId: str
    accountName: str
    accountUri: str | None = None


class Team(BaseModel):
    """
    Represents a team of a project.

    Unknown keys are kept so the full payload can be returned to the caller.
    """

    model_config = ConfigDict(extra="allow")

    id: str
    name: str
    description: str | None = None
    url: str | None = None
    projectName: str | None = None
    projectId: str | None = None


class Identity(BaseModel):
    """
    Represents a user identity.
    """

    id: str | None = None
    displayName: str
    uniqueName: str | None = None


class TeamMember(BaseModel):
    """
    Represents a member of a team.
    """

    identity: Identity
    isTeamAdmin: bool | None = None


class BoardReference(BaseModel):
    """
    Represents a board as listed for a team.
    """

    id: str
    name: str
    url: str | None = None


class BoardColumn(BaseModel):
    """
    Represents a column of a board.
    """

    id: str | None = None
    name: str
    itemLimit: int = 0
    stateMappings: dict[str, str] = Field(default_factory=dict)
    columnType: str | None = None
    isSplit: bool | None = None
    description: str | None = None


class BoardRow(BaseModel):
    """
    Represents a row (swimlane) of a board. The default row has no name.
    """

    id: str | None = None
    name: str | None = None
    color: str | None = None


class Board(BaseModel):
    """
    Represents a board with its columns, rows and field mapping.
    """

    model_config = ConfigDict(extra="allow")

    id: str
    name: str
    url: str | None = None
    revision: int | None = None
    columns: list[BoardColumn] | None = None
    rows: list[BoardRow] | None = None
    isValid: bool | None = None
    canEdit: bool | None = None
    allowedMappings: dict[str, Any] | None = None
    fields: dict[str, Any] | None = None


class IterationAttributes(BaseModel):
    startDate: str | None = None
    finishDate: str | None = None
    timeFrame: str | None = None


class TeamIteration(BaseModel):
    """
    Represents an iteration (sprint) selected by a team.
    """

    id: str
    name: str
    path: str | None = None
    attributes: IterationAttributes = Field(default_factory=IterationAttributes)
    url: str | None = None


class ClassificationNode(BaseModel):
    """
    Represents an area or iteration node and its children.
    """

    id: int
    identifier: str | None = None
    name: str
    path: str
    structureType: str | None = None
    hasChildren: bool | None = None
    children: list["ClassificationNode"] | None = None

    def collect_paths(self) -> list[str]:
        """Paths of this node and all of its descendants, depth first."""
        paths = [self.path]
        for child in self.children or []:
            paths.extend(child.collect_paths())
        return paths


class AttachmentReference(BaseModel):
    """
    Represents an uploaded attachment.
    """

    id: str
    url: str

"""Data models for Azure DevOps Work Items."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class JsonPatchOperation(BaseModel):
    """Represents a single JSON Patch operation."""

    op: str = Field(..., description="The operation type: add, remove, replace, move, copy, test")
    path: str = Field(..., description="The JSON path to the target location")
    value: Any | None = Field(None, description="The value to be used in the operation")
    from_: str | None = Field(
        None, alias="from", description="The source path for move/copy operations"
    )

    model_config = ConfigDict(populate_by_name=True)


class WorkItemRelation(BaseModel):
    """Represents a relation (link or attachment) held by a work item."""

    rel: str = Field(..., description="Relation type reference name")
    url: str = Field(..., description="URL of the related artifact")
    attributes: dict[str, Any] | None = Field(None, description="Relation attributes")


class WorkItemComment(BaseModel):
    """Represents a comment on a work item."""

    id: int | None = Field(None, description="Comment ID")
    workItemId: int | None = Field(None, description="The work item the comment belongs to")
    text: str = Field("", description="Comment text (HTML)")
    createdBy: dict[str, Any] | None = Field(None, description="Identity of the author")
    createdDate: str | None = Field(None, description="Creation timestamp")
    modifiedDate: str | None = Field(None, description="Last modification timestamp")


class WorkItem(BaseModel):
    """Represents a work item in Azure DevOps."""

    id: int = Field(..., description="The work item ID")
    rev: int | None = Field(None, description="Revision number")
    fields: dict[str, Any] = Field(default_factory=dict, description="Field reference name to value")
    relations: list[WorkItemRelation] | None = Field(None, description="Links and attachments")
    url: str | None = Field(None, description="REST API URL of the work item")
    comments: list[WorkItemComment] | None = Field(
        None, description="Latest comments, when requested"
    )

    @property
    def title(self) -> str | None:
        return self.fields.get("System.Title")

    @property
    def work_item_type(self) -> str | None:
        return self.fields.get("System.WorkItemType")

    @property
    def state(self) -> str | None:
        return self.fields.get("System.State")

    def to_json(self) -> dict[str, Any]:
        """Plain JSON form as returned by the REST API (plus comments)."""
        return self.model_dump(exclude_none=True)


class WorkItemReference(BaseModel):
    """Represents a reference to a work item as returned by WIQL."""

    id: int
    url: str | None = None


class WorkItemQueryResult(BaseModel):
    """Represents the result of a WIQL query."""

    queryType: str | None = None
    asOf: str | None = None
    workItems: list[WorkItemReference] = Field(default_factory=list)


class WorkItemTypeInfo(BaseModel):
    """Represents a work item type in Azure DevOps."""

    name: str
    referenceName: str | None = None
    description: str | None = None
    isDisabled: bool | None = None


class WorkItemTag(BaseModel):
    """Represents a work item tag definition."""

    id: str | None = None
    name: str
    active: bool | None = None

"""Azure DevOps Work Items module for MCP server."""

from azdo_mcp.work_items.models import (
    JsonPatchOperation,
    WorkItem,
    WorkItemComment,
    WorkItemQueryResult,
    WorkItemReference,
    WorkItemRelation,
    WorkItemTag,
    WorkItemTypeInfo,
)

__all__ = [
    "WorkItem",
    "WorkItemComment",
    "WorkItemRelation",
    "WorkItemReference",
    "WorkItemQueryResult",
    "WorkItemTypeInfo",
    "WorkItemTag",
    "JsonPatchOperation",
]

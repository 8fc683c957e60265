"""Client for Azure DevOps Work Items API operations."""

import logging
from typing import Any

from azdo_mcp.client import AzureDevOpsClient, path_segment
from azdo_mcp.errors import AdoNotFoundError, AdoValidationError
from azdo_mcp.work_items.models import (
    JsonPatchOperation,
    WorkItem,
    WorkItemComment,
    WorkItemQueryResult,
    WorkItemTag,
    WorkItemTypeInfo,
)

logger = logging.getLogger(__name__)

COMMENTS_API_VERSION = "7.1-preview.3"
TAGS_API_VERSION = "7.1-preview.1"
JSON_PATCH = "application/json-patch+json"

# The batch endpoint accepts at most 200 ids per request
BATCH_SIZE = 200
MAX_WORK_ITEMS = 1000


class WorkItemsClient:
    """
    Client for work item reads, writes, comments, links and WIQL queries.

    Args:
        client: The AzureDevOpsClient used for every request.
    """

    def __init__(self, client: AzureDevOpsClient):
        self.client = client

    def _patch_document(self, operations: list[JsonPatchOperation]) -> list[dict[str, Any]]:
        return [op.model_dump(exclude_none=True, by_alias=True) for op in operations]

    def _field_operations(self, fields: dict[str, Any]) -> list[JsonPatchOperation]:
        return [
            JsonPatchOperation(op="add", path=f"/fields/{reference_name}", value=value)
            for reference_name, value in fields.items()
        ]

    def create_work_item(
        self, organization: str, project: str, work_item_type: str, fields: dict[str, Any]
    ) -> WorkItem:
        """
        Create a new work item.

        Args:
            organization: Organization name.
            project: Project name or ID.
            work_item_type: The type of work item to create (e.g. "Bug", "Task").
            fields: Field values keyed by reference name.

        Returns:
            The created WorkItem.
        """
        operations = self._field_operations(fields)
        url = self.client.project_url(
            organization, project, f"wit/workitems/${path_segment(work_item_type)}"
        )

        logger.info(
            f"Creating work item of type '{work_item_type}' in project '{project}' "
            f"with {len(operations)} fields"
        )
        with self.client.trace_operation(
            "create_work_item",
            **{"azdo.project": project, "work_item.type": work_item_type},
        ) as span:
            data = self.client.request_json(
                "POST", url, json=self._patch_document(operations), content_type=JSON_PATCH
            )
            work_item = WorkItem(**data)
            span.set_attribute("work_item.id", work_item.id)

        logger.info(
            f"Created {work_item.work_item_type} #{work_item.id} '{work_item.title}' "
            f"in state {work_item.state}"
        )
        return work_item

    def update_work_item(
        self, organization: str, project: str, work_item_id: int, fields: dict[str, Any]
    ) -> WorkItem:
        """
        Update fields of an existing work item.

        Raises:
            AdoValidationError: If no field is given.
        """
        if not fields:
            raise AdoValidationError("No fields to update", fields=["fields"])

        operations = self._field_operations(fields)
        url = self.client.project_url(organization, project, f"wit/workitems/{work_item_id}")

        logger.info(f"Updating work item {work_item_id} with {len(operations)} fields")
        with self.client.trace_operation(
            "update_work_item", **{"azdo.project": project, "work_item.id": work_item_id}
        ):
            data = self.client.request_json(
                "PATCH", url, json=self._patch_document(operations), content_type=JSON_PATCH
            )
        work_item = WorkItem(**data)
        logger.info(f"Work item {work_item.id} is now at rev {work_item.rev}, state {work_item.state}")
        return work_item

    def add_relation(
        self, organization: str, project: str, work_item_id: int, relation: dict[str, Any]
    ) -> WorkItem:
        """Append a relation (link or attachment) to a work item."""
        operation = JsonPatchOperation(op="add", path="/relations/-", value=relation)
        url = self.client.project_url(organization, project, f"wit/workitems/{work_item_id}")

        with self.client.trace_operation(
            "add_relation",
            **{"azdo.project": project, "work_item.id": work_item_id, "relation": relation["rel"]},
        ):
            data = self.client.request_json(
                "PATCH",
                url,
                params={"$expand": "relations"},
                json=self._patch_document([operation]),
                content_type=JSON_PATCH,
            )
        return WorkItem(**data)

    def link_work_items(
        self,
        organization: str,
        project: str,
        source_id: int,
        target_id: int,
        link_type: str,
        comment: str | None = None,
    ) -> WorkItem:
        """
        Link two work items by adding a relation to the source item.

        Args:
            organization: Organization name.
            project: Project name or ID.
            source_id: The work item that receives the relation.
            target_id: The related work item.
            link_type: Relation reference name, e.g. "System.LinkTypes.Related".
            comment: Optional comment stored on the link.

        Returns:
            The updated source WorkItem, relations included.
        """
        if source_id == target_id:
            raise AdoValidationError(
                "A work item cannot be linked to itself", fields=["source_id", "target_id"]
            )

        relation: dict[str, Any] = {
            "rel": link_type,
            "url": self.client.work_item_url(organization, target_id),
        }
        if comment:
            relation["attributes"] = {"comment": comment}

        logger.info(f"Linking work item {source_id} -> {target_id} ({link_type})")
        return self.add_relation(organization, project, source_id, relation)

    def get_work_items(
        self,
        organization: str,
        project: str,
        ids: list[int],
        include_latest_n_comments: int | None = None,
        include_relations: bool = False,
    ) -> list[WorkItem]:
        """
        Get work items by id, in the order requested.

        Ids are fetched in batches of 200. At most 1000 items are returned.

        Args:
            organization: Organization name.
            project: Project name or ID.
            ids: Work item ids.
            include_latest_n_comments: -1 for all comments, N for the latest N.
            include_relations: Whether to expand links and attachments.

        Returns:
            List of WorkItem objects.
        """
        if len(ids) > MAX_WORK_ITEMS:
            logger.warning(f"Truncating {len(ids)} work item ids to {MAX_WORK_ITEMS}")
            ids = ids[:MAX_WORK_ITEMS]

        url = self.client.project_url(organization, project, "wit/workitems")
        work_items: list[WorkItem] = []

        with self.client.trace_operation(
            "get_work_items", **{"azdo.project": project, "work_item.count": len(ids)}
        ) as span:
            for start in range(0, len(ids), BATCH_SIZE):
                batch = ids[start : start + BATCH_SIZE]
                params = {"ids": ",".join(str(i) for i in batch)}
                if include_relations:
                    params["$expand"] = "relations"

                for item in self.client.get_list(url, params=params):
                    work_items.append(WorkItem(**item))

            if include_latest_n_comments:
                for work_item in work_items:
                    work_item.comments = self.get_work_item_comments(
                        organization, project, work_item.id, include_latest_n_comments
                    )

            span.set_attribute("work_item.returned", len(work_items))

        logger.info(f"Retrieved {len(work_items)} work items from project '{project}'")
        return work_items

    def get_work_item(
        self,
        organization: str,
        project: str,
        work_item_id: int,
        include_latest_n_comments: int | None = None,
        include_relations: bool = False,
    ) -> WorkItem:
        """
        Get a single work item.

        Raises:
            AdoNotFoundError: If the work item does not exist.
        """
        work_items = self.get_work_items(
            organization,
            project,
            [work_item_id],
            include_latest_n_comments=include_latest_n_comments,
            include_relations=include_relations,
        )
        if not work_items:
            raise AdoNotFoundError(
                f"Work item {work_item_id} not found",
                context={"project": project, "work_item_id": work_item_id},
            )
        return work_items[0]

    def get_work_item_comments(
        self, organization: str, project: str, work_item_id: int, count: int
    ) -> list[WorkItemComment]:
        """
        Get the latest comments of a work item, newest first.

        Follows the ``x-ms-continuationtoken`` header across pages.

        Args:
            count: -1 for all comments, N > 0 for the latest N.
        """
        if count == 0:
            return []

        url = self.client.project_url(
            organization, project, f"wit/workitems/{work_item_id}/comments"
        )
        comments: list[WorkItemComment] = []
        continuation_token = None

        while True:
            params: dict[str, Any] = {"order": "desc"}
            if count > 0:
                params["$top"] = count - len(comments)
            if continuation_token:
                params["continuationToken"] = continuation_token

            response = self.client.get_response(
                url, params=params, api_version=COMMENTS_API_VERSION
            )
            data = response.json() if response.content else {}
            comments.extend(WorkItemComment(**c) for c in data.get("comments", []))

            continuation_token = response.headers.get(
                "x-ms-continuationtoken"
            ) or data.get("continuationToken")
            if not continuation_token or (count > 0 and len(comments) >= count):
                break

        return comments[:count] if count > 0 else comments

    def add_comment(
        self, organization: str, project: str, work_item_id: int, text: str
    ) -> WorkItemComment:
        """Add a comment (HTML or plain text) to a work item."""
        url = self.client.project_url(
            organization, project, f"wit/workitems/{work_item_id}/comments"
        )
        logger.info(f"Adding comment to work item {work_item_id}")
        with self.client.trace_operation(
            "add_comment", **{"azdo.project": project, "work_item.id": work_item_id}
        ):
            data = self.client.request_json(
                "POST",
                url,
                json={"text": text},
                content_type="application/json",
                api_version=COMMENTS_API_VERSION,
            )
        return WorkItemComment(**data)

    def query_ids(
        self, organization: str, project: str, wiql: str, top: int | None = None
    ) -> list[int]:
        """Run a WIQL query and return the matching work item ids in query order."""
        url = self.client.project_url(organization, project, "wit/wiql")
        params = {"$top": top} if top else None

        logger.info(f"Running WIQL query in project '{project}': {wiql}")
        with self.client.trace_operation(
            "query_work_items", **{"azdo.project": project, "wiql.length": len(wiql)}
        ) as span:
            data = self.client.request_json(
                "POST", url, params=params, json={"query": wiql}, content_type="application/json"
            )
            result = WorkItemQueryResult(**(data or {}))
            span.set_attribute("wiql.result_count", len(result.workItems))

        return [ref.id for ref in result.workItems]

    def query_work_items(
        self,
        organization: str,
        project: str,
        wiql: str,
        top: int | None = None,
        include_latest_n_comments: int | None = None,
        include_relations: bool = False,
    ) -> list[WorkItem]:
        """Run a WIQL query and fetch the matching work items (at most 1000)."""
        ids = self.query_ids(organization, project, wiql, top=top)
        if not ids:
            return []
        return self.get_work_items(
            organization,
            project,
            ids[:MAX_WORK_ITEMS],
            include_latest_n_comments=include_latest_n_comments,
            include_relations=include_relations,
        )

    def list_work_item_types(self, organization: str, project: str) -> list[WorkItemTypeInfo]:
        """List the work item types available in a project."""
        url = self.client.project_url(organization, project, "wit/workitemtypes")
        with self.client.trace_operation("list_work_item_types", **{"azdo.project": project}):
            return [WorkItemTypeInfo(**t) for t in self.client.get_list(url)]

    def list_tags(self, organization: str, project: str) -> list[WorkItemTag]:
        """List the work item tags defined in a project."""
        url = self.client.project_url(organization, project, "wit/tags")
        with self.client.trace_operation("list_tags", **{"azdo.project": project}):
            return [
                WorkItemTag(**t) for t in self.client.get_list(url, api_version=TAGS_API_VERSION)
            ]

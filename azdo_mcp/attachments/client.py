"""Client for Azure DevOps work item attachments."""

import logging

from azdo_mcp.client import AzureDevOpsClient, path_segment
from azdo_mcp.models import AttachmentReference
from azdo_mcp.work_items.client import WorkItemsClient
from azdo_mcp.work_items.models import WorkItem

logger = logging.getLogger(__name__)

ATTACHED_FILE = "AttachedFile"


class AttachmentsClient:
    """
    Client for uploading, downloading and attaching files.

    Args:
        client: The AzureDevOpsClient used for every request.
    """

    def __init__(self, client: AzureDevOpsClient):
        self.client = client

    def upload_attachment(
        self, organization: str, project: str, file_name: str, content: bytes
    ) -> AttachmentReference:
        """
        Upload a file to the project's attachment store.

        The attachment is not linked to any work item until
        ``attach_to_work_item`` is called with its URL.
        """
        url = self.client.project_url(organization, project, "wit/attachments")

        logger.info(f"Uploading attachment '{file_name}' ({len(content)} bytes)")
        with self.client.trace_operation(
            "upload_attachment",
            **{"azdo.project": project, "attachment.name": file_name, "attachment.size": len(content)},
        ) as span:
            data = self.client.request_json(
                "POST",
                url,
                params={"fileName": file_name},
                data=content,
                content_type="application/octet-stream",
            )
            attachment = AttachmentReference(**data)
            span.set_attribute("attachment.id", attachment.id)
        return attachment

    def download_attachment(
        self,
        organization: str,
        project: str,
        attachment_id: str,
        file_name: str | None = None,
    ) -> bytes:
        """Download the raw bytes of an attachment."""
        url = self.client.project_url(
            organization, project, f"wit/attachments/{path_segment(attachment_id)}"
        )
        params = {"fileName": file_name} if file_name else None

        with self.client.trace_operation(
            "download_attachment", **{"azdo.project": project, "attachment.id": attachment_id}
        ) as span:
            content = self.client.get_bytes(url, params=params)
            span.set_attribute("attachment.size", len(content))

        logger.info(f"Downloaded attachment {attachment_id} ({len(content)} bytes)")
        return content

    def attach_to_work_item(
        self,
        organization: str,
        project: str,
        work_item_id: int,
        attachment_url: str,
        comment: str | None = None,
    ) -> WorkItem:
        """Add an uploaded attachment to a work item."""
        relation = {"rel": ATTACHED_FILE, "url": attachment_url}
        if comment:
            relation["attributes"] = {"comment": comment}

        logger.info(f"Attaching {attachment_url} to work item {work_item_id}")
        return WorkItemsClient(self.client).add_relation(
            organization, project, work_item_id, relation
        )

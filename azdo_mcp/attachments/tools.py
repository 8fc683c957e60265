"""MCP tool definitions for work item attachments."""

import asyncio
import base64
import logging
from typing import Any

from azdo_mcp.attachments.client import AttachmentsClient
from azdo_mcp.validation import (
    decode_base64,
    get_client,
    optional_text,
    require_positive_int,
    require_text,
    resolve_scope,
)

logger = logging.getLogger(__name__)


def register_attachment_tools(mcp_instance, client_container):
    """
    Register attachment tools with the FastMCP instance.

    Args:
        mcp_instance: The FastMCP instance to register tools with.
        client_container: Dictionary holding the AzureDevOpsClient instance.
    """

    @mcp_instance.tool
    async def azdo_upload_attachment(
        file_name: str,
        content_base64: str,
        organization: str | None = None,
        project: str | None = None,
        work_item_id: int | None = None,
        comment: str | None = None,
    ) -> dict[str, Any]:
        """
        Upload a file and optionally attach it to a work item.

        Args:
            file_name: Name of the file, including its extension.
            content_base64: File content, base64 encoded.
            organization: Organization name. Defaults to the server's organization.
            project: Project name. Defaults to the server's project.
            work_item_id: Optional work item to attach the file to.
            comment: Optional comment stored with the attachment link.

        Returns:
            dict: ``id``, ``url``, ``file_name`` and ``size`` of the upload, plus
            ``work_item_id`` when it was attached.

        Examples:
            azdo_upload_attachment(
                file_name="screenshot.png",
                content_base64="iVBORw0KGgo...",
                work_item_id=1234
            )
        """
        client = get_client(client_container)
        organization, project = resolve_scope(client, organization, project)
        file_name = require_text(file_name, "file_name")
        content = decode_base64(content_base64, "content_base64")
        if work_item_id is not None:
            work_item_id = require_positive_int(work_item_id, "work_item_id")

        attachments = AttachmentsClient(client)
        try:
            attachment = await asyncio.to_thread(
                attachments.upload_attachment, organization, project, file_name, content
            )
            result = {
                "id": attachment.id,
                "url": attachment.url,
                "file_name": file_name,
                "size": len(content),
            }

            if work_item_id is not None:
                await asyncio.to_thread(
                    attachments.attach_to_work_item,
                    organization,
                    project,
                    work_item_id,
                    attachment.url,
                    optional_text(comment),
                )
                result["work_item_id"] = work_item_id

            return result

        except Exception as e:
            logger.error(f"Failed to upload attachment '{file_name}': {e}")
            raise

    @mcp_instance.tool
    async def azdo_download_attachment(
        attachment_id: str,
        organization: str | None = None,
        project: str | None = None,
        file_name: str | None = None,
    ) -> dict[str, Any]:
        """
        Download an attachment.

        Args:
            attachment_id: Attachment ID (the GUID at the end of its URL).
            organization: Organization name. Defaults to the server's organization.
            project: Project name. Defaults to the server's project.
            file_name: Optional file name to download the attachment as.

        Returns:
            dict: ``id``, ``file_name``, ``size`` and ``content_base64``.
        """
        client = get_client(client_container)
        organization, project = resolve_scope(client, organization, project)
        attachment_id = require_text(attachment_id, "attachment_id")
        file_name = optional_text(file_name)

        try:
            content = await asyncio.to_thread(
                AttachmentsClient(client).download_attachment,
                organization,
                project,
                attachment_id,
                file_name,
            )
        except Exception as e:
            logger.error(f"Failed to download attachment {attachment_id}: {e}")
            raise

        return {
            "id": attachment_id,
            "file_name": file_name,
            "size": len(content),
            "content_base64": base64.b64encode(content).decode("ascii"),
        }

import logging

from azdo_mcp.attachments.tools import register_attachment_tools
from azdo_mcp.boards.tools import register_board_tools
from azdo_mcp.organizations.tools import register_organization_tools
from azdo_mcp.work_items.tools import register_work_item_tools

logger = logging.getLogger(__name__)


def register_azdo_tools(mcp_instance, client_container):
    """
    Registers Azure DevOps Boards tools with the FastMCP instance.

    Args:
        mcp_instance: The FastMCP instance to register tools with.
        client_container (dict): A dictionary holding the AzureDevOpsClient
            instance, allowing the client to be replaced at runtime.
    """
    register_organization_tools(mcp_instance, client_container)
    register_board_tools(mcp_instance, client_container)
    register_work_item_tools(mcp_instance, client_container)
    register_attachment_tools(mcp_instance, client_container)
    logger.info("Registered Azure DevOps tools")

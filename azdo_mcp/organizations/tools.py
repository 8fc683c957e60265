"""MCP tool definitions for the user profile, organizations and projects."""

import asyncio
import csv
import io
import logging

from azdo_mcp.organizations.client import OrganizationsClient
from azdo_mcp.shaping import to_compact_json
from azdo_mcp.validation import get_client, resolve_organization

logger = logging.getLogger(__name__)


def register_organization_tools(mcp_instance, client_container):
    """
    Register profile, organization and project tools with the FastMCP instance.

    Args:
        mcp_instance: The FastMCP instance to register tools with.
        client_container: Dictionary holding the AzureDevOpsClient instance.
    """

    @mcp_instance.tool
    async def azdo_get_current_user() -> str:
        """
        Get the user the server is authenticated as (the Azure CLI login).

        Returns:
            str: ``displayName,emailAddress``
        """
        organizations = OrganizationsClient(get_client(client_container))
        try:
            profile = await asyncio.to_thread(organizations.get_profile)
        except Exception as e:
            logger.error(f"Failed to get current user: {e}")
            raise

        buffer = io.StringIO()
        csv.writer(buffer, lineterminator="\n").writerow(
            [profile.displayName or "", profile.emailAddress or ""]
        )
        return buffer.getvalue()

    @mcp_instance.tool
    async def azdo_list_organizations() -> str:
        """
        List the Azure DevOps organizations the current user belongs to.

        Returns:
            str: Compact JSON array of organization names.
        """
        organizations = OrganizationsClient(get_client(client_container))
        try:
            accounts = await asyncio.to_thread(organizations.list_organizations)
            return to_compact_json([account.accountName for account in accounts])
        except Exception as e:
            logger.error(f"Failed to list organizations: {e}")
            raise

    @mcp_instance.tool
    async def azdo_list_projects(organization: str | None = None) -> str:
        """
        List the projects of an organization.

        Args:
            organization: Organization name. Defaults to the server's organization.

        Returns:
            str: Compact JSON array of project names.
        """
        client = get_client(client_container)
        organization = resolve_organization(client, organization)
        try:
            projects = await asyncio.to_thread(
                OrganizationsClient(client).list_projects, organization
            )
            return to_compact_json([project.name for project in projects])
        except Exception as e:
            logger.error(f"Failed to list projects of organization '{organization}': {e}")
            raise

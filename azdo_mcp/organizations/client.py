"""Client for the signed-in user's profile, organizations and projects."""

import logging

from azdo_mcp.client import AzureDevOpsClient
from azdo_mcp.models import Account, Profile, Project

logger = logging.getLogger(__name__)


class OrganizationsClient:
    """
    Client for APIs that are not scoped to a project.

    The profile and account APIs are served from the VSSPS host; projects are
    listed per organization.

    Args:
        client: The AzureDevOpsClient used for every request.
    """

    def __init__(self, client: AzureDevOpsClient):
        self.client = client

    def get_profile(self) -> Profile:
        """Get the profile of the user the Azure CLI is signed in as."""
        with self.client.trace_operation("get_profile"):
            data = self.client.get_json(self.client.vssps_url("profile/profiles/me"))
        return Profile(**data)

    def list_organizations(self, member_id: str | None = None) -> list[Account]:
        """
        List the organizations the user is a member of.

        Args:
            member_id: Profile id of the user; looked up when omitted.
        """
        if member_id is None:
            member_id = self.get_profile().id

        with self.client.trace_operation("list_organizations", **{"azdo.member_id": member_id}):
            accounts = self.client.get_list(
                self.client.vssps_url("accounts"), params={"memberId": member_id}
            )
        logger.info(f"Found {len(accounts)} organizations")
        return [Account(**account) for account in accounts]

    def list_projects(self, organization: str) -> list[Project]:
        """List the projects of an organization."""
        with self.client.trace_operation(
            "list_projects", **{"azdo.organization": organization}
        ):
            projects = self.client.get_list(self.client.org_url(organization, "projects"))
        return [Project(**project) for project in projects]

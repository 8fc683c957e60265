"""Shared fixtures: an in-memory Azure DevOps and MCP clients bound to it."""

import pytest
from fastmcp.client import Client

from server import client_container, mcp
from tests.utils.fake_azdo import FakeAzureDevOps, make_test_client
from tests.utils.telemetry import telemetry_setup  # noqa: F401


@pytest.fixture
def fake_azdo():
    return FakeAzureDevOps()


@pytest.fixture
def azdo_client(fake_azdo):
    client = make_test_client(fake_azdo)
    yield client
    client.close()


@pytest.fixture
async def mcp_client(azdo_client, monkeypatch):
    monkeypatch.setitem(client_container, "client", azdo_client)
    async with Client(mcp) as client:
        yield client


@pytest.fixture
async def unscoped_mcp_client(fake_azdo, monkeypatch):
    """MCP client whose server has no default organization or project."""
    monkeypatch.delenv("AZDO_ORGANIZATION", raising=False)
    monkeypatch.delenv("AZDO_PROJECT", raising=False)
    monkeypatch.setitem(
        client_container, "client", make_test_client(fake_azdo, organization=None, project=None)
    )
    async with Client(mcp) as client:
        yield client

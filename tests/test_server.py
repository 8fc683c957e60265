import pytest
from fastmcp.client import Client
from fastmcp.exceptions import ToolError

import server
from server import client_container, mcp, parse_args

EXPECTED_TOOLS = {
    # Profile & organizations
    "azdo_get_current_user",
    "azdo_list_organizations",
    "azdo_list_projects",
    # Teams, iterations & boards
    "azdo_list_teams",
    "azdo_get_team",
    "azdo_list_team_members",
    "azdo_get_team_current_iteration",
    "azdo_get_team_iterations",
    "azdo_list_team_boards",
    "azdo_get_team_board",
    "azdo_list_board_columns",
    "azdo_list_board_rows",
    "azdo_list_area_paths",
    "azdo_list_iteration_paths",
    # Work items
    "azdo_create_work_item",
    "azdo_get_work_item",
    "azdo_get_work_items",
    "azdo_update_work_item",
    "azdo_add_comment",
    "azdo_link_work_items",
    "azdo_query_work_items",
    "azdo_query_work_items_by_wiql",
    "azdo_list_work_item_types",
    "azdo_list_tags",
    # Attachments
    "azdo_upload_attachment",
    "azdo_download_attachment",
}


class TestArguments:
    def test_defaults_serve_stdio(self):
        args = parse_args([])

        assert args.server is False, "Expected stdio transport by default"
        assert args.host == "0.0.0.0", f"Expected default host but got {args.host}"
        assert args.port == 3000, f"Expected default port but got {args.port}"
        assert args.organization is None and args.project is None

    def test_http_options(self):
        args = parse_args(
            ["--server", "--host", "127.0.0.1", "--port", "8080", "--organization", "contoso"]
        )

        assert args.server is True
        assert (args.host, args.port, args.organization) == ("127.0.0.1", 8080, "contoso")


class TestMain:
    @pytest.fixture(autouse=True)
    def shutdowns(self, monkeypatch):
        calls = []
        monkeypatch.setattr(server, "shutdown_telemetry", lambda: calls.append(True))
        return calls

    def test_organization_flag_replaces_client(self, monkeypatch):
        monkeypatch.setitem(client_container, "client", None)
        runs = []
        monkeypatch.setattr(mcp, "run", lambda **kwargs: runs.append(kwargs))

        server.main(["--organization", "contoso", "--project", "Fabrikam"])

        client = client_container["client"]
        assert client.config.organization == "contoso", f"Got {client.config.organization}"
        assert client.config.project == "Fabrikam", f"Got {client.config.project}"
        assert runs == [{}], f"Expected a stdio run but got {runs}"
        client.close()

    def test_http_transport(self, monkeypatch):
        runs = []
        monkeypatch.setattr(mcp, "run", lambda **kwargs: runs.append(kwargs))

        server.main(["--server", "--port", "8080"])

        assert runs == [{"transport": "http", "host": "0.0.0.0", "port": 8080}], f"Got {runs}"

    def test_telemetry_is_flushed_when_the_server_stops(self, monkeypatch, shutdowns):
        monkeypatch.setattr(mcp, "run", lambda **kwargs: None)

        server.main([])

        assert shutdowns == [True], "Expected telemetry shut down after the transport returns"

    def test_telemetry_is_flushed_when_the_transport_fails(self, monkeypatch, shutdowns):
        def fail(**kwargs):
            raise OSError("address already in use")

        monkeypatch.setattr(mcp, "run", fail)

        with pytest.raises(OSError, match="address already in use"):
            server.main(["--server"])

        assert shutdowns == [True], "Expected telemetry shut down even when the transport fails"

    def test_invalid_configuration_exits(self, monkeypatch):
        monkeypatch.setenv("AZDO_REQUEST_TIMEOUT", "-1")
        monkeypatch.setattr(mcp, "run", lambda **kwargs: pytest.fail("Server should not start"))

        with pytest.raises(SystemExit) as exc_info:
            server.main(["--organization", "contoso"])

        assert exc_info.value.code == 2, f"Expected exit code 2 but got {exc_info.value.code}"


async def test_all_expected_tools_are_registered(mcp_client: Client):
    tools = await mcp_client.list_tools()

    registered = {tool.name for tool in tools}
    missing = EXPECTED_TOOLS - registered
    unexpected = registered - EXPECTED_TOOLS
    assert not missing, f"Missing tools: {sorted(missing)}"
    assert not unexpected, f"Unexpected tools: {sorted(unexpected)}"


async def test_tools_document_their_parameters(mcp_client: Client):
    tools = {tool.name: tool for tool in await mcp_client.list_tools()}

    create = tools["azdo_create_work_item"]
    assert create.description, "Expected a tool description"
    assert {"work_item_type", "title"} <= set(create.inputSchema["required"]), (
        f"Got {create.inputSchema.get('required')}"
    )


async def test_unknown_tool(mcp_client: Client):
    with pytest.raises(ToolError):
        await mcp_client.call_tool("azdo_delete_work_item", {"id": 1})


async def test_tools_without_client(monkeypatch):
    monkeypatch.setitem(client_container, "client", None)

    async with Client(mcp) as client:
        with pytest.raises(ToolError, match="not available"):
            await client.call_tool("azdo_list_teams", {})


async def test_work_items_guide_resource(mcp_client: Client):
    resources = await mcp_client.list_resources()
    assert "azdo://guide/work-items" in {str(resource.uri) for resource in resources}

    contents = await mcp_client.read_resource("azdo://guide/work-items")

    assert "azdo_query_work_items" in contents[0].text, "Expected the guide to name the query tool"

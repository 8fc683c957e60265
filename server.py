import argparse
import logging
import os
import sys

from fastmcp import FastMCP

from azdo_mcp import resources, tools
from azdo_mcp.client import AzureDevOpsClient
from azdo_mcp.config import AzdoMcpConfig
from azdo_mcp.errors import AdoConfigurationError
from azdo_mcp.telemetry import shutdown_telemetry

# stdout carries the stdio transport, so logs go to stderr
logging.basicConfig(
    level=os.environ.get("AZDO_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3000

mcp: FastMCP = FastMCP(name="azdo-mcp", version="0.1.0")

# Global container for the Azure DevOps client
client_container = {
    "client": None,
}


def initialize_azdo_client(organization=None, project=None):
    """
    Initializes the Azure DevOps client.

    No request is sent here: the Azure CLI token is fetched on the first tool
    call, so the server starts even before ``az login``.

    Returns:
        tuple: (client, error message)
    """
    try:
        config = AzdoMcpConfig.from_env(organization=organization, project=project)
        client = AzureDevOpsClient(config)
        logger.info(
            f"Azure DevOps client initialized (organization={config.organization}, "
            f"project={config.project})"
        )
        return client, None
    except AdoConfigurationError as e:
        logger.warning(f"Could not initialize Azure DevOps client. Reason: {e}")
        return None, str(e)


# Initial client setup from the environment
client_container["client"], _ = initialize_azdo_client()

tools.register_azdo_tools(mcp, client_container)
resources.register_mcp_resources(mcp)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog="azdo-mcp",
        description="MCP server for Azure DevOps Boards and Work Items",
    )
    parser.add_argument(
        "--server", action="store_true", help="Serve over HTTP instead of stdio"
    )
    parser.add_argument(
        "--host", default=DEFAULT_HOST, help=f"HTTP bind address (default: {DEFAULT_HOST})"
    )
    parser.add_argument(
        "--port", type=int, default=DEFAULT_PORT, help=f"HTTP port (default: {DEFAULT_PORT})"
    )
    parser.add_argument(
        "--organization", help="Default organization (env: AZDO_ORGANIZATION)"
    )
    parser.add_argument("--project", help="Default project (env: AZDO_PROJECT)")
    return parser.parse_args(argv)


def main(argv=None):
    """Main entry point for the azdo-mcp server."""
    args = parse_args(argv)

    if args.organization or args.project:
        client, error_message = initialize_azdo_client(args.organization, args.project)
        if client is None:
            logger.error(f"Invalid configuration: {error_message}")
            sys.exit(2)
        previous = client_container["client"]
        client_container["client"] = client
        if previous is not None:
            previous.close()

    try:
        if args.server:
            logger.info(f"Starting azdo-mcp HTTP server on {args.host}:{args.port}")
            mcp.run(transport="http", host=args.host, port=args.port)
        else:
            mcp.run()
    finally:
        # flush spans still queued in the batch processor
        shutdown_telemetry()


if __name__ == "__main__":  # pragma: no cover
    main()

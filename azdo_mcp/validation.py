"""Parameter validation shared by all tools.

FastMCP checks that required arguments are present and correctly typed. The
helpers here cover what a JSON schema cannot express: blank strings, the
organization/project defaults, enumerated values and JSON payloads given as
strings. Every helper raises ``AdoValidationError`` naming the offending
parameter, and all of them run before any request is sent.
"""

import base64
import binascii
import json
from typing import Any

from .errors import AdoConfigurationError, AdoValidationError

TIMEFRAMES = ("current", "past", "future")

LINK_TYPES = {
    "parent": "System.LinkTypes.Hierarchy-Forward",
    "child": "System.LinkTypes.Hierarchy-Reverse",
    "related": "System.LinkTypes.Related",
    "duplicate": "System.LinkTypes.Duplicate-Forward",
    "dependency": "System.LinkTypes.Dependency-Forward",
}


def get_client(client_container: dict):
    """Return the shared Azure DevOps client or raise if the server has none."""
    client = client_container.get("client")
    if client is None:
        raise AdoConfigurationError("Azure DevOps client is not available.")
    return client


def require_text(value: str | None, name: str) -> str:
    """Trim ``value`` and fail if nothing is left."""
    if value is None or not str(value).strip():
        raise AdoValidationError(
            f"Missing required parameter: {name} must be a non-empty string", fields=[name]
        )
    return str(value).strip()


def optional_text(value: str | None) -> str | None:
    """Trim ``value``; blank strings count as not given."""
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def resolve_organization(client, organization: str | None) -> str:
    """Use the given organization, else the configured default."""
    organization = optional_text(organization) or client.config.organization
    return require_text(organization, "organization")


def resolve_scope(client, organization: str | None, project: str | None) -> tuple[str, str]:
    """
    Resolve the organization and project of a project-scoped tool call.

    Explicit arguments win over the defaults from ``--organization`` /
    ``--project`` and ``AZDO_ORGANIZATION`` / ``AZDO_PROJECT``.

    Raises:
        AdoValidationError: Naming every key that is still missing.
    """
    organization = optional_text(organization) or client.config.organization
    project = optional_text(project) or client.config.project

    missing = [
        name for name, value in (("organization", organization), ("project", project)) if not value
    ]
    if missing:
        raise AdoValidationError(
            f"Missing required parameter(s): {', '.join(missing)}. Pass them explicitly "
            "or start the server with --organization/--project "
            "(AZDO_ORGANIZATION/AZDO_PROJECT).",
            fields=missing,
        )
    return organization, project


def require_positive_int(value: int | None, name: str) -> int:
    if value is None or isinstance(value, bool) or int(value) <= 0:
        raise AdoValidationError(f"{name} must be a positive integer", fields=[name])
    return int(value)


def validate_ids(ids: list[int] | None, name: str = "ids", limit: int | None = None) -> list[int]:
    """Validate a list of work item ids, dropping duplicates but keeping order."""
    if not ids:
        raise AdoValidationError(f"Missing required parameter: {name} must not be empty", [name])

    unique_ids = list(dict.fromkeys(require_positive_int(i, name) for i in ids))
    if limit is not None and len(unique_ids) > limit:
        raise AdoValidationError(
            f"{name} accepts at most {limit} work item ids, got {len(unique_ids)}", [name]
        )
    return unique_ids


def validate_comment_count(value: int | None) -> int | None:
    """``include_latest_n_comments``: -1 means all comments, 0 or None means none."""
    if value is None:
        return None
    if value < -1:
        raise AdoValidationError(
            "include_latest_n_comments must be -1 (all), 0 (none) or a positive number",
            fields=["include_latest_n_comments"],
        )
    return value


def validate_timeframe(timeframe: str | None) -> str | None:
    timeframe = optional_text(timeframe)
    if timeframe is None:
        return None
    if timeframe.lower() not in TIMEFRAMES:
        raise AdoValidationError(
            f"Invalid timeframe '{timeframe}'. Must be one of: {', '.join(TIMEFRAMES)}",
            fields=["timeframe"],
        )
    return timeframe.lower()


def resolve_link_type(link_type: str | None) -> str:
    """
    Map a link kind (Parent, Child, Related, Duplicate, Dependency) to the
    Azure DevOps relation reference name.

    The kind names the role of the source item: ``parent`` makes the source the
    parent of the target. A value containing a dot is taken as a raw relation
    reference name such as ``System.LinkTypes.Dependency-Reverse``.
    """
    link_type = require_text(link_type, "link_type")
    mapped = LINK_TYPES.get(link_type.lower())
    if mapped:
        return mapped
    if "." in link_type:
        return link_type
    raise AdoValidationError(
        f"Unknown link_type '{link_type}'. Use one of: "
        f"{', '.join(kind.capitalize() for kind in LINK_TYPES)}, "
        "or a relation reference name",
        fields=["link_type"],
    )


def parse_extra_fields(fields: dict[str, Any] | str | None) -> dict[str, Any]:
    """Accept extra work item fields as a mapping or as a JSON object string."""
    if fields is None or fields == "":
        return {}
    if isinstance(fields, str):
        try:
            fields = json.loads(fields)
        except json.JSONDecodeError as e:
            raise AdoValidationError(
                f"Invalid JSON in extra fields: {e}", fields=["fields"]
            ) from e
    if not isinstance(fields, dict):
        raise AdoValidationError(
            "Invalid JSON in extra fields: expected an object of field reference names",
            fields=["fields"],
        )
    for key in fields:
        require_text(key, "fields")
    return fields


def decode_base64(content: str | None, name: str = "content_base64") -> bytes:
    """Decode a base64 payload strictly, rejecting anything that is not base64."""
    if content is None:
        raise AdoValidationError(f"Missing required parameter: {name}", fields=[name])
    try:
        return base64.b64decode("".join(content.split()), validate=True)
    except (binascii.Error, ValueError) as e:
        raise AdoValidationError(f"{name} is not valid base64: {e}", fields=[name]) from e

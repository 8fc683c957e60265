"""Mapping of friendly tool arguments to work item field reference names."""

from typing import Any

FIELD_REFERENCE_NAMES = {
    "title": "System.Title",
    "description": "System.Description",
    "assigned_to": "System.AssignedTo",
    "area_path": "System.AreaPath",
    "iteration_path": "System.IterationPath",
    "state": "System.State",
    "board_column": "System.BoardColumn",
    "board_row": "System.BoardLane",
    "priority": "Microsoft.VSTS.Common.Priority",
    "severity": "Microsoft.VSTS.Common.Severity",
    "story_points": "Microsoft.VSTS.Scheduling.StoryPoints",
    "effort": "Microsoft.VSTS.Scheduling.Effort",
    "remaining_work": "Microsoft.VSTS.Scheduling.RemainingWork",
    "tags": "System.Tags",
    "activity": "Microsoft.VSTS.Common.Activity",
    "start_date": "Microsoft.VSTS.Scheduling.StartDate",
    "target_date": "Microsoft.VSTS.Scheduling.TargetDate",
    "acceptance_criteria": "Microsoft.VSTS.Common.AcceptanceCriteria",
    "repro_steps": "Microsoft.VSTS.TCM.ReproSteps",
}


def normalize_tags(tags: str) -> str:
    """Azure DevOps separates tags with semicolons; accept commas as well."""
    parts = [part.strip() for part in tags.replace(",", ";").split(";")]
    return "; ".join(part for part in parts if part)


def build_field_map(extra_fields: dict[str, Any] | None = None, **named: Any) -> dict[str, Any]:
    """
    Build the ``reference name -> value`` map for a create or update.

    Named arguments left as None are omitted. Extra fields, given by reference
    name, are applied last and win over the named arguments.

    Args:
        extra_fields: Additional fields keyed by reference name.
        **named: Friendly argument names from ``FIELD_REFERENCE_NAMES``.

    Returns:
        dict: Field values keyed by reference name.
    """
    field_map: dict[str, Any] = {}
    for name, value in named.items():
        if value is None:
            continue
        if name == "tags":
            value = normalize_tags(value)
        field_map[FIELD_REFERENCE_NAMES[name]] = value

    if extra_fields:
        field_map.update(extra_fields)
    return field_map

"""WIQL construction for structured work item queries."""

from pydantic import BaseModel, Field


def quote_wiql(value: str) -> str:
    """Quote a WIQL string literal, doubling embedded single quotes."""
    return "'" + value.replace("'", "''") + "'"


class QueryFilters(BaseModel):
    """Structured filter set for ``azdo_query_work_items``."""

    area_path: str | None = None
    iteration_path: str | None = None
    created_date_from: str | None = None
    created_date_to: str | None = None
    modified_date_from: str | None = None
    modified_date_to: str | None = None
    include_board_column: list[str] = Field(default_factory=list)
    include_board_row: list[str] = Field(default_factory=list)
    include_work_item_type: list[str] = Field(default_factory=list)
    include_state: list[str] = Field(default_factory=list)
    include_assigned_to: list[str] = Field(default_factory=list)
    include_tags: list[str] = Field(default_factory=list)
    exclude_board_column: list[str] = Field(default_factory=list)
    exclude_board_row: list[str] = Field(default_factory=list)
    exclude_work_item_type: list[str] = Field(default_factory=list)
    exclude_state: list[str] = Field(default_factory=list)
    exclude_assigned_to: list[str] = Field(default_factory=list)
    exclude_tags: list[str] = Field(default_factory=list)


# filter list suffix -> WIQL field
LIST_FILTER_FIELDS = {
    "board_column": "[System.BoardColumn]",
    "board_row": "[System.BoardLane]",
    "work_item_type": "[System.WorkItemType]",
    "state": "[System.State]",
    "assigned_to": "[System.AssignedTo]",
}


def _in_list(values: list[str]) -> str:
    return ", ".join(quote_wiql(value) for value in values)


def build_wiql_from_filters(project: str, filters: QueryFilters) -> str:
    """
    Build a WIQL query from structured filters.

    The query is always scoped to ``project``. Paths match with ``UNDER``,
    dates are inclusive bounds, include/exclude lists become ``IN`` /
    ``NOT IN`` and every tag becomes its own ``CONTAINS`` condition. All
    conditions are combined with ``AND``; most recently changed items first.

    Args:
        project: The project the query is scoped to.
        filters: The structured filter set.

    Returns:
        WIQL query string
    """
    conditions = [f"[System.TeamProject] = {quote_wiql(project)}"]

    if filters.area_path:
        conditions.append(f"[System.AreaPath] UNDER {quote_wiql(filters.area_path)}")
    if filters.iteration_path:
        conditions.append(f"[System.IterationPath] UNDER {quote_wiql(filters.iteration_path)}")

    for field, lower, upper in (
        ("[System.CreatedDate]", filters.created_date_from, filters.created_date_to),
        ("[System.ChangedDate]", filters.modified_date_from, filters.modified_date_to),
    ):
        if lower:
            conditions.append(f"{field} >= {quote_wiql(lower)}")
        if upper:
            conditions.append(f"{field} <= {quote_wiql(upper)}")

    for suffix, field in LIST_FILTER_FIELDS.items():
        included = [v.strip() for v in getattr(filters, f"include_{suffix}") if v and v.strip()]
        excluded = [v.strip() for v in getattr(filters, f"exclude_{suffix}") if v and v.strip()]
        if included:
            conditions.append(f"{field} IN ({_in_list(included)})")
        if excluded:
            conditions.append(f"{field} NOT IN ({_in_list(excluded)})")

    for tag in filters.include_tags:
        if tag and tag.strip():
            conditions.append(f"[System.Tags] CONTAINS {quote_wiql(tag.strip())}")
    for tag in filters.exclude_tags:
        if tag and tag.strip():
            conditions.append(f"NOT [System.Tags] CONTAINS {quote_wiql(tag.strip())}")

    return (
        "SELECT [System.Id] FROM WorkItems WHERE "
        + " AND ".join(conditions)
        + " ORDER BY [System.ChangedDate] DESC"
    )

from azdo_mcp.work_items.field_mapping import build_field_map, normalize_tags
from azdo_mcp.work_items.wiql import QueryFilters, build_wiql_from_filters, quote_wiql

ORDER_BY = " ORDER BY [System.ChangedDate] DESC"


def where_clause(wiql: str) -> str:
    assert wiql.startswith("SELECT [System.Id] FROM WorkItems WHERE "), f"Unexpected query: {wiql}"
    assert wiql.endswith(ORDER_BY), f"Expected newest-first ordering but got: {wiql}"
    return wiql[len("SELECT [System.Id] FROM WorkItems WHERE ") : -len(ORDER_BY)]


class TestBuildWiql:
    def test_no_filters_is_scoped_to_project(self):
        wiql = build_wiql_from_filters("Fabrikam", QueryFilters())

        assert where_clause(wiql) == "[System.TeamProject] = 'Fabrikam'", (
            f"Expected only the project condition but got: {wiql}"
        )

    def test_paths_use_under(self):
        wiql = build_wiql_from_filters(
            "Fabrikam",
            QueryFilters(area_path="Fabrikam\\Web", iteration_path="Fabrikam\\Sprint 2"),
        )

        conditions = where_clause(wiql).split(" AND ")
        assert "[System.AreaPath] UNDER 'Fabrikam\\Web'" in conditions, f"Got: {conditions}"
        assert "[System.IterationPath] UNDER 'Fabrikam\\Sprint 2'" in conditions, f"Got: {conditions}"

    def test_date_bounds_are_inclusive(self):
        wiql = build_wiql_from_filters(
            "Fabrikam",
            QueryFilters(
                created_date_from="2024-01-01",
                created_date_to="2024-01-31",
                modified_date_from="2024-02-01",
            ),
        )

        conditions = where_clause(wiql).split(" AND ")
        assert conditions[1:] == [
            "[System.CreatedDate] >= '2024-01-01'",
            "[System.CreatedDate] <= '2024-01-31'",
            "[System.ChangedDate] >= '2024-02-01'",
        ], f"Unexpected date conditions: {conditions}"

    def test_include_and_exclude_lists(self):
        wiql = build_wiql_from_filters(
            "Fabrikam",
            QueryFilters(
                include_work_item_type=["Bug", "User Story"],
                exclude_state=["Closed", "Removed"],
                include_board_row=["Expedite"],
                exclude_assigned_to=["alex@contoso.com"],
            ),
        )

        conditions = where_clause(wiql).split(" AND ")
        assert "[System.WorkItemType] IN ('Bug', 'User Story')" in conditions, f"Got: {conditions}"
        assert "[System.State] NOT IN ('Closed', 'Removed')" in conditions, f"Got: {conditions}"
        assert "[System.BoardLane] IN ('Expedite')" in conditions, f"Got: {conditions}"
        assert "[System.AssignedTo] NOT IN ('alex@contoso.com')" in conditions, f"Got: {conditions}"

    def test_each_tag_is_its_own_condition(self):
        wiql = build_wiql_from_filters(
            "Fabrikam", QueryFilters(include_tags=["api", "p1"], exclude_tags=["wontfix"])
        )

        conditions = where_clause(wiql).split(" AND ")
        assert conditions[1:] == [
            "[System.Tags] CONTAINS 'api'",
            "[System.Tags] CONTAINS 'p1'",
            "NOT [System.Tags] CONTAINS 'wontfix'",
        ], f"Unexpected tag conditions: {conditions}"

    def test_blank_list_entries_are_ignored(self):
        wiql = build_wiql_from_filters(
            "Fabrikam", QueryFilters(include_state=["", "  "], include_tags=[" "])
        )

        assert where_clause(wiql) == "[System.TeamProject] = 'Fabrikam'", (
            f"Expected blank values ignored but got: {wiql}"
        )

    def test_quotes_are_escaped(self):
        wiql = build_wiql_from_filters(
            "O'Brien's Project", QueryFilters(include_assigned_to=["d'Arcy"])
        )

        assert "[System.TeamProject] = 'O''Brien''s Project'" in wiql, f"Got: {wiql}"
        assert "[System.AssignedTo] IN ('d''Arcy')" in wiql, f"Got: {wiql}"


def test_quote_wiql():
    assert quote_wiql("it's") == "'it''s'"


class TestFieldMapping:
    def test_named_arguments_map_to_reference_names(self):
        field_map = build_field_map(
            title="Fix login",
            priority=2,
            story_points=3.5,
            board_row="Expedite",
            repro_steps="<p>Click login</p>",
            description=None,
        )

        assert field_map == {
            "System.Title": "Fix login",
            "Microsoft.VSTS.Common.Priority": 2,
            "Microsoft.VSTS.Scheduling.StoryPoints": 3.5,
            "System.BoardLane": "Expedite",
            "Microsoft.VSTS.TCM.ReproSteps": "<p>Click login</p>",
        }, f"Unexpected field map: {field_map}"

    def test_extra_fields_win(self):
        field_map = build_field_map(
            {"System.Title": "From fields", "Custom.Environment": "Staging"}, title="Named"
        )

        assert field_map == {"System.Title": "From fields", "Custom.Environment": "Staging"}, (
            f"Expected extra fields to override named ones but got {field_map}"
        )

    def test_tags_accept_commas(self):
        assert normalize_tags("api, backend;; p1 ") == "api; backend; p1"

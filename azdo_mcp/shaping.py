"""Token-economical shaping of Azure DevOps responses for LLM consumers.

Everything here is a pure function over plain JSON values (dicts, lists,
scalars); none of it performs I/O.
"""

import csv
import io
import json
import re
from typing import Any

from bs4 import BeautifulSoup

DROPPED_KEYS = frozenset({"url", "_links", "descriptor", "imageUrl", "avatar"})

FIELD_PREFIXES = (
    "System.",
    "Microsoft.VSTS.Common.",
    "Microsoft.VSTS.Scheduling.",
    "Microsoft.VSTS.CMMI.",
    "Microsoft.VSTS.TCM.",
)

SKIPPED_FIELDS = frozenset(
    {
        "ActivatedBy",
        "ActivatedDate",
        "BoardColumnDone",
        "ClosedBy",
        "ClosedDate",
        "CommentCount",
        "Reason",
        "ResolvedBy",
        "ResolvedDate",
    }
)

RENAMED_FIELDS = {
    "BoardColumn": "Column",
    "BoardLane": "Lane",
    "AcceptanceCriteria": "Acceptance",
    "TeamProject": "Project",
    "WorkItemType": "Type",
    "IterationPath": "Iteration",
}

HTML_FIELDS = frozenset({"Acceptance", "Description", "Justification", "ReproSteps", "History"})

# Relation name as seen from the item that holds the relation
RELATION_KINDS = {
    "System.LinkTypes.Hierarchy-Forward": "Child",
    "System.LinkTypes.Hierarchy-Reverse": "Parent",
    "System.LinkTypes.Related": "Related",
    "System.LinkTypes.Duplicate-Forward": "Duplicate",
    "System.LinkTypes.Duplicate-Reverse": "DuplicateOf",
    "System.LinkTypes.Dependency-Forward": "Successor",
    "System.LinkTypes.Dependency-Reverse": "Predecessor",
    "AttachedFile": "Attachment",
}

CSV_COLUMNS = (
    "id",
    "Type",
    "State",
    "Title",
    "Description",
    "Acceptance",
    "ReproSteps",
    "Column",
    "Lane",
    "Priority",
    "Severity",
    "AssignedTo",
    "CreatedBy",
    "CreatedDate",
    "ChangedBy",
    "ChangedDate",
    "AreaPath",
    "Iteration",
    "Project",
    "Tags",
    "StartDate",
    "TargetDate",
    "StoryPoints",
    "Effort",
    "RemainingWork",
    "Risk",
    "Justification",
    "ValueArea",
    "StackRank",
    "StateChangeDate",
    "Relations",
    "comments",
)

BLOCK_TAGS = [
    "p",
    "div",
    "li",
    "tr",
    "h1",
    "h2",
    "h3",
    "h4",
    "h5",
    "h6",
    "pre",
    "blockquote",
    "table",
    "ul",
    "ol",
]

RE_SPACES = re.compile(r" +")
RE_NEWLINES = re.compile(r"\n+")
RE_LEADING_WS = re.compile(r"\n +")
RE_TRAILING_WS = re.compile(r" +\n")
RE_DASHES = re.compile(r"-{3,}\n")
RE_IMAGE = re.compile(r"\[image\]", re.IGNORECASE)


def normalize_text(text: str) -> str:
    """Collapse whitespace and drop rendering noise from converted rich text."""
    text = text.replace("\r", "\n").replace("\t", " ").replace("─", "-").replace("\xa0", " ")
    text = RE_SPACES.sub(" ", text)
    text = RE_NEWLINES.sub("\n", text)
    text = RE_LEADING_WS.sub("\n", text)
    text = RE_TRAILING_WS.sub("\n", text)
    text = RE_DASHES.sub("---\n", text)
    text = RE_IMAGE.sub("", text)
    return text.strip()


def html_to_text(html: str) -> str:
    """Render Azure DevOps rich-text (HTML) fields as normalised plain text."""
    soup = BeautifulSoup(html, "html.parser")

    for tag in soup.find_all(["script", "style", "img"]):
        tag.decompose()
    for br in soup.find_all("br"):
        br.replace_with("\n")
    for hr in soup.find_all("hr"):
        hr.replace_with("\n---\n")
    for item in soup.find_all("li"):
        item.insert(0, "- ")
    for cell in soup.find_all(["td", "th"]):
        cell.insert_after(" | ")
    for block in soup.find_all(BLOCK_TAGS):
        block.insert_after("\n")

    return normalize_text(soup.get_text())


def _is_identity(value: Any) -> bool:
    return isinstance(value, dict) and isinstance(value.get("displayName"), str)


def simplify_identity(identity: dict) -> str:
    """``{"displayName": "Jane", "uniqueName": "jane@x"}`` -> ``"Jane <jane@x>"``."""
    name = identity["displayName"]
    unique_name = identity.get("uniqueName")
    if unique_name:
        return f"{name} <{unique_name}>"
    return name


def simplify_field_name(key: str) -> str | None:
    """Short name of a field reference name, or None if the field is dropped."""
    if key.endswith("_Kanban.Column.Done"):
        return None
    if "_Kanban.Column" in key:
        return "Column"
    if "_Kanban.Lane" in key:
        return "Lane"

    for prefix in FIELD_PREFIXES:
        if key.startswith(prefix):
            key = key[len(prefix) :]
            break

    if key in SKIPPED_FIELDS:
        return None
    return RENAMED_FIELDS.get(key, key)


def _simplify_fields(fields: dict) -> dict:
    simplified = {}
    for key, value in fields.items():
        name = simplify_field_name(key)
        if name is None or name in simplified:
            continue

        if _is_identity(value):
            value = simplify_identity(value)
        elif isinstance(value, (dict, list)):
            value = simplify_work_item_json(value)
        elif name in HTML_FIELDS and isinstance(value, str):
            value = html_to_text(value)
        elif name == "Tags" and isinstance(value, str):
            value = value.replace("; ", ";")

        simplified[name] = value
    return simplified


def relation_target(url: str | None) -> str:
    """Last path segment of a relation URL (work item id or attachment id)."""
    if not url:
        return ""
    return url.rstrip("/").rsplit("/", 1)[-1]


def simplify_relation(relation: dict) -> str:
    """``{"rel": "System.LinkTypes.Hierarchy-Reverse", "url": ".../123"}`` -> ``"Parent:123"``."""
    rel = relation.get("rel") or ""
    kind = RELATION_KINDS.get(rel) or rel.rsplit(".", 1)[-1] or "Link"
    if rel in ("Hyperlink", "ArtifactLink"):
        return f"{kind}:{relation.get('url', '')}"
    return f"{kind}:{relation_target(relation.get('url'))}"


def simplify_comment(comment: dict) -> dict:
    """Reduce a work item comment to author, date and plain text."""
    author = comment.get("createdBy")
    simplified = {
        "id": comment.get("id"),
        "author": simplify_identity(author) if _is_identity(author) else author,
        "date": comment.get("createdDate"),
        "text": html_to_text(comment.get("text") or ""),
    }
    return {key: value for key, value in simplified.items() if value not in (None, "")}


def simplify_work_item_json(value: Any) -> Any:
    """
    Recursively reduce an Azure DevOps payload for LLM consumption.

    - drops ``url``, ``_links``, ``descriptor``, ``imageUrl`` and ``avatar``
    - flattens ``fields`` into the enclosing object with short field names
    - collapses identity objects to ``"Name <uniqueName>"``
    - renders rich-text fields as plain text
    - turns ``relations`` into ``"Kind:target"`` strings
    - keeps the first value when two keys collapse to the same name

    The input is not modified.
    """
    if isinstance(value, list):
        return [simplify_work_item_json(item) for item in value]
    if not isinstance(value, dict):
        return value
    if _is_identity(value) and "uniqueName" in value:
        return simplify_identity(value)

    result = {}
    for key, item in value.items():
        if key in DROPPED_KEYS:
            continue

        if key == "fields" and isinstance(item, dict):
            for name, field_value in _simplify_fields(item).items():
                result.setdefault(name, field_value)
        elif key == "relations" and isinstance(item, list):
            result.setdefault("Relations", [simplify_relation(rel) for rel in item])
        elif key == "comments" and isinstance(item, list):
            result.setdefault("comments", [simplify_comment(c) for c in item])
        else:
            result.setdefault(key, simplify_work_item_json(item))
    return result


def to_compact_json(value: Any) -> str:
    """Serialise without whitespace."""
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == {}


def _csv_cell(column: str, value: Any) -> str:
    if _is_empty(value):
        return ""
    if column == "comments" or isinstance(value, dict):
        return to_compact_json(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, list):
        value = ";".join(str(item) for item in value)
    elif not isinstance(value, str):
        return str(value)
    return value.replace("\r", "").replace("\n", "\\n").replace("\t", "\\t")


def work_items_to_csv(items: list[dict]) -> str:
    """
    Render simplified work items as CSV.

    Columns follow ``CSV_COLUMNS``; a column is only written when at least one
    item has a non-empty value for it. Newlines and tabs inside values are
    escaped so every work item stays on one line.
    """
    if not items:
        return ""

    columns = [
        column for column in CSV_COLUMNS if any(not _is_empty(item.get(column)) for item in items)
    ]

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(columns)
    for item in items:
        writer.writerow([_csv_cell(column, item.get(column)) for column in columns])
    return buffer.getvalue()


def board_columns_to_csv(columns: list[dict]) -> str:
    """Render board columns as ``name,item_limit,is_split,column_type`` CSV."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(["name", "item_limit", "is_split", "column_type"])
    for column in columns:
        writer.writerow(
            [
                column.get("name", ""),
                column.get("itemLimit", 0),
                "true" if column.get("isSplit") else "false",
                column.get("columnType", ""),
            ]
        )
    return buffer.getvalue()

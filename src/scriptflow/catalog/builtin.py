"""Built-in node types for Google Workspace and generic HTTP."""

import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Optional, Union

from scriptflow.catalog.catalog import NodeCatalog
from scriptflow.catalog.loader import load_descriptor_dir
from scriptflow.catalog.node_type import BUILT_IN_APP, NodeType, ParamsSchema, ParamSpec
from scriptflow.core.exceptions import DuplicateTypeError

logger = logging.getLogger(__name__)

CONNECTORS_DIR = Path(__file__).parent / "connectors"

_GOOGLE = "https://www.googleapis.com/auth/"

SCOPE_SCRIPT_TRIGGERS = _GOOGLE + "script.scriptapp"
SCOPE_EXTERNAL_REQUEST = _GOOGLE + "script.external_request"
SCOPE_GMAIL_READ = _GOOGLE + "gmail.readonly"
SCOPE_GMAIL_SEND = _GOOGLE + "gmail.send"
SCOPE_SHEETS = _GOOGLE + "spreadsheets"
SCOPE_SHEETS_READ = _GOOGLE + "spreadsheets.readonly"
SCOPE_CALENDAR = _GOOGLE + "calendar.events"
SCOPE_CALENDAR_READ = _GOOGLE + "calendar.readonly"
SCOPE_DRIVE_FILE = _GOOGLE + "drive.file"
SCOPE_DRIVE_READ = _GOOGLE + "drive.readonly"

FREQUENCIES = ["every_minutes", "hourly", "daily", "weekly", "monthly"]
WEEKDAYS = ["MONDAY", "TUESDAY", "WEDNESDAY", "THURSDAY", "FRIDAY", "SATURDAY", "SUNDAY"]


def _p(kind: Optional[str] = None, description: str = "", **extra: Any) -> ParamSpec:
    return ParamSpec(type=kind, description=description, **extra)


def _node(
    type_id: str,
    name: str,
    description: str,
    *,
    app: str,
    required: Iterable[str] = (),
    params: Optional[dict[str, ParamSpec]] = None,
    scopes: Iterable[str] = (),
    complexity: str = "Simple",
) -> NodeType:
    category = type_id.split(".", 1)[0]
    return NodeType(
        id=type_id,
        name=name,
        description=description,
        category=category,
        app=app,
        params_schema=ParamsSchema(required=list(required), properties=params or {}),
        required_scopes=list(scopes),
        complexity=complexity,
    )


TRIGGERS = [
    _node(
        "trigger.time.cron",
        "Time-based trigger",
        "Run the workflow on a schedule (every N minutes, hourly, daily, weekly or monthly)",
        app="time",
        required=["frequency"],
        params={
            "frequency": _p("string", "How often to run", enum=FREQUENCIES),
            "everyMinutes": _p("number", "Interval for every_minutes: 1, 5, 10, 15 or 30", enum=[1, 5, 10, 15, 30]),
            "everyHours": _p("number", "Interval for hourly runs", default=1),
            "atHour": _p("number", "Hour of day (0-23) for daily, weekly and monthly runs"),
            "dayOfWeek": _p("string", "Weekday for weekly runs", enum=WEEKDAYS),
            "dayOfMonth": _p("number", "Day of month for monthly runs"),
            "timezone": _p("string", "IANA time zone; defaults to the project time zone"),
        },
        scopes=[SCOPE_SCRIPT_TRIGGERS],
    ),
    _node(
        "trigger.webhook.inbound",
        "Webhook trigger",
        "Run the workflow when an HTTP request reaches the deployed web app",
        app="webhook",
        params={
            "method": _p("string", "Accepted HTTP method", enum=["GET", "POST"], default="POST"),
            "path": _p("string", "Optional route name carried in the 'path' query parameter"),
        },
    ),
    _node(
        "trigger.gmail.new_email",
        "New email",
        "Poll Gmail for new messages matching a search query",
        app="gmail",
        required=["query"],
        params={
            "query": _p("string", "Gmail search query, e.g. 'is:unread label:invoices'"),
            "everyMinutes": _p("number", "Polling interval in minutes", default=15),
        },
        scopes=[SCOPE_GMAIL_READ, SCOPE_SCRIPT_TRIGGERS],
    ),
    _node(
        "trigger.sheets.new_row",
        "New spreadsheet row",
        "Poll a sheet for rows appended since the last run",
        app="sheets",
        required=["spreadsheetId"],
        params={
            "spreadsheetId": _p("string", "Spreadsheet id or URL"),
            "sheetName": _p("string", "Tab name; defaults to the first sheet"),
            "everyMinutes": _p("number", "Polling interval in minutes", default=15),
        },
        scopes=[SCOPE_SHEETS_READ, SCOPE_SCRIPT_TRIGGERS],
    ),
    _node(
        "trigger.drive.new_file",
        "New Drive file",
        "Poll a Drive folder for files created since the last run",
        app="drive",
        required=["folderId"],
        params={
            "folderId": _p("string", "Drive folder id"),
            "everyMinutes": _p("number", "Polling interval in minutes", default=15),
        },
        scopes=[SCOPE_DRIVE_READ, SCOPE_SCRIPT_TRIGGERS],
    ),
]

TRANSFORMS = [
    _node(
        "transform.filter.expr",
        "Filter items",
        "Keep only the items for which a field comparison holds",
        app=BUILT_IN_APP,
        required=["items", "field", "operator"],
        params={
            "items": _p("array", "Items to filter, usually a reference to an upstream output"),
            "field": _p("string", "Dotted field path inside each item"),
            "operator": _p(
                "string",
                "Comparison to apply",
                enum=["equals", "not_equals", "contains", "greater_than", "less_than", "exists"],
            ),
            "value": _p(None, "Value to compare against"),
        },
    ),
    _node(
        "transform.text.extract_regex",
        "Extract with regex",
        "Extract the first capture group of a regular expression from text",
        app=BUILT_IN_APP,
        required=["text", "pattern"],
        params={
            "text": _p("string", "Input text"),
            "pattern": _p("string", "JavaScript regular expression"),
            "flags": _p("string", "Regex flags", default="i"),
        },
    ),
    _node(
        "transform.template.interpolate",
        "Format text",
        "Render a text template with values from upstream nodes",
        app=BUILT_IN_APP,
        required=["template"],
        params={"template": _p("string", "Text containing {{node.field}} placeholders")},
    ),
    _node(
        "transform.json.path",
        "Pick JSON field",
        "Select a value from structured data by dotted path",
        app=BUILT_IN_APP,
        required=["source", "path"],
        params={
            "source": _p(None, "Structured data, usually a reference to an upstream output"),
            "path": _p("string", "Dotted path, e.g. 'data.items[0].id'"),
        },
    ),
    _node(
        "transform.list.to_rows",
        "Items to rows",
        "Turn a list of objects into spreadsheet rows by picking fields",
        app=BUILT_IN_APP,
        required=["items", "fields"],
        params={
            "items": _p("array", "Objects to convert"),
            "fields": _p("array", "Field paths, one per column"),
        },
    ),
]

ACTIONS = [
    _node(
        "action.gmail.search",
        "Search email",
        "Find Gmail messages matching a search query",
        app="gmail",
        required=["query"],
        params={
            "query": _p("string", "Gmail search query, e.g. 'is:unread newer_than:7d'"),
            "maxResults": _p("number", "Maximum number of threads to read", default=50),
        },
        scopes=[SCOPE_GMAIL_READ],
    ),
    _node(
        "action.gmail.send",
        "Send email",
        "Send an email from the script owner's Gmail account",
        app="gmail",
        required=["to", "subject", "body"],
        params={
            "to": _p("string", "Recipient address"),
            "subject": _p("string", "Subject line"),
            "body": _p("string", "Plain-text body"),
            "cc": _p("string", "Optional CC addresses"),
        },
        scopes=[SCOPE_GMAIL_SEND],
    ),
    _node(
        "action.sheets.append_row",
        "Append row",
        "Append one row (or several rows) to a Google Sheet",
        app="sheets",
        required=["spreadsheetId", "values"],
        params={
            "spreadsheetId": _p("string", "Spreadsheet id or URL"),
            "sheetName": _p("string", "Tab name; defaults to the first sheet"),
            "values": _p("array", "Cell values for the row, or a list of rows"),
        },
        scopes=[SCOPE_SHEETS],
    ),
    _node(
        "action.sheets.read_range",
        "Read range",
        "Read cell values from a Google Sheet",
        app="sheets",
        required=["spreadsheetId"],
        params={
            "spreadsheetId": _p("string", "Spreadsheet id or URL"),
            "sheetName": _p("string", "Tab name; defaults to the first sheet"),
            "range": _p("string", "A1 notation; defaults to the whole data range"),
        },
        scopes=[SCOPE_SHEETS_READ],
    ),
    _node(
        "action.calendar.create_event",
        "Create calendar event",
        "Create an event in a Google Calendar",
        app="calendar",
        required=["title", "start", "end"],
        params={
            "title": _p("string", "Event title"),
            "start": _p("string", "ISO 8601 start time"),
            "end": _p("string", "ISO 8601 end time"),
            "calendarId": _p("string", "Calendar id; defaults to the primary calendar"),
            "description": _p("string", "Event description"),
        },
        scopes=[SCOPE_CALENDAR],
    ),
    _node(
        "action.calendar.list_events",
        "List calendar events",
        "List upcoming events from a Google Calendar",
        app="calendar",
        params={
            "calendarId": _p("string", "Calendar id; defaults to the primary calendar"),
            "daysAhead": _p("number", "How many days ahead to look", default=7),
        },
        scopes=[SCOPE_CALENDAR_READ],
    ),
    _node(
        "action.drive.create_file",
        "Create Drive file",
        "Create a text file in Google Drive",
        app="drive",
        required=["name", "content"],
        params={
            "name": _p("string", "File name"),
            "content": _p("string", "File content"),
            "folderId": _p("string", "Destination folder id"),
            "mimeType": _p("string", "MIME type", default="text/plain"),
        },
        scopes=[SCOPE_DRIVE_FILE],
    ),
    _node(
        "action.http.request",
        "HTTP request",
        "Call an external HTTP API",
        app="http",
        required=["method", "url"],
        params={
            "method": _p("string", "HTTP method", enum=["GET", "POST", "PUT", "PATCH", "DELETE"]),
            "url": _p("string", "Request URL"),
            "headers": _p("object", "Request headers"),
            "body": _p(None, "Request body; objects are sent as JSON"),
        },
        scopes=[SCOPE_EXTERNAL_REQUEST],
        complexity="Medium",
    ),
]

BUILTIN_NODE_TYPES: list[NodeType] = TRIGGERS + TRANSFORMS + ACTIONS


def build_default_catalog(extra_dirs: Iterable[Union[str, Path]] = (), include_connectors: bool = True) -> NodeCatalog:
    """Build the frozen catalog used by default.

    Args:
        extra_dirs: Additional connector descriptor directories
        include_connectors: Whether to load the packaged connector descriptors

    Returns:
        A frozen catalog of built-in and connector node types
    """
    catalog = NodeCatalog(BUILTIN_NODE_TYPES)
    directories = ([CONNECTORS_DIR] if include_connectors else []) + [Path(d) for d in extra_dirs]
    for directory in directories:
        for node_type in load_descriptor_dir(directory):
            try:
                catalog.register(node_type)
            except DuplicateTypeError as e:
                logger.warning(f"Skipping connector node type: {e}")
    logger.info(f"Catalog ready with {len(catalog)} node types")
    return catalog.freeze()

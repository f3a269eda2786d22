"""Per-operation code generation rules.

Rules are keyed by ``(category, app, operation)`` of the node type. Each rule
receives an ``EmitContext`` and returns the body of the node's step
function. Connector operations without a dedicated rule are compiled from
their request template; anything else becomes a marked stub.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from scriptflow.catalog.node_type import BUILT_IN_APP, NodeType
from scriptflow.compiler.artifacts import comment_text
from scriptflow.compiler.placeholders import js_literal, template_resolver, to_js
from scriptflow.core.graph_data_flow import is_whole_placeholder
from scriptflow.core.graph_model import GraphNode

logger = logging.getLogger(__name__)

TRIGGER_HANDLER = "executeWorkflow"

_ALLOWED_MINUTES = (1, 5, 10, 15, 30)
_ALLOWED_HOURS = (1, 2, 4, 6, 8, 12)
_SCHEDULES = ("every_minutes", "hourly", "daily", "weekly", "monthly")


@dataclass
class StepCode:
    """Generated code for one node."""

    body: list[str]
    trigger_setup: list[str] = field(default_factory=list)
    helpers: set[str] = field(default_factory=set)
    halts: bool = False
    webhook: bool = False
    stub: bool = False


@dataclass
class EmitContext:
    """What a rule needs to know about the node it compiles."""

    node: GraphNode
    node_type: Optional[NodeType]
    time_zone: str

    @property
    def node_id_js(self) -> str:
        return js_literal(self.node.id)

    def param(self, name: str) -> str:
        """JavaScript expression for a param, falling back to its declared default."""
        if name in self.node.params and self.node.params[name] is not None:
            return to_js(self.node.params[name])
        return js_literal(self.default(name))

    def default(self, name: str) -> Any:
        if self.node_type is None:
            return None
        spec = self.node_type.params_schema.properties.get(name)
        return spec.default if spec is not None else None

    def literal(self, name: str, fallback: Any = None) -> Any:
        """Compile-time value of a param; placeholders and absent values give the fallback.

        Trigger schedules are installed before any step runs, so they can only
        use literal values.
        """
        value = self.node.params.get(name)
        if value is None or is_whole_placeholder(value) or (isinstance(value, str) and "{{" in value):
            default = self.default(name)
            return fallback if default is None else default
        return value


EmitRule = Callable[[EmitContext], StepCode]

EMITTERS: dict[tuple[str, str, str], EmitRule] = {}


def rule(category: str, app: str, operation: str) -> Callable[[EmitRule], EmitRule]:
    def register(func: EmitRule) -> EmitRule:
        EMITTERS[(category, app, operation)] = func
        return func

    return register


def _int_choice(value: Any, allowed: tuple[int, ...], fallback: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return fallback
    return number if number in allowed else fallback


def _int_range(value: Any, low: int, high: int, fallback: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return fallback
    return number if low <= number <= high else fallback


def _polling_setup(ctx: EmitContext) -> list[str]:
    minutes = _int_choice(ctx.literal("everyMinutes", 15), _ALLOWED_MINUTES, 15)
    return [
        f"// {ctx.node.id}: poll every {minutes} minutes",
        f"ScriptApp.newTrigger('{TRIGGER_HANDLER}').timeBased().everyMinutes({minutes}).create();",
    ]


# Triggers


@rule("trigger", "time", "cron")
def emit_time_trigger(ctx: EmitContext) -> StepCode:
    frequency = ctx.literal("frequency", "daily")
    if frequency not in _SCHEDULES:
        # Reported by the validator as invalid_enum; compile as daily
        frequency = "daily"
    hour = _int_range(ctx.literal("atHour", 9), 0, 23, 9)
    time_zone = ctx.literal("timezone", None) or ctx.time_zone
    tz = f".inTimezone({js_literal(time_zone)})"

    if frequency == "every_minutes":
        minutes = _int_choice(ctx.literal("everyMinutes", 15), _ALLOWED_MINUTES, 15)
        schedule = f".everyMinutes({minutes})"
    elif frequency == "hourly":
        hours = _int_choice(ctx.literal("everyHours", 1), _ALLOWED_HOURS, 1)
        schedule = f".everyHours({hours})"
    elif frequency == "weekly":
        day = str(ctx.literal("dayOfWeek", "MONDAY")).upper()
        if day not in ("MONDAY", "TUESDAY", "WEDNESDAY", "THURSDAY", "FRIDAY", "SATURDAY", "SUNDAY"):
            day = "MONDAY"
        schedule = f".onWeekDay(ScriptApp.WeekDay.{day}).atHour({hour}){tz}"
    elif frequency == "monthly":
        day_of_month = _int_range(ctx.literal("dayOfMonth", 1), 1, 31, 1)
        schedule = f".onMonthDay({day_of_month}).atHour({hour}){tz}"
    else:
        schedule = f".everyDays(1).atHour({hour}){tz}"

    return StepCode(
        body=["return { firedAt: new Date().toISOString(), event: state.event };"],
        trigger_setup=[
            f"// {ctx.node.id}: {frequency} schedule",
            f"ScriptApp.newTrigger('{TRIGGER_HANDLER}').timeBased(){schedule}.create();",
        ],
    )


@rule("trigger", "webhook", "inbound")
def emit_webhook_trigger(ctx: EmitContext) -> StepCode:
    return StepCode(
        body=[
            "const request = state.event || {};",
            "return { method: request.method || null, query: request.query || {}, body: request.body || null };",
        ],
        trigger_setup=[f"// {ctx.node.id}: deploy as a web app; doPost/doGet start the workflow"],
        webhook=True,
    )


@rule("trigger", "gmail", "new_email")
def emit_gmail_trigger(ctx: EmitContext) -> StepCode:
    node_id = ctx.node_id_js
    return StepCode(
        body=[
            f"const threads = GmailApp.search({ctx.param('query')}, 0, 50);",
            "const messages = [];",
            "threads.forEach(function (thread) {",
            "  thread.getMessages().forEach(function (message) {",
            f"    if (isProcessed_({node_id}, message.getId())) {{",
            "      return;",
            "    }",
            f"    markProcessed_({node_id}, message.getId());",
            "    messages.push(messageToObject_(thread, message));",
            "  });",
            "});",
            "if (messages.length === 0) {",
            "  return halt_('No new email');",
            "}",
            "return { messages: messages, count: messages.length };",
        ],
        trigger_setup=_polling_setup(ctx),
        helpers={"messageToObject_"},
        halts=True,
    )


@rule("trigger", "sheets", "new_row")
def emit_sheets_trigger(ctx: EmitContext) -> StepCode:
    state_key = js_literal(f"last_row_{ctx.node.id}")
    return StepCode(
        body=[
            f"const sheet = openSheet_({ctx.param('spreadsheetId')}, {ctx.param('sheetName')});",
            f"const lastSeen = getState_({state_key}, 1);",
            "const lastRow = sheet.getLastRow();",
            "if (lastRow <= lastSeen) {",
            "  return halt_('No new rows');",
            "}",
            "const width = sheet.getLastColumn();",
            "const headers = sheet.getRange(1, 1, 1, width).getValues()[0];",
            "const values = sheet.getRange(lastSeen + 1, 1, lastRow - lastSeen, width).getValues();",
            f"setState_({state_key}, lastRow);",
            "const rows = values.map(function (row) {",
            "  return rowToObject_(headers, row);",
            "});",
            "return { rows: rows, count: rows.length };",
        ],
        trigger_setup=_polling_setup(ctx),
        helpers={"openSheet_", "rowToObject_"},
        halts=True,
    )


@rule("trigger", "drive", "new_file")
def emit_drive_trigger(ctx: EmitContext) -> StepCode:
    node_id = ctx.node_id_js
    return StepCode(
        body=[
            f"const folder = DriveApp.getFolderById({ctx.param('folderId')});",
            f"const since = getLastProcessedTime_({node_id});",
            "const files = [];",
            "const iterator = folder.getFiles();",
            "while (iterator.hasNext()) {",
            "  const file = iterator.next();",
            "  if (file.getDateCreated() > since) {",
            "    files.push({",
            "      id: file.getId(),",
            "      name: file.getName(),",
            "      url: file.getUrl(),",
            "      mimeType: file.getMimeType(),",
            "      created: file.getDateCreated().toISOString(),",
            "    });",
            "  }",
            "}",
            f"setLastProcessedTime_({node_id}, new Date());",
            "if (files.length === 0) {",
            "  return halt_('No new files');",
            "}",
            "return { files: files, count: files.length };",
        ],
        trigger_setup=_polling_setup(ctx),
        halts=True,
    )


# Transforms


@rule("transform", BUILT_IN_APP, "filter.expr")
def emit_filter(ctx: EmitContext) -> StepCode:
    return StepCode(
        body=[
            f"const items = {ctx.param('items')} || [];",
            f"const field = {ctx.param('field')};",
            f"const operator = {ctx.param('operator')};",
            f"const expected = {ctx.param('value')};",
            "const kept = items.filter(function (item) {",
            "  const actual = getNestedValue_(item, field);",
            "  switch (operator) {",
            "    case 'equals': return actual == expected;",
            "    case 'not_equals': return actual != expected;",
            "    case 'contains': return toText_(actual).indexOf(toText_(expected)) !== -1;",
            "    case 'greater_than': return Number(actual) > Number(expected);",
            "    case 'less_than': return Number(actual) < Number(expected);",
            "    case 'exists': return actual !== null && actual !== '';",
            "    default: throw new Error('Unsupported filter operator: ' + operator);",
            "  }",
            "});",
            "return { items: kept, count: kept.length };",
        ]
    )


@rule("transform", BUILT_IN_APP, "text.extract_regex")
def emit_extract_regex(ctx: EmitContext) -> StepCode:
    return StepCode(
        body=[
            f"const text = toText_({ctx.param('text')});",
            f"const match = text.match(new RegExp({ctx.param('pattern')}, {ctx.param('flags')} || ''));",
            "if (!match) {",
            "  return { match: null, groups: [] };",
            "}",
            "return { match: match[1] !== undefined ? match[1] : match[0], groups: match.slice(1) };",
        ]
    )


@rule("transform", BUILT_IN_APP, "template.interpolate")
def emit_template(ctx: EmitContext) -> StepCode:
    return StepCode(body=[f"return {{ text: toText_({ctx.param('template')}) }};"])


@rule("transform", BUILT_IN_APP, "json.path")
def emit_json_path(ctx: EmitContext) -> StepCode:
    return StepCode(body=[f"return {{ value: getNestedValue_({ctx.param('source')}, {ctx.param('path')}) }};"])


@rule("transform", BUILT_IN_APP, "list.to_rows")
def emit_list_to_rows(ctx: EmitContext) -> StepCode:
    return StepCode(
        body=[
            f"const items = {ctx.param('items')} || [];",
            f"const fields = {ctx.param('fields')};",
            "const rows = items.map(function (item) {",
            "  return fields.map(function (path) {",
            "    return toText_(getNestedValue_(item, path));",
            "  });",
            "});",
            "return { rows: rows, count: rows.length };",
        ]
    )


# Actions


@rule("action", "gmail", "search")
def emit_gmail_search(ctx: EmitContext) -> StepCode:
    return StepCode(
        body=[
            f"const threads = GmailApp.search({ctx.param('query')}, 0, {ctx.param('maxResults')} || 50);",
            "const messages = [];",
            "threads.forEach(function (thread) {",
            "  thread.getMessages().forEach(function (message) {",
            "    messages.push(messageToObject_(thread, message));",
            "  });",
            "});",
            "return { messages: messages, count: messages.length };",
        ],
        helpers={"messageToObject_"},
    )


@rule("action", "gmail", "send")
def emit_gmail_send(ctx: EmitContext) -> StepCode:
    return StepCode(
        body=[
            f"const to = toText_({ctx.param('to')});",
            "const options = {};",
            f"const cc = {ctx.param('cc')};",
            "if (cc) {",
            "  options.cc = toText_(cc);",
            "}",
            f"GmailApp.sendEmail(to, toText_({ctx.param('subject')}), toText_({ctx.param('body')}), options);",
            "return { sent: true, to: to };",
        ]
    )


@rule("action", "sheets", "append_row")
def emit_sheets_append(ctx: EmitContext) -> StepCode:
    return StepCode(
        body=[
            f"const sheet = openSheet_({ctx.param('spreadsheetId')}, {ctx.param('sheetName')});",
            f"const values = {ctx.param('values')};",
            "const rows = Array.isArray(values) && values.length > 0 && Array.isArray(values[0]) ? values : [values];",
            "rows.forEach(function (row) {",
            "  sheet.appendRow([].concat(row).map(function (cell) {",
            "    return cell !== null && typeof cell === 'object' ? JSON.stringify(cell) : cell;",
            "  }));",
            "});",
            "return { appended: rows.length, lastRow: sheet.getLastRow() };",
        ],
        helpers={"openSheet_"},
    )


@rule("action", "sheets", "read_range")
def emit_sheets_read(ctx: EmitContext) -> StepCode:
    return StepCode(
        body=[
            f"const sheet = openSheet_({ctx.param('spreadsheetId')}, {ctx.param('sheetName')});",
            f"const a1 = {ctx.param('range')};",
            "const values = (a1 ? sheet.getRange(a1) : sheet.getDataRange()).getValues();",
            "const headers = values.length > 0 ? values[0] : [];",
            "const rows = values.slice(1).map(function (row) {",
            "  return rowToObject_(headers, row);",
            "});",
            "return { values: values, rows: rows, count: rows.length };",
        ],
        helpers={"openSheet_", "rowToObject_"},
    )


@rule("action", "calendar", "create_event")
def emit_calendar_create(ctx: EmitContext) -> StepCode:
    return StepCode(
        body=[
            f"const calendar = calendarFor_({ctx.param('calendarId')});",
            "const event = calendar.createEvent(",
            f"  toText_({ctx.param('title')}),",
            f"  new Date({ctx.param('start')}),",
            f"  new Date({ctx.param('end')}),",
            f"  {{ description: toText_({ctx.param('description')}) }}",
            ");",
            "return { eventId: event.getId(), title: event.getTitle() };",
        ],
        helpers={"calendarFor_"},
    )


@rule("action", "calendar", "list_events")
def emit_calendar_list(ctx: EmitContext) -> StepCode:
    return StepCode(
        body=[
            f"const calendar = calendarFor_({ctx.param('calendarId')});",
            "const now = new Date();",
            f"const until = new Date(now.getTime() + Number({ctx.param('daysAhead')} || 7) * 24 * 60 * 60 * 1000);",
            "const events = calendar.getEvents(now, until).map(function (event) {",
            "  return {",
            "    id: event.getId(),",
            "    title: event.getTitle(),",
            "    start: event.getStartTime().toISOString(),",
            "    end: event.getEndTime().toISOString(),",
            "    location: event.getLocation(),",
            "  };",
            "});",
            "return { events: events, count: events.length };",
        ],
        helpers={"calendarFor_"},
    )


@rule("action", "drive", "create_file")
def emit_drive_create(ctx: EmitContext) -> StepCode:
    return StepCode(
        body=[
            f"const folderId = {ctx.param('folderId')};",
            "const folder = folderId ? DriveApp.getFolderById(folderId) : DriveApp.getRootFolder();",
            "const file = folder.createFile(",
            f"  toText_({ctx.param('name')}),",
            f"  toText_({ctx.param('content')}),",
            f"  {ctx.param('mimeType')} || 'text/plain'",
            ");",
            "return { fileId: file.getId(), name: file.getName(), url: file.getUrl() };",
        ]
    )


@rule("action", "http", "request")
def emit_http_request(ctx: EmitContext) -> StepCode:
    return StepCode(
        body=[
            f"return fetchJson_({ctx.param('method')}, {ctx.param('url')}, {ctx.param('headers')} || {{}}, {ctx.param('body')});"
        ]
    )


def emit_connector_request(ctx: EmitContext) -> StepCode:
    """Compile a connector operation from its request template."""
    if ctx.node_type is None or ctx.node_type.request is None:
        raise ValueError(f"Node type '{ctx.node.type}' has no request template")
    request = ctx.node_type.request
    declared = set(ctx.node_type.params_schema.properties) | set(ctx.node.params)
    param_exprs = {name: ctx.param(name) for name in sorted(declared)}
    resolve = template_resolver(param_exprs)

    body_expr = to_js(request.body, resolve) if request.body is not None else "null"
    endpoint = request.url.split("?")[0]
    return StepCode(
        body=[
            f"// {comment_text(f'{ctx.node_type.app} connector: {request.method} {endpoint}')}",
            f"const url = {to_js(request.url, resolve)};",
            f"const headers = {to_js(dict(request.headers), resolve)};",
            f"return fetchJson_({js_literal(request.method)}, url, headers, {body_expr});",
        ]
    )


def emit_stub(ctx: EmitContext) -> StepCode:
    type_id = ctx.node.type
    return StepCode(
        body=[
            f"// STUB: no code generator for node type {type_id!r}; implement this step by hand.",
            f"Logger.log({js_literal(f'Step {ctx.node.id} ({type_id}) is a stub and did nothing')});",
            "return {};",
        ],
        stub=True,
    )


def emit_node(ctx: EmitContext) -> StepCode:
    """Pick and run the rule for a node."""
    node_type = ctx.node_type
    if node_type is not None:
        emitter = EMITTERS.get(node_type.dispatch_key)
        if emitter is not None:
            return emitter(ctx)
        if node_type.request is not None:
            return emit_connector_request(ctx)
    logger.debug(f"No emitter for '{ctx.node.type}', emitting stub")
    return emit_stub(ctx)


# Workspace helpers appended to main.gs when a step needs them
HELPERS: dict[str, str] = {
    "calendarFor_": """\
function calendarFor_(calendarId) {
  return calendarId ? CalendarApp.getCalendarById(calendarId) : CalendarApp.getDefaultCalendar();
}""",
    "messageToObject_": """\
function messageToObject_(thread, message) {
  const body = message.getPlainBody();
  return {
    id: message.getId(),
    threadId: thread.getId(),
    from: message.getFrom(),
    to: message.getTo(),
    subject: message.getSubject(),
    date: message.getDate().toISOString(),
    snippet: body.slice(0, 200),
    body: body,
  };
}""",
    "openSheet_": """\
function openSheet_(idOrUrl, sheetName) {
  const spreadsheet = SpreadsheetApp.openById(extractSpreadsheetId_(idOrUrl));
  const sheet = sheetName ? spreadsheet.getSheetByName(sheetName) : spreadsheet.getSheets()[0];
  if (!sheet) {
    throw new Error('Sheet "' + sheetName + '" not found');
  }
  return sheet;
}""",
    "rowToObject_": """\
function rowToObject_(headers, row) {
  const record = {};
  headers.forEach(function (header, index) {
    record[String(header || 'column' + (index + 1))] = row[index];
  });
  return record;
}""",
}

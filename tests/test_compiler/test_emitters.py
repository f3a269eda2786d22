"""Tests for per-operation code generation rules."""

import pytest

from scriptflow.compiler.emitters import EmitContext, emit_node
from scriptflow.core.graph_model import GraphNode


def _emit(catalog, type_id, params=None):
    node = GraphNode(id="n1", type=type_id, params=params or {})
    return emit_node(EmitContext(node=node, node_type=catalog.get(type_id), time_zone="UTC"))


@pytest.mark.parametrize(
    "params, schedule",
    [
        ({"frequency": "every_minutes", "everyMinutes": 5}, ".everyMinutes(5)"),
        ({"frequency": "every_minutes", "everyMinutes": 7}, ".everyMinutes(15)"),
        ({"frequency": "hourly", "everyHours": 6}, ".everyHours(6)"),
        ({"frequency": "daily", "atHour": 18}, '.everyDays(1).atHour(18).inTimezone("UTC")'),
        ({"frequency": "monthly", "dayOfMonth": 15}, '.onMonthDay(15).atHour(9).inTimezone("UTC")'),
        (
            {"frequency": "weekly", "dayOfWeek": "friday", "timezone": "Asia/Tokyo"},
            '.onWeekDay(ScriptApp.WeekDay.FRIDAY).atHour(9).inTimezone("Asia/Tokyo")',
        ),
    ],
)
def test_time_trigger_schedules(catalog, params, schedule):
    code = _emit(catalog, "trigger.time.cron", params)
    assert f"timeBased(){schedule}.create();" in code.trigger_setup[-1]


def test_schedule_ignores_placeholders(catalog):
    code = _emit(catalog, "trigger.time.cron", {"frequency": "daily", "atHour": "{{x.hour}}"})
    assert ".atHour(9)" in code.trigger_setup[-1]


def test_unknown_frequency_compiles_as_daily(catalog):
    code = _emit(catalog, "trigger.time.cron", {"frequency": "daily\nMailApp.sendEmail('x@y', 's', 'b');"})

    assert code.trigger_setup == [
        "// n1: daily schedule",
        "ScriptApp.newTrigger('executeWorkflow').timeBased().everyDays(1).atHour(9).inTimezone(\"UTC\").create();",
    ]


def test_polling_trigger_halts(catalog):
    code = _emit(catalog, "trigger.gmail.new_email", {"query": "label:invoices"})

    assert code.halts
    assert "everyMinutes(15)" in code.trigger_setup[-1]
    assert "isProcessed_" in "\n".join(code.body)
    assert "messageToObject_" in code.helpers


def test_declared_defaults_fill_absent_params(catalog):
    code = _emit(catalog, "action.gmail.search", {"query": "is:starred"})
    assert 'GmailApp.search("is:starred", 0, 50 || 50);' in code.body[0]


def test_connector_with_missing_param(catalog):
    code = _emit(catalog, "action.slack.post_message", {"channel": "#ops"})
    assert '"text": null' in "\n".join(code.body)


def test_stub_for_unknown_type(catalog):
    code = _emit(catalog, "action.unknown.op")

    assert code.stub
    assert code.body[-1] == "return {};"

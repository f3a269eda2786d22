"""Tests for compiling graphs into Apps Script projects."""

import json
from datetime import datetime, timezone

import pytest

from scriptflow.catalog import NodeCatalog
from scriptflow.catalog.builtin import SCOPE_GMAIL_READ, SCOPE_SCRIPT_TRIGGERS, SCOPE_SHEETS
from scriptflow.compiler import ENTRY_POINT, FILE_ORDER, compile_graph
from scriptflow.compiler.artifacts import OAUTH2_LIBRARY
from scriptflow.core.exceptions import CatalogNotInitializedError, CompilationError
from scriptflow.core.graph_schema import load_graph_document
from scriptflow.core.settings import CompilerSettings
from tests.shared.graphs import send_mail_graph, two_node_cycle, weekly_digest

GENERATED_AT = datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)


def _compile(document, catalog, **kwargs):
    kwargs.setdefault("generated_at", GENERATED_AT)
    return compile_graph(load_graph_document(document), catalog, **kwargs)


class TestWeeklyDigest:
    def test_files_in_fixed_order(self, catalog, weekly_digest_graph):
        result = compile_graph(weekly_digest_graph, catalog, generated_at=GENERATED_AT)

        assert tuple(result.files) == FILE_ORDER
        assert result.entry_point == ENTRY_POINT == "main.gs"

    def test_steps_follow_execution_order(self, catalog, weekly_digest_graph):
        main = compile_graph(weekly_digest_graph, catalog, generated_at=GENERATED_AT).files["main.gs"]

        search_call = main.index("setOutput_(state, \"search\", step2_search_(state));")
        append_call = main.index("setOutput_(state, \"append\", step4_append_(state));")
        assert search_call < append_call
        assert "GmailApp.search(\"is:unread newer_than:7d\"" in main
        assert "sheet.appendRow(" in main

    def test_placeholders_become_output_lookups(self, catalog, weekly_digest_graph):
        main = compile_graph(weekly_digest_graph, catalog, generated_at=GENERATED_AT).files["main.gs"]

        assert 'const items = getOutput_(state, "search", "messages") || [];' in main
        assert 'const values = getOutput_(state, "rows", "rows");' in main

    def test_weekly_trigger_setup(self, catalog, weekly_digest_graph):
        main = compile_graph(weekly_digest_graph, catalog, generated_at=GENERATED_AT).files["main.gs"]

        assert (
            "ScriptApp.newTrigger('executeWorkflow').timeBased()"
            ".onWeekDay(ScriptApp.WeekDay.MONDAY).atHour(8).inTimezone(\"America/New_York\").create();"
        ) in main

    def test_manifest(self, catalog, weekly_digest_graph):
        result = compile_graph(weekly_digest_graph, catalog, generated_at=GENERATED_AT)
        manifest = json.loads(result.files["appsscript.json"])

        assert manifest["runtimeVersion"] == "V8"
        assert manifest["timeZone"] == "America/New_York"
        assert manifest["oauthScopes"] == sorted([SCOPE_GMAIL_READ, SCOPE_SCRIPT_TRIGGERS, SCOPE_SHEETS])
        assert manifest["dependencies"] == {}
        assert "webapp" not in manifest
        assert result.scopes == manifest["oauthScopes"]

    def test_readme_lists_steps_and_scopes(self, catalog, weekly_digest_graph):
        readme = compile_graph(weekly_digest_graph, catalog, generated_at=GENERATED_AT).files["README.md"]

        assert readme.startswith("# Weekly unread mail digest")
        assert "1. `trigger`: Every Monday at 8 (`trigger.time.cron`)" in readme
        assert f"- `{SCOPE_SHEETS}`" in readme
        assert "installTriggers" in readme

    def test_compiler_settings(self, catalog, weekly_digest_graph):
        result = compile_graph(
            weekly_digest_graph,
            catalog,
            generated_at=GENERATED_AT,
            settings=CompilerSettings(time_zone="Europe/Oslo"),
        )
        assert json.loads(result.files["appsscript.json"])["timeZone"] == "Europe/Oslo"
        assert 'inTimezone("Europe/Oslo")' in result.files["main.gs"]


class TestDeterminism:
    def test_same_input_same_output(self, catalog, weekly_digest_graph):
        first = compile_graph(weekly_digest_graph, catalog, generated_at=GENERATED_AT)
        second = compile_graph(weekly_digest_graph, catalog, generated_at=GENERATED_AT)

        assert first.files == second.files

    def test_only_timestamp_differs(self, catalog, weekly_digest_graph):
        later = datetime(2027, 1, 1, tzinfo=timezone.utc)
        first = compile_graph(weekly_digest_graph, catalog, generated_at=GENERATED_AT)
        second = compile_graph(weekly_digest_graph, catalog, generated_at=later)

        for name in FILE_ORDER:
            normalized = second.files[name].replace(second.generated_at, first.generated_at)
            assert normalized == first.files[name], name
        assert first.generated_at == "2026-03-02T08:00:00+00:00"
        assert first.generated_at in first.files["main.gs"]

    def test_edge_declaration_order_does_not_matter(self, catalog):
        document = weekly_digest()
        shuffled = weekly_digest()
        shuffled["edges"].reverse()

        assert _compile(document, catalog).files == _compile(shuffled, catalog).files


class TestRefusals:
    def test_cycle_is_refused(self, catalog):
        with pytest.raises(CompilationError) as exc_info:
            _compile(two_node_cycle(), catalog)

        assert len(exc_info.value.diagnostics) == 1
        assert exc_info.value.diagnostics[0].code == "cycle"

    def test_empty_graph_is_refused(self, catalog):
        with pytest.raises(CompilationError):
            _compile({"nodes": []}, catalog)

    def test_empty_catalog(self, weekly_digest_graph):
        with pytest.raises(CatalogNotInitializedError):
            compile_graph(weekly_digest_graph, NodeCatalog())

    def test_param_errors_do_not_block_compilation(self, catalog):
        result = _compile(send_mail_graph(to="a@example.com"), catalog)
        assert "GmailApp.sendEmail(" in result.files["main.gs"]


class TestStubsAndConnectors:
    def test_unknown_type_becomes_stub_with_warning(self, catalog):
        document = weekly_digest()
        document["nodes"].append({"id": "mystery", "type": "action.crm.sync", "params": {}})
        document["edges"].append({"from": "append", "to": "mystery"})

        result = _compile(document, catalog)

        assert [w.node_id for w in result.warnings] == ["mystery"]
        assert result.warnings[0].kind == "CompilationStub"
        assert "// STUB: no code generator for node type 'action.crm.sync'" in result.files["main.gs"]
        assert "## Steps to finish by hand" in result.files["README.md"]

    def test_connector_compiles_from_request_template(self, catalog):
        document = {
            "name": "Post to Slack",
            "nodes": [
                {"id": "hook", "type": "trigger.webhook.inbound"},
                {
                    "id": "post",
                    "type": "action.slack.post_message",
                    "params": {"channel": "#ops", "text": "New request: {{hook.body.title}}"},
                },
            ],
            "edges": [{"from": "hook", "to": "post"}],
        }

        result = _compile(document, catalog)
        main = result.files["main.gs"]

        assert result.warnings == []
        assert 'const url = "https://slack.com/api/chat.postMessage";' in main
        assert '"Authorization": "Bearer " + toText_(getSecret_("SLACK_BOT_TOKEN"))' in main
        assert '"channel": "#ops"' in main
        assert 'toText_(getOutput_(state, "hook", "body.title"))' in main
        assert result.secrets == ["SLACK_BOT_TOKEN"]
        assert "`SLACK_BOT_TOKEN`" in result.files["README.md"]

    def test_webhook_exposes_web_app(self, catalog):
        document = {"nodes": [{"id": "hook", "type": "trigger.webhook.inbound"}]}

        result = _compile(document, catalog)

        assert "function doPost(e)" in result.files["main.gs"]
        assert "webapp" in json.loads(result.files["appsscript.json"])

    def test_oauth_connector_adds_library(self, catalog):
        from scriptflow.catalog.loader import descriptor_to_node_types

        oauth_types = descriptor_to_node_types(
            {
                "app": "crm",
                "auth": "oauth2",
                "operations": [
                    {"operation": "sync", "category": "action", "request": {"url": "https://crm.test/sync"}}
                ],
            }
        )
        extended = NodeCatalog([*catalog, *oauth_types])
        document = {"nodes": [{"id": "sync", "type": "action.crm.sync"}]}

        manifest = json.loads(_compile(document, extended).files["appsscript.json"])

        assert manifest["dependencies"] == {"libraries": [OAUTH2_LIBRARY]}

    def test_bearer_token_secret_needs_no_oauth_library(self, catalog):
        document = {
            "nodes": [
                {"id": "hook", "type": "trigger.webhook.inbound"},
                {"id": "post", "type": "action.slack.post_message", "params": {"channel": "#ops", "text": "hi"}},
            ],
            "edges": [{"from": "hook", "to": "post"}],
        }

        result = _compile(document, catalog)

        assert result.secrets == ["SLACK_BOT_TOKEN"]
        assert json.loads(result.files["appsscript.json"])["dependencies"] == {}


def test_write_files(tmp_path, catalog, weekly_digest_graph):
    result = compile_graph(weekly_digest_graph, catalog, generated_at=GENERATED_AT)

    written = result.write_files(tmp_path / "build")

    assert [p.name for p in written] == list(FILE_ORDER)
    assert (tmp_path / "build" / "main.gs").read_text() == result.files["main.gs"]

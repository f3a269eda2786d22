"""Tests for the clarify / plan / validate / fix protocol."""

import pytest

from scriptflow.catalog import NodeCatalog
from scriptflow.catalog.builtin import SCOPE_GMAIL_READ, SCOPE_SHEETS
from scriptflow.compiler import compile_graph
from scriptflow.core.exceptions import CatalogNotInitializedError, ToolFailure
from scriptflow.core.graph_schema import load_graph_document
from scriptflow.core.graph_validator import GraphValidator
from scriptflow.core.settings import OrchestratorSettings, ScriptflowSettings
from scriptflow.planning import Orchestrator
from tests.shared.graphs import send_mail_graph, weekly_digest
from tests.shared.tools import ScriptedTool, plan_response

GOAL = "Every Monday, put a digest of my unread email into a spreadsheet"


def _settings(**orchestrator) -> ScriptflowSettings:
    return ScriptflowSettings(orchestrator=OrchestratorSettings(**orchestrator))


def _full_mail(**overrides):
    params = {"to": "me@example.com", "subject": "Report", "body": "All good"}
    params.update(overrides)
    return send_mail_graph(**{k: v for k, v in params.items() if v is not None})


class TestPlan:
    def test_weekly_digest_is_clean(self, catalog):
        tool = ScriptedTool(plan_response(weekly_digest(), "Search weekly, then log rows"))

        result = Orchestrator(catalog, tool=tool).plan(GOAL, {"frequency": "weekly"})

        assert result.status == "clean"
        assert result.is_clean
        assert result.errors == []
        assert result.fix_attempts == 0
        assert not result.used_fallback
        assert result.rationale == "Search weekly, then log rows"
        assert SCOPE_GMAIL_READ in result.graph.scopes
        assert SCOPE_SHEETS in result.graph.scopes

    def test_weekly_digest_compiles_in_order(self, catalog):
        tool = ScriptedTool(plan_response(weekly_digest()))
        result = Orchestrator(catalog, tool=tool).plan(GOAL)

        main = compile_graph(result.graph, catalog).files["main.gs"]

        assert main.index("GmailApp.search(") < main.index("sheet.appendRow(")

    def test_prompt_carries_goal_answers_and_capabilities(self, catalog):
        tool = ScriptedTool(plan_response(weekly_digest()))

        Orchestrator(catalog, tool=tool).plan(GOAL, {"sheet_url": "https://docs.google.com/x"})

        user = tool.calls[0].user
        assert GOAL in user
        assert '"sheet_url": "https://docs.google.com/x"' in user
        assert "action.gmail.search" in user
        assert "schemasByType" in user

    def test_declared_scopes_are_recomputed(self, catalog):
        document = weekly_digest()
        document["scopes"] = ["https://www.googleapis.com/auth/drive"]
        tool = ScriptedTool(plan_response(document))

        result = Orchestrator(catalog, tool=tool).plan(GOAL)

        assert result.is_clean
        assert result.warnings == []
        assert "https://www.googleapis.com/auth/drive" not in result.graph.scopes

    def test_result_validates_to_its_reported_errors(self, catalog):
        tool = ScriptedTool(plan_response(send_mail_graph(to="x@example.com")))

        result = Orchestrator(catalog, tool=tool, settings=_settings(max_fix_attempts=0)).plan(GOAL)

        assert result.errors == [d for d in GraphValidator.validate(result.graph, catalog) if d.is_error]


class TestFallback:
    def test_unreachable_tool_yields_valid_fallback_graph(self, catalog):
        tool = ScriptedTool(ToolFailure("unreachable", "connection refused"))

        result = Orchestrator(catalog, tool=tool).plan(GOAL)

        assert result.used_fallback
        assert result.status == "clean"
        assert result.graph.node_ids == ["trigger_1", "action_1"]
        assert result.graph.metadata["fallback"] is True
        assert result.tool_failures[0].phase == "plan"
        assert result.tool_failures[0].reason == "unreachable"

    def test_unparseable_plan_falls_back(self, catalog):
        tool = ScriptedTool("I'm sorry, I can't do that.")

        result = Orchestrator(catalog, tool=tool).plan(GOAL)

        assert result.used_fallback
        assert result.tool_failures[0].reason == "parse_error"
        assert result.tool_failures[0].category == "response_format"

    def test_real_tool_path_with_failing_model(self, catalog, mock_llm):
        mock_llm.default_response = RuntimeError("Connection refused by api.anthropic.com")

        result = Orchestrator(catalog).plan(GOAL)

        assert result.used_fallback
        assert result.is_clean
        assert result.tool_failures[0].category == "network"

    def test_real_tool_path_with_answering_model(self, catalog, mock_llm):
        mock_llm.queue_response(plan_response(weekly_digest()))

        result = Orchestrator(catalog).plan(GOAL)

        assert not result.used_fallback
        assert result.graph.id == "weekly-unread-digest"
        assert mock_llm.call_history[0]["model"] == ScriptflowSettings().llm.model


class TestFixLoop:
    def test_fix_repairs_missing_params(self, catalog):
        tool = ScriptedTool(
            plan_response(send_mail_graph(to="me@example.com")),
            plan_response(_full_mail(), "Added subject and body"),
        )

        result = Orchestrator(catalog, tool=tool).plan("email me a report every day")

        assert result.is_clean
        assert result.fix_attempts == 1
        assert result.rationale == "Added subject and body"
        fix_prompt = tool.calls[1].user
        assert "Missing required parameter 'subject'" in fix_prompt
        assert '"id": "send"' in fix_prompt

    def test_fix_parse_failure_consumes_an_attempt(self, catalog):
        broken = send_mail_graph(to="me@example.com")
        tool = ScriptedTool(plan_response(broken), "not json", "still not json", "{}")

        result = Orchestrator(catalog, tool=tool).plan("email me a report")

        assert result.status == "best_effort"
        assert result.fix_attempts == 3
        assert len(tool.calls) == 4
        assert [f.phase for f in result.tool_failures] == ["fix", "fix", "fix"]
        assert [f.reason for f in result.tool_failures] == ["parse_error", "parse_error", "shape_error"]
        assert result.graph.node("send").params == {"to": "me@example.com"}
        assert len(result.errors) == 2

    def test_zero_fix_budget(self, catalog):
        tool = ScriptedTool(plan_response(send_mail_graph()))

        result = Orchestrator(catalog, tool=tool, settings=_settings(max_fix_attempts=0)).plan("mail")

        assert result.status == "best_effort"
        assert result.fix_attempts == 0
        assert len(tool.calls) == 1

    def test_best_effort_keeps_graph_with_fewest_errors(self, catalog):
        tool = ScriptedTool(
            plan_response(_full_mail(subject=None, body=None), "first"),
            plan_response(_full_mail(body=None), "second"),
            plan_response(send_mail_graph(), "third"),
        )

        result = Orchestrator(catalog, tool=tool, settings=_settings(max_fix_attempts=2)).plan("mail")

        assert result.status == "best_effort"
        assert result.fix_attempts == 2
        assert len(result.errors) == 1
        assert result.rationale == "second"
        assert result.graph.node("send").params["subject"] == "Report"

    def test_ties_keep_the_later_graph(self, catalog):
        tool = ScriptedTool(
            plan_response(_full_mail(subject="A", body=None)),
            plan_response(_full_mail(subject="B", body=None)),
        )

        result = Orchestrator(catalog, tool=tool, settings=_settings(max_fix_attempts=1)).plan("mail")

        assert result.graph.node("send").params["subject"] == "B"

    def test_fix_unknown_type(self, catalog):
        document = weekly_digest()
        document["nodes"][1]["type"] = "action.gmail.find"
        tool = ScriptedTool(plan_response(document), plan_response(weekly_digest()))

        result = Orchestrator(catalog, tool=tool).plan(GOAL)

        assert result.is_clean
        assert "Unknown node type 'action.gmail.find'" in tool.calls[1].user


class TestFixEntryPoint:
    def test_clean_graph_needs_no_tool(self, catalog, weekly_digest_graph):
        tool = ScriptedTool()

        result = Orchestrator(catalog, tool=tool).fix(weekly_digest_graph, "given")

        assert result.is_clean
        assert result.rationale == "given"
        assert tool.calls == []

    def test_repairs_given_graph(self, catalog):
        tool = ScriptedTool(plan_response(_full_mail()))

        result = Orchestrator(catalog, tool=tool).fix(load_graph_document(send_mail_graph(to="a@example.com")))

        assert result.is_clean
        assert result.fix_attempts == 1
        assert not result.used_fallback


class TestClarify:
    QUESTIONS = {
        "questions": [
            {"id": "Sheet URL", "text": "Which spreadsheet?", "kind": "missingParam", "targetNodeId": "append"},
            {"id": "frequency", "text": "Which day?", "kind": "disambiguation", "choices": ["Monday", "Friday"]},
            {"id": "volume", "text": "How many emails?", "kind": "volume"},
        ],
        "graph": weekly_digest(),
    }

    def test_questions_from_tool(self, catalog):
        result = Orchestrator(catalog, tool=ScriptedTool(self.QUESTIONS)).clarify(GOAL)

        assert result.source == "tool"
        assert [q.id for q in result.questions] == ["sheet_url", "frequency", "volume"]
        assert result.questions[0].target_node_id == "append"
        assert result.guessed_graph is not None
        assert result.guessed_graph.node_ids[0] == "trigger"

    def test_question_limit(self, catalog):
        orchestrator = Orchestrator(catalog, tool=ScriptedTool(self.QUESTIONS), settings=_settings(max_questions=2))
        assert len(orchestrator.clarify(GOAL).questions) == 2

    def test_fallback_questions_from_keywords(self, catalog):
        result = Orchestrator(catalog, tool=ScriptedTool(ToolFailure("timeout"))).clarify(GOAL)

        ids = [q.id for q in result.questions]
        assert result.source == "fallback"
        assert {"sheet_url", "email_criteria", "frequency"} <= set(ids)
        assert result.tool_failures[0].phase == "clarify"
        assert result.tool_failures[0].category == "timeout"

    def test_empty_question_list_is_a_shape_error(self, catalog):
        result = Orchestrator(catalog, tool=ScriptedTool({"questions": []})).clarify("do something")

        assert result.source == "fallback"
        assert result.tool_failures[0].reason == "shape_error"
        assert [q.id for q in result.questions] == ["automation_details"]


@pytest.mark.parametrize("method, arg", [("clarify", GOAL), ("plan", GOAL)])
def test_empty_catalog_raises(method, arg):
    orchestrator = Orchestrator(NodeCatalog(), tool=ScriptedTool())
    with pytest.raises(CatalogNotInitializedError):
        getattr(orchestrator, method)(arg)

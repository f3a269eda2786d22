"""Pocketflow nodes for the clarify / plan / validate / fix protocol.

Collaborators (tool, catalog) are constructor arguments rather than node
params because ``Flow`` replaces every node's params when it runs. All
per-session state lives in the shared store:

- ``goal``, ``answers``: inputs
- ``graph``, ``rationale``: the current candidate
- ``fix_attempts``, ``max_fix_attempts``: loop budget
- ``diagnostics``: latest validation output
- ``best_graph``, ``best_error_count``: best candidate seen so far
- ``tool_failures``, ``used_fallback``: fallback bookkeeping
- ``clarify_result`` / ``result``: outputs
"""

import json
import logging
from typing import Any, Optional

from pocketflow import Node

from scriptflow.catalog.catalog import NodeCatalog
from scriptflow.core.diagnostics import errors_only, format_diagnostics, warnings_only
from scriptflow.core.graph_model import NodeGraph
from scriptflow.core.graph_validator import GraphValidator
from scriptflow.planning.error_handler import classify_tool_failure
from scriptflow.planning.fallbacks import fallback_graph, keyword_questions
from scriptflow.planning.models import (
    ClarifyResponse,
    ClarifyResult,
    FixResponse,
    OrchestrationResult,
    PlanResponse,
    ToolFailureRecord,
)
from scriptflow.planning.prompts import load_prompt, render_prompt
from scriptflow.planning.tool import TextGenerationTool, parse_tool_response

logger = logging.getLogger(__name__)


def _capabilities_json(catalog: NodeCatalog) -> str:
    return json.dumps(catalog.capabilities().to_document(), indent=2, sort_keys=True)


def _failure_record(phase: str, exc: Exception) -> ToolFailureRecord:
    error = classify_tool_failure(exc, context=phase)
    return ToolFailureRecord(
        phase=phase,
        reason=error.reason,
        category=error.category.value,
        message=error.message,
        user_action=error.user_action,
    )


class ClarifyNode(Node):
    """Asks the tool for clarifying questions, falling back to keyword questions."""

    def __init__(self, tool: TextGenerationTool, catalog: NodeCatalog, max_questions: int = 7) -> None:
        # A single attempt: the fallback is the retry strategy
        super().__init__(max_retries=1)
        self.tool = tool
        self.catalog = catalog
        self.max_questions = max_questions

    def prep(self, shared: dict[str, Any]) -> dict[str, Any]:
        return {"goal": shared.get("goal", ""), "capabilities": _capabilities_json(self.catalog)}

    def exec(self, prep_res: dict[str, Any]) -> ClarifyResult:
        text = self.tool.generate(
            load_prompt("clarify_system"),
            render_prompt(
                "clarify_request",
                goal=prep_res["goal"],
                max_questions=self.max_questions,
                capabilities=prep_res["capabilities"],
            ),
        )
        parsed = parse_tool_response(text, ClarifyResponse)
        if not parsed.ok or parsed.value is None:
            raise parsed.to_failure()

        response = parsed.value
        logger.info(f"Tool proposed {len(response.questions)} questions")
        return ClarifyResult(
            questions=response.questions[: self.max_questions],
            guessed_graph=response.graph,
            source="tool",
        )

    def exec_fallback(self, prep_res: dict[str, Any], exc: Exception) -> ClarifyResult:
        logger.warning(f"Clarify fell back to keyword questions: {exc}")
        return ClarifyResult(
            questions=keyword_questions(prep_res["goal"], self.max_questions),
            source="fallback",
            tool_failures=[_failure_record("clarify", exc)],
        )

    def post(self, shared: dict[str, Any], prep_res: dict[str, Any], exec_res: ClarifyResult) -> Optional[str]:
        shared["clarify_result"] = exec_res
        return None


class PlanNode(Node):
    """Asks the tool for a graph, falling back to the minimal schedule + HTTP graph."""

    def __init__(self, tool: TextGenerationTool, catalog: NodeCatalog) -> None:
        super().__init__(max_retries=1)
        self.tool = tool
        self.catalog = catalog

    def prep(self, shared: dict[str, Any]) -> dict[str, Any]:
        return {
            "goal": shared.get("goal", ""),
            "answers": shared.get("answers") or {},
            "capabilities": _capabilities_json(self.catalog),
        }

    def exec(self, prep_res: dict[str, Any]) -> dict[str, Any]:
        text = self.tool.generate(
            load_prompt("plan_system"),
            render_prompt(
                "plan_request",
                goal=prep_res["goal"],
                answers=json.dumps(prep_res["answers"], indent=2, sort_keys=True),
                capabilities=prep_res["capabilities"],
            ),
        )
        parsed = parse_tool_response(text, PlanResponse)
        if not parsed.ok or parsed.value is None:
            raise parsed.to_failure()

        logger.info(f"Tool proposed a graph with {len(parsed.value.graph.nodes)} nodes")
        return {"graph": parsed.value.graph, "rationale": parsed.value.rationale, "failure": None}

    def exec_fallback(self, prep_res: dict[str, Any], exc: Exception) -> dict[str, Any]:
        logger.warning(f"Plan fell back to the minimal graph: {exc}")
        return {
            "graph": fallback_graph(prep_res["goal"], self.catalog),
            "rationale": "The model was unavailable, so a minimal scheduled HTTP workflow was generated instead.",
            "failure": _failure_record("plan", exc),
        }

    def post(self, shared: dict[str, Any], prep_res: dict[str, Any], exec_res: dict[str, Any]) -> Optional[str]:
        shared["graph"] = exec_res["graph"]
        shared["rationale"] = exec_res["rationale"]
        if exec_res["failure"] is not None:
            shared["used_fallback"] = True
            shared.setdefault("tool_failures", []).append(exec_res["failure"])
        return None


class ValidateNode(Node):
    """Validates the current graph and routes to accept, fix, or exhausted."""

    def __init__(self, catalog: NodeCatalog) -> None:
        super().__init__(max_retries=1)
        self.catalog = catalog

    def prep(self, shared: dict[str, Any]) -> dict[str, Any]:
        return {
            "graph": shared["graph"],
            "fix_attempts": shared.get("fix_attempts", 0),
            "max_fix_attempts": shared.get("max_fix_attempts", 3),
        }

    def exec(self, prep_res: dict[str, Any]) -> list[Any]:
        return GraphValidator.validate(prep_res["graph"], self.catalog)

    def post(self, shared: dict[str, Any], prep_res: dict[str, Any], exec_res: list[Any]) -> str:
        shared["diagnostics"] = exec_res
        errors = errors_only(exec_res)

        # Fewest errors wins; later graphs win ties since they carry more fixes
        best_count = shared.get("best_error_count")
        if best_count is None or len(errors) <= best_count:
            shared["best_graph"] = prep_res["graph"]
            shared["best_error_count"] = len(errors)
            shared["best_rationale"] = shared.get("rationale", "")

        if not errors:
            logger.info(f"Graph accepted after {prep_res['fix_attempts']} fix attempts")
            return "accept"

        if prep_res["fix_attempts"] >= prep_res["max_fix_attempts"]:
            logger.warning(f"Fix budget exhausted with {len(errors)} errors remaining")
            return "exhausted"

        logger.info(f"Validation found {len(errors)} errors, requesting a fix")
        return "fix"


class FixNode(Node):
    """Sends the graph and its errors to the tool and adopts the corrected graph."""

    def __init__(self, tool: TextGenerationTool) -> None:
        super().__init__(max_retries=1)
        self.tool = tool

    def prep(self, shared: dict[str, Any]) -> dict[str, Any]:
        graph: NodeGraph = shared["graph"]
        return {
            "graph": graph,
            "errors": errors_only(shared.get("diagnostics", [])),
            "attempt": shared.get("fix_attempts", 0) + 1,
        }

    def exec(self, prep_res: dict[str, Any]) -> dict[str, Any]:
        text = self.tool.generate(
            load_prompt("fix_system"),
            render_prompt(
                "fix_request",
                graph=json.dumps(prep_res["graph"].to_document(), indent=2),
                errors=format_diagnostics(prep_res["errors"]),
            ),
        )
        parsed = parse_tool_response(text, FixResponse)
        if not parsed.ok or parsed.value is None:
            raise parsed.to_failure()
        return {"graph": parsed.value.graph, "rationale": parsed.value.rationale, "failure": None}

    def exec_fallback(self, prep_res: dict[str, Any], exc: Exception) -> dict[str, Any]:
        # The attempt is spent; the graph stays as it was
        logger.warning(f"Fix attempt {prep_res['attempt']} produced no usable graph: {exc}")
        return {"graph": None, "rationale": "", "failure": _failure_record("fix", exc)}

    def post(self, shared: dict[str, Any], prep_res: dict[str, Any], exec_res: dict[str, Any]) -> Optional[str]:
        shared["fix_attempts"] = prep_res["attempt"]
        if exec_res["graph"] is not None:
            shared["graph"] = exec_res["graph"]
            if exec_res["rationale"]:
                shared["rationale"] = exec_res["rationale"]
        if exec_res["failure"] is not None:
            shared.setdefault("tool_failures", []).append(exec_res["failure"])
        return None


class ResultNode(Node):
    """Packages the accepted (or best) graph into an ``OrchestrationResult``."""

    def __init__(self, catalog: NodeCatalog) -> None:
        super().__init__(max_retries=1)
        self.catalog = catalog

    def prep(self, shared: dict[str, Any]) -> dict[str, Any]:
        return {
            "clean": not errors_only(shared.get("diagnostics", [])),
            "graph": shared["graph"],
            "rationale": shared.get("rationale", ""),
            "best_graph": shared.get("best_graph", shared["graph"]),
            "best_rationale": shared.get("best_rationale", shared.get("rationale", "")),
            "fix_attempts": shared.get("fix_attempts", 0),
            "used_fallback": shared.get("used_fallback", False),
            "tool_failures": list(shared.get("tool_failures", [])),
        }

    def exec(self, prep_res: dict[str, Any]) -> OrchestrationResult:
        if prep_res["clean"]:
            graph, rationale = prep_res["graph"], prep_res["rationale"]
        else:
            graph, rationale = prep_res["best_graph"], prep_res["best_rationale"]

        # Scopes and secrets are derived data; recompute them before handing off
        graph = graph.with_derived(self.catalog)
        diagnostics = GraphValidator.validate(graph, self.catalog)
        errors = errors_only(diagnostics)

        return OrchestrationResult(
            status="best_effort" if errors else "clean",
            graph=graph,
            rationale=rationale,
            errors=errors,
            warnings=warnings_only(diagnostics),
            fix_attempts=prep_res["fix_attempts"],
            used_fallback=prep_res["used_fallback"],
            tool_failures=prep_res["tool_failures"],
        )

    def post(self, shared: dict[str, Any], prep_res: dict[str, Any], exec_res: OrchestrationResult) -> Optional[str]:
        shared["result"] = exec_res
        return None

"""Public entry point for turning requests into validated graphs."""

import logging
from typing import Any, Literal, Optional

from scriptflow.catalog.catalog import NodeCatalog
from scriptflow.core.graph_model import NodeGraph
from scriptflow.core.settings import ScriptflowSettings
from scriptflow.planning.flow import create_clarify_flow, create_orchestrator_flow
from scriptflow.planning.models import ClarifyResult, OrchestrationResult
from scriptflow.planning.tool import LLMTextTool, TextGenerationTool

logger = logging.getLogger(__name__)


class Orchestrator:
    """Runs the clarify, plan, validate and fix phases.

    Sessions share nothing but the catalog: every call builds a fresh flow
    and shared store, so an ``Orchestrator`` can serve calls from several
    threads.

    Args:
        catalog: Node catalog; must not be empty
        tool: Text-generation tool; defaults to ``LLMTextTool`` built from settings
        settings: Settings; defaults to ``ScriptflowSettings()``

    Example:
        >>> orchestrator = Orchestrator(build_default_catalog())
        >>> questions = orchestrator.clarify("weekly digest of unread mail into a sheet")
        >>> result = orchestrator.plan("weekly digest of unread mail into a sheet", {"frequency": "weekly"})
        >>> result.is_clean, len(result.errors)
    """

    def __init__(
        self,
        catalog: NodeCatalog,
        tool: Optional[TextGenerationTool] = None,
        settings: Optional[ScriptflowSettings] = None,
    ):
        self.catalog = catalog
        self.settings = settings or ScriptflowSettings()
        self.tool = tool or LLMTextTool(
            model_name=self.settings.llm.model,
            temperature=self.settings.llm.temperature,
            timeout_seconds=self.settings.llm.tool_timeout_seconds,
        )

    def clarify(self, goal: str) -> ClarifyResult:
        """Ask for the questions that must be answered before planning.

        Raises:
            CatalogNotInitializedError: If the catalog is empty
        """
        self.catalog.require_initialized()
        shared: dict[str, Any] = {"goal": goal}
        create_clarify_flow(self.tool, self.catalog, self.settings.orchestrator.max_questions).run(shared)
        result: ClarifyResult = shared["clarify_result"]
        logger.info(f"Clarify produced {len(result.questions)} questions ({result.source})")
        return result

    def plan(self, goal: str, answers: Optional[dict[str, Any]] = None) -> OrchestrationResult:
        """Plan a graph for a goal, then validate and fix it.

        Raises:
            CatalogNotInitializedError: If the catalog is empty
        """
        self.catalog.require_initialized()
        shared: dict[str, Any] = {
            "goal": goal,
            "answers": dict(answers or {}),
            "fix_attempts": 0,
            "max_fix_attempts": self.settings.orchestrator.max_fix_attempts,
            "tool_failures": [],
            "used_fallback": False,
        }
        return self._run(shared, start="plan")

    def fix(self, graph: NodeGraph, rationale: str = "") -> OrchestrationResult:
        """Validate a graph and repair it with the fix loop.

        Raises:
            CatalogNotInitializedError: If the catalog is empty
        """
        self.catalog.require_initialized()
        shared: dict[str, Any] = {
            "graph": graph,
            "rationale": rationale,
            "fix_attempts": 0,
            "max_fix_attempts": self.settings.orchestrator.max_fix_attempts,
            "tool_failures": [],
            "used_fallback": False,
        }
        return self._run(shared, start="validate")

    def _run(self, shared: dict[str, Any], start: Literal["plan", "validate"]) -> OrchestrationResult:
        flow = create_orchestrator_flow(self.tool, self.catalog, start=start)
        flow.run(shared)
        result: OrchestrationResult = shared["result"]
        logger.info(
            f"Orchestration finished: {result.status}, {len(result.errors)} errors, "
            f"{result.fix_attempts} fix attempts"
        )
        return result

"""Flow wiring for the orchestrator.

Planning flow:

    plan --> validate
    validate --fix--> fix --> validate
    validate --accept--> result
    validate --exhausted--> result

The fix flow is the same graph started at ``validate``. Clarification is a
single-node flow.
"""

import logging
from typing import Literal

from pocketflow import Flow

from scriptflow.catalog.catalog import NodeCatalog
from scriptflow.planning.nodes import ClarifyNode, FixNode, PlanNode, ResultNode, ValidateNode
from scriptflow.planning.tool import TextGenerationTool

logger = logging.getLogger(__name__)


def create_orchestrator_flow(
    tool: TextGenerationTool,
    catalog: NodeCatalog,
    start: Literal["plan", "validate"] = "plan",
) -> Flow:
    """Create the plan/validate/fix flow.

    Args:
        tool: Text-generation tool used by the plan and fix nodes
        catalog: Catalog used for capabilities and validation
        start: ``plan`` to plan from a goal, ``validate`` to repair a given graph

    Returns:
        A pocketflow Flow that leaves an ``OrchestrationResult`` in ``shared["result"]``
    """
    plan = PlanNode(tool, catalog)
    validate = ValidateNode(catalog)
    fix = FixNode(tool)
    result = ResultNode(catalog)

    plan >> validate
    validate - "fix" >> fix
    fix >> validate
    validate - "accept" >> result
    validate - "exhausted" >> result

    logger.debug(f"Created orchestrator flow starting at {start}")
    return Flow(start=plan if start == "plan" else validate)


def create_clarify_flow(tool: TextGenerationTool, catalog: NodeCatalog, max_questions: int = 7) -> Flow:
    """Create the single-step clarification flow."""
    return Flow(start=ClarifyNode(tool, catalog, max_questions=max_questions))

"""Pydantic models for tool responses and orchestration results."""

import copy
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from scriptflow.core.diagnostics import ValidationError
from scriptflow.core.graph_model import NodeGraph
from scriptflow.core.graph_schema import normalize_graph_document

QuestionKind = Literal["missingParam", "disambiguation", "permission", "volume"]


class Question(BaseModel):
    """A clarifying question for the user."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1)
    text: str = Field(..., min_length=1)
    kind: QuestionKind = "missingParam"
    target_node_id: Optional[str] = Field(default=None, alias="targetNodeId")
    choices: Optional[list[str]] = None

    @field_validator("id")
    @classmethod
    def normalize_id(cls, v: str) -> str:
        """Question ids become answer keys, so keep them snake_case."""
        normalized = v.strip().lower().replace(" ", "_").replace("-", "_")
        if not normalized:
            raise ValueError("Question id must not be blank")
        return normalized


def _normalize_graph_field(data: Any, key: str) -> Any:
    if isinstance(data, dict) and isinstance(data.get(key), dict):
        data = dict(data)
        document = copy.deepcopy(data[key])
        normalize_graph_document(document)
        data[key] = document
    return data


class ClarifyResponse(BaseModel):
    """Expected tool output for the clarify phase."""

    questions: list[Question] = Field(..., min_length=1)
    graph: Optional[NodeGraph] = None

    @model_validator(mode="before")
    @classmethod
    def normalize_graph(cls, data: Any) -> Any:
        return _normalize_graph_field(data, "graph")


class PlanResponse(BaseModel):
    """Expected tool output for the plan phase: exactly a graph and a rationale."""

    graph: NodeGraph
    rationale: str = ""

    @model_validator(mode="before")
    @classmethod
    def normalize_graph(cls, data: Any) -> Any:
        return _normalize_graph_field(data, "graph")


class FixResponse(PlanResponse):
    """Expected tool output for one fix attempt: the corrected graph."""

    pass


class ToolFailureRecord(BaseModel):
    """One tool call that fell back to deterministic behavior."""

    phase: Literal["clarify", "plan", "fix"]
    reason: str
    category: str
    message: str
    user_action: str = ""


class ClarifyResult(BaseModel):
    """Questions to ask the user before planning."""

    questions: list[Question]
    guessed_graph: Optional[NodeGraph] = None
    source: Literal["tool", "fallback"] = "tool"
    tool_failures: list[ToolFailureRecord] = Field(default_factory=list)


class OrchestrationResult(BaseModel):
    """Outcome of planning and fixing a graph.

    ``status`` is ``clean`` when the graph has no error diagnostics, and
    ``best_effort`` when the fix budget ran out first; ``errors`` then lists
    what remains wrong.
    """

    status: Literal["clean", "best_effort"]
    graph: NodeGraph
    rationale: str = ""
    errors: list[ValidationError] = Field(default_factory=list)
    warnings: list[ValidationError] = Field(default_factory=list)
    fix_attempts: int = 0
    used_fallback: bool = False
    tool_failures: list[ToolFailureRecord] = Field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        return self.status == "clean"

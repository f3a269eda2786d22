"""Orchestration of the clarify, plan, validate and fix phases."""

from .flow import create_clarify_flow, create_orchestrator_flow
from .models import ClarifyResult, OrchestrationResult, Question, ToolFailureRecord
from .orchestrator import Orchestrator
from .tool import LLMTextTool, ParsedResponse, TextGenerationTool, parse_tool_response

__all__ = [
    "ClarifyResult",
    "LLMTextTool",
    "OrchestrationResult",
    "Orchestrator",
    "ParsedResponse",
    "Question",
    "TextGenerationTool",
    "ToolFailureRecord",
    "create_clarify_flow",
    "create_orchestrator_flow",
    "parse_tool_response",
]

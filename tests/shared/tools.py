"""Scripted text-generation tools for orchestrator tests."""

import json
from typing import Any, NamedTuple, Union

from scriptflow.core.exceptions import ToolFailure


class ToolCall(NamedTuple):
    system: str
    user: str


class ScriptedTool:
    """Returns queued responses in order; exceptions in the queue are raised.

    Once the script runs out every call raises ``ToolFailure("unreachable")``,
    so a test that under-specifies its script degrades to the fallbacks
    instead of hanging.
    """

    def __init__(self, *responses: Union[str, dict[str, Any], Exception]):
        self.responses = list(responses)
        self.calls: list[ToolCall] = []

    def generate(self, system: str, user: str) -> str:
        self.calls.append(ToolCall(system, user))
        if not self.responses:
            raise ToolFailure("unreachable", "script exhausted")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if isinstance(response, dict):
            return json.dumps(response)
        return response


def plan_response(graph: dict[str, Any], rationale: str = "") -> str:
    """Render a plan/fix answer the way models usually wrap it."""
    return "Here is the workflow:\n```json\n" + json.dumps({"graph": graph, "rationale": rationale}) + "\n```"

"""Structured diagnostics produced by graph validation.

Diagnostics are values, never exceptions: the validator returns a list of
them and callers decide what to do. A diagnostic's ``path`` is one of:

- a node id (``"n1"``) for node-level problems
- an edge id (``"n1->n2"``) for edge-level problems
- ``"$"`` for graph-level problems
"""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict

GRAPH_PATH = "$"


class ErrorKind(str, Enum):
    """Category of a validation diagnostic."""

    STRUCTURAL = "StructuralError"
    SCHEMA = "SchemaError"
    REFERENCE = "ReferenceError"
    UNKNOWN_TYPE = "UnknownTypeError"
    SCOPE_MISMATCH = "ScopeMismatch"


class ValidationError(BaseModel):
    """A single validation finding.

    Errors block compilation; warnings do not.
    """

    model_config = ConfigDict(frozen=True, use_enum_values=True)

    path: str
    message: str
    kind: ErrorKind
    severity: Literal["error", "warning"] = "error"
    code: str = ""

    @property
    def is_error(self) -> bool:
        return self.severity == "error"

    def __str__(self) -> str:
        return f"[{self.kind}] {self.path}: {self.message}"


def edge_path(from_node: str, to_node: str) -> str:
    """Build the diagnostic path for an edge."""
    return f"{from_node}->{to_node}"


def errors_only(diagnostics: list[ValidationError]) -> list[ValidationError]:
    return [d for d in diagnostics if d.is_error]


def warnings_only(diagnostics: list[ValidationError]) -> list[ValidationError]:
    return [d for d in diagnostics if not d.is_error]


def has_errors(diagnostics: list[ValidationError]) -> bool:
    return any(d.is_error for d in diagnostics)


def format_diagnostics(diagnostics: list[ValidationError]) -> str:
    """Render diagnostics as a bullet list, errors first.

    Args:
        diagnostics: Diagnostics to render

    Returns:
        Multi-line string, or an empty string when there is nothing to report
    """
    lines = []
    for diag in errors_only(diagnostics) + warnings_only(diagnostics):
        prefix = "error" if diag.is_error else "warning"
        lines.append(f"- {prefix} {diag}")
    return "\n".join(lines)

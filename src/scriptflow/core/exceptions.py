"""Custom exceptions for scriptflow."""

from typing import Any, Optional


class ScriptflowError(Exception):
    """Base exception for all scriptflow errors."""

    pass


class CatalogError(ScriptflowError):
    """Base class for node catalog errors."""

    pass


class DuplicateTypeError(CatalogError):
    """Raised when a type id is registered twice with conflicting categories."""

    def __init__(self, type_id: str, existing_category: str, new_category: str):
        self.type_id = type_id
        self.existing_category = existing_category
        self.new_category = new_category
        super().__init__(
            f"Node type '{type_id}' is already registered as a {existing_category}; "
            f"refusing to re-register it as a {new_category}"
        )


class NodeTypeNotFoundError(CatalogError):
    """Raised when a type id is not present in the catalog."""

    def __init__(self, type_id: str, suggestions: Optional[list[str]] = None):
        self.type_id = type_id
        self.suggestions = suggestions or []

        message = f"Unknown node type '{type_id}'"
        if self.suggestions:
            message = f"{message}. Did you mean: {', '.join(self.suggestions)}?"
        super().__init__(message)


class CatalogFrozenError(CatalogError):
    """Raised when registering into a catalog after it has been frozen."""

    pass


class CatalogNotInitializedError(CatalogError):
    """Raised when validation, planning or compilation runs against an empty catalog.

    This is a configuration fault, not a graph problem, so it is raised instead
    of being reported as a diagnostic.
    """

    def __init__(self, message: str = "Node catalog is empty; load built-in or connector node types first"):
        super().__init__(message)


class ToolFailure(ScriptflowError):
    """Raised when the text-generation tool cannot produce a usable answer.

    The orchestrator always catches this and substitutes a deterministic
    fallback, so it never reaches callers of the public API.

    Attributes:
        reason: One of ``unreachable``, ``timeout``, ``parse_error``,
            ``shape_error`` or ``empty``
        original_error: Underlying exception, when there was one
    """

    REASONS = ("unreachable", "timeout", "parse_error", "shape_error", "empty")

    def __init__(self, reason: str, message: str = "", original_error: Optional[Exception] = None):
        if reason not in self.REASONS:
            raise ValueError(f"Unknown tool failure reason: {reason}")
        self.reason = reason
        self.original_error = original_error

        full_message = f"Text generation failed ({reason})"
        if message:
            full_message = f"{full_message}: {message}"
        if original_error:
            full_message = f"{full_message}\nOriginal error: {original_error!s}"
        super().__init__(full_message)


class CompilationError(ScriptflowError):
    """Raised when a graph is structurally invalid and cannot be compiled.

    Attributes:
        diagnostics: The structural errors that blocked compilation
    """

    def __init__(self, message: str, diagnostics: Optional[list[Any]] = None):
        self.diagnostics = diagnostics or []
        if self.diagnostics:
            details = "\n".join(f"  - {d.path}: {d.message}" for d in self.diagnostics)
            message = f"{message}\n{details}"
        super().__init__(message)

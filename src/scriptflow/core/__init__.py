"""Core scriptflow modules for graph representation and validation.

``GraphValidator`` lives in ``scriptflow.core.graph_validator`` and is not
re-exported here because it depends on the catalog package.
"""

from .diagnostics import ErrorKind, ValidationError, errors_only, format_diagnostics, has_errors, warnings_only
from .exceptions import (
    CatalogError,
    CatalogNotInitializedError,
    CompilationError,
    DuplicateTypeError,
    NodeTypeNotFoundError,
    ScriptflowError,
    ToolFailure,
)
from .graph_data_flow import CycleError, build_execution_order, extract_references, find_cycles
from .graph_model import Edge, GraphNode, NodeGraph
from .graph_schema import GRAPH_SCHEMA, GraphDocumentError, load_graph_document, validate_graph_document

__all__ = [
    "GRAPH_SCHEMA",
    "CatalogError",
    "CatalogNotInitializedError",
    "CompilationError",
    "CycleError",
    "DuplicateTypeError",
    "Edge",
    "ErrorKind",
    "GraphDocumentError",
    "GraphNode",
    "NodeGraph",
    "NodeTypeNotFoundError",
    "ScriptflowError",
    "ToolFailure",
    "ValidationError",
    "build_execution_order",
    "errors_only",
    "extract_references",
    "find_cycles",
    "format_diagnostics",
    "has_errors",
    "load_graph_document",
    "validate_graph_document",
    "warnings_only",
]

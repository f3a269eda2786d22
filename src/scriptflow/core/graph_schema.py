"""JSON Schema and loading helpers for graph documents.

A graph document is the JSON form of a ``NodeGraph``: the format the planner
asks the language model to produce, and the format the CLI reads and writes.

Example:
    >>> doc = {
    ...     "name": "Weekly digest",
    ...     "nodes": [
    ...         {"id": "trigger", "type": "trigger.time.cron", "params": {"frequency": "weekly"}},
    ...         {"id": "search", "type": "action.gmail.search", "params": {"query": "is:unread"}},
    ...     ],
    ...     "edges": [{"from": "trigger", "to": "search"}],
    ... }
    >>> graph = load_graph_document(doc)
    >>> graph.version
    1

Schema checks are about shape only. Catalog-aware checks (types, params,
references, scopes) belong to ``GraphValidator``.
"""

import json
import logging
from pathlib import Path
from typing import Any, Union

import jsonschema
from jsonschema import Draft7Validator
from jsonschema import ValidationError as JsonSchemaValidationError

from scriptflow.core.exceptions import ScriptflowError
from scriptflow.core.graph_model import NodeGraph

logger = logging.getLogger(__name__)

GRAPH_SCHEMA: dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "scriptflow node graph",
    "type": "object",
    "required": ["nodes"],
    "properties": {
        "id": {"type": "string"},
        "name": {"type": "string"},
        "version": {"type": "integer", "minimum": 1},
        "nodes": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["id", "type"],
                "properties": {
                    "id": {"type": "string", "pattern": "^[a-zA-Z0-9_-]+$"},
                    "type": {"type": "string", "minLength": 1},
                    "label": {"type": "string"},
                    "params": {"type": "object"},
                    "note": {"type": "string"},
                },
                "additionalProperties": False,
            },
        },
        "edges": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["from", "to"],
                "properties": {
                    "from": {"type": "string"},
                    "to": {"type": "string"},
                },
                "additionalProperties": False,
            },
        },
        "scopes": {"type": "array", "items": {"type": "string"}},
        "secrets": {"type": "array", "items": {"type": "string"}},
        "metadata": {"type": "object"},
    },
    "additionalProperties": False,
}


class GraphDocumentError(ScriptflowError):
    """Raised when a graph document is not shaped like a graph.

    Attributes:
        message: The validation error message
        path: Dotted path to the invalid field (e.g., "nodes[0].type")
        suggestion: Optional suggestion for fixing the error
    """

    def __init__(self, message: str, path: str = "", suggestion: str = ""):
        self.message = message
        self.path = path
        self.suggestion = suggestion

        full_message = "Invalid graph document"
        if path:
            full_message += f" at {path}"
        full_message += f": {message}"
        if suggestion:
            full_message += f"\n{suggestion}"

        super().__init__(full_message)


def _format_path(path: list) -> str:
    """Format a jsonschema path like ``["nodes", 0, "type"]`` as ``nodes[0].type``."""
    formatted = ""
    for i, component in enumerate(path):
        if isinstance(component, int):
            formatted += f"[{component}]"
        else:
            if i > 0:
                formatted += "."
            formatted += str(component)
    return formatted or "root"


def _get_suggestion(error: JsonSchemaValidationError) -> str:
    if error.validator == "required":
        match = error.message.split("'")
        if len(match) >= 2:
            return f"Add the required field '{match[1]}'"
        return "Add the missing required field"
    elif error.validator == "type":
        actual = type(error.instance).__name__
        return f"Change type from '{actual}' to '{error.validator_value}'"
    elif error.validator == "pattern":
        return "Node ids may only contain letters, digits, '_' and '-'"
    elif error.validator == "additionalProperties":
        return "Remove unknown properties or check field names"
    return ""


def normalize_graph_document(document: dict[str, Any]) -> None:
    """Fill in boilerplate fields that generated documents often omit.

    Modifies the document in place:

    - ``version`` defaults to 1, ``edges``/``scopes``/``secrets`` to ``[]``
      and ``metadata`` to ``{}``
    - node ``parameters`` is renamed to ``params``
    - edge ``source``/``target`` are renamed to ``from``/``to``

    Args:
        document: Graph document dictionary (modified in-place)
    """
    document.setdefault("version", 1)
    for key in ("edges", "scopes", "secrets"):
        if document.get(key) is None:
            document[key] = []
    if document.get("metadata") is None:
        document["metadata"] = {}

    nodes = document.get("nodes")
    if isinstance(nodes, list):
        for node in nodes:
            if isinstance(node, dict) and "parameters" in node and "params" not in node:
                node["params"] = node.pop("parameters")
            if isinstance(node, dict) and node.get("params") is None and "params" in node:
                node["params"] = {}

    edges = document.get("edges")
    if isinstance(edges, list):
        for edge in edges:
            if not isinstance(edge, dict):
                continue
            if "source" in edge and "from" not in edge:
                edge["from"] = edge.pop("source")
            if "target" in edge and "to" not in edge:
                edge["to"] = edge.pop("target")


def validate_graph_document(data: Union[dict[str, Any], str]) -> dict[str, Any]:
    """Normalize and validate a graph document against ``GRAPH_SCHEMA``.

    Args:
        data: The document as a dict or a JSON string

    Returns:
        The normalized document

    Raises:
        GraphDocumentError: If the document is not valid JSON or not graph-shaped
    """
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as e:
            raise GraphDocumentError(f"Invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise GraphDocumentError(f"Expected a JSON object, got {type(data).__name__}")

    normalize_graph_document(data)

    validator = Draft7Validator(GRAPH_SCHEMA)
    try:
        validator.check_schema(GRAPH_SCHEMA)
    except jsonschema.SchemaError as e:
        raise RuntimeError(f"Schema definition error: {e}") from e

    errors = list(validator.iter_errors(data))
    if errors:
        error = errors[0]
        raise GraphDocumentError(
            message=error.message,
            path=_format_path(list(error.absolute_path)),
            suggestion=_get_suggestion(error),
        )
    return data


def load_graph_document(source: Union[dict[str, Any], str, Path]) -> NodeGraph:
    """Load a ``NodeGraph`` from a dict, a JSON string, or a file path.

    Raises:
        GraphDocumentError: If the source cannot be read or is not graph-shaped
    """
    if isinstance(source, Path):
        try:
            source = source.read_text(encoding="utf-8")
        except OSError as e:
            raise GraphDocumentError(f"Cannot read {source}: {e}") from e
        logger.debug("Loaded graph document from file")
    elif isinstance(source, dict):
        source = json.loads(json.dumps(source))

    document = validate_graph_document(source)
    return NodeGraph.from_document(document)

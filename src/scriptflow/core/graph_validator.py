"""Graph validation against the node catalog.

``GraphValidator.validate`` is the single place that decides whether a graph
is acceptable. It never raises for problems in the graph itself; every
problem becomes a ``ValidationError`` diagnostic. Checks run in a fixed order
and stop after the first category that produced errors, since later checks
assume earlier invariants hold (params cannot be checked against an unknown
type, references cannot be ordered in a cyclic graph).
"""

import logging
from collections import Counter
from typing import Any, Optional

from scriptflow.catalog.catalog import NodeCatalog
from scriptflow.catalog.node_type import NodeType
from scriptflow.core.diagnostics import GRAPH_PATH, ErrorKind, ValidationError, has_errors
from scriptflow.core.graph_data_flow import (
    Reference,
    ancestors,
    extract_references,
    find_cycles,
    is_whole_placeholder,
)
from scriptflow.core.graph_model import GraphNode, NodeGraph, compute_scopes

logger = logging.getLogger(__name__)

_KIND_CHECKS = {
    "string": lambda v: isinstance(v, str),
    "number": lambda v: isinstance(v, (int, float)) and not isinstance(v, bool),
    "boolean": lambda v: isinstance(v, bool),
    "array": lambda v: isinstance(v, list),
    "object": lambda v: isinstance(v, dict),
}


def is_empty_value(value: Any) -> bool:
    """A required param counts as missing when None, blank, or an empty collection."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict)):
        return len(value) == 0
    return False


def _error(kind: ErrorKind, path: str, message: str, code: str) -> ValidationError:
    return ValidationError(path=path, message=message, kind=kind, severity="error", code=code)


def _warning(kind: ErrorKind, path: str, message: str, code: str) -> ValidationError:
    return ValidationError(path=path, message=message, kind=kind, severity="warning", code=code)


class GraphValidator:
    """Runs every graph check in order.

    Order:
    1. Structure - duplicate ids, dangling edges, cycles
    2. Node types - every type exists in the catalog
    3. Params - required, kinds, enums, unknown keys
    4. References - placeholders only point upstream
    5. Scopes - declared scopes match the catalog (warning only)
    """

    @staticmethod
    def validate(graph: NodeGraph, catalog: NodeCatalog) -> list[ValidationError]:
        """Validate a graph.

        Args:
            graph: Graph to check
            catalog: Catalog the graph's node types come from

        Returns:
            Diagnostics, errors and warnings interleaved in check order. An
            empty list (or warnings only) means the graph is acceptable.

        Raises:
            CatalogNotInitializedError: If the catalog is empty
        """
        catalog.require_initialized()

        diagnostics: list[ValidationError] = []
        checks = (
            lambda: GraphValidator.validate_structure(graph),
            lambda: GraphValidator._validate_node_types(graph, catalog),
            lambda: GraphValidator._validate_params(graph, catalog),
            lambda: GraphValidator._validate_references(graph),
        )
        for check in checks:
            found = check()
            diagnostics.extend(found)
            if has_errors(found):
                logger.debug(f"Validation stopped early with {len(found)} diagnostics")
                return diagnostics

        diagnostics.extend(GraphValidator._validate_scopes(graph, catalog))
        return diagnostics

    @staticmethod
    def validate_structure(graph: NodeGraph) -> list[ValidationError]:
        """Structural checks that need no catalog.

        The code generator runs these on its own before emitting anything.
        """
        diagnostics = []

        if not graph.nodes:
            diagnostics.append(
                _error(ErrorKind.STRUCTURAL, GRAPH_PATH, "Graph has no nodes", "empty_graph"),
            )
            return diagnostics

        seen: set[str] = set()
        for node in graph.nodes:
            if node.id in seen:
                diagnostics.append(
                    _error(ErrorKind.STRUCTURAL, node.id, f"Duplicate node id '{node.id}'", "duplicate_node_id")
                )
            seen.add(node.id)

        edge_counts = Counter((edge.from_node, edge.to_node) for edge in graph.edges)
        reported_duplicates: set[tuple[str, str]] = set()
        for edge in graph.edges:
            missing = [end for end in (edge.from_node, edge.to_node) if end not in seen]
            if missing:
                names = ", ".join(f"'{m}'" for m in dict.fromkeys(missing))
                diagnostics.append(
                    _error(
                        ErrorKind.STRUCTURAL,
                        edge.id,
                        f"Edge references non-existent node {names}",
                        "dangling_edge",
                    )
                )
            key = (edge.from_node, edge.to_node)
            if edge_counts[key] > 1 and key not in reported_duplicates:
                reported_duplicates.add(key)
                diagnostics.append(
                    _warning(ErrorKind.STRUCTURAL, edge.id, "Edge is declared more than once", "duplicate_edge")
                )

        for members in find_cycles(graph):
            anchor = members[0]
            if len(members) == 1:
                message = f"Node '{anchor}' depends on itself"
            else:
                message = f"Cycle detected between nodes: {', '.join(members)}"
            diagnostics.append(_error(ErrorKind.STRUCTURAL, anchor, message, "cycle"))

        return diagnostics

    @staticmethod
    def _validate_node_types(graph: NodeGraph, catalog: NodeCatalog) -> list[ValidationError]:
        diagnostics = []
        has_trigger = False
        for node in graph.nodes:
            node_type = catalog.get(node.type)
            if node_type is None:
                message = f"Unknown node type '{node.type}'"
                suggestions = catalog.suggest(node.type)
                if suggestions:
                    message += f". Did you mean: {', '.join(suggestions)}?"
                diagnostics.append(_error(ErrorKind.UNKNOWN_TYPE, node.id, message, "unknown_type"))
            elif node_type.category == "trigger":
                has_trigger = True

        if not has_errors(diagnostics) and not has_trigger:
            diagnostics.append(
                _warning(
                    ErrorKind.STRUCTURAL,
                    GRAPH_PATH,
                    "Graph has no trigger node; the script can only be run manually",
                    "missing_trigger",
                )
            )
        return diagnostics

    @staticmethod
    def _validate_params(graph: NodeGraph, catalog: NodeCatalog) -> list[ValidationError]:
        diagnostics = []
        for node in graph.nodes:
            node_type = catalog.lookup(node.type)
            diagnostics.extend(GraphValidator._check_node_params(node, node_type))
        return diagnostics

    @staticmethod
    def _check_node_params(node: GraphNode, node_type: NodeType) -> list[ValidationError]:
        diagnostics = []
        schema = node_type.params_schema

        for name in schema.required:
            if name not in node.params or is_empty_value(node.params[name]):
                diagnostics.append(
                    _error(
                        ErrorKind.SCHEMA,
                        node.id,
                        f"Missing required parameter '{name}' for {node_type.id}",
                        "missing_param",
                    )
                )

        for name, value in node.params.items():
            spec = schema.properties.get(name)
            if spec is None:
                diagnostics.append(
                    _warning(
                        ErrorKind.SCHEMA,
                        node.id,
                        f"Unknown parameter '{name}' for {node_type.id}",
                        "unknown_param",
                    )
                )
                continue
            # Whole-value placeholders resolve at runtime to any kind
            if value is None or is_whole_placeholder(value):
                continue
            if spec.type and not _KIND_CHECKS[spec.type](value):
                diagnostics.append(
                    _error(
                        ErrorKind.SCHEMA,
                        node.id,
                        f"Parameter '{name}' must be {spec.type}, got {type(value).__name__}",
                        "wrong_type",
                    )
                )
            elif spec.enum is not None and value not in spec.enum:
                allowed = ", ".join(str(v) for v in spec.enum)
                diagnostics.append(
                    _error(
                        ErrorKind.SCHEMA,
                        node.id,
                        f"Parameter '{name}' must be one of: {allowed} (got {value!r})",
                        "invalid_enum",
                    )
                )
        return diagnostics

    @staticmethod
    def _validate_references(graph: NodeGraph) -> list[ValidationError]:
        diagnostics = []
        node_ids = set(graph.node_ids)
        upstream = ancestors(graph)

        for node in graph.nodes:
            reported: set[str] = set()
            for name, value in node.params.items():
                for ref in extract_references(value):
                    if ref.raw in reported:
                        continue
                    diag = GraphValidator._check_reference(node.id, name, ref, node_ids, upstream)
                    if diag is not None:
                        reported.add(ref.raw)
                        diagnostics.append(diag)
        return diagnostics

    @staticmethod
    def _check_reference(
        node_id: str, param_name: str, ref: Reference, node_ids: set[str], upstream: dict[str, set[str]]
    ) -> Optional[ValidationError]:
        if ref.is_secret:
            if not ref.secret_name:
                return _error(
                    ErrorKind.REFERENCE,
                    node_id,
                    f"Secret placeholder '{ref.raw}' in parameter '{param_name}' has no name",
                    "invalid_secret",
                )
            return None
        if ref.root not in node_ids:
            return _error(
                ErrorKind.REFERENCE,
                node_id,
                f"Parameter '{param_name}' references non-existent node '{ref.root}' in {ref.raw}",
                "unknown_reference",
            )
        if ref.root not in upstream.get(node_id, set()):
            return _error(
                ErrorKind.REFERENCE,
                node_id,
                f"Parameter '{param_name}' references '{ref.root}', which is not upstream of '{node_id}'; "
                f"add an edge path from '{ref.root}' to '{node_id}'",
                "forward_reference",
            )
        return None

    @staticmethod
    def _validate_scopes(graph: NodeGraph, catalog: NodeCatalog) -> list[ValidationError]:
        # Undeclared scopes mean "not computed yet"; with_derived fills them in
        if not graph.scopes:
            return []
        expected = compute_scopes(graph, catalog)
        declared = sorted(set(graph.scopes))
        if declared == expected:
            return []
        missing = sorted(set(expected) - set(declared))
        extra = sorted(set(declared) - set(expected))
        parts = []
        if missing:
            parts.append(f"missing {', '.join(missing)}")
        if extra:
            parts.append(f"unexpected {', '.join(extra)}")
        return [
            _warning(
                ErrorKind.SCOPE_MISMATCH,
                GRAPH_PATH,
                f"Declared scopes do not match node requirements ({'; '.join(parts)}); they will be recomputed",
                "scope_mismatch",
            )
        ]

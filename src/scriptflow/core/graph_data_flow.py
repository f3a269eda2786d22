"""Data flow utilities for node graphs: ordering, cycles, and placeholders.

Placeholders are ``{{<node_id>.<field path>}}`` strings embedded in node
params. The root ``secrets`` is reserved: ``{{secrets.API_KEY}}`` names a
credential, not an upstream node.
"""

import heapq
import re
from collections import deque
from typing import TYPE_CHECKING, Any, NamedTuple

if TYPE_CHECKING:
    from scriptflow.core.graph_model import NodeGraph

SECRETS_ROOT = "secrets"

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_\-]*)((?:\.[A-Za-z0-9_\-]+|\[\d+\])*)\s*\}\}")


class CycleError(Exception):
    """Raised when circular dependency is detected in a graph."""

    def __init__(self, message: str, blocked: list[str]):
        self.blocked = blocked
        super().__init__(message)


class Reference(NamedTuple):
    """A placeholder found in a param value."""

    root: str
    field_path: str
    raw: str

    @property
    def is_secret(self) -> bool:
        return self.root == SECRETS_ROOT

    @property
    def secret_name(self) -> str:
        return self.field_path.lstrip(".")


def extract_references(value: Any) -> list[Reference]:
    """Find every placeholder in a (possibly nested) param value, in order.

    Args:
        value: A param value: string, list, dict or scalar

    Returns:
        References in document order (dict values in key order)
    """
    found: list[Reference] = []
    if isinstance(value, str):
        for match in PLACEHOLDER_PATTERN.finditer(value):
            found.append(Reference(match.group(1), match.group(2), match.group(0)))
    elif isinstance(value, list):
        for item in value:
            found.extend(extract_references(item))
    elif isinstance(value, dict):
        for key in value:
            found.extend(extract_references(value[key]))
    return found


def is_whole_placeholder(value: Any) -> bool:
    """Check whether a value is exactly one placeholder and nothing else."""
    if not isinstance(value, str):
        return False
    return PLACEHOLDER_PATTERN.fullmatch(value.strip()) is not None


def _adjacency(graph: "NodeGraph") -> dict[str, list[str]]:
    node_ids = {node.id for node in graph.nodes}
    successors: dict[str, set[str]] = {node_id: set() for node_id in node_ids}
    for edge in graph.edges:
        # Dangling edges are reported by the validator, not here
        if edge.from_node in node_ids and edge.to_node in node_ids:
            successors[edge.from_node].add(edge.to_node)
    return {node_id: sorted(targets) for node_id, targets in successors.items()}


def build_execution_order(graph: "NodeGraph") -> list[str]:
    """Build the execution order of nodes using Kahn's algorithm.

    Ties between ready nodes are broken by node id so the order is stable
    across runs.

    Args:
        graph: The graph to order

    Returns:
        List of node ids in execution order

    Raises:
        CycleError: If a circular dependency is detected
    """
    adjacency = _adjacency(graph)
    in_degree: dict[str, int] = dict.fromkeys(adjacency, 0)
    for targets in adjacency.values():
        for target in targets:
            in_degree[target] += 1

    ready = [node_id for node_id, degree in in_degree.items() if degree == 0]
    heapq.heapify(ready)
    order = []

    while ready:
        node_id = heapq.heappop(ready)
        order.append(node_id)
        for neighbor in adjacency[node_id]:
            in_degree[neighbor] -= 1
            if in_degree[neighbor] == 0:
                heapq.heappush(ready, neighbor)

    if len(order) != len(adjacency):
        blocked = sorted(set(adjacency) - set(order))
        raise CycleError(f"Circular dependency detected involving nodes: {', '.join(blocked)}", blocked)

    return order


def find_cycles(graph: "NodeGraph") -> list[list[str]]:
    """Find every cycle in the graph as a strongly connected component.

    Uses an iterative Tarjan walk, so deep graphs do not hit the recursion
    limit. Nodes that are only downstream of a cycle are not part of it.

    Returns:
        Sorted list of cycles, each a sorted list of member node ids
    """
    adjacency = _adjacency(graph)
    index: dict[str, int] = {}
    lowlink: dict[str, int] = {}
    stack: list[str] = []
    on_stack: set[str] = set()
    cycles: list[list[str]] = []
    counter = 0

    for root in sorted(adjacency):
        if root in index:
            continue
        index[root] = lowlink[root] = counter
        counter += 1
        stack.append(root)
        on_stack.add(root)
        work = [(root, iter(adjacency[root]))]

        while work:
            node_id, successors = work[-1]
            descended = False
            for succ in successors:
                if succ not in index:
                    index[succ] = lowlink[succ] = counter
                    counter += 1
                    stack.append(succ)
                    on_stack.add(succ)
                    work.append((succ, iter(adjacency[succ])))
                    descended = True
                    break
                if succ in on_stack:
                    lowlink[node_id] = min(lowlink[node_id], index[succ])
            if descended:
                continue

            work.pop()
            if work:
                parent = work[-1][0]
                lowlink[parent] = min(lowlink[parent], lowlink[node_id])

            if lowlink[node_id] == index[node_id]:
                component = []
                while True:
                    member = stack.pop()
                    on_stack.discard(member)
                    component.append(member)
                    if member == node_id:
                        break
                if len(component) > 1 or node_id in adjacency[node_id]:
                    cycles.append(sorted(component))

    return sorted(cycles)


def ancestors(graph: "NodeGraph") -> dict[str, set[str]]:
    """Map each node id to the set of its direct and transitive predecessors."""
    predecessors: dict[str, set[str]] = {node_id: set() for node_id in _adjacency(graph)}
    for source, targets in _adjacency(graph).items():
        for target in targets:
            predecessors[target].add(source)

    result: dict[str, set[str]] = {}
    for node_id in predecessors:
        seen: set[str] = set()
        queue = deque(predecessors[node_id])
        while queue:
            current = queue.popleft()
            if current in seen:
                continue
            seen.add(current)
            queue.extend(predecessors[current] - seen)
        result[node_id] = seen
    return result

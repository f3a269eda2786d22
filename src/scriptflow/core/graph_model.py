"""Pydantic models for the node graph intermediate representation."""

from typing import TYPE_CHECKING, Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from scriptflow.core.diagnostics import edge_path
from scriptflow.core.graph_data_flow import extract_references

if TYPE_CHECKING:
    from scriptflow.catalog.catalog import NodeCatalog


class GraphNode(BaseModel):
    """One operation instance in a graph."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., pattern="^[a-zA-Z0-9_-]+$")
    type: str = Field(..., description="Node type id from the catalog")
    label: str = ""
    params: dict[str, Any] = Field(default_factory=dict)
    note: Optional[str] = None


class Edge(BaseModel):
    """Directed dependency between two nodes: ``from`` runs before ``to``."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_node: str = Field(..., alias="from")
    to_node: str = Field(..., alias="to")

    @property
    def id(self) -> str:
        return edge_path(self.from_node, self.to_node)


class NodeGraph(BaseModel):
    """A workflow as a directed graph of typed nodes.

    Graphs are never edited in place. ``scopes`` and ``secrets`` are derived
    data: use ``with_derived`` to get a copy where they match the nodes.
    """

    model_config = ConfigDict(frozen=True)

    id: str = ""
    name: str = ""
    version: int = Field(default=1, ge=1)
    nodes: list[GraphNode] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)
    scopes: list[str] = Field(default_factory=list)
    secrets: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)

    def node(self, node_id: str) -> Optional[GraphNode]:
        """Return the first node with the given id, if any."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    @property
    def node_ids(self) -> list[str]:
        return [node.id for node in self.nodes]

    def with_derived(self, catalog: "NodeCatalog") -> "NodeGraph":
        """Return a copy with scopes, secrets and complexity recomputed."""
        metadata = dict(self.metadata)
        metadata["complexity"] = estimate_complexity(self)
        return self.model_copy(
            update={
                "scopes": compute_scopes(self, catalog),
                "secrets": collect_secrets(self),
                "metadata": metadata,
            }
        )

    def to_document(self) -> dict[str, Any]:
        """Convert to a JSON-ready dict using the document field names."""
        return self.model_dump(by_alias=True, exclude_none=True)

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> "NodeGraph":
        return cls.model_validate(data)


def compute_scopes(graph: NodeGraph, catalog: "NodeCatalog") -> list[str]:
    """Union of required scopes over every node type the graph uses.

    Unknown types contribute nothing; the validator reports them separately.
    """
    scopes: set[str] = set()
    for node in graph.nodes:
        node_type = catalog.get(node.type)
        if node_type is not None:
            scopes.update(node_type.required_scopes)
    return sorted(scopes)


def collect_secrets(graph: NodeGraph) -> list[str]:
    """Names of all ``{{secrets.NAME}}`` placeholders used by any node."""
    names: set[str] = set()
    for node in graph.nodes:
        for ref in extract_references(node.params):
            if ref.is_secret and ref.secret_name:
                names.add(ref.secret_name)
    return sorted(names)


def estimate_complexity(graph: NodeGraph) -> str:
    """Rough size bucket used for display and prompts."""
    count = len(graph.nodes)
    if count <= 3:
        return "simple"
    if count <= 7:
        return "medium"
    return "complex"

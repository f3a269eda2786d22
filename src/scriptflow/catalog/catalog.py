"""Node catalog: the registry of every operation a graph may use."""

import difflib
import logging
from collections.abc import Iterable, Iterator
from typing import Optional

from scriptflow.catalog.node_type import Capabilities, NodeType
from scriptflow.core.exceptions import (
    CatalogFrozenError,
    CatalogNotInitializedError,
    DuplicateTypeError,
    NodeTypeNotFoundError,
)

logger = logging.getLogger(__name__)


class NodeCatalog:
    """In-memory registry of node types keyed by type id.

    A catalog is populated once (built-ins plus connector descriptors), then
    frozen and shared read-only by the validator, compiler and orchestrator.
    """

    def __init__(self, node_types: Optional[Iterable[NodeType]] = None):
        self._types: dict[str, NodeType] = {}
        self._frozen = False
        if node_types is not None:
            self.register_many(node_types)

    def register(self, node_type: NodeType) -> None:
        """Add a node type, replacing any previous entry with the same id.

        Raises:
            CatalogFrozenError: If the catalog has been frozen
            DuplicateTypeError: If the id exists with a different category
        """
        if self._frozen:
            raise CatalogFrozenError(f"Cannot register '{node_type.id}': catalog is frozen")

        existing = self._types.get(node_type.id)
        if existing is not None:
            if existing.category != node_type.category:
                raise DuplicateTypeError(node_type.id, existing.category, node_type.category)
            logger.debug(f"Replacing node type '{node_type.id}' (last registration wins)")
        self._types[node_type.id] = node_type

    def register_many(self, node_types: Iterable[NodeType]) -> None:
        for node_type in node_types:
            self.register(node_type)

    def freeze(self) -> "NodeCatalog":
        self._frozen = True
        return self

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    def __len__(self) -> int:
        return len(self._types)

    def __contains__(self, type_id: object) -> bool:
        return type_id in self._types

    def __iter__(self) -> Iterator[NodeType]:
        return iter(self.list_types())

    def require_initialized(self) -> None:
        """Raise if the catalog has no node types at all."""
        if not self._types:
            raise CatalogNotInitializedError()

    def get(self, type_id: str) -> Optional[NodeType]:
        return self._types.get(type_id)

    def lookup(self, type_id: str) -> NodeType:
        """Return the node type for an id.

        Raises:
            NodeTypeNotFoundError: If the id is unknown, with close matches
        """
        node_type = self._types.get(type_id)
        if node_type is None:
            raise NodeTypeNotFoundError(type_id, self.suggest(type_id))
        return node_type

    def suggest(self, type_id: str, max_results: int = 3) -> list[str]:
        """Close matches for a mistyped type id."""
        return difflib.get_close_matches(type_id, sorted(self._types), n=max_results, cutoff=0.6)

    def list_types(self, category: Optional[str] = None) -> list[NodeType]:
        """All node types sorted by id, optionally restricted to one category."""
        types = sorted(self._types.values(), key=lambda t: t.id)
        if category is not None:
            types = [t for t in types if t.category == category]
        return types

    def search(self, query: str) -> list[tuple[str, NodeType, int]]:
        """Search with multi-keyword support (AND logic).

        Every space-separated keyword must match a node type for it to be
        included; scores are averaged across keywords.

        Examples:
            search("gmail")       → Single keyword
            search("sheets row")  → Both "sheets" AND "row" must match

        Args:
            query: Single keyword or space-separated keywords

        Returns:
            List of (type_id, node_type, avg_score) tuples, sorted by score
            descending then by id
        """
        keywords = [k.strip().lower() for k in (query or "").split() if k.strip()]
        if not keywords:
            return []

        results = []
        for type_id, node_type in self._types.items():
            scores = []
            for keyword in keywords:
                score = self._calculate_keyword_score(keyword, node_type)
                if score == 0:
                    break
                scores.append(score)
            if len(scores) == len(keywords):
                results.append((type_id, node_type, sum(scores) // len(scores)))

        results.sort(key=lambda x: (-x[2], x[0]))
        return results

    @staticmethod
    def _calculate_keyword_score(keyword: str, node_type: NodeType) -> int:
        """Score: 100 exact id, 90 id prefix, 70 id contains, 60 name, 55 app, 50 category, 40 description."""
        type_id = node_type.id.lower()
        if type_id == keyword:
            return 100
        elif type_id.startswith(keyword):
            return 90
        elif keyword in type_id:
            return 70
        elif keyword in node_type.name.lower():
            return 60
        elif keyword in node_type.app.lower():
            return 55
        elif keyword == node_type.category:
            return 50
        elif keyword in node_type.description.lower():
            return 40
        return 0

    def capabilities(self) -> Capabilities:
        """Project the catalog into what a planner is allowed to see."""
        schemas = {}
        scopes = {}
        for node_type in self.list_types():
            schema = node_type.params_schema.to_json_schema()
            schema["title"] = node_type.name
            if node_type.description:
                schema["description"] = node_type.description
            schemas[node_type.id] = schema
            scopes[node_type.id] = list(node_type.required_scopes)
        return Capabilities(nodes=sorted(self._types), schemas_by_type=schemas, scopes_by_type=scopes)

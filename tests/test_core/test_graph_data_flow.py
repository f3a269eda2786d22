"""Tests for placeholder extraction, execution order and cycle detection."""

import pytest

from scriptflow.core.graph_data_flow import (
    CycleError,
    ancestors,
    build_execution_order,
    extract_references,
    find_cycles,
    is_whole_placeholder,
)
from scriptflow.core.graph_model import Edge, GraphNode, NodeGraph


def _graph(node_ids, edges):
    return NodeGraph(
        nodes=[GraphNode(id=node_id, type="action.http.request") for node_id in node_ids],
        edges=[Edge(from_node=a, to_node=b) for a, b in edges],
    )


class TestExtractReferences:
    def test_nested_values_in_document_order(self):
        value = {
            "subject": "Digest for {{trigger.firedAt}}",
            "rows": ["{{rows.rows[0]}}", {"deep": "{{search.messages[2].from}}"}],
            "count": 3,
        }

        refs = extract_references(value)

        assert [(r.root, r.field_path) for r in refs] == [
            ("trigger", ".firedAt"),
            ("rows", ".rows[0]"),
            ("search", ".messages[2].from"),
        ]

    def test_whitespace_inside_braces(self):
        refs = extract_references("{{ search.count }}")
        assert refs[0].root == "search"
        assert refs[0].raw == "{{ search.count }}"

    def test_secrets(self):
        ref = extract_references("Bearer {{secrets.API_KEY}}")[0]
        assert ref.is_secret
        assert ref.secret_name == "API_KEY"

    def test_non_placeholders_are_ignored(self):
        assert extract_references("no {braces} here {{ }} {{1abc.x}}") == []
        assert extract_references(42) == []


@pytest.mark.parametrize(
    "value, expected",
    [
        ("{{a.b}}", True),
        ("  {{a.b}} ", True),
        ("x {{a.b}}", False),
        ("{{a.b}}{{c.d}}", False),
        (5, False),
    ],
)
def test_is_whole_placeholder(value, expected):
    assert is_whole_placeholder(value) is expected


class TestExecutionOrder:
    def test_linear_chain(self):
        graph = _graph(["c", "b", "a"], [("a", "b"), ("b", "c")])
        assert build_execution_order(graph) == ["a", "b", "c"]

    def test_ties_broken_by_id(self):
        graph = _graph(["root", "zeta", "alpha", "mid"], [("root", "zeta"), ("root", "alpha"), ("alpha", "mid")])
        assert build_execution_order(graph) == ["root", "alpha", "mid", "zeta"]

    def test_order_respects_every_edge(self):
        graph = _graph(["d", "c", "b", "a"], [("a", "c"), ("b", "c"), ("c", "d"), ("a", "d")])
        order = build_execution_order(graph)
        for edge in graph.edges:
            assert order.index(edge.from_node) < order.index(edge.to_node)

    def test_cycle_raises_with_blocked_nodes(self):
        graph = _graph(["a", "b", "c"], [("a", "b"), ("b", "a"), ("b", "c")])

        with pytest.raises(CycleError) as exc_info:
            build_execution_order(graph)

        assert exc_info.value.blocked == ["a", "b", "c"]

    def test_dangling_edges_are_ignored(self):
        graph = _graph(["a"], [("a", "ghost")])
        assert build_execution_order(graph) == ["a"]


class TestFindCycles:
    def test_acyclic(self):
        assert find_cycles(_graph(["a", "b"], [("a", "b")])) == []

    def test_two_node_cycle_is_one_component(self):
        assert find_cycles(_graph(["b", "a"], [("a", "b"), ("b", "a")])) == [["a", "b"]]

    def test_self_loop(self):
        assert find_cycles(_graph(["a", "b"], [("a", "a"), ("a", "b")])) == [["a"]]

    def test_downstream_nodes_excluded(self):
        graph = _graph(["a", "b", "c", "d"], [("a", "b"), ("b", "c"), ("c", "b"), ("c", "d")])
        assert find_cycles(graph) == [["b", "c"]]

    def test_long_chain_does_not_recurse(self):
        node_ids = [f"n{i:04d}" for i in range(3000)]
        edges = list(zip(node_ids, node_ids[1:]))
        edges.append((node_ids[-1], node_ids[0]))

        cycles = find_cycles(_graph(node_ids, edges))

        assert len(cycles) == 1
        assert len(cycles[0]) == 3000


def test_ancestors_are_transitive():
    graph = _graph(["a", "b", "c", "d"], [("a", "b"), ("b", "c"), ("d", "c")])

    result = ancestors(graph)

    assert result["a"] == set()
    assert result["b"] == {"a"}
    assert result["c"] == {"a", "b", "d"}

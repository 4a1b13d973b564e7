"""Tests for the in-memory knowledge graph model."""

from __future__ import annotations

from backend.app.contracts import NodeGroup, PaperMetadata
from backend.app.graph import GraphEdge, GraphNode, KnowledgeGraph


def test_add_node_merges_by_incrementing_weight_only() -> None:
    graph = KnowledgeGraph()
    metadata = PaperMetadata(title="First", source_doc_id="d1")
    first = graph.add_node("paper:d1", "First", NodeGroup.PAPER, 10, metadata=metadata)
    second = graph.add_node("paper:d1", "Second", NodeGroup.AUTHOR, 99)

    assert first is second
    assert graph.node_count == 1
    assert first.label == "First"
    assert first.group is NodeGroup.PAPER
    assert first.metadata == metadata
    assert first.weight == 11


def test_add_edge_rejects_self_loops() -> None:
    graph = KnowledgeGraph()
    graph.add_node("a", "A", NodeGroup.CONCEPT, 3)

    assert graph.add_edge("a", "a", "discusses") is False
    assert graph.edges == []


def test_add_edge_dedups_reversed_endpoints() -> None:
    graph = KnowledgeGraph()

    assert graph.add_edge("a", "b", "r") is True
    assert graph.add_edge("b", "a", "r") is False
    assert graph.add_edge("a", "b", "other") is True
    assert graph.edge_count == 2
    assert graph.has_edge("b", "a", "r")


def test_edge_key_ignores_direction() -> None:
    forward = GraphEdge("a", "b", "r")
    backward = GraphEdge("b", "a", "r")

    assert KnowledgeGraph.edge_key(forward) == KnowledgeGraph.edge_key(backward)
    assert forward.touches("a") and forward.touches("b")
    assert not forward.touches("c")


def test_constructor_dedups_nodes_and_edges() -> None:
    nodes = [
        GraphNode("a", "A", NodeGroup.PAPER, 10),
        GraphNode("a", "A again", NodeGroup.PAPER, 10),
        GraphNode("b", "B", NodeGroup.AUTHOR, 5),
    ]
    edges = [GraphEdge("a", "b", "written_by"), GraphEdge("b", "a", "written_by"), GraphEdge("a", "a", "x")]

    graph = KnowledgeGraph(nodes=nodes, edges=edges)

    assert [node.label for node in graph.nodes] == ["A", "B"]
    assert len(graph.edges) == 1
    assert "a" in graph
    assert len(graph) == 2


def test_neighbors_and_degree() -> None:
    graph = KnowledgeGraph()
    for node_id in "abcd":
        graph.add_node(node_id, node_id.upper(), NodeGroup.CONCEPT, 3)
    graph.add_edge("a", "b", "r")
    graph.add_edge("c", "a", "r")
    graph.add_edge("a", "b", "s")

    assert graph.neighbors("a") == {"b", "c"}
    assert graph.neighbors("d") == set()
    assert graph.degree("a") == 3


def test_node_copy_is_detached() -> None:
    node = GraphNode("a", "A", NodeGroup.PAPER, 10, x=1.0, y=2.0)
    clone = node.copy()
    clone.x = 50.0

    assert node.x == 1.0
    assert clone.id == node.id


def test_to_dict_includes_positions_once_laid_out() -> None:
    graph = KnowledgeGraph()
    node = graph.add_node("a", "A", NodeGroup.INSTITUTE, 6)

    assert "x" not in node.to_dict()
    node.x, node.y = 3.0, 4.0
    payload = graph.to_dict()

    assert payload["node_count"] == 1
    assert payload["nodes"][0]["x"] == 3.0
    assert payload["nodes"][0]["group"] == "INSTITUTE"

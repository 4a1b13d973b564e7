"""Tests for group filtering and the institute collaboration graph."""

from __future__ import annotations

import pytest

from backend.app.contracts import DocumentRecord, NodeGroup
from backend.app.graph import (
    GroupFilter,
    apply_group_filter,
    build_graph,
    build_institute_graph,
    parse_groups,
)
from backend.app.graph.institutes import SAME_DOMAIN


def _sample_graph():
    return build_graph(
        [
            DocumentRecord(
                id="d1",
                title="One",
                authors=["K. Chen"],
                institute="MIT",
                keyConcepts=["GNN", "Attention"],
                methods=["Ablation"],
            ),
            DocumentRecord(id="d2", title="Two", authors=["A. Rivera"], keyConcepts=["GNN"]),
        ]
    )


def test_disabling_concepts_removes_nodes_and_edges() -> None:
    graph = _sample_graph()
    enabled = set(NodeGroup) - {NodeGroup.CONCEPT}

    filtered = apply_group_filter(graph, enabled)

    remaining = {node.id for node in filtered.nodes}
    assert all(node.group is not NodeGroup.CONCEPT for node in filtered.nodes)
    assert all(edge.source in remaining and edge.target in remaining for edge in filtered.edges)
    assert not any(edge.relation == "discusses" for edge in filtered.edges)


def test_filter_copies_nodes() -> None:
    graph = _sample_graph()

    filtered = apply_group_filter(graph, set(NodeGroup))
    filtered.get("paper:d1").x = 42.0

    assert graph.get("paper:d1").x is None
    assert filtered.node_ids() == graph.node_ids()
    assert filtered.edge_count == graph.edge_count


def test_filter_to_nothing_yields_empty_graph() -> None:
    filtered = apply_group_filter(_sample_graph(), set())

    assert filtered.node_count == 0
    assert filtered.edge_count == 0


def test_group_filter_always_includes_papers() -> None:
    toggles = GroupFilter(show_concepts=False, show_authors=False, show_institutes=False, show_methods=False)

    assert toggles.enabled_groups() == {NodeGroup.PAPER}
    assert GroupFilter().enabled_groups() == set(NodeGroup)


def test_parse_groups_rejects_unknown_names() -> None:
    assert parse_groups(["paper", " AUTHOR ", ""]) == {NodeGroup.PAPER, NodeGroup.AUTHOR}
    with pytest.raises(ValueError):
        parse_groups(["paper", "journal"])


def test_institute_graph_links_institutes_sharing_a_domain() -> None:
    documents = [
        DocumentRecord(id="a", institute="MIT", domain="Machine Learning"),
        DocumentRecord(id="b", institute="Stanford University", domain="Machine Learning"),
        DocumentRecord(id="c", institute="MIT", domain="Machine Learning"),
        DocumentRecord(id="d", institute="Broad Institute", domain="Biology"),
        DocumentRecord(id="e", institute=None, domain="Biology"),
        DocumentRecord(id="f", institute="ETH Zurich"),
    ]

    graph = build_institute_graph(documents)

    assert graph.node_ids() == {
        "inst:MIT",
        "inst:Stanford University",
        "inst:Broad Institute",
        "inst:ETH Zurich",
    }
    assert all(node.group is NodeGroup.INSTITUTE and node.weight == 10 for node in graph.nodes)
    assert [(edge.source, edge.target, edge.relation) for edge in graph.edges] == [
        ("inst:MIT", "inst:Stanford University", SAME_DOMAIN)
    ]


def test_institute_graph_connects_every_pair_in_a_domain() -> None:
    documents = [DocumentRecord(id=name, institute=name, domain="Physics") for name in ("A", "B", "C")]

    graph = build_institute_graph(documents)

    assert graph.edge_count == 3

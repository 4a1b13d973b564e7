"""Group filtering applied before a graph reaches the layout engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import AbstractSet, FrozenSet, Iterable

from backend.app.contracts import NodeGroup
from backend.app.graph.models import KnowledgeGraph


@dataclass(frozen=True)
class GroupFilter:
    """Explorer visibility toggles. Papers are always shown."""

    show_concepts: bool = True
    show_authors: bool = True
    show_institutes: bool = True
    show_methods: bool = True

    def enabled_groups(self) -> FrozenSet[NodeGroup]:
        groups = {NodeGroup.PAPER}
        if self.show_concepts:
            groups.add(NodeGroup.CONCEPT)
        if self.show_authors:
            groups.add(NodeGroup.AUTHOR)
        if self.show_institutes:
            groups.add(NodeGroup.INSTITUTE)
        if self.show_methods:
            groups.add(NodeGroup.METHOD)
        return frozenset(groups)


def parse_groups(values: Iterable[str]) -> FrozenSet[NodeGroup]:
    """Parse group names, raising ``ValueError`` on unknown entries."""

    return frozenset(NodeGroup.parse(value) for value in values if value and value.strip())


def apply_group_filter(graph: KnowledgeGraph, enabled_groups: AbstractSet[NodeGroup]) -> KnowledgeGraph:
    """Keep nodes of enabled groups and the edges between surviving nodes.

    Surviving nodes are copied so the filtered graph can be laid out without
    touching positions stored on ``graph``.
    """

    kept = [node.copy() for node in graph.nodes if node.group in enabled_groups]
    kept_ids = {node.id for node in kept}
    edges = [edge for edge in graph.edges if edge.source in kept_ids and edge.target in kept_ids]
    return KnowledgeGraph(nodes=kept, edges=edges)


__all__ = ["GroupFilter", "apply_group_filter", "parse_groups"]

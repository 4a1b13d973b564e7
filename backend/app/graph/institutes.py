"""Institute collaboration graph used by the analytics view."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from backend.app.config import GraphBuilderConfig
from backend.app.contracts import DocumentRecord, NodeGroup
from backend.app.graph.builder import institute_node_id
from backend.app.graph.models import KnowledgeGraph

SAME_DOMAIN = "same_domain"


def build_institute_graph(
    documents: Iterable[DocumentRecord],
    *,
    config: Optional[GraphBuilderConfig] = None,
) -> KnowledgeGraph:
    """Connect institutes that publish in the same research domain.

    Every distinct institute becomes one node. Institutes sharing a domain are
    linked pairwise in first-seen order.
    """

    resolved = config or GraphBuilderConfig()
    graph = KnowledgeGraph()
    by_domain: Dict[str, List[str]] = {}
    for document in documents:
        institute = (document.institute or "").strip()
        if not institute:
            continue
        node_id = institute_node_id(institute)
        if node_id not in graph:
            graph.add_node(node_id, institute, NodeGroup.INSTITUTE, resolved.institute_base_weight)
        domain = (document.domain or "").strip()
        if not domain:
            continue
        members = by_domain.setdefault(domain, [])
        if node_id not in members:
            members.append(node_id)

    for members in by_domain.values():
        for index, source in enumerate(members):
            for target in members[index + 1 :]:
                graph.add_edge(source, target, SAME_DOMAIN)
    return graph


__all__ = ["SAME_DOMAIN", "build_institute_graph"]

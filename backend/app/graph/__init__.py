"""Knowledge graph construction from research documents."""

from .builder import GraphBuilder, build_graph
from .filters import GroupFilter, apply_group_filter, parse_groups
from .institutes import build_institute_graph
from .models import GraphEdge, GraphNode, KnowledgeGraph

__all__ = [
    "GraphBuilder",
    "GraphEdge",
    "GraphNode",
    "GroupFilter",
    "KnowledgeGraph",
    "apply_group_filter",
    "build_graph",
    "build_institute_graph",
    "parse_groups",
]

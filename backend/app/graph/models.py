"""In-memory knowledge graph with merge-on-insert nodes and undirected edges."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, FrozenSet, Iterator, List, Optional, Set, Tuple

from backend.app.contracts import NodeGroup, PaperMetadata

EdgeKey = Tuple[FrozenSet[str], str]


@dataclass(eq=False)
class GraphNode:
    """Typed graph vertex.

    Position, velocity and pin fields belong to the layout engine once a
    simulation starts; they stay ``None`` until the first tick.
    """

    id: str
    label: str
    group: NodeGroup
    weight: float
    metadata: Optional[PaperMetadata] = None
    x: Optional[float] = None
    y: Optional[float] = None
    vx: float = 0.0
    vy: float = 0.0
    fx: Optional[float] = None
    fy: Optional[float] = None

    @property
    def positioned(self) -> bool:
        return self.x is not None and self.y is not None

    @property
    def pinned(self) -> bool:
        return self.fx is not None and self.fy is not None

    def copy(self) -> "GraphNode":
        """Return a detached copy sharing no layout state with this node."""

        return replace(self)

    def to_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {
            "id": self.id,
            "label": self.label,
            "group": self.group.value,
            "weight": self.weight,
            "metadata": self.metadata.model_dump() if self.metadata is not None else None,
        }
        if self.positioned:
            payload["x"] = self.x
            payload["y"] = self.y
        return payload


@dataclass(frozen=True)
class GraphEdge:
    """Undirected relation between two node identifiers."""

    source: str
    target: str
    relation: str

    @property
    def key(self) -> EdgeKey:
        return frozenset((self.source, self.target)), self.relation

    def touches(self, node_id: str) -> bool:
        return self.source == node_id or self.target == node_id

    def to_dict(self) -> Dict[str, str]:
        return {"source": self.source, "target": self.target, "relation": self.relation}


@dataclass
class KnowledgeGraph:
    """Deduplicated multigraph of typed nodes and relation-labelled edges."""

    nodes: List[GraphNode] = field(default_factory=list)
    edges: List[GraphEdge] = field(default_factory=list)
    _index: Dict[str, GraphNode] = field(default_factory=dict, init=False, repr=False)
    _edge_keys: Set[EdgeKey] = field(default_factory=set, init=False, repr=False)

    def __post_init__(self) -> None:
        nodes, edges = self.nodes, self.edges
        self.nodes, self.edges = [], []
        for node in nodes:
            if node.id in self._index:
                continue
            self._index[node.id] = node
            self.nodes.append(node)
        for edge in edges:
            self._append_edge(edge)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._index

    def __len__(self) -> int:
        return len(self.nodes)

    def __iter__(self) -> Iterator[GraphNode]:
        return iter(self.nodes)

    @property
    def node_count(self) -> int:
        return len(self.nodes)

    @property
    def edge_count(self) -> int:
        return len(self.edges)

    def get(self, node_id: str) -> Optional[GraphNode]:
        return self._index.get(node_id)

    def node_ids(self) -> Set[str]:
        return set(self._index)

    def add_node(
        self,
        node_id: str,
        label: str,
        group: NodeGroup,
        base_weight: float,
        metadata: Optional[PaperMetadata] = None,
    ) -> GraphNode:
        """Insert a node or merge into an existing one.

        A repeated id only increments the stored weight by one; the first-seen
        label, group and metadata are kept.
        """

        existing = self._index.get(node_id)
        if existing is not None:
            existing.weight += 1
            return existing
        node = GraphNode(
            id=node_id,
            label=label,
            group=group,
            weight=float(base_weight),
            metadata=metadata,
        )
        self._index[node_id] = node
        self.nodes.append(node)
        return node

    def add_edge(self, source: str, target: str, relation: str) -> bool:
        """Add an undirected edge, returning ``False`` when it is rejected.

        Self-loops and edges whose unordered endpoint pair and relation already
        exist are dropped.
        """

        if source == target:
            return False
        return self._append_edge(GraphEdge(source=source, target=target, relation=relation))

    @staticmethod
    def edge_key(edge: GraphEdge) -> EdgeKey:
        """Return the dedup key: unordered endpoint pair plus relation."""

        return edge.key

    def has_edge(self, source: str, target: str, relation: str) -> bool:
        return (frozenset((source, target)), relation) in self._edge_keys

    def neighbors(self, node_id: str) -> Set[str]:
        """Return ids sharing at least one edge with ``node_id``."""

        result: Set[str] = set()
        for edge in self.edges:
            if edge.source == node_id:
                result.add(edge.target)
            elif edge.target == node_id:
                result.add(edge.source)
        return result

    def degree(self, node_id: str) -> int:
        return sum(1 for edge in self.edges if edge.touches(node_id))

    def to_dict(self) -> Dict[str, object]:
        return {
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
            "node_count": self.node_count,
            "edge_count": self.edge_count,
        }

    def _append_edge(self, edge: GraphEdge) -> bool:
        if edge.source == edge.target or edge.key in self._edge_keys:
            return False
        self._edge_keys.add(edge.key)
        self.edges.append(edge)
        return True


__all__ = ["EdgeKey", "GraphEdge", "GraphNode", "KnowledgeGraph"]

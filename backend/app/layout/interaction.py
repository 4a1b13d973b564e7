"""Pan/zoom transforms, hit-testing and neighbourhood highlighting."""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from backend.app.config import InteractionConfig, OpacityConfig
from backend.app.graph.models import GraphEdge, GraphNode, KnowledgeGraph
from backend.app.layout.presentation import node_radius


@dataclass(frozen=True)
class ZoomTransform:
    """Affine screen transform ``screen = world * k + (x, y)``.

    Applied to the rendered scene as a whole; node coordinates are never
    rescaled.
    """

    k: float = 1.0
    x: float = 0.0
    y: float = 0.0

    def apply(self, point: Tuple[float, float]) -> Tuple[float, float]:
        return point[0] * self.k + self.x, point[1] * self.k + self.y

    def invert(self, point: Tuple[float, float]) -> Tuple[float, float]:
        return (point[0] - self.x) / self.k, (point[1] - self.y) / self.k

    def translate_by(self, dx: float, dy: float) -> "ZoomTransform":
        return ZoomTransform(self.k, self.x + dx, self.y + dy)

    def scale_to(
        self,
        k: float,
        anchor: Tuple[float, float],
        extent: Tuple[float, float] = (0.1, 4.0),
    ) -> "ZoomTransform":
        """Zoom to scale ``k`` (clamped to ``extent``) keeping ``anchor`` fixed on screen."""

        clamped = min(max(k, extent[0]), extent[1])
        world = self.invert(anchor)
        return ZoomTransform(clamped, anchor[0] - world[0] * clamped, anchor[1] - world[1] * clamped)

    def scale_by(
        self,
        factor: float,
        anchor: Tuple[float, float],
        extent: Tuple[float, float] = (0.1, 4.0),
    ) -> "ZoomTransform":
        return self.scale_to(self.k * factor, anchor, extent)

    def to_svg(self) -> str:
        return f"translate({self.x:.3f},{self.y:.3f}) scale({self.k:.4f})"

    def to_dict(self) -> Dict[str, float]:
        return {"k": self.k, "x": self.x, "y": self.y}


def wheel_zoom(
    transform: ZoomTransform,
    anchor: Tuple[float, float],
    delta_y: float,
    config: Optional[InteractionConfig] = None,
) -> ZoomTransform:
    """Apply a wheel gesture; positive ``delta_y`` zooms out."""

    resolved = config or InteractionConfig()
    factor = 2.0 ** (-delta_y * resolved.wheel_sensitivity)
    return transform.scale_by(factor, anchor, (resolved.zoom_min, resolved.zoom_max))


class NodeHitIndex:
    """Vectorised point-in-disc lookup over positioned nodes.

    Nodes later in draw order sit on top, so the last matching node wins.
    """

    def __init__(self, nodes: Sequence[GraphNode], *, radius_fn: Optional[Callable[[GraphNode], float]] = None) -> None:
        resolve_radius = radius_fn or (lambda node: node_radius(node.group, node.weight))
        positioned = [node for node in nodes if node.x is not None and node.y is not None]
        self._nodes = positioned
        self._xs = np.fromiter((node.x for node in positioned), dtype=float, count=len(positioned))
        self._ys = np.fromiter((node.y for node in positioned), dtype=float, count=len(positioned))
        self._radii = np.fromiter((resolve_radius(node) for node in positioned), dtype=float, count=len(positioned))

    def __len__(self) -> int:
        return len(self._nodes)

    def hit(self, x: float, y: float) -> Optional[GraphNode]:
        """Return the topmost node whose disc contains the world point."""

        if not self._nodes:
            return None
        dist2 = (self._xs - x) ** 2 + (self._ys - y) ** 2
        inside = np.flatnonzero(dist2 <= self._radii**2)
        if inside.size == 0:
            return None
        return self._nodes[int(inside[-1])]

    def within(self, x: float, y: float, distance: float) -> List[GraphNode]:
        """Return nodes whose centres lie within ``distance`` of the point."""

        if not self._nodes:
            return []
        dist2 = (self._xs - x) ** 2 + (self._ys - y) ** 2
        return [self._nodes[int(index)] for index in np.flatnonzero(dist2 <= distance**2)]


@dataclass(frozen=True)
class HighlightState:
    """Opacity assignment produced by the highlight pass."""

    selected_id: Optional[str] = None
    neighborhood: FrozenSet[str] = frozenset()
    opacity: OpacityConfig = field(default_factory=OpacityConfig)

    @property
    def active(self) -> bool:
        return self.selected_id is not None

    def node_opacity(self, node_id: str) -> float:
        if not self.active or node_id in self.neighborhood:
            return self.opacity.node_default
        return self.opacity.node_dimmed

    def label_opacity(self, node_id: str) -> float:
        return self.node_opacity(node_id)

    def is_prominent(self, edge: GraphEdge) -> bool:
        return self.active and edge.source in self.neighborhood and edge.target in self.neighborhood

    def edge_opacity(self, edge: GraphEdge) -> float:
        if not self.active:
            return self.opacity.edge_default
        if self.is_prominent(edge):
            return self.opacity.edge_highlighted
        return self.opacity.edge_dimmed


def compute_highlight(
    graph: KnowledgeGraph,
    selected_id: Optional[str],
    opacity: Optional[OpacityConfig] = None,
) -> HighlightState:
    """Return the 1-hop neighbourhood highlight for ``selected_id``.

    A ``None`` or unknown id yields the cleared state (everything opaque).
    """

    resolved = opacity or OpacityConfig()
    if selected_id is None or selected_id not in graph:
        return HighlightState(opacity=resolved)
    members = {selected_id} | graph.neighbors(selected_id)
    return HighlightState(selected_id=selected_id, neighborhood=frozenset(members), opacity=resolved)


@dataclass(frozen=True)
class ListenerHandle:
    """Token returned by :meth:`EventTarget.add_listener`."""

    event: str
    key: int


class EventTarget:
    """Listener registry standing in for the host surface (window/canvas).

    ``size`` is the host's available area, used when a view is asked to fill
    the space it is given.
    """

    def __init__(self, width: float = 800.0, height: float = 600.0) -> None:
        self.size: Tuple[float, float] = (float(width), float(height))
        self._listeners: Dict[str, Dict[int, Callable[..., None]]] = {}
        self._keys = itertools.count()

    def add_listener(self, event: str, callback: Callable[..., None]) -> ListenerHandle:
        key = next(self._keys)
        self._listeners.setdefault(event, {})[key] = callback
        return ListenerHandle(event, key)

    def remove_listener(self, handle: ListenerHandle) -> bool:
        listeners = self._listeners.get(handle.event)
        if not listeners or handle.key not in listeners:
            return False
        del listeners[handle.key]
        if not listeners:
            del self._listeners[handle.event]
        return True

    def dispatch(self, event: str, *args: object) -> int:
        """Invoke listeners for ``event``; returns how many were called."""

        callbacks = list(self._listeners.get(event, {}).values())
        for callback in callbacks:
            callback(*args)
        return len(callbacks)

    def listener_count(self, event: Optional[str] = None) -> int:
        if event is not None:
            return len(self._listeners.get(event, {}))
        return sum(len(listeners) for listeners in self._listeners.values())

    def resize(self, width: float, height: float) -> None:
        self.size = (float(width), float(height))
        self.dispatch("resize", self.size[0], self.size[1])


def neighbor_edges(edges: Iterable[GraphEdge], node_id: str) -> List[GraphEdge]:
    return [edge for edge in edges if edge.touches(node_id)]


__all__ = [
    "EventTarget",
    "HighlightState",
    "ListenerHandle",
    "NodeHitIndex",
    "ZoomTransform",
    "compute_highlight",
    "neighbor_edges",
    "wheel_zoom",
]

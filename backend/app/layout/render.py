"""Scene snapshots and standalone SVG rendering for laid-out graphs."""

from __future__ import annotations

import html
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional

from backend.app.graph.models import KnowledgeGraph
from backend.app.layout.interaction import HighlightState, ZoomTransform
from backend.app.layout.presentation import (
    EDGE_COLOR,
    EDGE_WIDTH,
    LABEL_COLOR,
    LABEL_OFFSET,
    NODE_STROKE,
    NODE_STROKE_WIDTH,
    legend,
    node_radius,
    style_for,
    tooltip,
)

LEGEND_TITLE = "Graph Legend"
LEGEND_HINT = "Click nodes to explore connections."


@dataclass(frozen=True)
class RenderedNode:
    """Node disc and label in world coordinates."""

    id: str
    label: str
    group: str
    x: float
    y: float
    radius: float
    color: str
    opacity: float
    label_opacity: float
    font_size: int
    font_weight: str
    tooltip: str


@dataclass(frozen=True)
class RenderedEdge:
    """Edge line segment in world coordinates."""

    source: str
    target: str
    relation: str
    x1: float
    y1: float
    x2: float
    y2: float
    opacity: float


@dataclass(frozen=True)
class RenderedScene:
    """Everything needed to draw one frame of the graph view."""

    width: float
    height: float
    transform: ZoomTransform = field(default_factory=ZoomTransform)
    nodes: List[RenderedNode] = field(default_factory=list)
    edges: List[RenderedEdge] = field(default_factory=list)
    selected_id: Optional[str] = None

    @property
    def empty(self) -> bool:
        return not self.nodes

    def node(self, node_id: str) -> Optional[RenderedNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def to_dict(self) -> Dict[str, object]:
        return {
            "width": self.width,
            "height": self.height,
            "transform": self.transform.to_dict(),
            "selected_id": self.selected_id,
            "nodes": [asdict(node) for node in self.nodes],
            "edges": [asdict(edge) for edge in self.edges],
        }


def render_scene(
    graph: KnowledgeGraph,
    *,
    width: float,
    height: float,
    highlight: Optional[HighlightState] = None,
    transform: Optional[ZoomTransform] = None,
) -> RenderedScene:
    """Snapshot positioned nodes and the edges between them.

    Nodes without a position (before the first tick) and edges touching them
    are left out.
    """

    state = highlight or HighlightState()
    rendered_nodes: List[RenderedNode] = []
    positions: Dict[str, tuple] = {}
    for node in graph.nodes:
        if node.x is None or node.y is None:
            continue
        style = style_for(node.group)
        positions[node.id] = (node.x, node.y)
        rendered_nodes.append(
            RenderedNode(
                id=node.id,
                label=node.label,
                group=node.group.value,
                x=node.x,
                y=node.y,
                radius=node_radius(node.group, node.weight),
                color=style.color,
                opacity=state.node_opacity(node.id),
                label_opacity=state.label_opacity(node.id),
                font_size=style.font_size,
                font_weight=style.font_weight,
                tooltip=tooltip(node.label, node.group),
            )
        )
    rendered_edges: List[RenderedEdge] = []
    for edge in graph.edges:
        start = positions.get(edge.source)
        end = positions.get(edge.target)
        if start is None or end is None:
            continue
        rendered_edges.append(
            RenderedEdge(
                source=edge.source,
                target=edge.target,
                relation=edge.relation,
                x1=start[0],
                y1=start[1],
                x2=end[0],
                y2=end[1],
                opacity=state.edge_opacity(edge),
            )
        )
    return RenderedScene(
        width=width,
        height=height,
        transform=transform or ZoomTransform(),
        nodes=rendered_nodes,
        edges=rendered_edges,
        selected_id=state.selected_id,
    )


def _fmt(value: float) -> str:
    return f"{value:.2f}"


def _render_legend(height: float) -> str:
    entries = legend()
    line_height = 14
    box_height = 28 + line_height * len(entries) + 16
    top = max(height - box_height - 16, 0)
    lines = [
        f'<g class="legend" transform="translate(16,{_fmt(top)})">',
        f'<rect width="150" height="{box_height}" rx="8" fill="#ffffff" fill-opacity="0.9" stroke="#e2e8f0"/>',
        f'<text x="12" y="18" font-size="11" font-weight="bold" fill="#334155">{html.escape(LEGEND_TITLE)}</text>',
    ]
    for index, (label, color) in enumerate(entries):
        y = 34 + index * line_height
        lines.append(f'<circle cx="18" cy="{y - 4}" r="5" fill="{color}"/>')
        lines.append(f'<text x="30" y="{y}" font-size="10" fill="#334155">{html.escape(label)}</text>')
    hint_y = 34 + len(entries) * line_height + 6
    lines.append(f'<text x="12" y="{hint_y}" font-size="8" fill="#94a3b8">{html.escape(LEGEND_HINT)}</text>')
    lines.append("</g>")
    return "\n".join(lines)


def render_svg(scene: RenderedScene, *, include_legend: bool = True) -> str:
    """Render ``scene`` as a standalone SVG document."""

    parts: List[str] = [
        (
            '<svg xmlns="http://www.w3.org/2000/svg" '
            f'viewBox="0 0 {_fmt(scene.width)} {_fmt(scene.height)}" '
            f'width="{_fmt(scene.width)}" height="{_fmt(scene.height)}">'
        ),
        f'<rect width="100%" height="100%" fill="#f8fafc"/>',
        f'<g class="scene" transform="{scene.transform.to_svg()}">',
        f'<g class="edges" stroke="{EDGE_COLOR}" stroke-width="{EDGE_WIDTH}">',
    ]
    for edge in scene.edges:
        parts.append(
            f'<line x1="{_fmt(edge.x1)}" y1="{_fmt(edge.y1)}" x2="{_fmt(edge.x2)}" y2="{_fmt(edge.y2)}" '
            f'stroke-opacity="{edge.opacity}" data-relation="{html.escape(edge.relation, quote=True)}"/>'
        )
    parts.append("</g>")
    parts.append('<g class="nodes">')
    for node in scene.nodes:
        parts.append(
            f'<g transform="translate({_fmt(node.x)},{_fmt(node.y)})" '
            f'data-id="{html.escape(node.id, quote=True)}" data-group="{node.group}">'
        )
        parts.append(
            f'<circle r="{_fmt(node.radius)}" fill="{node.color}" stroke="{NODE_STROKE}" '
            f'stroke-width="{NODE_STROKE_WIDTH}" opacity="{node.opacity}"/>'
        )
        parts.append(
            f'<text x="{_fmt(node.radius + LABEL_OFFSET)}" y="4" font-size="{node.font_size}px" '
            f'font-weight="{node.font_weight}" fill="{LABEL_COLOR}" opacity="{node.label_opacity}">'
            f"{html.escape(node.label)}</text>"
        )
        parts.append(f"<title>{html.escape(node.tooltip)}</title>")
        parts.append("</g>")
    parts.append("</g>")
    parts.append("</g>")
    if include_legend:
        parts.append(_render_legend(scene.height))
    parts.append("</svg>")
    return "\n".join(parts)


__all__ = [
    "RenderedEdge",
    "RenderedNode",
    "RenderedScene",
    "render_scene",
    "render_svg",
]

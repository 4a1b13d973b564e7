"""Force-directed layout, interaction and rendering for knowledge graphs."""

from .forces import CenterForce, CollideForce, LinkForce, ManyBodyForce, ParticleState
from .interaction import (
    EventTarget,
    HighlightState,
    NodeHitIndex,
    ZoomTransform,
    compute_highlight,
    wheel_zoom,
)
from .presentation import GROUP_STYLES, GroupStyle, legend, node_radius, style_for, tooltip
from .render import RenderedEdge, RenderedNode, RenderedScene, render_scene, render_svg
from .scheduler import AsyncioTickScheduler, ManualTickScheduler, TickScheduler
from .simulation import ForceSimulation
from .view import GraphViewDisposedError, KnowledgeGraphView, LayoutState

__all__ = [
    "AsyncioTickScheduler",
    "CenterForce",
    "CollideForce",
    "EventTarget",
    "ForceSimulation",
    "GROUP_STYLES",
    "GraphViewDisposedError",
    "GroupStyle",
    "HighlightState",
    "KnowledgeGraphView",
    "LayoutState",
    "LinkForce",
    "ManualTickScheduler",
    "ManyBodyForce",
    "NodeHitIndex",
    "ParticleState",
    "RenderedEdge",
    "RenderedNode",
    "RenderedScene",
    "TickScheduler",
    "ZoomTransform",
    "compute_highlight",
    "legend",
    "node_radius",
    "render_scene",
    "render_svg",
    "style_for",
    "tooltip",
]

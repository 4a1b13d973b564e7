"""Interactive graph view owning one force simulation per input graph."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Tuple

from backend.app.config import InteractionConfig, LayoutConfig
from backend.app.graph.models import GraphNode, KnowledgeGraph
from backend.app.layout.forces import CenterForce
from backend.app.layout.interaction import (
    EventTarget,
    HighlightState,
    ListenerHandle,
    NodeHitIndex,
    ZoomTransform,
    compute_highlight,
    wheel_zoom,
)
from backend.app.layout.presentation import node_radius
from backend.app.layout.render import RenderedScene, render_scene
from backend.app.layout.scheduler import ManualTickScheduler, TickScheduler
from backend.app.layout.simulation import ForceSimulation

LOGGER = logging.getLogger(__name__)

NodeClickCallback = Callable[[GraphNode], None]
SchedulerFactory = Callable[[], TickScheduler]


class GraphViewDisposedError(RuntimeError):
    """Raised when a disposed view is used again."""


class LayoutState(str, Enum):
    """Lifecycle of the view's current layout session."""

    UNINITIALIZED = "uninitialized"
    SIMULATING = "simulating"
    SETTLED = "settled"
    DISPOSED = "disposed"


@dataclass
class _Gesture:
    """Pointer gesture in progress between ``pointerdown`` and ``pointerup``."""

    start: Tuple[float, float]
    node: Optional[GraphNode] = None
    grab_offset: Tuple[float, float] = (0.0, 0.0)
    origin: ZoomTransform = field(default_factory=ZoomTransform)
    travel: float = 0.0
    handles: List[ListenerHandle] = field(default_factory=list)


class _LayoutSession:
    """Simulation, scheduler and listeners acquired for a single graph."""

    def __init__(self, graph: KnowledgeGraph, simulation: ForceSimulation, host: EventTarget) -> None:
        self.graph = graph
        self.simulation = simulation
        self._host = host
        self._unsubscribers: List[Callable[[], None]] = []
        self._handles: List[ListenerHandle] = []

    def track(self, unsubscribe: Callable[[], None]) -> None:
        self._unsubscribers.append(unsubscribe)

    def listen(self, event: str, callback: Callable[..., None]) -> ListenerHandle:
        handle = self._host.add_listener(event, callback)
        self._handles.append(handle)
        return handle

    def unlisten(self, handle: ListenerHandle) -> None:
        if handle in self._handles:
            self._handles.remove(handle)
        self._host.remove_listener(handle)

    def close(self) -> None:
        """Stop the simulation, then release every listener even if stopping fails."""

        try:
            self.simulation.stop()
        finally:
            while self._unsubscribers:
                self._unsubscribers.pop()()
            while self._handles:
                self._host.remove_listener(self._handles.pop())


class KnowledgeGraphView:
    """Force-directed view of a :class:`KnowledgeGraph` with pan, zoom, drag and selection.

    Pointer coordinates are screen coordinates; the zoom transform maps them to
    world coordinates, in which node positions live. ``width``/``height`` of
    ``None`` fill the host surface.

    Each call to :meth:`set_graph` with a new graph disposes the previous
    session (simulation, scheduler and host listeners) before starting a new
    one, so at most one simulation is live per view.
    """

    def __init__(
        self,
        width: Optional[float] = None,
        height: Optional[float] = None,
        *,
        on_node_click: Optional[NodeClickCallback] = None,
        config: Optional[LayoutConfig] = None,
        interaction: Optional[InteractionConfig] = None,
        scheduler_factory: Optional[SchedulerFactory] = None,
        host: Optional[EventTarget] = None,
    ) -> None:
        for name, value in (("width", width), ("height", height)):
            if value is not None and value <= 0:
                raise ValueError(f"{name} must be positive")
        self._host = host or EventTarget()
        self._fixed_size = (width, height)
        self._width = float(width) if width is not None else self._host.size[0]
        self._height = float(height) if height is not None else self._host.size[1]
        self._on_node_click = on_node_click
        self._config = config or LayoutConfig()
        self._interaction = interaction or InteractionConfig()
        self._scheduler_factory: SchedulerFactory = scheduler_factory or ManualTickScheduler
        self._session: Optional[_LayoutSession] = None
        self._scheduler: Optional[TickScheduler] = None
        self._state = LayoutState.UNINITIALIZED
        self._transform = ZoomTransform()
        self._highlight = HighlightState(opacity=self._interaction.opacity)
        self._gesture: Optional[_Gesture] = None
        self._hit_index: Optional[NodeHitIndex] = None

    def __enter__(self) -> "KnowledgeGraphView":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.dispose()

    @property
    def state(self) -> LayoutState:
        return self._state

    @property
    def size(self) -> Tuple[float, float]:
        return self._width, self._height

    @property
    def graph(self) -> Optional[KnowledgeGraph]:
        return self._session.graph if self._session is not None else None

    @property
    def active_simulation(self) -> Optional[ForceSimulation]:
        return self._session.simulation if self._session is not None else None

    @property
    def scheduler(self) -> Optional[TickScheduler]:
        return self._scheduler

    @property
    def host(self) -> EventTarget:
        return self._host

    @property
    def selected_id(self) -> Optional[str]:
        return self._highlight.selected_id

    @property
    def highlight(self) -> HighlightState:
        return self._highlight

    @property
    def transform(self) -> ZoomTransform:
        return self._transform

    @property
    def dragging(self) -> Optional[GraphNode]:
        return self._gesture.node if self._gesture is not None else None

    # Lifecycle ----------------------------------------------------------------

    def set_graph(self, graph: Optional[KnowledgeGraph]) -> None:
        """Show ``graph``; passing the current graph again is a no-op.

        ``None`` releases the current session and returns to the
        uninitialized state.
        """

        self._ensure_live()
        if self._session is not None and graph is self._session.graph:
            return
        self._close_session()
        if graph is None:
            return
        self._open_session(graph)

    def dispose(self) -> None:
        """Release the current session; further use raises ``GraphViewDisposedError``."""

        if self._state is LayoutState.DISPOSED:
            return
        self._close_session()
        self._state = LayoutState.DISPOSED
        LOGGER.debug("Graph view disposed")

    def resize(self, width: float, height: float) -> None:
        """Change the viewport; the centering force follows the new centre."""

        self._ensure_live()
        if width <= 0 or height <= 0:
            raise ValueError("viewport dimensions must be positive")
        self._width, self._height = float(width), float(height)
        simulation = self.active_simulation
        if simulation is None:
            return
        center = simulation.force(CenterForce)
        if center is not None:
            center.x, center.y = self._width / 2.0, self._height / 2.0

    # Ticking ------------------------------------------------------------------

    def tick(self, iterations: int = 1) -> int:
        """Advance the live simulation while it is simulating.

        Returns:
            int: Number of ticks executed before settling or exhausting ``iterations``.
        """

        self._ensure_live()
        simulation = self.active_simulation
        executed = 0
        while simulation is not None and executed < iterations and self._state is LayoutState.SIMULATING:
            simulation.step()
            executed += 1
        return executed

    def settle(self, max_ticks: Optional[int] = None) -> int:
        """Run the simulation synchronously until it settles or ``max_ticks`` is hit.

        A capped run that leaves the layout unsettled hands ticking back to the
        scheduler, so the view keeps simulating.
        """

        self._ensure_live()
        simulation = self.active_simulation
        if simulation is None:
            return 0
        executed = simulation.run_until_settled(max_ticks)
        self._hit_index = None
        if not simulation.settled:
            simulation.restart()
        return executed

    # Pointer input ------------------------------------------------------------

    def pointer_down(self, x: float, y: float) -> Optional[GraphNode]:
        """Begin a drag on the node under the pointer, or a pan on empty canvas.

        Returns:
            Optional[GraphNode]: The grabbed node, if any.
        """

        self._ensure_live()
        if self._gesture is not None:
            self._finish_gesture(x, y)
        session = self._session
        gesture = _Gesture(start=(x, y), origin=self._transform)
        node = self._node_at(x, y)
        if session is not None and node is not None:
            world = self._transform.invert((x, y))
            gesture.node = node
            gesture.grab_offset = (node.x - world[0], node.y - world[1])
            node.fx, node.fy = node.x, node.y
            session.simulation.reheat(self._config.drag_alpha_target)
            self._state = LayoutState.SIMULATING
        if session is not None:
            gesture.handles = [
                session.listen("pointermove", self._on_pointer_move),
                session.listen("pointerup", self._on_pointer_up),
            ]
        self._gesture = gesture
        return node

    def pointer_move(self, x: float, y: float) -> None:
        """Feed a move to this view's gesture only; the host may be shared."""

        self._ensure_live()
        self._on_pointer_move(x, y)

    def pointer_up(self, x: float, y: float) -> None:
        self._ensure_live()
        if self._gesture is None:
            return
        self._on_pointer_up(x, y)

    def wheel(self, x: float, y: float, delta_y: float) -> ZoomTransform:
        """Zoom around the pointer; the scale stays within the configured extent."""

        self._ensure_live()
        self._transform = wheel_zoom(self._transform, (x, y), delta_y, self._interaction)
        return self._transform

    def pan_by(self, dx: float, dy: float) -> ZoomTransform:
        self._ensure_live()
        self._transform = self._transform.translate_by(dx, dy)
        return self._transform

    def reset_zoom(self) -> None:
        self._ensure_live()
        self._transform = ZoomTransform()

    # Selection ----------------------------------------------------------------

    def click(self, x: float, y: float) -> Optional[GraphNode]:
        """Select the node under the pointer, or clear selection on empty canvas."""

        self._ensure_live()
        node = self._node_at(x, y)
        if node is None:
            self.click_background()
            return None
        self._click_node(node)
        return node

    def click_background(self) -> None:
        self.clear_selection()

    def select(self, node_id: str) -> HighlightState:
        """Select ``node_id`` and recompute the highlight immediately.

        Raises:
            KeyError: If the current graph has no such node.
        """

        self._ensure_live()
        graph = self.graph
        if graph is None or node_id not in graph:
            raise KeyError(node_id)
        self._highlight = compute_highlight(graph, node_id, self._interaction.opacity)
        return self._highlight

    def clear_selection(self) -> None:
        self._ensure_live()
        self._highlight = HighlightState(opacity=self._interaction.opacity)

    # Rendering ----------------------------------------------------------------

    def scene(self) -> RenderedScene:
        self._ensure_live()
        return render_scene(
            self.graph or KnowledgeGraph(),
            width=self._width,
            height=self._height,
            highlight=self._highlight,
            transform=self._transform,
        )

    # Internals ----------------------------------------------------------------

    def _ensure_live(self) -> None:
        if self._state is LayoutState.DISPOSED:
            raise GraphViewDisposedError("Graph view has been disposed")

    def _open_session(self, graph: KnowledgeGraph) -> None:
        fixed_width, fixed_height = self._fixed_size
        if fixed_width is None:
            self._width = self._host.size[0]
        if fixed_height is None:
            self._height = self._host.size[1]
        index = {node.id: position for position, node in enumerate(graph.nodes)}
        links: List[Tuple[int, int]] = []
        skipped = 0
        for edge in graph.edges:
            source = index.get(edge.source)
            target = index.get(edge.target)
            if source is None or target is None:
                skipped += 1
                continue
            links.append((source, target))
        if skipped:
            LOGGER.warning("Skipped %d edges referencing nodes outside the graph", skipped)
        radii = [node_radius(node.group, node.weight) + self._config.collide_margin for node in graph.nodes]
        scheduler = self._scheduler_factory()
        simulation = ForceSimulation.for_graph(
            graph.nodes,
            links,
            config=self._config,
            radii=radii,
            center=(self._width / 2.0, self._height / 2.0),
            scheduler=scheduler,
        )
        session = _LayoutSession(graph, simulation, self._host)
        session.track(simulation.on_tick(self._on_tick))
        session.track(simulation.on_end(self._on_end))
        session.listen("resize", self._on_host_resize)
        self._session = session
        self._scheduler = scheduler
        self._state = LayoutState.SIMULATING
        self._hit_index = None
        simulation.restart()
        LOGGER.info(
            "Started layout session (nodes=%d, links=%d)",
            graph.node_count,
            len(links),
        )

    def _close_session(self) -> None:
        session = self._session
        self._gesture = None
        self._hit_index = None
        self._highlight = HighlightState(opacity=self._interaction.opacity)
        if session is None:
            return
        self._session = None
        self._scheduler = None
        self._state = LayoutState.UNINITIALIZED
        for node in session.graph.nodes:
            node.fx = node.fy = None
        session.close()
        LOGGER.info("Released layout session (nodes=%d)", session.graph.node_count)

    def _on_tick(self, simulation: ForceSimulation) -> None:
        self._hit_index = None

    def _on_end(self, simulation: ForceSimulation) -> None:
        self._state = LayoutState.SETTLED
        self._hit_index = None
        LOGGER.info("Layout settled after %d ticks", simulation.tick_count)

    def _on_host_resize(self, width: float, height: float) -> None:
        fixed_width, fixed_height = self._fixed_size
        self.resize(
            fixed_width if fixed_width is not None else width,
            fixed_height if fixed_height is not None else height,
        )

    def _on_pointer_move(self, x: float, y: float) -> None:
        gesture = self._gesture
        if gesture is None:
            return
        gesture.travel = max(gesture.travel, abs(x - gesture.start[0]) + abs(y - gesture.start[1]))
        if gesture.node is not None:
            world = self._transform.invert((x, y))
            gesture.node.fx = world[0] + gesture.grab_offset[0]
            gesture.node.fy = world[1] + gesture.grab_offset[1]
            return
        self._transform = gesture.origin.translate_by(x - gesture.start[0], y - gesture.start[1])

    def _on_pointer_up(self, x: float, y: float) -> None:
        self._on_pointer_move(x, y)
        self._finish_gesture(x, y)

    def _finish_gesture(self, x: float, y: float) -> None:
        gesture = self._gesture
        if gesture is None:
            return
        self._gesture = None
        session = self._session
        if session is not None:
            for handle in gesture.handles:
                session.unlisten(handle)
        is_click = gesture.travel < self._interaction.click_threshold_px
        node = gesture.node
        if node is not None:
            # Pins only reach x/y on a tick; keep the last dragged position.
            if node.pinned:
                node.x, node.y = node.fx, node.fy
                node.vx = node.vy = 0.0
            node.fx = node.fy = None
            if session is not None:
                session.simulation.alpha_target = 0.0
            if is_click:
                self._click_node(node)
            return
        if is_click:
            self.click_background()

    def _click_node(self, node: GraphNode) -> None:
        self.select(node.id)
        if self._on_node_click is not None:
            self._on_node_click(node)

    def _node_at(self, x: float, y: float) -> Optional[GraphNode]:
        graph = self.graph
        if graph is None:
            return None
        if self._hit_index is None:
            self._hit_index = NodeHitIndex(graph.nodes)
        world = self._transform.invert((x, y))
        return self._hit_index.hit(world[0], world[1])


__all__ = [
    "GraphViewDisposedError",
    "KnowledgeGraphView",
    "LayoutState",
    "NodeClickCallback",
    "SchedulerFactory",
]

"""Iterative force simulation with a d3-style cooling schedule."""

from __future__ import annotations

import logging
import math
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np

from backend.app.config import LayoutConfig
from backend.app.graph.models import GraphNode
from backend.app.layout.forces import (
    CenterForce,
    CollideForce,
    Force,
    LinkForce,
    ManyBodyForce,
    ParticleState,
)
from backend.app.layout.scheduler import ManualTickScheduler, TickScheduler

LOGGER = logging.getLogger(__name__)

INITIAL_ANGLE = math.pi * (3.0 - math.sqrt(5.0))

Listener = Callable[["ForceSimulation"], None]


class ForceSimulation:
    """Lay out ``nodes`` by repeatedly applying forces and integrating velocity.

    Node objects are mutated in place: after every tick each node's ``x``,
    ``y``, ``vx`` and ``vy`` hold the latest state. A node with ``fx``/``fy``
    set is held at that point; pins are read at the start of each tick so
    drag updates apply on the next step.
    """

    def __init__(
        self,
        nodes: Sequence[GraphNode],
        forces: Sequence[Force] = (),
        *,
        config: Optional[LayoutConfig] = None,
        radii: Optional[Sequence[float]] = None,
        center: Tuple[float, float] = (0.0, 0.0),
        scheduler: Optional[TickScheduler] = None,
    ) -> None:
        self._config = config or LayoutConfig()
        self._nodes = list(nodes)
        self._forces: List[Force] = list(forces)
        self._scheduler: TickScheduler = scheduler or ManualTickScheduler()
        self._alpha = 1.0
        self._alpha_target = 0.0
        self._alpha_min = self._config.alpha_min
        self._alpha_decay = self._config.resolved_alpha_decay
        self._velocity_retention = 1.0 - self._config.velocity_decay
        self._ticks = 0
        self._last_displacement = 0.0
        self._tick_listeners: Dict[int, Listener] = {}
        self._end_listeners: Dict[int, Listener] = {}
        self._next_listener = 0
        count = len(self._nodes)
        radius_values = np.zeros(count) if radii is None else np.asarray(radii, dtype=float)
        if radius_values.shape != (count,):
            raise ValueError("radii must provide one value per node")
        self._state = ParticleState(
            positions=np.zeros((count, 2)),
            velocities=np.zeros((count, 2)),
            radii=radius_values,
            rng=np.random.default_rng(self._config.seed),
        )
        self._seed_positions(center)

    @classmethod
    def for_graph(
        cls,
        nodes: Sequence[GraphNode],
        links: Sequence[Tuple[int, int]],
        *,
        config: Optional[LayoutConfig] = None,
        radii: Optional[Sequence[float]] = None,
        center: Tuple[float, float] = (0.0, 0.0),
        scheduler: Optional[TickScheduler] = None,
    ) -> "ForceSimulation":
        """Create a simulation with the standard link/charge/collide/center forces."""

        resolved = config or LayoutConfig()
        forces: List[Force] = [
            LinkForce(links, len(nodes), distance=resolved.link_distance),
            ManyBodyForce(resolved.charge_strength),
            CollideForce(resolved.collide_strength),
            CenterForce(center[0], center[1], strength=resolved.center_strength),
        ]
        return cls(nodes, forces, config=resolved, radii=radii, center=center, scheduler=scheduler)

    @property
    def nodes(self) -> List[GraphNode]:
        return self._nodes

    @property
    def alpha(self) -> float:
        return self._alpha

    @alpha.setter
    def alpha(self, value: float) -> None:
        self._alpha = min(max(float(value), 0.0), 1.0)

    @property
    def alpha_target(self) -> float:
        return self._alpha_target

    @alpha_target.setter
    def alpha_target(self, value: float) -> None:
        self._alpha_target = min(max(float(value), 0.0), 1.0)

    @property
    def alpha_min(self) -> float:
        return self._alpha_min

    @property
    def settled(self) -> bool:
        return self._alpha < self._alpha_min

    @property
    def running(self) -> bool:
        return self._scheduler.active

    @property
    def tick_count(self) -> int:
        return self._ticks

    @property
    def last_displacement(self) -> float:
        """Total distance moved by all nodes during the most recent tick."""

        return self._last_displacement

    def force(self, kind: type) -> Optional[Force]:
        """Return the first registered force of the given class."""

        for force in self._forces:
            if isinstance(force, kind):
                return force
        return None

    def on_tick(self, listener: Listener) -> Callable[[], None]:
        """Register a tick listener and return a callable that removes it."""

        return self._subscribe(self._tick_listeners, listener)

    def on_end(self, listener: Listener) -> Callable[[], None]:
        """Register a listener fired when the simulation settles."""

        return self._subscribe(self._end_listeners, listener)

    @property
    def listener_count(self) -> int:
        return len(self._tick_listeners) + len(self._end_listeners)

    def restart(self) -> "ForceSimulation":
        """(Re)start scheduled ticking without resetting ``alpha``."""

        self._scheduler.start(self.step)
        return self

    def stop(self) -> "ForceSimulation":
        self._scheduler.stop()
        return self

    def reheat(self, alpha_target: float) -> "ForceSimulation":
        """Raise the cooling target and resume ticking, as a drag does."""

        self.alpha_target = alpha_target
        return self.restart()

    def tick(self, iterations: int = 1) -> "ForceSimulation":
        """Advance the simulation synchronously; listeners are not notified."""

        for _ in range(max(int(iterations), 0)):
            self._tick_once()
        return self

    def run_until_settled(self, max_ticks: Optional[int] = None) -> int:
        """Stop scheduled ticking and step until settled or ``max_ticks`` is hit.

        End listeners fire if the simulation settles.

        Returns:
            int: Number of ticks executed.
        """

        self.stop()
        limit = self._config.max_ticks if max_ticks is None else max(int(max_ticks), 0)
        executed = 0
        while executed < limit and not self.settled:
            self._tick_once()
            executed += 1
        if self.settled:
            self._emit(self._end_listeners)
        LOGGER.debug(
            "Simulation ran %d ticks synchronously (alpha=%.4f, settled=%s)",
            executed,
            self._alpha,
            self.settled,
        )
        return executed

    def positions(self) -> Dict[str, Tuple[float, float]]:
        return {
            node.id: (float(node.x), float(node.y))
            for node in self._nodes
            if node.x is not None and node.y is not None
        }

    def step(self) -> None:
        """Run one scheduled tick: advance, notify tick listeners, stop once settled."""

        self._tick_once()
        self._emit(self._tick_listeners)
        if self.settled:
            self.stop()
            LOGGER.debug("Simulation settled after %d ticks", self._ticks)
            self._emit(self._end_listeners)

    def _tick_once(self) -> None:
        self._alpha += (self._alpha_target - self._alpha) * self._alpha_decay
        state = self._state
        self._pull()
        previous = state.positions.copy()
        for force in self._forces:
            force.apply(state, self._alpha)
        pinned, pins = self._pins()
        state.velocities *= self._velocity_retention
        state.positions += state.velocities
        if pinned.any():
            state.positions[pinned] = pins[pinned]
            state.velocities[pinned] = 0.0
        moved = state.positions - previous
        self._last_displacement = float(np.hypot(moved[:, 0], moved[:, 1]).sum()) if len(moved) else 0.0
        self._push()
        self._ticks += 1

    def _seed_positions(self, center: Tuple[float, float]) -> None:
        radius_scale = self._config.initial_radius
        for index, node in enumerate(self._nodes):
            if node.fx is not None and node.fy is not None:
                node.x, node.y = node.fx, node.fy
            if node.x is None or node.y is None:
                radius = radius_scale * math.sqrt(0.5 + index)
                angle = index * INITIAL_ANGLE
                node.x = center[0] + radius * math.cos(angle)
                node.y = center[1] + radius * math.sin(angle)
        self._pull()

    def _pull(self) -> None:
        state = self._state
        for index, node in enumerate(self._nodes):
            state.positions[index, 0] = node.x
            state.positions[index, 1] = node.y
            state.velocities[index, 0] = node.vx
            state.velocities[index, 1] = node.vy

    def _push(self) -> None:
        state = self._state
        for index, node in enumerate(self._nodes):
            node.x = float(state.positions[index, 0])
            node.y = float(state.positions[index, 1])
            node.vx = float(state.velocities[index, 0])
            node.vy = float(state.velocities[index, 1])

    def _pins(self) -> Tuple[np.ndarray, np.ndarray]:
        count = len(self._nodes)
        mask = np.zeros(count, dtype=bool)
        pins = np.zeros((count, 2))
        for index, node in enumerate(self._nodes):
            if node.fx is not None and node.fy is not None:
                mask[index] = True
                pins[index] = (node.fx, node.fy)
        return mask, pins

    def _subscribe(self, registry: Dict[int, Listener], listener: Listener) -> Callable[[], None]:
        key = self._next_listener
        self._next_listener += 1
        registry[key] = listener

        def _unsubscribe() -> None:
            registry.pop(key, None)

        return _unsubscribe

    def _emit(self, registry: Dict[int, Listener]) -> None:
        for listener in list(registry.values()):
            listener(self)


__all__ = ["ForceSimulation", "INITIAL_ANGLE", "Listener"]

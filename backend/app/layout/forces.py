"""Velocity-based forces for the graph layout simulation.

Each force mutates the velocity (or, for centering, the position) arrays of a
:class:`ParticleState` in place, scaled by the simulation's current ``alpha``.
The maths follows the d3-force model so layouts behave like the browser
explorer: link springs, pairwise charge, radius-aware collision and a
centroid pull.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence, Tuple

import numpy as np
from typing_extensions import Protocol

JIGGLE_SCALE = 1e-6


@dataclass
class ParticleState:
    """Numeric working copy of node positions used during one tick."""

    positions: np.ndarray
    velocities: np.ndarray
    radii: np.ndarray
    rng: np.random.Generator = field(default_factory=np.random.default_rng)

    @property
    def size(self) -> int:
        return int(self.positions.shape[0])

    def jiggle(self, count: int) -> np.ndarray:
        """Return tiny random offsets used to separate coincident points."""

        return (self.rng.random(count) - 0.5) * JIGGLE_SCALE


class Force(Protocol):
    """A force contributing to node velocities on every tick."""

    def apply(self, state: ParticleState, alpha: float) -> None:
        """Update ``state`` in place for the given cooling factor."""


def _replace_zeros(state: ParticleState, values: np.ndarray, mask: np.ndarray) -> None:
    count = int(mask.sum())
    if count:
        values[mask] = state.jiggle(count)


class LinkForce:
    """Spring force pulling linked nodes toward a target separation.

    Per-link strength is ``1 / min(degree(source), degree(target))`` and the
    correction is split between endpoints by relative degree, so hubs move
    less than leaves.
    """

    def __init__(
        self,
        links: Sequence[Tuple[int, int]],
        node_count: int,
        *,
        distance: float = 100.0,
        iterations: int = 1,
    ) -> None:
        if distance <= 0:
            raise ValueError("link distance must be positive")
        self.distance = float(distance)
        self.iterations = max(int(iterations), 1)
        if links:
            pairs = np.asarray(links, dtype=np.intp).reshape(-1, 2)
        else:
            pairs = np.empty((0, 2), dtype=np.intp)
        self._source = pairs[:, 0]
        self._target = pairs[:, 1]
        degree = np.bincount(pairs.ravel(), minlength=node_count).astype(float)
        if pairs.size:
            src_degree = degree[self._source]
            dst_degree = degree[self._target]
            self._strength = 1.0 / np.minimum(src_degree, dst_degree)
            self._bias = src_degree / (src_degree + dst_degree)
        else:
            self._strength = np.empty(0)
            self._bias = np.empty(0)

    @property
    def link_count(self) -> int:
        return int(self._source.size)

    def apply(self, state: ParticleState, alpha: float) -> None:
        if not self.link_count:
            return
        src, dst = self._source, self._target
        for _ in range(self.iterations):
            ahead = state.positions + state.velocities
            delta = ahead[dst] - ahead[src]
            _replace_zeros(state, delta, delta == 0)
            length = np.hypot(delta[:, 0], delta[:, 1])
            scale = (length - self.distance) / length * alpha * self._strength
            delta *= scale[:, None]
            np.add.at(state.velocities, dst, -delta * self._bias[:, None])
            np.add.at(state.velocities, src, delta * (1.0 - self._bias)[:, None])


class ManyBodyForce:
    """Pairwise charge between all nodes; negative strength repels.

    Computed exactly over all pairs, which keeps the layout deterministic for
    the graph sizes rendered in the explorer.
    """

    def __init__(self, strength: float = -200.0, *, distance_min: float = 1.0) -> None:
        self.strength = float(strength)
        self._distance_min2 = float(distance_min) ** 2

    def apply(self, state: ParticleState, alpha: float) -> None:
        count = state.size
        if count < 2 or self.strength == 0:
            return
        diff = state.positions[None, :, :] - state.positions[:, None, :]
        off_diagonal = ~np.eye(count, dtype=bool)
        _replace_zeros(state, diff, (diff == 0) & off_diagonal[:, :, None])
        dist2 = np.einsum("ijk,ijk->ij", diff, diff)
        dist2 = np.where(dist2 < self._distance_min2, np.sqrt(self._distance_min2 * dist2), dist2)
        dist2[~off_diagonal] = 1.0
        weight = np.where(off_diagonal, self.strength * alpha / dist2, 0.0)
        state.velocities += np.einsum("ijk,ij->ik", diff, weight)


class CollideForce:
    """Push overlapping discs apart; heavier (larger) nodes move less."""

    def __init__(self, strength: float = 1.0, iterations: int = 1) -> None:
        self.strength = float(strength)
        self.iterations = max(int(iterations), 1)

    def apply(self, state: ParticleState, alpha: float) -> None:
        count = state.size
        if count < 2 or self.strength == 0:
            return
        radii = state.radii
        reach = radii[:, None] + radii[None, :]
        upper = np.triu(np.ones((count, count), dtype=bool), k=1)
        radii2 = radii**2
        denom = radii2[:, None] + radii2[None, :]
        share = np.divide(radii2[None, :], denom, out=np.full_like(denom, 0.5), where=denom > 0)
        for _ in range(self.iterations):
            ahead = state.positions + state.velocities
            diff = ahead[:, None, :] - ahead[None, :, :]
            dist2 = np.einsum("ijk,ijk->ij", diff, diff)
            overlap = upper & (dist2 < reach**2)
            if not overlap.any():
                return
            _replace_zeros(state, diff, (diff == 0) & overlap[:, :, None])
            dist = np.sqrt(np.einsum("ijk,ijk->ij", diff, diff))
            safe = np.where(overlap, dist, 1.0)
            scale = np.where(overlap, (reach - safe) / safe * self.strength, 0.0)
            impulse = diff * scale[:, :, None]
            state.velocities += np.einsum("ijk,ij->ik", impulse, share)
            state.velocities -= np.einsum("ijk,ij->jk", impulse, 1.0 - share)


class CenterForce:
    """Translate the node set so its centroid moves toward a fixed point."""

    def __init__(self, x: float = 0.0, y: float = 0.0, *, strength: float = 1.0) -> None:
        self.x = float(x)
        self.y = float(y)
        self.strength = float(strength)

    def apply(self, state: ParticleState, alpha: float) -> None:
        if not state.size or self.strength == 0:
            return
        centroid = state.positions.mean(axis=0)
        shift = (centroid - np.array([self.x, self.y])) * self.strength
        state.positions -= shift


__all__ = [
    "CenterForce",
    "CollideForce",
    "Force",
    "LinkForce",
    "ManyBodyForce",
    "ParticleState",
]

"""Tests for the force simulation cooling schedule and integration."""

from __future__ import annotations

import math
from typing import List

import pytest

from backend.app.config import LayoutConfig
from backend.app.contracts import DocumentRecord, NodeGroup
from backend.app.graph import build_graph
from backend.app.graph.models import GraphNode
from backend.app.layout.forces import CenterForce, CollideForce, LinkForce
from backend.app.layout.scheduler import ManualTickScheduler
from backend.app.layout.simulation import ForceSimulation


def _nodes(count: int) -> List[GraphNode]:
    return [GraphNode(f"n{index}", f"N{index}", NodeGroup.CONCEPT, 3) for index in range(count)]


def _simulation_for_documents() -> ForceSimulation:
    graph = build_graph(
        [
            DocumentRecord(
                id=f"doc{index}",
                title=f"Paper {index}",
                authors=["K. Chen", f"Author {index}"],
                institute="MIT" if index % 2 else "ETH Zurich",
                keyConcepts=["graphs", f"topic {index}"],
                methods=["survey"],
            )
            for index in range(4)
        ]
    )
    index = {node.id: position for position, node in enumerate(graph.nodes)}
    links = [(index[edge.source], index[edge.target]) for edge in graph.edges]
    return ForceSimulation.for_graph(graph.nodes, links, center=(480.0, 320.0))


def test_unpositioned_nodes_are_seeded_around_center() -> None:
    nodes = _nodes(5)

    ForceSimulation(nodes, center=(100.0, 50.0))

    assert all(node.positioned for node in nodes)
    assert nodes[0].x == pytest.approx(100.0 + 10.0 * math.sqrt(0.5))
    assert nodes[0].y == pytest.approx(50.0)
    assert len({(node.x, node.y) for node in nodes}) == 5


def test_existing_positions_are_kept_when_seeding() -> None:
    nodes = _nodes(2)
    nodes[1].x, nodes[1].y = 7.0, 8.0

    ForceSimulation(nodes)

    assert (nodes[1].x, nodes[1].y) == (7.0, 8.0)


def test_alpha_cools_from_one_to_settled_in_about_three_hundred_ticks() -> None:
    simulation = ForceSimulation(_nodes(3))
    assert simulation.alpha == 1.0

    executed = simulation.run_until_settled(1000)

    assert simulation.settled
    assert 295 <= executed <= 305
    assert simulation.alpha < simulation.alpha_min


def test_total_displacement_decays_until_settled() -> None:
    simulation = _simulation_for_documents()
    node_count = len(simulation.nodes)
    displacements: List[float] = []

    while not simulation.settled and len(displacements) < 1000:
        simulation.tick()
        displacements.append(simulation.last_displacement)

    assert simulation.settled
    assert len(displacements) < 1000
    window = 50
    means = [
        sum(displacements[start : start + window]) / window
        for start in range(0, len(displacements) - window + 1, window)
    ]
    assert means[-1] < means[0] * 0.1
    assert displacements[-1] / node_count < 0.1


def test_pinned_node_stays_at_pin() -> None:
    nodes = _nodes(4)
    nodes[0].fx, nodes[0].fy = 25.0, -40.0
    simulation = ForceSimulation.for_graph(nodes, [(0, 1), (1, 2), (2, 3)])

    simulation.tick(20)

    assert (nodes[0].x, nodes[0].y) == (25.0, -40.0)
    assert (nodes[0].vx, nodes[0].vy) == (0.0, 0.0)


def test_pin_updates_apply_on_next_tick() -> None:
    nodes = _nodes(2)
    simulation = ForceSimulation.for_graph(nodes, [(0, 1)])
    simulation.tick()
    nodes[0].fx, nodes[0].fy = 500.0, 500.0

    assert nodes[0].x != 500.0
    simulation.tick()
    assert (nodes[0].x, nodes[0].y) == (500.0, 500.0)

    nodes[0].fx = nodes[0].fy = None
    simulation.tick()
    assert nodes[0].x != 500.0 or nodes[0].y != 500.0


def test_collision_separates_overlapping_nodes() -> None:
    nodes = _nodes(2)
    nodes[0].x, nodes[0].y = 0.0, 0.0
    nodes[1].x, nodes[1].y = 1.0, 0.0
    simulation = ForceSimulation(nodes, [CollideForce()], radii=[10.0, 10.0])

    simulation.tick(50)

    assert math.hypot(nodes[1].x - nodes[0].x, nodes[1].y - nodes[0].y) >= 19.0


def test_link_pulls_distant_nodes_closer() -> None:
    nodes = _nodes(2)
    nodes[0].x, nodes[0].y = 0.0, 0.0
    nodes[1].x, nodes[1].y = 400.0, 0.0
    simulation = ForceSimulation(nodes, [LinkForce([(0, 1)], 2, distance=100.0)])

    simulation.tick(100)

    assert math.hypot(nodes[1].x - nodes[0].x, nodes[1].y - nodes[0].y) < 200.0


def test_empty_simulation_runs_without_error() -> None:
    simulation = ForceSimulation.for_graph([], [])

    executed = simulation.run_until_settled()

    assert simulation.settled
    assert executed > 0
    assert simulation.positions() == {}
    assert simulation.last_displacement == 0.0


def test_radii_length_must_match_nodes() -> None:
    with pytest.raises(ValueError):
        ForceSimulation(_nodes(2), radii=[1.0])


def test_same_seed_gives_identical_layouts() -> None:
    first = _simulation_for_documents()
    second = _simulation_for_documents()

    first.run_until_settled()
    second.run_until_settled()

    assert first.positions() == second.positions()


def test_scheduled_steps_emit_events_and_stop_when_settled() -> None:
    scheduler = ManualTickScheduler()
    simulation = ForceSimulation(_nodes(3), scheduler=scheduler)
    ticks: List[int] = []
    ends: List[int] = []
    simulation.on_tick(lambda sim: ticks.append(sim.tick_count))
    simulation.on_end(lambda sim: ends.append(sim.tick_count))

    simulation.restart()
    executed = scheduler.advance(1000)

    assert executed == len(ticks)
    assert ends == [ticks[-1]]
    assert not scheduler.active
    assert not simulation.running


def test_unsubscribe_removes_listener() -> None:
    scheduler = ManualTickScheduler()
    simulation = ForceSimulation(_nodes(2), scheduler=scheduler)
    calls: List[int] = []
    unsubscribe = simulation.on_tick(lambda sim: calls.append(1))
    assert simulation.listener_count == 1

    unsubscribe()
    simulation.restart()
    scheduler.advance(3)

    assert calls == []
    assert simulation.listener_count == 0


def test_reheat_restarts_a_settled_simulation() -> None:
    scheduler = ManualTickScheduler()
    simulation = ForceSimulation(_nodes(3), scheduler=scheduler)
    simulation.run_until_settled()
    assert not simulation.running

    simulation.reheat(0.3)
    scheduler.advance(5)

    assert simulation.running
    assert simulation.alpha > simulation.alpha_min
    assert simulation.alpha_target == 0.3


def test_alpha_setters_clamp() -> None:
    simulation = ForceSimulation(_nodes(1))

    simulation.alpha = 3.0
    simulation.alpha_target = -1.0

    assert simulation.alpha == 1.0
    assert simulation.alpha_target == 0.0


def test_for_graph_uses_configured_forces() -> None:
    config = LayoutConfig(link_distance=42.0, charge_strength=-50.0)
    simulation = ForceSimulation.for_graph(_nodes(2), [(0, 1)], config=config, center=(10.0, 20.0))

    link = simulation.force(LinkForce)
    center = simulation.force(CenterForce)
    assert link is not None and link.distance == 42.0
    assert center is not None and (center.x, center.y) == (10.0, 20.0)

from __future__ import annotations

import pytest
from pygame.math import Vector2
from pytest import approx

from shoal.sim.core.config import SimulationConfig
from shoal.sim.core.world import World
from shoal.sim.utils.math2d import direction


def _place(world: World, states: list[tuple[tuple[float, float], tuple[float, float]]]) -> None:
    for agent, (position, velocity) in zip(world.agents, states):
        agent.position = Vector2(*position)
        agent.velocity = Vector2(*velocity)
        agent.acceleration = Vector2()


def _state(world: World) -> dict[int, tuple[float, float, float, float, float, float]]:
    return {
        agent.id: (
            agent.position.x,
            agent.position.y,
            agent.velocity.x,
            agent.velocity.y,
            agent.acceleration.x,
            agent.acceleration.y,
        )
        for agent in world.agents
    }


def test_population_size_fixed_from_config():
    world = World(SimulationConfig(population=25, seed=3))
    assert len(world.agents) == 25
    assert [agent.id for agent in world.agents] == list(range(25))
    for tick in range(3):
        world.step(tick)
    assert len(world.agents) == 25


def test_two_agent_scenario():
    world = World(SimulationConfig(population=2, world_width=200.0, world_height=200.0))
    _place(world, [((100.0, 100.0), (7.0, 0.0)), ((110.0, 100.0), (-7.0, 0.0))])
    a, b = world.agents

    world.advance_tick()

    assert (a.position.x, a.position.y) == (approx(107.0), approx(100.0))
    assert (b.position.x, b.position.y) == (approx(103.0), approx(100.0))
    assert a.acceleration.x < 0
    assert b.acceleration.x > 0
    # A steers from (107, 100) against B as it stood at (110, 100)
    assert a.acceleration.x == approx(-0.12 - 0.00047 - 0.000006)
    for agent in world.agents:
        assert 0.0 <= agent.position.x < 200.0
        assert 0.0 <= agent.position.y < 200.0
    assert world.tick == 1


def test_neighbors_are_measured_from_the_moved_position():
    world = World(SimulationConfig(population=2, world_width=1000.0, world_height=1000.0))
    _place(world, [((100.0, 100.0), (7.0, 0.0)), ((225.0, 100.0), (0.0, 7.0))])
    a, b = world.agents

    world.advance_tick()

    # A moved to x=107, 118 units from where B started the tick
    assert a.neighbor_count == 1
    assert a.acceleration.length() > 0.0
    # B moved away along y and lost sight of A
    assert b.neighbor_count == 0
    assert (b.acceleration.x, b.acceleration.y) == (0.0, 0.0)


def test_steering_uses_velocity_after_acceleration():
    world = World(SimulationConfig(population=2, world_width=1000.0, world_height=1000.0))
    _place(world, [((100.0, 100.0), (7.0, 0.0)), ((130.0, 100.0), (7.0, 7.0))])
    world.agents[0].acceleration = Vector2(0.0, 7.0)

    world.advance_tick()

    # A now travels (7, 7), the same as B, so the coincident-velocity rule drops B
    a = world.agents[0]
    assert (a.velocity.x, a.velocity.y) == (approx(7.0), approx(7.0))
    assert a.neighbor_count == 0


def test_edge_wrap_snaps_to_far_edge():
    world = World(SimulationConfig(population=1, world_width=640.0, world_height=480.0))
    _place(world, [((0.0, 50.0), (-7.0, 0.0))])

    world.advance_tick()

    agent = world.agents[0]
    assert agent.position.x == 640.0
    assert agent.position.y == approx(50.0)


def test_edge_wrap_torus_mode_is_continuous():
    world = World(SimulationConfig(population=1, world_width=640.0, world_height=480.0, boundary="torus"))
    _place(world, [((0.0, 50.0), (-7.0, 0.0))])

    world.advance_tick()

    assert world.agents[0].position.x == approx(633.0)


@pytest.mark.parametrize("boundary", ["snap", "torus"])
def test_bounds_and_min_speed_hold_every_tick(boundary):
    config = SimulationConfig(population=40, world_width=200.0, world_height=150.0, seed=21, boundary=boundary)
    world = World(config)

    for tick in range(40):
        world.step(tick)
        for agent in world.agents:
            if boundary == "torus":
                assert 0.0 <= agent.position.x < 200.0
                assert 0.0 <= agent.position.y < 150.0
            else:
                # the snap rule may park an agent exactly on the far edge
                assert 0.0 <= agent.position.x <= 200.0
                assert 0.0 <= agent.position.y <= 150.0
            assert agent.velocity.length() >= config.min_speed - 1e-9


def test_acceleration_is_applied_one_tick_late():
    world = World(SimulationConfig(population=1))
    _place(world, [((100.0, 100.0), (7.0, 0.0))])
    world.agents[0].acceleration = Vector2(1.0, 0.0)

    world.advance_tick()

    agent = world.agents[0]
    assert (agent.position.x, agent.position.y) == (approx(107.0), approx(100.0))
    assert (agent.velocity.x, agent.velocity.y) == (approx(8.0), approx(0.0))
    assert (agent.acceleration.x, agent.acceleration.y) == (0.0, 0.0)


def test_stalled_agent_recovers_minimum_speed():
    world = World(SimulationConfig(population=1))
    _place(world, [((100.0, 100.0), (0.0, 0.0))])

    world.advance_tick()

    agent = world.agents[0]
    assert agent.velocity.length() == approx(world.config.min_speed)
    assert agent.position.x == approx(100.0)


def test_steering_reads_pre_tick_snapshot_regardless_of_order():
    config = SimulationConfig(population=30, world_width=300.0, world_height=300.0, seed=8)
    forward = World(config)
    backward = World(SimulationConfig(population=30, world_width=300.0, world_height=300.0, seed=8))
    backward.agents.reverse()

    for tick in range(5):
        forward.step(tick)
        backward.step(tick)

    forward_state = _state(forward)
    backward_state = _state(backward)
    for agent_id, values in forward_state.items():
        assert backward_state[agent_id] == approx(values)


def test_same_seed_is_deterministic():
    world_a = World(SimulationConfig(population=20, seed=1234))
    world_b = World(SimulationConfig(population=20, seed=1234))
    for tick in range(10):
        world_a.step(tick)
        world_b.step(tick)
    assert _state(world_a) == _state(world_b)


def test_reset_restores_initial_population():
    world = World(SimulationConfig(population=10, seed=77))
    initial = _state(world)
    for tick in range(5):
        world.step(tick)

    world.reset()

    assert world.tick == 0
    assert world.metrics is None
    assert _state(world) == initial


def test_extent_is_reread_each_tick():
    extent = [200.0, 200.0]
    world = World(SimulationConfig(population=1), extent_source=lambda: (extent[0], extent[1]))
    _place(world, [((150.0, 100.0), (7.0, 0.0))])

    extent[0] = 155.0
    world.advance_tick()

    assert world.extent == (155.0, 200.0)
    assert world.agents[0].position.x == 0.0


def test_resize_rejects_non_positive_extent():
    world = World(SimulationConfig(population=1))
    with pytest.raises(ValueError):
        world.resize(0, 100)


def test_invalid_config_rejected():
    with pytest.raises(ValueError):
        World(SimulationConfig(population=0))
    with pytest.raises(ValueError):
        World(SimulationConfig(boundary="mirror"))


def test_metrics_report_isolated_agents_and_neighbors():
    world = World(SimulationConfig(population=3, world_width=1000.0, world_height=1000.0))
    _place(
        world,
        [
            ((100.0, 100.0), (7.0, 0.0)),
            ((110.0, 100.0), (-7.0, 0.0)),
            ((800.0, 800.0), (0.0, 7.0)),
        ],
    )

    metrics = world.step(0)

    assert metrics.tick == 0
    assert metrics.population == 3
    assert metrics.neighbor_checks == 2
    assert metrics.isolated == 1
    assert metrics.min_speed >= 7.0 - 1e-9
    assert world.metrics is metrics


def test_snapshot_exposes_render_data():
    config = SimulationConfig(population=2, world_width=200.0, world_height=200.0, seed=7)
    world = World(config)
    _place(world, [((100.0, 100.0), (7.0, 7.0)), ((150.0, 20.0), (-7.0, 0.0))])

    world.advance_tick()
    snapshot = world.snapshot()

    assert snapshot.tick == 1
    assert snapshot.world.width == approx(200.0)
    assert snapshot.world.height == approx(200.0)
    assert snapshot.metadata.seed == 7
    assert snapshot.metadata.tick_rate == approx(60.0)
    assert snapshot.metrics.population == 2

    payload = snapshot.agents[0]
    for key in ["id", "x", "y", "vx", "vy", "speed", "heading", "box"]:
        assert key in payload
    assert payload["heading"] == approx(direction(Vector2(7.0, 7.0)))
    assert payload["box"] == approx([payload["x"] - 30.0, payload["y"] - 15.0, 60.0, 30.0])
    assert payload["speed"] == approx(Vector2(payload["vx"], payload["vy"]).length())

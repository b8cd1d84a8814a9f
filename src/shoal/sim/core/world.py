from __future__ import annotations

import logging
from time import perf_counter
from typing import Any, Callable, Dict, List, Optional, Tuple

from .agent import Agent, AgentView, spawn_agent
from .config import SimulationConfig
from .rng import DeterministicRng
from ..systems import metrics as metrics_system, steering
from ..types.metrics import TickMetrics
from ..types.snapshot import Snapshot, SnapshotMetadata, SnapshotWorld
from ..utils.math2d import add, clamp_min, direction, wrap_position

logger = logging.getLogger(__name__)

ExtentSource = Callable[[], Tuple[float, float]]


class World:
    def __init__(self, config: SimulationConfig, extent_source: Optional[ExtentSource] = None):
        config.validate()
        self._config = config
        self._rng = DeterministicRng(config.seed)
        self._extent_source = extent_source
        self._width = float(config.world_width)
        self._height = float(config.world_height)
        self._agents: List[Agent] = []
        self._tick = 0
        self._metrics: TickMetrics | None = None
        self._bootstrap_population()

    @property
    def agents(self) -> List[Agent]:
        return self._agents

    @property
    def config(self) -> SimulationConfig:
        return self._config

    @property
    def tick(self) -> int:
        return self._tick

    @property
    def metrics(self) -> TickMetrics | None:
        return self._metrics

    @property
    def extent(self) -> Tuple[float, float]:
        return self._width, self._height

    def resize(self, width: float, height: float) -> None:
        if width <= 0 or height <= 0:
            raise ValueError(f"world extent must be positive, got {width}x{height}")
        if (width, height) != (self._width, self._height):
            logger.info("World resized to %sx%s", width, height)
        self._width = float(width)
        self._height = float(height)

    def reset(self) -> None:
        width, height = self._read_extent()
        self._rng.reset()
        self._agents.sort(key=lambda agent: agent.id)
        for agent in self._agents:
            agent.reset(self._rng, self._config, width, height)
        self._tick = 0
        self._metrics = None
        logger.info("World reset with %d agents", len(self._agents))

    def advance_tick(self) -> None:
        self.step(self._tick)

    def step(self, tick: int) -> TickMetrics:
        start = perf_counter()
        config = self._config
        width, height = self._read_extent()
        min_speed = config.min_speed
        boundary = config.boundary

        # Neighbours are read as they stood before this tick; the steering agent
        # itself uses its freshly integrated position and velocity.
        views = [agent.view() for agent in self._agents]
        neighbor_checks = 0
        for agent, view in zip(self._agents, views):
            agent.heading = direction(view.velocity)
            agent.position = wrap_position(view.position, view.velocity, width, height, boundary)
            velocity = add(view.velocity, agent.acceleration)
            moved = AgentView(agent.id, agent.position, velocity)
            agent.acceleration, agent.neighbor_count = steering.combined_steering(moved, views, config)
            agent.velocity = clamp_min(velocity, min_speed)
            neighbor_checks += agent.neighbor_count

        self._tick = tick + 1
        duration_ms = (perf_counter() - start) * 1000.0
        self._metrics = metrics_system.create_metrics(tick, self._agents, neighbor_checks, duration_ms)
        return self._metrics

    def snapshot(self, tick: int | None = None) -> Snapshot:
        tick = self._tick if tick is None else tick
        config = self._config
        metrics = self._metrics
        if metrics is None:
            metrics = metrics_system.create_metrics(tick, self._agents, 0, 0.0)
        return Snapshot(
            tick=tick,
            metrics=metrics,
            agents=[self._agent_snapshot(agent) for agent in self._agents],
            world=SnapshotWorld(width=self._width, height=self._height),
            metadata=SnapshotMetadata(
                tick_rate=config.tick_rate,
                seed=config.seed,
                sight_radius=config.sight_radius,
                min_speed=config.min_speed,
                boundary=config.boundary,
                config_version=config.config_version,
            ),
        )

    def _read_extent(self) -> Tuple[float, float]:
        if self._extent_source is not None:
            width, height = self._extent_source()
            self.resize(width, height)
        return self._width, self._height

    def _bootstrap_population(self) -> None:
        width, height = self._read_extent()
        for agent_id in range(self._config.population):
            self._agents.append(spawn_agent(agent_id, self._rng, self._config, width, height))
        logger.info(
            "Spawned %d agents in a %sx%s world (seed=%d)", len(self._agents), width, height, self._config.seed
        )

    def _agent_snapshot(self, agent: Agent) -> Dict[str, Any]:
        box_w = self._config.boid_width
        box_h = self._config.boid_height
        return {
            "id": agent.id,
            "x": agent.position.x,
            "y": agent.position.y,
            "vx": agent.velocity.x,
            "vy": agent.velocity.y,
            "speed": agent.velocity.length(),
            "heading": agent.heading,
            "neighbors": agent.neighbor_count,
            "box": [agent.position.x - box_w / 2, agent.position.y - box_h / 2, box_w, box_h],
        }

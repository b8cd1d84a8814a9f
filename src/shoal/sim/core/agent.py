from __future__ import annotations

from dataclasses import dataclass, field

from pygame.math import Vector2

from .config import SimulationConfig
from .rng import DeterministicRng
from ..utils.math2d import with_magnitude


@dataclass(slots=True)
class Agent:
    id: int
    position: Vector2
    velocity: Vector2
    acceleration: Vector2 = field(default_factory=Vector2)
    heading: float = 0.0
    neighbor_count: int = 0

    def view(self) -> "AgentView":
        return AgentView(self.id, Vector2(self.position), Vector2(self.velocity))

    def reset(self, rng: DeterministicRng, config: SimulationConfig, width: float, height: float) -> None:
        self.position = _spawn_position(rng, config.spawn_margin, width, height)
        self.velocity = _spawn_velocity(rng, config.boid_speed)
        self.acceleration = Vector2()
        self.heading = 0.0
        self.neighbor_count = 0


@dataclass(frozen=True, slots=True)
class AgentView:
    """Read-only copy of an agent's kinematic state at the start of a tick."""

    id: int
    position: Vector2
    velocity: Vector2


def spawn_agent(
    agent_id: int, rng: DeterministicRng, config: SimulationConfig, width: float, height: float
) -> Agent:
    return Agent(
        id=agent_id,
        position=_spawn_position(rng, config.spawn_margin, width, height),
        velocity=_spawn_velocity(rng, config.boid_speed),
    )


def _spawn_position(rng: DeterministicRng, margin: float, width: float, height: float) -> Vector2:
    return rng.next_point(margin, width, height)


def _spawn_velocity(rng: DeterministicRng, speed: float) -> Vector2:
    raw = rng.next_square(3.0 * speed)
    return with_magnitude(raw, speed, fallback=rng.next_unit_circle())

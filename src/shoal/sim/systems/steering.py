from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Protocol, Sequence, Tuple

from pygame.math import Vector2

from ..core.config import SimulationConfig
from ..utils.math2d import clamp_max, distance, is_finite, magnitude, scale, subtract


class Kinematic(Protocol):
    id: int
    position: Vector2
    velocity: Vector2


class Behavior(str, Enum):
    SEPARATION = "separation"
    ALIGNMENT = "alignment"
    COHESION = "cohesion"


Contribution = Callable[[Kinematic, Kinematic, float], Tuple[float, float]]


def _separation(agent: Kinematic, other: Kinematic, dist: float) -> Tuple[float, float]:
    dist_sq = dist * dist
    if dist_sq == 0.0:
        return math.inf, math.inf
    inv = 1.0 / dist_sq
    return (agent.position.x - other.position.x) * inv, (agent.position.y - other.position.y) * inv


def _alignment(agent: Kinematic, other: Kinematic, dist: float) -> Tuple[float, float]:
    return other.velocity.x, other.velocity.y


def _cohesion(agent: Kinematic, other: Kinematic, dist: float) -> Tuple[float, float]:
    return other.position.x, other.position.y


@dataclass(frozen=True)
class BehaviorSpec:
    behavior: Behavior
    contribution: Contribution
    limit_attr: str
    toward_centroid: bool = False

    def limit(self, config: SimulationConfig) -> float:
        return getattr(config, self.limit_attr)


BEHAVIORS: Dict[Behavior, BehaviorSpec] = {
    Behavior.SEPARATION: BehaviorSpec(Behavior.SEPARATION, _separation, "max_separation"),
    Behavior.ALIGNMENT: BehaviorSpec(Behavior.ALIGNMENT, _alignment, "max_alignment"),
    Behavior.COHESION: BehaviorSpec(Behavior.COHESION, _cohesion, "max_cohesion", toward_centroid=True),
}


def _same(a: Vector2, b: Vector2) -> bool:
    return a.x == b.x and a.y == b.y


def is_counted_neighbor(
    agent: Kinematic,
    other: Kinematic,
    dist: float,
    sight_radius: float,
    exclude_coincident: bool = True,
) -> bool:
    if other.id == agent.id:
        return False
    # Distinct agents sharing a position or a velocity ignore each other.
    if exclude_coincident and (_same(other.velocity, agent.velocity) or _same(other.position, agent.position)):
        return False
    return dist < sight_radius


def _finish(spec: BehaviorSpec, agent: Kinematic, sum_x: float, sum_y: float, total: int, limit: float) -> Vector2:
    if total == 0:
        return Vector2()
    avg = scale(Vector2(sum_x, sum_y), 1.0 / total)
    if not is_finite(avg) or not math.isfinite(magnitude(avg)):
        return Vector2()
    if spec.toward_centroid:
        avg = subtract(avg, agent.position)
    desired = subtract(avg, agent.velocity)
    return clamp_max(desired, limit)


def steer(
    agent: Kinematic,
    population: Sequence[Kinematic],
    behavior: Behavior,
    config: SimulationConfig,
) -> Vector2:
    spec = BEHAVIORS[behavior]
    contribution = spec.contribution
    sight_radius = config.sight_radius
    exclude_coincident = config.exclude_coincident_neighbors
    sum_x = 0.0
    sum_y = 0.0
    total = 0
    for other in population:
        dist = distance(agent.position, other.position)
        if not is_counted_neighbor(agent, other, dist, sight_radius, exclude_coincident):
            continue
        cx, cy = contribution(agent, other, dist)
        sum_x += cx
        sum_y += cy
        total += 1
    return _finish(spec, agent, sum_x, sum_y, total, spec.limit(config))


def combined_steering(
    agent: Kinematic,
    population: Sequence[Kinematic],
    config: SimulationConfig,
) -> Tuple[Vector2, int]:
    """Sum of alignment, separation and cohesion steering from a single scan.

    Equivalent to adding the three ``steer`` calls; also returns the number
    of counted neighbours.
    """
    sight_radius = config.sight_radius
    exclude_coincident = config.exclude_coincident_neighbors
    specs = (BEHAVIORS[Behavior.ALIGNMENT], BEHAVIORS[Behavior.SEPARATION], BEHAVIORS[Behavior.COHESION])
    sums = [[0.0, 0.0] for _ in specs]
    total = 0
    for other in population:
        dist = distance(agent.position, other.position)
        if not is_counted_neighbor(agent, other, dist, sight_radius, exclude_coincident):
            continue
        total += 1
        for spec, acc in zip(specs, sums):
            cx, cy = spec.contribution(agent, other, dist)
            acc[0] += cx
            acc[1] += cy

    steering = Vector2()
    for spec, (sum_x, sum_y) in zip(specs, sums):
        steering += _finish(spec, agent, sum_x, sum_y, total, spec.limit(config))
    return steering, total

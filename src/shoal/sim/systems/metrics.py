from __future__ import annotations

import math
from typing import Iterable

from ..core.agent import Agent
from ..types.metrics import TickMetrics


def create_metrics(
    tick: int,
    agents: Iterable[Agent],
    neighbor_checks: int,
    duration_ms: float,
) -> TickMetrics:
    population = 0
    speed_sum = 0.0
    accel_sum = 0.0
    min_speed = math.inf
    max_speed = 0.0
    isolated = 0
    for agent in agents:
        population += 1
        speed = math.hypot(agent.velocity.x, agent.velocity.y)
        speed_sum += speed
        accel_sum += math.hypot(agent.acceleration.x, agent.acceleration.y)
        min_speed = min(min_speed, speed)
        max_speed = max(max_speed, speed)
        if agent.neighbor_count == 0:
            isolated += 1
    if population == 0:
        return TickMetrics(tick, 0, neighbor_checks, 0.0, 0.0, 0.0, 0.0, 0, duration_ms)
    return TickMetrics(
        tick=tick,
        population=population,
        neighbor_checks=neighbor_checks,
        average_speed=speed_sum / population,
        min_speed=min_speed,
        max_speed=max_speed,
        average_acceleration=accel_sum / population,
        isolated=isolated,
        tick_duration_ms=duration_ms,
    )

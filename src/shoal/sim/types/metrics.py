from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class TickMetrics:
    tick: int
    population: int
    neighbor_checks: int
    average_speed: float
    min_speed: float
    max_speed: float
    average_acceleration: float
    isolated: int
    tick_duration_ms: float = 0.0

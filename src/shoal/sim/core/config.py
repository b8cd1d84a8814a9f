from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

DEFAULT_POPULATION = 600
BOUNDARY_MODES = ("snap", "torus")


@dataclass
class SimulationConfig:
    population: int = DEFAULT_POPULATION
    world_width: float = 640.0
    world_height: float = 480.0
    boid_speed: float = 7.0
    min_speed: float = 7.0
    sight_radius: float = 120.0
    # Steering clamps are tuned against the per-tick velocity scale.
    max_alignment: float = 0.00047
    max_separation: float = 0.12
    max_cohesion: float = 0.000006
    spawn_margin: float = 20.0
    tick_rate: float = 60.0
    boid_width: float = 60.0
    boid_height: float = 30.0
    seed: int = 42
    boundary: str = "snap"
    exclude_coincident_neighbors: bool = True
    config_version: str = "v1"

    @staticmethod
    def from_yaml(path: Path) -> "SimulationConfig":
        data = yaml.safe_load(Path(path).read_text()) or {}
        return load_config(data)

    def validate(self) -> None:
        if self.population <= 0:
            raise ValueError(f"population must be positive, got {self.population}")
        if self.world_width <= 0 or self.world_height <= 0:
            raise ValueError(f"world extent must be positive, got {self.world_width}x{self.world_height}")
        for name in ("boid_speed", "min_speed", "sight_radius", "tick_rate"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        for name in ("max_alignment", "max_separation", "max_cohesion", "spawn_margin"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative, got {getattr(self, name)}")
        if self.boundary not in BOUNDARY_MODES:
            raise ValueError(f"Unknown boundary mode: {self.boundary}")


def resolve_population(raw: Any, default: int = DEFAULT_POPULATION) -> int:
    if raw is None:
        logger.info("No population given, using default of %d", default)
        return default
    if isinstance(raw, bool):
        logger.warning("Ignoring non-numeric population %r, using default of %d", raw, default)
        return default
    try:
        value = int(str(raw).strip())
    except ValueError:
        logger.warning("Ignoring non-numeric population %r, using default of %d", raw, default)
        return default
    if value <= 0:
        logger.warning("Ignoring non-positive population %d, using default of %d", value, default)
        return default
    return value


def load_config(raw: dict) -> SimulationConfig:
    known = {f.name for f in fields(SimulationConfig)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise TypeError(f"Unknown configuration keys: {', '.join(unknown)}")
    values = dict(raw)
    if "population" in values:
        values["population"] = resolve_population(values["population"])
    return SimulationConfig(**values)

from __future__ import annotations

import argparse
import csv
import json
import logging
import math
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterator, List, Optional, Sequence, Tuple

from ..sim.core.config import SimulationConfig, resolve_population
from ..sim.core.world import World
from ..sim.types.metrics import TickMetrics

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class FlockShape:
    centroid_x: float
    centroid_y: float
    # 1.0 when every agent points the same way, near 0.0 when headings cancel out.
    polarization: float


def flock_shape(world: World) -> FlockShape:
    agents = world.agents
    if not agents:
        return FlockShape(0.0, 0.0, 0.0)
    sum_x = 0.0
    sum_y = 0.0
    heading_x = 0.0
    heading_y = 0.0
    for agent in agents:
        sum_x += agent.position.x
        sum_y += agent.position.y
        speed = math.hypot(agent.velocity.x, agent.velocity.y)
        if speed > 0.0:
            heading_x += agent.velocity.x / speed
            heading_y += agent.velocity.y / speed
    count = len(agents)
    return FlockShape(sum_x / count, sum_y / count, math.hypot(heading_x, heading_y) / count)


def _per_agent(value: float, population: int) -> float:
    return 0.0 if population <= 0 else value / population


Row = Tuple[TickMetrics, FlockShape, float, Tuple[float, float]]
Column = Tuple[str, Callable[[Row], object]]

_BASIC_COLUMNS: List[Column] = [
    ("tick", lambda r: r[0].tick),
    ("population", lambda r: r[0].population),
    ("neighbor_checks", lambda r: r[0].neighbor_checks),
    ("avg_speed", lambda r: f"{r[0].average_speed:.4f}"),
    ("tick_ms", lambda r: f"{r[2]:.3f}"),
]

_DETAILED_COLUMNS: List[Column] = _BASIC_COLUMNS + [
    ("min_speed", lambda r: f"{r[0].min_speed:.4f}"),
    ("max_speed", lambda r: f"{r[0].max_speed:.4f}"),
    ("avg_acceleration", lambda r: f"{r[0].average_acceleration:.6f}"),
    ("isolated", lambda r: r[0].isolated),
    ("isolated_ratio", lambda r: f"{_per_agent(r[0].isolated, r[0].population):.4f}"),
    ("neighbors_per_agent", lambda r: f"{_per_agent(r[0].neighbor_checks, r[0].population):.4f}"),
    ("tick_ms_per_agent", lambda r: f"{_per_agent(r[2], r[0].population):.4f}"),
    ("centroid_x", lambda r: f"{r[1].centroid_x:.4f}"),
    ("centroid_y", lambda r: f"{r[1].centroid_y:.4f}"),
    ("polarization", lambda r: f"{r[1].polarization:.4f}"),
    ("world_width", lambda r: f"{r[3][0]:g}"),
    ("world_height", lambda r: f"{r[3][1]:g}"),
]

LOG_FORMATS = {"basic": _BASIC_COLUMNS, "detailed": _DETAILED_COLUMNS}


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


@dataclass
class RunSummary:
    steps: int
    seed: int
    population: int
    log_format: str
    deterministic_log: bool
    frame_budget_ms: float
    tail_window: int
    tick_ms: List[float] = field(default_factory=list)
    neighbors_per_agent: List[float] = field(default_factory=list)
    isolated: List[int] = field(default_factory=list)
    lowest_speed: float = math.inf

    def record(self, metrics: TickMetrics, tick_ms: float) -> None:
        self.tick_ms.append(tick_ms)
        self.neighbors_per_agent.append(_per_agent(metrics.neighbor_checks, metrics.population))
        self.isolated.append(metrics.isolated)
        self.lowest_speed = min(self.lowest_speed, metrics.min_speed)

    def to_dict(self, final_shape: FlockShape) -> dict:
        tail = slice(max(0, len(self.tick_ms) - self.tail_window), None)
        return {
            "steps": self.steps,
            "seed": self.seed,
            "population": self.population,
            "log_format": self.log_format,
            "deterministic_log": self.deterministic_log,
            "tick_ms": {"avg": _mean(self.tick_ms), "max": max(self.tick_ms, default=0.0)},
            "frame_budget_ms": self.frame_budget_ms,
            "ticks_over_budget": sum(1 for value in self.tick_ms if value > self.frame_budget_ms),
            "neighbors_per_agent": {
                "avg": _mean(self.neighbors_per_agent),
                "max": max(self.neighbors_per_agent, default=0.0),
            },
            "isolated": {"avg": _mean(self.isolated), "max": max(self.isolated, default=0)},
            "lowest_speed": 0.0 if math.isinf(self.lowest_speed) else self.lowest_speed,
            "final": {
                "centroid": [final_shape.centroid_x, final_shape.centroid_y],
                "polarization": final_shape.polarization,
            },
            "tail_window": {
                "window": self.tail_window,
                "neighbors_per_agent": _mean(self.neighbors_per_agent[tail]),
                "tick_ms": _mean(self.tick_ms[tail]),
            },
        }


def run_headless(
    steps: int,
    seed: Optional[int],
    log_path: Optional[Path],
    deterministic_log: bool = False,
    log_format: str = "detailed",
    summary_path: Optional[Path] = None,
    summary_window: int = 600,
    population: Optional[int] = None,
    config: Optional[SimulationConfig] = None,
) -> World:
    config = config if config is not None else SimulationConfig()
    if seed is not None:
        config.seed = seed
    if population is not None:
        config.population = population

    log_mode = log_format.lower().strip()
    if log_mode not in LOG_FORMATS:
        raise ValueError(f"Unknown log format: {log_format}")
    columns = LOG_FORMATS[log_mode]
    needs_shape = log_mode == "detailed"

    world = World(config)
    logger.info("Running %d ticks with %d agents", steps, config.population)
    summary = RunSummary(
        steps=steps,
        seed=config.seed,
        population=config.population,
        log_format=log_mode,
        deterministic_log=deterministic_log,
        frame_budget_ms=1000.0 / config.tick_rate,
        tail_window=max(1, int(summary_window)),
    )

    with _open_log(log_path) as writer:
        if writer is not None:
            writer.writerow([name for name, _ in columns])
        for tick in range(steps):
            metrics = world.step(tick)
            tick_ms = 0.0 if deterministic_log else metrics.tick_duration_ms
            summary.record(metrics, tick_ms)
            if writer is not None:
                shape = flock_shape(world) if needs_shape else FlockShape(0.0, 0.0, 0.0)
                row: Row = (metrics, shape, tick_ms, world.extent)
                writer.writerow([cell(row) for _, cell in columns])

    if summary_path:
        Path(summary_path).write_text(json.dumps(summary.to_dict(flock_shape(world)), indent=2))

    logger.info("Finished %d ticks", steps)
    return world


@contextmanager
def _open_log(path: Optional[Path]) -> Iterator[Optional[Any]]:
    if not path:
        yield None
        return
    with Path(path).open("w", newline="") as handle:
        yield csv.writer(handle)


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Headless flocking simulation")
    parser.add_argument(
        "population",
        nargs="?",
        default=None,
        help="Number of agents (falls back to the default when missing or not a positive integer).",
    )
    parser.add_argument("--steps", type=int, default=600)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--width", type=float, default=None, help="World width in world units.")
    parser.add_argument("--height", type=float, default=None, help="World height in world units.")
    parser.add_argument("--config", type=Path, default=None, help="YAML file with SimulationConfig fields.")
    parser.add_argument("--log", type=Path, default=None, help="CSV file to write metrics")
    parser.add_argument("--log-format", choices=sorted(LOG_FORMATS), default="detailed")
    parser.add_argument("--summary", type=Path, default=None, help="JSON file for run summary stats.")
    parser.add_argument("--summary-window", type=int, default=600, help="Tail window size (ticks) for the summary.")
    parser.add_argument(
        "--deterministic-log",
        action="store_true",
        help="Write deterministic CSV (tick_ms is forced to 0.000 so identical seeds match).",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log progress to stderr.")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = SimulationConfig.from_yaml(args.config) if args.config else SimulationConfig()
    if args.population is not None or args.config is None:
        config.population = resolve_population(args.population, default=config.population)
    if args.width is not None:
        config.world_width = args.width
    if args.height is not None:
        config.world_height = args.height

    run_headless(
        args.steps,
        args.seed,
        args.log,
        deterministic_log=args.deterministic_log,
        log_format=args.log_format,
        summary_path=args.summary,
        summary_window=args.summary_window,
        config=config,
    )


if __name__ == "__main__":
    main()

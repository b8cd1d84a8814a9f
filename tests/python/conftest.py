import os
import sys
from pathlib import Path
from typing import Callable

import pytest

os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")

ROOT = Path(__file__).resolve().parents[2]
src_root = ROOT / "src"
if str(src_root) not in sys.path:
    sys.path.insert(0, str(src_root))

from pygame.math import Vector2  # noqa: E402

from shoal.sim.core.agent import AgentView  # noqa: E402


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--run-config-tests",
        action="store_true",
        default=False,
        help="run tests that pin the tuned flocking constants",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "config_change: marks tests that should only run when tuning defaults change",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if config.getoption("--run-config-tests"):
        return

    skip_marker = pytest.mark.skip(
        reason="Run only when tuning defaults are modified (use --run-config-tests)",
    )

    for item in items:
        if "config_change" in item.keywords:
            item.add_marker(skip_marker)


@pytest.fixture
def make_view() -> Callable[[int, tuple[float, float], tuple[float, float]], AgentView]:
    def _make(agent_id: int, position: tuple[float, float], velocity: tuple[float, float]) -> AgentView:
        return AgentView(agent_id, Vector2(*position), Vector2(*velocity))

    return _make

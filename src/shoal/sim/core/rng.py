from __future__ import annotations

import math
import random

from pygame.math import Vector2


class DeterministicRng:
    """Seeded source for every random draw the simulation makes."""

    def __init__(self, seed: int):
        self._seed = seed
        self._random = random.Random(seed)

    def reset(self) -> None:
        self._random.seed(self._seed)

    def next_range(self, low: float, high: float) -> float:
        # half-open, unlike random.uniform
        return low + self._random.random() * (high - low)

    def next_point(self, margin: float, width: float, height: float) -> Vector2:
        low_x = margin if margin < width else 0.0
        low_y = margin if margin < height else 0.0
        return Vector2(self.next_range(low_x, width), self.next_range(low_y, height))

    def next_square(self, half_extent: float) -> Vector2:
        return Vector2(
            self.next_range(-half_extent, half_extent),
            self.next_range(-half_extent, half_extent),
        )

    def next_unit_circle(self) -> Vector2:
        angle = self.next_range(0.0, 2 * math.pi)
        return Vector2(math.cos(angle), math.sin(angle))

from __future__ import annotations

import math

from pygame.math import Vector2

DEFAULT_HEADING = Vector2(1.0, 0.0)
HEADING_OFFSET_DEGREES = 180.0


def add(a: Vector2, b: Vector2) -> Vector2:
    return Vector2(a.x + b.x, a.y + b.y)


def subtract(a: Vector2, b: Vector2) -> Vector2:
    return Vector2(a.x - b.x, a.y - b.y)


def scale(v: Vector2, k: float) -> Vector2:
    return Vector2(v.x * k, v.y * k)


def magnitude(v: Vector2) -> float:
    return math.sqrt(v.x * v.x + v.y * v.y)


def distance(a: Vector2, b: Vector2) -> float:
    dx = b.x - a.x
    dy = b.y - a.y
    return math.sqrt(dx * dx + dy * dy)


def is_finite(v: Vector2) -> bool:
    return math.isfinite(v.x) and math.isfinite(v.y)


def normalize(v: Vector2) -> Vector2:
    mag = magnitude(v)
    if mag == 0.0 or not math.isfinite(mag):
        return Vector2()
    inv = 1.0 / mag
    return Vector2(v.x * inv, v.y * inv)


def with_magnitude(v: Vector2, n: float, fallback: Vector2 | None = None) -> Vector2:
    unit = normalize(v)
    if unit.x == 0.0 and unit.y == 0.0:
        if fallback is None:
            return Vector2()
        unit = normalize(fallback)
    return Vector2(unit.x * n, unit.y * n)


def direction(v: Vector2) -> float:
    """Display heading in degrees: ``atan(y / x)`` shifted by the sprite offset.

    The quadrant is intentionally folded by ``atan`` (the sprite is drawn
    vertically flipped), so this is not a physics quantity.
    """
    if v.x == 0.0:
        if v.y == 0.0:
            ratio_angle = 0.0
        else:
            ratio_angle = math.copysign(90.0, v.y)
    else:
        ratio_angle = math.degrees(math.atan(v.y / v.x))
    return ratio_angle - HEADING_OFFSET_DEGREES


def clamp_max(v: Vector2, limit: float) -> Vector2:
    mag = magnitude(v)
    if mag > limit:
        return with_magnitude(v, limit)
    return Vector2(v)


def clamp_min(v: Vector2, limit: float) -> Vector2:
    mag = magnitude(v)
    if mag < limit:
        return with_magnitude(v, limit, fallback=DEFAULT_HEADING)
    return Vector2(v)


def wrap_coordinate(value: float, extent: float) -> float:
    # Hard snap to the opposite edge, not a modulo.
    if value <= 0:
        return float(extent)
    if value >= extent:
        return 0.0
    return value


def torus_coordinate(value: float, extent: float) -> float:
    wrapped = math.fmod(value, extent)
    if wrapped < 0:
        wrapped += extent
    if wrapped >= extent:
        wrapped = 0.0
    return wrapped


def wrap_position(
    position: Vector2, velocity: Vector2, width: float, height: float, boundary: str = "snap"
) -> Vector2:
    wrap = torus_coordinate if boundary == "torus" else wrap_coordinate
    return Vector2(wrap(position.x + velocity.x, width), wrap(position.y + velocity.y, height))

"""Route checkpoint generation between a walk's start and its target"""

import math
from dataclasses import dataclass

from .geo import Coordinate, distance_meters, interpolate

DEFAULT_SPACING_M = 100.0


@dataclass(frozen=True)
class Waypoint:
    """An interior waypoint, `order` starts at 1"""

    order: int
    coordinate: Coordinate


def generate_checkpoints(
    start: Coordinate,
    target: Coordinate | None,
    spacing_m: float = DEFAULT_SPACING_M,
) -> list[Waypoint]:
    """
    Interior checkpoints every `spacing_m` meters along the straight line start -> target.

    Open walks (no target) and walks shorter than two spacings get no checkpoints.
    """
    if target is None:
        return []

    distance = distance_meters(start, target)
    n = math.floor(distance / spacing_m)
    if n <= 1:
        return []

    return [
        Waypoint(order=i, coordinate=interpolate(start, target, i / n))
        for i in range(1, n)
    ]

"""Progress along a session's checkpoint route"""

from .geo import Coordinate, distance_meters

DEFAULT_RADIUS_M = 50.0


def is_checkpoint_reached(
    checkpoint: Coordinate, position: Coordinate, radius_m: float = DEFAULT_RADIUS_M
) -> bool:
    """True when position is strictly inside the checkpoint radius"""
    return distance_meters(checkpoint, position) < radius_m


def route_integrity(reached: int, total: int) -> float:
    """Percentage of checkpoints reached. Walks without checkpoints are fully intact."""
    if total <= 0:
        return 100.0
    return reached / total * 100

"""
Integrity checks for streamed GPS samples
- Device-reported mock location provider
- Low accuracy (soft rule, off by default)
- Velocity / teleport between consecutive samples
API:
    validate_sample(sample, prior, rules=ValidationRules())
"""

import logging
from dataclasses import dataclass

from ..config import Settings
from .geo import Coordinate, distance_meters

logger = logging.getLogger(__name__)

MOCK_GPS = "mock_gps"
TELEPORT = "teleport"
ROUTE_SKIPPED = "route_skipped"
LOW_ACCURACY = "low_accuracy"

SEVERITY_LOW = "low"
SEVERITY_MEDIUM = "medium"
SEVERITY_HIGH = "high"


@dataclass(frozen=True)
class GPSSample:
    """One location sample. `timestamp` is epoch seconds."""

    coordinate: Coordinate
    timestamp: float
    speed: float | None = None
    accuracy: float | None = None
    altitude: float | None = None
    is_mock: bool = False


@dataclass(frozen=True)
class IntegrityFinding:
    """An anomaly found in a sample and the trust penalty it carries"""

    flag_type: str
    severity: str
    description: str
    penalty: int = 0


@dataclass(frozen=True)
class ValidationRules:
    """Thresholds for the sample checks"""

    max_speed_ms: float = 10.0
    teleport_threshold_m: float = 500.0
    mock_penalty: int = 50
    teleport_penalty: int = 30
    low_accuracy_threshold_m: float = 100.0
    low_accuracy_enabled: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "ValidationRules":
        return cls(
            max_speed_ms=settings.max_human_speed_ms,
            teleport_threshold_m=settings.teleport_threshold_m,
            mock_penalty=settings.mock_gps_penalty,
            teleport_penalty=settings.teleport_penalty,
            low_accuracy_threshold_m=settings.low_accuracy_threshold_m,
            low_accuracy_enabled=settings.low_accuracy_check_enabled,
        )


def check_mock_provider(sample: GPSSample, rules: ValidationRules) -> IntegrityFinding | None:
    if not sample.is_mock:
        return None
    return IntegrityFinding(
        flag_type=MOCK_GPS,
        severity=SEVERITY_HIGH,
        description="device reported mock location provider",
        penalty=rules.mock_penalty,
    )


def check_accuracy(sample: GPSSample, rules: ValidationRules) -> IntegrityFinding | None:
    """Wide accuracy rings are common on cheap hardware, so this never penalizes."""
    if sample.accuracy is None or sample.accuracy <= rules.low_accuracy_threshold_m:
        return None

    if not rules.low_accuracy_enabled:
        logger.debug(f"Low accuracy sample ignored: {sample.accuracy:.0f}m")
        return None

    return IntegrityFinding(
        flag_type=LOW_ACCURACY,
        severity=SEVERITY_LOW,
        description=f"accuracy {round(sample.accuracy)}m",
        penalty=0,
    )


def check_velocity(
    sample: GPSSample, prior: GPSSample | None, rules: ValidationRules
) -> IntegrityFinding | None:
    """Flag large displacements at speeds no walker reaches."""
    if prior is None:
        return None

    elapsed_sec = sample.timestamp - prior.timestamp
    if elapsed_sec <= 0:
        return None

    distance_m = distance_meters(prior.coordinate, sample.coordinate)
    speed_ms = distance_m / elapsed_sec

    # Both conditions: a slow drift over a long idle gap is not a teleport
    if speed_ms > rules.max_speed_ms and distance_m > rules.teleport_threshold_m:
        return IntegrityFinding(
            flag_type=TELEPORT,
            severity=SEVERITY_HIGH,
            description=f"jumped {round(distance_m)}m at {round(speed_ms * 3.6)}km/h",
            penalty=rules.teleport_penalty,
        )
    return None


def validate_sample(
    sample: GPSSample,
    prior: GPSSample | None,
    rules: ValidationRules | None = None,
) -> list[IntegrityFinding]:
    """
    Run every check on a sample.

    Args:
        sample: The incoming sample
        prior: The session's most recent recorded sample, None for the first one
        rules: Thresholds, defaults match production

    Returns:
        Findings in check order. An empty list means a clean sample.
        Samples are never rejected here, findings only accumulate evidence.
    """
    rules = rules or ValidationRules()
    findings = [
        check_mock_provider(sample, rules),
        check_accuracy(sample, rules),
        check_velocity(sample, prior, rules),
    ]
    return [f for f in findings if f is not None]

"""Tests for the per-sample integrity checks"""

import pytest

from prayerwalk.services.geo import Coordinate
from prayerwalk.services.gps_validator import (
    LOW_ACCURACY,
    MOCK_GPS,
    SEVERITY_HIGH,
    TELEPORT,
    GPSSample,
    ValidationRules,
    check_velocity,
    validate_sample,
)


def sample(lat=0.0, lng=0.0, ts=1000.0, **kwargs) -> GPSSample:
    return GPSSample(coordinate=Coordinate(lat, lng), timestamp=ts, **kwargs)


def test_clean_sample():
    """A walking-pace sample produces no findings"""
    prior = sample(ts=1000)
    current = sample(lat=0.0001, ts=1010)  # ~11m in 10s
    assert validate_sample(current, prior) == []


def test_first_sample_has_no_velocity_check():
    assert validate_sample(sample(lat=45.0), None) == []


def test_mock_provider():
    findings = validate_sample(sample(is_mock=True), None)

    assert len(findings) == 1
    assert findings[0].flag_type == MOCK_GPS
    assert findings[0].severity == SEVERITY_HIGH
    assert findings[0].description == "device reported mock location provider"
    assert findings[0].penalty == 50


def test_teleport():
    """~600m in one second"""
    prior = sample(ts=1000)
    current = sample(lat=0.0054, ts=1001)

    findings = validate_sample(current, prior)

    assert [f.flag_type for f in findings] == [TELEPORT]
    assert findings[0].description == "jumped 600m at 2162km/h"
    assert findings[0].penalty == 30


def test_fast_but_short_is_not_teleport():
    """Above walking speed but under the distance threshold (GPS jitter)"""
    prior = sample(ts=1000)
    current = sample(lat=0.0036, ts=1001)  # ~400m
    assert check_velocity(current, prior, ValidationRules()) is None


def test_far_but_slow_is_not_teleport():
    """A long displacement over a long idle gap"""
    prior = sample(ts=1000)
    current = sample(lat=0.0054, ts=1000 + 120)  # ~600m in 2 minutes, 5m/s
    assert check_velocity(current, prior, ValidationRules()) is None


@pytest.mark.parametrize("ts", [1000, 999])
def test_non_increasing_timestamp_skips_velocity(ts):
    prior = sample(ts=1000)
    current = sample(lat=1.0, ts=ts)
    assert validate_sample(current, prior) == []


def test_mock_and_teleport_together():
    prior = sample(ts=1000)
    current = sample(lat=0.0054, ts=1001, is_mock=True)

    findings = validate_sample(current, prior)

    assert [f.flag_type for f in findings] == [MOCK_GPS, TELEPORT]
    assert sum(f.penalty for f in findings) == 80


def test_low_accuracy_ignored_by_default():
    assert validate_sample(sample(accuracy=250.0), None) == []


def test_low_accuracy_when_enabled():
    rules = ValidationRules(low_accuracy_enabled=True)

    findings = validate_sample(sample(accuracy=250.0), None, rules)
    assert [f.flag_type for f in findings] == [LOW_ACCURACY]
    assert findings[0].penalty == 0

    assert validate_sample(sample(accuracy=100.0), None, rules) == []


def test_rules_from_settings():
    from prayerwalk.config import Settings

    settings = Settings(teleport_penalty=25, max_human_speed_ms=8.0)
    rules = ValidationRules.from_settings(settings)
    assert rules.teleport_penalty == 25
    assert rules.max_speed_ms == 8.0
    assert rules.mock_penalty == 50

"""Tests for geo math and coordinate parsing"""

import pytest

from prayerwalk.services.geo import Coordinate, distance_meters, interpolate, parse_coordinate


def test_distance_meters():
    """Test distance calculation between two points"""
    origin = Coordinate(0, 0)
    assert distance_meters(origin, origin) == 0

    # ~111km for 1 degree at the equator
    dist = distance_meters(origin, Coordinate(0, 1))
    assert 110000 < dist < 112000

    # Antipodal points, half the earth circumference
    dist = distance_meters(origin, Coordinate(0, 180))
    assert 19900000 < dist < 20100000


@pytest.mark.parametrize(
    "a,b",
    [
        (Coordinate(51.5007, -0.1246), Coordinate(48.8584, 2.2945)),
        (Coordinate(-33.8568, 151.2153), Coordinate(40.6892, -74.0445)),
        (Coordinate(6.5244, 3.3792), Coordinate(6.5250, 3.3800)),
    ],
)
def test_distance_symmetric(a, b):
    """Distance is the same in both directions"""
    assert distance_meters(a, b) == pytest.approx(distance_meters(b, a))
    assert distance_meters(a, a) == 0
    assert distance_meters(b, b) == 0


def test_interpolate():
    """Linear interpolation in degree space"""
    a = Coordinate(10.0, 20.0)
    b = Coordinate(11.0, 22.0)

    assert interpolate(a, b, 0) == a
    assert interpolate(a, b, 1) == b
    mid = interpolate(a, b, 0.5)
    assert mid.latitude == pytest.approx(10.5)
    assert mid.longitude == pytest.approx(21.0)


def test_interpolate_rejects_ratio_outside_segment():
    with pytest.raises(ValueError):
        interpolate(Coordinate(0, 0), Coordinate(1, 1), 1.5)


def test_parse_coordinate_shapes():
    """Every accepted payload shape lands on the same Coordinate"""
    expected = Coordinate(6.5244, 3.3792)

    assert parse_coordinate({"latitude": 6.5244, "longitude": 3.3792}) == expected
    assert parse_coordinate({"lat": 6.5244, "lng": 3.3792}) == expected
    assert parse_coordinate({"lat": 6.5244, "lon": 3.3792}) == expected
    assert parse_coordinate({"type": "Point", "coordinates": [3.3792, 6.5244]}) == expected
    assert parse_coordinate([3.3792, 6.5244]) == expected
    assert parse_coordinate(expected) is expected


def test_parse_coordinate_string_numbers():
    assert parse_coordinate({"latitude": "1.5", "longitude": "2.5"}) == Coordinate(1.5, 2.5)


@pytest.mark.parametrize(
    "value",
    [
        None,
        "6.5,3.3",
        {"latitude": 6.5},
        {"lat": 6.5},
        [1.0],
        {"latitude": 91, "longitude": 0},
        {"latitude": 0, "longitude": -181},
        {"latitude": "north", "longitude": 0},
        {"latitude": float("nan"), "longitude": 0},
    ],
)
def test_parse_coordinate_rejects_invalid(value):
    with pytest.raises(ValueError):
        parse_coordinate(value)

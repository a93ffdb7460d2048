"""Tests for the haversine distance calculator."""

from __future__ import annotations

import math

import pytest

from tigerhall.services import geo


def test_same_point_is_zero() -> None:
    """A point is zero kilometres from itself."""
    assert geo.haversine_km(-6.18, 108.0, -6.18, 108.0) == 0.0


def test_meridian_distance() -> None:
    """Along a meridian the distance is R times the latitude difference."""
    distance = geo.haversine_km(-6.18, 108.0, -8.10, 108.0)
    expected = geo.EARTH_RADIUS_KM * math.radians(1.92)
    assert distance == pytest.approx(expected, rel=1e-9)
    assert distance == pytest.approx(213.49, abs=0.01)


def test_one_degree_of_longitude_at_equator() -> None:
    """One degree along the equator is about 111.19 km."""
    assert geo.haversine_km(0.0, 0.0, 0.0, 1.0) == pytest.approx(111.19, abs=0.01)


def test_london_to_new_york() -> None:
    """Matches the widely published reference value."""
    distance = geo.haversine_km(51.5007, -0.1246, 40.6892, -74.0445)
    assert distance == pytest.approx(5574.84, rel=1e-4)


def test_symmetric_and_non_negative() -> None:
    """Distance does not depend on argument order."""
    forward = geo.haversine_km(10.0, 20.0, -30.0, 140.0)
    backward = geo.haversine_km(-30.0, 140.0, 10.0, 20.0)
    assert forward == pytest.approx(backward)
    assert forward > 0


def test_antipodal_points() -> None:
    """Antipodal points are half the circumference apart."""
    distance = geo.haversine_km(0.0, 0.0, 0.0, 180.0)
    assert distance == pytest.approx(math.pi * geo.EARTH_RADIUS_KM)

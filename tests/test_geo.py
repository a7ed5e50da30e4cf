from __future__ import annotations

import math

import pytest

from venuetrust.core.geo import EARTH_RADIUS_M, distance_m, validate_coordinate
from venuetrust.errors import InvalidCoordinate


def test_distance_is_zero_for_identical_points():
    assert distance_m(25.034, 121.5645, 25.034, 121.5645) == 0.0


def test_distance_is_symmetric():
    a = (48.8566, 2.3522)
    b = (51.5074, -0.1278)
    assert distance_m(*a, *b) == pytest.approx(distance_m(*b, *a), abs=1e-6)


def test_one_degree_along_a_meridian_and_the_equator():
    one_degree = EARTH_RADIUS_M * math.pi / 180.0
    assert distance_m(0.0, 0.0, 1.0, 0.0) == pytest.approx(one_degree, rel=1e-9)
    assert distance_m(0.0, 0.0, 0.0, 1.0) == pytest.approx(one_degree, rel=1e-9)


def test_new_york_to_los_angeles_matches_reference_haversine():
    d = distance_m(40.7128, -74.0060, 34.0522, -118.2437)
    assert d == pytest.approx(3_935_746, rel=1e-3)


def test_antipodal_points_do_not_raise_domain_errors():
    d = distance_m(0.0, 0.0, 0.0, 180.0)
    assert d == pytest.approx(math.pi * EARTH_RADIUS_M, rel=1e-9)


@pytest.mark.parametrize(
    "lat,lon",
    [(91.0, 0.0), (-90.5, 0.0), (0.0, 180.5), (0.0, -181.0), (float("nan"), 0.0), (0.0, float("inf"))],
)
def test_out_of_range_coordinates_raise(lat, lon):
    with pytest.raises(InvalidCoordinate):
        validate_coordinate(lat, lon)
    with pytest.raises(InvalidCoordinate):
        distance_m(lat, lon, 0.0, 0.0)


def test_invalid_coordinate_is_a_value_error():
    with pytest.raises(ValueError):
        validate_coordinate(100.0, 0.0)

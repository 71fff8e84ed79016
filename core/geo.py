#!/usr/bin/env python3
# TripMeter - GPS trip distance engine
# Copyright (C) 2024 TripMeter Contributors
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.

"""
Geodesic helpers.

All functions are fail-soft: invalid coordinates yield 0 instead of raising,
because GPS providers routinely emit garbage and the caller must never crash
on a single bad fix.
"""
import math
from numbers import Real

import numpy as np

import config

EARTH_RADIUS_M = getattr(config, 'EARTH_RADIUS_M', 6_371_000)


def is_valid_coordinate(lat, lon):
    """True iff both values are finite numbers inside the WGS-84 ranges."""
    if isinstance(lat, bool) or isinstance(lon, bool):
        return False
    if not isinstance(lat, Real) or not isinstance(lon, Real):
        return False
    if not (math.isfinite(lat) and math.isfinite(lon)):
        return False
    return -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0


def is_null_island(lat, lon):
    """(0, 0) is a valid coordinate but in practice means "no fix yet"."""
    return lat == 0 and lon == 0


def is_usable_coordinate(lat, lon):
    """Valid and not the (0, 0) sentinel."""
    return is_valid_coordinate(lat, lon) and not is_null_island(lat, lon)


def haversine_m(lat1, lon1, lat2, lon2):
    """
    Great-circle distance in meters between two WGS-84 points.

    Uses the atan2 form, which stays accurate for the few-meter segments the
    pipeline mostly deals with (the acos form loses precision there).

    Returns:
        float: distance in meters, or 0.0 if either point is invalid
    """
    if not is_valid_coordinate(lat1, lon1) or not is_valid_coordinate(lat2, lon2):
        return 0.0

    rlat1, rlat2 = math.radians(lat1), math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = math.sin(dlat / 2) ** 2 + math.cos(rlat1) * math.cos(rlat2) * math.sin(dlon / 2) ** 2
    # Rounding can push a marginally outside [0, 1] for antipodal points
    a = min(1.0, max(0.0, a))
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def distance_meters(a, b):
    """Distance between two objects exposing ``latitude``/``longitude``."""
    return haversine_m(a.latitude, a.longitude, b.latitude, b.longitude)


def position_spread_m(points, min_points=3):
    """
    RMS distance of positions from their centroid, in meters.

    This is the "positional variance" used to tell GPS bounce at one spot
    from genuine travel.

    Args:
        points: sequence of objects with ``latitude``/``longitude``
        min_points: below this count the spread is reported as 0

    Returns:
        float: RMS spread in meters
    """
    if len(points) < min_points:
        return 0.0

    lats = np.fromiter((p.latitude for p in points), dtype=float, count=len(points))
    lons = np.fromiter((p.longitude for p in points), dtype=float, count=len(points))
    centroid_lat = float(np.mean(lats))
    centroid_lon = float(np.mean(lons))

    dists = np.array([
        haversine_m(centroid_lat, centroid_lon, lat, lon)
        for lat, lon in zip(lats.tolist(), lons.tolist())
    ])
    return float(np.sqrt(np.mean(dists ** 2)))


def path_length_m(points):
    """Sum of consecutive segment lengths through ``points``."""
    points = list(points)
    total = 0.0
    for prev, curr in zip(points, points[1:]):
        total += distance_meters(prev, curr)
    return total


def net_displacement_m(points):
    """Straight-line distance from the first to the last point."""
    points = list(points)
    if len(points) < 2:
        return 0.0
    return distance_meters(points[0], points[-1])

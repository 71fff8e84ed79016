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
End-of-trip distance recomputation.

Replays a stored trip through the same segment pipeline as the streaming
engine, over raw positions and with fresh buffers. The result depends only on
the set of samples, never on their input order or on any streaming state.
"""
import logging
import math
from collections import deque
from numbers import Real

from .accumulator import DistanceAccumulator, SegmentContext
from .geo import is_usable_coordinate, position_spread_m
from .structures import FilteredPoint, RawSample, TripSummary
from .tuning import TrackerConfig

logger = logging.getLogger(__name__)


def _is_finite(value):
    return isinstance(value, Real) and not isinstance(value, bool) and math.isfinite(value)


def _order_value(value):
    """Total-order key for optional numeric fields (None and NaN sort last)."""
    if _is_finite(value):
        return (0, float(value))
    return (1, 0.0)


def _sort_key(sample):
    # Ties on timestamp are broken by the remaining fields so that
    # permutations of the same set always replay identically
    return (
        _order_value(sample.timestamp_ms),
        _order_value(sample.latitude),
        _order_value(sample.longitude),
        _order_value(sample.accuracy_m),
        _order_value(sample.speed_mps),
        sample.is_stationary is True,
    )


def _coerce(samples):
    """
    Convert stored records to RawSample.

    Returns:
        tuple: (list of RawSample, number of records that could not be read)
    """
    coerced = []
    malformed = 0
    for idx, sample in enumerate(samples):
        if isinstance(sample, RawSample):
            coerced.append(sample)
            continue
        try:
            coerced.append(RawSample.from_dict(sample))
        except (TypeError, ValueError, OverflowError, AttributeError) as e:
            malformed += 1
            logger.debug(f"Skipped malformed record #{idx}: {e}")
    return coerced, malformed


def sort_samples(samples):
    """Coerce records to RawSample and sort them deterministically by time.

    Records that cannot be read are dropped.
    """
    return sorted(_coerce(samples)[0], key=_sort_key)


def _to_point(sample, cfg):
    accuracy = sample.accuracy_m
    if not isinstance(accuracy, Real) or isinstance(accuracy, bool) or not accuracy > 0:
        accuracy = cfg.default_accuracy_m
    speed = sample.speed_mps if isinstance(sample.speed_mps, Real) else None
    return FilteredPoint(
        latitude=sample.latitude,
        longitude=sample.longitude,
        timestamp_ms=sample.timestamp_ms,
        accuracy_m=float(accuracy),
        speed_mps=speed or 0.0,
        raw_latitude=sample.latitude,
        raw_longitude=sample.longitude,
        reported_speed_mps=speed,
        heading_deg=sample.heading_deg,
    )


def recompute_trip(samples, tracker_config=None):
    """
    Recompute a finished trip and return the full counters.

    Args:
        samples: iterable of RawSample or stored record dicts
        tracker_config: TrackerConfig, defaults to ``TrackerConfig.for_batch()``

    Returns:
        TripSummary
    """
    cfg = tracker_config or TrackerConfig.for_batch()
    summary = TripSummary()
    accumulator = DistanceAccumulator(cfg)
    recent = deque(maxlen=cfg.variance_window)
    consecutive_moving = 0

    coerced, malformed = _coerce(samples)
    summary.samples = malformed
    summary.invalid_samples = malformed

    for sample in sorted(coerced, key=_sort_key):
        summary.samples += 1
        if not (_is_finite(sample.timestamp_ms)
                and is_usable_coordinate(sample.latitude, sample.longitude)):
            summary.invalid_samples += 1
            continue

        if summary.first_timestamp_ms is None:
            summary.first_timestamp_ms = sample.timestamp_ms
        summary.last_timestamp_ms = sample.timestamp_ms

        point = _to_point(sample, cfg)
        recent.append(point)
        spread = position_spread_m(recent)

        flagged = sample.is_stationary is True
        still = flagged or (len(recent) >= cfg.variance_min_samples
                            and spread < cfg.variance_floor_m)
        if still:
            consecutive_moving = 0
            accumulator.end_motion()
        else:
            consecutive_moving += 1

        if accumulator.anchor is None:
            accumulator.reanchor(point)
            continue

        context = SegmentContext(
            position_spread_m=spread,
            spread_samples=len(recent),
            consecutive_moving=consecutive_moving,
            flagged_stationary=flagged,
        )
        summary.candidate_segments += 1
        _, rejection = accumulator.offer(point, context)
        if rejection is not None:
            summary.rejections[rejection] += 1
        else:
            summary.accepted_segments += 1

    summary.total_distance_m = accumulator.total_m
    logger.info(
        f"Recomputed {summary.samples} samples: {summary.total_distance_km:.3f} km, "
        f"{summary.accepted_segments}/{summary.candidate_segments} segments accepted"
    )
    return summary


def recompute_distance(samples, tracker_config=None):
    """
    Total distance of a finished trip in kilometers.

    Samples need not be sorted. Calling this twice on the same set of
    samples gives the same result.
    """
    return recompute_trip(samples, tracker_config).total_distance_km

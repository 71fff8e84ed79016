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
Tests for end-of-trip distance recomputation.
"""
import os
import random
import sys
from dataclasses import replace

import pytest

# Add parent directory to path for imports
PARENT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PARENT_DIR not in sys.path:
    sys.path.insert(0, PARENT_DIR)

from core.batch import recompute_distance, recompute_trip, sort_samples
from core.structures import RawSample, REJECT_DEBOUNCE, REJECT_SPEED
from core.tracker import TripTracker
from synthetic import (
    START_MS,
    feed,
    offset,
    parked_trip,
    straight_trip,
    to_raw_samples,
    to_storage_records,
)


def _straight():
    return to_raw_samples(straight_trip(count=10, step_m=20.0))


def test_straight_trip_distance():
    """Only the onset segment is held back by the 3-sample debounce."""
    assert recompute_distance(_straight()) == pytest.approx(0.160, abs=1e-3)


def test_straight_trip_summary():
    summary = recompute_trip(_straight())
    assert summary.samples == 10
    assert summary.candidate_segments == 9
    assert summary.accepted_segments == 8
    assert dict(summary.rejections) == {REJECT_DEBOUNCE: 1}


def test_order_independent():
    samples = _straight()
    expected = recompute_distance(samples)

    assert recompute_distance(list(reversed(samples))) == expected
    shuffled = list(samples)
    random.Random(7).shuffle(shuffled)
    assert recompute_distance(shuffled) == expected


def test_order_independent_with_duplicate_timestamps():
    samples = _straight()
    twin_lat, twin_lon = offset(45.0)
    samples.append(RawSample(twin_lat, twin_lon, samples[2].timestamp_ms, 5.0, 4.0))
    expected = recompute_distance(samples)
    assert recompute_distance(list(reversed(samples))) == expected


def test_idempotent():
    samples = _straight()
    assert recompute_distance(samples) == recompute_distance(samples)


def test_accepts_storage_records():
    records = to_storage_records(straight_trip(count=10, step_m=20.0))
    assert recompute_distance(records) == pytest.approx(recompute_distance(_straight()))


def test_parked_trip_is_zero():
    samples = to_raw_samples(parked_trip(count=13, radius_m=2.0))
    assert recompute_distance(samples) == 0.0


def test_stationary_flags_are_honored():
    samples = to_raw_samples(straight_trip(count=10, step_m=20.0), is_stationary=True)
    summary = recompute_trip(samples)
    assert summary.total_distance_m == 0.0
    assert summary.candidate_segments == summary.rejected_segments


def test_coarse_accuracy_is_rejected():
    samples = to_raw_samples(straight_trip(count=10, step_m=20.0, accuracy_m=80.0))
    assert recompute_distance(samples) == 0.0


def test_null_island_and_invalid_points_are_skipped():
    samples = _straight()
    noisy = list(samples)
    noisy.insert(4, RawSample(0.0, 0.0, samples[3].timestamp_ms + 1000, 5.0, 4.0))
    noisy.insert(7, RawSample(float('nan'), 13.4, samples[5].timestamp_ms + 1000))
    summary = recompute_trip(noisy)
    assert summary.invalid_samples == 2
    assert summary.total_distance_km == pytest.approx(recompute_distance(samples))


def test_teleport_is_rejected_as_implausible():
    samples = _straight()
    far_lat, far_lon = offset(10_000.0)
    teleport = RawSample(far_lat, far_lon, samples[5].timestamp_ms + 2500, 5.0, 4.0)
    summary = recompute_trip(samples + [teleport])
    assert summary.rejections[REJECT_SPEED] == 1
    assert summary.total_distance_km == pytest.approx(recompute_distance(samples))


def test_independent_of_streaming_state():
    """A tracker that saw the same trip has no influence on recomputation."""
    samples = straight_trip(count=10, step_m=20.0)
    before = recompute_distance(to_raw_samples(samples))
    feed(TripTracker(), samples)
    assert recompute_distance(to_raw_samples(samples)) == before


def test_sort_samples_puts_garbage_last_on_ties():
    good = RawSample(52.52, 13.405, START_MS)
    bad = replace(good, latitude=float('nan'))
    assert sort_samples([bad, good]) == [good, bad]
    assert sort_samples([good, bad]) == [good, bad]


def test_empty_input():
    assert recompute_distance([]) == 0.0


@pytest.mark.parametrize("timestamp", [None, float('nan'), float('inf'), "abc"])
def test_malformed_timestamp_sample_is_skipped(timestamp):
    samples = _straight()
    summary = recompute_trip(samples + [RawSample(52.6, 13.4, timestamp_ms=timestamp)])
    assert summary.samples == 11
    assert summary.invalid_samples == 1
    assert summary.total_distance_km == pytest.approx(recompute_distance(samples))


@pytest.mark.parametrize("timestamp", [float('nan'), float('inf'), "abc"])
def test_malformed_stored_record_is_skipped(timestamp):
    records = to_storage_records(straight_trip(count=10, step_m=20.0))
    bad = {'latitude': 52.52, 'longitude': 13.405, 'timestamp': timestamp}
    summary = recompute_trip(records + [bad, "not a record"])
    assert summary.samples == 12
    assert summary.invalid_samples == 2
    assert summary.total_distance_km == pytest.approx(recompute_distance(records))


def test_only_malformed_records():
    assert recompute_distance([{'latitude': 52.52, 'longitude': 13.405, 'timestamp': float('nan')}]) == 0.0
    assert sort_samples([{'latitude': 52.52, 'longitude': 13.405, 'timestamp': 'abc'}]) == []

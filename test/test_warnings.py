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
Tests for trip diagnostics (warnings and cautions).
"""
import os
import sys
from collections import Counter

import pytest

# Add parent directory to path for imports
PARENT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PARENT_DIR not in sys.path:
    sys.path.insert(0, PARENT_DIR)

from core.structures import (
    REJECT_ACCURACY,
    REJECT_SHORT,
    REJECT_SPEED,
    REJECT_STATIONARY,
    TripSummary,
)
from core.warnings import compute_warnings

HOUR_MS = 3600 * 1000


def _summary(accepted=40, rejections=None, samples=60, invalid=0, duration_ms=HOUR_MS,
             unlocks=1, locks=0, total_m=5000.0):
    rejections = Counter(rejections or {})
    return TripSummary(
        total_distance_m=total_m,
        samples=samples,
        invalid_samples=invalid,
        candidate_segments=accepted + sum(rejections.values()),
        accepted_segments=accepted,
        rejections=rejections,
        unlock_count=unlocks,
        lock_count=locks,
        first_timestamp_ms=0,
        last_timestamp_ms=duration_ms,
    )


def test_clean_trip_has_no_diagnostics():
    warnings, cautions = compute_warnings(_summary(rejections={REJECT_SHORT: 5}),
                                          recomputed_km=5.1, gps_frequency=1.0)
    assert warnings == {}
    assert cautions == {}


def test_all_segments_rejected():
    warnings, _ = compute_warnings(_summary(accepted=0, rejections={REJECT_STATIONARY: 30}))
    assert 'all_rejected' in warnings
    assert 'no_movement' in warnings


@pytest.mark.parametrize("accepted,rejected,bucket", [
    (5, 95, 'warnings'),
    (30, 70, 'cautions'),
    (50, 50, None),
])
def test_rejection_ratio(accepted, rejected, bucket):
    warnings, cautions = compute_warnings(_summary(accepted=accepted,
                                                   rejections={REJECT_SHORT: rejected}))
    assert ('rejections' in warnings) == (bucket == 'warnings')
    assert ('rejections' in cautions) == (bucket == 'cautions')


def test_coarse_accuracy_and_implausible_speed_cautions():
    _, cautions = compute_warnings(_summary(accepted=30,
                                            rejections={REJECT_ACCURACY: 10, REJECT_SPEED: 6}))
    assert 'coarse_accuracy' in cautions
    assert 'implausible_speed' in cautions


def test_short_log_without_movement_is_not_flagged():
    warnings, _ = compute_warnings(_summary(accepted=0, samples=10))
    assert 'no_movement' not in warnings


def test_lock_flapping():
    warnings, _ = compute_warnings(_summary(unlocks=3, locks=2, duration_ms=HOUR_MS // 10))
    assert 'lock_flapping' in warnings

    warnings, _ = compute_warnings(_summary(unlocks=3, locks=2, duration_ms=HOUR_MS))
    assert 'lock_flapping' not in warnings


def test_invalid_samples_caution():
    _, cautions = compute_warnings(_summary(samples=100, invalid=10))
    assert 'invalid_samples' in cautions
    _, cautions = compute_warnings(_summary(samples=100, invalid=2))
    assert 'invalid_samples' not in cautions


@pytest.mark.parametrize("recomputed_km,bucket", [
    (5.0, None),
    (4.0, None),
    (3.5, 'cautions'),
    (2.0, 'warnings'),
    (12.0, 'warnings'),
])
def test_recompute_mismatch(recomputed_km, bucket):
    warnings, cautions = compute_warnings(_summary(total_m=5000.0), recomputed_km=recomputed_km)
    assert ('distance_mismatch' in warnings) == (bucket == 'warnings')
    assert ('distance_mismatch' in cautions) == (bucket == 'cautions')


def test_recompute_both_zero():
    warnings, cautions = compute_warnings(_summary(total_m=0.0), recomputed_km=0.0)
    assert 'distance_mismatch' not in warnings
    assert 'distance_mismatch' not in cautions


@pytest.mark.parametrize("frequency,bucket", [
    (0.02, 'warnings'),
    (0.1, 'cautions'),
    (1.0, None),
    (0, None),
    (None, None),
])
def test_gps_frequency(frequency, bucket):
    warnings, cautions = compute_warnings(_summary(), gps_frequency=frequency)
    assert ('gps_frequency' in warnings) == (bucket == 'warnings')
    assert ('gps_frequency' in cautions) == (bucket == 'cautions')


def test_nmea_quality():
    quality = {
        'invalid_ratio': 0.2,
        'low_fix_count': 0,
        'low_sat_count': 2,
        'high_hdop_count': 30,
        'total_points': 100,
        'gga_points': 100,
    }
    warnings, _ = compute_warnings(_summary(), quality=quality)
    assert 'gps_validity' in warnings
    assert 'gps_quality' in warnings

    quality.update(invalid_ratio=0.07, high_hdop_count=5)
    warnings, cautions = compute_warnings(_summary(), quality=quality)
    assert 'gps_validity' in cautions
    assert 'gps_quality' in cautions
    assert warnings == {}

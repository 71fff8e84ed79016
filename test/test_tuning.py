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
Tests for tracker tuning parameters and profiles.
"""
import logging
import os
import sys

import pytest

# Add parent directory to path for imports
PARENT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PARENT_DIR not in sys.path:
    sys.path.insert(0, PARENT_DIR)

import config
from core.tuning import TrackerConfig, validate_param


def test_defaults_follow_config():
    cfg = TrackerConfig()
    assert cfg.min_segment_m == config.MIN_SEGMENT_M
    assert cfg.lock_release_m == config.LOCK_RELEASE_METERS
    assert cfg.debounce_moving_count == config.DEBOUNCE_MOVING_COUNT


def test_from_overrides_applies_valid_values():
    cfg = TrackerConfig.from_overrides(min_segment_m=8.0, dwell_radius_m=25)
    assert cfg.min_segment_m == 8.0
    assert cfg.dwell_radius_m == 25
    assert TrackerConfig().min_segment_m == config.MIN_SEGMENT_M


@pytest.mark.parametrize("value", [-1.0, 0, None, "5", True, float('nan')])
def test_from_overrides_invalid_value_falls_back(value, caplog):
    with caplog.at_level(logging.WARNING):
        cfg = TrackerConfig.from_overrides(min_segment_m=value)
    assert cfg.min_segment_m == config.MIN_SEGMENT_M
    assert "min_segment_m" in caplog.text


def test_ratio_parameters_are_bounded():
    assert TrackerConfig.from_overrides(motion_smoothing=0.0).motion_smoothing == 0.0
    cfg = TrackerConfig.from_overrides(motion_smoothing=1.5)
    assert cfg.motion_smoothing == config.MOTION_SMOOTHING


def test_from_overrides_unknown_name():
    with pytest.raises(TypeError):
        TrackerConfig.from_overrides(min_segment_meters=3.0)


def test_integer_parameters_stay_integers():
    cfg = TrackerConfig.from_overrides(variance_window=6.0)
    assert cfg.variance_window == 6
    assert isinstance(cfg.variance_window, int)
    assert TrackerConfig.from_overrides(gate_buffer_size=0.5).gate_buffer_size == config.GATE_BUFFER_SIZE


def test_for_batch():
    cfg = TrackerConfig.for_batch()
    assert cfg.variance_window == 8
    assert cfg.variance_floor_m == 20.0
    assert cfg.debounce_moving_count == 3
    assert cfg.min_segment_speed_mps == pytest.approx(1.0 / 3.6)
    assert cfg.max_segment_speed_mps == pytest.approx(200.0 / 3.6)
    # Everything else is inherited
    assert cfg.min_segment_m == TrackerConfig().min_segment_m


def test_for_batch_keeps_profile_values():
    cfg = TrackerConfig.for_batch(TrackerConfig.for_profile('walking'))
    assert cfg.min_segment_m == 3.0
    assert cfg.debounce_moving_count == 3


def test_for_profile():
    walking = TrackerConfig.for_profile('walking')
    assert walking.min_segment_m == 3.0
    assert walking.max_segment_speed_mps == 8.0
    assert TrackerConfig.for_profile('default') == TrackerConfig()


def test_unknown_profile():
    with pytest.raises(ValueError):
        TrackerConfig.for_profile('rocket')


@pytest.mark.parametrize("value,expected", [
    (3.0, 3.0),
    (0.0, 9.0),
    (11.0, 9.0),
    (10.0, 10.0),
])
def test_validate_param(value, expected):
    assert validate_param('x', value, 9.0, max_value=10.0) == expected


@pytest.mark.parametrize("name", ['gate_buffer_size', 'variance_window', 'geometry_buffer_size'])
@pytest.mark.parametrize("value", [0.5, 2.5])
def test_fractional_count_falls_back(name, value, caplog):
    """Truncating a fraction would silently shrink a buffer."""
    with caplog.at_level(logging.WARNING):
        cfg = TrackerConfig.from_overrides(**{name: value})
    assert getattr(cfg, name) == getattr(TrackerConfig(), name)
    assert name in caplog.text

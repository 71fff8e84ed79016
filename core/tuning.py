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
Tracker tuning parameters.

TrackerConfig collects every threshold the pipeline reads. Defaults come from
the ``config`` module; callers retune for walking vs. vehicle trips through
``for_profile`` or ``from_overrides`` without touching algorithm code.
"""
import logging
import math
from dataclasses import dataclass, fields, replace

import config

logger = logging.getLogger(__name__)


def validate_param(name, value, default, min_value=0.0, max_value=None):
    """
    Validates parameter and replaces with default if invalid.

    Args:
        name: parameter name
        value: value to validate
        default: default value
        min_value: minimum allowed value (exclusive)
        max_value: maximum allowed value

    Returns:
        valid parameter value
    """
    if (value is None or isinstance(value, bool) or not isinstance(value, (int, float))
            or not math.isfinite(value) or value <= min_value
            or (max_value is not None and value > max_value)):
        logger.warning(f"Invalid value for {name}: {value!r}, using default {default!r}")
        return default
    return value


# Parameters that are ratios in [0, 1]
_UNIT_INTERVAL = {
    'motion_smoothing',
    'motion_inertial_weight',
    'motion_stationary_threshold',
    'motion_moving_threshold',
    'motion_low_speed_cap',
    'inertial_smoothing',
    'inertial_initial_confidence',
}


@dataclass(frozen=True)
class TrackerConfig:
    """Thresholds for the estimator, classifier, gate and segment pipeline."""

    # Input defaults
    default_accuracy_m: float = getattr(config, 'DEFAULT_ACCURACY_M', 20.0)

    # Position estimator
    kalman_process_noise: float = getattr(config, 'KALMAN_PROCESS_NOISE', 2.0)
    kalman_measurement_noise_m: float = getattr(config, 'KALMAN_MEASUREMENT_NOISE_M', 12.0)

    # Motion classifier
    motion_smoothing: float = getattr(config, 'MOTION_SMOOTHING', 0.5)
    motion_inertial_weight: float = getattr(config, 'MOTION_INERTIAL_WEIGHT', 0.6)
    motion_stationary_threshold: float = getattr(config, 'MOTION_STATIONARY_THRESHOLD', 0.25)
    motion_moving_threshold: float = getattr(config, 'MOTION_MOVING_THRESHOLD', 0.6)
    motion_low_speed_cap: float = getattr(config, 'MOTION_LOW_SPEED_CAP', 0.3)
    geometry_buffer_size: int = getattr(config, 'GEOMETRY_BUFFER_SIZE', 10)
    geometry_default_accuracy_m: float = getattr(config, 'GEOMETRY_DEFAULT_ACCURACY_M', 25.0)
    geometry_device_speed_mps: float = getattr(config, 'GEOMETRY_DEVICE_SPEED_MPS', 0.5)
    inertial_window_size: int = getattr(config, 'INERTIAL_WINDOW_SIZE', 20)
    inertial_min_samples: int = getattr(config, 'INERTIAL_MIN_SAMPLES', 5)
    inertial_stillness_threshold: float = getattr(config, 'INERTIAL_STILLNESS_THRESHOLD', 0.02)
    inertial_movement_threshold: float = getattr(config, 'INERTIAL_MOVEMENT_THRESHOLD', 0.05)
    inertial_smoothing: float = getattr(config, 'INERTIAL_SMOOTHING', 0.7)
    inertial_initial_confidence: float = getattr(config, 'INERTIAL_INITIAL_CONFIDENCE', 0.5)

    # Movement gate
    min_moving_speed_mps: float = getattr(config, 'MIN_MOVING_SPEED_MPS', 0.4)
    gate_buffer_size: int = getattr(config, 'GATE_BUFFER_SIZE', 20)
    gate_min_buffered: int = getattr(config, 'GATE_MIN_BUFFERED', 4)
    gate_min_window_points: int = getattr(config, 'GATE_MIN_WINDOW_POINTS', 3)
    lock_release_m: float = getattr(config, 'LOCK_RELEASE_METERS', 15.0)
    lock_release_window_s: float = getattr(config, 'LOCK_RELEASE_SECONDS', 20.0)
    lock_radius_m: float = getattr(config, 'LOCK_RADIUS_METERS', 12.0)
    lock_max_speed_mps: float = getattr(config, 'LOCK_MAX_SPEED_MPS', 0.5)
    dwell_radius_m: float = getattr(config, 'DWELL_RADIUS_METERS', 12.0)
    consecutive_moving_threshold: int = getattr(config, 'CONSECUTIVE_MOVING_THRESHOLD', 2)
    consecutive_stationary_threshold: int = getattr(config, 'CONSECUTIVE_STATIONARY_THRESHOLD', 4)

    # Segment validation pipeline
    max_accuracy_m: float = getattr(config, 'MAX_ACCURACY_M', 50.0)
    min_segment_m: float = getattr(config, 'MIN_SEGMENT_M', 5.0)
    min_segment_speed_mps: float = getattr(config, 'MIN_SEGMENT_SPEED_MPS', 0.5)
    max_segment_speed_mps: float = getattr(config, 'MAX_SEGMENT_SPEED_MPS', 55.0)
    variance_window: int = getattr(config, 'VARIANCE_WINDOW', 10)
    variance_floor_m: float = getattr(config, 'VARIANCE_FLOOR_M', 8.0)
    variance_min_samples: int = getattr(config, 'VARIANCE_MIN_SAMPLES', 5)
    debounce_moving_count: int = getattr(config, 'DEBOUNCE_MOVING_COUNT', 2)

    @classmethod
    def from_overrides(cls, base=None, **overrides):
        """
        Return a config with ``overrides`` applied on top of ``base``.

        Unknown names raise TypeError. Values that are not positive numbers
        (or ratios outside [0, 1], or fractions for count parameters) fall
        back to the base value with a warning.
        """
        base = base or cls()
        known = {f.name for f in fields(cls)}
        unknown = set(overrides) - known
        if unknown:
            raise TypeError(f"Unknown tracker parameters: {', '.join(sorted(unknown))}")

        checked = {}
        for name, value in overrides.items():
            default = getattr(base, name)
            if name in _UNIT_INTERVAL:
                value = validate_param(name, value, default, min_value=-1e-12, max_value=1.0)
            else:
                value = validate_param(name, value, default)
            if isinstance(default, int) and not isinstance(default, bool):
                # Counts and window sizes must be whole numbers
                if value != int(value):
                    logger.warning(f"Invalid value for {name}: {value!r}, using default {default!r}")
                    value = default
                value = int(value)
            checked[name] = value
        return replace(base, **checked)

    @classmethod
    def for_batch(cls, base=None):
        """Thresholds for end-of-trip recomputation over raw positions."""
        return cls.from_overrides(base, **getattr(config, 'BATCH_OVERRIDES', {}))

    @classmethod
    def for_profile(cls, name):
        """Preset for a travel mode defined in ``config.PROFILES``."""
        profiles = getattr(config, 'PROFILES', {})
        if name not in profiles:
            raise ValueError(f"Unknown profile '{name}'. Available: {', '.join(sorted(profiles))}")
        return cls.from_overrides(**profiles[name])

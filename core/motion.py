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
Motion classification.

Two independent evidence sources estimate whether the device is really
moving:

- inertial: variability of the accelerometer magnitude around 1 g
- GPS geometry: net displacement, path straightness and speed over the last
  few fixes

Both implement ``MotionSignal`` so tests (and callers without a sensor) can
plug in synthetic providers. ``MotionClassifier`` blends them and smooths the
result into a confidence score plus a discrete state.
"""
import logging
from abc import ABC, abstractmethod
from collections import deque
from typing import Optional

import numpy as np

from .geo import distance_meters, net_displacement_m, path_length_m
from .structures import MotionReading, MotionState, MS_TO_S
from .tuning import TrackerConfig

logger = logging.getLogger(__name__)


class MotionSignal(ABC):
    """A source of motion confidence in [0, 1]."""

    @abstractmethod
    def confidence(self) -> Optional[float]:
        """Current confidence, or None when the source is unavailable."""

    def reset(self):
        """Forget accumulated history."""


class ReportedMotionSignal(MotionSignal):
    """Confidence supplied by the caller with every sample.

    Zero or a missing value means the device has no usable motion sensor.
    """

    def __init__(self, value=None):
        self.value = value

    def set(self, value):
        self.value = value

    def confidence(self) -> Optional[float]:
        if self.value is None or isinstance(self.value, bool):
            return None
        try:
            value = float(self.value)
        except (TypeError, ValueError):
            return None
        if not np.isfinite(value) or value <= 0:
            return None
        return min(value, 1.0)

    def reset(self):
        self.value = None


class InertialMotionSignal(MotionSignal):
    """
    Accelerometer-derived confidence.

    Readings are in g. The deviation of the magnitude from 1 g is collected
    over a sliding window; activity = mean + 2 * std. Activity below the
    stillness threshold maps to 0, above the movement threshold to 1, with a
    linear ramp in between. The result is exponentially smoothed.
    """

    def __init__(self, tracker_config=None):
        self.config = tracker_config or TrackerConfig()
        self._deviations = deque(maxlen=self.config.inertial_window_size)
        self._smoothed = self.config.inertial_initial_confidence
        self.activity_level = 0.0

    def add_reading(self, x, y, z):
        """Feed one accelerometer reading (g units)."""
        magnitude = float(np.sqrt(x * x + y * y + z * z))
        if not np.isfinite(magnitude):
            return
        self._deviations.append(abs(magnitude - 1.0))

        if len(self._deviations) < self.config.inertial_min_samples:
            return

        window = np.asarray(self._deviations, dtype=float)
        self.activity_level = float(window.mean() + 2.0 * window.std())
        raw = self.activity_to_confidence(self.activity_level)
        alpha = self.config.inertial_smoothing
        self._smoothed = self._smoothed * alpha + raw * (1.0 - alpha)

    def activity_to_confidence(self, activity):
        still = self.config.inertial_stillness_threshold
        moving = self.config.inertial_movement_threshold
        if activity < still:
            return 0.0
        if activity > moving:
            return 1.0
        return (activity - still) / (moving - still)

    def confidence(self) -> Optional[float]:
        if len(self._deviations) < self.config.inertial_min_samples:
            return None
        return self._smoothed

    def reset(self):
        self._deviations.clear()
        self._smoothed = self.config.inertial_initial_confidence
        self.activity_level = 0.0


class GpsGeometrySignal(MotionSignal):
    """
    Confidence from the shape of the recent track.

    A random walk around one spot has low straightness and a net displacement
    comparable to the reported accuracy; real travel is straight-ish and
    clears the accuracy radius comfortably.
    """

    def __init__(self, tracker_config=None):
        self.config = tracker_config or TrackerConfig()
        self._points = deque(maxlen=self.config.geometry_buffer_size)

    def observe(self, point):
        """Add a FilteredPoint to the ring buffer."""
        self._points.append(point)

    def confidence(self) -> Optional[float]:
        points = list(self._points)
        if len(points) < 3:
            return 0.0

        oldest, newest = points[0], points[-1]
        net = distance_meters(oldest, newest)
        path = path_length_m(points)
        window_s = (newest.timestamp_ms - oldest.timestamp_ms) / MS_TO_S
        default_acc = self.config.geometry_default_accuracy_m
        avg_accuracy = float(np.mean([p.accuracy_m or default_acc for p in points]))

        straightness = net / path if path > 0 else 0.0
        net_speed = net / window_s if window_s > 0 else 0.0
        # Only a device-reported speed is trusted here, never one derived from the track
        device_speed = newest.reported_speed_mps if newest.reported_speed_mps is not None else -1.0

        if device_speed >= self.config.geometry_device_speed_mps:
            return min(0.95, 0.5 + device_speed * 0.3)
        if net > avg_accuracy * 1.5 and straightness >= 0.5 and net_speed >= 0.3:
            return min(0.9, straightness * 0.6 + net_speed * 0.2)
        if net > avg_accuracy and straightness >= 0.3 and net_speed >= 0.2:
            return min(0.7, straightness * 0.5 + net_speed * 0.3)
        if net_speed >= 0.3:
            return min(0.5, net_speed * 0.4 + straightness * 0.3)
        return 0.0

    def straightness(self):
        """Net displacement / path length over the buffer (diagnostics)."""
        path = path_length_m(self._points)
        return net_displacement_m(self._points) / path if path > 0 else 0.0

    def reset(self):
        self._points.clear()


class MotionClassifier:
    """
    Fuses an inertial signal and a GPS-geometry signal.

    With the inertial signal available the raw confidence is
    ``w * inertial + (1 - w) * geometry`` (w = 0.6 by default); otherwise the
    geometry signal is used alone. The raw value is exponentially smoothed to
    avoid single-sample flicker.
    """

    def __init__(self, inertial=None, geometry=None, tracker_config=None):
        self.config = tracker_config or TrackerConfig()
        self.inertial = inertial
        self.geometry = geometry or GpsGeometrySignal(self.config)
        self.confidence = 0.0
        self.state = MotionState.UNKNOWN

    def update(self, point=None):
        """
        Observe a new point, read both signals and advance the smoothed confidence.

        Args:
            point: newest FilteredPoint, or None to re-read the signals only.
                When its speed is below the moving speed floor the confidence
                used for the discrete state is capped.

        Returns:
            MotionReading
        """
        speed_mps = None
        if point is not None:
            observe = getattr(self.geometry, 'observe', None)
            if observe is not None:
                observe(point)
            speed_mps = point.speed_mps

        geometry = self.geometry.confidence() or 0.0
        inertial = self.inertial.confidence() if self.inertial is not None else None

        if inertial is not None:
            w = self.config.motion_inertial_weight
            raw = inertial * w + geometry * (1.0 - w)
        else:
            raw = geometry

        alpha = self.config.motion_smoothing
        self.confidence = self.confidence * alpha + raw * (1.0 - alpha)

        gating = self.confidence
        if speed_mps is not None and speed_mps < self.config.min_moving_speed_mps:
            gating = min(gating, self.config.motion_low_speed_cap)
        self.state = self.classify(gating)

        return MotionReading(
            confidence=self.confidence,
            raw_confidence=raw,
            state=self.state,
            inertial_available=inertial is not None,
        )

    def classify(self, confidence):
        """Map a confidence value to a discrete MotionState."""
        if confidence < self.config.motion_stationary_threshold:
            return MotionState.STATIONARY
        if confidence >= self.config.motion_moving_threshold:
            return MotionState.MOVING
        return MotionState.UNKNOWN

    def reset(self):
        self.confidence = 0.0
        self.state = MotionState.UNKNOWN
        self.geometry.reset()
        if self.inertial is not None:
            self.inertial.reset()

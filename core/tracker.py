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
Streaming trip engine.

One TripTracker belongs to one active trip. Each ``process_sample`` call runs
estimator -> classifier -> gate -> accumulator and returns immediately; there
is no I/O and nothing ever blocks.
"""
import logging
import math
from numbers import Real

from .accumulator import DistanceAccumulator, SegmentContext
from .filters import PositionEstimator
from .gate import MovementGate
from .geo import haversine_m, is_usable_coordinate
from .motion import GpsGeometrySignal, MotionClassifier, ReportedMotionSignal
from .structures import (
    FilteredPoint,
    GateState,
    MotionState,
    MS_TO_S,
    REJECT_INVALID,
    SampleResult,
    SUPPRESS_LOCKED,
    TripSummary,
)
from .tuning import TrackerConfig

logger = logging.getLogger(__name__)


def _finite(value):
    """Return ``value`` as float if it is a finite real number, else None."""
    if value is None or isinstance(value, bool) or not isinstance(value, Real):
        return None
    value = float(value)
    return value if math.isfinite(value) else None


def _accuracy(value, default):
    """Reported accuracy in meters. +inf is kept so the accuracy stage rejects the fix."""
    if isinstance(value, Real) and not isinstance(value, bool) and value == math.inf:
        return math.inf
    value = _finite(value)
    return value if value is not None and value > 0 else default


class TripTracker:
    """
    Per-trip distance engine.

    Args:
        tracker_config: TrackerConfig (defaults from ``config``)
        inertial_signal: optional MotionSignal fed by the caller's motion
            sensor. Without one, the ``motion_confidence`` argument of
            ``process_sample`` is used; without either the classifier runs on
            GPS geometry alone.
    """

    def __init__(self, tracker_config=None, inertial_signal=None):
        self.config = tracker_config or TrackerConfig()
        self.inertial_signal = inertial_signal
        self._build()

    def _build(self):
        self.estimator = PositionEstimator(self.config)
        self._reported = ReportedMotionSignal()
        if self.inertial_signal is not None:
            self.inertial_signal.reset()
        self.classifier = MotionClassifier(
            inertial=self.inertial_signal or self._reported,
            geometry=GpsGeometrySignal(self.config),
            tracker_config=self.config,
        )
        self.gate = MovementGate(self.config)
        self.accumulator = DistanceAccumulator(self.config)
        self._summary = TripSummary()
        self._last_point = None

    def reset(self):
        """Start a new trip. Every component is rebuilt; nothing carries over."""
        logger.debug("Resetting trip tracker")
        self._build()

    @property
    def total_distance_m(self):
        return self.accumulator.total_m

    @property
    def total_distance_km(self):
        return self.accumulator.total_m / 1000.0

    def _effective_speed(self, lat, lon, timestamp_ms, reported):
        """Reported speed when available, otherwise the speed implied by the filtered track."""
        if reported is not None:
            return reported
        prev = self._last_point
        if prev is None:
            return 0.0
        dt = (timestamp_ms - prev.timestamp_ms) / MS_TO_S
        if dt <= 0:
            return 0.0
        return haversine_m(prev.latitude, prev.longitude, lat, lon) / dt

    def process_sample(self, lat, lon, timestamp_ms, accuracy_m=None, speed_mps=None,
                       motion_confidence=None, heading_deg=None):
        """
        Process one location fix.

        Args:
            lat: latitude in degrees
            lon: longitude in degrees
            timestamp_ms: fix time in milliseconds
            accuracy_m: horizontal accuracy in meters (None = unknown)
            speed_mps: device-reported speed (None = unknown)
            motion_confidence: external motion confidence in [0, 1]; 0 or None
                means no motion sensor
            heading_deg: course over ground, kept for diagnostics

        Returns:
            SampleResult: distance added (meters), moving flag and the
            filtered position. Malformed input returns zero distance and
            echoes the raw coordinates without touching trip state.
        """
        summary = self._summary
        summary.samples += 1

        timestamp = _finite(timestamp_ms)
        if timestamp is None or not is_usable_coordinate(lat, lon):
            summary.invalid_samples += 1
            logger.debug(f"Ignoring invalid sample ({lat!r}, {lon!r}) at {timestamp_ms!r}")
            return SampleResult(
                distance_m=0.0,
                is_moving=False,
                filtered_lat=lat,
                filtered_lon=lon,
                rejection=REJECT_INVALID,
                motion_confidence=self.classifier.confidence,
                gate_state=self.gate.state,
            )

        timestamp = int(timestamp)
        if summary.first_timestamp_ms is None:
            summary.first_timestamp_ms = timestamp
        summary.last_timestamp_ms = max(timestamp, summary.last_timestamp_ms or timestamp)

        accuracy = _accuracy(accuracy_m, self.config.default_accuracy_m)
        reported_speed = _finite(speed_mps)
        if reported_speed is not None and reported_speed < 0:
            reported_speed = None

        f_lat, f_lon = self.estimator.update(lat, lon, timestamp, accuracy)
        point = FilteredPoint(
            latitude=f_lat,
            longitude=f_lon,
            timestamp_ms=timestamp,
            accuracy_m=accuracy,
            speed_mps=self._effective_speed(f_lat, f_lon, timestamp, reported_speed),
            raw_latitude=lat,
            raw_longitude=lon,
            reported_speed_mps=reported_speed,
            heading_deg=_finite(heading_deg),
        )
        self._last_point = point

        self._reported.set(motion_confidence)
        reading = self.classifier.update(point)

        gate = self.gate
        gate.record_motion(point.speed_mps >= self.config.min_moving_speed_mps,
                           reading.state is MotionState.MOVING)
        previous_state = gate.state
        gate.update(point)
        if gate.state is not previous_state:
            if gate.state is GateState.LOCKED:
                summary.lock_count += 1
                self.accumulator.end_motion()
            else:
                summary.unlock_count += 1

        def result(distance_m, is_moving, rejection=None):
            return SampleResult(
                distance_m=distance_m,
                is_moving=is_moving,
                filtered_lat=f_lat,
                filtered_lon=f_lon,
                point=point,
                rejection=rejection,
                motion_confidence=reading.confidence,
                gate_state=gate.state,
            )

        suppression = gate.suppression(point)
        if suppression is not None:
            if suppression == SUPPRESS_LOCKED:
                self.accumulator.reanchor(point)
            return result(0.0, False, suppression)

        if self.accumulator.anchor is None:
            self.accumulator.reanchor(point)
            return result(0.0, True)

        context = SegmentContext(
            position_spread_m=gate.position_spread_m(),
            spread_samples=len(gate.positions),
            consecutive_moving=gate.consecutive_moving,
        )
        summary.candidate_segments += 1
        distance_m, rejection = self.accumulator.offer(point, context)
        if rejection is not None:
            summary.rejections[rejection] += 1
            return result(0.0, False, rejection)

        summary.accepted_segments += 1
        summary.total_distance_m = self.accumulator.total_m
        return result(distance_m, True)

    def summary(self):
        """Counters for the trip so far (a live TripSummary)."""
        self._summary.total_distance_m = self.accumulator.total_m
        return self._summary

    def get_state(self):
        """Snapshot of the engine state, for debugging and UI."""
        gate = self.gate
        return {
            'gate_state': gate.state.value,
            'is_locked': gate.is_locked,
            'dwell_center': gate.dwell_center,
            'consecutive_moving': gate.consecutive_moving,
            'consecutive_stationary': gate.consecutive_stationary,
            'buffer_size': len(gate.buffer),
            'position_spread_m': gate.position_spread_m(),
            'motion_confidence': self.classifier.confidence,
            'motion_state': self.classifier.state.value,
            'motion_confirmed': self.accumulator.motion_confirmed,
            'has_anchor': self.accumulator.anchor is not None,
            'total_distance_m': self.accumulator.total_m,
        }

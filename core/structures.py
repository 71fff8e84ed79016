#!/usr/bin/env python3
# TripMeter - GPS trip distance engine
# Copyright (C) 2024 TripMeter Contributors
#
# Shared data-structure definitions used across the tracking pipeline.
# Every stage passes these objects instead of ad-hoc dicts.

"""
Core data types used in the TripMeter pipeline.

RawSample
---------
One fix as delivered by the location provider (or read back from storage)::

    RawSample(
        latitude,       # degrees, valid range [-90, 90]
        longitude,      # degrees, valid range [-180, 180]
        timestamp_ms,   # absolute timestamp in milliseconds from epoch
        accuracy_m,     # horizontal accuracy radius in meters (or None)
        speed_mps,      # device-reported speed over ground (or None)
        heading_deg,    # course over ground, 0 = North (or None)
        is_stationary,  # stored classification, batch mode only (or None)
    )

FilteredPoint
-------------
A sample after the position estimator. The smoothed coordinate takes part in
distance math; the raw coordinate is retained for audit.

SampleResult
------------
What ``TripTracker.process_sample`` returns for every call, including the
pipeline stage that rejected the segment, if any.
"""
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

# Unit conversion constants
MS_TO_S = 1000.0  # milliseconds to seconds conversion factor
M_TO_KM = 1000.0  # meters to kilometers conversion factor


class MotionState(str, Enum):
    """Discrete motion classification."""
    STATIONARY = 'stationary'
    MOVING = 'moving'
    UNKNOWN = 'unknown'


class GateState(str, Enum):
    """Stationary-lock state. LOCKED means displacement is treated as noise."""
    LOCKED = 'locked'
    UNLOCKED = 'unlocked'


# Rejection stage names, in pipeline order
REJECT_INVALID = 'invalid_coordinate'
REJECT_ACCURACY = 'coarse_accuracy'
REJECT_STATIONARY = 'stationary'
REJECT_SHORT = 'short_segment'
REJECT_SPEED = 'implausible_speed'
REJECT_DEBOUNCE = 'debounce'
# Gate-level suppression (not part of the segment pipeline)
SUPPRESS_LOCKED = 'locked'
SUPPRESS_DWELL = 'dwell'

PIPELINE_STAGES = (
    REJECT_INVALID,
    REJECT_ACCURACY,
    REJECT_STATIONARY,
    REJECT_SHORT,
    REJECT_SPEED,
    REJECT_DEBOUNCE,
)


@dataclass(frozen=True)
class RawSample:
    """Immutable position fix."""
    latitude: float
    longitude: float
    timestamp_ms: int
    accuracy_m: Optional[float] = None
    speed_mps: Optional[float] = None
    heading_deg: Optional[float] = None
    is_stationary: Optional[bool] = None

    @classmethod
    def from_dict(cls, record):
        """Build a sample from a stored record.

        Accepts the storage field names (``latitude``, ``longitude``,
        ``timestamp``, ``accuracy``, ``speed``, ``heading``, ``isStationary``)
        as well as this class's own attribute names.
        """
        def pick(*keys):
            for key in keys:
                if key in record and record[key] is not None:
                    return record[key]
            return None

        timestamp = pick('timestamp_ms', 'timestamp')
        return cls(
            latitude=pick('latitude', 'lat'),
            longitude=pick('longitude', 'lon', 'lng'),
            timestamp_ms=int(timestamp) if timestamp is not None else 0,
            accuracy_m=pick('accuracy_m', 'accuracy'),
            speed_mps=pick('speed_mps', 'speed'),
            heading_deg=pick('heading_deg', 'heading'),
            is_stationary=pick('is_stationary', 'isStationary'),
        )


@dataclass
class FilterState:
    """Per-axis Kalman state. Variances are in square meters."""
    lat: float
    lon: float
    lat_variance: float
    lon_variance: float
    timestamp_ms: int


@dataclass
class FilteredPoint:
    """A sample after smoothing, as seen by the gate and accumulator."""
    latitude: float
    longitude: float
    timestamp_ms: int
    accuracy_m: float
    speed_mps: float
    raw_latitude: float
    raw_longitude: float
    reported_speed_mps: Optional[float] = None
    heading_deg: Optional[float] = None
    counted: bool = False
    segment_m: float = 0.0


@dataclass
class MotionReading:
    """Output of the motion classifier for one sample."""
    confidence: float
    raw_confidence: float
    state: MotionState
    inertial_available: bool = False


@dataclass
class SampleResult:
    """Result of one streaming update."""
    distance_m: float
    is_moving: bool
    filtered_lat: float
    filtered_lon: float
    point: Optional[FilteredPoint] = None
    rejection: Optional[str] = None
    motion_confidence: float = 0.0
    gate_state: Optional[GateState] = None


@dataclass
class GateWindow:
    """Trailing-window statistics read by the gate transition functions."""
    buffered: int
    window_points: int
    net_displacement_m: float
    avg_speed_mps: float
    avg_accuracy_m: float
    position_spread_m: float
    consecutive_moving: int
    consecutive_stationary: int
    newest: Optional[FilteredPoint] = None


@dataclass
class TripSummary:
    """Per-trip counters for operators tuning thresholds."""
    total_distance_m: float = 0.0
    samples: int = 0
    invalid_samples: int = 0
    candidate_segments: int = 0
    accepted_segments: int = 0
    rejections: Counter = field(default_factory=Counter)
    unlock_count: int = 0
    lock_count: int = 0
    first_timestamp_ms: Optional[int] = None
    last_timestamp_ms: Optional[int] = None

    @property
    def total_distance_km(self):
        return self.total_distance_m / M_TO_KM

    @property
    def rejected_segments(self):
        return sum(self.rejections.values())

    @property
    def rejection_ratio(self):
        if self.candidate_segments == 0:
            return 0.0
        return self.rejected_segments / self.candidate_segments

    @property
    def duration_s(self):
        if self.first_timestamp_ms is None or self.last_timestamp_ms is None:
            return 0.0
        return (self.last_timestamp_ms - self.first_timestamp_ms) / MS_TO_S

    def to_dict(self):
        return {
            'total_distance_m': round(self.total_distance_m, 3),
            'total_distance_km': round(self.total_distance_km, 6),
            'samples': self.samples,
            'invalid_samples': self.invalid_samples,
            'candidate_segments': self.candidate_segments,
            'accepted_segments': self.accepted_segments,
            'rejections': dict(self.rejections),
            'rejection_ratio': round(self.rejection_ratio, 4),
            'unlock_count': self.unlock_count,
            'lock_count': self.lock_count,
            'duration_s': self.duration_s,
        }

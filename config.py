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
Configuration file for TripMeter.
Contains all default thresholds for filtering and distance accumulation.

These are tunable defaults, not load-bearing constants. core.tuning.TrackerConfig
reads them once at construction; callers retune by passing overrides or a
profile name instead of editing this file.
"""

# Physical Constants
EARTH_RADIUS_M = 6_371_000  # Mean Earth radius, meters

# Unit Conversion
KNOTS_TO_MPS = 0.514444    # NMEA speed over ground is in knots
METERS_PER_KM = 1000.0
KM_TO_MILES = 0.621371
FEET_PER_MILE = 5280

# ============================================================
# Input Defaults
# ============================================================
DEFAULT_ACCURACY_M = 20.0     # Assumed horizontal accuracy when the fix has none
NMEA_UERE_M = 5.0             # User-equivalent range error: accuracy = HDOP * UERE
MIN_SATELLITES = 4            # GGA fixes with fewer satellites count as poor quality
GPS_FREQUENCY_MAX_INTERVAL_MS = 60000  # Longer gaps are logging pauses, not the update rate

# ============================================================
# Position Kalman Filter (per-axis, lat and lon independently)
# ============================================================
KALMAN_PROCESS_NOISE = 2.0          # Meters of drift per second of elapsed time
KALMAN_MEASUREMENT_NOISE_M = 12.0   # Floor for measurement std-dev (suspiciously good fixes)

# ============================================================
# Motion Classifier
# ============================================================
MOTION_SMOOTHING = 0.5              # new = old * SMOOTHING + raw * (1 - SMOOTHING)
MOTION_INERTIAL_WEIGHT = 0.6        # Share of inertial signal when it is available
MOTION_STATIONARY_THRESHOLD = 0.25  # Smoothed confidence below this -> stationary
MOTION_MOVING_THRESHOLD = 0.6       # Smoothed confidence at/above this -> moving
MOTION_LOW_SPEED_CAP = 0.3          # Confidence cap when speed is below MIN_MOVING_SPEED_MPS

# GPS geometry signal
GEOMETRY_BUFFER_SIZE = 10           # Positions used for straightness/net displacement
GEOMETRY_DEFAULT_ACCURACY_M = 25.0  # Accuracy assumed for buffered points without one
GEOMETRY_DEVICE_SPEED_MPS = 0.5     # Device speed that is trusted on its own

# Inertial signal (accelerometer magnitude in g)
INERTIAL_WINDOW_SIZE = 20           # ~2 s at 10 Hz
INERTIAL_MIN_SAMPLES = 5
INERTIAL_STILLNESS_THRESHOLD = 0.02  # Activity below this -> confidence 0
INERTIAL_MOVEMENT_THRESHOLD = 0.05   # Activity above this -> confidence 1
INERTIAL_SMOOTHING = 0.7
INERTIAL_INITIAL_CONFIDENCE = 0.5

# ============================================================
# Movement Gate (stationary lock)
# ============================================================
MIN_MOVING_SPEED_MPS = 0.4          # Speed floor for a "moving" classification and unlock
GATE_BUFFER_SIZE = 20               # Recent points kept for window statistics
GATE_MIN_BUFFERED = 4               # Buffered points required before any transition
GATE_MIN_WINDOW_POINTS = 3          # Points inside the window required before any transition
LOCK_RELEASE_METERS = 15.0          # Net displacement needed to release the lock
LOCK_RELEASE_SECONDS = 20.0         # Trailing window length
LOCK_RADIUS_METERS = 12.0           # Net displacement below this (with low speed) re-locks
LOCK_MAX_SPEED_MPS = 0.5            # Average speed below this (with small radius) re-locks
DWELL_RADIUS_METERS = 12.0          # Samples within this of the dwell center count zero
CONSECUTIVE_MOVING_THRESHOLD = 2
CONSECUTIVE_STATIONARY_THRESHOLD = 4

# ============================================================
# Segment Validation Pipeline
# ============================================================
MAX_ACCURACY_M = 50.0               # Reject endpoints with coarser fixes
MIN_SEGMENT_M = 5.0                 # Sub-noise-floor jitter suppression
MIN_SEGMENT_SPEED_MPS = 0.5         # Implied speed below this is drift
MAX_SEGMENT_SPEED_MPS = 55.0        # Implied speed above this is a teleport (~200 km/h)
VARIANCE_WINDOW = 10                # Positions in the trailing spread window
VARIANCE_FLOOR_M = 8.0              # Spread below this -> probably standing still
VARIANCE_MIN_SAMPLES = 5            # Positions required before the spread check applies
DEBOUNCE_MOVING_COUNT = 2           # Moving run required before the first counted segment

# Batch recomputation works on raw (unsmoothed) positions, so its spread
# floor is looser and its debounce longer.
BATCH_OVERRIDES = {
    'variance_window': 8,
    'variance_floor_m': 20.0,
    'min_segment_speed_mps': 1.0 / 3.6,
    'max_segment_speed_mps': 200.0 / 3.6,
    'debounce_moving_count': 3,
}

# Retuning presets
PROFILES = {
    'default': {},
    'walking': {
        'min_segment_m': 3.0,
        'max_segment_speed_mps': 8.0,
        'lock_release_m': 12.0,
        'dwell_radius_m': 10.0,
        'min_moving_speed_mps': 0.4,
    },
    'vehicle': {
        'min_segment_m': 10.0,
        'max_segment_speed_mps': 70.0,
        'lock_release_m': 25.0,
        'dwell_radius_m': 20.0,
        'min_moving_speed_mps': 1.5,
        'kalman_process_noise': 5.0,
    },
}

# ============================================================
# Diagnostics (warnings and cautions)
# ============================================================
REJECTION_WARNING_RATIO = 0.9       # Warn if >90% of candidate segments were rejected
REJECTION_CAUTION_RATIO = 0.6
INVALID_SAMPLE_CAUTION_RATIO = 0.05
LOCK_FLAPPING_PER_HOUR = 30         # Lock transitions per hour considered unstable
RECOMPUTE_MISMATCH_RATIO = 0.25     # Streamed vs recomputed disagreement threshold
MIN_SAMPLES_FOR_MOVEMENT_CHECK = 20
LOW_GPS_FREQUENCY_HZ = 0.05         # One fix per 20 s
MEDIUM_GPS_FREQUENCY_HZ = 0.2       # One fix per 5 s
MAX_HDOP = 4.0                      # HDOP above this is counted as poor quality

# ============================================================
# Visualization Parameters
# ============================================================
CHART_FIGSIZE = (12, 8)
CHART_DPI = 150
LOCKED_SHADE_COLOR = '#d9d9d9'
LOCKED_SHADE_ALPHA = 0.6
DISTANCE_LINE_COLOR = '#1f77b4'
CONFIDENCE_LINE_COLOR = '#ff7f0e'
COUNTED_MARKER_SIZE = 12
LEGEND_FONTSIZE = 10

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
Localization strings for TripMeter.
English dictionary for the command-line report and charts.
"""

# Error messages
ERRORS = {
    'file_not_found': "File not found: {file_path}",
    'unsupported_format': "Unsupported trip file format: {file_type}",
    'no_samples': "No usable position fixes in {file_path}",
    'unknown_profile': "Unknown tuning profile: {profile}",
    'processing_failed': "Trip processing failed: {error}",
    'chart_failed': "Failed to create trip chart",
}

# Warnings - results are probably wrong
WARNINGS = {
    'all_rejected': "All {total} candidate segments were rejected, trip distance is 0",
    'high_rejection_ratio': "{ratio:.1%} of candidate segments rejected ({rejected} of {total})",
    'no_movement': "No movement detected in {samples} samples",
    'lock_flapping': "Stationary lock toggled {count} times ({rate:.0f} per hour), thresholds may need tuning",
    'distance_mismatch': "Streamed distance ({streamed:.3f} km) and recomputed distance ({recomputed:.3f} km) differ by {ratio:.0%}",
    'low_gps_frequency': "Low GPS update rate: {freq:.3f} Hz (below {threshold} Hz)",
    'gps_validity': "GPS lost its fix for a large part of the log",
    'gps_quality': "Serious GPS quality problems: {ratio:.0%} of fixes with high HDOP",
}

# Cautions - results may be slightly off
CAUTIONS = {
    'many_rejected': "{ratio:.1%} of candidate segments rejected ({rejected} of {total})",
    'invalid_samples': "{count} samples ({ratio:.1%}) had invalid coordinates and were ignored",
    'coarse_accuracy': "{count} segments rejected for coarse accuracy (over {threshold:.0f} m)",
    'implausible_speed': "{count} segments rejected for implausible speed",
    'distance_mismatch': "Streamed and recomputed distances differ by {ratio:.0%}",
    'gps_frequency': "GPS update rate ({freq:.2f} Hz) may cut corners on winding roads",
    'gps_validity': "The log contains periods without a valid GPS fix",
    'gps_quality': "Signs of low GPS quality ({ratio:.0%} of fixes)",
}

# Axis labels and chart titles
LABELS = {
    'timeline_title': "Trip distance and motion confidence",
    'distance_axis': "Distance (km)",
    'confidence_axis': "Motion confidence",
    'time_axis': "Time (s)",
    'distance_line': "Cumulative distance",
    'counted_points': "Counted segments",
    'confidence_line': "Smoothed confidence",
    'locked_period': "Stationary lock",
}

# Distance units
UNITS = {
    'km': "km",
    'm': "m",
    'mi': "mi",
    'ft': "ft",
}

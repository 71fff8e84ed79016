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
Warning and notification generation module.
Turns trip counters and input-quality metrics into operator-facing
warnings (result is probably wrong) and cautions (result may be off).
"""

import logging

import config
from locales.strings import WARNINGS, CAUTIONS

from .structures import REJECT_ACCURACY, REJECT_SPEED

logger = logging.getLogger(__name__)


def compute_warnings(summary, recomputed_km=None, gps_frequency=None, quality=None):
    """
    Unified function for computing all trip warnings.

    Args:
        summary: TripSummary from the streaming engine (or batch recompute)
        recomputed_km: float, batch-recomputed distance for cross-checking
        gps_frequency: float, GPS update rate in Hz
        quality: dict from parsers.analyze_nmea_quality

    Returns:
        tuple: (warnings: dict, cautions: dict)
    """
    warnings = {}
    cautions = {}

    # 1. Segment rejections
    _check_rejections(summary, warnings, cautions)

    # 2. Movement never detected
    _check_movement(summary, warnings)

    # 3. Lock flapping
    _check_lock_flapping(summary, warnings)

    # 4. Invalid input samples
    _check_invalid_samples(summary, cautions)

    # 5. Streamed vs recomputed distance
    _check_recompute(summary, recomputed_km, warnings, cautions)

    # 6. GPS frequency
    _check_gps_frequency(gps_frequency, warnings, cautions)

    # 7. NMEA quality (if provided)
    _check_nmea_quality(quality, warnings, cautions)

    if warnings or cautions:
        logger.info(f"Trip diagnostics: {len(warnings)} warnings, {len(cautions)} cautions")
    return warnings, cautions


def _check_rejections(summary, warnings, cautions):
    """Check the share of candidate segments the pipeline rejected."""
    total = summary.candidate_segments
    if total == 0:
        return

    rejected = summary.rejected_segments
    ratio = summary.rejection_ratio

    if rejected >= total:
        warnings["all_rejected"] = WARNINGS['all_rejected'].format(total=total)
    elif ratio > getattr(config, 'REJECTION_WARNING_RATIO', 0.9):
        warnings["rejections"] = WARNINGS['high_rejection_ratio'].format(
            ratio=ratio, rejected=rejected, total=total
        )
    elif ratio > getattr(config, 'REJECTION_CAUTION_RATIO', 0.6):
        cautions["rejections"] = CAUTIONS['many_rejected'].format(
            ratio=ratio, rejected=rejected, total=total
        )

    coarse = summary.rejections.get(REJECT_ACCURACY, 0)
    if coarse and coarse / total > 0.2:
        cautions["coarse_accuracy"] = CAUTIONS['coarse_accuracy'].format(
            count=coarse, threshold=getattr(config, 'MAX_ACCURACY_M', 50.0)
        )

    implausible = summary.rejections.get(REJECT_SPEED, 0)
    if implausible and implausible / total > 0.1:
        cautions["implausible_speed"] = CAUTIONS['implausible_speed'].format(count=implausible)


def _check_movement(summary, warnings):
    """A long log that never unlocked is usually a tuning or sensor problem."""
    min_samples = getattr(config, 'MIN_SAMPLES_FOR_MOVEMENT_CHECK', 20)
    valid = summary.samples - summary.invalid_samples
    if valid >= min_samples and summary.accepted_segments == 0:
        warnings["no_movement"] = WARNINGS['no_movement'].format(samples=valid)


def _check_lock_flapping(summary, warnings):
    """Check how often the stationary lock toggled."""
    transitions = summary.lock_count + summary.unlock_count
    hours = summary.duration_s / 3600.0
    if transitions < 4 or hours <= 0:
        return

    rate = transitions / hours
    if rate > getattr(config, 'LOCK_FLAPPING_PER_HOUR', 30):
        warnings["lock_flapping"] = WARNINGS['lock_flapping'].format(count=transitions, rate=rate)


def _check_invalid_samples(summary, cautions):
    if summary.samples == 0 or summary.invalid_samples == 0:
        return
    ratio = summary.invalid_samples / summary.samples
    if ratio > getattr(config, 'INVALID_SAMPLE_CAUTION_RATIO', 0.05):
        cautions["invalid_samples"] = CAUTIONS['invalid_samples'].format(
            count=summary.invalid_samples, ratio=ratio
        )


def _check_recompute(summary, recomputed_km, warnings, cautions):
    """Compare the streamed total with the end-of-trip recomputation."""
    if recomputed_km is None:
        return

    streamed_km = summary.total_distance_km
    reference = max(streamed_km, recomputed_km)
    if reference <= 0:
        return

    ratio = abs(streamed_km - recomputed_km) / reference
    threshold = getattr(config, 'RECOMPUTE_MISMATCH_RATIO', 0.25)
    if ratio > 2 * threshold:
        warnings["distance_mismatch"] = WARNINGS['distance_mismatch'].format(
            streamed=streamed_km, recomputed=recomputed_km, ratio=ratio
        )
    elif ratio > threshold:
        cautions["distance_mismatch"] = CAUTIONS['distance_mismatch'].format(ratio=ratio)


def _check_gps_frequency(gps_frequency, warnings, cautions):
    """Check GPS update rate."""
    if not gps_frequency:
        return

    low_freq = getattr(config, 'LOW_GPS_FREQUENCY_HZ', 0.05)
    medium_freq = getattr(config, 'MEDIUM_GPS_FREQUENCY_HZ', 0.2)

    if gps_frequency < low_freq:
        warnings["gps_frequency"] = WARNINGS['low_gps_frequency'].format(
            freq=gps_frequency, threshold=low_freq
        )
    elif gps_frequency < medium_freq:
        cautions["gps_frequency"] = CAUTIONS['gps_frequency'].format(freq=gps_frequency)


def _check_nmea_quality(quality, warnings, cautions):
    """Check NMEA validity and HDOP metrics."""
    if not quality:
        return

    invalid_ratio = quality.get("invalid_ratio", 0)
    if invalid_ratio > 0.1:
        warnings["gps_validity"] = WARNINGS['gps_validity']
    elif invalid_ratio > 0.05:
        cautions["gps_validity"] = CAUTIONS['gps_validity']

    total_points = quality.get("gga_points") or quality.get("total_points", 0)
    if total_points > 0:
        # Problem categories overlap; the largest one is representative
        problem_count = max(
            quality.get("low_fix_count", 0),
            quality.get("low_sat_count", 0),
            quality.get("high_hdop_count", 0),
        )
        problem_ratio = problem_count / total_points

        if problem_ratio > 0.10:
            warnings["gps_quality"] = WARNINGS['gps_quality'].format(ratio=problem_ratio)
        elif problem_ratio > 0.02:
            cautions["gps_quality"] = CAUTIONS['gps_quality'].format(ratio=problem_ratio)

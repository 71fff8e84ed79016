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
NMEA file handler - turns a recorded NMEA log into trip samples.

RMC sentences give position, time, speed and course; GGA sentences with the
same time of day contribute HDOP, which is converted into a horizontal
accuracy estimate (HDOP * UERE). Any talker ID is accepted (GP, GN, GL...).
"""
import pynmea2
import logging
import os
import sys
from datetime import datetime, timezone

# Add parent directory to path for config import
PARENT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PARENT_DIR not in sys.path:
    sys.path.insert(0, PARENT_DIR)

import config
from core.structures import RawSample

logger = logging.getLogger('nmea_handler')


def _to_float(value):
    """pynmea2 returns raw strings for untyped fields; empty means missing."""
    if value in (None, ''):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _time_of_day_ms(ts):
    return ((ts.hour * 60 + ts.minute) * 60 + ts.second) * 1000 + ts.microsecond // 1000


def convert_nmea_to_milliseconds(msg, date=None):
    """
    Returns message time in milliseconds from epoch (UTC).

    Args:
        msg: parsed sentence with a ``timestamp`` field
        date: date to combine with when the sentence has no ``datestamp``

    Returns:
        int or None
    """
    try:
        ts = getattr(msg, 'timestamp', None)
        if ts is None:
            return None
        day = getattr(msg, 'datestamp', None) or date
        if day is None:
            return None
        dt = datetime.combine(day, ts).replace(tzinfo=timezone.utc)
        return int(dt.timestamp() * 1000)
    except (ValueError, AttributeError, TypeError) as e:
        logger.error(f"Error converting NMEA time: {e}")
    return None


def _read_sentences(file_path):
    """Yield (line_number, stripped line, parsed sentence) for every parsable line."""
    with open(file_path, 'r', errors='replace') as f:
        for idx, line in enumerate(f, start=1):
            stripped = line.strip()
            if not stripped.startswith('$'):
                continue
            try:
                msg = pynmea2.parse(stripped)
            except pynmea2.ParseError as e:
                logger.debug(f"NMEA line parse error: {stripped} - {e}")
                continue
            yield idx, stripped, msg


def extract_trip_samples(file_path):
    """
    Extracts trip samples from an NMEA file.

    Args:
        file_path: path to NMEA log

    Returns:
        tuple: (list of RawSample sorted as recorded, GPS frequency in Hz)

    Raises:
        ValueError: if the file is empty or contains no RMC fix
    """
    if os.path.getsize(file_path) == 0:
        raise ValueError(f"File {file_path} is empty")

    uere = getattr(config, 'NMEA_UERE_M', 5.0)
    knots_to_mps = getattr(config, 'KNOTS_TO_MPS', 0.514444)

    fixes = []
    hdop_by_time = {}
    current_date = None

    for _, line, msg in _read_sentences(file_path):
        sentence = msg.sentence_type
        if sentence == 'GGA':
            ts = getattr(msg, 'timestamp', None)
            hdop = _to_float(getattr(msg, 'horizontal_dil', None))
            if ts is not None and hdop is not None and hdop > 0:
                hdop_by_time[_time_of_day_ms(ts)] = hdop
            continue

        if sentence != 'RMC':
            continue

        if getattr(msg, 'datestamp', None):
            current_date = msg.datestamp
        if getattr(msg, 'status', 'A') != 'A':
            logger.debug(f"Skipped RMC without fix: {line}")
            continue

        timestamp_ms = convert_nmea_to_milliseconds(msg, current_date)
        if timestamp_ms is None:
            logger.debug(f"Skipped RMC without usable time: {line}")
            continue

        try:
            lat, lon = msg.latitude, msg.longitude
        except (ValueError, TypeError) as e:
            logger.debug(f"Skipped RMC with bad coordinates: {line} - {e}")
            continue

        speed_knots = _to_float(getattr(msg, 'spd_over_grnd', None))
        fixes.append({
            'time_key': _time_of_day_ms(msg.timestamp),
            'latitude': lat,
            'longitude': lon,
            'timestamp_ms': timestamp_ms,
            'speed_mps': speed_knots * knots_to_mps if speed_knots is not None else None,
            'heading_deg': _to_float(getattr(msg, 'true_course', None)),
        })

    if not fixes:
        raise ValueError(f"No valid RMC fix found in file {file_path}")

    samples = []
    for fix in fixes:
        hdop = hdop_by_time.get(fix.pop('time_key'))
        samples.append(RawSample(accuracy_m=hdop * uere if hdop is not None else None, **fix))

    gps_frequency = calculate_gps_frequency([s.timestamp_ms for s in samples])
    logger.info(f"Extracted {len(samples)} fixes from {file_path} ({gps_frequency} Hz)")
    return samples, gps_frequency


def calculate_gps_frequency(timestamp_milliseconds):
    """
    Calculates GPS update frequency in Hz from timestamps in milliseconds.

    Gaps longer than GPS_FREQUENCY_MAX_INTERVAL_MS are logging pauses and
    do not count towards the average interval.
    """
    if len(timestamp_milliseconds) < 2:
        return 0

    max_interval = getattr(config, 'GPS_FREQUENCY_MAX_INTERVAL_MS', 60000)
    intervals = []
    for i in range(1, len(timestamp_milliseconds)):
        time_diff = timestamp_milliseconds[i] - timestamp_milliseconds[i - 1]
        if 0 < time_diff < max_interval:
            intervals.append(time_diff)

    if not intervals:
        return 0
    average_interval = sum(intervals) / len(intervals)
    return round(1000 / average_interval, 3)


def analyze_nmea_quality(file_path):
    """
    Analyze GPS quality fields from RMC and GGA sentences.

    Returns:
        dict or None: invalid RMC ratio plus counts of no-fix, low-satellite
        and high-HDOP GGA sentences, or None if the file cannot be read
    """
    rmc_total = 0
    rmc_invalid = 0
    gga_total = 0
    low_fix = 0
    low_sats = 0
    high_hdop = 0
    issues = []

    min_sats = getattr(config, 'MIN_SATELLITES', 4)
    max_hdop = getattr(config, 'MAX_HDOP', 4.0)

    try:
        for idx, line, msg in _read_sentences(file_path):
            reasons = []
            if msg.sentence_type == 'RMC':
                rmc_total += 1
                if getattr(msg, 'status', 'A') == 'V':
                    rmc_invalid += 1
                    reasons.append('invalid_rmc')
            elif msg.sentence_type == 'GGA':
                gga_total += 1
                gps_qual = _to_float(getattr(msg, 'gps_qual', None))
                if gps_qual is not None and int(gps_qual) == 0:
                    low_fix += 1
                    reasons.append('low_fix')
                num_sats = _to_float(getattr(msg, 'num_sats', None))
                if num_sats is not None and num_sats < min_sats:
                    low_sats += 1
                    reasons.append('few_sats')
                hdop = _to_float(getattr(msg, 'horizontal_dil', None))
                if hdop is not None and hdop > max_hdop:
                    high_hdop += 1
                    reasons.append('high_hdop')
            if reasons:
                issues.append({'line_number': idx, 'line': line, 'issues': reasons})
    except OSError as e:
        logger.error(f"GPS quality analysis error: {e}")
        return None

    return {
        'invalid_ratio': (rmc_invalid / rmc_total) if rmc_total else 0,
        'low_fix_count': low_fix,
        'low_sat_count': low_sats,
        'high_hdop_count': high_hdop,
        'total_points': rmc_total,
        'gga_points': gga_total,
        'issues': issues,
    }

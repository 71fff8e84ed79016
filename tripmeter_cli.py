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
TripMeter CLI entry point.

Replays a recorded trip (NMEA log or stored JSON points) through the
streaming engine and the end-of-trip recomputation, and prints a JSON report.
"""
import json
import math
import os
import sys
import argparse
import logging

# Add script directory to path for imports
SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
if SCRIPT_DIR not in sys.path:
    sys.path.insert(0, SCRIPT_DIR)

from core.batch import recompute_trip
from core.structures import GateState
from core.tracker import TripTracker
from core.tuning import TrackerConfig
from core.visualization import plot_trip_timeline
from core.warnings import compute_warnings
from parsers.json_handler import load_trip_samples
from parsers.nmea_handler import analyze_nmea_quality, calculate_gps_frequency, extract_trip_samples
import config
from locales.strings import ERRORS, UNITS

# Configure logging (basicConfig is sufficient, no need for duplicate handler)
logging.basicConfig(
    level=logging.ERROR,
    format='%(levelname)s: %(message)s',
    stream=sys.stderr
)
logger = logging.getLogger('tripmeter_cli')


def format_duration_ms(duration_ms):
    """Format duration from milliseconds to hh:mm:ss string."""
    if duration_ms is None:
        return ""
    seconds_total = int(duration_ms // 1000)
    hours, remainder = divmod(seconds_total, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def _round_half_up(value):
    return int(math.floor(value + 0.5))


def format_distance(km, use_kilometers=True):
    """
    Human-readable distance.

    Below one display unit the small unit is used: meters for kilometers,
    feet for miles.
    """
    if use_kilometers:
        if km < 1:
            return f"{_round_half_up(km * 1000)} {UNITS['m']}"
        return f"{km:.2f} {UNITS['km']}"

    miles = km * getattr(config, 'KM_TO_MILES', 0.621371)
    if miles < 1:
        return f"{_round_half_up(miles * getattr(config, 'FEET_PER_MILE', 5280))} {UNITS['ft']}"
    return f"{miles:.2f} {UNITS['mi']}"


def detect_file_type(file_path, file_type=None):
    if file_type:
        return file_type.lower()
    return 'json' if os.path.splitext(file_path)[1].lower() == '.json' else 'nmea'


def load_samples(file_path, file_type):
    """
    Load trip samples.

    Returns:
        tuple: (samples, gps_frequency or None, nmea quality dict or None)
    """
    if file_type == 'nmea':
        samples, gps_frequency = extract_trip_samples(file_path)
        return samples, gps_frequency, analyze_nmea_quality(file_path)
    if file_type == 'json':
        samples = load_trip_samples(file_path)
        timestamps = sorted(s.timestamp_ms for s in samples)
        return samples, calculate_gps_frequency(timestamps), None
    raise ValueError(ERRORS['unsupported_format'].format(file_type=file_type))


def replay_trip(samples, tracker_config=None):
    """
    Feed samples through a fresh TripTracker in recorded order.

    Returns:
        tuple: (tracker, timeline rows for the chart)
    """
    tracker = TripTracker(tracker_config)
    timeline = []
    start_ms = None

    for sample in samples:
        result = tracker.process_sample(
            sample.latitude,
            sample.longitude,
            sample.timestamp_ms,
            accuracy_m=sample.accuracy_m,
            speed_mps=sample.speed_mps,
            heading_deg=sample.heading_deg,
        )
        if result.point is None:
            continue
        if start_ms is None:
            start_ms = result.point.timestamp_ms
        timeline.append({
            'time_s': (result.point.timestamp_ms - start_ms) / 1000.0,
            'distance_km': tracker.total_distance_km,
            'confidence': result.motion_confidence,
            'locked': result.gate_state is GateState.LOCKED,
            'counted': result.point.counted,
        })

    return tracker, timeline


def format_json_response(summary, recomputed, use_kilometers=True, gps_frequency=None,
                         chart_paths=None, warnings_dict=None, cautions_dict=None):
    """
    Format JSON response for CLI output.

    Args:
        summary: streaming TripSummary
        recomputed: batch TripSummary
        use_kilometers: format distances in km/m instead of mi/ft
        gps_frequency: GPS update rate in Hz
        chart_paths: dict of saved charts
        warnings_dict: warnings
        cautions_dict: cautions

    Returns:
        dict with JSON response
    """
    response = {
        "success": True,
        "distance": {
            "streamed_km": round(summary.total_distance_km, 4),
            "recomputed_km": round(recomputed.total_distance_km, 4),
            "formatted": format_distance(recomputed.total_distance_km, use_kilometers),
        },
        "streaming": summary.to_dict(),
        "recomputation": recomputed.to_dict(),
        "graphs": chart_paths or {},
        "session_info": {
            "duration_s": summary.duration_s,
            "duration_formatted": format_duration_ms(summary.duration_s * 1000),
        },
    }

    if gps_frequency is not None:
        response["gps_frequency"] = gps_frequency

    if warnings_dict:
        response["warning"] = warnings_dict

    if cautions_dict:
        response["caution"] = cautions_dict

    return response


def _error(message):
    print(json.dumps({"success": False, "error": message}, ensure_ascii=False, indent=2))
    return 1


def main(argv=None):
    """CLI entry point. Returns the process exit code."""
    parser = argparse.ArgumentParser(description='Trip distance from recorded GPS data')
    parser.add_argument('trip_file', help='Path to NMEA log or JSON points file')
    parser.add_argument('--file_type', choices=['nmea', 'json'], default=None,
                        help='File type (default: from extension)')
    parser.add_argument('--profile', default='default',
                        help='Tuning profile: ' + ', '.join(sorted(getattr(config, 'PROFILES', {}))))
    parser.add_argument('--output', help='Output path for the trip chart', default=None)
    parser.add_argument('--miles', action='store_true', help='Format distance in miles/feet')
    parser.add_argument('--verbose', action='store_true', help='Log engine decisions to stderr')
    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.INFO)

    if not os.path.exists(args.trip_file):
        return _error(ERRORS['file_not_found'].format(file_path=args.trip_file))

    try:
        streaming_config = TrackerConfig.for_profile(args.profile)
    except ValueError:
        return _error(ERRORS['unknown_profile'].format(profile=args.profile))

    try:
        file_type = detect_file_type(args.trip_file, args.file_type)
        samples, gps_frequency, quality = load_samples(args.trip_file, file_type)
        if not samples:
            return _error(ERRORS['no_samples'].format(file_path=args.trip_file))

        tracker, timeline = replay_trip(samples, streaming_config)
        summary = tracker.summary()
        recomputed = recompute_trip(samples, TrackerConfig.for_batch(streaming_config))

        warnings_dict, cautions_dict = compute_warnings(
            summary,
            recomputed_km=recomputed.total_distance_km,
            gps_frequency=gps_frequency,
            quality=quality,
        )

        chart_paths = {}
        if args.output:
            chart_result = plot_trip_timeline(timeline, args.output, warnings_dict)
            if not chart_result:
                return _error(ERRORS['chart_failed'])
            chart_paths = chart_result['chart_paths']

        response = format_json_response(
            summary,
            recomputed,
            use_kilometers=not args.miles,
            gps_frequency=gps_frequency,
            chart_paths=chart_paths,
            warnings_dict=warnings_dict,
            cautions_dict=cautions_dict,
        )
    except (OSError, ValueError) as e:
        logger.error(f"Trip processing failed: {e}")
        return _error(ERRORS['processing_failed'].format(error=e))

    print(json.dumps(response, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())

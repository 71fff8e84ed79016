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

"""Input format parsers: NMEA and stored JSON trips."""

from .nmea_handler import (
    convert_nmea_to_milliseconds,
    extract_trip_samples,
    calculate_gps_frequency,
    analyze_nmea_quality,
)
from .json_handler import (
    parse_trip_records,
    load_trip_samples,
)

__all__ = [
    # NMEA functions
    'convert_nmea_to_milliseconds',
    'extract_trip_samples',
    'calculate_gps_frequency',
    'analyze_nmea_quality',
    # JSON functions
    'parse_trip_records',
    'load_trip_samples',
]

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
JSON trip handler - reads stored trip points.

Accepted layouts: a bare array of point records, or an object with the
array under ``points`` (or ``samples``). Record fields follow the storage
names (``latitude``, ``longitude``, ``timestamp``, ``accuracy``, ``speed``,
``heading``, ``isStationary``).
"""
import json
import logging
import os
import sys

# Add parent directory to path for core import
PARENT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PARENT_DIR not in sys.path:
    sys.path.insert(0, PARENT_DIR)

from core.structures import RawSample

logger = logging.getLogger('json_handler')


def _records(payload):
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in ('points', 'samples'):
            if isinstance(payload.get(key), list):
                return payload[key]
    raise ValueError("Expected an array of points or an object with a 'points' array")


def parse_trip_records(payload):
    """
    Convert decoded JSON into RawSample objects.

    Records that are not objects or have no timestamp are skipped. Invalid
    coordinates are kept: the engine itself decides what to ignore.
    """
    samples = []
    for idx, record in enumerate(_records(payload)):
        if not isinstance(record, dict):
            logger.debug(f"Skipped non-object record #{idx}: {record!r}")
            continue
        if record.get('timestamp') is None and record.get('timestamp_ms') is None:
            logger.debug(f"Skipped record #{idx} without timestamp")
            continue
        try:
            samples.append(RawSample.from_dict(record))
        except (TypeError, ValueError, OverflowError) as e:
            logger.debug(f"Skipped malformed record #{idx}: {e}")
    return samples


def load_trip_samples(file_path):
    """
    Load stored trip points from a JSON file.

    Returns:
        list of RawSample in file order

    Raises:
        ValueError: if the file is not valid JSON or holds no usable records
    """
    with open(file_path, 'r', encoding='utf-8') as f:
        payload = json.load(f)

    samples = parse_trip_records(payload)
    if not samples:
        raise ValueError(f"No trip points found in file {file_path}")
    logger.info(f"Loaded {len(samples)} points from {file_path}")
    return samples

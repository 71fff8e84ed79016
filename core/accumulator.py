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
Segment validation and distance accumulation.

A candidate segment runs from the anchor (last accepted point) to the
current point. It is added to the total only if it passes every stage of
the pipeline, in this order:

1. both endpoints have valid, non-(0, 0) coordinates
2. both endpoints have accuracy within the ceiling
3. the point is not flagged stationary and the recent spread is above the floor
4. the segment is at least the minimum length
5. the implied speed is plausible
6. the motion onset has been confirmed by enough consecutive moving samples

The first failing stage names the rejection. Streaming and batch modes share
this code and differ only in their TrackerConfig.
"""
import logging
from dataclasses import dataclass

from .geo import distance_meters, is_usable_coordinate
from .structures import (
    MS_TO_S,
    REJECT_ACCURACY,
    REJECT_DEBOUNCE,
    REJECT_INVALID,
    REJECT_SHORT,
    REJECT_SPEED,
    REJECT_STATIONARY,
)
from .tuning import TrackerConfig

logger = logging.getLogger(__name__)


@dataclass
class SegmentContext:
    """Window state the pipeline needs besides the two endpoints."""
    position_spread_m: float
    spread_samples: int
    consecutive_moving: int
    flagged_stationary: bool = False


def _too_coarse(point, cfg):
    return point.accuracy_m is not None and point.accuracy_m > cfg.max_accuracy_m


def validate_segment(anchor, point, context, cfg, motion_confirmed=False):
    """
    Run the candidate segment anchor -> point through the pipeline.

    Args:
        anchor: last accepted point
        point: current point
        context: SegmentContext for the current point
        cfg: TrackerConfig
        motion_confirmed: True once a segment has been counted since the
            last motion onset; skips the debounce stage

    Returns:
        tuple: (rejection stage name or None, segment length in meters)
    """
    if not (is_usable_coordinate(anchor.latitude, anchor.longitude)
            and is_usable_coordinate(point.latitude, point.longitude)):
        return REJECT_INVALID, 0.0

    if _too_coarse(anchor, cfg) or _too_coarse(point, cfg):
        return REJECT_ACCURACY, 0.0

    if context.flagged_stationary:
        return REJECT_STATIONARY, 0.0
    if (context.spread_samples >= cfg.variance_min_samples
            and context.position_spread_m < cfg.variance_floor_m):
        return REJECT_STATIONARY, 0.0

    segment_m = distance_meters(anchor, point)
    if segment_m < cfg.min_segment_m:
        return REJECT_SHORT, segment_m

    elapsed_s = (point.timestamp_ms - anchor.timestamp_ms) / MS_TO_S
    if elapsed_s <= 0:
        return REJECT_SPEED, segment_m
    implied_speed = segment_m / elapsed_s
    if not cfg.min_segment_speed_mps <= implied_speed <= cfg.max_segment_speed_mps:
        return REJECT_SPEED, segment_m

    if not motion_confirmed and context.consecutive_moving < cfg.debounce_moving_count:
        return REJECT_DEBOUNCE, segment_m

    return None, segment_m


class DistanceAccumulator:
    """
    Running total plus the anchor the next segment starts from.

    The anchor only moves to an accepted point, or to the current point when
    the segment was held back by the debounce stage (so the first counted
    segment after an onset starts near the onset, not at the last stop).
    """

    def __init__(self, tracker_config=None):
        self.config = tracker_config or TrackerConfig()
        self.anchor = None
        self.total_m = 0.0
        self.motion_confirmed = False

    def can_anchor(self, point):
        return (is_usable_coordinate(point.latitude, point.longitude)
                and not _too_coarse(point, self.config))

    def reanchor(self, point):
        """Move the anchor to ``point`` unless it is unusable as a segment start."""
        if self.can_anchor(point):
            self.anchor = point
            return True
        return False

    def end_motion(self):
        """A stop was detected; the next onset must be debounced again."""
        self.motion_confirmed = False

    def offer(self, point, context):
        """
        Offer the current point as the end of a segment.

        Returns:
            tuple: (distance added in meters, rejection stage name or None)
        """
        if self.anchor is None:
            self.reanchor(point)
            return 0.0, None

        rejection, segment_m = validate_segment(
            self.anchor, point, context, self.config, self.motion_confirmed
        )
        if rejection is not None:
            logger.debug(f"Segment rejected at '{rejection}' stage ({segment_m:.1f}m)")
            if rejection == REJECT_DEBOUNCE:
                self.reanchor(point)
            return 0.0, rejection

        self.total_m += segment_m
        self.motion_confirmed = True
        point.counted = True
        point.segment_m = segment_m
        self.anchor = point
        return segment_m, None

    def reset(self):
        self.anchor = None
        self.total_m = 0.0
        self.motion_confirmed = False

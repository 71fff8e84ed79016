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
Movement gate (stationary lock).

The gate decides whether displacement may accumulate at all. It starts
LOCKED. Releasing the lock needs every unlock condition at once; re-locking
needs any one lock condition. The transition rules are pure functions of a
GateWindow snapshot so they can be tested without feeding samples.
"""
import logging
from collections import deque

import numpy as np

from .geo import haversine_m, net_displacement_m, position_spread_m
from .structures import GateState, GateWindow, SUPPRESS_DWELL, SUPPRESS_LOCKED, MS_TO_S
from .tuning import TrackerConfig

logger = logging.getLogger(__name__)


def has_enough_data(window, cfg):
    """Transitions are only evaluated on a reasonably filled window."""
    return (window.buffered >= cfg.gate_min_buffered
            and window.window_points >= cfg.gate_min_window_points)


def evaluate_unlock(window, cfg):
    """
    True iff ALL release conditions hold on the window.

    Conditions: net displacement beyond the release distance, average speed
    at or above the moving floor, average accuracy within the ceiling, a
    long enough run of moving classifications, and positional spread above
    the stationary floor.
    """
    return (
        window.net_displacement_m > cfg.lock_release_m
        and window.avg_speed_mps >= cfg.min_moving_speed_mps
        and window.avg_accuracy_m <= cfg.max_accuracy_m
        and window.consecutive_moving >= cfg.consecutive_moving_threshold
        and window.position_spread_m > cfg.variance_floor_m
    )


def evaluate_lock(window, cfg):
    """True iff ANY lock condition holds on the window."""
    collapsed = (window.net_displacement_m < cfg.lock_radius_m
                 and window.avg_speed_mps < cfg.lock_max_speed_mps)
    settled = (window.position_spread_m < cfg.variance_floor_m
               and window.consecutive_stationary >= cfg.consecutive_stationary_threshold)
    return collapsed or settled


def next_gate_state(state, window, cfg):
    """Pure transition function: (state, window) -> new state."""
    if not has_enough_data(window, cfg):
        return state
    if state is GateState.LOCKED:
        return GateState.UNLOCKED if evaluate_unlock(window, cfg) else GateState.LOCKED
    return GateState.LOCKED if evaluate_lock(window, cfg) else GateState.UNLOCKED


class MovementGate:
    """
    Stateful wrapper around the transition functions.

    Owns the motion run counters, the recent-point ring buffer, the spread
    window and the dwell center for one trip.
    """

    def __init__(self, tracker_config=None):
        self.config = tracker_config or TrackerConfig()
        self.state = GateState.LOCKED
        self.dwell_center = None
        self.consecutive_moving = 0
        self.consecutive_stationary = 0
        self.buffer = deque(maxlen=self.config.gate_buffer_size)
        self.positions = deque(maxlen=self.config.variance_window)
        self.unlock_count = 0
        self.lock_count = 0

    @property
    def is_locked(self):
        return self.state is GateState.LOCKED

    def record_motion(self, moving_by_speed, moving_by_confidence):
        """
        Update the consecutive moving/stationary runs.

        Agreement of both signals extends a run; disagreement only decays the
        moving run so a single ambiguous sample does not wipe it out.
        """
        if moving_by_speed and moving_by_confidence:
            self.consecutive_moving += 1
            self.consecutive_stationary = 0
        elif not moving_by_speed and not moving_by_confidence:
            self.consecutive_stationary += 1
            self.consecutive_moving = 0
        elif self.consecutive_moving > 0:
            self.consecutive_moving -= 1

    def position_spread_m(self):
        return position_spread_m(self.positions)

    def window(self):
        """Snapshot of the trailing-window statistics."""
        buffered = list(self.buffer)
        if not buffered:
            return GateWindow(0, 0, 0.0, 0.0, 0.0, 0.0,
                              self.consecutive_moving, self.consecutive_stationary)

        newest = buffered[-1]
        window_start = newest.timestamp_ms - self.config.lock_release_window_s * MS_TO_S
        recent = [p for p in buffered if p.timestamp_ms >= window_start]

        return GateWindow(
            buffered=len(buffered),
            window_points=len(recent),
            net_displacement_m=net_displacement_m(recent),
            avg_speed_mps=float(np.mean([p.speed_mps for p in recent])) if recent else 0.0,
            avg_accuracy_m=float(np.mean([p.accuracy_m for p in recent])) if recent else 0.0,
            position_spread_m=self.position_spread_m(),
            consecutive_moving=self.consecutive_moving,
            consecutive_stationary=self.consecutive_stationary,
            newest=newest,
        )

    def update(self, point):
        """
        Buffer a new point and apply at most one transition.

        Returns:
            GateState: the state after this point
        """
        self.buffer.append(point)
        self.positions.append(point)

        window = self.window()
        new_state = next_gate_state(self.state, window, self.config)
        if new_state is not self.state:
            self._apply_transition(new_state, window)
        return self.state

    def _apply_transition(self, new_state, window):
        self.state = new_state
        if new_state is GateState.UNLOCKED:
            self.unlock_count += 1
            self.consecutive_stationary = 0
            logger.info(
                f"Stationary lock released: net={window.net_displacement_m:.1f}m "
                f"speed={window.avg_speed_mps:.2f}m/s spread={window.position_spread_m:.1f}m "
                f"moving_run={window.consecutive_moving}"
            )
        else:
            self.lock_count += 1
            self.consecutive_moving = 0
            self.dwell_center = (window.newest.latitude, window.newest.longitude)
            logger.info(
                f"Stationary lock engaged at ({window.newest.latitude:.6f}, "
                f"{window.newest.longitude:.6f}): net={window.net_displacement_m:.1f}m "
                f"speed={window.avg_speed_mps:.2f}m/s spread={window.position_spread_m:.1f}m"
            )

    def suppression(self, point):
        """
        Anti-drift guards applied after the transition.

        Returns:
            str or None: SUPPRESS_LOCKED while locked, SUPPRESS_DWELL while the
            point is still inside the dwell radius, otherwise None
        """
        if self.is_locked:
            if self.dwell_center is None:
                self.dwell_center = (point.latitude, point.longitude)
            return SUPPRESS_LOCKED

        if self.dwell_center is not None:
            dist = haversine_m(self.dwell_center[0], self.dwell_center[1],
                               point.latitude, point.longitude)
            if dist < self.config.dwell_radius_m:
                return SUPPRESS_DWELL
            logger.debug(f"Left dwell radius ({dist:.1f}m from dwell center)")
            self.dwell_center = None
        return None

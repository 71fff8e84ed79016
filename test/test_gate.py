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
Tests for the movement gate (stationary lock).
"""
import os
import sys
from dataclasses import replace

import pytest

# Add parent directory to path for imports
PARENT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PARENT_DIR not in sys.path:
    sys.path.insert(0, PARENT_DIR)

from core.gate import (
    MovementGate,
    evaluate_lock,
    evaluate_unlock,
    has_enough_data,
    next_gate_state,
)
from core.structures import GateState, GateWindow, SUPPRESS_DWELL, SUPPRESS_LOCKED
from core.tuning import TrackerConfig
from synthetic import make_point

CFG = TrackerConfig()

MOVING_WINDOW = GateWindow(
    buffered=6,
    window_points=5,
    net_displacement_m=20.0,
    avg_speed_mps=2.0,
    avg_accuracy_m=5.0,
    position_spread_m=9.0,
    consecutive_moving=3,
    consecutive_stationary=0,
)

STILL_WINDOW = GateWindow(
    buffered=20,
    window_points=5,
    net_displacement_m=3.0,
    avg_speed_mps=0.1,
    avg_accuracy_m=10.0,
    position_spread_m=3.0,
    consecutive_moving=0,
    consecutive_stationary=6,
)


def test_unlock_when_all_conditions_hold():
    assert evaluate_unlock(MOVING_WINDOW, CFG)


@pytest.mark.parametrize("field,value", [
    ('net_displacement_m', 15.0),
    ('avg_speed_mps', 0.39),
    ('avg_accuracy_m', 50.5),
    ('consecutive_moving', 1),
    ('position_spread_m', 8.0),
])
def test_unlock_needs_every_condition(field, value):
    """Failing any single release condition keeps the lock."""
    window = replace(MOVING_WINDOW, **{field: value})
    assert not evaluate_unlock(window, CFG)
    assert next_gate_state(GateState.LOCKED, window, CFG) is GateState.LOCKED


def test_lock_when_displacement_collapses():
    window = replace(MOVING_WINDOW, net_displacement_m=5.0, avg_speed_mps=0.2)
    assert evaluate_lock(window, CFG)


def test_lock_when_settled():
    window = replace(MOVING_WINDOW, position_spread_m=4.0, consecutive_stationary=4)
    assert evaluate_lock(window, CFG)


def test_no_lock_while_moving():
    assert not evaluate_lock(MOVING_WINDOW, CFG)
    # Collapsed displacement alone is not enough at speed
    assert not evaluate_lock(replace(MOVING_WINDOW, net_displacement_m=5.0), CFG)


def test_transition_requires_enough_data():
    sparse = replace(MOVING_WINDOW, buffered=3)
    assert not has_enough_data(sparse, CFG)
    assert next_gate_state(GateState.LOCKED, sparse, CFG) is GateState.LOCKED

    thin = replace(STILL_WINDOW, window_points=2)
    assert next_gate_state(GateState.UNLOCKED, thin, CFG) is GateState.UNLOCKED


def test_next_gate_state_transitions():
    assert next_gate_state(GateState.LOCKED, MOVING_WINDOW, CFG) is GateState.UNLOCKED
    assert next_gate_state(GateState.UNLOCKED, STILL_WINDOW, CFG) is GateState.LOCKED
    assert next_gate_state(GateState.UNLOCKED, MOVING_WINDOW, CFG) is GateState.UNLOCKED
    assert next_gate_state(GateState.LOCKED, STILL_WINDOW, CFG) is GateState.LOCKED


def test_gate_starts_locked():
    gate = MovementGate()
    assert gate.is_locked
    assert gate.dwell_center is None


def test_record_motion_counters():
    gate = MovementGate()
    gate.record_motion(True, True)
    gate.record_motion(True, True)
    assert gate.consecutive_moving == 2
    # Disagreement decays the moving run by one
    gate.record_motion(True, False)
    assert gate.consecutive_moving == 1
    gate.record_motion(False, False)
    assert gate.consecutive_moving == 0
    assert gate.consecutive_stationary == 1
    gate.record_motion(False, True)
    assert gate.consecutive_moving == 0
    assert gate.consecutive_stationary == 1


def _drive(gate, norths, start_index=0, speed_mps=2.0, moving=True):
    states = []
    for i, north in enumerate(norths, start=start_index):
        gate.record_motion(moving, moving)
        states.append(gate.update(make_point(north, i * 5000, speed_mps=speed_mps)))
    return states


def test_gate_unlocks_exactly_when_conditions_first_hold():
    """
    5 m every 5 s at 2 m/s.

    Net displacement clears 15 m at the 5th sample, but the positional
    spread only clears 8 m at the 6th (7.07 m, then 8.54 m).
    """
    gate = MovementGate()
    states = _drive(gate, [0, 5, 10, 15, 20, 25])
    assert states == [GateState.LOCKED] * 5 + [GateState.UNLOCKED]
    assert gate.unlock_count == 1


def test_gate_does_not_unlock_without_motion_run():
    gate = MovementGate()
    for i in range(10):
        gate.record_motion(True, False)
        gate.update(make_point(i * 20.0, i * 5000, speed_mps=4.0))
    assert gate.is_locked


def test_gate_relocks_after_stop():
    """
    After unlocking at 25 m the device stops there.

    Moving points stay in the 20 s window, so the average speed is 1.2 m/s
    at sample 8 and 0.8 m/s at sample 9; it drops to 0.4 m/s at sample 10.
    """
    gate = MovementGate()
    _drive(gate, [0, 5, 10, 15, 20, 25])
    assert not gate.is_locked

    states = _drive(gate, [25, 25, 25, 25], start_index=6, speed_mps=0.0, moving=False)
    assert states == [GateState.UNLOCKED] * 3 + [GateState.LOCKED]
    assert gate.lock_count == 1
    assert gate.consecutive_moving == 0

    expected = make_point(25, 0)
    assert gate.dwell_center == pytest.approx((expected.latitude, expected.longitude))


def test_suppression_while_locked_records_dwell_center():
    gate = MovementGate()
    point = make_point(0, 0)
    assert gate.suppression(point) == SUPPRESS_LOCKED
    assert gate.dwell_center == (point.latitude, point.longitude)


def test_dwell_guard_after_unlock():
    """Inside the dwell radius nothing counts; leaving it clears the center."""
    gate = MovementGate()
    center = make_point(0, 0)
    gate.dwell_center = (center.latitude, center.longitude)
    gate.state = GateState.UNLOCKED

    assert gate.suppression(make_point(8, 5000)) == SUPPRESS_DWELL
    assert gate.dwell_center is not None

    assert gate.suppression(make_point(15, 10000)) is None
    assert gate.dwell_center is None
    assert gate.suppression(make_point(5, 15000)) is None


def test_window_statistics():
    gate = MovementGate()
    _drive(gate, [0, 10, 20])
    window = gate.window()
    assert window.buffered == 3
    assert window.window_points == 3
    assert window.net_displacement_m == pytest.approx(20.0, abs=1e-6)
    assert window.avg_speed_mps == pytest.approx(2.0)
    assert window.newest.timestamp_ms == 10000


def test_window_excludes_old_points():
    """Only points within the trailing 20 s enter the window statistics."""
    gate = MovementGate()
    _drive(gate, [0, 100, 100, 100, 100, 100, 100])
    window = gate.window()
    assert window.buffered == 7
    assert window.window_points == 5
    assert window.net_displacement_m == pytest.approx(0.0, abs=1e-6)

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
Position filtering module.
Contains the per-axis Kalman filter that smooths latitude and longitude
independently, weighting each fix by its reported accuracy.
"""
import logging
import math

from .structures import FilterState, MS_TO_S
from .tuning import TrackerConfig

logger = logging.getLogger(__name__)


def kalman_step(estimate, variance, measurement, measurement_variance, process_variance):
    """
    One predict/update cycle of a one-dimensional Kalman filter.

    Model assumes the position remains constant between fixes; uncertainty
    grows by ``process_variance`` during the prediction step.

    Args:
        estimate: prior estimate
        variance: prior variance
        measurement: new measurement
        measurement_variance: variance of the measurement
        process_variance: variance added by the prediction step

    Returns:
        tuple: (new estimate, new variance)
    """
    # Prediction - covariance increases over time
    predicted = variance + process_variance

    # Limits of the gain for a worthless measurement or an unknown prior
    if math.isinf(measurement_variance):
        return estimate, predicted
    if math.isinf(predicted):
        return measurement, measurement_variance

    # Correction - blend prediction and measurement
    K = predicted / (predicted + measurement_variance)  # Kalman gain
    estimate = estimate + K * (measurement - estimate)
    return estimate, (1 - K) * predicted


class PositionEstimator:
    """
    Recursive per-axis estimator for latitude and longitude.

    Accuracy only changes how much weight a fix gets; the estimator never
    refuses a sample. A fix with infinite accuracy leaves the estimate
    unchanged. Rejection on accuracy happens in the segment pipeline.
    """

    def __init__(self, tracker_config=None):
        self.config = tracker_config or TrackerConfig()
        self.state = None

    def reset(self):
        """Discard the whole filter state."""
        self.state = None

    def measurement_variance(self, accuracy_m):
        """Variance (m^2) of a fix, floored so perfect readings cannot dominate."""
        if accuracy_m is None:
            accuracy_m = self.config.default_accuracy_m
        sigma = max(self.config.kalman_measurement_noise_m, accuracy_m)
        return sigma * sigma

    def update(self, lat, lon, timestamp_ms, accuracy_m=None):
        """
        Fuse a new fix into the estimate.

        Args:
            lat: measured latitude (degrees)
            lon: measured longitude (degrees)
            timestamp_ms: fix time in milliseconds
            accuracy_m: reported horizontal accuracy in meters (or None)

        Returns:
            tuple: (filtered latitude, filtered longitude)
        """
        r = self.measurement_variance(accuracy_m)

        if self.state is None:
            self.state = FilterState(
                lat=lat,
                lon=lon,
                lat_variance=r,
                lon_variance=r,
                timestamp_ms=timestamp_ms,
            )
            return lat, lon

        # Out-of-order timestamps add no process noise
        dt = max((timestamp_ms - self.state.timestamp_ms) / MS_TO_S, 0.0)
        q = self.config.kalman_process_noise * dt
        process_variance = q * q

        new_lat, lat_var = kalman_step(self.state.lat, self.state.lat_variance, lat, r, process_variance)
        new_lon, lon_var = kalman_step(self.state.lon, self.state.lon_variance, lon, r, process_variance)

        self.state = FilterState(
            lat=new_lat,
            lon=new_lon,
            lat_variance=lat_var,
            lon_variance=lon_var,
            timestamp_ms=max(timestamp_ms, self.state.timestamp_ms),
        )
        return new_lat, new_lon

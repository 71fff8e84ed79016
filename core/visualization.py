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
TripMeter visualization module.

Draws the tuning chart for a replayed trip: cumulative distance over time
with counted segments marked, and the smoothed motion confidence with the
stationary-lock periods shaded.
"""
import logging
import os

import matplotlib.pyplot as plt
import numpy as np

import config
from locales.strings import LABELS

logger = logging.getLogger(__name__)


def timeline_arrays(timeline):
    """
    Convert timeline rows into numpy arrays.

    Args:
        timeline: list of dicts with keys ``time_s``, ``distance_km``,
            ``confidence``, ``locked`` and ``counted``

    Returns:
        dict of numpy arrays keyed like the rows
    """
    return {
        'time_s': np.array([row['time_s'] for row in timeline], dtype=float),
        'distance_km': np.array([row['distance_km'] for row in timeline], dtype=float),
        'confidence': np.array([row['confidence'] for row in timeline], dtype=float),
        'locked': np.array([bool(row['locked']) for row in timeline], dtype=bool),
        'counted': np.array([bool(row['counted']) for row in timeline], dtype=bool),
    }


def locked_intervals(times, locked):
    """
    Collapse a per-sample locked flag into (start, end) time spans.

    A span ends at the first unlocked sample after it, or at the last
    sample of the trip.
    """
    spans = []
    start = None
    for t, is_locked in zip(times.tolist(), locked.tolist()):
        if is_locked and start is None:
            start = t
        elif not is_locked and start is not None:
            spans.append((start, t))
            start = None
    if start is not None:
        spans.append((start, float(times[-1])))
    return spans


def _create_warnings_legend(ax, warnings):
    """Boxed list of warning messages in the upper-left corner."""
    if not warnings:
        return

    handles = [plt.Line2D([0], [0], marker='', linestyle='none', label=w, color='none')
               for w in warnings]
    leg = ax.legend(
        handles=handles,
        loc='upper left',
        frameon=True,
        fontsize=getattr(config, 'LEGEND_FONTSIZE', 10),
        fancybox=True,
        shadow=True,
    )
    frame = leg.get_frame()
    frame.set_facecolor('#ffe6e6')
    frame.set_edgecolor('#ff9999')
    ax.add_artist(leg)


def plot_trip_timeline(timeline, output_file=None, warnings_dict=None):
    """Build the trip tuning chart.

    Args:
        timeline: list of per-sample dicts (see ``timeline_arrays``)
        output_file: path for the PNG; without it the chart is shown
        warnings_dict: dict with warnings to print on the chart

    Returns:
        dict: {'chart_paths': {'timeline': path}} or None without data
    """
    if not timeline:
        logger.warning("No timeline data for chart building")
        return None

    data = timeline_arrays(timeline)
    times = data['time_s']
    result = {'chart_paths': {}}

    fig, (ax_dist, ax_conf) = plt.subplots(
        2, 1, sharex=True,
        figsize=getattr(config, 'CHART_FIGSIZE', (12, 8)),
        gridspec_kw={'height_ratios': [2, 1]},
    )

    # ===== Panel 1: cumulative distance =====
    ax_dist.plot(times, data['distance_km'],
                 color=getattr(config, 'DISTANCE_LINE_COLOR', '#1f77b4'),
                 label=LABELS['distance_line'])
    counted = data['counted']
    if counted.any():
        ax_dist.scatter(times[counted], data['distance_km'][counted],
                        s=getattr(config, 'COUNTED_MARKER_SIZE', 12),
                        color=getattr(config, 'DISTANCE_LINE_COLOR', '#1f77b4'),
                        label=LABELS['counted_points'], zorder=3)
    ax_dist.set_ylabel(LABELS['distance_axis'])
    ax_dist.set_title(LABELS['timeline_title'])
    ax_dist.grid(True, alpha=0.3)
    ax_dist.legend(loc='lower right', fontsize=getattr(config, 'LEGEND_FONTSIZE', 10))
    if warnings_dict:
        _create_warnings_legend(ax_dist, list(warnings_dict.values()))

    # ===== Panel 2: motion confidence with locked periods =====
    shade_label = LABELS['locked_period']
    for start, end in locked_intervals(times, data['locked']):
        ax_conf.axvspan(start, end,
                        color=getattr(config, 'LOCKED_SHADE_COLOR', '#d9d9d9'),
                        alpha=getattr(config, 'LOCKED_SHADE_ALPHA', 0.6),
                        label=shade_label, linewidth=0)
        shade_label = None
    ax_conf.plot(times, data['confidence'],
                 color=getattr(config, 'CONFIDENCE_LINE_COLOR', '#ff7f0e'),
                 label=LABELS['confidence_line'])
    ax_conf.axhline(getattr(config, 'MOTION_MOVING_THRESHOLD', 0.6), linestyle='--', linewidth=0.8, color='gray')
    ax_conf.axhline(getattr(config, 'MOTION_STATIONARY_THRESHOLD', 0.25), linestyle=':', linewidth=0.8, color='gray')
    ax_conf.set_ylim(0, 1.05)
    ax_conf.set_ylabel(LABELS['confidence_axis'])
    ax_conf.set_xlabel(LABELS['time_axis'])
    ax_conf.grid(True, alpha=0.3)
    ax_conf.legend(loc='upper right', fontsize=getattr(config, 'LEGEND_FONTSIZE', 10))

    fig.tight_layout()

    if output_file:
        base_filename, extension = os.path.splitext(output_file)
        timeline_filename = f"{base_filename}{extension or '.png'}"
        fig.savefig(timeline_filename, dpi=getattr(config, 'CHART_DPI', 150),
                    bbox_inches='tight', facecolor='white')
        result['chart_paths']['timeline'] = timeline_filename
        logger.info(f"Trip chart saved to {timeline_filename}")
    else:
        plt.show()

    plt.close(fig)
    return result

"""
Visualization of simulated path following runs.

This module plots a SimResult: the driven XY trajectory against the path's
translation targets and rotation-target headings, the heading against the
commanded heading, and speed over time.
"""

import math
from pathlib import Path
from typing import Optional

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.figure import Figure

from .path import RotationStep, rotation_target_translation
from .plot_styles import (
    COLOR_ACCENT,
    COLOR_ACTUAL,
    COLOR_NEUTRAL,
    COLOR_REFERENCE,
    TRAJECTORY_CMAP,
    add_legend,
    create_figure,
    save_figure,
    style_axis,
)
from .simulation import SimResult

ARROW_LENGTH_METERS = 0.4


def _rotation_target_positions(result: SimResult):
    """Yield (x, y, heading_rad) for every rotation target, waypoints included."""
    steps = result.path.get_path_elements_with_constraints_no_waypoints()
    for i, step in enumerate(steps):
        if not isinstance(step, RotationStep):
            continue
        point = rotation_target_translation(steps, i)
        if point is not None:
            yield point.x, point.y, step.element.rotation.radians


def plot_trajectory(ax, result: SimResult) -> None:
    """Draw the driven trajectory, the target polyline and rotation targets."""
    if result.path_translations:
        tx = [t.x for t in result.path_translations]
        ty = [t.y for t in result.path_translations]
        ax.plot(tx, ty, "--", color=COLOR_REFERENCE, linewidth=1.5, alpha=0.8, label="Path", zorder=1)
        ax.plot(tx, ty, "s", color=COLOR_REFERENCE, markersize=6, label="Translation targets", zorder=2)

    for i, (x, y, heading) in enumerate(_rotation_target_positions(result)):
        ax.annotate(
            "",
            xy=(x + ARROW_LENGTH_METERS * math.cos(heading), y + ARROW_LENGTH_METERS * math.sin(heading)),
            xytext=(x, y),
            arrowprops=dict(arrowstyle="->", color=COLOR_ACCENT, linewidth=2.0),
            zorder=4,
        )
        ax.plot(x, y, "o", color=COLOR_ACCENT, markersize=5, label="Rotation targets" if i == 0 else None)

    if len(result.t) > 0:
        ax.plot(result.x, result.y, "-", color=COLOR_ACTUAL, linewidth=1.5, alpha=0.6, label="Trajectory", zorder=3)
        scatter = ax.scatter(result.x, result.y, c=result.t, cmap=TRAJECTORY_CMAP, s=8, zorder=3)
        plt.colorbar(scatter, ax=ax, label="Time (s)")
        ax.plot(result.x[0], result.y[0], "o", color=COLOR_REFERENCE, markersize=8,
                markeredgecolor="black", label="Start", zorder=5)
        ax.plot(result.x[-1], result.y[-1], "o", color=COLOR_ACTUAL, markersize=8,
                markeredgecolor="black", label="End", zorder=5)

    ax.set_aspect("equal", adjustable="datalim")
    style_axis(ax, title="Trajectory", xlabel="X (m)", ylabel="Y (m)")
    add_legend(ax, fontsize=8)


def plot_sim_result(
    result: SimResult,
    title: str = "Path Following",
    save_path: Optional[Path] = None,
) -> Figure:
    """Plot the trajectory, heading tracking and speed of a simulated run.

    Args:
        result: Simulated run to plot.
        title: Figure title.
        save_path: Optional path to save the figure.

    Returns:
        Matplotlib figure object.
    """
    fig, axes = create_figure(1, 3, figsize=(18, 6), title=title)
    ax_xy, ax_heading, ax_speed = axes

    plot_trajectory(ax_xy, result)

    # Heading vs commanded heading, unwrapped so crossings of ±180° stay continuous
    if len(result.t) > 0:
        ax_heading.plot(result.t, np.degrees(np.unwrap(result.theta)), "-", color=COLOR_ACTUAL, label="Heading")
        ax_heading.plot(
            result.t, np.degrees(np.unwrap(result.target_heading)), "--", color=COLOR_REFERENCE, label="Commanded"
        )
    style_axis(ax_heading, title="Heading", xlabel="Time (s)", ylabel="Heading (deg)")
    add_legend(ax_heading)

    if len(result.t) > 0:
        speed = np.hypot(result.vx, result.vy)
        ax_speed.plot(result.t, speed, "-", color=COLOR_ACTUAL, label="Speed (m/s)")
        ax_speed.plot(result.t, np.degrees(result.omega) / 100.0, "-", color=COLOR_NEUTRAL,
                      alpha=0.7, label="Omega (100 deg/s)")
    style_axis(ax_speed, title="Speed", xlabel="Time (s)", ylabel="Speed")
    add_legend(ax_speed)

    fig.tight_layout()

    if save_path:
        save_figure(fig, save_path)

    return fig

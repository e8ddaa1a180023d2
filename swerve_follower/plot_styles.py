"""Shared plotting utilities and styles for path follower visualizations.

This module provides:
- Color scheme and the trajectory colormap
- Telemetry CSV loading
- Common plot styling functions

All visualization modules should import from this module to ensure consistency.
"""

import csv
import json
from pathlib import Path
from typing import Any, Dict, List, Tuple

import matplotlib.pyplot as plt
from matplotlib.axes import Axes
from matplotlib.colors import LinearSegmentedColormap

from .config import (
    COLOR_ACCENT,
    COLOR_ACTUAL,
    COLOR_DARK,
    COLOR_LIGHT,
    COLOR_NEUTRAL,
    COLOR_REFERENCE,
)

__all__ = [
    "COLOR_ACTUAL",
    "COLOR_REFERENCE",
    "COLOR_LIGHT",
    "COLOR_NEUTRAL",
    "COLOR_ACCENT",
    "COLOR_DARK",
    "TRAJECTORY_CMAP",
    "load_telemetry_csv",
    "style_axis",
    "add_legend",
    "create_figure",
    "save_figure",
]

# ============================================================================
# Color Scheme and Colormaps
# ============================================================================

TRAJECTORY_CMAP = LinearSegmentedColormap.from_list("trajectory", [COLOR_REFERENCE, COLOR_ACTUAL])
"""Colormap for time along a trajectory, start (blue) to end (orange)."""


# ============================================================================
# Telemetry Loading
# ============================================================================


def _decode_value(raw: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def load_telemetry_csv(filepath: Path) -> Dict[str, List[Tuple[float, Any]]]:
    """Load a telemetry CSV written by TelemetryLogger.

    Args:
        filepath: Path to the CSV file.

    Returns:
        Dictionary mapping each key to its (timestamp, value) entries, oldest
        first. Numbers, booleans and lists are decoded; other values stay strings.

    Raises:
        FileNotFoundError: If the CSV file does not exist.
        ValueError: If the header is not timestamp,key,value.

    Example:
        >>> data = load_telemetry_csv(Path("telemetry.csv"))
        >>> data["FollowPath/translationElementIndex"][-1]
        (4.2, 3)
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"CSV file not found: {filepath}")

    data: Dict[str, List[Tuple[float, Any]]] = {}
    with open(filepath, newline="") as f:
        reader = csv.reader(f)
        headers = next(reader, None)
        if headers != ["timestamp", "key", "value"]:
            raise ValueError(f"Unexpected telemetry CSV headers: {headers}")
        for row in reader:
            if len(row) != 3:
                continue
            data.setdefault(row[1], []).append((float(row[0]), _decode_value(row[2])))
    return data


# ============================================================================
# Plot Styling Functions
# ============================================================================


def style_axis(
    ax: Axes,
    title: str = "",
    xlabel: str = "",
    ylabel: str = "",
    grid: bool = True,
    dark_mode: bool = False,
) -> None:
    """Apply consistent styling to a matplotlib axis.

    Args:
        ax: Matplotlib axis to style.
        title: Plot title (optional).
        xlabel: X-axis label (optional).
        ylabel: Y-axis label (optional).
        grid: Whether to show grid lines (default: True).
        dark_mode: Whether to use dark mode styling (default: False).
    """
    text_color = COLOR_LIGHT if dark_mode else None
    if title:
        ax.set_title(title, fontweight="bold", color=text_color)
    if xlabel:
        ax.set_xlabel(xlabel, color=text_color)
    if ylabel:
        ax.set_ylabel(ylabel, color=text_color)

    if grid:
        ax.grid(True, alpha=0.3, linestyle="--", linewidth=0.5)

    if dark_mode:
        ax.set_facecolor(COLOR_DARK)
        ax.tick_params(colors=COLOR_LIGHT)
        for spine in ax.spines.values():
            spine.set_edgecolor(COLOR_NEUTRAL)


def add_legend(ax: Axes, loc: str = "best", dark_mode: bool = False, **kwargs) -> None:
    """Add a legend with the shared styling.

    Args:
        ax: Matplotlib axis to add legend to.
        loc: Legend location (default: "best").
        dark_mode: Whether to use dark mode styling (default: False).
        **kwargs: Additional keyword arguments passed to ax.legend().
    """
    legend_kwargs = {
        "loc": loc,
        "framealpha": 0.9,
        "edgecolor": COLOR_NEUTRAL,
    }
    if dark_mode:
        legend_kwargs["facecolor"] = COLOR_DARK
        legend_kwargs["labelcolor"] = COLOR_LIGHT

    # User kwargs take precedence
    legend_kwargs.update(kwargs)
    ax.legend(**legend_kwargs)


# ============================================================================
# Figure Creation Helpers
# ============================================================================


def create_figure(
    nrows: int = 1,
    ncols: int = 1,
    figsize: Tuple[float, float] = (12, 8),
    dark_mode: bool = False,
    title: str = "",
) -> Tuple[plt.Figure, Any]:
    """Create a matplotlib figure with the shared styling.

    Args:
        nrows: Number of subplot rows.
        ncols: Number of subplot columns.
        figsize: Figure size in inches (width, height).
        dark_mode: Whether to use dark mode styling (default: False).
        title: Optional main figure title.

    Returns:
        Tuple of (figure, axes); axes is an array when more than one subplot.
    """
    facecolor = COLOR_DARK if dark_mode else None
    fig, axes = plt.subplots(nrows, ncols, figsize=figsize, facecolor=facecolor)
    if title:
        fig.suptitle(title, fontsize=14, fontweight="bold", color=COLOR_LIGHT if dark_mode else None)
    return fig, axes


def save_figure(fig: plt.Figure, filepath: Path, dpi: int = 150, bbox_inches: str = "tight") -> None:
    """Save figure with consistent settings, creating the directory if needed."""
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(filepath, dpi=dpi, bbox_inches=bbox_inches)
    print(f"Saved figure to {filepath}")

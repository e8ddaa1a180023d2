"""Configuration parameters for the swerve path follower.

This module centralizes all configuration parameters including:
- Field geometry used for alliance-side path flipping
- Default global path constraints (velocity, acceleration, tolerances)
- Feedback controller gains
- Control loop timing and numerical guards
- Swerve module geometry for the kinematics/simulation layer
- Telemetry and visualization settings

All parameters are documented with their purpose, units and valid ranges.
"""

# ============================================================================
# Field Geometry
# ============================================================================

FIELD_LENGTH_METERS = 17.548
"""Length of the field along the x axis (meters).

Used by Path.flip() to mirror translations onto the opposite alliance side.
"""

FIELD_WIDTH_METERS = 8.052
"""Width of the field along the y axis (meters)."""

FIELD_SYMMETRY = "rotational"
"""Field symmetry used when flipping a path ("rotational" or "mirrored").

- rotational: (x, y, θ) -> (L - x, W - y, θ + π)
- mirrored:   (x, y, θ) -> (L - x, y, π - θ)
"""


# ============================================================================
# Default Global Path Constraints
# ============================================================================

DEFAULT_INTERMEDIATE_HANDOFF_RADIUS_METERS = 0.2
"""Distance to an intermediate translation target at which the follower hands
off to the next one (meters).

Tuning rationale:
- Large enough that the vehicle does not decelerate into every corner
- Small enough that corners are not cut noticeably at full speed
"""

DEFAULT_MAX_VELOCITY_METERS_PER_SEC = 4.5
"""Maximum translational chassis speed (m/s). Range: (0, free speed]."""

DEFAULT_MAX_ACCELERATION_METERS_PER_SEC2 = 11.0
"""Maximum translational chassis acceleration (m/s²)."""

DEFAULT_MAX_VELOCITY_DEG_PER_SEC = 720.0
"""Maximum chassis angular speed (deg/s)."""

DEFAULT_MAX_ACCELERATION_DEG_PER_SEC2 = 1500.0
"""Maximum chassis angular acceleration (deg/s²)."""

DEFAULT_END_TRANSLATION_TOLERANCE_METERS = 0.03
"""Distance from the final translation target considered "arrived" (meters)."""

DEFAULT_END_ROTATION_TOLERANCE_DEG = 2.0
"""Heading error at the final rotation target considered "arrived" (degrees)."""


# ============================================================================
# Feedback Controller Gains
# ============================================================================

TRANSLATION_KP = 5.0
"""Proportional gain of the remaining-distance controller ((m/s) per m).

The controller drives remaining path distance to zero. With the rate limiter
capping the output at the path's max velocity, the proportional gain mainly
sets how late the vehicle begins to brake near the final target.
"""

TRANSLATION_KI = 0.0
"""Integral gain of the remaining-distance controller."""

TRANSLATION_KD = 0.0
"""Derivative gain of the remaining-distance controller."""

ROTATION_KP = 3.0
"""Proportional gain of the heading controller ((rad/s) per rad)."""

ROTATION_KI = 0.0
"""Integral gain of the heading controller."""

ROTATION_KD = 0.0
"""Derivative gain of the heading controller."""

PID_INTEGRATOR_LIMIT = 1.0
"""Anti-windup clamp applied to the accumulated integral term (± value)."""


# ============================================================================
# Control Loop Timing and Numerical Guards
# ============================================================================

CONTROL_PERIOD_SECONDS = 0.02
"""Nominal control period (seconds). 50 Hz matches the typical robot loop."""

RATE_LIMITER_MIN_DT_SECONDS = 1e-3
"""Smallest elapsed time accepted by the rate limiter (seconds).

Cycles reported closer together than this are treated as this long so that
acceleration limits never divide by a vanishing interval.
"""

ROTATION_SEGMENT_EPSILON_METERS = 1e-6
"""Segment lengths below this are treated as degenerate (meters)."""


# ============================================================================
# Telemetry
# ============================================================================

TELEMETRY_PREFIX = "FollowPath"
"""Key prefix for all follower telemetry entries."""

TRAIL_SAMPLE_INTERVAL = 3
"""Record the vehicle translation in the diagnostic trail every N cycles."""

TRAIL_MAX_POINTS = 100
"""Trail length that triggers trimming of the oldest entries."""

TRAIL_KEEP_POINTS = 75
"""Number of most recent trail entries kept after trimming."""


# ============================================================================
# Swerve Drivetrain Geometry
# ============================================================================

MODULE_OFFSET_X_METERS = 0.2921
"""Distance from robot center to each module along the robot x axis (meters)."""

MODULE_OFFSET_Y_METERS = 0.2921
"""Distance from robot center to each module along the robot y axis (meters)."""

MAX_MODULE_SPEED_METERS_PER_SEC = 4.8
"""Free speed of a single drive wheel (m/s). Used for wheel desaturation."""


# ============================================================================
# Simulation
# ============================================================================

SIM_TIMEOUT_SECONDS = 30.0
"""Upper bound on simulated time before a run is reported as unfinished."""


# ============================================================================
# Visualization Colors
# ============================================================================

COLOR_ACTUAL = "#f74823"
"""Primary color - actual vehicle trajectory and measured heading."""

COLOR_REFERENCE = "#2374f7"
"""Secondary color - authored path and commanded heading."""

COLOR_LIGHT = "#fffdee"
"""Light color for text and labels on dark backgrounds."""

COLOR_NEUTRAL = "#686a5f"
"""Neutral color for guides, grids and secondary elements."""

COLOR_ACCENT = "#ffa726"
"""Accent color for rotation targets and highlights."""

COLOR_DARK = "#0d1b2a"
"""Dark background color for dark mode displays."""

# Terminal color codes (ANSI escape sequences)
TERM_ORANGE = "\033[38;2;247;72;35m"
"""Terminal color code for orange (RGB: 247, 72, 35)."""

TERM_BLUE = "\033[38;2;35;116;247m"
"""Terminal color code for blue (RGB: 35, 116, 247)."""

TERM_RESET = "\033[0m"
"""Terminal color reset code."""

"""Chassis speed shaping for the path follower.

Turns an unconstrained chassis velocity request into one that respects the
active velocity and acceleration limits:
- Translation (vx, vy) is limited as a 2D vector, so capping never bends the
  direction of travel
- Rotation (omega) is limited independently

The shaped output is meant to be fed back as `last` on the next cycle.
"""

import numpy as np

from .config import RATE_LIMITER_MIN_DT_SECONDS
from .geometry import ChassisSpeeds


def _clamp_vector(vector: np.ndarray, max_norm: float) -> np.ndarray:
    """Scale a vector down so its norm does not exceed max_norm.

    Non-positive max_norm collapses the vector to zero.
    """
    if max_norm <= 0.0:
        return np.zeros_like(vector)
    norm = float(np.linalg.norm(vector))
    if norm <= max_norm:
        return vector
    return vector * (max_norm / norm)


def _clamp_scalar(value: float, max_magnitude: float) -> float:
    if max_magnitude <= 0.0:
        return 0.0
    return max(-max_magnitude, min(max_magnitude, value))


def limit(
    desired: ChassisSpeeds,
    last: ChassisSpeeds,
    dt: float,
    max_acceleration_mps2: float,
    max_alpha_radps2: float,
    max_velocity_mps: float,
    max_omega_radps: float,
) -> ChassisSpeeds:
    """Limit a chassis velocity request by velocity and acceleration.

    Args:
        desired: Requested field-relative velocity.
        last: Velocity commanded on the previous cycle.
        dt: Elapsed time since the previous cycle (seconds). Values below
            RATE_LIMITER_MIN_DT_SECONDS are raised to it.
        max_acceleration_mps2: Translational acceleration limit (m/s²).
        max_alpha_radps2: Angular acceleration limit (rad/s²).
        max_velocity_mps: Translational speed limit (m/s).
        max_omega_radps: Angular speed limit (rad/s).

    Returns:
        The shaped velocity. The change from `last` never exceeds
        acceleration × dt. When `last` is above a newly lowered velocity limit
        the output slows toward it at that rate instead of jumping.
    """
    dt = max(float(dt), RATE_LIMITER_MIN_DT_SECONDS)

    # Translation: cap speed, then cap the change vector
    last_v = np.array([last.vx_mps, last.vy_mps], dtype=float)
    desired_v = _clamp_vector(np.array([desired.vx_mps, desired.vy_mps], dtype=float), max_velocity_mps)

    if max_acceleration_mps2 > 0.0:
        delta_v = _clamp_vector(desired_v - last_v, max_acceleration_mps2 * dt)
    else:
        delta_v = np.zeros(2)
    limited_v = last_v + delta_v

    # Rotation: same two steps on the scalar
    desired_omega = _clamp_scalar(desired.omega_radps, max_omega_radps)
    if max_alpha_radps2 > 0.0:
        delta_omega = _clamp_scalar(desired_omega - last.omega_radps, max_alpha_radps2 * dt)
    else:
        delta_omega = 0.0
    limited_omega = last.omega_radps + delta_omega

    return ChassisSpeeds(float(limited_v[0]), float(limited_v[1]), limited_omega)

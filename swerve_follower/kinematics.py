"""
Swerve drive kinematic model.

This module converts between chassis speeds and individual swerve module
states (wheel speed and steering angle) for a four-module drive.

For a module mounted at (x_i, y_i) relative to the vehicle center, the
velocity the module must produce is:
    v_xi = vx - omega * y_i
    v_yi = vy + omega * x_i

Inverse kinematics evaluates this for every module. Forward kinematics solves
the stacked (overdetermined) system back for (vx, vy, omega) in the
least-squares sense.
"""

import math
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from .config import MAX_MODULE_SPEED_METERS_PER_SEC, MODULE_OFFSET_X_METERS, MODULE_OFFSET_Y_METERS
from .geometry import ChassisSpeeds, Rotation2d, Translation2d, angle_modulus


@dataclass(frozen=True)
class SwerveModuleState:
    """Wheel speed (m/s) and steering angle of one module."""

    speed_mps: float = 0.0
    angle: Rotation2d = Rotation2d()

    def optimize(self, current_angle: Rotation2d) -> "SwerveModuleState":
        """Flip the wheel direction when that needs less than 90 degrees of steering.

        Args:
            current_angle: Angle the module is currently steered to.

        Returns:
            Equivalent state that minimises steering travel.
        """
        delta = angle_modulus(self.angle.radians - current_angle.radians)
        if abs(delta) > math.pi / 2.0:
            return SwerveModuleState(-self.speed_mps, Rotation2d(angle_modulus(self.angle.radians + math.pi)))
        return self


def default_module_locations() -> List[Translation2d]:
    """Module offsets from the vehicle center: front-left, front-right, back-left, back-right."""
    return [
        Translation2d(MODULE_OFFSET_X_METERS, MODULE_OFFSET_Y_METERS),
        Translation2d(MODULE_OFFSET_X_METERS, -MODULE_OFFSET_Y_METERS),
        Translation2d(-MODULE_OFFSET_X_METERS, MODULE_OFFSET_Y_METERS),
        Translation2d(-MODULE_OFFSET_X_METERS, -MODULE_OFFSET_Y_METERS),
    ]


def desaturate_wheel_speeds(
    states: Sequence[SwerveModuleState], max_speed_mps: float = MAX_MODULE_SPEED_METERS_PER_SEC
) -> List[SwerveModuleState]:
    """Scale all module speeds down together so none exceeds max_speed_mps.

    Scaling every module by the same factor keeps the chassis motion direction
    and its ratio of translation to rotation.
    """
    fastest = max((abs(s.speed_mps) for s in states), default=0.0)
    if fastest <= max_speed_mps or fastest == 0.0:
        return list(states)
    scale = max_speed_mps / fastest
    return [SwerveModuleState(s.speed_mps * scale, s.angle) for s in states]


class SwerveDriveKinematics:
    """Inverse and forward kinematics for a swerve drive.

    Attributes:
        module_locations: Module offsets from the vehicle center (meters).
    """

    def __init__(self, module_locations: Optional[Sequence[Translation2d]] = None):
        """Initialize the kinematic model.

        Args:
            module_locations: Module offsets from the vehicle center. Defaults
                to a square layout from config.py.

        Raises:
            ValueError: If fewer than two modules are given.
        """
        if module_locations is None:
            module_locations = default_module_locations()
        if len(module_locations) < 2:
            raise ValueError("A swerve drive needs at least two modules")

        self.module_locations: List[Translation2d] = list(module_locations)

        # Rows [1, 0, -y_i] and [0, 1, x_i] per module
        rows = []
        for location in self.module_locations:
            rows.append([1.0, 0.0, -location.y])
            rows.append([0.0, 1.0, location.x])
        self._inverse_matrix = np.array(rows, dtype=float)

    def to_module_states(self, speeds: ChassisSpeeds) -> List[SwerveModuleState]:
        """Compute module states from vehicle-frame chassis speeds.

        Args:
            speeds: Desired vehicle-frame velocity.

        Returns:
            One SwerveModuleState per module, in module_locations order. A
            module asked for zero speed keeps a zero angle.
        """
        chassis = np.array([speeds.vx_mps, speeds.vy_mps, speeds.omega_radps], dtype=float)
        module_velocities = self._inverse_matrix @ chassis

        states = []
        for i in range(len(self.module_locations)):
            vx = float(module_velocities[2 * i])
            vy = float(module_velocities[2 * i + 1])
            speed = math.hypot(vx, vy)
            angle = Rotation2d(math.atan2(vy, vx)) if speed > 1e-9 else Rotation2d()
            states.append(SwerveModuleState(speed, angle))
        return states

    def to_chassis_speeds(self, states: Sequence[SwerveModuleState]) -> ChassisSpeeds:
        """Recover vehicle-frame chassis speeds from measured module states.

        Raises:
            ValueError: If the number of states does not match the module count.
        """
        if len(states) != len(self.module_locations):
            raise ValueError(
                f"Expected {len(self.module_locations)} module states, got {len(states)}"
            )

        module_velocities = np.empty(2 * len(states), dtype=float)
        for i, state in enumerate(states):
            module_velocities[2 * i] = state.speed_mps * state.angle.cos()
            module_velocities[2 * i + 1] = state.speed_mps * state.angle.sin()

        solution, *_ = np.linalg.lstsq(self._inverse_matrix, module_velocities, rcond=None)
        return ChassisSpeeds(float(solution[0]), float(solution[1]), float(solution[2]))

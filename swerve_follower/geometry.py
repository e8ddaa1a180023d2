"""Planar geometry primitives for field-relative path following.

Provides the small set of 2D types the follower works in:
- Translation2d: a point / vector on the field (meters)
- Rotation2d: a heading (radians), with wrap-aware arithmetic
- Pose2d: translation plus heading
- ChassisSpeeds: (vx, vy, omega) velocity, with field/robot frame conversion

Angles are wrapped into (-π, π] by angle_modulus(), so that differences always
describe the short way around the circle.
"""

import math
from dataclasses import dataclass


def input_modulus(value: float, minimum_input: float, maximum_input: float) -> float:
    """Wrap a value into the continuous range (minimum_input, maximum_input].

    Args:
        value: Value to wrap.
        minimum_input: Lower bound of the range (exclusive).
        maximum_input: Upper bound of the range (inclusive).

    Returns:
        The equivalent value inside the range.
    """
    modulus = maximum_input - minimum_input
    wrapped = math.fmod(value - minimum_input, modulus)
    if wrapped <= 0.0:
        wrapped += modulus
    return wrapped + minimum_input


def angle_modulus(angle_rad: float) -> float:
    """Wrap an angle into (-π, π].

    Args:
        angle_rad: Angle in radians, any magnitude.

    Returns:
        Equivalent angle in (-π, π].
    """
    return input_modulus(angle_rad, -math.pi, math.pi)


@dataclass(frozen=True)
class Translation2d:
    """A point or displacement on the field (meters)."""

    x: float = 0.0
    y: float = 0.0

    def distance(self, other: "Translation2d") -> float:
        """Euclidean distance to another translation (meters)."""
        return math.hypot(other.x - self.x, other.y - self.y)

    def angle_to(self, other: "Translation2d") -> "Rotation2d":
        """Direction from this point toward another point.

        Returns a zero rotation when the points coincide.
        """
        return Rotation2d(math.atan2(other.y - self.y, other.x - self.x))

    def rotate_by(self, rotation: "Rotation2d") -> "Translation2d":
        c = rotation.cos()
        s = rotation.sin()
        return Translation2d(self.x * c - self.y * s, self.x * s + self.y * c)

    def interpolate(self, end: "Translation2d", t: float) -> "Translation2d":
        """Linear interpolation toward end, t clamped to [0, 1]."""
        t = max(0.0, min(1.0, t))
        return Translation2d(self.x + (end.x - self.x) * t, self.y + (end.y - self.y) * t)


@dataclass(frozen=True)
class Rotation2d:
    """A heading, stored as an angle in radians.

    The stored angle is not wrapped; use minus() or angle_modulus() when a
    value in (-π, π] is needed.
    """

    radians: float = 0.0

    @classmethod
    def from_degrees(cls, degrees: float) -> "Rotation2d":
        return cls(math.radians(degrees))

    @property
    def degrees(self) -> float:
        return math.degrees(self.radians)

    def cos(self) -> float:
        return math.cos(self.radians)

    def sin(self) -> float:
        return math.sin(self.radians)

    def minus(self, other: "Rotation2d") -> "Rotation2d":
        """Shortest signed rotation taking other onto self, in (-π, π]."""
        return Rotation2d(angle_modulus(self.radians - other.radians))

    def unary_minus(self) -> "Rotation2d":
        return Rotation2d(angle_modulus(-self.radians))


@dataclass(frozen=True)
class Pose2d:
    """Field-relative position and heading of the vehicle."""

    translation: Translation2d = Translation2d()
    rotation: Rotation2d = Rotation2d()

    @property
    def x(self) -> float:
        return self.translation.x

    @property
    def y(self) -> float:
        return self.translation.y

    @classmethod
    def from_xy_theta(cls, x: float, y: float, theta_rad: float) -> "Pose2d":
        return cls(Translation2d(x, y), Rotation2d(theta_rad))


@dataclass(frozen=True)
class ChassisSpeeds:
    """Chassis velocity: vx, vy in m/s and omega in rad/s.

    The frame (field or robot) is implied by the producer; use the conversion
    helpers to move between them.
    """

    vx_mps: float = 0.0
    vy_mps: float = 0.0
    omega_radps: float = 0.0

    def translational_speed(self) -> float:
        return math.hypot(self.vx_mps, self.vy_mps)

    @staticmethod
    def from_field_relative_speeds(
        field_speeds: "ChassisSpeeds", robot_heading: Rotation2d
    ) -> "ChassisSpeeds":
        """Convert field-relative speeds into the vehicle's own frame.

        Args:
            field_speeds: Velocity expressed in the field frame.
            robot_heading: Current vehicle heading.

        Returns:
            The same velocity expressed in the vehicle frame.
        """
        rotated = Translation2d(field_speeds.vx_mps, field_speeds.vy_mps).rotate_by(
            robot_heading.unary_minus()
        )
        return ChassisSpeeds(rotated.x, rotated.y, field_speeds.omega_radps)

    @staticmethod
    def from_robot_relative_speeds(
        robot_speeds: "ChassisSpeeds", robot_heading: Rotation2d
    ) -> "ChassisSpeeds":
        """Convert vehicle-frame speeds into the field frame."""
        rotated = Translation2d(robot_speeds.vx_mps, robot_speeds.vy_mps).rotate_by(robot_heading)
        return ChassisSpeeds(rotated.x, rotated.y, robot_speeds.omega_radps)

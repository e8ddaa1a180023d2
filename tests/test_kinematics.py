"""Tests for swerve kinematics."""

from __future__ import annotations

import math

import pytest

from swerve_follower.geometry import ChassisSpeeds, Rotation2d, Translation2d
from swerve_follower.kinematics import (
    SwerveDriveKinematics,
    SwerveModuleState,
    desaturate_wheel_speeds,
)


@pytest.fixture
def kinematics() -> SwerveDriveKinematics:
    return SwerveDriveKinematics(
        [Translation2d(0.3, 0.3), Translation2d(0.3, -0.3), Translation2d(-0.3, 0.3), Translation2d(-0.3, -0.3)]
    )


class TestInverse:
    def test_pure_translation(self, kinematics):
        states = kinematics.to_module_states(ChassisSpeeds(1.0, 0.0, 0.0))
        for state in states:
            assert state.speed_mps == pytest.approx(1.0)
            assert state.angle.radians == pytest.approx(0.0)

    def test_pure_rotation(self, kinematics):
        states = kinematics.to_module_states(ChassisSpeeds(0.0, 0.0, 1.0))
        radius = math.hypot(0.3, 0.3)
        assert all(s.speed_mps == pytest.approx(radius) for s in states)
        # Front-left module moves toward the back-left
        assert states[0].angle.degrees == pytest.approx(135.0)

    def test_stationary_modules_keep_zero_angle(self, kinematics):
        states = kinematics.to_module_states(ChassisSpeeds())
        assert all(s.speed_mps == 0.0 and s.angle.radians == 0.0 for s in states)


class TestForward:
    def test_recovers_chassis_speeds(self, kinematics):
        speeds = ChassisSpeeds(1.2, -0.5, 0.8)
        recovered = kinematics.to_chassis_speeds(kinematics.to_module_states(speeds))
        assert recovered.vx_mps == pytest.approx(1.2)
        assert recovered.vy_mps == pytest.approx(-0.5)
        assert recovered.omega_radps == pytest.approx(0.8)

    def test_rejects_wrong_module_count(self, kinematics):
        with pytest.raises(ValueError):
            kinematics.to_chassis_speeds([SwerveModuleState()])


def test_needs_two_modules():
    with pytest.raises(ValueError):
        SwerveDriveKinematics([Translation2d()])


def test_desaturate_scales_all_modules_together():
    states = [SwerveModuleState(6.0, Rotation2d()), SwerveModuleState(3.0, Rotation2d(1.0))]
    scaled = desaturate_wheel_speeds(states, 4.0)
    assert scaled[0].speed_mps == pytest.approx(4.0)
    assert scaled[1].speed_mps == pytest.approx(2.0)
    assert scaled[1].angle.radians == 1.0


def test_optimize_reverses_wheel_instead_of_half_turn():
    state = SwerveModuleState(2.0, Rotation2d.from_degrees(170.0))
    optimized = state.optimize(Rotation2d.from_degrees(0.0))
    assert optimized.speed_mps == pytest.approx(-2.0)
    assert optimized.angle.degrees == pytest.approx(-10.0)

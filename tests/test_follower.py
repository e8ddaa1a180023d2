"""Tests for the PathFollower state machine."""

from __future__ import annotations

import math

import pytest

from swerve_follower import config
from swerve_follower.follower import (
    ConfigurationError,
    FollowerConfig,
    FollowerState,
    PathFollower,
)
from swerve_follower.geometry import ChassisSpeeds, Pose2d, Rotation2d, Translation2d
from swerve_follower.path import Path, RotationTarget, TranslationTarget, Waypoint
from swerve_follower.telemetry import TelemetryLogger

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def make_path(*elements) -> Path:
    return Path(path_elements=list(elements))


def T(x: float, y: float, radius: float | None = None) -> TranslationTarget:
    return TranslationTarget(Translation2d(x, y), radius)


def R(deg: float, t_ratio: float = 0.5, profiled: bool = True) -> RotationTarget:
    return RotationTarget(Rotation2d.from_degrees(deg), t_ratio, profiled)


def make_follower(path, drive, clock, flip: bool = False, cfg: FollowerConfig | None = None) -> PathFollower:
    return PathFollower(
        path,
        pose_supplier=drive.get_pose,
        robot_relative_speeds_supplier=drive.get_speeds,
        robot_relative_speeds_consumer=drive.drive,
        should_flip_supplier=lambda: flip,
        pose_reset_consumer=drive.reset_pose,
        config=cfg if cfg is not None else FollowerConfig.from_defaults(),
        telemetry=TelemetryLogger(clock=clock),
        clock=clock,
    )


def step(follower: PathFollower, drive, clock, pose: Pose2d | None = None) -> None:
    """Advance the clock one period, optionally move the vehicle, then execute."""
    clock.tick()
    if pose is not None:
        drive.pose = pose
    follower.execute()


def target_rotation(follower: PathFollower) -> float:
    return follower.telemetry.get("FollowPath/targetRotation")


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class TestConfiguration:
    def test_missing_gains_raise(self, drive, clock):
        with pytest.raises(ConfigurationError):
            make_follower(make_path(T(0, 0)), drive, clock, cfg=FollowerConfig())

    def test_missing_rotation_gains_raise(self):
        cfg = FollowerConfig()
        cfg.set_translation_controller(1.0, 0.0, 0.0)
        with pytest.raises(ConfigurationError):
            cfg.rotation_controller()

    def test_bad_gains_raise_value_error(self):
        with pytest.raises(ValueError):
            FollowerConfig().set_translation_controller(-1.0, 0.0, 0.0)

    def test_from_defaults_uses_config_gains(self):
        cfg = FollowerConfig.from_defaults()
        assert cfg.translation_gains.kp == config.TRANSLATION_KP
        assert cfg.rotation_gains.kp == config.ROTATION_KP


# ---------------------------------------------------------------------------
# initialize
# ---------------------------------------------------------------------------


class TestInitialize:
    def test_resets_pose_to_first_translation_and_rotation(self, drive, clock):
        follower = make_follower(make_path(T(1, 2), R(90.0), T(5, 2)), drive, clock)
        follower.initialize()

        assert len(drive.resets) == 1
        assert drive.resets[0].translation == Translation2d(1, 2)
        assert drive.resets[0].rotation.degrees == pytest.approx(90.0)
        assert follower.state is FollowerState.ACTIVE

    def test_reset_keeps_current_heading_without_rotation_targets(self, drive, clock):
        drive.pose = Pose2d.from_xy_theta(0.0, 0.0, 0.4)
        follower = make_follower(make_path(T(1, 2), T(5, 2)), drive, clock)
        follower.initialize()
        assert drive.resets[0].rotation.radians == pytest.approx(0.4)

    def test_translation_cursor_starts_on_first_translation(self, drive, clock):
        follower = make_follower(make_path(R(45.0), T(1, 0), T(2, 0)), drive, clock)
        follower.initialize()
        assert follower.translation_element_index == 1
        assert follower.rotation_element_index == 0
        assert follower.previous_rotation_element_index is None

    def test_flip_applies_once_per_activation(self, drive, clock):
        follower = make_follower(make_path(T(1, 2), R(90.0), T(5, 2)), drive, clock, flip=True)
        follower.initialize()
        follower.initialize()

        for reset in drive.resets:
            assert reset.x == pytest.approx(config.FIELD_LENGTH_METERS - 1.0)
            assert reset.y == pytest.approx(config.FIELD_WIDTH_METERS - 2.0)
            assert reset.rotation.degrees == pytest.approx(-90.0)

    def test_caller_path_is_copied(self, drive, clock):
        path = make_path(T(1, 2), T(5, 2))
        follower = make_follower(path, drive, clock)
        path.path_elements[0].translation = Translation2d(9, 9)
        follower.initialize()
        assert drive.resets[0].translation == Translation2d(1, 2)

    def test_records_path_translations(self, drive, clock):
        follower = make_follower(make_path(T(1, 2), R(0.0), T(5, 2)), drive, clock)
        follower.initialize()
        assert follower.telemetry.get("FollowPath/pathTranslations") == [[1, 2], [5, 2]]


# ---------------------------------------------------------------------------
# Invalid paths
# ---------------------------------------------------------------------------


class TestInvalidPath:
    @pytest.mark.parametrize("elements", [[], [R(90.0)]])
    def test_inert_and_finished(self, drive, clock, elements):
        follower = make_follower(make_path(*elements), drive, clock)
        follower.initialize()
        step(follower, drive, clock)

        assert drive.resets == []
        assert drive.commands == []
        assert follower.is_finished()
        assert "invalid" in follower.telemetry.get("FollowPath/warning")

    def test_warning_logged_once(self, drive, clock, caplog):
        follower = make_follower(make_path(), drive, clock)
        follower.initialize()
        for _ in range(5):
            step(follower, drive, clock)
        warnings = [r for r in caplog.records if "skipping execution" in r.getMessage()]
        assert len(warnings) == 1


# ---------------------------------------------------------------------------
# Translation
# ---------------------------------------------------------------------------


class TestTranslation:
    def test_finishes_when_already_at_single_target(self, drive, clock):
        follower = make_follower(make_path(T(3, 4)), drive, clock)
        follower.initialize()
        step(follower, drive, clock)
        assert follower.is_finished()
        assert follower.state is FollowerState.FINISHED

    def test_handoff_within_radius(self, drive, clock):
        follower = make_follower(make_path(T(0, 0), T(5, 0, radius=0.5), T(10, 0)), drive, clock)
        follower.initialize()
        step(follower, drive, clock)
        assert follower.translation_element_index == 1

        step(follower, drive, clock, Pose2d.from_xy_theta(4.6, 0.0, 0.0))
        assert follower.translation_element_index == 2

    def test_stays_on_last_target(self, drive, clock):
        follower = make_follower(make_path(T(0, 0), T(1, 0)), drive, clock)
        follower.initialize()
        step(follower, drive, clock)
        step(follower, drive, clock, Pose2d.from_xy_theta(1.0, 0.0, 0.0))
        step(follower, drive, clock)
        assert follower.translation_element_index == 1

    def test_remaining_distance_follows_path(self, drive, clock):
        follower = make_follower(make_path(T(0, 0), T(3, 0), T(3, 4)), drive, clock)
        follower.initialize()
        step(follower, drive, clock)
        assert follower.telemetry.get("FollowPath/remainingPathDistance") == pytest.approx(7.0)

    def test_command_points_toward_active_target_in_vehicle_frame(self, drive, clock):
        drive.pose = Pose2d.from_xy_theta(0.0, 0.0, math.pi / 2)
        follower = make_follower(make_path(T(0, 0), T(5, 0)), drive, clock)
        follower.initialize()
        step(follower, drive, clock)

        # Field +x is vehicle -y when facing +y
        command = drive.commands[-1]
        assert command.vx_mps == pytest.approx(0.0, abs=1e-9)
        assert command.vy_mps < 0.0

    def test_command_respects_acceleration_limit(self, drive, clock):
        follower = make_follower(make_path(T(0, 0), T(10, 0)), drive, clock)
        follower.initialize()
        step(follower, drive, clock)
        limit = config.DEFAULT_MAX_ACCELERATION_METERS_PER_SEC2 * clock.step
        assert drive.commands[-1].translational_speed() == pytest.approx(limit)
        assert follower.telemetry.get("FollowPath/commandedSpeed") == pytest.approx(limit)


# ---------------------------------------------------------------------------
# Rotation
# ---------------------------------------------------------------------------


class TestRotation:
    def test_heading_halfway_at_half_progress(self, drive, clock):
        follower = make_follower(make_path(T(0, 0), R(90.0, t_ratio=0.5), T(10, 0)), drive, clock)
        follower.initialize()
        step(follower, drive, clock, Pose2d.from_xy_theta(0.0, 0.0, 0.0))
        assert target_rotation(follower) == pytest.approx(0.0)

        # Halfway from the start to the target's position at (5, 0)
        step(follower, drive, clock, Pose2d.from_xy_theta(2.5, 0.0, 0.0))
        assert follower.rotation_element_index == 1
        assert target_rotation(follower) == pytest.approx(math.radians(45.0))
        assert follower.telemetry.get("FollowPath/headingError") == pytest.approx(math.radians(45.0))

    def test_target_passed_at_t_ratio(self, drive, clock):
        follower = make_follower(make_path(T(0, 0), R(90.0, t_ratio=0.5), T(10, 0)), drive, clock)
        follower.initialize()
        step(follower, drive, clock, Pose2d.from_xy_theta(0.0, 0.0, 0.0))
        step(follower, drive, clock, Pose2d.from_xy_theta(5.0, 0.0, math.radians(80.0)))

        assert follower.previous_rotation_element_index == 1
        assert follower.previous_rotation_element_target_rad == pytest.approx(math.pi / 2)
        assert follower.current_rotation_target_init_rad == pytest.approx(math.radians(80.0))
        assert target_rotation(follower) == pytest.approx(math.pi / 2)

    def test_shortest_way_around(self, drive, clock):
        drive.pose = Pose2d.from_xy_theta(0.0, 0.0, math.radians(170.0))
        follower = make_follower(make_path(T(0, 0), R(-170.0, t_ratio=0.5), T(10, 0)), drive, clock)
        follower.initialize()
        step(follower, drive, clock, Pose2d.from_xy_theta(0.0, 0.0, math.radians(170.0)))
        step(follower, drive, clock, Pose2d.from_xy_theta(2.5, 0.0, math.radians(170.0)))

        # 170° to -170° goes +20° through 180°, never -340°
        assert target_rotation(follower) == pytest.approx(math.radians(180.0))
        assert follower.telemetry.get("FollowPath/rotationControllerOutput") > 0.0
        assert drive.commands[-1].omega_radps > 0.0

    def test_non_profiled_commands_target_directly(self, drive, clock):
        follower = make_follower(make_path(T(0, 0), R(60.0, t_ratio=0.9, profiled=False), T(10, 0)), drive, clock)
        follower.initialize()
        step(follower, drive, clock, Pose2d.from_xy_theta(0.0, 0.0, 0.0))
        assert target_rotation(follower) == pytest.approx(math.radians(60.0))

    def test_future_segment_target_is_held(self, drive, clock):
        follower = make_follower(
            make_path(T(0, 0), T(5, 0), R(90.0, t_ratio=0.0), T(10, 0)), drive, clock
        )
        follower.initialize()
        step(follower, drive, clock, Pose2d.from_xy_theta(0.0, 0.0, 0.0))
        step(follower, drive, clock, Pose2d.from_xy_theta(4.0, 0.0, 0.0))
        assert follower.translation_element_index == 1
        assert follower.rotation_element_index == 2

    def test_targets_in_passed_segment_are_skipped(self, drive, clock):
        # Handoff radius large enough to leave the first segment on the second cycle
        follower = make_follower(
            make_path(T(0, 0), R(30.0, t_ratio=0.9), R(45.0, t_ratio=0.9), T(1, 0, radius=2.0), R(60.0, t_ratio=0.9), T(20, 0)),
            drive,
            clock,
        )
        follower.initialize()
        step(follower, drive, clock, Pose2d.from_xy_theta(0.0, 0.0, 0.0))
        assert follower.rotation_element_index == 1
        step(follower, drive, clock, Pose2d.from_xy_theta(0.0, 0.0, 0.0))

        # Both targets of the left segment pass at once; the last one is the new origin
        assert follower.translation_element_index == 5
        assert follower.previous_rotation_element_index == 2
        assert follower.previous_rotation_element_target_rad == pytest.approx(math.radians(45.0))
        assert follower.rotation_element_index == 4

    def test_holds_last_target_after_all_passed(self, drive, clock):
        follower = make_follower(make_path(T(0, 0), R(45.0, t_ratio=0.0), T(1, 0)), drive, clock)
        follower.initialize()
        step(follower, drive, clock, Pose2d.from_xy_theta(0.0, 0.0, 0.0))
        for _ in range(3):
            step(follower, drive, clock)
        assert follower.rotation_element_index == 3
        assert target_rotation(follower) == pytest.approx(math.radians(45.0))

    def test_zero_length_segment_does_not_raise(self, drive, clock):
        follower = make_follower(make_path(T(0, 0), R(90.0), T(0, 0)), drive, clock)
        follower.initialize()
        step(follower, drive, clock)
        step(follower, drive, clock)

        assert "Zero-length" in follower.telemetry.get("FollowPath/warning")
        assert target_rotation(follower) == pytest.approx(math.pi / 2)
        assert follower.is_finished()

    def test_waypoint_heading_due_on_arrival(self, drive, clock):
        waypoint = Waypoint(T(4, 0), R(90.0))
        follower = make_follower(make_path(T(0, 0), waypoint), drive, clock)
        follower.initialize()
        step(follower, drive, clock, Pose2d.from_xy_theta(0.0, 0.0, 0.0))
        step(follower, drive, clock, Pose2d.from_xy_theta(3.0, 0.0, 0.0))
        assert follower.rotation_element_index == 1
        assert target_rotation(follower) == pytest.approx(math.radians(90.0) * 0.75)


def rotation_fraction(follower: PathFollower) -> float:
    return follower.telemetry.get("FollowPath/rotationFraction")


class TestRotationFraction:
    def test_strictly_increases_along_segment(self, drive, clock):
        follower = make_follower(make_path(T(0, 0), R(90.0, t_ratio=0.5), T(10, 0)), drive, clock)
        follower.initialize()
        step(follower, drive, clock, Pose2d.from_xy_theta(0.0, 0.0, 0.0))

        fractions = []
        for x in (0.5, 1.0, 2.0, 3.0, 4.0, 4.9):
            step(follower, drive, clock, Pose2d.from_xy_theta(x, 0.0, 0.0))
            assert follower.rotation_element_index == 1
            fractions.append(rotation_fraction(follower))

        assert all(0.0 <= f <= 1.0 for f in fractions)
        assert all(b > a for a, b in zip(fractions, fractions[1:]))
        assert fractions[-1] == pytest.approx(0.98)

    def test_clamped_to_zero_behind_origin(self, drive, clock):
        follower = make_follower(make_path(T(0, 0), R(90.0, t_ratio=0.5), T(10, 0)), drive, clock)
        follower.initialize()
        step(follower, drive, clock, Pose2d.from_xy_theta(0.0, 0.0, 0.0))
        step(follower, drive, clock, Pose2d.from_xy_theta(-2.0, 0.0, 0.0))

        assert follower.rotation_element_index == 1
        assert rotation_fraction(follower) == 0.0
        assert target_rotation(follower) == pytest.approx(0.0)

    def test_reaches_one_at_target_and_never_exceeds_it(self, drive, clock):
        # Trailing rotation target: always in the segment ahead, so it stays held
        follower = make_follower(make_path(T(0, 0), T(10, 0), R(90.0)), drive, clock)
        follower.initialize()
        step(follower, drive, clock, Pose2d.from_xy_theta(0.0, 0.0, 0.0))

        step(follower, drive, clock, Pose2d.from_xy_theta(10.0, 0.0, 0.0))
        assert follower.rotation_element_index == 2
        assert rotation_fraction(follower) == pytest.approx(1.0)
        assert target_rotation(follower) == pytest.approx(math.pi / 2)

        step(follower, drive, clock, Pose2d.from_xy_theta(10.5, 0.0, 0.0))
        assert follower.rotation_element_index == 2
        assert rotation_fraction(follower) == pytest.approx(0.95)


# ---------------------------------------------------------------------------
# Progress bookkeeping
# ---------------------------------------------------------------------------


def test_cursors_never_move_backwards(drive, clock):
    follower = make_follower(
        make_path(T(0, 0), R(30.0), T(2, 0), R(-90.0, t_ratio=0.2), T(2, 2), R(180.0), T(0, 2)),
        drive,
        clock,
    )
    follower.initialize()
    poses = [(0, 0), (1, 0), (2, 0), (1.9, 0.2), (2, 1), (0.5, 0.5), (2, 2), (1, 2), (0, 2), (3, 0)]
    last_t, last_r = follower.translation_element_index, follower.rotation_element_index
    for x, y in poses:
        step(follower, drive, clock, Pose2d.from_xy_theta(x, y, 0.0))
        assert follower.translation_element_index >= last_t
        assert follower.rotation_element_index >= last_r
        last_t, last_r = follower.translation_element_index, follower.rotation_element_index


def test_trail_is_bounded(drive, clock):
    follower = make_follower(make_path(T(0, 0), T(50, 0)), drive, clock)
    follower.initialize()
    for i in range(400):
        step(follower, drive, clock, Pose2d.from_xy_theta(0.01 * i, 5.0, 0.0))

    assert config.TRAIL_KEEP_POINTS <= len(follower.robot_translations) <= config.TRAIL_MAX_POINTS
    assert follower.robot_translations[-1].x == pytest.approx(0.01 * 399)


def test_last_speeds_are_field_relative(drive, clock):
    drive.pose = Pose2d.from_xy_theta(0.0, 0.0, math.pi / 2)
    follower = make_follower(make_path(T(0, 0), T(5, 0)), drive, clock)
    follower.initialize()
    step(follower, drive, clock)
    assert follower.last_speeds.vx_mps > 0.0
    assert follower.last_speeds.vy_mps == pytest.approx(0.0, abs=1e-9)


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class TestLifecycle:
    def test_execute_before_initialize_is_ignored(self, drive, clock):
        follower = make_follower(make_path(T(0, 0), T(1, 0)), drive, clock)
        step(follower, drive, clock)
        assert drive.commands == []
        assert not follower.is_finished()

    def test_not_finished_before_first_execute(self, drive, clock):
        follower = make_follower(make_path(T(3, 4)), drive, clock)
        follower.initialize()
        assert not follower.is_finished()

    def test_end_interrupted(self, drive, clock):
        follower = make_follower(make_path(T(0, 0), T(1, 0)), drive, clock)
        follower.initialize()
        follower.end(interrupted=True)
        assert follower.state is FollowerState.ABORTED
        assert drive.commands == []

    def test_stop_on_end_sends_zero_command(self, drive, clock):
        cfg = FollowerConfig.from_defaults()
        cfg.stop_on_end = True
        follower = make_follower(make_path(T(0, 0), T(1, 0)), drive, clock, cfg=cfg)
        follower.initialize()
        step(follower, drive, clock)
        follower.end()
        assert drive.commands[-1] == ChassisSpeeds()
        assert follower.state is FollowerState.FINISHED

    def test_reinitialize_resets_progress(self, drive, clock):
        follower = make_follower(make_path(T(0, 0), R(90.0, t_ratio=0.0), T(1, 0)), drive, clock)
        follower.initialize()
        step(follower, drive, clock, Pose2d.from_xy_theta(0.0, 0.0, 0.0))
        assert follower.previous_rotation_element_index is not None

        follower.initialize()
        assert follower.translation_element_index == 0
        assert follower.rotation_element_index == 0
        assert follower.previous_rotation_element_index is None
        assert follower.robot_translations == []

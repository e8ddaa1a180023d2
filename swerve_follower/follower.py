"""Path follower for swerve drive vehicles.

This module implements the trajectory-following state machine that:
- Hands off between translation targets when inside their handoff radius
- Advances an independent rotation cursor as each rotation target's t_ratio
  position along its bracketing segment is passed
- Drives remaining path distance to zero with a feedback controller, aimed at
  the active translation target
- Interpolates the commanded heading toward the active rotation target along
  the shortest way around the circle
- Shapes the resulting chassis speeds with the active velocity and
  acceleration limits before handing them to the drive

The follower is polled by its owner: initialize() once, then execute() every
control cycle until is_finished() returns True or the owner interrupts it.
"""

import logging
import math
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Set, Tuple

from . import rate_limiter
from .config import (
    CONTROL_PERIOD_SECONDS,
    ROTATION_KD,
    ROTATION_KI,
    ROTATION_KP,
    ROTATION_SEGMENT_EPSILON_METERS,
    TELEMETRY_PREFIX,
    TRAIL_KEEP_POINTS,
    TRAIL_MAX_POINTS,
    TRAIL_SAMPLE_INTERVAL,
    TRANSLATION_KD,
    TRANSLATION_KI,
    TRANSLATION_KP,
)
from .geometry import ChassisSpeeds, Pose2d, Rotation2d, Translation2d, angle_modulus
from .path import (
    Path,
    PathStep,
    RotationStep,
    RotationTargetConstraint,
    TranslationStep,
    TranslationTargetConstraint,
    rotation_target_translation,
    translation_index_after,
    translation_index_before,
)
from .pid import PIDController
from .telemetry import TelemetryLogger


class ConfigurationError(RuntimeError):
    """Raised when a follower is set up without the configuration it needs."""


class FollowerState(Enum):
    IDLE = "idle"
    ACTIVE = "active"
    FINISHED = "finished"
    ABORTED = "aborted"


@dataclass(frozen=True)
class PIDGains:
    kp: float
    ki: float = 0.0
    kd: float = 0.0

    def to_controller(self, period: float = CONTROL_PERIOD_SECONDS) -> PIDController:
        return PIDController(self.kp, self.ki, self.kd, period=period)


@dataclass
class FollowerConfig:
    """Feedback controller gains and options owned by one follower.

    Gains are copied into fresh controllers on every activation, so changing
    a config while a follower is active has no effect until the next
    initialize().

    Attributes:
        translation_gains: Gains of the remaining-distance controller.
        rotation_gains: Gains of the heading controller.
        control_period_seconds: Nominal loop period given to the controllers.
        stop_on_end: Send one zero-speed command when the follower ends.
    """

    translation_gains: Optional[PIDGains] = None
    rotation_gains: Optional[PIDGains] = None
    control_period_seconds: float = CONTROL_PERIOD_SECONDS
    stop_on_end: bool = False

    @classmethod
    def from_defaults(cls) -> "FollowerConfig":
        """Build a config from the gains in config.py."""
        cfg = cls()
        cfg.set_translation_controller(TRANSLATION_KP, TRANSLATION_KI, TRANSLATION_KD)
        cfg.set_rotation_controller(ROTATION_KP, ROTATION_KI, ROTATION_KD)
        return cfg

    def set_translation_controller(self, p: float, i: float, d: float) -> None:
        # Constructing a controller validates the gains
        PIDController(p, i, d, period=self.control_period_seconds)
        self.translation_gains = PIDGains(p, i, d)

    def set_rotation_controller(self, p: float, i: float, d: float) -> None:
        PIDController(p, i, d, period=self.control_period_seconds)
        self.rotation_gains = PIDGains(p, i, d)

    def translation_controller(self) -> PIDController:
        """Return a new translation controller.

        Raises:
            ConfigurationError: If translation gains have not been set.
        """
        if self.translation_gains is None:
            raise ConfigurationError("Translation controller has not been set")
        return self.translation_gains.to_controller(self.control_period_seconds)

    def rotation_controller(self) -> PIDController:
        """Return a new heading controller.

        Raises:
            ConfigurationError: If rotation gains have not been set.
        """
        if self.rotation_gains is None:
            raise ConfigurationError("Rotation controller has not been set")
        return self.rotation_gains.to_controller(self.control_period_seconds)


class PathFollower:
    """Follows a Path with independent translation and rotation progress.

    Translation and rotation progress are two integer cursors into the same
    flattened list of path steps. The translation cursor always rests on a
    TranslationStep; the rotation cursor rests on the active RotationStep, or
    runs past the end of the list once every rotation target is passed.

    Attributes:
        state: Lifecycle state (IDLE, ACTIVE, FINISHED, ABORTED).
        translation_element_index: Cursor of the active translation target.
        rotation_element_index: Cursor of the active rotation target.
        previous_rotation_element_index: Index of the last passed rotation
            target, or None if none has been passed this activation.
        previous_rotation_element_target_rad: Heading of the last passed
            rotation target (initially the start heading).
        current_rotation_target_init_rad: Heading the vehicle had when the
            previous rotation target was passed; interpolation starts here.
        current_rotation_target_rad: Heading of the active rotation target.
        last_speeds: Field-relative speeds commanded on the previous cycle.
        last_timestamp: Clock reading of the previous cycle (seconds).
        robot_translations: Bounded trail of visited translations.
    """

    def __init__(
        self,
        path: Path,
        pose_supplier: Callable[[], Pose2d],
        robot_relative_speeds_supplier: Callable[[], ChassisSpeeds],
        robot_relative_speeds_consumer: Callable[[ChassisSpeeds], None],
        should_flip_supplier: Callable[[], bool],
        pose_reset_consumer: Callable[[Pose2d], None],
        config: FollowerConfig,
        telemetry: Optional[TelemetryLogger] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the follower.

        Args:
            path: Path to follow. A deep copy is taken, so later changes to the
                caller's path do not affect this follower.
            pose_supplier: Returns the current field-relative pose.
            robot_relative_speeds_supplier: Returns the current vehicle-frame velocity.
            robot_relative_speeds_consumer: Receives the vehicle-frame velocity
                command once per cycle.
            should_flip_supplier: Polled on initialize(); True mirrors the path
                onto the other alliance side.
            pose_reset_consumer: Receives the path start pose once per initialize().
            config: Feedback controller gains and options.
            telemetry: Diagnostics sink. Defaults to an in-memory logger that
                keeps only the latest value per key.
            clock: Time source in seconds.

        Raises:
            ConfigurationError: If config is missing or lacks controller gains.
        """
        if config is None:
            raise ConfigurationError("A FollowerConfig must be provided")
        if config.translation_gains is None or config.rotation_gains is None:
            raise ConfigurationError(
                "Translation and rotation controllers must be set before creating a PathFollower"
            )

        self._source_path = path.copy()
        self._pose_supplier = pose_supplier
        self._robot_relative_speeds_supplier = robot_relative_speeds_supplier
        self._robot_relative_speeds_consumer = robot_relative_speeds_consumer
        self._should_flip_supplier = should_flip_supplier
        self._pose_reset_consumer = pose_reset_consumer
        self.config = config
        self._clock = clock
        self.telemetry = telemetry if telemetry is not None else TelemetryLogger(
            clock=clock, keep_history=False
        )

        self.state = FollowerState.IDLE
        self.path: Path = self._source_path
        self.steps: List[PathStep] = []
        self.path_valid: bool = self._source_path.is_valid()

        self.translation_controller = config.translation_controller()
        self.rotation_controller = config.rotation_controller()

        # Progress state, reset on every initialize()
        self.translation_element_index: int = 0
        self.rotation_element_index: int = 0
        self.previous_rotation_element_index: Optional[int] = None
        self.previous_rotation_element_target_rad: float = 0.0
        self.current_rotation_target_init_rad: float = 0.0
        self.current_rotation_target_rad: float = 0.0
        self.last_speeds = ChassisSpeeds()
        self.last_timestamp: float = 0.0
        self.path_init_start_pose = Pose2d()
        self.robot_translations: List[Translation2d] = []

        self._last_pose: Optional[Pose2d] = None
        self._log_counter: int = 0
        self._warned: Set[str] = set()

    # ------------------------------------------------------------------
    # Diagnostics helpers
    # ------------------------------------------------------------------

    def _record(self, key: str, value) -> None:
        self.telemetry.record_output(f"{TELEMETRY_PREFIX}/{key}", value)

    def _warn_once(self, key: str, message: str) -> None:
        """Record a warning every time, but log it only once per activation."""
        self._record("warning", message)
        if key not in self._warned:
            self._warned.add(key)
            logging.warning(f"FollowPath: {message}")

    def _error(self, key: str, message: str) -> None:
        self._record("error", message)
        if key not in self._warned:
            self._warned.add(key)
            logging.error(f"FollowPath: {message}")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _configure_controllers(self) -> None:
        self.translation_controller.set_tolerance(self.path.get_end_translation_tolerance_meters())
        self.rotation_controller.set_tolerance(math.radians(self.path.get_end_rotation_tolerance_deg()))
        self.rotation_controller.enable_continuous_input(-math.pi, math.pi)

    def initialize(self) -> None:
        """Start a following activity.

        Validates and (optionally) flips the path, resets progress and
        controllers, and hands the path start pose to the pose reset consumer.

        Raises:
            ConfigurationError: If the flattened path has no elements or no
                translation target.
        """
        self._warned = set()
        self.path_valid = self._source_path.is_valid()
        if not self.path_valid:
            self.state = FollowerState.ABORTED
            self._warn_once("invalid_initialize", "Path invalid - skipping initialization")
            return

        # Fresh controllers from config on every activation
        self.translation_controller = self.config.translation_controller()
        self.rotation_controller = self.config.rotation_controller()

        # Flip a fresh copy so repeated activations never flip twice
        self.path = self._source_path.copy()
        if self._should_flip_supplier():
            self.path.flip()
            logging.info("FollowPath: Path flipped for the opposite alliance")
        self.steps = self.path.get_path_elements_with_constraints_no_waypoints()

        if not self.steps:
            raise ConfigurationError("Path must contain at least one element")
        first_translation = self._next_translation_index(-1)
        if first_translation is None:
            raise ConfigurationError("Path must contain at least one translation target")

        self.rotation_element_index = 0
        self.translation_element_index = first_translation
        self.last_timestamp = self._clock()

        start_pose = self._pose_supplier()
        self.path_init_start_pose = start_pose
        self._last_pose = start_pose
        self.last_speeds = ChassisSpeeds.from_robot_relative_speeds(
            self._robot_relative_speeds_supplier(), start_pose.rotation
        )

        start_heading = start_pose.rotation.radians
        self.previous_rotation_element_target_rad = start_heading
        self.previous_rotation_element_index = None
        self.current_rotation_target_init_rad = start_heading
        self.current_rotation_target_rad = start_heading

        self.translation_controller.reset()
        self.rotation_controller.reset()
        self._configure_controllers()

        self.robot_translations.clear()
        self._log_counter = 0
        path_translations = [
            step.element.translation for step in self.steps if isinstance(step, TranslationStep)
        ]
        self._record("pathTranslations", path_translations)

        # Reset pose: first translation target, first rotation target's heading
        # (or the current heading when the path has none)
        reset_rotation = start_pose.rotation
        for step in self.steps:
            if isinstance(step, RotationStep):
                reset_rotation = step.element.rotation
                break
        reset_pose = Pose2d(path_translations[0], reset_rotation)
        self._record("resetPose", reset_pose)
        self._pose_reset_consumer(reset_pose)

        self.state = FollowerState.ACTIVE
        logging.debug(
            f"FollowPath: initialized with {len(self.steps)} elements, "
            f"{len(path_translations)} translation targets"
        )

    def execute(self) -> None:
        """Run one control cycle.

        Polls the pose, advances both cursors, computes the translation and
        heading commands, shapes them and sends the vehicle-frame result to
        the speeds consumer. Never raises on degenerate geometry.
        """
        if not self.path_valid:
            self._warn_once("invalid_execute", "Path invalid - skipping execution")
            return
        if self.state is not FollowerState.ACTIVE:
            self._warn_once("inactive", f"execute() called while {self.state.value} - ignoring")
            return

        now = self._clock()
        dt = now - self.last_timestamp
        self.last_timestamp = now

        pose = self._pose_supplier()
        self._last_pose = pose
        position = pose.translation

        self._advance_translation_cursor(position)
        self._advance_rotation_cursor(pose)

        # Translation command: close remaining path distance toward the active target
        target_translation = self._translation_at(self.translation_element_index)
        remaining_distance = self.calculate_remaining_path_distance(position)
        translation_output = -self.translation_controller.calculate(remaining_distance, 0.0, dt)
        direction = position.angle_to(target_translation)
        vx = translation_output * direction.cos()
        vy = translation_output * direction.sin()

        # Rotation command
        target_rotation, rotation_constraint = self._rotation_setpoint(pose)
        omega = self.rotation_controller.calculate(pose.rotation.radians, target_rotation, dt)

        translation_constraint: TranslationTargetConstraint = self.steps[
            self.translation_element_index
        ].constraint

        target_speeds = rate_limiter.limit(
            ChassisSpeeds(vx, vy, omega),
            self.last_speeds,
            dt,
            translation_constraint.max_acceleration_meters_per_sec2,
            math.radians(rotation_constraint.max_acceleration_deg_per_sec2),
            translation_constraint.max_velocity_meters_per_sec,
            math.radians(rotation_constraint.max_velocity_deg_per_sec),
        )

        self._robot_relative_speeds_consumer(
            ChassisSpeeds.from_field_relative_speeds(target_speeds, pose.rotation)
        )
        self.last_speeds = target_speeds

        if self._log_counter % TRAIL_SAMPLE_INTERVAL == 0:
            self.robot_translations.append(position)
            if len(self.robot_translations) > TRAIL_MAX_POINTS:
                del self.robot_translations[: len(self.robot_translations) - TRAIL_KEEP_POINTS]
            self._record("robotTranslations", self.robot_translations)
        self._log_counter += 1

        self._record("remainingPathDistance", remaining_distance)
        self._record("translationElementIndex", self.translation_element_index)
        self._record("rotationElementIndex", self.rotation_element_index)
        self._record("targetRotation", target_rotation)
        self._record("rotationControllerOutput", omega)
        self._record("headingError", self.rotation_controller.get_diagnostics()["position_error"])
        self._record("commandedSpeeds", [target_speeds.vx_mps, target_speeds.vy_mps, target_speeds.omega_radps])
        self._record("commandedSpeed", target_speeds.translational_speed())

    def is_finished(self) -> bool:
        """Whether the path is complete.

        True immediately for an invalid path. Otherwise True once both cursors
        rest on their last targets, the remaining distance is within the end
        translation tolerance and the heading is within the end rotation
        tolerance of the active rotation target.
        """
        if not self.path_valid:
            self._warn_once("invalid_finish", "Path invalid - finishing early")
            return True
        if self.state is FollowerState.FINISHED:
            return True
        if self.state is not FollowerState.ACTIVE:
            return False

        is_last_rotation_element = not any(
            isinstance(step, RotationStep) for step in self.steps[self.rotation_element_index + 1 :]
        )
        is_last_translation_element = self._next_translation_index(self.translation_element_index) is None

        pose = self._last_pose if self._last_pose is not None else self._pose_supplier()
        heading_error = abs(Rotation2d(self.current_rotation_target_rad).minus(pose.rotation).radians)
        rotation_tolerance = math.radians(self.path.get_end_rotation_tolerance_deg())

        finished = (
            is_last_rotation_element
            and is_last_translation_element
            and self.translation_controller.at_setpoint()
            and heading_error < rotation_tolerance
        )
        self._record("finished", finished)
        if finished:
            self.state = FollowerState.FINISHED
            logging.info("FollowPath: path complete")
        return finished

    def end(self, interrupted: bool = False) -> None:
        """Stop the activity.

        No braking is applied unless config.stop_on_end is set, in which case a
        single zero-speed command is sent.

        Args:
            interrupted: True when the owner cancelled the activity early.
        """
        if self.config.stop_on_end and self.state is FollowerState.ACTIVE:
            self._robot_relative_speeds_consumer(ChassisSpeeds())
        if interrupted:
            self.state = FollowerState.ABORTED
            logging.info("FollowPath: interrupted")
        elif self.state is not FollowerState.ABORTED:
            self.state = FollowerState.FINISHED

    # ------------------------------------------------------------------
    # Cursor scans
    # ------------------------------------------------------------------

    def _is_translation(self, index: int) -> bool:
        return isinstance(self.steps[index], TranslationStep)

    def _translation_at(self, index: int) -> Translation2d:
        return self.steps[index].element.translation

    def _next_translation_index(self, index: int) -> Optional[int]:
        return translation_index_after(self.steps, index)

    def _translation_index_before(self, index: int) -> Optional[int]:
        return translation_index_before(self.steps, index)

    def _advance_translation_cursor(self, position: Translation2d) -> None:
        """Hand off to the next translation target once inside the handoff radius."""
        step = self.steps[self.translation_element_index]
        handoff_radius = step.element.intermediate_handoff_radius_meters
        if handoff_radius is None:
            handoff_radius = self.path.default_global_constraints.intermediate_handoff_radius_meters

        if position.distance(step.element.translation) <= handoff_radius:
            next_index = self._next_translation_index(self.translation_element_index)
            if next_index is not None:
                self.translation_element_index = next_index
                logging.debug(f"FollowPath: translation handoff to element {next_index}")

    def _advance_rotation_cursor(self, pose: Pose2d) -> None:
        """Move the rotation cursor past every rotation target already reached."""
        passed_index: Optional[int] = None
        while self.rotation_element_index < len(self.steps):
            if not isinstance(self.steps[self.rotation_element_index], RotationStep):
                self.rotation_element_index += 1
                continue
            if self._should_hold_rotation_target(self.rotation_element_index, pose.translation):
                break
            passed_index = self.rotation_element_index
            self.rotation_element_index += 1

        if passed_index is not None:
            passed: RotationStep = self.steps[passed_index]
            self.previous_rotation_element_target_rad = passed.element.rotation.radians
            self.previous_rotation_element_index = passed_index
            self.current_rotation_target_init_rad = pose.rotation.radians
            self._record("passedRotationElementIndex", passed_index)

    def _is_rotation_next_segment(self, index: int) -> bool:
        return index > self.translation_element_index

    def _is_rotation_previous_segment(self, index: int) -> bool:
        if index > self.translation_element_index:
            return False
        return any(self._is_translation(i) for i in range(index, self.translation_element_index))

    def _should_hold_rotation_target(self, index: int, position: Translation2d) -> bool:
        """Whether the rotation target at index is still ahead of the vehicle.

        Targets in segments not yet reached are always held, targets in
        segments already left behind are always passed. Inside the active
        segment a target is held while progress along its bracket, measured
        as distance from the bracket start over bracket length, is below its
        t_ratio.
        """
        if self._is_rotation_next_segment(index):
            return True
        if self._is_rotation_previous_segment(index):
            return False

        before = self._translation_index_before(index)
        after = self._next_translation_index(index)
        if before is None or after is None:
            return True

        start = self._translation_at(before)
        end = self._translation_at(after)
        segment_length = start.distance(end)
        if segment_length < ROTATION_SEGMENT_EPSILON_METERS:
            # Zero-length bracket: reached once the cursor rests on its end target
            self._warn_once(
                f"degenerate_bracket_{index}",
                f"Zero-length segment around rotation target at index {index}",
            )
            return self.translation_element_index < after

        progress = max(0.0, min(1.0, position.distance(start) / segment_length))
        t_ratio = self.steps[index].element.t_ratio
        self._record("segmentProgress", progress)
        self._record("targetTRatio", t_ratio)
        return progress < t_ratio

    # ------------------------------------------------------------------
    # Distances and rotation target placement
    # ------------------------------------------------------------------

    def calculate_remaining_path_distance(self, position: Translation2d) -> float:
        """Path distance from position through every remaining translation target."""
        previous = position
        remaining = 0.0
        for i in range(self.translation_element_index, len(self.steps)):
            if self._is_translation(i):
                translation = self._translation_at(i)
                remaining += previous.distance(translation)
                previous = translation
        return remaining

    def calculate_rotation_target_translation(self, index: int) -> Translation2d:
        """Field position of the rotation target at index.

        The target sits t_ratio of the way from the nearest translation target
        before it to the nearest one after it. With only one bracketing
        target, that target's position is used. With none, or an index that
        is not a rotation target, the origin is returned and an error recorded.

        Args:
            index: Index into the flattened steps.

        Returns:
            Resolved field translation.
        """
        if index < 0 or index >= len(self.steps):
            self._error("bad_index", f"Invalid index for rotation target translation: {index}")
            return Translation2d()
        step = self.steps[index]
        if not isinstance(step, RotationStep):
            self._error("bad_index", f"Invalid rotation target index: {index}")
            return Translation2d()

        point = rotation_target_translation(self.steps, index)
        if point is None:
            self._error(
                f"no_brackets_{index}",
                f"No translation targets found around rotation target at index {index}",
            )
            return Translation2d()

        before = self._translation_index_before(index)
        after = self._next_translation_index(index)
        if before is not None and after is not None:
            if self._translation_at(before).distance(self._translation_at(after)) < ROTATION_SEGMENT_EPSILON_METERS:
                self._warn_once(
                    f"degenerate_position_{index}",
                    f"Rotation target at index {index} lies on a zero-length segment",
                )
            self._record("rotationTargetTranslation", point)
        return point

    def calculate_remaining_distance_to_rotation_target(self, position: Translation2d) -> float:
        """Path distance from position to the active rotation target's position."""
        target = self.calculate_rotation_target_translation(self.rotation_element_index)
        if not self._is_rotation_next_segment(self.rotation_element_index):
            return position.distance(target)

        previous = position
        remaining = 0.0
        for i in range(self.translation_element_index, self.rotation_element_index):
            if self._is_translation(i):
                translation = self._translation_at(i)
                remaining += previous.distance(translation)
                previous = translation
        return remaining + previous.distance(target)

    def calculate_rotation_target_segment_distance(self) -> float:
        """Path distance from the interpolation origin to the active rotation target.

        The origin is the previously passed rotation target's position, or the
        pose at activation when no rotation target has been passed yet.
        """
        end = self.calculate_rotation_target_translation(self.rotation_element_index)
        if self.previous_rotation_element_index is None:
            previous = self.path_init_start_pose.translation
            start_index = 0
        else:
            previous = self.calculate_rotation_target_translation(self.previous_rotation_element_index)
            start_index = self.previous_rotation_element_index + 1

        distance = 0.0
        for i in range(start_index, self.rotation_element_index):
            if self._is_translation(i):
                translation = self._translation_at(i)
                distance += previous.distance(translation)
                previous = translation
        return distance + previous.distance(end)

    def _rotation_setpoint(self, pose: Pose2d) -> Tuple[float, RotationTargetConstraint]:
        """Commanded heading for this cycle and the rotation limits that apply."""
        index = self.rotation_element_index
        if index >= len(self.steps) or not isinstance(self.steps[index], RotationStep):
            # Every rotation target passed: hold the last one
            self.current_rotation_target_rad = self.previous_rotation_element_target_rad
            return self.previous_rotation_element_target_rad, self.path.global_rotation_constraint()

        step: RotationStep = self.steps[index]
        target = step.element
        self.current_rotation_target_rad = target.rotation.radians

        if not target.profiled_rotation:
            return angle_modulus(target.rotation.radians), step.constraint

        remaining = self.calculate_remaining_distance_to_rotation_target(pose.translation)
        segment = self.calculate_rotation_target_segment_distance()
        self._record("remainingRotationDistance", remaining)
        self._record("rotationSegmentDistance", segment)

        if segment > ROTATION_SEGMENT_EPSILON_METERS:
            fraction = max(0.0, min(1.0, 1.0 - remaining / segment))
        else:
            fraction = 0.0
            self._warn_once(
                f"short_rotation_segment_{index}",
                f"Rotation segment distance {segment:.3g} m too short to interpolate",
            )
        self._record("rotationFraction", fraction)

        # Shortest way around from where the vehicle was when the last target was passed
        difference = angle_modulus(target.rotation.radians - self.current_rotation_target_init_rad)
        return self.current_rotation_target_init_rad + fraction * difference, step.constraint

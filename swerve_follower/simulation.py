"""Closed-loop simulation of the path follower on an ideal swerve drive.

The simulated drive stands in for the real collaborators of a PathFollower:
- Pose source: integrates commanded speeds into a field pose
- Velocity sink: passes commands through swerve kinematics with wheel-speed
  desaturation, so the realised motion respects module limits
- Pose reset: teleports the simulated pose

Time is driven by SimClock, so a run is deterministic and independent of wall
clock speed.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from .config import CONTROL_PERIOD_SECONDS, MAX_MODULE_SPEED_METERS_PER_SEC, SIM_TIMEOUT_SECONDS
from .follower import FollowerConfig, PathFollower
from .geometry import ChassisSpeeds, Pose2d, Rotation2d, Translation2d
from .kinematics import SwerveDriveKinematics, SwerveModuleState, desaturate_wheel_speeds
from .path import Path, TranslationStep
from .telemetry import TelemetryLogger


class SimClock:
    """Manually advanced clock, callable like time.monotonic."""

    def __init__(self, start: float = 0.0):
        self.now = float(start)

    def __call__(self) -> float:
        return self.now

    def advance(self, dt: float) -> None:
        self.now += dt


class SimulatedSwerveDrive:
    """Ideal kinematic swerve drive.

    Commanded speeds are realised exactly, apart from wheel-speed
    desaturation. The pose is integrated with the midpoint heading of each
    step, which keeps arcs accurate at typical control rates.

    Attributes:
        pose: Current field pose.
        speeds: Current vehicle-frame chassis speeds.
        kinematics: Module geometry used for desaturation.
        max_module_speed_mps: Wheel speed limit.
        module_states: Last commanded module states, steered the short way.
        reset_count: Number of pose resets received.
    """

    def __init__(
        self,
        start_pose: Optional[Pose2d] = None,
        kinematics: Optional[SwerveDriveKinematics] = None,
        max_module_speed_mps: float = MAX_MODULE_SPEED_METERS_PER_SEC,
    ):
        self.pose: Pose2d = start_pose if start_pose is not None else Pose2d()
        self.speeds = ChassisSpeeds()
        self.kinematics = kinematics if kinematics is not None else SwerveDriveKinematics()
        self.max_module_speed_mps = max_module_speed_mps
        self.module_states: List[SwerveModuleState] = [
            SwerveModuleState() for _ in self.kinematics.module_locations
        ]
        self.reset_count: int = 0

    def get_pose(self) -> Pose2d:
        return self.pose

    def get_robot_relative_speeds(self) -> ChassisSpeeds:
        return self.speeds

    def drive(self, robot_relative_speeds: ChassisSpeeds) -> None:
        """Accept a vehicle-frame velocity command."""
        states = self.kinematics.to_module_states(robot_relative_speeds)
        states = desaturate_wheel_speeds(states, self.max_module_speed_mps)
        # Reverse a wheel rather than steer it more than a quarter turn
        self.module_states = [
            state.optimize(current.angle) for state, current in zip(states, self.module_states)
        ]
        self.speeds = self.kinematics.to_chassis_speeds(self.module_states)

    def reset_pose(self, pose: Pose2d) -> None:
        self.pose = pose
        self.reset_count += 1

    def step(self, dt: float) -> None:
        """Integrate the current speeds over dt seconds."""
        heading = self.pose.rotation.radians
        mid_heading = Rotation2d(heading + 0.5 * self.speeds.omega_radps * dt)
        field_speeds = ChassisSpeeds.from_robot_relative_speeds(self.speeds, mid_heading)
        self.pose = Pose2d(
            Translation2d(
                self.pose.x + field_speeds.vx_mps * dt,
                self.pose.y + field_speeds.vy_mps * dt,
            ),
            Rotation2d(heading + self.speeds.omega_radps * dt),
        )


@dataclass
class SimResult:
    """Recorded trajectory of one simulated run.

    Arrays share one time base; headings are in radians, speeds are
    field-relative.
    """

    t: np.ndarray
    x: np.ndarray
    y: np.ndarray
    theta: np.ndarray
    vx: np.ndarray
    vy: np.ndarray
    omega: np.ndarray
    target_heading: np.ndarray
    finished: bool
    path: Path
    path_translations: List[Translation2d] = field(default_factory=list)

    @property
    def duration(self) -> float:
        return float(self.t[-1]) if len(self.t) else 0.0

    @property
    def final_pose(self) -> Pose2d:
        if not len(self.t):
            return Pose2d()
        return Pose2d.from_xy_theta(float(self.x[-1]), float(self.y[-1]), float(self.theta[-1]))


def simulate_path(
    path: Path,
    config: Optional[FollowerConfig] = None,
    dt: float = CONTROL_PERIOD_SECONDS,
    timeout: float = SIM_TIMEOUT_SECONDS,
    should_flip: bool = False,
    start_pose: Optional[Pose2d] = None,
    telemetry: Optional[TelemetryLogger] = None,
) -> SimResult:
    """Run a PathFollower against a simulated drive until it finishes or times out.

    Args:
        path: Path to follow.
        config: Follower gains. Defaults to FollowerConfig.from_defaults().
        dt: Control period (seconds).
        timeout: Simulated time after which the run is abandoned (seconds).
        should_flip: Follow the path mirrored for the opposite alliance.
        start_pose: Pose of the drive before the follower resets it.
        telemetry: Optional telemetry logger for the follower.

    Returns:
        SimResult with one sample per control cycle.

    Raises:
        ValueError: If dt or timeout is not positive.
    """
    if dt <= 0.0:
        raise ValueError(f"Simulation dt must be positive, got {dt}")
    if timeout <= 0.0:
        raise ValueError(f"Simulation timeout must be positive, got {timeout}")

    config = config if config is not None else FollowerConfig.from_defaults()
    clock = SimClock()
    drive = SimulatedSwerveDrive(start_pose)

    follower = PathFollower(
        path,
        pose_supplier=drive.get_pose,
        robot_relative_speeds_supplier=drive.get_robot_relative_speeds,
        robot_relative_speeds_consumer=drive.drive,
        should_flip_supplier=lambda: should_flip,
        pose_reset_consumer=drive.reset_pose,
        config=config,
        telemetry=telemetry,
        clock=clock,
    )

    t_log: List[float] = []
    x_log: List[float] = []
    y_log: List[float] = []
    theta_log: List[float] = []
    vx_log: List[float] = []
    vy_log: List[float] = []
    omega_log: List[float] = []
    target_log: List[float] = []

    follower.initialize()
    finished = follower.is_finished()
    max_cycles = int(math.ceil(timeout / dt))

    for _ in range(max_cycles):
        if finished:
            break
        follower.execute()

        pose = drive.get_pose()
        field_speeds = ChassisSpeeds.from_robot_relative_speeds(drive.speeds, pose.rotation)
        t_log.append(clock())
        x_log.append(pose.x)
        y_log.append(pose.y)
        theta_log.append(pose.rotation.radians)
        vx_log.append(field_speeds.vx_mps)
        vy_log.append(field_speeds.vy_mps)
        omega_log.append(field_speeds.omega_radps)
        target_log.append(follower.telemetry.get("FollowPath/targetRotation", pose.rotation.radians))

        finished = follower.is_finished()
        if finished:
            break
        drive.step(dt)
        clock.advance(dt)

    follower.end(interrupted=not finished)
    if finished:
        logging.info(f"Path complete in {clock():.2f} s")
    else:
        logging.warning(f"Path not complete after {timeout:.1f} s")

    path_translations = [
        step.element.translation for step in follower.steps if isinstance(step, TranslationStep)
    ]
    return SimResult(
        t=np.array(t_log),
        x=np.array(x_log),
        y=np.array(y_log),
        theta=np.array(theta_log),
        vx=np.array(vx_log),
        vy=np.array(vy_log),
        omega=np.array(omega_log),
        target_heading=np.array(target_log),
        finished=finished,
        path=follower.path,
        path_translations=path_translations,
    )

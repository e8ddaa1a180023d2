"""Shared fixtures: a manual clock and a fake drive standing in for the vehicle."""

from __future__ import annotations

from typing import List

import matplotlib
import pytest

matplotlib.use("Agg")

from swerve_follower.geometry import ChassisSpeeds, Pose2d  # noqa: E402


class FakeClock:
    def __init__(self, start: float = 0.0, step: float = 0.02) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> float:
        return self.now

    def tick(self, dt: float | None = None) -> None:
        self.now += self.step if dt is None else dt


class FakeDrive:
    """Records every command and pose reset; the pose is set by the test."""

    def __init__(self, pose: Pose2d | None = None) -> None:
        self.pose = pose if pose is not None else Pose2d()
        self.speeds = ChassisSpeeds()
        self.commands: List[ChassisSpeeds] = []
        self.resets: List[Pose2d] = []

    def get_pose(self) -> Pose2d:
        return self.pose

    def get_speeds(self) -> ChassisSpeeds:
        return self.speeds

    def drive(self, speeds: ChassisSpeeds) -> None:
        self.commands.append(speeds)

    def reset_pose(self, pose: Pose2d) -> None:
        self.resets.append(pose)
        self.pose = pose


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def drive() -> FakeDrive:
    return FakeDrive()

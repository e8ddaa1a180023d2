"""Path model for swerve path following.

A path is an ordered list of elements:
- TranslationTarget: a point the vehicle should pass through (or near)
- RotationTarget: a heading to reach by a fraction (t_ratio) of the segment
  between the translation targets bracketing it
- Waypoint: a translation target with a heading to arrive with

Motion limits come from three layers, most specific first:
1. RangedConstraint entries covering an element's ordinal
2. Path-level overrides in PathConstraints
3. DefaultGlobalConstraints (seeded from config.py)

The follower never works with this authored form directly. It asks the path
for a flattened list of steps, each pairing one element with its effective
constraint, via get_path_elements_with_constraints_no_waypoints().
"""

import copy
import math
from dataclasses import dataclass, field
from typing import List, Optional, Union

from . import config
from .geometry import Rotation2d, Translation2d, angle_modulus


# ============================================================================
# Path Elements
# ============================================================================


@dataclass
class TranslationTarget:
    translation: Translation2d = field(default_factory=Translation2d)
    intermediate_handoff_radius_meters: Optional[float] = None


@dataclass
class RotationTarget:
    rotation: Rotation2d = field(default_factory=Rotation2d)
    # Position along the segment between the previous and next translation
    # targets. 0.0 is the previous target, 1.0 the next one.
    t_ratio: float = 0.0
    profiled_rotation: bool = True


@dataclass
class Waypoint:
    """A translation target the vehicle should reach with a given heading."""

    translation_target: TranslationTarget = field(default_factory=TranslationTarget)
    rotation_target: RotationTarget = field(default_factory=RotationTarget)


PathElement = Union[TranslationTarget, RotationTarget, Waypoint]


# ============================================================================
# Constraints
# ============================================================================


@dataclass(frozen=True)
class TranslationTargetConstraint:
    max_velocity_meters_per_sec: float
    max_acceleration_meters_per_sec2: float


@dataclass(frozen=True)
class RotationTargetConstraint:
    max_velocity_deg_per_sec: float
    max_acceleration_deg_per_sec2: float


@dataclass
class RangedConstraint:
    """A constraint value applied over a contiguous range of ordinals.

    Translation keys (meters) index the translation targets of the path in
    order; rotation keys (degrees) index the rotation targets. Ordinals are
    0-based and both ends are inclusive. A range of a single ordinal overrides
    one element.
    """

    value: float
    start_ordinal: int
    end_ordinal: int

    def covers(self, ordinal: int) -> bool:
        return self.start_ordinal <= ordinal <= self.end_ordinal


@dataclass
class PathConstraints:
    """Path-level overrides of the global defaults.

    None means "use the global default". The ranged lists hold per-element
    overrides and win over the scalar values.
    """

    max_velocity_meters_per_sec: Optional[float] = None
    max_acceleration_meters_per_sec2: Optional[float] = None
    max_velocity_deg_per_sec: Optional[float] = None
    max_acceleration_deg_per_sec2: Optional[float] = None
    end_translation_tolerance_meters: Optional[float] = None
    end_rotation_tolerance_deg: Optional[float] = None
    ranged_max_velocity_meters_per_sec: List[RangedConstraint] = field(default_factory=list)
    ranged_max_acceleration_meters_per_sec2: List[RangedConstraint] = field(default_factory=list)
    ranged_max_velocity_deg_per_sec: List[RangedConstraint] = field(default_factory=list)
    ranged_max_acceleration_deg_per_sec2: List[RangedConstraint] = field(default_factory=list)


@dataclass
class DefaultGlobalConstraints:
    """Fallback limits for every path, normally built from config.py."""

    max_velocity_meters_per_sec: float = config.DEFAULT_MAX_VELOCITY_METERS_PER_SEC
    max_acceleration_meters_per_sec2: float = config.DEFAULT_MAX_ACCELERATION_METERS_PER_SEC2
    max_velocity_deg_per_sec: float = config.DEFAULT_MAX_VELOCITY_DEG_PER_SEC
    max_acceleration_deg_per_sec2: float = config.DEFAULT_MAX_ACCELERATION_DEG_PER_SEC2
    end_translation_tolerance_meters: float = config.DEFAULT_END_TRANSLATION_TOLERANCE_METERS
    end_rotation_tolerance_deg: float = config.DEFAULT_END_ROTATION_TOLERANCE_DEG
    intermediate_handoff_radius_meters: float = config.DEFAULT_INTERMEDIATE_HANDOFF_RADIUS_METERS


# ============================================================================
# Flattened Steps
# ============================================================================


@dataclass(frozen=True)
class TranslationStep:
    """A translation target paired with its effective constraint."""

    element: TranslationTarget
    constraint: TranslationTargetConstraint


@dataclass(frozen=True)
class RotationStep:
    """A rotation target paired with its effective constraint."""

    element: RotationTarget
    constraint: RotationTargetConstraint


PathStep = Union[TranslationStep, RotationStep]


def translation_index_before(steps: List[PathStep], index: int) -> Optional[int]:
    """Index of the last TranslationStep before index, or None."""
    for i in range(index - 1, -1, -1):
        if isinstance(steps[i], TranslationStep):
            return i
    return None


def translation_index_after(steps: List[PathStep], index: int) -> Optional[int]:
    """Index of the first TranslationStep after index, or None."""
    for i in range(index + 1, len(steps)):
        if isinstance(steps[i], TranslationStep):
            return i
    return None


def rotation_target_translation(steps: List[PathStep], index: int) -> Optional[Translation2d]:
    """Field position of the RotationStep at index.

    The target sits t_ratio of the way from the nearest translation target
    before it to the nearest one after it. With only one of those, that
    target's position is used.

    Returns:
        The resolved translation, or None when no translation target lies on
        either side.
    """
    before = translation_index_before(steps, index)
    after = translation_index_after(steps, index)
    if before is None and after is None:
        return None
    if before is None:
        return steps[after].element.translation
    if after is None:
        return steps[before].element.translation
    start = steps[before].element.translation
    end = steps[after].element.translation
    return start.interpolate(end, steps[index].element.t_ratio)


# ============================================================================
# Field Flipping
# ============================================================================


def flip_translation(translation: Translation2d, symmetry: str = config.FIELD_SYMMETRY) -> Translation2d:
    """Map a field translation onto the opposite alliance side.

    Args:
        translation: Field translation authored for the blue side.
        symmetry: "rotational" or "mirrored".

    Returns:
        The corresponding translation on the other side of the field.

    Raises:
        ValueError: If symmetry is not a known field symmetry.
    """
    if symmetry == "rotational":
        return Translation2d(
            config.FIELD_LENGTH_METERS - translation.x, config.FIELD_WIDTH_METERS - translation.y
        )
    if symmetry == "mirrored":
        return Translation2d(config.FIELD_LENGTH_METERS - translation.x, translation.y)
    raise ValueError(f"Unknown field symmetry: {symmetry}")


def flip_rotation(rotation: Rotation2d, symmetry: str = config.FIELD_SYMMETRY) -> Rotation2d:
    """Map a field heading onto the opposite alliance side."""
    if symmetry == "rotational":
        return Rotation2d(angle_modulus(rotation.radians + math.pi))
    if symmetry == "mirrored":
        return Rotation2d(angle_modulus(math.pi - rotation.radians))
    raise ValueError(f"Unknown field symmetry: {symmetry}")


# ============================================================================
# Path
# ============================================================================


def _most_restrictive(ranged: List[RangedConstraint], ordinal: int) -> Optional[float]:
    best: Optional[float] = None
    for rc in ranged:
        if rc.covers(ordinal) and rc.value > 0.0:
            best = rc.value if best is None else min(best, rc.value)
    return best


def _first_set(*values: Optional[float]) -> float:
    for value in values:
        if value is not None:
            return float(value)
    raise ValueError("No constraint value available")


@dataclass
class Path:
    """An authored path: ordered elements plus motion constraints.

    Attributes:
        path_elements: Ordered translation targets, rotation targets and waypoints.
        constraints: Path-level and ranged per-element overrides.
        default_global_constraints: Fallback limits and tolerances.
        symmetry: Field symmetry used by flip().
    """

    path_elements: List[PathElement] = field(default_factory=list)
    constraints: PathConstraints = field(default_factory=PathConstraints)
    default_global_constraints: DefaultGlobalConstraints = field(
        default_factory=DefaultGlobalConstraints
    )
    symmetry: str = config.FIELD_SYMMETRY

    def is_valid(self) -> bool:
        """A path is valid when it holds at least one translation."""
        if not self.path_elements:
            return False
        return any(isinstance(e, (TranslationTarget, Waypoint)) for e in self.path_elements)

    def copy(self) -> "Path":
        """Return an independent deep copy of this path."""
        return copy.deepcopy(self)

    def flip(self) -> None:
        """Mirror every translation and heading onto the other alliance side, in place.

        Calling flip() twice restores the original path; callers flip at most
        once per activation.
        """
        for element in self.path_elements:
            if isinstance(element, Waypoint):
                self._flip_translation_target(element.translation_target)
                self._flip_rotation_target(element.rotation_target)
            elif isinstance(element, TranslationTarget):
                self._flip_translation_target(element)
            elif isinstance(element, RotationTarget):
                self._flip_rotation_target(element)

    def _flip_translation_target(self, target: TranslationTarget) -> None:
        target.translation = flip_translation(target.translation, self.symmetry)

    def _flip_rotation_target(self, target: RotationTarget) -> None:
        target.rotation = flip_rotation(target.rotation, self.symmetry)

    def get_end_translation_tolerance_meters(self) -> float:
        return _first_set(
            self.constraints.end_translation_tolerance_meters,
            self.default_global_constraints.end_translation_tolerance_meters,
        )

    def get_end_rotation_tolerance_deg(self) -> float:
        return _first_set(
            self.constraints.end_rotation_tolerance_deg,
            self.default_global_constraints.end_rotation_tolerance_deg,
        )

    def global_rotation_constraint(self) -> RotationTargetConstraint:
        """Rotation limits with no per-element override applied."""
        return RotationTargetConstraint(
            max_velocity_deg_per_sec=_first_set(
                self.constraints.max_velocity_deg_per_sec,
                self.default_global_constraints.max_velocity_deg_per_sec,
            ),
            max_acceleration_deg_per_sec2=_first_set(
                self.constraints.max_acceleration_deg_per_sec2,
                self.default_global_constraints.max_acceleration_deg_per_sec2,
            ),
        )

    def translation_constraint_for(self, ordinal: int) -> TranslationTargetConstraint:
        """Effective translation limits for the segment ending at a translation ordinal."""
        c = self.constraints
        d = self.default_global_constraints
        return TranslationTargetConstraint(
            max_velocity_meters_per_sec=_first_set(
                _most_restrictive(c.ranged_max_velocity_meters_per_sec, ordinal),
                c.max_velocity_meters_per_sec,
                d.max_velocity_meters_per_sec,
            ),
            max_acceleration_meters_per_sec2=_first_set(
                _most_restrictive(c.ranged_max_acceleration_meters_per_sec2, ordinal),
                c.max_acceleration_meters_per_sec2,
                d.max_acceleration_meters_per_sec2,
            ),
        )

    def rotation_constraint_for(self, ordinal: int) -> RotationTargetConstraint:
        """Effective rotation limits while steering toward a rotation ordinal."""
        c = self.constraints
        d = self.default_global_constraints
        return RotationTargetConstraint(
            max_velocity_deg_per_sec=_first_set(
                _most_restrictive(c.ranged_max_velocity_deg_per_sec, ordinal),
                c.max_velocity_deg_per_sec,
                d.max_velocity_deg_per_sec,
            ),
            max_acceleration_deg_per_sec2=_first_set(
                _most_restrictive(c.ranged_max_acceleration_deg_per_sec2, ordinal),
                c.max_acceleration_deg_per_sec2,
                d.max_acceleration_deg_per_sec2,
            ),
        )

    def get_path_elements_with_constraints_no_waypoints(self) -> List[PathStep]:
        """Flatten the path into ordered steps carrying effective constraints.

        Waypoints expand into a RotationTarget with t_ratio 1.0 followed by the
        waypoint's TranslationTarget, so the heading is due on arrival.
        Element order is otherwise preserved.

        Returns:
            List of TranslationStep / RotationStep in path order.
        """
        steps: List[PathStep] = []
        translation_ordinal = 0
        rotation_ordinal = 0

        def add_translation(target: TranslationTarget) -> None:
            nonlocal translation_ordinal
            steps.append(TranslationStep(target, self.translation_constraint_for(translation_ordinal)))
            translation_ordinal += 1

        def add_rotation(target: RotationTarget) -> None:
            nonlocal rotation_ordinal
            steps.append(RotationStep(target, self.rotation_constraint_for(rotation_ordinal)))
            rotation_ordinal += 1

        for element in self.path_elements:
            if isinstance(element, Waypoint):
                arrival = RotationTarget(
                    rotation=element.rotation_target.rotation,
                    t_ratio=1.0,
                    profiled_rotation=element.rotation_target.profiled_rotation,
                )
                add_rotation(arrival)
                add_translation(element.translation_target)
            elif isinstance(element, TranslationTarget):
                add_translation(element)
            elif isinstance(element, RotationTarget):
                add_rotation(element)

        return steps

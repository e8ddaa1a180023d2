"""JSON load/save for path definitions.

On-disk layout:

    {
      "path_elements": [
        {"type": "translation", "x_meters": 1.0, "y_meters": 2.0,
         "intermediate_handoff_radius_meters": 0.3},
        {"type": "rotation", "rotation_radians": 1.57, "t_ratio": 0.5,
         "profiled_rotation": true},
        {"type": "waypoint",
         "translation_target": {"x_meters": 4.0, "y_meters": 2.0},
         "rotation_target": {"rotation_radians": 0.0, "profiled_rotation": true}}
      ],
      "constraints": {
        "max_velocity_meters_per_sec": 3.0,
        "end_translation_tolerance_meters": 0.05
      },
      "ranged_constraints": {
        "max_velocity_meters_per_sec": [
          {"value": 2.0, "start_ordinal": 0, "end_ordinal": 1}
        ]
      }
    }

Numbers in "constraints" are path-level overrides. "ranged_constraints" holds
per-ordinal overrides (0-based, inclusive ordinals); outside their ranges the
path-level value applies, then the global default. A list given directly in
"constraints" is also read as ranged overrides. Handoff radius is optional and
falls back to the global default when omitted.
"""

import json
from pathlib import Path as FilePath
from typing import Any, Dict, List, Optional, Union

from .geometry import Rotation2d, Translation2d
from .path import (
    Path,
    PathConstraints,
    PathElement,
    RangedConstraint,
    RotationTarget,
    TranslationTarget,
    Waypoint,
)

SCALAR_CONSTRAINT_KEYS = (
    "max_velocity_meters_per_sec",
    "max_acceleration_meters_per_sec2",
    "max_velocity_deg_per_sec",
    "max_acceleration_deg_per_sec2",
    "end_translation_tolerance_meters",
    "end_rotation_tolerance_deg",
)
"""Constraint keys that accept a single path-level value."""

RANGED_CONSTRAINT_KEYS = (
    "max_velocity_meters_per_sec",
    "max_acceleration_meters_per_sec2",
    "max_velocity_deg_per_sec",
    "max_acceleration_deg_per_sec2",
)
"""Constraint keys that also accept a list of ranged overrides."""


# ============================================================================
# Serialization
# ============================================================================


def _serialize_translation(target: TranslationTarget) -> Dict[str, Any]:
    entry: Dict[str, Any] = {
        "x_meters": float(target.translation.x),
        "y_meters": float(target.translation.y),
    }
    if target.intermediate_handoff_radius_meters is not None:
        entry["intermediate_handoff_radius_meters"] = float(target.intermediate_handoff_radius_meters)
    return entry


def serialize_path(path: Path) -> Dict[str, Any]:
    """Convert a Path into the JSON structure stored on disk."""
    items: List[Dict[str, Any]] = []
    for element in path.path_elements:
        if isinstance(element, Waypoint):
            items.append(
                {
                    "type": "waypoint",
                    "translation_target": _serialize_translation(element.translation_target),
                    "rotation_target": {
                        "rotation_radians": float(element.rotation_target.rotation.radians),
                        "profiled_rotation": bool(element.rotation_target.profiled_rotation),
                    },
                }
            )
        elif isinstance(element, TranslationTarget):
            items.append({"type": "translation", **_serialize_translation(element)})
        elif isinstance(element, RotationTarget):
            items.append(
                {
                    "type": "rotation",
                    "rotation_radians": float(element.rotation.radians),
                    "t_ratio": float(element.t_ratio),
                    "profiled_rotation": bool(element.profiled_rotation),
                }
            )

    constraints_obj: Dict[str, Any] = {}
    for key in SCALAR_CONSTRAINT_KEYS:
        value = getattr(path.constraints, key)
        if value is not None:
            constraints_obj[key] = float(value)

    ranged_obj: Dict[str, Any] = {}
    for key in RANGED_CONSTRAINT_KEYS:
        ranged: List[RangedConstraint] = getattr(path.constraints, f"ranged_{key}")
        if ranged:
            ranged_obj[key] = [
                {"value": float(rc.value), "start_ordinal": rc.start_ordinal, "end_ordinal": rc.end_ordinal}
                for rc in ranged
            ]

    result: Dict[str, Any] = {"path_elements": items}
    if constraints_obj:
        result["constraints"] = constraints_obj
    if ranged_obj:
        result["ranged_constraints"] = ranged_obj
    return result


# ============================================================================
# Deserialization
# ============================================================================


def _opt_float(value: Any, context: str) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"{context}: expected a number, got {value!r}") from e


def _req_float(data: Dict[str, Any], key: str, context: str) -> float:
    if key not in data:
        raise ValueError(f"{context}: missing '{key}'")
    return _opt_float(data[key], f"{context}.{key}")


def _parse_translation(data: Any, context: str) -> TranslationTarget:
    if not isinstance(data, dict):
        raise ValueError(f"{context}: expected an object")
    radius = _opt_float(data.get("intermediate_handoff_radius_meters"), f"{context}.intermediate_handoff_radius_meters")
    if radius is not None and radius < 0.0:
        raise ValueError(f"{context}: handoff radius must be non-negative, got {radius}")
    return TranslationTarget(
        translation=Translation2d(
            _req_float(data, "x_meters", context), _req_float(data, "y_meters", context)
        ),
        intermediate_handoff_radius_meters=radius,
    )


def _parse_rotation(data: Any, context: str, default_t_ratio: float = 0.0) -> RotationTarget:
    if not isinstance(data, dict):
        raise ValueError(f"{context}: expected an object")
    t_ratio = _opt_float(data.get("t_ratio"), f"{context}.t_ratio")
    if t_ratio is None:
        t_ratio = default_t_ratio
    if not 0.0 <= t_ratio <= 1.0:
        raise ValueError(f"{context}: t_ratio must be within [0, 1], got {t_ratio}")
    return RotationTarget(
        rotation=Rotation2d(_req_float(data, "rotation_radians", context)),
        t_ratio=t_ratio,
        profiled_rotation=bool(data.get("profiled_rotation", True)),
    )


def _parse_element(item: Any, index: int) -> PathElement:
    context = f"path_elements[{index}]"
    if not isinstance(item, dict):
        raise ValueError(f"{context}: expected an object")
    kind = item.get("type")
    if kind == "translation":
        return _parse_translation(item, context)
    if kind == "rotation":
        return _parse_rotation(item, context)
    if kind == "waypoint":
        return Waypoint(
            translation_target=_parse_translation(item.get("translation_target"), f"{context}.translation_target"),
            rotation_target=_parse_rotation(item.get("rotation_target"), f"{context}.rotation_target"),
        )
    raise ValueError(f"{context}: unknown element type {kind!r}")


def _parse_ranged(constraints: PathConstraints, key: str, value: Any, context: str) -> None:
    if key not in RANGED_CONSTRAINT_KEYS:
        raise ValueError(f"{context}: ranged values are not supported")
    if not isinstance(value, list):
        raise ValueError(f"{context}: expected a list")
    ranged = getattr(constraints, f"ranged_{key}")
    for i, entry in enumerate(value):
        entry_context = f"{context}[{i}]"
        if not isinstance(entry, dict):
            raise ValueError(f"{entry_context}: expected an object")
        start = int(entry.get("start_ordinal", 0))
        end = int(entry.get("end_ordinal", start))
        if start < 0 or end < start:
            raise ValueError(f"{entry_context}: invalid ordinal range {start}..{end}")
        ranged.append(RangedConstraint(_req_float(entry, "value", entry_context), start, end))


def _parse_constraints(block: Any, ranged_block: Any = None) -> PathConstraints:
    if block is None:
        block = {}
    if not isinstance(block, dict):
        raise ValueError("constraints: expected an object")
    if ranged_block is None:
        ranged_block = {}
    if not isinstance(ranged_block, dict):
        raise ValueError("ranged_constraints: expected an object")

    constraints = PathConstraints()
    for key, value in block.items():
        if isinstance(value, list):
            _parse_ranged(constraints, key, value, f"constraints.{key}")
        elif key in SCALAR_CONSTRAINT_KEYS:
            setattr(constraints, key, _opt_float(value, f"constraints.{key}"))
        else:
            raise ValueError(f"constraints: unknown key {key!r}")
    for key, value in ranged_block.items():
        _parse_ranged(constraints, key, value, f"ranged_constraints.{key}")
    return constraints


def deserialize_path(data: Any) -> Path:
    """Construct a Path from its JSON structure.

    Args:
        data: Parsed JSON, either an object with "path_elements" (and
            optionally "constraints" and "ranged_constraints") or a bare
            list of elements.

    Returns:
        The Path described by data.

    Raises:
        ValueError: If the structure or any value is malformed.
    """
    if isinstance(data, list):
        items, constraints_block, ranged_block = data, None, None
    elif isinstance(data, dict):
        items = data.get("path_elements")
        constraints_block = data.get("constraints")
        ranged_block = data.get("ranged_constraints")
        if not isinstance(items, list):
            raise ValueError("'path_elements' must be a list")
    else:
        raise ValueError(f"Path data must be an object or a list, got {type(data).__name__}")

    return Path(
        path_elements=[_parse_element(item, i) for i, item in enumerate(items)],
        constraints=_parse_constraints(constraints_block, ranged_block),
    )


# ============================================================================
# Files
# ============================================================================


def load_path(filepath: Union[str, FilePath]) -> Path:
    """Load a path from a JSON file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is not valid JSON or not a valid path.
    """
    filepath = FilePath(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"Path file not found: {filepath}")

    with open(filepath, encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {filepath}: {e}") from e
    return deserialize_path(data)


def save_path(path: Path, filepath: Union[str, FilePath]) -> None:
    """Write a path to a JSON file, creating parent directories as needed."""
    filepath = FilePath(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    with open(filepath, "w", encoding="utf-8") as f:
        json.dump(serialize_path(path), f, indent=2)

"""Swerve Follower - Path Following for Swerve Drive Vehicles

Drives a four-module swerve vehicle along an authored path while tracking an
independently scheduled heading.

## Architecture Overview

Each control cycle runs a short pipeline:

### Layer 1: Path Model (path.py)
An ordered list of translation targets, rotation targets and waypoints, plus
layered motion constraints.
- Flattening expands waypoints and pairs every element with its effective limits
- Field flipping mirrors a path onto the other alliance side

### Layer 2: Path Following (follower.py)
Two cursors over the flattened list advance independently.
- Translation cursor hands off inside each target's handoff radius
- Rotation cursor passes a target once its t_ratio point along the segment is reached
- Heading is interpolated the short way around from the last passed target
- Output: field-relative chassis speeds (vx, vy, omega)

### Layer 3: Feedback and Shaping (pid.py, rate_limiter.py)
- PID on remaining path distance and on heading (continuous input)
- Velocity and acceleration limits, translation limited as a 2D vector

### Layer 4: Swerve Kinematics (kinematics.py)
Converts chassis speeds to module states with wheel-speed desaturation.

## Modules

### Core
- `config.py` - Centralized configuration parameters with documentation
- `geometry.py` - Translation, rotation, pose and chassis speed types
- `path.py` - Path model, constraints and field flipping
- `path_io.py` - JSON path definitions
- `follower.py` - Path follower state machine
- `pid.py` - PID feedback controller
- `rate_limiter.py` - Chassis speed shaping
- `kinematics.py` - Swerve inverse/forward kinematics

### Simulation & Data
- `simulation.py` - Ideal swerve drive and closed-loop runner
- `telemetry.py` - Key/value telemetry with CSV output

### Visualization
- `plot_styles.py` - Shared plotting utilities and color scheme
- `visualization.py` - Plots of simulated runs
- `cli.py` - Command-line runner

## Quick Start

```python
from swerve_follower import FollowerConfig, load_path, simulate_path

result = simulate_path(load_path("paths/example.json"), FollowerConfig.from_defaults())
print(result.finished, result.final_pose)
```

Or use the command-line interface:
```bash
python -m swerve_follower paths/example.json --plot
```
"""

from .follower import ConfigurationError, FollowerConfig, FollowerState, PathFollower, PIDGains
from .geometry import ChassisSpeeds, Pose2d, Rotation2d, Translation2d
from .path import (
    DefaultGlobalConstraints,
    Path,
    PathConstraints,
    RangedConstraint,
    RotationTarget,
    TranslationTarget,
    Waypoint,
)
from .path_io import load_path, save_path
from .simulation import SimResult, simulate_path

__version__ = "0.1.0"

__all__ = [
    "ChassisSpeeds",
    "ConfigurationError",
    "DefaultGlobalConstraints",
    "FollowerConfig",
    "FollowerState",
    "Path",
    "PathConstraints",
    "PathFollower",
    "PIDGains",
    "Pose2d",
    "RangedConstraint",
    "Rotation2d",
    "RotationTarget",
    "SimResult",
    "Translation2d",
    "TranslationTarget",
    "Waypoint",
    "load_path",
    "save_path",
    "simulate_path",
]

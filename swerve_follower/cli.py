#!/usr/bin/env python3
"""
Command-line runner for the swerve path follower.

Loads a path definition from JSON, follows it with a PathFollower on a
simulated swerve drive, and reports the outcome. Optionally writes follower
telemetry to CSV and plots the run.
"""

import argparse
import logging
import math
import sys
from pathlib import Path
from typing import List, Optional

from .config import CONTROL_PERIOD_SECONDS, SIM_TIMEOUT_SECONDS, TERM_BLUE, TERM_ORANGE, TERM_RESET
from .follower import ConfigurationError, FollowerConfig
from .path_io import load_path
from .simulation import simulate_path
from .telemetry import TelemetryLogger


class CustomFormatter(logging.Formatter):
    """Custom logging formatter that removes timestamps from INFO messages.

    This formatter provides clean console output by showing INFO messages without
    timestamps while preserving full context for WARNING, ERROR, and DEBUG messages.
    """

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno == logging.INFO:
            return record.getMessage()
        return f"{self.formatTime(record, self.datefmt)} - {record.levelname} - {record.getMessage()}"


def setup_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity level.

    Args:
        verbose: If True, show all levels with timestamps. If False, show INFO
                 without timestamps and WARNING/ERROR with timestamps.
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(CustomFormatter(datefmt="%Y-%m-%d %H:%M:%S"))
        logger = logging.getLogger()
        logger.setLevel(logging.INFO)
        logger.addHandler(handler)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="swerve-follower",
        description="Follow a path definition on a simulated swerve drive",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Follow a path and print a summary
  python -m swerve_follower paths/example.json

  # Follow the path mirrored for the other alliance and plot the run
  python -m swerve_follower paths/example.json --flip --plot

  # Save plots and telemetry
  python -m swerve_follower paths/example.json --save results --telemetry results/telemetry.csv
        """,
    )
    parser.add_argument("path_json", type=str, help="Path definition JSON file")
    parser.add_argument("--flip", action="store_true", help="Mirror the path onto the other alliance side")
    parser.add_argument(
        "--dt",
        type=float,
        default=CONTROL_PERIOD_SECONDS,
        help=f"Control period in seconds (default: {CONTROL_PERIOD_SECONDS})",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=SIM_TIMEOUT_SECONDS,
        help=f"Give up after this much simulated time in seconds (default: {SIM_TIMEOUT_SECONDS})",
    )
    parser.add_argument("--plot", action="store_true", help="Show plots of the run")
    parser.add_argument("--save", type=str, default=None, help="Directory to save plots into")
    parser.add_argument("--telemetry", type=str, default=None, help="CSV file to write telemetry into")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging with timestamps")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point. Returns the process exit code."""
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    try:
        path = load_path(args.path_json)
    except (FileNotFoundError, ValueError) as e:
        logging.error(f"Error: {e}")
        return 1

    if not path.is_valid():
        logging.error(f"Error: {args.path_json} does not contain any translation target")
        return 1

    logging.info(f"{TERM_BLUE}Following {args.path_json} ({len(path.path_elements)} elements){TERM_RESET}")

    telemetry = TelemetryLogger(Path(args.telemetry)) if args.telemetry else None
    try:
        if telemetry is not None:
            telemetry.setup()
        result = simulate_path(
            path,
            config=FollowerConfig.from_defaults(),
            dt=args.dt,
            timeout=args.timeout,
            should_flip=args.flip,
            telemetry=telemetry,
        )
    except (ConfigurationError, ValueError) as e:
        logging.error(f"Error: {e}")
        return 1
    finally:
        if telemetry is not None:
            telemetry.cleanup()

    final = result.final_pose
    status = f"{TERM_BLUE}finished{TERM_RESET}" if result.finished else f"{TERM_ORANGE}timed out{TERM_RESET}"
    logging.info(f"Result: {status} after {result.duration:.2f} s")
    logging.info(f"Final pose: x={final.x:.3f} m, y={final.y:.3f} m, heading={math.degrees(final.rotation.radians):.1f} deg")

    if args.plot or args.save:
        import matplotlib.pyplot as plt

        from .visualization import plot_sim_result

        save_path = Path(args.save) / f"{Path(args.path_json).stem}.png" if args.save else None
        plot_sim_result(result, title=Path(args.path_json).stem, save_path=save_path)
        if args.plot:
            plt.show()

    return 0 if result.finished else 2


if __name__ == "__main__":
    sys.exit(main())

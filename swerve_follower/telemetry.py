"""Structured key/value telemetry for the path follower.

The follower publishes its internal state every cycle under "FollowPath/..."
keys (cursor indices, remaining distance, target heading, warnings). This
module provides:
- Latest-value lookup per key, for tests and live inspection
- An in-memory history of every recorded entry
- An optional CSV sink streaming (timestamp, key, value) rows to disk

Sequence values (e.g. the trail of visited translations) and booleans are JSON
encoded in the CSV so each entry stays on one row and reloads with its type.
"""

import csv
import json
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TextIO, Tuple

from .config import TERM_BLUE, TERM_RESET
from .geometry import Pose2d, Rotation2d, Translation2d


def _to_plain(value: Any) -> Any:
    """Convert geometry values into JSON friendly structures."""
    if isinstance(value, Translation2d):
        return [value.x, value.y]
    if isinstance(value, Rotation2d):
        return value.radians
    if isinstance(value, Pose2d):
        return [value.x, value.y, value.rotation.radians]
    if isinstance(value, (list, tuple)):
        return [_to_plain(v) for v in value]
    return value


class TelemetryLogger:
    """Records follower diagnostics and optionally writes them to CSV.

    Attributes:
        latest: Most recent value recorded for each key.
        history: Every (timestamp, key, value) entry recorded so far.
        output_path: CSV destination, or None for in-memory only.
    """

    def __init__(
        self,
        output_path: Optional[Path] = None,
        clock: Callable[[], float] = time.monotonic,
        keep_history: bool = True,
    ) -> None:
        """Initialize the telemetry logger.

        Args:
            output_path: CSV file to stream entries into. The parent directory
                is created on setup().
            clock: Time source for entry timestamps (seconds).
            keep_history: If False, only the latest value per key is kept.

        Raises:
            ValueError: If output_path exists and is a directory.
        """
        if output_path is not None:
            output_path = Path(output_path)
            if output_path.exists() and output_path.is_dir():
                raise ValueError(f"Telemetry output path is a directory: {output_path}")

        self.output_path: Optional[Path] = output_path
        self.clock = clock
        self.keep_history = keep_history

        self.latest: Dict[str, Any] = {}
        self.history: List[Tuple[float, str, Any]] = []

        self.csv_file: Optional[TextIO] = None
        self.csv_writer: Any = None

    def setup(self) -> None:
        """Open the CSV file and write its header. No-op without an output path."""
        if self.output_path is None:
            return
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        self.csv_file = open(self.output_path, "w", newline="")
        self.csv_writer = csv.writer(self.csv_file)
        self.csv_writer.writerow(["timestamp", "key", "value"])
        self.csv_file.flush()

    def record_output(self, key: str, value: Any) -> None:
        """Record one telemetry entry.

        Args:
            key: Slash separated key, e.g. "FollowPath/translationElementIndex".
            value: Number, bool, string, geometry value or list of those.
        """
        timestamp = self.clock()
        plain = _to_plain(value)
        self.latest[key] = plain
        if self.keep_history:
            self.history.append((timestamp, key, plain))
        if self.csv_writer is not None:
            encoded = json.dumps(plain) if isinstance(plain, (list, bool)) else plain
            self.csv_writer.writerow([timestamp, key, encoded])

    def get(self, key: str, default: Any = None) -> Any:
        return self.latest.get(key, default)

    def values(self, key: str) -> List[Any]:
        """All recorded values of one key, oldest first."""
        return [value for _, k, value in self.history if k == key]

    def cleanup(self) -> None:
        """Flush and close the CSV file, if one is open."""
        if self.csv_file:
            self.csv_file.flush()
            self.csv_file.close()
            self.csv_file = None
            self.csv_writer = None
            print(f"{TERM_BLUE}✓ Saved telemetry to {self.output_path}{TERM_RESET}")

    def __enter__(self) -> "TelemetryLogger":
        self.setup()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.cleanup()

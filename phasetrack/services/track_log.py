from __future__ import annotations

import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Callable

from phasetrack.core.constants import LOGGED_JOINTS
from phasetrack.core.phase_tracker import TransitionEvent
from phasetrack.core.skeleton import JointSample, JointType

logger = logging.getLogger(__name__)


def format_timestamp(moment: datetime) -> str:
    return f"{moment.strftime('%m/%d/%Y %H:%M:%S')}:{moment.microsecond // 1000:03d}"


def format_record(sample: JointSample, moment: datetime) -> str:
    """One log line: timestamp, then '#'-joined x,y,z triples in LOGGED_JOINTS order."""
    parts = [format_timestamp(moment)]
    for name in LOGGED_JOINTS:
        joint = sample.get(JointType(name))
        if joint is None:
            parts.append("0,0,0")
            continue
        parts.append(f"{joint.x},{joint.y},{joint.z}")
    return "#".join(parts)


class TrackLogWriter:
    def __init__(self, path: str | Path, clock: Callable[[], datetime] = datetime.now):
        self.path = Path(path)
        self.clock = clock
        self._lock = threading.Lock()

    def retarget(self, path: str | Path) -> None:
        with self._lock:
            self.path = Path(path)
        logger.info(f"[track_log] writing to {self.path}")

    def truncate(self) -> None:
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text("", encoding="utf-8")
        logger.info(f"[track_log] truncated {self.path}")

    def append(self, event: TransitionEvent) -> str:
        line = format_record(event.sample, self.clock())
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as file:
                file.write(line + "\n")
        return line

    def read_lines(self) -> list[str]:
        with self._lock:
            if not self.path.exists():
                return []
            return self.path.read_text(encoding="utf-8").splitlines()

from __future__ import annotations

import json
import logging
from pathlib import Path

from phasetrack.core.joint_tracking import JointStateTracker
from phasetrack.core.session import build_phase_tracker
from phasetrack.core.skeleton import samples_from_payload
from phasetrack.models.config import AppConfig

logger = logging.getLogger(__name__)


class ReplayProcessor:
    """Runs a recorded JSON-lines frame file through a freshly armed tracker."""

    def __init__(self, cfg: AppConfig):
        self.cfg = cfg

    def run(self, path: str | Path) -> dict:
        source = Path(path)
        if not source.exists():
            return {"ok": False, "message": f"replay source missing: {source}"}

        tracker = build_phase_tracker(self.cfg.tracker)
        joint_tracker = JointStateTracker(self.cfg.runtime.not_tracked_hold_ms)
        tracker.reset()

        frames = 0
        skipped = 0
        transitions: list[dict] = []
        with source.open("r", encoding="utf-8") as file:
            for line_no, line in enumerate(file, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    samples = samples_from_payload(json.loads(line))
                except (json.JSONDecodeError, ValueError, TypeError, AttributeError) as exc:
                    skipped += 1
                    logger.warning(f"[replay] skipping line {line_no}: {exc}")
                    continue
                frames += 1
                for sample in samples:
                    for event in tracker.process_frame(joint_tracker.stabilize(sample)):
                        transitions.append(
                            {
                                "sequence": event.sequence,
                                "phase": event.phase,
                                "timestamp": event.timestamp,
                                "frame": frames,
                            }
                        )

        logger.info(
            f"[replay] {source}: frames={frames} skipped={skipped} "
            f"transitions={[t['phase'] for t in transitions]}"
        )
        return {
            "ok": True,
            "frames": frames,
            "skipped": skipped,
            "transitions": [t["phase"] for t in transitions],
            "events": transitions,
            "final_phase": tracker.phase.value,
        }

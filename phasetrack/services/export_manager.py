from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import List

from phasetrack.core.constants import LOGGED_JOINTS
from phasetrack.core.phase_tracker import TransitionEvent
from phasetrack.core.skeleton import JointType
from phasetrack.models.config import ExportConfig

FIELDNAMES = [
    "sequence",
    "phase",
    "timestamp",
    "body_index",
    "joint_name",
    "x",
    "y",
    "z",
    "state",
]


class ExportManager:
    def __init__(self, cfg: ExportConfig):
        self.cfg = cfg
        self.rows: List[dict] = []
        self.transitions: List[dict] = []

    def append(self, event: TransitionEvent) -> None:
        sample = event.sample
        self.transitions.append(
            {
                "sequence": int(event.sequence),
                "phase": event.phase,
                "timestamp": float(event.timestamp),
                "body_index": int(sample.body_index),
            }
        )
        for name in LOGGED_JOINTS:
            joint = sample.get(JointType(name))
            if joint is None:
                continue
            self.rows.append(
                {
                    "sequence": int(event.sequence),
                    "phase": event.phase,
                    "timestamp": float(event.timestamp),
                    "body_index": int(sample.body_index),
                    "joint_name": name,
                    "x": str(joint.x),
                    "y": str(joint.y),
                    "z": str(joint.z),
                    "state": joint.state.value,
                }
            )

    def flush(self) -> dict:
        json_path = Path(self.cfg.json_path)
        csv_path = Path(self.cfg.csv_path)
        json_path.parent.mkdir(parents=True, exist_ok=True)
        csv_path.parent.mkdir(parents=True, exist_ok=True)
        json_path.write_text(
            json.dumps({"transitions": self.transitions, "joints": self.rows}, indent=2),
            encoding="utf-8",
        )
        with csv_path.open("w", newline="", encoding="utf-8") as file:
            writer = csv.DictWriter(file, fieldnames=FIELDNAMES)
            writer.writeheader()
            writer.writerows(self.rows)
        return {
            "json": str(json_path).replace("\\", "/"),
            "csv": str(csv_path).replace("\\", "/"),
        }

    def clear(self) -> None:
        self.rows.clear()
        self.transitions.clear()

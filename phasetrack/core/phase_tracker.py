from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional

from phasetrack.core.constants import (
    DEFAULT_DECIMAL_PLACES,
    DEFAULT_FOOT_GROUND_THRESHOLD,
    DEFAULT_FOOT_RAISE_THRESHOLD,
    DEFAULT_KNEE_TOLERANCE,
)
from phasetrack.core.skeleton import JointSample, JointType, to_decimal

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    IDLE = "idle"
    START = "start"
    START_END = "start-end"
    F0 = "f0"
    F0_END = "f0-end"
    F1 = "f1"
    F1_END = "f1-end"
    F2 = "f2"
    F2_END = "f2-end"
    F3 = "f3"
    F3_END = "f3-end"
    F4 = "f4"
    F4_END = "f4-end"
    DONE = "done"


# Pass-through phases and the armed sub-state each one settles into.
_ARMED = {
    Phase.START: Phase.START_END,
    Phase.F0: Phase.F0_END,
    Phase.F1: Phase.F1_END,
    Phase.F2: Phase.F2_END,
    Phase.F3: Phase.F3_END,
    Phase.F4: Phase.F4_END,
}

_CALIBRATION_JOINTS = (
    JointType.WristRight,
    JointType.KneeLeft,
    JointType.FootLeft,
    JointType.FootRight,
    JointType.AnkleRight,
)


@dataclass(frozen=True)
class Baseline:
    start_right_wrist_x: Decimal
    start_left_knee_x: Decimal
    start_left_foot_x: Decimal
    start_right_foot_y: Decimal
    start_right_ankle_y: Decimal

    def as_dict(self) -> dict:
        return {
            "start_right_wrist_x": str(self.start_right_wrist_x),
            "start_left_knee_x": str(self.start_left_knee_x),
            "start_left_foot_x": str(self.start_left_foot_x),
            "start_right_foot_y": str(self.start_right_foot_y),
            "start_right_ankle_y": str(self.start_right_ankle_y),
        }


@dataclass
class RunningExtrema:
    current_left_knee: Decimal
    current_right_wrist: Decimal

    def as_dict(self) -> dict:
        return {
            "current_left_knee": str(self.current_left_knee),
            "current_right_wrist": str(self.current_right_wrist),
        }


@dataclass
class TransitionEvent:
    phase: str
    sample: JointSample
    sequence: int

    @property
    def timestamp(self) -> float:
        return float(self.sample.timestamp)


class PhaseTracker:
    """Classifies a skeleton frame stream into the start/f0..f4 gait phases.

    The tracker is armed by ``reset()``. The first frame afterwards calibrates
    the baseline; every later frame is tested against the guard of the current
    ``-end`` phase. A guard that holds advances the tracker by exactly one
    phase and produces a ``TransitionEvent``; a guard that does not hold leaves
    the tracker where it is. Frames never raise.
    """

    def __init__(
        self,
        decimal_places: int = DEFAULT_DECIMAL_PLACES,
        knee_tolerance=DEFAULT_KNEE_TOLERANCE,
        foot_raise_threshold=DEFAULT_FOOT_RAISE_THRESHOLD,
        foot_ground_threshold=DEFAULT_FOOT_GROUND_THRESHOLD,
        emit_on_next_frame: bool = False,
        absolute_foot_baselines: bool = True,
    ):
        self.decimal_places = max(0, int(decimal_places))
        self.knee_tolerance = to_decimal(knee_tolerance)
        self.foot_raise_threshold = to_decimal(foot_raise_threshold)
        self.foot_ground_threshold = to_decimal(foot_ground_threshold)
        self.emit_on_next_frame = bool(emit_on_next_frame)
        self.absolute_foot_baselines = bool(absolute_foot_baselines)
        self._lock = threading.Lock()
        self._phase = Phase.IDLE
        self._baseline: Optional[Baseline] = None
        self._extrema: Optional[RunningExtrema] = None
        self._sequence = 0

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def baseline(self) -> Optional[Baseline]:
        return self._baseline

    @property
    def extrema(self) -> Optional[RunningExtrema]:
        return self._extrema

    @property
    def active(self) -> bool:
        return self._phase not in (Phase.IDLE, Phase.DONE)

    def reset(self) -> None:
        with self._lock:
            self._phase = Phase.START
            self._baseline = None
            self._extrema = None
            self._sequence = 0
        logger.info("[tracker] tracking armed")

    def snapshot(self) -> dict:
        with self._lock:
            return {
                "phase": self._phase.value,
                "baseline": self._baseline.as_dict() if self._baseline else None,
                "extrema": self._extrema.as_dict() if self._extrema else None,
                "transitions": self._sequence,
            }

    def process_frame(self, sample: Optional[JointSample]) -> list[TransitionEvent]:
        with self._lock:
            if not self.active or sample is None or not sample.joints:
                return []

            if self._phase is Phase.F4_END:
                self._phase = Phase.DONE
                logger.info("[tracker] cycle complete")
                return []

            if self._phase in _ARMED:
                event = self._enter(sample)
                return [event] if event is not None else []

            target = self._evaluate_guard(sample)
            if target is None:
                return []
            logger.info(f"[tracker] Step: {target.value.upper()}")
            self._phase = target
            if self.emit_on_next_frame:
                return []
            event = self._enter(sample)
            return [event] if event is not None else []

    def _coord(self, sample: JointSample, joint: JointType, axis: str) -> Optional[Decimal]:
        return sample.coord(joint, axis, self.decimal_places)

    def _enter(self, sample: JointSample) -> Optional[TransitionEvent]:
        phase = self._phase
        if phase is Phase.START and not self._calibrate(sample):
            return None
        self._phase = _ARMED[phase]
        self._sequence += 1
        return TransitionEvent(phase=phase.value, sample=sample, sequence=self._sequence)

    def _calibrate(self, sample: JointSample) -> bool:
        if not sample.has_all(_CALIBRATION_JOINTS):
            return False
        wrist_x = self._coord(sample, JointType.WristRight, "x")
        knee_x = self._coord(sample, JointType.KneeLeft, "x")
        left_foot_x = self._coord(sample, JointType.FootLeft, "x")
        right_foot_y = self._coord(sample, JointType.FootRight, "y")
        ankle_y = self._coord(sample, JointType.AnkleRight, "y")
        if None in (wrist_x, knee_x, left_foot_x, right_foot_y, ankle_y):
            return False
        if self.absolute_foot_baselines:
            left_foot_x = abs(left_foot_x)
            right_foot_y = abs(right_foot_y)
        self._baseline = Baseline(
            start_right_wrist_x=abs(wrist_x),
            start_left_knee_x=abs(knee_x),
            start_left_foot_x=left_foot_x,
            start_right_foot_y=right_foot_y,
            start_right_ankle_y=abs(ankle_y),
        )
        self._extrema = RunningExtrema(
            current_left_knee=self._baseline.start_left_knee_x,
            current_right_wrist=self._baseline.start_right_wrist_x,
        )
        logger.info(f"[tracker] Step: Start (baseline {self._baseline.as_dict()})")
        return True

    def _evaluate_guard(self, sample: JointSample) -> Optional[Phase]:
        if self._phase is Phase.START_END:
            return self._left_knee_peak(sample)
        if self._phase is Phase.F0_END:
            return self._right_foot_raised(sample)
        if self._phase is Phase.F1_END:
            return self._right_foot_grounded(sample)
        if self._phase is Phase.F2_END:
            return self._left_foot_grounded(sample)
        if self._phase is Phase.F3_END:
            return self._right_wrist_peak(sample)
        return None

    def _left_knee_peak(self, sample: JointSample) -> Optional[Phase]:
        value = self._coord(sample, JointType.KneeLeft, "x")
        if value is None:
            return None
        value = abs(value)
        if value + self.knee_tolerance >= self._extrema.current_left_knee:
            self._extrema.current_left_knee = value
            return None
        return Phase.F0

    def _right_foot_raised(self, sample: JointSample) -> Optional[Phase]:
        value = self._coord(sample, JointType.FootRight, "y")
        if value is None:
            return None
        diff = abs(abs(value) - self._baseline.start_right_ankle_y)
        if diff > self.foot_raise_threshold:
            return Phase.F1
        return None

    def _right_foot_grounded(self, sample: JointSample) -> Optional[Phase]:
        value = self._coord(sample, JointType.FootRight, "y")
        if value is None:
            return None
        diff = abs(abs(value) - self._baseline.start_right_foot_y)
        logger.debug(f"[tracker] right foot diff={diff}")
        if diff <= self.foot_ground_threshold:
            return Phase.F2
        return None

    def _left_foot_grounded(self, sample: JointSample) -> Optional[Phase]:
        # Compared against the left foot X baseline, as the calibrated rig does.
        value = self._coord(sample, JointType.FootLeft, "y")
        if value is None:
            return None
        diff = abs(abs(value) - self._baseline.start_left_foot_x)
        if diff <= self.foot_ground_threshold:
            return Phase.F3
        return None

    def _right_wrist_peak(self, sample: JointSample) -> Optional[Phase]:
        # Driven by KneeLeft.x; the right wrist slot only seeds the extremum.
        value = self._coord(sample, JointType.KneeLeft, "x")
        if value is None:
            return None
        value = abs(value)
        if value + self.knee_tolerance >= self._extrema.current_right_wrist:
            self._extrema.current_right_wrist = value
            return None
        return Phase.F4

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict

from phasetrack.core.skeleton import Joint, JointSample, JointType, TrackingState


@dataclass
class JointCacheItem:
    joint: Joint
    timestamp: float


class JointStateTracker:
    """Substitutes NotTracked joints with their last confident position.

    With ``hold_ms == 0`` samples pass through untouched, which matches the
    sensor's own behaviour of always populating a position.
    """

    def __init__(self, hold_ms: int = 0):
        self.hold_ms = max(0, int(hold_ms))
        self._cache: Dict[int, Dict[JointType, JointCacheItem]] = {}
        self._last_held_count: int = 0

    def reset(self) -> None:
        self._cache.clear()
        self._last_held_count = 0

    @property
    def enabled(self) -> bool:
        return self.hold_ms > 0

    @property
    def last_held_count(self) -> int:
        return int(self._last_held_count)

    def stabilize(self, sample: JointSample) -> JointSample:
        self._last_held_count = 0
        if not self.enabled:
            return sample

        now = float(sample.timestamp)
        cache = self._cache.setdefault(int(sample.body_index), {})
        out: Dict[JointType, Joint] = {}
        for joint_type, joint in sample.joints.items():
            if joint.state is not TrackingState.NotTracked:
                cache[joint_type] = JointCacheItem(joint=joint, timestamp=now)
                out[joint_type] = joint
                continue

            prev = cache.get(joint_type)
            if prev is None:
                out[joint_type] = joint
                continue
            age_ms = int(max(0.0, (now - prev.timestamp) * 1000.0))
            if age_ms > self.hold_ms:
                out[joint_type] = joint
                continue
            out[joint_type] = replace(prev.joint, state=TrackingState.NotTracked)
            self._last_held_count += 1

        return replace(sample, joints=out)

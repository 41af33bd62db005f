from __future__ import annotations

import time
from dataclasses import dataclass, field
from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation
from enum import Enum
from typing import Dict, Iterable, Optional

from phasetrack.core.constants import KINECT_JOINTS, MAX_COORDINATE_ABS, TRACKING_STATES

JointType = Enum("JointType", {name: name for name in KINECT_JOINTS}, type=str)
TrackingState = Enum("TrackingState", {name: name for name in TRACKING_STATES}, type=str)

ZERO = Decimal("0")
_MAX_COORDINATE = Decimal(str(MAX_COORDINATE_ABS))


def to_decimal(value) -> Decimal:
    """Convert a sensor coordinate to Decimal through its shortest string form."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_coord(value: Decimal, places: int = 4) -> Decimal:
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_EVEN)


@dataclass(frozen=True)
class Joint:
    x: Decimal
    y: Decimal
    z: Decimal
    state: TrackingState = TrackingState.Tracked

    def axis(self, name: str) -> Decimal:
        return getattr(self, name)

    def as_triple(self) -> tuple[Decimal, Decimal, Decimal]:
        return self.x, self.y, self.z


@dataclass
class JointSample:
    joints: Dict[JointType, Joint]
    timestamp: float = field(default_factory=time.time)
    body_index: int = 0

    def get(self, joint: JointType) -> Optional[Joint]:
        return self.joints.get(joint)

    def has_all(self, joints: Iterable[JointType]) -> bool:
        return all(j in self.joints for j in joints)

    def coord(self, joint: JointType, axis: str, places: int = 4) -> Optional[Decimal]:
        """Return the rounded coordinate, or None when the joint is absent or unusable."""
        entry = self.joints.get(joint)
        if entry is None:
            return None
        try:
            return round_coord(entry.axis(axis), places)
        except InvalidOperation:
            return None

    def to_payload(self) -> dict:
        return {
            "timestamp": float(self.timestamp),
            "body_index": int(self.body_index),
            "joints": {
                joint.value: {
                    "xyz": [float(entry.x), float(entry.y), float(entry.z)],
                    "state": entry.state.value,
                }
                for joint, entry in self.joints.items()
            },
        }


def joint_from_payload(entry: dict) -> Joint:
    xyz = entry.get("xyz")
    if xyz is None or len(xyz) != 3:
        raise ValueError("joint xyz must contain [x, y, z]")
    state_name = str(entry.get("state", TrackingState.Tracked.value))
    try:
        state = TrackingState(state_name)
    except ValueError as exc:
        raise ValueError(f"unknown tracking state: {state_name}") from exc
    try:
        x, y, z = (to_decimal(v) for v in xyz)
    except InvalidOperation as exc:
        raise ValueError(f"joint xyz must be numeric: {xyz}") from exc
    if not all(v.is_finite() and abs(v) <= _MAX_COORDINATE for v in (x, y, z)):
        raise ValueError(f"joint xyz out of range: {xyz}")
    return Joint(x=x, y=y, z=z, state=state)


def sample_from_payload(payload: dict) -> JointSample:
    joints: Dict[JointType, Joint] = {}
    for name, entry in (payload.get("joints") or {}).items():
        try:
            joint = JointType(name)
        except ValueError as exc:
            raise ValueError(f"unknown joint: {name}") from exc
        joints[joint] = joint_from_payload(entry)
    timestamp = payload.get("timestamp")
    return JointSample(
        joints=joints,
        timestamp=float(timestamp) if timestamp is not None else time.time(),
        body_index=int(payload.get("body_index", 0)),
    )


def samples_from_payload(payload: dict) -> list[JointSample]:
    """Expand a single frame or a {"bodies": [...]} body set into samples."""
    if "bodies" in payload:
        return [sample_from_payload(body) for body in payload.get("bodies") or []]
    return [sample_from_payload(payload)]

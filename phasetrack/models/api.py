import math
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from phasetrack.core.constants import MAX_COORDINATE_ABS
from phasetrack.core.skeleton import JointSample, sample_from_payload


class SessionActionResponse(BaseModel):
    ok: bool
    message: str


class JointPayload(BaseModel):
    xyz: list[float]
    state: Literal["Tracked", "Inferred", "NotTracked"] = "Tracked"

    @field_validator("xyz")
    @classmethod
    def _validate_xyz(cls, value: list[float]) -> list[float]:
        if len(value) != 3:
            raise ValueError("xyz must contain [x, y, z]")
        if not all(math.isfinite(v) and abs(v) <= MAX_COORDINATE_ABS for v in value):
            raise ValueError(f"xyz out of range: {value}")
        return value


class SkeletonFramePayload(BaseModel):
    timestamp: Optional[float] = None
    body_index: int = 0
    joints: dict[str, JointPayload] = Field(default_factory=dict)


class BodySetPayload(BaseModel):
    bodies: list[SkeletonFramePayload] = Field(default_factory=list)


class FrameSubmitResponse(BaseModel):
    ok: bool
    accepted: int
    dropped: int


class ReplayRequest(BaseModel):
    path: str


def parse_frame_samples(data: dict) -> list[JointSample]:
    """Validate a single-body frame or a body set and convert it to samples.

    Raises ValueError (pydantic's ValidationError included) on malformed input.
    """
    if not isinstance(data, dict):
        raise ValueError("frame payload must be an object")
    if "bodies" in data:
        frames = BodySetPayload.model_validate(data).bodies
    else:
        frames = [SkeletonFramePayload.model_validate(data)]
    return [sample_from_payload(frame.model_dump()) for frame in frames]

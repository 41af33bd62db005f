from __future__ import annotations

import logging
from decimal import Decimal
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from phasetrack.core.constants import (
    DEFAULT_DECIMAL_PLACES,
    DEFAULT_FOOT_GROUND_THRESHOLD,
    DEFAULT_FOOT_RAISE_THRESHOLD,
    DEFAULT_KNEE_TOLERANCE,
)


class ServerConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8000
    token: str = "change-me"


class TrackerConfig(BaseModel):
    decimal_places: int = DEFAULT_DECIMAL_PLACES
    knee_tolerance: Decimal = Decimal(DEFAULT_KNEE_TOLERANCE)
    foot_raise_threshold: Decimal = Decimal(DEFAULT_FOOT_RAISE_THRESHOLD)
    foot_ground_threshold: Decimal = Decimal(DEFAULT_FOOT_GROUND_THRESHOLD)
    emit_on_next_frame: bool = False
    absolute_foot_baselines: bool = True

    @field_validator("knee_tolerance", "foot_raise_threshold", "foot_ground_threshold")
    @classmethod
    def _validate_threshold(cls, value: Decimal) -> Decimal:
        if value < 0:
            raise ValueError("thresholds must be non-negative")
        return value

    @field_validator("decimal_places")
    @classmethod
    def _validate_places(cls, value: int) -> int:
        if value < 0 or value > 10:
            raise ValueError("decimal_places must be within [0, 10]")
        return value


class RuntimeConfig(BaseModel):
    queue_size: int = 256
    poll_interval_s: float = 0.1
    not_tracked_hold_ms: int = 0
    heartbeat_timeout_s: float = 6.0


class TrackLogConfig(BaseModel):
    enabled: bool = True
    path: str = "data/TrackSkelton.txt"


class ExportConfig(BaseModel):
    json_path: str = "data/exports/transitions.json"
    csv_path: str = "data/exports/transitions.csv"


class OscConfig(BaseModel):
    enabled: bool = False
    host: str = "127.0.0.1"
    port: int = 9000
    address_prefix: str = "/gait"


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"

    @field_validator("level")
    @classmethod
    def _validate_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level: {value}")
        return level


class AppConfig(BaseModel):
    server: ServerConfig = Field(default_factory=ServerConfig)
    tracker: TrackerConfig = Field(default_factory=TrackerConfig)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)
    track_log: TrackLogConfig = Field(default_factory=TrackLogConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)
    osc: OscConfig = Field(default_factory=OscConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def track_log_path(self) -> Path:
        return Path(self.track_log.path)

    def maybe_masked_dump(self, mask_token: bool = True) -> dict:
        data = self.model_dump(mode="json")
        if mask_token:
            token = data["server"].get("token", "")
            if token:
                data["server"]["token"] = "*" * max(4, len(token))
        return data


class ConfigUpdate(BaseModel):
    server: Optional[ServerConfig] = None
    tracker: Optional[TrackerConfig] = None
    runtime: Optional[RuntimeConfig] = None
    track_log: Optional[TrackLogConfig] = None
    export: Optional[ExportConfig] = None
    osc: Optional[OscConfig] = None
    logging: Optional[LoggingConfig] = None

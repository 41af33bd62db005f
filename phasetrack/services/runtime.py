from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from phasetrack.core.capture import SourceHub
from phasetrack.core.events import EventBus
from phasetrack.core.osc import PhaseOscSink
from phasetrack.core.session import TrackingSession
from phasetrack.models.config import AppConfig, OscConfig
from phasetrack.services.config_store import ConfigStore
from phasetrack.services.export_manager import ExportManager
from phasetrack.services.track_log import TrackLogWriter

logger = logging.getLogger(__name__)


@dataclass
class RuntimeContext:
    config_store: ConfigStore
    source_hub: SourceHub
    session: TrackingSession
    event_bus: EventBus
    track_log: TrackLogWriter
    exporter: ExportManager
    osc_sink: Optional[PhaseOscSink]

    def apply_config(self, cfg: AppConfig) -> None:
        """Push a saved config into the live collaborators.

        Server host and port need a restart; the token is read per request.
        """
        self.source_hub.heartbeat_timeout_s = cfg.runtime.heartbeat_timeout_s
        if self.track_log.path != cfg.track_log_path():
            self.track_log.retarget(cfg.track_log_path())
        self.exporter.cfg = cfg.export
        previous = self.osc_sink
        self.osc_sink = self._rebuild_osc(cfg.osc)
        self.session.apply_config(cfg, osc_sink=self.osc_sink)
        if previous is not None and previous is not self.osc_sink:
            previous.close()
        logging.getLogger("phasetrack").setLevel(cfg.logging.level)

    def _rebuild_osc(self, osc_cfg: OscConfig) -> Optional[PhaseOscSink]:
        current = self.osc_sink
        if not osc_cfg.enabled:
            return None
        if current is not None and current.cfg == osc_cfg:
            return current
        logger.info(f"[runtime] OSC sink -> {osc_cfg.host}:{osc_cfg.port}")
        return PhaseOscSink(osc_cfg)


def build_runtime(config_path: Path) -> RuntimeContext:
    config_store = ConfigStore(config_path)
    cfg = config_store.config
    event_bus = EventBus()
    source_hub = SourceHub(cfg.runtime.heartbeat_timeout_s)
    track_log = TrackLogWriter(cfg.track_log_path())
    exporter = ExportManager(cfg.export)
    osc_sink = PhaseOscSink(cfg.osc) if cfg.osc.enabled else None
    session = TrackingSession(
        cfg,
        event_bus,
        track_log=track_log,
        exporter=exporter,
        osc_sink=osc_sink,
    )
    return RuntimeContext(
        config_store=config_store,
        source_hub=source_hub,
        session=session,
        event_bus=event_bus,
        track_log=track_log,
        exporter=exporter,
        osc_sink=osc_sink,
    )

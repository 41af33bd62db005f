from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from typing import Optional

from phasetrack.core.events import EventBus, PhaseStatusEvent
from phasetrack.core.joint_tracking import JointStateTracker
from phasetrack.core.osc import PhaseOscSink
from phasetrack.core.phase_tracker import PhaseTracker, TransitionEvent
from phasetrack.core.skeleton import JointSample
from phasetrack.models.config import AppConfig, TrackerConfig
from phasetrack.services.export_manager import ExportManager
from phasetrack.services.track_log import TrackLogWriter

logger = logging.getLogger(__name__)

_RESET = "reset"
_FRAME = "frame"


def build_phase_tracker(cfg: TrackerConfig) -> PhaseTracker:
    return PhaseTracker(
        decimal_places=cfg.decimal_places,
        knee_tolerance=cfg.knee_tolerance,
        foot_raise_threshold=cfg.foot_raise_threshold,
        foot_ground_threshold=cfg.foot_ground_threshold,
        emit_on_next_frame=cfg.emit_on_next_frame,
        absolute_foot_baselines=cfg.absolute_foot_baselines,
    )


@dataclass
class SessionState:
    running: bool = False
    message: str = "idle"
    frames_processed: int = 0
    dropped_frames: int = 0
    held_joints: int = 0
    sink_errors: int = 0
    failed_items: int = 0
    last_transition: Optional[str] = None
    last_timestamp: float = 0.0


class TrackingSession:
    """Owns the PhaseTracker and feeds it from a single worker thread.

    Frames and reset commands share one FIFO queue, so a reset requested
    between two frames is applied between those same two frames.
    """

    def __init__(
        self,
        cfg: AppConfig,
        event_bus: EventBus,
        track_log: Optional[TrackLogWriter] = None,
        exporter: Optional[ExportManager] = None,
        osc_sink: Optional[PhaseOscSink] = None,
    ):
        self.cfg = cfg
        self.event_bus = event_bus
        self.track_log = track_log
        self.exporter = exporter
        self.osc_sink = osc_sink
        self.tracker = build_phase_tracker(cfg.tracker)
        self.joint_tracker = JointStateTracker(cfg.runtime.not_tracked_hold_ms)
        self.state = SessionState()
        self._queue: queue.Queue = queue.Queue(maxsize=max(1, int(cfg.runtime.queue_size)))
        self._thread: Optional[threading.Thread] = None
        self._stop_evt = threading.Event()
        self._lock = threading.Lock()

    def apply_config(self, cfg: AppConfig, osc_sink: Optional[PhaseOscSink] = None) -> None:
        """Take new settings; tracker thresholds apply from the next reset."""
        self.cfg = cfg
        self.osc_sink = osc_sink
        self.joint_tracker.hold_ms = max(0, int(cfg.runtime.not_tracked_hold_ms))
        with self._queue.mutex:
            # Items already queued above a smaller bound are kept.
            self._queue.maxsize = max(1, int(cfg.runtime.queue_size))
            self._queue.not_full.notify_all()

    def start(self) -> dict:
        with self._lock:
            if self.state.running:
                return {"ok": True, "message": "already_running"}
            self._stop_evt.clear()
            self._thread = threading.Thread(target=self._run_loop, daemon=True)
            self.state.running = True
            self.state.message = "running"
            self._thread.start()
        logger.info("[session] worker started")
        return {"ok": True, "message": "started"}

    def stop(self, timeout: float = 3.0) -> dict:
        with self._lock:
            if not self.state.running:
                return {"ok": True, "message": "already_stopped"}
            self._stop_evt.set()
            thread = self._thread
        if thread is not None:
            thread.join(timeout=timeout)
            if thread.is_alive():
                # Still owns the tracker; a second worker must not start.
                logger.warning("[session] worker did not stop within timeout")
                return {"ok": False, "message": "stop_timeout"}
        with self._lock:
            self.state.running = False
            self.state.message = "stopped"
        logger.info("[session] worker stopped")
        return {"ok": True, "message": "stopped"}

    def start_tracking(self, run_worker: bool = True) -> dict:
        if run_worker:
            self.start()
        self._queue.put((_RESET, None))
        return {"ok": True, "message": "tracking_requested"}

    def submit_frame(self, sample: JointSample) -> bool:
        try:
            self._queue.put_nowait((_FRAME, sample))
        except queue.Full:
            self.state.dropped_frames += 1
            logger.warning("[session] frame queue full, dropping frame")
            return False
        return True

    def process_pending(self) -> int:
        handled = 0
        while True:
            try:
                command, payload = self._queue.get_nowait()
            except queue.Empty:
                return handled
            try:
                self._handle(command, payload)
            finally:
                self._queue.task_done()
            handled += 1

    def wait_idle(self) -> None:
        self._queue.join()

    def status(self) -> dict:
        snapshot = self.tracker.snapshot()
        return {
            "running": self.state.running,
            "message": self.state.message,
            "phase": snapshot["phase"],
            "baseline": snapshot["baseline"],
            "extrema": snapshot["extrema"],
            "transitions": snapshot["transitions"],
            "last_transition": self.state.last_transition,
            "frames_processed": self.state.frames_processed,
            "dropped_frames": self.state.dropped_frames,
            "held_joints": self.state.held_joints,
            "sink_errors": self.state.sink_errors,
            "failed_items": self.state.failed_items,
            "last_timestamp": self.state.last_timestamp,
            "queue_depth": self._queue.qsize(),
        }

    def transitions(self) -> list[dict]:
        if self.exporter is None:
            return []
        return list(self.exporter.transitions)

    def _run_loop(self) -> None:
        try:
            while not self._stop_evt.is_set():
                poll = max(0.01, float(self.cfg.runtime.poll_interval_s))
                try:
                    command, payload = self._queue.get(timeout=poll)
                except queue.Empty:
                    continue
                try:
                    self._handle(command, payload)
                except Exception as exc:  # noqa: BLE001
                    self.state.failed_items += 1
                    self.state.message = f"error: {exc}"
                    logger.exception(f"[session] failed to handle {command}")
                finally:
                    self._queue.task_done()
        finally:
            with self._lock:
                self.state.running = False

    def _handle(self, command: str, payload) -> None:
        if command == _RESET:
            self._reset()
        elif command == _FRAME:
            self._process(payload)

    def _reset(self) -> None:
        self.tracker = build_phase_tracker(self.cfg.tracker)
        self.tracker.reset()
        self.joint_tracker.reset()
        self.state.last_transition = None
        if self.exporter is not None:
            self.exporter.clear()
        if self.track_log is not None and self.cfg.track_log.enabled:
            try:
                self.track_log.truncate()
            except OSError:
                self.state.sink_errors += 1
                logger.exception("[session] failed to truncate track log")
        self._publish_status("tracking")

    def _process(self, sample: JointSample) -> None:
        if not self.tracker.active:
            return
        stable = self.joint_tracker.stabilize(sample)
        self.state.held_joints += self.joint_tracker.last_held_count
        events = self.tracker.process_frame(stable)
        self.state.frames_processed += 1
        self.state.last_timestamp = float(sample.timestamp)
        for event in events:
            self._dispatch(event)
        if events:
            self._publish_status("transition")

    def _dispatch(self, event: TransitionEvent) -> None:
        self.state.last_transition = event.phase
        if self.exporter is not None:
            self.exporter.append(event)
        if self.track_log is not None and self.cfg.track_log.enabled:
            try:
                self.track_log.append(event)
            except OSError:
                self.state.sink_errors += 1
                logger.exception(f"[session] failed to log transition {event.phase}")
        if self.osc_sink is not None:
            try:
                self.osc_sink.send_transition(event)
                self.osc_sink.send_phase(self.tracker.phase.value)
            except OSError:
                self.state.sink_errors += 1
                logger.exception(f"[session] failed to send transition {event.phase} over OSC")
        self.event_bus.publish("transition", event)

    def _publish_status(self, message: str) -> None:
        snapshot = self.tracker.snapshot()
        self.event_bus.publish(
            "phase",
            PhaseStatusEvent(
                phase=snapshot["phase"],
                frames_processed=self.state.frames_processed,
                transitions=snapshot["transitions"],
                message=message,
            ),
        )

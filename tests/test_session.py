import tempfile
import threading
import unittest
from decimal import Decimal
from pathlib import Path

from phasetrack.core.constants import LOGGED_JOINTS
from phasetrack.core.events import EventBus
from phasetrack.core.skeleton import Joint, JointSample, JointType, TrackingState, to_decimal
from phasetrack.core.session import TrackingSession
from phasetrack.models.config import AppConfig, ExportConfig, RuntimeConfig, TrackLogConfig
from phasetrack.services.export_manager import ExportManager
from phasetrack.services.track_log import TrackLogWriter


def _frame(knee_x=0.5, right_foot_y=-0.9, timestamp=0.0, knee_state=TrackingState.Tracked):
    joints = {JointType(name): Joint(Decimal("0"), Decimal("0"), Decimal("2")) for name in LOGGED_JOINTS}
    joints[JointType.KneeLeft] = Joint(to_decimal(knee_x), Decimal("-0.4"), Decimal("2"), knee_state)
    joints[JointType.WristRight] = Joint(Decimal("0.3"), Decimal("0.1"), Decimal("2"))
    joints[JointType.FootLeft] = Joint(Decimal("0.2"), Decimal("-0.9"), Decimal("2"))
    joints[JointType.FootRight] = Joint(Decimal("0.1"), to_decimal(right_foot_y), Decimal("2"))
    joints[JointType.AnkleRight] = Joint(Decimal("0.1"), Decimal("-0.8"), Decimal("2"))
    return JointSample(joints=joints, timestamp=timestamp)


class FailingWriter(TrackLogWriter):
    def append(self, event):
        raise OSError("disk full")


class FailOnceExporter(ExportManager):
    def __init__(self, cfg):
        super().__init__(cfg)
        self.failed = False

    def append(self, event):
        if not self.failed:
            self.failed = True
            raise RuntimeError("exporter failure")
        super().append(event)


class BlockingExporter(ExportManager):
    def __init__(self, cfg):
        super().__init__(cfg)
        self.entered = threading.Event()
        self.release = threading.Event()

    def append(self, event):
        self.entered.set()
        self.release.wait(5.0)
        super().append(event)


class TrackingSessionTests(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        root = Path(self.tmp.name)
        self.cfg = AppConfig(
            track_log=TrackLogConfig(path=str(root / "TrackSkelton.txt")),
            export=ExportConfig(
                json_path=str(root / "t.json"),
                csv_path=str(root / "t.csv"),
            ),
        )
        self.bus = EventBus()
        self.transitions = []
        self.bus.subscribe("transition", self.transitions.append)
        self.track_log = TrackLogWriter(self.cfg.track_log.path)
        self.session = TrackingSession(
            self.cfg,
            self.bus,
            track_log=self.track_log,
            exporter=ExportManager(self.cfg.export),
        )

    def tearDown(self):
        self.session.stop()
        self.tmp.cleanup()

    def test_frames_before_start_are_ignored(self):
        self.session.submit_frame(_frame())
        self.session.process_pending()
        self.assertEqual(self.session.status()["phase"], "idle")
        self.assertEqual(self.transitions, [])

    def test_reset_then_frames_log_transitions(self):
        self.session.start_tracking(run_worker=False)
        self.session.submit_frame(_frame(knee_x=0.5))
        self.session.submit_frame(_frame(knee_x=0.2))
        self.assertEqual(self.session.process_pending(), 3)

        status = self.session.status()
        self.assertEqual(status["phase"], "f0-end")
        self.assertEqual(status["last_transition"], "f0")
        self.assertEqual(status["frames_processed"], 2)
        self.assertEqual(status["baseline"]["start_left_knee_x"], "0.5000")
        self.assertEqual([e.phase for e in self.transitions], ["start", "f0"])
        self.assertEqual(len(self.track_log.read_lines()), 2)
        self.assertEqual([t["phase"] for t in self.session.transitions()], ["start", "f0"])

    def test_reset_clears_log_and_history_in_queue_order(self):
        self.session.start_tracking(run_worker=False)
        self.session.submit_frame(_frame())
        self.session.start_tracking(run_worker=False)
        self.session.process_pending()
        status = self.session.status()
        self.assertEqual(status["phase"], "start")
        self.assertIsNone(status["baseline"])
        self.assertIsNone(status["extrema"])
        self.assertEqual(self.track_log.read_lines(), [])
        self.assertEqual(self.session.transitions(), [])

    def test_sink_failure_does_not_corrupt_state(self):
        session = TrackingSession(
            self.cfg,
            self.bus,
            track_log=FailingWriter(self.cfg.track_log.path),
            exporter=ExportManager(self.cfg.export),
        )
        session.start_tracking(run_worker=False)
        session.submit_frame(_frame(knee_x=0.5))
        session.submit_frame(_frame(knee_x=0.2))
        session.process_pending()
        status = session.status()
        self.assertEqual(status["phase"], "f0-end")
        self.assertEqual(status["sink_errors"], 2)
        self.assertEqual(status["baseline"]["start_left_knee_x"], "0.5000")

    def test_full_queue_drops_frames(self):
        cfg = self.cfg.model_copy(update={"runtime": RuntimeConfig(queue_size=2)})
        session = TrackingSession(cfg, self.bus)
        self.assertTrue(session.submit_frame(_frame()))
        self.assertTrue(session.submit_frame(_frame()))
        self.assertFalse(session.submit_frame(_frame()))
        self.assertEqual(session.status()["dropped_frames"], 1)

    def test_hold_policy_substitutes_not_tracked_knee(self):
        cfg = self.cfg.model_copy(update={"runtime": RuntimeConfig(not_tracked_hold_ms=500)})
        session = TrackingSession(cfg, self.bus)
        session.start_tracking(run_worker=False)
        session.submit_frame(_frame(knee_x=0.5, timestamp=1.0))
        session.submit_frame(_frame(knee_x=0.0, timestamp=1.1, knee_state=TrackingState.NotTracked))
        session.process_pending()
        status = session.status()
        self.assertEqual(status["phase"], "start-end")
        self.assertEqual(status["held_joints"], 1)

    def test_worker_thread_processes_queue(self):
        phases = []
        self.bus.subscribe("phase", lambda event: phases.append(event.phase))
        self.session.start_tracking()
        self.session.submit_frame(_frame(knee_x=0.5))
        self.session.submit_frame(_frame(knee_x=0.2))
        self.session.wait_idle()
        self.assertTrue(self.session.status()["running"])
        self.assertEqual(self.session.status()["phase"], "f0-end")
        self.assertEqual(phases[0], "start")
        stop = self.session.stop()
        self.assertEqual(stop["message"], "stopped")
        self.assertEqual(self.session.stop()["message"], "already_stopped")

    def test_oversized_coordinate_does_not_stop_worker(self):
        self.session.start_tracking()
        self.session.submit_frame(_frame(knee_x=1e30))
        self.session.submit_frame(_frame(knee_x=0.5))
        self.session.submit_frame(_frame(knee_x=0.2))
        self.session.wait_idle()
        status = self.session.status()
        self.assertTrue(status["running"])
        self.assertEqual(status["phase"], "f0-end")
        self.assertEqual(status["queue_depth"], 0)
        self.assertEqual([e.phase for e in self.transitions], ["start", "f0"])

    def test_worker_keeps_running_after_handler_error(self):
        session = TrackingSession(self.cfg, self.bus, exporter=FailOnceExporter(self.cfg.export))
        session.start_tracking()
        session.submit_frame(_frame(knee_x=0.5))
        session.submit_frame(_frame(knee_x=0.2))
        session.wait_idle()
        status = session.status()
        self.assertTrue(status["running"])
        self.assertEqual(status["failed_items"], 1)
        self.assertEqual(status["phase"], "f0-end")
        self.assertEqual([t["phase"] for t in session.transitions()], ["f0"])
        session.stop()

    def test_stop_timeout_keeps_single_worker(self):
        exporter = BlockingExporter(self.cfg.export)
        session = TrackingSession(self.cfg, self.bus, exporter=exporter)
        session.start_tracking()
        session.submit_frame(_frame())
        self.assertTrue(exporter.entered.wait(2.0))

        result = session.stop(timeout=0.05)
        self.assertFalse(result["ok"])
        self.assertEqual(result["message"], "stop_timeout")
        self.assertTrue(session.status()["running"])
        self.assertEqual(session.start()["message"], "already_running")

        exporter.release.set()
        self.assertIn(session.stop(timeout=2.0)["message"], ("stopped", "already_stopped"))
        self.assertFalse(session.status()["running"])

    def test_apply_config_resizes_queue(self):
        session = TrackingSession(self.cfg, self.bus)
        session.apply_config(self.cfg.model_copy(update={"runtime": RuntimeConfig(queue_size=1)}))
        self.assertTrue(session.submit_frame(_frame()))
        self.assertFalse(session.submit_frame(_frame()))
        session.apply_config(self.cfg.model_copy(update={"runtime": RuntimeConfig(queue_size=3)}))
        self.assertTrue(session.submit_frame(_frame()))

    def test_failing_subscriber_does_not_stop_delivery(self):
        def boom(_event):
            raise RuntimeError("subscriber failure")

        bus = EventBus()
        received = []
        bus.subscribe("transition", boom)
        bus.subscribe("transition", received.append)
        session = TrackingSession(self.cfg, bus)
        session.start_tracking(run_worker=False)
        session.submit_frame(_frame())
        session.process_pending()
        self.assertEqual([e.phase for e in received], ["start"])


if __name__ == "__main__":
    unittest.main()

import unittest
from decimal import Decimal

from phasetrack.core.joint_tracking import JointStateTracker
from phasetrack.core.skeleton import Joint, JointSample, JointType, TrackingState


def _sample(x, state=TrackingState.Tracked, timestamp=10.0, body_index=0):
    return JointSample(
        joints={JointType.KneeLeft: Joint(Decimal(str(x)), Decimal("0"), Decimal("2"), state)},
        timestamp=timestamp,
        body_index=body_index,
    )


class JointTrackingTests(unittest.TestCase):
    def test_disabled_policy_passes_samples_through(self):
        tracker = JointStateTracker(hold_ms=0)
        sample = _sample(0.1, state=TrackingState.NotTracked)
        self.assertIs(tracker.stabilize(sample), sample)
        self.assertEqual(tracker.last_held_count, 0)

    def test_not_tracked_joint_held_within_window(self):
        tracker = JointStateTracker(hold_ms=250)
        tracker.stabilize(_sample(0.5, timestamp=10.0))
        out = tracker.stabilize(_sample(0.0, state=TrackingState.NotTracked, timestamp=10.2))
        joint = out.get(JointType.KneeLeft)
        self.assertEqual(joint.x, Decimal("0.5"))
        self.assertEqual(joint.state, TrackingState.NotTracked)
        self.assertEqual(tracker.last_held_count, 1)

    def test_not_tracked_joint_released_after_window(self):
        tracker = JointStateTracker(hold_ms=250)
        tracker.stabilize(_sample(0.5, timestamp=10.0))
        out = tracker.stabilize(_sample(0.0, state=TrackingState.NotTracked, timestamp=10.3))
        self.assertEqual(out.get(JointType.KneeLeft).x, Decimal("0.0"))
        self.assertEqual(tracker.last_held_count, 0)

    def test_inferred_joint_refreshes_cache(self):
        tracker = JointStateTracker(hold_ms=500)
        tracker.stabilize(_sample(0.5, timestamp=10.0))
        tracker.stabilize(_sample(0.6, state=TrackingState.Inferred, timestamp=10.1))
        out = tracker.stabilize(_sample(0.0, state=TrackingState.NotTracked, timestamp=10.2))
        self.assertEqual(out.get(JointType.KneeLeft).x, Decimal("0.6"))

    def test_cache_is_per_body(self):
        tracker = JointStateTracker(hold_ms=500)
        tracker.stabilize(_sample(0.5, timestamp=10.0, body_index=1))
        out = tracker.stabilize(
            _sample(0.0, state=TrackingState.NotTracked, timestamp=10.1, body_index=2)
        )
        self.assertEqual(out.get(JointType.KneeLeft).x, Decimal("0.0"))

    def test_reset_clears_cache(self):
        tracker = JointStateTracker(hold_ms=500)
        tracker.stabilize(_sample(0.5, timestamp=10.0))
        tracker.reset()
        out = tracker.stabilize(_sample(0.0, state=TrackingState.NotTracked, timestamp=10.1))
        self.assertEqual(out.get(JointType.KneeLeft).x, Decimal("0.0"))


if __name__ == "__main__":
    unittest.main()

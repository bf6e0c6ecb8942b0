import pytest

from conftest import make_candidate
from motionlabel.config import DetectionConfig
from motionlabel.models import DetectionState
from motionlabel.tracker import (
    DETECTED_CONFIDENCE,
    PREDICTED_CONFIDENCE,
    MotionConsistencyTracker,
    TrackingPhase,
)


def test_no_candidate_without_position_emits_nothing():
    t = MotionConsistencyTracker()
    assert t.step(None) is None
    assert t.miss_count == 0
    assert not t.has_position
    assert t.phase is TrackingPhase.UNINITIALIZED


def test_first_candidate_is_accepted_as_detected():
    t = MotionConsistencyTracker()
    out = t.step(make_candidate(100, 50))
    assert out.state is DetectionState.DETECTED
    assert out.confidence == DETECTED_CONFIDENCE
    assert out.center == (100.0, 50.0)
    assert t.has_position
    assert t.velocity == (0.0, 0.0)
    assert t.phase is TrackingPhase.TRACKING


def test_first_candidate_accepted_regardless_of_distance():
    t = MotionConsistencyTracker(max_jump_distance=1.0)
    assert t.step(make_candidate(1000, 1000)).state is DetectionState.DETECTED


def test_velocity_is_exponentially_smoothed():
    t = MotionConsistencyTracker(smooth_alpha=0.5)
    t.step(make_candidate(100, 50))
    t.step(make_candidate(110, 50))
    assert t.velocity == pytest.approx((5.0, 0.0))
    t.step(make_candidate(120, 54))
    assert t.velocity == pytest.approx((7.5, 2.0))


def test_jump_too_large_is_rejected_and_predicted():
    t = MotionConsistencyTracker(max_jump_distance=50)
    t.step(make_candidate(100, 100))
    t.step(make_candidate(110, 100))  # velocity (5, 0)
    out = t.step(make_candidate(300, 100))
    assert out.state is DetectionState.PREDICTED
    assert out.confidence == PREDICTED_CONFIDENCE
    assert out.center == pytest.approx((115.0, 100.0))
    assert t.miss_count == 1


def test_jump_exactly_at_limit_is_rejected():
    t = MotionConsistencyTracker(max_jump_distance=30)
    t.step(make_candidate(100, 100))
    out = t.step(make_candidate(130, 100))
    assert out.state is DetectionState.PREDICTED


def test_prediction_moves_box_with_position():
    t = MotionConsistencyTracker()
    t.step(make_candidate(100, 100, w=20, h=10))
    t.step(make_candidate(110, 100, w=20, h=10))
    out = t.step(None)
    x, y, w, h = out.bbox
    assert (w, h) == (20.0, 10.0)
    assert (x + w / 2, y + h / 2) == pytest.approx(out.center)
    assert out.center == pytest.approx((115.0, 100.0))


def test_accept_resets_miss_count():
    t = MotionConsistencyTracker()
    t.step(make_candidate(100, 100))
    t.step(None)
    t.step(None)
    assert t.miss_count == 2
    out = t.step(make_candidate(102, 100))
    assert out.state is DetectionState.DETECTED
    assert t.miss_count == 0


def test_reset_after_max_misses():
    t = MotionConsistencyTracker(max_misses=2)
    assert t.step(make_candidate(100, 100)).state is DetectionState.DETECTED
    assert t.step(None).state is DetectionState.PREDICTED
    assert t.step(None).state is DetectionState.PREDICTED
    assert t.step(None) is None  # third miss exceeds the limit
    assert not t.has_position
    assert t.miss_count == 0
    assert t.phase is TrackingPhase.LOST
    assert t.resets == 1
    assert t.step(None) is None
    assert t.step(None) is None


def test_rejected_candidates_count_towards_reset():
    t = MotionConsistencyTracker(max_jump_distance=10, max_misses=1)
    t.step(make_candidate(100, 100))
    assert t.step(make_candidate(500, 500)).state is DetectionState.PREDICTED
    assert t.step(make_candidate(500, 500)) is None
    assert t.phase is TrackingPhase.LOST


def test_reacquisition_uses_no_stale_state():
    t = MotionConsistencyTracker(max_misses=0)
    t.step(make_candidate(100, 100))
    t.step(make_candidate(130, 100))
    assert t.velocity != (0.0, 0.0)
    assert t.step(None) is None
    out = t.step(make_candidate(400, 300))
    assert out.state is DetectionState.DETECTED
    assert out.confidence == DETECTED_CONFIDENCE
    assert t.velocity == (0.0, 0.0)
    assert t.last_position == (400.0, 300.0)
    assert t.phase is TrackingPhase.TRACKING


def test_miss_count_never_exceeds_limit():
    t = MotionConsistencyTracker(max_misses=3)
    script = [make_candidate(100, 100)] + [None] * 10 + [make_candidate(50, 50)] + [None] * 6
    for c in script:
        t.step(c)
        assert 0 <= t.miss_count <= t.max_misses


def test_manual_reset_returns_to_uninitialized():
    t = MotionConsistencyTracker()
    t.step(make_candidate(100, 100))
    t.reset()
    assert t.phase is TrackingPhase.UNINITIALIZED
    assert t.last_bbox is None


def test_identical_input_gives_identical_output():
    script = [make_candidate(100 + 5 * i, 80) for i in range(5)] + [None, make_candidate(300, 80), None]

    def run():
        t = MotionConsistencyTracker()
        return [t.step(c) for c in script]

    assert run() == run()


def test_from_config():
    cfg = DetectionConfig(max_jump_distance=42.0, max_misses=3, smooth_alpha=0.25)
    t = MotionConsistencyTracker.from_config(cfg)
    assert (t.max_jump_distance, t.max_misses, t.smooth_alpha) == (42.0, 3, 0.25)

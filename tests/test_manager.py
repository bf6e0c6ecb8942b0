import threading

import numpy as np
import pytest

from conftest import ScriptedDetector, make_candidate
from motionlabel.config import DetectionConfig
from motionlabel.errors import (
    DetectionCancelled,
    FrameUnavailableError,
    InvalidConfigurationError,
    NoObjectsDetected,
)
from motionlabel.frames import ArrayFrameSource
from motionlabel.manager import MotionDetectionManager, resolve_frames
from motionlabel.models import DetectionState, ProgressEvent, RunStatus

WIDTH, HEIGHT = 320, 240


def _manager(script, config=None):
    detector = ScriptedDetector(script)
    return MotionDetectionManager(config or DetectionConfig(), detector_factory=lambda cfg: detector), detector


def _source(blank_frames, n):
    return ArrayFrameSource(blank_frames(n, WIDTH, HEIGHT), frame_rate=30.0)


def _center_x(box):
    x, _, w, _ = box.rect_in(WIDTH, HEIGHT)
    return x + w / 2


# -----------------------------
# Frame ranges
# -----------------------------
def test_resolve_frames_inclusive_tuple():
    assert resolve_frames((3, 6)) == [3, 4, 5, 6]
    assert resolve_frames((4, 4)) == [4]


def test_resolve_frames_backward_range():
    assert resolve_frames(range(5, 1, -1)) == [5, 4, 3, 2]


@pytest.mark.parametrize("bad", [(5, 2), (-1, 3), range(0), "ab"])
def test_resolve_frames_rejects_bad_ranges(bad):
    with pytest.raises(InvalidConfigurationError):
        resolve_frames(bad)


# -----------------------------
# Runs
# -----------------------------
def test_blob_with_one_missed_frame(blank_frames):
    script = [make_candidate(100 + 5 * i, 120) for i in range(5)]
    script.append(None)
    script += [make_candidate(100 + 5 * i, 120) for i in range(6, 10)]
    manager, _ = _manager(script, DetectionConfig(min_area=100))

    result = manager.auto_detect(_source(blank_frames, 10), (0, 9))

    assert result.status is RunStatus.COMPLETED
    obj = result.detected_object
    assert obj.frames() == list(range(10))
    xs = [_center_x(obj.box_at(f)) for f in range(5)]
    assert xs == sorted(xs) and xs[0] == pytest.approx(100)
    for f in range(5):
        assert obj.state_at(f) is DetectionState.DETECTED
        assert obj.confidence[f] == pytest.approx(0.9)
    assert obj.state_at(5) is DetectionState.PREDICTED
    assert obj.confidence[5] == pytest.approx(0.5)
    assert _center_x(obj.box_at(5)) == pytest.approx(120 + 4.6875)
    for f in range(6, 10):
        assert obj.state_at(f) is DetectionState.DETECTED


def test_reset_scenario_with_max_misses_two(blank_frames):
    script = [make_candidate(100, 100)] + [None] * 5
    manager, _ = _manager(script, DetectionConfig(max_misses=2))

    obj = manager.auto_detect(_source(blank_frames, 6), (0, 5)).detected_object

    assert obj.frames() == [0, 1, 2]
    assert obj.state_at(0) is DetectionState.DETECTED
    assert obj.state_at(1) is DetectionState.PREDICTED
    assert obj.state_at(2) is DetectionState.PREDICTED


def test_boxes_are_normalized(blank_frames):
    manager, _ = _manager([make_candidate(160, 120, w=32, h=24)])
    obj = manager.auto_detect(_source(blank_frames, 1), (0, 0)).detected_object
    box = obj.box_at(0)
    assert box.x == pytest.approx(144 / WIDTH)
    assert box.y == pytest.approx(108 / HEIGHT)
    assert box.width == pytest.approx(0.1)
    assert box.height == pytest.approx(0.1)


def test_no_output_gives_no_objects(blank_frames):
    manager, _ = _manager([None] * 4)
    result = manager.auto_detect(_source(blank_frames, 4), (0, 3))
    assert result.status is RunStatus.NO_OBJECTS
    assert result.objects == []
    assert result.frames_processed == 4


def test_progress_reported_after_every_frame(blank_frames):
    manager, _ = _manager([None, make_candidate(50, 50), None])
    calls = []
    manager.auto_detect(_source(blank_frames, 5), (2, 4), progress_callback=lambda *a: calls.append(a))
    assert calls == [(1, 3, 2), (2, 3, 3), (3, 3, 4)]


def test_failing_progress_callback_does_not_stop_run(blank_frames):
    manager, _ = _manager([make_candidate(50, 50)] * 3)

    def boom(*_):
        raise RuntimeError("ui gone")

    result = manager.auto_detect(_source(blank_frames, 3), (0, 2), progress_callback=boom)
    assert result.status is RunStatus.COMPLETED
    assert len(result.detected_object) == 3


def test_iter_detect_yields_events_and_returns_result(blank_frames):
    manager, _ = _manager([make_candidate(50, 50)] * 2)
    run = manager.iter_detect(_source(blank_frames, 2), (0, 1))
    assert next(run) == ProgressEvent(current=1, total=2, frame_number=0)
    assert next(run) == ProgressEvent(current=2, total=2, frame_number=1)
    with pytest.raises(StopIteration) as stop:
        next(run)
    assert stop.value.value.status is RunStatus.COMPLETED


def test_cancel_during_run_discards_results(blank_frames):
    manager, detector = _manager([make_candidate(50, 50)] * 10)

    def cancel_at_third(current, total, frame_number):
        if current == 3:
            manager.cancel()

    result = manager.auto_detect(_source(blank_frames, 10), (0, 9), progress_callback=cancel_at_third)
    assert result.status is RunStatus.CANCELLED
    assert result.cancelled
    assert result.detected_object is None
    assert result.frames_processed == 3
    assert detector.calls == 3


def test_external_cancel_event(blank_frames):
    manager, detector = _manager([make_candidate(50, 50)] * 3)
    event = threading.Event()
    event.set()
    result = manager.auto_detect(_source(blank_frames, 3), (0, 2), cancel_event=event)
    assert result.status is RunStatus.CANCELLED
    assert detector.calls == 0


def test_new_run_clears_previous_cancel(blank_frames):
    manager, _ = _manager([make_candidate(50, 50)] * 2)
    manager.cancel()
    result = manager.auto_detect(_source(blank_frames, 2), (0, 1))
    assert result.status is RunStatus.COMPLETED


def test_each_run_gets_fresh_detector(blank_frames):
    created = []

    def factory(cfg):
        det = ScriptedDetector([make_candidate(50, 50)])
        created.append(det)
        return det

    manager = MotionDetectionManager(detector_factory=factory)
    manager.auto_detect(_source(blank_frames, 1), (0, 0))
    manager.auto_detect(_source(blank_frames, 1), (0, 0))
    assert len(created) == 2
    assert created[0] is not created[1]


def test_missing_frame_aborts_run(blank_frames):
    manager, _ = _manager([make_candidate(50, 50)] * 5)
    with pytest.raises(FrameUnavailableError) as exc:
        manager.auto_detect(_source(blank_frames, 3), (0, 4))
    assert exc.value.frame_number == 3


def test_invalid_config_rejected_before_reading_frames(blank_frames):
    manager, detector = _manager([make_candidate(50, 50)], DetectionConfig(min_area=0))
    with pytest.raises(InvalidConfigurationError):
        manager.auto_detect(_source(blank_frames, 1), (0, 0))
    assert detector.calls == 0


@pytest.mark.parametrize("kwargs", [{"frame_rate": 0}, {"video_size": (0, 240)}])
def test_invalid_run_parameters(blank_frames, kwargs):
    manager, _ = _manager([make_candidate(50, 50)])
    with pytest.raises(InvalidConfigurationError):
        manager.auto_detect(_source(blank_frames, 1), (0, 0), **kwargs)


def test_raising_api(blank_frames):
    manager, _ = _manager([None])
    with pytest.raises(NoObjectsDetected):
        manager.auto_detect_or_raise(_source(blank_frames, 1), (0, 0))

    manager, _ = _manager([make_candidate(50, 50)])
    obj = manager.auto_detect_or_raise(_source(blank_frames, 1), (0, 0))
    assert obj.frames() == [0]

    manager, _ = _manager([make_candidate(50, 50)])
    event = threading.Event()
    event.set()
    with pytest.raises(DetectionCancelled):
        manager.auto_detect_or_raise(_source(blank_frames, 1), (0, 0), cancel_event=event)


def test_real_detector_end_to_end():
    frames = []
    for i in range(40):
        frame = np.full((HEIGHT, WIDTH, 3), 50, dtype=np.uint8)
        if i >= 25:
            x = 20 + 8 * (i - 25)
            frame[100:140, x:x + 40] = 220
        frames.append(frame)
    source = ArrayFrameSource(frames)

    result = MotionDetectionManager(DetectionConfig()).auto_detect(source, (0, 39))

    assert result.status is RunStatus.COMPLETED
    obj = result.detected_object
    assert all(obj.state_at(f) is DetectionState.DETECTED for f in range(25, 40))
    last = obj.box_at(39)
    assert _center_x(last) == pytest.approx(20 + 8 * 14 + 20, abs=4)


def test_predicted_boxes_stay_inside_frame_when_object_leaves(blank_frames):
    # +20 px/frame towards the right edge, then the object is gone
    script = [make_candidate(250 + 20 * i, 120) for i in range(4)] + [None] * 8
    manager, _ = _manager(script)

    obj = manager.auto_detect(_source(blank_frames, 12), (0, 11)).detected_object

    for f in obj.frames():
        box = obj.box_at(f)
        assert 0.0 <= box.x and 0.0 <= box.y
        assert box.x + box.width <= 1.0 + 1e-9
        assert box.y + box.height <= 1.0 + 1e-9
        assert box.width > 0 and box.height > 0
    assert obj.state_at(4) is DetectionState.PREDICTED
    assert obj.box_at(4).x + obj.box_at(4).width == pytest.approx(1.0)
    assert obj.box_at(4).width < 20 / WIDTH
    # fully off-screen predictions produce no record
    assert all(f not in obj.annotations for f in range(5, 12))


def test_predicted_boxes_clipped_on_left_and_top(blank_frames):
    script = [make_candidate(60 - 20 * i, 60 - 20 * i) for i in range(3)] + [None] * 3
    manager, _ = _manager(script)

    obj = manager.auto_detect(_source(blank_frames, 6), (0, 5)).detected_object

    assert obj.frames()
    for f in obj.frames():
        box = obj.box_at(f)
        assert box.x >= 0.0 and box.y >= 0.0

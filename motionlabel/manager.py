"""
Auto-detection run driver.

A run walks a closed range of frame numbers in order, pushes every frame
through a fresh background-subtraction detector and motion-consistency
tracker, and packages the tracker output into one DetectedObject with
normalized boxes.
"""
from __future__ import annotations
from typing import Any, Callable, Generator, List, Optional, Tuple, Union
import logging
import threading

from .config import DetectionConfig
from .detector import BackgroundSubtractionDetector
from .errors import DetectionCancelled, FrameUnavailableError, InvalidConfigurationError, NoObjectsDetected
from .frames import FrameSource, frame_timestamp
from .geometry import clip_bbox, normalize_bbox
from .models import DetectedObject, DetectionResult, ProgressEvent, RunResult, RunStatus
from .tracker import MotionConsistencyTracker

logger = logging.getLogger(__name__)

FrameRange = Union[Tuple[int, int], range]
ProgressCallback = Callable[[int, int, int], None]  # (current, total, frame_number)
DetectorFactory = Callable[[DetectionConfig], Any]


def resolve_frames(frame_range: FrameRange) -> List[int]:
    """
    Expand a frame range into the ordered list of frame numbers to process.
    A (start, end) tuple is inclusive on both ends; a range object is used as-is,
    so range(50, 9, -1) describes a backward run.
    """
    if isinstance(frame_range, range):
        frames = list(frame_range)
    else:
        try:
            start, end = (int(v) for v in frame_range)
        except (TypeError, ValueError) as e:
            raise InvalidConfigurationError(f"Frame range must be (start, end), got {frame_range!r}") from e
        if start > end:
            raise InvalidConfigurationError(f"Frame range start {start} is after end {end}")
        frames = list(range(start, end + 1))
    if not frames:
        raise InvalidConfigurationError("Frame range is empty")
    if min(frames) < 0:
        raise InvalidConfigurationError(f"Frame numbers must be >= 0, got {min(frames)}")
    return frames


class MotionDetectionManager:
    """
    Runs motion auto-detection over a frame range.
    API:
      auto_detect(source, frame_range, ...) -> RunResult
      iter_detect(source, frame_range, ...) -> generator of ProgressEvent, returns RunResult
      cancel() -> None
    Detector and tracker state belong to a single run and are never reused.
    """
    def __init__(self, config: Optional[DetectionConfig] = None, detector_factory: Optional[DetectorFactory] = None):
        self.config = config or DetectionConfig()
        self.detector_factory: DetectorFactory = detector_factory or BackgroundSubtractionDetector
        self._cancel = threading.Event()

    def cancel(self) -> None:
        """Request cancellation; honoured at the next frame boundary."""
        self._cancel.set()

    def _cancel_requested(self, cancel_event: Optional[threading.Event]) -> bool:
        return self._cancel.is_set() or (cancel_event is not None and cancel_event.is_set())

    # --------------- RUN -----------------
    def iter_detect(
        self,
        source: FrameSource,
        frame_range: FrameRange,
        frame_rate: Optional[float] = None,
        video_size: Optional[Tuple[int, int]] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Generator[ProgressEvent, None, RunResult]:
        """
        Process the range lazily, yielding a ProgressEvent after every frame.
        The RunResult is the generator's return value (StopIteration.value).
        Configuration and range are validated before the first frame is read.
        """
        config = self.config.validate()
        frames = resolve_frames(frame_range)
        fps = float(frame_rate if frame_rate is not None else source.frame_rate)
        if fps <= 0:
            raise InvalidConfigurationError(f"Frame rate must be positive, got {fps}")
        video_w, video_h = video_size if video_size is not None else source.size
        if video_w <= 0 or video_h <= 0:
            raise InvalidConfigurationError(f"Video size must be positive, got {video_w}x{video_h}")

        self._cancel.clear()
        detector = self.detector_factory(config)
        tracker = MotionConsistencyTracker.from_config(config)
        results: List[DetectionResult] = []
        total = len(frames)
        logger.info("Auto-detect over %d frames (%d..%d) at %.3f fps", total, frames[0], frames[-1], fps)

        for index, frame_number in enumerate(frames):
            if self._cancel_requested(cancel_event):
                logger.info("Auto-detect cancelled before frame %d (%d/%d)", frame_number, index, total)
                return RunResult(status=RunStatus.CANCELLED, frames_processed=index)

            frame = source.get_frame(frame_number)
            if frame is None:
                raise FrameUnavailableError(frame_number, f"t={frame_timestamp(frame_number, fps):.3f}s")

            output = tracker.step(detector.detect(frame))
            # Predictions may drift past the frame edge; keep only the visible part
            visible = clip_bbox(output.bbox, video_w, video_h) if output is not None else None
            if output is not None and visible is None:
                logger.debug("Frame %d: predicted box left the frame, no record", frame_number)
            if visible is not None:
                results.append(
                    DetectionResult(
                        frame_number=frame_number,
                        bounding_box=normalize_bbox(visible, video_w, video_h),
                        confidence=output.confidence,
                        state=output.state,
                    )
                )
            yield ProgressEvent(current=index + 1, total=total, frame_number=frame_number)

        if not results:
            logger.info("Auto-detect finished: no objects detected")
            return RunResult(status=RunStatus.NO_OBJECTS, frames_processed=total)

        obj = DetectedObject.from_results(results)
        logger.info("Auto-detect finished: %d annotated frames, %d tracker resets", len(obj), tracker.resets)
        return RunResult(status=RunStatus.COMPLETED, detected_object=obj, frames_processed=total)

    def auto_detect(
        self,
        source: FrameSource,
        frame_range: FrameRange,
        frame_rate: Optional[float] = None,
        video_size: Optional[Tuple[int, int]] = None,
        progress_callback: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> RunResult:
        """Run to completion, reporting progress through an optional callback."""
        run = self.iter_detect(source, frame_range, frame_rate, video_size, cancel_event)
        while True:
            try:
                event = next(run)
            except StopIteration as stop:
                return stop.value
            if progress_callback is not None:
                _notify(progress_callback, event)

    def auto_detect_or_raise(self, *args, **kwargs) -> DetectedObject:
        """Like auto_detect() but raises DetectionCancelled / NoObjectsDetected."""
        result = self.auto_detect(*args, **kwargs)
        if result.status is RunStatus.CANCELLED:
            raise DetectionCancelled("Detection cancelled")
        if result.status is RunStatus.NO_OBJECTS:
            raise NoObjectsDetected("No objects detected in the selected range")
        return result.detected_object


def _notify(callback: ProgressCallback, event: ProgressEvent) -> None:
    # Progress is advisory: a failing sink must not stop the run
    try:
        callback(event.current, event.total, event.frame_number)
    except Exception:
        logger.warning("Progress callback failed at frame %d", event.frame_number, exc_info=True)

"""
Data structures shared by the detector, the tracker and the run driver.

Pixel-space values (candidates, tracker output) use (x, y, w, h) tuples with
top-left origin. Results handed back to callers use normalized BoundingBox
values in [0, 1] relative to the video size.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple
import uuid


class DetectionState(str, Enum):
    DETECTED = "detected"    # accepted raw candidate
    PREDICTED = "predicted"  # extrapolated from smoothed velocity


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned box in normalized coordinates (fractions of frame size)."""
    x: float
    y: float
    width: float
    height: float

    def rect_in(self, width: float, height: float) -> Tuple[float, float, float, float]:
        """Convert back to pixel coordinates for a frame of the given size."""
        return (self.x * width, self.y * height, self.width * width, self.height * height)

    def to_list(self) -> List[float]:
        return [self.x, self.y, self.width, self.height]


@dataclass(frozen=True)
class Candidate:
    """Largest foreground blob found in one frame."""
    bbox: Tuple[int, int, int, int]
    center: Tuple[float, float]
    area: float


@dataclass(frozen=True)
class TrackerOutput:
    bbox: Tuple[float, float, float, float]
    center: Tuple[float, float]
    state: DetectionState
    confidence: float


@dataclass(frozen=True)
class DetectionResult:
    frame_number: int
    bounding_box: BoundingBox
    confidence: float
    state: DetectionState


@dataclass
class DetectedObject:
    """
    One auto-detected object awaiting review.
    Maps frame number -> normalized box, confidence and detection state.
    The three dicts always share the same keys, inserted in frame order.
    """
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    annotations: Dict[int, BoundingBox] = field(default_factory=dict)
    confidence: Dict[int, float] = field(default_factory=dict)
    detection_state: Dict[int, DetectionState] = field(default_factory=dict)

    @classmethod
    def from_results(cls, results: Iterable[DetectionResult]) -> "DetectedObject":
        obj = cls()
        for r in sorted(results, key=lambda r: r.frame_number):
            obj.add(r)
        return obj

    def add(self, result: DetectionResult) -> None:
        self.annotations[result.frame_number] = result.bounding_box
        self.confidence[result.frame_number] = result.confidence
        self.detection_state[result.frame_number] = result.state

    def frames(self) -> List[int]:
        return sorted(self.annotations)

    def box_at(self, frame: int) -> Optional[BoundingBox]:
        return self.annotations.get(frame)

    def state_at(self, frame: int) -> Optional[DetectionState]:
        return self.detection_state.get(frame)

    def delete_frames(self, start: int, end: int) -> None:
        """Remove every annotation in the inclusive frame range [start, end]."""
        lo, hi = min(start, end), max(start, end)
        for frame in [f for f in self.annotations if lo <= f <= hi]:
            del self.annotations[frame]
            self.confidence.pop(frame, None)
            self.detection_state.pop(frame, None)

    @property
    def is_empty(self) -> bool:
        return not self.annotations

    def __len__(self) -> int:
        return len(self.annotations)

    # JSON-friendly form; frame keys become strings
    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "frames": {
                str(f): {
                    "bbox": self.annotations[f].to_list(),
                    "confidence": self.confidence[f],
                    "state": self.detection_state[f].value,
                }
                for f in self.frames()
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DetectedObject":
        obj = cls(id=str(data.get("id") or uuid.uuid4().hex))
        frames = data.get("frames") or {}
        for key in sorted(frames, key=int):
            rec = frames[key]
            x, y, w, h = (float(v) for v in rec["bbox"])
            obj.add(
                DetectionResult(
                    frame_number=int(key),
                    bounding_box=BoundingBox(x, y, w, h),
                    confidence=float(rec.get("confidence", 0.0)),
                    state=DetectionState(rec.get("state", DetectionState.DETECTED.value)),
                )
            )
        return obj


@dataclass(frozen=True)
class ProgressEvent:
    current: int       # 1-based index within the run
    total: int
    frame_number: int


class RunStatus(str, Enum):
    COMPLETED = "completed"
    NO_OBJECTS = "no_objects"
    CANCELLED = "cancelled"


@dataclass
class RunResult:
    status: RunStatus
    detected_object: Optional[DetectedObject] = None
    frames_processed: int = 0

    @property
    def objects(self) -> List[DetectedObject]:
        return [self.detected_object] if self.detected_object is not None else []

    @property
    def cancelled(self) -> bool:
        return self.status is RunStatus.CANCELLED

"""
MotionLabel - motion-based auto-detection of a single moving object in video
"""
__version__ = "1.0.0"

from .config import DetectionConfig, load_config
from .detector import BackgroundModel, BackgroundSubtractionDetector, select_candidate
from .errors import (
    DetectionCancelled,
    FrameUnavailableError,
    InvalidConfigurationError,
    MotionLabelError,
    NoObjectsDetected,
)
from .frames import ArrayFrameSource, VideoFrameSource
from .geometry import denormalize_bbox, normalize_bbox
from .manager import MotionDetectionManager
from .models import (
    BoundingBox,
    Candidate,
    DetectedObject,
    DetectionResult,
    DetectionState,
    ProgressEvent,
    RunResult,
    RunStatus,
    TrackerOutput,
)
from .tracker import MotionConsistencyTracker, TrackingPhase

__all__ = [
    "DetectionConfig",
    "load_config",
    "BackgroundModel",
    "BackgroundSubtractionDetector",
    "select_candidate",
    "MotionConsistencyTracker",
    "TrackingPhase",
    "MotionDetectionManager",
    "ArrayFrameSource",
    "VideoFrameSource",
    "normalize_bbox",
    "denormalize_bbox",
    "BoundingBox",
    "Candidate",
    "DetectedObject",
    "DetectionResult",
    "DetectionState",
    "ProgressEvent",
    "RunResult",
    "RunStatus",
    "TrackerOutput",
    "MotionLabelError",
    "InvalidConfigurationError",
    "FrameUnavailableError",
    "DetectionCancelled",
    "NoObjectsDetected",
]

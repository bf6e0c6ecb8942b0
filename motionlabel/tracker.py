from __future__ import annotations
from enum import Enum
from typing import Optional, Tuple
import logging
import math

from .config import DetectionConfig
from .geometry import recenter_bbox
from .models import Candidate, DetectionState, TrackerOutput

logger = logging.getLogger(__name__)

DETECTED_CONFIDENCE = 0.9
PREDICTED_CONFIDENCE = 0.5


class TrackingPhase(str, Enum):
    UNINITIALIZED = "uninitialized"
    TRACKING = "tracking"
    LOST = "lost"


class MotionConsistencyTracker:
    """
    Single-target motion filter over per-frame detector candidates.

    Each step either accepts the candidate (first sighting, or within
    max_jump_distance of the last position) or falls back to a constant
    velocity prediction. Velocity is an exponential moving average of
    accepted displacements. After more than max_misses consecutive
    non-accepted frames the target is declared lost and all state is cleared;
    the next candidate re-acquires it from scratch.

    API:
      step(candidate) -> Optional[TrackerOutput]
      reset() -> None
    """
    def __init__(self, max_jump_distance: float = 100.0, max_misses: int = 15, smooth_alpha: float = 0.5):
        self.max_jump_distance = float(max_jump_distance)
        self.max_misses = int(max_misses)
        self.smooth_alpha = float(smooth_alpha)
        self.resets = 0
        self.reset()

    @classmethod
    def from_config(cls, config: DetectionConfig) -> "MotionConsistencyTracker":
        return cls(
            max_jump_distance=config.max_jump_distance,
            max_misses=config.max_misses,
            smooth_alpha=config.smooth_alpha,
        )

    def reset(self) -> None:
        """Clear tracker state. The background model is not affected."""
        self.last_position: Optional[Tuple[float, float]] = None
        self.last_bbox: Optional[Tuple[float, float, float, float]] = None
        self.velocity: Tuple[float, float] = (0.0, 0.0)
        self.miss_count = 0
        self.has_position = False
        self._lost = False

    @property
    def phase(self) -> TrackingPhase:
        if self.has_position:
            return TrackingPhase.TRACKING
        return TrackingPhase.LOST if self._lost else TrackingPhase.UNINITIALIZED

    # --------------- STEP -----------------
    def step(self, candidate: Optional[Candidate]) -> Optional[TrackerOutput]:
        """Consume one frame's candidate (or None). Call once per frame, in order."""
        if candidate is not None and not self.has_position:
            return self._accept(candidate, first=True)

        if candidate is not None:
            dist = math.hypot(
                candidate.center[0] - self.last_position[0],
                candidate.center[1] - self.last_position[1],
            )
            if dist < self.max_jump_distance:
                return self._accept(candidate, first=False)
            logger.debug("Rejected candidate at %s: jump %.1f >= %.1f", candidate.center, dist, self.max_jump_distance)
            return self._predict()

        if self.has_position:
            return self._predict()

        return None

    def _accept(self, candidate: Candidate, first: bool) -> TrackerOutput:
        cx, cy = candidate.center
        if not first:
            a = self.smooth_alpha
            lx, ly = self.last_position
            vx, vy = self.velocity
            self.velocity = (
                (1.0 - a) * vx + a * (cx - lx),
                (1.0 - a) * vy + a * (cy - ly),
            )
        self.last_position = (float(cx), float(cy))
        self.last_bbox = tuple(float(v) for v in candidate.bbox)
        self.miss_count = 0
        self.has_position = True
        self._lost = False
        return TrackerOutput(
            bbox=self.last_bbox,
            center=self.last_position,
            state=DetectionState.DETECTED,
            confidence=DETECTED_CONFIDENCE,
        )

    def _predict(self) -> Optional[TrackerOutput]:
        lx, ly = self.last_position
        vx, vy = self.velocity
        self.last_position = (lx + vx, ly + vy)
        self.last_bbox = recenter_bbox(self.last_bbox, *self.last_position)
        self.miss_count += 1

        if self.miss_count > self.max_misses:
            logger.debug("Target lost after %d misses; resetting tracker", self.miss_count)
            self.resets += 1
            self.reset()
            self._lost = True
            return None

        return TrackerOutput(
            bbox=self.last_bbox,
            center=self.last_position,
            state=DetectionState.PREDICTED,
            confidence=PREDICTED_CONFIDENCE,
        )

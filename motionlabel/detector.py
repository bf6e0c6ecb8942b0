from __future__ import annotations
from typing import Optional, Sequence
import logging

import cv2
import numpy as np

from .config import DetectionConfig
from .geometry import rect_center
from .models import Candidate

logger = logging.getLogger(__name__)


# -----------------------------
# Background model (MOG2)
# -----------------------------
def make_background_subtractor(history: int, var_threshold: float, detect_shadows: bool = True) -> cv2.BackgroundSubtractorMOG2:
    """Create an adaptive Gaussian-mixture background subtractor."""
    return cv2.createBackgroundSubtractorMOG2(
        history=int(history),
        varThreshold=float(var_threshold),
        detectShadows=bool(detect_shadows),
    )


class BackgroundModel:
    """
    Owned MOG2 instance for a single detection run.
    update() must be called exactly once per frame, in frame order: the
    model learns from every call and skipped or reordered frames leave its
    statistics out of step with the video.
    """
    def __init__(self, history: int = 500, var_threshold: float = 25.0, detect_shadows: bool = True):
        self.history = history
        self.var_threshold = var_threshold
        self.detect_shadows = detect_shadows
        self.frames_seen = 0
        self._subtractor = make_background_subtractor(self.history, self.var_threshold, self.detect_shadows)

    def update(self, gray: np.ndarray) -> np.ndarray:
        """Feed one single-channel frame and return the foreground mask (0 / 127 / 255)."""
        mask = self._subtractor.apply(gray)
        self.frames_seen += 1
        return mask


# -----------------------------
# Frame preparation
# -----------------------------
def to_gray(frame: np.ndarray) -> np.ndarray:
    """Convert a BGR, BGRA or already single-channel frame to 8-bit grayscale."""
    if frame.dtype != np.uint8:
        frame = np.clip(frame, 0, 255).astype(np.uint8)
    if frame.ndim == 2:
        return frame
    channels = frame.shape[2]
    if channels == 1:
        return frame[:, :, 0]
    if channels == 4:
        return cv2.cvtColor(frame, cv2.COLOR_BGRA2GRAY)
    return cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)


def _is_empty(frame: Optional[np.ndarray]) -> bool:
    return frame is None or not isinstance(frame, np.ndarray) or frame.size == 0 or frame.ndim not in (2, 3)


# -----------------------------
# Candidate selection
# -----------------------------
def select_candidate(contours: Sequence[np.ndarray], min_area: float) -> Optional[Candidate]:
    """
    Pick the contour with the largest enclosed area.
    Returns None when there are no contours or the largest area is <= min_area.
    """
    if not contours:
        return None
    areas = [cv2.contourArea(c) for c in contours]
    best = int(np.argmax(areas))
    area = float(areas[best])
    if area <= min_area:
        return None
    x, y, w, h = cv2.boundingRect(contours[best])
    bbox = (int(x), int(y), int(w), int(h))
    return Candidate(bbox=bbox, center=rect_center(bbox), area=area)


# -----------------------------
# Detector
# -----------------------------
class BackgroundSubtractionDetector:
    """
    Per-frame foreground segmentation yielding zero or one motion candidate.
    API:
      detect(frame) -> Optional[Candidate]
      foreground_mask(frame) -> Optional[np.ndarray]
    The background model lives as long as the detector; nothing resets it.
    """
    def __init__(self, config: Optional[DetectionConfig] = None):
        self.config = config or DetectionConfig()
        self.background = BackgroundModel(
            history=self.config.history,
            var_threshold=self.config.var_threshold,
            detect_shadows=self.config.detect_shadows,
        )
        k = self.config.morph_kernel
        self._kernel = cv2.getStructuringElement(cv2.MORPH_ELLIPSE, (k, k))

    def foreground_mask(self, frame: Optional[np.ndarray]) -> Optional[np.ndarray]:
        """Grayscale -> blur -> background model -> open -> dilate."""
        if _is_empty(frame):
            return None
        gray = to_gray(frame)
        b = self.config.blur_kernel
        gray = cv2.GaussianBlur(gray, (b, b), 0)
        mask = self.background.update(gray)
        mask = cv2.morphologyEx(mask, cv2.MORPH_OPEN, self._kernel)
        if self.config.dilate_iterations > 0:
            mask = cv2.dilate(mask, self._kernel, iterations=self.config.dilate_iterations)
        return mask

    def detect(self, frame: Optional[np.ndarray]) -> Optional[Candidate]:
        try:
            mask = self.foreground_mask(frame)
        except cv2.error as e:
            # Undecodable frame: degrade to "no candidate"
            logger.debug("Foreground extraction failed: %s", e)
            return None
        if mask is None:
            return None
        contours, _ = cv2.findContours(mask, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
        candidate = select_candidate(contours, self.config.min_area)
        if candidate is not None:
            logger.debug("Candidate bbox=%s area=%.1f", candidate.bbox, candidate.area)
        return candidate

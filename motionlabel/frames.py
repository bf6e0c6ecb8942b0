"""
Frame sources: random access to decoded frames by frame number.
"""
from __future__ import annotations
from pathlib import Path
from typing import List, Optional, Protocol, Sequence, Tuple, Union
import logging

import cv2
import numpy as np

from .errors import InvalidConfigurationError, MotionLabelError

logger = logging.getLogger(__name__)


class FrameSource(Protocol):
    frame_count: int
    frame_rate: float
    size: Tuple[int, int]  # (width, height)

    def get_frame(self, frame_number: int) -> Optional[np.ndarray]:
        ...


def frame_timestamp(frame_number: int, frame_rate: float) -> float:
    """Seconds from the start of the video for a frame number."""
    if frame_rate <= 0:
        raise InvalidConfigurationError(f"Frame rate must be positive, got {frame_rate}")
    return frame_number / float(frame_rate)


# -----------------------------
# Frame reading
# -----------------------------
def read_frame(
    cap: cv2.VideoCapture,
    video_path: Union[str, Path],
    idx: int,
    total_frames: int,
) -> Tuple[cv2.VideoCapture, Optional[np.ndarray]]:
    """Read frame at index idx, avoiding random seeks that can hang some backends.

    Strategy:
    - If idx > current position, step forward by reading frames sequentially
    - If idx < current position, reopen and fast-forward from start
    Returns possibly-updated cap and frame (or None on failure/out-of-range).
    """
    if idx < 0 or (total_frames > 0 and idx >= total_frames):
        return cap, None

    try:
        current_pos = int(cap.get(cv2.CAP_PROP_POS_FRAMES))
    except cv2.error:
        current_pos = 0

    if idx > current_pos:
        for _ in range(idx - current_pos):
            if not cap.grab():
                return cap, None
    elif idx < current_pos:
        cap.release()
        cap = cv2.VideoCapture(str(video_path))
        if not cap.isOpened():
            return cap, None
        for _ in range(idx):
            if not cap.grab():
                return cap, None

    ok, frame = cap.read()
    if not ok:
        return cap, None
    return cap, frame


class VideoFrameSource:
    """
    Video file opened with OpenCV.
    Usable as a context manager; release() closes the capture.
    """
    def __init__(self, video_path: Union[str, Path]):
        self.video_path = str(video_path)
        self.cap = cv2.VideoCapture(self.video_path)
        if not self.cap.isOpened():
            raise MotionLabelError(f"Failed to open video: {self.video_path}")
        self.frame_count = int(self.cap.get(cv2.CAP_PROP_FRAME_COUNT))
        self.frame_rate = float(self.cap.get(cv2.CAP_PROP_FPS) or 30.0)
        self.size = (
            int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
            int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
        )

    def get_frame(self, frame_number: int) -> Optional[np.ndarray]:
        self.cap, frame = read_frame(self.cap, self.video_path, frame_number, self.frame_count)
        if frame is None:
            logger.debug("No frame at index %d in %s", frame_number, self.video_path)
        return frame

    def release(self) -> None:
        self.cap.release()

    def __enter__(self) -> "VideoFrameSource":
        return self

    def __exit__(self, *exc) -> None:
        self.release()


class ArrayFrameSource:
    """In-memory frames (synthetic clips, tests). Frame i is frames[i]."""

    def __init__(self, frames: Sequence[np.ndarray], frame_rate: float = 30.0):
        self.frames: List[np.ndarray] = list(frames)
        self.frame_rate = float(frame_rate)
        self.frame_count = len(self.frames)
        if self.frames:
            h, w = self.frames[0].shape[:2]
            self.size = (int(w), int(h))
        else:
            self.size = (0, 0)

    def get_frame(self, frame_number: int) -> Optional[np.ndarray]:
        if 0 <= frame_number < self.frame_count:
            return self.frames[frame_number]
        return None

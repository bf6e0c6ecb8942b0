"""
Exception types raised by motion auto-detection runs.
"""
from __future__ import annotations
from typing import Optional


class MotionLabelError(Exception):
    """Base class for all motionlabel errors."""


class InvalidConfigurationError(MotionLabelError, ValueError):
    """Raised before a run starts when parameters make no sense."""


class FrameUnavailableError(MotionLabelError):
    """The frame source could not supply a frame; the run is aborted."""

    def __init__(self, frame_number: int, reason: Optional[str] = None):
        self.frame_number = frame_number
        msg = f"frame extraction failed at frame {frame_number}"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg)


class DetectionCancelled(MotionLabelError):
    """Run stopped by a cancellation request (raising API only)."""


class NoObjectsDetected(MotionLabelError):
    """Run finished without producing any output (raising API only)."""

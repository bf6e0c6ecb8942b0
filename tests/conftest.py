from __future__ import annotations
from typing import List, Optional

import numpy as np
import pytest

from motionlabel.geometry import rect_center
from motionlabel.models import Candidate


def make_candidate(cx: float, cy: float, w: int = 20, h: int = 10) -> Candidate:
    bbox = (int(round(cx - w / 2)), int(round(cy - h / 2)), w, h)
    return Candidate(bbox=bbox, center=rect_center(bbox), area=float(w * h))


class ScriptedDetector:
    """Returns a pre-recorded candidate per call, ignoring the frame."""

    def __init__(self, script: List[Optional[Candidate]]):
        self.script = list(script)
        self.calls = 0

    def detect(self, frame):
        candidate = self.script[self.calls] if self.calls < len(self.script) else None
        self.calls += 1
        return candidate


@pytest.fixture
def blank_frames():
    def _make(n: int, width: int = 320, height: int = 240):
        return [np.zeros((height, width, 3), dtype=np.uint8) for _ in range(n)]
    return _make

from __future__ import annotations
from typing import Tuple
import cv2
import numpy as np

from .models import DetectionState

YELLOW = (0, 255, 255)
ORANGE = (0, 165, 255)
WHITE = (255, 255, 255)

STATE_COLORS = {
    DetectionState.DETECTED: YELLOW,
    DetectionState.PREDICTED: ORANGE,
}


def draw_rect(img: np.ndarray, xywh: Tuple[int, int, int, int], color=YELLOW, thick: int = 2) -> None:
    x, y, w, h = map(int, xywh)
    cv2.rectangle(img, (x, y), (x + w, y + h), color, thick, cv2.LINE_AA)


def draw_hud(img: np.ndarray, text: str, alpha: float = 0.55) -> None:
    """Draw a translucent status box with one line of text in the top-left corner (in place)."""
    pad = 8
    x0, y0 = 8, 8
    font = cv2.FONT_HERSHEY_DUPLEX
    scale = max(0.5, min(1.2, img.shape[0] / 720.0 * 0.6))
    thick = 1
    size, base = cv2.getTextSize(text, font, scale, thick)
    box_w = size[0] + 2 * pad
    box_h = size[1] + base + 2 * pad
    bg = img.copy()
    cv2.rectangle(bg, (x0, y0), (x0 + box_w, y0 + box_h), (0, 0, 0), -1)
    cv2.addWeighted(bg, alpha, img, 1 - alpha, 0, dst=img)
    cv2.putText(img, text, (x0 + pad, y0 + pad + size[1]), font, scale, WHITE, thick, cv2.LINE_AA)

from __future__ import annotations
from typing import Optional, Tuple, Union

from .errors import InvalidConfigurationError
from .models import BoundingBox

Number = Union[int, float]
XYWH = Tuple[Number, Number, Number, Number]


# -----------------------------
# Pixel-space helpers
# -----------------------------
def bbox_center_to_xywh(cx: Number, cy: Number, w: Number, h: Number) -> Tuple[int, int, int, int]:
    x = int(round(cx - w / 2))
    y = int(round(cy - h / 2))
    return (x, y, int(w), int(h))


def bbox_xywh_to_center(xywh: XYWH) -> Tuple[int, int, int, int]:
    x, y, w, h = map(int, xywh)
    cx = int(round(x + w / 2))
    cy = int(round(y + h / 2))
    return (cx, cy, int(w), int(h))


def rect_center(xywh: XYWH) -> Tuple[float, float]:
    """Geometric center of a rectangle (not an area-weighted centroid)."""
    x, y, w, h = xywh
    return (x + w / 2.0, y + h / 2.0)


def recenter_bbox(xywh: XYWH, cx: float, cy: float) -> Tuple[float, float, float, float]:
    """Move a box so that its center lands on (cx, cy), keeping its size."""
    _, _, w, h = xywh
    return (cx - w / 2.0, cy - h / 2.0, float(w), float(h))


def clip_bbox(xywh: XYWH, w_img: Number, h_img: Number) -> Optional[Tuple[float, float, float, float]]:
    """Intersect a float box with the image; None when nothing of it is inside."""
    x, y, w, h = xywh
    x0, y0 = max(0.0, float(x)), max(0.0, float(y))
    x1, y1 = min(float(w_img), float(x) + w), min(float(h_img), float(y) + h)
    if x1 <= x0 or y1 <= y0:
        return None
    return (x0, y0, x1 - x0, y1 - y0)


# -----------------------------
# Normalized coordinates
# -----------------------------
def _check_video_size(video_w: Number, video_h: Number) -> None:
    if video_w <= 0 or video_h <= 0:
        raise InvalidConfigurationError(f"Video size must be positive, got {video_w}x{video_h}")


def normalize_bbox(xywh: XYWH, video_w: Number, video_h: Number) -> BoundingBox:
    """Divide a pixel rect (x, y, w, h) by the video size component-wise."""
    _check_video_size(video_w, video_h)
    x, y, w, h = xywh
    return BoundingBox(
        x=float(x) / video_w,
        y=float(y) / video_h,
        width=float(w) / video_w,
        height=float(h) / video_h,
    )


def denormalize_bbox(box: BoundingBox, video_w: Number, video_h: Number) -> Tuple[float, float, float, float]:
    _check_video_size(video_w, video_h)
    return box.rect_in(video_w, video_h)

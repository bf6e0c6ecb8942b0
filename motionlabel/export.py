from __future__ import annotations
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union
import json

from .geometry import bbox_xywh_to_center, clip_bbox
from .models import DetectedObject, DetectionState

Record = Tuple[str, int, int, int, int]


# -----------------------------
# Per-frame annotation file
# -----------------------------
class AnnotationWriter:
    """Writes per-frame annotations, one line per frame, in order:
    - Visible:   V x_center y_center width height   (detected)
    - Predicted: P x_center y_center width height   (extrapolated)
    - Skipped:   S -1 -1 -1 -1
    - Invisible: I -1 -1 -1 -1
    Nothing touches the disk until close().
    """
    def __init__(self, out_path: Union[str, Path]):
        self.out_path = Path(out_path)
        self._lines: list[str] = []
        self.count = 0

    def _write_box(self, tag: str, xywh: Tuple[int, int, int, int]) -> None:
        cx, cy, w, h = bbox_xywh_to_center(xywh)
        self._lines.append(f"{tag} {cx} {cy} {w} {h}\n")
        self.count += 1

    def write_visible(self, xywh: Tuple[int, int, int, int]) -> None:
        self._write_box("V", xywh)

    def write_predicted(self, xywh: Tuple[int, int, int, int]) -> None:
        self._write_box("P", xywh)

    def write_skip(self) -> None:
        self._lines.append("S -1 -1 -1 -1\n")
        self.count += 1

    def write_invisible(self) -> None:
        self._lines.append("I -1 -1 -1 -1\n")
        self.count += 1

    def close(self) -> None:
        self.out_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.out_path, "w", encoding="utf-8") as f:
            f.writelines(self._lines)


def parse_line(line: str) -> Optional[Record]:
    """Parse one annotation line; returns None for blank or malformed lines."""
    parts = line.strip().split()
    if not parts:
        return None
    tag = parts[0]
    if tag in ("S", "I"):
        if len(parts) == 5:
            _, a, b, c, d = parts
            return tag, int(a), int(b), int(c), int(d)
        return tag, -1, -1, -1, -1
    if tag in ("V", "P") and len(parts) == 5:
        _, a, b, c, d = parts
        return tag, int(a), int(b), int(c), int(d)
    return None


def write_detected_object(
    obj: DetectedObject,
    out_path: Union[str, Path],
    video_size: Tuple[int, int],
    total_frames: int,
    first_frame: int = 0,
) -> int:
    """
    Write `obj` as an annotation file covering frames [first_frame, total_frames).
    Frames without a box are written as skips. Returns the number of lines.
    """
    video_w, video_h = video_size
    writer = AnnotationWriter(out_path)
    for frame in range(first_frame, total_frames):
        box = obj.box_at(frame)
        if box is None:
            writer.write_skip()
            continue
        visible = clip_bbox(box.rect_in(video_w, video_h), video_w, video_h)
        xywh = tuple(int(round(v)) for v in visible) if visible is not None else (0, 0, 0, 0)
        if xywh[2] < 1 or xywh[3] < 1:
            # Nothing left to draw at pixel resolution
            writer.write_skip()
            continue
        if obj.state_at(frame) is DetectionState.PREDICTED:
            writer.write_predicted(xywh)
        else:
            writer.write_visible(xywh)
    writer.close()
    return writer.count


# -----------------------------
# JSON
# -----------------------------
def save_json(
    obj: DetectedObject,
    path: Union[str, Path],
    video_size: Optional[Tuple[int, int]] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> None:
    data: Dict[str, Any] = {"object": obj.to_dict()}
    if video_size is not None:
        data["video_size"] = [int(video_size[0]), int(video_size[1])]
    if metadata:
        data["metadata"] = metadata
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def load_json(path: Union[str, Path]) -> DetectedObject:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return DetectedObject.from_dict(data["object"])

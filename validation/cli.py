from __future__ import annotations
from pathlib import Path
from typing import Dict, List, Optional
import cv2
import typer

from motionlabel.export import Record, load_json, parse_line
from motionlabel.frames import VideoFrameSource
from motionlabel.geometry import bbox_center_to_xywh
from motionlabel.models import DetectedObject, DetectionState
from motionlabel.overlay import STATE_COLORS, draw_hud, draw_rect

TAG_STATES = {"V": DetectionState.DETECTED, "P": DetectionState.PREDICTED}
TAG_LABELS = {"V": "[Detected]", "P": "[Predicted]", "S": "[Skipped]", "I": "[Invisible]"}


def records_from_object(obj: DetectedObject, width: int, height: int) -> Dict[int, Record]:
    """Convert a detected object into per-frame annotation records."""
    records: Dict[int, Record] = {}
    for frame in obj.frames():
        x, y, w, h = obj.annotations[frame].rect_in(width, height)
        tag = "P" if obj.state_at(frame) is DetectionState.PREDICTED else "V"
        records[frame] = (tag, int(round(x + w / 2)), int(round(y + h / 2)), int(round(w)), int(round(h)))
    return records


class PreviewRenderer:
    """Render annotations over the source video into a preview mp4."""

    def __init__(self, video_path: Path, ann_path: Optional[Path] = None, out_path: Optional[Path] = None):
        self.video_path = Path(video_path)
        self.ann_path = Path(ann_path) if ann_path is not None else self.video_path.with_suffix(".annotations")
        if out_path is None:
            self.out_path = self.video_path.with_name(self.video_path.stem + "_preview.mp4")
        else:
            self.out_path = Path(out_path)
        self.source = VideoFrameSource(self.video_path)
        self.records = self._load_records()

    def _load_records(self) -> Dict[int, Record]:
        if self.ann_path.suffix.lower() == ".json":
            w, h = self.source.size
            return records_from_object(load_json(self.ann_path), w, h)
        # Line i describes frame i; keep malformed lines as gaps to avoid index shifts
        with open(self.ann_path, "r", encoding="utf-8") as f:
            parsed: List[Optional[Record]] = [parse_line(line) for line in f]
        return {i: rec for i, rec in enumerate(parsed) if rec is not None}

    def render(self) -> int:
        fourcc = cv2.VideoWriter_fourcc(*"mp4v")
        writer = cv2.VideoWriter(str(self.out_path), fourcc, self.source.frame_rate, self.source.size)
        total = 0
        try:
            for idx in range(self.source.frame_count):
                frame = self.source.get_frame(idx)
                if frame is None:
                    break
                rec = self.records.get(idx)
                label = ""
                if rec is not None:
                    tag, cx, cy, w, h = rec
                    label = TAG_LABELS.get(tag, "")
                    if tag in TAG_STATES and w > 0 and h > 0:
                        draw_rect(frame, bbox_center_to_xywh(cx, cy, w, h), color=STATE_COLORS[TAG_STATES[tag]])
                hud = f"Frame: {idx + 1}/{self.source.frame_count}" + (f"  {label}" if label else "")
                draw_hud(frame, hud)
                writer.write(frame)
                total += 1
        finally:
            writer.release()
            self.source.release()
        return total


app = typer.Typer(add_help_option=True)


@app.command()
def main(
    video: Path = typer.Argument(..., help="Path to input video"),
    ann: Path = typer.Option(None, "--ann", help="Annotation file or detection JSON; defaults to <video_name>.annotations"),
    out: Path = typer.Option(None, "--out", help="Path to write the preview video (defaults next to video)"),
):
    renderer = PreviewRenderer(video_path=video, ann_path=ann, out_path=out)
    total = renderer.render()
    typer.echo(f"Preview complete. Frames processed: {total}. Output: {renderer.out_path}")


if __name__ == "__main__":
    app()

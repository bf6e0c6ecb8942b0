from __future__ import annotations
import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

from .config import load_config
from .errors import MotionLabelError
from .export import save_json, write_detected_object
from .frames import VideoFrameSource
from .manager import MotionDetectionManager
from .models import RunStatus

EXIT_OK = 0
EXIT_NO_OBJECTS = 1
EXIT_ERROR = 2
EXIT_CANCELLED = 130


def _print_progress(current: int, total: int, frame_number: int) -> None:
    end = "\n" if current == total else ""
    print(f"\rProcessing frame {frame_number} ({current}/{total})", end=end, flush=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Motion auto-detection for a single moving object")
    parser.add_argument("video", type=Path, help="Path to input video file")
    parser.add_argument("--start", type=int, default=0, help="First frame (inclusive, default 0)")
    parser.add_argument("--end", type=int, default=None, help="Last frame (inclusive, default last frame)")
    parser.add_argument("--config", type=Path, default=None, help="YAML file with a 'detection:' section")
    parser.add_argument("--min-area", type=float, default=None, help="Minimum contour area in px^2")
    parser.add_argument("--max-jump", type=float, default=None, help="Maximum centroid jump between frames in px")
    parser.add_argument("--max-misses", type=int, default=None, help="Consecutive misses before the target is lost")
    parser.add_argument("--alpha", type=float, default=None, help="Velocity smoothing factor (0-1)")
    parser.add_argument("--history", type=int, default=None, help="Background model history in frames")
    parser.add_argument("--var-threshold", type=float, default=None, help="Background model variance threshold")
    parser.add_argument("--out", type=Path, default=None, help="Output annotation file path (defaults to <video>.annotations)")
    parser.add_argument("--json", type=Path, default=None, help="Also write the detected object as JSON")
    parser.add_argument("-q", "--quiet", action="store_true", help="Do not print per-frame progress")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def run(args: argparse.Namespace) -> int:
    config = load_config(args.config).replace(
        min_area=args.min_area,
        max_jump_distance=args.max_jump,
        max_misses=args.max_misses,
        smooth_alpha=args.alpha,
        history=args.history,
        var_threshold=args.var_threshold,
    ).validate()
    out_path: Path = args.out if args.out is not None else args.video.with_suffix(".annotations")
    manager = MotionDetectionManager(config)

    with VideoFrameSource(args.video) as source:
        end = args.end if args.end is not None else source.frame_count - 1
        # Ctrl-C stops the run at the next frame boundary
        previous = signal.signal(signal.SIGINT, lambda *_: manager.cancel())
        try:
            result = manager.auto_detect(
                source,
                (args.start, end),
                progress_callback=None if args.quiet else _print_progress,
            )
        finally:
            signal.signal(signal.SIGINT, previous)

        if result.status is RunStatus.CANCELLED:
            print("\nDetection cancelled. Nothing saved.")
            return EXIT_CANCELLED
        if result.status is RunStatus.NO_OBJECTS:
            print("No objects detected.")
            return EXIT_NO_OBJECTS

        obj = result.detected_object
        lines = write_detected_object(obj, out_path, source.size, source.frame_count)
        print(f"Detection complete: 1 object found in {len(obj)} frames")
        print(f"Saved annotations to {out_path} ({lines} lines)")
        if args.json is not None:
            save_json(
                obj,
                args.json,
                video_size=source.size,
                metadata={"video": str(args.video), "start": args.start, "end": end},
            )
            print(f"Saved detection JSON to {args.json}")
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return run(args)
    except MotionLabelError as e:
        print(f"Detection failed: {e}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())

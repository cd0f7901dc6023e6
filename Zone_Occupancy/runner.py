from __future__ import annotations

import argparse
import logging
from dataclasses import replace
from pathlib import Path
from typing import Any, Iterable, List, Optional, Sequence, Tuple

import cv2
import numpy as np

from detect_kit import (
    BoxUnits,
    ClassTaxonomy,
    LayoutOptions,
    LayoutVariant,
    draw_overlay,
    load_detector,
    load_taxonomy,
    select_source,
)
from detect_kit.runtime import FALLBACKS, fallback_source

from .config import OccupancyProfile, load_occupancy_profile
from .ingest import get_capture_info, iter_frames, open_capture, read_image
from .service import FrameResult, OccupancyMonitor


logger = logging.getLogger(__name__)


def setup_logging(log_level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _parse_canvas(raw: Optional[str]) -> Optional[Tuple[int, int]]:
    if raw is None:
        return None
    parts = raw.lower().replace(" ", "").split("x")
    if len(parts) != 2 or not all(p.isdigit() for p in parts):
        raise ValueError(f"--canvas must look like 1280x720, got {raw!r}")
    w, h = int(parts[0]), int(parts[1])
    if w < 1 or h < 1:
        raise ValueError("--canvas dimensions must be >= 1")
    return w, h


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Detect people and report which configured zones are occupied."
    )
    src = parser.add_mutually_exclusive_group(required=True)
    src.add_argument("--image", default=None, help="Path to an input image.")
    src.add_argument("--video", default=None, help="Path to an input video file.")
    src.add_argument("--webcam", type=int, default=None, help="Webcam index (e.g., 0).")

    parser.add_argument("--model", default=None, help="Path to a detector model (.onnx/.torchscript/.pt).")
    parser.add_argument("--backend", default=None, help="Force backend: onnxruntime / torchscript.")
    parser.add_argument("--metadata", default=None, help="Optional metadata.yaml with a names: block.")
    parser.add_argument("--profile", default=None, help="Occupancy profile JSON (thresholds + zones).")
    parser.add_argument(
        "--fallback",
        choices=FALLBACKS,
        default="synthetic",
        help="What to use when the model is unavailable (default: synthetic demo boxes).",
    )

    parser.add_argument("--imgsz", type=int, default=640, help="Model input size when the model does not declare it.")
    parser.add_argument("--layout", choices=("auto", "row", "channel"), default="auto", help="Output tensor layout.")
    parser.add_argument(
        "--box-units",
        choices=[u.value for u in BoxUnits],
        default=BoxUnits.PIXELS.value,
        help="Units of decoded box coordinates.",
    )
    parser.add_argument(
        "--objectness",
        choices=("auto", "yes", "no"),
        default="auto",
        help="Whether a channel-major output carries an objectness row.",
    )
    parser.add_argument("--num-classes", type=int, default=None, help="Expected number of classes (sanity check).")
    parser.add_argument("--onnx-providers", default=None, help='Comma-separated ORT providers.')

    parser.add_argument("--conf", type=float, default=None, help="Confidence threshold (overrides profile).")
    parser.add_argument("--iou", type=float, default=None, help="NMS IoU threshold (overrides profile).")
    parser.add_argument("--zone-conf", type=float, default=None, help="Zone confidence threshold (overrides profile).")
    parser.add_argument("--per-class-nms", action="store_true", help="Suppress overlaps per class.")

    parser.add_argument("--every", type=int, default=1, help="Process every Nth frame for video/webcam.")
    parser.add_argument("--max-frames", type=int, default=0, help="Stop after N processed frames (0 = no limit).")
    parser.add_argument("--save", default=None, help="Write the overlay image/video to this path.")
    parser.add_argument("--canvas", default=None, help="Letterbox the overlay onto a WxH canvas, e.g. 1280x720.")
    parser.add_argument("--show", action="store_true", help="Show the overlay in a window.")
    parser.add_argument("--log-level", default="INFO", help="DEBUG / INFO / WARNING / ERROR.")
    return parser


def resolve_profile(args: argparse.Namespace) -> OccupancyProfile:
    profile = load_occupancy_profile(Path(args.profile)) if args.profile else OccupancyProfile()
    overrides = {}
    if args.conf is not None:
        overrides["confidence_threshold"] = float(args.conf)
    if args.iou is not None:
        overrides["nms_iou_threshold"] = float(args.iou)
    if args.zone_conf is not None:
        overrides["zone_confidence_threshold"] = float(args.zone_conf)
    if args.per_class_nms:
        overrides["class_agnostic_nms"] = False
    return replace(profile, **overrides) if overrides else profile


def build_source(args: argparse.Namespace, profile: OccupancyProfile) -> Any:
    taxonomy = load_taxonomy(args.metadata) if args.metadata else ClassTaxonomy()
    if args.model is None:
        return fallback_source(args.fallback, reason="no --model given", taxonomy=taxonomy)

    if args.imgsz < 32:
        raise ValueError("--imgsz must be >= 32")
    providers = None
    if args.onnx_providers:
        providers = [p.strip() for p in str(args.onnx_providers).split(",") if p.strip()] or None

    detector = load_detector(
        args.model,
        backend=args.backend,
        layout_options=LayoutOptions(
            input_size=(int(args.imgsz), int(args.imgsz)),
            variant=None if args.layout == "auto" else LayoutVariant(args.layout),
            box_units=BoxUnits(args.box_units),
            has_objectness=None if args.objectness == "auto" else args.objectness == "yes",
            num_classes=args.num_classes,
        ),
        post_cfg=profile.post_config(),
        taxonomy=taxonomy,
        onnx_providers=providers,
    )
    return select_source(detector, args.fallback)


def format_result(result: FrameResult) -> str:
    if not result.ok:
        return f"frame={result.frame_idx} source={result.source} ERROR {result.error}"
    return (
        f"frame={result.frame_idx} source={result.source} detections={len(result.detections)} "
        f"{result.zone_state}"
    )


def _frames(args: argparse.Namespace) -> Iterable[np.ndarray]:
    if args.image is not None:
        yield read_image(args.image)
        return
    cap = open_capture(video=args.video, webcam=args.webcam)
    info = get_capture_info(cap)
    logger.info("Capture opened: %sx%s @ %s fps", info.width, info.height, info.fps)
    yield from iter_frames(cap, every=int(args.every), max_frames=int(args.max_frames))


def run(args: argparse.Namespace) -> int:
    if args.every < 1:
        raise ValueError("--every must be >= 1")
    if args.max_frames < 0:
        raise ValueError("--max-frames must be >= 0")
    canvas = _parse_canvas(args.canvas)

    profile = resolve_profile(args)
    monitor = OccupancyMonitor(build_source(args, profile), profile)
    print(f"Detection source: {monitor.source_name}")

    writer = None
    occupied_counts = {spec.name: 0 for spec in profile.zones}
    results: List[FrameResult] = []
    try:
        for frame in _frames(args):
            result = monitor.process(frame)
            if result is None:
                continue
            results.append(result)
            print(format_result(result))
            for name in result.zone_state.occupied_zones():
                occupied_counts[name] += 1

            if not (args.save or args.show):
                continue
            h, w = frame.shape[:2]
            vis = draw_overlay(
                frame,
                result.detections,
                zones=monitor.zones_for(w, h),
                occupied=result.zone_state,
                canvas_size=canvas,
            )
            if args.save:
                if args.image is not None:
                    Path(args.save).parent.mkdir(parents=True, exist_ok=True)
                    cv2.imwrite(args.save, vis)
                else:
                    if writer is None:
                        Path(args.save).parent.mkdir(parents=True, exist_ok=True)
                        fourcc = cv2.VideoWriter_fourcc(*"mp4v")
                        writer = cv2.VideoWriter(args.save, fourcc, 10.0, (vis.shape[1], vis.shape[0]))
                    writer.write(vis)
            if args.show:
                cv2.imshow("zones", vis)
                if (cv2.waitKey(0 if args.image is not None else 1) & 0xFF) == ord("q"):
                    break
    finally:
        if writer is not None:
            writer.release()
        if args.show:
            cv2.destroyAllWindows()
        close = getattr(monitor.source, "close", None)
        if close is not None:
            close()

    failed = sum(1 for r in results if not r.ok)
    print(f"Frames processed: {len(results)} failed: {failed} dropped: {monitor.dropped_frames}")
    for name, count in occupied_counts.items():
        print(f"  {name}: occupied in {count} frame(s)")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)
    return run(args)


if __name__ == "__main__":
    raise SystemExit(main())

from __future__ import annotations

import argparse
import statistics
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List

import numpy as np

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from detect_kit import DetectionPipeline, LayoutVariant, ModelLayout, PostConfig


@dataclass(frozen=True)
class TimingSummary:
    n: int
    mean_ms: float
    p50_ms: float
    p95_ms: float


def _percentile(sorted_values: List[float], q: float) -> float:
    if not sorted_values:
        raise ValueError("No values provided.")
    if len(sorted_values) == 1:
        return float(sorted_values[0])
    # Linear interpolation between closest ranks.
    pos = (q / 100.0) * (len(sorted_values) - 1)
    lo = int(np.floor(pos))
    hi = int(np.ceil(pos))
    t = pos - lo
    return float(sorted_values[lo] * (1.0 - t) + sorted_values[hi] * t)


def _summarize_ms(values_s: List[float]) -> TimingSummary:
    ms = sorted(v * 1000.0 for v in values_s)
    return TimingSummary(
        n=len(ms),
        mean_ms=float(statistics.fmean(ms)),
        p50_ms=_percentile(ms, 50.0),
        p95_ms=_percentile(ms, 95.0),
    )


def synthetic_tensor(layout: ModelLayout, rng: np.random.Generator, positives: int) -> np.ndarray:
    """Random boxes in pixel units with `positives` confident person rows."""

    n, c = layout.num_boxes, layout.num_classes
    in_w, in_h = layout.input_size
    boxes = np.stack(
        [
            rng.uniform(0, in_w, n),
            rng.uniform(0, in_h, n),
            rng.uniform(8, in_w / 4, n),
            rng.uniform(8, in_h / 4, n),
        ],
        axis=1,
    ).astype(np.float32)
    scores = rng.uniform(0.0, 0.3, size=(n, c)).astype(np.float32)
    hot = rng.choice(n, size=min(positives, n), replace=False)
    scores[hot, 0] = rng.uniform(0.6, 1.0, size=hot.size)

    if layout.variant is LayoutVariant.ROW_MAJOR:
        obj = np.ones((n, 1), dtype=np.float32)
        return np.concatenate([boxes, obj, scores], axis=1)[None, ...]
    return np.concatenate([boxes, scores], axis=1).T[None, ...]


def main() -> int:
    parser = argparse.ArgumentParser(description="Benchmark decode + filter + NMS + mapping on synthetic tensors.")
    parser.add_argument("--layout", choices=("row", "channel"), default="channel")
    parser.add_argument("--boxes", type=int, default=8400, help="Number of anchors/rows.")
    parser.add_argument("--classes", type=int, default=80)
    parser.add_argument("--positives", type=int, default=200, help="Rows with a confident person score.")
    parser.add_argument("--imgsz", type=int, default=640)
    parser.add_argument("--repeats", type=int, default=200)
    parser.add_argument("--warmup", type=int, default=10)
    parser.add_argument("--per-class-nms", action="store_true")
    args = parser.parse_args()

    if args.boxes < 1 or args.classes < 1:
        raise ValueError("--boxes and --classes must be >= 1")
    if args.repeats < 1:
        raise ValueError("--repeats must be >= 1")

    layout = ModelLayout(
        variant=LayoutVariant(args.layout),
        input_size=(args.imgsz, args.imgsz),
        num_boxes=args.boxes,
        num_classes=args.classes,
    )
    pipeline = DetectionPipeline(layout, PostConfig(class_agnostic_nms=not args.per_class_nms))
    tensor = synthetic_tensor(layout, np.random.default_rng(0), args.positives)

    timings: List[float] = []
    kept = 0
    for i in range(args.warmup + args.repeats):
        t0 = time.perf_counter()
        dets = pipeline.run(tensor, (1280, 720))
        t1 = time.perf_counter()
        if i >= args.warmup:
            timings.append(t1 - t0)
            kept = len(dets)

    s = _summarize_ms(timings)
    print(f"postprocess: n={s.n} mean={s.mean_ms:.3f}ms p50={s.p50_ms:.3f}ms p95={s.p95_ms:.3f}ms")
    print(f"layout={layout.variant.value} shape={tensor.shape} detections_kept={kept}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

from dataclasses import dataclass
from typing import List

import numpy as np

from .decode import Candidates
from .types import Rect


@dataclass(frozen=True)
class NMSConfig:
    iou_threshold: float = 0.45
    max_detections: int = 300

    def __post_init__(self) -> None:
        if not (0.0 < self.iou_threshold <= 1.0):
            raise ValueError("iou_threshold must be within (0, 1]")
        if self.max_detections < 1:
            raise ValueError("max_detections must be >= 1")


def iou(a: Rect, b: Rect) -> float:
    """
    Intersection-over-union of two rectangles. 0.0 when the union is empty.
    """

    inter_w = max(0.0, min(a.right, b.right) - max(a.left, b.left))
    inter_h = max(0.0, min(a.bottom, b.bottom) - max(a.top, b.top))
    inter = inter_w * inter_h
    union = a.area + b.area - inter
    if union <= 0.0:
        return 0.0
    return inter / union


def nms(boxes: np.ndarray, scores: np.ndarray, cfg: NMSConfig) -> np.ndarray:
    """
    Greedy NumPy NMS. Expects boxes shape (N,4) in xyxy and scores shape (N,).
    Returns indices of boxes to keep, highest score first. Equal scores keep
    their input order.
    """

    if boxes.size == 0:
        return np.empty((0,), dtype=np.int64)

    x1 = boxes[:, 0]
    y1 = boxes[:, 1]
    x2 = boxes[:, 2]
    y2 = boxes[:, 3]
    areas = np.maximum(0.0, x2 - x1) * np.maximum(0.0, y2 - y1)

    order = np.argsort(-scores, kind="stable")
    keep: List[int] = []

    while order.size > 0 and len(keep) < cfg.max_detections:
        i = order[0]
        keep.append(int(i))

        xx1 = np.maximum(x1[i], x1[order[1:]])
        yy1 = np.maximum(y1[i], y1[order[1:]])
        xx2 = np.minimum(x2[i], x2[order[1:]])
        yy2 = np.minimum(y2[i], y2[order[1:]])

        w = np.maximum(0.0, xx2 - xx1)
        h = np.maximum(0.0, yy2 - yy1)
        inter = w * h
        union = areas[i] + areas[order[1:]] - inter
        overlap = np.divide(inter, union, out=np.zeros_like(inter, dtype=np.float64), where=union > 0)

        inds = np.where(overlap < cfg.iou_threshold)[0]
        order = order[inds + 1]

    return np.array(keep, dtype=np.int64)


def suppress(
    candidates: Candidates,
    iou_threshold: float,
    *,
    class_agnostic: bool = True,
    max_detections: int = 300,
) -> Candidates:
    """
    Greedy IoU suppression over a candidate batch.

    Class-agnostic by default. With `class_agnostic=False` each class is
    suppressed on its own and the survivors are merged by confidence.
    """

    cfg = NMSConfig(iou_threshold=iou_threshold, max_detections=max_detections)
    if len(candidates) == 0:
        return candidates

    boxes = candidates.boxes_xyxy()
    scores = candidates.confidence

    if class_agnostic:
        return candidates.select(nms(boxes, scores, cfg))

    class_ids = candidates.class_ids
    kept: List[int] = []
    for cls in np.unique(class_ids):
        idx = np.where(class_ids == cls)[0]
        keep_local = nms(boxes[idx], scores[idx], cfg)
        kept.extend(idx[keep_local].tolist())

    kept_arr = np.array(sorted(kept), dtype=np.int64)
    order = np.argsort(-scores[kept_arr], kind="stable")
    kept_arr = kept_arr[order][:max_detections]
    return candidates.select(kept_arr)

from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional, Tuple

import numpy as np

from .letterbox import letterbox
from .mapping import to_display_space
from .types import Detection, Rect


def _color_for_class_id(class_id: Optional[int]) -> Tuple[int, int, int]:
    """
    Deterministic BGR color for a class id (OpenCV expects BGR).
    """

    if class_id is None:
        return (0, 255, 255)
    if class_id == 0:
        return (72, 249, 10)

    rng = np.random.default_rng(int(class_id))
    bgr = rng.integers(0, 256, size=3, dtype=np.uint8)
    return int(bgr[0]), int(bgr[1]), int(bgr[2])


def _put_label(out: np.ndarray, label: str, x: int, y: int, color: Tuple[int, int, int], font_scale: float) -> None:
    import cv2  # type: ignore

    h, w = out.shape[:2]
    (tw, th), baseline = cv2.getTextSize(label, cv2.FONT_HERSHEY_SIMPLEX, font_scale, 1)
    # Place label above the box if possible, else inside.
    y_top = y - th - baseline
    if y_top < 0:
        y_top = y
    x_right = min(x + tw, w - 1)
    y_bottom = min(y_top + th + baseline, h - 1)
    cv2.rectangle(out, (x, y_top), (x_right, y_bottom), color, thickness=-1)
    cv2.putText(
        out,
        label,
        (x, min(y_top + th, h - 1)),
        cv2.FONT_HERSHEY_SIMPLEX,
        font_scale,
        (255, 255, 255),
        thickness=1,
        lineType=cv2.LINE_AA,
    )


def draw_overlay(
    image_bgr: np.ndarray,
    detections: Iterable[Detection],
    *,
    zones: Iterable[Any] = (),
    occupied: Optional[Mapping[str, bool]] = None,
    canvas_size: Optional[Tuple[int, int]] = None,
    box_thickness: int = 2,
    font_scale: float = 0.5,
) -> np.ndarray:
    """
    Draw zones and detections on a copy of `image_bgr`.

    With `canvas_size` (w, h) the image is letterboxed onto a canvas of that
    size first and every rect goes through `to_display_space`, so the drawing
    matches what a differently sized viewport would show.

    Args:
        zones: objects with `name`, `rect` (Rect in image pixels) and a BGR `color`
        occupied: optional {zone name: flag}; occupied zones are drawn thicker
    """

    try:
        import cv2  # type: ignore
    except ImportError as e:  # pragma: no cover
        raise ImportError("OpenCV is required for draw_overlay(). Install with `pip install opencv-python`.") from e

    if image_bgr is None or not hasattr(image_bgr, "shape"):
        raise TypeError("image_bgr must be a NumPy array (BGR).")
    if image_bgr.ndim != 3 or image_bgr.shape[2] != 3:
        raise ValueError(f"Expected image shape (H, W, 3), got {getattr(image_bgr, 'shape', None)}")

    img_h, img_w = image_bgr.shape[:2]
    if canvas_size is not None:
        out, _, _ = letterbox(image_bgr, canvas_size)
        canvas_w, canvas_h = canvas_size
    else:
        out = image_bgr.copy()
        canvas_w, canvas_h = img_w, img_h

    def _to_canvas(rect: Rect) -> Tuple[int, int, int, int]:
        r = to_display_space(rect, img_w, img_h, canvas_w, canvas_h)
        return (
            int(np.clip(round(r.left), 0, canvas_w - 1)),
            int(np.clip(round(r.top), 0, canvas_h - 1)),
            int(np.clip(round(r.right), 0, canvas_w - 1)),
            int(np.clip(round(r.bottom), 0, canvas_h - 1)),
        )

    for zone in zones:
        x1, y1, x2, y2 = _to_canvas(zone.rect)
        color = tuple(int(c) for c in zone.color)
        hit = bool(occupied.get(zone.name, False)) if occupied else False
        cv2.rectangle(out, (x1, y1), (x2, y2), color, thickness=box_thickness * 2 if hit else 1)
        _put_label(out, f"{zone.name}{' *' if hit else ''}", x1, y1, color, font_scale)

    for det in detections:
        x1, y1, x2, y2 = _to_canvas(det.bounding_box)
        color = _color_for_class_id(det.class_id)
        cv2.rectangle(out, (x1, y1), (x2, y2), color, thickness=box_thickness)
        _put_label(out, f"{det.class_name} {det.confidence:.2f}", x1, y1, color, font_scale)

    return out

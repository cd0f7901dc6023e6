"""
Coordinate mapping between model space, image space and display space.

Two separate contracts that must never be mixed up:

- image space: the model input was a non aspect-preserving stretch of the
  original image, so boxes scale back with independent x/y factors.
- display space: overlays are drawn over an aspect-preserving, centred
  (letterboxed) fit of the image on a canvas of any size.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np

from .types import NormalizedRect, Rect


def _clip(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def to_image_space(
    box: NormalizedRect,
    input_size: Tuple[int, int],
    original_width: int,
    original_height: int,
) -> Rect:
    in_w, in_h = input_size
    scale_x = original_width / float(in_w)
    scale_y = original_height / float(in_h)

    # normalized -> model-input pixels -> original image pixels
    cx = box.cx * in_w * scale_x
    cy = box.cy * in_h * scale_y
    w = box.w * in_w * scale_x
    h = box.h * in_h * scale_y

    return Rect(
        left=_clip(cx - w / 2, 0.0, float(original_width)),
        top=_clip(cy - h / 2, 0.0, float(original_height)),
        right=_clip(cx + w / 2, 0.0, float(original_width)),
        bottom=_clip(cy + h / 2, 0.0, float(original_height)),
    )


def boxes_to_image_space(
    boxes_xyxy: np.ndarray,
    input_size: Tuple[int, int],
    orig_size: Tuple[int, int],
) -> np.ndarray:
    """
    Vectorized `to_image_space` for normalized xyxy boxes of shape (N, 4).
    """

    in_w, in_h = input_size
    orig_w, orig_h = orig_size
    out = np.array(boxes_xyxy, dtype=np.float64)
    out[:, [0, 2]] *= in_w * (orig_w / float(in_w))
    out[:, [1, 3]] *= in_h * (orig_h / float(in_h))
    out[:, [0, 2]] = np.clip(out[:, [0, 2]], 0, orig_w)
    out[:, [1, 3]] = np.clip(out[:, [1, 3]], 0, orig_h)
    return out


def display_transform(
    image_width: int,
    image_height: int,
    canvas_width: int,
    canvas_height: int,
) -> Tuple[float, Tuple[float, float]]:
    """
    Returns (scale, (offset_x, offset_y)) for an aspect-preserving centred fit.
    """

    if image_width <= 0 or image_height <= 0:
        raise ValueError(f"Invalid image size: {(image_width, image_height)}")
    scale = min(canvas_width / float(image_width), canvas_height / float(image_height))
    offset_x = (canvas_width - image_width * scale) / 2
    offset_y = (canvas_height - image_height * scale) / 2
    return scale, (offset_x, offset_y)


def to_display_space(
    rect: Rect,
    image_width: int,
    image_height: int,
    canvas_width: int,
    canvas_height: int,
) -> Rect:
    scale, (dx, dy) = display_transform(image_width, image_height, canvas_width, canvas_height)
    return Rect(
        left=rect.left * scale + dx,
        top=rect.top * scale + dy,
        right=rect.right * scale + dx,
        bottom=rect.bottom * scale + dy,
    )

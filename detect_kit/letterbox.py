from typing import Tuple

import numpy as np

from .mapping import display_transform


def letterbox(
    image: np.ndarray,
    canvas_size: Tuple[int, int],
    color: Tuple[int, int, int] = (0, 0, 0),
):
    """
    Fit `image` onto a canvas of `canvas_size` (w, h), preserving aspect
    ratio and centring it, the same way overlays are positioned by
    `to_display_space`.

    Returns:
        canvas: resized + padded image
        scale: resize factor applied to both axes
        offset: (dx, dy) of the image's top-left corner on the canvas
    """
    try:
        import cv2  # type: ignore
    except ImportError as e:  # pragma: no cover
        raise ImportError("OpenCV is required for letterbox(). Install with `pip install opencv-python`.") from e

    h, w = image.shape[:2]
    canvas_w, canvas_h = canvas_size
    scale, (dx, dy) = display_transform(w, h, canvas_w, canvas_h)

    resized_w = max(1, int(round(w * scale)))
    resized_h = max(1, int(round(h * scale)))
    if (w, h) != (resized_w, resized_h):
        image = cv2.resize(image, (resized_w, resized_h), interpolation=cv2.INTER_LINEAR)

    left = int(round(dx - 0.1))
    top = int(round(dy - 0.1))
    right = max(0, canvas_w - resized_w - left)
    bottom = max(0, canvas_h - resized_h - top)
    canvas = cv2.copyMakeBorder(image, top, bottom, left, right, cv2.BORDER_CONSTANT, value=color)

    return canvas, scale, (dx, dy)

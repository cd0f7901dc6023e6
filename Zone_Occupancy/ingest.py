from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Optional

import cv2
import numpy as np


@dataclass(frozen=True)
class CaptureInfo:
    fps: Optional[float]
    width: Optional[int]
    height: Optional[int]


def read_image(path: str) -> np.ndarray:
    img = cv2.imread(path)
    if img is None:
        raise FileNotFoundError(f"Could not read image at path: {path}")
    return img


def open_capture(*, video: Optional[str] = None, webcam: Optional[int] = None) -> cv2.VideoCapture:
    if (video is None) == (webcam is None):
        raise ValueError("Exactly one of video/webcam must be provided.")

    cap = cv2.VideoCapture(video) if video is not None else cv2.VideoCapture(int(webcam))
    if not cap.isOpened():
        raise RuntimeError(f"Failed to open video source: {video if video is not None else webcam}")
    return cap


def get_capture_info(cap: cv2.VideoCapture) -> CaptureInfo:
    fps = cap.get(cv2.CAP_PROP_FPS)
    fps_val = float(fps) if fps and fps > 0 else None

    w = cap.get(cv2.CAP_PROP_FRAME_WIDTH)
    h = cap.get(cv2.CAP_PROP_FRAME_HEIGHT)
    w_val = int(w) if w and w > 0 else None
    h_val = int(h) if h and h > 0 else None

    return CaptureInfo(fps=fps_val, width=w_val, height=h_val)


def iter_frames(cap: cv2.VideoCapture, *, every: int = 1, max_frames: int = 0) -> Iterator[np.ndarray]:
    """
    Yield every `every`-th frame until the source ends or `max_frames`
    frames were yielded (0 = no limit). Releases the capture when done.
    """

    if every < 1:
        raise ValueError("every must be >= 1")
    frame_idx = 0
    yielded = 0
    try:
        while True:
            ok, frame = cap.read()
            if not ok or frame is None:
                break
            frame_idx += 1
            if (frame_idx - 1) % every != 0:
                continue
            yield frame
            yielded += 1
            if max_frames and yielded >= max_frames:
                break
    finally:
        cap.release()

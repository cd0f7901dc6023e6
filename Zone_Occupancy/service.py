"""
Per-frame orchestration: detection source -> detections -> zone state.

The monitor runs at most one frame at a time. A frame submitted while
another one is still being processed is dropped rather than queued, so a
slow model never builds up a backlog of stale frames.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Optional, Sequence, Tuple

import numpy as np

from detect_kit.errors import InferenceFailure, MalformedTensor, ModelUnavailable
from detect_kit.types import Detection

from .config import OccupancyProfile
from .zones import Zone, ZoneSet, ZoneState, empty_state, evaluate_zones


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FrameResult:
    frame_idx: int
    source: str
    image_size: Tuple[int, int]
    detections: Tuple[Detection, ...]
    zone_state: ZoneState
    # "<ErrorType>: message" when the frame failed; detections are empty then.
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class OccupancyMonitor:
    def __init__(self, source: Any, profile: OccupancyProfile = OccupancyProfile()):
        self.source = source
        self.profile = profile
        self.zone_set = ZoneSet(profile.zones)
        self._busy = threading.Lock()
        self._stats_lock = threading.Lock()
        self.processed_frames = 0
        self.dropped_frames = 0
        self.failed_frames = 0

    @property
    def source_name(self) -> str:
        return str(getattr(self.source, "name", type(self.source).__name__))

    def zones_for(self, width: int, height: int) -> Tuple[Zone, ...]:
        return self.zone_set.for_size(width, height)

    def evaluate(self, detections: Sequence[Detection], zones: Sequence[Zone]) -> ZoneState:
        return evaluate_zones(
            detections,
            zones,
            class_filter=self.profile.zone_class_id,
            confidence_threshold=self.profile.zone_confidence_threshold,
        )

    def process(self, image_bgr: np.ndarray) -> Optional[FrameResult]:
        """
        Detect and evaluate zones for one frame.

        Returns None when another frame is still in flight. InferenceFailure,
        MalformedTensor and ModelUnavailable are logged and reported on the
        result. A frame that is not an (H, W, 3) BGR image is a caller error
        and raises ValueError; the monitor stays usable afterwards.
        """

        if not self._busy.acquire(blocking=False):
            with self._stats_lock:
                self.dropped_frames += 1
            logger.debug("Frame dropped: previous frame still processing")
            return None
        try:
            return self._process(image_bgr)
        finally:
            self._busy.release()

    def _process(self, image_bgr: np.ndarray) -> FrameResult:
        if getattr(image_bgr, "ndim", None) != 3 or image_bgr.shape[2] != 3:
            raise ValueError(f"Expected image shape (H, W, 3), got {getattr(image_bgr, 'shape', None)}")
        h, w = image_bgr.shape[:2]
        zones = self.zones_for(w, h)
        with self._stats_lock:
            frame_idx = self.processed_frames
            self.processed_frames += 1

        try:
            detections = tuple(self.source.detect(image_bgr))
        except (InferenceFailure, MalformedTensor, ModelUnavailable) as exc:
            with self._stats_lock:
                self.failed_frames += 1
            logger.warning("Frame %d failed (%s): %s", frame_idx, type(exc).__name__, exc)
            return FrameResult(
                frame_idx=frame_idx,
                source=self.source_name,
                image_size=(w, h),
                detections=(),
                zone_state=empty_state(zones),
                error=f"{type(exc).__name__}: {exc}",
            )

        state = self.evaluate(detections, zones)
        logger.debug("Frame %d: %d detections, %s", frame_idx, len(detections), state)
        return FrameResult(
            frame_idx=frame_idx,
            source=self.source_name,
            image_size=(w, h),
            detections=detections,
            zone_state=state,
        )

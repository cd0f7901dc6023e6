import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .decode import Candidates, decode_tensor
from .filtering import filter_candidates
from .layout import ModelLayout
from .mapping import boxes_to_image_space
from .metadata import ClassTaxonomy
from .nms import suppress
from .types import Detection


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PostConfig:
    """
    Post-processing thresholds shared by every layout.
    """

    conf_threshold: float = 0.5
    iou_threshold: float = 0.45
    max_detections: int = 300
    # If True, NMS is class-agnostic (default). If False, runs per-class NMS
    # then merges results by score.
    class_agnostic_nms: bool = True
    # Optional list of class IDs to keep; None keeps all.
    class_ids: Optional[Sequence[int]] = (0,)

    def __post_init__(self) -> None:
        if not (0.0 <= self.conf_threshold < 1.0):
            raise ValueError("conf_threshold must be within [0, 1)")
        if not (0.0 < self.iou_threshold <= 1.0):
            raise ValueError("iou_threshold must be within (0, 1]")
        if self.max_detections < 1:
            raise ValueError("max_detections must be >= 1")
        if self.class_ids is not None:
            object.__setattr__(self, "class_ids", tuple(int(c) for c in self.class_ids))


class DetectionPipeline:
    """
    Raw output tensor -> decode -> confidence filter -> NMS -> image space.

    Stateless apart from its immutable layout and config, so one instance can
    serve any number of threads.
    """

    def __init__(
        self,
        layout: ModelLayout,
        cfg: PostConfig = PostConfig(),
        taxonomy: ClassTaxonomy = ClassTaxonomy(),
    ):
        self.layout = layout
        self.cfg = cfg
        self.taxonomy = taxonomy

    def candidates(self, tensor: np.ndarray) -> Candidates:
        """Decode, filter and suppress, staying in normalized model space."""

        cands = decode_tensor(tensor, self.layout)
        if len(cands) == 0:
            return cands

        cands = filter_candidates(cands, self.cfg.conf_threshold, self.cfg.class_ids)
        if len(cands) == 0:
            return cands

        return suppress(
            cands,
            self.cfg.iou_threshold,
            class_agnostic=self.cfg.class_agnostic_nms,
            max_detections=self.cfg.max_detections,
        )

    def run(self, tensor: np.ndarray, orig_size: Tuple[int, int]) -> List[Detection]:
        """
        Args:
            tensor: raw model output for a single image
            orig_size: (width, height) of the original image
        """

        orig_w, orig_h = orig_size
        if orig_w <= 0 or orig_h <= 0:
            raise ValueError(f"orig_size must be positive, got {orig_size}")

        kept = self.candidates(tensor)
        if len(kept) == 0:
            return []

        boxes = boxes_to_image_space(kept.boxes_xyxy(), self.layout.input_size, (orig_w, orig_h))
        scores = kept.confidence
        class_ids = kept.class_ids

        detections: List[Detection] = []
        for (x1, y1, x2, y2), score, cls_id in zip(boxes, scores, class_ids):
            # Boxes lying entirely outside the frame collapse when clamped.
            if x2 <= x1 or y2 <= y1:
                continue
            detections.append(
                Detection(
                    x1=float(x1),
                    y1=float(y1),
                    x2=float(x2),
                    y2=float(y2),
                    confidence=min(1.0, float(score)),
                    class_id=int(cls_id),
                    class_name=self.taxonomy.name_for(int(cls_id)),
                )
            )

        logger.debug("decoded %d detections from %d kept candidates", len(detections), len(kept))
        return detections

    __call__ = run

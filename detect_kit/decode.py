from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Optional, Sequence, Union

import numpy as np

from .errors import MalformedTensor
from .layout import BoxUnits, LayoutVariant, ModelLayout
from .types import CandidateDetection, NormalizedRect


@dataclass(frozen=True)
class Candidates:
    """
    Columnar batch of candidate detections.

    boxes: (N, 4) normalized cx, cy, w, h
    objectness: (N,) or None when the layout has no objectness channel
    class_scores: (N, C)
    """

    boxes: np.ndarray
    objectness: Optional[np.ndarray]
    class_scores: np.ndarray

    @classmethod
    def empty(cls, num_classes: int = 1, with_objectness: bool = False) -> "Candidates":
        return cls(
            boxes=np.zeros((0, 4), dtype=np.float32),
            objectness=np.zeros((0,), dtype=np.float32) if with_objectness else None,
            class_scores=np.zeros((0, max(1, num_classes)), dtype=np.float32),
        )

    def __len__(self) -> int:
        return int(self.boxes.shape[0])

    def __iter__(self) -> Iterator[CandidateDetection]:
        for i in range(len(self)):
            yield self[i]

    def __getitem__(self, i: int) -> CandidateDetection:
        cx, cy, w, h = (float(v) for v in self.boxes[i])
        obj = None if self.objectness is None else float(self.objectness[i])
        return CandidateDetection(
            box=NormalizedRect(cx, cy, w, h),
            objectness=obj,
            class_scores=tuple(float(s) for s in self.class_scores[i]),
        )

    @property
    def class_ids(self) -> np.ndarray:
        if len(self) == 0:
            return np.zeros((0,), dtype=np.int64)
        return np.argmax(self.class_scores, axis=1)

    @property
    def confidence(self) -> np.ndarray:
        if len(self) == 0:
            return np.zeros((0,), dtype=np.float32)
        best = self.class_scores[np.arange(len(self)), self.class_ids]
        if self.objectness is None:
            return best
        return self.objectness * best

    def boxes_xyxy(self) -> np.ndarray:
        """Normalized cxcywh -> normalized xyxy."""

        cx, cy, w, h = self.boxes.T
        return np.stack([cx - w / 2, cy - h / 2, cx + w / 2, cy + h / 2], axis=1)

    def select(self, index: Union[np.ndarray, Sequence[int]]) -> "Candidates":
        """Subset by boolean mask or integer indices (order follows `index`)."""

        idx = np.asarray(index)
        if idx.dtype != bool:
            idx = idx.astype(np.int64)
        return Candidates(
            boxes=self.boxes[idx],
            objectness=None if self.objectness is None else self.objectness[idx],
            class_scores=self.class_scores[idx],
        )


def _as_2d(tensor: np.ndarray, layout: ModelLayout) -> np.ndarray:
    p = np.asarray(tensor)
    if p.ndim == 3:
        if p.shape[0] != 1:
            raise MalformedTensor(
                f"Batch > 1 is not supported (got shape {p.shape}). Pass one image at a time.",
                shape=p.shape,
            )
        p = p[0]
    if p.ndim != 2 or tuple(p.shape) != layout.expected_shape:
        raise MalformedTensor(
            f"Tensor shape {tuple(np.asarray(tensor).shape)} does not match {layout.variant.value} "
            f"layout {layout.expected_shape}",
            shape=np.asarray(tensor).shape,
        )
    return p.astype(np.float32, copy=False)


def decode_tensor(tensor: np.ndarray, layout: ModelLayout) -> Candidates:
    """
    Interpret a raw detector output as candidate detections.

    Empty tensors decode to an empty batch. Any other shape that does not
    match `layout` raises MalformedTensor; nothing is partially decoded.
    """

    if tensor is None or np.asarray(tensor).size == 0:
        return Candidates.empty(layout.num_classes, layout.has_objectness)

    p = _as_2d(tensor, layout)

    if layout.variant is LayoutVariant.ROW_MAJOR:
        boxes = p[:, 0:4]
        objectness = p[:, 4]
        class_scores = p[:, 5:]
    else:
        boxes = p[0:4, :].T  # (N, 4) as cx, cy, w, h
        rest = p[4:, :]
        if layout.has_objectness:
            objectness = rest[0, :]
            class_scores = rest[1:, :].T
        else:
            objectness = None
            class_scores = rest.T

    boxes = np.array(boxes, dtype=np.float32)
    if layout.box_units is BoxUnits.PIXELS:
        in_w, in_h = layout.input_size
        boxes[:, [0, 2]] /= float(in_w)
        boxes[:, [1, 3]] /= float(in_h)

    return Candidates(
        boxes=boxes,
        objectness=None if objectness is None else np.array(objectness, dtype=np.float32),
        class_scores=np.array(class_scores, dtype=np.float32),
    )

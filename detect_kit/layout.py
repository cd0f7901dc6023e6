from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple


class LayoutVariant(str, Enum):
    # (N, 5 + C): [cx, cy, w, h, obj, class_scores...] per row, e.g. YOLOv5 25200 x 85
    ROW_MAJOR = "row"
    # (4 [+1] + C, N): one channel per row, e.g. YOLOv8 84 x 8400
    CHANNEL_MAJOR = "channel"


class BoxUnits(str, Enum):
    NORMALIZED = "normalized"
    PIXELS = "pixels"


@dataclass(frozen=True)
class ModelLayout:
    """
    Describes how to index a detector's raw output tensor.

    Built once when the detector is initialized and passed explicitly into
    every decode call.
    """

    variant: LayoutVariant
    input_size: Tuple[int, int]  # (w, h)
    num_boxes: int
    num_classes: int
    box_units: BoxUnits = BoxUnits.PIXELS
    # Only meaningful for CHANNEL_MAJOR; ROW_MAJOR always carries objectness.
    has_objectness: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "variant", LayoutVariant(self.variant))
        object.__setattr__(self, "box_units", BoxUnits(self.box_units))
        w, h = self.input_size
        if int(w) <= 0 or int(h) <= 0:
            raise ValueError(f"input_size must be positive, got {self.input_size}")
        object.__setattr__(self, "input_size", (int(w), int(h)))
        if self.num_boxes < 0:
            raise ValueError("num_boxes must be >= 0")
        if self.num_classes < 1:
            raise ValueError("num_classes must be >= 1")
        if self.variant is LayoutVariant.ROW_MAJOR:
            object.__setattr__(self, "has_objectness", True)

    @property
    def num_channels(self) -> int:
        return 4 + int(self.has_objectness) + self.num_classes

    @property
    def expected_shape(self) -> Tuple[int, int]:
        if self.variant is LayoutVariant.ROW_MAJOR:
            return self.num_boxes, self.num_channels
        return self.num_channels, self.num_boxes


def infer_layout(
    shape: Sequence[int],
    input_size: Tuple[int, int],
    *,
    variant: Optional[LayoutVariant] = None,
    box_units: BoxUnits = BoxUnits.PIXELS,
    has_objectness: Optional[bool] = None,
    num_classes: Optional[int] = None,
) -> ModelLayout:
    """
    Build a ModelLayout from the output shape reported by an inference engine.

    A leading batch dimension of 1 is ignored; a dynamic (None) batch counts
    as 1. When `variant` is None the channel axis is taken to be the small one
    and the anchor axis the large one; shapes where that is not obvious need
    an explicit variant.
    """

    raw = list(shape)
    if len(raw) == 3 and raw[0] is None:
        raw[0] = 1
    if any(d is None for d in raw):
        raise ValueError(f"Detector output shape {tuple(shape)} has dynamic dimensions.")
    dims = [int(d) for d in raw]
    if len(dims) == 3:
        if dims[0] != 1:
            raise ValueError(f"Batch > 1 is not supported (got shape {tuple(dims)}).")
        dims = dims[1:]
    if len(dims) != 2:
        raise ValueError(f"Unsupported detector output shape: {tuple(shape)}")

    h, w = dims
    if variant is None:
        small, large = (h, w) if h <= w else (w, h)
        if small < 5 or large / max(small, 1) < 4:
            raise ValueError(
                f"Cannot infer layout variant from shape {tuple(shape)}; pass variant=... explicitly."
            )
        variant = LayoutVariant.CHANNEL_MAJOR if h <= w else LayoutVariant.ROW_MAJOR
    variant = LayoutVariant(variant)

    if variant is LayoutVariant.ROW_MAJOR:
        num_boxes, channels = h, w
        objectness = True
    else:
        channels, num_boxes = h, w
        if has_objectness is not None:
            objectness = bool(has_objectness)
        elif num_classes is not None:
            objectness = channels == 5 + int(num_classes)
        else:
            # YOLOv8-style exports have no objectness row.
            objectness = False

    derived_classes = channels - 4 - int(objectness)
    if num_classes is not None and int(num_classes) != derived_classes:
        raise ValueError(
            f"Shape {tuple(shape)} implies {derived_classes} classes, but num_classes={num_classes}."
        )

    return ModelLayout(
        variant=variant,
        input_size=input_size,
        num_boxes=num_boxes,
        num_classes=derived_classes,
        box_units=box_units,
        has_objectness=objectness,
    )

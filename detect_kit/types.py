from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class Rect:
    """
    Axis-aligned rectangle in xyxy pixel coordinates.
    """

    left: float
    top: float
    right: float
    bottom: float

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    @property
    def area(self) -> float:
        return max(0.0, self.width) * max(0.0, self.height)

    @property
    def center(self) -> Tuple[float, float]:
        return (self.left + self.right) * 0.5, (self.top + self.bottom) * 0.5

    def intersects(self, other: "Rect") -> bool:
        """
        True when the overlap has strictly positive extent on both axes.
        Rectangles that only share an edge do not intersect.
        """

        return (
            self.left < other.right
            and other.left < self.right
            and self.top < other.bottom
            and other.top < self.bottom
        )

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        return self.left, self.top, self.right, self.bottom


@dataclass(frozen=True)
class NormalizedRect:
    """
    Box in model-input space as (cx, cy, w, h), each normalized to [0, 1]
    relative to the model input size.
    """

    cx: float
    cy: float
    w: float
    h: float

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        hw = self.w / 2
        hh = self.h / 2
        return self.cx - hw, self.cy - hh, self.cx + hw, self.cy + hh


@dataclass(frozen=True)
class CandidateDetection:
    """
    Raw detection hypothesis before filtering and suppression.
    """

    box: NormalizedRect
    objectness: Optional[float]
    class_scores: Tuple[float, ...]

    @property
    def class_id(self) -> int:
        if not self.class_scores:
            return 0
        best = 0
        for i, s in enumerate(self.class_scores):
            if s > self.class_scores[best]:
                best = i
        return best

    @property
    def confidence(self) -> float:
        best = self.class_scores[self.class_id] if self.class_scores else 1.0
        if self.objectness is None:
            return float(best)
        return float(self.objectness * best)


@dataclass(frozen=True)
class Detection:
    """
    Final detection in original image pixel coordinates.

    x1 < x2 and y1 < y2 always hold, and every coordinate lies inside the
    image it was detected in.
    """

    x1: float
    y1: float
    x2: float
    y2: float
    confidence: float
    class_id: int = 0
    class_name: str = "person"

    def __post_init__(self) -> None:
        if not (self.x1 < self.x2 and self.y1 < self.y2):
            raise ValueError(f"Degenerate detection box: {self.as_xyxy()}")
        if not (0.0 < self.confidence <= 1.0):
            raise ValueError(f"confidence must be in (0, 1], got {self.confidence}")

    @property
    def bounding_box(self) -> Rect:
        return Rect(self.x1, self.y1, self.x2, self.y2)

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        return self.x1, self.y1, self.x2, self.y2

    def __str__(self) -> str:
        return (
            f"Detection(class={self.class_name}, conf={self.confidence:.2f}, "
            f"box=({self.x1:.0f}, {self.y1:.0f}, {self.x2:.0f}, {self.y2:.0f}))"
        )

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from detect_kit.types import Detection, Rect


Color = Tuple[int, int, int]


@dataclass(frozen=True)
class ZoneSpec:
    """
    Zone defined as fractions of image width/height (x1, y1, x2, y2).
    """

    name: str
    x1: float
    y1: float
    x2: float
    y2: float
    color: Color = (0, 255, 255)

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise ValueError("zone name must be a non-empty string")
        for key in ("x1", "y1", "x2", "y2"):
            v = getattr(self, key)
            if isinstance(v, bool) or not isinstance(v, (int, float)):
                raise ValueError(f"zone {self.name!r}: {key} must be a number")
            if not (0.0 <= float(v) <= 1.0):
                raise ValueError(f"zone {self.name!r}: {key} must be within [0, 1]")
        if not (self.x1 < self.x2 and self.y1 < self.y2):
            raise ValueError(f"zone {self.name!r}: expected x1 < x2 and y1 < y2")
        if len(self.color) != 3:
            raise ValueError(f"zone {self.name!r}: color must be a (B, G, R) triple")

    def to_rect(self, width: int, height: int) -> Rect:
        # Pixel offsets are truncated to whole pixels.
        return Rect(
            left=float(int(width * self.x1)),
            top=float(int(height * self.y1)),
            right=float(int(width * self.x2)),
            bottom=float(int(height * self.y2)),
        )


@dataclass(frozen=True)
class Zone:
    name: str
    rect: Rect
    color: Color = (0, 255, 255)


DEFAULT_ZONE_SPECS: Tuple[ZoneSpec, ...] = (
    ZoneSpec("driver", 0.10, 0.20, 0.45, 0.80, color=(255, 0, 0)),
    ZoneSpec("passenger", 0.55, 0.20, 0.90, 0.80, color=(0, 255, 0)),
    ZoneSpec("exchange", 0.35, 0.30, 0.65, 0.70, color=(0, 0, 255)),
)


def _check_unique(specs: Sequence[ZoneSpec]) -> None:
    seen = set()
    for s in specs:
        if s.name in seen:
            raise ValueError(f"Duplicate zone name: {s.name!r}")
        seen.add(s.name)


def build_zones(specs: Sequence[ZoneSpec], width: int, height: int) -> Tuple[Zone, ...]:
    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid image size: {(width, height)}")
    _check_unique(specs)
    return tuple(Zone(name=s.name, rect=s.to_rect(width, height), color=s.color) for s in specs)


class ZoneSet:
    """
    Zone specs plus the pixel zones built for the most recent image size.
    Zones are rebuilt whenever the size changes.
    """

    def __init__(self, specs: Sequence[ZoneSpec] = DEFAULT_ZONE_SPECS):
        specs = tuple(specs)
        _check_unique(specs)
        self.specs = specs
        self._size: Optional[Tuple[int, int]] = None
        self._zones: Tuple[Zone, ...] = ()

    def for_size(self, width: int, height: int) -> Tuple[Zone, ...]:
        if self._size != (width, height):
            # Build first so a bad size leaves the cache untouched.
            zones = build_zones(self.specs, width, height)
            self._zones = zones
            self._size = (width, height)
        return self._zones

    def __len__(self) -> int:
        return len(self.specs)


class ZoneState(Mapping[str, bool]):
    """
    Read-only {zone name: occupied} result of one evaluation. Keeps zone order.
    """

    def __init__(self, flags: Mapping[str, bool]):
        self._flags = MappingProxyType(dict(flags))

    def __getitem__(self, name: str) -> bool:
        return self._flags[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._flags)

    def __len__(self) -> int:
        return len(self._flags)

    @property
    def any_occupied(self) -> bool:
        return any(self._flags.values())

    def occupied_zones(self) -> List[str]:
        return [name for name, hit in self._flags.items() if hit]

    def as_dict(self) -> Dict[str, bool]:
        return dict(self._flags)

    def __repr__(self) -> str:
        return f"ZoneState({dict(self._flags)!r})"

    def __str__(self) -> str:
        return ", ".join(f"{name}={'YES' if hit else 'no'}" for name, hit in self._flags.items())


def evaluate_zones(
    detections: Iterable[Detection],
    zones: Sequence[Zone],
    *,
    class_filter: int = 0,
    confidence_threshold: float = 0.5,
) -> ZoneState:
    """
    Mark every zone that a qualifying detection intersects.

    A detection qualifies when its class is `class_filter` and its confidence
    is strictly above `confidence_threshold`. Touching edges do not count.
    """

    flags: Dict[str, bool] = {z.name: False for z in zones}
    for det in detections:
        if det.class_id != class_filter or not det.confidence > confidence_threshold:
            continue
        box = det.bounding_box
        for zone in zones:
            if not flags[zone.name] and box.intersects(zone.rect):
                flags[zone.name] = True
    return ZoneState(flags)


def empty_state(zones: Sequence[Zone]) -> ZoneState:
    return ZoneState({z.name: False for z in zones})


# ---------------------------------------------------------------------- #
# JSON I/O
# ---------------------------------------------------------------------- #
def zone_spec_from_dict(raw: object, idx: int = 0) -> ZoneSpec:
    if not isinstance(raw, dict):
        raise ValueError(f"Zone at index {idx} must be an object")
    allowed = {"name", "x1", "y1", "x2", "y2", "color"}
    unknown = sorted(set(raw.keys()) - allowed)
    if unknown:
        raise ValueError(f"Unknown zone keys at index {idx}: {unknown}")
    missing = sorted(k for k in ("name", "x1", "y1", "x2", "y2") if k not in raw)
    if missing:
        raise ValueError(f"Zone at index {idx} is missing keys: {missing}")

    color = raw.get("color", (0, 255, 255))
    if (
        not isinstance(color, (list, tuple))
        or len(color) != 3
        or not all(isinstance(c, int) and not isinstance(c, bool) and 0 <= c <= 255 for c in color)
    ):
        raise ValueError(f"Zone at index {idx}: color must be three integers in [0, 255]")

    return ZoneSpec(
        name=raw["name"],
        x1=raw["x1"],
        y1=raw["y1"],
        x2=raw["x2"],
        y2=raw["y2"],
        color=(int(color[0]), int(color[1]), int(color[2])),
    )


def zone_spec_to_dict(spec: ZoneSpec) -> Dict[str, object]:
    return {
        "name": spec.name,
        "x1": float(spec.x1),
        "y1": float(spec.y1),
        "x2": float(spec.x2),
        "y2": float(spec.y2),
        "color": [int(c) for c in spec.color],
    }


def load_zones_json(path: Path) -> Tuple[ZoneSpec, ...]:
    raw = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError("Zones JSON must be an object.")
    zones = raw.get("zones")
    if not isinstance(zones, list) or not zones:
        raise ValueError("Zones JSON must include 'zones' as a non-empty list.")
    specs = tuple(zone_spec_from_dict(z, i) for i, z in enumerate(zones))
    _check_unique(specs)
    return specs


def save_zones_json(path: Path, specs: Sequence[ZoneSpec]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = {"zones": [zone_spec_to_dict(s) for s in specs]}
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")

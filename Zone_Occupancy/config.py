from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from detect_kit.postprocess import PostConfig

from .zones import DEFAULT_ZONE_SPECS, ZoneSpec, zone_spec_from_dict


DEFAULT_CONFIDENCE_THRESHOLD = 0.5
DEFAULT_NMS_IOU_THRESHOLD = 0.45
DEFAULT_ZONE_CONFIDENCE_THRESHOLD = 0.5


@dataclass(frozen=True)
class OccupancyProfile:
    schema_version: int = 1
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD
    nms_iou_threshold: float = DEFAULT_NMS_IOU_THRESHOLD
    zone_confidence_threshold: float = DEFAULT_ZONE_CONFIDENCE_THRESHOLD
    # None keeps every class; zone evaluation still only looks at `zone_class_id`.
    allowed_class_ids: Optional[Tuple[int, ...]] = (0,)
    zone_class_id: int = 0
    class_agnostic_nms: bool = True
    max_detections: int = 300
    zones: Tuple[ZoneSpec, ...] = DEFAULT_ZONE_SPECS
    notes: Optional[str] = None

    def __post_init__(self) -> None:
        if self.schema_version != 1:
            raise ValueError("occupancy profile schema_version must be 1")
        if not (0.0 <= self.confidence_threshold < 1.0):
            raise ValueError("confidence_threshold must be within [0, 1)")
        if not (0.0 < self.nms_iou_threshold <= 1.0):
            raise ValueError("nms_iou_threshold must be within (0, 1]")
        if not (0.0 <= self.zone_confidence_threshold < 1.0):
            raise ValueError("zone_confidence_threshold must be within [0, 1)")
        if self.max_detections < 1:
            raise ValueError("max_detections must be >= 1")
        if self.zone_class_id < 0:
            raise ValueError("zone_class_id must be >= 0")
        if not self.zones:
            raise ValueError("zones must not be empty")
        names = [z.name for z in self.zones]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate zone names: {names}")

    def post_config(self) -> PostConfig:
        return PostConfig(
            conf_threshold=self.confidence_threshold,
            iou_threshold=self.nms_iou_threshold,
            max_detections=self.max_detections,
            class_agnostic_nms=self.class_agnostic_nms,
            class_ids=self.allowed_class_ids,
        )


def _optional_number(payload: Dict[str, Any], key: str, default: float) -> float:
    if key not in payload:
        return default
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number")
    return float(value)


def _optional_int(payload: Dict[str, Any], key: str, default: int) -> int:
    if key not in payload:
        return default
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer")
    return int(value)


def _require_int(payload: Dict[str, Any], key: str) -> int:
    if key not in payload:
        raise ValueError(f"Missing required key: {key}")
    return _optional_int(payload, key, 0)


def _class_ids(payload: Dict[str, Any]) -> Optional[Tuple[int, ...]]:
    if "allowed_class_ids" not in payload:
        return (0,)
    value = payload["allowed_class_ids"]
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(v, int) and not isinstance(v, bool) and v >= 0 for v in value):
        raise ValueError("allowed_class_ids must be null or a list of non-negative integers")
    return tuple(sorted(set(value)))


def load_occupancy_profile(path: Path) -> OccupancyProfile:
    if not path.exists():
        raise FileNotFoundError(f"Occupancy profile not found: {path}")
    raw = path.read_text(encoding="utf-8")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid occupancy profile JSON: {path}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Occupancy profile must be a JSON object")

    allowed = {
        "schema_version",
        "confidence_threshold",
        "nms_iou_threshold",
        "zone_confidence_threshold",
        "allowed_class_ids",
        "zone_class_id",
        "class_agnostic_nms",
        "max_detections",
        "zones",
        "notes",
    }
    unknown = sorted(set(payload.keys()) - allowed)
    if unknown:
        raise ValueError(f"Unknown occupancy profile keys: {unknown}")

    class_agnostic = payload.get("class_agnostic_nms", True)
    if not isinstance(class_agnostic, bool):
        raise ValueError("class_agnostic_nms must be a boolean")

    zones_raw = payload.get("zones")
    if zones_raw is None:
        zones = DEFAULT_ZONE_SPECS
    else:
        if not isinstance(zones_raw, list) or not zones_raw:
            raise ValueError("zones must be a non-empty list")
        zones = tuple(zone_spec_from_dict(z, i) for i, z in enumerate(zones_raw))

    notes = payload.get("notes")
    if notes is not None and not isinstance(notes, str):
        raise ValueError("notes must be a string if provided")

    return OccupancyProfile(
        schema_version=_require_int(payload, "schema_version"),
        confidence_threshold=_optional_number(payload, "confidence_threshold", DEFAULT_CONFIDENCE_THRESHOLD),
        nms_iou_threshold=_optional_number(payload, "nms_iou_threshold", DEFAULT_NMS_IOU_THRESHOLD),
        zone_confidence_threshold=_optional_number(
            payload, "zone_confidence_threshold", DEFAULT_ZONE_CONFIDENCE_THRESHOLD
        ),
        allowed_class_ids=_class_ids(payload),
        zone_class_id=_optional_int(payload, "zone_class_id", 0),
        class_agnostic_nms=class_agnostic,
        max_detections=_optional_int(payload, "max_detections", 300),
        zones=zones,
        notes=notes,
    )

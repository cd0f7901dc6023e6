"""
Zone occupancy layer built on top of `detect_kit`.

`detect_kit` turns frames into person detections; this package decides what
those detections mean for a set of named regions:
- zone definitions (fractions of the frame) and evaluation
- occupancy profile (thresholds + zones) loading
- per-frame orchestration with a single in-flight frame
- command-line runner
"""

from __future__ import annotations

from .config import OccupancyProfile, load_occupancy_profile
from .service import FrameResult, OccupancyMonitor
from .zones import (
    DEFAULT_ZONE_SPECS,
    Zone,
    ZoneSet,
    ZoneSpec,
    ZoneState,
    build_zones,
    evaluate_zones,
    load_zones_json,
    save_zones_json,
)

__all__ = [
    "OccupancyProfile",
    "load_occupancy_profile",
    "FrameResult",
    "OccupancyMonitor",
    "DEFAULT_ZONE_SPECS",
    "Zone",
    "ZoneSet",
    "ZoneSpec",
    "ZoneState",
    "build_zones",
    "evaluate_zones",
    "load_zones_json",
    "save_zones_json",
]

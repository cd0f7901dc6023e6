import tempfile
import unittest
from pathlib import Path

from detect_kit.types import Detection, Rect
from Zone_Occupancy.zones import (
    DEFAULT_ZONE_SPECS,
    Zone,
    ZoneSet,
    ZoneSpec,
    build_zones,
    evaluate_zones,
    load_zones_json,
    save_zones_json,
)


def _person(x1: float, y1: float, x2: float, y2: float, conf: float = 0.9, class_id: int = 0) -> Detection:
    return Detection(x1=x1, y1=y1, x2=x2, y2=y2, confidence=conf, class_id=class_id)


class TestZoneEvaluation(unittest.TestCase):
    def setUp(self) -> None:
        # 1000 x 1000 => driver (100, 200, 450, 800), passenger (550, 200, 900, 800),
        # exchange (350, 300, 650, 700)
        self.zones = build_zones(DEFAULT_ZONE_SPECS, 1000, 1000)

    def test_default_zone_rects(self) -> None:
        rects = {z.name: z.rect for z in self.zones}
        self.assertEqual(rects["driver"], Rect(100, 200, 450, 800))
        self.assertEqual(rects["passenger"], Rect(550, 200, 900, 800))
        self.assertEqual(rects["exchange"], Rect(350, 300, 650, 700))

    def test_driver_only(self) -> None:
        state = evaluate_zones([_person(150, 250, 300, 750)], self.zones, confidence_threshold=0.5)
        self.assertEqual(state, {"driver": True, "passenger": False, "exchange": False})
        self.assertEqual(state.occupied_zones(), ["driver"])

    def test_box_spanning_zones_sets_all_of_them(self) -> None:
        state = evaluate_zones([_person(400, 400, 600, 600)], self.zones)
        self.assertEqual(state.as_dict(), {"driver": True, "passenger": True, "exchange": True})

    def test_edge_touching_is_not_intersection(self) -> None:
        # Right edge of the box touches the driver zone's left edge.
        state = evaluate_zones([_person(10, 300, 100, 400)], self.zones)
        self.assertFalse(state["driver"])
        self.assertFalse(state.any_occupied)

    def test_threshold_is_strict_and_configurable(self) -> None:
        det = [_person(150, 250, 300, 750, conf=0.5)]
        self.assertFalse(evaluate_zones(det, self.zones, confidence_threshold=0.5)["driver"])
        self.assertTrue(evaluate_zones(det, self.zones, confidence_threshold=0.3)["driver"])

    def test_other_classes_are_ignored(self) -> None:
        det = [_person(150, 250, 300, 750, class_id=2)]
        self.assertFalse(evaluate_zones(det, self.zones)["driver"])
        self.assertTrue(evaluate_zones(det, self.zones, class_filter=2)["driver"])

    def test_later_detections_never_unset_a_zone(self) -> None:
        dets = [_person(150, 250, 300, 750), _person(0, 0, 50, 50), _person(150, 250, 300, 750, conf=0.1)]
        self.assertTrue(evaluate_zones(dets, self.zones)["driver"])

    def test_no_detections(self) -> None:
        state = evaluate_zones([], self.zones)
        self.assertEqual(list(state), ["driver", "passenger", "exchange"])
        self.assertFalse(state.any_occupied)

    def test_arbitrary_zone_list(self) -> None:
        zones = [Zone("door", Rect(0, 0, 10, 10)), Zone("window", Rect(90, 0, 100, 10))]
        state = evaluate_zones([_person(95, 5, 99, 9)], zones)
        self.assertEqual(state.as_dict(), {"door": False, "window": True})


class TestZoneDefinitions(unittest.TestCase):
    def test_pixel_offsets_are_truncated(self) -> None:
        z = build_zones([ZoneSpec("a", 0.1, 0.2, 0.45, 0.8)], 333, 101)[0]
        self.assertEqual(z.rect, Rect(33, 20, 149, 80))

    def test_invalid_specs_rejected(self) -> None:
        with self.assertRaises(ValueError):
            ZoneSpec("bad", 0.5, 0.2, 0.4, 0.8)
        with self.assertRaises(ValueError):
            ZoneSpec("bad", -0.1, 0.2, 0.4, 0.8)
        with self.assertRaises(ValueError):
            ZoneSpec("", 0.1, 0.2, 0.4, 0.8)
        with self.assertRaises(ValueError):
            build_zones([ZoneSpec("a", 0, 0, 1, 1), ZoneSpec("a", 0, 0, 0.5, 0.5)], 10, 10)

    def test_zone_set_rebuilds_on_size_change(self) -> None:
        zs = ZoneSet()
        first = zs.for_size(1000, 1000)
        self.assertIs(zs.for_size(1000, 1000), first)
        resized = zs.for_size(500, 500)
        self.assertEqual(resized[0].rect, Rect(50, 100, 225, 400))

    def test_zones_json_round_trip(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        path = Path(tmpdir.name) / "zones" / "cabin.json"
        save_zones_json(path, DEFAULT_ZONE_SPECS)
        self.assertEqual(load_zones_json(path), DEFAULT_ZONE_SPECS)

    def test_zones_json_rejects_unknown_keys(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        path = Path(tmpdir.name) / "zones.json"
        path.write_text('{"zones": [{"name": "a", "x1": 0, "y1": 0, "x2": 1, "y2": 1, "z": 3}]}', encoding="utf-8")
        with self.assertRaises(ValueError):
            load_zones_json(path)


if __name__ == "__main__":
    unittest.main()

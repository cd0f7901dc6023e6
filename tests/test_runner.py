import contextlib
import io
import tempfile
import unittest
from pathlib import Path

import cv2
import numpy as np

from detect_kit.letterbox import letterbox
from detect_kit.metadata import load_class_names, load_taxonomy
from detect_kit.types import Detection
from detect_kit.visualize import draw_overlay
from Zone_Occupancy.runner import _parse_canvas, build_parser, main, resolve_profile
from Zone_Occupancy.zones import DEFAULT_ZONE_SPECS, build_zones, evaluate_zones


class TestLetterboxAndOverlay(unittest.TestCase):
    def test_letterbox_pads_symmetrically(self) -> None:
        img = np.full((480, 640, 3), 200, dtype=np.uint8)
        canvas, scale, (dx, dy) = letterbox(img, (1280, 480))
        self.assertEqual(canvas.shape, (480, 1280, 3))
        self.assertEqual(scale, 1.0)
        self.assertEqual((dx, dy), (320.0, 0.0))
        self.assertEqual(int(canvas[10, 10, 0]), 0)
        self.assertEqual(int(canvas[10, 330, 0]), 200)

    def test_overlay_matches_canvas_size(self) -> None:
        img = np.zeros((100, 200, 3), dtype=np.uint8)
        zones = build_zones(DEFAULT_ZONE_SPECS, 200, 100)
        dets = [Detection(30, 30, 70, 70, confidence=0.9)]
        state = evaluate_zones(dets, zones)

        same = draw_overlay(img, dets, zones=zones, occupied=state)
        self.assertEqual(same.shape, img.shape)
        self.assertTrue(same.any())
        self.assertFalse(img.any())

        boxed = draw_overlay(img, dets, zones=zones, occupied=state, canvas_size=(300, 300))
        self.assertEqual(boxed.shape, (300, 300, 3))


class TestMetadata(unittest.TestCase):
    def test_names_block(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        path = Path(tmpdir.name) / "metadata.yaml"
        path.write_text("task: detect\nnames:\n  0: person\n  2: 'car'\nimgsz: [640, 640]\n", encoding="utf-8")

        self.assertEqual(load_class_names(str(path)), {0: "person", 2: "car"})
        taxonomy = load_taxonomy(str(path))
        self.assertEqual(taxonomy.name_for(1), "unknown")
        self.assertEqual(taxonomy.name_for(2), "car")


class TestRunner(unittest.TestCase):
    def setUp(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        self.tmp = Path(tmpdir.name)
        self.image_path = self.tmp / "cabin.png"
        cv2.imwrite(str(self.image_path), np.full((120, 160, 3), 90, dtype=np.uint8))

    def _run(self, *argv: str) -> str:
        buf = io.StringIO()
        with contextlib.redirect_stdout(buf):
            self.assertEqual(main(list(argv)), 0)
        return buf.getvalue()

    def test_image_with_synthetic_fallback(self) -> None:
        out_path = self.tmp / "out" / "overlay.png"
        out = self._run("--image", str(self.image_path), "--save", str(out_path), "--log-level", "ERROR")
        self.assertIn("Detection source: synthetic", out)
        self.assertIn("driver=YES", out)
        self.assertIn("passenger=YES", out)
        self.assertTrue(out_path.exists())

    def test_empty_fallback_with_canvas(self) -> None:
        out_path = self.tmp / "overlay.png"
        out = self._run(
            "--image", str(self.image_path),
            "--fallback", "empty",
            "--save", str(out_path),
            "--canvas", "320x320",
            "--log-level", "ERROR",
        )
        self.assertIn("detections=0", out)
        self.assertIn("driver=no", out)
        self.assertEqual(cv2.imread(str(out_path)).shape, (320, 320, 3))

    def test_cli_overrides_profile(self) -> None:
        args = build_parser().parse_args(
            ["--image", "x.png", "--conf", "0.25", "--zone-conf", "0.3", "--per-class-nms"]
        )
        profile = resolve_profile(args)
        self.assertEqual(profile.confidence_threshold, 0.25)
        self.assertEqual(profile.zone_confidence_threshold, 0.3)
        self.assertFalse(profile.post_config().class_agnostic_nms)

    def test_canvas_parsing(self) -> None:
        self.assertEqual(_parse_canvas("1280x720"), (1280, 720))
        self.assertIsNone(_parse_canvas(None))
        with self.assertRaises(ValueError):
            _parse_canvas("wide")


if __name__ == "__main__":
    unittest.main()

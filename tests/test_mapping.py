import unittest

import numpy as np

from detect_kit.mapping import boxes_to_image_space, display_transform, to_display_space, to_image_space
from detect_kit.types import NormalizedRect, Rect


class TestImageSpace(unittest.TestCase):
    def test_independent_axis_scaling(self) -> None:
        # scaleX = 2, scaleY = 1.5
        r = to_image_space(NormalizedRect(0.5, 0.5, 0.2, 0.2), (640, 640), 1280, 960)
        self.assertAlmostEqual(r.center[0], 640.0)
        self.assertAlmostEqual(r.center[1], 480.0)
        self.assertAlmostEqual(r.width, 256.0)
        self.assertAlmostEqual(r.height, 192.0)

    def test_clamps_to_image_bounds(self) -> None:
        r = to_image_space(NormalizedRect(0.05, 0.95, 0.2, 0.2), (320, 320), 100, 200)
        self.assertEqual(r.left, 0.0)
        self.assertEqual(r.bottom, 200.0)
        self.assertAlmostEqual(r.right, 15.0)
        self.assertAlmostEqual(r.top, 170.0)

    def test_vectorized_matches_scalar(self) -> None:
        boxes = [NormalizedRect(0.5, 0.5, 0.2, 0.2), NormalizedRect(0.9, 0.1, 0.4, 0.3)]
        xyxy = np.array([b.as_xyxy() for b in boxes])
        out = boxes_to_image_space(xyxy, (640, 480), (1920, 1080))
        for row, b in zip(out, boxes):
            r = to_image_space(b, (640, 480), 1920, 1080)
            self.assertTrue(np.allclose(row, r.as_xyxy()))


class TestDisplaySpace(unittest.TestCase):
    def test_wide_canvas_pads_horizontally(self) -> None:
        scale, (dx, dy) = display_transform(640, 480, 1280, 480)
        self.assertEqual(scale, 1.0)
        self.assertEqual((dx, dy), (320.0, 0.0))

    def test_tall_canvas_pads_vertically(self) -> None:
        r = to_display_space(Rect(0, 0, 640, 480), 640, 480, 320, 480)
        self.assertAlmostEqual(r.left, 0.0)
        self.assertAlmostEqual(r.right, 320.0)
        self.assertAlmostEqual(r.top, 120.0)
        self.assertAlmostEqual(r.bottom, 360.0)

    def test_corner_mapping(self) -> None:
        r = to_display_space(Rect(100, 50, 200, 150), 400, 200, 800, 800)
        # scale = 2, offset = (0, 200)
        self.assertEqual(r.as_xyxy(), (200.0, 300.0, 400.0, 500.0))

    def test_invalid_image_size(self) -> None:
        with self.assertRaises(ValueError):
            display_transform(0, 100, 100, 100)


if __name__ == "__main__":
    unittest.main()

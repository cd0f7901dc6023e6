import unittest
from itertools import combinations

import numpy as np

from detect_kit.decode import Candidates
from detect_kit.filtering import filter_candidates
from detect_kit.nms import NMSConfig, iou, nms, suppress
from detect_kit.types import Rect


def _candidates(rows, num_classes: int = 1) -> Candidates:
    """rows: (x1, y1, x2, y2, score[, class_id]) in normalized coordinates."""

    boxes = []
    scores = np.zeros((len(rows), num_classes), dtype=np.float32)
    for i, r in enumerate(rows):
        x1, y1, x2, y2, s = r[:5]
        cls = r[5] if len(r) > 5 else 0
        boxes.append([(x1 + x2) / 2, (y1 + y2) / 2, x2 - x1, y2 - y1])
        scores[i, cls] = s
    return Candidates(boxes=np.array(boxes, dtype=np.float32).reshape(-1, 4), objectness=None, class_scores=scores)


class TestIoU(unittest.TestCase):
    def test_identical_rect_is_one(self) -> None:
        r = Rect(10, 20, 110, 70)
        self.assertEqual(iou(r, r), 1.0)

    def test_disjoint_rects_are_zero(self) -> None:
        self.assertEqual(iou(Rect(0, 0, 10, 10), Rect(20, 20, 30, 30)), 0.0)
        # Sharing an edge still has zero overlap area.
        self.assertEqual(iou(Rect(0, 0, 10, 10), Rect(10, 0, 20, 10)), 0.0)

    def test_degenerate_union_is_zero(self) -> None:
        self.assertEqual(iou(Rect(5, 5, 5, 5), Rect(5, 5, 5, 5)), 0.0)

    def test_partial_overlap(self) -> None:
        self.assertAlmostEqual(iou(Rect(0, 0, 10, 10), Rect(2.5, 0, 12.5, 10)), 0.6)


class TestSuppress(unittest.TestCase):
    def test_overlap_above_threshold_keeps_higher_score(self) -> None:
        # IoU between the two boxes is exactly 0.6.
        cands = _candidates([(0.025, 0.0, 0.125, 0.1, 0.8), (0.0, 0.0, 0.1, 0.1, 0.9)])
        kept = suppress(cands, 0.45)
        self.assertEqual(len(kept), 1)
        self.assertAlmostEqual(float(kept.confidence[0]), 0.9, places=6)

    def test_overlap_below_threshold_keeps_both(self) -> None:
        cands = _candidates([(0.0, 0.0, 0.1, 0.1, 0.9), (0.025, 0.0, 0.125, 0.1, 0.8)])
        self.assertEqual(len(suppress(cands, 0.7)), 2)

    def test_iou_equal_to_threshold_is_suppressed(self) -> None:
        boxes = np.array([[0, 0, 10, 10], [2.5, 0, 12.5, 10]], dtype=np.float64)
        keep = nms(boxes, np.array([0.9, 0.8]), NMSConfig(iou_threshold=0.6))
        self.assertEqual(keep.tolist(), [0])

    def test_equal_scores_keep_input_order(self) -> None:
        boxes = np.array([[0, 0, 1, 1], [5, 5, 6, 6], [10, 10, 11, 11]], dtype=np.float32)
        keep = nms(boxes, np.array([0.5, 0.5, 0.5], dtype=np.float32), NMSConfig())
        self.assertEqual(keep.tolist(), [0, 1, 2])

    def test_random_sets_satisfy_nms_properties(self) -> None:
        rng = np.random.default_rng(7)
        for _ in range(20):
            n = int(rng.integers(1, 40))
            xy = rng.uniform(0, 0.8, size=(n, 2))
            wh = rng.uniform(0.02, 0.2, size=(n, 2))
            rows = [
                (x, y, x + w, y + h, float(s))
                for (x, y), (w, h), s in zip(xy, wh, rng.uniform(0.01, 1.0, size=n))
            ]
            cands = _candidates(rows)
            kept = suppress(cands, 0.45)

            conf = kept.confidence
            self.assertTrue(np.all(conf[:-1] >= conf[1:]))

            original = {tuple(np.round(b, 6)) for b in cands.boxes.tolist()}
            for b in kept.boxes.tolist():
                self.assertIn(tuple(np.round(b, 6)), original)

            rects = [Rect(*b) for b in kept.boxes_xyxy().tolist()]
            for a, b in combinations(rects, 2):
                self.assertLess(iou(a, b), 0.45 + 1e-6)

    def test_per_class_suppression(self) -> None:
        rows = [
            (0.0, 0.0, 0.1, 0.1, 0.9, 0),
            (0.0, 0.0, 0.1, 0.1, 0.8, 1),
            (0.0, 0.0, 0.1, 0.1, 0.7, 1),
        ]
        cands = _candidates(rows, num_classes=2)
        self.assertEqual(len(suppress(cands, 0.45)), 1)
        kept = suppress(cands, 0.45, class_agnostic=False)
        self.assertEqual(len(kept), 2)
        self.assertEqual(kept.class_ids.tolist(), [0, 1])

    def test_max_detections_caps_output(self) -> None:
        rows = [(i * 0.1, 0.0, i * 0.1 + 0.05, 0.05, 0.9 - i * 0.01) for i in range(8)]
        self.assertEqual(len(suppress(_candidates(rows), 0.45, max_detections=3)), 3)

    def test_empty_input(self) -> None:
        self.assertEqual(len(suppress(_candidates([]), 0.45)), 0)
        self.assertEqual(nms(np.zeros((0, 4)), np.zeros((0,)), NMSConfig()).size, 0)


class TestConfidenceFilter(unittest.TestCase):
    def test_threshold_is_strict(self) -> None:
        cands = _candidates([(0, 0, 0.1, 0.1, 0.5), (0, 0, 0.1, 0.1, 0.5001)])
        kept = filter_candidates(cands, 0.5)
        self.assertEqual(len(kept), 1)
        self.assertGreater(float(kept.confidence[0]), 0.5)

    def test_threshold_not_representable_in_float32(self) -> None:
        cands = _candidates([(0, 0, 0.1, 0.1, 0.3)])
        self.assertEqual(len(filter_candidates(cands, 0.3)), 0)

    def test_class_allow_list_preserves_order(self) -> None:
        rows = [
            (0.0, 0, 0.1, 0.1, 0.6, 2),
            (0.2, 0, 0.3, 0.1, 0.9, 0),
            (0.4, 0, 0.5, 0.1, 0.7, 1),
            (0.6, 0, 0.7, 0.1, 0.8, 0),
        ]
        kept = filter_candidates(_candidates(rows, num_classes=3), 0.5, allowed_class_ids={0, 1})
        self.assertEqual(kept.class_ids.tolist(), [0, 1, 0])
        self.assertTrue(np.allclose(kept.confidence, [0.9, 0.7, 0.8]))


if __name__ == "__main__":
    unittest.main()

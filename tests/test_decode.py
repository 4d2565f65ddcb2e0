import unittest

import numpy as np

from retinanet_kit.anchors import anchors_for_shape
from retinanet_kit.decode import BoxDecodeConfig, decode_boxes, decode_with_config
from retinanet_kit.errors import InferenceError


class TestDecodeBoxes(unittest.TestCase):
    def test_zero_deltas_return_anchors(self) -> None:
        anchors = anchors_for_shape((64, 64))
        boxes = decode_boxes(anchors, np.zeros_like(anchors))
        self.assertTrue(np.array_equal(boxes, anchors))

    def test_deltas_scaled_by_std_and_anchor_extent(self) -> None:
        anchors = np.array([[0, 0, 10, 20]], dtype=np.float32)
        deltas = np.array([[1.0, 1.0, -1.0, 0.5]], dtype=np.float32)
        boxes = decode_boxes(anchors, deltas)
        # x uses width 10, y uses height 20
        self.assertTrue(np.allclose(boxes[0], [2.0, 4.0, 8.0, 22.0]))

    def test_mean_is_added_before_scaling(self) -> None:
        anchors = np.array([[0, 0, 10, 10]], dtype=np.float32)
        boxes = decode_boxes(anchors, np.zeros((1, 4)), mean=(0.1, 0.0, 0.0, -0.1), std=(1, 1, 1, 1))
        self.assertTrue(np.allclose(boxes[0], [1.0, 0.0, 10.0, 9.0]))

    def test_legacy_height_uses_width(self) -> None:
        anchors = np.array([[0, 0, 10, 20]], dtype=np.float32)
        deltas = np.array([[0.0, 1.0, 0.0, 0.0]], dtype=np.float32)
        fixed = decode_with_config(anchors, deltas, BoxDecodeConfig())
        legacy = decode_with_config(anchors, deltas, BoxDecodeConfig(legacy_height=True))
        self.assertAlmostEqual(float(fixed[0, 1]), 4.0, places=5)
        self.assertAlmostEqual(float(legacy[0, 1]), 2.0, places=5)

    def test_no_clipping(self) -> None:
        anchors = np.array([[0, 0, 10, 10]], dtype=np.float32)
        boxes = decode_boxes(anchors, np.array([[-5.0, -5.0, 5.0, 5.0]]))
        self.assertTrue(np.allclose(boxes[0], [-10.0, -10.0, 20.0, 20.0]))

    def test_batched_deltas_are_squeezed(self) -> None:
        anchors = np.array([[0, 0, 10, 10], [5, 5, 15, 15]], dtype=np.float32)
        boxes = decode_boxes(anchors, np.zeros((1, 2, 4), dtype=np.float32))
        self.assertTrue(np.array_equal(boxes, anchors))

    def test_shape_mismatch_raises(self) -> None:
        anchors = np.zeros((3, 4), dtype=np.float32)
        with self.assertRaises(InferenceError):
            decode_boxes(anchors, np.zeros((2, 4)))


if __name__ == "__main__":
    unittest.main()

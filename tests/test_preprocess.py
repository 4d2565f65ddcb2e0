import unittest

import numpy as np

from retinanet_kit.errors import ConfigurationError
from retinanet_kit.preprocess import CAFFE_MEANS, normalize, prepare, resize_and_pad


class TestResizeAndPad(unittest.TestCase):
    def test_upscale_square_without_padding(self) -> None:
        image = np.full((50, 50, 3), 200, dtype=np.uint8)
        out, scale, pad_x, pad_y = resize_and_pad(image, (64, 64))
        self.assertEqual(out.shape, (64, 64, 3))
        self.assertAlmostEqual(scale, 1.28)
        self.assertEqual((pad_x, pad_y), (0, 0))

    def test_tall_image_is_padded_on_the_right(self) -> None:
        image = np.full((100, 50, 3), 255, dtype=np.uint8)
        out, scale, pad_x, pad_y = resize_and_pad(image, (64, 64))
        self.assertEqual(out.shape, (64, 64, 3))
        self.assertAlmostEqual(scale, 0.64)
        self.assertEqual((pad_x, pad_y), (32, 0))
        self.assertTrue(np.all(out[:, 32:, :] == 0))
        self.assertTrue(np.all(out[:, :32, :] == 255))

    def test_wide_image_is_padded_at_the_bottom(self) -> None:
        image = np.full((20, 80, 3), 255, dtype=np.uint8)
        out, _, pad_x, pad_y = resize_and_pad(image, (64, 64))
        self.assertEqual((pad_x, pad_y), (0, 48))
        self.assertTrue(np.all(out[16:, :, :] == 0))

    def test_half_pixel_sizes_round_up(self) -> None:
        # scale 0.5: 5 rows -> 2.5 -> 3 rows, leaving 61 rows of padding.
        image = np.zeros((5, 128, 3), dtype=np.uint8)
        out, scale, pad_x, pad_y = resize_and_pad(image, (64, 64))
        self.assertEqual(scale, 0.5)
        self.assertEqual((pad_x, pad_y), (0, 61))
        self.assertEqual(out.shape, (64, 64, 3))

    def test_extreme_aspect_ratio_keeps_one_row(self) -> None:
        image = np.full((1, 1000, 3), 255, dtype=np.uint8)
        out, _, pad_x, pad_y = resize_and_pad(image, (64, 64))
        self.assertEqual((pad_x, pad_y), (0, 63))
        self.assertEqual(out.shape, (64, 64, 3))
        self.assertTrue(np.all(out[1:, :, :] == 0))

    def test_identity_when_sizes_match(self) -> None:
        image = np.arange(64 * 64 * 3, dtype=np.uint8).reshape(64, 64, 3)
        out, scale, pad_x, pad_y = resize_and_pad(image, (64, 64))
        self.assertEqual(scale, 1.0)
        self.assertEqual((pad_x, pad_y), (0, 0))
        self.assertTrue(np.array_equal(out, image))


class TestNormalize(unittest.TestCase):
    def test_tf_mode_maps_to_minus_one_one(self) -> None:
        image = np.array([[[0, 127.5, 255]]], dtype=np.float32)
        self.assertTrue(np.allclose(normalize(image, "tf"), [[[-1.0, 0.0, 1.0]]]))

    def test_caffe_mode_subtracts_means(self) -> None:
        image = np.zeros((2, 2, 3), dtype=np.uint8)
        out = normalize(image, "caffe")
        self.assertTrue(np.allclose(out[0, 0], -CAFFE_MEANS))

    def test_unknown_mode_rejected(self) -> None:
        with self.assertRaises(ConfigurationError):
            normalize(np.zeros((2, 2, 3)), "torch")


class TestPrepare(unittest.TestCase):
    def test_blob_shape_and_padding_record(self) -> None:
        image = np.zeros((100, 50, 3), dtype=np.uint8)
        prep = prepare(image, (64, 64), "tf")
        self.assertEqual(prep.blob.shape, (1, 64, 64, 3))
        self.assertEqual(prep.blob.dtype, np.float32)
        self.assertEqual(prep.orig_size, (50, 100))
        self.assertEqual((prep.pad_x, prep.pad_y), (32, 0))

    def test_padding_is_normalized_like_black_pixels(self) -> None:
        image = np.full((100, 50, 3), 255, dtype=np.uint8)
        prep = prepare(image, (64, 64), "tf")
        self.assertTrue(np.allclose(prep.blob[0, :, 40:, :], -1.0))
        self.assertTrue(np.allclose(prep.blob[0, :, :30, :], 1.0))

    def test_integer_images_of_any_dtype(self) -> None:
        for dtype in (np.int64, np.int32, np.uint16, np.uint8):
            image = np.full((50, 50, 3), 3, dtype=dtype)
            prep = prepare(image, (64, 64), "tf")
            self.assertEqual(prep.blob.shape, (1, 64, 64, 3))
            self.assertEqual(prep.blob.dtype, np.float32)
            self.assertTrue(np.allclose(prep.blob, (3 - 127.5) / 127.5, atol=1e-5))

    def test_uint8_resize_is_not_quantized(self) -> None:
        # Bilinear upscaling of a 0/255 edge produces intermediate values that are
        # not whole numbers when computed in float.
        image = np.zeros((2, 2, 3), dtype=np.uint8)
        image[:, 1, :] = 255
        prep = prepare(image, (3, 3), "caffe")
        pixels = prep.blob[0] + CAFFE_MEANS
        self.assertFalse(np.allclose(pixels, np.round(pixels), atol=1e-3))

    def test_half_pixel_padding_recorded(self) -> None:
        prep = prepare(np.zeros((5, 128, 3), dtype=np.uint8), (64, 64), "tf")
        self.assertEqual((prep.pad_x, prep.pad_y), (0, 61))

    def test_invalid_mode(self) -> None:
        with self.assertRaises(ConfigurationError):
            prepare(np.zeros((10, 10, 3), dtype=np.uint8), (64, 64), "pytorch")

    def test_invalid_image_shape(self) -> None:
        with self.assertRaises(ValueError):
            prepare(np.zeros((10, 10), dtype=np.uint8), (64, 64), "tf")


if __name__ == "__main__":
    unittest.main()

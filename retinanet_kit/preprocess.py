from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .errors import ConfigurationError


PREPROCESSING_MODES = ("tf", "caffe")

# ImageNet channel means in BGR order (VGG / caffe convention).
CAFFE_MEANS = np.array([103.939, 116.779, 123.68], dtype=np.float32)


@dataclass(frozen=True)
class PreprocessResult:
    blob: np.ndarray
    orig_size: Tuple[int, int]
    scale: float
    pad_x: int
    pad_y: int


def check_mode(mode: str) -> str:
    if mode not in PREPROCESSING_MODES:
        raise ConfigurationError(f"preprocessing_mode must be either `tf` or `caffe`, got {mode!r}.")
    return mode


def resize_and_pad(image: np.ndarray, target_hw: Tuple[int, int]) -> Tuple[np.ndarray, float, int, int]:
    """
    Scale the image to fit inside target_hw, keeping aspect ratio, then zero-pad bottom/right.

    Returns:
        padded: (target_h, target_w, 3) image
        scale: resize factor applied to both axes
        pad_x, pad_y: columns/rows of padding added on the right/bottom
    """
    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for resize_and_pad(). Install with `pip install opencv-python`.") from e

    h, w = image.shape[:2]
    target_h, target_w = target_hw
    if target_h <= 0 or target_w <= 0:
        raise ConfigurationError(f"Target size must be positive, got {target_hw}.")

    scale = min(target_h / h, target_w / w)
    # Halves round up; at least one row/column survives extreme aspect ratios.
    resized_h = max(1, int(math.floor(scale * h + 0.5)))
    resized_w = max(1, int(math.floor(scale * w + 0.5)))
    pad_y, pad_x = target_h - resized_h, target_w - resized_w

    if scale != 1:
        image = cv2.resize(image, (resized_w, resized_h), interpolation=cv2.INTER_LINEAR)

    if pad_x != 0 or pad_y != 0:
        image = cv2.copyMakeBorder(image, 0, pad_y, 0, pad_x, cv2.BORDER_CONSTANT, value=(0, 0, 0))

    return image, scale, pad_x, pad_y


def normalize(image: np.ndarray, mode: str) -> np.ndarray:
    """
    `tf` maps [0, 255] to [-1, 1]; `caffe` subtracts per-channel means without scaling.
    """

    check_mode(mode)
    x = image.astype(np.float32)
    if mode == "tf":
        return (x - 127.5) / 127.5
    return x - CAFFE_MEANS


def prepare(image: np.ndarray, target_hw: Tuple[int, int], mode: str) -> PreprocessResult:
    """
    Build the (1, H, W, 3) float32 network input for a single HxWx3 image.
    """

    check_mode(mode)
    if image is None or not hasattr(image, "shape"):
        raise TypeError("image must be a NumPy array.")
    if image.ndim != 3 or image.shape[2] != 3:
        raise ValueError(f"Expected image shape (H, W, 3), got {getattr(image, 'shape', None)}")

    orig_h, orig_w = image.shape[:2]
    # OpenCV cannot resize every dtype (int64 among them), and float input keeps bilinear output unquantized.
    image = image.astype(np.float32, copy=False)
    padded, scale, pad_x, pad_y = resize_and_pad(image, target_hw)
    blob = normalize(padded, mode)[None, ...]

    return PreprocessResult(blob=blob, orig_size=(orig_w, orig_h), scale=scale, pad_x=pad_x, pad_y=pad_y)

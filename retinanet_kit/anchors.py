from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Sequence, Tuple

import numpy as np

from .errors import ConfigurationError


@dataclass(frozen=True)
class AnchorParameters:
    """
    Anchor layout of a trained RetinaNet.

    - sizes/strides: one entry per pyramid level, ascending stride order
    - ratios: height/width ratios
    - scales: multipliers applied to each level's base size
    """

    sizes: Tuple[int, ...] = (32, 64, 128, 256, 512)
    strides: Tuple[int, ...] = (8, 16, 32, 64, 128)
    ratios: Tuple[float, ...] = (0.5, 1.0, 2.0)
    scales: Tuple[float, ...] = (2.0 ** 0.0, 2.0 ** (1.0 / 3.0), 2.0 ** (2.0 / 3.0))

    def __post_init__(self) -> None:
        # Tuples keep the dataclass hashable for the anchor cache.
        for name in ("sizes", "strides", "ratios", "scales"):
            object.__setattr__(self, name, tuple(getattr(self, name)))
        if len(self.sizes) != len(self.strides):
            raise ConfigurationError(
                f"sizes and strides must have the same length (got {len(self.sizes)} and {len(self.strides)})."
            )
        if not self.sizes or not self.ratios or not self.scales:
            raise ConfigurationError("sizes, ratios and scales must not be empty.")
        if any(s <= 0 for s in self.strides):
            raise ConfigurationError(f"strides must be positive, got {self.strides}.")

    @property
    def num_anchors(self) -> int:
        """Anchors per feature-map cell."""
        return len(self.ratios) * len(self.scales)


DEFAULT_ANCHOR_PARAMETERS = AnchorParameters()


def generate_anchors(base_size: float, ratios: Sequence[float], scales: Sequence[float]) -> np.ndarray:
    """
    Reference anchors centered at the origin, shape (len(ratios) * len(scales), 4).

    Ratios form the outer loop and scales the inner one. Area is preserved across ratios:
    w = size * s / sqrt(r), h = size * s * sqrt(r).
    """

    ratios_col = np.repeat(np.asarray(ratios, dtype=np.float64), len(scales))
    scales_col = np.tile(np.asarray(scales, dtype=np.float64), len(ratios))

    sides = base_size * scales_col
    widths = sides / np.sqrt(ratios_col)
    heights = sides * np.sqrt(ratios_col)

    anchors = np.stack([-widths / 2, -heights / 2, widths / 2, heights / 2], axis=1)
    return anchors


def feature_shape(image_shape: Tuple[int, int], stride: int) -> Tuple[int, int]:
    h, w = image_shape
    return (h + stride - 1) // stride, (w + stride - 1) // stride


def shift(shape: Tuple[int, int], stride: int, anchors: np.ndarray) -> np.ndarray:
    """
    Tile reference anchors over every cell of a (rows, cols) feature map.

    Output rows are cell-major in raster order, anchors of a cell contiguous.
    """

    rows, cols = shape
    shift_x = (np.arange(cols, dtype=np.float64) + 0.5) * stride
    shift_y = (np.arange(rows, dtype=np.float64) + 0.5) * stride
    shift_x, shift_y = np.meshgrid(shift_x, shift_y)

    shifts = np.stack([shift_x.ravel(), shift_y.ravel(), shift_x.ravel(), shift_y.ravel()], axis=1)

    # (K, 1, 4) + (1, A, 4) -> (K, A, 4)
    all_anchors = shifts[:, None, :] + anchors[None, :, :]
    return all_anchors.reshape(-1, 4)


@lru_cache(maxsize=8)
def _anchors_cached(image_shape: Tuple[int, int], params: AnchorParameters) -> np.ndarray:
    levels = []
    for size, stride in zip(params.sizes, params.strides):
        base = generate_anchors(size, params.ratios, params.scales)
        levels.append(shift(feature_shape(image_shape, stride), stride, base))

    anchors = np.concatenate(levels, axis=0).astype(np.float32)
    anchors.setflags(write=False)
    return anchors


def anchors_for_shape(
    image_shape: Sequence[int],
    params: AnchorParameters = DEFAULT_ANCHOR_PARAMETERS,
) -> np.ndarray:
    """
    Full ordered anchor set (N, 4) in xyxy input-pixel coordinates for an (H, W) input.

    The result is cached and read-only; copy it before modifying.
    """

    h, w = (int(v) for v in tuple(image_shape)[:2])
    if h <= 0 or w <= 0:
        raise ConfigurationError(f"image_shape must be positive, got {(h, w)}.")
    return _anchors_cached((h, w), params)


def anchor_count(image_shape: Sequence[int], params: AnchorParameters = DEFAULT_ANCHOR_PARAMETERS) -> int:
    h, w = (int(v) for v in tuple(image_shape)[:2])
    total = 0
    for stride in params.strides:
        rows, cols = feature_shape((h, w), stride)
        total += rows * cols * params.num_anchors
    return total

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np

from .errors import InferenceError


@dataclass(frozen=True)
class BoxDecodeConfig:
    """
    Regression normalization used when the network was trained.

    - legacy_height: derive anchor height from x coordinates, as some older converted models expect.
      Only enable it to reproduce those outputs bit for bit.
    """

    mean: Tuple[float, float, float, float] = (0.0, 0.0, 0.0, 0.0)
    std: Tuple[float, float, float, float] = (0.2, 0.2, 0.2, 0.2)
    legacy_height: bool = False


def decode_boxes(
    anchors: np.ndarray,
    deltas: np.ndarray,
    mean: Sequence[float] = (0.0, 0.0, 0.0, 0.0),
    std: Sequence[float] = (0.2, 0.2, 0.2, 0.2),
    legacy_height: bool = False,
) -> np.ndarray:
    """
    Apply per-anchor (dx1, dy1, dx2, dy2) deltas to anchors.

    Each corner moves by (delta * std + mean) times the anchor width (x) or height (y).
    Results are in padded-input pixels and are not clipped.
    """

    anchors = np.asarray(anchors, dtype=np.float32)
    deltas = np.asarray(deltas, dtype=np.float32)
    if deltas.ndim == 3:
        if deltas.shape[0] != 1:
            raise InferenceError(f"Batch > 1 is not supported (got deltas shape {deltas.shape}).")
        deltas = deltas[0]
    if deltas.shape != anchors.shape or anchors.ndim != 2 or anchors.shape[1] != 4:
        raise InferenceError(f"Deltas shape {deltas.shape} does not match anchors shape {anchors.shape}.")

    width = anchors[:, 2] - anchors[:, 0]
    if legacy_height:
        height = width
    else:
        height = anchors[:, 3] - anchors[:, 1]

    mean_arr = np.asarray(mean, dtype=np.float32)
    std_arr = np.asarray(std, dtype=np.float32)
    extent = np.stack([width, height, width, height], axis=1)

    return anchors + (deltas * std_arr + mean_arr) * extent


def decode_with_config(anchors: np.ndarray, deltas: np.ndarray, cfg: BoxDecodeConfig) -> np.ndarray:
    return decode_boxes(anchors, deltas, mean=cfg.mean, std=cfg.std, legacy_height=cfg.legacy_height)

from __future__ import annotations

from pathlib import Path
from typing import Protocol, Union, runtime_checkable

import numpy as np


PathLike = Union[str, Path]


@runtime_checkable
class ImageSource(Protocol):
    """
    Anything that can produce an (H, W, 3) pixel array.
    """

    def to_pixel_array(self) -> np.ndarray:
        ...


class ArrayImageSource:
    """
    Wraps an in-memory (H, W, 3) array. Grayscale (H, W) arrays are expanded to 3 channels
    and a trailing alpha channel is dropped.
    """

    def __init__(self, array: np.ndarray):
        self.array = np.asarray(array)

    def to_pixel_array(self) -> np.ndarray:
        a = self.array
        if a.ndim == 2:
            a = np.repeat(a[:, :, None], 3, axis=2)
        elif a.ndim == 3 and a.shape[2] == 4:
            a = a[:, :, :3]
        if a.ndim != 3 or a.shape[2] != 3:
            raise ValueError(f"Expected image shape (H, W, 3), got {self.array.shape}")
        if a.shape[0] == 0 or a.shape[1] == 0:
            raise ValueError(f"Image is empty: {self.array.shape}")
        return a


class FileImageSource:
    """
    Reads an image file with OpenCV (BGR channel order).
    """

    def __init__(self, path: PathLike):
        self.path = Path(path)

    def to_pixel_array(self) -> np.ndarray:
        try:
            import cv2  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError("OpenCV is required to read image files. Install with `pip install opencv-python`.") from e

        if not self.path.exists():
            raise FileNotFoundError(str(self.path))
        image = cv2.imread(str(self.path), cv2.IMREAD_COLOR)
        if image is None:
            raise ValueError(f"Could not decode image: {self.path}")
        return image


def as_image_source(image: Union[ImageSource, np.ndarray, PathLike]) -> ImageSource:
    if isinstance(image, np.ndarray):
        return ArrayImageSource(image)
    if isinstance(image, (str, Path)):
        return FileImageSource(image)
    if isinstance(image, ImageSource):
        return image
    raise TypeError(f"Unsupported image type: {type(image).__name__}")

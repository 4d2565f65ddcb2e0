from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class Detection:
    """
    Labeled box with coordinates given as fractions of the original image width/height.

    Values can sit slightly outside [0, 1] for objects touching the image border.
    """

    label: str
    score: float
    x1: float
    y1: float
    x2: float
    y2: float
    class_id: Optional[int] = None

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        return self.x1, self.y1, self.x2, self.y2

    def to_pixels(self, width: int, height: int) -> Tuple[float, float, float, float]:
        return self.x1 * width, self.y1 * height, self.x2 * width, self.y2 * height

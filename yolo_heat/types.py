from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class Detection:
    """
    One detection in source-image pixel coordinates (x1 <= x2, y1 <= y2).
    """

    class_id: int
    score: float
    x1: float
    y1: float
    x2: float
    y2: float

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        return self.x1, self.y1, self.x2, self.y2

    @property
    def width(self) -> float:
        return self.x2 - self.x1

    @property
    def height(self) -> float:
        return self.y2 - self.y1

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x1 + self.x2) * 0.5, (self.y1 + self.y2) * 0.5


@dataclass(frozen=True)
class LabeledBox:
    """Render-ready record: rectangle, resolved label and score."""

    box: Tuple[float, float, float, float]
    label: str
    score: float

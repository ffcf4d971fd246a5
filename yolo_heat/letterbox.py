from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .errors import InvalidInput


@dataclass(frozen=True)
class LetterboxResult:
    """
    Square canvas plus what is needed to map canvas points back to the source image.

    offset_x/offset_y are the (possibly fractional) padding on each side and are what
    to_source/to_canvas use. With odd padding the resized content is pasted at the
    integer pixel pad_left/pad_top = round(offset - 0.1), half a canvas pixel before
    the offset, so mapped points carry at most 0.5 / scale source pixels of bias.
    """

    canvas: np.ndarray
    scale: float
    offset_x: float
    offset_y: float
    src_width: int
    src_height: int

    @property
    def size(self) -> int:
        return int(self.canvas.shape[1])

    @property
    def pad_left(self) -> int:
        return int(round(self.offset_x - 0.1))

    @property
    def pad_top(self) -> int:
        return int(round(self.offset_y - 0.1))

    @property
    def src_size(self) -> Tuple[int, int]:
        return self.src_width, self.src_height

    def to_source(self, x: float, y: float) -> Tuple[float, float]:
        """Canvas space -> source space (unclamped)."""
        return (x - self.offset_x) / self.scale, (y - self.offset_y) / self.scale

    def to_canvas(self, x: float, y: float) -> Tuple[float, float]:
        """Source space -> canvas space."""
        return x * self.scale + self.offset_x, y * self.scale + self.offset_y


def letterbox(
    image: np.ndarray,
    size: int = 640,
    color: Tuple[int, int, int] = (0, 0, 0),
) -> LetterboxResult:
    """
    Resize `image` into a `size` x `size` canvas without distorting its aspect ratio.

    The resized content is centered and the remaining border is filled with `color`.

    Returns:
        LetterboxResult with scale = min(size / w, size / h) and the padding applied
        to each side.
    """
    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for letterbox(). Install with `pip install opencv-python`.") from e

    if image is None or not hasattr(image, "shape"):
        raise InvalidInput("image must be a NumPy array.")
    if image.ndim != 3:
        raise InvalidInput(f"Expected image shape (H, W, C), got {image.shape}")
    if int(size) <= 0:
        raise InvalidInput(f"Canvas size must be > 0, got {size}")

    h, w = image.shape[:2]
    if w <= 0 or h <= 0:
        raise InvalidInput(f"Image dimensions must be > 0, got {w}x{h}")

    size = int(size)
    r = min(size / w, size / h)

    # Extreme aspect ratios can round one side to zero.
    resized_w = max(1, int(round(w * r)))
    resized_h = max(1, int(round(h * r)))
    dw = (size - resized_w) / 2
    dh = (size - resized_h) / 2

    if (w, h) != (resized_w, resized_h):
        image = cv2.resize(image, (resized_w, resized_h), interpolation=cv2.INTER_LINEAR)

    top, bottom = int(round(dh - 0.1)), int(round(dh + 0.1))
    left, right = int(round(dw - 0.1)), int(round(dw + 0.1))
    canvas = cv2.copyMakeBorder(image, top, bottom, left, right, cv2.BORDER_CONSTANT, value=color)

    return LetterboxResult(
        canvas=canvas,
        scale=float(r),
        offset_x=float(dw),
        offset_y=float(dh),
        src_width=int(w),
        src_height=int(h),
    )

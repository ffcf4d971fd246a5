from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from .colormap import jet_array
from .errors import InvalidInput
from .types import Detection


@dataclass(frozen=True)
class HeatmapConfig:
    """
    - downsample: field cell size in source pixels (field is W/d x H/d)
    - sigma_factor: Gaussian sigma relative to the box size
    - alpha: overlay transparency, 0..255
    """

    downsample: int = 4
    sigma_factor: float = 0.25
    alpha: int = 0x66

    def __post_init__(self) -> None:
        if int(self.downsample) < 1:
            raise InvalidInput(f"downsample must be >= 1, got {self.downsample}")
        if not self.sigma_factor > 0:
            raise InvalidInput(f"sigma_factor must be > 0, got {self.sigma_factor}")
        if not 0 <= int(self.alpha) <= 255:
            raise InvalidInput(f"alpha must be within [0, 255], got {self.alpha}")


def field_shape(src_w: int, src_h: int, downsample: int) -> tuple:
    """(rows, cols) of the scalar field for a source image."""
    return max(1, src_h // downsample), max(1, src_w // downsample)


def build_field(
    src_w: int,
    src_h: int,
    detections: Sequence[Detection],
    cfg: HeatmapConfig = HeatmapConfig(),
) -> np.ndarray:
    """
    Splat one anisotropic Gaussian per detection into a low-res float32 field.

    Overlaps are max-blended: every cell holds the largest score-weighted
    contribution touching it. Each splat is cut off at +/- 3 sigma.
    """

    if src_w <= 0 or src_h <= 0:
        raise InvalidInput(f"Image dimensions must be > 0, got {src_w}x{src_h}")

    d = int(cfg.downsample)
    h, w = field_shape(src_w, src_h, d)
    field = np.zeros((h, w), dtype=np.float32)

    for det in detections:
        cx = (det.x1 + det.x2) * 0.5 / d
        cy = (det.y1 + det.y2) * 0.5 / d
        bw = (det.x2 - det.x1) / d
        bh = (det.y2 - det.y1) / d

        # Floor of 1 keeps tiny or zero-area boxes from collapsing to a spike.
        sigma_x = max(1.0, bw * cfg.sigma_factor)
        sigma_y = max(1.0, bh * cfg.sigma_factor)

        x0 = max(0, int(math.floor(cx - 3.0 * sigma_x)))
        x1 = min(w - 1, int(math.ceil(cx + 3.0 * sigma_x)))
        y0 = max(0, int(math.floor(cy - 3.0 * sigma_y)))
        y1 = min(h - 1, int(math.ceil(cy + 3.0 * sigma_y)))
        if x0 > x1 or y0 > y1:
            continue

        xs = np.arange(x0, x1 + 1, dtype=np.float32)
        ys = np.arange(y0, y1 + 1, dtype=np.float32)
        gx = np.exp(-((xs - cx) ** 2) / (2.0 * sigma_x * sigma_x))
        gy = np.exp(-((ys - cy) ** 2) / (2.0 * sigma_y * sigma_y))
        splat = np.outer(gy, gx).astype(np.float32) * np.float32(det.score)

        window = field[y0 : y1 + 1, x0 : x1 + 1]
        np.maximum(window, splat, out=window)

    return field


def normalize_field(field: np.ndarray) -> np.ndarray:
    """
    Min/max normalise to [0, 1]. A flat field (max == min) uses a divisor of 1.
    """

    if field.size == 0:
        return field.astype(np.float32)
    mn = float(field.min())
    mx = float(field.max())
    rng = (mx - mn) if mx > mn else 1.0
    return np.clip((field - mn) / rng, 0.0, 1.0).astype(np.float32)


def colorize_field(normalized: np.ndarray, alpha: int) -> np.ndarray:
    """Map a [0, 1] field through jet and attach a constant alpha. Returns (h, w, 4) uint8 RGBA."""
    rgb = jet_array(normalized)
    a = np.full(normalized.shape + (1,), int(alpha) & 0xFF, dtype=np.uint8)
    return np.concatenate([rgb, a], axis=-1)


def heatmap_from_detections(
    src_w: int,
    src_h: int,
    detections: Sequence[Detection],
    cfg: HeatmapConfig = HeatmapConfig(),
) -> np.ndarray:
    """
    Render a full-resolution RGBA confidence heatmap for `detections`.

    Returns:
        uint8 array of shape (src_h, src_w, 4). With no heat at all (no detections,
        or every splat zero or outside the field) the overlay is fully transparent.
    """

    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for heatmap_from_detections(). Install with `pip install opencv-python`.") from e

    if src_w <= 0 or src_h <= 0:
        raise InvalidInput(f"Image dimensions must be > 0, got {src_w}x{src_h}")
    if not detections:
        return np.zeros((src_h, src_w, 4), dtype=np.uint8)

    field = build_field(src_w, src_h, detections, cfg)
    if not np.any(field > 0):
        return np.zeros((src_h, src_w, 4), dtype=np.uint8)
    small = colorize_field(normalize_field(field), cfg.alpha)
    return cv2.resize(small, (int(src_w), int(src_h)), interpolation=cv2.INTER_LINEAR)

from __future__ import annotations

from typing import Tuple

import numpy as np


def _ramp(four_v: float, lo: float, hi: float) -> int:
    return int(max(0.0, min(four_v - lo, -four_v + hi, 1.0)) * 255)


def jet(v: float) -> Tuple[int, int, int]:
    """
    Piecewise-linear "jet" colormap. Returns (r, g, b) in 0..255.

    Callers clamp `v` to [0, 1]; jet(0) is (0, 0, 127) and jet(1) is (127, 0, 0).
    """

    four = 4.0 * v
    return _ramp(four, 1.5, 4.5), _ramp(four, 0.5, 3.5), _ramp(four, -0.5, 2.5)


def jet_array(values: np.ndarray) -> np.ndarray:
    """
    Vectorised `jet` over an array of scalars. Returns uint8 of shape values.shape + (3,).
    """

    four = 4.0 * np.asarray(values, dtype=np.float64)
    channels = []
    for lo, hi in ((1.5, 4.5), (0.5, 3.5), (-0.5, 2.5)):
        c = np.minimum(np.minimum(four - lo, -four + hi), 1.0)
        c = np.maximum(c, 0.0) * 255.0
        channels.append(c.astype(np.uint8))
    return np.stack(channels, axis=-1)

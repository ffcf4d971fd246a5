from __future__ import annotations

import numpy as np

from .errors import InvalidInput


def pack_tensor(canvas: np.ndarray, *, bgr: bool = False) -> np.ndarray:
    """
    Pack an (S, S, 3) uint8 canvas into the model's flat float32 input.

    Layout is row-major and channel-interleaved (R, G, B per pixel), each sample
    divided by 255. No mean/std normalization. Pass `bgr=True` for OpenCV frames
    so the channels are swapped to RGB first.

    Returns:
        float32 array of shape (S * S * 3,)
    """

    if canvas is None or not hasattr(canvas, "shape"):
        raise InvalidInput("canvas must be a NumPy array.")
    if canvas.ndim != 3 or canvas.shape[2] != 3:
        raise InvalidInput(f"Expected canvas shape (S, S, 3), got {canvas.shape}")
    if canvas.shape[0] != canvas.shape[1]:
        raise InvalidInput(f"Canvas must be square, got {canvas.shape[1]}x{canvas.shape[0]}")
    if canvas.dtype != np.uint8:
        raise InvalidInput(f"Canvas must be 8-bit per channel, got dtype {canvas.dtype}")

    if bgr:
        canvas = canvas[:, :, ::-1]
    packed = np.ascontiguousarray(canvas, dtype=np.float32) / np.float32(255.0)
    return packed.reshape(-1)


def as_input_batch(packed: np.ndarray, size: int) -> np.ndarray:
    """View a packed buffer as the (1, S, S, 3) NHWC tensor most exports declare."""
    expected = size * size * 3
    if packed.size != expected:
        raise InvalidInput(f"Packed buffer has {packed.size} values, expected {expected} for size {size}")
    return packed.reshape(1, size, size, 3)

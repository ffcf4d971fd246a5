from __future__ import annotations


class YoloHeatError(Exception):
    """Base class for errors raised by yolo_heat."""


class InvalidInput(YoloHeatError, ValueError):
    """Bad image dimensions, bad parameters or a malformed output tensor."""


class ModelContractViolation(YoloHeatError, ValueError):
    """
    The model output does not follow the [1, N, 6] (cx, cy, w, h, score, cls) contract.
    """


class ResourceUnavailable(YoloHeatError, OSError):
    """A model or label resource could not be read."""

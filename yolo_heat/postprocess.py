from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import AbstractSet, List, Tuple

import numpy as np

from .errors import InvalidInput, ModelContractViolation
from .labels import HOME_CLASS_IDS
from .types import Detection

logger = logging.getLogger(__name__)

ROW_WIDTH = 6


@dataclass(frozen=True)
class DecoderConfig:
    """
    Configuration for decoding [1, N, 6] model output.
    """

    conf_threshold: float = 0.35
    restrict_to_allow_set: bool = True
    allow_set: AbstractSet[int] = HOME_CLASS_IDS


class DetectionDecoder:
    """
    Decode NMS'd model output into source-image detections.

    Expected layout (per image): (1, N, 6) or (N, 6) rows of
    [cx, cy, w, h, score, class_id] in canvas pixels. N is read from the tensor.
    No NMS is run here; padding rows are rejected by the confidence threshold.
    """

    def __init__(self, cfg: DecoderConfig = DecoderConfig()):
        self.cfg = cfg

    def process(
        self,
        preds: np.ndarray,
        orig_size: Tuple[int, int],
        pad: Tuple[float, float] = (0.0, 0.0),
        scale: float = 1.0,
    ) -> List[Detection]:
        """
        Convert raw model output into detections in original image coordinates.

        Args:
            preds: model output for a single image
            orig_size: (width, height) of the source image
            pad: (offset_x, offset_y) applied by the letterbox
            scale: letterbox scale (canvas / source)

        Output order follows the surviving rows; nothing is re-sorted.
        """

        orig_w, orig_h = orig_size
        if orig_w <= 0 or orig_h <= 0:
            raise InvalidInput(f"Source size must be > 0, got {orig_w}x{orig_h}")
        if not scale > 0:
            raise InvalidInput(f"Letterbox scale must be > 0, got {scale}")

        rows = self._rows(preds)
        if rows.shape[0] == 0:
            return []

        scores = rows[:, 4]
        # NaN rows would slip past `score < threshold`, drop them explicitly.
        keep = np.isfinite(rows).all(axis=1) & (scores >= self.cfg.conf_threshold)
        rows = rows[keep]
        if rows.shape[0] == 0:
            return []

        class_ids = np.trunc(rows[:, 5]).astype(np.int64)
        if self.cfg.restrict_to_allow_set:
            mask = np.isin(class_ids, np.fromiter(self.cfg.allow_set, dtype=np.int64))
            rows, class_ids = rows[mask], class_ids[mask]
            if rows.shape[0] == 0:
                return []

        boxes = self._scale_boxes(self._xywh_to_xyxy(rows[:, 0:4]), orig_size, pad, scale)
        scores = rows[:, 4]

        return [
            Detection(
                class_id=int(cls_id),
                score=float(score),
                x1=float(x1),
                y1=float(y1),
                x2=float(x2),
                y2=float(y2),
            )
            for (x1, y1, x2, y2), score, cls_id in zip(boxes, scores, class_ids)
        ]

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #
    def _rows(self, preds: np.ndarray) -> np.ndarray:
        p = np.asarray(preds, dtype=np.float64)
        if p.ndim == 3:
            if p.shape[0] != 1:
                raise InvalidInput(f"Batch > 1 is not supported (got shape {p.shape}). Pass one image at a time.")
            p = p[0]
        if p.ndim != 2:
            raise InvalidInput(f"Unsupported output shape: {p.shape}")
        if p.shape[1] != ROW_WIDTH:
            raise ModelContractViolation(
                f"Expected output rows of {ROW_WIDTH} values (cx, cy, w, h, score, cls), got shape {p.shape}"
            )
        return p

    @staticmethod
    def _xywh_to_xyxy(boxes: np.ndarray) -> np.ndarray:
        cx, cy, w_box, h_box = boxes.T
        return np.stack([cx - w_box / 2, cy - h_box / 2, cx + w_box / 2, cy + h_box / 2], axis=1)

    @staticmethod
    def _scale_boxes(
        boxes: np.ndarray,
        orig_size: Tuple[int, int],
        pad: Tuple[float, float],
        scale: float,
    ) -> np.ndarray:
        """
        Map boxes from the letterboxed canvas back to the source image, clipping to its bounds.
        """

        dw, dh = pad
        boxes[:, [0, 2]] = (boxes[:, [0, 2]] - dw) / scale
        boxes[:, [1, 3]] = (boxes[:, [1, 3]] - dh) / scale

        orig_w, orig_h = orig_size
        boxes[:, [0, 2]] = np.clip(boxes[:, [0, 2]], 0, orig_w)
        boxes[:, [1, 3]] = np.clip(boxes[:, [1, 3]], 0, orig_h)
        # Negative w/h from a bad export would flip corners.
        boxes[:, [0, 2]] = np.sort(boxes[:, [0, 2]], axis=1)
        boxes[:, [1, 3]] = np.sort(boxes[:, [1, 3]], axis=1)
        return boxes

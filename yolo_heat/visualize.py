from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np

from .errors import InvalidInput
from .labels import LabelTable
from .types import Detection, LabeledBox


def _color_for_class_id(class_id: int) -> Tuple[int, int, int]:
    """
    Deterministic BGR color for a class id (OpenCV expects BGR).
    """

    palette = [
        (56, 56, 255),
        (151, 157, 255),
        (31, 112, 255),
        (29, 178, 255),
        (49, 210, 207),
        (10, 249, 72),
        (23, 204, 146),
        (134, 219, 61),
        (52, 147, 26),
        (187, 212, 0),
        (168, 153, 44),
        (255, 194, 0),
        (147, 69, 52),
        (255, 115, 100),
        (236, 24, 0),
        (255, 56, 132),
        (133, 0, 82),
        (255, 56, 203),
        (200, 149, 255),
        (199, 55, 255),
    ]
    # Household ids start at 56; keep neighbouring classes on distinct colors.
    return palette[class_id % len(palette)]


def to_labeled_boxes(detections: Iterable[Detection], labels: Optional[LabelTable] = None) -> List[LabeledBox]:
    """Rectangles + resolved labels + scores, for an external renderer."""
    table = labels if labels is not None else LabelTable()
    return [LabeledBox(box=d.as_xyxy(), label=table.name_for(d.class_id), score=d.score) for d in detections]


def draw_detections(
    image_bgr: np.ndarray,
    detections: Sequence[Detection],
    *,
    labels: Optional[LabelTable] = None,
    show_score: bool = True,
    box_thickness: int = 2,
    font_scale: float = 0.5,
    font_thickness: int = 1,
) -> np.ndarray:
    """
    Draw bounding boxes + labels on an OpenCV BGR image and return a copy.
    """

    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for draw_detections(). Install with `pip install opencv-python`.") from e

    if image_bgr is None or not hasattr(image_bgr, "shape"):
        raise InvalidInput("image_bgr must be a NumPy array (BGR).")
    if image_bgr.ndim != 3 or image_bgr.shape[2] != 3:
        raise InvalidInput(f"Expected image shape (H, W, 3), got {getattr(image_bgr, 'shape', None)}")

    out = image_bgr.copy()
    h, w = out.shape[:2]

    for det, item in zip(detections, to_labeled_boxes(detections, labels)):
        x1, y1, x2, y2 = item.box
        x1i = int(np.clip(round(x1), 0, w - 1))
        y1i = int(np.clip(round(y1), 0, h - 1))
        x2i = int(np.clip(round(x2), 0, w - 1))
        y2i = int(np.clip(round(y2), 0, h - 1))

        color = _color_for_class_id(det.class_id)
        cv2.rectangle(out, (x1i, y1i), (x2i, y2i), color, thickness=box_thickness)

        label = f"{item.label} {item.score:.2f}" if show_score else item.label
        (tw, th), baseline = cv2.getTextSize(label, cv2.FONT_HERSHEY_SIMPLEX, font_scale, font_thickness)
        # Above the box if it fits, else inside.
        y_text_top = y1i - th - baseline
        if y_text_top < 0:
            y_text_top = y1i

        x_text_right = min(x1i + tw, w - 1)
        y_text_bottom = min(y_text_top + th + baseline, h - 1)

        cv2.rectangle(out, (x1i, y_text_top), (x_text_right, y_text_bottom), color, thickness=-1)
        cv2.putText(
            out,
            label,
            (x1i, min(y_text_top + th, h - 1)),
            cv2.FONT_HERSHEY_SIMPLEX,
            font_scale,
            (255, 255, 255),
            thickness=font_thickness,
            lineType=cv2.LINE_AA,
        )

    return out


def overlay_heatmap(image_bgr: np.ndarray, heatmap_rgba: np.ndarray) -> np.ndarray:
    """
    Alpha-composite an RGBA heatmap (same size) over a BGR image and return a copy.
    """

    if image_bgr is None or image_bgr.ndim != 3 or image_bgr.shape[2] != 3:
        raise InvalidInput(f"Expected image shape (H, W, 3), got {getattr(image_bgr, 'shape', None)}")
    if heatmap_rgba.ndim != 3 or heatmap_rgba.shape[2] != 4:
        raise InvalidInput(f"Expected heatmap shape (H, W, 4), got {heatmap_rgba.shape}")
    if heatmap_rgba.shape[:2] != image_bgr.shape[:2]:
        raise InvalidInput(f"Heatmap size {heatmap_rgba.shape[:2]} does not match image size {image_bgr.shape[:2]}")

    color_bgr = heatmap_rgba[:, :, 2::-1].astype(np.float32)
    alpha = heatmap_rgba[:, :, 3:4].astype(np.float32) / 255.0
    blended = image_bgr.astype(np.float32) * (1.0 - alpha) + color_bgr * alpha
    return np.clip(np.rint(blended), 0, 255).astype(np.uint8)

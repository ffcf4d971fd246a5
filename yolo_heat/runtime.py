from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple, Union

import numpy as np

from .errors import InvalidInput, ModelContractViolation
from .heatmap import HeatmapConfig, heatmap_from_detections
from .labels import LabelTable, load_labels
from .letterbox import LetterboxResult, letterbox
from .postprocess import ROW_WIDTH, DecoderConfig, DetectionDecoder
from .tensor import as_input_batch, pack_tensor
from .types import Detection, LabeledBox
from .visualize import to_labeled_boxes

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def find_project_root(
    start: Optional[PathLike] = None,
    markers: Sequence[str] = ("pyproject.toml", ".git"),
) -> Path:
    """
    Best-effort project root discovery, used to resolve relative model/label paths.
    """

    p = Path(start) if start is not None else Path.cwd()
    p = p.resolve()

    if p.is_file():
        p = p.parent

    for parent in (p, *p.parents):
        for m in markers:
            if (parent / m).exists():
                return parent
    return p


def resolve_path(path: PathLike, root: Optional[PathLike] = "auto") -> Path:
    """
    Resolve `path` to an absolute Path.

    - Absolute paths are returned as-is.
    - Relative paths are resolved against `root`, or the project root when "auto"/None.
    """

    p = Path(path)
    if p.is_absolute():
        return p

    if root == "auto" or root is None:
        base = find_project_root()
    else:
        base = Path(root).resolve()

    return (base / p).resolve()


@dataclass(frozen=True)
class LetterboxConfig:
    size: int = 640
    color: Tuple[int, int, int] = (0, 0, 0)


@dataclass(frozen=True)
class PreprocessResult:
    blob: np.ndarray
    letterbox: LetterboxResult


class YoloPipeline:
    """
    letterbox -> pack -> inference -> decode, for one BGR frame at a time.

    The pipeline owns `backend` (if given) and releases it in `close()`; use it as a
    context manager for scoped acquisition. All per-call state is local, so one
    pipeline may serve any single worker at a time.
    """

    def __init__(
        self,
        infer_fn: Callable[[np.ndarray], np.ndarray],
        *,
        backend: Optional[object] = None,
        backend_name: Optional[str] = None,
        letterbox_cfg: LetterboxConfig = LetterboxConfig(),
        decoder_cfg: DecoderConfig = DecoderConfig(),
        heatmap_cfg: HeatmapConfig = HeatmapConfig(),
        labels: Optional[LabelTable] = None,
    ):
        self._infer_fn = infer_fn
        self.backend = backend
        self.backend_name = backend_name
        self.letterbox_cfg = letterbox_cfg
        self.decoder = DetectionDecoder(decoder_cfg)
        self.heatmap_cfg = heatmap_cfg
        self.labels = labels if labels is not None else LabelTable()
        self._closed = False

    def preprocess(self, image_bgr: np.ndarray) -> PreprocessResult:
        if image_bgr is None or not hasattr(image_bgr, "shape"):
            raise InvalidInput("image_bgr must be a NumPy array (BGR).")
        if image_bgr.ndim != 3 or image_bgr.shape[2] != 3:
            raise InvalidInput(f"Expected image shape (H, W, 3), got {getattr(image_bgr, 'shape', None)}")

        lb = letterbox(image_bgr, size=self.letterbox_cfg.size, color=self.letterbox_cfg.color)
        blob = as_input_batch(pack_tensor(lb.canvas, bgr=True), lb.size)
        return PreprocessResult(blob=blob, letterbox=lb)

    def detect(self, image_bgr: np.ndarray) -> List[Detection]:
        if self._closed:
            raise RuntimeError("Pipeline is closed.")
        prep = self.preprocess(image_bgr)
        preds = np.asarray(self._infer_fn(prep.blob))
        logger.debug("input %s -> output %s", prep.blob.shape, preds.shape)

        lb = prep.letterbox
        detections = self.decoder.process(
            preds,
            orig_size=lb.src_size,
            pad=(lb.offset_x, lb.offset_y),
            scale=lb.scale,
        )
        logger.debug("%d detections", len(detections))
        return detections

    __call__ = detect

    def heatmap(self, image_size: Tuple[int, int], detections: Sequence[Detection]) -> np.ndarray:
        """RGBA heatmap for `image_size` = (width, height)."""
        w, h = image_size
        return heatmap_from_detections(w, h, detections, self.heatmap_cfg)

    def labeled(self, detections: Sequence[Detection]) -> List[LabeledBox]:
        return to_labeled_boxes(detections, self.labels)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        close = getattr(self.backend, "close", None)
        if callable(close):
            close()
        self.backend = None

    def __enter__(self) -> "YoloPipeline":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def _check_model_io(input_shape: Sequence[int], output_shape: Sequence[int], size: int) -> None:
    # NHWC (1, S, S, 3) in, (1, N, 6) out; dynamic dims are reported as -1.
    if len(input_shape) != 4:
        raise InvalidInput(f"Model input must be 4-D NHWC, got {tuple(input_shape)}")
    h, w = input_shape[1], input_shape[2]
    for dim in (h, w):
        if dim > 0 and dim != size:
            raise InvalidInput(f"Model expects {w}x{h} input but letterbox size is {size}")
    if not output_shape or output_shape[-1] not in (ROW_WIDTH, -1):
        raise ModelContractViolation(
            f"Model output must end with {ROW_WIDTH} values (cx, cy, w, h, score, cls), got {tuple(output_shape)}"
        )


def load_pipeline(
    model_path: PathLike,
    *,
    backend: Optional[str] = None,
    root: Optional[PathLike] = "auto",
    labels_path: Optional[PathLike] = None,
    letterbox_cfg: LetterboxConfig = LetterboxConfig(),
    decoder_cfg: DecoderConfig = DecoderConfig(),
    heatmap_cfg: HeatmapConfig = HeatmapConfig(),
    onnx_providers: Optional[Sequence[str]] = None,
    use_gpu: bool = True,
    num_threads: int = 4,
) -> YoloPipeline:
    """
    Create a pipeline for a model on disk.

        with load_pipeline("models/yolov8n_float32.tflite", labels_path="models/labels.txt") as pipe:
            detections = pipe(frame)

    Args:
        model_path: model file; relative paths resolve against the project root by default
        backend: "onnxruntime" / "tflite", or None to infer from the extension
        labels_path: optional label file; falls back to the built-in COCO names
    """

    resolved = resolve_path(model_path, root=root)
    labels = load_labels(resolve_path(labels_path, root=root) if labels_path is not None else None)

    chosen = backend
    if chosen is None:
        suffix = resolved.suffix.lower()
        if suffix == ".onnx":
            chosen = "onnxruntime"
        elif suffix == ".tflite":
            chosen = "tflite"
        else:
            raise ValueError(f"Could not infer backend from extension '{suffix}'. Pass backend=... explicitly.")

    chosen = chosen.lower()
    if chosen == "onnxruntime":
        from .backends.onnxruntime_backend import OnnxRuntimeBackend, OnnxRuntimeBackendConfig

        model = OnnxRuntimeBackend(
            resolved,
            OnnxRuntimeBackendConfig(providers=onnx_providers, num_threads=num_threads),
        )
    elif chosen == "tflite":
        from .backends.tflite_backend import TFLiteBackend, TFLiteBackendConfig

        model = TFLiteBackend(resolved, TFLiteBackendConfig(use_gpu=use_gpu, num_threads=num_threads))
    else:
        raise ValueError(f"Unsupported backend: {backend!r}")

    try:
        _check_model_io(model.input_shape, model.output_shape, letterbox_cfg.size)
    except (InvalidInput, ModelContractViolation):
        model.close()
        raise

    return YoloPipeline(
        model.infer,
        backend=model,
        backend_name=chosen,
        letterbox_cfg=letterbox_cfg,
        decoder_cfg=decoder_cfg,
        heatmap_cfg=heatmap_cfg,
        labels=labels,
    )

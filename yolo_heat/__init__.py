"""
Letterbox -> pack -> decode helpers for single-pass YOLO exports with NMS in the
graph ([1, N, 6] output), plus Gaussian-splat confidence heatmaps.

Pure NumPy/OpenCV core; model runtimes (onnxruntime, tflite-runtime) are optional
and only imported by the backend that needs them.
"""

from .types import Detection, LabeledBox
from .errors import InvalidInput, ModelContractViolation, ResourceUnavailable, YoloHeatError
from .letterbox import LetterboxResult, letterbox
from .tensor import as_input_batch, pack_tensor
from .labels import COCO_NAMES, HOME_CLASS_IDS, LabelTable, load_labels
from .postprocess import DecoderConfig, DetectionDecoder
from .colormap import jet, jet_array
from .heatmap import HeatmapConfig, build_field, heatmap_from_detections, normalize_field
from .runtime import LetterboxConfig, YoloPipeline, find_project_root, load_pipeline, resolve_path
from .visualize import draw_detections, overlay_heatmap, to_labeled_boxes
from .stream import FrameResult, LatestFrameRunner, process_stream
from .config import PipelineProfile, load_pipeline_profile

__all__ = [
    "Detection",
    "LabeledBox",
    "YoloHeatError",
    "InvalidInput",
    "ModelContractViolation",
    "ResourceUnavailable",
    "LetterboxResult",
    "letterbox",
    "pack_tensor",
    "as_input_batch",
    "COCO_NAMES",
    "HOME_CLASS_IDS",
    "LabelTable",
    "load_labels",
    "DecoderConfig",
    "DetectionDecoder",
    "jet",
    "jet_array",
    "HeatmapConfig",
    "build_field",
    "normalize_field",
    "heatmap_from_detections",
    "LetterboxConfig",
    "YoloPipeline",
    "find_project_root",
    "load_pipeline",
    "resolve_path",
    "draw_detections",
    "overlay_heatmap",
    "to_labeled_boxes",
    "FrameResult",
    "LatestFrameRunner",
    "process_stream",
    "PipelineProfile",
    "load_pipeline_profile",
]

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from .heatmap import HeatmapConfig
from .postprocess import DecoderConfig
from .runtime import LetterboxConfig


@dataclass(frozen=True)
class PipelineProfile:
    schema_version: int
    input_size: int = 640
    conf_threshold: float = 0.35
    restrict_to_allow_set: bool = True
    labels_path: Optional[str] = None
    heatmap_downsample: int = 4
    heatmap_sigma_factor: float = 0.25
    heatmap_alpha: int = 0x66
    notes: Optional[str] = None

    def __post_init__(self) -> None:
        if self.schema_version != 1:
            raise ValueError("pipeline profile schema_version must be 1")
        if self.input_size < 32:
            raise ValueError("input_size must be >= 32")
        if not 0.0 <= self.conf_threshold <= 1.0:
            raise ValueError("conf_threshold must be within [0, 1]")
        if self.heatmap_downsample < 1:
            raise ValueError("heatmap_downsample must be >= 1")
        if self.heatmap_sigma_factor <= 0:
            raise ValueError("heatmap_sigma_factor must be > 0")
        if not 0 <= self.heatmap_alpha <= 255:
            raise ValueError("heatmap_alpha must be within [0, 255]")

    def letterbox_config(self) -> LetterboxConfig:
        return LetterboxConfig(size=self.input_size)

    def decoder_config(self) -> DecoderConfig:
        return DecoderConfig(conf_threshold=self.conf_threshold, restrict_to_allow_set=self.restrict_to_allow_set)

    def heatmap_config(self) -> HeatmapConfig:
        return HeatmapConfig(
            downsample=self.heatmap_downsample,
            sigma_factor=self.heatmap_sigma_factor,
            alpha=self.heatmap_alpha,
        )


def _require_int(payload: Dict[str, Any], key: str) -> int:
    if key not in payload:
        raise ValueError(f"Missing required key: {key}")
    return _as_int(payload[key], key)


def _as_int(value: Any, key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer")
    return int(value)


def _as_number(value: Any, key: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number")
    return float(value)


def _as_optional_str(value: Any, key: str) -> Optional[str]:
    if value is not None and not isinstance(value, str):
        raise ValueError(f"{key} must be a string if provided")
    return value


def load_pipeline_profile(path: Path) -> PipelineProfile:
    if not path.exists():
        raise FileNotFoundError(f"Pipeline profile not found: {path}")
    raw = path.read_text(encoding="utf-8")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid pipeline profile JSON: {path}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Pipeline profile must be a JSON object")

    allowed = {
        "schema_version",
        "input_size",
        "conf_threshold",
        "restrict_to_allow_set",
        "labels_path",
        "heatmap_downsample",
        "heatmap_sigma_factor",
        "heatmap_alpha",
        "notes",
    }
    unknown = sorted(set(payload.keys()) - allowed)
    if unknown:
        raise ValueError(f"Unknown pipeline profile keys: {unknown}")

    defaults = PipelineProfile(schema_version=1)
    restrict = payload.get("restrict_to_allow_set", defaults.restrict_to_allow_set)
    if not isinstance(restrict, bool):
        raise ValueError("restrict_to_allow_set must be a boolean")

    return PipelineProfile(
        schema_version=_require_int(payload, "schema_version"),
        input_size=_as_int(payload.get("input_size", defaults.input_size), "input_size"),
        conf_threshold=_as_number(payload.get("conf_threshold", defaults.conf_threshold), "conf_threshold"),
        restrict_to_allow_set=restrict,
        labels_path=_as_optional_str(payload.get("labels_path"), "labels_path"),
        heatmap_downsample=_as_int(payload.get("heatmap_downsample", defaults.heatmap_downsample), "heatmap_downsample"),
        heatmap_sigma_factor=_as_number(
            payload.get("heatmap_sigma_factor", defaults.heatmap_sigma_factor), "heatmap_sigma_factor"
        ),
        heatmap_alpha=_as_int(payload.get("heatmap_alpha", defaults.heatmap_alpha), "heatmap_alpha"),
        notes=_as_optional_str(payload.get("notes"), "notes"),
    )

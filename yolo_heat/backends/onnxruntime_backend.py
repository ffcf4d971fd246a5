from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Tuple, Union

import numpy as np

from ..errors import ResourceUnavailable

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

CUDA_PROVIDER = "CUDAExecutionProvider"
CPU_PROVIDER = "CPUExecutionProvider"


@dataclass(frozen=True)
class OnnxRuntimeBackendConfig:
    """
    Configuration for ONNX Runtime inference.

    - providers: explicit ORT providers; None prefers CUDA and falls back to CPU
    - num_threads: intra-op threads used on the CPU path
    - input_name/output_name: override auto-selected I/O names if needed
    """

    providers: Optional[Sequence[str]] = None
    num_threads: int = 4
    input_name: Optional[str] = None
    output_name: Optional[str] = None


class OnnxRuntimeBackend:
    """
    ONNX Runtime backend for exports with NMS in the graph.

    Expects an NHWC float32 blob shaped (1, S, S, 3); returns the (1, N, 6) output.
    """

    def __init__(self, model_path: PathLike, cfg: OnnxRuntimeBackendConfig = OnnxRuntimeBackendConfig()):
        try:
            import onnxruntime as ort  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError(
                "onnxruntime is required for the ONNX backend. Install it with `pip install onnxruntime` "
                "(or `onnxruntime-gpu`)."
            ) from e

        self._ort = ort
        self.model_path = Path(model_path)
        try:
            model_bytes = self.model_path.read_bytes()
        except OSError as exc:
            raise ResourceUnavailable(f"Cannot read model file: {self.model_path}") from exc

        sess_opts = ort.SessionOptions()
        providers = self._select_providers(cfg)
        if CUDA_PROVIDER not in providers:
            sess_opts.intra_op_num_threads = int(cfg.num_threads)

        try:
            self.session = ort.InferenceSession(model_bytes, sess_options=sess_opts, providers=providers)
        except Exception as exc:
            if providers == [CPU_PROVIDER]:
                raise
            logger.warning("ORT session with %s failed (%s); retrying on CPU.", providers, exc)
            sess_opts = ort.SessionOptions()
            sess_opts.intra_op_num_threads = int(cfg.num_threads)
            self.session = ort.InferenceSession(model_bytes, sess_options=sess_opts, providers=[CPU_PROVIDER])

        self.input_name = cfg.input_name or self.session.get_inputs()[0].name
        self.output_name = cfg.output_name or self.session.get_outputs()[0].name
        logger.debug(
            "ORT model %s: input %s %s, output %s %s, providers %s",
            self.model_path,
            self.input_name,
            self.input_shape,
            self.output_name,
            self.output_shape,
            self.providers_in_use,
        )

    def _select_providers(self, cfg: OnnxRuntimeBackendConfig) -> list:
        if cfg.providers is not None:
            return list(cfg.providers)
        available = self._ort.get_available_providers()
        if CUDA_PROVIDER in available:
            return [CUDA_PROVIDER, CPU_PROVIDER]
        logger.warning("CUDA provider not available; running on CPU with %d threads.", cfg.num_threads)
        return [CPU_PROVIDER]

    @staticmethod
    def _static_shape(shape: Sequence[object]) -> Tuple[int, ...]:
        # Dynamic dims come back as strings or None.
        return tuple(int(s) if isinstance(s, int) else -1 for s in shape)

    @property
    def input_shape(self) -> Tuple[int, ...]:
        return self._static_shape(self.session.get_inputs()[0].shape)

    @property
    def output_shape(self) -> Tuple[int, ...]:
        outputs = {o.name: o for o in self.session.get_outputs()}
        return self._static_shape(outputs[self.output_name].shape)

    @property
    def providers_in_use(self) -> Sequence[str]:
        return tuple(self.session.get_providers())

    def infer(self, blob: np.ndarray) -> np.ndarray:
        outputs = self.session.run([self.output_name], {self.input_name: blob})
        return outputs[0]

    def close(self) -> None:
        self.session = None

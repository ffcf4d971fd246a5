from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np

from ..errors import ResourceUnavailable

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass(frozen=True)
class TFLiteBackendConfig:
    """
    Configuration for TFLite inference.

    - use_gpu: try the GPU delegate first
    - gpu_delegate: shared library name of the GPU delegate
    - num_threads: CPU threads used when no delegate is attached
    """

    use_gpu: bool = True
    gpu_delegate: str = "libtensorflowlite_gpu_delegate.so"
    num_threads: int = 4


class TFLiteBackend:
    """
    TFLite interpreter backend (tflite-runtime).

    Input is the (1, S, S, 3) float32 NHWC tensor, output the (1, N, 6) tensor of a
    YOLO export with NMS in the graph.
    """

    def __init__(self, model_path: PathLike, cfg: TFLiteBackendConfig = TFLiteBackendConfig()):
        try:
            from tflite_runtime import interpreter as tflite  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError(
                "tflite-runtime is required for the TFLite backend. Install it with `pip install tflite-runtime`."
            ) from e

        self._tflite = tflite
        self.model_path = Path(model_path)
        try:
            model_bytes = self.model_path.read_bytes()
        except OSError as exc:
            raise ResourceUnavailable(f"Cannot read model file: {self.model_path}") from exc

        self._delegate = self._load_gpu_delegate(cfg) if cfg.use_gpu else None
        if self._delegate is not None:
            self.interpreter = tflite.Interpreter(model_content=model_bytes, experimental_delegates=[self._delegate])
        else:
            self.interpreter = tflite.Interpreter(model_content=model_bytes, num_threads=int(cfg.num_threads))
        self.interpreter.allocate_tensors()

        self._input = self.interpreter.get_input_details()[0]
        self._output = self.interpreter.get_output_details()[0]
        logger.debug(
            "TFLite model %s: input %s %s, output %s %s, gpu=%s",
            self.model_path,
            self.input_shape,
            self._input["dtype"],
            self.output_shape,
            self._output["dtype"],
            self._delegate is not None,
        )

    def _load_gpu_delegate(self, cfg: TFLiteBackendConfig) -> Optional[object]:
        try:
            return self._tflite.load_delegate(cfg.gpu_delegate)
        except (OSError, ValueError, RuntimeError) as exc:
            logger.warning("GPU delegate unavailable (%s); using %d CPU threads.", exc, cfg.num_threads)
            return None

    @property
    def input_shape(self) -> Tuple[int, ...]:
        return tuple(int(s) for s in self._input["shape"])

    @property
    def output_shape(self) -> Tuple[int, ...]:
        return tuple(int(s) for s in self._output["shape"])

    def infer(self, blob: np.ndarray) -> np.ndarray:
        self.interpreter.set_tensor(self._input["index"], blob.astype(self._input["dtype"], copy=False))
        self.interpreter.invoke()
        return np.array(self.interpreter.get_tensor(self._output["index"]))

    def close(self) -> None:
        self.interpreter = None
        self._delegate = None

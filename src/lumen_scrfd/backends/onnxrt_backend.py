"""
ONNX Runtime engine for SCRFD detector models.

This module implements the inference boundary of the detector on top of ONNX
Runtime. It loads a single detector graph, reports its input geometry (fixed
or dynamic) and output layout (batched or not), and runs it on normalized
image tensors. Output decoding happens in `lumen_scrfd.detection`.
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import Any

import numpy as np
import numpy.typing as npt

from .backend_exceptions import (
    BackendError,
    BackendNotInitializedError,
    InferenceError,
    ModelLoadingError,
)
from .base import EngineInfo, InferenceEngine

try:
    import onnxruntime as ort
except ImportError:  # pragma: no cover
    ort = None


logger = __import__("logging").getLogger(__name__)

# device name -> execution provider, in default preference order
_DEVICE_PROVIDERS = {
    "cuda": "CUDAExecutionProvider",
    "coreml": "CoreMLExecutionProvider",
    "directml": "DmlExecutionProvider",
    "openvino": "OpenVINOExecutionProvider",
    "cpu": "CPUExecutionProvider",
}


class ONNXRTEngineError(BackendError):
    """Errors specific to the ONNX Runtime engine."""


class ONNXRTModelLoadingError(ONNXRTEngineError, ModelLoadingError):
    """The ONNX detector graph could not be loaded."""


def _static_dim(value: Any) -> int | None:
    """Positive integer dimension, or None for symbolic/dynamic axes."""
    if isinstance(value, (int, np.integer)) and int(value) > 0:
        return int(value)
    return None


class ONNXRTEngine(InferenceEngine):
    """SCRFD detector engine powered by ONNX Runtime."""

    def __init__(
        self,
        model_path: str | Path,
        providers: list[str] | None = None,
        device_preference: str | None = None,
    ) -> None:
        if ort is None:
            raise ImportError(
                "onnxruntime is required for ONNXRTEngine. Install with `pip install onnxruntime`."
            )
        super().__init__()
        self.model_path = Path(model_path)
        self._providers = providers or self._default_providers(device_preference)
        self._session: ort.InferenceSession | None = None
        self._input_name: str | None = None
        self._input_size: tuple[int, int] | None = None
        self._output_names: list[str] = []
        self._batched: bool = False
        self._load_time_seconds: float | None = None

    def _default_providers(self, device_preference: str | None) -> list[str]:
        """Installed providers in preference order, the preferred device first."""
        installed = set(ort.get_available_providers())
        ordered = [p for p in _DEVICE_PROVIDERS.values() if p in installed]

        wanted = _DEVICE_PROVIDERS.get((device_preference or "").lower())
        if wanted in ordered:
            ordered.remove(wanted)
            ordered.insert(0, wanted)
        return ordered or [_DEVICE_PROVIDERS["cpu"]]

    @staticmethod
    def _infer_device(providers: list[str]) -> str:
        joined = " ".join(providers).lower()
        for device, provider in _DEVICE_PROVIDERS.items():
            if provider.lower() in joined:
                return device
        return "cpu"

    def initialize(self) -> None:
        if self._initialized:
            return
        if not self.model_path.exists():
            raise ONNXRTModelLoadingError(
                f"Detection model not found: {self.model_path}"
            )

        started = time.perf_counter()
        options = ort.SessionOptions()
        options.graph_optimization_level = ort.GraphOptimizationLevel.ORT_ENABLE_ALL
        try:
            session = ort.InferenceSession(
                str(self.model_path), options, providers=self._providers
            )
        except Exception as exc:
            raise ONNXRTModelLoadingError(
                f"Cannot create ONNX Runtime session for {self.model_path}: {exc}"
            ) from exc

        model_input = session.get_inputs()[0]
        outputs = session.get_outputs()
        self._session = session
        self._input_name = model_input.name
        self._input_size = self._infer_input_wh(model_input.shape)
        self._output_names = [out.name for out in outputs]
        # [1, K, C] outputs mean the graph was exported with a batch axis
        self._batched = bool(outputs) and len(outputs[0].shape) == 3
        self._load_time_seconds = time.perf_counter() - started
        self._initialized = True

        logger.info(
            "Loaded %s in %.2fs on %s (input=%s, %d outputs, batched=%s)",
            self.model_path.name,
            self._load_time_seconds,
            self._infer_device(self._providers),
            "dynamic" if self._input_size is None else "%dx%d" % self._input_size,
            len(self._output_names),
            self._batched,
        )

    @staticmethod
    def _infer_input_wh(shape: list[Any]) -> tuple[int, int] | None:
        if len(shape) < 4:
            return None
        h = _static_dim(shape[2])
        w = _static_dim(shape[3])
        if h is None or w is None:
            return None
        return (w, h)

    def get_runtime_info(self) -> EngineInfo:
        version = getattr(ort, "__version__", None)
        return EngineInfo(
            runtime="onnx",
            device=self._infer_device(self._providers),
            model_id=self.model_path.name,
            input_name=self._input_name,
            input_size=self._input_size,
            output_names=list(self._output_names),
            batched=self._batched,
            version=version,
            extra={
                "providers": ",".join(self._providers),
                "load_time": None
                if self._load_time_seconds is None
                else f"{self._load_time_seconds:.3f}",
            },
        )

    def run(self, tensor: npt.NDArray[np.float32]) -> dict[str, npt.NDArray]:
        if not self._initialized or self._session is None:
            raise BackendNotInitializedError("Engine not initialized")

        try:
            outputs = self._session.run(
                None, {self._input_name: np.ascontiguousarray(tensor, dtype=np.float32)}
            )
        except Exception as exc:
            raise InferenceError(f"Face detection inference failed: {exc}") from exc

        logger.debug(
            "Detector produced %d outputs: %s",
            len(outputs),
            [getattr(o, "shape", None) for o in outputs],
        )
        return dict(zip(self._output_names, outputs))

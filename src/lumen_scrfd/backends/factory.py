"""
Engine lookup by runtime name.

Runtime modules are imported only when their runtime package is installed,
so importing `lumen_scrfd.backends` never pulls in an inference library the
caller does not use.
"""

from __future__ import annotations

import importlib.util
import logging
from pathlib import Path

from .base import InferenceEngine

logger = logging.getLogger(__name__)


class RuntimeKind:
    """Runtime kinds for detector inference engines."""

    ONNXRT = "onnxrt"


_ALIASES = {"onnx": RuntimeKind.ONNXRT}

_ENGINE_REGISTRY: dict[str, type[InferenceEngine]] = {}


def register_engine(kind: str, engine_class: type[InferenceEngine]) -> None:
    _ENGINE_REGISTRY[kind] = engine_class


def get_available_engines() -> list[str]:
    """Runtime kinds whose packages are installed, registering their engines."""
    if importlib.util.find_spec("onnxruntime") is None:
        return []

    from .onnxrt_backend import ONNXRTEngine

    register_engine(RuntimeKind.ONNXRT, ONNXRTEngine)
    return [RuntimeKind.ONNXRT]


def create_engine(
    model_path: str | Path,
    runtime: str = RuntimeKind.ONNXRT,
    providers: list[str] | None = None,
    device: str | None = None,
) -> InferenceEngine:
    """
    Create an uninitialized detector engine.

    Args:
        model_path: Detector model file.
        runtime: Runtime kind; "onnx" is accepted for "onnxrt".
        providers: Explicit ONNX Runtime execution providers.
        device: Preferred device such as "cuda", "coreml" or "cpu".

    Raises:
        ValueError: If no engine is registered for `runtime`.
    """
    get_available_engines()

    kind = runtime.lower()
    kind = _ALIASES.get(kind, kind)
    engine_class = _ENGINE_REGISTRY.get(kind)
    if engine_class is None:
        raise ValueError(
            f"Runtime '{runtime}' is not available (installed: {sorted(_ENGINE_REGISTRY)})"
        )

    logger.debug("Creating %s engine for %s", kind, model_path)
    return engine_class(
        model_path=model_path,
        providers=providers,
        device_preference=device,
    )

"""
Base Inference Engine for the SCRFD Detector

This module defines the abstract base class for inference engines, following
Lumen's backend architecture. An engine is the opaque collaborator that runs
the detector network: it accepts a normalized image tensor and returns the
named output tensors of every detection head. Decoding those tensors into
faces is not the engine's concern.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import numpy as np
import numpy.typing as npt

from .backend_exceptions import BackendNotInitializedError


@dataclass
class EngineInfo:
    """Runtime configuration and model metadata for inference engines.

    Attributes:
        runtime: Runtime framework name (e.g., "onnx").
        device: Target device identifier (e.g., "cuda", "cpu").
        model_id: Stable model identifier, usually the model file name.
        input_name: Name of the model's image input.
        input_size: Fixed (width, height) of the model input, or None when
            the model accepts dynamic spatial dimensions.
        output_names: Output tensor names in graph order.
        batched: Whether outputs carry a leading batch dimension.
        version: Runtime version string for compatibility tracking.
        extra: Additional metadata as key-value pairs for extensibility.
    """

    runtime: str
    device: str | None = None
    model_id: str | None = None
    input_name: str | None = None
    input_size: tuple[int, int] | None = None  # (width, height)
    output_names: list[str] = field(default_factory=list)
    batched: bool = False
    version: str | None = None
    extra: dict[str, str | None] = field(default_factory=dict)

    def as_dict(self) -> dict[str, object]:
        """Convert to a plain dict (safe for JSON serialization)."""
        return {
            "runtime": self.runtime,
            "device": self.device,
            "model_id": self.model_id,
            "input_name": self.input_name,
            "input_size": list(self.input_size) if self.input_size else None,
            "output_names": list(self.output_names),
            "batched": self.batched,
            "version": self.version,
            "extra": dict(self.extra),
        }


class InferenceEngine(ABC):
    """Abstract base class defining the detector inference interface.

    Concrete engines (ONNX Runtime, test fakes, ...) load a detector model
    and execute it on a `[1, 3, H, W]` float32 tensor. The engine reports
    its input geometry and output layout through `get_runtime_info()` so the
    detector can decide how to size the input and how to address outputs.

    Attributes:
        _initialized: Flag indicating whether the engine has loaded its model.

    Note:
        Engines are not required to be thread-safe. Callers processing images
        concurrently should use one engine per worker unless the concrete
        engine documents otherwise.
    """

    def __init__(self):
        self._initialized: bool = False

    @abstractmethod
    def initialize(self) -> None:
        """Load the model and prepare the runtime.

        Raises:
            ModelLoadingError: If the model cannot be loaded.

        Note:
            This method should be idempotent.
        """
        self._initialized = True

    def is_initialized(self) -> bool:
        """Check if the engine is ready for inference."""
        return self._initialized

    @abstractmethod
    def get_runtime_info(self) -> EngineInfo:
        """Describe the loaded model's input geometry and output layout."""
        pass

    @abstractmethod
    def run(self, tensor: npt.NDArray[np.float32]) -> dict[str, npt.NDArray]:
        """Execute the detector on one normalized image tensor.

        Args:
            tensor: Input of shape `[1, 3, H, W]`, dtype float32.

        Returns:
            dict[str, ndarray]: Output tensors keyed by output name, in graph
                order (dict insertion order), so index-based addressing of
                outputs stays possible.

        Raises:
            BackendNotInitializedError: If `initialize()` has not been called.
            InferenceError: If the runtime fails. Inference failures are not
                assumed to be transient; the engine does not retry.
        """
        if not self._initialized:
            raise BackendNotInitializedError("Engine not initialized")

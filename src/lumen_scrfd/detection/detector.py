"""
SCRFD face detector.

Ties the pieces of the decode pipeline together:

    image -> letterbox -> tensor -> engine
          -> per-stride decode -> fuse -> NMS -> rescale -> FaceDetectorResult

The detector owns no mutable state besides the engine it was given; each
`detect()` call is independent.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import numpy.typing as npt

from ..backends.base import EngineInfo, InferenceEngine
from ..exceptions import ConfigError
from ..imaging import decode_image, ensure_rgb_uint8, image_size
from ..preprocessing import ensure_triplet, to_tensor
from .decoder import HeadAddress, RawStrideOutput, decode_stride, named_heads
from .fusion import fuse_candidates
from .nms import non_max_suppression
from .results import CandidateBatch, FaceDetectorResult
from .scaling import dynamic_input_size, fit_to_input, rescale_candidates

if TYPE_CHECKING:
    from ..config import DetectionSettings

logger = logging.getLogger(__name__)


@dataclass
class DetectorOptions:
    """Decode and post-processing parameters of `ScrfdDetector`.

    Attributes:
        confidence_threshold: Candidates need a score strictly above this.
        nms_threshold: Boxes overlapping a better box with IoU at or above
            this are suppressed.
        auto_resize: Letterbox images that do not match the model input. When
            False such images raise `DimensionMismatchError`.
        input_size: Force a `(width, height)` model input. None uses the size
            the engine reports, or the stride-aligned image size for models
            with dynamic input.
        strides: Head strides in ascending order.
        num_anchors: Anchors per grid location.
        mean: Per-channel mean on the `[0, 1]` scale.
        std: Per-channel standard deviation on the `[0, 1]` scale.
        heads: Output addressing; None means `score_{s}`/`bbox_{s}`/`kps_{s}`.
        pixel_inclusive_nms: Use `+1` pixel-inclusive areas during NMS.
    """

    confidence_threshold: float = 0.5
    nms_threshold: float = 0.4
    auto_resize: bool = True
    input_size: tuple[int, int] | None = None
    strides: tuple[int, ...] = (8, 16, 32)
    num_anchors: int = 2
    mean: tuple[float, float, float] = (0.5, 0.5, 0.5)
    std: tuple[float, float, float] = (1.0, 1.0, 1.0)
    heads: tuple[HeadAddress, ...] | None = None
    pixel_inclusive_nms: bool = False
    pad_color: tuple[int, int, int] = field(default=(0, 0, 0))

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence_threshold <= 1.0:
            raise ConfigError(
                f"confidence_threshold must be in [0.0, 1.0], got {self.confidence_threshold}"
            )
        if not 0.0 <= self.nms_threshold <= 1.0:
            raise ConfigError(
                f"nms_threshold must be in [0.0, 1.0], got {self.nms_threshold}"
            )
        if not self.strides or any(int(s) <= 0 for s in self.strides):
            raise ConfigError(f"strides must be positive integers, got {self.strides}")
        self.strides = tuple(sorted(int(s) for s in self.strides))
        if self.num_anchors <= 0:
            raise ConfigError(f"num_anchors must be positive, got {self.num_anchors}")
        if self.input_size is not None:
            if len(self.input_size) != 2 or any(int(d) <= 0 for d in self.input_size):
                raise ConfigError(
                    f"input_size must be a positive (width, height), got {self.input_size}"
                )
            self.input_size = (int(self.input_size[0]), int(self.input_size[1]))
            bad = [s for s in self.strides if self.input_size[0] % s or self.input_size[1] % s]
            if bad:
                raise ConfigError(
                    f"input_size {self.input_size} is not divisible by strides {bad}"
                )
        self.mean = ensure_triplet(self.mean)
        self.std = ensure_triplet(self.std)
        if any(s <= 0 for s in self.std):
            raise ConfigError(f"std values must be positive, got {self.std}")

    def resolved_heads(self) -> tuple[HeadAddress, ...]:
        if self.heads is not None:
            return tuple(sorted(self.heads, key=lambda h: h.stride))
        return named_heads(self.strides)


class ScrfdDetector:
    """Face detector decoding SCRFD multi-stride outputs.

    Example:
        ```python
        engine = create_engine("scrfd_2.5g_bnkps.onnx")
        detector = ScrfdDetector(engine, DetectorOptions(confidence_threshold=0.6))
        faces = detector.detect(rgb_image)
        ```
    """

    def __init__(
        self, engine: InferenceEngine, options: DetectorOptions | None = None
    ) -> None:
        self.engine = engine
        self.options = options or DetectorOptions()
        if not self.engine.is_initialized():
            self.engine.initialize()
        self._engine_info: EngineInfo = self.engine.get_runtime_info()
        logger.debug(
            "ScrfdDetector using %s engine (input=%s, batched=%s)",
            self._engine_info.runtime,
            self._engine_info.input_size,
            self._engine_info.batched,
        )

    @classmethod
    def from_config(cls, settings: DetectionSettings) -> ScrfdDetector:
        """Build the engine and the options described by a `DetectionSettings`."""
        from ..backends.factory import create_engine

        engine = create_engine(
            settings.model_path,
            runtime=settings.runtime,
            providers=settings.providers,
            device=settings.device,
        )
        return cls(engine, settings.to_options())

    def required_input_size(self, image_wh: tuple[int, int]) -> tuple[int, int]:
        """Model input `(width, height)` to use for an image of `image_wh`."""
        if self.options.input_size is not None:
            return self.options.input_size
        if self._engine_info.input_size is not None:
            return self._engine_info.input_size
        return dynamic_input_size(image_wh, multiple=max(self.options.strides))

    def detect(self, image: npt.NDArray[Any]) -> list[FaceDetectorResult]:
        """Detect faces in an RGB image.

        Returns:
            list[FaceDetectorResult]: Faces in original image coordinates,
                ordered by descending confidence. Empty when no candidate
                passes the confidence threshold.

        Raises:
            InvalidInputError: If the image array is malformed.
            DimensionMismatchError: If `auto_resize` is off and the image
                does not match the model input size.
            OutputShapeError: If the engine outputs do not match the heads.
            InferenceError: Propagated unchanged from the engine.
        """
        rgb = ensure_rgb_uint8(image)
        input_size = self.required_input_size(image_size(rgb))
        working, meta = fit_to_input(
            rgb, input_size, self.options.auto_resize, self.options.pad_color
        )

        tensor = to_tensor(working, self.options.mean, self.options.std)
        outputs = self.engine.run(tensor)

        candidates = self.decode(outputs, meta.input_size)
        if len(candidates) == 0:
            logger.debug("Detection decode produced no candidates")
            return []

        keep = non_max_suppression(
            candidates.boxes,
            self.options.nms_threshold,
            pixel_inclusive=self.options.pixel_inclusive_nms,
        )
        survivors = rescale_candidates(
            candidates.take(keep), meta.scale_x, meta.scale_y
        )
        logger.debug(
            "NMS kept %d/%d candidates (scale=%.4f)",
            len(survivors),
            len(candidates),
            meta.scale,
        )
        return [FaceDetectorResult.from_candidate(c) for c in survivors]

    def detect_bytes(self, image_bytes: bytes) -> list[FaceDetectorResult]:
        """Decode encoded image bytes and run `detect()`."""
        return self.detect(decode_image(image_bytes))

    def decode(
        self, outputs: dict[str, npt.NDArray], input_size: tuple[int, int]
    ) -> CandidateBatch:
        """Decode all heads and fuse them into one score-ordered batch."""
        batches = []
        for head in self.options.resolved_heads():
            raw = RawStrideOutput.from_outputs(
                outputs,
                head,
                input_size,
                num_anchors=self.options.num_anchors,
                batched=self._engine_info.batched,
            )
            batches.append(
                decode_stride(raw, input_size, self.options.confidence_threshold)
            )
        return fuse_candidates(batches)

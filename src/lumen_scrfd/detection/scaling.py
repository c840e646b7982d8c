"""
Mapping between original image space and the detector's model-input space.

The model input is produced by scaling the original image by a single factor
(never above 1) and padding it, anchored at the top-left corner, to the model
input size. Coordinates therefore map back by a plain division; there is no
padding offset to subtract.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

from ..exceptions import DimensionMismatchError
from ..geometry import scale_factor_to_fit
from ..imaging import Image, image_size, letterbox, letterbox_size
from .results import CandidateBatch


@dataclass(frozen=True)
class ResizeMeta:
    """Metadata produced when fitting an image into the model input.

    `scale` is the requested uniform factor. `scale_x` and `scale_y` are the
    factors actually applied once the resized size was rounded to whole
    pixels; mapping back divides by these.
    """

    orig_size: tuple[int, int]  # (width, height)
    input_size: tuple[int, int]  # (width, height)
    scale: float
    scale_x: float = 1.0
    scale_y: float = 1.0


def dynamic_input_size(
    image_wh: tuple[int, int], multiple: int = 32
) -> tuple[int, int]:
    """Image size rounded up to the next multiple of the largest stride."""
    width, height = image_wh
    return (
        int(math.ceil(width / multiple)) * multiple,
        int(math.ceil(height / multiple)) * multiple,
    )


def fit_to_input(
    image: Image,
    input_size: tuple[int, int],
    auto_resize: bool = True,
    pad_color: tuple[int, int, int] = (0, 0, 0),
) -> tuple[Image, ResizeMeta]:
    """Letterbox `image` into `input_size`.

    An image that already has the required size is passed through untouched.
    Otherwise, with `auto_resize` disabled, a `DimensionMismatchError` is
    raised instead of resizing.
    """
    orig_size = image_size(image)
    if orig_size == tuple(input_size):
        return image, ResizeMeta(orig_size=orig_size, input_size=orig_size, scale=1.0)

    if not auto_resize:
        raise DimensionMismatchError(
            "The given image does not have the required dimensions "
            f"(Required: W={input_size[0]}, H={input_size[1]}; "
            f"Actual: W={orig_size[0]}, H={orig_size[1]})"
        )

    scale = scale_factor_to_fit(orig_size, input_size)
    new_w, new_h = letterbox_size(orig_size, input_size, scale)
    working = letterbox(image, input_size, scale, pad_color)
    return working, ResizeMeta(
        orig_size=orig_size,
        input_size=tuple(input_size),
        scale=scale,
        scale_x=new_w / orig_size[0],
        scale_y=new_h / orig_size[1],
    )


def rescale_candidates(
    candidates: CandidateBatch, scale: float, scale_y: float | None = None
) -> CandidateBatch:
    """Map model-input coordinates back to original image coordinates.

    `scale` divides x coordinates, and y coordinates too unless `scale_y`
    is given.
    """
    scale_x = scale
    scale_y = scale if scale_y is None else scale_y
    if scale_x <= 0 or scale_y <= 0:
        raise ValueError(f"scale must be positive, got ({scale_x}, {scale_y})")
    if scale_x == 1.0 and scale_y == 1.0:
        return candidates
    divisor = np.array([scale_x, scale_y], dtype=np.float32)
    return CandidateBatch(
        boxes=candidates.boxes / np.tile(divisor, 2),
        scores=candidates.scores,
        landmarks=None if candidates.landmarks is None else candidates.landmarks / divisor,
    )

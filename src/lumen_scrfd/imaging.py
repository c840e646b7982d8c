"""
Raster operations used by detection and alignment.

All functions are value-producing: they return new arrays and never modify
the image passed in. Images are `(H, W, 3)` uint8 arrays in RGB order.
"""

from __future__ import annotations

import logging
from typing import Any

import cv2
import numpy as np
import numpy.typing as npt

from .backends.backend_exceptions import InvalidInputError
from .geometry import Rect

logger = logging.getLogger(__name__)

Image = npt.NDArray[np.uint8]


def ensure_rgb_uint8(image: npt.NDArray[Any]) -> Image:
    """Ensure the image array is contiguous uint8 with three channels."""
    arr = np.asarray(image)
    if not (arr.ndim == 2 or (arr.ndim == 3 and arr.shape[2] in (3, 4))):
        raise InvalidInputError(
            f"Expected an (H, W), (H, W, 3) or (H, W, 4) image, got shape {arr.shape}"
        )
    if arr.size == 0:
        raise InvalidInputError("Image must not be empty")

    # OpenCV color conversions only accept 8-bit, 16-bit and float32 input
    if arr.dtype != np.uint8:
        if np.issubdtype(arr.dtype, np.floating):
            scale = 255.0 if float(arr.max()) <= 1.0 else 1.0
            arr = np.clip(arr * scale, 0.0, 255.0).astype(np.uint8)
        else:
            arr = np.clip(arr, 0, 255).astype(np.uint8)

    if arr.ndim == 2:
        arr = cv2.cvtColor(arr, cv2.COLOR_GRAY2RGB)
    elif arr.shape[2] == 4:
        arr = cv2.cvtColor(arr, cv2.COLOR_RGBA2RGB)

    return np.ascontiguousarray(arr)


def decode_image(image_bytes: bytes) -> Image:
    """Decode encoded image bytes (JPEG, PNG, ...) into an RGB array."""
    if not image_bytes:
        raise InvalidInputError("image_bytes cannot be empty")
    decoded = cv2.imdecode(np.frombuffer(image_bytes, np.uint8), cv2.IMREAD_COLOR)
    if decoded is None:
        raise InvalidInputError("Failed to decode image bytes")
    return np.ascontiguousarray(cv2.cvtColor(decoded, cv2.COLOR_BGR2RGB))


def image_size(image: npt.NDArray[Any]) -> tuple[int, int]:
    """`(width, height)` of an image array."""
    return int(image.shape[1]), int(image.shape[0])


def bounds(image: npt.NDArray[Any]) -> Rect:
    width, height = image_size(image)
    return Rect(0, 0, width, height)


def crop(image: Image, rect: Rect) -> Image:
    """Copy of the pixels inside `rect`, clamped to the image bounds."""
    clamped = rect.round().intersect(bounds(image))
    if clamped.is_empty:
        return np.zeros((0, 0, image.shape[2]), dtype=image.dtype)
    x1, y1, x2, y2 = (int(v) for v in clamped.as_tuple())
    return image[y1:y2, x1:x2].copy()


def resize(image: Image, size: tuple[int, int]) -> Image:
    """Quality resize to `(width, height)`: area filter when shrinking, cubic when enlarging."""
    width, height = size
    if (width, height) == image_size(image):
        return image.copy()
    shrinking = width * height < image.shape[0] * image.shape[1]
    interpolation = cv2.INTER_AREA if shrinking else cv2.INTER_CUBIC
    return cv2.resize(image, (width, height), interpolation=interpolation)


def letterbox_size(
    image_wh: tuple[int, int], target_size: tuple[int, int], scale: float
) -> tuple[int, int]:
    """`(width, height)` the image content occupies inside a letterbox of `target_size`."""
    orig_w, orig_h = image_wh
    target_w, target_h = target_size
    return (
        min(target_w, max(1, int(round(orig_w * scale)))),
        min(target_h, max(1, int(round(orig_h * scale)))),
    )


def letterbox(
    image: Image,
    target_size: tuple[int, int],
    scale: float,
    pad_color: tuple[int, int, int] = (0, 0, 0),
) -> Image:
    """Resize by `scale` and pad to `target_size`, anchored at the top-left corner."""
    target_w, target_h = target_size
    new_w, new_h = letterbox_size(image_size(image), target_size, scale)

    resized = resize(image, (new_w, new_h)) if scale != 1.0 else image

    canvas = np.empty((target_h, target_w, image.shape[2]), dtype=image.dtype)
    canvas[...] = np.asarray(pad_color, dtype=image.dtype)
    canvas[:new_h, :new_w] = resized[:new_h, :new_w]
    return canvas


def warp_affine(
    image: Image,
    matrix: npt.NDArray[np.float64],
    size: tuple[int, int],
    border_value: tuple[int, int, int] = (0, 0, 0),
) -> Image:
    """Apply a 2x3 forward affine matrix, producing an image of `(width, height)`."""
    return cv2.warpAffine(
        image,
        np.asarray(matrix, dtype=np.float64),
        (int(size[0]), int(size[1])),
        flags=cv2.INTER_LINEAR,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=border_value,
    )


def rotate(
    image: Image,
    degrees: float,
    center: tuple[float, float] | None = None,
) -> Image:
    """Rotate counter-clockwise by `degrees` around `center`, keeping the canvas size."""
    width, height = image_size(image)
    if center is None:
        center = (width / 2.0, height / 2.0)
    matrix = cv2.getRotationMatrix2D((float(center[0]), float(center[1])), degrees, 1.0)
    return warp_affine(image, matrix, (width, height))


def gaussian_blur_region(image: Image, rect: Rect, sigma: float) -> Image:
    """Copy of `image` with the (clamped) region blurred."""
    out = image.copy()
    region = rect.round().intersect(bounds(image))
    if region.is_empty:
        return out
    x1, y1, x2, y2 = (int(v) for v in region.as_tuple())
    out[y1:y2, x1:x2] = cv2.GaussianBlur(
        out[y1:y2, x1:x2], (0, 0), sigmaX=sigma, sigmaY=sigma
    )
    return out

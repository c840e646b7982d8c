"""
Ready-made applications built on a face detector.

Both functions leave the input image untouched and return new images.
"""

from __future__ import annotations

import logging
from typing import Any

import numpy.typing as npt

from .alignment.aligner import crop_aligned
from .detection.detector import ScrfdDetector
from .exceptions import NoFaceFoundError
from .geometry import face_alignment_angle
from .imaging import Image, bounds, ensure_rgb_uint8, gaussian_blur_region

logger = logging.getLogger(__name__)


def blur_faces(
    detector: ScrfdDetector,
    image: npt.NDArray[Any],
    blur_sigma_factor: float = 10.0,
) -> tuple[Image, int]:
    """Blur every detected face.

    Args:
        detector: Detector used to find faces.
        image: RGB image.
        blur_sigma_factor: Gaussian sigma is
            `max(max(width, height) / factor, factor)` per face.

    Returns:
        tuple[Image, int]: Blurred copy of the image and the number of
            faces blurred.
    """
    if blur_sigma_factor <= 0:
        raise ValueError(f"blur_sigma_factor must be positive, got {blur_sigma_factor}")

    rgb = ensure_rgb_uint8(image)
    faces = detector.detect(rgb)
    out = rgb
    count = 0
    for face in faces:
        region = face.box.round().intersect(bounds(rgb))
        longest = max(region.width, region.height)
        sigma = max(longest / blur_sigma_factor, blur_sigma_factor)
        out = gaussian_blur_region(out, region, sigma)
        count += 1

    logger.debug("Blurred %d faces", count)
    return (out if count else rgb.copy()), count


def crop_profile_picture(
    detector: ScrfdDetector,
    image: npt.NDArray[Any],
    max_edge_size: int | None = 640,
    scale_factor: float = 1.35,
) -> Image:
    """Square, eye-leveled crop around the most confident face.

    Raises:
        NoFaceFoundError: If no face is detected.
    """
    rgb = ensure_rgb_uint8(image)
    faces = detector.detect(rgb)
    if not faces:
        raise NoFaceFoundError("No faces could be found in the given image")

    best = max(faces, key=lambda f: f.confidence)
    area = best.box.round().scale_centered(scale_factor).intersect(bounds(rgb))
    angle = 0.0
    if best.landmarks is not None:
        angle = face_alignment_angle(best.landmarks)

    logger.debug(
        "Profile crop around face (confidence=%.3f, angle=%.2f)", best.confidence, angle
    )
    return crop_aligned(rgb, area, angle, max_edge_size)

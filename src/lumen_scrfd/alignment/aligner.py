"""
Face alignment: canonical 112x112 crops and rotation-leveled crops.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING, Any

import numpy as np
import numpy.typing as npt

from ..detection.results import FaceDetectorResult
from ..exceptions import AlignmentError, ConfigError
from ..geometry import (
    Point,
    Rect,
    minimum_superset_square,
    rotation_invariant_crop_area,
)
from ..imaging import (
    Image,
    bounds,
    crop,
    ensure_rgb_uint8,
    image_size,
    resize,
    warp_affine,
)
from ..preprocessing import ensure_triplet, to_tensor
from .similarity import (
    CANONICAL_SIZE,
    SimilarityTransform,
    estimate_similarity_transform,
    reference_landmarks_for,
)

if TYPE_CHECKING:
    from ..config import AlignmentSettings

logger = logging.getLogger(__name__)

# source pixels kept around the projected canonical rectangle for interpolation
_CROP_MARGIN = 2


def _projected_source_rect(
    transform: SimilarityTransform, output_size: tuple[int, int]
) -> Rect:
    out_w, out_h = output_size
    corners = np.array(
        [[0.0, 0.0], [out_w, 0.0], [0.0, out_h], [out_w, out_h]], dtype=np.float64
    )
    projected = transform.inverse().apply(corners)
    x1, y1 = np.floor(projected.min(axis=0)) - _CROP_MARGIN
    x2, y2 = np.ceil(projected.max(axis=0)) + _CROP_MARGIN
    return Rect(float(x1), float(y1), float(x2), float(y2))


def align_face(
    image: npt.NDArray[Any],
    transform: SimilarityTransform,
    output_size: tuple[int, int] = CANONICAL_SIZE,
) -> Image:
    """Warp the face region of `image` into the canonical frame.

    Instead of one combined warp at arbitrary scale, the region that maps
    onto the output rectangle is cropped first, resized by the transform's
    scale factors with a quality filter, and only the remaining rotation and
    translation is applied as an affine warp of exactly `output_size`.

    The crop rectangle is clamped to the image. Parts of the output that have
    no source pixels stay black.

    Raises:
        AlignmentError: If the transform is singular.
    """
    rgb = ensure_rgb_uint8(image)
    out_w, out_h = (int(v) for v in output_size)
    sx, sy = transform.scale_factors
    if not (math.isfinite(sx) and math.isfinite(sy)) or sx <= 0 or sy <= 0:
        raise AlignmentError(f"Transform has invalid scale factors ({sx}, {sy})")
    if abs(float(np.linalg.det(transform.linear))) < 1e-12:
        raise AlignmentError("Transform is singular")

    region = _projected_source_rect(transform, (out_w, out_h)).intersect(bounds(rgb))
    if region.is_empty:
        logger.warning(
            "Aligned face region lies outside the image (%dx%d); returning blank crop",
            rgb.shape[1],
            rgb.shape[0],
        )
        return np.zeros((out_h, out_w, 3), dtype=np.uint8)

    patch = crop(rgb, region)
    patch_w, patch_h = image_size(patch)
    new_w = max(1, int(round(patch_w * sx)))
    new_h = max(1, int(round(patch_h * sy)))
    if (new_w, new_h) != (patch_w, patch_h):
        patch = resize(patch, (new_w, new_h))

    # residual maps resized-patch pixels to the output frame; the resize
    # samples pixel centers, so patch x = (x' + 0.5) / a - 0.5
    applied = np.array([new_w / patch_w, new_h / patch_h], dtype=np.float64)
    residual_linear = transform.linear @ np.diag(1.0 / applied)
    offset = np.array([region.x1, region.y1], dtype=np.float64)
    offset += 0.5 / applied - 0.5
    residual_translation = transform.linear @ offset + transform.translation
    residual = np.hstack([residual_linear, residual_translation[:, np.newaxis]])

    return warp_affine(patch, residual, (out_w, out_h))


def crop_aligned(
    image: npt.NDArray[Any],
    face_area: Rect,
    angle: float,
    max_edge_size: int | None = 250,
) -> Image:
    """Square crop around `face_area`, rotated by `angle` degrees around its center.

    `angle` follows `face_alignment_angle`: the value that levels the eye
    line. With `max_edge_size` set, the image is first downsized so the face
    area's longer edge does not exceed it. Square pixels outside the source
    are black.
    """
    rgb = ensure_rgb_uint8(image)

    # only pixels some rotation of the square can reach, plus interpolation margin
    needed = rotation_invariant_crop_area(minimum_superset_square(face_area))
    region = Rect(needed.x1 - 2, needed.y1 - 2, needed.x2 + 2, needed.y2 + 2).intersect(
        bounds(rgb)
    )
    if not region.is_empty:
        rgb = crop(rgb, region)
        face_area = Rect(
            face_area.x1 - region.x1,
            face_area.y1 - region.y1,
            face_area.x2 - region.x1,
            face_area.y2 - region.y1,
        )

    if max_edge_size is not None:
        longest = max(face_area.width, face_area.height)
        factor = 1.0 / max(1.0, longest / float(max_edge_size))
        if factor < 1.0:
            width, height = image_size(rgb)
            rgb = resize(
                rgb,
                (max(1, int(round(width * factor))), max(1, int(round(height * factor)))),
            )
            face_area = face_area.scale(factor)

    cx, cy = face_area.center
    square = minimum_superset_square(face_area)
    edge = max(1, int(square.height))

    # counter-clockwise rotation by -angle, then shift the square to the origin
    theta = math.radians(-angle)
    cos_t, sin_t = math.cos(theta), math.sin(theta)
    matrix = np.array(
        [
            [cos_t, sin_t, (1 - cos_t) * cx - sin_t * cy - square.x1],
            [-sin_t, cos_t, sin_t * cx + (1 - cos_t) * cy - square.y1],
        ],
        dtype=np.float64,
    )
    return warp_affine(rgb, matrix, (edge, edge))


class FaceAligner:
    """Aligns detected faces onto the canonical ArcFace landmark layout.

    Example:
        ```python
        aligner = FaceAligner()
        for face in detector.detect(image):
            if face.landmarks:
                chip = aligner.align(image, face.landmarks)
        ```
    """

    def __init__(
        self,
        output_size: tuple[int, int] = CANONICAL_SIZE,
        reference_landmarks: npt.ArrayLike | None = None,
        embedding_mean: Sequence[float] = (0.5, 0.5, 0.5),
        embedding_std: Sequence[float] = (0.5, 0.5, 0.5),
    ) -> None:
        if len(output_size) != 2 or any(int(v) <= 0 for v in output_size):
            raise ConfigError(f"output_size must be positive (width, height), got {output_size}")
        self.output_size = (int(output_size[0]), int(output_size[1]))

        if reference_landmarks is not None:
            shape = np.shape(reference_landmarks)
            if shape != (5, 2):
                raise ConfigError(f"reference_landmarks must have shape (5, 2), got {shape}")
        reference = reference_landmarks_for(self.output_size, reference_landmarks)
        reference.setflags(write=False)
        self.reference = reference

        self.embedding_mean = ensure_triplet(embedding_mean)
        self.embedding_std = ensure_triplet(embedding_std)
        if any(s <= 0 for s in self.embedding_std):
            raise ConfigError(f"embedding_std values must be positive, got {self.embedding_std}")

    @classmethod
    def from_config(cls, settings: AlignmentSettings) -> FaceAligner:
        return cls(
            output_size=settings.output_size,
            reference_landmarks=settings.reference_landmarks,
            embedding_mean=settings.embedding_mean,
            embedding_std=settings.embedding_std,
        )

    def estimate(self, landmarks: Sequence[Point] | npt.ArrayLike) -> SimilarityTransform:
        return estimate_similarity_transform(landmarks, self.reference)

    def align(
        self, image: npt.NDArray[Any], landmarks: Sequence[Point] | npt.ArrayLike
    ) -> Image:
        """Aligned crop of `output_size` for one face.

        Raises:
            AlignmentError: If the landmarks are degenerate.
        """
        return align_face(image, self.estimate(landmarks), self.output_size)

    def align_many(
        self, image: npt.NDArray[Any], faces: Iterable[FaceDetectorResult]
    ) -> list[Image | None]:
        """Align every face; faces without landmarks or with degenerate ones yield None."""
        rgb = ensure_rgb_uint8(image)
        aligned: list[Image | None] = []
        for idx, face in enumerate(faces):
            if face.landmarks is None:
                logger.debug("Face %d has no landmarks; skipping alignment", idx)
                aligned.append(None)
                continue
            try:
                aligned.append(self.align(rgb, face.landmarks))
            except AlignmentError as exc:
                logger.warning("Skipping alignment of face %d: %s", idx, exc)
                aligned.append(None)
        return aligned

    def to_embedding_tensor(self, aligned: npt.NDArray[Any]) -> npt.NDArray[np.float32]:
        """`[1, 3, H, W]` tensor normalized for an embedding model."""
        return to_tensor(
            ensure_rgb_uint8(aligned), self.embedding_mean, self.embedding_std
        )

"""
Landmark-to-reference transform estimation.

The transform maps detected 5-point landmarks onto the canonical ArcFace
layout of a 112x112 face crop. It is solved as an ordinary least-squares
problem over the six affine parameters `[a, b, tx, c, d, ty]`:

    x' = a * x + b * y + tx
    y' = c * x + d * y + ty

Five point pairs give ten equations for six unknowns.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
import numpy.typing as npt

from ..exceptions import AlignmentError
from ..geometry import Point

logger = logging.getLogger(__name__)

CANONICAL_SIZE = (112, 112)

# left eye, right eye, nose tip, left mouth corner, right mouth corner
ARCFACE_REFERENCE_LANDMARKS: npt.NDArray[np.float64] = np.array(
    [
        [38.2946, 51.6963],
        [73.5318, 51.5014],
        [56.0252, 71.7366],
        [41.5493, 92.3655],
        [70.7299, 92.2041],
    ],
    dtype=np.float64,
)
ARCFACE_REFERENCE_LANDMARKS.setflags(write=False)

# relative singular value below which the system is treated as singular
_CONDITION_LIMIT = 1e-9


def reference_landmarks_for(
    output_size: tuple[int, int],
    reference: npt.ArrayLike | None = None,
) -> npt.NDArray[np.float64]:
    """Reference landmarks scaled from the 112x112 frame to `output_size` `(width, height)`."""
    ref = np.array(
        ARCFACE_REFERENCE_LANDMARKS if reference is None else reference,
        dtype=np.float64,
    )
    if tuple(output_size) != CANONICAL_SIZE:
        ref[:, 0] *= output_size[0] / CANONICAL_SIZE[0]
        ref[:, 1] *= output_size[1] / CANONICAL_SIZE[1]
    return ref


@dataclass(frozen=True, eq=False)
class SimilarityTransform:
    """2x3 forward matrix mapping source pixels to the canonical frame."""

    matrix: npt.NDArray[np.float64]

    def __post_init__(self) -> None:
        if self.matrix.shape != (2, 3):
            raise ValueError(f"matrix must have shape (2, 3), got {self.matrix.shape}")

    @classmethod
    def identity(cls) -> SimilarityTransform:
        return cls(np.array([[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]]))

    @property
    def linear(self) -> npt.NDArray[np.float64]:
        return self.matrix[:, :2]

    @property
    def translation(self) -> npt.NDArray[np.float64]:
        return self.matrix[:, 2]

    @property
    def scale_factors(self) -> tuple[float, float]:
        """Horizontal and vertical scale: norms of the linear part's columns."""
        sx = float(np.hypot(self.matrix[0, 0], self.matrix[1, 0]))
        sy = float(np.hypot(self.matrix[0, 1], self.matrix[1, 1]))
        return sx, sy

    @property
    def rotation_degrees(self) -> float:
        return math.degrees(math.atan2(self.matrix[1, 0], self.matrix[0, 0]))

    def apply(self, points: npt.ArrayLike) -> npt.NDArray[np.float64]:
        """Map `(N, 2)` points through the transform."""
        pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
        return pts @ self.linear.T + self.translation

    def inverse(self) -> SimilarityTransform:
        linear_inv = np.linalg.inv(self.linear)
        return SimilarityTransform(
            np.hstack([linear_inv, (-linear_inv @ self.translation)[:, np.newaxis]])
        )

    def residual(self, source: npt.ArrayLike, target: npt.ArrayLike) -> float:
        """Root-mean-square distance between mapped `source` and `target` points."""
        diff = self.apply(source) - np.asarray(target, dtype=np.float64).reshape(-1, 2)
        return float(np.sqrt(np.mean(np.sum(diff * diff, axis=1))))


def estimate_similarity_transform(
    landmarks: Sequence[Point] | npt.ArrayLike,
    reference: npt.ArrayLike | None = None,
) -> SimilarityTransform:
    """Least-squares transform from observed landmarks to reference positions.

    Args:
        landmarks: Five observed `(x, y)` points in source image pixels.
        reference: Matching target points; defaults to
            `ARCFACE_REFERENCE_LANDMARKS`.

    Returns:
        SimilarityTransform: Forward mapping source -> reference frame.

    Raises:
        AlignmentError: If the points are non-finite, mismatched in count,
            collinear or coincident.
    """
    src = np.asarray(landmarks, dtype=np.float64)
    dst = np.asarray(
        ARCFACE_REFERENCE_LANDMARKS if reference is None else reference,
        dtype=np.float64,
    )
    if src.ndim != 2 or src.shape[1] != 2 or src.shape != dst.shape:
        raise AlignmentError(
            f"Expected matching (N, 2) landmark arrays, got {src.shape} and {dst.shape}"
        )
    if src.shape[0] < 3:
        raise AlignmentError(f"At least 3 landmark pairs are required, got {src.shape[0]}")
    if not (np.all(np.isfinite(src)) and np.all(np.isfinite(dst))):
        raise AlignmentError("Landmarks contain non-finite coordinates")

    n = src.shape[0]
    system = np.zeros((2 * n, 6), dtype=np.float64)
    system[0::2, 0:2] = src
    system[0::2, 2] = 1.0
    system[1::2, 3:5] = src
    system[1::2, 5] = 1.0
    rhs = dst.reshape(-1)

    params, _, rank, singular = np.linalg.lstsq(system, rhs, rcond=None)
    if rank < 6 or singular[-1] <= _CONDITION_LIMIT * singular[0]:
        raise AlignmentError(
            "Degenerate landmarks: points are collinear or coincident "
            f"(rank={rank})"
        )

    transform = SimilarityTransform(params.reshape(2, 3))
    logger.debug(
        "Estimated alignment transform scale=%s rotation=%.2f residual=%.4f",
        transform.scale_factors,
        transform.rotation_degrees,
        transform.residual(src, dst),
    )
    return transform

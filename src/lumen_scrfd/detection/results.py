"""
Detection data structures.

`CandidateBatch` is the array form the decode pipeline works on: one row per
candidate, boxes in `(x1, y1, x2, y2)` order. `DetectionCandidate` is the
per-row view of that batch, and `FaceDetectorResult` is the public,
post-NMS, original-image-space detection handed to callers.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass

import numpy as np
import numpy.typing as npt

from ..geometry import Point, Rect

NUM_LANDMARKS = 5


@dataclass(frozen=True)
class DetectionCandidate:
    """One decoded detection: box, score and optional 5-point landmarks."""

    box: Rect
    score: float
    landmarks: tuple[Point, ...] | None = None


@dataclass(frozen=True, eq=False)
class CandidateBatch:
    """Column-oriented candidates.

    Attributes:
        boxes: `(N, 4)` float32 array of `(x1, y1, x2, y2)`.
        scores: `(N,)` float32 array.
        landmarks: `(N, 5, 2)` float32 array, or None when the detector head
            has no landmark output.
    """

    boxes: npt.NDArray[np.float32]
    scores: npt.NDArray[np.float32]
    landmarks: npt.NDArray[np.float32] | None = None

    def __post_init__(self) -> None:
        if self.boxes.ndim != 2 or self.boxes.shape[1] != 4:
            raise ValueError(f"boxes must have shape (N, 4), got {self.boxes.shape}")
        if self.scores.shape != (self.boxes.shape[0],):
            raise ValueError(
                f"scores must have shape ({self.boxes.shape[0]},), got {self.scores.shape}"
            )
        if self.landmarks is not None and self.landmarks.shape != (
            self.boxes.shape[0],
            NUM_LANDMARKS,
            2,
        ):
            raise ValueError(
                f"landmarks must have shape ({self.boxes.shape[0]}, {NUM_LANDMARKS}, 2), "
                f"got {self.landmarks.shape}"
            )

    @classmethod
    def empty(cls, with_landmarks: bool = False) -> CandidateBatch:
        return cls(
            boxes=np.empty((0, 4), dtype=np.float32),
            scores=np.empty((0,), dtype=np.float32),
            landmarks=np.empty((0, NUM_LANDMARKS, 2), dtype=np.float32)
            if with_landmarks
            else None,
        )

    @property
    def has_landmarks(self) -> bool:
        return self.landmarks is not None

    def __len__(self) -> int:
        return int(self.scores.shape[0])

    def take(self, indices: Sequence[int] | npt.NDArray[np.integer]) -> CandidateBatch:
        """Rows at `indices`, in the given order."""
        idx = np.asarray(indices, dtype=np.intp)
        return CandidateBatch(
            boxes=self.boxes[idx],
            scores=self.scores[idx],
            landmarks=None if self.landmarks is None else self.landmarks[idx],
        )

    def __iter__(self) -> Iterator[DetectionCandidate]:
        for row in range(len(self)):
            lm = None
            if self.landmarks is not None:
                lm = tuple((float(x), float(y)) for x, y in self.landmarks[row])
            yield DetectionCandidate(
                box=Rect(*(float(v) for v in self.boxes[row])),
                score=float(self.scores[row]),
                landmarks=lm,
            )


@dataclass(frozen=True)
class FaceDetectorResult:
    """Face detection result in original image coordinates.

    Attributes:
        box: Face rectangle in absolute pixels of the original image.
        confidence: Detection score in `[0, 1]`.
        landmarks: Optional 5-point landmarks in the order left eye, right
            eye, nose tip, left mouth corner, right mouth corner.
    """

    box: Rect
    confidence: float
    landmarks: tuple[Point, ...] | None = None

    @property
    def left_eye(self) -> Point | None:
        return self.landmarks[0] if self.landmarks else None

    @property
    def right_eye(self) -> Point | None:
        return self.landmarks[1] if self.landmarks else None

    @property
    def nose(self) -> Point | None:
        return self.landmarks[2] if self.landmarks else None

    @property
    def mouth_left(self) -> Point | None:
        return self.landmarks[3] if self.landmarks else None

    @property
    def mouth_right(self) -> Point | None:
        return self.landmarks[4] if self.landmarks else None

    def as_dict(self) -> dict[str, object]:
        """Convert to a plain dict (safe for JSON serialization)."""
        return {
            "box": list(self.box.as_tuple()),
            "confidence": self.confidence,
            "landmarks": None
            if self.landmarks is None
            else [list(point) for point in self.landmarks],
        }

    @classmethod
    def from_candidate(cls, candidate: DetectionCandidate) -> FaceDetectorResult:
        return cls(
            box=candidate.box,
            confidence=candidate.score,
            landmarks=candidate.landmarks,
        )

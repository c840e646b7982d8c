"""Landmark-based face alignment."""

from .aligner import FaceAligner, align_face, crop_aligned
from .similarity import (
    ARCFACE_REFERENCE_LANDMARKS,
    CANONICAL_SIZE,
    SimilarityTransform,
    estimate_similarity_transform,
    reference_landmarks_for,
)

__all__ = [
    "ARCFACE_REFERENCE_LANDMARKS",
    "CANONICAL_SIZE",
    "FaceAligner",
    "SimilarityTransform",
    "align_face",
    "crop_aligned",
    "estimate_similarity_transform",
    "reference_landmarks_for",
]

"""
Unit tests for landmark transform estimation.

Tests estimation including:
- Identity for the reference layout itself
- Exact recovery of a known rotation/scale/translation
- Degenerate (collinear, coincident, non-finite) landmark sets
"""

import math

import numpy as np
import pytest

from lumen_scrfd.alignment.similarity import (
    ARCFACE_REFERENCE_LANDMARKS,
    SimilarityTransform,
    estimate_similarity_transform,
    reference_landmarks_for,
)
from lumen_scrfd.exceptions import AlignmentError


def _similarity(angle_deg, scale, tx, ty):
    a = math.radians(angle_deg)
    return np.array(
        [
            [scale * math.cos(a), -scale * math.sin(a), tx],
            [scale * math.sin(a), scale * math.cos(a), ty],
        ]
    )


class TestEstimate:
    """Least-squares estimation."""

    def test_reference_gives_identity(self):
        transform = estimate_similarity_transform(ARCFACE_REFERENCE_LANDMARKS)
        np.testing.assert_allclose(
            transform.matrix, [[1, 0, 0], [0, 1, 0]], atol=1e-9
        )

    def test_recovers_known_transform(self):
        # observed landmarks = reference mapped by the inverse of a known transform
        forward = SimilarityTransform(_similarity(20.0, 0.4, -10.0, 5.0))
        observed = forward.inverse().apply(ARCFACE_REFERENCE_LANDMARKS)

        transform = estimate_similarity_transform(observed)

        np.testing.assert_allclose(transform.matrix, forward.matrix, atol=1e-8)
        np.testing.assert_allclose(
            transform.apply(observed), ARCFACE_REFERENCE_LANDMARKS, atol=1e-6
        )

    def test_noisy_landmarks_small_residual(self):
        np.random.seed(11)
        forward = SimilarityTransform(_similarity(-12.0, 0.5, 3.0, -8.0))
        observed = forward.inverse().apply(ARCFACE_REFERENCE_LANDMARKS)
        observed += np.random.randn(5, 2) * 0.5

        transform = estimate_similarity_transform(observed)

        assert transform.residual(observed, ARCFACE_REFERENCE_LANDMARKS) < 1.0

    def test_custom_reference(self):
        reference = ARCFACE_REFERENCE_LANDMARKS * 2.0
        transform = estimate_similarity_transform(ARCFACE_REFERENCE_LANDMARKS, reference)
        assert transform.scale_factors == pytest.approx((2.0, 2.0))

    def test_accepts_point_tuples(self):
        points = [tuple(p) for p in ARCFACE_REFERENCE_LANDMARKS.tolist()]
        transform = estimate_similarity_transform(points)
        assert transform.rotation_degrees == pytest.approx(0.0, abs=1e-6)


class TestDegenerateLandmarks:
    """Singular systems are reported as alignment errors."""

    def test_collinear(self):
        points = [(10, 10), (20, 20), (30, 30), (40, 40), (50, 50)]
        with pytest.raises(AlignmentError, match="collinear"):
            estimate_similarity_transform(points)

    def test_coincident(self):
        with pytest.raises(AlignmentError):
            estimate_similarity_transform([(5.0, 5.0)] * 5)

    def test_non_finite(self):
        points = ARCFACE_REFERENCE_LANDMARKS.copy()
        points[2, 0] = np.nan
        with pytest.raises(AlignmentError, match="non-finite"):
            estimate_similarity_transform(points)

    def test_wrong_point_count(self):
        with pytest.raises(AlignmentError):
            estimate_similarity_transform(ARCFACE_REFERENCE_LANDMARKS[:4])


class TestSimilarityTransform:
    """Matrix helpers."""

    def test_scale_factors_and_rotation(self):
        transform = SimilarityTransform(_similarity(30.0, 2.0, 0.0, 0.0))
        assert transform.scale_factors == pytest.approx((2.0, 2.0))
        assert transform.rotation_degrees == pytest.approx(30.0)

    def test_inverse_round_trip(self):
        transform = SimilarityTransform(_similarity(45.0, 1.5, 7.0, -3.0))
        points = np.array([[0.0, 0.0], [10.0, 5.0]])
        np.testing.assert_allclose(
            transform.inverse().apply(transform.apply(points)), points, atol=1e-9
        )

    def test_rejects_bad_shape(self):
        with pytest.raises(ValueError):
            SimilarityTransform(np.eye(3))

    def test_reference_is_read_only(self):
        with pytest.raises(ValueError):
            ARCFACE_REFERENCE_LANDMARKS[0, 0] = 0.0

    def test_reference_scaled_to_output_size(self):
        scaled = reference_landmarks_for((224, 224))
        np.testing.assert_allclose(scaled, ARCFACE_REFERENCE_LANDMARKS * 2.0)

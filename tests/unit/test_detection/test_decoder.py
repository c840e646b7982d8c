"""
Unit tests for per-stride decoding.

Tests the decode step including:
- Box and landmark reconstruction from anchor centers and stride-scaled deltas
- The exclusive confidence boundary
- Shape validation of raw head tensors
- Named and index-based output addressing
"""

import numpy as np
import pytest

from lumen_scrfd.backends.backend_exceptions import OutputShapeError
from lumen_scrfd.detection.anchors import anchor_count
from lumen_scrfd.detection.decoder import (
    HeadAddress,
    RawStrideOutput,
    decode_stride,
    indexed_heads,
    named_heads,
)

INPUT = (64, 64)


def _raw(stride=8, scores=None, bbox=None, kps=None, num_anchors=2):
    k = anchor_count(INPUT, stride, num_anchors)
    scores = np.zeros((k, 1), dtype=np.float32) if scores is None else scores
    bbox = np.zeros((k, 4), dtype=np.float32) if bbox is None else bbox
    return RawStrideOutput.from_arrays(stride, scores, bbox, kps, INPUT, num_anchors)


class TestDecodeStride:
    """Decoding of a single head."""

    def test_single_anchor_box(self, row_of):
        k = anchor_count(INPUT, 8, 2)
        scores = np.zeros((k, 1), dtype=np.float32)
        bbox = np.zeros((k, 4), dtype=np.float32)
        row = row_of(INPUT, 8, 2, 2)
        scores[row] = 0.9
        bbox[row] = [1, 1, 1, 1]

        batch = decode_stride(_raw(scores=scores, bbox=bbox), INPUT, 0.5)

        assert len(batch) == 1
        # anchor center (16, 16), distances 1 * stride
        np.testing.assert_allclose(batch.boxes[0], [8, 8, 24, 24])
        assert batch.scores[0] == pytest.approx(0.9)
        assert batch.landmarks is None

    def test_asymmetric_distances(self, row_of):
        k = anchor_count(INPUT, 16, 2)
        scores = np.zeros((k, 1), dtype=np.float32)
        bbox = np.zeros((k, 4), dtype=np.float32)
        row = row_of(INPUT, 16, 1, 2, anchor=1)
        scores[row] = 0.7
        bbox[row] = [0.5, 1.0, 1.5, 2.0]

        batch = decode_stride(_raw(stride=16, scores=scores, bbox=bbox), INPUT, 0.5)

        # center (16, 32)
        np.testing.assert_allclose(batch.boxes[0], [8, 16, 40, 64])

    def test_landmarks_decoded(self, row_of):
        k = anchor_count(INPUT, 8, 2)
        scores = np.zeros((k, 1), dtype=np.float32)
        kps = np.zeros((k, 10), dtype=np.float32)
        row = row_of(INPUT, 8, 3, 1)
        scores[row] = 0.8
        kps[row] = [-1, -1, 1, -1, 0, 0, -1, 1, 1, 1]

        batch = decode_stride(_raw(scores=scores, kps=kps), INPUT, 0.5)

        # center (24, 8)
        expected = [[16, 0], [32, 0], [24, 8], [16, 16], [32, 16]]
        assert batch.landmarks.shape == (1, 5, 2)
        np.testing.assert_allclose(batch.landmarks[0], expected)

    def test_no_candidates_is_empty_not_error(self):
        batch = decode_stride(_raw(), INPUT, 0.5)
        assert len(batch) == 0
        assert batch.boxes.shape == (0, 4)

    def test_empty_batch_keeps_landmark_capability(self):
        k = anchor_count(INPUT, 8, 2)
        raw = _raw(kps=np.zeros((k, 10), dtype=np.float32))
        batch = decode_stride(raw, INPUT, 0.5)
        assert batch.has_landmarks
        assert batch.landmarks.shape == (0, 5, 2)

    def test_candidates_follow_anchor_order(self):
        k = anchor_count(INPUT, 8, 2)
        scores = np.zeros((k, 1), dtype=np.float32)
        scores[[5, 1, 40], 0] = [0.6, 0.9, 0.7]

        batch = decode_stride(_raw(scores=scores), INPUT, 0.5)

        np.testing.assert_allclose(batch.scores, [0.9, 0.6, 0.7], rtol=1e-6)


class TestConfidenceBoundary:
    """Scores must be strictly greater than the threshold."""

    def test_score_equal_to_threshold_is_dropped(self):
        k = anchor_count(INPUT, 8, 2)
        scores = np.zeros((k, 1), dtype=np.float32)
        scores[0] = 0.5
        assert len(decode_stride(_raw(scores=scores), INPUT, 0.5)) == 0

    def test_score_just_above_threshold_is_kept(self):
        k = anchor_count(INPUT, 8, 2)
        scores = np.zeros((k, 1), dtype=np.float32)
        scores[0] = np.nextafter(np.float32(0.5), np.float32(1.0))
        assert len(decode_stride(_raw(scores=scores), INPUT, 0.5)) == 1

    def test_higher_threshold_gives_subset(self):
        np.random.seed(7)
        k = anchor_count(INPUT, 8, 2)
        scores = np.random.rand(k, 1).astype(np.float32)
        bbox = np.random.rand(k, 4).astype(np.float32)
        raw = _raw(scores=scores, bbox=bbox)

        loose = decode_stride(raw, INPUT, 0.3)
        strict = decode_stride(raw, INPUT, 0.7)

        loose_rows = {tuple(b) for b in loose.boxes.tolist()}
        strict_rows = {tuple(b) for b in strict.boxes.tolist()}
        assert strict_rows <= loose_rows
        assert len(strict) < len(loose)


class TestRawStrideOutput:
    """Validation of raw head tensors."""

    def test_flat_scores_accepted(self):
        k = anchor_count(INPUT, 8, 2)
        raw = _raw(scores=np.zeros((k,), dtype=np.float32))
        assert raw.scores.shape == (k,)

    def test_two_class_scores_use_face_column(self):
        k = anchor_count(INPUT, 8, 2)
        scores = np.zeros((k, 2), dtype=np.float32)
        scores[:, 0] = 1.0
        scores[3, 1] = 0.75
        raw = _raw(scores=scores)
        assert raw.scores[3] == pytest.approx(0.75)
        assert raw.scores[0] == 0.0

    def test_batched_layout_unwrapped(self):
        k = anchor_count(INPUT, 8, 2)
        raw = RawStrideOutput.from_arrays(
            8,
            np.full((1, k, 1), 0.25, dtype=np.float32),
            np.ones((1, k, 4), dtype=np.float32),
            np.ones((1, k, 10), dtype=np.float32),
            INPUT,
            batched=True,
        )
        assert raw.scores.shape == (k,)
        assert raw.bbox_deltas.shape == (k, 4)
        assert raw.kps_deltas.shape == (k, 10)

    def test_row_count_mismatch(self):
        k = anchor_count(INPUT, 8, 2)
        with pytest.raises(OutputShapeError, match="expected 128 rows"):
            _raw(scores=np.zeros((k - 2, 1), dtype=np.float32))

    def test_bbox_channel_mismatch(self):
        k = anchor_count(INPUT, 8, 2)
        with pytest.raises(OutputShapeError):
            _raw(bbox=np.zeros((k, 5), dtype=np.float32))

    def test_batched_flag_requires_batch_axis(self):
        k = anchor_count(INPUT, 8, 2)
        with pytest.raises(OutputShapeError):
            RawStrideOutput.from_arrays(
                8,
                np.zeros((k, 1), dtype=np.float32),
                np.zeros((k, 4), dtype=np.float32),
                None,
                INPUT,
                batched=True,
            )


class TestOutputAddressing:
    """Looking up head tensors among engine outputs."""

    def test_named_heads(self):
        heads = named_heads([8, 16])
        assert heads[0] == HeadAddress(stride=8, score="score_8", bbox="bbox_8", kps="kps_8")
        assert heads[1].bbox == "bbox_16"

    def test_from_outputs_by_name(self, head_outputs):
        outputs = head_outputs(INPUT)
        raw = RawStrideOutput.from_outputs(outputs, named_heads([16])[0], INPUT)
        assert raw.stride == 16
        assert raw.kps_deltas is not None

    def test_missing_kps_is_optional(self, head_outputs):
        outputs = head_outputs(INPUT, with_kps=False)
        raw = RawStrideOutput.from_outputs(outputs, named_heads([8])[0], INPUT)
        assert raw.kps_deltas is None

    def test_missing_score_raises(self, head_outputs):
        outputs = head_outputs(INPUT)
        del outputs["score_32"]
        with pytest.raises(OutputShapeError, match="score_32"):
            RawStrideOutput.from_outputs(outputs, named_heads([32])[0], INPUT)

    def test_indexed_heads(self, head_outputs):
        named = head_outputs(INPUT)
        # reorder as [scores..., bboxes..., kps...]
        ordered = {}
        for prefix in ("score", "bbox", "kps"):
            for s in (8, 16, 32):
                ordered[f"out{len(ordered)}"] = named[f"{prefix}_{s}"]

        heads = indexed_heads(
            [
                {"stride": 8, "score": 0, "bbox": 3, "kps": 6},
                {"stride": 16, "score": 1, "bbox": 4, "kps": 7},
                {"stride": 32, "score": 2, "bbox": 5, "kps": 8},
            ]
        )
        raw = RawStrideOutput.from_outputs(ordered, heads[2], INPUT)
        assert raw.scores.shape == (anchor_count(INPUT, 32, 2),)
        assert raw.kps_deltas.shape[1] == 10

    def test_index_out_of_range(self, head_outputs):
        outputs = head_outputs(INPUT)
        head = HeadAddress(stride=8, score=42, bbox=3)
        with pytest.raises(OutputShapeError):
            RawStrideOutput.from_outputs(outputs, head, INPUT)

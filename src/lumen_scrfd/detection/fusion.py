"""Merging of per-stride candidates into one score-ordered batch."""

from __future__ import annotations

import logging
from collections.abc import Sequence

import numpy as np

from .results import CandidateBatch

logger = logging.getLogger(__name__)


def fuse_candidates(batches: Sequence[CandidateBatch]) -> CandidateBatch:
    """Concatenate candidate batches and sort them by descending score.

    The sort is stable, so equal scores keep concatenation order: callers
    pass batches in ascending stride order and each batch is in ascending
    anchor order.

    Landmarks survive only if every batch carries them.
    """
    if not batches:
        return CandidateBatch.empty()

    with_landmarks = [b.has_landmarks for b in batches]
    keep_landmarks = all(with_landmarks)
    if any(with_landmarks) and not keep_landmarks:
        logger.warning(
            "Dropping landmarks: only %d/%d strides produced landmark outputs",
            sum(with_landmarks),
            len(batches),
        )

    boxes = np.concatenate([b.boxes for b in batches], axis=0)
    scores = np.concatenate([b.scores for b in batches], axis=0)
    landmarks = (
        np.concatenate([b.landmarks for b in batches], axis=0)
        if keep_landmarks
        else None
    )
    fused = CandidateBatch(boxes=boxes, scores=scores, landmarks=landmarks)

    order = np.argsort(-scores, kind="stable")
    logger.debug("Fused %d candidates from %d strides", len(fused), len(batches))
    return fused.take(order)

"""
Per-stride decoding of SCRFD head outputs.

SCRFD heads output tensors in `(K, C)` format where
`K = (H / stride) * (W / stride) * num_anchors` and
`C = 1` for scores, `4` for box distances `(left, top, right, bottom)` and
`10` for five interleaved landmark offsets `(dx0, dy0, ..., dx4, dy4)`.
Distances are in units of the stride.

Raw tensors are validated once, when `RawStrideOutput.from_outputs` builds
the typed buffers; `decode_stride` trusts its input.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

import numpy as np
import numpy.typing as npt

from ..backends.backend_exceptions import OutputShapeError
from .anchors import anchor_count, generate_anchor_centers
from .results import NUM_LANDMARKS, CandidateBatch

logger = logging.getLogger(__name__)

OutputKey = str | int


@dataclass(frozen=True)
class HeadAddress:
    """Where to find one stride's tensors among the engine outputs."""

    stride: int
    score: OutputKey
    bbox: OutputKey
    kps: OutputKey | None = None


def named_heads(strides: Sequence[int]) -> tuple[HeadAddress, ...]:
    """Heads addressed as `score_{stride}`, `bbox_{stride}`, `kps_{stride}`."""
    return tuple(
        HeadAddress(
            stride=int(s), score=f"score_{s}", bbox=f"bbox_{s}", kps=f"kps_{s}"
        )
        for s in strides
    )


def indexed_heads(config: Sequence[Mapping[str, int]]) -> tuple[HeadAddress, ...]:
    """Heads addressed by output position, e.g. `{"stride": 8, "score": 0, "bbox": 3, "kps": 6}`."""
    heads: list[HeadAddress] = []
    for head in config:
        kps_val = head.get("kps")
        heads.append(
            HeadAddress(
                stride=int(head["stride"]),
                score=int(head["score"]),
                bbox=int(head["bbox"]),
                kps=None if kps_val is None else int(kps_val),
            )
        )
    return tuple(heads)


def _lookup(
    outputs: Mapping[str, npt.NDArray], key: OutputKey, required: bool
) -> npt.NDArray | None:
    if isinstance(key, int):
        values = list(outputs.values())
        if 0 <= key < len(values):
            return values[key]
    elif key in outputs:
        return outputs[key]
    if required:
        raise OutputShapeError(
            f"Detector output '{key}' not found (available: {list(outputs.keys())})"
        )
    return None


def _as_rows(
    array: npt.NDArray, channels: int, batched: bool, label: str
) -> npt.NDArray[np.float32]:
    arr = np.asarray(array, dtype=np.float32)
    if batched:
        if arr.ndim != 3 or arr.shape[0] != 1:
            raise OutputShapeError(
                f"{label}: expected batched shape [1, K, {channels}], got {arr.shape}"
            )
        arr = arr[0]
    if arr.ndim == 1 and channels == 1:
        arr = arr.reshape(-1, 1)
    if arr.ndim != 2 or arr.shape[1] != channels:
        raise OutputShapeError(f"{label}: expected shape [K, {channels}], got {arr.shape}")
    return arr


@dataclass(frozen=True, eq=False)
class RawStrideOutput:
    """Validated, fixed-shape tensors of one detection head.

    Attributes:
        stride: Downsampling factor of the head.
        num_anchors: Anchors per grid location.
        scores: `(K,)` activated face scores.
        bbox_deltas: `(K, 4)` distances `(left, top, right, bottom)` in stride units.
        kps_deltas: `(K, 10)` landmark offsets in stride units, or None.
    """

    stride: int
    num_anchors: int
    scores: npt.NDArray[np.float32]
    bbox_deltas: npt.NDArray[np.float32]
    kps_deltas: npt.NDArray[np.float32] | None = None

    @classmethod
    def from_arrays(
        cls,
        stride: int,
        scores: npt.NDArray,
        bbox_deltas: npt.NDArray,
        kps_deltas: npt.NDArray | None,
        input_size: tuple[int, int],
        num_anchors: int = 2,
        batched: bool = False,
    ) -> RawStrideOutput:
        """Validate raw head tensors against the anchor grid of `input_size`."""
        label = f"stride {stride}"
        score_rows = np.asarray(scores, dtype=np.float32)
        if batched and score_rows.ndim == 3:
            score_rows = score_rows[0]
        if score_rows.ndim == 2 and score_rows.shape[1] == 2:
            # two-class softmax head: take the face class
            score_rows = score_rows[:, 1:2]
        score_rows = _as_rows(score_rows, 1, False, f"{label} scores")

        bbox_rows = _as_rows(bbox_deltas, 4, batched, f"{label} bbox")
        kps_rows = (
            None
            if kps_deltas is None
            else _as_rows(kps_deltas, 2 * NUM_LANDMARKS, batched, f"{label} kps")
        )

        expected = anchor_count(input_size, stride, num_anchors)
        for name, rows in (("scores", score_rows), ("bbox", bbox_rows), ("kps", kps_rows)):
            if rows is not None and rows.shape[0] != expected:
                raise OutputShapeError(
                    f"{label} {name}: expected {expected} rows for input "
                    f"{input_size[0]}x{input_size[1]} with {num_anchors} anchors, "
                    f"got {rows.shape[0]}"
                )

        return cls(
            stride=int(stride),
            num_anchors=int(num_anchors),
            scores=score_rows[:, 0],
            bbox_deltas=bbox_rows,
            kps_deltas=kps_rows,
        )

    @classmethod
    def from_outputs(
        cls,
        outputs: Mapping[str, npt.NDArray],
        head: HeadAddress,
        input_size: tuple[int, int],
        num_anchors: int = 2,
        batched: bool = False,
    ) -> RawStrideOutput:
        """Pick one head's tensors out of the engine outputs and validate them."""
        scores = _lookup(outputs, head.score, required=True)
        bbox = _lookup(outputs, head.bbox, required=True)
        kps = None if head.kps is None else _lookup(outputs, head.kps, required=False)
        logger.debug(
            "SCRFD head (stride=%d) raw shapes score=%s bbox=%s kps=%s",
            head.stride,
            getattr(scores, "shape", None),
            getattr(bbox, "shape", None),
            getattr(kps, "shape", None),
        )
        return cls.from_arrays(
            head.stride, scores, bbox, kps, input_size, num_anchors, batched
        )


def _distance2bbox(
    centers: npt.NDArray[np.float32], distances: npt.NDArray[np.float32]
) -> npt.NDArray[np.float32]:
    x1 = centers[:, 0] - distances[:, 0]
    y1 = centers[:, 1] - distances[:, 1]
    x2 = centers[:, 0] + distances[:, 2]
    y2 = centers[:, 1] + distances[:, 3]
    return np.stack((x1, y1, x2, y2), axis=-1)


def _distance2kps(
    centers: npt.NDArray[np.float32], distances: npt.NDArray[np.float32]
) -> npt.NDArray[np.float32]:
    offsets = distances.reshape(-1, NUM_LANDMARKS, 2)
    return centers[:, np.newaxis, :] + offsets


def decode_stride(
    raw: RawStrideOutput,
    input_size: tuple[int, int],
    confidence_threshold: float,
) -> CandidateBatch:
    """Decode one head into absolute model-input coordinates.

    Only anchors whose score is strictly greater than `confidence_threshold`
    are kept. An empty batch (not an error) is returned when none pass.
    """
    keep = np.flatnonzero(raw.scores > confidence_threshold)
    logger.debug(
        "SCRFD head (stride=%d) kept %d/%d anchors (threshold=%.3f)",
        raw.stride,
        keep.size,
        raw.scores.size,
        confidence_threshold,
    )
    if keep.size == 0:
        return CandidateBatch.empty(with_landmarks=raw.kps_deltas is not None)

    centers = generate_anchor_centers(input_size, raw.stride, raw.num_anchors)[keep]
    stride = float(raw.stride)

    boxes = _distance2bbox(centers, raw.bbox_deltas[keep] * stride)
    landmarks = None
    if raw.kps_deltas is not None:
        landmarks = _distance2kps(centers, raw.kps_deltas[keep] * stride)

    return CandidateBatch(
        boxes=boxes.astype(np.float32),
        scores=raw.scores[keep].astype(np.float32),
        landmarks=None if landmarks is None else landmarks.astype(np.float32),
    )

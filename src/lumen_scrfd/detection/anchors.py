"""Anchor center generation for SCRFD detection heads."""

from __future__ import annotations

from functools import lru_cache

import numpy as np
import numpy.typing as npt


def anchor_count(input_size: tuple[int, int], stride: int, num_anchors: int) -> int:
    """Number of anchors (and output rows) one head produces for `input_size`."""
    width, height = input_size
    return (height // stride) * (width // stride) * num_anchors


@lru_cache(maxsize=64)
def _anchor_centers(width: int, height: int, stride: int, num_anchors: int) -> np.ndarray:
    grid_y, grid_x = np.mgrid[: height // stride, : width // stride]
    centers = np.stack((grid_x, grid_y), axis=-1).reshape(-1, 2).astype(np.float32)
    centers *= float(stride)
    if num_anchors > 1:
        # anchors of one location are adjacent rows in the head's output
        centers = np.repeat(centers, num_anchors, axis=0)
    centers.setflags(write=False)
    return centers


def generate_anchor_centers(
    input_size: tuple[int, int], stride: int, num_anchors: int = 2
) -> npt.NDArray[np.float32]:
    """Flattened `(x, y)` anchor centers for one stride level.

    Rows are ordered row-major over the `(height // stride, width // stride)`
    grid with the `num_anchors` copies of each location next to each other,
    so row `i` lines up with row `i` of the head's score/bbox/kps tensors.

    The result is memoized per `(input_size, stride, num_anchors)` and
    returned read-only.
    """
    width, height = (int(v) for v in input_size)
    if stride <= 0 or num_anchors <= 0:
        raise ValueError(
            f"stride and num_anchors must be positive, got stride={stride} num_anchors={num_anchors}"
        )
    if width <= 0 or height <= 0:
        raise ValueError(f"input_size must be positive, got {input_size}")
    return _anchor_centers(width, height, int(stride), int(num_anchors))

"""Image to tensor normalization for the detector and for embedding models."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np
import numpy.typing as npt


def ensure_triplet(values: Sequence[float]) -> tuple[float, float, float]:
    """Per-channel triple; shorter inputs repeat their last value, empty means zeros."""
    given = [float(v) for v in values][:3] or [0.0]
    given += [given[-1]] * (3 - len(given))
    return (given[0], given[1], given[2])


def to_tensor(
    image: npt.NDArray[np.uint8],
    mean: Sequence[float] = (0.5, 0.5, 0.5),
    std: Sequence[float] = (1.0, 1.0, 1.0),
) -> npt.NDArray[np.float32]:
    """Convert an `(H, W, 3)` RGB image into a `[1, 3, H, W]` float32 tensor.

    Each channel is normalized as `(pixel / 255 - mean) / std`. The SCRFD
    detector uses `mean=0.5, std=1`; embedding models usually bring their own
    statistics.
    """
    mean_arr = np.asarray(ensure_triplet(mean), dtype=np.float32)
    std_arr = np.asarray(ensure_triplet(std), dtype=np.float32)

    normalized = image.astype(np.float32) / 255.0
    normalized = (normalized - mean_arr) / np.maximum(std_arr, 1e-6)

    tensor = np.transpose(normalized, (2, 0, 1))[np.newaxis, ...]
    return np.ascontiguousarray(tensor, dtype=np.float32)

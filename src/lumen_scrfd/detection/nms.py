"""Greedy non-maximum suppression over score-ordered boxes."""

from __future__ import annotations

import numpy as np
import numpy.typing as npt


def _areas(boxes: np.ndarray, extra: float) -> np.ndarray:
    widths = np.maximum(0.0, boxes[:, 2] - boxes[:, 0] + extra)
    heights = np.maximum(0.0, boxes[:, 3] - boxes[:, 1] + extra)
    return widths * heights


def box_iou(
    box: npt.ArrayLike, others: npt.ArrayLike, pixel_inclusive: bool = False
) -> npt.NDArray[np.float64]:
    """IoU between one `(x1, y1, x2, y2)` box and each row of `others`."""
    box = np.asarray(box, dtype=np.float64).reshape(1, 4)
    others = np.asarray(others, dtype=np.float64).reshape(-1, 4)
    extra = 1.0 if pixel_inclusive else 0.0

    xx1 = np.maximum(box[0, 0], others[:, 0])
    yy1 = np.maximum(box[0, 1], others[:, 1])
    xx2 = np.minimum(box[0, 2], others[:, 2])
    yy2 = np.minimum(box[0, 3], others[:, 3])

    w = np.maximum(0.0, xx2 - xx1 + extra)
    h = np.maximum(0.0, yy2 - yy1 + extra)
    inter = w * h
    union = _areas(box, extra)[0] + _areas(others, extra) - inter
    with np.errstate(divide="ignore", invalid="ignore"):
        iou = np.where(union > 0, inter / union, 0.0)
    return iou


def non_max_suppression(
    boxes: npt.ArrayLike, iou_threshold: float, pixel_inclusive: bool = False
) -> npt.NDArray[np.intp]:
    """Indices of the boxes that survive greedy NMS.

    `boxes` must already be sorted by descending score. The first remaining
    box is always kept; every other remaining box whose IoU with it is
    greater than or equal to `iou_threshold` is discarded. Returned indices
    preserve input order.

    Args:
        boxes: `(N, 4)` array of `(x1, y1, x2, y2)`.
        iou_threshold: Overlap at or above which a box counts as a duplicate.
        pixel_inclusive: Use `(x2 - x1 + 1) * (y2 - y1 + 1)` areas, the
            legacy integer-pixel convention.
    """
    boxes = np.asarray(boxes, dtype=np.float64).reshape(-1, 4)
    if len(boxes) == 0:
        return np.array([], dtype=np.intp)

    order = np.arange(len(boxes))
    keep: list[int] = []
    while order.size > 0:
        i = int(order[0])
        keep.append(i)
        if order.size == 1:
            break

        iou = box_iou(boxes[i], boxes[order[1:]], pixel_inclusive)
        order = order[1:][iou < iou_threshold]

    return np.array(keep, dtype=np.intp)

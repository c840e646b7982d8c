"""
Rectangle and point helpers shared by detection and alignment.

Boxes are axis-aligned rectangles stored as corner coordinates
`(x1, y1, x2, y2)` with `x2 >= x1` and `y2 >= y1`. Width and height use the
exclusive convention (`x2 - x1`) unless a caller asks for pixel-inclusive
areas explicitly.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass

Point = tuple[float, float]


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle in pixel coordinates."""

    x1: float
    y1: float
    x2: float
    y2: float

    @classmethod
    def from_xywh(cls, x: float, y: float, width: float, height: float) -> Rect:
        return cls(x, y, x + width, y + height)

    @property
    def width(self) -> float:
        return self.x2 - self.x1

    @property
    def height(self) -> float:
        return self.y2 - self.y1

    @property
    def center(self) -> Point:
        return ((self.x1 + self.x2) / 2.0, (self.y1 + self.y2) / 2.0)

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def area(self, pixel_inclusive: bool = False) -> float:
        extra = 1.0 if pixel_inclusive else 0.0
        return max(0.0, self.width + extra) * max(0.0, self.height + extra)

    def as_tuple(self) -> tuple[float, float, float, float]:
        return (self.x1, self.y1, self.x2, self.y2)

    def intersect(self, other: Rect) -> Rect:
        """Overlap of both rectangles; an empty rectangle if they are disjoint."""
        x1 = max(self.x1, other.x1)
        y1 = max(self.y1, other.y1)
        x2 = min(self.x2, other.x2)
        y2 = min(self.y2, other.y2)
        if x2 <= x1 or y2 <= y1:
            return Rect(x1, y1, x1, y1)
        return Rect(x1, y1, x2, y2)

    def iou(self, other: Rect, pixel_inclusive: bool = False) -> float:
        extra = 1.0 if pixel_inclusive else 0.0
        inter_w = max(0.0, min(self.x2, other.x2) - max(self.x1, other.x1) + extra)
        inter_h = max(0.0, min(self.y2, other.y2) - max(self.y1, other.y1) + extra)
        inter = inter_w * inter_h
        union = self.area(pixel_inclusive) + other.area(pixel_inclusive) - inter
        if union <= 0:
            return 0.0
        return inter / union

    def round(self) -> Rect:
        """Snap to integer pixel coordinates (x/y rounded, size rounded)."""
        x = round(self.x1)
        y = round(self.y1)
        return Rect(x, y, x + round(self.width), y + round(self.height))

    def scale(self, factor: float) -> Rect:
        return Rect.from_xywh(
            round(self.x1 * factor),
            round(self.y1 * factor),
            round(self.width * factor),
            round(self.height * factor),
        )

    def scale_centered(self, factor: float) -> Rect:
        """Grow or shrink around the center, keeping the center fixed."""
        cx, cy = self.center
        half_w = self.width * factor / 2.0
        half_h = self.height * factor / 2.0
        return Rect(cx - half_w, cy - half_h, cx + half_w, cy + half_h)


def minimum_superset_square(rect: Rect) -> Rect:
    """Integer square that contains `rect` in its middle."""
    cx, cy = int(rect.center[0]), int(rect.center[1])
    longer_edge = int(max(rect.width, rect.height))
    half = (longer_edge + 1) // 2
    return Rect.from_xywh(cx - half, cy - half, longer_edge, longer_edge)


def rotation_invariant_crop_area(rect: Rect) -> Rect:
    """Area containing every pixel the crop could need when rotated by any angle."""
    width = int(rect.width)
    height = int(rect.height)
    diagonal = int(math.sqrt(width * width + height * height))
    dx = diagonal - width
    dy = diagonal - height
    return Rect.from_xywh(
        int(rect.x1) - dx // 2, int(rect.y1) - dy // 2, width + dx, height + dy
    )


def scale_factor_to_fit(
    size: tuple[int, int], into: tuple[int, int], allow_upscale: bool = False
) -> float:
    """Uniform factor that makes a `(width, height)` fit into `into`.

    Capped at 1 unless `allow_upscale` is set: an image that already fits is
    kept at native resolution.
    """
    width, height = size
    into_w, into_h = into
    if width <= 0 or height <= 0:
        raise ValueError(f"Cannot fit an empty size: {size}")
    factor = min(into_w / width, into_h / height)
    return factor if allow_upscale else min(factor, 1.0)


def face_alignment_angle(landmarks: Sequence[Point]) -> float:
    """Roll angle in degrees that levels the eye line (left eye first)."""
    left_eye, right_eye = landmarks[0], landmarks[1]
    dx = right_eye[0] - left_eye[0]
    dy = right_eye[1] - left_eye[1]
    return -math.degrees(math.atan2(dy, dx))

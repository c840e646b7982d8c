"""SCRFD output decoding: anchors, per-stride decode, fusion, NMS and rescaling."""

from .anchors import anchor_count, generate_anchor_centers
from .decoder import (
    HeadAddress,
    RawStrideOutput,
    decode_stride,
    indexed_heads,
    named_heads,
)
from .detector import DetectorOptions, ScrfdDetector
from .fusion import fuse_candidates
from .nms import box_iou, non_max_suppression
from .results import CandidateBatch, DetectionCandidate, FaceDetectorResult
from .scaling import ResizeMeta, dynamic_input_size, fit_to_input, rescale_candidates

__all__ = [
    "CandidateBatch",
    "DetectionCandidate",
    "DetectorOptions",
    "FaceDetectorResult",
    "HeadAddress",
    "RawStrideOutput",
    "ResizeMeta",
    "ScrfdDetector",
    "anchor_count",
    "box_iou",
    "decode_stride",
    "dynamic_input_size",
    "fit_to_input",
    "fuse_candidates",
    "generate_anchor_centers",
    "indexed_heads",
    "named_heads",
    "non_max_suppression",
    "rescale_candidates",
]

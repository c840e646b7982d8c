"""
Lumen SCRFD face core.

Decodes SCRFD face detector outputs into boxes, scores and 5-point landmarks,
and aligns detected faces into canonical 112x112 crops for embedding models.

Features:
- Anchor grid generation and per-stride score/box/landmark decoding
- Cross-stride fusion with greedy non-maximum suppression
- Letterbox input preparation and mapping back to image coordinates
- Least-squares landmark alignment onto the ArcFace layout
- ONNX Runtime inference engine and YAML configuration
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("lumen-scrfd")
except PackageNotFoundError:
    # package is not installed
    __version__ = "0.0.0"

from .alignment import (
    ARCFACE_REFERENCE_LANDMARKS,
    FaceAligner,
    SimilarityTransform,
    align_face,
    estimate_similarity_transform,
)
from .applications import blur_faces, crop_profile_picture
from .config import AlignmentSettings, DetectionSettings, FaceCoreConfig
from .detection import DetectorOptions, FaceDetectorResult, ScrfdDetector
from .exceptions import (
    AlignmentError,
    ConfigError,
    DimensionMismatchError,
    FaceCoreError,
    NoFaceFoundError,
)
from .geometry import Rect

__all__ = [
    "ARCFACE_REFERENCE_LANDMARKS",
    "AlignmentError",
    "AlignmentSettings",
    "ConfigError",
    "DetectionSettings",
    "DetectorOptions",
    "DimensionMismatchError",
    "FaceAligner",
    "FaceCoreConfig",
    "FaceCoreError",
    "FaceDetectorResult",
    "NoFaceFoundError",
    "Rect",
    "ScrfdDetector",
    "SimilarityTransform",
    "align_face",
    "blur_faces",
    "crop_profile_picture",
    "estimate_similarity_transform",
]

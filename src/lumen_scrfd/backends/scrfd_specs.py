"""Static descriptions of known SCRFD model packs.

This module exposes hard-coded detection specs for the SCRFD model bundles we
support. `DetectionSettings` can be seeded from `PACK_SPECS` to configure
preprocessing and output decoding without extra metadata files.

Normalization values are expressed on the `[0, 1]` pixel scale, i.e. the
detector input is `(pixel / 255 - mean) / std`.

Output addressing comes in two flavours:
- "named": heads are looked up as `score_{stride}`, `bbox_{stride}` and
  `kps_{stride}` (models exported with descriptive output names).
- a list of per-stride index mappings: outputs are grouped by type across all
  strides, `[scores...], [bboxes...], [keypoints...]`, NOT grouped by stride.
"""

from __future__ import annotations

_INSIGHTFACE_INDEXED_OUTPUTS = [
    {"stride": 8, "score": 0, "bbox": 3, "kps": 6},
    {"stride": 16, "score": 1, "bbox": 4, "kps": 7},
    {"stride": 32, "score": 2, "bbox": 5, "kps": 8},
]

PACK_SPECS = {
    "scrfd_500m_bnkps": {
        "input_size": None,
        "mean": (0.5, 0.5, 0.5),
        "std": (1.0, 1.0, 1.0),
        "strides": [8, 16, 32],
        "num_anchors": 2,
        "outputs": "named",
        "confidence_threshold": 0.5,
        "nms_threshold": 0.4,
    },
    "scrfd_2.5g_bnkps": {
        "input_size": None,
        "mean": (0.5, 0.5, 0.5),
        "std": (1.0, 1.0, 1.0),
        "strides": [8, 16, 32],
        "num_anchors": 2,
        "outputs": "named",
        "confidence_threshold": 0.5,
        "nms_threshold": 0.4,
    },
    "scrfd_10g_bnkps": {
        "input_size": None,
        "mean": (0.5, 0.5, 0.5),
        "std": (1.0, 1.0, 1.0),
        "strides": [8, 16, 32],
        "num_anchors": 2,
        "outputs": "named",
        "confidence_threshold": 0.5,
        "nms_threshold": 0.4,
    },
    "buffalo_l": {
        "input_size": (640, 640),
        "mean": (0.5, 0.5, 0.5),
        "std": (0.50196, 0.50196, 0.50196),  # 128 / 255
        "strides": [8, 16, 32],
        "num_anchors": 2,
        "outputs": _INSIGHTFACE_INDEXED_OUTPUTS,
        "confidence_threshold": 0.5,
        "nms_threshold": 0.4,
    },
    "buffalo_s": {
        "input_size": (640, 640),
        "mean": (0.5, 0.5, 0.5),
        "std": (0.50196, 0.50196, 0.50196),
        "strides": [8, 16, 32],
        "num_anchors": 2,
        "outputs": _INSIGHTFACE_INDEXED_OUTPUTS,
        "confidence_threshold": 0.5,
        "nms_threshold": 0.4,
    },
}

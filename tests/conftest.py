"""
Pytest configuration and shared fixtures for lumen-scrfd tests.

Detector tests never load a real model: `FakeEngine` returns hand-built head
tensors so every decode step can be checked against known coordinates.
"""

import numpy as np
import pytest

from lumen_scrfd.backends.base import EngineInfo, InferenceEngine
from lumen_scrfd.detection.anchors import anchor_count


class FakeEngine(InferenceEngine):
    """In-memory engine returning preset outputs and recording its inputs."""

    def __init__(self, outputs=None, input_size=(64, 64), batched=False, error=None):
        super().__init__()
        self.outputs = outputs or {}
        self.input_size = input_size
        self.batched = batched
        self.error = error
        self.calls = []

    def initialize(self):
        self._initialized = True

    def get_runtime_info(self):
        return EngineInfo(
            runtime="fake",
            device="cpu",
            model_id="fake.onnx",
            input_name="input.1",
            input_size=self.input_size,
            output_names=list(self.outputs.keys()),
            batched=self.batched,
        )

    def run(self, tensor):
        super().run(tensor)
        self.calls.append(tensor)
        if self.error is not None:
            raise self.error
        return self.outputs


def make_head_outputs(input_size, strides=(8, 16, 32), num_anchors=2, with_kps=True):
    """Zero-score outputs for every stride, keyed `score_{s}`/`bbox_{s}`/`kps_{s}`."""
    outputs = {}
    for s in strides:
        k = anchor_count(input_size, s, num_anchors)
        outputs[f"score_{s}"] = np.zeros((k, 1), dtype=np.float32)
        outputs[f"bbox_{s}"] = np.zeros((k, 4), dtype=np.float32)
        if with_kps:
            outputs[f"kps_{s}"] = np.zeros((k, 10), dtype=np.float32)
    return outputs


def anchor_row(input_size, stride, grid_x, grid_y, anchor=0, num_anchors=2):
    """Output row index of an anchor at grid position `(grid_x, grid_y)`."""
    cols = input_size[0] // stride
    return (grid_y * cols + grid_x) * num_anchors + anchor


@pytest.fixture
def fake_engine_factory():
    return FakeEngine


@pytest.fixture
def head_outputs():
    return make_head_outputs


@pytest.fixture
def row_of():
    return anchor_row


@pytest.fixture
def gradient_image():
    """256x256 RGB image with distinct values per pixel position."""
    ys, xs = np.mgrid[0:256, 0:256]
    image = np.stack(
        [xs % 256, ys % 256, (xs + ys) % 256], axis=-1
    ).astype(np.uint8)
    return image


@pytest.fixture
def random_image():
    np.random.seed(42)  # For reproducible tests
    return np.random.randint(0, 256, (240, 320, 3), dtype=np.uint8)


# Custom pytest markers for categorizing tests
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
    config.addinivalue_line(
        "markers", "detection: marks tests for the detection decode pipeline"
    )
    config.addinivalue_line("markers", "alignment: marks tests for face alignment")
    config.addinivalue_line(
        "markers", "model_loading: marks tests for model loading"
    )


def pytest_collection_modifyitems(config, items):
    """Add markers to tests based on their location."""
    for item in items:
        path = str(item.fspath)
        if "unit/" in path:
            item.add_marker(pytest.mark.unit)
        if "test_detection" in path:
            item.add_marker(pytest.mark.detection)
        elif "test_alignment" in path:
            item.add_marker(pytest.mark.alignment)

"""Unit tests for face blurring and profile picture cropping."""

import numpy as np
import pytest

from lumen_scrfd.applications import blur_faces, crop_profile_picture
from lumen_scrfd.detection.detector import ScrfdDetector
from lumen_scrfd.exceptions import NoFaceFoundError

INPUT = (64, 64)


@pytest.fixture
def detector(fake_engine_factory, head_outputs, row_of):
    outputs = head_outputs(INPUT)
    row = row_of(INPUT, 8, 2, 2)
    outputs["score_8"][row] = 0.9
    outputs["bbox_8"][row] = [1, 1, 1, 1]
    # level eyes, face centered at (16, 16)
    outputs["kps_8"][row] = [-0.5, -0.5, 0.5, -0.5, 0, 0, -0.5, 0.5, 0.5, 0.5]
    return ScrfdDetector(fake_engine_factory(outputs, INPUT))


@pytest.fixture
def empty_detector(fake_engine_factory, head_outputs):
    return ScrfdDetector(fake_engine_factory(head_outputs(INPUT), INPUT))


@pytest.fixture
def noise_image():
    np.random.seed(0)
    return np.random.randint(0, 256, (64, 64, 3), dtype=np.uint8)


class TestBlurFaces:
    """Blurring detected face regions."""

    def test_blurs_face_region_only(self, detector, noise_image):
        blurred, count = blur_faces(detector, noise_image)

        assert count == 1
        assert not np.array_equal(blurred[8:24, 8:24], noise_image[8:24, 8:24])
        np.testing.assert_array_equal(blurred[30:, :], noise_image[30:, :])
        np.testing.assert_array_equal(blurred[:, 30:], noise_image[:, 30:])
        # blurring smooths the noise
        assert blurred[8:24, 8:24].std() < noise_image[8:24, 8:24].std()

    def test_input_untouched(self, detector, noise_image):
        before = noise_image.copy()
        blur_faces(detector, noise_image)
        np.testing.assert_array_equal(noise_image, before)

    def test_no_faces(self, empty_detector, noise_image):
        blurred, count = blur_faces(empty_detector, noise_image)
        assert count == 0
        np.testing.assert_array_equal(blurred, noise_image)
        assert blurred is not noise_image

    def test_invalid_sigma_factor(self, detector, noise_image):
        with pytest.raises(ValueError):
            blur_faces(detector, noise_image, blur_sigma_factor=0)


class TestCropProfilePicture:
    """Square crop around the best face."""

    def test_square_crop_around_face(self, detector, noise_image):
        out = crop_profile_picture(detector, noise_image)
        # box (8, 8, 24, 24) grown by 1.35 around (16, 16) -> 21px square at (5, 5)
        assert out.shape == (21, 21, 3)
        np.testing.assert_array_equal(out, noise_image[5:26, 5:26])

    def test_max_edge_size(self, detector, noise_image):
        out = crop_profile_picture(detector, noise_image, max_edge_size=10)
        assert out.shape[0] == out.shape[1]
        assert out.shape[0] <= 11

    def test_no_face_found(self, empty_detector, noise_image):
        with pytest.raises(NoFaceFoundError, match="No faces"):
            crop_profile_picture(empty_detector, noise_image)

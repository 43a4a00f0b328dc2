import numpy as np
import pytest

from sheet_transposer.perspective import (
    correct_perspective,
    find_document_quad,
    warp_to_rectangle,
)
from sheet_transposer.models import Quadrilateral


def test_find_document_quad_locates_sheet(document_photo):
    quad = find_document_quad(document_photo)
    assert quad is not None
    expected = [[100, 80], [500, 120], [520, 700], [80, 680]]
    for found, corner in zip(quad.as_list(), expected):
        assert found[0] == pytest.approx(corner[0], abs=6)
        assert found[1] == pytest.approx(corner[1], abs=6)


def test_flat_image_has_no_document():
    blank = np.full((400, 300, 3), 255, dtype=np.uint8)
    assert find_document_quad(blank) is None


def test_small_contour_is_ignored():
    photo = np.full((400, 400), 255, dtype=np.uint8)
    photo[10:40, 10:40] = 0
    assert find_document_quad(photo) is None


def test_warp_fills_outside_with_white():
    image = np.zeros((100, 100, 3), dtype=np.uint8)
    # Quad extending past the right edge of the source
    quad = Quadrilateral.from_points([(50, 0), (150, 0), (150, 99), (50, 99)])
    warped = warp_to_rectangle(image, quad)
    assert warped.shape[:2] == (99, 100)
    assert warped[50, 90].tolist() == [255, 255, 255]
    assert warped[50, 10].tolist() == [0, 0, 0]


def test_correct_perspective_flattens_photo(document_photo, vision):
    corrected = correct_perspective(document_photo, vision)
    assert corrected is not None
    image, quad = corrected
    height, width = image.shape[:2]
    assert width == pytest.approx(440, abs=10)
    assert height == pytest.approx(600, abs=10)
    assert image.mean() > 200
    assert len(quad.corners) == 4


def test_correct_perspective_declines_without_vision(document_photo, no_vision):
    assert correct_perspective(document_photo, no_vision) is None


def test_correct_perspective_never_raises(vision):
    assert correct_perspective(np.zeros((0, 0), dtype=np.uint8), vision) is None

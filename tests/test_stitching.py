import cv2
import numpy as np
import pytest

from sheet_transposer.stitching import (
    STITCHED_FILENAME,
    natural_sort_key,
    stitch_arrays,
    stitch_images,
)


def test_natural_sort_orders_numbers_numerically():
    names = ["IMG_10.jpg", "img_2.jpg", "IMG_1.jpg"]
    ordered = sorted(names, key=natural_sort_key)
    assert ordered == ["IMG_1.jpg", "img_2.jpg", "IMG_10.jpg"]


def test_stitch_height_is_sum_of_rescaled_heights():
    top = np.zeros((100, 200), dtype=np.uint8)
    bottom = np.zeros((50, 100, 3), dtype=np.uint8)
    canvas = stitch_arrays([top, bottom])
    # The narrower page is scaled to 200px wide, doubling its height
    assert canvas.shape == (200, 200, 3)


def test_stitch_keeps_order_without_gaps():
    black = np.zeros((10, 20), dtype=np.uint8)
    gray = np.full((10, 20), 128, dtype=np.uint8)
    canvas = stitch_arrays([black, gray])
    assert canvas[9, 0].tolist() == [0, 0, 0]
    assert canvas[10, 0].tolist() == [128, 128, 128]


def test_stitch_arrays_rejects_empty():
    with pytest.raises(ValueError):
        stitch_arrays([])


def test_stitch_images_orders_by_name(tmp_path):
    # page10 is dark, page2 is light: page2 must come first
    cv2.imwrite(str(tmp_path / "page10.png"), np.zeros((30, 40), dtype=np.uint8))
    cv2.imwrite(str(tmp_path / "page2.png"), np.full((30, 40), 200, dtype=np.uint8))
    paths = [str(tmp_path / "page10.png"), str(tmp_path / "page2.png")]

    output = stitch_images(paths, str(tmp_path / "out"))
    assert output.endswith(STITCHED_FILENAME)
    stitched = cv2.imread(output)
    assert stitched.shape == (60, 40, 3)
    assert stitched[0, 0].tolist() == [200, 200, 200]
    assert stitched[59, 0].tolist() == [0, 0, 0]


def test_single_image_is_returned_unchanged(tmp_path):
    path = tmp_path / "only.png"
    cv2.imwrite(str(path), np.zeros((5, 5), dtype=np.uint8))
    assert stitch_images([str(path)], str(tmp_path / "out")) == str(path)
    assert not (tmp_path / "out").exists()


def test_stitch_images_rejects_empty(tmp_path):
    with pytest.raises(ValueError):
        stitch_images([], str(tmp_path))


def test_stitch_images_rejects_unreadable(tmp_path):
    bad = tmp_path / "a.png"
    bad.write_bytes(b"garbage")
    good = tmp_path / "b.png"
    cv2.imwrite(str(good), np.zeros((5, 5), dtype=np.uint8))
    with pytest.raises(ValueError):
        stitch_images([str(bad), str(good)], str(tmp_path / "out"))

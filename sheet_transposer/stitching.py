"""Vertical stitching of several page images into one canvas.

The OMR engine handles one tall image more reliably than several separate
pages, so multi-page uploads are stacked top-to-bottom before recognition.
"""

import logging
import os
import re
from pathlib import Path

import cv2
import numpy as np

logger = logging.getLogger(__name__)

STITCHED_FILENAME = "stitched.png"


def natural_sort_key(name: str) -> list:
    """Sort key that orders embedded numbers numerically.

    "IMG_2.jpg" sorts before "IMG_10.jpg". Comparison is case-insensitive.

    Args:
        name: File name (or any string).

    Returns:
        List alternating text and integer chunks, usable as a sort key.
    """
    return [
        int(chunk) if chunk.isdigit() else chunk.lower()
        for chunk in re.split(r"(\d+)", name)
    ]


def _to_bgr(image: np.ndarray) -> np.ndarray:
    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
    return image


def stitch_arrays(images: list[np.ndarray]) -> np.ndarray:
    """Stack images vertically on a white canvas.

    Images narrower than the widest one are resized to that width with
    their aspect ratio preserved. There are no gaps between images.

    Args:
        images: Images in top-to-bottom order.

    Returns:
        A 3-channel canvas of width ``max(widths)`` and height equal to the
        sum of the (rescaled) heights.

    Raises:
        ValueError: If ``images`` is empty.
    """
    if not images:
        raise ValueError("No images to stitch")

    max_width = max(image.shape[1] for image in images)
    resized = []
    for image in images:
        height, width = image.shape[:2]
        if width != max_width:
            new_height = max(int(round(height * max_width / width)), 1)
            image = cv2.resize(
                image, (max_width, new_height), interpolation=cv2.INTER_LANCZOS4
            )
        resized.append(_to_bgr(image))

    total_height = sum(image.shape[0] for image in resized)
    canvas = np.full((total_height, max_width, 3), 255, dtype=np.uint8)

    y_offset = 0
    for image in resized:
        height = image.shape[0]
        canvas[y_offset : y_offset + height, :, :] = image
        y_offset += height

    return canvas


def stitch_images(paths: list[str], output_dir: str) -> str:
    """Stitch page images into one tall image file.

    Pages are ordered by file name with numbers compared numerically.
    Inputs are never modified.

    Args:
        paths: Image paths, in any order.
        output_dir: Directory for ``stitched.png`` (created if needed).

    Returns:
        The stitched image path, or the only input path when a single image
        is given.

    Raises:
        ValueError: If no paths are given or an image cannot be read.
    """
    if not paths:
        raise ValueError("No images to stitch")
    if len(paths) == 1:
        return paths[0]

    ordered = sorted(paths, key=lambda p: natural_sort_key(os.path.basename(p)))
    logger.info(
        f"Stitching images in order: {[os.path.basename(p) for p in ordered]}"
    )

    images = []
    for path in ordered:
        image = cv2.imread(path, cv2.IMREAD_UNCHANGED)
        if image is None:
            raise ValueError(f"Could not read image: {path}")
        images.append(image)

    canvas = stitch_arrays(images)

    Path(output_dir).mkdir(parents=True, exist_ok=True)
    output_path = os.path.join(output_dir, STITCHED_FILENAME)
    if not cv2.imwrite(output_path, canvas):
        raise ValueError(f"Could not write stitched image: {output_path}")

    logger.info(
        f"Stitched image saved to {output_path} ({canvas.shape[1]}x{canvas.shape[0]}px)"
    )
    return output_path

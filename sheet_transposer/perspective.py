"""Perspective correction for photographed sheet music.

This module detects the outline of a document in a photograph and maps it
onto a flat rectangle. Photos that are already flat or tightly cropped have
no dominant document contour, and are left alone.
"""

import logging

import cv2
import numpy as np

from sheet_transposer.models.core_models import Quadrilateral
from sheet_transposer.vision import VisionCapability

logger = logging.getLogger(__name__)

MIN_AREA_FRACTION = 0.1
POLY_EPSILON_FRACTION = 0.02
WHITE = (255, 255, 255)


def _to_gray(image: np.ndarray) -> np.ndarray:
    if image.ndim == 2:
        return image
    return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)


def find_document_quad(image: np.ndarray) -> Quadrilateral | None:
    """Find the four corners of the dominant document outline.

    Runs grayscale, 5x5 Gaussian blur, Canny edge detection and external
    contour extraction, then keeps the largest contour. The contour must
    cover at least 10% of the image and simplify to exactly four vertices
    at a tolerance of 2% of its perimeter.

    Args:
        image: BGR or grayscale image as a NumPy array.

    Returns:
        The document corners in canonical order, or None if no suitable
        quadrilateral was found.
    """
    height, width = image.shape[:2]
    gray = _to_gray(image)
    blurred = cv2.GaussianBlur(gray, (5, 5), 0)
    edges = cv2.Canny(blurred, 50, 150)

    contours, _ = cv2.findContours(edges, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
    if not contours:
        logger.info("No document contour found, skipping correction")
        return None

    largest = max(contours, key=cv2.contourArea)
    max_area = cv2.contourArea(largest)
    if max_area < width * height * MIN_AREA_FRACTION:
        logger.info("No significant document contour found, skipping correction")
        return None

    perimeter = cv2.arcLength(largest, True)
    approx = cv2.approxPolyDP(largest, POLY_EPSILON_FRACTION * perimeter, True)
    if len(approx) != 4:
        logger.info(
            f"Document contour has {len(approx)} corners (need 4), skipping correction"
        )
        return None

    return Quadrilateral.from_points(approx.reshape(4, 2))


def warp_to_rectangle(image: np.ndarray, quad: Quadrilateral) -> np.ndarray:
    """Map the quadrilateral onto an upright rectangle.

    Pixels sampled from outside the source image are filled with white.

    Args:
        image: Source image.
        quad: Document corners in canonical order.

    Returns:
        The rectified image, sized from the longer of each pair of opposing
        quadrilateral edges.
    """
    width, height = quad.output_size
    out_w = max(int(round(width)), 1)
    out_h = max(int(round(height)), 1)

    src = np.array(quad.as_list(), dtype=np.float32)
    dst = np.array(
        [[0, 0], [width, 0], [width, height], [0, height]], dtype=np.float32
    )
    matrix = cv2.getPerspectiveTransform(src, dst)

    border = WHITE if image.ndim == 3 else 255
    return cv2.warpPerspective(
        image,
        matrix,
        (out_w, out_h),
        flags=cv2.INTER_LINEAR,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=border,
    )


def correct_perspective(
    image: np.ndarray, vision: VisionCapability
) -> tuple[np.ndarray, Quadrilateral] | None:
    """Detect a document in the photo and flatten it.

    Never raises: any failure is logged and reported as "no correction",
    and the caller continues with the original image.

    Args:
        image: BGR or grayscale image.
        vision: Vision capability handle.

    Returns:
        Tuple of (rectified image, corners used), or None if no correction
        was applied.
    """
    if not vision.available:
        logger.warning("OpenCV not available, skipping perspective correction")
        return None

    try:
        quad = find_document_quad(image)
        if quad is None:
            return None
        warped = warp_to_rectangle(image, quad)
    except Exception as e:
        logger.warning(f"Perspective correction failed: {str(e)}")
        return None

    logger.info(
        f"Applied perspective correction: {warped.shape[1]}x{warped.shape[0]}px"
    )
    return warped, quad

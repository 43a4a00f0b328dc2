"""Skew detection and correction using staff lines.

Staff lines are the longest near-horizontal structures on a page of sheet
music, so the median angle of Hough line segments is a robust estimate of
the residual page rotation.
"""

import logging
import math

import cv2
import numpy as np

from sheet_transposer.models.core_models import SkewEstimate
from sheet_transposer.vision import VisionCapability

logger = logging.getLogger(__name__)

HOUGH_RHO = 1
HOUGH_THETA = np.pi / 180
HOUGH_THRESHOLD = 80
HOUGH_MIN_LINE_LENGTH = 50
HOUGH_MAX_LINE_GAP = 10
MAX_STAFF_ANGLE = 45.0


def normalize_segment_angle(x1: float, y1: float, x2: float, y2: float) -> float:
    """Angle of a segment folded into [-90, 90) degrees.

    Direction does not matter, so a segment and its reverse fold to the same
    value and a horizontal segment maps to 0.
    """
    angle = math.degrees(math.atan2(y2 - y1, x2 - x1))
    return ((angle + 90) % 180) - 90


def detect_line_segments(gray: np.ndarray) -> np.ndarray:
    """Run Canny and the probabilistic Hough transform.

    Args:
        gray: Grayscale image.

    Returns:
        Array of shape (N, 4) with x1, y1, x2, y2 per segment (N may be 0).
    """
    edges = cv2.Canny(gray, 50, 150, apertureSize=3)
    lines = cv2.HoughLinesP(
        edges,
        HOUGH_RHO,
        HOUGH_THETA,
        HOUGH_THRESHOLD,
        minLineLength=HOUGH_MIN_LINE_LENGTH,
        maxLineGap=HOUGH_MAX_LINE_GAP,
    )
    if lines is None:
        return np.empty((0, 4), dtype=np.int32)
    return lines.reshape(-1, 4)


def staff_angles(segments: np.ndarray) -> list[float]:
    """Normalized angles of the segments that can be staff lines."""
    angles = []
    for x1, y1, x2, y2 in segments:
        angle = normalize_segment_angle(x1, y1, x2, y2)
        if abs(angle) < MAX_STAFF_ANGLE:
            angles.append(angle)
    return angles


def median_angle(angles: list[float]) -> float:
    """Upper median of the angles (the middle element after sorting)."""
    ordered = sorted(angles)
    return ordered[len(ordered) // 2]


def estimate_skew(image: np.ndarray) -> SkewEstimate:
    """Measure staff-line tilt.

    Args:
        image: BGR or grayscale image.

    Returns:
        SkewEstimate with the median angle, or an empty estimate when no
        near-horizontal segment was found.
    """
    gray = image if image.ndim == 2 else cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    angles = staff_angles(detect_line_segments(gray))
    if not angles:
        return SkewEstimate()
    return SkewEstimate(angle=median_angle(angles), segment_count=len(angles))


def detect_skew_angle(image: np.ndarray, vision: VisionCapability) -> float:
    """Rotation in degrees that removes the detected skew.

    Best effort: returns 0.0 when nothing is detected or anything fails.

    Args:
        image: BGR or grayscale image.
        vision: Vision capability handle.

    Returns:
        The negated median staff-line angle, or 0.0.
    """
    if not vision.available:
        logger.warning("OpenCV not available, skipping deskew detection")
        return 0.0

    try:
        estimate = estimate_skew(image)
    except Exception as e:
        logger.warning(f"Hough transform failed: {str(e)}")
        return 0.0

    if estimate.angle is None:
        logger.info("No horizontal lines detected, assuming no skew")
        return 0.0

    logger.info(
        f"Detected {estimate.segment_count} lines, "
        f"median angle: {estimate.angle:.2f} degrees"
    )
    return estimate.correction


def rotate_image(image: np.ndarray, angle: float) -> np.ndarray:
    """Rotate an image about its centre, growing the canvas to fit.

    Positive angles rotate clockwise, so the value returned by
    :func:`detect_skew_angle` can be applied directly. Uncovered corners
    are white.

    Args:
        image: BGR or grayscale image.
        angle: Clockwise rotation in degrees.

    Returns:
        The rotated image.
    """
    height, width = image.shape[:2]
    center = (width / 2.0, height / 2.0)
    matrix = cv2.getRotationMatrix2D(center, -angle, 1.0)

    cos = abs(matrix[0, 0])
    sin = abs(matrix[0, 1])
    new_w = int(round(height * sin + width * cos))
    new_h = int(round(height * cos + width * sin))
    matrix[0, 2] += new_w / 2.0 - center[0]
    matrix[1, 2] += new_h / 2.0 - center[1]

    border = (255, 255, 255) if image.ndim == 3 else 255
    return cv2.warpAffine(
        image,
        matrix,
        (new_w, new_h),
        flags=cv2.INTER_LINEAR,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=border,
    )

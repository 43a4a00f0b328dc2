"""Image normalization functions for the sheet-music pipeline.

This module prepares photographs of printed music for optical music
recognition. Each stage is a function that returns a new image, or None
when it could not do its job; :func:`normalize_image` runs the enabled
stages in a fixed order and keeps the previous image whenever a stage
declines, so a failing enhancement never blocks the rest of the pipeline.

Stage order:
1. Perspective correction (geometry first, so later detectors see a flat page)
2. Curvature check (warning only)
3. Skew measurement and rotation
4. Size normalization
5. Grayscale conversion
6. Contrast enhancement (optional)
7. Median denoise (optional)
8. Sharpening (always)
9. Binarization (optional): adaptive, falling back to a global threshold
"""

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import cv2
import numpy as np

from sheet_transposer.models import NormalizationParams, NormalizationResult
from sheet_transposer.perspective import correct_perspective
from sheet_transposer.skew import (
    detect_line_segments,
    detect_skew_angle,
    median_angle,
    rotate_image,
    staff_angles,
)
from sheet_transposer.vision import VisionCapability

logger = logging.getLogger(__name__)

MIN_WIDTH = 1000
MAX_WIDTH = 4000
UPSCALE_WIDTH = 2000
DOWNSCALE_WIDTH = 3000

CURVATURE_SPREAD_DEGREES = 1.5
ADAPTIVE_BLOCK_SIZE = 15
ADAPTIVE_C = 10
DEFAULT_THRESHOLD = 128


def check_page_curvature(image: np.ndarray, vision: VisionCapability) -> bool | None:
    """Check whether the page looks curved, without changing it.

    Staff lines on a flat page have the same tilt everywhere. The image is
    split into left, centre and right thirds and the median staff-line
    angle of each third is compared; a spread above
    ``CURVATURE_SPREAD_DEGREES`` suggests a curved page (for example near a
    book binding).

    Args:
        image: BGR or grayscale image.
        vision: Vision capability handle.

    Returns:
        True if curvature is suspected, False if not, None if the check
        could not run.
    """
    if not vision.available:
        return None
    try:
        gray = image if image.ndim == 2 else cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
        width = gray.shape[1]
        medians = []
        for i in range(3):
            band = gray[:, i * width // 3 : (i + 1) * width // 3]
            angles = staff_angles(detect_line_segments(band))
            if angles:
                medians.append(median_angle(angles))
    except Exception as e:
        logger.warning(f"Curvature check failed: {str(e)}")
        return None

    if len(medians) < 2:
        return False
    spread = max(medians) - min(medians)
    if spread > CURVATURE_SPREAD_DEGREES:
        logger.warning(
            f"Page curvature suspected (staff angles differ by {spread:.2f} degrees "
            "across the page); recognition quality may suffer"
        )
        return True
    return False


def resize_to_working_width(image: np.ndarray) -> np.ndarray | None:
    """Bring very small or very large images to a workable width.

    Images narrower than 1000px are upscaled to 2000px and images wider than
    4000px are downscaled to 3000px, preserving the aspect ratio.

    Returns:
        The resized image, or None if the width is already acceptable.
    """
    height, width = image.shape[:2]
    if MIN_WIDTH <= width <= MAX_WIDTH:
        return None
    target = UPSCALE_WIDTH if width < MIN_WIDTH else DOWNSCALE_WIDTH
    new_height = max(int(round(height * target / width)), 1)
    interpolation = cv2.INTER_CUBIC if target > width else cv2.INTER_AREA
    return cv2.resize(image, (target, new_height), interpolation=interpolation)


def to_grayscale(image: np.ndarray) -> np.ndarray:
    if image.ndim == 2:
        return image
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)


def enhance_contrast(gray: np.ndarray) -> np.ndarray | None:
    """Stretch the 1st-99th percentile gray range to 0-255.

    Returns:
        The stretched image, or None for a flat (single-level) image.
    """
    low, high = np.percentile(gray, (1, 99))
    if high <= low:
        return None
    stretched = (gray.astype(np.float32) - low) * (255.0 / (high - low))
    return np.clip(stretched, 0, 255).astype(np.uint8)


def denoise(gray: np.ndarray) -> np.ndarray:
    """3x3 median filter."""
    return cv2.medianBlur(gray, 3)


def sharpen(gray: np.ndarray) -> np.ndarray:
    """Unsharp mask to make staff lines and noteheads crisper."""
    blurred = cv2.GaussianBlur(gray, (0, 0), 1.0)
    return cv2.addWeighted(gray, 1.5, blurred, -0.5, 0)


def binarize_adaptive(gray: np.ndarray, vision: VisionCapability) -> np.ndarray | None:
    """Gaussian adaptive threshold, robust to uneven lighting.

    Returns:
        Binary image (0 or 255), or None if adaptive thresholding is not
        available or failed.
    """
    if not vision.adaptive_threshold:
        return None
    try:
        return cv2.adaptiveThreshold(
            gray,
            255,
            cv2.ADAPTIVE_THRESH_GAUSSIAN_C,
            cv2.THRESH_BINARY,
            ADAPTIVE_BLOCK_SIZE,
            ADAPTIVE_C,
        )
    except Exception as e:
        logger.warning(f"Adaptive threshold failed: {str(e)}")
        return None


def binarize_global(gray: np.ndarray, threshold: int | None = None) -> np.ndarray:
    """Global threshold after a fixed contrast stretch.

    The image is stretched to the full range, boosted with ``1.5 * v - 64``
    and thresholded: pixels at or above the threshold become white.

    Args:
        gray: Grayscale image.
        threshold: Threshold value (0-255); 128 when None.

    Returns:
        Binary image (0 or 255).
    """
    stretched = cv2.normalize(gray, None, 0, 255, cv2.NORM_MINMAX)
    boosted = cv2.convertScaleAbs(stretched, alpha=1.5, beta=-64)
    value = DEFAULT_THRESHOLD if threshold is None else threshold
    _, binary = cv2.threshold(boosted, value - 1, 255, cv2.THRESH_BINARY)
    return binary


def _run_stage(name: str, func, *args):
    """Run one best-effort stage, turning unexpected errors into None."""
    try:
        return func(*args)
    except Exception as e:
        logger.warning(f"{name} failed, skipping: {str(e)}")
        return None


def normalize_image(
    image: np.ndarray | None,
    params: NormalizationParams,
    vision: VisionCapability,
) -> NormalizationResult:
    """Normalize one photograph for recognition.

    Args:
        image: BGR, BGRA or grayscale image as a NumPy array.
        params: Which optional stages to run.
        vision: Vision capability handle.

    Returns:
        NormalizationResult with the final image and what was applied.
        Never raises for a supported image.
    """
    if image is None:
        logger.warning("No image provided for normalization")
        return NormalizationResult()

    result = NormalizationResult()
    working = image
    if working.ndim == 3 and working.shape[2] == 4:
        working = cv2.cvtColor(working, cv2.COLOR_BGRA2BGR)

    # 1. Perspective correction
    if params.correct_perspective:
        corrected = correct_perspective(working, vision)
        if corrected is not None:
            working, result.quadrilateral = corrected
            result.applied_stages.append("perspective")

    # 2. Curvature check, warning only
    if params.check_curvature:
        result.curvature_suspected = check_page_curvature(working, vision)

    # 3. Skew measured on the corrected image
    if params.deskew:
        angle = detect_skew_angle(working, vision)
        if angle != 0.0:
            rotated = _run_stage("Rotation", rotate_image, working, angle)
            if rotated is not None:
                logger.info(f"Applying rotation: {angle:.2f} degrees")
                working = rotated
                result.skew_correction = angle
                result.applied_stages.append("deskew")

    # 4. Size normalization
    resized = _run_stage("Resize", resize_to_working_width, working)
    if resized is not None:
        working = resized
        result.applied_stages.append("resize")

    # 5. Grayscale
    gray = _run_stage("Grayscale conversion", to_grayscale, working)
    if gray is not None:
        working = gray
        result.applied_stages.append("grayscale")

    # 6. Contrast
    if params.enhance_contrast:
        enhanced = _run_stage("Contrast enhancement", enhance_contrast, working)
        if enhanced is not None:
            working = enhanced
            result.applied_stages.append("contrast")

    # 7. Denoise
    if params.denoise:
        denoised = _run_stage("Denoise", denoise, working)
        if denoised is not None:
            working = denoised
            result.applied_stages.append("denoise")

    # 8. Sharpen
    sharpened = _run_stage("Sharpen", sharpen, working)
    if sharpened is not None:
        working = sharpened
        result.applied_stages.append("sharpen")

    # 9. Binarization
    if params.binarize:
        binary = _run_stage("Adaptive threshold", binarize_adaptive, working, vision)
        stage = "adaptive-threshold"
        if binary is None:
            binary = _run_stage(
                "Global threshold", binarize_global, working, params.threshold
            )
            stage = "global-threshold"
        if binary is not None:
            working = binary
            result.applied_stages.append(stage)

    result.image = working
    return result


def normalize_image_file(
    path: str,
    output_dir: str,
    params: NormalizationParams,
    vision: VisionCapability,
) -> str:
    """Normalize an image file and write the result as PNG.

    Args:
        path: Source image path.
        output_dir: Directory for the normalized image (created if needed).
        params: Normalization parameters.
        vision: Vision capability handle.

    Returns:
        Path of ``<stem>_normalized.png`` in ``output_dir``.

    Raises:
        ValueError: If the source cannot be read or the result not written.
    """
    image = cv2.imread(path, cv2.IMREAD_UNCHANGED)
    if image is None:
        raise ValueError(f"Could not read image: {path}")

    result = normalize_image(image, params, vision)

    Path(output_dir).mkdir(parents=True, exist_ok=True)
    output_path = os.path.join(output_dir, f"{Path(path).stem}_normalized.png")
    if not cv2.imwrite(output_path, result.image):
        raise ValueError(f"Could not write normalized image: {output_path}")

    logger.info(
        f"Normalized {Path(path).name} ({', '.join(result.applied_stages) or 'unchanged'})"
    )
    return output_path


def normalize_image_files(
    paths: list[str],
    output_dir: str,
    params: NormalizationParams,
    vision: VisionCapability,
    max_workers: int | None = None,
) -> list[str]:
    """Normalize several images concurrently.

    Each image is an independent task with no shared state. Images whose
    file names share a stem get their own subdirectory so outputs never
    collide.

    Returns:
        Normalized image paths in the same order as ``paths``.
    """
    output_dirs = []
    seen: dict[str, int] = {}
    for path in paths:
        stem = Path(path).stem
        count = seen.get(stem, 0)
        seen[stem] = count + 1
        output_dirs.append(
            output_dir if count == 0 else os.path.join(output_dir, str(count))
        )

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = [
            pool.submit(normalize_image_file, path, out_dir, params, vision)
            for path, out_dir in zip(paths, output_dirs)
        ]
        return [future.result() for future in futures]

"""Capability handle for the native vision library.

The handle is created once at startup with :func:`detect_vision_capability`
and passed to every component that needs OpenCV, instead of consulting a
process-wide "is OpenCV ready" flag.
"""

import logging

import cv2
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

_REQUIRED_FUNCTIONS = (
    "cvtColor",
    "GaussianBlur",
    "Canny",
    "findContours",
    "approxPolyDP",
    "getPerspectiveTransform",
    "warpPerspective",
    "HoughLinesP",
)


class VisionCapability(BaseModel):
    """What the installed OpenCV build can do.

    Attributes:
        available: Contour, Hough and warp primitives are usable.
        adaptive_threshold: Locally-windowed thresholding is usable.
        version: OpenCV version string, empty when unavailable.
    """

    available: bool = Field(False, description="Core vision primitives usable")
    adaptive_threshold: bool = Field(False, description="adaptiveThreshold usable")
    version: str = Field("", description="OpenCV version")

    @classmethod
    def disabled(cls) -> "VisionCapability":
        """A handle that makes every vision-dependent stage decline."""
        return cls()


def detect_vision_capability() -> VisionCapability:
    """Probe the OpenCV build once.

    Returns:
        VisionCapability describing the usable primitives.
    """
    available = all(hasattr(cv2, name) for name in _REQUIRED_FUNCTIONS)
    capability = VisionCapability(
        available=available,
        adaptive_threshold=available and hasattr(cv2, "adaptiveThreshold"),
        version=getattr(cv2, "__version__", ""),
    )
    if available:
        logger.info(f"OpenCV {capability.version} loaded")
    else:
        logger.warning("OpenCV is missing required functions; vision stages disabled")
    return capability

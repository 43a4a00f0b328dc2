"""Parameter models for pipeline configuration.

This module defines Pydantic models that encapsulate all configurable
parameters for each stage of the sheet-music pipeline: image normalization,
the external OMR engine and the overall run. These models provide
validation, default values, and clear interfaces for customizing the
behavior of each processing step.
"""

import os

from pydantic import BaseModel, Field


class NormalizationParams(BaseModel):
    """Configuration parameters for photograph normalization.

    Every stage can be toggled independently; the order in which enabled
    stages run is fixed by the normalizer. Sharpening is not optional.

    Attributes:
        correct_perspective: Flatten photos taken at an angle.
        check_curvature: Warn about curved pages (detection only).
        deskew: Detect staff-line tilt and rotate it away.
        enhance_contrast: Stretch the gray levels to the full range.
        denoise: Apply a 3x3 median filter.
        binarize: Convert to pure black and white.
        threshold: Explicit global threshold (0-255) used by the fallback
            binarizer, or None for the default of 128.
    """

    correct_perspective: bool = Field(True, description="Apply perspective correction")
    check_curvature: bool = Field(True, description="Warn about page curvature")
    deskew: bool = Field(True, description="Auto-detect and correct skew")
    enhance_contrast: bool = Field(True, description="Improve contrast")
    denoise: bool = Field(True, description="Median-filter noise removal")
    binarize: bool = Field(True, description="Convert to black and white")
    threshold: int | None = Field(
        None, ge=0, le=255, description="Global binarization threshold"
    )


class EngineParams(BaseModel):
    """Configuration for invoking the external OMR engine.

    Attributes:
        executable: Path to the engine launcher. Defaults to the
            ``AUDIVERIS_PATH`` environment variable; when unset the engine
            is searched on ``PATH`` and in well-known install locations.
        tessdata_dir: OCR language data directory exported to the engine as
            ``TESSDATA_PREFIX``. Defaults to the current ``TESSDATA_PREFIX``.
        extra_search_paths: Additional launcher paths probed before the
            platform defaults.
    """

    executable: str | None = Field(
        default_factory=lambda: os.environ.get("AUDIVERIS_PATH"),
        description="Path to the OMR engine launcher",
    )
    tessdata_dir: str | None = Field(
        default_factory=lambda: os.environ.get("TESSDATA_PREFIX"),
        description="OCR language data directory",
    )
    extra_search_paths: list[str] = Field(
        default_factory=list, description="Extra launcher locations to probe"
    )


def _pipeline_normalization_defaults() -> NormalizationParams:
    # Median-filtered input makes the engine fail on some pages.
    return NormalizationParams(denoise=False)


class PipelineParams(BaseModel):
    """Complete configuration for one upload-to-score run.

    Attributes:
        normalization: Parameters for per-image normalization.
        engine: Parameters for the OMR engine subprocess.
        max_workers: Upper bound on concurrent per-image tasks (None lets
            the executor decide).
        repair: Whether to run the document repairer on the final score.
    """

    normalization: NormalizationParams = Field(
        default_factory=_pipeline_normalization_defaults,
        description="Image normalization parameters",
    )
    engine: EngineParams = Field(
        default_factory=EngineParams, description="OMR engine parameters"
    )
    max_workers: int | None = Field(
        None, ge=1, le=32, description="Concurrent per-image tasks"
    )
    repair: bool = Field(True, description="Apply heuristic document repairs")

"""Models for representing pipeline processing stages.

This module contains Pydantic models that encapsulate the results of each
stage in the sheet-music pipeline. Each model represents the output data
from a specific processing step, enabling clean separation of concerns and
easy testing of individual pipeline components.
"""

import numpy as np
from pydantic import BaseModel, Field

from sheet_transposer.models.core_models import Quadrilateral


class NormalizationResult(BaseModel):
    """Result of normalizing one photograph.

    Attributes:
        image: Normalized image (grayscale or binary), or None if the input
            was missing.
        quadrilateral: Document corners used for perspective correction, or
            None when no correction was applied.
        skew_correction: Rotation applied in degrees (0.0 if none).
        curvature_suspected: Verdict of the curvature check, or None when the
            check was disabled or failed.
        applied_stages: Names of the stages that changed the image, in order.
    """

    image: np.ndarray | None = Field(None, description="Normalized image")
    quadrilateral: Quadrilateral | None = Field(
        None, description="Detected document corners"
    )
    skew_correction: float = Field(0.0, description="Applied rotation in degrees")
    curvature_suspected: bool | None = Field(
        None, description="Whether page curvature was suspected"
    )
    applied_stages: list[str] = Field(
        default_factory=list, description="Stages that changed the image"
    )

    class Config:
        arbitrary_types_allowed = True


class EngineResult(BaseModel):
    """Outcome of one OMR engine run.

    Attributes:
        return_code: Process exit status.
        output_files: Recognition outputs in merge order.
        stderr: Captured diagnostic stream.
    """

    return_code: int = Field(0, description="Process exit status")
    output_files: list[str] = Field(
        default_factory=list, description="Recognition outputs in merge order"
    )
    stderr: str = Field("", description="Captured diagnostic output")


class RepairSummary(BaseModel):
    """Counts of the edits made by the document repairer.

    Attributes:
        composer_credits_added: Credits synthesized from identification data.
        credits_removed: Credits dropped as recognition noise.
        titles_enhanced: Credits promoted to a visual title.
        hidden_staves_removed: Hidden staff-details removed from trailing measures.
        advisories: Detected-but-unfixed structural defects.
    """

    composer_credits_added: int = Field(0, ge=0)
    credits_removed: int = Field(0, ge=0)
    titles_enhanced: int = Field(0, ge=0)
    hidden_staves_removed: int = Field(0, ge=0)
    advisories: list[str] = Field(default_factory=list)

    @property
    def total_changes(self) -> int:
        return (
            self.composer_credits_added
            + self.credits_removed
            + self.titles_enhanced
            + self.hidden_staves_removed
        )


class ProcessingResult(BaseModel):
    """User-visible outcome of a pipeline run.

    Always returned instead of raising, so the boundary can show either the
    score or a message.

    Attributes:
        success: Whether a score was produced.
        musicxml: Final MusicXML text on success.
        error: Human-readable failure message.
        page_count: Number of input files.
        source_paths: Input paths as supplied.
        normalized_paths: Normalized images handed to the engine.
        repair: Summary of heuristic repairs, if repair ran.
    """

    success: bool = Field(False, description="Whether a score was produced")
    musicxml: str = Field("", description="Final MusicXML document")
    error: str = Field("", description="Failure message")
    page_count: int = Field(0, ge=0, description="Number of input files")
    source_paths: list[str] = Field(default_factory=list)
    normalized_paths: list[str] = Field(default_factory=list)
    repair: RepairSummary | None = Field(None, description="Repair summary")

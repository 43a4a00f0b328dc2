"""Domain models for the sheet_transposer package.

This module provides a centralized location for all data models used
throughout the pipeline. It includes:

- Core domain models (Quadrilateral, SkewEstimate, Pitch, Credit, ...)
- Pipeline processing stage results (NormalizationResult, EngineResult, ...)
- Configuration parameters for each processing stage

All models are built using Pydantic for data validation and serialization,
ensuring type safety and clear interfaces between pipeline components.
"""

# Re-export core models
from sheet_transposer.models.core_models import (
    Point,
    Quadrilateral,
    SkewEstimate,
    Pitch,
    KeySignature,
    Credit,
    CreditCategory,
    TransposeRequest,
    TransposePreset,
    PartInfo,
)

# Re-export pipeline models
from sheet_transposer.models.pipeline_models import (
    NormalizationResult,
    EngineResult,
    RepairSummary,
    ProcessingResult,
)

# Re-export setting models
from sheet_transposer.models.settings_models import (
    NormalizationParams,
    EngineParams,
    PipelineParams,
)

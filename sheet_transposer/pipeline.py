"""
Pipeline orchestration for sheet-music recognition.

This module ties the stages together: photographs are normalized in
parallel, stitched when there are several, recognized by the external OMR
engine, and the resulting fragments are merged and repaired into one
MusicXML document. MusicXML inputs skip straight to loading.
"""

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from sheet_transposer.image_processing import normalize_image_files
from sheet_transposer.merger import merge_documents
from sheet_transposer.models import PipelineParams, ProcessingResult
from sheet_transposer.musicxml_io import MUSICXML_EXTENSIONS, parse_score, read_musicxml
from sheet_transposer.omr_engine import ProgressCallback, run_engine
from sheet_transposer.repair import repair_document_with_summary
from sheet_transposer.stitching import stitch_images
from sheet_transposer.vision import VisionCapability, detect_vision_capability

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".tif", ".tiff", ".bmp")
DOCUMENT_EXTENSIONS = (".pdf",)
SUPPORTED_EXTENSIONS = IMAGE_EXTENSIONS + DOCUMENT_EXTENSIONS + MUSICXML_EXTENSIONS


# Custom exceptions
class PipelineError(Exception):
    """Base exception for pipeline processing errors."""

    pass


class InputError(PipelineError):
    """Exception raised when input files are missing, unreadable or unsupported."""

    pass


class EngineError(PipelineError):
    """Exception raised when the OMR engine fails or produces nothing."""

    def __init__(self, message: str, return_code: int | None = None, stderr: str = ""):
        super().__init__(message)
        self.return_code = return_code
        self.stderr = stderr


class DocumentError(PipelineError):
    """Exception raised when recognition outputs cannot be assembled."""

    pass


def _extension(path: str) -> str:
    return Path(path).suffix.lower()


def validate_inputs(paths: list[str]) -> list[str]:
    """Check that every input exists and has a supported extension.

    Args:
        paths: Input file paths.

    Returns:
        The paths, unchanged.

    Raises:
        InputError: On an empty list, a missing file, an unsupported
            extension, or MusicXML mixed with other inputs.
    """
    if not paths:
        raise InputError("No input files provided")
    for path in paths:
        if not os.path.isfile(path):
            raise InputError(f"Input file not found: {path}")
        if _extension(path) not in SUPPORTED_EXTENSIONS:
            raise InputError(f"Unsupported file type: {path}")
    if len(paths) > 1 and any(_extension(p) in MUSICXML_EXTENSIONS for p in paths):
        raise InputError("MusicXML files must be opened one at a time")
    return paths


def load_score_file(path: str) -> str:
    """Load a MusicXML document supplied directly by the user."""
    try:
        musicxml = read_musicxml(path)
        parse_score(musicxml)
    except (OSError, ValueError) as e:
        raise InputError(f"Could not read MusicXML file {path}: {e}") from e
    return musicxml


def prepare_images(
    paths: list[str],
    scratch_dir: str,
    params: PipelineParams,
    vision: VisionCapability,
    on_progress: ProgressCallback | None = None,
) -> tuple[list[str], list[str]]:
    """Normalize and, for several pages, stitch the input images.

    Returns:
        Tuple of (engine inputs, normalized image paths). If stitching fails
        the normalized pages are handed to the engine separately.

    Raises:
        InputError: If an image cannot be read.
    """
    if on_progress:
        on_progress("Preprocessing images...", 3)
    try:
        normalized = normalize_image_files(
            paths,
            os.path.join(scratch_dir, "normalized"),
            params.normalization,
            vision,
            max_workers=params.max_workers,
        )
    except ValueError as e:
        raise InputError(str(e)) from e
    logger.info(f"Normalized {len(normalized)} file(s)")

    if len(normalized) == 1:
        return normalized, normalized

    if on_progress:
        on_progress("Stitching images...", 7)
    try:
        stitched = stitch_images(normalized, os.path.join(scratch_dir, "stitched"))
    except Exception as e:
        logger.warning(f"Image stitching failed, processing pages separately: {e}")
        return normalized, normalized
    return [stitched], normalized


def recognize(
    inputs: list[str],
    output_dir: str,
    params: PipelineParams,
    on_progress: ProgressCallback | None = None,
) -> list[str]:
    """Run the engine and return its outputs in merge order.

    Raises:
        EngineError: If the engine is missing, exits non-zero, or writes no
            MusicXML.
    """
    try:
        result = run_engine(inputs, output_dir, params.engine, on_progress)
    except OSError as e:
        raise EngineError(f"Failed to start OMR engine: {e}") from e

    if result.return_code != 0:
        raise EngineError(
            f"OMR engine exited with code {result.return_code}: {result.stderr}",
            return_code=result.return_code,
            stderr=result.stderr,
        )
    if not result.output_files:
        raise EngineError(
            "No MusicXML files generated by the OMR engine",
            return_code=result.return_code,
            stderr=result.stderr,
        )
    return result.output_files


def assemble_document(output_files: list[str]) -> str:
    """Read recognition outputs concurrently and merge them in order.

    Raises:
        DocumentError: If a file cannot be read or nothing can be merged.
    """
    try:
        with ThreadPoolExecutor() as pool:
            documents = list(pool.map(read_musicxml, output_files))
    except (OSError, ValueError) as e:
        raise DocumentError(f"Failed to read recognition output: {e}") from e

    for path, document in zip(output_files, documents):
        try:
            parse_score(document)
        except ValueError as e:
            raise DocumentError(f"Malformed recognition output {path}: {e}") from e

    if len(documents) > 1:
        logger.info(f"Merging {len(documents)} recognition outputs")
    try:
        return merge_documents(documents)
    except ValueError as e:
        raise DocumentError(f"Failed to merge MusicXML files: {e}") from e


def run_pipeline(
    paths: list[str],
    scratch_dir: str,
    params: PipelineParams,
    vision: VisionCapability,
    on_progress: ProgressCallback | None = None,
) -> ProcessingResult:
    """Run the pipeline, raising on failure.

    Args:
        paths: Input images, a PDF, or a single MusicXML file.
        scratch_dir: Directory for temporary files; the caller removes it.
        params: Pipeline parameters.
        vision: Vision capability handle created at startup.
        on_progress: Optional callback receiving (stage, percent).

    Returns:
        A successful ProcessingResult.

    Raises:
        PipelineError: For input, engine and document assembly failures.
    """
    validate_inputs(paths)
    logger.info(f"Starting with {len(paths)} input file(s)")

    if _extension(paths[0]) in MUSICXML_EXTENSIONS:
        if on_progress:
            on_progress("Loading MusicXML...", 50)
        musicxml = load_score_file(paths[0])
        return ProcessingResult(
            success=True, musicxml=musicxml, page_count=1, source_paths=paths
        )

    inputs = list(paths)
    normalized = []
    if all(_extension(p) in IMAGE_EXTENSIONS for p in paths):
        inputs, normalized = prepare_images(
            paths, scratch_dir, params, vision, on_progress
        )

    output_files = recognize(
        inputs, os.path.join(scratch_dir, "omr"), params, on_progress
    )
    musicxml = assemble_document(output_files)

    summary = None
    if params.repair:
        try:
            musicxml, summary = repair_document_with_summary(musicxml)
        except ValueError as e:
            logger.warning(f"Failed to repair document, using original: {e}")

    return ProcessingResult(
        success=True,
        musicxml=musicxml,
        page_count=len(paths),
        source_paths=paths,
        normalized_paths=normalized,
        repair=summary,
    )


def process_sheet_music(
    paths: list[str],
    scratch_dir: str,
    params: PipelineParams | None = None,
    vision: VisionCapability | None = None,
    on_progress: ProgressCallback | None = None,
) -> ProcessingResult:
    """Turn uploaded files into one MusicXML document.

    Never raises for input, engine or document failures: they are returned
    as ``ProcessingResult(success=False, error=...)``. Temporary files are
    written under ``scratch_dir`` and left for the caller to remove.

    Args:
        paths: Input images, a PDF, or a single MusicXML file.
        scratch_dir: Directory for temporary files.
        params: Pipeline parameters (defaults if None).
        vision: Vision capability handle; probed once here if None.
        on_progress: Optional callback receiving (stage, percent).

    Returns:
        ProcessingResult with either the document or an error message.
    """
    params = params or PipelineParams()
    if vision is None:
        vision = detect_vision_capability()
    try:
        result = run_pipeline(paths, scratch_dir, params, vision, on_progress)
    except PipelineError as e:
        logger.error(f"Error in pipeline processing: {str(e)}")
        return ProcessingResult(
            success=False, error=str(e), page_count=len(paths), source_paths=paths
        )

    if on_progress:
        on_progress("Complete", 100)
    return result

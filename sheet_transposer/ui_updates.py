"""UI update functions for the Gradio interface.

This module provides the callbacks between the Gradio components and the
pipeline: running an upload through recognition, and producing transposed
views of the recognized score. Each browser session gets its own
ScratchSpace, removed when the session ends.
"""

import logging

from sheet_transposer.app_state import (
    get_score_by_id,
    register_score,
    release_session_scores,
)
from sheet_transposer.cache import cached_part_list, cached_transposition
from sheet_transposer.file_manager import ScratchSpace
from sheet_transposer.models import PipelineParams
from sheet_transposer.musicxml_io import get_parts, parse_score
from sheet_transposer.pipeline import process_sheet_music
from sheet_transposer.transposition import (
    describe_key_signature,
    get_pitch_name,
    get_transpose_presets,
)
from sheet_transposer.vision import VisionCapability

logger = logging.getLogger(__name__)

ALL_PARTS_CHOICE = "All parts"
CUSTOM_PRESET_ID = "custom"

# Active scratch spaces by session ID
_scratch_spaces: dict[str, ScratchSpace] = {}


def get_or_create_scratch_space(session_id: str) -> ScratchSpace:
    """Return the session's ScratchSpace, creating it on first use."""
    if session_id not in _scratch_spaces:
        _scratch_spaces[session_id] = ScratchSpace(session_id)
    return _scratch_spaces[session_id]


def cleanup_session(session_id: str) -> None:
    """Remove a session's scratch files and scores. Unknown sessions are ignored."""
    released = release_session_scores(session_id)
    if released:
        logger.debug(f"Released {len(released)} score(s) of session {session_id}")
    scratch = _scratch_spaces.pop(session_id, None)
    if scratch is not None:
        scratch.cleanup_all()


def cleanup_cache(session_id: str | None = None) -> None:
    """Remove one session's scratch files, or every session's when None."""
    if session_id is not None:
        cleanup_session(session_id)
        return
    for active in list(_scratch_spaces):
        cleanup_session(active)


def preset_choices() -> list[str]:
    return [preset.name for preset in get_transpose_presets()]


def resolve_semitones(preset_name: str, custom_semitones: int | float) -> int:
    """Interval for the selected preset; "Custom" uses the custom value."""
    for preset in get_transpose_presets():
        if preset.name == preset_name and preset.id != CUSTOM_PRESET_ID:
            return preset.semitones
    return int(custom_semitones or 0)


def part_choices(score_id: str | None) -> list[str]:
    """Part selector choices: all parts, then one label per Part."""
    if not score_id:
        return [ALL_PARTS_CHOICE]
    return [ALL_PARTS_CHOICE] + [info.label for info in cached_part_list(score_id)]


def parse_part_choice(choice: str | None) -> int | None:
    """0-based Part index for a part label ("2: Bass" -> 1), None for all."""
    if not choice or choice == ALL_PARTS_CHOICE:
        return None
    number, _, _ = choice.partition(":")
    try:
        return int(number) - 1
    except ValueError:
        return None


def process_upload(
    file_paths: list[str] | None,
    session_id: str,
    vision: VisionCapability,
    params: PipelineParams | None = None,
) -> tuple[str, str | None, str, str | None, list[str]]:
    """Run uploaded files through the pipeline.

    Args:
        file_paths: Uploaded file paths.
        session_id: Unique session identifier for scratch isolation.
        vision: Vision capability handle created at startup.
        params: Pipeline parameters (defaults if None).

    Returns:
        Tuple of (status text, score id, MusicXML text, download path,
        part choices). On failure the score id and download path are None.
    """
    if not file_paths:
        return "Upload one or more images or a MusicXML file.", None, "", None, [
            ALL_PARTS_CHOICE
        ]

    scratch = get_or_create_scratch_space(session_id)
    result = process_sheet_music(
        list(file_paths), scratch.new_run_dir(), params, vision
    )
    if not result.success:
        return f"Processing failed: {result.error}", None, "", None, [ALL_PARTS_CHOICE]

    score_id = register_score(result.musicxml, session_id=session_id)
    download = scratch.write_text("score", result.musicxml, ".musicxml")
    pages = f"{result.page_count} page{'s' if result.page_count != 1 else ''}"
    status = f"Recognized {pages}."
    if result.repair and result.repair.advisories:
        status += f" {len(result.repair.advisories)} measure(s) may need manual review."
    return status, score_id, result.musicxml, download, part_choices(score_id)


def update_transposition(
    score_id: str | None,
    session_id: str,
    preset_name: str,
    custom_semitones: int | float,
    part_choice: str | None,
) -> tuple[str, str, str | None]:
    """Produce the transposed view of the registered score.

    The original score is never modified; each call transposes it afresh
    (or reuses a cached result).

    Returns:
        Tuple of (status text, MusicXML text, download path).
    """
    if not score_id or get_score_by_id(score_id) is None:
        return "No score loaded.", "", None

    semitones = resolve_semitones(preset_name, custom_semitones)
    part_index = parse_part_choice(part_choice)
    try:
        musicxml = cached_transposition(score_id, semitones, part_index)
    except ValueError as e:
        logger.warning(f"Transposition failed: {e}")
        return f"Transposition failed: {e}", "", None

    scratch = get_or_create_scratch_space(session_id)
    download = scratch.write_text("transposed", musicxml, ".musicxml")
    target = part_choice if part_index is not None else ALL_PARTS_CHOICE.lower()
    key = key_summary(musicxml, part_index)
    middle_c = f"C4 -> {get_pitch_name(48 + semitones)}"
    status = f"Transposed {target} by {semitones:+d} semitones ({key}, {middle_c})."
    return status, musicxml, download


def key_summary(musicxml: str, part_index: int | None = None) -> str:
    """Name of the first key signature in the score (or one Part), for display."""
    if not musicxml:
        return ""
    scope = parse_score(musicxml)
    parts = get_parts(scope)
    if part_index is not None and 0 <= part_index < len(parts):
        scope = parts[part_index]
    fifths = scope.findtext(".//attributes/key/fifths")
    try:
        return describe_key_signature(int(fifths))
    except (TypeError, ValueError):
        return "No key signature"

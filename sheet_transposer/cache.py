"""Caching for transposition of registered scores.

Users flip between transposition presets and parts repeatedly, always
against the same untransposed score. Results are cached by score id and
request so each combination is computed once. Every entry is derived from
the original document, so repeated transpositions never drift.
"""

from functools import lru_cache

from sheet_transposer.app_state import get_score_by_id
from sheet_transposer.models import PartInfo, TransposeRequest
from sheet_transposer.musicxml_io import list_parts
from sheet_transposer.transposition import apply_transpose_request

TRANSPOSE_CACHE_SIZE = 32
PARTS_CACHE_SIZE = 16


@lru_cache(maxsize=TRANSPOSE_CACHE_SIZE)
def cached_transposition(
    score_id: str, semitones: int, part_index: int | None
) -> str | None:
    """Cached version of score transposition.

    Args:
        score_id: Identifier of a registered, untransposed score.
        semitones: Interval in semitones.
        part_index: 0-based Part position, or None for all Parts.

    Returns:
        The transposed MusicXML, or None if the score is not registered.

    Raises:
        ValueError: If ``part_index`` is negative or names no Part.
    """
    musicxml = get_score_by_id(score_id)
    if musicxml is None:
        return None
    request = TransposeRequest(semitones=semitones, part_index=part_index)
    return apply_transpose_request(musicxml, request)


@lru_cache(maxsize=PARTS_CACHE_SIZE)
def cached_part_list(score_id: str) -> tuple[PartInfo, ...]:
    """Cached list of a registered score's Parts (empty if unknown)."""
    musicxml = get_score_by_id(score_id)
    if musicxml is None:
        return ()
    return tuple(list_parts(musicxml))


def clear_all_caches() -> None:
    """Clear all transposition caches."""
    cached_transposition.cache_clear()
    cached_part_list.cache_clear()

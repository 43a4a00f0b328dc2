"""Application state management for recognized scores.

This module registers untransposed scores under short identifiers so the
UI can keep an id in its state and every transposition starts again from
the original document. Scores are identified by CRC32 checksums of their
text, so two sessions uploading the same score share one entry; an entry
is dropped once no session holds it.
"""

import zlib

# In-memory registry of scores by ID
_score_registry: dict[str, str] = {}

# Sessions holding each registered score
_score_owners: dict[str, set[str]] = {}


def register_score(
    musicxml: str, score_id: str | None = None, session_id: str | None = None
) -> str:
    """Register a score in the global registry with a unique identifier.

    Args:
        musicxml: MusicXML text of the untransposed score.
        score_id: Optional identifier. If None, a CRC32-based ID is generated.
        session_id: Optional owning session; see :func:`release_session_scores`.

    Returns:
        The score identifier (either provided or generated) as a string.
    """
    if score_id is None:
        crc = zlib.crc32(musicxml.encode("utf-8")) & 0xFFFFFFFF
        score_id = f"score_{crc:08x}"

    _score_registry[score_id] = musicxml
    if session_id is not None:
        _score_owners.setdefault(score_id, set()).add(session_id)
    return score_id


def get_score_by_id(score_id: str) -> str | None:
    """Retrieve a registered score by its identifier.

    Returns:
        The registered MusicXML text, or None if not found.
    """
    return _score_registry.get(score_id)


def release_session_scores(session_id: str) -> list[str]:
    """Drop a session's hold on its scores.

    Scores no other session holds are removed from the registry. Scores
    registered without a session are never removed here.

    Returns:
        IDs of the scores removed from the registry.
    """
    removed = []
    for score_id, owners in list(_score_owners.items()):
        owners.discard(session_id)
        if not owners:
            del _score_owners[score_id]
            _score_registry.pop(score_id, None)
            removed.append(score_id)
    return removed


def clear_scores() -> None:
    _score_registry.clear()
    _score_owners.clear()

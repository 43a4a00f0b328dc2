"""
Transposition of MusicXML scores.

This module rewrites written pitches and key signatures by a number of
semitones, for the whole score or for a single Part. Spelling after
transposition is fixed: naturals where possible, otherwise sharps. Key
signatures move independently along the circle of fifths.
"""

import logging

import music21

from sheet_transposer.models import (
    KeySignature,
    Pitch,
    TransposePreset,
    TransposeRequest,
)
from sheet_transposer.models.core_models import STEP_SEMITONES
from sheet_transposer.musicxml_io import get_parts, parse_score, serialize_score

logger = logging.getLogger(__name__)

# Key-signature change for a transposition of n semitones (mod 12).
SEMITONE_TO_FIFTHS = {
    0: 0,
    1: -5,
    2: 2,
    3: -3,
    4: 4,
    5: -1,
    6: 6,
    7: 1,
    8: -4,
    9: 3,
    10: -2,
    11: 5,
}

TRANSPOSE_PRESETS = [
    TransposePreset(
        id="concert", name="Concert Pitch", semitones=0, description="No transposition"
    ),
    TransposePreset(
        id="bb",
        name="Bb Instruments",
        semitones=2,
        description="Clarinet, Trumpet, Tenor Sax",
    ),
    TransposePreset(
        id="eb-alto",
        name="Eb Alto Instruments",
        semitones=9,
        description="Alto Sax, Eb Clarinet",
    ),
    TransposePreset(
        id="f",
        name="F Instruments",
        semitones=7,
        description="French Horn, English Horn",
    ),
    TransposePreset(
        id="eb-bari",
        name="Eb Baritone",
        semitones=-9,
        description="Baritone Sax (sounds octave + 6th lower)",
    ),
    TransposePreset(
        id="custom", name="Custom", semitones=0, description="Set your own interval"
    ),
]


def get_transpose_presets() -> list[TransposePreset]:
    """Get the instrument transposition presets for UI display.

    Returns:
        Presets in display order, starting with concert pitch and ending
        with "Custom".
    """
    return list(TRANSPOSE_PRESETS)


def transpose_pitch(pitch: Pitch, semitones: int) -> Pitch:
    """Move a pitch by a number of semitones and respell it canonically.

    Args:
        pitch: Written pitch.
        semitones: Interval (positive = up).

    Returns:
        New pitch spelled with naturals and sharps only.
    """
    return Pitch.from_semitones(pitch.semitones + semitones)


def transpose_key_signature(fifths: int, semitones: int) -> int:
    """Move a key signature along the circle of fifths.

    Args:
        fifths: Current sharps (+) or flats (-).
        semitones: Interval (positive = up).

    Returns:
        New fifths value, clamped to [-7, 7].
    """
    new_fifths = fifths + SEMITONE_TO_FIFTHS[semitones % 12]
    return max(-7, min(7, new_fifths))


def _transpose_pitch_element(pitch_el, semitones: int) -> bool:
    step_el = pitch_el.find("step")
    octave_el = pitch_el.find("octave")
    if step_el is None or octave_el is None:
        return False
    step = (step_el.text or "").strip()
    if step not in STEP_SEMITONES:
        return False

    alter_el = pitch_el.find("alter")
    try:
        alter = round(float(alter_el.text)) if alter_el is not None else 0
        octave = int((octave_el.text or "").strip())
    except (TypeError, ValueError):
        return False

    total = STEP_SEMITONES[step] + alter + 12 * octave + semitones
    new_pitch = Pitch.from_semitones(total)

    step_el.text = new_pitch.step
    octave_el.text = str(new_pitch.octave)
    if new_pitch.alter != 0:
        if alter_el is None:
            alter_el = pitch_el.makeelement("alter", {})
            octave_el.addprevious(alter_el)
        alter_el.text = str(new_pitch.alter)
    elif alter_el is not None:
        pitch_el.remove(alter_el)
    return True


def _transpose_keys(part, semitones: int) -> int:
    changed = 0
    for attributes in part.iter("attributes"):
        for key_el in attributes.findall("key"):
            fifths_el = key_el.find("fifths")
            if fifths_el is None:
                continue
            try:
                key = KeySignature(fifths=int((fifths_el.text or "").strip()))
            except ValueError:
                logger.warning(f"Skipping invalid key signature: {fifths_el.text!r}")
                continue
            fifths_el.text = str(transpose_key_signature(key.fifths, semitones))
            changed += 1
    return changed


def transpose_document(
    musicxml: str, semitones: int, part_index: int | None = None
) -> str:
    """Transpose a MusicXML document.

    Every pitched note in the selected Part(s), across all voices, is moved
    by ``semitones``, and every key signature in the same Part(s) is shifted
    by the same circle-of-fifths delta. Other Parts are left untouched.

    Args:
        musicxml: Document text; never modified.
        semitones: Interval (positive = up).
        part_index: 0-based position of the only Part to transpose, or
            None for all Parts.

    Returns:
        The transposed document, or the input itself when ``semitones`` is 0.

    Raises:
        ValueError: If ``part_index`` does not name an existing Part.
    """
    if semitones == 0:
        return musicxml

    root = parse_score(musicxml)
    parts = get_parts(root)
    if part_index is not None:
        if not 0 <= part_index < len(parts):
            raise ValueError(
                f"Part index {part_index} out of range for {len(parts)} parts"
            )
        targets = [parts[part_index]]
    else:
        targets = parts

    for part in targets:
        notes = sum(
            _transpose_pitch_element(pitch_el, semitones)
            for pitch_el in part.iter("pitch")
        )
        keys = _transpose_keys(part, semitones)
        logger.debug(
            f"Transposed part {part.get('id')} by {semitones}: "
            f"{notes} notes, {keys} key signatures"
        )

    return serialize_score(root)


def apply_transpose_request(musicxml: str, request: TransposeRequest) -> str:
    """Apply a TransposeRequest; see :func:`transpose_document`."""
    return transpose_document(musicxml, request.semitones, request.part_index)


def describe_key_signature(fifths: int) -> str:
    """Major-key name for a key signature (e.g., "E- major" for -3).

    Args:
        fifths: Sharps (+) or flats (-).

    Returns:
        music21's name of the major key with that signature.
    """
    return music21.key.KeySignature(fifths).asKey("major").name


def get_pitch_name(semitones: int) -> str:
    """Convert an absolute semitone count to a pitch name (e.g., "C4").

    Args:
        semitones: Count as used by :class:`Pitch` (C4 = 48).

    Returns:
        The pitch name with octave, spelled by music21.
    """
    p = music21.pitch.Pitch()
    p.midi = semitones + 12
    return p.nameWithOctave

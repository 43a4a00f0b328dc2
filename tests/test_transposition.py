import pytest
from lxml import etree

from sheet_transposer.models import Pitch, TransposeRequest
from sheet_transposer.musicxml_io import get_parts, parse_score
from sheet_transposer.transposition import (
    apply_transpose_request,
    describe_key_signature,
    get_pitch_name,
    get_transpose_presets,
    transpose_document,
    transpose_key_signature,
    transpose_pitch,
)


def _first_pitch(part):
    pitch = part.find("measure/note/pitch")
    return (
        pitch.findtext("step"),
        pitch.findtext("alter"),
        pitch.findtext("octave"),
    )


def _fifths(part):
    return part.findtext("measure/attributes/key/fifths")


@pytest.mark.parametrize(
    "pitch, semitones, expected",
    [
        (("C", 0, 4), 2, ("D", 0, 4)),
        (("B", 0, 4), 1, ("C", 0, 5)),
        (("C", 0, 4), -1, ("B", 0, 3)),
        (("E", 0, 4), 1, ("F", 0, 4)),
        (("B", -1, 4), 0, ("A", 1, 4)),
        (("B", -1, 4), 2, ("C", 0, 5)),
        (("C", 0, 4), -9, ("D", 1, 3)),
    ],
)
def test_transpose_pitch_spells_with_sharps(pitch, semitones, expected):
    step, alter, octave = pitch
    result = transpose_pitch(Pitch(step=step, alter=alter, octave=octave), semitones)
    assert (result.step, result.alter, result.octave) == expected


@pytest.mark.parametrize(
    "fifths, semitones, expected",
    [
        (0, 0, 0),
        (0, 2, 2),
        (-1, 2, 1),
        (0, -9, -3),
        (0, 7, 1),
        (6, 6, 7),
        (-6, 6, 0),
        (-5, 1, -7),
    ],
)
def test_transpose_key_signature(fifths, semitones, expected):
    assert transpose_key_signature(fifths, semitones) == expected


def test_key_deltas_compose_within_range():
    for fifths in range(-3, 3):
        stepwise = transpose_key_signature(transpose_key_signature(fifths, 2), 5)
        assert stepwise == transpose_key_signature(fifths, 7)


def test_zero_interval_returns_input(duet_score):
    assert transpose_document(duet_score, 0) is duet_score


def test_whole_document_transposition(duet_score):
    result = parse_score(transpose_document(duet_score, 2))
    for part in get_parts(result):
        assert _first_pitch(part) == ("D", None, "4")
        assert _fifths(part) == "1"


def test_single_part_transposition(duet_score):
    result = parse_score(transpose_document(duet_score, 2, part_index=1))
    flute, bass = get_parts(result)
    assert _first_pitch(flute) == ("C", None, "4")
    assert _fifths(flute) == "-1"
    assert _first_pitch(bass) == ("D", None, "4")
    assert _fifths(bass) == "1"


def test_part_index_out_of_range(duet_score):
    with pytest.raises(ValueError):
        transpose_document(duet_score, 2, part_index=2)


def test_alter_is_inserted_before_octave(simple_score):
    part = get_parts(parse_score(transpose_document(simple_score, 1)))[0]
    pitch = part.find("measure/note/pitch")
    assert [child.tag for child in pitch] == ["step", "alter", "octave"]
    assert _first_pitch(part) == ("C", "1", "4")


def test_alter_is_removed_for_naturals(make_score):
    score = make_score(step="C", alter=1)
    part = get_parts(parse_score(transpose_document(score, 1)))[0]
    assert _first_pitch(part) == ("D", None, "4")


def test_round_trip_restores_sharp_spelled_pitches(simple_score):
    there = transpose_document(simple_score, 3)
    back = transpose_document(there, -3)
    original = get_parts(parse_score(simple_score))[0]
    restored = get_parts(parse_score(back))[0]
    assert _first_pitch(restored) == _first_pitch(original)
    assert _fifths(restored) == _fifths(original)


def test_rests_and_every_voice(make_score):
    score = make_score().replace(
        "</note></measure>",
        "</note><note><rest/><duration>4</duration><voice>2</voice></note>"
        "<note><pitch><step>G</step><octave>3</octave></pitch>"
        "<duration>4</duration><voice>2</voice></note></measure>",
        1,
    )
    part = get_parts(parse_score(transpose_document(score, 2)))[0]
    notes = part.find("measure").findall("note")
    assert notes[1].find("rest") is not None
    assert notes[2].findtext("pitch/step") == "A"


def test_apply_transpose_request(duet_score):
    request = TransposeRequest(semitones=2, part_index=0)
    assert apply_transpose_request(duet_score, request) == transpose_document(
        duet_score, 2, 0
    )


def test_presets():
    presets = get_transpose_presets()
    assert [p.id for p in presets] == [
        "concert",
        "bb",
        "eb-alto",
        "f",
        "eb-bari",
        "custom",
    ]
    assert [p.semitones for p in presets] == [0, 2, 9, 7, -9, 0]


@pytest.mark.parametrize(
    "fifths, name",
    [(0, "C major"), (2, "D major"), (-3, "E- major")],
)
def test_describe_key_signature(fifths, name):
    assert describe_key_signature(fifths) == name


def test_get_pitch_name():
    assert get_pitch_name(48) == "C4"
    assert get_pitch_name(57) == "A4"


def _with_key_change(score, fifths):
    # Key change at the start of measure 2 in every Part
    return score.replace(
        '<measure number="2"><note>',
        f'<measure number="2"><attributes><key><fifths>{fifths}</fifths></key>'
        "</attributes><note>",
    )


def test_every_key_change_gets_the_same_delta(make_score):
    score = _with_key_change(make_score(measure_count=3, fifths=-1), 3)
    part = get_parts(parse_score(transpose_document(score, 2)))[0]
    fifths = [el.text for el in part.iter("fifths")]
    assert fifths == ["1", "5"]


def test_untouched_parts_are_identical(make_score):
    score = _with_key_change(
        make_score(part_names=("Flute", "Bass"), measure_count=4, fifths=-1, step="E"),
        2,
    )
    before = get_parts(parse_score(score))
    after = get_parts(parse_score(transpose_document(score, 5, part_index=1)))

    assert etree.tostring(after[0]) == etree.tostring(before[0])
    assert etree.tostring(after[1]) != etree.tostring(before[1])
    assert [el.text for el in after[1].iter("fifths")] == ["-2", "1"]
    assert {el.text for el in after[1].iter("step")} == {"A"}


def test_invalid_key_signature_is_left_alone(make_score):
    score = make_score(fifths=9)
    part = get_parts(parse_score(transpose_document(score, 2)))[0]
    assert _fifths(part) == "9"
    assert _first_pitch(part) == ("D", None, "4")

import pytest
from pydantic import ValidationError
from sheet_transposer.models import (
    Credit,
    CreditCategory,
    KeySignature,
    PartInfo,
    Pitch,
    Point,
    Quadrilateral,
    SkewEstimate,
    TransposeRequest,
)


def test_point_distance():
    assert Point(x=0, y=0).distance_to(Point(x=3, y=4)) == pytest.approx(5.0)


def test_quadrilateral_orders_corners(shuffled_quad):
    assert shuffled_quad.as_list() == [
        [10.0, 20.0],
        [210.0, 20.0],
        [210.0, 120.0],
        [10.0, 120.0],
    ]
    assert shuffled_quad.top_left == Point(x=10, y=20)
    assert shuffled_quad.bottom_left == Point(x=10, y=120)


def test_quadrilateral_output_size_uses_longer_edges():
    quad = Quadrilateral.from_points([(0, 0), (100, 0), (120, 50), (-10, 50)])
    width, height = quad.output_size
    assert width == pytest.approx(130.0)
    assert height == pytest.approx(max((10**2 + 50**2) ** 0.5, (20**2 + 50**2) ** 0.5))


@pytest.mark.parametrize("count", [0, 3, 5])
def test_quadrilateral_requires_four_corners(count):
    with pytest.raises(ValidationError):
        Quadrilateral.from_points([(i, i) for i in range(count)])


def test_skew_estimate_correction_negates_angle():
    assert SkewEstimate(angle=2.5, segment_count=4).correction == pytest.approx(-2.5)
    assert SkewEstimate().correction == 0.0


def test_pitch_semitones(middle_c):
    assert middle_c.semitones == 48
    assert Pitch(step="B", alter=-1, octave=3).semitones == 46


@pytest.mark.parametrize(
    "value, expected",
    [
        (48, ("C", 0, 4)),
        (49, ("C", 1, 4)),
        (58, ("A", 1, 4)),
        (-1, ("B", 0, -1)),
    ],
)
def test_pitch_from_semitones_uses_sharps(value, expected):
    pitch = Pitch.from_semitones(value)
    assert (pitch.step, pitch.alter, pitch.octave) == expected


@pytest.mark.parametrize(
    "kwargs",
    [
        {"step": "H", "octave": 4},
        {"step": "C", "alter": 3, "octave": 4},
        {"step": "C", "alter": -3, "octave": 4},
    ],
)
def test_pitch_validation_raises(kwargs):
    with pytest.raises(ValidationError):
        Pitch(**kwargs)


@pytest.mark.parametrize("fifths", [-8, 8])
def test_key_signature_range(fifths):
    with pytest.raises(ValidationError):
        KeySignature(fifths=fifths)


def test_credit_defaults():
    credit = Credit(text="Sonata")
    assert credit.font_size == 10.0
    assert not credit.italic
    assert credit.halign is None


def test_credit_category_values():
    assert CreditCategory("noise") is CreditCategory.NOISE
    assert CreditCategory.TITLE == "title"


def test_transpose_request_rejects_negative_part():
    with pytest.raises(ValidationError):
        TransposeRequest(semitones=2, part_index=-1)
    assert TransposeRequest(semitones=-14).semitones == -14


def test_part_info_label_falls_back():
    assert PartInfo(index=1, part_id="P2", name="Bass").label == "2: Bass"
    assert PartInfo(index=0, part_id="P1").label == "1: P1"
    assert PartInfo(index=2).label == "3: Part 3"

import math

import cv2
import numpy as np
import pytest

from sheet_transposer.vision import VisionCapability, detect_vision_capability

DOCTYPE = (
    '<!DOCTYPE score-partwise PUBLIC "-//Recordare//DTD MusicXML 4.0 Partwise//EN" '
    '"http://www.musicxml.org/dtds/partwise.dtd">'
)


def _draw_staves(tilt_degrees: float = 0.0) -> np.ndarray:
    # 1200x800 white page with five 5-line staves
    page = np.full((800, 1200), 255, dtype=np.uint8)
    rise = int(round(1000 * math.tan(math.radians(tilt_degrees))))
    for staff in range(5):
        for line in range(5):
            y = 100 + staff * 130 + line * 14
            cv2.line(page, (100, y), (1100, y + rise), 0, 2)
    return page


@pytest.fixture
def vision():
    return detect_vision_capability()


@pytest.fixture
def no_vision():
    return VisionCapability.disabled()


@pytest.fixture
def staff_page():
    return _draw_staves()


@pytest.fixture
def tilted_staff_page():
    # Staff lines rising 3 degrees clockwise (y grows to the right)
    return _draw_staves(3.0)


@pytest.fixture
def document_photo():
    # White sheet photographed at an angle on a dark table
    photo = np.full((800, 600, 3), 40, dtype=np.uint8)
    corners = np.array([[100, 80], [500, 120], [520, 700], [80, 680]], dtype=np.int32)
    cv2.fillConvexPoly(photo, corners, (255, 255, 255))
    return photo


def _measure(number: str, first: bool, fifths: int, step: str, alter: int) -> str:
    attributes = ""
    if first:
        attributes = (
            "<attributes><divisions>1</divisions>"
            f"<key><fifths>{fifths}</fifths></key>"
            "<clef><sign>G</sign><line>2</line></clef></attributes>"
        )
    alter_xml = f"<alter>{alter}</alter>" if alter else ""
    return (
        f'<measure number="{number}">{attributes}'
        f"<note><pitch><step>{step}</step>{alter_xml}<octave>4</octave></pitch>"
        "<duration>4</duration><type>whole</type></note></measure>"
    )


def build_score(
    part_names=("Flute",),
    measure_count=2,
    start=1,
    fifths=0,
    step="C",
    alter=0,
    extra_header="",
) -> str:
    """Small partwise score: one whole note per measure in every Part."""
    score_parts = "".join(
        f'<score-part id="P{i + 1}"><part-name>{name}</part-name></score-part>'
        for i, name in enumerate(part_names)
    )
    parts = ""
    for i in range(len(part_names)):
        measures = "".join(
            _measure(str(start + m), m == 0, fifths, step, alter)
            for m in range(measure_count)
        )
        parts += f'<part id="P{i + 1}">{measures}</part>'
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        f"{DOCTYPE}\n"
        f'<score-partwise version="4.0">{extra_header}'
        f"<part-list>{score_parts}</part-list>{parts}</score-partwise>"
    )


@pytest.fixture
def make_score():
    return build_score


@pytest.fixture
def simple_score():
    return build_score()


@pytest.fixture
def duet_score():
    return build_score(part_names=("Flute", "Bass"), fifths=-1)

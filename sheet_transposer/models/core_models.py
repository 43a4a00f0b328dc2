"""Core domain models for sheet-music normalization and transposition."""

from enum import Enum
import math

from pydantic import BaseModel, Field, field_validator

STEP_SEMITONES = {"C": 0, "D": 2, "E": 4, "F": 5, "G": 7, "A": 9, "B": 11}

# Canonical spelling per pitch class: naturals first, then sharps. Never flats.
PITCH_CLASS_SPELLING = [
    ("C", 0),
    ("C", 1),
    ("D", 0),
    ("D", 1),
    ("E", 0),
    ("F", 0),
    ("F", 1),
    ("G", 0),
    ("G", 1),
    ("A", 0),
    ("A", 1),
    ("B", 0),
]


class Point(BaseModel):
    """A 2-D point in image pixel coordinates, (0,0) at the top-left."""

    x: float
    y: float

    def distance_to(self, other: "Point") -> float:
        return math.hypot(other.x - self.x, other.y - self.y)


class Quadrilateral(BaseModel):
    """Four document corners in canonical order.

    Corners are always stored as top-left, top-right, bottom-right,
    bottom-left regardless of the order they were supplied in: the points
    are sorted by y, and each half is then sorted by x.

    Attributes:
        corners: Exactly four points in TL, TR, BR, BL order.
    """

    corners: list[Point] = Field(..., description="Corners in TL, TR, BR, BL order")

    @field_validator("corners")
    @classmethod
    def _order_corners(cls, corners: list[Point]) -> list[Point]:
        if len(corners) != 4:
            raise ValueError(f"A quadrilateral needs 4 corners, got {len(corners)}")
        by_y = sorted(corners, key=lambda p: p.y)
        top_left, top_right = sorted(by_y[:2], key=lambda p: p.x)
        bottom_left, bottom_right = sorted(by_y[2:], key=lambda p: p.x)
        return [top_left, top_right, bottom_right, bottom_left]

    @classmethod
    def from_points(cls, points) -> "Quadrilateral":
        """Build from any iterable of (x, y) pairs."""
        return cls(corners=[Point(x=float(x), y=float(y)) for x, y in points])

    @property
    def top_left(self) -> Point:
        return self.corners[0]

    @property
    def top_right(self) -> Point:
        return self.corners[1]

    @property
    def bottom_right(self) -> Point:
        return self.corners[2]

    @property
    def bottom_left(self) -> Point:
        return self.corners[3]

    @property
    def output_size(self) -> tuple[float, float]:
        """Width and height of the rectified rectangle.

        Uses the longer of each pair of opposing edges so the document is
        never shrunk by rectification.

        Returns:
            Tuple of (width, height) in pixels.
        """
        width = max(
            self.top_left.distance_to(self.top_right),
            self.bottom_left.distance_to(self.bottom_right),
        )
        height = max(
            self.top_left.distance_to(self.bottom_left),
            self.top_right.distance_to(self.bottom_right),
        )
        return width, height

    def as_list(self) -> list[list[float]]:
        return [[p.x, p.y] for p in self.corners]


class SkewEstimate(BaseModel):
    """Residual staff-line rotation measured in an image.

    Attributes:
        angle: Median tilt of near-horizontal segments in degrees, or None
            when no usable segment was found.
        segment_count: Number of segments that survived the ±45° filter.
    """

    angle: float | None = Field(None, description="Median measured tilt in degrees")
    segment_count: int = Field(0, ge=0, description="Near-horizontal segments used")

    @property
    def correction(self) -> float:
        """Rotation to apply, opposite to the measured tilt (0.0 if undetected)."""
        if self.angle is None:
            return 0.0
        return -self.angle


class Pitch(BaseModel):
    """A written pitch as stored in a MusicXML ``<pitch>`` element.

    Attributes:
        step: Diatonic step name, C through B.
        alter: Chromatic alteration in semitones (-2 to 2).
        octave: Octave number, 4 being the octave of middle C.
    """

    step: str = Field(..., pattern="^[A-G]$", description="Diatonic step name")
    alter: int = Field(0, ge=-2, le=2, description="Chromatic alteration")
    octave: int = Field(..., description="Octave number")

    @property
    def semitones(self) -> int:
        """Absolute semitone count: step offset + alter + 12 * octave."""
        return STEP_SEMITONES[self.step] + self.alter + 12 * self.octave

    @classmethod
    def from_semitones(cls, value: int) -> "Pitch":
        """Spell an absolute semitone count with the canonical sharp table."""
        octave, pitch_class = divmod(value, 12)
        step, alter = PITCH_CLASS_SPELLING[pitch_class]
        return cls(step=step, alter=alter, octave=octave)


class KeySignature(BaseModel):
    """Key signature as a signed count of sharps (+) or flats (-)."""

    fifths: int = Field(0, ge=-7, le=7, description="Sharps (+) or flats (-)")


class CreditCategory(str, Enum):
    """Runtime classification of a credit during repair."""

    TITLE = "title"
    COMPOSER = "composer"
    NOISE = "noise"
    OTHER = "other"


class Credit(BaseModel):
    """Positioned free text on a score page (title, composer, stray OCR text).

    Positions follow MusicXML conventions: ``y`` grows upwards from the
    bottom of the page, so a large ``y`` is near the top.

    Attributes:
        text: Stripped text content.
        x: Horizontal position (``default-x``).
        y: Vertical position (``default-y``).
        font_size: Font size in points.
        italic: Whether ``font-style`` is italic.
        halign: Horizontal alignment, if given.
    """

    text: str = Field("", description="Credit text")
    x: float = Field(0.0, description="default-x position")
    y: float = Field(0.0, description="default-y position")
    font_size: float = Field(10.0, description="Font size in points")
    italic: bool = Field(False, description="Italic font style")
    halign: str | None = Field(None, description="Horizontal alignment")


class TransposeRequest(BaseModel):
    """A transposition to apply to a score.

    Attributes:
        semitones: Interval in semitones; not clamped.
        part_index: 0-based position of the only Part to transpose, or None
            for the whole document.
    """

    semitones: int = Field(0, description="Interval in semitones")
    part_index: int | None = Field(None, ge=0, description="0-based Part position")


class TransposePreset(BaseModel):
    """A named transposition for a family of transposing instruments."""

    id: str
    name: str
    semitones: int
    description: str = ""


class PartInfo(BaseModel):
    """Summary of one Part of a score, used for part selection."""

    index: int = Field(..., ge=0, description="0-based Part position")
    part_id: str = Field("", description="Part id attribute")
    name: str = Field("", description="Part name from the part list")
    measure_count: int = Field(0, ge=0, description="Number of measures")

    @property
    def label(self) -> str:
        name = self.name or self.part_id or f"Part {self.index + 1}"
        return f"{self.index + 1}: {name}"

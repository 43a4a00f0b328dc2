import pytest
from sheet_transposer.models import Pitch, Quadrilateral


@pytest.fixture
def middle_c():
    return Pitch(step="C", octave=4)


@pytest.fixture
def shuffled_quad():
    # Corners of a 200x100 rectangle at (10,20), supplied out of order
    return Quadrilateral.from_points([(210, 120), (10, 20), (10, 120), (210, 20)])

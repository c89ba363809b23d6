"""End-to-end tests for the non-interactive trace pipeline.

Tests:
    - Four clicks around a black square snap onto its outline
    - Extract / background results on the traced polygon
    - Output path derivation
"""

from pathlib import Path

import numpy as np
import pytest

from chromacut.models.image import Image
from chromacut.models.point import Point
from chromacut.pipeline.background_replacer import replace_background, trace_boundary

CORNERS = [(50, 50), (149, 50), (149, 149), (50, 149)]


@pytest.fixture
def square(square_image):
    return Image(pixels=square_image)


def test_trace_snaps_to_square_outline(square):
    polygon = trace_boundary(square, CORNERS, sensitivity=1.5)

    assert polygon[0] == polygon[-1] == Point(50, 50)
    for p in polygon:
        assert 47 <= p.x <= 152 and 47 <= p.y <= 152, p
        assert not (53 <= p.x <= 146 and 53 <= p.y <= 146), p
    for a, b in zip(polygon, polygon[1:]):
        assert max(abs(a.x - b.x), abs(a.y - b.y)) == 1


def test_trace_needs_three_anchors(square):
    with pytest.raises(ValueError):
        trace_boundary(square, CORNERS[:2])


def test_extract_cuts_out_square(square, square_image):
    result = replace_background(square, CORNERS, mode="extract", sensitivity=1.5)
    alpha = result.pixels[:, :, 3]

    assert result.pixels.shape == square_image.shape
    # the whole square stays opaque with its original colour
    assert np.all(alpha[50:150, 50:150] == 255)
    np.testing.assert_array_equal(result.pixels[50:150, 50:150], square_image[50:150, 50:150])
    # outside it only the one-pixel edge band the boundary may run along survives
    ring = np.ones_like(alpha, dtype=bool)
    ring[49:151, 49:151] = False
    assert np.all(alpha[ring] == 0)
    # source untouched
    assert square.pixels[0, 0, 3] == 255


def test_extract_from_rough_clicks(square, square_image):
    rough = [(52, 48), (151, 51), (148, 152), (49, 147)]
    alpha = replace_background(square, rough, mode="extract", sensitivity=1.5).pixels[:, :, 3]

    assert np.all(alpha[50:150, 50:150] == 255)
    assert np.all(alpha[:47] == 0)
    assert np.all(alpha[153:] == 0)
    assert np.all(alpha[:, :47] == 0)
    assert np.all(alpha[:, 153:] == 0)


def test_background_recolour(square):
    result = replace_background(square, CORNERS, color="#00ff00")
    assert result.pixels[10, 10].tolist() == [0, 255, 0, 255]
    assert result.pixels[100, 100].tolist() == [0, 0, 0, 255]


def test_output_path(square, square_image, tmp_path):
    explicit = replace_background(square, CORNERS, output_path=tmp_path / "x.png")
    assert explicit.path == tmp_path / "x.png"

    named = Image(pixels=square_image, path=Path("in/photo.jpg"))
    derived = replace_background(named, CORNERS, mode="extract")
    assert derived.path.name == "photo_extract.png"

    assert replace_background(square, CORNERS).path is None

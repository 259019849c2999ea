import pytest

from vips_mcp_server.colors import color_for_mode, ink_for_bands, parse_color
from vips_mcp_server.exceptions import ToolArgumentError


@pytest.mark.parametrize("value, expected", [
    ("#FF0000", (255, 0, 0)),
    ("00ff00", (0, 255, 0)),
    ("#00f", (0, 0, 255)),
    ("white", (255, 255, 255)),
])
def test_parse_color(value, expected):
    assert parse_color(value) == expected


@pytest.mark.parametrize("value", ["", "#GGGGGG", "not-a-colour", None])
def test_parse_color_rejects_garbage(value):
    with pytest.raises(ToolArgumentError):
        parse_color(value)


def test_ink_matches_band_count():
    assert ink_for_bands("#102030", 3) == [16, 32, 48]
    assert ink_for_bands("#102030", 4) == [16, 32, 48, 255]
    assert len(ink_for_bands("#FFFFFF", 1)) == 1
    assert ink_for_bands("#FFFFFF", 1) == [255]


def test_color_for_mode():
    assert color_for_mode("#FFFFFF", "L") == 255
    assert color_for_mode("#FF0000", "RGBA") == (255, 0, 0, 255)
    assert color_for_mode("#FF0000", "RGB") == (255, 0, 0)

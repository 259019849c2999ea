"""
Colour argument parsing shared by both backends.
"""
import re

from PIL import ImageColor

from .exceptions import ToolArgumentError

_BARE_HEX = re.compile(r"^([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


def parse_color(color):
    """Parse "#RRGGBB", "#RGB", "RRGGBB" or a CSS colour name into (r, g, b)."""
    if not isinstance(color, str) or not color.strip():
        raise ToolArgumentError(f"Invalid color: {color!r}")
    value = color.strip()
    if _BARE_HEX.match(value):
        value = "#" + value
    try:
        rgb = ImageColor.getrgb(value)
    except ValueError as e:
        raise ToolArgumentError(f"Invalid color: {color!r}") from e
    return tuple(rgb[:3])


def color_for_mode(color, mode):
    """Colour value suitable for drawing on a Pillow image of ``mode``."""
    r, g, b = parse_color(color)
    if mode in ("L", "P", "1"):
        return round(0.2126 * r + 0.7152 * g + 0.0722 * b)
    if mode == "LA":
        return (round(0.2126 * r + 0.7152 * g + 0.0722 * b), 255)
    if mode == "RGBA":
        return (r, g, b, 255)
    return (r, g, b)


def ink_for_bands(color, bands):
    """libvips ink array for an image with ``bands`` bands."""
    r, g, b = parse_color(color)
    grey = round(0.2126 * r + 0.7152 * g + 0.0722 * b)
    if bands == 1:
        return [grey]
    if bands == 2:
        return [grey, 255]
    if bands >= 4:
        return [r, g, b] + [255] * (bands - 3)
    return [r, g, b]

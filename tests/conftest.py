"""Shared fixtures: small generated images and an isolated image manager."""
import struct

import pytest
from PIL import Image, ImageDraw

from vips_mcp_server import image_manager as image_manager_module
from vips_mcp_server import server
from vips_mcp_server.exceptions import BackendUnavailableError
from vips_mcp_server.image_manager import ImageManager
from vips_mcp_server.vips_backend import get_vips


@pytest.fixture
def manager(tmp_path):
    return ImageManager(working_dir=str(tmp_path))


@pytest.fixture
def server_manager(manager, monkeypatch):
    """Point the HTTP/stdio dispatcher at a manager rooted in tmp_path."""
    monkeypatch.setattr(server, "image_manager", manager)
    return manager


@pytest.fixture
def rgb_path(tmp_path):
    """64x48 RGB gradient with a white square in the middle."""
    img = Image.new("RGB", (64, 48))
    for x in range(64):
        for y in range(48):
            img.putpixel((x, y), (x * 4, y * 5, 128))
    ImageDraw.Draw(img).rectangle([24, 16, 39, 31], fill=(255, 255, 255))
    path = tmp_path / "gradient.png"
    img.save(path)
    return str(path)


@pytest.fixture
def rgba_path(tmp_path):
    img = Image.new("RGBA", (32, 32), (0, 0, 255, 128))
    path = tmp_path / "translucent.png"
    img.save(path)
    return str(path)


@pytest.fixture
def solid_path(tmp_path):
    path = tmp_path / "white.png"
    Image.new("RGB", (20, 20), (255, 255, 255)).save(path)
    return str(path)


@pytest.fixture
def ramp16_path(tmp_path):
    """256x4 16-bit greyscale ramp covering 0..65535."""
    values = [x * 257 for x in range(256)] * 4
    img = Image.frombytes("I;16", (256, 4), struct.pack("<1024H", *values))
    path = tmp_path / "ramp16.png"
    img.save(path)
    return str(path)


@pytest.fixture
def no_vips(monkeypatch):
    """Make every libvips step fail as if the library could not be loaded."""
    def unavailable():
        raise BackendUnavailableError("libvips is not available: disabled for test")
    monkeypatch.setattr(image_manager_module, "get_vips", unavailable)


@pytest.fixture
def vips():
    try:
        return get_vips()
    except BackendUnavailableError as e:
        pytest.skip(str(e))

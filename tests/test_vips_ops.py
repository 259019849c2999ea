"""libvips code paths. Skipped when pyvips or libvips cannot be loaded."""
import json

import pytest
from PIL import Image

from vips_mcp_server import image_manager as image_manager_module
from vips_mcp_server import vips_ops
from vips_mcp_server.exceptions import ImageProcessingError, ToolArgumentError
from vips_mcp_server.image_manager import LIBVIPS, PILLOW


@pytest.fixture
def dot_path(tmp_path):
    path = tmp_path / "dot.png"
    img = Image.new("L", (9, 9), 0)
    img.putpixel((4, 4), 255)
    img.save(path)
    return str(path)


def test_morphology(vips, manager, dot_path, tmp_path):
    eroded = manager.morphology(dot_path, str(tmp_path / "eroded.png"), "erode")
    assert eroded["backend"] == LIBVIPS
    assert eroded["fallback_from"] is None
    with Image.open(eroded["output_path"]) as img:
        assert img.getextrema() == (0, 0)

    dilated = manager.morphology(dot_path, str(tmp_path / "dilated.png"), "dilate")
    with Image.open(dilated["output_path"]) as img:
        assert img.getpixel((3, 5)) == 255
        assert img.getpixel((1, 1)) == 0


def test_draw_circle(vips, manager, solid_path, tmp_path):
    result = manager.draw_circle(solid_path, str(tmp_path / "circle.png"), 10, 10, 5, True, "#FF0000")
    assert result["backend"] == LIBVIPS
    assert result["output"].startswith("Filled circle drawn at (10,10) radius 5")
    with Image.open(result["output_path"]) as img:
        assert img.convert("RGB").getpixel((10, 10)) == (255, 0, 0)
        assert img.convert("RGB").getpixel((0, 0)) == (255, 255, 255)


def test_draw_thick_line(vips, manager, solid_path, tmp_path):
    result = manager.draw_line(solid_path, str(tmp_path / "line.png"), 0, 10, 19, 10, "#000000", 3)
    assert result["backend"] == LIBVIPS
    with Image.open(result["output_path"]) as img:
        rgb = img.convert("RGB")
        assert rgb.getpixel((5, 9)) == (0, 0, 0)
        assert rgb.getpixel((5, 11)) == (0, 0, 0)
        assert rgb.getpixel((5, 14)) == (255, 255, 255)


def test_edge_detection(vips, manager, tmp_path):
    src = tmp_path / "step.png"
    img = Image.new("L", (16, 16), 0)
    img.paste(255, (8, 0, 16, 16))
    img.save(src)

    result = manager.edge_detection(str(src), str(tmp_path / "edges.png"), "sobel", 128)
    assert result["backend"] == LIBVIPS
    with Image.open(result["output_path"]) as edges:
        assert edges.getpixel((8, 8)) in (255, (255,) * len(edges.getbands()))
        assert edges.getpixel((3, 8)) in (0, (0,) * len(edges.getbands()))


def test_advanced_stats(vips, manager, rgb_path):
    result = manager.advanced_stats(rgb_path)
    assert result["output"].startswith("Advanced Statistics (libvips):")
    stats = result["data"]
    assert (stats["width"], stats["height"], stats["bands"]) == (64, 48, 3)
    assert len(stats["band_stats"]) == 3
    assert stats["max"] == 255
    assert len(stats["entropy"]) == 3
    json.loads(result["output"].split(":", 1)[1])


def test_custom_convolution_any_size(vips, manager, rgb_path, tmp_path):
    kernel = [[1] * 7 for _ in range(7)]
    result = manager.custom_convolution(rgb_path, str(tmp_path / "box.png"), kernel, 49)
    assert result["backend"] == LIBVIPS
    assert result["output"].startswith("Custom convolution applied (7x7 kernel)")
    assert (result["metadata"]["width"], result["metadata"]["height"]) == (64, 48)


def test_ragged_kernel_rejected(vips):
    with pytest.raises(ToolArgumentError):
        vips_ops.convolve(vips, vips.Image.black(4, 4), [[1, 1, 1], [1, 1]], 1, 0)


@pytest.mark.parametrize("noise_type", ["gaussian", "uniform", "salt_pepper"])
def test_add_noise(vips, manager, rgb_path, tmp_path, noise_type):
    result = manager.add_noise(rgb_path, str(tmp_path / "noisy.png"), noise_type, 0.2)
    assert result["backend"] == LIBVIPS
    with Image.open(result["output_path"]) as img:
        assert img.size == (64, 48)


def test_perspective(vips, manager, rgb_path, tmp_path):
    corners = [[0, 0], [63, 0], [63, 47], [0, 47]]
    result = manager.perspective_transform(rgb_path, str(tmp_path / "warp.png"), corners)
    assert result["backend"] == LIBVIPS
    assert (result["metadata"]["width"], result["metadata"]["height"]) == (64, 48)


def test_texture_analysis(vips, manager, rgb_path):
    result = manager.texture_analysis(rgb_path, 5)
    assert result["backend"] == LIBVIPS
    data = result["data"]
    assert data["window_size"] == 5
    assert data["contrast"] == data["max"] - data["min"]


def test_sharpen_and_composite(vips, manager, rgb_path, tmp_path):
    assert manager.sharpen_image(rgb_path, str(tmp_path / "sharp.png"))["backend"] == LIBVIPS
    result = manager.composite_images(rgb_path, rgb_path, str(tmp_path / "comp.png"), 0, 0, "xor")
    assert result["backend"] == LIBVIPS
    assert result["output"].startswith("Images composited with xor blend mode")


def test_fft_produces_an_image(vips, manager, rgb_path, tmp_path):
    # libvips builds without FFTW fall back to edge enhancement
    result = manager.fft(rgb_path, str(tmp_path / "spectrum.png"))
    assert result["backend"] in (LIBVIPS, PILLOW)
    with Image.open(result["output_path"]) as img:
        assert img.size == (64, 48)


def test_flood_fill_seed_outside(vips):
    with pytest.raises(ImageProcessingError, match="Seed point"):
        vips_ops.flood_fill(vips.Image.black(10, 10), 10, 3, "#FFFFFF")


def test_colorspace_writes_raw_lab_channels(vips, manager, rgb_path, tmp_path):
    result = manager.colorspace_convert(rgb_path, str(tmp_path / "lab.png"), "lab")
    assert result["backend"] == LIBVIPS
    assert result["output"].startswith("Image converted to lab color space (raw channels stored as 8-bit bands)")
    with open(rgb_path, "rb") as before, open(result["output_path"], "rb") as after:
        assert before.read() != after.read()
    with Image.open(result["output_path"]) as img:
        assert img.mode == "RGB"
        lightness, a, b = img.getpixel((30, 20))
    assert lightness >= 253
    assert abs(a - 128) <= 2 and abs(b - 128) <= 2


@pytest.mark.parametrize("space", ["xyz", "lch", "scrgb", "hsv"])
def test_colorspace_output_differs_from_input(vips, manager, rgb_path, tmp_path, space):
    result = manager.colorspace_convert(rgb_path, str(tmp_path / f"{space}.png"), space)
    assert result["backend"] == LIBVIPS
    with Image.open(rgb_path) as before, Image.open(result["output_path"]) as after:
        assert after.size == before.size
        assert list(after.convert("RGB").getdata()) != list(before.getdata())


def test_srgb_output_is_not_raw(vips, manager, rgb_path, tmp_path):
    result = manager.colorspace_convert(rgb_path, str(tmp_path / "srgb.png"), "srgb")
    assert "raw channels" not in result["output"]


def test_raw_colorspace_keeps_alpha(vips):
    image = vips.Image.black(4, 4, bands=3).bandjoin(255).copy(interpretation="srgb")
    raw = vips_ops.colorspace(image, "lab", raw_channels=True)
    assert raw.bands == 4
    assert raw.format == "uchar"
    assert raw.interpretation == "srgb"
    assert raw.extract_band(3).min() == 255


def test_inverse_fft(vips, manager, rgb_path, tmp_path):
    result = manager.fft(rgb_path, str(tmp_path / "inverse.png"), inverse=True)
    if result["backend"] == LIBVIPS:
        assert result["output"].startswith("Inverse FFT applied successfully")
    else:
        assert result["output"].startswith("FFT unavailable, edge enhancement applied instead")
    with Image.open(result["output_path"]) as img:
        assert img.size == (64, 48)


def test_flood_fill_falls_back_to_libvips(vips, manager, solid_path, tmp_path, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("flood fill unavailable")

    monkeypatch.setattr(image_manager_module.pillow_ops, "flood_fill", broken)
    result = manager.flood_fill(solid_path, str(tmp_path / "ff.png"), 1, 1, "#00FF00")
    assert result["backend"] == LIBVIPS
    assert result["fallback_from"] == PILLOW
    with Image.open(result["output_path"]) as img:
        assert img.convert("RGB").getpixel((19, 19)) == (0, 255, 0)


def test_sixteen_bit_to_uchar(vips):
    image = (vips.Image.black(4, 4) + 51400).cast("ushort")
    scaled = vips_ops.to_uchar(image)
    assert scaled.format == "uchar"
    assert scaled.avg() == 200


def test_sixteen_bit_texture(vips, manager, ramp16_path):
    result = manager.texture_analysis(ramp16_path, 5)
    assert result["backend"] == LIBVIPS
    data = result["data"]
    assert 120 < data["mean"] < 135
    assert data["max"] == 255


def test_sixteen_bit_ink(vips, manager, tmp_path):
    src = tmp_path / "black16.png"
    Image.new("I;16", (20, 20)).save(src)
    result = manager.draw_circle(str(src), str(tmp_path / "circle16.png"), 10, 10, 5, True, "#FFFFFF")
    assert result["backend"] == LIBVIPS
    image = vips.Image.new_from_file(result["output_path"])
    assert image.format == "ushort"
    assert image.getpoint(10, 10) == [65535]
    assert image.getpoint(0, 0) == [0]

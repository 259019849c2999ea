"""
Pillow implementations of the image operations.

Functions here take and return PIL images and never touch the filesystem;
ImageManager handles loading, saving and publishing.
"""
import os
from typing import Callable, Dict, List, Optional, Tuple

from PIL import Image, ImageChops, ImageCms, ImageDraw, ImageEnhance, ImageFilter, ImageOps, ImageStat

from .colors import color_for_mode, parse_color
from .exceptions import ImageProcessingError, ToolArgumentError

RESAMPLE = Image.Resampling.LANCZOS

EDGE_KERNELS = {
    "sobel": ([[-1, 0, 1], [-2, 0, 2], [-1, 0, 1]], [[-1, -2, -1], [0, 0, 0], [1, 2, 1]]),
    "prewitt": ([[-1, 0, 1], [-1, 0, 1], [-1, 0, 1]], [[-1, -1, -1], [0, 0, 0], [1, 1, 1]]),
    # 2x2 Roberts cross, padded to 3x3
    "roberts": ([[0, 0, 0], [0, 1, 0], [0, 0, -1]], [[0, 0, 0], [0, 0, 1], [0, -1, 0]]),
    "laplacian": ([[0, -1, 0], [-1, 4, -1], [0, -1, 0]],),
}

SHARPEN_KERNEL = [0, -1, 0, -1, 5, -1, 0, -1, 0]

_BLEND_CHOPS = {
    "multiply": ImageChops.multiply,
    "screen": ImageChops.screen,
    "overlay": ImageChops.overlay,
    "darken": ImageChops.darker,
    "lighten": ImageChops.lighter,
    "difference": ImageChops.difference,
    "add": ImageChops.add,
    "soft-light": ImageChops.soft_light,
    "hard-light": ImageChops.hard_light,
}


def has_alpha(img: Image.Image) -> bool:
    return "A" in img.getbands() or "transparency" in img.info


def normalize_mode(img: Image.Image) -> Image.Image:
    """Convert palette, bilevel and high bit depth images to L/LA/RGB/RGBA."""
    if img.mode in ("L", "LA", "RGB", "RGBA"):
        return img
    if img.mode in ("P", "PA", "1"):
        return img.convert("RGBA" if has_alpha(img) else "RGB")
    if img.mode in ("I", "I;16", "I;16B", "I;16L", "F"):
        return deep_to_l(img)
    return img.convert("RGB")


def deep_to_l(img: Image.Image) -> Image.Image:
    """Scale a 16-bit, 32-bit or float greyscale image down to 8-bit "L".

    I;16 data always covers 0..65535. "I" and "F" images are treated as 16-bit
    when any value exceeds 255; float images in 0..1 are stretched to 0..255.
    """
    sixteen_bit = img.mode.startswith("I;16")
    if sixteen_bit:
        img = img.convert("I")
    _, high = img.getextrema()
    if sixteen_bit or high > 255:
        scale = 1 / 256
    elif img.mode == "F" and high <= 1.0:
        scale = 255
    else:
        scale = 1
    if scale != 1:
        img = img.point(lambda v: v * scale)
    return img.convert("L")


def apply_to_colour(img: Image.Image, func: Callable[[Image.Image], Image.Image]) -> Image.Image:
    """Run ``func`` on the colour bands only, leaving any alpha band untouched."""
    img = normalize_mode(img)
    if img.mode in ("RGBA", "LA"):
        alpha = img.getchannel("A")
        result = func(img.convert("RGB" if img.mode == "RGBA" else "L"))
        if result.mode not in ("L", "RGB"):
            result = result.convert("RGB")
        result.putalpha(alpha)
        return result
    return func(img)


def _point_lut(func: Callable[[int], float]) -> List[int]:
    return [max(0, min(255, int(round(func(i))))) for i in range(256)]


def _map_bands(img: Image.Image, lut: List[int]) -> Image.Image:
    return img.point(lut * len(img.getbands()))


# Geometry

def resize(img: Image.Image, width: Optional[int], height: Optional[int], fit: str) -> Image.Image:
    if not width and not height:
        raise ToolArgumentError("image_resize requires width, height or both")
    src_w, src_h = img.size
    if not width:
        width = max(1, round(src_w * height / src_h))
    if not height:
        height = max(1, round(src_h * width / src_w))
    size = (int(width), int(height))

    if fit == "fill":
        return img.resize(size, RESAMPLE)
    if fit == "cover":
        return ImageOps.fit(img, size, RESAMPLE)
    if fit == "contain":
        return ImageOps.pad(normalize_mode(img), size, RESAMPLE)
    if fit == "inside":
        return ImageOps.contain(img, size, RESAMPLE)
    if fit == "outside":
        scale = max(size[0] / src_w, size[1] / src_h)
        return img.resize((max(1, round(src_w * scale)), max(1, round(src_h * scale))), RESAMPLE)
    raise ToolArgumentError(f"Unknown fit mode: {fit}")


def crop(img: Image.Image, x: int, y: int, width: int, height: int) -> Image.Image:
    if x < 0 or y < 0 or width <= 0 or height <= 0 or x + width > img.width or y + height > img.height:
        raise ImageProcessingError(
            f"Crop area {width}x{height}+{x}+{y} is outside the {img.width}x{img.height} image")
    return img.crop((x, y, x + width, y + height))


def rotate(img: Image.Image, angle: float, background: str) -> Image.Image:
    img = normalize_mode(img)
    # Pillow rotates counter-clockwise
    return img.rotate(-angle, resample=Image.Resampling.BICUBIC, expand=True,
                      fillcolor=color_for_mode(background, img.mode))


def flip(img: Image.Image, direction: str) -> Image.Image:
    if direction == "horizontal":
        return ImageOps.mirror(img)
    return ImageOps.flip(img)


def thumbnail(img: Image.Image, size: int, crop_square: bool) -> Image.Image:
    if crop_square:
        return ImageOps.fit(img, (size, size), RESAMPLE)
    thumb = img.copy()
    thumb.thumbnail((size, size), RESAMPLE)
    return thumb


def perspective(img: Image.Image, corners: List[List[float]]) -> Image.Image:
    (tlx, tly), (trx, try_), (brx, bry), (blx, bly) = corners
    # QUAD wants upper-left, lower-left, lower-right, upper-right
    return normalize_mode(img).transform(
        img.size, Image.Transform.QUAD,
        data=(tlx, tly, blx, bly, brx, bry, trx, try_),
        resample=Image.Resampling.BICUBIC)


# Filters and adjustments

def blur(img: Image.Image, sigma: float) -> Image.Image:
    return normalize_mode(img).filter(ImageFilter.GaussianBlur(radius=sigma))


def sharpen(img: Image.Image, sigma: float, flat: float, jagged: float) -> Image.Image:
    percent = int(round(50 * (flat + jagged)))
    return apply_to_colour(img, lambda im: im.filter(
        ImageFilter.UnsharpMask(radius=sigma, percent=percent, threshold=2)))


def brightness(img: Image.Image, brightness_value: float) -> Image.Image:
    factor = 1 + brightness_value / 100
    return apply_to_colour(img, lambda im: ImageEnhance.Brightness(im).enhance(factor))


def contrast(img: Image.Image, contrast_value: float) -> Image.Image:
    lut = _point_lut(lambda v: contrast_value * v + 128 * (1 - contrast_value))
    return apply_to_colour(img, lambda im: _map_bands(im, lut))


def saturation(img: Image.Image, saturation_value: float) -> Image.Image:
    return apply_to_colour(img, lambda im: ImageEnhance.Color(im).enhance(saturation_value))


def grayscale(img: Image.Image) -> Image.Image:
    return apply_to_colour(img, ImageOps.grayscale)


def extract_channel(img: Image.Image, channel: int) -> Image.Image:
    img = normalize_mode(img)
    bands = img.getbands()
    if channel >= len(bands):
        raise ImageProcessingError(
            f"Channel {channel} does not exist: image has {len(bands)} channel(s) ({''.join(bands)})")
    return img.getchannel(channel)


def morphology(img: Image.Image, operation: str, kernel_size: int, iterations: int) -> Image.Image:
    # rank filters need an odd window
    size = kernel_size if kernel_size % 2 else kernel_size + 1
    erode = ImageFilter.MinFilter(size)
    dilate = ImageFilter.MaxFilter(size)
    steps = {
        "erode": [erode],
        "dilate": [dilate],
        "opening": [erode, dilate],
        "closing": [dilate, erode],
    }[operation]

    result = normalize_mode(img)
    for _ in range(iterations):
        for step in steps:
            result = result.filter(step)
    return result


def _abs_kernel(gray: Image.Image, kernel: List[List[int]]) -> Image.Image:
    flat = [v for row in kernel for v in row]
    positive = gray.filter(ImageFilter.Kernel((3, 3), flat, scale=1))
    negative = gray.filter(ImageFilter.Kernel((3, 3), [-v for v in flat], scale=1))
    return ImageChops.lighter(positive, negative)


def edge_detection(img: Image.Image, method: str, threshold: float) -> Image.Image:
    gray = ImageOps.grayscale(normalize_mode(img).convert("RGB"))
    magnitude = None
    for kernel in EDGE_KERNELS[method]:
        response = _abs_kernel(gray, kernel)
        magnitude = response if magnitude is None else ImageChops.add(magnitude, response)
    return magnitude.point(_point_lut(lambda v: 255 if v > threshold else 0))


def edge_enhance(img: Image.Image) -> Image.Image:
    return apply_to_colour(img, lambda im: im.filter(ImageFilter.Kernel((3, 3), SHARPEN_KERNEL, scale=1)))


def convolve(img: Image.Image, kernel: List[List[float]], scale: float, offset: float) -> Image.Image:
    rows = len(kernel)
    cols = len(kernel[0])
    if (cols, rows) not in ((3, 3), (5, 5)):
        raise ImageProcessingError(
            f"Pillow only supports 3x3 and 5x5 kernels, got {cols}x{rows}")
    flat = [float(v) for row in kernel for v in row]
    kernel_filter = ImageFilter.Kernel((cols, rows), flat, scale=scale or 1, offset=offset)
    return apply_to_colour(img, lambda im: im.filter(kernel_filter))


_LAB_SPACES = ("lab", "xyz", "lch")


def colorspace(img: Image.Image, space: str) -> Tuple[Image.Image, bool]:
    """Convert to ``space``. Returns the image and whether it is an approximation."""
    rgb = normalize_mode(img).convert("RGB")
    if space == "cmyk":
        return rgb.convert("CMYK"), False
    if space == "hsv":
        return rgb.convert("HSV"), False
    if space in _LAB_SPACES:
        transform = ImageCms.buildTransformFromOpenProfiles(
            ImageCms.createProfile("sRGB"), ImageCms.createProfile("LAB"), "RGB", "LAB")
        return ImageCms.applyTransform(rgb, transform), space != "lab"
    return rgb, space == "scrgb"


def add_noise(img: Image.Image, noise_type: str, amount: float) -> Image.Image:
    size = img.size
    pixel_count = size[0] * size[1]

    if noise_type == "salt_pepper":
        rand = Image.frombytes("L", size, os.urandom(pixel_count))
        cut = 256 * amount / 2
        pepper = rand.point(_point_lut(lambda v: 255 if v < cut else 0))
        salt = rand.point(_point_lut(lambda v: 255 if v >= 256 - cut else 0))

        def sprinkle(im):
            black = Image.new(im.mode, size, 0)
            white = Image.new(im.mode, size, 255 if im.mode == "L" else (255,) * len(im.getbands()))
            return Image.composite(white, Image.composite(black, im, pepper), salt)
        return apply_to_colour(img, sprinkle)

    if noise_type == "gaussian":
        noise = Image.effect_noise(size, amount * 255)
    elif noise_type == "uniform":
        rand = Image.frombytes("L", size, os.urandom(pixel_count))
        noise = rand.point(_point_lut(lambda v: 128 + (v - 128) * amount * 2))
    else:
        raise ToolArgumentError(f"Unknown noise type: {noise_type}")

    def add(im):
        bands = [ImageChops.add(band, noise, scale=1.0, offset=-128) for band in im.split()]
        return Image.merge(im.mode, bands)
    return apply_to_colour(img, add)


def composite(base: Image.Image, overlay: Image.Image, x: int, y: int, blend: str) -> Image.Image:
    base = base.convert("RGBA")
    layer = Image.new("RGBA", base.size, (0, 0, 0, 0))
    layer.paste(overlay.convert("RGBA"), (x, y))

    if blend == "over":
        return Image.alpha_composite(base, layer)
    if blend == "dest-over":
        return Image.alpha_composite(layer, base)
    if blend == "dest":
        return base
    chop = _BLEND_CHOPS.get(blend)
    if chop is None:
        raise ImageProcessingError(f"Blend mode '{blend}' is not supported by the Pillow backend")

    mixed = chop(base.convert("RGB"), layer.convert("RGB")).convert("RGBA")
    mixed.putalpha(base.getchannel("A"))
    return Image.composite(mixed, base, layer.getchannel("A"))


# Drawing

def drawable(img: Image.Image) -> Image.Image:
    return normalize_mode(img).copy()


def draw_line(img: Image.Image, x1, y1, x2, y2, color: str, width: int) -> Image.Image:
    canvas = drawable(img)
    ImageDraw.Draw(canvas).line([(x1, y1), (x2, y2)], fill=color_for_mode(color, canvas.mode), width=width)
    return canvas


def draw_circle(img: Image.Image, x, y, radius, fill: bool, color: str) -> Image.Image:
    canvas = drawable(img)
    ink = color_for_mode(color, canvas.mode)
    box = [x - radius, y - radius, x + radius, y + radius]
    ImageDraw.Draw(canvas).ellipse(box, fill=ink if fill else None, outline=ink, width=2)
    return canvas


def flood_fill(img: Image.Image, x: int, y: int, fill_color: str, tolerance: float) -> Image.Image:
    canvas = drawable(img)
    if not (0 <= x < canvas.width and 0 <= y < canvas.height):
        raise ImageProcessingError(
            f"Seed point ({x},{y}) is outside the {canvas.width}x{canvas.height} image")
    ImageDraw.floodfill(canvas, (x, y), color_for_mode(fill_color, canvas.mode), thresh=tolerance)
    return canvas


def solid_color(width: int, height: int, color: str) -> Image.Image:
    return Image.new("RGB", (width, height), parse_color(color))


# Statistics

def _stats_image(img: Image.Image) -> Image.Image:
    img = normalize_mode(img)
    return img if img.mode != "CMYK" else img.convert("RGB")


def channel_stats(img: Image.Image) -> List[Dict]:
    img = _stats_image(img)
    stat = ImageStat.Stat(img)
    return [
        {
            "channel": index,
            "name": band,
            "min": stat.extrema[index][0],
            "max": stat.extrema[index][1],
            "mean": round(stat.mean[index], 4),
            "stdev": round(stat.stddev[index], 4),
        }
        for index, band in enumerate(img.getbands())
    ]


def is_opaque(img: Image.Image) -> bool:
    img = normalize_mode(img)
    if "A" not in img.getbands():
        return True
    return img.getchannel("A").getextrema()[0] == 255


def dominant_color(img: Image.Image) -> Dict[str, int]:
    small = normalize_mode(img).convert("RGB")
    small.thumbnail((64, 64))
    palette = small.quantize(colors=16).convert("RGB")
    count, (r, g, b) = max(palette.getcolors(64 * 64))
    return {"r": r, "g": g, "b": b}


def histogram(img: Image.Image, bins: int) -> Dict:
    img = _stats_image(img)
    channels = []
    for entry in channel_stats(img):
        counts = img.getchannel(entry["channel"]).histogram()
        rebinned = [0] * bins
        for value, count in enumerate(counts):
            rebinned[value * bins // 256] += count
        channels.append(dict(entry, histogram=rebinned))
    return {
        "bins": bins,
        "channels": channels,
        "is_opaque": is_opaque(img),
        "entropy": round(img.entropy(), 4),
        "dominant_color": dominant_color(img),
    }


def basic_stats(img: Image.Image) -> Dict:
    img = _stats_image(img)
    return {
        "width": img.width,
        "height": img.height,
        "bands": len(img.getbands()),
        "mode": img.mode,
        "channels": channel_stats(img),
        "entropy": round(img.entropy(), 4),
        "is_opaque": is_opaque(img),
    }


def texture_stats(img: Image.Image, window_size: int) -> Dict:
    gray = ImageOps.grayscale(normalize_mode(img).convert("RGB"))
    stat = ImageStat.Stat(gray)
    low, high = stat.extrema[0]
    local_mean = gray.filter(ImageFilter.BoxBlur(window_size / 2))
    local_deviation = ImageStat.Stat(ImageChops.difference(gray, local_mean)).mean[0]
    return {
        "mean": round(stat.mean[0], 4),
        "stddev": round(stat.stddev[0], 4),
        "min": low,
        "max": high,
        "entropy": round(gray.entropy(), 4),
        "contrast": high - low,
        "window_size": window_size,
        "local_deviation": round(local_deviation, 4),
    }

"""
libvips implementations of the image operations.

Each function receives the pyvips module and pyvips images so callers decide
when the library gets loaded. Nothing here reads or writes files.
"""
import os

from .colors import ink_for_bands
from .exceptions import ImageProcessingError, ToolArgumentError
from .pillow_ops import EDGE_KERNELS

COLOUR_SPACES = {
    "srgb": "srgb",
    "rgb": "rgb",
    "cmyk": "cmyk",
    "lab": "lab",
    "xyz": "xyz",
    "scrgb": "scrgb",
    "hsv": "hsv",
    "lch": "lch",
}

SRGB_SPACES = ("srgb", "rgb")

# 8-bit (scale, offset) per band: L 0..100, a/b and C centred or clipped, hue 0..360
RAW_ENCODINGS = {
    "lab": ([255 / 100, 1, 1], [0, 128, 128]),
    "lch": ([255 / 100, 1, 255 / 360], [0, 0, 0]),
    "xyz": ([255 / 100] * 3, [0] * 3),
    "scrgb": ([255] * 3, [0] * 3),
}


def split_alpha(image):
    """Return (colour bands, alpha band or None)."""
    if image.hasalpha():
        return image.extract_band(0, n=image.bands - 1), image.extract_band(image.bands - 1)
    return image, None


def join_alpha(image, alpha):
    return image if alpha is None else image.bandjoin(alpha)


def to_uchar(image):
    """8-bit version of ``image``; 16-bit data keeps its top byte, anything else is stretched."""
    if image.format == "uchar":
        return image
    if image.format == "ushort":
        return (image >> 8).cast("uchar")
    return image.scaleimage()


def ink(image, color):
    """Ink for ``image``, scaled up to the full range of 16-bit images."""
    values = ink_for_bands(color, image.bands)
    if image.format == "ushort":
        return [v * 257 for v in values]
    return values


def to_grey(image):
    """Single band greyscale version of ``image``."""
    colour, _ = split_alpha(image)
    if colour.bands >= 3:
        colour = colour.colourspace("b-w")
    return colour.extract_band(0)


def sharpen(image, sigma, flat, jagged):
    return image.sharpen(sigma=sigma, m1=flat, m2=jagged)


def composite(base, overlay, x, y, blend):
    return base.composite2(overlay, blend, x=x, y=y)


def morphology(image, operation, kernel_size, iterations):
    # rank with the lowest/highest index over a square window is greyscale
    # erosion/dilation with a flat structuring element
    last = kernel_size * kernel_size - 1
    steps = {
        "erode": [0],
        "dilate": [last],
        "opening": [0, last],
        "closing": [last, 0],
    }[operation]
    result = image
    for _ in range(iterations):
        for index in steps:
            result = result.rank(kernel_size, kernel_size, index)
    return result


def draw_line(image, x1, y1, x2, y2, color, width):
    colour = ink(image, color)
    # libvips lines are one pixel wide; thicker lines are stacked along the minor axis
    steep = abs(y2 - y1) > abs(x2 - x1)
    for offset in range(-(width // 2), width - width // 2):
        if steep:
            image = image.draw_line(colour, x1 + offset, y1, x2 + offset, y2)
        else:
            image = image.draw_line(colour, x1, y1 + offset, x2, y2 + offset)
    return image


def draw_circle(image, x, y, radius, fill, color):
    return image.draw_circle(ink(image, color), x, y, radius, fill=fill)


def flood_fill(image, x, y, fill_color):
    if not (0 <= x < image.width and 0 <= y < image.height):
        raise ImageProcessingError(
            f"Seed point ({x},{y}) is outside the {image.width}x{image.height} image")
    return image.draw_flood(ink(image, fill_color), x, y)


def edge_detection(vips, image, method, threshold):
    grey = to_uchar(to_grey(image))
    magnitude = None
    for kernel in EDGE_KERNELS[method]:
        response = grey.conv(vips.Image.new_from_array(kernel), precision="float").abs()
        magnitude = response if magnitude is None else magnitude + response
    return magnitude > threshold


def fft(image, inverse):
    grey = to_grey(image)
    if inverse:
        return grey.invfft(real=True).scaleimage()
    # centre the DC term and log-scale the magnitude for display
    return grey.fwfft().abs().wrap().scaleimage(log=True)


def convolve(vips, image, kernel, scale, offset):
    width = len(kernel[0])
    if any(len(row) != width for row in kernel):
        raise ToolArgumentError("Convolution kernel rows must all have the same length")
    mask = vips.Image.new_from_array(kernel, scale=scale or 1, offset=offset)
    colour, alpha = split_alpha(image)
    result = colour.conv(mask, precision="float").cast(colour.format)
    return join_alpha(result, alpha)


def colorspace(image, space, raw_channels=False):
    """Convert to ``space``.

    With ``raw_channels`` the converted bands are encoded as 8-bit values and
    labelled sRGB, so savers without a slot for the colour space write them
    as they are instead of converting back to sRGB.
    """
    colour, alpha = split_alpha(image)
    converted = colour.colourspace(COLOUR_SPACES[space])
    if not raw_channels or space in SRGB_SPACES:
        return join_alpha(converted, alpha)
    if space in RAW_ENCODINGS:
        scale, offset = RAW_ENCODINGS[space]
        converted = converted.linear(scale, offset).cast("uchar")
    else:
        converted = to_uchar(converted)
    if alpha is not None:
        alpha = to_uchar(alpha)
    return join_alpha(converted, alpha).copy(interpretation="srgb")


def add_noise(vips, image, noise_type, amount):
    colour, alpha = split_alpha(image)
    width, height = colour.width, colour.height
    peak = 65535 if colour.format == "ushort" else 255

    if noise_type == "gaussian":
        noisy = colour + vips.Image.gaussnoise(width, height, sigma=amount * peak, mean=0)
    elif noise_type == "uniform":
        rand = vips.Image.new_from_memory(os.urandom(width * height), width, height, 1, "uchar")
        noisy = colour + (rand - 128) * (amount * 2 * peak / 255)
    elif noise_type == "salt_pepper":
        rand = vips.Image.new_from_memory(os.urandom(width * height), width, height, 1, "uchar")
        cut = 256 * amount / 2
        noisy = (rand < cut).ifthenelse(0, (rand >= 256 - cut).ifthenelse(peak, colour))
    else:
        raise ToolArgumentError(f"Unknown noise type: {noise_type}")

    return join_alpha(noisy.cast(colour.format), alpha)


def perspective(vips, image, corners):
    """Map the quadrilateral ``corners`` (tl, tr, br, bl) onto the full frame."""
    (tlx, tly), (trx, try_), (brx, bry), (blx, bly) = corners
    width, height = image.width, image.height
    index = vips.Image.xyz(width, height)
    u = index.extract_band(0) / max(width - 1, 1)
    v = index.extract_band(1) / max(height - 1, 1)
    iu = 1 - u
    iv = 1 - v
    src_x = iu * iv * tlx + u * iv * trx + u * v * brx + iu * v * blx
    src_y = iu * iv * tly + u * iv * try_ + u * v * bry + iu * v * bly
    return image.mapim(src_x.bandjoin(src_y))


def advanced_stats(image):
    stats = image.stats()
    bands = []
    for band in range(image.bands):
        row = band + 1
        bands.append({
            "band": band,
            "min": stats(0, row)[0],
            "max": stats(1, row)[0],
            "mean": round(stats(4, row)[0], 4),
            "deviate": round(stats(5, row)[0], 4),
        })

    fields = image.get_fields()
    result = {
        "width": image.width,
        "height": image.height,
        "bands": image.bands,
        "format": image.format,
        "interpretation": image.interpretation,
        "min": image.min(),
        "max": image.max(),
        "avg": round(image.avg(), 4),
        "deviate": round(image.deviate(), 4),
        "xres": image.xres,
        "yres": image.yres,
        "has_profile": "icc-profile-data" in fields,
        "fields": fields,
        "band_stats": bands,
    }
    if image.format in ("uchar", "char", "ushort", "short"):
        result["entropy"] = [
            round(image.extract_band(band).hist_find().hist_entropy(), 4)
            for band in range(image.bands)
        ]
    return result


def texture_stats(vips, image, window_size):
    grey = to_uchar(to_grey(image))
    box = vips.Image.new_from_array([[1] * window_size for _ in range(window_size)],
                                    scale=window_size * window_size)
    local_mean = grey.conv(box, precision="float")
    low = grey.min()
    high = grey.max()
    return {
        "mean": round(grey.avg(), 4),
        "stddev": round(grey.deviate(), 4),
        "min": low,
        "max": high,
        "entropy": round(grey.hist_find().hist_entropy(), 4),
        "contrast": high - low,
        "window_size": window_size,
        "local_deviation": round((grey - local_mean).abs().avg(), 4),
    }

"""
Image Manager - Runs image operations on Pillow and libvips with optional S3 publishing
"""
import json
import os
import uuid
from typing import Any, Callable, Dict, List, Optional, Tuple

import boto3
from botocore.config import Config
from PIL import Image

from . import pillow_ops, vips_ops
from .exceptions import ImageNotFoundError
from .log import get_logger
from .vips_backend import get_vips

logger = get_logger("images")

PILLOW = "pillow"
LIBVIPS = "libvips"

# Pillow format name and default file suffix for each target of image_convert
CONVERT_TARGETS = {
    "jpeg": ("JPEG", ".jpg"),
    "png": ("PNG", ".png"),
    "webp": ("WEBP", ".webp"),
    "tiff": ("TIFF", ".tif"),
    "avif": ("AVIF", ".avif"),
    "heif": ("HEIF", ".heic"),
}

LOSSY_FORMATS = ("jpeg", "webp", "avif", "heif")

# colour spaces an output suffix can store as they are
NATIVE_SPACES = {
    ".tif": ("lab", "cmyk"),
    ".tiff": ("lab", "cmyk"),
    ".jpg": ("cmyk",),
    ".jpeg": ("cmyk",),
}

Step = Tuple[str, Callable[[], Any]]


class ImageManager:
    """Runs image operations against files in a working directory"""

    def __init__(self, working_dir="/tmp", s3_bucket=None, enable_s3=False, url_expiry_hours=24):
        self.base_working_dir = os.path.abspath(working_dir)
        self.enable_s3 = enable_s3 and s3_bucket is not None
        self.s3_bucket = s3_bucket
        self.url_expiry_seconds = int(url_expiry_hours * 3600)
        self.session_id = str(uuid.uuid4())
        os.makedirs(self.base_working_dir, exist_ok=True)

        self.s3_client = None
        if self.enable_s3:
            self.s3_client = boto3.client('s3', config=Config(signature_version='s3v4'))
            logger.info("S3 publishing enabled: bucket %s, session %s", s3_bucket, self.session_id)

    # Paths and I/O

    def _resolve(self, path: str) -> str:
        path = os.path.expanduser(path)
        if not os.path.isabs(path):
            path = os.path.join(self.base_working_dir, path)
        return os.path.normpath(path)

    def _require_input(self, path: str, label: str = "Input image") -> str:
        resolved = self._resolve(path)
        if not os.path.isfile(resolved):
            raise ImageNotFoundError(f"{label} not found: {path}")
        return resolved

    def _prepare_output(self, path: str) -> str:
        resolved = self._resolve(path)
        parent = os.path.dirname(resolved)
        if parent:
            os.makedirs(parent, exist_ok=True)
        return resolved

    def _open(self, path: str) -> Image.Image:
        with Image.open(path) as img:
            img.load()
        return img

    def _save(self, img: Image.Image, output_path: str, format_type: Optional[str] = None, **params):
        """Save a Pillow image, inferring the format from the file suffix (PNG when unknown)"""
        if format_type is None:
            suffix = os.path.splitext(output_path)[1].lower()
            format_type = Image.registered_extensions().get(suffix, "PNG")
        format_type = format_type.upper()

        # LAB survives only in TIFF, CMYK in TIFF and JPEG; otherwise the raw channel values are written
        if img.mode == "HSV" or (img.mode == "LAB" and format_type != "TIFF"):
            img = Image.merge("RGB", img.split())
        elif img.mode == "CMYK" and format_type not in ("TIFF", "JPEG"):
            img = Image.merge("RGBA", img.split())

        if format_type == "JPEG" and img.mode not in ("RGB", "L", "CMYK"):
            img = pillow_ops.normalize_mode(img)
            if img.mode in ("RGBA", "LA"):
                rgb_img = Image.new("RGB", img.size, (255, 255, 255))
                rgb_img.paste(img.convert("RGBA"), mask=img.getchannel("A"))
                img = rgb_img
            elif img.mode != "L":
                img = img.convert("RGB")

        img.save(output_path, format=format_type, **params)
        return img

    def _open_vips(self, path: str):
        vips = get_vips()
        return vips, vips.Image.new_from_file(path)

    def _write_vips(self, image, output_path: str):
        image.write_to_file(output_path)
        return image

    # Results

    def _describe(self, img, output_path: str) -> Dict[str, Any]:
        """Image metadata for either a Pillow or a pyvips image"""
        file_format = os.path.splitext(output_path)[1].lstrip(".").upper() or "PNG"
        if isinstance(img, Image.Image):
            return {"width": img.width, "height": img.height, "format": file_format, "mode": img.mode}
        return {"width": img.width, "height": img.height, "format": file_format, "mode": img.interpretation}

    def _publish(self, output_path: str) -> Optional[Dict]:
        """Upload an output file to S3 and return a pre-signed download link"""
        if not self.enable_s3:
            return None
        filename = os.path.basename(output_path)
        try:
            s3_key = f"images/{self.session_id}/{filename}"
            self.s3_client.upload_file(output_path, self.s3_bucket, s3_key)
            presigned_url = self.s3_client.generate_presigned_url(
                'get_object',
                Params={'Bucket': self.s3_bucket, 'Key': s3_key},
                ExpiresIn=self.url_expiry_seconds
            )
            return {
                "s3_uri": f"s3://{self.s3_bucket}/{s3_key}",
                "presigned_url": presigned_url,
                "filename": filename,
                "size_bytes": os.path.getsize(output_path),
                "expires_in_hours": self.url_expiry_seconds // 3600
            }
        except Exception as e:
            logger.warning("S3 upload of %s failed: %s", output_path, e)
            return None

    def _run(self, operation: str, primary: Step, fallback: Optional[Step] = None):
        """Run the primary step; if it raises and a fallback exists, run that instead.

        Returns (value, backend name, name of the backend that failed or None).
        """
        backend, func = primary
        try:
            return func(), backend, None
        except Exception as e:
            if fallback is None:
                raise
            logger.warning("%s: %s failed (%s), falling back to %s", operation, backend, e, fallback[0])
            fallback_backend, fallback_func = fallback
            return fallback_func(), fallback_backend, backend

    def _image_result(self, message: str, output_path: str, img, backend: str,
                      failed_backend: Optional[str] = None) -> Dict[str, Any]:
        return {
            "success": True,
            "output": f"{message}: {output_path}",
            "output_path": output_path,
            "backend": backend,
            "fallback_from": failed_backend,
            "metadata": self._describe(img, output_path),
            "s3_upload": self._publish(output_path),
        }

    def _data_result(self, title: str, data: Any, backend: str,
                     failed_backend: Optional[str] = None) -> Dict[str, Any]:
        text = json.dumps(data, indent=2, default=str)
        return {
            "success": True,
            "output": f"{title}:\n{text}" if title else text,
            "data": data,
            "backend": backend,
            "fallback_from": failed_backend,
        }

    def _pillow_step(self, input_path: str, output_path: str, transform: Callable[[Image.Image], Image.Image]) -> Step:
        def step():
            return self._save(transform(self._open(input_path)), output_path)
        return PILLOW, step

    def _vips_step(self, input_path: str, output_path: str, transform) -> Step:
        def step():
            vips, image = self._open_vips(input_path)
            return self._write_vips(transform(vips, image), output_path)
        return LIBVIPS, step

    def _simple(self, input_path: str, output_path: str, message: str, transform) -> Dict[str, Any]:
        src = self._require_input(input_path)
        out = self._prepare_output(output_path)
        img = self._save(transform(self._open(src)), out)
        return self._image_result(message, out, img, PILLOW)

    # Basic operations

    def image_info(self, image_path: str) -> Dict[str, Any]:
        """Describe an image file: format, geometry, colour model and channel statistics"""
        path = self._require_input(image_path, "Image file")
        img = self._open(path)
        dpi = img.info.get("dpi")
        info = {
            "format": (img.format or "unknown").lower(),
            "width": img.width,
            "height": img.height,
            "channels": len(img.getbands()),
            "mode": img.mode,
            "density": [float(d) for d in dpi] if dpi else None,
            "has_profile": "icc_profile" in img.info,
            "has_alpha": pillow_ops.has_alpha(img),
            "orientation": img.getexif().get(0x0112),
            "size": os.path.getsize(path),
            "stats": pillow_ops.channel_stats(img),
        }
        return self._data_result("", info, PILLOW)

    def resize_image(self, input_path: str, output_path: str, width=None, height=None,
                     maintain_aspect_ratio: bool = True, fit: str = "cover") -> Dict[str, Any]:
        if not maintain_aspect_ratio:
            fit = "fill"
        width = int(width) if width else None
        height = int(height) if height else None
        return self._simple(input_path, output_path, "Image resized successfully",
                            lambda img: pillow_ops.resize(img, width, height, fit))

    def convert_format(self, input_path: str, output_path: str, target_format: str,
                       quality: Optional[int] = None) -> Dict[str, Any]:
        src = self._require_input(input_path)
        out = self._prepare_output(output_path)
        quality = int(quality) if quality else 80
        pil_format, suffix = CONVERT_TARGETS[target_format]

        def with_pillow():
            params = {"quality": quality} if target_format in LOSSY_FORMATS else {}
            if target_format == "tiff":
                params = {"compression": "tiff_adobe_deflate"}
            return self._save(self._open(src), out, pil_format, **params)

        def with_vips():
            _, image = self._open_vips(src)
            options = {"Q": quality} if target_format in LOSSY_FORMATS else {}
            with open(out, "wb") as f:
                f.write(image.write_to_buffer(suffix, **options))
            return image

        img, backend, failed = self._run("image_convert", (PILLOW, with_pillow), (LIBVIPS, with_vips))
        return self._image_result(f"Image converted to {target_format}", out, img, backend, failed)

    def crop_image(self, input_path: str, output_path: str, x, y, width, height) -> Dict[str, Any]:
        return self._simple(input_path, output_path, "Image cropped successfully",
                            lambda img: pillow_ops.crop(img, int(x), int(y), int(width), int(height)))

    def rotate_image(self, input_path: str, output_path: str, angle: float,
                     background: str = "#000000") -> Dict[str, Any]:
        return self._simple(input_path, output_path, f"Image rotated by {angle} degrees",
                            lambda img: pillow_ops.rotate(img, angle, background))

    def flip_image(self, input_path: str, output_path: str, direction: str) -> Dict[str, Any]:
        return self._simple(input_path, output_path, f"Image flipped {direction}ly",
                            lambda img: pillow_ops.flip(img, direction))

    def blur_image(self, input_path: str, output_path: str, sigma: float = 1.0) -> Dict[str, Any]:
        return self._simple(input_path, output_path, f"Image blurred with sigma {sigma}",
                            lambda img: pillow_ops.blur(img, sigma))

    def sharpen_image(self, input_path: str, output_path: str, sigma: float = 1.0,
                      flat: float = 1.0, jagged: float = 2.0) -> Dict[str, Any]:
        src = self._require_input(input_path)
        out = self._prepare_output(output_path)
        img, backend, failed = self._run(
            "image_sharpen",
            self._vips_step(src, out, lambda vips, image: vips_ops.sharpen(image, sigma, flat, jagged)),
            self._pillow_step(src, out, lambda im: pillow_ops.sharpen(im, sigma, flat, jagged)))
        return self._image_result("Image sharpened", out, img, backend, failed)

    def adjust_brightness(self, input_path: str, output_path: str, brightness: float) -> Dict[str, Any]:
        return self._simple(input_path, output_path, f"Image brightness adjusted by {brightness}",
                            lambda img: pillow_ops.brightness(img, brightness))

    def adjust_contrast(self, input_path: str, output_path: str, contrast: float) -> Dict[str, Any]:
        return self._simple(input_path, output_path, f"Image contrast adjusted by {contrast}",
                            lambda img: pillow_ops.contrast(img, contrast))

    def adjust_saturation(self, input_path: str, output_path: str, saturation: float) -> Dict[str, Any]:
        return self._simple(input_path, output_path, f"Image saturation adjusted by {saturation}",
                            lambda img: pillow_ops.saturation(img, saturation))

    def grayscale_image(self, input_path: str, output_path: str) -> Dict[str, Any]:
        return self._simple(input_path, output_path, "Image converted to grayscale", pillow_ops.grayscale)

    def composite_images(self, base_image_path: str, overlay_image_path: str, output_path: str,
                         x=0, y=0, blend: str = "over") -> Dict[str, Any]:
        base = self._require_input(base_image_path, "Base image")
        overlay = self._require_input(overlay_image_path, "Overlay image")
        out = self._prepare_output(output_path)
        x, y = int(x), int(y)

        def with_vips():
            vips, base_image = self._open_vips(base)
            overlay_image = vips.Image.new_from_file(overlay)
            return self._write_vips(vips_ops.composite(base_image, overlay_image, x, y, blend), out)

        def with_pillow():
            result = pillow_ops.composite(self._open(base), self._open(overlay), x, y, blend)
            return self._save(result, out)

        img, backend, failed = self._run("image_composite", (LIBVIPS, with_vips), (PILLOW, with_pillow))
        return self._image_result(f"Images composited with {blend} blend mode", out, img, backend, failed)

    def create_thumbnail(self, input_path: str, output_path: str, size, crop: bool = False) -> Dict[str, Any]:
        size = int(size)
        return self._simple(input_path, output_path, f"Thumbnail created ({size}px)",
                            lambda img: pillow_ops.thumbnail(img, size, crop))

    def extract_channel(self, input_path: str, output_path: str, channel) -> Dict[str, Any]:
        channel = int(channel)
        return self._simple(input_path, output_path, f"Channel {channel} extracted",
                            lambda img: pillow_ops.extract_channel(img, channel))

    def histogram(self, input_path: str, bins=256) -> Dict[str, Any]:
        src = self._require_input(input_path)
        return self._data_result("", pillow_ops.histogram(self._open(src), int(bins)), PILLOW)

    def create_solid_color(self, output_path: str, width, height, color: str = "#FFFFFF") -> Dict[str, Any]:
        width, height = int(width), int(height)
        out = self._prepare_output(output_path)
        img = self._save(pillow_ops.solid_color(width, height, color), out)
        return self._image_result(f"Solid color image created ({width}x{height}, {color})", out, img, PILLOW)

    def create_pyramid(self, input_path: str, output_dir: str, levels=4, scale_factor: float = 0.5) -> Dict[str, Any]:
        src = self._require_input(input_path)
        out_dir = self._resolve(output_dir)
        os.makedirs(out_dir, exist_ok=True)
        img = pillow_ops.normalize_mode(self._open(src))

        width, height = float(img.width), float(img.height)
        pyramid: List[Dict[str, Any]] = []
        for level in range(int(levels)):
            size = (max(1, int(width)), max(1, int(height)))
            level_path = os.path.join(out_dir, f"level_{level}.jpg")
            self._save(img.resize(size, pillow_ops.RESAMPLE), level_path, "JPEG")
            entry = {"level": level, "path": level_path, "dimensions": f"{size[0]}x{size[1]}"}
            s3_info = self._publish(level_path)
            if s3_info:
                entry["url"] = s3_info["presigned_url"]
            pyramid.append(entry)
            width *= scale_factor
            height *= scale_factor

        return self._data_result(f"Image pyramid created with {len(pyramid)} levels", pyramid, PILLOW)

    def flood_fill(self, input_path: str, output_path: str, x, y, fill_color: str = "#FF0000",
                   tolerance: float = 10) -> Dict[str, Any]:
        src = self._require_input(input_path)
        out = self._prepare_output(output_path)
        x, y = int(x), int(y)
        img, backend, failed = self._run(
            "image_flood_fill",
            self._pillow_step(src, out, lambda im: pillow_ops.flood_fill(im, x, y, fill_color, tolerance)),
            self._vips_step(src, out, lambda vips, image: vips_ops.flood_fill(image, x, y, fill_color)))
        return self._image_result(f"Flood fill applied at ({x},{y}) with color {fill_color}", out, img, backend, failed)

    # Advanced operations: libvips first, Pillow when libvips fails

    def morphology(self, input_path: str, output_path: str, operation: str,
                   kernel_size=3, iterations=1) -> Dict[str, Any]:
        src = self._require_input(input_path)
        out = self._prepare_output(output_path)
        kernel_size, iterations = int(kernel_size), int(iterations)
        img, backend, failed = self._run(
            "image_morphology",
            self._vips_step(src, out, lambda vips, image: vips_ops.morphology(image, operation, kernel_size, iterations)),
            self._pillow_step(src, out, lambda im: pillow_ops.morphology(im, operation, kernel_size, iterations)))
        return self._image_result(
            f"Morphological {operation} applied ({iterations} iterations, {kernel_size}x{kernel_size} kernel)",
            out, img, backend, failed)

    def draw_line(self, input_path: str, output_path: str, x1, y1, x2, y2,
                  color: str = "#000000", width=1) -> Dict[str, Any]:
        src = self._require_input(input_path)
        out = self._prepare_output(output_path)
        x1, y1, x2, y2, width = int(x1), int(y1), int(x2), int(y2), int(width)
        img, backend, failed = self._run(
            "image_draw_line",
            self._vips_step(src, out, lambda vips, image: vips_ops.draw_line(image, x1, y1, x2, y2, color, width)),
            self._pillow_step(src, out, lambda im: pillow_ops.draw_line(im, x1, y1, x2, y2, color, width)))
        return self._image_result(f"Line drawn from ({x1},{y1}) to ({x2},{y2}) with color {color}",
                                  out, img, backend, failed)

    def draw_circle(self, input_path: str, output_path: str, x, y, radius,
                    fill: bool = False, color: str = "#000000") -> Dict[str, Any]:
        src = self._require_input(input_path)
        out = self._prepare_output(output_path)
        x, y, radius = int(x), int(y), int(radius)
        img, backend, failed = self._run(
            "image_draw_circle",
            self._vips_step(src, out, lambda vips, image: vips_ops.draw_circle(image, x, y, radius, fill, color)),
            self._pillow_step(src, out, lambda im: pillow_ops.draw_circle(im, x, y, radius, fill, color)))
        kind = "Filled circle" if fill else "Circle"
        return self._image_result(f"{kind} drawn at ({x},{y}) radius {radius}", out, img, backend, failed)

    def edge_detection(self, input_path: str, output_path: str, method: str, threshold: float = 128) -> Dict[str, Any]:
        src = self._require_input(input_path)
        out = self._prepare_output(output_path)
        img, backend, failed = self._run(
            "image_edge_detection",
            self._vips_step(src, out, lambda vips, image: vips_ops.edge_detection(vips, image, method, threshold)),
            self._pillow_step(src, out, lambda im: pillow_ops.edge_detection(im, method, threshold)))
        return self._image_result(f"{method} edge detection applied", out, img, backend, failed)

    def advanced_stats(self, input_path: str) -> Dict[str, Any]:
        src = self._require_input(input_path)

        def with_vips():
            _, image = self._open_vips(src)
            return vips_ops.advanced_stats(image)

        stats, backend, failed = self._run(
            "image_advanced_stats", (LIBVIPS, with_vips),
            (PILLOW, lambda: pillow_ops.basic_stats(self._open(src))))
        title = "Advanced Statistics (libvips)" if backend == LIBVIPS else "Basic Statistics (Pillow)"
        return self._data_result(title, stats, backend, failed)

    def fft(self, input_path: str, output_path: str, inverse: bool = False) -> Dict[str, Any]:
        src = self._require_input(input_path)
        out = self._prepare_output(output_path)
        img, backend, failed = self._run(
            "image_fft",
            self._vips_step(src, out, lambda vips, image: vips_ops.fft(image, inverse)),
            self._pillow_step(src, out, pillow_ops.edge_enhance))
        if backend == LIBVIPS:
            message = f"{'Inverse ' if inverse else ''}FFT applied successfully"
        else:
            message = "FFT unavailable, edge enhancement applied instead"
        return self._image_result(message, out, img, backend, failed)

    def custom_convolution(self, input_path: str, output_path: str, kernel: List[List[float]],
                           scale: float = 1, offset: float = 0) -> Dict[str, Any]:
        src = self._require_input(input_path)
        out = self._prepare_output(output_path)
        img, backend, failed = self._run(
            "image_custom_convolution",
            self._vips_step(src, out, lambda vips, image: vips_ops.convolve(vips, image, kernel, scale, offset)),
            self._pillow_step(src, out, lambda im: pillow_ops.convolve(im, kernel, scale, offset)))
        return self._image_result(f"Custom convolution applied ({len(kernel)}x{len(kernel[0])} kernel)",
                                  out, img, backend, failed)

    def colorspace_convert(self, input_path: str, output_path: str, space: str) -> Dict[str, Any]:
        src = self._require_input(input_path)
        out = self._prepare_output(output_path)
        suffix = os.path.splitext(out)[1].lower()
        raw = space not in vips_ops.SRGB_SPACES and space not in NATIVE_SPACES.get(suffix, ())
        approximate = []

        def with_pillow(im):
            converted, approx = pillow_ops.colorspace(im, space)
            approximate.append(approx)
            return converted

        img, backend, failed = self._run(
            "image_colorspace_convert",
            self._vips_step(src, out, lambda vips, image: vips_ops.colorspace(image, space, raw)),
            self._pillow_step(src, out, with_pillow))
        message = f"Image converted to {space} color space"
        if any(approximate):
            message += " (approximation)"
        if raw:
            message += " (raw channels stored as 8-bit bands)"
        return self._image_result(message, out, img, backend, failed)

    def add_noise(self, input_path: str, output_path: str, noise_type: str, amount: float = 0.1) -> Dict[str, Any]:
        src = self._require_input(input_path)
        out = self._prepare_output(output_path)
        img, backend, failed = self._run(
            "image_add_noise",
            self._vips_step(src, out, lambda vips, image: vips_ops.add_noise(vips, image, noise_type, amount)),
            self._pillow_step(src, out, lambda im: pillow_ops.add_noise(im, noise_type, amount)))
        return self._image_result(f"{noise_type} noise added (amount: {amount})", out, img, backend, failed)

    def perspective_transform(self, input_path: str, output_path: str, corners: List[List[float]]) -> Dict[str, Any]:
        src = self._require_input(input_path)
        out = self._prepare_output(output_path)
        img, backend, failed = self._run(
            "image_perspective_transform",
            self._vips_step(src, out, lambda vips, image: vips_ops.perspective(vips, image, corners)),
            self._pillow_step(src, out, lambda im: pillow_ops.perspective(im, corners)))
        return self._image_result("Perspective transformation applied", out, img, backend, failed)

    def texture_analysis(self, input_path: str, window_size=5) -> Dict[str, Any]:
        src = self._require_input(input_path)
        window_size = int(window_size)

        def with_vips():
            vips, image = self._open_vips(src)
            return vips_ops.texture_stats(vips, image, window_size)

        stats, backend, failed = self._run(
            "image_texture_analysis", (LIBVIPS, with_vips),
            (PILLOW, lambda: pillow_ops.texture_stats(self._open(src), window_size)))
        return self._data_result("Texture Analysis Results", stats, backend, failed)

"""Image decode/resize/encode helpers backed by Pillow.

All functions are CPU-bound and blocking; callers run them in worker threads.
"""

from __future__ import annotations

import io
import warnings
from dataclasses import dataclass

from PIL import Image, ImageOps

from pixelpipe.models.enums import ImageFormat

_JPEG_BACKGROUND = (255, 255, 255)


@dataclass(frozen=True)
class RenderedImage:
    data: bytes
    width: int
    height: int


def decode(data: bytes, *, max_pixels: int) -> Image.Image:
    """Decode bytes into a fully loaded, upright image.

    The header's dimensions are checked against `max_pixels` before any
    pixel data is decoded, so a small file cannot expand into a huge bitmap.

    Raises:
        PIL.UnidentifiedImageError, OSError, ValueError, SyntaxError or
        Image.DecompressionBombError when the bytes are not a usable image.
    """
    if not data:
        raise ValueError("empty image buffer")
    with warnings.catch_warnings():
        warnings.simplefilter("error", Image.DecompressionBombWarning)
        opened = Image.open(io.BytesIO(data))
    with opened:
        width, height = opened.size
        if width * height > max_pixels:
            raise Image.DecompressionBombError(
                f"{width}x{height} image has {width * height} pixels, limit is {max_pixels}"
            )
        opened.load()
        upright = ImageOps.exif_transpose(opened)
        # exif_transpose may return the same lazily-backed object; detach it
        # from the BytesIO before the context closes.
        return upright.copy() if upright is opened else upright


def cover_center_crop(image: Image.Image, width: int, height: int) -> Image.Image:
    """Scale to cover `width`x`height`, then crop around the center to exactly that size."""
    return ImageOps.fit(
        image,
        (width, height),
        method=Image.Resampling.LANCZOS,
        centering=(0.5, 0.5),
    )


def encode(image: Image.Image, image_format: ImageFormat, quality: int) -> bytes:
    prepared = _prepare_mode(image, image_format)
    out = io.BytesIO()
    match image_format:
        case ImageFormat.JPEG:
            prepared.save(out, format="JPEG", quality=quality, optimize=True)
        case ImageFormat.WEBP:
            prepared.save(out, format="WEBP", quality=quality, method=4)
        case ImageFormat.PNG:
            prepared.save(out, format="PNG", optimize=True)
        case _:
            raise ValueError(f"Unsupported output format: {image_format}")
    return out.getvalue()


def render_variant(
    image: Image.Image,
    width: int,
    height: int,
    image_format: ImageFormat,
    quality: int,
) -> RenderedImage:
    resized = cover_center_crop(image, width, height)
    return RenderedImage(
        data=encode(resized, image_format, quality),
        width=resized.width,
        height=resized.height,
    )


def render_full_resolution(
    image: Image.Image, image_format: ImageFormat, quality: int
) -> RenderedImage:
    return RenderedImage(
        data=encode(image, image_format, quality),
        width=image.width,
        height=image.height,
    )


def _prepare_mode(image: Image.Image, image_format: ImageFormat) -> Image.Image:
    if image_format == ImageFormat.JPEG:
        if image.mode in ("RGB", "L"):
            return image
        if _has_alpha(image):
            rgba = image.convert("RGBA")
            background = Image.new("RGB", rgba.size, _JPEG_BACKGROUND)
            background.paste(rgba, mask=rgba.getchannel("A"))
            return background
        return image.convert("RGB")

    keep = ("RGB", "RGBA") if image_format == ImageFormat.WEBP else ("RGB", "RGBA", "L", "LA")
    if image.mode in keep:
        return image
    return image.convert("RGBA" if _has_alpha(image) else "RGB")


def _has_alpha(image: Image.Image) -> bool:
    if image.mode in ("RGBA", "LA", "PA"):
        return True
    return image.mode == "P" and "transparency" in image.info

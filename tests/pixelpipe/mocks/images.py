"""Synthetic test images."""

from __future__ import annotations

import io

from PIL import Image


def make_image(
    width: int,
    height: int,
    *,
    fmt: str = "JPEG",
    mode: str = "RGB",
    color: int | tuple[int, ...] = (200, 80, 40),
    exif_orientation: int | None = None,
) -> bytes:
    """Encode a solid image of the given size."""
    image = Image.new(mode, (width, height), color)
    out = io.BytesIO()
    kwargs: dict[str, object] = {}
    if exif_orientation is not None:
        exif = Image.Exif()
        exif[0x0112] = exif_orientation
        kwargs["exif"] = exif
    image.save(out, format=fmt, **kwargs)
    return out.getvalue()


def open_image(data: bytes) -> Image.Image:
    image = Image.open(io.BytesIO(data))
    image.load()
    return image

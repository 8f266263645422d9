"""Tests for Pillow decode/resize/encode helpers."""

from __future__ import annotations

import pytest
from PIL import Image

from pixelpipe import imaging
from pixelpipe.models.config import DEFAULT_MAX_PIXELS
from pixelpipe.models.enums import ImageFormat
from tests.pixelpipe.mocks import make_image, open_image

LIMIT = DEFAULT_MAX_PIXELS


class TestDecode:
    """Tests for image decoding."""

    def test_decodes_png(self) -> None:
        image = imaging.decode(make_image(40, 30, fmt="PNG"), max_pixels=LIMIT)
        assert image.size == (40, 30)

    @pytest.mark.parametrize("payload", [b"", b"not an image at all", b"\x89PNG\r\n\x1a\n"])
    def test_garbage_raises(self, payload: bytes) -> None:
        """Undecodable bytes raise instead of returning an image."""
        with pytest.raises(Exception):
            imaging.decode(payload, max_pixels=LIMIT)

    def test_truncated_jpeg_raises(self) -> None:
        """A JPEG cut in half fails to load."""
        # Given: Half of a valid JPEG
        data = make_image(300, 200)
        truncated = data[: len(data) // 2]

        # When/Then: Decoding fails
        with pytest.raises(Exception):
            imaging.decode(truncated, max_pixels=LIMIT)

    def test_applies_exif_orientation(self) -> None:
        """Orientation 6 (rotate 90) swaps width and height."""
        # Given: A landscape JPEG tagged as rotated
        data = make_image(80, 40, exif_orientation=6)

        # When: Decoding
        image = imaging.decode(data, max_pixels=LIMIT)

        # Then: Image is upright
        assert image.size == (40, 80)

    def test_rejects_image_over_pixel_limit_before_loading(self) -> None:
        """A tiny low-entropy PNG with huge dimensions is refused from its header."""
        # Given: A 3000x3000 grayscale PNG, a few KB on disk
        data = make_image(3000, 3000, fmt="PNG", mode="L", color=0)
        assert len(data) < 100_000

        # When/Then: Decoding with a 4 MP limit fails
        with pytest.raises(Image.DecompressionBombError, match="3000x3000"):
            imaging.decode(data, max_pixels=4_000_000)

    def test_image_at_pixel_limit_decodes(self) -> None:
        image = imaging.decode(make_image(100, 50, fmt="PNG"), max_pixels=5000)
        assert image.size == (100, 50)

    def test_pillow_bomb_warning_is_an_error(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Sizes in Pillow's warning band are rejected, not just logged."""
        # Given: Pillow's own limit is lowered below the image size
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)
        data = make_image(40, 40, fmt="PNG")

        # When/Then: Decoding fails even though max_pixels allows it
        with pytest.raises(Image.DecompressionBombWarning):
            imaging.decode(data, max_pixels=LIMIT)


class TestRenderVariant:
    """Tests for cover-crop thumbnails."""

    @pytest.mark.parametrize(
        ("source_size", "target"),
        [
            ((1000, 1000), (150, 150)),
            ((1200, 900), (150, 150)),
            ((1920, 1080), (150, 150)),
            ((900, 1600), (150, 150)),
            ((1200, 800), (600, 400)),
            ((100, 80), (300, 300)),
        ],
    )
    def test_output_is_exactly_target_size(
        self, source_size: tuple[int, int], target: tuple[int, int]
    ) -> None:
        """Any aspect ratio yields exactly the target dimensions."""
        # Given: A source image of arbitrary aspect ratio
        image = Image.new("RGB", source_size, (10, 20, 30))

        # When: Rendering a JPEG variant
        rendered = imaging.render_variant(image, *target, ImageFormat.JPEG, 85)

        # Then: Reported and encoded sizes match the target
        assert (rendered.width, rendered.height) == target
        assert open_image(rendered.data).size == target

    def test_crop_is_centered(self) -> None:
        """Center crop drops equal margins from both long-axis sides."""
        # Given: 300x100 image, left third red, middle green, right third blue
        image = Image.new("RGB", (300, 100), (255, 0, 0))
        image.paste((0, 255, 0), (100, 0, 200, 100))
        image.paste((0, 0, 255), (200, 0, 300, 100))

        # When: Rendering a square PNG
        rendered = imaging.render_variant(image, 50, 50, ImageFormat.PNG, 85)

        # Then: The surviving region is the green middle
        center = open_image(rendered.data).convert("RGB").getpixel((25, 25))
        assert center == (0, 255, 0)

    def test_transparent_png_flattens_onto_white_for_jpeg(self) -> None:
        """Alpha is composited on white when the output has no alpha channel."""
        # Given: Fully transparent RGBA
        image = Image.new("RGBA", (20, 20), (0, 0, 0, 0))

        # When: Rendering a JPEG variant
        rendered = imaging.render_variant(image, 10, 10, ImageFormat.JPEG, 95)

        # Then: Pixels are white (allowing JPEG rounding)
        decoded = open_image(rendered.data)
        assert decoded.mode == "RGB"
        assert all(channel >= 250 for channel in decoded.getpixel((5, 5)))


class TestRenderFullResolution:
    """Tests for full-size alternate encodings."""

    def test_webp_keeps_dimensions(self) -> None:
        image = Image.new("RGB", (1200, 800), (1, 2, 3))
        rendered = imaging.render_full_resolution(image, ImageFormat.WEBP, 80)

        decoded = open_image(rendered.data)
        assert decoded.format == "WEBP"
        assert decoded.size == (1200, 800)
        assert (rendered.width, rendered.height) == (1200, 800)

    def test_palette_image_encodes_as_webp(self) -> None:
        """Palette sources are converted to a mode WEBP accepts."""
        image = Image.new("P", (16, 16))
        rendered = imaging.render_full_resolution(image, ImageFormat.WEBP, 80)
        assert open_image(rendered.data).size == (16, 16)

"""Tests for image preprocessing: decoding, scaling, dithering and bit packing."""

from io import BytesIO

import pytest
from PIL import Image

from errors import ImageDecodeFailure, UnsupportedDimensions
from imaging import MonoBitmap, floyd_steinberg, preprocess_image, target_size
from print_tasks import Resampling, ScalingMode


def _png_bytes(img: Image.Image) -> bytes:
    buf = BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def _dots(bitmap: MonoBitmap) -> int:
    return sum(bin(b).count("1") for b in bitmap.data)


def _gradient(width: int = 64, height: int = 32) -> Image.Image:
    img = Image.new("L", (width, height))
    img.putdata([(x * 255) // (width - 1) for _ in range(height) for x in range(width)])
    return img


class TestMonoBitmap:
    """Tests for MonoBitmap packing and invariants."""

    def test_from_pixels_packs_msb_first_with_zero_padding(self):
        bitmap = MonoBitmap.from_pixels(10, 1, [True] * 10)
        assert bitmap.stride == 2
        assert bitmap.data == b"\xff\xc0"

    def test_single_pixel_positions(self):
        pixels = [False] * 16
        pixels[0] = True
        pixels[9] = True
        bitmap = MonoBitmap.from_pixels(16, 1, pixels)
        assert bitmap.data == b"\x80\x40"
        assert bitmap.get_pixel(0, 0) is True
        assert bitmap.get_pixel(1, 0) is False
        assert bitmap.get_pixel(9, 0) is True

    def test_rejects_set_padding_bits(self):
        with pytest.raises(ValueError):
            MonoBitmap(10, 1, b"\xff\xff")

    def test_rejects_wrong_data_length(self):
        with pytest.raises(ValueError):
            MonoBitmap(8, 2, b"\x00")

    def test_rejects_empty_bitmap(self):
        with pytest.raises(UnsupportedDimensions):
            MonoBitmap(0, 1, b"")

    def test_get_pixel_out_of_bounds(self):
        bitmap = MonoBitmap.from_pixels(8, 1, [False] * 8)
        with pytest.raises(IndexError):
            bitmap.get_pixel(8, 0)

    def test_rows_split_by_stride(self):
        bitmap = MonoBitmap.from_pixels(9, 2, [True] * 9 + [False] * 9)
        assert list(bitmap.rows()) == [b"\xff\x80", b"\x00\x00"]

    def test_to_image_keeps_dots_black(self):
        bitmap = MonoBitmap.from_pixels(9, 1, [True] + [False] * 8)
        img = bitmap.to_image()
        assert img.size == (9, 1)
        assert img.getpixel((0, 0)) == 0
        assert img.getpixel((1, 0)) == 255


class TestFloydSteinberg:
    """Tests for the error diffusion kernel."""

    def test_pure_black_sets_every_dot(self):
        plane = bytearray([0] * 16)
        assert floyd_steinberg(plane, 16, 1) == [True] * 16

    def test_pure_white_sets_nothing(self):
        plane = bytearray([255] * 12)
        assert floyd_steinberg(plane, 4, 3) == [False] * 12

    def test_error_diffuses_to_the_right(self):
        # 100 -> black, error 100, 7/16 of it (44) lifts the neighbour to 144
        plane = bytearray([100, 100])
        assert floyd_steinberg(plane, 2, 1) == [True, False]
        assert plane[1] == 144

    def test_mid_gray_row_alternates(self):
        plane = bytearray([128] * 4)
        assert floyd_steinberg(plane, 4, 1) == [False, True, False, True]

    def test_error_reaches_next_row(self):
        # Black pixel with error 100: below gets 31, below-right 6
        plane = bytearray([100, 255, 255, 0, 0, 0])
        floyd_steinberg(plane, 3, 2)
        assert plane[3] == 31
        # 6 from above-left plus 7/16 of the error 31 from the left neighbour
        assert plane[4] == 20

    def test_accumulated_intensity_is_clamped(self):
        plane = bytearray([100, 250])
        floyd_steinberg(plane, 2, 1)
        assert plane[1] == 255


class TestTargetSize:
    """Tests for output size computation."""

    def test_fit_width_preserves_aspect(self):
        assert target_size((100, 50), 30, ScalingMode.FIT_WIDTH) == (30, 15)

    def test_fit_width_rounds_to_nearest(self):
        assert target_size((3, 1), 2, ScalingMode.FIT_WIDTH) == (2, 1)
        assert target_size((4, 3), 6, ScalingMode.FIT_WIDTH) == (6, 5)  # 4.5 rounds up

    def test_fit_width_height_at_least_one(self):
        assert target_size((100, 1), 1, ScalingMode.FIT_WIDTH) == (1, 1)

    def test_stretch_keeps_source_height(self):
        assert target_size((100, 50), 30, ScalingMode.STRETCH) == (30, 50)


class TestPreprocessImage:
    """Tests for the full decode -> resize -> dither pipeline."""

    def test_all_black_row_is_fully_set(self):
        img = Image.new("L", (16, 1), 0)
        bitmap = preprocess_image(_png_bytes(img), width=16, max_width=384)
        assert (bitmap.width, bitmap.height) == (16, 1)
        assert bitmap.data == b"\xff\xff"

    def test_dithering_is_deterministic(self):
        data = _png_bytes(_gradient())
        first = preprocess_image(data, width=48, max_width=384)
        second = preprocess_image(data, width=48, max_width=384)
        assert first == second

    @pytest.mark.parametrize("resampling", list(Resampling))
    def test_resampling_modes_produce_target_width(self, resampling):
        bitmap = preprocess_image(
            _gradient(), width=40, max_width=384, resampling=resampling
        )
        assert bitmap.width == 40
        assert bitmap.height == 20

    def test_stretch_mode(self):
        bitmap = preprocess_image(
            _gradient(64, 32), width=16, max_width=384, scaling=ScalingMode.STRETCH
        )
        assert (bitmap.width, bitmap.height) == (16, 32)

    def test_accepts_file_path(self, tmp_path):
        path = tmp_path / "black.png"
        Image.new("RGB", (8, 8), (0, 0, 0)).save(path)
        bitmap = preprocess_image(path, width=8, max_width=384)
        assert bitmap.data == b"\xff" * 8

    def test_transparent_pixels_print_as_paper(self):
        img = Image.new("RGBA", (8, 4), (0, 0, 0, 0))
        bitmap = preprocess_image(img, width=8, max_width=384)
        assert bitmap.data == b"\x00" * 4

    def test_width_above_maximum_is_rejected(self):
        with pytest.raises(UnsupportedDimensions):
            preprocess_image(_gradient(), width=385, max_width=384)

    def test_zero_width_is_rejected(self):
        with pytest.raises(UnsupportedDimensions):
            preprocess_image(_gradient(), width=0, max_width=384)

    def test_malformed_data_raises_decode_failure(self):
        with pytest.raises(ImageDecodeFailure):
            preprocess_image(b"definitely not an image", width=16, max_width=384)

    def test_truncated_png_raises_decode_failure(self):
        data = _png_bytes(_gradient())
        with pytest.raises(ImageDecodeFailure):
            preprocess_image(data[: len(data) // 2], width=16, max_width=384)

    def test_missing_file_raises_decode_failure(self, tmp_path):
        with pytest.raises(ImageDecodeFailure):
            preprocess_image(tmp_path / "missing.png", width=16, max_width=384)

    def test_rotate_landscape(self):
        bitmap = preprocess_image(
            Image.new("L", (40, 20), 0), width=20, max_width=384, rotate_landscape=True
        )
        assert (bitmap.width, bitmap.height) == (20, 40)

    def test_enhancement_changes_output(self):
        img = Image.new("L", (16, 4), 140)
        plain = preprocess_image(img, width=16, max_width=384)
        darker = preprocess_image(img, width=16, max_width=384, brightness=0.3)
        assert darker != plain
        assert _dots(darker) > _dots(plain)

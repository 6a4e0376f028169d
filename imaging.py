"""Image preprocessing: decode, scale and dither images into 1-bit bitmaps.

Pipeline for one image element:

1. Decode with Pillow and reduce to an 8-bit grayscale plane. Transparent
   pixels are composited over white first so they print as bare paper.
2. Resize to the target dot width. ``fit-width`` keeps the aspect ratio,
   ``stretch`` keeps the source height. The resampling filter is fixed per
   run (nearest or bilinear) because it changes the dithered bits.
3. Optional contrast/brightness/sharpness adjustments.
4. Floyd-Steinberg error diffusion, row-major, threshold 128.
5. Pack into :class:`MonoBitmap` rows, MSB first, 1 = black dot.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Iterable, Sequence

from PIL import Image, ImageEnhance

from errors import ImageDecodeFailure, UnsupportedDimensions
from print_tasks import ImageSource, Resampling, ScalingMode

logger = logging.getLogger(__name__)

THRESHOLD = 128

# (dx, dy, weight/16) for the Floyd-Steinberg kernel
_DIFFUSION = ((1, 0, 7), (-1, 1, 3), (0, 1, 5), (1, 1, 1))


@dataclass(frozen=True)
class MonoBitmap:
    """Packed 1-bit image. Set bits are printed dots; padding bits are zero."""

    width: int
    height: int
    data: bytes

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise UnsupportedDimensions(
                f"Bitmap must be at least 1x1 dots, got {self.width}x{self.height}"
            )
        if len(self.data) != self.stride * self.height:
            raise ValueError(
                f"Bitmap data is {len(self.data)} bytes, expected {self.stride * self.height}"
            )
        pad_bits = self.stride * 8 - self.width
        if pad_bits:
            mask = (1 << pad_bits) - 1
            for row_end in range(self.stride - 1, len(self.data), self.stride):
                if self.data[row_end] & mask:
                    raise ValueError("Bitmap padding bits must be zero")

    @property
    def stride(self) -> int:
        """Bytes per row."""
        return (self.width + 7) // 8

    def get_pixel(self, x: int, y: int) -> bool:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"Pixel ({x}, {y}) outside {self.width}x{self.height} bitmap")
        byte = self.data[y * self.stride + x // 8]
        return bool(byte & (0x80 >> (x % 8)))

    def rows(self) -> Iterable[bytes]:
        for y in range(self.height):
            yield self.data[y * self.stride:(y + 1) * self.stride]

    @classmethod
    def from_pixels(cls, width: int, height: int, pixels: Sequence[bool]) -> "MonoBitmap":
        """Pack a row-major sequence of black flags (``width * height`` long)."""
        if len(pixels) != width * height:
            raise ValueError(f"Expected {width * height} pixels, got {len(pixels)}")
        stride = (width + 7) // 8
        data = bytearray(stride * height)
        for y in range(height):
            row = y * width
            out = y * stride
            for x in range(width):
                if pixels[row + x]:
                    data[out + x // 8] |= 0x80 >> (x % 8)
        return cls(width, height, bytes(data))

    def to_image(self) -> Image.Image:
        """Render as a Pillow mode "1" image (black dots on white) for previews."""
        # "1;I" is the inverted raw mode: set bits decode as black
        img = Image.frombytes("1", (self.stride * 8, self.height), self.data, "raw", "1;I")
        return img.crop((0, 0, self.width, self.height))


def decode_grayscale(source: ImageSource) -> Image.Image:
    """Open an image source and return it as a mode "L" Pillow image."""
    try:
        if isinstance(source, Image.Image):
            img = source
        elif isinstance(source, (bytes, bytearray)):
            img = Image.open(BytesIO(source))
        else:
            img = Image.open(Path(source))
        # Pillow decodes lazily; force it so corrupt data fails here
        img.load()
    except (OSError, SyntaxError, ValueError, Image.DecompressionBombError) as e:
        raise ImageDecodeFailure(f"Cannot decode image: {e}") from e

    if img.width == 0 or img.height == 0:
        raise ImageDecodeFailure("Image has no pixels")

    if img.mode in ("RGBA", "LA", "PA") or (img.mode == "P" and "transparency" in img.info):
        rgba = img.convert("RGBA")
        background = Image.new("RGBA", rgba.size, (255, 255, 255, 255))
        img = Image.alpha_composite(background, rgba)

    return img.convert("L")


def target_size(
    source_size: tuple[int, int], width: int, scaling: ScalingMode
) -> tuple[int, int]:
    """Compute output size for a target dot width."""
    src_w, src_h = source_size
    if scaling is ScalingMode.STRETCH:
        return width, src_h
    height = int(src_h * width / src_w + 0.5)
    return width, max(1, height)


def floyd_steinberg(plane: bytearray, width: int, height: int) -> list[bool]:
    """Dither an 8-bit grayscale plane in place.

    Returns row-major black flags. Each diffused share is rounded to the
    nearest integer (halves away from zero) and the receiving pixel is
    clamped to 0..255 before it is thresholded.
    """
    black = [False] * (width * height)
    for y in range(height):
        row = y * width
        for x in range(width):
            old = plane[row + x]
            if old >= THRESHOLD:
                error = old - 255
            else:
                error = old
                black[row + x] = True
            if not error:
                continue
            for dx, dy, weight in _DIFFUSION:
                nx, ny = x + dx, y + dy
                if nx < 0 or nx >= width or ny >= height:
                    continue
                share = abs(error) * weight
                share = (share + 8) // 16
                if error < 0:
                    share = -share
                idx = ny * width + nx
                plane[idx] = min(255, max(0, plane[idx] + share))
    return black


def _enhance(img: Image.Image, contrast: float, brightness: float, sharpness: float) -> Image.Image:
    if contrast != 1.0:
        img = ImageEnhance.Contrast(img).enhance(contrast)
    if sharpness != 1.0:
        img = ImageEnhance.Sharpness(img).enhance(sharpness)
    if brightness != 1.0:
        img = ImageEnhance.Brightness(img).enhance(brightness)
    return img


def preprocess_image(
    source: ImageSource,
    width: int,
    max_width: int,
    scaling: ScalingMode = ScalingMode.FIT_WIDTH,
    resampling: Resampling = Resampling.BILINEAR,
    contrast: float = 1.0,
    brightness: float = 1.0,
    sharpness: float = 1.0,
    rotate_landscape: bool = False,
) -> MonoBitmap:
    """Turn an image source into a dithered :class:`MonoBitmap` ``width`` dots wide."""
    if width <= 0:
        raise UnsupportedDimensions(f"Target width must be positive, got {width}")
    if width > max_width:
        raise UnsupportedDimensions(
            f"Target width {width} exceeds printer maximum of {max_width} dots"
        )

    img = decode_grayscale(source)

    if rotate_landscape and img.width > img.height:
        # PIL rotates counter-clockwise, so -90 is clockwise
        img = img.rotate(-90, expand=True)

    size = target_size(img.size, width, scaling)
    if size != img.size:
        img = img.resize(size, resampling.pil_filter)

    img = _enhance(img, contrast, brightness, sharpness)

    plane = bytearray(img.tobytes())
    black = floyd_steinberg(plane, img.width, img.height)
    bitmap = MonoBitmap.from_pixels(img.width, img.height, black)
    logger.debug(
        "Dithered image to %dx%d dots (%s, %s)",
        bitmap.width,
        bitmap.height,
        scaling.value,
        resampling.value,
    )
    return bitmap

"""Raster bit-image encoding (``GS v 0``)."""

from __future__ import annotations

import struct

from escpos.constants import GS

from errors import UnsupportedDimensions
from imaging import MonoBitmap

# GS v 0 m, with m = 0 (normal density)
RASTER_PREFIX = GS + b"v0" + b"\x00"

_MAX_PARAM = 0xFFFF


def _header(stride: int, height: int) -> bytes:
    if stride > _MAX_PARAM or height > _MAX_PARAM:
        raise UnsupportedDimensions(
            f"Raster of {stride} bytes x {height} rows exceeds the 16-bit command fields"
        )
    return struct.pack("<HH", stride, height)


def encode_raster(bitmap: MonoBitmap) -> bytes:
    """Encode a bitmap as one raster command.

    Output is ``GS v 0 m xL xH yL yH`` followed by the packed rows top to
    bottom, so its length is ``len(RASTER_PREFIX) + 4 + stride * height``.
    """
    return RASTER_PREFIX + _header(bitmap.stride, bitmap.height) + bitmap.data


def encode_raster_bands(bitmap: MonoBitmap, band_height: int) -> bytes:
    """Encode a bitmap as consecutive raster commands of at most ``band_height`` rows.

    Some firmwares drop data when one raster command overflows their receive
    buffer. A ``band_height`` of 0 (or one covering the whole bitmap) is the
    same as :func:`encode_raster`.
    """
    if band_height < 0:
        raise ValueError("band_height must not be negative")
    if band_height == 0 or band_height >= bitmap.height:
        return encode_raster(bitmap)

    out = bytearray()
    stride = bitmap.stride
    for top in range(0, bitmap.height, band_height):
        rows = min(band_height, bitmap.height - top)
        out += RASTER_PREFIX
        out += _header(stride, rows)
        out += bitmap.data[top * stride:(top + rows) * stride]
    return bytes(out)

"""QR code generation and ESC/POS emission.

Symbols are built with the ``qrcode`` library in 8-bit byte mode. The
smallest version whose capacity holds the payload at the requested error
correction level is used, and the mask is the one with the lowest penalty
score under the four standard penalty rules (ties go to the lowest mask
index).

Two emission paths exist and the caller picks one explicitly:

* native: ``GS ( k`` function 165/167/169/180/181 sequence, the printer
  renders the symbol itself;
* raster: the module matrix is scaled into a :class:`MonoBitmap` and sent as
  a ``GS v 0`` bit image.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass

import qrcode
from escpos.constants import GS
from qrcode import constants, exceptions, util

from errors import QrEncodingFailure, UnsupportedDimensions
from imaging import MonoBitmap
from print_tasks import ErrorCorrection
from raster import encode_raster_bands

logger = logging.getLogger(__name__)

MIN_VERSION = 1
MAX_VERSION = 40
MIN_MODULE_SIZE = 1
MAX_MODULE_SIZE = 16

_QR_LEVELS = {
    ErrorCorrection.LOW: constants.ERROR_CORRECT_L,
    ErrorCorrection.MEDIUM: constants.ERROR_CORRECT_M,
    ErrorCorrection.QUARTILE: constants.ERROR_CORRECT_Q,
    ErrorCorrection.HIGH: constants.ERROR_CORRECT_H,
}

# GS ( k <pL pH> cn fn [params]; cn = 49 selects QR
_FN = GS + b"(k"
_NATIVE_LEVELS = {
    ErrorCorrection.LOW: 48,
    ErrorCorrection.MEDIUM: 49,
    ErrorCorrection.QUARTILE: 50,
    ErrorCorrection.HIGH: 51,
}
QR_SELECT_MODEL_2 = _FN + b"\x04\x00" + b"1A" + b"2\x00"
QR_PRINT = _FN + b"\x03\x00" + b"1Q0"


@dataclass(frozen=True)
class QrMatrix:
    """Square module grid; ``True`` modules are dark."""

    version: int
    error_correction: ErrorCorrection
    mask: int
    modules: tuple[tuple[bool, ...], ...]

    @property
    def size(self) -> int:
        return len(self.modules)


def byte_capacity(version: int, error_correction: ErrorCorrection) -> int:
    """Largest byte-mode payload that fits ``version`` at ``error_correction``."""
    bits = util.BIT_LIMIT_TABLE[_QR_LEVELS[error_correction]][version]
    overhead = 4 + util.length_in_bits(util.MODE_8BIT_BYTE, version)
    return (bits - overhead) // 8


def make_matrix(
    payload: bytes,
    error_correction: ErrorCorrection = ErrorCorrection.MEDIUM,
    max_version: int = MAX_VERSION,
) -> QrMatrix:
    """Encode ``payload`` into the smallest QR symbol up to ``max_version``."""
    if not MIN_VERSION <= max_version <= MAX_VERSION:
        raise ValueError(f"QR max version must be {MIN_VERSION}-{MAX_VERSION}, got {max_version}")

    limit = byte_capacity(max_version, error_correction)
    if len(payload) > limit:
        raise QrEncodingFailure(
            f"Payload of {len(payload)} bytes exceeds QR capacity of {limit} bytes "
            f"(version {max_version}, level {error_correction.value})"
        )

    qr = qrcode.QRCode(error_correction=_QR_LEVELS[error_correction], box_size=1, border=0)
    qr.add_data(util.QRData(payload, mode=util.MODE_8BIT_BYTE))
    try:
        qr.best_fit()
    except exceptions.DataOverflowError as e:
        raise QrEncodingFailure(f"Payload of {len(payload)} bytes does not fit any QR version") from e
    if qr.version > max_version:
        raise QrEncodingFailure(
            f"Payload needs QR version {qr.version}, above the supported maximum {max_version}"
        )

    mask = qr.best_mask_pattern()
    qr.mask_pattern = mask
    qr.make(fit=False)

    modules = tuple(tuple(bool(m) for m in row) for row in qr.modules)
    logger.debug(
        "QR symbol: %d bytes, version %d, level %s, mask %d",
        len(payload),
        qr.version,
        error_correction.value,
        mask,
    )
    return QrMatrix(qr.version, error_correction, mask, modules)


def render_bitmap(matrix: QrMatrix, module_size: int, border: int = 4) -> MonoBitmap:
    """Scale the matrix into a bitmap, one ``module_size`` square per module."""
    _check_module_size(module_size)
    if border < 0:
        raise ValueError("QR border must not be negative")

    side = (matrix.size + 2 * border) * module_size
    pixels = [False] * (side * side)
    offset = border * module_size
    for my, row in enumerate(matrix.modules):
        for mx, dark in enumerate(row):
            if not dark:
                continue
            top = offset + my * module_size
            left = offset + mx * module_size
            for y in range(top, top + module_size):
                start = y * side + left
                pixels[start:start + module_size] = [True] * module_size
    return MonoBitmap.from_pixels(side, side, pixels)


def native_commands(payload: bytes, error_correction: ErrorCorrection, module_size: int) -> bytes:
    """Native QR sequence: model, module size, level, store data, print."""
    _check_module_size(module_size)
    store_len = len(payload) + 3
    if store_len > 0xFFFF:
        raise QrEncodingFailure(f"Payload of {len(payload)} bytes is too long for the QR store command")
    return b"".join(
        (
            QR_SELECT_MODEL_2,
            _FN + b"\x03\x00" + b"1C" + bytes((module_size,)),
            _FN + b"\x03\x00" + b"1E" + bytes((_NATIVE_LEVELS[error_correction],)),
            _FN + struct.pack("<H", store_len) + b"1P0" + payload,
            QR_PRINT,
        )
    )


def encode_qr(
    payload: bytes,
    error_correction: ErrorCorrection,
    *,
    native: bool,
    module_size: int,
    max_width: int,
    border: int = 4,
    max_version: int = MAX_VERSION,
    band_height: int = 0,
) -> bytes:
    """Validate and encode one QR code through the selected emission path."""
    matrix = make_matrix(payload, error_correction, max_version)
    if native:
        return native_commands(payload, error_correction, module_size)

    bitmap = render_bitmap(matrix, module_size, border)
    if bitmap.width > max_width:
        raise UnsupportedDimensions(
            f"QR symbol renders {bitmap.width} dots wide, printer maximum is {max_width}"
        )
    return encode_raster_bands(bitmap, band_height)


def _check_module_size(module_size: int) -> None:
    if not MIN_MODULE_SIZE <= module_size <= MAX_MODULE_SIZE:
        raise ValueError(
            f"QR module size must be {MIN_MODULE_SIZE}-{MAX_MODULE_SIZE}, got {module_size}"
        )

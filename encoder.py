"""Command stream builder: turns a PrintJob into one ESC/POS byte buffer."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from escpos.constants import CODEPAGE_CHANGE, ESC, HW_INIT, PAPER_FULL_CUT, PAPER_PART_CUT

import config
from errors import PrintError
from imaging import MonoBitmap, preprocess_image
from justification import JustificationTracker
from print_tasks import (
    CutMode,
    ErrorCorrection,
    ImageElement,
    PrintJob,
    QrCode,
    Resampling,
    ScalingMode,
    SetJustification,
    TextRun,
)
from qr_symbols import MAX_MODULE_SIZE, MAX_VERSION, MIN_MODULE_SIZE, MIN_VERSION, encode_qr
from raster import encode_raster_bands

logger = logging.getLogger(__name__)

FEED_LINES = ESC + b"d"


@dataclass(frozen=True)
class EncoderOptions:
    """Everything the builder needs besides the job itself."""

    max_dot_width: int = 384
    codepage: str = "cp437"
    codepage_id: int | None = None
    initialize: bool = False
    scaling: ScalingMode = ScalingMode.FIT_WIDTH
    resampling: Resampling = Resampling.BILINEAR
    contrast: float = 1.0
    brightness: float = 1.0
    sharpness: float = 1.0
    rotate_landscape: bool = False
    raster_band_height: int = 0
    qr_error_correction: ErrorCorrection = ErrorCorrection.MEDIUM
    qr_module_size: int = 6
    qr_native: bool = False
    qr_max_version: int = MAX_VERSION
    qr_border: int = 4
    feed_lines: int = 3
    cut: CutMode = CutMode.PARTIAL

    def __post_init__(self) -> None:
        if self.max_dot_width <= 0:
            raise ValueError(f"max_dot_width must be positive, got {self.max_dot_width}")
        if not MIN_MODULE_SIZE <= self.qr_module_size <= MAX_MODULE_SIZE:
            raise ValueError(
                f"qr_module_size must be {MIN_MODULE_SIZE}-{MAX_MODULE_SIZE}, got {self.qr_module_size}"
            )
        if not MIN_VERSION <= self.qr_max_version <= MAX_VERSION:
            raise ValueError(
                f"qr_max_version must be {MIN_VERSION}-{MAX_VERSION}, got {self.qr_max_version}"
            )
        if self.qr_border < 0:
            raise ValueError("qr_border must not be negative")
        if self.raster_band_height < 0:
            raise ValueError("raster_band_height must not be negative")
        if not 0 <= self.feed_lines <= 255:
            raise ValueError(f"feed_lines must be 0-255, got {self.feed_lines}")
        if self.codepage_id is not None and not 0 <= self.codepage_id <= 255:
            raise ValueError(f"codepage_id must be 0-255, got {self.codepage_id}")
        # Fail on unknown codecs now rather than halfway through a job
        "".encode(self.codepage)

    @classmethod
    def from_config(cls, **overrides) -> "EncoderOptions":
        """Build options from the config module; keyword overrides win."""
        values = dict(
            max_dot_width=config.MAX_DOT_WIDTH,
            codepage=config.CODEPAGE,
            codepage_id=config.CODEPAGE_ID,
            initialize=config.PRINTER_INITIALIZE,
            scaling=ScalingMode(config.IMAGE_SCALING),
            resampling=Resampling(config.IMAGE_RESAMPLING),
            contrast=config.IMAGE_CONTRAST,
            brightness=config.IMAGE_BRIGHTNESS,
            sharpness=config.IMAGE_SHARPNESS,
            rotate_landscape=config.IMAGE_ROTATE_LANDSCAPE,
            raster_band_height=config.RASTER_BAND_HEIGHT,
            qr_error_correction=ErrorCorrection.parse(config.QR_ERROR_CORRECTION),
            qr_module_size=config.QR_MODULE_SIZE,
            qr_native=config.QR_NATIVE,
            qr_max_version=config.QR_MAX_VERSION,
            qr_border=config.QR_BORDER,
            feed_lines=config.FEED_LINES,
            cut=CutMode(config.CUT_MODE),
        )
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


def preamble(options: EncoderOptions) -> bytes:
    out = b""
    if options.initialize:
        out += HW_INIT
    if options.codepage_id is not None:
        out += CODEPAGE_CHANGE + bytes((options.codepage_id,))
    return out


def trailer(options: EncoderOptions) -> bytes:
    out = b""
    if options.feed_lines:
        out += FEED_LINES + bytes((options.feed_lines,))
    if options.cut is CutMode.PARTIAL:
        out += PAPER_PART_CUT
    elif options.cut is CutMode.FULL:
        out += PAPER_FULL_CUT
    return out


def image_bitmap(element: ImageElement, options: EncoderOptions) -> MonoBitmap:
    """Dither an image element to the width and mode it asks for."""
    return preprocess_image(
        element.source,
        width=element.width if element.width is not None else options.max_dot_width,
        max_width=options.max_dot_width,
        scaling=element.scaling or options.scaling,
        resampling=options.resampling,
        contrast=options.contrast,
        brightness=options.brightness,
        sharpness=options.sharpness,
        rotate_landscape=options.rotate_landscape,
    )


def encode_image(
    element: ImageElement, options: EncoderOptions, bitmaps: list[MonoBitmap] | None = None
) -> bytes:
    bitmap = image_bitmap(element, options)
    if bitmaps is not None:
        bitmaps.append(bitmap)
    return encode_raster_bands(bitmap, options.raster_band_height)


def encode_qr_element(element: QrCode, options: EncoderOptions) -> bytes:
    return encode_qr(
        element.data,
        element.error_correction or options.qr_error_correction,
        native=options.qr_native,
        module_size=options.qr_module_size,
        max_width=options.max_dot_width,
        border=options.qr_border,
        max_version=options.qr_max_version,
        band_height=options.raster_band_height,
    )


def build_command_stream(
    job: PrintJob,
    options: EncoderOptions | None = None,
    bitmaps: list[MonoBitmap] | None = None,
) -> bytearray:
    """Encode every element of ``job`` in order and return the finished buffer.

    The first failing element aborts the build; the partial buffer is dropped
    and the error is re-raised with its ``element_index`` set. When
    ``bitmaps`` is given, the dithered bitmap of each image element is
    appended to it in job order.
    """
    if options is None:
        options = EncoderOptions.from_config()

    tracker = JustificationTracker()
    buffer = bytearray(preamble(options))

    for index, element in enumerate(job):
        try:
            if isinstance(element, SetJustification):
                buffer += tracker.select(element.justification)
            elif isinstance(element, TextRun):
                buffer += tracker.sync()
                buffer += element.text.encode(options.codepage, errors="replace")
            elif isinstance(element, ImageElement):
                buffer += tracker.sync()
                buffer += encode_image(element, options, bitmaps)
            elif isinstance(element, QrCode):
                buffer += tracker.sync()
                buffer += encode_qr_element(element, options)
            else:
                raise ValueError(f"Unknown print element type: {type(element)}")
        except PrintError as e:
            e.element_index = index
            logger.error("Encoding failed at element %d: %s", index, e.message)
            raise

    buffer += trailer(options)
    logger.debug("Encoded %d elements into %d bytes", len(job), len(buffer))
    return buffer

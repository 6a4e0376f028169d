"""Error taxonomy for building and sending ESC/POS print jobs.

Every failure raised while encoding a job derives from :class:`PrintError`.
The ``stage`` attribute names the part of the pipeline that failed, and the
command stream builder fills in ``element_index`` so callers can tell which
job element was rejected.
"""

from __future__ import annotations


class PrintError(Exception):
    """Base class for all print pipeline failures."""

    stage = "job"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message
        self.element_index: int | None = None

    def __str__(self) -> str:
        if self.element_index is None:
            return f"{self.stage}: {self.message}"
        return f"{self.stage} (element {self.element_index}): {self.message}"


class ImageDecodeFailure(PrintError):
    """Image data is malformed or in an unsupported format."""

    stage = "image"


class UnsupportedDimensions(PrintError):
    """Requested width exceeds the device or resolves to zero."""

    stage = "image"


class QrEncodingFailure(PrintError):
    """Payload does not fit any supported QR version at the requested level."""

    stage = "qr"


class TransportWriteFailure(PrintError):
    """The printer device could not be opened or written."""

    stage = "transport"

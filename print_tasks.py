"""Print job model: an ordered sequence of elements for the command stream builder.

A job is a closed set of four element kinds. The builder dispatches on the
element type, so adding a kind means touching ``encoder.build_command_stream``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from pathlib import Path
from typing import Iterator, Sequence, Union

from PIL import Image


class Justification(IntEnum):
    """Alignment values; the integer is the ``ESC a n`` parameter."""

    LEFT = 0
    CENTER = 1
    RIGHT = 2

    @classmethod
    def parse(cls, value: str) -> "Justification":
        try:
            return cls[value.strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown justification: {value!r}") from None


class ScalingMode(str, Enum):
    STRETCH = "stretch"
    FIT_WIDTH = "fit-width"


class Resampling(str, Enum):
    NEAREST = "nearest"
    BILINEAR = "bilinear"

    @property
    def pil_filter(self) -> Image.Resampling:
        if self is Resampling.NEAREST:
            return Image.Resampling.NEAREST
        return Image.Resampling.BILINEAR


class ErrorCorrection(str, Enum):
    """QR error correction levels (Low/Medium/Quartile/High)."""

    LOW = "L"
    MEDIUM = "M"
    QUARTILE = "Q"
    HIGH = "H"

    @classmethod
    def parse(cls, value: str) -> "ErrorCorrection":
        raw = value.strip().upper()
        for level in cls:
            if raw in (level.value, level.name):
                return level
        raise ValueError(f"Unknown QR error correction level: {value!r}")


class CutMode(str, Enum):
    PARTIAL = "partial"
    FULL = "full"
    NONE = "none"


ImageSource = Union[bytes, str, Path, Image.Image]


@dataclass(frozen=True)
class TextRun:
    """Text printed with the currently active justification."""

    text: str


@dataclass(frozen=True)
class ImageElement:
    """Raster image; ``width`` defaults to the device maximum dot width."""

    source: ImageSource
    width: int | None = None
    scaling: ScalingMode | None = None


@dataclass(frozen=True)
class QrCode:
    payload: bytes | str
    error_correction: ErrorCorrection | None = None

    @property
    def data(self) -> bytes:
        if isinstance(self.payload, str):
            return self.payload.encode("utf-8")
        return bytes(self.payload)


@dataclass(frozen=True)
class SetJustification:
    justification: Justification


PrintElement = Union[TextRun, ImageElement, QrCode, SetJustification]


@dataclass(frozen=True)
class PrintJob:
    """Immutable, ordered list of print elements."""

    elements: tuple[PrintElement, ...] = field(default_factory=tuple)

    @classmethod
    def of(cls, elements: Sequence[PrintElement]) -> "PrintJob":
        return cls(tuple(elements))

    def __iter__(self) -> Iterator[PrintElement]:
        return iter(self.elements)

    def __len__(self) -> int:
        return len(self.elements)

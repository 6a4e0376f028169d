"""Configuration module - loads settings from the environment and an optional .env file."""

import logging
import os

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Load .env before reading any variables; a missing file just means defaults
if not load_dotenv():
    logger.debug(".env file not found, using environment and defaults")


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """Parse string to bool; fall back to default for missing values."""
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("true", "1", "yes", "on")


def _parse_int(key: str, default: int) -> int:
    """Read an integer env var; log warning and raise if it is not a number."""
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        logger.warning("Invalid integer for %s in environment: %r", key, raw)
        raise ValueError(f"Environment variable {key} must be an integer") from None


def _parse_optional_int(key: str) -> int | None:
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return None
    return _parse_int(key, 0)


# Printer device: a device node, a \\HOST\Share path, tcp://host[:port] or serial:<device>
PRINTER_DEVICE: str = os.getenv("PRINTER_DEVICE", "/dev/usb/lp0").strip()
MOCK_PRINTER: bool = _parse_bool(os.getenv("MOCK_PRINTER"))

NETWORK_PORT: int = _parse_int("NETWORK_PORT", 9100)
NETWORK_TIMEOUT: float = float(os.getenv("NETWORK_TIMEOUT", "60").strip())

# Serial line settings for python-escpos Serial printer
SERIAL_BAUDRATE: int = _parse_int("SERIAL_BAUDRATE", 9600)
SERIAL_BYTESIZE: int = _parse_int("SERIAL_BYTESIZE", 8)
SERIAL_PARITY: str = os.getenv("SERIAL_PARITY", "N").strip().upper()
SERIAL_STOPBITS: int = _parse_int("SERIAL_STOPBITS", 1)
SERIAL_TIMEOUT: float = float(os.getenv("SERIAL_TIMEOUT", "1.0").strip())
SERIAL_DSRDTR: bool = _parse_bool(os.getenv("SERIAL_DSRDTR"), default=True)

# Printable width in dots (384 for 58 mm heads, 576 for 80 mm)
MAX_DOT_WIDTH: int = _parse_int("MAX_DOT_WIDTH", 384)

# Text encoding; CODEPAGE_ID is the ESC t <n> table sent at job start when set
CODEPAGE: str = os.getenv("CODEPAGE", "cp437").strip()
CODEPAGE_ID: int | None = _parse_optional_int("CODEPAGE_ID")
PRINTER_INITIALIZE: bool = _parse_bool(os.getenv("PRINTER_INITIALIZE"))

# Image preprocessing
IMAGE_SCALING: str = os.getenv("IMAGE_SCALING", "fit-width").strip().lower()
IMAGE_RESAMPLING: str = os.getenv("IMAGE_RESAMPLING", "bilinear").strip().lower()
IMAGE_CONTRAST: float = float(os.getenv("IMAGE_CONTRAST", "1.0").strip())
IMAGE_BRIGHTNESS: float = float(os.getenv("IMAGE_BRIGHTNESS", "1.0").strip())
IMAGE_SHARPNESS: float = float(os.getenv("IMAGE_SHARPNESS", "1.0").strip())
IMAGE_ROTATE_LANDSCAPE: bool = _parse_bool(os.getenv("IMAGE_ROTATE_LANDSCAPE"))
# Rows per GS v 0 command; 0 sends each bitmap as one command
RASTER_BAND_HEIGHT: int = _parse_int("RASTER_BAND_HEIGHT", 0)

# QR codes
QR_ERROR_CORRECTION: str = os.getenv("QR_ERROR_CORRECTION", "M").strip().upper()
QR_MODULE_SIZE: int = _parse_int("QR_MODULE_SIZE", 6)
QR_NATIVE: bool = _parse_bool(os.getenv("QR_NATIVE"))
QR_MAX_VERSION: int = _parse_int("QR_MAX_VERSION", 40)
QR_BORDER: int = _parse_int("QR_BORDER", 4)

# Trailer
FEED_LINES: int = _parse_int("FEED_LINES", 3)
CUT_MODE: str = os.getenv("CUT_MODE", "partial").strip().lower()

LOG_FILE: str | None = os.getenv("LOG_FILE") or None
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").strip().upper()

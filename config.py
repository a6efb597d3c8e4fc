"""Configuration module - loads settings from .env file."""

import logging
import os

from dotenv import load_dotenv

# Must load .env before reading any variables; a missing file leaves the defaults.
load_dotenv()

logger = logging.getLogger(__name__)


def _parse_bool(value: str | None) -> bool:
    """Parse string to bool; default False for missing/invalid."""
    if not value:
        return False
    return value.strip().lower() in ("true", "1", "yes", "on")


def _parse_connection(value: str | None) -> str:
    """Parse PRINTER_CONNECTION; unknown values fall back to serial."""
    raw = (value or "serial").strip().lower()
    if raw not in ("serial", "file", "mock"):
        logger.warning("Unknown PRINTER_CONNECTION %r, using serial", raw)
        return "serial"
    return raw


# Printer connection: serial (UART), file (e.g. /dev/usb/lp0) or mock
PRINTER_CONNECTION: str = _parse_connection(os.getenv("PRINTER_CONNECTION"))
MOCK_PRINTER: bool = _parse_bool(os.getenv("MOCK_PRINTER", "false")) or PRINTER_CONNECTION == "mock"
PRINTER_DEVFILE: str = os.getenv("PRINTER_DEVFILE", "/dev/usb/lp0").strip()
# python-escpos capability profile; empty string means the library default
PRINTER_PROFILE: str | None = os.getenv("PRINTER_PROFILE", "").strip() or None

# Serial line settings for python-escpos Serial printer
SERIAL_PORT: str = os.getenv("SERIAL_PORT", "/dev/serial0").strip()
BAUDRATE: int = int(os.getenv("BAUDRATE", "9600").strip())
SERIAL_BYTESIZE: int = int(os.getenv("SERIAL_BYTESIZE", "8").strip())
SERIAL_PARITY: str = os.getenv("SERIAL_PARITY", "N").strip().upper()
SERIAL_STOPBITS: int = int(os.getenv("SERIAL_STOPBITS", "1").strip())
SERIAL_TIMEOUT: float = float(os.getenv("SERIAL_TIMEOUT", "1.0").strip())
SERIAL_DSRDTR: bool = _parse_bool(os.getenv("SERIAL_DSRDTR", "true"))

# Device defaults applied once after connecting
DENSITY_LEVEL: int = int(os.getenv("DENSITY_LEVEL", "9").strip())
TEXT_SMOOTH: bool = _parse_bool(os.getenv("TEXT_SMOOTH", "true"))

# Receipt rendering
PAPER_CUT_MODE: str = os.getenv("PAPER_CUT_MODE", "PART").strip().upper()
BARCODE_HEIGHT: int = int(os.getenv("BARCODE_HEIGHT", "64").strip())
BARCODE_WIDTH: int = int(os.getenv("BARCODE_WIDTH", "3").strip())
# Software-rendered QR (native=False) prints as an image; native uses GS ( k
QR_NATIVE: bool = _parse_bool(os.getenv("QR_NATIVE", "false"))
QR_IMG_IMPL: str = os.getenv("QR_IMG_IMPL", "bitImageRaster").strip()
IMAGE_IMPL: str = os.getenv("IMAGE_IMPL", "bitImageRaster").strip()
IMAGE_FRAGMENT_HEIGHT: int = int(os.getenv("IMAGE_FRAGMENT_HEIGHT", "960").strip())
# Downscale wider images to this many dots (384 for 58mm heads); 0 disables
IMAGE_MAX_WIDTH: int = int(os.getenv("IMAGE_MAX_WIDTH", "0").strip())

# Job handling
ABORT_ON_ITEM_ERROR: bool = _parse_bool(os.getenv("ABORT_ON_ITEM_ERROR", "true"))
JOB_TIMEOUT_SECONDS: float = float(os.getenv("JOB_TIMEOUT_SECONDS", "60").strip())

# HTTP server and logging
HTTP_HOST: str = os.getenv("HTTP_HOST", "0.0.0.0").strip()
HTTP_PORT: int = int(os.getenv("HTTP_PORT", "5010").strip())
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").strip().upper()
LOG_FILE: str = os.getenv("LOG_FILE", "logs/app.log").strip()

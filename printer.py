"""Receipt execution against an ESC/POS printer (python-escpos).

``ReceiptEngine`` walks a decoded command sequence once, in order, turning each
command into python-escpos calls and finishing with a paper cut. ``AsyncPrinter``
runs jobs in the event loop's executor, one at a time through a ``DeviceArbiter``.
"""

import asyncio
import logging
from typing import Any, Sequence

from escpos.capabilities import NotSupported
from escpos.exceptions import BarcodeCodeError, BarcodeSizeError, BarcodeTypeError

import config
from arbiter import DeviceArbiter, PrinterBusyError
from imaging import ImageDecodeError, render_image
from print_jobs import (
    PrintDecodeError,
    PrintDeviceError,
    PrinterBusy,
    PrintJob,
    PrintOutcome,
    PrintSuccess,
    decode_job,
)
from receipt import (
    Alignment,
    Barcode,
    BarcodeType,
    Command,
    Feed,
    Font,
    Image,
    MultiLineText,
    QRCode,
    ReceiptDecodeError,
    TextLine,
)

logger = logging.getLogger(__name__)

# Font numbers as understood by the capability profile (python-escpos get_font)
ESCPOS_FONTS = {Font.A: 0, Font.B: 1, Font.C: 2}

# ESC M n, for fonts the capability profile does not list
SELECT_FONT = b"\x1bM"

# GS ! character magnification range
MIN_TEXT_SIZE = 1
MAX_TEXT_SIZE = 8

CODE128_CODE_SETS = ("{A", "{B", "{C")

# GS ( k module size range
MIN_QR_SIZE = 1
MAX_QR_SIZE = 16


class QRSizeError(ValueError):
    """QR module size outside what the printer accepts."""


# Failures confined to one receipt item (bad payload for that item)
ITEM_ERRORS = (
    ImageDecodeError,
    QRSizeError,
    BarcodeTypeError,
    BarcodeSizeError,
    BarcodeCodeError,
)


class ReceiptItemError(RuntimeError):
    """A single receipt item could not be rendered."""

    def __init__(self, index: int, command: Command, cause: Exception) -> None:
        self.index = index
        self.command = command
        super().__init__(f"item {index} ({type(command).__name__}): {cause}")


class MockPrinter:
    """Stub printer for running without hardware; logs what would be printed."""

    def set(self, **kwargs: Any) -> None:
        logger.debug("Mock set: %s", kwargs)

    def text(self, txt: str) -> None:
        logger.info("Printed (mock): %s", txt[:50])

    def textln(self, txt: str = "") -> None:
        logger.info("Printed (mock): %s", txt[:50])

    def ln(self, count: int = 1) -> None:
        logger.info("Fed (mock): %d lines", count)

    def barcode(self, code: str, bc: str, **kwargs: Any) -> None:
        logger.info("Barcode printed (mock): %s %s", bc, code)

    def qr(self, content: str, **kwargs: Any) -> None:
        logger.info("QR printed (mock): %s", content[:50])

    def image(self, img_source: Any, **kwargs: Any) -> None:
        logger.info("Image printed (mock): mode=%s, size=%s", img_source.mode, img_source.size)

    def cut(self, mode: str = "FULL", feed: bool = True) -> None:
        logger.info("Cut (mock): %s", mode)

    def is_online(self) -> bool:
        """Return online status (python-escpos compatible)."""
        return True

    def paper_status(self) -> int:
        """Return paper status (python-escpos compatible)."""
        return 2


def open_printer() -> Any:
    """Connect to the printer described by config and apply device defaults."""

    if config.MOCK_PRINTER:
        logger.info("Using mock printer")
        return MockPrinter()

    # Import lazily so the mock backend needs no serial support
    if config.PRINTER_CONNECTION == "file":
        from escpos.printer import File

        device: Any = File(devfile=config.PRINTER_DEVFILE, profile=config.PRINTER_PROFILE)
    else:
        from escpos.printer import Serial

        device = Serial(
            devfile=config.SERIAL_PORT,
            baudrate=config.BAUDRATE,
            bytesize=config.SERIAL_BYTESIZE,
            parity=config.SERIAL_PARITY,
            stopbits=config.SERIAL_STOPBITS,
            timeout=config.SERIAL_TIMEOUT,
            dsrdtr=config.SERIAL_DSRDTR,
            profile=config.PRINTER_PROFILE,
        )

    # ESC @ (initialize)
    device.hw("INIT")
    try:
        device.set(smooth=config.TEXT_SMOOTH, density=config.DENSITY_LEVEL)
    except Exception as e:
        # Not all printers/profiles support smoothing or density
        logger.warning("Could not apply printer defaults: %s", e)
    logger.info("Printer connected (%s)", config.PRINTER_CONNECTION)
    return device


def text_size(font_size: int) -> int:
    """Clamp a requested font size to the printer's magnification range."""
    return max(MIN_TEXT_SIZE, min(MAX_TEXT_SIZE, font_size))


def font_supported(device: Any, font: int) -> bool:
    """Whether the device's capability profile knows ``font``."""
    profile = getattr(device, "profile", None)
    if profile is None:
        return True
    try:
        profile.get_font(font)
    except NotSupported:
        return False
    return True


def barcode_code(command: Barcode) -> str:
    """Code as sent to python-escpos; CODE128 needs a code set prefix."""
    if command.barcode_type is BarcodeType.CODE128 and not command.code.startswith(
        CODE128_CODE_SETS
    ):
        return "{B" + command.code
    return command.code


class ReceiptEngine:
    """Executes decoded receipt commands on a python-escpos printer."""

    def __init__(self, abort_on_item_error: bool | None = None) -> None:
        if abort_on_item_error is None:
            abort_on_item_error = config.ABORT_ON_ITEM_ERROR
        self.abort_on_item_error = abort_on_item_error

    def execute(self, device: Any, commands: Sequence[Command]) -> None:
        """Print every command in order, then cut.

        Item failures (undecodable image, QR size out of range, rejected barcode)
        raise ReceiptItemError when ``abort_on_item_error`` is set; otherwise they
        are logged and the remaining items still print. Any other exception from
        the device propagates unchanged and the paper is not cut.
        """
        for index, command in enumerate(commands):
            logger.debug("Printing item %d: %s", index, type(command).__name__)
            try:
                self._execute_command(device, command)
            except ITEM_ERRORS as e:
                error = ReceiptItemError(index, command, e)
                if self.abort_on_item_error:
                    raise error from e
                logger.error("Skipping receipt item: %s", error)

        device.cut(mode=config.PAPER_CUT_MODE)

    def _execute_command(self, device: Any, command: Command) -> None:
        if isinstance(command, TextLine):
            self._apply_text_style(device, command)
            device.textln(command.content)
        elif isinstance(command, MultiLineText):
            self._apply_text_style(device, command)
            device.text(command.content)
        elif isinstance(command, Feed):
            if command.lines:
                device.ln(command.lines)
        elif isinstance(command, Barcode):
            device.set(align=Alignment.CENTER.value)
            device.barcode(
                barcode_code(command),
                command.barcode_type.value,
                height=config.BARCODE_HEIGHT,
                width=config.BARCODE_WIDTH,
                align_ct=True,
            )
        elif isinstance(command, QRCode):
            self._print_qr(device, command)
        elif isinstance(command, Image):
            self._print_image(device, command)
        else:
            raise ValueError(f"Unknown command type: {type(command)}")

    def _apply_text_style(self, device: Any, command: TextLine | MultiLineText) -> None:
        """Set font, alignment, size and underline for one text command."""
        size = text_size(command.font_size)
        if size != command.font_size:
            logger.debug("Font size %d clamped to %d", command.font_size, size)
        style: dict[str, Any] = {
            "align": command.alignment.value,
            "custom_size": True,
            "width": size,
            "height": size,
            "underline": 1 if command.underline else 0,
        }
        font = ESCPOS_FONTS[command.font]
        if font_supported(device, font):
            device.set(font=font, **style)
        else:
            # Profile does not list this font (font C on most); select it directly
            device._raw(SELECT_FONT + bytes((font,)))
            device.set(**style)

    def _print_qr(self, device: Any, command: QRCode) -> None:
        if not MIN_QR_SIZE <= command.size <= MAX_QR_SIZE:
            raise QRSizeError(
                f"QR size {command.size} outside {MIN_QR_SIZE}-{MAX_QR_SIZE}"
            )
        device.set(align=Alignment.CENTER.value)
        if config.QR_NATIVE:
            device.qr(command.code, size=command.size, native=True)
            return
        # Software-rendered QR is printed through the image path
        device.qr(
            command.code,
            size=command.size,
            native=False,
            image_arguments={
                "impl": config.QR_IMG_IMPL,
                "high_density_vertical": True,
                "high_density_horizontal": True,
            },
        )

    def _print_image(self, device: Any, command: Image) -> None:
        img = render_image(
            command.data,
            command.dither_mode,
            max_width=config.IMAGE_MAX_WIDTH or None,
        )
        device.set(align=command.alignment.value)
        device.image(
            img,
            impl=config.IMAGE_IMPL,
            fragment_height=config.IMAGE_FRAGMENT_HEIGHT,
            high_density_vertical=True,
            high_density_horizontal=True,
        )


class AsyncPrinter:
    """Async job runner: decode, claim the printer, execute in the executor."""

    def __init__(
        self,
        arbiter: DeviceArbiter,
        engine: ReceiptEngine | None = None,
        job_timeout: float | None = None,
    ) -> None:
        self.arbiter = arbiter
        self.engine = engine if engine is not None else ReceiptEngine()
        if job_timeout is None:
            job_timeout = config.JOB_TIMEOUT_SECONDS
        # 0 disables the timeout
        self.job_timeout: float | None = job_timeout or None
        # Served when another status query already has the device
        self._last_status: dict[str, object] = {"online": None, "paper": None, "busy": False}

    @classmethod
    def from_config(cls) -> "AsyncPrinter":
        """Open the configured printer and wrap it in a fresh arbiter."""
        return cls(DeviceArbiter(open_printer()))

    async def submit(self, payload: Any) -> PrintOutcome:
        """Decode a ``{"receipt": [...]}`` payload and print it."""
        try:
            job = decode_job(payload)
        except ReceiptDecodeError as e:
            logger.warning("Rejected receipt: %s", e)
            return PrintDecodeError.from_exception(e)
        return await self.print_job(job)

    async def print_job(self, job: PrintJob) -> PrintOutcome:
        """Print a decoded job asynchronously. Non-blocking if the printer is busy."""
        future = asyncio.get_running_loop().run_in_executor(None, self._do_print_job, job)
        try:
            return await asyncio.wait_for(future, timeout=self.job_timeout)
        except asyncio.TimeoutError:
            # The worker keeps the printer until the stalled call returns
            logger.error("Print job timed out after %s seconds", self.job_timeout)
            return PrintDeviceError(reason=f"printer timed out after {self.job_timeout:g} seconds")

    def _do_print_job(self, job: PrintJob) -> PrintOutcome:
        """Blocking job print (runs in executor)."""
        try:
            with self.arbiter.session() as device:
                logger.info("Printing job with %d items", len(job))
                self.engine.execute(device, job.commands)
        except PrinterBusyError:
            return PrinterBusy()
        except ReceiptItemError as e:
            logger.error("Print job aborted: %s", e)
            return PrintDeviceError(reason=str(e))
        except Exception as e:
            logger.error("Print job failed: %s", e, exc_info=True)
            return PrintDeviceError(reason=str(e) or type(e).__name__)
        logger.info("Printed job with %d items", len(job))
        return PrintSuccess(items=len(job))

    def _query_status_sync(self) -> dict[str, object]:
        """Query printer status synchronously (runs in executor).

        Never claims the printer for a job: a print submitted meanwhile waits for
        the query rather than being reported busy.
        """
        try:
            with self.arbiter.inspect() as device:
                online = bool(device.is_online())
                paper: int | None
                try:
                    paper = int(device.paper_status())
                except Exception:
                    paper = None
        except PrinterBusyError:
            if self.arbiter.busy:
                return {"online": None, "paper": None, "busy": True}
            return dict(self._last_status)
        self._last_status = {"online": online, "paper": paper, "busy": False}
        return dict(self._last_status)

    async def status(self) -> dict[str, object]:
        """Return printer online + paper status, or busy while a job prints."""
        try:
            return await asyncio.get_running_loop().run_in_executor(
                None, self._query_status_sync
            )
        except Exception as e:
            logger.error("Status check failed: %s", e, exc_info=True)
            return {"online": False, "paper": None, "busy": False}

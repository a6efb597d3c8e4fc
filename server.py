"""HTTP front end for the receipt printer (FastAPI)."""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

import config
from print_jobs import PrintDecodeError, PrintDeviceError, PrinterBusy, PrintSuccess
from printer import AsyncPrinter

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    """Rotating file logging under logs/."""
    log_path = Path(config.LOG_FILE)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_path,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
    )
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    logging.basicConfig(handlers=[handler], level=config.LOG_LEVEL)


def create_app(printer: AsyncPrinter) -> FastAPI:
    """Build the app around an already connected printer."""

    app = FastAPI(title="ESC/POS receipt printer")
    app.state.printer = printer

    @app.post("/print")
    async def print_receipt(request: Request) -> JSONResponse:
        """Print one receipt: {"receipt": [...]}."""
        try:
            payload = await request.json()
        except ValueError as e:
            return JSONResponse({"error": f"invalid JSON body: {e}"}, status_code=400)

        outcome = await printer.submit(payload)
        if isinstance(outcome, PrintSuccess):
            return JSONResponse({"success": True})
        if isinstance(outcome, PrintDecodeError):
            return JSONResponse(
                {
                    "error": str(outcome),
                    "index": outcome.index,
                    "type": outcome.item_type,
                    "field": outcome.field,
                },
                status_code=400,
            )
        if isinstance(outcome, PrinterBusy):
            return JSONResponse(
                {
                    "error": "Printer is busy",
                    "message": "Another print job is currently in progress. Please try again later.",
                },
                status_code=503,
            )
        if isinstance(outcome, PrintDeviceError):
            return JSONResponse({"error": outcome.reason}, status_code=500)
        raise ValueError(f"Unknown print outcome: {outcome!r}")

    @app.get("/status")
    async def status() -> JSONResponse:
        """Printer online/paper status (paper: 2 adequate, 1 near-end, 0 none)."""
        return JSONResponse(await printer.status())

    return app


def main() -> None:
    """Connect to the printer and serve HTTP."""
    import uvicorn

    configure_logging()
    try:
        printer = AsyncPrinter.from_config()
    except Exception as e:
        logger.exception("Failed to connect to printer: %s", e)
        raise
    uvicorn.run(create_app(printer), host=config.HTTP_HOST, port=config.HTTP_PORT)


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""Print a receipt JSON file directly, without the HTTP server.

Usage examples (from project root, with venv activated):

  python print_receipt.py sample_receipt.json
      → prints the receipt on the printer configured in .env

  python print_receipt.py sample_receipt.json --mock
      → runs the receipt against the mock printer (output goes to the log)

  python print_receipt.py sample_receipt.json --check
      → only decodes the file and lists its commands

The exit status is 0 on success, 1 on a decode error, 2 on a device error and
3 when the printer is busy.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

import config
from arbiter import DeviceArbiter
from print_jobs import (
    PrintDecodeError,
    PrintDeviceError,
    PrinterBusy,
    PrintOutcome,
    PrintSuccess,
    decode_job,
)
from printer import AsyncPrinter, MockPrinter, open_printer
from receipt import ReceiptDecodeError

EXIT_CODES = {
    PrintSuccess: 0,
    PrintDecodeError: 1,
    PrintDeviceError: 2,
    PrinterBusy: 3,
}


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Print a receipt JSON file.")
    parser.add_argument("path", type=Path, help='JSON file with {"receipt": [...]}')
    parser.add_argument(
        "--mock",
        action="store_true",
        help="Use the mock printer regardless of MOCK_PRINTER.",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Decode and list the commands without printing.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    return parser


def describe(outcome: PrintOutcome) -> str:
    if isinstance(outcome, PrintSuccess):
        return f"Printed {outcome.items} items"
    if isinstance(outcome, PrintDecodeError):
        return f"Invalid receipt: {outcome}"
    if isinstance(outcome, PrinterBusy):
        return "Printer is busy, try again later"
    return f"Printer error: {outcome.reason}"


def main(argv: list[str] | None = None) -> int:
    args = build_arg_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else config.LOG_LEVEL,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        payload = json.loads(args.path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        print(f"Cannot read {args.path}: {e}", file=sys.stderr)
        return 1

    if args.check:
        try:
            job = decode_job(payload)
        except ReceiptDecodeError as e:
            print(f"Invalid receipt: {e}", file=sys.stderr)
            return 1
        for index, command in enumerate(job.commands):
            print(f"{index:3d} {command!r}"[:120])
        return 0

    device = MockPrinter() if args.mock else open_printer()
    printer = AsyncPrinter(DeviceArbiter(device))
    outcome = asyncio.run(printer.submit(payload))
    print(describe(outcome), file=sys.stdout if isinstance(outcome, PrintSuccess) else sys.stderr)
    return EXIT_CODES[type(outcome)]


if __name__ == "__main__":
    sys.exit(main())

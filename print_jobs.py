"""Print job model and the outcomes a job submission can end with.

A job is the decoded command sequence of one ``/print`` request. It has no
identity and is discarded after execution. Every submission ends with exactly
one of:

- :class:`PrintSuccess`     – all commands executed, paper cut issued
- :class:`PrintDecodeError` – payload rejected before any device I/O
- :class:`PrinterBusy`      – another job holds the printer; nothing changed
- :class:`PrintDeviceError` – the printer failed while executing the job
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Tuple, Union

from receipt import Command, ReceiptDecodeError, decode_receipt


@dataclass(frozen=True)
class PrintJob:
    commands: Tuple[Command, ...]

    def __len__(self) -> int:
        return len(self.commands)


def decode_job(payload: Any) -> PrintJob:
    """Decode a ``{"receipt": [...]}`` payload into a :class:`PrintJob`."""

    if not isinstance(payload, Mapping) or "receipt" not in payload:
        raise ReceiptDecodeError(None, None, "receipt", "missing required field")
    return PrintJob(commands=decode_receipt(payload["receipt"]))


@dataclass(frozen=True)
class PrintSuccess:
    items: int


@dataclass(frozen=True)
class PrintDecodeError:
    index: int | None
    item_type: str | None
    field: str
    reason: str

    @classmethod
    def from_exception(cls, exc: ReceiptDecodeError) -> "PrintDecodeError":
        return cls(index=exc.index, item_type=exc.item_type, field=exc.field, reason=exc.reason)

    def __str__(self) -> str:
        return str(ReceiptDecodeError(self.index, self.item_type, self.field, self.reason))


@dataclass(frozen=True)
class PrinterBusy:
    pass


@dataclass(frozen=True)
class PrintDeviceError:
    reason: str


PrintOutcome = Union[PrintSuccess, PrintDecodeError, PrinterBusy, PrintDeviceError]

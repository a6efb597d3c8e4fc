"""Exclusive, non-blocking access to the single physical printer."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Any, Iterator

logger = logging.getLogger(__name__)


class PrinterBusyError(RuntimeError):
    """Raised when the printer is already executing another job."""

    def __init__(self) -> None:
        super().__init__("Printer is busy")


class DeviceArbiter:
    """Owns the printer handle and admits at most one job at a time.

    Job acquisition never waits: a second job is turned away immediately and is
    expected to resubmit later. Status queries go through :meth:`inspect`, which
    shares the device I/O lock with jobs but never marks the printer busy, so a
    job that arrives during a status query waits for it instead of being refused.
    """

    def __init__(self, device: Any) -> None:
        self._device = device
        self._job = threading.Lock()
        self._io = threading.Lock()

    @property
    def busy(self) -> bool:
        """True while a job holds the printer."""
        return self._job.locked()

    def try_acquire(self) -> bool:
        """Claim the printer for a job if free; return False right away if not."""
        return self._job.acquire(blocking=False)

    def release(self) -> None:
        self._job.release()

    @contextmanager
    def session(self) -> Iterator[Any]:
        """Hold the printer for one job for the duration of the ``with`` block.

        Raises PrinterBusyError without blocking when another job is active.
        A status query in flight is waited for. The printer is released on
        every exit path.
        """
        if not self.try_acquire():
            logger.info("Printer busy, rejecting request")
            raise PrinterBusyError()
        try:
            with self._io:
                yield self._device
        finally:
            self.release()

    @contextmanager
    def inspect(self) -> Iterator[Any]:
        """Borrow the device for a short status query.

        Raises PrinterBusyError without blocking when a job or another query
        holds the device. Never makes :attr:`busy` true.
        """
        if self.busy or not self._io.acquire(blocking=False):
            raise PrinterBusyError()
        try:
            yield self._device
        finally:
            self._io.release()

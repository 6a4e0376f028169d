"""Justification tracking: emit ``ESC a n`` only when the alignment actually changes."""

from __future__ import annotations

from escpos.constants import ESC

from print_tasks import Justification

JUSTIFY = ESC + b"a"


def justification_code(justification: Justification) -> bytes:
    return JUSTIFY + bytes((int(justification),))


class JustificationTracker:
    """Tracks the requested alignment and the alignment last sent to the printer.

    The printer state is unknown at job start, so the first content element
    always gets an explicit code even when the job never asks for one.
    """

    def __init__(self) -> None:
        self.current = Justification.LEFT
        self._emitted: Justification | None = None

    def select(self, justification: Justification) -> bytes:
        """Handle a SetJustification element."""
        if justification == self.current:
            return b""
        self.current = justification
        return self.sync()

    def sync(self) -> bytes:
        """Return the code needed before a content element, or nothing."""
        if self._emitted == self.current:
            return b""
        self._emitted = self.current
        return justification_code(self.current)

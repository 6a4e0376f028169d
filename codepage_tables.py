#!/usr/bin/env python3
"""Print ESC/POS code page tables on the thermal printer.

Usage examples (from project root, with venv activated):

  python codepage_tables.py
      → prints the table for the configured CODEPAGE.

  python codepage_tables.py cp866:17 cp1251:46
      → prints one table per code page, each selected with its ``ESC t`` id.

A code page given without an id is only selected with ``ESC t`` when it is
the configured CODEPAGE and CODEPAGE_ID is set; otherwise the printer keeps
its current table. Check the printer manual for the id of each table.
The device is taken from config.py / .env.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import replace

from encoder import EncoderOptions, build_command_stream
from print_tasks import Justification, PrintElement, PrintJob, SetJustification, TextRun
from printer import send

logger = logging.getLogger(__name__)

# Control bytes would be interpreted by the printer, print a blank instead
_CONTROL = frozenset(range(0x20)) | {0x7F}


def table_rows(codepage: str) -> list[str]:
    """Header plus 16 rows of 16 characters, decoded through ``codepage``."""
    rows = ["  " + "".join(f"{i:x}" for i in range(16))]
    for hi in range(16):
        chars = []
        for lo in range(16):
            value = hi * 16 + lo
            if value in _CONTROL:
                chars.append(" ")
            else:
                chars.append(bytes((value,)).decode(codepage, errors="replace"))
        rows.append(f"{hi:x} " + "".join(chars))
    return rows


def build_codepage_job(codepages: list[str]) -> PrintJob:
    elements: list[PrintElement] = [
        SetJustification(Justification.CENTER),
        TextRun("Code page tables\n\n"),
        SetJustification(Justification.LEFT),
    ]
    for cp in codepages:
        elements.append(TextRun(f"{cp}\n\n"))
        elements.extend(TextRun(row + "\n") for row in table_rows(cp))
        elements.append(TextRun("\n\n"))
    return PrintJob.of(elements)


def parse_table_arg(arg: str, options: EncoderOptions) -> tuple[str, int | None]:
    """Split ``name[:id]`` into a code page name and its ``ESC t`` id."""
    name, sep, table_id = arg.partition(":")
    if sep:
        try:
            return name, int(table_id)
        except ValueError:
            raise ValueError(f"Invalid code page id in {arg!r}") from None
    if name == options.codepage:
        return name, options.codepage_id
    return name, None


def main(argv: list[str] | None = None) -> None:
    """Print one table per ``name[:id]`` argument."""
    argv = argv if argv is not None else sys.argv[1:]
    options = EncoderOptions.from_config()
    tables = [parse_table_arg(arg, options) for arg in argv] or [(options.codepage, options.codepage_id)]

    logging.basicConfig(level=logging.INFO)
    for cp, table_id in tables:
        # Text of each table must be encoded with that table's code page
        job = build_codepage_job([cp])
        send(build_command_stream(job, replace(options, codepage=cp, codepage_id=table_id)))


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        pass

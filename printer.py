"""Printer transport: write finished ESC/POS buffers to a device using python-escpos."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator

from escpos import printer as escpos_printer
from escpos.exceptions import Error as EscposError

import config
from encoder import EncoderOptions, build_command_stream
from errors import TransportWriteFailure
from print_tasks import PrintJob

logger = logging.getLogger(__name__)

TCP_SCHEME = "tcp://"
SERIAL_SCHEME = "serial:"


def _parse_network(device: str) -> tuple[str, int]:
    address = device[len(TCP_SCHEME):].rstrip("/")
    host, sep, port = address.rpartition(":")
    if not sep:
        return address, config.NETWORK_PORT
    try:
        return host, int(port)
    except ValueError:
        raise TransportWriteFailure(f"Invalid port in printer address {device!r}") from None


def create_printer(device: str) -> Any:
    """Create (but do not yet write to) the python-escpos printer for ``device``.

    ``tcp://host[:port]`` selects a network printer, ``serial:<device>`` a
    serial line, anything else is treated as a writable device file or
    printer share path.
    """
    if config.MOCK_PRINTER:
        return escpos_printer.Dummy()
    if device.startswith(TCP_SCHEME):
        host, port = _parse_network(device)
        return escpos_printer.Network(host, port=port, timeout=config.NETWORK_TIMEOUT)
    if device.startswith(SERIAL_SCHEME):
        # Serial settings follow common ESC/POS UART defaults: 9600 baud, 8N1, DSR/DTR
        return escpos_printer.Serial(
            devfile=device[len(SERIAL_SCHEME):],
            baudrate=config.SERIAL_BAUDRATE,
            bytesize=config.SERIAL_BYTESIZE,
            parity=config.SERIAL_PARITY,
            stopbits=config.SERIAL_STOPBITS,
            timeout=config.SERIAL_TIMEOUT,
            dsrdtr=config.SERIAL_DSRDTR,
        )
    return escpos_printer.File(devfile=device)


@contextmanager
def open_printer(device: str) -> Iterator[Any]:
    """Open the printer for one job and always close (and flush) it afterwards."""
    try:
        p = create_printer(device)
    except (OSError, EscposError) as e:
        raise TransportWriteFailure(f"Cannot open printer {device!r}: {e}") from e
    try:
        yield p
    finally:
        try:
            p.close()
        except (OSError, EscposError) as e:
            logger.warning("Closing printer %s failed: %s", device, e)


def send(buffer: bytes | bytearray, device: str | None = None) -> int:
    """Write a complete command buffer to the printer. No retries.

    Returns the number of bytes handed to the device.
    """
    device = device or config.PRINTER_DEVICE
    data = bytes(buffer)
    try:
        with open_printer(device) as p:
            p._raw(data)
            if config.MOCK_PRINTER:
                logger.info("Printed (mock): %d bytes for %s", len(p.output), device)
    except TransportWriteFailure:
        logger.error("Printer %s unavailable", device)
        raise
    except (OSError, EscposError) as e:
        logger.error("Write to printer %s failed: %s", device, e)
        raise TransportWriteFailure(f"Write to printer {device!r} failed: {e}") from e
    logger.info("Printed %d bytes to %s", len(data), device)
    return len(data)


def print_job(job: PrintJob, device: str | None = None, options: EncoderOptions | None = None) -> int:
    """Encode ``job`` completely, then send it. Nothing is opened if encoding fails."""
    buffer = build_command_stream(job, options)
    return send(buffer, device)

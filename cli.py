"""Command line entry point: build a print job from arguments and send it.

Usage examples:

  posprint --align center --text "Hello" --qr https://example.com
      → centred text and a QR code on the configured PRINTER_DEVICE.

  posprint --device tcp://192.168.1.50 --image logo.png --text "Thanks!"
      → a dithered logo followed by text on a network printer.

  posprint --image photo.jpg --output job.bin --preview photo.png
      → write the command stream to job.bin and the dithered image to photo.png.

Element options (--text, --image, --qr, --align) are printed in the order
they appear on the command line.
"""

from __future__ import annotations

import argparse
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

import config
from encoder import EncoderOptions, build_command_stream
from errors import PrintError
from imaging import MonoBitmap
from print_tasks import (
    CutMode,
    ErrorCorrection,
    ImageElement,
    Justification,
    PrintElement,
    PrintJob,
    QrCode,
    Resampling,
    ScalingMode,
    SetJustification,
    TextRun,
)
from printer import send

logger = logging.getLogger(__name__)


class AppendElement(argparse.Action):
    """Collect element options into one ordered list on ``namespace.elements``."""

    def __call__(self, parser, namespace, values, option_string=None):
        elements = list(getattr(namespace, "elements", None) or [])
        elements.append((self.const, values))
        namespace.elements = elements


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="posprint",
        description="Print text, images and QR codes on an ESC/POS thermal printer.",
    )
    parser.add_argument("--text", action=AppendElement, const="text", dest="elements",
                        metavar="TEXT", help="Print a line of text.")
    parser.add_argument("--image", action=AppendElement, const="image", dest="elements",
                        metavar="PATH", help="Print an image file (dithered).")
    parser.add_argument("--qr", action=AppendElement, const="qr", dest="elements",
                        metavar="DATA", help="Print DATA as a QR code.")
    parser.add_argument("--align", action=AppendElement, const="align", dest="elements",
                        choices=("left", "center", "right"),
                        help="Set justification for the following elements.")

    parser.add_argument("--device", default=None,
                        help="Printer device, share path, tcp://host[:port] or serial:<device> "
                             "(default: PRINTER_DEVICE).")
    parser.add_argument("--output", type=Path, default=None,
                        help="Write the command stream to this file instead of the printer.")
    parser.add_argument("--preview", type=Path, default=None,
                        help="Save the dithered bitmap of the first image as PNG.")

    parser.add_argument("--max-width", type=int, default=None,
                        help="Printer maximum width in dots (default: MAX_DOT_WIDTH).")
    parser.add_argument("--image-width", type=int, default=None,
                        help="Target image width in dots (default: printer maximum).")
    parser.add_argument("--scaling", choices=[m.value for m in ScalingMode], default=None,
                        help="Image scaling mode.")
    parser.add_argument("--resampling", choices=[m.value for m in Resampling], default=None,
                        help="Image resampling filter.")
    parser.add_argument("--qr-ecc", choices=[e.value for e in ErrorCorrection], default=None,
                        help="QR error correction level.")
    parser.add_argument("--qr-size", type=int, default=None,
                        help="QR module size (1-16).")
    parser.add_argument("--native-qr", dest="qr_native", action="store_true", default=None,
                        help="Let the printer render QR codes (GS ( k).")
    parser.add_argument("--raster-qr", dest="qr_native", action="store_false",
                        help="Render QR codes as raster images.")
    parser.add_argument("--cut", choices=[m.value for m in CutMode], default=None,
                        help="Paper cut after the job.")
    parser.add_argument("--feed", type=int, default=None,
                        help="Lines to feed before cutting.")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Enable debug logging.")
    return parser


def build_job(elements: list[tuple[str, str]], image_width: int | None = None) -> PrintJob:
    """Turn ordered (kind, value) pairs from the parser into a PrintJob."""
    job: list[PrintElement] = []
    for kind, value in elements:
        if kind == "text":
            job.append(TextRun(value if value.endswith("\n") else value + "\n"))
        elif kind == "image":
            job.append(ImageElement(Path(value), width=image_width))
        elif kind == "qr":
            job.append(QrCode(value))
        elif kind == "align":
            job.append(SetJustification(Justification.parse(value)))
        else:
            raise ValueError(f"Unknown element kind: {kind}")
    return PrintJob.of(job)


def options_from_args(args: argparse.Namespace) -> EncoderOptions:
    return EncoderOptions.from_config(
        max_dot_width=args.max_width,
        scaling=ScalingMode(args.scaling) if args.scaling else None,
        resampling=Resampling(args.resampling) if args.resampling else None,
        qr_error_correction=ErrorCorrection.parse(args.qr_ecc) if args.qr_ecc else None,
        qr_module_size=args.qr_size,
        qr_native=args.qr_native,
        cut=CutMode(args.cut) if args.cut else None,
        feed_lines=args.feed,
    )


def setup_logging(verbose: bool = False) -> None:
    """Console logging, plus a rotating log file when LOG_FILE is set."""
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if config.LOG_FILE:
        Path(config.LOG_FILE).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(config.LOG_FILE, maxBytes=10 * 1024 * 1024, backupCount=5)
        )
    level = logging.DEBUG if verbose else getattr(logging, config.LOG_LEVEL, logging.INFO)
    logging.basicConfig(
        handlers=handlers,
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def save_preview(bitmaps: list[MonoBitmap], path: Path) -> bool:
    """Write the first dithered image of a build as PNG; False if there is none."""
    if not bitmaps:
        logger.warning("No image element to preview")
        return False
    bitmaps[0].to_image().save(path, format="PNG")
    logger.info("Saved dithered preview to %s", path)
    return True


def main(argv: list[str] | None = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    if not args.elements:
        parser.error("nothing to print: give at least one of --text, --image, --qr")

    try:
        options = options_from_args(args)
        job = build_job(args.elements, args.image_width)
    except (ValueError, LookupError) as e:
        parser.error(str(e))

    try:
        bitmaps: list[MonoBitmap] | None = [] if args.preview else None
        buffer = build_command_stream(job, options, bitmaps)
        if args.preview:
            save_preview(bitmaps, args.preview)
        if args.output:
            args.output.write_bytes(buffer)
            logger.info("Wrote %d bytes to %s", len(buffer), args.output)
        else:
            send(buffer, args.device)
    except PrintError as e:
        logger.error("Print failed: %s", e)
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        pass

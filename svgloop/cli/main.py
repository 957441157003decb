"""Main CLI entry point for svgloop."""

from __future__ import annotations

import argparse
import logging
import sys

from .. import __version__
from .diagnostics_cli import build_diagnostics_parser
from .export_cli import build_export_parser


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="svgloop",
        description="Export looping SVG animations to PNG and animated GIF",
    )
    parser.add_argument("--version", action="version", version=f"svgloop {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command")
    build_export_parser(subparsers)
    build_diagnostics_parser(subparsers)
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 0
    _configure_logging(args.verbose)
    return args.func(args)


def cli_entry() -> None:
    sys.exit(main())

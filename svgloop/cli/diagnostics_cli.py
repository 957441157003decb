"""CLI command reporting which rasterizer backends are usable."""

from __future__ import annotations

import argparse

from ..detection import print_diagnostics


def cmd_diagnostics(args: argparse.Namespace) -> int:
    print(print_diagnostics())
    return 0


def build_diagnostics_parser(subparsers: argparse._SubParsersAction) -> None:
    p = subparsers.add_parser(
        "diagnostics",
        help="Show available rasterizer backends",
    )
    p.set_defaults(func=cmd_diagnostics)

"""
CLI command for exporting a scene.

Usage:
    svgloop export spinner.svg --format gif --width 480 --duration 3 -o spinner.gif
    svgloop export spinner.svg --format png --time 0.75
    svgloop export asset.json --config job.yaml
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from dataclasses import replace
from pathlib import Path

from tqdm import tqdm

from ..assets import load_asset
from ..config import ExportConfig, MetadataConfig, load_export_config
from ..exceptions import SvgLoopError
from ..export import AnimationExporter
from ..naming import output_path_for
from ..rasterizers import rasterizer_names
from ..types import ExportFormat, Scene

_ASSET_SUFFIXES = {".json", ".yaml", ".yml"}


class FrameProgress:
    """tqdm progress bar driven by the exporter's ``on_frame`` callback.

    The frame total is only known once the loop duration is resolved, so
    the bar is created on the first reported frame.
    """

    def __init__(self, description: str = "Rendering frames") -> None:
        self.description = description
        self._bar: tqdm | None = None

    def __call__(self, done: int, total: int) -> None:
        if self._bar is None:
            self._bar = tqdm(
                total=total, desc=self.description, unit="frame",
                file=sys.stderr, dynamic_ncols=True,
            )
        self._bar.update(done - self._bar.n)

    def close(self) -> None:
        if self._bar is not None:
            self._bar.close()


def _format_from_path(path: str | None) -> ExportFormat | None:
    if not path:
        return None
    suffix = Path(path).suffix.lower().lstrip(".")
    try:
        return ExportFormat(suffix)
    except ValueError:
        return None


def build_config(args: argparse.Namespace) -> tuple[Scene, ExportConfig]:
    """Combine config file, asset sidecar and flags (flags win)."""
    config = load_export_config(args.config) if args.config else ExportConfig()

    source = Path(args.source)
    if source.suffix.lower() in _ASSET_SUFFIXES:
        asset = load_asset(source)
        scene = asset.scene()
        config = replace(
            config,
            width=config.width if config.width is not None else asset.width,
            height=config.height if config.height is not None else asset.height,
            duration=config.duration if config.duration is not None else asset.duration,
            metadata=replace(
                config.metadata,
                title=config.metadata.title or asset.title,
                description=config.metadata.description or asset.description,
            ),
        )
    else:
        try:
            scene = Scene.from_file(source)
        except OSError as exc:
            raise SvgLoopError(f"Cannot read '{source}': {exc}") from exc

    fmt = None
    if args.format:
        fmt = ExportFormat(args.format)
    elif args.output:
        fmt = _format_from_path(args.output)

    config = config.merged(
        format=fmt,
        width=args.width,
        height=args.height,
        duration=args.duration,
        timestamp=args.time,
        backend=args.backend,
        output_path=Path(args.output) if args.output else None,
    )
    if args.title:
        config = replace(config, metadata=replace(config.metadata, title=args.title))
    if not config.metadata.title:
        config = replace(config, metadata=MetadataConfig(
            title=source.stem,
            description=config.metadata.description,
            comment=config.metadata.comment,
        ))
    return scene, config


def cmd_export(args: argparse.Namespace) -> int:
    """Main handler for ``svgloop export``."""
    progress = None
    try:
        scene, config = build_config(args)
        output = config.output_path or output_path_for(config.metadata.title, config.format)

        print(f"Exporting {config.format.value.upper()} -> {output} ...")
        if config.format == ExportFormat.GIF:
            progress = FrameProgress()
        exporter = AnimationExporter(config)
        result = asyncio.run(exporter.export_to_file(scene, output, on_frame=progress))
    except (SvgLoopError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        if progress is not None:
            progress.close()

    print(f"Done! {output} ({result.summary()})")
    return 0


def build_export_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the ``export`` subcommand and its arguments."""
    p = subparsers.add_parser(
        "export",
        help="Export an SVG scene to SVG, PNG or animated GIF",
        description="Freeze, rasterize and encode a CSS-animated SVG scene.",
    )
    p.add_argument(
        "source",
        help="Scene .svg file, or an asset sidecar (.json/.yaml)",
    )
    p.add_argument(
        "--format", choices=[f.value for f in ExportFormat], default=None,
        help="Output format (default: from --output suffix, else gif)",
    )
    p.add_argument(
        "--width", type=int, default=None,
        help="Output width in pixels (default: from viewBox)",
    )
    p.add_argument(
        "--height", type=int, default=None,
        help="Output height in pixels (default: from viewBox)",
    )
    p.add_argument(
        "--duration", type=float, default=None,
        help="Loop duration in seconds (default: 2.0, or longer if detected; max 10)",
    )
    p.add_argument(
        "--time", type=float, default=None,
        help="Timestamp in seconds for PNG export (default: 0)",
    )
    p.add_argument(
        "--backend", choices=rasterizer_names(), default=None,
        help="Rasterizer backend (default: auto-detect)",
    )
    p.add_argument(
        "--title", default=None,
        help="Title embedded in the output and used for the default file name",
    )
    p.add_argument(
        "--config", default=None,
        help="YAML export config file",
    )
    p.add_argument(
        "-o", "--output", default=None,
        help="Output file path (default: <Title>_<timestamp>.<format>)",
    )
    p.set_defaults(func=cmd_export)

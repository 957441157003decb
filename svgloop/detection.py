"""
Rasterizer auto-detection and system probing.

Discovers which SVG rasterizer backends are available, selects the best
one according to the priority chain, and provides diagnostics when
nothing is found.
"""

from __future__ import annotations

import importlib.metadata
import logging
import platform
import subprocess
from dataclasses import dataclass
from typing import Dict, Optional

from svgloop.exceptions import RasterizerNotFoundError
from svgloop.rasterizers import RASTERIZER_PRIORITY, Rasterizer, SubprocessRasterizer

logger = logging.getLogger(__name__)

# Python distributions the backends are built on, by probe key.
_DISTRIBUTIONS = {"cairosvg": "CairoSVG", "pillow": "Pillow", "numpy": "numpy"}


@dataclass(frozen=True)
class ToolProbe:
    """Whether one backend or library is usable, and where it came from."""
    name: str
    found: bool
    location: Optional[str] = None
    version: Optional[str] = None

    def describe(self) -> str:
        if not self.found:
            return f"{self.name:<14} missing"
        extras = [self.version or "version unknown"]
        if self.location:
            extras.append(f"[{self.location}]")
        return f"{self.name:<14} ok  " + " ".join(extras)


def _executable_version(exe: str) -> Optional[str]:
    try:
        proc = subprocess.run([exe, "--version"], capture_output=True, text=True,
                              errors="replace", timeout=10)
    except (subprocess.TimeoutExpired, OSError) as exc:
        logger.debug("Version check for %s failed: %s", exe, exc)
        return None
    lines = (proc.stdout or proc.stderr).strip().splitlines()
    return lines[0].strip() if lines else None


def _distribution_version(key: str) -> Optional[str]:
    try:
        return importlib.metadata.version(_DISTRIBUTIONS[key])
    except importlib.metadata.PackageNotFoundError:
        return None


def _probe_rasterizer(cls: type) -> ToolProbe:
    if issubclass(cls, SubprocessRasterizer):
        exe = cls._executable()
        if exe is None:
            return ToolProbe(cls.name, found=False)
        return ToolProbe(cls.name, found=True, location=exe,
                         version=_executable_version(exe))
    if not cls.is_available():
        return ToolProbe(cls.name, found=False)
    return ToolProbe(cls.name, found=True, version=_distribution_version(cls.name))


def probe_system() -> Dict[str, ToolProbe]:
    """Probe every rasterizer backend plus the libraries encoding relies on."""
    probes = {cls.name: _probe_rasterizer(cls) for cls in RASTERIZER_PRIORITY}
    for key in ("pillow", "numpy"):
        version = _distribution_version(key)
        probes[key] = ToolProbe(key, found=version is not None, version=version)
    return probes


def select_rasterizer(preferred: Optional[str] = None) -> Rasterizer:
    """Return the best available rasterizer or raise with install hints."""
    by_name = {cls.name: cls for cls in RASTERIZER_PRIORITY}
    if preferred is not None:
        cls = by_name.get(preferred)
        if cls is None:
            logger.warning("Unknown rasterizer '%s'; auto-selecting.", preferred)
        elif cls.is_available():
            logger.info("Using preferred rasterizer: %s", cls.name)
            return cls()
        else:
            logger.warning("Preferred rasterizer '%s' not available.", preferred)

    for cls in RASTERIZER_PRIORITY:
        if cls.is_available():
            logger.info("Auto-selected rasterizer: %s", cls.name)
            return cls()

    _raise_no_rasterizer_error()


def _raise_no_rasterizer_error() -> None:
    lines = ["No SVG rasterizer is available.", "",
             "Install at least one of the following:", ""]
    for option, cls in zip("ABC", RASTERIZER_PRIORITY):
        lines.append(f"  Option {option}:  {cls.install_hint()}")
    lines += ["", "Only Chromium evaluates CSS animations; use it for GIF export."]
    raise RasterizerNotFoundError("\n".join(lines))


def print_diagnostics() -> str:
    """Return a human-readable diagnostics report."""
    probes = probe_system()
    lines = [
        "svgloop rasterizer diagnostics",
        f"{platform.system()} {platform.release()}, Python {platform.python_version()}",
        "",
        "Rasterizers (priority order):",
    ]
    for cls in RASTERIZER_PRIORITY:
        probe = probes[cls.name]
        clock = "animated" if cls.animates else "static only"
        lines.append(f"  {probe.describe()}  ({clock})")
        if not probe.found:
            lines.append(f"      install: {cls.install_hint()}")

    lines += ["", "Libraries:"]
    lines += [f"  {probes[key].describe()}" for key in ("pillow", "numpy")]
    lines.append("")
    try:
        lines.append(f"Selected rasterizer: {select_rasterizer().name}")
    except RasterizerNotFoundError:
        lines.append("Selected rasterizer: NONE (see install hints above)")
    return "\n".join(lines)

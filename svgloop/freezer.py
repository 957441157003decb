"""
Pin an animated scene to a single instant.

CSS keyframe animations are frozen by injecting a stylesheet that pauses
every animation and shifts it by a negative delay equal to the
timestamp, so a renderer that evaluates CSS paints exactly the state the
animation holds at that time.  The root ``width``/``height`` attributes
are overridden with the export size so the output resolution does not
depend on the authored intrinsic size.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET

from svgloop.exceptions import SceneParseError
from svgloop.types import FrozenScene, Scene

SVG_NS = "http://www.w3.org/2000/svg"
XLINK_NS = "http://www.w3.org/1999/xlink"

ET.register_namespace("", SVG_NS)
ET.register_namespace("xlink", XLINK_NS)

_FREEZE_CSS = (
    "\n"
    "svg, svg * {{\n"
    "  animation-play-state: paused !important;\n"
    "  animation-delay: -{offset:.3f}s !important;\n"
    "}}\n"
)


def freeze_css(timestamp: float) -> str:
    """The stylesheet that pins all animations at *timestamp* seconds."""
    return _FREEZE_CSS.format(offset=max(0.0, timestamp))


def freeze_scene(scene: Scene, timestamp: float, width: int, height: int) -> FrozenScene:
    """Return a copy of *scene* frozen at *timestamp*, sized *width* x *height*.

    Pure: the same inputs always produce byte-identical markup.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Export dimensions must be positive, got {width}x{height}")

    try:
        root = ET.fromstring(scene.markup)
    except ET.ParseError as exc:
        raise SceneParseError(f"Scene markup is not well-formed: {exc}") from exc

    root.set("width", str(int(width)))
    root.set("height", str(int(height)))

    style_tag = f"{{{SVG_NS}}}style" if root.tag.startswith(f"{{{SVG_NS}}}") else "style"
    style = ET.SubElement(root, style_tag)
    style.text = freeze_css(timestamp)

    markup = ET.tostring(root, encoding="unicode")
    return FrozenScene(markup=markup, timestamp=timestamp, width=int(width), height=int(height))

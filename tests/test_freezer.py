"""
Tests for freezing a scene at a timestamp.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET

import pytest

from svgloop.exceptions import RenderError, SceneParseError
from svgloop.freezer import SVG_NS, freeze_css, freeze_scene
from svgloop.types import Scene


class TestFreezeScene:
    def test_idempotent(self, spinner_scene):
        a = freeze_scene(spinner_scene, 1.25, 200, 100)
        b = freeze_scene(spinner_scene, 1.25, 200, 100)
        assert a.markup == b.markup
        assert a.to_bytes() == b.to_bytes()

    def test_different_timestamps_differ(self, spinner_scene):
        a = freeze_scene(spinner_scene, 0.0, 200, 100)
        b = freeze_scene(spinner_scene, 0.5, 200, 100)
        assert a.markup != b.markup

    def test_scene_not_mutated(self, spinner_scene):
        before = spinner_scene.markup
        freeze_scene(spinner_scene, 1.0, 50, 50)
        assert spinner_scene.markup == before

    def test_dimensions_overridden(self, spinner_scene):
        frozen = freeze_scene(spinner_scene, 0.0, 320, 160)
        root = ET.fromstring(frozen.markup)
        assert root.get("width") == "320"
        assert root.get("height") == "160"
        assert root.get("viewBox") == "0 0 100 50"
        assert (frozen.width, frozen.height) == (320, 160)

    def test_existing_dimensions_replaced(self):
        scene = Scene('<svg xmlns="http://www.w3.org/2000/svg" width="10%" height="auto"/>')
        root = ET.fromstring(freeze_scene(scene, 0.0, 64, 48).markup)
        assert (root.get("width"), root.get("height")) == ("64", "48")

    def test_pause_style_appended(self, spinner_scene):
        frozen = freeze_scene(spinner_scene, 1.5, 100, 50)
        root = ET.fromstring(frozen.markup)
        last = list(root)[-1]
        assert last.tag == f"{{{SVG_NS}}}style"
        assert "animation-play-state: paused !important" in last.text
        assert "animation-delay: -1.500s !important" in last.text

    def test_default_namespace_preserved(self, spinner_scene):
        frozen = freeze_scene(spinner_scene, 0.0, 100, 50)
        assert frozen.markup.startswith("<svg ")
        assert 'xmlns="http://www.w3.org/2000/svg"' in frozen.markup
        assert "ns0:" not in frozen.markup

    def test_xlink_prefix_preserved(self):
        scene = Scene(
            '<svg xmlns="http://www.w3.org/2000/svg" '
            'xmlns:xlink="http://www.w3.org/1999/xlink">'
            '<use xlink:href="#a"/></svg>'
        )
        assert 'xlink:href="#a"' in freeze_scene(scene, 0.0, 10, 10).markup

    def test_malformed_markup(self):
        with pytest.raises(SceneParseError):
            freeze_scene(Scene("<svg><rect></svg>"), 0.0, 10, 10)

    def test_parse_error_is_render_error(self):
        assert issubclass(SceneParseError, RenderError)

    @pytest.mark.parametrize("size", [(0, 10), (10, 0), (-5, 5)])
    def test_invalid_dimensions(self, spinner_scene, size):
        with pytest.raises(ValueError):
            freeze_scene(spinner_scene, 0.0, *size)


class TestFreezeCss:
    def test_three_decimals(self):
        assert "-0.033s" in freeze_css(1 / 30)

    def test_zero(self):
        assert "-0.000s" in freeze_css(0.0)

"""Tests for VectorDrawable to SVG conversion."""

import xml.etree.ElementTree as ET
from pathlib import Path

import pytest

from droidshelf.core.vector import (
    color_references,
    convert_vector_drawable,
    vector_to_svg,
)
from droidshelf.exceptions import ConversionFailure

SVG = "{http://www.w3.org/2000/svg}"

VECTOR = """\
<vector xmlns:android="http://schemas.android.com/apk/res/android"
    android:width="108dp"
    android:height="108dp"
    android:viewportWidth="108"
    android:viewportHeight="108">
    <group android:translateX="10" android:translateY="20">
        <path
            android:fillColor="#80FF0000"
            android:pathData="M0,0h10v10h-10z" />
    </group>
    <path
        android:fillColor="@color/brand"
        android:strokeColor="#FF00FF00"
        android:strokeWidth="2"
        android:strokeLineCap="round"
        android:fillType="evenOdd"
        android:pathData="M20,20h10v10h-10z" />
</vector>
"""


def _paths(svg_text: str) -> list[ET.Element]:
    return list(ET.fromstring(svg_text).iter(f"{SVG}path"))


def test_svg_root_and_viewbox():
    root = ET.fromstring(vector_to_svg(VECTOR))
    assert root.tag == f"{SVG}svg"
    assert root.get("viewBox") == "0 0 108 108"
    assert root.get("width") == "108"


def test_argb_fill_becomes_rgb_and_opacity():
    first = _paths(vector_to_svg(VECTOR))[0]
    assert first.get("fill") == "#ff0000"
    assert float(first.get("fill-opacity")) == pytest.approx(0x80 / 255, abs=1e-3)
    assert first.get("d") == "M0,0h10v10h-10z"


def test_group_translation():
    root = ET.fromstring(vector_to_svg(VECTOR))
    group = root.find(f"{SVG}g")
    assert group is not None
    assert group.get("transform") == "translate(10,20)"


def test_color_references_are_substituted():
    assert color_references(VECTOR) == {"@color/brand"}

    second = _paths(vector_to_svg(VECTOR, {"@color/brand": "#FF0000FF"}))[1]
    assert second.get("fill") == "#0000ff"
    assert second.get("fill-rule") == "evenodd"
    assert second.get("stroke") == "#00ff00"
    assert second.get("stroke-width") == "2"
    assert second.get("stroke-linecap") == "round"


def test_unresolved_color_reference_is_unfilled():
    second = _paths(vector_to_svg(VECTOR))[1]
    assert second.get("fill") == "none"


def test_gradient_fill():
    xml_text = """\
<vector xmlns:android="http://schemas.android.com/apk/res/android"
    xmlns:aapt="http://schemas.android.com/aapt"
    android:viewportWidth="24" android:viewportHeight="24">
    <path android:pathData="M0,0h24v24h-24z">
        <aapt:attr name="android:fillColor">
            <gradient android:type="linear"
                android:startX="0" android:startY="0"
                android:endX="24" android:endY="24"
                android:startColor="#FFFF0000"
                android:endColor="#000000FF" />
        </aapt:attr>
    </path>
</vector>
"""
    root = ET.fromstring(vector_to_svg(xml_text))
    gradient = root.find(f"{SVG}defs/{SVG}linearGradient")
    assert gradient is not None
    stops = gradient.findall(f"{SVG}stop")
    assert [stop.get("stop-color") for stop in stops] == ["#ff0000", "#0000ff"]
    assert stops[1].get("stop-opacity") == "0"
    assert root.find(f"{SVG}path").get("fill") == f"url(#{gradient.get('id')})"


@pytest.mark.parametrize(
    "xml_text",
    [
        "",
        "<vector",
        "<bitmap/>",
        '<vector xmlns:android="http://schemas.android.com/apk/res/android"/>',
    ],
)
def test_invalid_input(xml_text):
    with pytest.raises(ConversionFailure):
        vector_to_svg(xml_text)


def test_convert_file(tmp_path: Path):
    source = tmp_path / "ic.xml"
    source.write_text(VECTOR, encoding="utf-8")

    out = convert_vector_drawable(source, tmp_path / "svg" / "ic.svg")

    assert out.read_text(encoding="utf-8").startswith("<svg")


def test_convert_unreadable_file(tmp_path: Path):
    with pytest.raises(ConversionFailure):
        convert_vector_drawable(tmp_path / "missing.xml", tmp_path / "out.svg")

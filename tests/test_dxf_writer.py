"""
Tests for DXF output.

Tests cover:
- Path data parsing with arc bulges
- Entity conversion with the Y axis flipped back
- Layers, colors and lineweights
"""

import math

import pytest

from drawing2svg.dxf_writer import DXFWriter, parse_hex_color, parse_path_data
from drawing2svg.svg_writer import SVGWriter


def convert(writer, version="R2010", sheet_height=100.0):
    dxf = DXFWriter(version)
    dxf.create_document(writer.document, sheet_height)
    return dxf


# =============================================================================
# PATH PARSING TESTS
# =============================================================================


class TestPathParsing:

    def test_open_and_closed_paths(self):
        assert parse_path_data("M 0 0 L 10 0") == [([(0.0, 0.0, 0.0), (10.0, 0.0, 0.0)], False)]
        (_, closed), = parse_path_data("M 0 0 L 10 0 L 10 10 Z")
        assert closed

    def test_quarter_arc_bulge(self):
        (vertices, _), = parse_path_data("M 10 0 A 10 10 0 0 1 0 10")
        assert vertices[0][2] == pytest.approx(math.tan(math.pi / 8))
        assert vertices[1] == (0.0, 10.0, 0.0)

    def test_large_arc_bulge(self):
        (vertices, _), = parse_path_data("M 10 0 A 10 10 0 1 0 0 10")
        assert vertices[0][2] == pytest.approx(-math.tan(3 * math.pi / 8))

    def test_several_subpaths(self):
        subpaths = parse_path_data("M 0 0 L 1 1 M 5 5 L 6 6")
        assert len(subpaths) == 2

    def test_lone_move_is_dropped(self):
        assert parse_path_data("M 3 4") == []

    def test_truncated_data(self):
        assert parse_path_data("M 0 0 L 5") == []

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("#FF0000", (1.0, 0.0, 0.0)),
            ("#000000", (0.0, 0.0, 0.0)),
            ("none", (0.0, 0.0, 0.0)),
            (None, (0.0, 0.0, 0.0)),
        ],
    )
    def test_parse_hex_color(self, value, expected):
        assert parse_hex_color(value) == pytest.approx(expected)


# =============================================================================
# ENTITY TESTS
# =============================================================================


class TestEntities:

    def test_line_is_flipped(self):
        writer = SVGWriter(100, 100)
        writer.add_line(10, 10, 20, 10, "#FF0000", 0.25)
        msp = convert(writer).msp
        line = msp.query("LINE")[0]
        assert (line.dxf.start.x, line.dxf.start.y) == pytest.approx((10, 90))
        assert (line.dxf.end.x, line.dxf.end.y) == pytest.approx((20, 90))
        assert line.dxf.true_color == 0xFF0000
        assert line.dxf.lineweight == 25

    def test_path_becomes_lwpolyline(self):
        writer = SVGWriter(100, 100)
        writer.add_path("M 10 50 A 10 10 0 0 1 20 60 L 30 60", "#000000", 0.5)
        polyline = convert(writer).msp.query("LWPOLYLINE")[0]
        points = list(polyline.get_points(format="xyb"))
        assert points[0][:2] == pytest.approx((10, 50))
        # Sweep 1 (clockwise on screen) stays clockwise after the flip
        assert points[0][2] == pytest.approx(-math.tan(math.pi / 8))
        assert points[2][:2] == pytest.approx((30, 40))

    def test_dashed_path(self):
        writer = SVGWriter(100, 100)
        writer.add_path("M 0 0 L 10 0", "#000000", 0.25, dash_array=[1, 0.5])
        polyline = convert(writer).msp.query("LWPOLYLINE")[0]
        assert polyline.dxf.linetype == "DASHED"

    def test_circle_layer_from_group_class(self):
        writer = SVGWriter(100, 100)
        writer.start_group("balloon-1", "annotation annotation-balloon")
        writer.add_circle(40, 30, 5, "#000000", 0.25)
        writer.end_group()
        dxf = convert(writer)
        circle = dxf.msp.query("CIRCLE")[0]
        assert circle.dxf.layer == "annotation-balloon"
        assert (circle.dxf.center.x, circle.dxf.center.y) == pytest.approx((40, 70))
        assert circle.dxf.radius == pytest.approx(5)
        assert "annotation-balloon" in dxf.doc.layers

    def test_rotated_ellipse(self):
        writer = SVGWriter(100, 100)
        writer.add_ellipse(50, 50, 10, 5, 30, "#000000", 0.25)
        ellipse = convert(writer).msp.query("ELLIPSE")[0]
        major = ellipse.dxf.major_axis
        assert (major.x, major.y) == pytest.approx((10 * math.cos(math.radians(-30)),
                                                     10 * math.sin(math.radians(-30))))
        assert ellipse.dxf.ratio == pytest.approx(0.5)

    def test_multi_line_text(self):
        writer = SVGWriter(100, 100)
        writer.add_text(10, 20, "A\nB", "Arial", 2, "#000000", text_anchor="middle", bold=True)
        texts = convert(writer).msp.query("TEXT")
        assert [t.dxf.text for t in texts] == ["A", "B"]
        assert texts[0].dxf.insert.y == pytest.approx(80)
        assert texts[1].dxf.insert.y == pytest.approx(77.6)
        assert texts[0].dxf.height == pytest.approx(2)
        assert texts[0].dxf.style == "Arial_BOLD"

    def test_aci_colors_for_r2000(self):
        writer = SVGWriter(100, 100)
        writer.add_line(0, 0, 1, 1, "#FF0000", 0.25)
        line = convert(writer, version="R2000").msp.query("LINE")[0]
        assert line.dxf.color == 1

    def test_entity_count_and_save(self, tmp_path):
        writer = SVGWriter(100, 100)
        writer.add_line(0, 0, 1, 1, "#000000", 0.25)
        writer.add_circle(5, 5, 1, "#000000", 0.25)
        dxf = convert(writer)
        assert dxf.entity_count == 2
        target = tmp_path / "out.dxf"
        dxf.save(str(target))
        assert target.exists()

    @pytest.mark.parametrize("width,expected", [(0.0, 0), (0.2489, 25), (0.35, 35), (1.999, 200)])
    def test_lineweight(self, width, expected):
        assert DXFWriter()._mm_to_lineweight(width) == expected

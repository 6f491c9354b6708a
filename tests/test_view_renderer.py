"""
Tests for view rendering.

Tests cover:
- Line weight, color, dash and arc flag mapping
- Model edges with bounds tracking
- Detail circles, connecting lines and break lines
- BOM balloons with data attributes
- Emission into several writers
"""

import math
from types import MappingProxyType

import pytest

from drawing2svg.bom import BomRow
from drawing2svg.host import (
    DetailCircleInfo,
    NoteAnnotation,
    SheetData,
    TextFormat,
    TextJustification,
    ViewData,
)
from drawing2svg.options import ExportOptions
from drawing2svg.svg_writer import SVGWriter
from drawing2svg.transforms import CoordinatePipeline
from drawing2svg.view_renderer import (
    ViewRenderer,
    arc_flags,
    balloon_group_id,
    colorref_to_hex,
    line_font_dash_array,
    map_line_weight,
)

SHEET_HEIGHT_MM = 297.0


def make_sheet(views=(), line_fonts=None):
    return SheetData(name="Sheet1", width=0.42, height=0.297, views=list(views),
                     line_fonts=line_fonts or {})


def render(view, sheet=None, options=None, bom=None, writers=None):
    sheet = sheet or make_sheet([view])
    writers = writers or [SVGWriter(420, SHEET_HEIGHT_MM)]
    renderer = ViewRenderer(sheet, CoordinatePipeline(SHEET_HEIGHT_MM), options, bom)
    renderer.render(view, writers)
    return writers[0]


def nodes(writer, tag):
    return [writer.document.node(h) for h in writer.document.find(tag)]


def groups_with_class(writer, class_name):
    return [n for n in nodes(writer, "g") if n.attributes.get("class") == class_name]


def polyline(points, color=0, style=0, weight=1):
    flat = [float(v) for p in points for v in p]
    return [0, 0, color, style, 0, weight, 0, 0, len(points), *flat]


# =============================================================================
# MAPPING TESTS
# =============================================================================


class TestMappings:
    """Pure mapping helpers."""

    @pytest.mark.parametrize(
        "weight,inches",
        [
            (0, 0.0071),
            (1, 0.0098),
            (2, 0.0138),
            (3, 0.0197),
            (4, 0.0276),
            (5, 0.0394),
            (6, 0.0551),
            (7, 0.0787),
            (42, 0.0098),
            (-1, 0.0098),
        ],
    )
    def test_line_weight(self, weight, inches):
        assert map_line_weight(weight) == pytest.approx(inches * 25.4)

    @pytest.mark.parametrize(
        "color_ref,expected",
        [
            (0x0000FF, "#FF0000"),
            (0x00FF00, "#00FF00"),
            (0xFF0000, "#0000FF"),
            (0x123456, "#563412"),
            (0, "#000000"),
            (-1, "#000000"),
        ],
    )
    def test_colorref_to_hex(self, color_ref, expected):
        assert colorref_to_hex(color_ref) == expected

    def test_dash_array_scales_segments(self):
        dashes = line_font_dash_array([0.00025, 2, 0.003, -0.0015], 4.5)
        assert dashes == pytest.approx([0.0135, 0.00675])

    @pytest.mark.parametrize("font_info", [None, [], [0.00025, 1, 0.01], [0.00025, 0]])
    def test_solid_fonts_have_no_dashes(self, font_info):
        assert line_font_dash_array(font_info, 4.5) is None

    def test_balloon_ids(self):
        assert balloon_group_id("12") == "balloon-12"
        random_id = balloon_group_id("A1")
        assert random_id.startswith("balloon-")
        assert len(random_id) == len("balloon-") + 8
        assert balloon_group_id("") != balloon_group_id("")


class TestArcFlags:
    """Sweep follows the direction; large-arc follows the corrected angle."""

    def test_counter_clockwise_long_way(self):
        # start at angle 0, end at -pi/2: counter-clockwise covers 3/2 pi
        assert arc_flags(1, (10, 0), (0, -10), (0, 0)) == (1, 0)

    def test_clockwise_short_way(self):
        assert arc_flags(-1, (10, 0), (0, -10), (0, 0)) == (0, 1)

    def test_clockwise_long_way(self):
        assert arc_flags(-1, (10, 0), (0, 10), (0, 0)) == (1, 1)

    def test_half_circle_is_not_large(self):
        large, sweep = arc_flags(1, (10, 0), (-10, 1e-9), (0, 0))
        assert sweep == 0
        assert large == 0


# =============================================================================
# MODEL EDGE TESTS
# =============================================================================


class TestPolylines:
    """Tessellated model edges."""

    def test_path_and_bounds(self):
        view = ViewData(name="V1", position=(0.1, 0.1),
                        polylines=polyline([(0, 0, 0), (0.01, 0, 0)]))
        writer = render(view)

        paths = nodes(writer, "path")
        assert len(paths) == 1
        assert paths[0].attributes["d"] == "M 100 197 L 110 197"
        assert paths[0].attributes["stroke"] == "#000000"
        assert paths[0].attributes["stroke-width"] == "0.2489"
        assert "stroke-dasharray" not in paths[0].attributes
        assert writer.bounds == pytest.approx((100, 197, 110, 197))

    def test_view_scale(self):
        view = ViewData(name="V1", scale=2.0, position=(0.0, 0.0),
                        polylines=polyline([(0, 0, 0), (0.01, 0.01, 0)]))
        writer = render(view)
        assert writer.bounds == pytest.approx((0, 277, 20, 297))

    def test_single_point_records_are_skipped(self):
        view = ViewData(name="V1", polylines=polyline([(0, 0, 0)]) + polyline([(0, 0, 0), (0.01, 0, 0)]))
        assert len(nodes(render(view), "path")) == 1

    def test_dashed_line_style(self):
        sheet = make_sheet(line_fonts={3: [0.00025, 2, 0.002, -0.001]})
        view = ViewData(name="V1", polylines=polyline([(0, 0, 0), (0.01, 0, 0)], style=3))
        path = nodes(render(view, sheet=sheet), "path")[0]
        assert path.attributes["stroke-dasharray"] == "0.009 0.0045"

    def test_line_style_scale_option(self):
        sheet = make_sheet(line_fonts={3: [0.00025, 2, 0.002, -0.001]})
        view = ViewData(name="V1", polylines=polyline([(0, 0, 0), (0.01, 0, 0)], style=3))
        options = ExportOptions(line_style_scale_factor=1000.0)
        path = nodes(render(view, sheet=sheet, options=options), "path")[0]
        assert path.attributes["stroke-dasharray"] == "2 1"

    def test_edited_line_style_has_no_dashes(self):
        sheet = make_sheet(line_fonts={-1: [0.00025, 2, 0.002, -0.001]})
        view = ViewData(name="V1", polylines=polyline([(0, 0, 0), (0.01, 0, 0)], style=-1))
        path = nodes(render(view, sheet=sheet), "path")[0]
        assert "stroke-dasharray" not in path.attributes

    def test_colored_stroke(self):
        view = ViewData(name="V1", polylines=polyline([(0, 0, 0), (0.01, 0, 0)], color=0x0000FF, weight=7))
        path = nodes(render(view), "path")[0]
        assert path.attributes["stroke"] == "#FF0000"
        assert path.attributes["stroke-width"] == "1.999"


class TestMultipleWriters:
    """Every emission goes to each writer, which keep separate state."""

    def test_both_writers_receive_shapes(self):
        view = ViewData(name="V1", position=(0.1, 0.1),
                        polylines=polyline([(0, 0, 0), (0.01, 0, 0)]))
        global_writer = SVGWriter(420, SHEET_HEIGHT_MM)
        view_writer = SVGWriter(420, SHEET_HEIGHT_MM)
        global_writer.update_bounds(0, 0)

        render(view, writers=[global_writer, view_writer])

        assert global_writer.shape_count == view_writer.shape_count == 1
        assert global_writer.bounds == pytest.approx((0, 0, 110, 197))
        assert view_writer.bounds == pytest.approx((100, 197, 110, 197))


# =============================================================================
# ANNOTATION TESTS
# =============================================================================


def detail_circle_buffer(center, start, arrows=()):
    values = [1, 0, *center, *start, 0, 0, 0, 0, 0, 0, 0, 0.002, len(arrows)]
    for arrow in arrows:
        values.extend(arrow)
    return values


class TestDetailCircles:

    def test_circle_group(self):
        view = ViewData(name="V1", detail_circle_info=detail_circle_buffer((0.1, 0.1, 0), (0.11, 0.1, 0)))
        writer = render(view)

        groups = groups_with_class(writer, "annotation annotation-detail-circle")
        assert len(groups) == 1
        circle = nodes(writer, "circle")[0]
        assert circle.attributes["cx"] == "100"
        assert circle.attributes["cy"] == "197"
        assert circle.attributes["r"] == "10"
        assert circle.attributes["stroke-width"] == "0.25"
        assert writer.bounds == pytest.approx((90, 187, 110, 207))

    def test_arrows_only_when_enabled(self):
        arrow = [0.1, 0.12, 0, 0.1, 0.11, 0, 0.002, 0.004, 1]
        view = ViewData(name="V1",
                        detail_circle_info=detail_circle_buffer((0.1, 0.1, 0), (0.11, 0.1, 0), [arrow]))
        assert nodes(render(view), "path") == []

        writer = render(view, options=ExportOptions(draw_detail_circle_arrows=True))
        arrows = nodes(writer, "path")
        assert len(arrows) == 1
        assert arrows[0].attributes["fill"] == "#000000"
        assert arrows[0].attributes["d"].startswith("M 100 177 L")
        assert arrows[0].attributes["d"].endswith("Z")

    def test_disabled(self):
        view = ViewData(name="V1", detail_circle_info=detail_circle_buffer((0.1, 0.1, 0), (0.11, 0.1, 0)))
        writer = render(view, options=ExportOptions(draw_detail_circle=False))
        assert nodes(writer, "circle") == []

    def test_connecting_line_for_connected_style(self):
        connected = DetailCircleInfo(name="A", style=4, connecting_line=[0.1, 0.1, 0, 0.2, 0.2, 0])
        loose = DetailCircleInfo(name="B", style=0, connecting_line=[0.1, 0.1, 0, 0.2, 0.2, 0])
        view = ViewData(name="V1", detail_circles=[connected, loose])
        writer = render(view)

        assert len(groups_with_class(writer, "annotation annotation-connecting-line")) == 1
        line = nodes(writer, "line")[0]
        assert (line.attributes["x1"], line.attributes["y1"]) == ("100", "197")
        assert (line.attributes["x2"], line.attributes["y2"]) == ("200", "97")
        # Connecting lines do not contribute to bounds
        assert writer.bounds is None


def break_view(header_style, payload, color=0, count=1, broken=True):
    header = [header_style, color, 0, 0, 1, 0, 0, 0, 0, 0]
    if header_style in (1, 2, 4):
        header[7] = 1
    elif header_style == 3:
        header[8] = 1
    elif header_style == 5:
        header[9] = 1
    return ViewData(name="V1", is_broken=broken, break_line_count=count,
                    break_line_info=header + payload)


class TestBreakLines:

    def test_straight_break_line(self):
        writer = render(break_view(1, [0.1, 0.1, 0, 0.2, 0.1, 0]))
        assert len(groups_with_class(writer, "annotation annotation-break-line")) == 1
        path = nodes(writer, "path")[0]
        assert path.attributes["d"] == "M 100 197 L 200 197"
        assert path.attributes["stroke"] == "#000000"
        assert writer.bounds == pytest.approx((100, 197, 200, 197))

    @pytest.mark.parametrize("color,expected", [(0, "#000000"), (-1, "#000000"), (0x0000FF, "#FF0000")])
    def test_colors(self, color, expected):
        writer = render(break_view(1, [0.1, 0.1, 0, 0.2, 0.1, 0], color=color))
        assert nodes(writer, "path")[0].attributes["stroke"] == expected

    def test_curve_uses_arc_command(self):
        # Direction +1 around (0.1, 0.1) from east to north; angles are measured
        # in output space, where that turn spans 3/2 pi
        writer = render(break_view(3, [1, 0.11, 0.1, 0, 0.1, 0.11, 0, 0.1, 0.1, 0]))
        d = nodes(writer, "path")[0].attributes["d"]
        assert d == "M 110 197 A 10 10 0 1 0 100 187"

    def test_jagged_spline(self):
        writer = render(break_view(5, [3, 0.1, 0.1, 0, 0.15, 0.12, 0, 0.2, 0.1, 0]))
        assert nodes(writer, "path")[0].attributes["d"].count("L") == 2

    def test_not_broken(self):
        writer = render(break_view(1, [0.1, 0.1, 0, 0.2, 0.1, 0], broken=False))
        assert nodes(writer, "g") == [writer.document.node(0)]

    def test_short_buffer_is_ignored(self):
        view = ViewData(name="V1", is_broken=True, break_line_count=1, break_line_info=[1, 0, 0])
        assert groups_with_class(render(view), "annotation annotation-break-line") == []


def balloon(text="3", **overrides):
    values = dict(
        is_bom_balloon=True,
        position=(0.3, 0.3, 0.0),
        text=text,
        has_balloon=True,
        balloon_info=[0.2, 0.1, 0, 0.205, 0.1, 0, 0.005],
        leaders=[[0.2, 0.1, 0, 0.25, 0.15, 0, 0.26, 0.15, 0]],
        text_format=TextFormat(typeface="Arial", char_height=0.0035),
    )
    values.update(overrides)
    return NoteAnnotation(**values)


BOM = MappingProxyType({
    "3": BomRow(item_number="3", part_number="A-100", name="Plate", specification=""),
})


class TestBalloons:

    def test_balloon_group(self):
        writer = render(ViewData(name="V1", annotations=[balloon()]))

        group = groups_with_class(writer, "annotation annotation-balloon")[0]
        assert group.attributes["id"] == "balloon-3"
        assert group.attributes["data-balloon-number"] == "3"
        assert group.attributes["data-content"] == "3"
        assert "data-part-number" not in group.attributes

        circle = nodes(writer, "circle")[0]
        assert circle.attributes["r"] == "5"
        assert len(nodes(writer, "line")) == 2

        text = nodes(writer, "text")[0]
        assert text.text == "3"
        assert (text.attributes["x"], text.attributes["y"]) == ("200", "197")
        assert text.attributes["font-size"] == "3.5"
        assert text.attributes["text-anchor"] == "middle"

    def test_bom_enrichment(self):
        options = ExportOptions(include_bom_metadata=True)
        writer = render(ViewData(name="V1", annotations=[balloon()]), options=options, bom=BOM)
        group = groups_with_class(writer, "annotation annotation-balloon")[0]
        assert group.attributes["data-part-number"] == "A-100"
        assert group.attributes["data-name"] == "Plate"
        assert "data-specification" not in group.attributes

    def test_unmatched_balloon_is_not_enriched(self):
        options = ExportOptions(include_bom_metadata=True)
        writer = render(ViewData(name="V1", annotations=[balloon("8")]), options=options, bom=BOM)
        group = groups_with_class(writer, "annotation annotation-balloon")[0]
        assert group.attributes["id"] == "balloon-8"
        assert "data-part-number" not in group.attributes

    @pytest.mark.parametrize(
        "overrides",
        [
            {"visible": False},
            {"is_bom_balloon": False},
            {"position": None},
            {"display_text_count": 0},
            {"annotation_type": "dimension"},
        ],
    )
    def test_skipped_notes(self, overrides):
        writer = render(ViewData(name="V1", annotations=[balloon(**overrides)]))
        assert groups_with_class(writer, "annotation annotation-balloon") == []

    def test_text_at_raw_position_without_circle(self):
        writer = render(ViewData(name="V1", annotations=[balloon(has_balloon=False)]))
        text = nodes(writer, "text")[0]
        assert (text.attributes["x"], text.attributes["y"]) == ("300", "-3")
        assert nodes(writer, "circle") == []

    def test_non_circular_style_is_not_drawn(self):
        writer = render(ViewData(name="V1", annotations=[balloon(balloon_style=2)]))
        assert nodes(writer, "circle") == []
        assert len(nodes(writer, "text")) == 1

    def test_default_font_size(self):
        writer = render(ViewData(name="V1", annotations=[balloon(text_format=None)]))
        assert nodes(writer, "text")[0].attributes["font-size"] == "8"

    def test_multi_jog_leader_lines(self):
        jog = [[0, 0.2, 0.1, 0, 0.3, 0.1, 0], [0, 0.3, 0.1, 0, 0.3, 0.2, 0]]
        writer = render(ViewData(name="V1", annotations=[balloon(leaders=[], multi_jog_leaders=[jog])]))
        assert len(nodes(writer, "line")) == 2

    def test_text_bounds_are_estimated(self):
        writer = render(ViewData(name="V1", annotations=[balloon(has_balloon=False, text="10")]))
        # 2 characters at 3.5 mm: 4.2 wide, 4.2 high, centred on (300, -3)
        assert writer.bounds == pytest.approx((297.9, -5.1, 302.1, -0.9))


class TestSectionLinesAndLabels:

    def test_section_lines_off_by_default(self):
        arrow = [0, 0, 0, 0, 0.01, 0, 0.002, 0.004, 1]
        data = [1, 0, 1, 0, 0, 0, 0, 0.1, 0, 0] + arrow + arrow + [0, 0.12, 0, 0.1, 0.12, 0, 0.005]
        view = ViewData(name="V1", section_line_info=data, section_line_labels=["A", "A"])
        assert nodes(render(view), "line") == []

        writer = render(view, options=ExportOptions(draw_section_lines=True))
        assert len(groups_with_class(writer, "annotation annotation-section-line")) == 1
        assert len(nodes(writer, "line")) == 3
        texts = nodes(writer, "text")
        assert [t.text for t in texts] == ["A", "A"]
        assert texts[0].attributes["font-size"] == "5"

    def test_detail_view_label(self):
        note = NoteAnnotation(position=(0.1, 0.1, 0), text="DETAIL A",
                              property_linked_text="$PRPVIEW:VLNAME",
                              text_justification=TextJustification.CENTER,
                              text_format=TextFormat(char_height=0.005, bold=True))
        view = ViewData(name="Detail A", view_type="detail", annotations=[note])
        assert nodes(render(view), "text") == []

        writer = render(view, options=ExportOptions(draw_detail_view_label=True))
        assert len(groups_with_class(writer, "annotation annotation-detail-view-label")) == 1
        text = nodes(writer, "text")[0]
        assert text.attributes["text-anchor"] == "middle"
        assert text.attributes["dominant-baseline"] == "hanging"
        assert text.attributes["font-weight"] == "bold"

"""
View Renderer Module

Renders one drawing view into one or more SVG writers: decodes the view's
geometry buffers, maps every point to output space and emits the shapes,
updating the bounds of each writer for every point that carries visible ink.

Rendered content, in drawing order:
- Detail circles (and, when enabled, their arrows and labels)
- Connecting lines between detail circles and their detail views
- Section lines (disabled by default)
- Detail view labels (disabled by default)
- Tessellated model edges
- Break lines
- BOM balloons with their leaders, enriched with BOM data
"""

import logging
import math
import uuid
from enum import IntEnum
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from .bom import BomRow
from .host import (
    BalloonStyle, DetailViewStyle, NoteAnnotation, SheetData, TextJustification,
    TextPosition, ViewData,
)
from .options import ExportOptions
from .record_decoder import (
    BreakLineGroup, BreakLineStyle, DetailArrow, decode_break_lines,
    decode_detail_circles, decode_polylines, decode_section_lines,
)
from .svg_writer import PathBuilder, SVGWriter
from .transforms import CoordinatePipeline, ViewPlacement, meters_to_mm

logger = logging.getLogger(__name__)

INCH_TO_MM = 25.4

DEFAULT_COLOR = "#000000"
DEFAULT_FONT_FAMILY = "Arial"
DEFAULT_BALLOON_FONT_SIZE = 8.0  # mm
DEFAULT_SECTION_FONT_SIZE = 3.5  # mm
ANNOTATION_STROKE_WIDTH = 0.25  # mm

# Rough text extent estimate used for bounds: width per character and line height
CHAR_WIDTH_RATIO = 0.6
LINE_HEIGHT_RATIO = 1.2


class LineWeight(IntEnum):
    """Named line weights of the host"""
    THIN = 0
    NORMAL = 1
    THICK = 2
    THICK2 = 3
    THICK3 = 4
    THICK4 = 5
    THICK5 = 6
    THICK6 = 7


# Host defaults, in inches
LINE_WEIGHT_INCHES = {
    LineWeight.THIN: 0.0071,
    LineWeight.NORMAL: 0.0098,
    LineWeight.THICK: 0.0138,
    LineWeight.THICK2: 0.0197,
    LineWeight.THICK3: 0.0276,
    LineWeight.THICK4: 0.0394,
    LineWeight.THICK5: 0.0551,
    LineWeight.THICK6: 0.0787,
}


def map_line_weight(value: float) -> float:
    """
    Convert a host line weight to a stroke width in mm.

    Unknown values fall back to the normal weight.
    """
    try:
        weight = LineWeight(int(value))
    except (ValueError, OverflowError):
        weight = LineWeight.NORMAL
    return LINE_WEIGHT_INCHES[weight] * INCH_TO_MM


def colorref_to_hex(color_ref: int) -> str:
    """Convert a COLORREF (0x00BBGGRR) to "#RRGGBB"; -1 means default black"""
    if color_ref == -1:
        return DEFAULT_COLOR
    r = color_ref & 0xFF
    g = (color_ref >> 8) & 0xFF
    b = (color_ref >> 16) & 0xFF
    return f"#{r:02X}{g:02X}{b:02X}"


def arc_flags(direction: float, start: Tuple[float, float], end: Tuple[float, float],
              center: Tuple[float, float]) -> Tuple[int, int]:
    """
    SVG large-arc and sweep flags for an arc given in output space.

    Args:
        direction: 1 for counter-clockwise, -1 for clockwise (sheet orientation)
        start: Arc start point
        end: Arc end point
        center: Arc center

    Returns:
        (large_arc_flag, sweep_flag)
    """
    # Y is flipped in output space, so CCW becomes sweep 0
    sweep = 0 if direction > 0 else 1

    start_angle = math.atan2(start[1] - center[1], start[0] - center[0])
    end_angle = math.atan2(end[1] - center[1], end[0] - center[0])
    angle_diff = end_angle - start_angle
    if sweep == 1 and angle_diff > 0:
        angle_diff -= 2 * math.pi
    if sweep == 0 and angle_diff < 0:
        angle_diff += 2 * math.pi

    large_arc = 1 if abs(angle_diff) > math.pi else 0
    return large_arc, sweep


def line_font_dash_array(font_info: Optional[Sequence[float]],
                         scale_factor: float) -> Optional[List[float]]:
    """
    Dash array for a line font description.

    font_info is [line weight, segment count, segment lengths...] where a
    negative length is a gap. Solid fonts (one segment or fewer) have no
    dash array.
    """
    if not font_info or len(font_info) < 2:
        return None
    segment_count = int(font_info[1])
    if segment_count <= 1:
        return None
    segments = font_info[2:2 + segment_count]
    return [abs(v) * scale_factor for v in segments]


def balloon_group_id(text: Optional[str]) -> str:
    """Stable id for numeric balloons, a random one otherwise"""
    if text and text.isdecimal():
        return f"balloon-{text}"
    return f"balloon-{uuid.uuid4().hex[:8]}"


def map_justification_to_anchor(justification: TextJustification) -> str:
    return {
        TextJustification.LEFT: "start",
        TextJustification.CENTER: "middle",
        TextJustification.RIGHT: "end",
    }.get(justification, "start")


def map_ref_position(ref_position: TextPosition) -> Tuple[str, str]:
    """Text reference position to (dominant-baseline, text-anchor)"""
    return {
        TextPosition.UPPER_LEFT: ("hanging", "start"),
        TextPosition.UPPER_RIGHT: ("hanging", "end"),
        TextPosition.UPPER_CENTER: ("hanging", "middle"),
        TextPosition.CENTER: ("middle", "middle"),
        TextPosition.LOWER_LEFT: ("auto", "start"),
        TextPosition.LOWER_RIGHT: ("auto", "end"),
    }.get(ref_position, ("auto", "start"))


class WriterFanout:
    """
    Repeats every writer call on each target writer.

    Each writer keeps its own bounds and group stack; the fan-out only saves
    the caller from looping.
    """

    def __init__(self, writers: Sequence[SVGWriter]):
        self.writers = list(writers)

    def __getattr__(self, name):
        methods = [getattr(writer, name) for writer in self.writers]

        def call(*args, **kwargs):
            return [method(*args, **kwargs) for method in methods]

        return call


class ViewRenderer:
    """
    Render drawing views of one sheet.

    Usage:
        renderer = ViewRenderer(sheet, CoordinatePipeline(sheet_height_mm), options, bom)
        renderer.render(view, [global_writer, view_writer])
    """

    def __init__(self, sheet: SheetData, pipeline: CoordinatePipeline,
                 options: Optional[ExportOptions] = None,
                 bom: Optional[Mapping[str, BomRow]] = None):
        self.sheet = sheet
        self.pipeline = pipeline
        self.options = options or ExportOptions()
        self.bom = bom if bom is not None else {}

    def render(self, view: ViewData, writers: Sequence[SVGWriter]):
        """
        Render one view into every writer of `writers`.

        Args:
            view: View to render
            writers: Target writers; the first one is the sheet-wide writer
        """
        out = WriterFanout(writers)
        logger.debug("Rendering view '%s' into %d writer(s)", view.name, len(writers))

        if self.options.draw_detail_circle:
            self._render_detail_circles(view, out)
            self._render_detail_circle_objects(view, out)
        if self.options.draw_section_lines:
            self._render_section_lines(view, out)
        if view.is_detail_view and self.options.draw_detail_view_label:
            self._render_detail_view_labels(view, out)

        self._render_polylines(view, out)
        self._render_break_lines(view, out)
        self._render_balloons(view, out)

    # ------------------------------------------------------------------
    # Model edges
    # ------------------------------------------------------------------

    def _placement(self, view: ViewData) -> ViewPlacement:
        return ViewPlacement(
            scale=view.scale,
            origin_x=meters_to_mm(view.position[0]),
            origin_y=meters_to_mm(view.position[1]),
        )

    def _dash_array(self, line_style: int) -> Optional[List[float]]:
        # -1: the line was edited by hand; its font is not resolved yet
        if line_style == -1:
            return None
        font_info = self.sheet.get_line_font_info(line_style)
        return line_font_dash_array(font_info, self.options.line_style_scale_factor)

    def _render_polylines(self, view: ViewData, out: WriterFanout):
        placement = self._placement(view)
        for record in decode_polylines(view.polylines):
            if len(record.points) < 2:
                continue

            color = colorref_to_hex(record.line_color)
            stroke_width = map_line_weight(record.line_weight)
            dash_array = self._dash_array(record.line_style)

            path = PathBuilder()
            for i, point in enumerate(record.points):
                x, y = self.pipeline.view_to_output(placement, point.x, point.y)
                if i == 0:
                    path.move_to(x, y)
                else:
                    path.line_to(x, y)
                out.update_bounds(x, y)

            out.add_path(str(path), color, stroke_width, dash_array=dash_array)

    # ------------------------------------------------------------------
    # Detail circles
    # ------------------------------------------------------------------

    def _render_detail_circles(self, view: ViewData, out: WriterFanout):
        if view.detail_circle_count is not None and view.detail_circle_count <= 0:
            return
        circles = decode_detail_circles(view.detail_circle_info, view.detail_circle_count)
        for circle in circles:
            cx, cy = self.pipeline.sheet_to_output(circle.center.x, circle.center.y)
            radius = meters_to_mm(circle.radius)

            out.start_group(class_name="annotation annotation-detail-circle")
            out.add_circle(cx, cy, radius, DEFAULT_COLOR, ANNOTATION_STROKE_WIDTH)
            out.update_bounds(cx - radius, cy - radius)
            out.update_bounds(cx + radius, cy + radius)

            if self.options.draw_detail_circle_arrows:
                for arrow in circle.arrows:
                    self._render_detail_arrow(arrow, out)

            out.end_group()

    def _render_detail_arrow(self, arrow: DetailArrow, out: WriterFanout):
        tip_x, tip_y = self.pipeline.sheet_to_output(arrow.tip.x, arrow.tip.y)
        comp_x, comp_y = self.pipeline.sheet_to_output(arrow.companion.x, arrow.companion.y)
        width = meters_to_mm(arrow.width)
        height = meters_to_mm(arrow.height)

        dir_x = tip_x - comp_x
        dir_y = tip_y - comp_y
        length = math.hypot(dir_x, dir_y)
        if length <= 0:
            return
        dir_x /= length
        dir_y /= length
        perp_x, perp_y = -dir_y, dir_x

        base_x = tip_x - dir_x * height
        base_y = tip_y - dir_y * height
        half_width = width / 2

        path = (PathBuilder()
                .move_to(tip_x, tip_y)
                .line_to(base_x + perp_x * half_width, base_y + perp_y * half_width)
                .line_to(base_x - perp_x * half_width, base_y - perp_y * half_width)
                .close())
        out.add_path(str(path), DEFAULT_COLOR, ANNOTATION_STROKE_WIDTH, fill=DEFAULT_COLOR)

    def _render_detail_circle_objects(self, view: ViewData, out: WriterFanout):
        for detail in view.detail_circles:
            if self.options.draw_detail_circle_label and detail.label and detail.label_position:
                x, y = self.pipeline.sheet_to_output(*detail.label_position[:2])
                out.start_group(class_name="annotation annotation-detail-circle-label")
                out.add_text(x, y, detail.label, DEFAULT_FONT_FAMILY,
                             meters_to_mm(detail.char_height), DEFAULT_COLOR, 0, "middle")
                out.end_group()

            if not self.options.draw_detail_view_connecting_line:
                continue
            if detail.style != DetailViewStyle.CONNECTED:
                continue
            line = detail.connecting_line
            if line is None or len(line) < 6:
                continue
            ax, ay = self.pipeline.sheet_to_output(line[0], line[1])
            bx, by = self.pipeline.sheet_to_output(line[3], line[4])
            out.start_group(class_name="annotation annotation-connecting-line")
            out.add_line(ax, ay, bx, by, DEFAULT_COLOR, ANNOTATION_STROKE_WIDTH)
            out.end_group()

    # ------------------------------------------------------------------
    # Section lines and detail view labels
    # ------------------------------------------------------------------

    def _render_section_lines(self, view: ViewData, out: WriterFanout):
        labels = view.section_line_labels
        for index, section in enumerate(decode_section_lines(view.section_line_info)):
            out.start_group(class_name="annotation annotation-section-line")

            for segment in section.segments:
                self._add_sheet_line(out, segment.start, segment.end)
            for arrow in section.arrows:
                self._add_sheet_line(out, arrow.start, arrow.end)

            text_height = meters_to_mm(section.text_height)
            font_size = text_height if text_height > 0 else DEFAULT_SECTION_FONT_SIZE
            for offset, position in enumerate(section.text_positions):
                label_index = index * 2 + offset
                if label_index >= len(labels) or not labels[label_index]:
                    continue
                x, y = self.pipeline.sheet_to_output(position.x, position.y)
                out.add_text(x, y, labels[label_index], DEFAULT_FONT_FAMILY, font_size,
                             DEFAULT_COLOR, 0, "middle")
                out.update_bounds(x, y)

            out.end_group()

    def _add_sheet_line(self, out: WriterFanout, start, end):
        sx, sy = self.pipeline.sheet_to_output(start.x, start.y)
        ex, ey = self.pipeline.sheet_to_output(end.x, end.y)
        out.add_line(sx, sy, ex, ey, DEFAULT_COLOR, ANNOTATION_STROKE_WIDTH)
        out.update_bounds(sx, sy)
        out.update_bounds(ex, ey)

    def _render_detail_view_labels(self, view: ViewData, out: WriterFanout):
        for note in view.annotations:
            if not note.visible or not note.is_note or note.is_bom_balloon:
                continue
            linked = note.property_linked_text or ""
            if "VLNAME" not in linked and "VLLABEL" not in linked:
                continue

            text_format = note.text_format
            typeface = text_format.typeface if text_format else DEFAULT_FONT_FAMILY
            bold = text_format.bold if text_format else False
            italic = text_format.italic if text_format else False

            if len(note.text_lines) > 1:
                out.start_group(class_name="annotation annotation-detail-view-label")
                for line in note.text_lines:
                    if not line.text or line.position is None:
                        continue
                    x, y = self.pipeline.sheet_to_output(line.position[0], line.position[1])
                    baseline, anchor = map_ref_position(line.ref_position)
                    out.add_text(x, y, line.text, typeface, meters_to_mm(line.height),
                                 DEFAULT_COLOR, 0, anchor, baseline, bold, italic)
                out.end_group()
                continue

            if not note.text or note.position is None:
                continue
            x, y = self.pipeline.sheet_to_output(note.position[0], note.position[1])
            font_size = meters_to_mm(text_format.char_height) if text_format else DEFAULT_BALLOON_FONT_SIZE
            anchor = map_justification_to_anchor(note.text_justification)
            out.start_group(class_name="annotation annotation-detail-view-label")
            out.add_text(x, y, note.text, typeface, font_size, DEFAULT_COLOR, 0, anchor,
                         "hanging", bold, italic)
            out.end_group()

    # ------------------------------------------------------------------
    # Break lines
    # ------------------------------------------------------------------

    def _render_break_lines(self, view: ViewData, out: WriterFanout):
        if not view.is_broken or view.break_line_count < 1:
            return
        data = view.break_line_info
        if data is None or len(data) < 10:
            return

        groups = decode_break_lines(data, view.break_line_count)
        out.start_group(class_name="annotation annotation-break-line")
        for group in groups:
            self._render_break_line_group(group, out)
        out.end_group()

    def _render_break_line_group(self, group: BreakLineGroup, out: WriterFanout):
        header = group.header
        color = DEFAULT_COLOR if header.color in (0, -1) else colorref_to_hex(header.color)
        stroke_width = map_line_weight(header.line_weight)

        style = group.style
        if style in (BreakLineStyle.STRAIGHT, BreakLineStyle.ZIGZAG, BreakLineStyle.SMALL_ZIGZAG):
            for start, end in group.segments:
                self._add_point_path(out, (start, end), color, stroke_width)
        elif style == BreakLineStyle.CURVE:
            for arc in group.arcs:
                start = self.pipeline.sheet_to_output(arc.start.x, arc.start.y)
                end = self.pipeline.sheet_to_output(arc.end.x, arc.end.y)
                center = self.pipeline.sheet_to_output(arc.center.x, arc.center.y)
                radius = math.hypot(start[0] - center[0], start[1] - center[1])
                large_arc, sweep = arc_flags(arc.direction, start, end, center)

                path = PathBuilder().move_to(*start).arc_to(radius, radius, 0, large_arc, sweep, *end)
                out.add_path(str(path), color, stroke_width)
                out.update_bounds(*start)
                out.update_bounds(*end)
        elif style == BreakLineStyle.JAGGED:
            for points in group.splines:
                self._add_point_path(out, points, color, stroke_width)

    def _add_point_path(self, out: WriterFanout, points, color: str, stroke_width: float):
        path = PathBuilder()
        for i, point in enumerate(points):
            x, y = self.pipeline.sheet_to_output(point.x, point.y)
            if i == 0:
                path.move_to(x, y)
            else:
                path.line_to(x, y)
            out.update_bounds(x, y)
        out.add_path(str(path), color, stroke_width)

    # ------------------------------------------------------------------
    # Balloons
    # ------------------------------------------------------------------

    def balloon_data_attributes(self, text: str) -> Dict[str, str]:
        attributes = {
            "balloon-number": text,
            "content": text,
        }
        if not self.options.include_bom_metadata:
            return attributes

        row = self.bom.get(text)
        if row is None:
            return attributes
        if row.part_number:
            attributes["part-number"] = row.part_number
        if row.name:
            attributes["name"] = row.name
        if row.specification:
            attributes["specification"] = row.specification
        return attributes

    def _render_balloons(self, view: ViewData, out: WriterFanout):
        for note in view.annotations:
            if not note.visible or not note.is_note:
                continue
            if not note.is_bom_balloon or note.position is None:
                continue
            # Hidden text, e.g. balloons inside the removed part of a broken view
            if note.display_text_count == 0:
                continue
            self._render_balloon(note, out)

    def _render_balloon(self, note: NoteAnnotation, out: WriterFanout):
        text = note.text or ""
        color = colorref_to_hex(note.color)
        text_x, text_y = self.pipeline.sheet_to_output(note.position[0], note.position[1])

        out.start_group(balloon_group_id(text), "annotation annotation-balloon",
                        self.balloon_data_attributes(text))

        if note.has_balloon:
            info = note.balloon_info
            if info is not None and len(info) >= 7 and note.balloon_style == BalloonStyle.CIRCULAR:
                cx, cy = self.pipeline.sheet_to_output(info[0], info[1])
                radius = meters_to_mm(info[6])
                out.add_circle(cx, cy, radius, color, ANNOTATION_STROKE_WIDTH)
                text_x, text_y = cx, cy
                out.update_bounds(cx - radius, cy - radius)
                out.update_bounds(cx + radius, cy + radius)
            # Other balloon shapes are not drawn

            for leader in note.leaders:
                if leader is None or len(leader) < 6:
                    continue
                for i in range(0, len(leader) - 3, 3):
                    x1, y1 = self.pipeline.sheet_to_output(leader[i], leader[i + 1])
                    x2, y2 = self.pipeline.sheet_to_output(leader[i + 3], leader[i + 4])
                    out.add_line(x1, y1, x2, y2, color, ANNOTATION_STROKE_WIDTH)
                    out.update_bounds(x1, y1)
                    out.update_bounds(x2, y2)

            for jog_leader in note.multi_jog_leaders:
                for line in jog_leader:
                    if line is None or len(line) < 7:
                        continue
                    sx, sy = self.pipeline.sheet_to_output(line[1], line[2])
                    ex, ey = self.pipeline.sheet_to_output(line[4], line[5])
                    out.add_line(sx, sy, ex, ey, color, ANNOTATION_STROKE_WIDTH)

        if text.strip():
            self._render_balloon_text(note, text, text_x, text_y, color, out)

        out.end_group()

    def _render_balloon_text(self, note: NoteAnnotation, text: str, x: float, y: float,
                             color: str, out: WriterFanout):
        font_size = DEFAULT_BALLOON_FONT_SIZE
        font_family = DEFAULT_FONT_FAMILY
        bold = italic = False
        if note.text_format is not None:
            font_size = meters_to_mm(note.text_format.char_height)
            font_family = note.text_format.typeface or DEFAULT_FONT_FAMILY
            bold = note.text_format.bold
            italic = note.text_format.italic

        out.add_text(x, y, text, font_family, font_size, color, 0, "middle",
                     bold=bold, italic=italic)

        text_width = len(text) * font_size * CHAR_WIDTH_RATIO
        text_height = font_size * LINE_HEIGHT_RATIO
        out.update_bounds(x - text_width / 2, y - text_height / 2)
        out.update_bounds(x + text_width / 2, y + text_height / 2)

"""
Geometry Record Decoder Module

Decodes the flat numeric buffers returned by the CAD host into structured
geometry records. Every buffer is a run of 64-bit floats holding variable-length
records back to back, with no up-front record count for polylines.

Supported record kinds:
- Tessellated polylines and arcs (view space, meters)
- Detail circles with their optional arrowheads (sheet space, meters)
- Break lines in five style variants (sheet space, meters)
- Section lines (sheet space, meters)

Decoding never raises on malformed input: it stops at the first record that is
invalid or truncated and returns the records decoded so far.
"""

import logging
import math
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Dict, Optional, Sequence, Tuple

import numpy as np

logger = logging.getLogger(__name__)


# Type(1) + GeomDataSize(1) + 6 metadata values + NumPolyPoints(1)
POLYLINE_MIN_RECORD_SIZE = 9

# Encoder artifact: a geometry length of 17 is emitted for records carrying no
# auxiliary data at all.
POLYLINE_BOGUS_GEOM_SIZE = 17

BREAK_LINE_HEADER_SIZE = 10
DETAIL_CIRCLE_SIZE = 16
DETAIL_ARROW_SIZE = 9
SECTION_ARROW_SIZE = 9


class PolylineType(IntEnum):
    """Underlying geometry type of a tessellated polyline record"""
    POLYLINE = 0
    ARC_OR_CIRCLE = 1


class BreakLineStyle(IntEnum):
    """Break line styles as tagged by the host"""
    STRAIGHT = 1
    ZIGZAG = 2
    CURVE = 3
    SMALL_ZIGZAG = 4
    JAGGED = 5


def _as_int(value: float) -> int:
    """Truncate like the host does; NaN and infinities become 0"""
    if not math.isfinite(value):
        return 0
    return int(value)


@dataclass(frozen=True)
class Point3D:
    """3D point, in meters"""
    x: float
    y: float
    z: float = 0.0

    def __iter__(self):
        yield self.x
        yield self.y
        yield self.z

    def distance_xy(self, other: 'Point3D') -> float:
        """Planar distance to another point (Z ignored)"""
        return math.hypot(self.x - other.x, self.y - other.y)


class FlatReader:
    """
    Cursor over a flat numeric buffer.

    All reads are checked: a read that would run past the end of the buffer
    returns None (or False for skip) and leaves the cursor where it was, so
    callers can stop and keep what they already decoded.
    """

    def __init__(self, data: Optional[Sequence[float]], start: int = 0):
        if data is None:
            self._data = np.zeros(0, dtype=float)
        else:
            try:
                self._data = np.asarray(data, dtype=float).ravel()
            except (TypeError, ValueError):
                logger.warning("Ignoring non-numeric buffer of %d values", len(data))
                self._data = np.zeros(0, dtype=float)
        self.index = start

    def __len__(self) -> int:
        return len(self._data)

    @property
    def remaining(self) -> int:
        """Number of values left after the cursor"""
        return max(0, len(self._data) - self.index)

    def has(self, count: int) -> bool:
        return count >= 0 and self.remaining >= count

    def peek(self) -> Optional[float]:
        if not self.has(1):
            return None
        return float(self._data[self.index])

    def read(self) -> Optional[float]:
        if not self.has(1):
            return None
        value = float(self._data[self.index])
        self.index += 1
        return value

    def read_int(self) -> Optional[int]:
        if not self.has(1) or not math.isfinite(self._data[self.index]):
            return None
        return int(self.read())

    def take(self, count: int) -> Optional[Tuple[float, ...]]:
        """Read `count` values at once"""
        if not self.has(count):
            return None
        values = tuple(float(v) for v in self._data[self.index:self.index + count])
        self.index += count
        return values

    def read_point(self) -> Optional[Point3D]:
        values = self.take(3)
        if values is None:
            return None
        return Point3D(*values)

    def read_points(self, count: int) -> Optional[Tuple[Point3D, ...]]:
        values = self.take(3 * count) if count >= 0 else None
        if values is None:
            return None
        return tuple(Point3D(*values[i:i + 3]) for i in range(0, len(values), 3))

    def skip(self, count: int) -> bool:
        if not self.has(count):
            return False
        self.index += count
        return True


# =============================================================================
# Polylines
# =============================================================================


@dataclass(frozen=True)
class PolylineRecord:
    """
    One record of the polyline buffer.

    For arcs, geom_data holds [center xyz, start xyz, end xyz, normal xyz].
    Points are the tessellated (x, y, z) triplets in view space, meters.
    """
    kind: PolylineType
    geom_data: Tuple[float, ...]
    line_color: int
    line_style: int
    line_font: int
    line_weight: float
    layer_id: int
    layer_override: int
    points: Tuple[Point3D, ...]


def decode_polylines(data: Optional[Sequence[float]]) -> Tuple[PolylineRecord, ...]:
    """
    Decode a polyline buffer into records.

    Termination is inferred: decoding stops when fewer values remain than a
    minimal record needs, when the type tag is neither 0 nor 1, or when a
    declared payload does not fit. Records without points are consumed but
    not returned, so trailing zero padding adds nothing.

    Args:
        data: Flat buffer as returned by the host (may be None or empty)

    Returns:
        Tuple of decoded records, in buffer order
    """
    reader = FlatReader(data)
    records = []

    while reader.remaining > 0:
        if not reader.has(POLYLINE_MIN_RECORD_SIZE):
            break

        type_value = reader.peek()
        if type_value not in (0.0, 1.0):
            break
        reader.read()
        kind = PolylineType(int(type_value))

        geom_size = reader.read_int()
        if geom_size == POLYLINE_BOGUS_GEOM_SIZE:
            geom_size = 0
        if geom_size is None or geom_size < 0 or not reader.has(geom_size + 7):
            break

        geom_data = reader.take(geom_size)
        line_color, line_style, line_font, line_weight, layer_id, layer_override = reader.take(6)

        point_count = reader.read_int()
        if point_count is None or point_count < 0:
            break
        points = reader.read_points(point_count)
        if points is None:
            break
        if point_count == 0:
            # Zero padding after the last record decodes as empty records
            continue

        records.append(PolylineRecord(
            kind=kind,
            geom_data=geom_data,
            line_color=_as_int(line_color),
            line_style=_as_int(line_style),
            line_font=_as_int(line_font),
            line_weight=line_weight,
            layer_id=_as_int(layer_id),
            layer_override=_as_int(layer_override),
            points=points,
        ))

    if reader.remaining > 0:
        logger.debug("Polyline decoding stopped at index %d of %d (%d records)",
                     reader.index, len(reader), len(records))

    return tuple(records)


# =============================================================================
# Detail circles
# =============================================================================


@dataclass(frozen=True)
class DetailArrow:
    """Arrowhead on a broken detail circle"""
    tip: Point3D
    companion: Point3D
    width: float   # meters
    height: float  # meters
    style: int


@dataclass(frozen=True)
class DetailCircle:
    """Reference circle marking the region magnified by a detail view"""
    layer: int
    center: Point3D
    start: Point3D
    end: Point3D
    line_type: int
    label_position: Point3D
    text_height: float  # meters
    arrows: Tuple[DetailArrow, ...] = ()

    @property
    def radius(self) -> float:
        return self.center.distance_xy(self.start)


def decode_detail_circles(data: Optional[Sequence[float]],
                          count: Optional[int] = None) -> Tuple[DetailCircle, ...]:
    """
    Decode a detail circle buffer.

    Layout: [circle count, then per circle: layer, center xyz, start xyz,
    end xyz, line type, text position xyz, text height, arrow count,
    then arrow count x (tip xyz, companion xyz, width, height, style)].

    Args:
        data: Flat buffer
        count: Number of circles, if known from the host. Defaults to data[0].

    Returns:
        Tuple of decoded detail circles
    """
    reader = FlatReader(data)
    header_count = reader.read_int()
    if header_count is None:
        return ()
    if count is None:
        count = header_count

    circles = []
    for _ in range(max(0, count)):
        values = reader.take(DETAIL_CIRCLE_SIZE)
        if values is None:
            logger.debug("Detail circle buffer truncated after %d circles", len(circles))
            break

        arrow_count = _as_int(values[15])
        arrows = []
        truncated = False
        for _ in range(max(0, arrow_count)):
            arrow_values = reader.take(DETAIL_ARROW_SIZE)
            if arrow_values is None:
                truncated = True
                break
            arrows.append(DetailArrow(
                tip=Point3D(*arrow_values[0:3]),
                companion=Point3D(*arrow_values[3:6]),
                width=arrow_values[6],
                height=arrow_values[7],
                style=_as_int(arrow_values[8]),
            ))
        if truncated:
            logger.debug("Detail circle arrows truncated after %d circles", len(circles))
            break

        circles.append(DetailCircle(
            layer=_as_int(values[0]),
            center=Point3D(*values[1:4]),
            start=Point3D(*values[4:7]),
            end=Point3D(*values[7:10]),
            line_type=_as_int(values[10]),
            label_position=Point3D(*values[11:14]),
            text_height=values[14],
            arrows=tuple(arrows),
        ))

    return tuple(circles)


# =============================================================================
# Break lines
# =============================================================================


@dataclass(frozen=True)
class BreakLineHeader:
    """Fixed 10-value header shared by every break line group"""
    style: int
    color: int
    line_type: int
    line_style: int
    line_weight: int
    layer_id: int
    layer_override: int
    segment_count: int
    arc_count: int
    spline_count: int


@dataclass(frozen=True)
class BreakArc:
    """Arc of a curved break line; direction is 1 for CCW, -1 for CW"""
    direction: float
    start: Point3D
    end: Point3D
    center: Point3D


@dataclass(frozen=True)
class BreakLineGroup:
    """
    One break line group.

    Only the payload matching the header style is populated:
    segments for straight/zigzag styles, arcs for curves, splines for jagged.
    """
    header: BreakLineHeader
    segments: Tuple[Tuple[Point3D, Point3D], ...] = ()
    arcs: Tuple[BreakArc, ...] = ()
    splines: Tuple[Tuple[Point3D, ...], ...] = ()

    @property
    def style(self) -> Optional[BreakLineStyle]:
        try:
            return BreakLineStyle(self.header.style)
        except ValueError:
            return None


def _decode_break_segments(reader: FlatReader, header: BreakLineHeader) -> Optional[BreakLineGroup]:
    segments = []
    for _ in range(max(0, header.segment_count)):
        start = reader.read_point()
        end = reader.read_point()
        if start is None or end is None:
            return None
        segments.append((start, end))
    return BreakLineGroup(header=header, segments=tuple(segments))


def _decode_break_arcs(reader: FlatReader, header: BreakLineHeader) -> Optional[BreakLineGroup]:
    arcs = []
    for _ in range(max(0, header.arc_count)):
        values = reader.take(10)
        if values is None:
            return None
        arcs.append(BreakArc(
            direction=values[0],
            start=Point3D(*values[1:4]),
            end=Point3D(*values[4:7]),
            center=Point3D(*values[7:10]),
        ))
    return BreakLineGroup(header=header, arcs=tuple(arcs))


def _decode_break_splines(reader: FlatReader, header: BreakLineHeader) -> Optional[BreakLineGroup]:
    splines = []
    for _ in range(max(0, header.spline_count)):
        point_count = reader.read_int()
        if point_count is None or point_count < 0:
            return None
        points = reader.read_points(point_count)
        if points is None:
            return None
        # Too short to draw; consumed so the cursor stays aligned
        if point_count < 2:
            continue
        splines.append(points)
    return BreakLineGroup(header=header, splines=tuple(splines))


_BREAK_LINE_DECODERS: Dict[BreakLineStyle, Callable[[FlatReader, BreakLineHeader], Optional[BreakLineGroup]]] = {
    BreakLineStyle.STRAIGHT: _decode_break_segments,
    BreakLineStyle.ZIGZAG: _decode_break_segments,
    BreakLineStyle.SMALL_ZIGZAG: _decode_break_segments,
    BreakLineStyle.CURVE: _decode_break_arcs,
    BreakLineStyle.JAGGED: _decode_break_splines,
}


def decode_break_lines(data: Optional[Sequence[float]], count: int) -> Tuple[BreakLineGroup, ...]:
    """
    Decode a break line buffer holding `count` groups.

    Each group is a 10-value header (style, color, line type, line style,
    line weight, layer id, layer override, segment count, arc count,
    spline count) followed by a payload whose shape depends on the style.

    Args:
        data: Flat buffer
        count: Number of break line groups reported by the host

    Returns:
        Tuple of decoded groups; a truncated group ends decoding
    """
    reader = FlatReader(data)
    groups = []

    for _ in range(max(0, count)):
        values = reader.take(BREAK_LINE_HEADER_SIZE)
        if values is None:
            break
        header = BreakLineHeader(*(_as_int(v) for v in values))

        try:
            decoder = _BREAK_LINE_DECODERS[BreakLineStyle(header.style)]
        except ValueError:
            groups.append(BreakLineGroup(header=header))
            continue

        group = decoder(reader, header)
        if group is None:
            logger.debug("Break line group %d truncated", len(groups))
            break
        groups.append(group)

    return tuple(groups)


# =============================================================================
# Section lines
# =============================================================================


@dataclass(frozen=True)
class SectionSegment:
    line_type: int
    start: Point3D
    end: Point3D


@dataclass(frozen=True)
class SectionArrow:
    start: Point3D
    end: Point3D
    width: float
    height: float
    style: int


@dataclass(frozen=True)
class SectionLine:
    """Cutting line of a section view with its two arrows and labels"""
    layer: int
    segments: Tuple[SectionSegment, ...]
    arrows: Tuple[SectionArrow, SectionArrow]
    text_positions: Tuple[Point3D, Point3D]
    text_height: float


def _read_section_arrow(reader: FlatReader) -> Optional[SectionArrow]:
    values = reader.take(SECTION_ARROW_SIZE)
    if values is None:
        return None
    return SectionArrow(
        start=Point3D(*values[0:3]),
        end=Point3D(*values[3:6]),
        width=values[6],
        height=values[7],
        style=_as_int(values[8]),
    )


def decode_section_lines(data: Optional[Sequence[float]]) -> Tuple[SectionLine, ...]:
    """
    Decode a section line buffer.

    Layout: [count, layer, then per line: segment count,
    segment count x (line type, start xyz, end xyz), arrow 1 (9), arrow 2 (9),
    text point 1 xyz, text point 2 xyz, text height].
    """
    reader = FlatReader(data)
    count = reader.read_int()
    layer = reader.read_int()
    if count is None or layer is None:
        return ()

    lines = []
    for _ in range(max(0, count)):
        segment_count = reader.read_int()
        if segment_count is None or segment_count < 0:
            break

        segments = []
        for _ in range(segment_count):
            values = reader.take(7)
            if values is None:
                break
            segments.append(SectionSegment(
                line_type=_as_int(values[0]),
                start=Point3D(*values[1:4]),
                end=Point3D(*values[4:7]),
            ))
        if len(segments) < segment_count:
            break

        arrow1 = _read_section_arrow(reader)
        arrow2 = _read_section_arrow(reader)
        text1 = reader.read_point()
        text2 = reader.read_point()
        text_height = reader.read()
        if None in (arrow1, arrow2, text1, text2, text_height):
            break

        lines.append(SectionLine(
            layer=layer,
            segments=tuple(segments),
            arrows=(arrow1, arrow2),
            text_positions=(text1, text2),
            text_height=text_height,
        ))

    return tuple(lines)

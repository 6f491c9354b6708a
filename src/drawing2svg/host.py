"""
Host Data Module

Plain data classes describing what the CAD host provides for one drawing
sheet: sheet size, views with their raw geometry buffers, annotations and
tables. A live host adapter fills these objects from the CAD object model;
load_snapshot() fills them from a JSON dump so the export pipeline can run
without the host.

Snapshot format (all lengths in meters, sheet space unless noted):

    {
      "name": "Sheet1", "width": 0.42, "height": 0.297,
      "line_fonts": {"1": [0.00025, 2, 0.003, -0.0015]},
      "tables": [{"type": "bom", "rows": [["ITEM", "PART NUMBER"], ["1", "A-100"]]}],
      "views": [{
        "name": "Drawing View1", "type": "projected", "visible": true,
        "scale": 0.5, "position": [0.2, 0.15], "outline": [0.1, 0.05, 0.3, 0.25],
        "polylines": [...], "detail_circle_info": [...], "break_line_count": 1,
        "break_line_info": [...], "section_line_info": [...],
        "detail_circles": [{"name": "A", "style": 4, "connecting_line": [...]}],
        "annotations": [{"type": "note", "is_bom_balloon": true, "text": "3", ...}]
      }]
    }
"""

import json
import logging
from dataclasses import dataclass, field, fields
from enum import Enum, IntEnum
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)


class Drawing2SVGError(Exception):
    """Base class for errors raised by drawing2svg"""


class SnapshotError(Drawing2SVGError):
    """A sheet snapshot could not be read or is malformed"""


class BalloonStyle(IntEnum):
    """Balloon outline shapes; only CIRCULAR is rendered"""
    NONE = 0
    CIRCULAR = 1
    TRIANGLE = 2
    HEXAGON = 3
    BOX = 4
    DIAMOND = 5
    SPLIT_CIRCLE = 6
    PENTAGON = 7
    FLAG_PENTAGON = 8
    FLAG_TRIANGLE = 9
    UNDERLINE = 10


class DetailViewStyle(IntEnum):
    """How a detail circle relates to its detail view"""
    PER_STANDARD = 0
    BROKEN = 1
    WITH_LEADER = 2
    NO_LEADER = 3
    CONNECTED = 4


class TextJustification(Enum):
    NONE = "none"
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


class TextPosition(Enum):
    """Which point of a text box its position refers to"""
    UPPER_LEFT = "upper_left"
    UPPER_CENTER = "upper_center"
    UPPER_RIGHT = "upper_right"
    CENTER = "center"
    LOWER_LEFT = "lower_left"
    LOWER_RIGHT = "lower_right"


@dataclass
class TextFormat:
    typeface: str = "Arial"
    bold: bool = False
    italic: bool = False
    char_height: float = 0.0  # meters


@dataclass
class NoteTextLine:
    """One line of a multi-line note, positioned individually"""
    text: str
    position: Optional[Tuple[float, float, float]] = None
    height: float = 0.0  # meters
    ref_position: TextPosition = TextPosition.LOWER_LEFT


@dataclass
class NoteAnnotation:
    """
    A note annotation, possibly a BOM balloon.

    balloon_info is [center xyz, arc point xyz, radius]. Each leader is a flat
    list of (x, y, z) triplets; each multi-jog leader is a list of lines
    [line type, start xyz, end xyz].
    """
    annotation_type: str = "note"
    visible: bool = True
    is_bom_balloon: bool = False
    position: Optional[Tuple[float, float, float]] = None
    color: int = 0  # COLORREF, 0x00BBGGRR
    text: Optional[str] = None
    display_text_count: int = 1
    has_balloon: bool = False
    balloon_info: Optional[Sequence[float]] = None
    balloon_style: int = BalloonStyle.CIRCULAR
    leaders: List[Sequence[float]] = field(default_factory=list)
    multi_jog_leaders: List[List[Sequence[float]]] = field(default_factory=list)
    text_format: Optional[TextFormat] = None
    property_linked_text: str = ""
    text_lines: List[NoteTextLine] = field(default_factory=list)
    text_justification: TextJustification = TextJustification.NONE

    @property
    def is_note(self) -> bool:
        return self.annotation_type == "note"


@dataclass
class DetailCircleInfo:
    """Object-model view of a detail circle (label, style, connecting line)"""
    name: str = ""
    label: str = ""
    label_position: Optional[Tuple[float, float]] = None
    style: int = DetailViewStyle.PER_STANDARD
    connecting_line: Optional[Sequence[float]] = None  # start xyz, end xyz
    char_height: float = 0.0  # meters


@dataclass
class ViewData:
    """One drawing view with its raw geometry buffers"""
    name: str
    view_type: str = "projected"
    visible: bool = True
    scale: float = 1.0
    position: Tuple[float, float] = (0.0, 0.0)  # meters, sheet space
    outline: Tuple[float, float, float, float] = (0.0, 0.0, 0.0, 0.0)  # min x, min y, max x, max y
    polylines: Optional[Sequence[float]] = None
    detail_circle_info: Optional[Sequence[float]] = None
    detail_circle_count: Optional[int] = None
    detail_circles: List[DetailCircleInfo] = field(default_factory=list)
    is_broken: bool = False
    break_line_count: int = 0
    break_line_info: Optional[Sequence[float]] = None
    section_line_info: Optional[Sequence[float]] = None
    section_line_labels: List[str] = field(default_factory=list)  # two per section line
    annotations: List[NoteAnnotation] = field(default_factory=list)

    @property
    def is_detail_view(self) -> bool:
        return self.view_type == "detail"

    def outline_rect_mm(self) -> Tuple[float, float, float, float]:
        """Outline as (x, y, width, height) in millimeters"""
        min_x, min_y, max_x, max_y = (v * 1000.0 for v in self.outline)
        return min_x, min_y, max_x - min_x, max_y - min_y


@dataclass
class TableData:
    """A table annotation: rows of displayed cell text, row 0 is the header"""
    table_type: str = "bom"
    rows: List[List[Optional[str]]] = field(default_factory=list)

    @property
    def is_bom(self) -> bool:
        return self.table_type == "bom"

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def column_count(self) -> int:
        return max((len(row) for row in self.rows), default=0)

    def cell_text(self, row: int, column: int) -> Optional[str]:
        cells = self.rows[row]
        return cells[column] if column < len(cells) else None


@dataclass
class SheetData:
    """A drawing sheet as seen by the exporter"""
    name: str
    width: float   # meters
    height: float  # meters
    views: List[ViewData] = field(default_factory=list)
    tables: List[TableData] = field(default_factory=list)
    line_fonts: Dict[int, List[float]] = field(default_factory=dict)
    document_name: str = ""

    def get_line_font_info(self, line_style: int) -> Optional[List[float]]:
        """
        Line font description for a line style id.

        Format: [line weight, segment count, segment lengths...]; a negative
        segment length is a gap.
        """
        return self.line_fonts.get(line_style)


# =============================================================================
# Snapshot loading
# =============================================================================


def _build(cls, values: Dict[str, Any], **overrides):
    """Instantiate a dataclass from a dict, ignoring unknown keys"""
    known = {f.name for f in fields(cls)}
    kwargs = {key: value for key, value in values.items() if key in known}
    kwargs.update(overrides)
    return cls(**kwargs)


def _tuple(value: Optional[Sequence[float]]) -> Optional[Tuple[float, ...]]:
    return tuple(float(v) for v in value) if value is not None else None


def _note_from_dict(values: Dict[str, Any]) -> NoteAnnotation:
    text_format = values.get("text_format")
    text_lines = [
        _build(NoteTextLine, line,
               position=_tuple(line.get("position")),
               ref_position=TextPosition(line.get("ref_position", "lower_left")))
        for line in values.get("text_lines", [])
    ]
    return _build(
        NoteAnnotation, values,
        annotation_type=values.get("type", values.get("annotation_type", "note")),
        position=_tuple(values.get("position")),
        text_format=_build(TextFormat, text_format) if text_format else None,
        text_lines=text_lines,
        text_justification=TextJustification(values.get("text_justification", "none")),
    )


def _view_from_dict(values: Dict[str, Any]) -> ViewData:
    return _build(
        ViewData, values,
        view_type=values.get("type", values.get("view_type", "projected")),
        position=_tuple(values.get("position", (0.0, 0.0))),
        outline=_tuple(values.get("outline", (0.0, 0.0, 0.0, 0.0))),
        detail_circles=[_build(DetailCircleInfo, dc) for dc in values.get("detail_circles", [])],
        annotations=[_note_from_dict(ann) for ann in values.get("annotations", [])],
    )


def sheet_from_dict(values: Dict[str, Any]) -> SheetData:
    """
    Build SheetData from a decoded JSON snapshot.

    Raises:
        SnapshotError: if required keys are missing or values are invalid
    """
    try:
        return SheetData(
            name=values.get("name", ""),
            width=float(values["width"]),
            height=float(values["height"]),
            views=[_view_from_dict(v) for v in values.get("views", [])],
            tables=[
                TableData(table_type=t.get("type", "bom"), rows=t.get("rows", []))
                for t in values.get("tables", [])
            ],
            line_fonts={int(k): list(v) for k, v in values.get("line_fonts", {}).items()},
            document_name=values.get("document_name", ""),
        )
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise SnapshotError(f"Invalid sheet snapshot: {e}") from e


def load_snapshot(path: str) -> SheetData:
    """
    Load a sheet snapshot from a JSON file.

    Args:
        path: Path to the JSON snapshot

    Returns:
        SheetData for the sheet described by the file
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            values = json.load(f)
    except OSError as e:
        raise SnapshotError(f"Cannot read snapshot {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise SnapshotError(f"Snapshot {path} is not valid JSON: {e}") from e

    if not isinstance(values, dict):
        raise SnapshotError(f"Snapshot {path} must contain a JSON object")

    sheet = sheet_from_dict(values)
    if not sheet.document_name:
        sheet.document_name = Path(path).stem
    logger.info("Loaded sheet '%s' with %d view(s) from %s", sheet.name, len(sheet.views), path)
    return sheet

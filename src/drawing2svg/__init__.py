"""
Drawing to SVG Exporter

A Python tool to export CAD drawing sheets to SVG, with optional DXF and
PDF output. Reads the flat geometry buffers a CAD host reports for each
drawing view and renders them as grouped, annotated vector graphics.

Key Features:
- Robust decoding of tessellated edges, detail circles, break lines and section lines
- Sheet-accurate coordinate pipeline (meters to mm, Y flipped)
- BOM balloons enriched with part number, name and specification
- Fit-to-content framing and per-view documents
- DXF output through ezdxf, PDF output through PyMuPDF
"""

__version__ = "1.0.0"
__author__ = ""

# Main exporter
from .exporter import (
    SheetExporter,
    ExportResult,
    is_view_out_of_bounds,
)
from .options import (
    ExportOptions,
    OutputFormat,
    LINE_STYLE_SCALE_FACTOR,
)

# Host data
from .host import (
    Drawing2SVGError,
    SnapshotError,
    SheetData,
    ViewData,
    TableData,
    NoteAnnotation,
    load_snapshot,
    sheet_from_dict,
)

# Geometry decoding
from .record_decoder import (
    FlatReader,
    Point3D,
    PolylineRecord,
    decode_polylines,
    decode_detail_circles,
    decode_break_lines,
    decode_section_lines,
)

# Rendering
from .svg_writer import (
    SVGWriter,
    VectorDocument,
    PathBuilder,
    format_number,
)
from .transforms import CoordinatePipeline, ViewPlacement
from .view_renderer import ViewRenderer, map_line_weight, colorref_to_hex, arc_flags
from .bom import BomRow, extract_bom_rows, find_bom_table

# Supplementary outputs
from .dxf_writer import DXFWriter, create_dxf_from_writer
from .pdf_converter import PDFConverter, convert_svg_to_pdf

__all__ = [
    # Version
    "__version__",
    # Main exporter
    "SheetExporter",
    "ExportResult",
    "is_view_out_of_bounds",
    "ExportOptions",
    "OutputFormat",
    "LINE_STYLE_SCALE_FACTOR",
    # Host data
    "Drawing2SVGError",
    "SnapshotError",
    "SheetData",
    "ViewData",
    "TableData",
    "NoteAnnotation",
    "load_snapshot",
    "sheet_from_dict",
    # Geometry decoding
    "FlatReader",
    "Point3D",
    "PolylineRecord",
    "decode_polylines",
    "decode_detail_circles",
    "decode_break_lines",
    "decode_section_lines",
    # Rendering
    "SVGWriter",
    "VectorDocument",
    "PathBuilder",
    "format_number",
    "CoordinatePipeline",
    "ViewPlacement",
    "ViewRenderer",
    "map_line_weight",
    "colorref_to_hex",
    "arc_flags",
    "BomRow",
    "extract_bom_rows",
    "find_bom_table",
    # Supplementary outputs
    "DXFWriter",
    "create_dxf_from_writer",
    "PDFConverter",
    "convert_svg_to_pdf",
]

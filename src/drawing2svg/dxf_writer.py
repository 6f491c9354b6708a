"""
DXF Writer Module

Creates DXF files from a finished vector document using the ezdxf library, so
an exported sheet can be opened in AutoCAD and other CAD software.

Paths are parsed back from their SVG path data; straight runs and arcs become
LWPOLYLINE entities (arcs as bulges). Y is flipped back to sheet orientation.

Supports:
- Paths (M/L/A/Z), lines, circles and rotated ellipses
- Single and multi-line text with anchor/baseline alignment, bold and italic
- Layers named after the annotation group an entity belongs to
- True color (R2004+) or nearest ACI color
- Dashed strokes via a DASHED line type
"""

import logging
import math
import re
from typing import Dict, List, Optional, Tuple

import ezdxf
from ezdxf import units
from ezdxf.enums import TextEntityAlignment

from .svg_writer import SVGWriter, TEXT_LINE_SPACING, VectorDocument

logger = logging.getLogger(__name__)

_PATH_TOKEN = re.compile(r"[MLAZmlaz]|-?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")

# (dominant-baseline, text-anchor) -> DXF text alignment
_TEXT_ALIGNMENT = {
    ("hanging", "start"): TextEntityAlignment.TOP_LEFT,
    ("hanging", "middle"): TextEntityAlignment.TOP_CENTER,
    ("hanging", "end"): TextEntityAlignment.TOP_RIGHT,
    ("middle", "start"): TextEntityAlignment.MIDDLE_LEFT,
    ("middle", "middle"): TextEntityAlignment.MIDDLE_CENTER,
    ("middle", "end"): TextEntityAlignment.MIDDLE_RIGHT,
    ("auto", "start"): TextEntityAlignment.LEFT,
    ("auto", "middle"): TextEntityAlignment.CENTER,
    ("auto", "end"): TextEntityAlignment.RIGHT,
}


def parse_hex_color(value: Optional[str]) -> Tuple[float, float, float]:
    """Parse "#RRGGBB" into an RGB tuple with values 0-1 (black if unparsable)"""
    if not value or not re.fullmatch(r"#[0-9A-Fa-f]{6}", value):
        return 0.0, 0.0, 0.0
    return tuple(int(value[i:i + 2], 16) / 255.0 for i in (1, 3, 5))


def parse_path_data(path_data: str) -> List[Tuple[List[Tuple[float, float, float]], bool]]:
    """
    Split SVG path data into sub-paths of (x, y, bulge) vertices.

    The bulge of a vertex describes the segment leading to the next vertex,
    in SVG orientation (Y down). Only absolute M, L, A and Z commands are
    understood, which is everything SVGWriter emits.

    Returns:
        List of (vertices, closed) tuples
    """
    tokens = _PATH_TOKEN.findall(path_data)
    subpaths = []
    vertices: List[List[float]] = []
    closed = False
    index = 0

    def number() -> float:
        nonlocal index
        value = float(tokens[index])
        index += 1
        return value

    try:
        while index < len(tokens):
            command = tokens[index].upper()
            index += 1
            if command == "M":
                if len(vertices) > 1:
                    subpaths.append(([tuple(v) for v in vertices], closed))
                vertices = [[number(), number(), 0.0]]
                closed = False
            elif command == "L":
                vertices.append([number(), number(), 0.0])
            elif command == "A":
                rx, _ry, _rotation = number(), number(), number()
                large_arc, sweep = int(number()), int(number())
                x, y = number(), number()
                if vertices:
                    vertices[-1][2] = _arc_bulge(vertices[-1][0], vertices[-1][1], x, y,
                                                 rx, large_arc, sweep)
                vertices.append([x, y, 0.0])
            elif command == "Z":
                closed = True
            else:
                logger.debug("Unsupported path command %r", command)
                break
    except (IndexError, ValueError):
        logger.debug("Truncated path data: %r", path_data)

    if len(vertices) > 1:
        subpaths.append(([tuple(v) for v in vertices], closed))
    return subpaths


def _arc_bulge(x1: float, y1: float, x2: float, y2: float, radius: float,
               large_arc: int, sweep: int) -> float:
    """Bulge (tan of a quarter of the included angle) for an SVG arc segment"""
    chord = math.hypot(x2 - x1, y2 - y1)
    if chord == 0 or radius <= 0:
        return 0.0
    # SVG scales up radii that are too small for the chord
    half_angle = math.asin(min(1.0, chord / (2 * radius)))
    included = 2 * half_angle if not large_arc else 2 * math.pi - 2 * half_angle
    bulge = math.tan(included / 4)
    # Sweep 1 turns the positive way in Y-down space
    return bulge if sweep else -bulge


class DXFWriter:
    """
    Write a vector document to DXF format.

    Usage:
        writer = DXFWriter("R2010")
        writer.create_document(svg_writer.document, sheet_height)
        writer.save("sheet.dxf")
    """

    # AutoCAD Color Index (ACI) for the basic colors
    COLOR_MAP = {
        (1.0, 0.0, 0.0): 1,    # Red
        (1.0, 1.0, 0.0): 2,    # Yellow
        (0.0, 1.0, 0.0): 3,    # Green
        (0.0, 1.0, 1.0): 4,    # Cyan
        (0.0, 0.0, 1.0): 5,    # Blue
        (1.0, 0.0, 1.0): 6,    # Magenta
        (1.0, 1.0, 1.0): 7,    # White
        (0.0, 0.0, 0.0): 7,    # Black (displayed as white/black based on background)
        (0.5, 0.5, 0.5): 8,    # Gray
    }

    SUPPORTED_VERSIONS = ("R2000", "R2004", "R2007", "R2010", "R2013", "R2018")

    def __init__(self, version: str = "R2010", use_true_color: bool = True):
        """
        Initialize DXF writer.

        Args:
            version: DXF version (R2000, R2004, R2007, R2010, R2013, R2018)
            use_true_color: Use 24-bit RGB colors instead of ACI (requires R2004+)
        """
        self.version = version if version in self.SUPPORTED_VERSIONS else "R2010"
        self.doc = None
        self.msp = None
        self.sheet_height = 0.0
        self.layers_created = set()
        self.styles_created: Dict[str, str] = {}
        self.entity_count = 0
        # True color requires R2004 or later
        self.use_true_color = use_true_color and self.version != "R2000"

    def create_document(self, document: VectorDocument, sheet_height: float) -> 'ezdxf.document.Drawing':
        """
        Create a new DXF document from a vector document.

        Args:
            document: Finished vector document (output space, mm)
            sheet_height: Sheet height in mm, used to flip Y back

        Returns:
            ezdxf Drawing object
        """
        self.doc = ezdxf.new(self.version)
        self.doc.units = units.MM
        self.msp = self.doc.modelspace()
        self.sheet_height = sheet_height
        self.layers_created = {"0"}
        self.entity_count = 0

        if not self.doc.linetypes.has_entry("DASHED"):
            self.doc.linetypes.add("DASHED", pattern=[0.5, -0.25], description="Dashed __ __ __ __")

        handlers = {
            "path": self._add_path,
            "line": self._add_line,
            "circle": self._add_circle,
            "ellipse": self._add_ellipse,
            "text": self._add_text,
        }
        for handle in document.walk():
            node = document.node(handle)
            handler = handlers.get(node.tag)
            if handler is None:
                continue
            layer = self._layer_for(document, handle)
            handler(document, handle, layer)

        logger.debug("DXF document created with %d entities", self.entity_count)
        return self.doc

    # ------------------------------------------------------------------
    # Attributes
    # ------------------------------------------------------------------

    def _flip(self, x: float, y: float) -> Tuple[float, float]:
        return x, self.sheet_height - y

    def _layer_for(self, document: VectorDocument, handle: int) -> str:
        """Layer named after the innermost classed group, e.g. annotation-balloon"""
        for ancestor in document.ancestors(handle):
            class_name = document.node(ancestor).attributes.get("class")
            if class_name:
                return self._get_or_create_layer(class_name.split()[-1])
        return "0"

    def _get_or_create_layer(self, layer_name: str) -> str:
        if layer_name not in self.layers_created:
            self.doc.layers.add(layer_name)
            self.layers_created.add(layer_name)
        return layer_name

    def _rgb_to_aci(self, color: Tuple[float, float, float]) -> int:
        """Nearest AutoCAD Color Index for an RGB color (values 0-1)"""
        for rgb, aci in self.COLOR_MAP.items():
            if all(abs(a - b) < 0.1 for a, b in zip(color, rgb)):
                return aci

        gray = sum(color) / 3
        if gray < 0.25:
            return 250
        elif gray < 0.5:
            return 251
        elif gray < 0.75:
            return 252
        return 253

    def _rgb_to_true_color(self, color: Tuple[float, float, float]) -> int:
        r, g, b = (int(min(255, max(0, round(c * 255)))) for c in color)
        return (r << 16) | (g << 8) | b

    def _get_color_attribs(self, value: Optional[str]) -> Dict:
        color = parse_hex_color(value)
        if self.use_true_color:
            return {"true_color": self._rgb_to_true_color(color)}
        return {"color": self._rgb_to_aci(color)}

    def _stroke_attribs(self, attributes: Dict[str, str], layer: str) -> Dict:
        attribs = {
            "layer": layer,
            "lineweight": self._mm_to_lineweight(float(attributes.get("stroke-width", "0.25"))),
        }
        if attributes.get("stroke-dasharray"):
            attribs["linetype"] = "DASHED"
        attribs.update(self._get_color_attribs(attributes.get("stroke")))
        return attribs

    def _mm_to_lineweight(self, width: float) -> int:
        """
        Convert line width in mm to DXF lineweight value.

        DXF lineweights are in 1/100 mm units.
        """
        standard_weights = [0, 5, 9, 13, 15, 18, 20, 25, 30, 35, 40, 50,
                            53, 60, 70, 80, 90, 100, 106, 120, 140, 158,
                            200, 211]
        weight_100 = round(width * 100)
        return min(standard_weights, key=lambda x: abs(x - weight_100))

    def _get_text_style(self, font_family: str, bold: bool, italic: bool) -> str:
        key = f"{font_family}|{bold}|{italic}"
        if key not in self.styles_created:
            name = re.sub(r"[^A-Za-z0-9_-]", "_", font_family) or "Standard"
            if bold:
                name += "_BOLD"
            if italic:
                name += "_ITALIC"
            if not self.doc.styles.has_entry(name):
                style = self.doc.styles.add(name, font=f"{font_family}.ttf")
                # Oblique angle of the italic style, in degrees
                if italic:
                    style.dxf.oblique = 15
            self.styles_created[key] = name
        return self.styles_created[key]

    # ------------------------------------------------------------------
    # Entities
    # ------------------------------------------------------------------

    def _add_path(self, document: VectorDocument, handle: int, layer: str):
        attributes = document.node(handle).attributes
        attribs = self._stroke_attribs(attributes, layer)

        for vertices, closed in parse_path_data(attributes.get("d", "")):
            # Y flip mirrors the arcs, so bulges change sign
            points = [(*self._flip(x, y), -bulge) for x, y, bulge in vertices]
            self.msp.add_lwpolyline(points, format="xyb", close=closed, dxfattribs=attribs)
            self.entity_count += 1

    def _add_line(self, document: VectorDocument, handle: int, layer: str):
        a = document.node(handle).attributes
        self.msp.add_line(
            start=self._flip(float(a["x1"]), float(a["y1"])),
            end=self._flip(float(a["x2"]), float(a["y2"])),
            dxfattribs=self._stroke_attribs(a, layer),
        )
        self.entity_count += 1

    def _add_circle(self, document: VectorDocument, handle: int, layer: str):
        a = document.node(handle).attributes
        self.msp.add_circle(
            center=self._flip(float(a["cx"]), float(a["cy"])),
            radius=float(a["r"]),
            dxfattribs=self._stroke_attribs(a, layer),
        )
        self.entity_count += 1

    def _add_ellipse(self, document: VectorDocument, handle: int, layer: str):
        a = document.node(handle).attributes
        rx, ry = float(a["rx"]), float(a["ry"])
        if rx <= 0 or ry <= 0:
            return

        rotation = 0.0
        match = re.match(r"rotate\(([-\d.eE+]+)", a.get("transform", ""))
        if match:
            rotation = float(match.group(1))
        # Rotation is clockwise on screen, counter-clockwise after the flip
        angle = math.radians(-rotation)
        if rx >= ry:
            major, ratio = rx, ry / rx
        else:
            major, ratio = ry, rx / ry
            angle += math.pi / 2

        self.msp.add_ellipse(
            center=self._flip(float(a["cx"]), float(a["cy"])),
            major_axis=(major * math.cos(angle), major * math.sin(angle), 0),
            ratio=ratio,
            dxfattribs=self._stroke_attribs(a, layer),
        )
        self.entity_count += 1

    def _add_text(self, document: VectorDocument, handle: int, layer: str):
        node = document.node(handle)
        a = node.attributes
        x, y = float(a["x"]), float(a["y"])
        height = float(a.get("font-size", "3.5"))
        if height <= 0:
            return

        if node.children:
            lines = [document.node(child).text or "" for child in node.children]
        else:
            lines = [node.text or ""]

        style = self._get_text_style(a.get("font-family", "Arial"),
                                     a.get("font-weight") == "bold",
                                     a.get("font-style") == "italic")
        rotation = 0.0
        match = re.match(r"rotate\(([-\d.eE+]+)", a.get("transform", ""))
        if match:
            rotation = -float(match.group(1))

        alignment = _TEXT_ALIGNMENT.get(
            (a.get("dominant-baseline", "auto"), a.get("text-anchor", "start")),
            TextEntityAlignment.LEFT,
        )
        attribs = {"layer": layer, "style": style, "rotation": rotation}
        attribs.update(self._get_color_attribs(a.get("fill")))

        for index, line in enumerate(lines):
            if not line.strip():
                continue
            line_y = y + index * height * TEXT_LINE_SPACING
            text = self.msp.add_text(line, height=height, dxfattribs=attribs)
            text.set_placement(self._flip(x, line_y), align=alignment)
            self.entity_count += 1

    def save(self, filepath: str):
        """
        Save the DXF document to file.

        Args:
            filepath: Output file path
        """
        if self.doc:
            self.doc.saveas(filepath, encoding="utf-8")


def create_dxf_from_writer(writer: SVGWriter, output_path: str, sheet_height: float,
                           version: str = "R2010") -> str:
    """
    Convenience function to write the document of an SVG writer as DXF.

    Args:
        writer: SVG writer holding the rendered sheet
        output_path: Output DXF file path
        sheet_height: Sheet height in mm
        version: DXF version

    Returns:
        Path to created DXF file
    """
    dxf_writer = DXFWriter(version)
    dxf_writer.create_document(writer.document, sheet_height)
    dxf_writer.save(output_path)
    return output_path

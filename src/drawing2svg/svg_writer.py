"""
SVG Writer Module

Builds SVG documents incrementally. The document itself is an arena of nodes
addressed by integer handles, each node knowing its parent; SVGWriter layers a
group stack, a running bounding box and fit-to-content framing on top of it.

Supports:
- Paths (M/L/A/Z), lines, circles, ellipses and (multi-line) text
- Nested groups carrying id, class and data-* attributes
- Bounds tracking and fit-to-content viewBox recomputation
- Locale-independent number formatting (at most 4 decimals)
"""

import logging
import math
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

SVG_NAMESPACE = "http://www.w3.org/2000/svg"

# Line spacing of stacked text lines, relative to the font size
TEXT_LINE_SPACING = 1.2


def format_number(value: float) -> str:
    """
    Format a coordinate the same way regardless of locale.

    Up to 4 fractional digits, trailing zeros and dot trimmed:
    1.0 -> "1", 0.25 -> "0.25", 1.23456 -> "1.2346".
    """
    text = f"{value:.4f}".rstrip("0").rstrip(".")
    if text in ("-0", ""):
        return "0"
    return text


class PathBuilder:
    """
    Accumulates SVG path commands.

    Usage:
        path = PathBuilder().move_to(0, 0).line_to(10, 0)
        writer.add_path(str(path), "#000000", 0.25)
    """

    def __init__(self):
        self._commands: List[str] = []

    def move_to(self, x: float, y: float) -> 'PathBuilder':
        self._commands.append(f"M {format_number(x)} {format_number(y)}")
        return self

    def line_to(self, x: float, y: float) -> 'PathBuilder':
        self._commands.append(f"L {format_number(x)} {format_number(y)}")
        return self

    def arc_to(self, rx: float, ry: float, rotation: float, large_arc: int, sweep: int,
               x: float, y: float) -> 'PathBuilder':
        self._commands.append(
            f"A {format_number(rx)} {format_number(ry)} {format_number(rotation)} "
            f"{large_arc} {sweep} {format_number(x)} {format_number(y)}"
        )
        return self

    def close(self) -> 'PathBuilder':
        self._commands.append("Z")
        return self

    def __len__(self) -> int:
        return len(self._commands)

    def __str__(self) -> str:
        return " ".join(self._commands)


@dataclass
class Node:
    """One element of a VectorDocument"""
    tag: str
    attributes: Dict[str, str] = field(default_factory=dict)
    parent: Optional[int] = None
    text: Optional[str] = None
    children: List[int] = field(default_factory=list)


class VectorDocument:
    """
    Tree of SVG elements stored as an arena.

    Node 0 is the root content group. Every other node is added under an
    explicit parent handle, so several builders can address the same document
    without sharing hidden state.
    """

    ROOT = 0

    def __init__(self):
        self.nodes: List[Node] = [Node("g")]

    def __len__(self) -> int:
        return len(self.nodes)

    def add_node(self, parent: int, tag: str, attributes: Optional[Dict[str, str]] = None,
                 text: Optional[str] = None) -> int:
        """
        Append a node under `parent`.

        Returns:
            Handle of the new node
        """
        if not 0 <= parent < len(self.nodes):
            raise IndexError(f"Unknown parent node: {parent}")
        handle = len(self.nodes)
        self.nodes.append(Node(tag, dict(attributes or {}), parent, text))
        self.nodes[parent].children.append(handle)
        return handle

    def node(self, handle: int) -> Node:
        return self.nodes[handle]

    def parent(self, handle: int) -> Optional[int]:
        return self.nodes[handle].parent

    def children(self, handle: int) -> List[int]:
        return list(self.nodes[handle].children)

    def ancestors(self, handle: int) -> Iterator[int]:
        """Handles from the node's parent up to the root"""
        parent = self.nodes[handle].parent
        while parent is not None:
            yield parent
            parent = self.nodes[parent].parent

    def walk(self, handle: int = ROOT) -> Iterator[int]:
        """Depth-first, document-order traversal starting at `handle`"""
        stack = [handle]
        while stack:
            current = stack.pop()
            yield current
            stack.extend(reversed(self.nodes[current].children))

    def find(self, tag: str) -> List[int]:
        return [h for h in self.walk() if self.nodes[h].tag == tag]

    def to_element(self, handle: int = ROOT) -> ET.Element:
        node = self.nodes[handle]
        element = ET.Element(node.tag, node.attributes)
        if node.text is not None:
            element.text = node.text
        for child in node.children:
            element.append(self.to_element(child))
        return element


class SVGWriter:
    """
    Incremental SVG builder with a group stack and bounds tracking.

    Shapes are attached to the current group (top of the stack, or the root
    content group when the stack is empty) unless an explicit parent handle
    is given. Emission order is rendering order.

    Bounds are not updated by the shape methods; callers report the points
    that should influence fit-to-content through update_bounds().
    """

    def __init__(self, width: float, height: float, document_name: Optional[str] = None):
        """
        Args:
            width: Canvas width in output units (mm)
            height: Canvas height in output units (mm)
            document_name: Optional name, used for logging only
        """
        self.width = width
        self.height = height
        self.document_name = document_name
        self.document = VectorDocument()
        self.view_box: Tuple[float, float, float, float] = (0.0, 0.0, width, height)

        self._group_stack: List[int] = []

        self._min_x = math.inf
        self._min_y = math.inf
        self._max_x = -math.inf
        self._max_y = -math.inf

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------

    @property
    def current_group(self) -> int:
        return self._group_stack[-1] if self._group_stack else VectorDocument.ROOT

    @property
    def group_depth(self) -> int:
        return len(self._group_stack)

    def start_group(self, group_id: Optional[str] = None, class_name: Optional[str] = None,
                    data_attributes: Optional[Dict[str, str]] = None,
                    parent: Optional[int] = None) -> int:
        """
        Open a group under the current group and make it current.

        Args:
            group_id: Optional id attribute
            class_name: Optional class attribute
            data_attributes: Extra attributes, each written as data-<key>
            parent: Explicit parent handle (defaults to the current group)

        Returns:
            Handle of the new group
        """
        attributes = {}
        if group_id:
            attributes["id"] = group_id
        if class_name:
            attributes["class"] = class_name
        for key, value in (data_attributes or {}).items():
            attributes[f"data-{key}"] = "" if value is None else str(value)

        handle = self.document.add_node(self._parent(parent), "g", attributes)
        self._group_stack.append(handle)
        return handle

    def end_group(self):
        """Close the current group; does nothing when no group is open"""
        if self._group_stack:
            self._group_stack.pop()

    def _parent(self, parent: Optional[int]) -> int:
        return self.current_group if parent is None else parent

    # ------------------------------------------------------------------
    # Shapes
    # ------------------------------------------------------------------

    def add_path(self, path_data: str, stroke: str, stroke_width: float, fill: str = "none",
                 dash_array: Optional[Sequence[float]] = None, parent: Optional[int] = None) -> int:
        attributes = {
            "d": str(path_data),
            "stroke": stroke,
            "stroke-width": format_number(stroke_width),
            "fill": fill,
        }
        if dash_array is not None:
            attributes["stroke-dasharray"] = " ".join(format_number(v) for v in dash_array)
        return self.document.add_node(self._parent(parent), "path", attributes)

    def add_line(self, x1: float, y1: float, x2: float, y2: float, stroke: str,
                 stroke_width: float, parent: Optional[int] = None) -> int:
        return self.document.add_node(self._parent(parent), "line", {
            "x1": format_number(x1),
            "y1": format_number(y1),
            "x2": format_number(x2),
            "y2": format_number(y2),
            "stroke": stroke,
            "stroke-width": format_number(stroke_width),
        })

    def add_circle(self, cx: float, cy: float, r: float, stroke: str, stroke_width: float,
                   fill: str = "none", parent: Optional[int] = None) -> int:
        return self.document.add_node(self._parent(parent), "circle", {
            "cx": format_number(cx),
            "cy": format_number(cy),
            "r": format_number(r),
            "stroke": stroke,
            "stroke-width": format_number(stroke_width),
            "fill": fill,
        })

    def add_ellipse(self, cx: float, cy: float, rx: float, ry: float, rotation: float,
                    stroke: str, stroke_width: float, fill: str = "none",
                    parent: Optional[int] = None) -> int:
        attributes = {
            "cx": format_number(cx),
            "cy": format_number(cy),
            "rx": format_number(rx),
            "ry": format_number(ry),
            "stroke": stroke,
            "stroke-width": format_number(stroke_width),
            "fill": fill,
        }
        if rotation != 0:
            attributes["transform"] = (
                f"rotate({format_number(rotation)}, {format_number(cx)}, {format_number(cy)})"
            )
        return self.document.add_node(self._parent(parent), "ellipse", attributes)

    def add_text(self, x: float, y: float, text: str, font_family: str, font_size: float,
                 color: str, rotation: float = 0, text_anchor: str = "start",
                 dominant_baseline: str = "middle", bold: bool = False, italic: bool = False,
                 parent: Optional[int] = None) -> int:
        """
        Add a text element.

        Text containing line breaks (\\r\\n, \\n or \\r) is split into tspans
        sharing the same x, each following line offset by 1.2em.
        """
        attributes = {
            "x": format_number(x),
            "y": format_number(y),
            "font-family": font_family,
            "font-size": format_number(font_size),
            "fill": color,
            "text-anchor": text_anchor,
            "dominant-baseline": dominant_baseline,
        }
        if bold:
            attributes["font-weight"] = "bold"
        if italic:
            attributes["font-style"] = "italic"
        if rotation != 0:
            attributes["transform"] = (
                f"rotate({format_number(rotation)}, {format_number(x)}, {format_number(y)})"
            )

        lines = split_lines(text)
        if len(lines) == 1:
            return self.document.add_node(self._parent(parent), "text", attributes, text)

        handle = self.document.add_node(self._parent(parent), "text", attributes)
        for index, line in enumerate(lines):
            self.document.add_node(handle, "tspan", {
                "x": format_number(x),
                "dy": "0" if index == 0 else f"{TEXT_LINE_SPACING}em",
            }, line)
        return handle

    def add_title(self, text: str, parent: Optional[int] = None) -> Optional[int]:
        if not text:
            return None
        return self.document.add_node(self._parent(parent), "title", text=text)

    @property
    def shape_count(self) -> int:
        """Number of drawable elements in the document"""
        shapes = ("path", "line", "circle", "ellipse", "text")
        return sum(1 for node in self.document.nodes if node.tag in shapes)

    # ------------------------------------------------------------------
    # Bounds and framing
    # ------------------------------------------------------------------

    def update_bounds(self, x: float, y: float):
        """Grow the running bounding box to include (x, y)"""
        self._min_x = min(self._min_x, x)
        self._min_y = min(self._min_y, y)
        self._max_x = max(self._max_x, x)
        self._max_y = max(self._max_y, y)

    @property
    def bounds(self) -> Optional[Tuple[float, float, float, float]]:
        """(min_x, min_y, max_x, max_y), or None before the first update"""
        if self._min_x == math.inf or self._max_x == -math.inf:
            return None
        return self._min_x, self._min_y, self._max_x, self._max_y

    def set_view_box(self, min_x: float, min_y: float, width: float, height: float):
        self.view_box = (min_x, min_y, width, height)

    def set_dimensions(self, width: float, height: float):
        self.width = width
        self.height = height

    def apply_fit_to_content(self, padding: float = 5.0):
        """
        Frame the tracked bounds plus padding.

        Does nothing if no bounds were recorded.
        """
        bounds = self.bounds
        if bounds is None:
            logger.debug("No bounds tracked for %s, keeping canvas", self.document_name or "document")
            return

        min_x, min_y, max_x, max_y = bounds
        content_width = (max_x - min_x) + 2 * padding
        content_height = (max_y - min_y) + 2 * padding

        self.set_view_box(min_x - padding, min_y - padding, content_width, content_height)
        self.set_dimensions(content_width, content_height)

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def to_element(self) -> ET.Element:
        svg = ET.Element("svg", {
            "width": format_number(self.width),
            "height": format_number(self.height),
            "viewBox": " ".join(format_number(v) for v in self.view_box),
            "xmlns": SVG_NAMESPACE,
        })
        svg.append(self.document.to_element(VectorDocument.ROOT))
        return svg

    def to_string(self) -> str:
        return ET.tostring(self.to_element(), encoding="unicode")

    def save(self, filepath: str):
        """
        Save the SVG document to file.

        Args:
            filepath: Output file path
        """
        tree = ET.ElementTree(self.to_element())
        tree.write(filepath, encoding="utf-8", xml_declaration=True)
        logger.debug("Saved %s (%d nodes)", filepath, len(self.document))


def split_lines(text: str) -> List[str]:
    """Split on \\r\\n, \\n and \\r, keeping empty lines"""
    return text.replace("\r\n", "\n").replace("\r", "\n").split("\n")

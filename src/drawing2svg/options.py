"""
Export configuration.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

# Empirical ratio between host line font segment lengths and SVG dash lengths.
# Reverse-engineered from rendered output; no documented derivation.
LINE_STYLE_SCALE_FACTOR = 4.5

DEFAULT_FIT_PADDING = 5.0


class OutputFormat(Enum):
    """Output format options"""
    SVG = "svg"
    DXF = "dxf"
    PDF = "pdf"
    ALL = "all"  # SVG + DXF + PDF

    @property
    def wants_dxf(self) -> bool:
        return self in (OutputFormat.DXF, OutputFormat.ALL)

    @property
    def wants_pdf(self) -> bool:
        return self in (OutputFormat.PDF, OutputFormat.ALL)


@dataclass
class ExportOptions:
    """
    Options for one sheet export.

    The draw_* flags switch individual annotation kinds on or off. Detail
    circle arrows and labels, detail view labels and section lines are only
    partially supported and are off by default.
    """
    fit_to_content: bool = False
    padding: float = DEFAULT_FIT_PADDING
    include_bom_metadata: bool = False
    export_individual_views: bool = False
    specific_view_name: Optional[str] = None
    exclude_views_out_of_bounds: bool = False

    output_format: OutputFormat = OutputFormat.SVG
    dxf_version: str = "R2010"

    line_style_scale_factor: float = LINE_STYLE_SCALE_FACTOR

    draw_detail_circle: bool = True
    draw_detail_circle_arrows: bool = False
    draw_detail_circle_label: bool = False
    draw_detail_view_label: bool = False
    draw_detail_view_connecting_line: bool = True
    draw_section_lines: bool = False

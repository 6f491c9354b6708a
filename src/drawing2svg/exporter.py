"""
Drawing Sheet Exporter

Main exporter class that orchestrates the export of one drawing sheet:
Sheet -> View selection -> Rendering -> SVG (-> DXF / PDF)
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from .bom import EMPTY_BOM, find_bom_table
from .dxf_writer import create_dxf_from_writer
from .host import SheetData, ViewData
from .options import ExportOptions
from .pdf_converter import PDFConverter
from .svg_writer import SVGWriter
from .transforms import CoordinatePipeline, meters_to_mm
from .view_renderer import ViewRenderer

logger = logging.getLogger(__name__)


@dataclass
class ExportResult:
    """Result of a sheet export"""
    success: bool
    output_files: List[str]
    message: str
    warnings: List[str] = field(default_factory=list)
    views_rendered: int = 0
    shapes_count: int = 0


def is_view_out_of_bounds(view: ViewData, sheet_width: float, sheet_height: float) -> bool:
    """
    True when the view outline has no overlap with the sheet rectangle.

    Args:
        view: View to test
        sheet_width: Sheet width in mm
        sheet_height: Sheet height in mm
    """
    x, y, width, height = view.outline_rect_mm()
    return (
        x + width <= 0            # left of the sheet
        or x >= sheet_width       # right of the sheet
        or y + height <= 0        # below the sheet
        or y >= sheet_height      # above the sheet
    )


def individual_view_path(output_path: str, index: int) -> str:
    """Path of the n-th individual view file: <stem>_v<n>.svg next to output_path"""
    directory = os.path.dirname(output_path)
    stem = os.path.splitext(os.path.basename(output_path))[0]
    return os.path.join(directory, f"{stem}_v{index}.svg")


class SheetExporter:
    """
    Export a drawing sheet to SVG.

    Usage:
        exporter = SheetExporter()
        result = exporter.export(load_snapshot("sheet.json"), "sheet.svg")

        # Or with options
        result = exporter.export(
            sheet,
            "sheet.svg",
            ExportOptions(fit_to_content=True, include_bom_metadata=True),
        )
    """

    def __init__(self):
        self._progress_callback: Optional[Callable[[str, float], None]] = None
        self.pdf_converter = PDFConverter()

    def set_progress_callback(self, callback: Callable[[str, float], None]):
        """
        Set a callback for progress updates.

        Args:
            callback: Function(message: str, progress: float) where progress is 0-1
        """
        self._progress_callback = callback

    def _report_progress(self, message: str, progress: float):
        """Report progress if callback is set"""
        if self._progress_callback:
            self._progress_callback(message, progress)

    def select_views(self, sheet: SheetData, options: ExportOptions,
                     warnings: List[str]) -> Optional[List[ViewData]]:
        """
        Views of the sheet to consider, filtered by name when requested.

        Returns:
            List of views, or None when the requested view does not exist
        """
        views = list(sheet.views)
        if options.specific_view_name:
            views = [v for v in views if v.name == options.specific_view_name]
            if not views:
                warnings.append(
                    f"Specified view '{options.specific_view_name}' not found in the current sheet."
                )
                return None
        return views

    def _render_sheet(self, sheet: SheetData, output_path: str,
                      options: ExportOptions) -> Tuple[ExportResult, Optional[SVGWriter]]:
        """Render every selected view and save the sheet SVG (no DXF/PDF conversion)"""
        warnings: List[str] = []

        sheet_width = meters_to_mm(sheet.width)
        sheet_height = meters_to_mm(sheet.height)

        bom = find_bom_table(sheet.tables) if options.include_bom_metadata else EMPTY_BOM

        views = self.select_views(sheet, options, warnings)
        if views is None:
            for warning in warnings:
                logger.warning(warning)
            return ExportResult(success=False, output_files=[], message=warnings[0], warnings=warnings), None

        pipeline = CoordinatePipeline(sheet_height)
        renderer = ViewRenderer(sheet, pipeline, options, bom)
        global_writer = SVGWriter(sheet_width, sheet_height, sheet.document_name or sheet.name)

        # Single-view sheets are counted before visibility filtering
        is_single_view = len(views) == 1
        output_files = []
        views_rendered = 0
        view_index = 1

        for i, view in enumerate(views):
            self._report_progress(f"Rendering view {view.name}...", 0.1 + 0.7 * (i / len(views)))
            if not view.visible:
                logger.debug("Skipping hidden view '%s'", view.name)
                continue

            if options.exclude_views_out_of_bounds and is_view_out_of_bounds(view, sheet_width, sheet_height):
                warning = f"Excluded view '{view.name}' because it is entirely out of sheet bounds."
                logger.warning(warning)
                warnings.append(warning)
                continue

            if is_single_view:
                renderer.render(view, [global_writer])
            else:
                view_writer = SVGWriter(sheet_width, sheet_height, view.name)
                view_writer.add_title(view.name)
                renderer.render(view, [global_writer, view_writer])
                if options.fit_to_content:
                    view_writer.apply_fit_to_content(options.padding)
                if options.export_individual_views:
                    view_path = individual_view_path(output_path, view_index)
                    view_writer.save(view_path)
                    output_files.append(view_path)
                    view_index += 1
            views_rendered += 1
            logger.info("Rendered view '%s'", view.name)

        if options.fit_to_content:
            global_writer.apply_fit_to_content(options.padding)

        self._report_progress("Saving SVG...", 0.8)
        global_writer.save(output_path)
        output_files.insert(0, output_path)

        return ExportResult(
            success=True,
            output_files=output_files,
            message=f"Successfully exported {views_rendered} view(s)",
            warnings=warnings,
            views_rendered=views_rendered,
            shapes_count=global_writer.shape_count,
        ), global_writer

    def export(self, sheet: SheetData, output_path: str,
               options: Optional[ExportOptions] = None) -> ExportResult:
        """
        Export a sheet to SVG, and to DXF/PDF when the output format asks for it.

        Args:
            sheet: Sheet to export
            output_path: Path of the sheet SVG file
            options: Export options (defaults apply when None)

        Returns:
            ExportResult with status, written files and warnings
        """
        options = options or ExportOptions()
        output_path = os.path.abspath(output_path)
        self._report_progress("Reading sheet...", 0.0)

        try:
            output_dir = os.path.dirname(output_path)
            if output_dir:
                os.makedirs(output_dir, exist_ok=True)

            result, writer = self._render_sheet(sheet, output_path, options)
            if not result.success:
                return result

            output_base = os.path.splitext(output_path)[0]

            if options.output_format.wants_dxf:
                self._report_progress("Creating DXF...", 0.85)
                dxf_path = f"{output_base}.dxf"
                try:
                    create_dxf_from_writer(writer, dxf_path, meters_to_mm(sheet.height), options.dxf_version)
                    result.output_files.append(dxf_path)
                except Exception as e:
                    warning = f"DXF conversion failed: {e}"
                    logger.warning(warning)
                    result.warnings.append(warning)

            if options.output_format.wants_pdf:
                self._report_progress("Converting to PDF...", 0.9)
                pdf_path = f"{output_base}.pdf"
                success, msg = self.pdf_converter.convert(output_path, pdf_path)
                if success:
                    result.output_files.append(pdf_path)
                else:
                    result.warnings.append(f"PDF conversion failed: {msg}")

            self._report_progress("Complete!", 1.0)
            return result

        except OSError as e:
            logger.error("Export of sheet '%s' failed: %s", sheet.name, e)
            return ExportResult(
                success=False,
                output_files=[],
                message=f"Export error: {str(e)}"
            )

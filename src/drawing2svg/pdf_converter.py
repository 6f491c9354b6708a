"""
PDF Converter Module

Converts saved SVG files to PDF using PyMuPDF, which renders SVG input
natively. The page size follows the SVG width and height (mm are taken
as user units, as in the SVG itself).
"""

import logging
import os
from typing import Optional, Tuple

import fitz  # PyMuPDF

logger = logging.getLogger(__name__)


class PDFConverter:
    """
    Convert SVG files to PDF.

    Usage:
        converter = PDFConverter()
        success, message = converter.convert("sheet.svg", "sheet.pdf")
    """

    def convert(self, input_path: str, output_path: Optional[str] = None) -> Tuple[bool, str]:
        """
        Convert a single SVG file to PDF.

        Args:
            input_path: Path to input SVG file
            output_path: Path for output PDF file (default: same name, .pdf)

        Returns:
            Tuple of (success, message)
        """
        input_path = os.path.abspath(input_path)
        if output_path is None:
            output_path = os.path.splitext(input_path)[0] + ".pdf"
        output_path = os.path.abspath(output_path)

        if not os.path.isfile(input_path):
            return False, f"Input file not found: {input_path}"

        try:
            with fitz.open(input_path) as svg:
                pdf_bytes = svg.convert_to_pdf()
            with fitz.open("pdf", pdf_bytes) as pdf:
                pdf.save(output_path)
        except Exception as e:
            logger.warning("PDF conversion of %s failed: %s", input_path, e)
            return False, f"Conversion error: {str(e)}"

        logger.debug("Converted %s to %s", input_path, output_path)
        return True, f"Successfully converted to {output_path}"


def convert_svg_to_pdf(svg_path: str, pdf_path: Optional[str] = None) -> Tuple[bool, str]:
    """
    Convenience function to convert an SVG file to PDF.

    Args:
        svg_path: Path to SVG file
        pdf_path: Output PDF path (optional, defaults to same name with .pdf)

    Returns:
        Tuple of (success, message)
    """
    return PDFConverter().convert(svg_path, pdf_path)

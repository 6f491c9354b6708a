"""
Command Line Interface for the drawing sheet exporter

Usage:
    drawing2svg sheet.json sheet.svg
    drawing2svg sheet.json --output out/sheet.svg --fit --bom
    drawing2svg sheet.json --format all --view "Drawing View1"
"""

import logging
import os
import sys
from typing import Optional

import click
from tqdm import tqdm

from . import __version__
from .exporter import SheetExporter
from .host import SnapshotError, load_snapshot
from .options import DEFAULT_FIT_PADDING, LINE_STYLE_SCALE_FACTOR, ExportOptions, OutputFormat


@click.command()
@click.argument("snapshot_file", type=click.Path(exists=True, dir_okay=False))
@click.argument("output_file", type=click.Path(), required=False)
@click.option(
    "-o", "--output",
    type=click.Path(),
    help="Output file path (alternative to positional argument)"
)
@click.option(
    "-f", "--format",
    type=click.Choice(["svg", "dxf", "pdf", "all"], case_sensitive=False),
    default="svg",
    help="Output format; the SVG is always written (default: svg)"
)
@click.option(
    "--view",
    "view_name",
    help="Export only the view with this name"
)
@click.option(
    "--fit/--no-fit",
    default=False,
    help="Crop the canvas to the drawn content (default: off)"
)
@click.option(
    "--padding",
    type=float,
    default=DEFAULT_FIT_PADDING,
    show_default=True,
    help="Padding around the content when fitting, in mm"
)
@click.option(
    "--bom/--no-bom",
    default=False,
    help="Attach BOM data (part number, name, specification) to balloons"
)
@click.option(
    "--individual-views",
    is_flag=True,
    help="Also write one <name>_v<n>.svg file per view"
)
@click.option(
    "--exclude-out-of-bounds",
    is_flag=True,
    help="Skip views that lie entirely outside the sheet"
)
@click.option(
    "--dxf-version",
    type=click.Choice(["R2000", "R2004", "R2007", "R2010", "R2013", "R2018"]),
    default="R2010",
    help="Target DXF version (default: R2010)"
)
@click.option(
    "--line-style-scale",
    type=float,
    default=LINE_STYLE_SCALE_FACTOR,
    show_default=True,
    help="Scale from line font segment lengths to dash lengths"
)
@click.option(
    "-q", "--quiet",
    is_flag=True,
    help="Suppress progress output"
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Enable debug logging"
)
@click.version_option(version=__version__)
def main(
    snapshot_file: str,
    output_file: Optional[str],
    output: Optional[str],
    format: str,
    view_name: Optional[str],
    fit: bool,
    padding: float,
    bom: bool,
    individual_views: bool,
    exclude_out_of_bounds: bool,
    dxf_version: str,
    line_style_scale: float,
    quiet: bool,
    verbose: bool,
):
    """
    Export a drawing sheet snapshot to SVG (and optionally DXF/PDF).

    \b
    Examples:
        drawing2svg sheet.json                  # Export to sheet.svg
        drawing2svg sheet.json out.svg --fit    # Crop to content
        drawing2svg sheet.json --bom            # Enrich balloons with BOM data
        drawing2svg sheet.json -f all           # SVG, DXF and PDF
        drawing2svg sheet.json --view "Detail A"
    """
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s", force=True)

    out_path = output or output_file
    if out_path is None:
        out_path = os.path.splitext(snapshot_file)[0] + ".svg"

    options = ExportOptions(
        fit_to_content=fit,
        padding=padding,
        include_bom_metadata=bom,
        export_individual_views=individual_views,
        specific_view_name=view_name,
        exclude_views_out_of_bounds=exclude_out_of_bounds,
        output_format=OutputFormat(format.lower()),
        dxf_version=dxf_version,
        line_style_scale_factor=line_style_scale,
    )

    try:
        sheet = load_snapshot(snapshot_file)
    except SnapshotError as e:
        click.echo(click.style(f"✗ {e}", fg="red"), err=True)
        sys.exit(1)

    exporter = SheetExporter()

    progress_bar = None
    if not quiet:
        click.echo(f"Exporting: {snapshot_file}")
        click.echo(f"Output: {out_path}")
        progress_bar = tqdm(total=100, bar_format="{percentage:3.0f}%|{bar:30}| {desc}", leave=False)

        def progress_callback(message: str, progress: float):
            progress_bar.set_description_str(message)
            progress_bar.update(int(progress * 100) - progress_bar.n)

        exporter.set_progress_callback(progress_callback)

    try:
        result = exporter.export(sheet, out_path, options)
    finally:
        if progress_bar is not None:
            progress_bar.close()

    for warning in result.warnings:
        click.echo(click.style(f"Warning: {warning}", fg="yellow"), err=True)

    if result.success:
        if not quiet:
            click.echo(click.style("✓ Export successful!", fg="green"))
            click.echo(f"  Views rendered: {result.views_rendered}")
            click.echo(f"  Shapes: {result.shapes_count}")
            click.echo("  Output files:")
            for f in result.output_files:
                click.echo(f"    - {f}")
        sys.exit(0)
    else:
        click.echo(click.style(f"✗ Export failed: {result.message}", fg="red"), err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()

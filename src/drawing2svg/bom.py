"""
Bill of materials extraction.

Reads a BOM table annotation into a lookup keyed by item number, used to
enrich balloon callouts with part number, name and specification. Headers are
recognized in English and French (ITEM / REPÈRE, PART NUMBER / # PIÈCE,
NAME / NOM / DESCRIPTION, SPECIFICATION / SPÉCIFICATION).

Extraction is best effort: any failure yields an empty lookup.
"""

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional

from .host import TableData

logger = logging.getLogger(__name__)

EMPTY_BOM: Mapping[str, 'BomRow'] = MappingProxyType({})


@dataclass(frozen=True)
class BomRow:
    """One BOM line, keyed by its item number"""
    item_number: str
    part_number: Optional[str] = None
    name: Optional[str] = None
    specification: Optional[str] = None


@dataclass(frozen=True)
class BomColumns:
    """Column indices found in a BOM header row (-1 when absent)"""
    item: int = -1
    part_number: int = -1
    name: int = -1
    specification: int = -1


def classify_header(header_text: Optional[str]) -> Optional[str]:
    """
    Map a header cell to the field it holds.

    Matching is case-insensitive; accented French headers are matched as
    written (upper-casing keeps the accents).

    Returns:
        "item", "part_number", "name", "specification" or None
    """
    if not header_text:
        return None
    header = header_text.strip().upper()

    if "ITEM" in header or header == "REPÈRE":
        return "item"
    if "PIÈCE" in header or "PIECE" in header or "PART" in header:
        return "part_number"
    if "NOM" in header or "NAME" in header or "DESCRIPTION" in header:
        return "name"
    if "SPÉCIFICATION" in header or "SPECIFICATION" in header or "SPEC" in header:
        return "specification"
    return None


def find_columns(table: TableData) -> BomColumns:
    """Scan the header row; a later matching column replaces an earlier one"""
    found: Dict[str, int] = {}
    for column in range(table.column_count):
        kind = classify_header(table.cell_text(0, column))
        if kind is not None:
            found[kind] = column
    return BomColumns(**found)


def _cell(table: TableData, row: int, column: int) -> Optional[str]:
    if column < 0:
        return None
    text = table.cell_text(row, column)
    return text.strip() if text is not None else None


def extract_bom_rows(table: TableData) -> Mapping[str, BomRow]:
    """
    Build an item-number lookup from one table.

    Row 0 is the header. Rows without an item number are skipped, and when
    an item number repeats the first row wins.

    Args:
        table: Table annotation to read

    Returns:
        Read-only mapping of item number to BomRow (empty if the table has no
        item column or cannot be read)
    """
    try:
        columns = find_columns(table)
        if columns.item < 0:
            return EMPTY_BOM

        rows: Dict[str, BomRow] = {}
        for row in range(1, table.row_count):
            item_number = _cell(table, row, columns.item)
            if not item_number:
                continue
            if item_number in rows:
                continue
            rows[item_number] = BomRow(
                item_number=item_number,
                part_number=_cell(table, row, columns.part_number),
                name=_cell(table, row, columns.name),
                specification=_cell(table, row, columns.specification),
            )
        return MappingProxyType(rows)

    except Exception as e:
        logger.debug("BOM extraction failed: %s", e)
        return EMPTY_BOM


def find_bom_table(tables: Iterable[TableData]) -> Mapping[str, BomRow]:
    """
    Lookup from the first usable BOM table.

    Tables that are not BOMs, have fewer than two rows, no columns, or no
    item column are skipped.
    """
    try:
        for table in tables:
            if not table.is_bom:
                continue
            if table.row_count < 2 or table.column_count < 1:
                continue
            if find_columns(table).item < 0:
                continue
            rows = extract_bom_rows(table)
            logger.info("BOM table found with %d item(s)", len(rows))
            return rows
    except Exception as e:
        logger.debug("BOM table lookup failed: %s", e)

    return EMPTY_BOM

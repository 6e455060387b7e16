"""
Row-level edits on Header-style tagged tables.

A table is a row tagged ``Header`` followed by data rows down to the last used
row of the sheet. Deleting rows never removes the last data row (that would
lose the formatting the sheet template carries) and never drops a legacy
``TableStart``/``TableEnd`` marker.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, List, Protocol, Sequence

from .table import is_blank
from .tags import TagError, build_tag_maps, clean_tags, normalize_tags

LOGGER = logging.getLogger(__name__)

STRUCTURAL_MARKERS = ("tablestart", "tableend")


class MutableSheet(Protocol):
    title: str

    def read_values(self) -> List[List[Any]]:
        ...

    def last_row(self) -> int:
        ...

    def get_value(self, row: int, col: int) -> Any:
        ...

    def set_value(self, row: int, col: int, value: Any) -> None:
        ...

    def delete_rows(self, row: int, amount: int = 1) -> None:
        ...

    def insert_rows(self, row: int, amount: int = 1, format_from: int | None = None) -> None:
        ...

    def clear_rows(self, row: int, amount: int = 1, start_col: int = 2) -> None:
        ...


class RowAction(str, Enum):
    CLEARED = "cleared"
    DELETED = "deleted"


def _is_sole_data_row(grid: List[List[Any]], last_row: int) -> bool | None:
    tags = build_tag_maps(grid)
    header = tags.row("header")
    if header is not None:
        return last_row <= header + 2
    start, end = tags.row("tablestart"), tags.row("tableend")
    if start is not None and end is not None:
        return start == end
    return None


def _transplant_markers(sheet: MutableSheet, grid: List[List[Any]], row_number: int) -> None:
    raw = grid[row_number - 1][0] if row_number - 1 < len(grid) and grid[row_number - 1] else ""
    if not isinstance(raw, str):
        return
    for token in raw.split(","):
        marker = "".join(token.lower().split())
        if marker not in STRUCTURAL_MARKERS:
            continue
        target = row_number - 1 if marker == "tableend" else row_number + 1
        existing = sheet.get_value(target, 1)
        sheet.set_value(target, 1, clean_tags(existing if isinstance(existing, str) else "", token))
        LOGGER.debug("Moved %s marker from row %s to row %s on <%s>", token.strip(), row_number, target, sheet.title)


def delete_table_row(sheet: MutableSheet, row_number: int) -> RowAction:
    """
    Remove one data row (1-based) from a tagged table.

    - sole data row: clear its cells (checkboxes unchecked), keep the row
    - row carrying TableStart/TableEnd: move the marker to the neighbour, then delete
    - otherwise: delete the row
    """

    grid = sheet.read_values()
    header = build_tag_maps(grid).row("header")
    if header is not None and row_number - 1 <= header:
        raise TagError(f"Row {row_number} is not a data row of <{sheet.title}>.")

    sole = _is_sole_data_row(grid, sheet.last_row())
    if sole is None:
        LOGGER.error("No 'Header' tag found in <%s>; deleting row %s without table checks.", sheet.title, row_number)
        sheet.delete_rows(row_number)
        return RowAction.DELETED

    if sole:
        sheet.clear_rows(row_number)
        return RowAction.CLEARED

    row_tags = normalize_tags(grid[row_number - 1][0]) if row_number - 1 < len(grid) and grid[row_number - 1] else []
    if any(tag in STRUCTURAL_MARKERS for tag in row_tags):
        _transplant_markers(sheet, grid, row_number)
    sheet.delete_rows(row_number)
    return RowAction.DELETED


def delete_table_rows(sheet: MutableSheet, row_numbers: Sequence[int]) -> List[RowAction]:
    """Delete several rows bottom-up so earlier deletions don't shift later targets."""

    return [delete_table_row(sheet, row) for row in sorted(set(row_numbers), reverse=True)]


def append_table_row(sheet: MutableSheet, values: Sequence[Any], key_col: int) -> int:
    """
    Add one data row to a Header table and return its 1-based row number.

    The first data row is reused while its ``key_col`` (zero-based) cell is
    blank; otherwise a row is inserted after the last used row with the first
    data row's formatting. Index 0 of ``values`` (the tag column) is not written.
    """

    grid = sheet.read_values()
    first = build_tag_maps(grid, sheet=sheet.title).require_row("header") + 2
    first_row = grid[first - 1] if len(grid) >= first else []
    if key_col >= len(first_row) or is_blank(first_row[key_col]):
        target = first
    else:
        target = sheet.last_row() + 1
        sheet.insert_rows(target, 1, format_from=first)

    for c, value in enumerate(values):
        if c == 0:
            continue
        sheet.set_value(target, c + 1, value)
    return target


def replace_table_rows(sheet: MutableSheet, rows: Sequence[Sequence[Any]]) -> int:
    """
    Replace every data row below the Header with ``rows``.

    Each row is aligned to sheet columns; index 0 (the tag column) is not
    written. The first data row is kept as the formatting template for all
    written rows, and is left cleared when ``rows`` is empty.
    """

    grid = sheet.read_values()
    tags = build_tag_maps(grid, sheet=sheet.title)
    first = tags.require_row("header") + 2
    last = sheet.last_row()

    if last >= first:
        sheet.clear_rows(first, last - first + 1)
        if last > first:
            sheet.delete_rows(first + 1, last - first)

    if not rows:
        return 0
    if len(rows) > 1:
        sheet.insert_rows(first + 1, len(rows) - 1, format_from=first)
    for offset, row in enumerate(rows):
        for c, value in enumerate(row):
            if c == 0:
                continue
            sheet.set_value(first + offset, c + 1, value)
    return len(rows)

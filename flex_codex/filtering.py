"""
Player-side selection of catalog tables and the dropdowns built from them.

`apply_filter` is the "Filter Powers/Magic Items/Skill Sets" command: it
cleans the selection sheet, gathers every row of the checked tables into the
kind's cache sheet, and points the Game sheet's dropdown columns at the
resulting labels. `handle_edit` fills the detail cells next to a dropdown
when the player picks an entry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from openpyxl.utils import get_column_letter

from tagtable import SheetData, build_tag_maps, is_blank, normalize_tags, replace_table_rows

from .catalog import TableRef, as_text, fetch_selected_rows, health_check, list_all_tables
from .context import FlexContext
from .kinds import KINDS, CatalogKind
from .workbook import column_reference

LOGGER = logging.getLogger(__name__)

GAME_SHEET = "Game"
SELECTION_FIELDS = ("tablename", "source", "isactive")


@dataclass
class FilterResult:
    selected: List[TableRef] = field(default_factory=list)
    rows_written: int = 0
    labels: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    bootstrapped: bool = False


@dataclass(frozen=True)
class EditEvent:
    document_id: str
    sheet_name: str
    row: int
    column: int
    value: Any = ""
    old_value: Any = None


def refresh_available_tables(
    ctx: FlexContext,
    kind: CatalogKind,
    tables: Optional[Sequence[TableRef]] = None,
) -> int:
    """Rewrite the selection sheet with every available table, all unchecked."""

    title = f"Sync {kind.label} Tables"
    ctx.ui.toast(f"⏳ Syncing {kind.label.lower()} tables...", title)
    if tables is None:
        tables = list_all_tables(ctx, kind)

    document = ctx.active_document()
    sheet = document.sheet(kind.selection_sheet)
    data = ctx.sheet_data(document, kind.selection_sheet, force_refresh=True)
    data.require_header()
    cols = data.tags.require_cols(SELECTION_FIELDS)
    width = max(len(data.grid[0]), max(cols.values()) + 1)

    rows = []
    for ref in tables:
        row: List[Any] = [""] * width
        row[cols["tablename"]] = ref.table_name
        row[cols["source"]] = ref.source
        row[cols["isactive"]] = False
        rows.append(row)
    written = replace_table_rows(sheet, rows)
    ctx.cache.invalidate_document(document.id)

    ctx.ui.alert(
        "✅ Success",
        f"The <{kind.selection_sheet}> sheet has been updated with {written} {kind.label.lower()} tables.\n\n"
        f'You can now check the boxes for the lists you want to use and then run "Filter {kind.label}s" again.',
    )
    return written


def selected_tables(data: SheetData) -> List[TableRef]:
    cols = data.tags.require_cols(SELECTION_FIELDS)
    selected = []
    for _, row in data.data_rows():
        if len(row) > cols["isactive"] and row[cols["isactive"]] is True:
            selected.append(TableRef(as_text(row[cols["tablename"]]), as_text(row[cols["source"]])))
    return selected


def write_cache_sheet(ctx: FlexContext, kind: CatalogKind, rows: Sequence[Sequence[Any]]) -> None:
    document = ctx.active_document()
    cache_sheet = document.sheet(kind.cache_sheet)
    cache_sheet.clear()
    cache_sheet.write_rows(1, [list(kind.fields), *rows])
    ctx.cache.invalidate_document(document.id)
    ctx.ui.toast(f"{kind.label} data cached locally.", f"Filter {kind.label}s")


def apply_dropdown_validation(ctx: FlexContext, kind: CatalogKind, labels: Sequence[str]) -> int:
    """
    Point every dropdown column of ``kind`` on the Game sheet at ``labels``.

    The rule covers the rows from the kind's table-start tag to its table-end
    tag. Returns the number of columns updated.
    """

    document = ctx.active_document()
    game = document.sheet(GAME_SHEET)
    data = ctx.sheet_data(document, GAME_SHEET)
    start = data.tags.require_row(kind.range_start_tag) + 1
    end = data.tags.require_row(kind.range_end_tag) + 1

    source_range = None
    if labels:
        dropdown_col = list(kind.fields).index("dropdown") + 1
        source_range = column_reference(kind.cache_sheet, dropdown_col, 2, len(labels) + 1)

    columns = data.tags.matching(kind.dropdown_prefix)
    for tag in columns:
        letter = get_column_letter(data.col_tags[tag] + 1)
        game.set_list_validation(f"{letter}{start}:{letter}{end}", labels, source_range=source_range)
    LOGGER.debug("Applied %d %s label(s) to %d dropdown column(s)", len(labels), kind.key, len(columns))
    return len(columns)


def apply_filter(ctx: FlexContext, kind: CatalogKind) -> FilterResult:
    title = f"Filter {kind.label}s"
    document = ctx.active_document()

    ctx.ui.toast(f"⚕️ Verifying {kind.label.lower()} sources...", title)
    tables = list_all_tables(ctx, kind)
    result = FilterResult()
    result.removed = health_check(ctx, kind, [ref.table_name for ref in tables])

    data = ctx.sheet_data(document, kind.selection_sheet, force_refresh=True)
    data.require_header()
    if not data.has_data("tablename"):
        refresh_available_tables(ctx, kind, tables)
        result.bootstrapped = True
        return result

    result.selected = selected_tables(data)
    if not result.selected:
        ctx.ui.alert(
            "ℹ️ No Filters Selected",
            f"Please check one or more boxes on the <{kind.selection_sheet}> sheet before filtering.",
        )
        return result

    ctx.ui.toast(f"Fetching all selected {kind.label.lower()}s...", title)
    frame = fetch_selected_rows(ctx, kind, result.selected)
    rows = frame.select(list(kind.fields)).rows()
    write_cache_sheet(ctx, kind, rows)
    result.rows_written = len(rows)
    result.labels = frame.get_column("dropdown").to_list()

    apply_dropdown_validation(ctx, kind, result.labels)
    ctx.ui.alert(
        "✅ Success!",
        f"Your {kind.label.lower()} selection dropdowns have been updated with {len(result.labels)} {kind.label.lower()}s.",
    )
    LOGGER.info("Filtered %d table(s) into %d %s row(s)", len(result.selected), result.rows_written, kind.key)
    return result


def _kind_for_dropdown(tag: str) -> Optional[CatalogKind]:
    for kind in KINDS.values():
        if tag.startswith(kind.dropdown_prefix):
            return kind
    return None


def handle_edit(ctx: FlexContext, event: EditEvent) -> bool:
    """
    Cell-edit trigger for the Game sheet.

    Only edits in a column tagged ``<kind>dropdown<n>`` are handled. A blank
    value clears the detail cells sharing the suffix ``n``; otherwise the
    cached row whose label matches is copied into them. Returns True when
    cells were written.
    """

    if event.sheet_name != GAME_SHEET:
        return False
    document = ctx.drive.open(event.document_id)
    game = document.sheet(GAME_SHEET)
    grid = game.read_values()
    if not grid or event.column > len(grid[0]):
        return False

    kind = None
    suffix = ""
    for tag in normalize_tags(grid[0][event.column - 1]):
        kind = _kind_for_dropdown(tag)
        if kind is not None:
            suffix = tag[len(kind.dropdown_prefix):]
            break
    if kind is None:
        return False
    kind = ctx.kind(kind.key)

    tags = build_tag_maps(grid)
    targets = {}
    for prefix, canonical in kind.detail_fields.items():
        col = tags.col(f"{prefix}{suffix}")
        if col is not None:
            targets[col] = canonical

    if is_blank(event.value):
        for col in targets:
            game.set_value(event.row, col + 1, "")
        return bool(targets)

    if not document.has_sheet(kind.cache_sheet):
        return False
    cache = SheetData.from_grid(document.read_grid(kind.cache_sheet), kind.cache_sheet)
    dropdown_col = cache.tags.col("dropdown")
    if dropdown_col is None:
        return False
    match = next((row for row in cache.grid[1:] if row[dropdown_col] == event.value), None)
    if match is None:
        LOGGER.debug("No cached %s row for %r", kind.key, event.value)
        return False

    for col, canonical in targets.items():
        cache_col = cache.tags.col(canonical)
        if cache_col is not None:
            game.set_value(event.row, col + 1, match[cache_col])
    return True

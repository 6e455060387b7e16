"""
Cross-document catalog aggregation.

The catalog of a kind is the union of the player's local DB copy and the
verified sheet of every custom source registered in the Codex. Sources that
cannot be opened (deleted, unshared or a mistyped id) are skipped with a
warning so one broken share never blocks the listing. A source without a
verified sheet for the kind simply contributes no tables.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set

import polars as pl

from tagtable import SheetData, TagError, delete_table_row

from .context import FlexContext
from .kinds import CUSTOM_PREFIX, DB_SOURCE, CatalogKind, strip_custom_prefix
from .workbook import Document, DocumentNotFoundError, SheetNotFoundError

LOGGER = logging.getLogger(__name__)

CUSTOM_SOURCES_SHEET = "Custom Abilities"
SOURCE_FIELDS = {"sheet_id": "sheetid", "name": "custabilitiesname", "owner": "owner"}

SOURCE_ERRORS = (DocumentNotFoundError, SheetNotFoundError, TagError)


@dataclass(frozen=True)
class TableRef:
    table_name: str
    source: str

    @property
    def is_custom(self) -> bool:
        return self.source != DB_SOURCE


@dataclass(frozen=True)
class RegisteredSource:
    sheet_id: str
    name: str
    owner: str = ""


def as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def catalog_frame(data: SheetData, field_map: Mapping[str, str], fields: Sequence[str]) -> pl.DataFrame:
    """Read a catalog sheet into a frame of canonical string columns."""

    records = data.records(field_map, required=("tablename",))
    rows = [{name: as_text(record.get(name, "")) for name in fields} for record in records]
    return pl.DataFrame(rows, schema={name: pl.Utf8 for name in fields})


def table_names(frame: pl.DataFrame) -> List[str]:
    """Distinct non-blank table names, sorted case-insensitively."""

    if frame.is_empty():
        return []
    names = (
        frame.select("tablename")
        .filter(pl.col("tablename").str.strip_chars() != "")
        .unique()
        .sort([pl.col("tablename").str.to_lowercase(), pl.col("tablename")])
    )
    return names.get_column("tablename").to_list()


def registered_sources(ctx: FlexContext, force_refresh: bool = True) -> List[RegisteredSource]:
    data = ctx.sheet_data(ctx.codex(), CUSTOM_SOURCES_SHEET, force_refresh=force_refresh)
    if data.header_index is None:
        return []
    sources = []
    for record in data.records(SOURCE_FIELDS, required=("sheet_id",)):
        sheet_id = as_text(record["sheet_id"]).strip()
        if sheet_id:
            sources.append(RegisteredSource(sheet_id, as_text(record["name"]), as_text(record["owner"])))
    return sources


def local_db(ctx: FlexContext) -> Document:
    return ctx.drive.open(ctx.versions.resolve_document_id(ctx.current_version, "DB"))


def db_catalog(ctx: FlexContext, kind: CatalogKind) -> pl.DataFrame:
    data = ctx.sheet_data(local_db(ctx), kind.db_sheet)
    return catalog_frame(data, kind.field_map("db"), kind.fields)


def custom_catalog(ctx: FlexContext, kind: CatalogKind, source: RegisteredSource) -> pl.DataFrame:
    """A source's verified rows; a source that publishes nothing of this kind gives an empty frame."""

    document = ctx.open_shared(source.sheet_id)
    if not document.has_sheet(kind.verified_sheet):
        LOGGER.debug("Source %s has no <%s> sheet", source.name, kind.verified_sheet)
        return pl.DataFrame(schema={name: pl.Utf8 for name in kind.fields})
    data = ctx.sheet_data(document, kind.verified_sheet)
    return catalog_frame(data, kind.field_map("custom"), kind.fields)


def _warn_skipped(ctx: FlexContext, source_name: str, exc: Exception) -> str:
    message = f'Could not access the custom source "{source_name}". Skipping.'
    LOGGER.warning("%s (%s)", message, exc)
    ctx.ui.toast(message, "⚠️ Warning")
    return message


def list_all_tables(ctx: FlexContext, kind: CatalogKind, warnings: Optional[List[str]] = None) -> List[TableRef]:
    """
    Every table of ``kind`` the player can choose from.

    DB tables come first (source "DB"), then custom tables named
    "Cust - <table>" with the registered source's friendly name as source.
    Each group is de-duplicated and sorted on its own. Unreadable sources
    are skipped; their warnings are appended to ``warnings`` when given.
    """

    db_tables = [TableRef(name, DB_SOURCE) for name in table_names(db_catalog(ctx, kind))]

    custom_frames = []
    for source in registered_sources(ctx):
        try:
            frame = custom_catalog(ctx, kind, source)
        except SOURCE_ERRORS as exc:
            message = _warn_skipped(ctx, source.name, exc)
            if warnings is not None:
                warnings.append(message)
            continue
        names = table_names(frame)
        custom_frames.append(
            pl.DataFrame(
                {"tablename": names, "source": [source.name] * len(names)},
                schema={"tablename": pl.Utf8, "source": pl.Utf8},
            )
        )

    custom_tables: List[TableRef] = []
    if custom_frames:
        custom = (
            pl.concat(custom_frames)
            .with_columns(pl.concat_str([pl.lit(CUSTOM_PREFIX), pl.col("tablename")]).alias("display"))
            .unique(subset=["display", "source"], maintain_order=True)
            .sort([pl.col("display").str.to_lowercase(), pl.col("display")], maintain_order=True)
        )
        custom_tables = [TableRef(row["display"], row["source"]) for row in custom.iter_rows(named=True)]

    return db_tables + custom_tables


def health_check(ctx: FlexContext, kind: CatalogKind, valid_names: Optional[Iterable[str]] = None) -> List[str]:
    """
    Drop selection rows naming tables that no longer exist.

    Rows are deleted bottom-up through the row mutator, so surviving rows keep
    their data. Returns the removed table names in sheet order.
    """

    if valid_names is None:
        valid_names = [ref.table_name for ref in list_all_tables(ctx, kind)]
    valid: Set[str] = set(valid_names)

    document = ctx.active_document()
    sheet = document.sheet(kind.selection_sheet)
    data = ctx.sheet_data(document, kind.selection_sheet, force_refresh=True)
    col = data.tags.require_col("tablename")

    orphans = []
    for r, row in data.data_rows():
        name = as_text(row[col]) if col < len(row) else ""
        if name and name not in valid:
            orphans.append((r + 1, name))

    if not orphans:
        return []

    ctx.ui.toast("🧹 Cleaning up stale entries...", f"Filter {kind.label}s")
    for row_number, _ in sorted(orphans, reverse=True):
        delete_table_row(sheet, row_number)
    ctx.cache.invalidate_document(document.id)

    names = [name for _, name in orphans]
    listing = "\n".join(f"- {name}" for name in names)
    ctx.ui.alert(
        "ℹ️ List Cleaned",
        f"The following {kind.label.lower()} tables could no longer be found and have been removed from your list:\n\n{listing}",
    )
    LOGGER.info("Removed %d stale %s table(s) from <%s>", len(names), kind.label.lower(), kind.selection_sheet)
    return names


def fetch_selected_rows(ctx: FlexContext, kind: CatalogKind, selected: Sequence[TableRef]) -> pl.DataFrame:
    """
    Catalog rows for the selected tables: DB rows first, then custom rows in
    the order their sources were first selected. Custom rows are remapped
    onto the canonical fields.
    """

    frames: List[pl.DataFrame] = []
    db_names = [ref.table_name for ref in selected if not ref.is_custom]
    if db_names:
        frames.append(db_catalog(ctx, kind).filter(pl.col("tablename").is_in(db_names)))

    by_source: Dict[str, List[str]] = {}
    for ref in selected:
        if ref.is_custom:
            by_source.setdefault(ref.source, []).append(strip_custom_prefix(ref.table_name))

    if by_source:
        sources = {source.name: source for source in registered_sources(ctx)}
        for source_name, names in by_source.items():
            source = sources.get(source_name)
            if source is None:
                _warn_skipped(ctx, source_name, LookupError("source is no longer registered"))
                continue
            ctx.ui.toast(f'Fetching from "{source_name}"...', f"Filter {kind.label}s")
            try:
                frame = custom_catalog(ctx, kind, source)
            except SOURCE_ERRORS as exc:
                message = _warn_skipped(ctx, source_name, exc)
                ctx.ui.alert("⚠️ Warning", message)
                continue
            frames.append(frame.filter(pl.col("tablename").is_in(names)))

    if not frames:
        return pl.DataFrame(schema={name: pl.Utf8 for name in kind.fields})
    return pl.concat(frames, how="vertical")

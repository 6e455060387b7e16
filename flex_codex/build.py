"""
Designer builds: regenerate a DB catalog sheet from the master Tables document.

Each build reads the Tables sheets for its kind, labels every real entry
(placeholder rows are skipped), sorts, and rewrites the DB sheet below its
Header row with the first data row's formatting.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence, Tuple

import polars as pl

from tagtable import SheetData, replace_table_rows

from .catalog import as_text
from .context import FlexContext
from .kinds import MAGIC_ITEMS, POWERS, SKILL_SETS, CatalogKind
from .skills import MalformedSkillError, format_skill_counts, parse_skill_counts
from .workbook import Document

LOGGER = logging.getLogger(__name__)

TABLES_ABBR = "Tbls"
POWER_SOURCE_SHEETS = ("Class", "Race", "CombatStyles", "Luck")
MAGIC_ITEM_SOURCE_SHEET = "Magic Items"
SKILL_SET_SOURCE_SHEET = "Skill Sets"

POWER_PLACEHOLDER = "Power"
MAGIC_ITEM_PLACEHOLDER = "item"
MAGIC_ITEM_EMOJI = {"Minor": "🍺", "Lesser": "🔮", "Greater": "🪬", "Artifact": "🌀"}
DEFAULT_MAGIC_ITEM_EMOJI = "✨"
CATEGORY_ORDER = ("Minor", "Lesser", "Greater", "Artifact")


def power_label(entry: Dict[str, Any]) -> str:
    return f"{entry['tablename']} - {entry['abilityname']}⚡ ({entry['usage']}, {entry['action']}) ➡ {entry['effect']}"


def magic_item_label(entry: Dict[str, Any]) -> str:
    emoji = MAGIC_ITEM_EMOJI.get(entry["subtype"], DEFAULT_MAGIC_ITEM_EMOJI)
    return f"{entry['subtype']}{emoji} - {entry['abilityname']} ({entry['usage']}, {entry['action']}) ➡ {entry['effect']}"


def skill_set_label(entry: Dict[str, Any]) -> str:
    return f"{entry['tablename']} - {entry['setname']} 🎓 ({entry['skills']})"


def _tables_document(ctx: FlexContext) -> Document:
    return ctx.drive.open(ctx.master_versions.resolve_document_id(ctx.current_version, TABLES_ABBR))


def _source_entries(ctx: FlexContext, kind: CatalogKind, document: Document, sheet_name: str, title: str) -> List[Dict[str, str]]:
    if not document.has_sheet(sheet_name):
        ctx.ui.toast(f"⚠️ Could not find sheet: {sheet_name}. Skipping.", title)
        LOGGER.warning("Tables document has no <%s> sheet; skipped", sheet_name)
        return []
    data = ctx.sheet_data(document, sheet_name, force_refresh=True)
    if data.header_index is None:
        ctx.ui.toast(f'⚠️ No "Header" tag in <{sheet_name}>. Skipping.', title)
        LOGGER.warning("<%s> has no Header row; skipped", sheet_name)
        return []
    ctx.ui.toast(f"⏳ Processing <{sheet_name}>...", title)
    records = data.records(kind.field_map("db"))
    return [{name: as_text(value) for name, value in record.items()} for record in records]


def write_catalog(ctx: FlexContext, kind: CatalogKind, entries: Sequence[Dict[str, Any]]) -> int:
    """Rewrite the active DB document's catalog sheet for ``kind``."""

    document = ctx.active_document()
    sheet = document.sheet(kind.db_sheet)
    data: SheetData = ctx.sheet_data(document, kind.db_sheet, force_refresh=True)
    data.require_header()
    field_map = kind.field_map("db")
    cols = data.tags.require_cols(field_map[name] for name in kind.fields)
    width = max(len(data.grid[0]), max(cols.values()) + 1)

    rows = []
    for entry in entries:
        row: List[Any] = [""] * width
        for name in kind.fields:
            row[cols[field_map[name]]] = entry.get(name, "")
        rows.append(row)
    written = replace_table_rows(sheet, rows)
    ctx.cache.invalidate_document(document.id)
    return written


def _frame(entries: List[Dict[str, str]], fields: Sequence[str]) -> pl.DataFrame:
    return pl.DataFrame(entries, schema={name: pl.Utf8 for name in fields})


def build_powers(ctx: FlexContext) -> int:
    kind = ctx.kind(POWERS.key)
    title = "Build Powers"
    ctx.ui.toast("⏳ Initializing power build...", title)
    tables = _tables_document(ctx)

    entries: List[Dict[str, str]] = []
    for sheet_name in POWER_SOURCE_SHEETS:
        for entry in _source_entries(ctx, kind, tables, sheet_name, title):
            name = entry["abilityname"]
            if not name or name == POWER_PLACEHOLDER:
                continue
            entry["dropdown"] = power_label(entry)
            entries.append(entry)

    ctx.ui.toast("⏳ Sorting all powers...", title)
    frame = (
        _frame(entries, kind.fields)
        .unique(subset=["dropdown"], maintain_order=True)
        .sort([pl.col("dropdown").str.to_lowercase(), pl.col("dropdown")], maintain_order=True)
    )
    written = write_catalog(ctx, kind, frame.to_dicts())
    ctx.ui.alert(
        "✅ Success",
        f"The <{kind.db_sheet}> sheet has been successfully rebuilt with {written} powers from all sources.",
    )
    LOGGER.info("Built %d power(s)", written)
    return written


def _category_rank(category: str) -> int:
    return CATEGORY_ORDER.index(category) if category in CATEGORY_ORDER else len(CATEGORY_ORDER)


def build_magic_items(ctx: FlexContext) -> int:
    kind = ctx.kind(MAGIC_ITEMS.key)
    title = "✨ Build Magic Items"
    ctx.ui.toast("⏳ Initializing magic item build...", title)
    tables = _tables_document(ctx)

    entries = []
    for entry in _source_entries(ctx, kind, tables, MAGIC_ITEM_SOURCE_SHEET, title):
        name = entry["abilityname"]
        if not name or name.lower() == MAGIC_ITEM_PLACEHOLDER:
            continue
        entry["dropdown"] = magic_item_label(entry)
        entries.append(entry)

    ctx.ui.toast("⏳ Sorting all magic items...", title)
    ranked = sorted(entries, key=lambda e: (_category_rank(e["subtype"]), e["abilityname"].lower()))
    written = write_catalog(ctx, kind, ranked)
    ctx.ui.alert(
        "✅ Success",
        f"The <{kind.db_sheet}> sheet has been successfully rebuilt with {written} magic items.",
    )
    LOGGER.info("Built %d magic item(s)", written)
    return written


def build_skill_sets(ctx: FlexContext) -> Tuple[int, List[str]]:
    """Rebuild the skill-set catalog; rows whose skills cell does not parse are reported and left out."""

    kind = ctx.kind(SKILL_SETS.key)
    title = "🎓 Build Skill Sets"
    ctx.ui.toast("⏳ Initializing skill set build...", title)
    tables = _tables_document(ctx)

    entries = []
    rejected: List[str] = []
    for entry in _source_entries(ctx, kind, tables, SKILL_SET_SOURCE_SHEET, title):
        if not entry["setname"]:
            continue
        try:
            counts = parse_skill_counts(entry["skills"])
        except MalformedSkillError as exc:
            LOGGER.warning("Skipping skill set %s: %s", entry["setname"], exc)
            rejected.append(f"- {entry['setname']}: {exc}")
            continue
        entry["skills"] = format_skill_counts(counts)
        entry["dropdown"] = skill_set_label(entry)
        entries.append(entry)

    frame = _frame(entries, kind.fields).sort(
        [pl.col("dropdown").str.to_lowercase(), pl.col("dropdown")], maintain_order=True
    )
    written = write_catalog(ctx, kind, frame.to_dicts())
    message = f"The <{kind.db_sheet}> sheet has been successfully rebuilt with {written} skill sets."
    if rejected:
        message += "\n\nThe following rows were skipped:\n" + "\n".join(rejected)
    ctx.ui.alert("✅ Success", message)
    LOGGER.info("Built %d skill set(s), skipped %d", written, len(rejected))
    return written, rejected

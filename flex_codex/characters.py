"""
Character management from the Codex <Characters> sheet.

A character is a copy of the character-sheet template ("CS") for one game
version, kept in the Characters folder and linked back to the Codex through
its <Data> sheet.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Tuple

from tagtable import SheetData, append_table_row, delete_table_rows

from .catalog import as_text
from .context import CHARACTERS_FOLDER, FlexContext, embed_codex_id
from .ids import VersionNotFoundError
from .ui import confirm_deletion
from .workbook import Document

LOGGER = logging.getLogger(__name__)

CHARACTERS_SHEET = "Characters"
CHARACTER_FIELDS = ("sheetid", "version", "charactername", "ruleslink")
CHARACTER_SHEET_ABBR = "CS"
RULES_ABBR = "Rules"


def _characters(ctx: FlexContext) -> Tuple[Document, SheetData]:
    codex = ctx.codex()
    data = ctx.sheet_data(codex, CHARACTERS_SHEET, force_refresh=True)
    data.require_header()
    return codex, data


def create_character(ctx: FlexContext, version: str) -> Optional[Document]:
    title = "Create Character"
    answer = ctx.ui.prompt(title, f"Please enter a name for your new version {version} character:")
    if answer is None or not answer.strip():
        ctx.ui.alert("ℹ️ Canceled", "Character creation was canceled.")
        return None
    name = answer.strip()

    template_id = ctx.versions.resolve_document_id(version, CHARACTER_SHEET_ABBR)
    try:
        rules_id = ctx.versions.resolve_document_id(version, RULES_ABBR)
    except VersionNotFoundError:
        LOGGER.info("No rules document registered for version %s", version)
        rules_id = ""

    ctx.ui.toast(f"⏳ Creating {name}...", title)
    document = ctx.drive.copy(template_id, name, owner=ctx.user_email, folder=CHARACTERS_FOLDER)
    embed_codex_id(document, ctx.codex_id())

    codex, data = _characters(ctx)
    cols = data.tags.require_cols(CHARACTER_FIELDS)
    width = max(len(data.grid[0]), max(cols.values()) + 1)
    row: List[Any] = [""] * width
    row[cols["sheetid"]] = document.id
    row[cols["version"]] = version
    row[cols["charactername"]] = name
    row[cols["ruleslink"]] = rules_id
    append_table_row(codex.sheet(CHARACTERS_SHEET), row, cols["sheetid"])
    ctx.cache.invalidate_document(codex.id)

    ctx.ui.alert("✅ Success", f'Your character "{name}" (version {version}) has been created.')
    LOGGER.info("Created character %s (%s) for version %s", name, document.id, version)
    return document


def create_latest_character(ctx: FlexContext) -> Optional[Document]:
    return create_character(ctx, ctx.current_version)


def create_legacy_character(ctx: FlexContext) -> Optional[Document]:
    versions = ctx.versions.versions()
    answer = ctx.ui.prompt(
        "Create Legacy Character",
        f"Which version should the character use?\n\nAvailable versions: {', '.join(versions)}",
    )
    if answer is None or not answer.strip():
        ctx.ui.alert("ℹ️ Canceled", "Character creation was canceled.")
        return None
    version = answer.strip()
    if version not in versions:
        ctx.ui.alert("⚠️ Unknown Version", f'Version "{version}" is not available. Choose one of: {", ".join(versions)}')
        return None
    return create_character(ctx, version)


def _selected_characters(ctx: FlexContext) -> Tuple[Document, SheetData, List[Tuple[int, str, str]]]:
    codex, data = _characters(ctx)
    rows = [
        (r + 1, as_text(data.cell(r, "sheetid")), as_text(data.cell(r, "charactername")))
        for r, _ in data.checked_rows()
    ]
    return codex, data, rows


def rename_character(ctx: FlexContext) -> Optional[str]:
    codex, data, rows = _selected_characters(ctx)
    if len(rows) != 1:
        ctx.ui.alert("ℹ️ Select One", "Please check the box next to exactly one character to rename.")
        return None
    row_number, sheet_id, old_name = rows[0]
    answer = ctx.ui.prompt("Rename Character", f'Please enter a new name for "{old_name}":')
    if answer is None or not answer.strip():
        ctx.ui.alert("ℹ️ Canceled", "Rename was canceled.")
        return None
    name = answer.strip()

    if sheet_id and ctx.drive.exists(sheet_id):
        ctx.drive.rename(sheet_id, name)
    else:
        LOGGER.warning("Character file %s is missing; renaming the Codex entry only", sheet_id)
    col = data.tags.require_col("charactername")
    codex.sheet(CHARACTERS_SHEET).set_value(row_number, col + 1, name)
    ctx.cache.invalidate_document(codex.id)
    ctx.ui.alert("✅ Success", f'"{old_name}" has been renamed to "{name}".')
    return name


def delete_characters(ctx: FlexContext) -> int:
    codex, _, rows = _selected_characters(ctx)
    if not rows:
        ctx.ui.alert("ℹ️ No Selection", "Please check the box next to the character(s) you wish to delete.")
        return 0
    if not confirm_deletion(ctx.ui, "Confirm Deletion", [name for _, _, name in rows], noun="character"):
        ctx.ui.alert("ℹ️ Canceled", "Deletion has been canceled.")
        return 0

    ctx.ui.toast("🗑️ Deleting characters...", "Delete Characters")
    for _, sheet_id, name in rows:
        if sheet_id and ctx.drive.exists(sheet_id):
            ctx.drive.trash(sheet_id)
        else:
            LOGGER.warning("Character file for %s (%s) was already gone", name, sheet_id)
    delete_table_rows(codex.sheet(CHARACTERS_SHEET), [row for row, _, _ in rows])
    ctx.cache.invalidate_document(codex.id)
    ctx.ui.alert("✅ Deletion Complete", f"Successfully deleted {len(rows)} character(s).")
    return len(rows)

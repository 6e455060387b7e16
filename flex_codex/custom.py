"""
Custom content: player-authored powers and magic items, and the Codex list
of custom sources they are published through.

A custom abilities document has an input sheet per kind (e.g. <Powers>), a
verified sheet the aggregator reads (e.g. <VerifiedPowers>) and optional
validation-list sheets. Only rows that pass validation are published.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from openpyxl.utils import get_column_letter

from tagtable import SheetData, append_table_row, delete_table_rows, replace_table_rows, resolve_columns

from .build import magic_item_label, power_label
from .catalog import CUSTOM_SOURCES_SHEET, SOURCE_FIELDS, as_text, registered_sources
from .context import CUSTOM_FOLDER, FlexContext, embed_codex_id
from .kinds import MAGIC_ITEMS, POWERS, CatalogKind
from .ui import confirm_deletion
from .workbook import Document, DocumentNotFoundError

LOGGER = logging.getLogger(__name__)

CUSTOM_TEMPLATE_ABBR = "Cust"
FEEDBACK_COLUMNS = ("verifystatus", "failedreason")
PASSED = "✅ Passed"
FAILED = "❌ Failed"
REQUIRED_POWER_FIELDS = {
    "tablename": "Table Name cannot be empty.",
    "abilityname": "Power's Name cannot be empty.",
    "usage": "Usage cannot be empty.",
    "action": "Action cannot be empty.",
    "effect": "Effect cannot be empty.",
}


@dataclass
class PublishResult:
    passed: int = 0
    failed: int = 0
    errors: Dict[int, List[str]] = field(default_factory=dict)


def validation_lists(ctx: FlexContext, document: Document, kind: CatalogKind) -> Optional[Dict[str, List[str]]]:
    """Allowed values per canonical field from the kind's validation sheet, or None when absent."""

    if not kind.validation_sheet or not document.has_sheet(kind.validation_sheet):
        return None
    data = ctx.sheet_data(document, kind.validation_sheet)
    if data.header_index is None:
        return None
    field_map = kind.field_map("custom")
    lists: Dict[str, List[str]] = {}
    for name in ("subtype", "usage", "action"):
        tag = field_map.get(name, name)
        if data.tags.col(tag) is not None:
            lists[name] = [as_text(value) for value in data.column_values(tag)]
    return lists


def apply_input_validations(ctx: FlexContext, kind: CatalogKind) -> Dict[str, str]:
    """
    Put dropdowns on the input sheet of the active custom list.

    Each field with a list on the validation sheet (category, usage, action)
    gets a rule from the first data row to the bottom of the sheet. Returns
    the ranges written, keyed by field.
    """

    document = ctx.active_document()
    lists = validation_lists(ctx, document, kind)
    if lists is None or not document.has_sheet(kind.input_sheet):
        ctx.ui.alert(
            "❌ Error",
            f'Could not find the <{kind.input_sheet}> and <{kind.validation_sheet}> sheets or their "Header" tags.',
        )
        return {}

    sheet = document.sheet(kind.input_sheet)
    data = ctx.sheet_data(document, kind.input_sheet, force_refresh=True)
    first = data.require_header() + 2
    last = max(sheet.ws.max_row, first)
    field_map = kind.field_map("custom")

    applied = {}
    for name, values in lists.items():
        col = data.tags.col(field_map.get(name, name))
        if col is None:
            continue
        letter = get_column_letter(col + 1)
        cell_range = f"{letter}{first}:{letter}{last}"
        sheet.set_list_validation(cell_range, values)
        applied[name] = cell_range
    LOGGER.info("Applied %d dropdown(s) to <%s>", len(applied), kind.input_sheet)
    return applied


def validate_power(entry: Dict[str, str], lists: Optional[Dict[str, List[str]]]) -> List[str]:
    errors = [message for name, message in REQUIRED_POWER_FIELDS.items() if not entry.get(name)]
    for name in ("usage", "action"):
        allowed = (lists or {}).get(name)
        if allowed and entry.get(name) and entry[name] not in allowed:
            errors.append(f"{name.capitalize()} must be one of: {', '.join(allowed)}.")
    return errors


def validate_magic_item(entry: Dict[str, str], lists: Optional[Dict[str, List[str]]]) -> List[str]:
    lists = lists or {}
    errors = []
    categories = lists.get("subtype", [])
    if not entry.get("subtype") or entry["subtype"] not in categories:
        errors.append(f"Category must be one of: {', '.join(categories)}.")
    if not entry.get("abilityname"):
        errors.append("Magic Item's Name cannot be empty.")
    usages = lists.get("usage", [])
    if not entry.get("usage") or entry["usage"] not in usages:
        errors.append(f"Usage must be one of: {', '.join(usages)}.")
    if not entry.get("effect"):
        errors.append("Effect cannot be empty.")
    return errors


VALIDATORS = {POWERS.key: (validate_power, power_label), MAGIC_ITEMS.key: (validate_magic_item, magic_item_label)}


def _input_rows(data: SheetData, field_map: Dict[str, str]) -> List[Tuple[int, Dict[str, str]]]:
    """(zero-based index, entry) per data row; fields without a column come back as ""."""

    columns = resolve_columns(data.tags, field_map)
    rows = []
    for r, row in data.data_rows():
        entry = {name: "" for name in field_map}
        for name, col in columns.items():
            entry[name] = as_text(row[col]).strip() if col < len(row) else ""
        rows.append((r, entry))
    return rows


def verify_and_publish(ctx: FlexContext, kind: CatalogKind) -> PublishResult:
    """
    Validate every non-blank input row, annotate it, and republish the rows
    that pass to the verified sheet with their dropdown label and the current
    user as source.
    """

    validate, label = VALIDATORS[kind.key]
    title = f"✨ Verify & Publish {kind.label}s"
    ctx.ui.toast(f"⏳ Verifying {kind.label.lower()}s...", title)
    document = ctx.active_document()
    field_map = kind.field_map("custom")

    lists = validation_lists(ctx, document, kind)
    if kind.key == MAGIC_ITEMS.key and lists is None:
        ctx.ui.alert("❌ Error", f'Could not find the <{kind.validation_sheet}> sheet or its "Header" tag.')
        return PublishResult()

    input_sheet = document.sheet(kind.input_sheet)
    data = ctx.sheet_data(document, kind.input_sheet, force_refresh=True)
    data.require_header()
    feedback = data.tags.require_cols(FEEDBACK_COLUMNS)
    rows = _input_rows(data, {name: tag for name, tag in field_map.items() if name not in ("dropdown", "source")})

    result = PublishResult()
    published = []
    for r, entry in rows:
        status, reason = "", ""
        if any(entry.values()):
            errors = validate(entry, lists)
            if errors:
                result.failed += 1
                result.errors[r + 1] = errors
                status, reason = FAILED, " ".join(errors)
            else:
                result.passed += 1
                status = PASSED
                published.append({**entry, "dropdown": label(entry), "source": ctx.user_email})
        input_sheet.set_value(r + 1, feedback["verifystatus"] + 1, status)
        input_sheet.set_value(r + 1, feedback["failedreason"] + 1, reason)

    verified = document.sheet(kind.verified_sheet)
    vdata = ctx.sheet_data(document, kind.verified_sheet, force_refresh=True)
    vdata.require_header()
    vcols = resolve_columns(vdata.tags, field_map, required=("dropdown", "tablename"))
    width = max(len(vdata.grid[0]), max(vcols.values()) + 1)
    out_rows = []
    for entry in published:
        row: List[Any] = [""] * width
        for name, col in vcols.items():
            row[col] = entry.get(name, "")
        out_rows.append(row)
    replace_table_rows(verified, out_rows)
    ctx.cache.invalidate_document(document.id)

    message = f"Verification complete.\n\n✅ {result.passed} {kind.label.lower()}s passed and were published."
    if result.failed:
        message += f"\n❌ {result.failed} {kind.label.lower()}s failed. Please see the 'FailedReason' column for details."
    ctx.ui.alert("✅ Verification Complete", message)
    LOGGER.info("Published %d %s row(s); %d failed", result.passed, kind.key, result.failed)
    return result


def delete_selected_items(ctx: FlexContext, kind: CatalogKind) -> int:
    title = f"Delete Selected {kind.label}s"
    document = ctx.active_document()
    sheet = document.sheet(kind.input_sheet)
    data = ctx.sheet_data(document, kind.input_sheet, force_refresh=True)
    data.require_header()
    name_tag = kind.field_map("custom")["abilityname"]

    selected = [(r + 1, as_text(data.cell(r, name_tag))) for r, _ in data.checked_rows()]
    if not selected:
        ctx.ui.alert("ℹ️ No Selection", "Please check the box next to the item(s) you wish to delete.")
        return 0

    if not confirm_deletion(ctx.ui, "Confirm Deletion", [name for _, name in selected], noun="item"):
        ctx.ui.alert("ℹ️ Canceled", "Deletion has been canceled.")
        return 0

    ctx.ui.toast("🗑️ Deleting rows...", title)
    delete_table_rows(sheet, [row for row, _ in selected])
    ctx.cache.invalidate_document(document.id)
    ctx.ui.alert("✅ Deletion Complete", f"Successfully deleted {len(selected)} item(s).")
    return len(selected)


def _sources_sheet(ctx: FlexContext) -> Tuple[Document, SheetData]:
    codex = ctx.codex()
    return codex, ctx.sheet_data(codex, CUSTOM_SOURCES_SHEET, force_refresh=True)


def register_source(ctx: FlexContext, sheet_id: str, name: str, owner: str) -> int:
    codex, data = _sources_sheet(ctx)
    data.require_header()
    cols = data.tags.require_cols(SOURCE_FIELDS.values())
    width = max(len(data.grid[0]), max(cols.values()) + 1)
    row: List[Any] = [""] * width
    row[cols[SOURCE_FIELDS["sheet_id"]]] = sheet_id
    row[cols[SOURCE_FIELDS["name"]]] = name
    row[cols[SOURCE_FIELDS["owner"]]] = owner
    target = append_table_row(codex.sheet(CUSTOM_SOURCES_SHEET), row, cols[SOURCE_FIELDS["sheet_id"]])
    ctx.cache.invalidate_document(codex.id)
    return target


def _prompt_name(ctx: FlexContext, title: str, message: str) -> Optional[str]:
    answer = ctx.ui.prompt(title, message)
    if answer is None or not answer.strip():
        ctx.ui.alert("ℹ️ Canceled", "Operation was canceled.")
        return None
    return answer.strip()


def _prompt_source_name(ctx: FlexContext, title: str, message: str, renaming: str = "") -> Optional[str]:
    """
    Ask for a friendly source name that no other registered source uses.

    The name identifies the source in every selection list, so two sources
    may not share one. ``renaming`` is the sheet id whose current name may be
    kept.
    """

    name = _prompt_name(ctx, title, message)
    if name is None:
        return None
    taken = {
        source.name.strip().casefold()
        for source in registered_sources(ctx)
        if source.sheet_id != renaming
    }
    if name.casefold() in taken:
        ctx.ui.alert("⚠️ Duplicate", f'A custom source named "{name}" is already in your Codex. Please choose another name.')
        return None
    return name


def create_custom_list(ctx: FlexContext) -> Optional[Document]:
    """Copy the custom abilities template for the current version and register it."""

    name = _prompt_source_name(ctx, "Create Custom List", "Please enter a name for your new custom ability list:")
    if name is None:
        return None
    template_id = ctx.versions.resolve_document_id(ctx.current_version, CUSTOM_TEMPLATE_ABBR)
    ctx.ui.toast("⏳ Creating your custom list...", "Create Custom List")
    document = ctx.drive.copy(template_id, name, owner=ctx.user_email, folder=CUSTOM_FOLDER)
    embed_codex_id(document, ctx.codex_id())
    register_source(ctx, document.id, name, ctx.user_email)
    ctx.ui.alert("✅ Success", f'Your custom list "{name}" has been created and added to your Codex.')
    return document


def _checked_sources(ctx: FlexContext) -> Tuple[Document, List[Tuple[int, str, str]]]:
    codex, data = _sources_sheet(ctx)
    data.require_header()
    id_tag, name_tag = SOURCE_FIELDS["sheet_id"], SOURCE_FIELDS["name"]
    rows = [(r + 1, as_text(data.cell(r, id_tag)), as_text(data.cell(r, name_tag))) for r, _ in data.checked_rows()]
    return codex, rows


def _owned_or_refuse(ctx: FlexContext, rows: List[Tuple[int, str, str]], action: str) -> bool:
    not_owned = []
    for _, sheet_id, name in rows:
        try:
            owner = ctx.drive.owner(sheet_id)
        except DocumentNotFoundError:
            owner = ""
        if owner != ctx.user_email:
            not_owned.append(name or sheet_id)
    if not_owned:
        listing = "\n".join(f"- {name}" for name in not_owned)
        ctx.ui.alert("⚠️ Not Allowed", f"Only the owner can {action} these lists:\n\n{listing}")
        return False
    return True


def _require_selection(ctx: FlexContext, rows: List[Any]) -> bool:
    if not rows:
        ctx.ui.alert("ℹ️ No Selection", f"Please check the box next to the list(s) in <{CUSTOM_SOURCES_SHEET}> first.")
        return False
    return True


def rename_custom_list(ctx: FlexContext) -> Optional[str]:
    codex, rows = _checked_sources(ctx)
    if not _require_selection(ctx, rows):
        return None
    if len(rows) > 1:
        ctx.ui.alert("⚠️ Too Many Selected", "Please check exactly one list to rename.")
        return None
    if not _owned_or_refuse(ctx, rows, "rename"):
        return None

    row_number, sheet_id, old_name = rows[0]
    name = _prompt_source_name(ctx, "Rename Custom List", f'Please enter a new name for "{old_name}":', renaming=sheet_id)
    if name is None:
        return None
    ctx.drive.rename(sheet_id, name)
    _, data = _sources_sheet(ctx)
    col = data.tags.require_col(SOURCE_FIELDS["name"])
    codex.sheet(CUSTOM_SOURCES_SHEET).set_value(row_number, col + 1, name)
    ctx.cache.invalidate_document(codex.id)
    ctx.ui.alert("✅ Success", f'"{old_name}" has been renamed to "{name}".')
    return name


def delete_custom_lists(ctx: FlexContext) -> int:
    codex, rows = _checked_sources(ctx)
    if not _require_selection(ctx, rows) or not _owned_or_refuse(ctx, rows, "delete"):
        return 0
    if not confirm_deletion(ctx.ui, "Confirm Deletion", [name for _, _, name in rows], noun="list"):
        ctx.ui.alert("ℹ️ Canceled", "Deletion has been canceled.")
        return 0

    for _, sheet_id, _ in rows:
        ctx.drive.trash(sheet_id)
    delete_table_rows(codex.sheet(CUSTOM_SOURCES_SHEET), [row for row, _, _ in rows])
    ctx.cache.invalidate_document(codex.id)
    ctx.ui.alert("✅ Deletion Complete", f"Successfully deleted {len(rows)} custom list(s).")
    return len(rows)


def share_custom_lists(ctx: FlexContext) -> List[str]:
    _, rows = _checked_sources(ctx)
    if not _require_selection(ctx, rows) or not _owned_or_refuse(ctx, rows, "share"):
        return []
    answer = ctx.ui.prompt(
        "Share Custom Lists",
        "Enter the email address(es) to share with, separated by commas:",
    )
    emails = [email.strip() for email in (answer or "").split(",") if email.strip()]
    if not emails:
        ctx.ui.alert("ℹ️ Canceled", "Operation was canceled.")
        return []
    for _, sheet_id, _ in rows:
        for email in emails:
            ctx.drive.share(sheet_id, email)
    names = "\n".join(f"- {name}" for _, _, name in rows)
    ctx.ui.alert(
        "✅ Shared",
        f"Shared with {', '.join(emails)}:\n\n{names}\n\nSend them the list ID(s) so they can add the source to their Codex.",
    )
    return emails


def add_custom_source(ctx: FlexContext) -> Optional[str]:
    title = "Add New Source"
    ctx.ui.toast("⏳ Initializing...", title)
    source_id = ctx.ui.prompt(
        "Add Custom Source",
        "Please enter the ID of the custom abilities file you want to add:",
    )
    if not source_id or not source_id.strip():
        ctx.ui.alert("ℹ️ Canceled", "Operation was canceled.")
        return None
    source_id = source_id.strip()

    try:
        ctx.open_shared(source_id)
        owner = ctx.drive.owner(source_id) or "Unknown"
    except DocumentNotFoundError as exc:
        LOGGER.warning("Could not open custom source %s: %s", source_id, exc)
        ctx.ui.alert(
            "❌ Error",
            "Could not access the spreadsheet. Please check that the ID is correct and that the owner has shared the file with you.",
        )
        return None

    if any(source.sheet_id == source_id for source in registered_sources(ctx)):
        ctx.ui.alert("⚠️ Duplicate", "This custom source has already been added to your Codex.")
        return None

    name = _prompt_source_name(
        ctx,
        "Name the Source",
        f'✅ Success! File access verified.\n\nOwner: {owner}\n\nPlease enter a friendly name for this source (e.g., "John\'s Custom List"):',
    )
    if name is None:
        return None
    register_source(ctx, source_id, name, owner)
    ctx.ui.alert("✅ Success", f'The custom source "{name}" has been successfully added to your Codex.')
    return name

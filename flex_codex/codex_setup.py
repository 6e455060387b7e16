"""
First-run setup and version sync for a player's Codex.

The master <Versions> table lists every file of every game version. Rows
flagged ``playerneeds`` are copied into the player's Master Copies folder and
logged in the Codex <MyVersions> table, which is what the player-side version
resolver reads.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Set, Tuple

from tagtable import DuplicateTagError, append_table_row, verify_tags

from .catalog import as_text
from .context import CUSTOM_FOLDER, MASTER_COPIES_FOLDER, ROOT_FOLDER, FlexContext, embed_codex_id
from .custom import CUSTOM_TEMPLATE_ABBR, register_source
from .ids import MASTER_VERSIONS_SHEET, MY_VERSIONS_SHEET, VERSION_FIELDS, version_key
from .properties import initialized_key

LOGGER = logging.getLogger(__name__)

TITLE = "⚙️ Setup"
CODEX_NAME = "Player's Codex"
OWN_LIST_NAME = "My Custom Abilities"
MASTER_FIELDS = VERSION_FIELDS + ("playerneeds",)


def master_copy_name(version: str, abbreviation: str) -> str:
    return f"v{version} MASTER_{abbreviation} - DO NOT DELETE"


def _master_rows(ctx: FlexContext) -> List[Dict[str, Any]]:
    master = ctx.master_ver()
    data = ctx.sheet_data(master, MASTER_VERSIONS_SHEET, force_refresh=True)
    return data.records({name: name for name in MASTER_FIELDS}, required=("version", "ssabbr", "ssid", "playerneeds"))


def _logged_versions(ctx: FlexContext) -> Set[Tuple[str, str]]:
    data = ctx.sheet_data(ctx.codex(), MY_VERSIONS_SHEET, force_refresh=True)
    data.require_header()
    return {
        (version_key(record["version"]), as_text(record["ssabbr"]).strip())
        for record in data.records({"version": "version", "ssabbr": "ssabbr"})
    }


def log_local_copy(ctx: FlexContext, entry: Dict[str, Any]) -> int:
    """Append one copied file to the Codex <MyVersions> table."""

    codex = ctx.codex()
    data = ctx.sheet_data(codex, MY_VERSIONS_SHEET, force_refresh=True)
    data.require_header()
    cols = data.tags.require_cols(VERSION_FIELDS)
    width = max(len(data.grid[0]), max(cols.values()) + 1)
    row: List[Any] = [""] * width
    for name in VERSION_FIELDS:
        row[cols[name]] = entry.get(name, "")
    target = append_table_row(codex.sheet(MY_VERSIONS_SHEET), row, cols["ssabbr"])
    ctx.cache.invalidate_document(codex.id)
    return target


def sync_version_files(ctx: FlexContext) -> List[Dict[str, Any]]:
    """
    Copy every master file the player needs and has not copied yet.

    Returns the logged entries, each pointing at the new local copy.
    """

    logged = _logged_versions(ctx)
    copied = []
    for record in _master_rows(ctx):
        if record["playerneeds"] is not True:
            continue
        version = version_key(record["version"])
        abbr = as_text(record["ssabbr"]).strip()
        master_id = as_text(record["ssid"]).strip()
        if not master_id or not abbr or (version, abbr) in logged:
            continue

        ctx.ui.toast(f"⏳ Copying {abbr} (Version {version})...", TITLE)
        document = ctx.drive.copy(
            master_id, master_copy_name(version, abbr), owner=ctx.user_email, folder=MASTER_COPIES_FOLDER
        )
        entry = {
            "version": version,
            "releasedate": record["releasedate"],
            "ssfullname": record["ssfullname"],
            "ssabbr": abbr,
            "ssid": document.id,
        }
        log_local_copy(ctx, entry)
        copied.append(entry)
        ctx.ui.toast(f"✅ Copied {abbr} (Version {version}) successfully!", TITLE)

    LOGGER.info("Copied %d master file(s)", len(copied))
    return copied


def _create_own_list(ctx: FlexContext) -> str:
    template_id = ctx.versions.resolve_document_id(ctx.current_version, CUSTOM_TEMPLATE_ABBR)
    document = ctx.drive.copy(template_id, OWN_LIST_NAME, owner=ctx.user_email, folder=CUSTOM_FOLDER)
    embed_codex_id(document, ctx.codex_id())
    register_source(ctx, document.id, OWN_LIST_NAME, ctx.user_email)
    return document.id


def initial_setup(ctx: FlexContext) -> bool:
    flag = initialized_key("codex")
    if ctx.properties.get(flag):
        ctx.ui.alert("ℹ️ Already Set Up", "This Codex has already been set up. Use \"Get Latest Versions\" to sync new files.")
        return False

    ctx.ui.alert(
        "👋 Welcome!",
        "Welcome to Flex! This will perform a one-time setup to prepare your Player's Codex.\n\n"
        '⚠️ This process may take several minutes to complete. Please wait until you see the "Setup Complete!" message.',
    )

    ctx.ui.toast("Organizing your Codex file...", TITLE)
    codex = ctx.codex()
    ctx.drive.rename(codex.id, CODEX_NAME)
    ctx.drive.move(codex.id, ROOT_FOLDER)

    ctx.ui.toast("Fetching the latest version list...", TITLE)
    if not ctx.master_ver().has_sheet(MASTER_VERSIONS_SHEET):
        ctx.ui.alert("❌ Error", f"Could not find the master <{MASTER_VERSIONS_SHEET}> sheet. Please contact the administrator.")
        return False

    sync_version_files(ctx)
    ctx.versions.rebuild()

    ctx.ui.toast("Creating your custom abilities list...", TITLE)
    _create_own_list(ctx)

    ctx.properties.set(flag, "true")
    ctx.ui.alert("✅ Setup Complete!", "Your Player's Codex is now ready to use.")
    return True


def get_latest_versions(ctx: FlexContext) -> int:
    ctx.ui.toast("Checking for new versions...", "🔄 Get Latest Versions")
    copied = sync_version_files(ctx)
    ctx.versions.clear()
    ctx.versions.rebuild()
    if copied:
        listing = "\n".join(f"- v{entry['version']} {entry['ssabbr']}" for entry in copied)
        message = f"Copied {len(copied)} new file(s):\n\n{listing}"
    else:
        message = "You already have the latest versions of every file."
    ctx.ui.alert("✅ Success", message)
    return len(copied)


def verify_sheet_tags(ctx: FlexContext, sheet_name: str) -> bool:
    """Check one sheet of the active document for duplicate row or column tags."""

    grid = ctx.active_document().read_grid(sheet_name)
    try:
        verify_tags(grid, sheet=sheet_name)
    except DuplicateTagError as exc:
        ctx.ui.alert("⚠️ Tag Verification Failed", str(exc))
        return False
    ctx.ui.alert("Tag Verification", "✅ Success! All column and row tags are unique.")
    return True

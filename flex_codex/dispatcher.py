"""
Single entry point for user-facing commands.

Every command runs through `run`, which looks the name up in `COMMANDS`,
reports any failure to the player as an "❌ Error" alert, and saves the
touched workbooks afterwards.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from tagtable import SheetKey

from . import build, characters, codex_setup, custom, filtering, skills
from .context import FlexContext
from .kinds import MAGIC_ITEMS, POWERS, SKILL_SETS

LOGGER = logging.getLogger(__name__)

Command = Callable[[FlexContext, Optional[str]], Any]


class UnknownCommandError(KeyError):
    def __init__(self, command: str):
        self.command = command
        super().__init__(command)

    def __str__(self) -> str:
        return f"Unknown command received: {self.command}"


def _for_kind(action: Callable[[FlexContext, Any], Any], key: str) -> Command:
    return lambda ctx, sheet: action(ctx, ctx.kind(key))


def _plain(action: Callable[[FlexContext], Any]) -> Command:
    return lambda ctx, sheet: action(ctx)


def _on_sheet(action: Callable[[FlexContext, str], Any], default: str) -> Command:
    return lambda ctx, sheet: action(ctx, sheet or default)


def _clear_properties(ctx: FlexContext) -> None:
    ctx.versions.clear()
    ctx.master_versions.clear()
    ctx.ui.alert("✅ Success", "Cached version data has been cleared and will be rebuilt on next use.")


def _invalidate_game_cache(ctx: FlexContext) -> None:
    document = ctx.active_document()
    ctx.cache.invalidate(SheetKey(document.id, filtering.GAME_SHEET))


COMMANDS: Dict[str, Command] = {
    "FilterPowers": _for_kind(filtering.apply_filter, POWERS.key),
    "FilterMagicItems": _for_kind(filtering.apply_filter, MAGIC_ITEMS.key),
    "FilterSkillSets": _for_kind(filtering.apply_filter, SKILL_SETS.key),
    "SyncPowerChoices": _for_kind(filtering.refresh_available_tables, POWERS.key),
    "SyncMagicItemChoices": _for_kind(filtering.refresh_available_tables, MAGIC_ITEMS.key),
    "SyncSkillSetChoices": _for_kind(filtering.refresh_available_tables, SKILL_SETS.key),
    "BuildPowers": _plain(build.build_powers),
    "BuildMagicItems": _plain(build.build_magic_items),
    "BuildSkillSets": _plain(build.build_skill_sets),
    "VerifyAndPublish": _for_kind(custom.verify_and_publish, POWERS.key),
    "VerifyAndPublishMagicItems": _for_kind(custom.verify_and_publish, MAGIC_ITEMS.key),
    "DeleteSelectedPowers": _for_kind(custom.delete_selected_items, POWERS.key),
    "DeleteSelectedMagicItems": _for_kind(custom.delete_selected_items, MAGIC_ITEMS.key),
    "ApplyPowerValidations": _for_kind(custom.apply_input_validations, POWERS.key),
    "ApplyMagicItemValidations": _for_kind(custom.apply_input_validations, MAGIC_ITEMS.key),
    "CreateCustomList": _plain(custom.create_custom_list),
    "RenameCustomList": _plain(custom.rename_custom_list),
    "DeleteCustomList": _plain(custom.delete_custom_lists),
    "ShareCustomLists": _plain(custom.share_custom_lists),
    "AddNewCustomSource": _plain(custom.add_custom_source),
    "CreateLatestCharacter": _plain(characters.create_latest_character),
    "CreateLegacyCharacter": _plain(characters.create_legacy_character),
    "RenameCharacter": _plain(characters.rename_character),
    "DeleteCharacter": _plain(characters.delete_characters),
    "InitialSetup": _plain(codex_setup.initial_setup),
    "GetLatestVersions": _plain(codex_setup.get_latest_versions),
    "TagVerification": _on_sheet(codex_setup.verify_sheet_tags, filtering.GAME_SHEET),
    "VerifySkills": _on_sheet(skills.verify_skill_types, SKILL_SETS.db_sheet),
    "ClearProperties": _plain(_clear_properties),
    "InvalidateGameCache": _plain(_invalidate_game_cache),
}


def run(ctx: FlexContext, command: str, sheet: Optional[str] = None) -> Any:
    """
    Run one named command.

    Errors never escape: they are logged with their traceback and shown to
    the player. Open workbooks are saved whether or not the command failed.
    """

    try:
        handler = COMMANDS.get(command)
        if handler is None:
            raise UnknownCommandError(command)
        LOGGER.debug("Running %s", command)
        return handler(ctx, sheet)
    except Exception as exc:
        LOGGER.exception("Command %s failed", command)
        ctx.ui.alert("❌ Error", str(exc))
        return None
    finally:
        ctx.drive.flush()


def run_edit(ctx: FlexContext, event: filtering.EditEvent) -> bool:
    """Replay one cell edit through the dropdown trigger with the same error handling as `run`."""

    try:
        return filtering.handle_edit(ctx, event)
    except Exception as exc:
        LOGGER.exception("Edit of %s!R%dC%d failed", event.sheet_name, event.row, event.column)
        ctx.ui.alert("❌ Error", str(exc))
        return False
    finally:
        ctx.drive.flush()

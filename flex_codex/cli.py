"""
Command-line front end.

    flex-codex run FilterPowers --document <id>
    flex-codex verify-tags Game --document <id>
    flex-codex edit --document <id> --row 12 --column 3 --value "Fire - Blast⚡ ..."

Settings come from the environment (``.env`` is read automatically); see
`flex_codex.config`.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional, Sequence

from .config import ConfigError, Settings, load_settings
from .context import FlexContext
from .dispatcher import COMMANDS, run, run_edit
from .filtering import GAME_SHEET, EditEvent
from .properties import PropertyStore
from .ui import ConsoleUI
from .workbook import Drive

LOGGER = logging.getLogger(__name__)


def build_context(settings: Settings, document_id: str = "") -> FlexContext:
    return FlexContext(
        settings=settings,
        drive=Drive(settings.drive_dir),
        properties=PropertyStore(settings.properties_path),
        ui=ConsoleUI(),
        active_document_id=document_id,
    )


def cmd_run(args: argparse.Namespace) -> None:
    ctx = build_context(load_settings(), args.document or "")
    run(ctx, args.name, sheet=args.sheet)


def cmd_verify_tags(args: argparse.Namespace) -> None:
    ctx = build_context(load_settings(), args.document or "")
    run(ctx, "TagVerification", sheet=args.sheet)


def cmd_edit(args: argparse.Namespace) -> None:
    ctx = build_context(load_settings(), args.document)
    event = EditEvent(
        document_id=args.document,
        sheet_name=args.sheet,
        row=args.row,
        column=args.column,
        value=args.value,
    )
    changed = run_edit(ctx, event)
    LOGGER.info("Edit %s", "applied" if changed else "ignored")


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Flex Codex: tagged-spreadsheet catalogs, filters and custom content",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Run a named command.")
    run_parser.add_argument("name", choices=sorted(COMMANDS), metavar="COMMAND", help="Command name, e.g. FilterPowers.")
    run_parser.add_argument("--document", help="Id of the document the command runs from (default: the Codex).")
    run_parser.add_argument("--sheet", help="Sheet to act on, for commands that take one.")
    run_parser.set_defaults(func=cmd_run)

    verify = subparsers.add_parser("verify-tags", help="Check a sheet for duplicate row/column tags.")
    verify.add_argument("sheet", nargs="?", default=GAME_SHEET, help="Sheet name (default: Game).")
    verify.add_argument("--document", help="Document id (default: the Codex).")
    verify.set_defaults(func=cmd_verify_tags)

    edit = subparsers.add_parser("edit", help="Replay a cell edit through the dropdown trigger.")
    edit.add_argument("--document", required=True, help="Character sheet document id.")
    edit.add_argument("--sheet", default=GAME_SHEET, help="Sheet name (default: Game).")
    edit.add_argument("--row", type=int, required=True, help="1-based row number.")
    edit.add_argument("--column", type=int, required=True, help="1-based column number.")
    edit.add_argument("--value", default="", help="New cell value (empty clears).")
    edit.set_defaults(func=cmd_edit)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    if not getattr(args, "func", None):
        parser.print_help()
        return

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )
    try:
        args.func(args)
    except ConfigError as exc:
        LOGGER.error("Config error: %s", exc)
        sys.exit(2)


if __name__ == "__main__":
    main()

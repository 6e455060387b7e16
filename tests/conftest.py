from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd
import pytest
from openpyxl import Workbook

from flex_codex.config import Settings
from flex_codex.context import FlexContext
from flex_codex.kinds import POWER_FIELDS, SKILL_SET_FIELDS
from flex_codex.properties import PropertyStore
from flex_codex.workbook import Drive

ME = "me@example.com"
FRIEND = "friend@example.com"
DESIGNER = "designer@example.com"

CUSTOM_POWER_TAGS = tuple({"abilityname": "name"}.get(f, f) for f in POWER_FIELDS)
CUSTOM_MAGIC_ITEM_TAGS = tuple({"abilityname": "name", "subtype": "category"}.get(f, f) for f in POWER_FIELDS)
POWER_INPUT_TAGS = ("checkbox", "tablename", "name", "usage", "action", "effect", "verifystatus", "failedreason")
MAGIC_ITEM_INPUT_TAGS = (
    "checkbox", "tablename", "category", "name", "usage", "action", "effect", "verifystatus", "failedreason",
)
SOURCE_TAGS = ("sheetid", "custabilitiesname", "owner", "checkbox")
VERSION_TAGS = ("version", "releasedate", "ssfullname", "ssabbr", "ssid")
MASTER_VERSION_TAGS = ("version", "releasedate", "playerneeds", "ssfullname", "ssabbr", "ssid")
CHARACTER_TAGS = ("sheetid", "version", "charactername", "ruleslink", "checkbox")
SELECTION_TAGS = ("tablename", "source", "isactive")
GAME_TAGS = (
    "powerdropdown1", "powerusage1", "poweraction1", "powername1", "powereffect1", "powerdropdown2", "powername2",
)


class ScriptedUI:
    """Records every alert/toast and answers prompts from a queue (None once it runs dry)."""

    def __init__(self, answers: Sequence[Optional[str]] = ()) -> None:
        self.answers: List[Optional[str]] = list(answers)
        self.alerts: List[tuple] = []
        self.prompts: List[tuple] = []
        self.toasts: List[tuple] = []

    def alert(self, title: str, message: str) -> None:
        self.alerts.append((title, message))

    def prompt(self, title: str, message: str) -> Optional[str]:
        self.prompts.append((title, message))
        return self.answers.pop(0) if self.answers else None

    def toast(self, message: str, title: str = "") -> None:
        self.toasts.append((title, message))

    @property
    def titles(self) -> List[str]:
        return [title for title, _ in self.alerts]


def power_label(table: str, name: str, usage: str, action: str, effect: str) -> str:
    return f"{table} - {name}⚡ ({usage}, {action}) ➡ {effect}"


def power_row(table: str, name: str, usage: str = "Daily", action: str = "Action", effect: str = "Burn", source: Any = "DB"):
    return (power_label(table, name, usage, action, effect), "Power", None, table, source, usage, action, name, effect)


def new_workbook() -> Workbook:
    wb = Workbook()
    wb.remove(wb.active)
    return wb


def add_table(wb: Workbook, title: str, tags: Sequence[str], rows: Sequence[Sequence[Any]] = ()):
    """Tag row, Header row, then data rows; column A is the row-tag column."""

    ws = wb.create_sheet(title)
    ws.append([None, *tags])
    ws.append(["Header", *[tag.title() for tag in tags]])
    for row in rows:
        ws.append([None, *row])
    return ws


def add_link_sheet(wb: Workbook, codex_id: Optional[str] = None) -> None:
    ws = wb.create_sheet("Data")
    ws.append([None, "Data"])
    ws.append(["CodexID", codex_id])


def add_game_sheet(wb: Workbook) -> None:
    ws = wb.create_sheet("Game")
    ws.append([None, *GAME_TAGS])
    ws.append(["Header", "Power", "Usage", "Action", "Name", "Effect", "Power", "Name"])
    ws.append(["PowerTableStart"])
    ws.append([None])
    ws.append(["PowerTableEnd"])


def custom_template_workbook() -> Workbook:
    wb = new_workbook()
    add_link_sheet(wb)
    add_table(wb, "Powers", POWER_INPUT_TAGS)
    add_table(wb, "VerifiedPowers", CUSTOM_POWER_TAGS)
    add_table(wb, "PowerValidationLists", ("usage", "action"), [("Daily", "Action"), ("Encounter", "Reaction"), ("At-Will", None)])
    add_table(wb, "Magic Items", MAGIC_ITEM_INPUT_TAGS)
    add_table(wb, "VerifiedMagicItems", CUSTOM_MAGIC_ITEM_TAGS)
    add_table(wb, "MagicItemValidationLists", ("category", "usage"), [("Minor", "Daily"), ("Greater", "Encounter")])
    return wb


def character_sheet_workbook(codex_id: Optional[str]) -> Workbook:
    wb = new_workbook()
    add_link_sheet(wb, codex_id)
    add_table(
        wb,
        "Filter Powers",
        SELECTION_TAGS,
        [("Fire", "DB", True), ("Ice", "DB", False), ("Cust - Storm", "Homebrew", True), ("Old Table", "DB", True)],
    )
    wb.create_sheet("PowerDataCache")
    add_game_sheet(wb)
    return wb


def db_workbook() -> Workbook:
    wb = new_workbook()
    add_table(
        wb,
        "Powers",
        POWER_FIELDS,
        [
            power_row("Fire", "Blast"),
            power_row("Fire", "Flame Wall", effect="Wall"),
            power_row("Ice", "Frost", "Encounter", "Reaction", "Chill"),
            power_row("Earth", "Quake", effect="Shake"),
        ],
    )
    add_table(wb, "Magic Items", POWER_FIELDS, [("Minor🍺 - Ale (Daily, Bonus) ➡ Heal", "Item", "Minor", "Loot", "DB", "Daily", "Bonus", "Ale", "Heal")])
    add_table(wb, "Skill Sets", SKILL_SET_FIELDS, [("Basics - Old 🎓 (1_Run🏃)", "Basics", "DB", "Old", "1_Run🏃", "")])
    return wb


def tables_workbook() -> Workbook:
    wb = new_workbook()
    add_table(
        wb,
        "Class",
        POWER_FIELDS,
        [
            power_row("Fire", "Blast", source=None),
            power_row("Fire", "Power", source=None),
            power_row("Ice", "Frost", "Encounter", "Reaction", "Chill", source=None),
        ],
    )
    add_table(wb, "Race", POWER_FIELDS, [power_row("Earth", "Quake", effect="Shake", source=None), power_row("Fire", "Blast", source=None)])
    add_table(
        wb,
        "Magic Items",
        POWER_FIELDS,
        [
            (None, "Item", "Greater", "Loot", None, "Encounter", "Action", "Cloak", "Hide"),
            (None, "Item", "Minor", "Loot", None, "Daily", "Bonus", "Ale", "Heal"),
            (None, "Item", "Minor", "Loot", None, "Daily", "Bonus", "item", "Nothing"),
            (None, "Item", "Mythic", "Loot", None, "Daily", "Action", "Orb", "Glow"),
            (None, "Item", "Minor", "Loot", None, "Daily", "Move", "Boots", "Run"),
        ],
    )
    add_table(
        wb,
        "Skill Sets",
        SKILL_SET_FIELDS,
        [
            (None, "Basics", None, "Thief", "2_Stealth🏃, 1_Climb💪", "Sneaky"),
            (None, "Basics", None, "Broken", "Stealth", "Bad"),
        ],
    )
    return wb


@dataclass
class World:
    root: Path
    drive: Drive
    ids: Dict[str, str]
    settings: Settings

    def ctx(self, active: str = "", answers: Sequence[Optional[str]] = ()) -> FlexContext:
        return FlexContext(
            settings=self.settings,
            drive=self.drive,
            properties=PropertyStore(self.settings.properties_path),
            ui=ScriptedUI(answers),
            active_document_id=self.ids.get(active, active),
        )

    def read(self, key: str, sheet_name: str) -> pd.DataFrame:
        """Save everything and read one sheet back the way a user would open it."""

        self.drive.flush()
        return pd.read_excel(self.drive.path_for(self.ids.get(key, key)), sheet_name=sheet_name, header=None)


def _settings(root: Path, codex_id: str, master_ver_id: str) -> Settings:
    return Settings(
        drive_dir=root / "drive",
        codex_id=codex_id,
        master_ver_id=master_ver_id,
        current_version="3",
        user_email=ME,
        properties_path=root / "properties.json",
    )


@pytest.fixture
def world(tmp_path) -> World:
    """A player's drive after setup: Codex, local DB, a character sheet and three custom sources."""

    drive = Drive(tmp_path / "drive")
    ids: Dict[str, str] = {}

    codex_wb = new_workbook()
    sources_ws = add_table(codex_wb, "Custom Abilities", SOURCE_TAGS)
    versions_ws = add_table(codex_wb, "MyVersions", VERSION_TAGS)
    add_table(codex_wb, "Characters", CHARACTER_TAGS)
    codex = drive.create("Player's Codex", ME, workbook=codex_wb)
    ids["codex"] = codex.id

    ids["db"] = drive.create("v3 MASTER_DB", ME, workbook=db_workbook()).id
    ids["cs"] = drive.create("v3 MASTER_CS", ME, workbook=character_sheet_workbook(codex.id)).id
    ids["cust"] = drive.create("v3 MASTER_Cust", ME, workbook=custom_template_workbook()).id
    rules_wb = new_workbook()
    rules_wb.create_sheet("Rules")
    ids["rules"] = drive.create("v3 MASTER_Rules", ME, workbook=rules_wb).id
    ids["tables"] = drive.create("Tables", DESIGNER, workbook=tables_workbook()).id

    homebrew = new_workbook()
    add_table(homebrew, "VerifiedPowers", CUSTOM_POWER_TAGS, [power_row("Storm", "Zap", effect="Shock", source=FRIEND)])
    ids["homebrew"] = drive.create("Homebrew", FRIEND, workbook=homebrew).id
    drive.share(ids["homebrew"], ME)
    guild = new_workbook()
    add_table(guild, "VerifiedPowers", CUSTOM_POWER_TAGS, [power_row("Shadow", "Fade", effect="Vanish", source=ME)])
    ids["guild"] = drive.create("Guild", ME, workbook=guild).id

    ver = new_workbook()
    add_table(ver, "Versions", MASTER_VERSION_TAGS, [("3", "2025-01-01", False, "Tables", "Tbls", ids["tables"])])
    ids["ver"] = drive.create("Ver", DESIGNER, workbook=ver).id

    for row in (
        (ids["homebrew"], "Homebrew", FRIEND, False),
        ("missing-id", "Broken", FRIEND, False),
        (ids["guild"], "Guild", ME, False),
    ):
        sources_ws.append([None, *row])
    for row in (
        ("2", "2024-01-01", "Character Sheet", "CS", ids["cs"]),
        ("3", "2025-01-01", "Database", "DB", ids["db"]),
        ("3", "2025-01-01", "Character Sheet", "CS", ids["cs"]),
        ("3", "2025-01-01", "Custom Abilities", "Cust", ids["cust"]),
        ("3", "2025-01-01", "Rules", "Rules", ids["rules"]),
    ):
        versions_ws.append([None, *row])

    return World(tmp_path, drive, ids, _settings(tmp_path, codex.id, ids["ver"]))


@pytest.fixture
def fresh_world(tmp_path) -> World:
    """A brand-new Codex next to the master files it has not copied yet."""

    drive = Drive(tmp_path / "drive")
    ids: Dict[str, str] = {}

    codex_wb = new_workbook()
    add_table(codex_wb, "Custom Abilities", SOURCE_TAGS)
    add_table(codex_wb, "MyVersions", VERSION_TAGS)
    add_table(codex_wb, "Characters", CHARACTER_TAGS)
    ids["codex"] = drive.create("Copy of Codex", ME, workbook=codex_wb).id

    ids["cs"] = drive.create("CS", DESIGNER, workbook=character_sheet_workbook(None)).id
    ids["cust"] = drive.create("Cust", DESIGNER, workbook=custom_template_workbook()).id
    ids["db"] = drive.create("DB", DESIGNER, workbook=db_workbook()).id
    ids["tables"] = drive.create("Tables", DESIGNER, workbook=tables_workbook()).id

    ver = new_workbook()
    add_table(
        ver,
        "Versions",
        MASTER_VERSION_TAGS,
        [
            (3, "2025-01-01", True, "Character Sheet", "CS", ids["cs"]),
            (3, "2025-01-01", True, "Custom Abilities", "Cust", ids["cust"]),
            (3, "2025-01-01", True, "Database", "DB", ids["db"]),
            (3, "2025-01-01", False, "Tables", "Tbls", ids["tables"]),
        ],
    )
    ids["ver"] = drive.create("Ver", DESIGNER, workbook=ver).id

    return World(tmp_path, drive, ids, _settings(tmp_path, ids["codex"], ids["ver"]))

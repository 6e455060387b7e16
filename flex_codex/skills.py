"""
Skill strings and skill-count cells.

A skill string is a skill name followed by exactly one type emoji
("Stealth🏃"). A skill-count cell lists ``<count>_<skill>`` tokens separated
by commas ("2_Stealth🏃, 1_Climb💪"); it is parsed into `SkillCount` values
and never edited as raw text.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from .context import FlexContext
from .ui import UI

LOGGER = logging.getLogger(__name__)

SKILL_TYPES: Dict[str, str] = {"💪": "Might", "🏃": "Motion", "👁️": "Mind", "✨": "Magic"}
TOKEN_RE = re.compile(r"^(\d+)_(.+)$")
TITLE = "🎓 Skill Verification"


class MalformedSkillError(ValueError):
    def __init__(self, token: str, cell: str):
        self.token = token
        self.cell = cell
        super().__init__(f'Malformed skill entry "{token}" in "{cell}". Expected <count>_<skill>.')


@dataclass(frozen=True)
class SkillCount:
    skill: str
    count: int

    def __str__(self) -> str:
        return f"{self.count}_{self.skill}"


def parse_skill_counts(value: Any) -> List[SkillCount]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return []
    text = str(value)
    counts = []
    for raw in text.split(","):
        token = raw.strip()
        if not token:
            continue
        match = TOKEN_RE.match(token)
        if not match or not match.group(2).strip():
            raise MalformedSkillError(token, text)
        counts.append(SkillCount(match.group(2).strip(), int(match.group(1))))
    return counts


def format_skill_counts(counts: Sequence[SkillCount]) -> str:
    return ", ".join(str(count) for count in counts)


def increment_skill(counts: Sequence[SkillCount], skill: str, amount: int = 1) -> List[SkillCount]:
    """Return a new list with ``skill`` raised by ``amount`` (added at the end when new)."""

    updated = []
    found = False
    for count in counts:
        if not found and count.skill.lower() == skill.lower():
            updated.append(SkillCount(count.skill, count.count + amount))
            found = True
        else:
            updated.append(count)
    if not found:
        updated.append(SkillCount(skill, amount))
    return updated


def _strip_types(text: str) -> str:
    for emoji in SKILL_TYPES:
        text = text.replace(emoji, "")
    return text.strip()


def fix_skill_type(skill: str, ui: UI) -> str:
    """
    Make a skill string end with exactly one type emoji.

    A single emoji in the wrong place is moved to the end. With none or
    several the player is asked to pick a type; cancelling keeps the string.
    """

    found = [emoji for emoji in SKILL_TYPES if emoji in skill]
    if len(found) == 1:
        emoji = found[0]
        if skill.strip().endswith(emoji):
            return skill
        ui.toast(f'Fixing format for: "{skill}"', TITLE)
        return f"{skill.replace(emoji, '').strip()}{emoji}"

    emojis = list(SKILL_TYPES)
    choices = "\n".join(f"{i}. {SKILL_TYPES[e]} {e}" for i, e in enumerate(emojis, start=1))
    base = (
        f'The skill "{skill}" has an invalid type.\n\nPlease choose the correct type to apply:\n\n'
        f"{choices}\n\nEnter a number from 1 to {len(emojis)}."
    )
    message = base
    while True:
        answer = ui.prompt("Correct Skill Type", message)
        if answer is None:
            ui.toast("Skipping correction...", TITLE)
            return skill
        try:
            choice = int(answer.strip()) - 1
        except ValueError:
            choice = -1
        if 0 <= choice < len(emojis):
            return f"{_strip_types(skill)}{emojis[choice]}"
        message = f"⚠️ Invalid choice. Please try again.\n\n{base}"


def verify_skill_types(ctx: FlexContext, sheet_name: str) -> int:
    """Check every ``skills`` cell of a sheet and write back corrected strings."""

    ctx.ui.toast("⏳ Verifying all skill types...", TITLE)
    document = ctx.active_document()
    sheet = document.sheet(sheet_name)
    data = ctx.sheet_data(document, sheet_name, force_refresh=True)
    data.require_header()
    col = data.tags.require_col("skills")

    corrected = 0
    for r, row in data.data_rows():
        original: Optional[Any] = row[col] if col < len(row) else ""
        if not original or not isinstance(original, str):
            continue
        fixed = fix_skill_type(original, ctx.ui)
        if fixed != original:
            sheet.set_value(r + 1, col + 1, fixed)
            corrected += 1
    ctx.cache.invalidate_document(document.id)

    if corrected:
        ctx.ui.alert("✅ Verification Complete", f"Found and corrected {corrected} skill type(s).")
    else:
        ctx.ui.alert("✅ Verification Complete", "All skill types are correctly formatted!")
    LOGGER.info("Corrected %d skill type(s) on <%s>", corrected, sheet_name)
    return corrected

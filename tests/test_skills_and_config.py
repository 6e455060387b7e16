from pathlib import Path

import pytest

from flex_codex.config import ConfigError, load_field_maps, load_settings
from flex_codex.kinds import get_kind
from flex_codex.skills import (
    MalformedSkillError,
    SkillCount,
    fix_skill_type,
    format_skill_counts,
    increment_skill,
    parse_skill_counts,
    verify_skill_types,
)

from conftest import ScriptedUI, add_table, new_workbook, ME


def test_parse_and_format_skill_counts():
    """Ensure skill counts parse and format back to the cell text."""
    counts = parse_skill_counts("2_Stealth🏃, 1_Climb💪,")
    assert counts == [SkillCount("Stealth🏃", 2), SkillCount("Climb💪", 1)]
    assert format_skill_counts(counts) == "2_Stealth🏃, 1_Climb💪"
    assert parse_skill_counts(None) == []
    assert parse_skill_counts("  ") == []


@pytest.mark.parametrize("cell", ["Stealth", "x_Stealth", "2_", "2_Stealth, Climb"])
def test_parse_skill_counts_rejects_malformed_tokens(cell):
    """Ensure malformed skill tokens raise."""
    with pytest.raises(MalformedSkillError):
        parse_skill_counts(cell)


def test_increment_skill_is_case_insensitive():
    """Ensure increments match skills regardless of case."""
    counts = parse_skill_counts("1_Stealth🏃")
    assert format_skill_counts(increment_skill(counts, "stealth🏃")) == "2_Stealth🏃"
    assert format_skill_counts(increment_skill(counts, "Lore👁️", 3)) == "1_Stealth🏃, 3_Lore👁️"
    assert format_skill_counts(counts) == "1_Stealth🏃"


def test_fix_skill_type_moves_single_emoji():
    """Ensure a lone type emoji is moved to the end."""
    ui = ScriptedUI()
    assert fix_skill_type("🏃Stealth", ui) == "Stealth🏃"
    assert fix_skill_type("Stealth🏃", ui) == "Stealth🏃"
    assert ui.prompts == []


def test_fix_skill_type_prompts_until_valid():
    """Ensure the player is asked again until the type is valid."""
    ui = ScriptedUI(answers=["9", "nope", "1"])
    assert fix_skill_type("Climb🏃💪", ui) == "Climb💪"
    assert len(ui.prompts) == 3
    assert ui.prompts[1][1].startswith("⚠️ Invalid choice")


def test_fix_skill_type_cancel_keeps_value():
    """Ensure cancelling keeps the original skill text."""
    ui = ScriptedUI()
    assert fix_skill_type("Climb", ui) == "Climb"


def test_verify_skill_types_writes_corrections(world):
    """Ensure corrected skills are written back to the sheet."""
    wb = new_workbook()
    add_table(wb, "Skills", ("skills",), [("🏃Stealth",), ("Climb💪",), ("Lore",)])
    doc = world.drive.create("Skills", ME, workbook=wb)

    ctx = world.ctx(doc.id, answers=["3"])
    assert verify_skill_types(ctx, "Skills") == 2
    assert [row[1] for row in doc.read_grid("Skills")[2:]] == ["Stealth🏃", "Climb💪", "Lore👁️"]
    assert ctx.ui.titles == ["✅ Verification Complete"]


def test_load_settings_from_env(tmp_path):
    """Ensure settings are read from the environment."""
    settings = load_settings({"FLEX_DRIVE_DIR": str(tmp_path), "FLEX_CODEX_ID": "abc", "FLEX_USER_EMAIL": ME})
    assert settings.drive_dir == tmp_path
    assert settings.codex_id == "abc"
    assert settings.current_version == "3"
    assert settings.properties_path == tmp_path / "properties.json"
    assert settings.field_maps == {}


def test_load_settings_requires_drive_dir():
    """Ensure a missing drive directory is a config error."""
    with pytest.raises(ConfigError, match="FLEX_DRIVE_DIR"):
        load_settings({})


def test_yaml_field_maps_override_kind(tmp_path):
    """Ensure YAML field maps override the built-in conventions."""
    config = Path(tmp_path) / "flex.yaml"
    config.write_text(
        "# custom lists in this group call the name column 'Ability'\n"
        "field_maps:\n"
        "  powers:\n"
        "    custom:\n"
        "      abilityname: Ability\n",
        encoding="utf-8",
    )
    settings = load_settings({"FLEX_DRIVE_DIR": str(tmp_path), "FLEX_CONFIG": str(config)})
    kind = get_kind("powers", settings.field_maps)
    assert kind.field_map("custom")["abilityname"] == "ability"
    assert kind.field_map("db")["abilityname"] == "abilityname"
    assert get_kind("powers").field_map("custom")["abilityname"] == "name"


def test_bad_field_maps_raise_config_error(tmp_path):
    """Ensure malformed field maps raise a config error."""
    config = Path(tmp_path) / "flex.yaml"
    config.write_text("field_maps:\n  powers: [abilityname]\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_field_maps(config)
    with pytest.raises(ConfigError, match="not found"):
        load_field_maps(Path(tmp_path) / "missing.yaml")


def test_unknown_kind():
    """Ensure unknown kinds are rejected."""
    with pytest.raises(KeyError, match="Unknown catalog kind"):
        get_kind("spells")

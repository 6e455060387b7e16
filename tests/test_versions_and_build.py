import pytest

from flex_codex.build import build_magic_items, build_powers, build_skill_sets, magic_item_label
from flex_codex.ids import VersionNotFoundError, VersionResolver, version_key
from flex_codex.properties import MASTER_SHEET_IDS_KEY, SHEET_IDS_KEY, PropertyStore

from conftest import power_label


def test_version_key_normalizes_numbers():
    """Ensure numeric versions become plain strings."""
    assert version_key(3) == "3"
    assert version_key(3.0) == "3"
    assert version_key(" 3 ") == "3"
    assert version_key(2.5) == "2.5"


def test_resolver_reads_table_and_writes_through(world):
    """Ensure the resolver reads the table and stores the result."""
    ctx = world.ctx("cs")
    assert ctx.versions.resolve_document_id("3", "CS") == world.ids["cs"]
    assert ctx.versions.resolve_document_id(3.0, "DB") == world.ids["db"]

    stored = PropertyStore(world.settings.properties_path).get_json(SHEET_IDS_KEY)
    assert stored["3"]["Rules"]["ssid"] == world.ids["rules"]
    assert ctx.versions.versions() == ["2", "3"]


def test_second_resolve_is_served_from_memory(tmp_path):
    """Ensure a repeated lookup never reloads the version table or the store."""
    calls = []

    def load_table():
        calls.append(1)
        return {"3": {"CS": {"version": "3", "ssabbr": "CS", "ssid": "cs-id"}}}

    store = PropertyStore(tmp_path / "properties.json")
    resolver = VersionResolver(store, load_table)
    assert resolver.resolve_document_id("3", "CS") == "cs-id"
    assert len(calls) == 1

    store.delete(SHEET_IDS_KEY)
    assert resolver.resolve_document_id(3, "CS") == "cs-id"
    assert len(calls) == 1
    assert store.get(SHEET_IDS_KEY) is None


def test_resolver_prefers_property_store_over_table(world):
    """Ensure stored ids win until a miss forces a rebuild."""
    store = PropertyStore(world.settings.properties_path)
    store.set_json(SHEET_IDS_KEY, {"3": {"CS": {"version": "3", "ssabbr": "CS", "ssid": "from-store"}}})

    ctx = world.ctx("cs")
    assert ctx.versions.resolve_document_id("3", "CS") == "from-store"
    # a miss in the stored map falls through to the table and refreshes the store
    assert ctx.versions.resolve_document_id("3", "DB") == world.ids["db"]
    assert ctx.versions.resolve_document_id("3", "CS") == world.ids["cs"]


def test_resolver_raises_after_all_tiers(world):
    """Ensure a lookup missing from every tier raises."""
    ctx = world.ctx("cs")
    with pytest.raises(VersionNotFoundError, match='version "9", abbreviation "CS"'):
        ctx.versions.resolve_document_id("9", "CS")


def test_clear_resets_memory_and_store(world):
    """Ensure clearing empties memory and the property store."""
    ctx = world.ctx("cs")
    ctx.versions.resolve_document_id("3", "CS")
    ctx.versions.clear()
    assert ctx.versions.memory == {}
    assert PropertyStore(world.settings.properties_path).get(SHEET_IDS_KEY) is None


def test_master_resolver_is_separate(world):
    """Ensure the master resolver keeps its own key."""
    ctx = world.ctx("db")
    assert ctx.master_versions.resolve_document_id("3", "Tbls") == world.ids["tables"]
    assert PropertyStore(world.settings.properties_path).get(MASTER_SHEET_IDS_KEY)
    with pytest.raises(VersionNotFoundError):
        ctx.master_versions.resolve_document_id("3", "CS")


def test_build_powers_dedupes_sorts_and_skips_placeholders(world):
    """Ensure built powers are de-duplicated, sorted and free of placeholders."""
    ctx = world.ctx("db")
    assert build_powers(ctx) == 3

    powers = world.read("db", "Powers")
    assert powers.iloc[2:, 1].dropna().tolist() == [
        power_label("Earth", "Quake", "Daily", "Action", "Shake"),
        power_label("Fire", "Blast", "Daily", "Action", "Burn"),
        power_label("Ice", "Frost", "Encounter", "Reaction", "Chill"),
    ]
    skipped = [message for _, message in ctx.ui.toasts if "Could not find sheet" in message]
    assert len(skipped) == 2
    assert ctx.ui.titles == ["✅ Success"]


def test_magic_item_label_uses_category_emoji():
    """Ensure magic item labels carry their category emoji."""
    entry = {"subtype": "Lesser", "abilityname": "Ring", "usage": "Daily", "action": "Bonus", "effect": "Shine"}
    assert magic_item_label(entry) == "Lesser🔮 - Ring (Daily, Bonus) ➡ Shine"
    entry["subtype"] = "Odd"
    assert magic_item_label(entry).startswith("Odd✨ - Ring")


def test_build_magic_items_orders_by_category(world):
    """Ensure magic items are ordered by category then name."""
    ctx = world.ctx("db")
    assert build_magic_items(ctx) == 4

    items = world.read("db", "Magic Items")
    assert items.iloc[2:, 8].dropna().tolist() == ["Ale", "Boots", "Cloak", "Orb"]
    assert items.iloc[2, 1] == "Minor🍺 - Ale (Daily, Bonus) ➡ Heal"
    assert items.iloc[5, 1] == "Mythic✨ - Orb (Daily, Action) ➡ Glow"


def test_build_skill_sets_rejects_malformed_rows(world):
    """Ensure malformed skill set rows are skipped and reported."""
    ctx = world.ctx("db")
    written, rejected = build_skill_sets(ctx)

    assert written == 1
    assert len(rejected) == 1 and "Broken" in rejected[0]
    sets = world.read("db", "Skill Sets")
    assert sets.iloc[2:, 1].dropna().tolist() == ["Basics - Thief 🎓 (2_Stealth🏃, 1_Climb💪)"]

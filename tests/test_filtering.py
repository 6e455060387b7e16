from flex_codex.catalog import TableRef, fetch_selected_rows, health_check, list_all_tables, registered_sources
from flex_codex.filtering import EditEvent, apply_filter, handle_edit, refresh_available_tables

from conftest import FRIEND, ME, power_label

FIRE_BLAST = power_label("Fire", "Blast", "Daily", "Action", "Burn")
FIRE_WALL = power_label("Fire", "Flame Wall", "Daily", "Action", "Wall")
STORM_ZAP = power_label("Storm", "Zap", "Daily", "Action", "Shock")


def set_active_flags(world, flags):
    sheet = world.drive.open(world.ids["cs"]).sheet("Filter Powers")
    for row, value in flags.items():
        sheet.set_value(row, 4, value)


def test_registered_sources_read_from_codex(world):
    """Ensure registered sources come from the Codex table in order."""
    sources = registered_sources(world.ctx())
    assert [(s.name, s.owner) for s in sources] == [("Homebrew", FRIEND), ("Broken", FRIEND), ("Guild", ME)]


def test_list_all_tables_skips_unreadable_source(world):
    """Ensure an unreadable source is skipped with a warning."""
    ctx = world.ctx("cs")
    warnings = []
    refs = list_all_tables(ctx, ctx.kind("powers"), warnings)

    assert refs == [
        TableRef("Earth", "DB"),
        TableRef("Fire", "DB"),
        TableRef("Ice", "DB"),
        TableRef("Cust - Shadow", "Guild"),
        TableRef("Cust - Storm", "Homebrew"),
    ]
    assert len(warnings) == 1 and "Broken" in warnings[0]
    assert any("Broken" in message for _, message in ctx.ui.toasts)


def test_list_all_tables_quiet_for_sources_without_verified_sheet(world):
    """Ensure sources that publish nothing of a kind add no tables and no warnings."""
    ctx = world.ctx("cs")
    warnings = []
    refs = list_all_tables(ctx, ctx.kind("skillsets"), warnings)

    assert refs == [TableRef("Basics", "DB")]
    assert len(warnings) == 1 and "Broken" in warnings[0]


def test_list_all_tables_skips_unshared_source(world):
    """Ensure a source not shared with the player is skipped with a warning."""
    world.drive.info(world.ids["homebrew"]).shared_with.clear()
    ctx = world.ctx("cs")
    warnings = []
    refs = list_all_tables(ctx, ctx.kind("powers"), warnings)

    assert TableRef("Cust - Storm", "Homebrew") not in refs
    assert TableRef("Cust - Shadow", "Guild") in refs
    assert [w for w in warnings if "Homebrew" in w]
    assert len(warnings) == 2


def test_fetch_selected_rows_remaps_custom_fields(world):
    """Ensure custom rows are remapped onto the catalog fields."""
    ctx = world.ctx("cs")
    frame = fetch_selected_rows(ctx, ctx.kind("powers"), [TableRef("Fire", "DB"), TableRef("Cust - Storm", "Homebrew")])

    assert frame.get_column("dropdown").to_list() == [FIRE_BLAST, FIRE_WALL, STORM_ZAP]
    assert frame.get_column("abilityname").to_list() == ["Blast", "Flame Wall", "Zap"]
    assert frame.get_column("source").to_list() == ["DB", "DB", FRIEND]


def test_fetch_selected_rows_warns_on_broken_source(world):
    """Ensure a broken source only loses its own rows."""
    ctx = world.ctx("cs")
    frame = fetch_selected_rows(ctx, ctx.kind("powers"), [TableRef("Ice", "DB"), TableRef("Cust - Gone", "Broken")])

    assert frame.height == 1
    assert "⚠️ Warning" in ctx.ui.titles


def test_health_check_removes_orphans(world):
    """Ensure selections naming missing tables are removed."""
    ctx = world.ctx("cs")
    removed = health_check(ctx, ctx.kind("powers"))

    assert removed == ["Old Table"]
    assert "ℹ️ List Cleaned" in ctx.ui.titles
    selection = world.read("cs", "Filter Powers")
    assert selection.iloc[2:, 1].tolist() == ["Fire", "Ice", "Cust - Storm"]


def test_apply_filter_end_to_end(world):
    """Ensure filtering writes the cache and dropdown rules."""
    ctx = world.ctx("cs")
    result = apply_filter(ctx, ctx.kind("powers"))

    assert result.removed == ["Old Table"]
    assert result.selected == [TableRef("Fire", "DB"), TableRef("Cust - Storm", "Homebrew")]
    assert result.rows_written == 3
    assert result.labels == [FIRE_BLAST, FIRE_WALL, STORM_ZAP]
    assert ctx.ui.titles[-1] == "✅ Success!"

    cache = world.read("cs", "PowerDataCache")
    assert cache.iloc[0].tolist()[:4] == ["dropdown", "type", "subtype", "tablename"]
    assert cache.iloc[1:, 0].tolist() == result.labels
    assert cache.iloc[3, 7] == "Zap"

    game = world.drive.open(world.ids["cs"]).sheet("Game")
    assert game.list_validation(3, 2) == result.labels
    assert game.list_validation(5, 7) == result.labels
    assert game.list_validation(4, 3) is None
    assert game.list_validation(6, 2) is None


def test_apply_filter_without_selection_writes_nothing(world):
    """Ensure filtering with nothing active leaves the cache alone."""
    set_active_flags(world, {3: False, 5: False, 6: False})
    ctx = world.ctx("cs")
    result = apply_filter(ctx, ctx.kind("powers"))

    assert result.selected == []
    assert "ℹ️ No Filters Selected" in ctx.ui.titles
    document = world.drive.open(world.ids["cs"])
    assert document.read_grid("PowerDataCache") == []
    assert document.sheet("Game").ws.data_validations.dataValidation == []


def test_apply_filter_with_empty_list_bootstraps(world):
    """Ensure an empty selection list is filled with every table."""
    sheet = world.drive.open(world.ids["cs"]).sheet("Filter Powers")
    sheet.delete_rows(4, 3)
    sheet.clear_rows(3)

    ctx = world.ctx("cs")
    result = apply_filter(ctx, ctx.kind("powers"))

    assert result.bootstrapped
    assert ctx.ui.titles[-1] == "✅ Success"
    selection = world.read("cs", "Filter Powers")
    assert selection.iloc[2:, 1].tolist() == ["Earth", "Fire", "Ice", "Cust - Shadow", "Cust - Storm"]
    assert selection.iloc[2:, 3].tolist() == [False] * 5


def test_refresh_available_tables_counts_rows(world):
    """Ensure refreshing the selection list reports its size."""
    ctx = world.ctx("cs")
    assert refresh_available_tables(ctx, ctx.kind("powers")) == 5


def test_apply_filter_with_single_table(world):
    """Ensure a single active table is filtered on its own."""
    ctx = world.ctx("cs")
    set_active_flags(world, {3: False, 5: False})
    set_active_flags(world, {6: True})
    sheet = world.drive.open(world.ids["cs"]).sheet("Filter Powers")
    sheet.set_value(6, 2, "Ice")

    result = apply_filter(ctx, ctx.kind("powers"))
    assert result.labels == [power_label("Ice", "Frost", "Encounter", "Reaction", "Chill")]


def test_handle_edit_fills_and_clears_details(world):
    """Ensure picking a label fills its details and clearing empties them."""
    ctx = world.ctx("cs")
    apply_filter(ctx, ctx.kind("powers"))
    game = world.drive.open(world.ids["cs"]).sheet("Game")

    assert handle_edit(ctx, EditEvent(world.ids["cs"], "Game", row=4, column=2, value=STORM_ZAP))
    assert [game.get_value(4, c) for c in range(3, 7)] == ["Daily", "Action", "Zap", "Shock"]
    assert game.get_value(4, 8) == ""

    assert handle_edit(ctx, EditEvent(world.ids["cs"], "Game", row=4, column=2, value=""))
    assert [game.get_value(4, c) for c in range(3, 7)] == ["", "", "", ""]


def test_handle_edit_uses_matching_suffix(world):
    """Ensure details go to the columns with the dropdown's suffix."""
    ctx = world.ctx("cs")
    apply_filter(ctx, ctx.kind("powers"))
    game = world.drive.open(world.ids["cs"]).sheet("Game")

    assert handle_edit(ctx, EditEvent(world.ids["cs"], "Game", row=3, column=7, value=FIRE_WALL))
    assert game.get_value(3, 8) == "Flame Wall"
    assert game.get_value(3, 5) == ""


def test_handle_edit_ignores_other_cells(world):
    """Ensure edits outside dropdown columns are ignored."""
    ctx = world.ctx("cs")
    assert not handle_edit(ctx, EditEvent(world.ids["cs"], "Filter Powers", row=3, column=2, value="x"))
    assert not handle_edit(ctx, EditEvent(world.ids["cs"], "Game", row=3, column=3, value="x"))
    assert not handle_edit(ctx, EditEvent(world.ids["cs"], "Game", row=3, column=2, value="Not a cached label"))

"""
Catalog kinds (powers, magic items, skill sets) and the sheets/tags each uses.

Every kind shares one canonical field set per catalog entry. The ``db``
convention is the tag layout of the DB catalog, the player cache sheet and
the master Tables document; ``custom`` is the layout of a custom abilities
document (input and verified sheets).
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Mapping, Optional, Sequence

from tagtable import TableSchema, with_conventions

DB_SOURCE = "DB"
CUSTOM_PREFIX = "Cust - "

POWER_FIELDS = ("dropdown", "type", "subtype", "tablename", "source", "usage", "action", "abilityname", "effect")
SKILL_SET_FIELDS = ("dropdown", "tablename", "source", "setname", "skills", "description")

POWER_SCHEMA = TableSchema(
    name="powers",
    fields=POWER_FIELDS,
    required=("dropdown", "tablename"),
    conventions={"custom": {"abilityname": "name"}},
)

MAGIC_ITEM_SCHEMA = TableSchema(
    name="magicitems",
    fields=POWER_FIELDS,
    required=("dropdown", "tablename"),
    conventions={"custom": {"abilityname": "name", "subtype": "category"}},
)

SKILL_SET_SCHEMA = TableSchema(
    name="skillsets",
    fields=SKILL_SET_FIELDS,
    required=("dropdown", "tablename"),
)


@dataclass(frozen=True)
class CatalogKind:
    key: str
    label: str
    schema: TableSchema
    db_sheet: str
    verified_sheet: str
    selection_sheet: str
    cache_sheet: str
    tag_prefix: str
    # Game-sheet detail column prefix -> canonical field, filled on dropdown edits
    detail_fields: Mapping[str, str] = field(default_factory=dict)
    input_sheet: Optional[str] = None
    validation_sheet: Optional[str] = None

    @property
    def dropdown_prefix(self) -> str:
        return f"{self.tag_prefix}dropdown"

    @property
    def range_start_tag(self) -> str:
        return f"{self.tag_prefix}tablestart"

    @property
    def range_end_tag(self) -> str:
        return f"{self.tag_prefix}tableend"

    @property
    def fields(self) -> Sequence[str]:
        return tuple(self.schema.fields)

    def field_map(self, convention: str = "db") -> Dict[str, str]:
        return self.schema.field_map(convention)


POWERS = CatalogKind(
    key="powers",
    label="Power",
    schema=POWER_SCHEMA,
    db_sheet="Powers",
    verified_sheet="VerifiedPowers",
    selection_sheet="Filter Powers",
    cache_sheet="PowerDataCache",
    tag_prefix="power",
    detail_fields={
        "powerusage": "usage",
        "poweraction": "action",
        "powername": "abilityname",
        "powereffect": "effect",
    },
    input_sheet="Powers",
    validation_sheet="PowerValidationLists",
)

MAGIC_ITEMS = CatalogKind(
    key="magicitems",
    label="Magic Item",
    schema=MAGIC_ITEM_SCHEMA,
    db_sheet="Magic Items",
    verified_sheet="VerifiedMagicItems",
    selection_sheet="Filter Magic Items",
    cache_sheet="MagicItemDataCache",
    tag_prefix="magicitem",
    detail_fields={
        "magicitemusage": "usage",
        "magicitemaction": "action",
        "magicitemname": "abilityname",
        "magicitemeffect": "effect",
    },
    input_sheet="Magic Items",
    validation_sheet="MagicItemValidationLists",
)

SKILL_SETS = CatalogKind(
    key="skillsets",
    label="Skill Set",
    schema=SKILL_SET_SCHEMA,
    db_sheet="Skill Sets",
    verified_sheet="VerifiedSkillSets",
    selection_sheet="Filter Skill Sets",
    cache_sheet="SkillSetDataCache",
    tag_prefix="skillset",
    detail_fields={
        "skillsetname": "setname",
        "skillsetskills": "skills",
    },
)

KINDS: Dict[str, CatalogKind] = {kind.key: kind for kind in (POWERS, MAGIC_ITEMS, SKILL_SETS)}


def get_kind(key: str, field_maps: Mapping[str, Mapping[str, Mapping[str, str]]] | None = None) -> CatalogKind:
    """Look up a kind by key, with any configured field-map overrides merged in."""

    try:
        kind = KINDS[key]
    except KeyError as exc:
        raise KeyError(f"Unknown catalog kind '{key}'. Expected one of: {', '.join(KINDS)}") from exc
    overrides = (field_maps or {}).get(key)
    if not overrides:
        return kind
    return replace(kind, schema=with_conventions(kind.schema, overrides))


def strip_custom_prefix(display_name: str) -> str:
    if display_name.startswith(CUSTOM_PREFIX):
        return display_name[len(CUSTOM_PREFIX):]
    return display_name

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Sequence

from .tags import MissingTagError, TagMap, normalize_tags


def canonical_tag(name: str) -> str:
    """Normalize a configured tag name the same way sheet tags are normalized."""

    tags = normalize_tags(str(name))
    return tags[0] if tags else ""


@dataclass(frozen=True)
class TableSchema:
    """
    Canonical field set for one kind of tagged table.

    ``conventions`` maps a source convention (e.g. "db", "custom") to
    canonical -> raw column tag overrides. Fields without an override use
    their canonical name as the tag.
    """

    name: str
    fields: Sequence[str]
    required: Sequence[str] = ()
    conventions: Mapping[str, Mapping[str, str]] = field(default_factory=dict)

    def field_map(self, convention: str = "db") -> Dict[str, str]:
        overrides = self.conventions.get(convention, {})
        return {name: canonical_tag(overrides.get(name, name)) for name in self.fields}


def merge_field_mappings(
    overrides: Mapping[str, Mapping[str, str]] | None,
    base: Mapping[str, Mapping[str, str]] | None = None,
) -> Dict[str, Dict[str, str]]:
    """
    Merge convention overrides (canonical -> raw tag) over a base mapping.

    Missing conventions/fields fall back to the base so callers only need to
    specify the deltas.
    """

    mapping: Dict[str, Dict[str, str]] = {k: dict(v) for k, v in (base or {}).items()}
    if overrides:
        for convention, cols in overrides.items():
            target = mapping.setdefault(str(convention), {})
            for k, v in (cols or {}).items():
                target[str(k)] = str(v)
    return mapping


def with_conventions(schema: TableSchema, overrides: Mapping[str, Mapping[str, str]] | None) -> TableSchema:
    """Return a copy of ``schema`` with convention overrides merged in."""

    if not overrides:
        return schema
    return TableSchema(
        name=schema.name,
        fields=tuple(schema.fields),
        required=tuple(schema.required),
        conventions=merge_field_mappings(overrides, base=schema.conventions),
    )


def resolve_columns(
    tags: TagMap,
    field_map: Mapping[str, str],
    required: Iterable[str] = (),
) -> Dict[str, int]:
    """
    Translate canonical fields to column indices using a sheet's tag map.

    Required fields must be present; optional ones are left out when the
    sheet does not carry their tag.
    """

    required_set = set(required)
    resolved: Dict[str, int] = {}
    missing: List[str] = []
    for canonical, raw in field_map.items():
        col = tags.col(raw)
        if col is None:
            if canonical in required_set:
                missing.append(raw)
            continue
        resolved[canonical] = col
    if missing:
        raise MissingTagError(", ".join(missing), "column", tags.sheet)
    return resolved

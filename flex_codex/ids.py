"""
Version -> abbreviation -> document id resolution.

Lookups go through three tiers: an in-memory map, the persistent property
store, and finally the authoritative version table (the player's
<MyVersions> sheet in the Codex, or the master <Versions> document for
designer builds). A miss in the faster tiers rebuilds them from the table.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from tagtable import SheetData, is_blank

from .properties import MASTER_SHEET_IDS_KEY, SHEET_IDS_KEY, PropertyStore

LOGGER = logging.getLogger(__name__)

VersionIndex = Dict[str, Dict[str, Dict[str, str]]]

MY_VERSIONS_SHEET = "MyVersions"
MASTER_VERSIONS_SHEET = "Versions"
VERSION_FIELDS = ("version", "releasedate", "ssfullname", "ssabbr", "ssid")


class VersionNotFoundError(LookupError):
    def __init__(self, version: str, abbreviation: str):
        self.version = version
        self.abbreviation = abbreviation
        super().__init__(f'Could not find Sheet ID for version "{version}", abbreviation "{abbreviation}".')


def version_key(value: Any) -> str:
    """Spreadsheet cells give 3, 3.0 or "3"; all of them mean version "3"."""

    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def load_version_table(data: SheetData) -> VersionIndex:
    """Build the version index from a Header-style version table."""

    index: VersionIndex = {}
    fields = {name: name for name in ("version", "ssabbr", "ssid", "ssfullname")}
    for record in data.records(fields, required=("version", "ssabbr", "ssid")):
        version = version_key(record["version"])
        abbr = str(record["ssabbr"]).strip()
        ssid = str(record["ssid"]).strip()
        if is_blank(version) or not abbr or not ssid:
            continue
        index.setdefault(version, {})[abbr] = {
            "version": version,
            "ssabbr": abbr,
            "ssid": ssid,
            "ssfullname": str(record["ssfullname"]),
        }
    return index


class VersionResolver:
    """Player-side resolver backed by the Codex <MyVersions> table."""

    property_key = SHEET_IDS_KEY

    def __init__(self, properties: PropertyStore, load_table: Callable[[], VersionIndex]) -> None:
        self.properties = properties
        self._load_table = load_table
        self._memory: VersionIndex = {}

    @property
    def memory(self) -> VersionIndex:
        return self._memory

    def _lookup(self, version: str, abbreviation: str) -> Optional[Dict[str, str]]:
        return self._memory.get(version, {}).get(abbreviation)

    def entry(self, version: Any, abbreviation: str) -> Dict[str, str]:
        version = version_key(version)
        if not self._memory:
            self._memory = self.properties.get_json(self.property_key, {}) or {}
            if self._memory:
                LOGGER.debug("Loaded %s from the property store", self.property_key)

        found = self._lookup(version, abbreviation)
        if found is None:
            self.rebuild()
            found = self._lookup(version, abbreviation)
        if found is None:
            raise VersionNotFoundError(version, abbreviation)
        return found

    def resolve_document_id(self, version: Any, abbreviation: str) -> str:
        return self.entry(version, abbreviation)["ssid"]

    def rebuild(self) -> VersionIndex:
        """Reload from the authoritative table and write through to the store."""

        self._memory = self._load_table()
        self.properties.set_json(self.property_key, self._memory)
        LOGGER.debug("Rebuilt %s with %d version(s)", self.property_key, len(self._memory))
        return self._memory

    def clear(self) -> None:
        self._memory = {}
        self.properties.delete(self.property_key)

    def versions(self) -> List[str]:
        if not self._memory:
            self.rebuild()
        return sorted(self._memory, key=lambda v: (len(v), v))


class MasterVersionResolver(VersionResolver):
    """Designer-side resolver backed by the master <Versions> document."""

    property_key = MASTER_SHEET_IDS_KEY

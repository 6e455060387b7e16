"""
Per-operation memo of loaded sheets.

A `SheetDataCache` is created once per operation context and passed around
explicitly. Entries are keyed by (document key, sheet name). Documents that
report structural edits (row/column insert or delete) drop the matching entry
automatically; destructive operations should still ask for
``force_refresh=True`` when they need guaranteed-fresh data.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Protocol, Set

from .table import SheetData

LOGGER = logging.getLogger(__name__)


class GridSource(Protocol):
    def read_grid(self, sheet_name: str) -> List[List[Any]]:
        ...

    def add_structure_listener(self, listener: Callable[[str], None]) -> None:
        ...


@dataclass(frozen=True)
class SheetKey:
    document_key: str
    sheet_name: str


class SheetDataCache:
    def __init__(self) -> None:
        self._entries: Dict[SheetKey, SheetData] = {}
        self._watched: Set[int] = set()

    def __contains__(self, key: SheetKey) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: SheetKey) -> SheetData | None:
        return self._entries.get(key)

    def put(self, key: SheetKey, data: SheetData) -> None:
        self._entries[key] = data

    def invalidate(self, key: SheetKey) -> None:
        if self._entries.pop(key, None) is not None:
            LOGGER.debug("Invalidated cached sheet %s/%s", key.document_key, key.sheet_name)

    def invalidate_document(self, document_key: str) -> None:
        for key in [k for k in self._entries if k.document_key == document_key]:
            self.invalidate(key)

    def clear(self) -> None:
        self._entries.clear()

    def get_sheet_data(
        self,
        document_key: str,
        sheet_name: str,
        document: GridSource,
        force_refresh: bool = False,
    ) -> SheetData:
        """Return the cached grid + tag maps, reading the sheet on a miss or when forced."""

        key = SheetKey(document_key, sheet_name)
        self._watch(document_key, document)
        if not force_refresh and key in self._entries:
            return self._entries[key]

        data = SheetData.from_grid(document.read_grid(sheet_name), sheet_name)
        self._entries[key] = data
        return data

    def _watch(self, document_key: str, document: GridSource) -> None:
        if id(document) in self._watched:
            return
        self._watched.add(id(document))
        document.add_structure_listener(
            lambda sheet_name: self.invalidate(SheetKey(document_key, sheet_name))
        )

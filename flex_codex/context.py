from __future__ import annotations

from dataclasses import dataclass, field

from tagtable import SheetData, SheetDataCache, build_tag_maps

from .config import Settings
from .ids import (
    MASTER_VERSIONS_SHEET,
    MY_VERSIONS_SHEET,
    MasterVersionResolver,
    VersionIndex,
    VersionResolver,
    load_version_table,
)
from .kinds import CatalogKind, get_kind
from .properties import PropertyStore
from .ui import UI
from .workbook import Document, Drive

CODEX_LINK_SHEET = "Data"
CODEX_LINK_ROW = "codexid"
CODEX_LINK_COL = "data"

ROOT_FOLDER = "MetaScape Flex"
MASTER_COPIES_FOLDER = f"{ROOT_FOLDER}/Master Copies - DO NOT DELETE"
CHARACTERS_FOLDER = f"{ROOT_FOLDER}/Characters"
CUSTOM_FOLDER = f"{ROOT_FOLDER}/Custom Abilities"


@dataclass
class FlexContext:
    """
    Everything one command needs: settings, the drive, the property store,
    the UI seam, a fresh sheet cache and the document the command runs from.
    """

    settings: Settings
    drive: Drive
    properties: PropertyStore
    ui: UI
    active_document_id: str = ""
    cache: SheetDataCache = field(default_factory=SheetDataCache)

    def __post_init__(self) -> None:
        self.versions = VersionResolver(self.properties, self._load_player_versions)
        self.master_versions = MasterVersionResolver(self.properties, self._load_master_versions)

    @property
    def user_email(self) -> str:
        return self.settings.user_email

    @property
    def current_version(self) -> str:
        return self.settings.current_version

    def kind(self, key: str) -> CatalogKind:
        return get_kind(key, self.settings.field_maps)

    def active_document(self) -> Document:
        return self.drive.open(self.active_document_id or self.codex_id())

    def codex_id(self) -> str:
        """
        Id of the player's Codex.

        A document with a <Data> sheet carries the Codex id at the CodexID/Data
        cell. Otherwise the configured id is used, and with none configured
        the active document is taken to be the Codex.
        """

        if not self.active_document_id:
            return self.settings.codex_id
        document = self.drive.open(self.active_document_id)
        if not document.has_sheet(CODEX_LINK_SHEET):
            return self.settings.codex_id or document.id
        tags = build_tag_maps(document.read_grid(CODEX_LINK_SHEET))
        row, col = tags.row(CODEX_LINK_ROW), tags.col(CODEX_LINK_COL)
        if row is not None and col is not None:
            linked = document.sheet(CODEX_LINK_SHEET).get_value(row + 1, col + 1)
            if linked:
                return str(linked)
        return self.settings.codex_id or document.id

    def open_shared(self, doc_id: str) -> Document:
        """Open another player's document; it must be owned by or shared with the current user."""

        return self.drive.open(doc_id, user=self.user_email)

    def codex(self) -> Document:
        return self.drive.open(self.codex_id())

    def master_ver(self) -> Document:
        return self.drive.open(self.settings.master_ver_id)

    def sheet_data(self, document: Document, sheet_name: str, force_refresh: bool = False) -> SheetData:
        return self.cache.get_sheet_data(document.id, sheet_name, document, force_refresh=force_refresh)

    def _load_player_versions(self) -> VersionIndex:
        return load_version_table(self.sheet_data(self.codex(), MY_VERSIONS_SHEET, force_refresh=True))

    def _load_master_versions(self) -> VersionIndex:
        return load_version_table(self.sheet_data(self.master_ver(), MASTER_VERSIONS_SHEET, force_refresh=True))


def embed_codex_id(document: Document, codex_id: str) -> bool:
    """Write ``codex_id`` into the CodexID/Data cell of a document's <Data> sheet."""

    if not document.has_sheet(CODEX_LINK_SHEET):
        return False
    tags = build_tag_maps(document.read_grid(CODEX_LINK_SHEET))
    row, col = tags.row(CODEX_LINK_ROW), tags.col(CODEX_LINK_COL)
    if row is None or col is None:
        return False
    document.sheet(CODEX_LINK_SHEET).set_value(row + 1, col + 1, codex_id)
    return True

"""
Local spreadsheet host: a directory of ``.xlsx`` workbooks plus a JSON index.

`Drive` plays the part of the user's file store (open by id, copy, rename,
trash, share) and `Document`/`Sheet` wrap openpyxl workbooks with the handful
of grid operations the tagged-table layer needs. Grids are read by content:
the used range ends at the last row/column holding a value, and empty cells
come back as "".
"""

from __future__ import annotations

import json
import logging
import shutil
import uuid
from copy import copy
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

import openpyxl
from openpyxl.utils import get_column_letter, quote_sheetname
from openpyxl.utils.cell import range_boundaries
from openpyxl.workbook.workbook import Workbook
from openpyxl.worksheet.cell_range import CellRange
from openpyxl.worksheet.datavalidation import DataValidation
from openpyxl.worksheet.worksheet import Worksheet

LOGGER = logging.getLogger(__name__)

INDEX_FILE = "drive.json"
EMPTY_LIST_PLACEHOLDER = " "


class DocumentNotFoundError(LookupError):
    """Raised when a document id is unknown, trashed or its file is missing."""


class SheetNotFoundError(LookupError):
    def __init__(self, sheet_name: str, document_name: str | None = None):
        self.sheet_name = sheet_name
        where = f" in '{document_name}'" if document_name else ""
        super().__init__(f"Could not find the <{sheet_name}> sheet{where}.")


def _has_value(value: Any) -> bool:
    return value is not None and value != ""


class Sheet:
    """One worksheet, addressed with 1-based row/column numbers."""

    def __init__(self, document: "Document", worksheet: Worksheet) -> None:
        self.document = document
        self.ws = worksheet

    @property
    def title(self) -> str:
        return self.ws.title

    def _used_bounds(self) -> tuple[int, int]:
        last_row = last_col = 0
        for r, row in enumerate(self.ws.iter_rows(values_only=True), start=1):
            for c, value in enumerate(row, start=1):
                if _has_value(value):
                    last_row = max(last_row, r)
                    last_col = max(last_col, c)
        return last_row, last_col

    def last_row(self) -> int:
        return self._used_bounds()[0]

    def last_column(self) -> int:
        return self._used_bounds()[1]

    def read_values(self) -> List[List[Any]]:
        last_row, last_col = self._used_bounds()
        if not last_row:
            return []
        grid: List[List[Any]] = []
        for row in self.ws.iter_rows(min_row=1, max_row=last_row, max_col=last_col, values_only=True):
            grid.append(["" if value is None else value for value in row])
        return grid

    def get_value(self, row: int, col: int) -> Any:
        value = self.ws.cell(row=row, column=col).value
        return "" if value is None else value

    def set_value(self, row: int, col: int, value: Any) -> None:
        self.ws.cell(row=row, column=col).value = None if value == "" else value

    def write_row(self, row: int, values: Sequence[Any], start_col: int = 1) -> None:
        for offset, value in enumerate(values):
            self.set_value(row, start_col + offset, value)

    def write_rows(self, start_row: int, rows: Sequence[Sequence[Any]], start_col: int = 1) -> None:
        for offset, values in enumerate(rows):
            self.write_row(start_row + offset, values, start_col=start_col)

    def clear(self) -> None:
        """Drop every value on the sheet, keeping formatting."""

        for row in self.ws.iter_rows():
            for cell in row:
                cell.value = None

    def clear_rows(self, row: int, amount: int = 1, start_col: int = 2) -> None:
        """Clear values from ``start_col`` rightwards; checkbox cells are unchecked instead."""

        max_col = self.ws.max_column
        for r in range(row, row + amount):
            for c in range(start_col, max_col + 1):
                cell = self.ws.cell(row=r, column=c)
                cell.value = False if isinstance(cell.value, bool) else None

    def delete_rows(self, row: int, amount: int = 1) -> None:
        self.ws.delete_rows(row, amount)
        self.document.notify_structure_change(self.title)

    def insert_rows(self, row: int, amount: int = 1, format_from: int | None = None) -> None:
        """Insert ``amount`` rows before ``row``, optionally copying a row's formatting onto them."""

        self.ws.insert_rows(row, amount)
        if format_from is not None:
            source = format_from + amount if format_from >= row else format_from
            for r in range(row, row + amount):
                self.copy_row_format(source, r)
        self.document.notify_structure_change(self.title)

    def copy_row_format(self, source_row: int, target_row: int) -> None:
        for c in range(1, self.ws.max_column + 1):
            src = self.ws.cell(row=source_row, column=c)
            if src.has_style:
                self.ws.cell(row=target_row, column=c)._style = copy(src._style)
        height = self.ws.row_dimensions[source_row].height
        if height is not None:
            self.ws.row_dimensions[target_row].height = height

    def set_list_validation(self, cell_range: str, values: Sequence[Any], source_range: str | None = None) -> DataValidation:
        """
        Restrict ``cell_range`` to a list of allowed values.

        When ``source_range`` (an absolute reference such as
        ``'PowerDataCache'!$A$2:$A$9``) is given the rule points at it;
        otherwise the values are inlined. An empty list becomes a single " "
        entry so the rule still exists. Existing rules overlapping the range
        are removed first.
        """

        target = CellRange(cell_range)
        kept = []
        for dv in self.ws.data_validations.dataValidation:
            if any(not target.isdisjoint(existing) for existing in dv.sqref.ranges):
                continue
            kept.append(dv)
        self.ws.data_validations.dataValidation = kept

        if source_range and values:
            formula = source_range
        else:
            items = [str(v) for v in values] or [EMPTY_LIST_PLACEHOLDER]
            formula = '"' + ",".join(items) + '"'
        dv = DataValidation(type="list", formula1=formula, allow_blank=True)
        dv.showErrorMessage = True
        dv.add(cell_range)
        self.ws.add_data_validation(dv)
        return dv

    def list_validation(self, row: int, col: int) -> Optional[List[str]]:
        """Allowed values of the list rule covering a cell, or None when there is no rule."""

        coordinate = f"{get_column_letter(col)}{row}"
        for dv in self.ws.data_validations.dataValidation:
            if dv.type != "list" or coordinate not in dv.sqref:
                continue
            return self.document.resolve_list_formula(dv.formula1)
        return None


class Document:
    """An open workbook registered on a `Drive`."""

    def __init__(self, drive: "Drive", doc_id: str, path: Path, workbook: Workbook) -> None:
        self.drive = drive
        self.id = doc_id
        self.path = path
        self.workbook = workbook
        self._listeners: List[Callable[[str], None]] = []

    def __repr__(self) -> str:
        return f"Document(id={self.id!r}, name={self.name!r})"

    @property
    def name(self) -> str:
        return self.drive.info(self.id).name

    @property
    def sheet_names(self) -> List[str]:
        return list(self.workbook.sheetnames)

    def has_sheet(self, name: str) -> bool:
        return name in self.workbook.sheetnames

    def sheet(self, name: str) -> Sheet:
        if name not in self.workbook.sheetnames:
            raise SheetNotFoundError(name, self.name)
        return Sheet(self, self.workbook[name])

    def add_sheet(self, name: str) -> Sheet:
        return Sheet(self, self.workbook.create_sheet(name))

    def read_grid(self, sheet_name: str) -> List[List[Any]]:
        return self.sheet(sheet_name).read_values()

    def add_structure_listener(self, listener: Callable[[str], None]) -> None:
        self._listeners.append(listener)

    def notify_structure_change(self, sheet_name: str) -> None:
        for listener in list(self._listeners):
            listener(sheet_name)

    def resolve_list_formula(self, formula: str | None) -> List[str]:
        if not formula:
            return []
        if formula.startswith('"'):
            return formula.strip('"').split(",")
        sheet_part, _, ref = formula.rpartition("!")
        sheet_name = sheet_part.strip("'").replace("''", "'")
        min_col, min_row, max_col, max_row = range_boundaries(ref.replace("$", ""))
        ws = self.workbook[sheet_name]
        values: List[str] = []
        for row in ws.iter_rows(min_row=min_row, max_row=max_row, min_col=min_col, max_col=max_col, values_only=True):
            values.extend(str(v) for v in row if _has_value(v))
        return values

    def save(self) -> None:
        self.workbook.save(self.path)


def column_reference(sheet_name: str, col: int, first_row: int, last_row: int) -> str:
    """Absolute single-column range on another sheet, for list rules."""

    letter = get_column_letter(col)
    return f"{quote_sheetname(sheet_name)}!${letter}${first_row}:${letter}${last_row}"


@dataclass
class DocumentInfo:
    name: str
    owner: str
    folder: str = ""
    shared_with: List[str] = field(default_factory=list)
    trashed: bool = False


class Drive:
    """A folder of workbooks keyed by document id, with a JSON index of their metadata."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)
        self.index_path = self.root / INDEX_FILE
        self.documents: Dict[str, DocumentInfo] = {}
        self._open: Dict[str, Document] = {}
        self.load()

    def load(self) -> None:
        if self.index_path.exists():
            with self.index_path.open("r", encoding="utf-8") as f:
                data = json.load(f)
            self.documents = {doc_id: DocumentInfo(**info) for doc_id, info in data.get("documents", {}).items()}
        else:
            self.documents = {}

    def save_index(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        with self.index_path.open("w", encoding="utf-8") as f:
            json.dump({"documents": {k: asdict(v) for k, v in self.documents.items()}}, f, indent=2)

    def path_for(self, doc_id: str) -> Path:
        return self.root / f"{doc_id}.xlsx"

    def info(self, doc_id: str) -> DocumentInfo:
        info = self.documents.get(doc_id)
        if info is None:
            raise DocumentNotFoundError(f"No document with id '{doc_id}'.")
        return info

    def exists(self, doc_id: str) -> bool:
        info = self.documents.get(doc_id)
        return info is not None and not info.trashed and self.path_for(doc_id).exists()

    def can_read(self, doc_id: str, user: str) -> bool:
        info = self.documents.get(doc_id)
        return info is not None and (user == info.owner or user in info.shared_with)

    def open(self, doc_id: str, user: Optional[str] = None) -> Document:
        """
        Open a document by id.

        With ``user`` given, the document must be owned by or shared with that
        user; otherwise it is reported as not found, like an unshared file.
        """

        if user is not None and not self.can_read(doc_id, user):
            raise DocumentNotFoundError(f"Document '{doc_id}' is not shared with {user}.")
        if doc_id in self._open:
            return self._open[doc_id]
        if not doc_id or not self.exists(str(doc_id)):
            raise DocumentNotFoundError(f"Could not open document '{doc_id}'.")
        path = self.path_for(doc_id)
        document = Document(self, doc_id, path, openpyxl.load_workbook(path))
        self._open[doc_id] = document
        return document

    def create(self, name: str, owner: str, folder: str = "", workbook: Workbook | None = None) -> Document:
        doc_id = uuid.uuid4().hex
        self.root.mkdir(parents=True, exist_ok=True)
        path = self.path_for(doc_id)
        wb = workbook if workbook is not None else Workbook()
        wb.save(path)
        self.documents[doc_id] = DocumentInfo(name=name, owner=owner, folder=folder)
        self.save_index()
        document = Document(self, doc_id, path, wb)
        self._open[doc_id] = document
        LOGGER.debug("Created document %s (%s)", name, doc_id)
        return document

    def copy(self, doc_id: str, name: str, owner: str, folder: str = "") -> Document:
        """Copy a document (including unsaved edits) to a new id owned by ``owner``."""

        source = self.open(doc_id)
        source.save()
        new_id = uuid.uuid4().hex
        shutil.copyfile(source.path, self.path_for(new_id))
        self.documents[new_id] = DocumentInfo(name=name, owner=owner, folder=folder)
        self.save_index()
        LOGGER.debug("Copied %s to %s (%s)", doc_id, name, new_id)
        return self.open(new_id)

    def rename(self, doc_id: str, name: str) -> None:
        self.info(doc_id).name = name
        self.save_index()

    def move(self, doc_id: str, folder: str) -> None:
        self.info(doc_id).folder = folder
        self.save_index()

    def trash(self, doc_id: str) -> None:
        self.info(doc_id).trashed = True
        self._open.pop(doc_id, None)
        self.save_index()

    def share(self, doc_id: str, email: str) -> None:
        info = self.info(doc_id)
        if email not in info.shared_with:
            info.shared_with.append(email)
            self.save_index()

    def owner(self, doc_id: str) -> str:
        return self.info(doc_id).owner

    def flush(self) -> None:
        """Save every open workbook and the index."""

        for document in self._open.values():
            document.save()
        self.save_index()

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Sequence

from openpyxl.utils import get_column_letter


class TagError(ValueError):
    """Raised when a sheet's tag layout is not what the caller expects."""


class MissingTagError(TagError):
    def __init__(self, tag: str, axis: str, sheet: str | None = None):
        self.tag = tag
        self.axis = axis
        self.sheet = sheet
        where = f" in <{sheet}>" if sheet else ""
        super().__init__(f'Could not find a "{tag}" {axis} tag{where}.')


class DuplicateTagError(TagError):
    def __init__(self, tag: str, axis: str, original: str, duplicate: str, sheet: str | None = None):
        self.tag = tag
        self.axis = axis
        self.original = original
        self.duplicate = duplicate
        self.sheet = sheet
        where = f" in <{sheet}>" if sheet else ""
        super().__init__(
            f'Duplicate {axis} tag found{where}: "{tag}"\n\nOriginal: {original}\nDuplicate: {duplicate}'
        )


def normalize_tags(value: Any) -> List[str]:
    """
    Split a raw tag cell into normalized tokens.

    "Header, TableEnd" -> ["header", "tableend"]. Anything that is not a
    non-empty string yields an empty list.
    """

    if not value or not isinstance(value, str):
        return []
    squashed = "".join(value.lower().split())
    return [tag for tag in squashed.split(",") if tag]


def clean_tags(*tag_strings: Any) -> str:
    """Merge tag strings into one comma-separated, de-duplicated, sorted string."""

    tags: List[str] = []
    for raw in tag_strings:
        if not raw or not isinstance(raw, str):
            continue
        tags.extend(tag.strip() for tag in raw.split(","))
    return ",".join(sorted({tag for tag in tags if tag}))


def a1(row_index: int, col_index: int) -> str:
    """Zero-based grid coordinates to A1 notation."""

    return f"{get_column_letter(col_index + 1)}{row_index + 1}"


@dataclass
class TagMap:
    """Row and column tag lookups for one grid (zero-based indices)."""

    row_tags: Dict[str, int] = field(default_factory=dict)
    col_tags: Dict[str, int] = field(default_factory=dict)
    sheet: str | None = None

    def row(self, tag: str) -> int | None:
        return self.row_tags.get(tag)

    def col(self, tag: str) -> int | None:
        return self.col_tags.get(tag)

    def require_row(self, tag: str) -> int:
        if tag not in self.row_tags:
            raise MissingTagError(tag, "row", self.sheet)
        return self.row_tags[tag]

    def require_col(self, tag: str) -> int:
        if tag not in self.col_tags:
            raise MissingTagError(tag, "column", self.sheet)
        return self.col_tags[tag]

    def require_cols(self, tags: Iterable[str]) -> Dict[str, int]:
        return {tag: self.require_col(tag) for tag in tags}

    def matching(self, prefix: str) -> List[str]:
        """Column tags starting with ``prefix``, in column order."""

        found = [tag for tag in self.col_tags if tag.startswith(prefix)]
        return sorted(found, key=lambda tag: self.col_tags[tag])


def build_tag_maps(grid: Sequence[Sequence[Any]], sheet: str | None = None) -> TagMap:
    """
    Build row/column tag maps from column 0 and row 0 of a grid.

    The first occurrence of a tag wins. Duplicates are not reported here; run
    `verify_tags` when the layout needs to be checked.
    """

    tag_map = TagMap(sheet=sheet)
    for r, row in enumerate(grid):
        if not row:
            continue
        for tag in normalize_tags(row[0]):
            tag_map.row_tags.setdefault(tag, r)

    header = grid[0] if grid else []
    for c, cell in enumerate(header):
        for tag in normalize_tags(cell):
            tag_map.col_tags.setdefault(tag, c)
    return tag_map


def verify_tags(grid: Sequence[Sequence[Any]], sheet: str | None = None) -> None:
    """
    Check that no normalized tag repeats along either axis.

    Columns (row 0) are checked before rows (column 0). Stops at the first
    duplicate and raises DuplicateTagError with both cell locations.
    """

    seen: Dict[str, str] = {}
    header = grid[0] if grid else []
    for c, cell in enumerate(header):
        for tag in normalize_tags(cell):
            location = a1(0, c)
            if tag in seen:
                raise DuplicateTagError(tag, "column", seen[tag], location, sheet)
            seen[tag] = location

    seen = {}
    for r, row in enumerate(grid):
        if not row:
            continue
        for tag in normalize_tags(row[0]):
            location = a1(r, 0)
            if tag in seen:
                raise DuplicateTagError(tag, "row", seen[tag], location, sheet)
            seen[tag] = location

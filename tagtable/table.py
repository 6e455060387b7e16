from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Tuple

from .schema import resolve_columns
from .tags import TagMap, build_tag_maps


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def is_blank_row(row: Iterable[Any], skip_tag_column: bool = True) -> bool:
    cells = list(row)
    if skip_tag_column:
        cells = cells[1:]
    return all(is_blank(cell) or cell is False for cell in cells)


@dataclass
class SheetData:
    """A loaded grid plus its tag maps, with accessors for Header-style tables."""

    grid: List[List[Any]]
    tags: TagMap
    sheet_name: str

    @classmethod
    def from_grid(cls, grid: List[List[Any]], sheet_name: str) -> "SheetData":
        return cls(grid=grid, tags=build_tag_maps(grid, sheet=sheet_name), sheet_name=sheet_name)

    @property
    def row_tags(self) -> Dict[str, int]:
        return self.tags.row_tags

    @property
    def col_tags(self) -> Dict[str, int]:
        return self.tags.col_tags

    @property
    def header_index(self) -> int | None:
        return self.tags.row("header")

    def require_header(self) -> int:
        return self.tags.require_row("header")

    def cell(self, row_index: int, tag: str, default: Any = "") -> Any:
        col = self.tags.col(tag)
        if col is None or row_index >= len(self.grid):
            return default
        row = self.grid[row_index]
        return row[col] if col < len(row) else default

    def header_values(self) -> List[Any]:
        return list(self.grid[self.require_header()])

    def data_rows(self) -> Iterator[Tuple[int, List[Any]]]:
        """Yield (zero-based index, row) for every row below the Header row."""

        header = self.require_header()
        for r in range(header + 1, len(self.grid)):
            yield r, self.grid[r]

    def checked_rows(self, checkbox_tag: str = "checkbox") -> List[Tuple[int, List[Any]]]:
        """Data rows whose checkbox cell is ticked."""

        col = self.tags.require_col(checkbox_tag)
        return [(r, row) for r, row in self.data_rows() if col < len(row) and row[col] is True]

    def column_values(self, tag: str) -> List[Any]:
        """Non-blank values of one tagged column below the Header row."""

        col = self.tags.require_col(tag)
        return [row[col] for _, row in self.data_rows() if col < len(row) and not is_blank(row[col])]

    def has_data(self, tag: str) -> bool:
        col = self.tags.col(tag)
        if col is None or self.header_index is None:
            return False
        return any(col < len(row) and not is_blank(row[col]) for _, row in self.data_rows())

    def records(
        self,
        field_map: Mapping[str, str],
        required: Iterable[str] = (),
        skip_blank: bool = True,
    ) -> List[Dict[str, Any]]:
        """
        Read data rows into dicts keyed by canonical field name.

        ``field_map`` is canonical -> raw column tag. Fields whose tag is
        missing from the sheet come back as "".
        """

        columns = resolve_columns(self.tags, field_map, required)
        out: List[Dict[str, Any]] = []
        for _, row in self.data_rows():
            if skip_blank and is_blank_row(row):
                continue
            record = {name: "" for name in field_map}
            for name, col in columns.items():
                record[name] = row[col] if col < len(row) else ""
            out.append(record)
        return out

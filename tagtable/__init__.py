"""
Tag-addressed table access for spreadsheet grids: tag maps, schema
descriptors, a per-operation sheet cache and safe row edits.
"""

from .tags import (  # noqa: F401
    DuplicateTagError,
    MissingTagError,
    TagError,
    TagMap,
    a1,
    build_tag_maps,
    clean_tags,
    normalize_tags,
    verify_tags,
)

from .schema import (  # noqa: F401
    TableSchema,
    canonical_tag,
    merge_field_mappings,
    resolve_columns,
    with_conventions,
)

from .table import SheetData, is_blank, is_blank_row  # noqa: F401
from .cache import SheetDataCache, SheetKey  # noqa: F401
from .rows import (  # noqa: F401
    RowAction,
    append_table_row,
    delete_table_row,
    delete_table_rows,
    replace_table_rows,
)

__all__ = [
    "DuplicateTagError",
    "MissingTagError",
    "TagError",
    "TagMap",
    "a1",
    "build_tag_maps",
    "clean_tags",
    "normalize_tags",
    "verify_tags",
    "TableSchema",
    "canonical_tag",
    "merge_field_mappings",
    "resolve_columns",
    "with_conventions",
    "SheetData",
    "is_blank",
    "is_blank_row",
    "SheetDataCache",
    "SheetKey",
    "RowAction",
    "append_table_row",
    "delete_table_row",
    "delete_table_rows",
    "replace_table_rows",
]

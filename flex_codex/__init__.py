"""
Flex Codex: player and designer tooling for the MetaScape Flex spreadsheets.

Catalogs of powers, magic items and skill sets live in tagged workbooks; this
package aggregates them across documents, filters them into character-sheet
dropdowns and manages the player's custom content.
"""

from .config import ConfigError, Settings, load_settings  # noqa: F401
from .context import FlexContext  # noqa: F401
from .dispatcher import COMMANDS, run, run_edit  # noqa: F401
from .kinds import KINDS, MAGIC_ITEMS, POWERS, SKILL_SETS, CatalogKind  # noqa: F401
from .workbook import Document, DocumentNotFoundError, Drive, Sheet  # noqa: F401

__all__ = [
    "ConfigError",
    "Settings",
    "load_settings",
    "FlexContext",
    "COMMANDS",
    "run",
    "run_edit",
    "KINDS",
    "MAGIC_ITEMS",
    "POWERS",
    "SKILL_SETS",
    "CatalogKind",
    "Document",
    "DocumentNotFoundError",
    "Drive",
    "Sheet",
]

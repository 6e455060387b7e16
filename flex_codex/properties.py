from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional

SHEET_IDS_KEY = "sheetIDs"
MASTER_SHEET_IDS_KEY = "masterSheetIDs"


def initialized_key(surface: str) -> str:
    return f"initialized:{surface}"


class PropertyStore:
    """
    Persistent string key -> string value store backed by a JSON file.

    Values are stored as strings; `get_json`/`set_json` handle the common
    case of a JSON-encoded object under one key.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.data: Dict[str, str] = {}
        self.load()

    def load(self) -> None:
        if self.path.exists():
            with self.path.open("r", encoding="utf-8") as f:
                self.data = json.load(f)
        else:
            self.data = {}

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", encoding="utf-8") as f:
            json.dump(self.data, f, indent=2)

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value
        self.save()

    def delete(self, key: str) -> None:
        if self.data.pop(key, None) is not None:
            self.save()

    def get_json(self, key: str, default: Any = None) -> Any:
        raw = self.get(key)
        if not raw:
            return default
        return json.loads(raw)

    def set_json(self, key: str, value: Any) -> None:
        self.set(key, json.dumps(value))

    def reset(self) -> None:
        self.data = {}
        self.save()

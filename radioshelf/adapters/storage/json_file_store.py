"""Key-value store persisted as a single JSON document on disk."""

from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from typing import Any

from radioshelf.domain.ports import KeyValueStorePort

logger = logging.getLogger("radioshelf.storage")


class JsonFileStore(KeyValueStorePort):
    """Each write rewrites the whole file through a temp file and an atomic replace."""

    def __init__(self, path: str):
        self.path = Path(path)
        self._data: dict[str, Any] = {}
        self._load()

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)
        self._save()

    def remove(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            self._save()

    def _load(self) -> None:
        if not self.path.exists():
            return

        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except Exception:
            logger.exception("Failed to load data file %s", self.path)
            return
        if isinstance(payload, dict):
            self._data = payload
        else:
            logger.warning("Ignoring data file %s: top-level value is not an object", self.path)

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        temp_path.write_text(json.dumps(self._data, ensure_ascii=False, indent=2), encoding="utf-8")
        temp_path.replace(self.path)

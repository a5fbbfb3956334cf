from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Generic

from rental_management.db.repository import ModelT, PersistenceError, dump_records, parse_records


class JsonFileRepository(Generic[ModelT]):
    """Whole-collection JSON store: one array per file, replaced on every save."""

    def __init__(self, path: Path | str, model: type[ModelT]):
        self.path = Path(path)
        self.model = model

    def _ensure_data_dir(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def load_all(self) -> list[ModelT]:
        if not self.path.exists():
            return []
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8") or "[]")
        except (OSError, ValueError) as exc:
            raise PersistenceError(f"Could not read {self.path}: {exc}") from exc
        if not isinstance(payload, list):
            raise PersistenceError(f"{self.path} does not contain a JSON array")
        return parse_records(self.model, payload, str(self.path))

    def save_all(self, records: list[ModelT]) -> None:
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self._ensure_data_dir()
            tmp_path.write_text(json.dumps(dump_records(records), ensure_ascii=True, indent=2), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as exc:
            raise PersistenceError(f"Could not write {self.path}: {exc}") from exc

from __future__ import annotations

import copy
from typing import Any, Generic

from rental_management.db.repository import ModelT, PersistenceError, dump_records, parse_records


class InMemoryRepository(Generic[ModelT]):
    """Keeps the serialized collection in memory; used by tests and throwaway sessions."""

    def __init__(self, model: type[ModelT], rows: list[dict[str, Any]] | None = None):
        self.model = model
        self.rows: list[dict[str, Any]] = copy.deepcopy(rows or [])
        self.fail_saves = False
        self.save_count = 0

    def load_all(self) -> list[ModelT]:
        return parse_records(self.model, copy.deepcopy(self.rows), f"memory:{self.model.__name__}")

    def save_all(self, records: list[ModelT]) -> None:
        if self.fail_saves:
            raise PersistenceError(f"Simulated write failure for {self.model.__name__}")
        self.rows = dump_records(records)
        self.save_count += 1

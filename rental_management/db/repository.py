from __future__ import annotations

import logging
from typing import Any, Iterable, Protocol, TypeVar

from pydantic import BaseModel, ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)

STORAGE_LOGGER = logging.getLogger("rental_management.storage")


class PersistenceError(RuntimeError):
    pass


class Repository(Protocol[ModelT]):
    def load_all(self) -> list[ModelT]: ...

    def save_all(self, records: list[ModelT]) -> None: ...


def parse_records(model: type[ModelT], rows: Iterable[Any], source: str) -> list[ModelT]:
    """Validate raw rows, skipping (and logging) any that do not fit ``model``."""
    parsed: list[ModelT] = []
    for index, row in enumerate(rows):
        if not isinstance(row, dict):
            STORAGE_LOGGER.warning("Skipping record source=%s index=%s reason=not_an_object", source, index)
            continue
        try:
            parsed.append(model.model_validate(row))
        except ValidationError as exc:
            STORAGE_LOGGER.warning(
                "Skipping record source=%s index=%s reason=invalid errors=%s",
                source,
                index,
                exc.error_count(),
            )
    return parsed


def dump_records(records: Iterable[BaseModel]) -> list[dict[str, Any]]:
    return [record.model_dump(mode="json") for record in records]

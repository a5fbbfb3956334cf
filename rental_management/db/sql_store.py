from __future__ import annotations

from enum import Enum
from typing import Any, Generic

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from rental_management.db.repository import ModelT, PersistenceError, parse_records


def _to_column_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


class SqlRepository(Generic[ModelT]):
    """Stores one collection in one table; ``save_all`` replaces the table contents."""

    def __init__(self, session_factory: sessionmaker, row_model: type, model: type[ModelT]):
        self.session_factory = session_factory
        self.row_model = row_model
        self.model = model

    def _row_to_dict(self, row: Any) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for field, column in self.row_model.FIELD_MAP.items():
            value = getattr(row, column)
            if value is not None:
                out[field] = value
        return out

    def _record_to_row(self, record: ModelT) -> Any:
        payload = record.model_dump()
        values = {column: _to_column_value(payload.get(field)) for field, column in self.row_model.FIELD_MAP.items()}
        return self.row_model(**values)

    def load_all(self) -> list[ModelT]:
        db = self.session_factory()
        try:
            rows = db.execute(select(self.row_model)).scalars().all()
            raw = [self._row_to_dict(row) for row in rows]
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Could not read {self.row_model.__tablename__}: {exc}") from exc
        finally:
            db.close()
        return parse_records(self.model, raw, self.row_model.__tablename__)

    def save_all(self, records: list[ModelT]) -> None:
        db = self.session_factory()
        try:
            db.execute(delete(self.row_model))
            db.add_all([self._record_to_row(record) for record in records])
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise PersistenceError(f"Could not write {self.row_model.__tablename__}: {exc}") from exc
        finally:
            db.close()

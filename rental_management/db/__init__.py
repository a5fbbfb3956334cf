from rental_management.db.json_store import JsonFileRepository
from rental_management.db.memory_store import InMemoryRepository
from rental_management.db.repository import PersistenceError, Repository
from rental_management.db.sql_store import SqlRepository

__all__ = [
    "InMemoryRepository",
    "JsonFileRepository",
    "PersistenceError",
    "Repository",
    "SqlRepository",
]

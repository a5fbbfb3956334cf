from __future__ import annotations

from datetime import date, datetime, timedelta

from rental_management.app import Repositories, RentalSystem, create_rental_system
from rental_management.config import RentalSettings
from rental_management.db.memory_store import InMemoryRepository
from rental_management.db.repository import PersistenceError
from rental_management.schemas.equipment import Equipment
from rental_management.schemas.rentals import Rental, ReturnRecord
from rental_management.schemas.users import User
from rental_management.services.passwords import Pbkdf2PasswordHasher

TODAY = date(2024, 3, 1)
NOW = datetime(2024, 3, 1, 9, 30)

ADMIN = ("admin", "admin123")
JOHN = ("john.doe", "customer123")
JANE = ("jane.doe", "customer123")


class FixedClock:
    def __init__(self, today: date = TODAY):
        self.today = today

    def __call__(self) -> date:
        return self.today

    def advance(self, days: int) -> None:
        self.today += timedelta(days=days)


class UnreadableRepository:
    def __init__(self):
        self.save_count = 0

    def load_all(self):
        raise PersistenceError("storage offline")

    def save_all(self, records):
        self.save_count += 1


def memory_repositories() -> Repositories:
    return Repositories(
        users=InMemoryRepository(User),
        equipment=InMemoryRepository(Equipment),
        rentals=InMemoryRepository(Rental),
        returns=InMemoryRepository(ReturnRecord),
    )


def build_system(
    repositories: Repositories | None = None,
    clock: FixedClock | None = None,
    settings: RentalSettings | None = None,
) -> RentalSystem:
    return create_rental_system(
        settings or RentalSettings(),
        repositories=repositories or memory_repositories(),
        hasher=Pbkdf2PasswordHasher(iterations=1),
        clock=clock or FixedClock(),
        now=lambda: NOW,
    )


def login_as(system: RentalSystem, credentials: tuple[str, str]) -> None:
    system.session.logout()
    result = system.session.login(*credentials)
    if not result:
        raise AssertionError(f"login failed for {credentials[0]}: {result.message}")

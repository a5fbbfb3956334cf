from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable

from rental_management.config import RentalSettings
from rental_management.db.json_store import JsonFileRepository
from rental_management.db.repository import Repository
from rental_management.db.session import build_engine, build_session_factory
from rental_management.db.sql_store import SqlRepository
from rental_management.schemas.equipment import Equipment
from rental_management.schemas.rentals import Rental, ReturnRecord
from rental_management.schemas.users import User
from rental_management.services.equipment_service import EquipmentCatalog
from rental_management.services.identity_service import IdentityStore
from rental_management.services.passwords import PasswordHasher, Pbkdf2PasswordHasher
from rental_management.services.rental_service import RentalLedger
from rental_management.services.session_service import AuthenticationSession

APP_LOGGER = logging.getLogger("rental_management.app")

USERS_FILE = "users.json"
EQUIPMENT_FILE = "equipment.json"
RENTALS_FILE = "rentals.json"
RETURNS_FILE = "returns.json"


@dataclass(frozen=True)
class Repositories:
    users: Repository[User]
    equipment: Repository[Equipment]
    rentals: Repository[Rental]
    returns: Repository[ReturnRecord]


@dataclass
class RentalSystem:
    settings: RentalSettings
    identity: IdentityStore
    session: AuthenticationSession
    catalog: EquipmentCatalog
    ledger: RentalLedger


def build_repositories(settings: RentalSettings) -> Repositories:
    if settings.storage_backend == "sql":
        from rental_management.models.rental_models import EquipmentRow, RentalRow, ReturnRecordRow, UserRow

        session_factory = build_session_factory(build_engine(settings.database_url))
        return Repositories(
            users=SqlRepository(session_factory, UserRow, User),
            equipment=SqlRepository(session_factory, EquipmentRow, Equipment),
            rentals=SqlRepository(session_factory, RentalRow, Rental),
            returns=SqlRepository(session_factory, ReturnRecordRow, ReturnRecord),
        )

    data_dir = settings.data_dir
    return Repositories(
        users=JsonFileRepository(data_dir / USERS_FILE, User),
        equipment=JsonFileRepository(data_dir / EQUIPMENT_FILE, Equipment),
        rentals=JsonFileRepository(data_dir / RENTALS_FILE, Rental),
        returns=JsonFileRepository(data_dir / RETURNS_FILE, ReturnRecord),
    )


def create_rental_system(
    settings: RentalSettings | None = None,
    *,
    repositories: Repositories | None = None,
    hasher: PasswordHasher | None = None,
    clock: Callable[[], date] = date.today,
    now: Callable[[], datetime] = datetime.now,
) -> RentalSystem:
    """Wire the stores, one session, the catalog and the ledger over shared storage."""
    settings = settings or RentalSettings.from_env()
    repositories = repositories or build_repositories(settings)
    hasher = hasher or Pbkdf2PasswordHasher(settings.password_iterations)

    identity = IdentityStore(
        repositories.users,
        hasher,
        max_failed_logins=settings.max_failed_logins,
        seed_defaults=settings.seed_defaults,
        now=now,
    )
    session = AuthenticationSession(identity)
    catalog = EquipmentCatalog(
        repositories.equipment,
        session,
        id_floor=settings.equipment_id_floor,
        max_daily_rate=settings.max_daily_rate,
        seed_defaults=settings.seed_defaults,
    )
    ledger = RentalLedger(
        session,
        catalog,
        repositories.rentals,
        repositories.returns,
        late_fee_per_day=settings.late_fee_per_day,
        max_rental_days=settings.max_rental_days,
        clock=clock,
    )
    APP_LOGGER.info(
        "Rental system ready backend=%s users=%s equipment=%s",
        settings.storage_backend,
        len(identity.all_users()),
        len(catalog.list_all()),
    )
    return RentalSystem(settings=settings, identity=identity, session=session, catalog=catalog, ledger=ledger)

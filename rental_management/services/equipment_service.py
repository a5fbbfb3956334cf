from __future__ import annotations

import contextlib
import logging
import threading
from typing import Any, Callable, ContextManager

from rental_management.db.repository import PersistenceError, Repository
from rental_management.schemas.equipment import DEFAULT_CATEGORY, Equipment, EquipmentStatus
from rental_management.schemas.users import UserRole
from rental_management.services.identifiers import EQUIPMENT_PREFIX, next_identifier
from rental_management.services.results import ErrorKind, OperationResult
from rental_management.services.session_service import AuthenticationSession, authorize
from rental_management.services.validation import is_blank, is_valid_daily_rate, sanitize_input

EQUIPMENT_LOGGER = logging.getLogger("rental_management.equipment")

DEFAULT_ID_FLOOR = 100
DEFAULT_MAX_DAILY_RATE = 10000.0

DEFAULT_EQUIPMENT = [
    ("E101", "Projector", 20.00, "Electronics"),
    ("E102", "Sound System", 50.00, "Audio"),
    ("E103", "Laptop", 30.00, "Electronics"),
    ("E104", "Camera", 25.00, "Photography"),
    ("E105", "Microphone", 10.00, "Audio"),
]


def parse_status(raw: EquipmentStatus | str | None) -> EquipmentStatus | None:
    if isinstance(raw, EquipmentStatus):
        return raw
    value = (raw or "").strip().lower()
    for status in EquipmentStatus:
        if status.value.lower() == value:
            return status
    return None


class EquipmentCatalog:
    """Owns the equipment collection and its availability status."""

    def __init__(
        self,
        repository: Repository[Equipment],
        session: AuthenticationSession,
        *,
        id_floor: int = DEFAULT_ID_FLOOR,
        max_daily_rate: float = DEFAULT_MAX_DAILY_RATE,
        seed_defaults: bool = True,
    ):
        self._repository = repository
        self._session = session
        self.id_floor = id_floor
        self.max_daily_rate = max_daily_rate
        self.lock = threading.RLock()
        self._equipment: dict[str, Equipment] = {}
        self._unsaved = False
        self._usage_guard: ContextManager[Any] = contextlib.nullcontext()
        self._in_use: Callable[[str], bool] = lambda equipment_id: False

        loaded = self._load()
        if loaded and not self._equipment and seed_defaults:
            self._seed_defaults()

    def _load(self) -> bool:
        try:
            items = self.read_storage()
        except PersistenceError:
            EQUIPMENT_LOGGER.exception("Equipment load failed; starting with an empty catalog")
            return False
        self.replace_all(items)
        return True

    def read_storage(self) -> list[Equipment]:
        return self._repository.load_all()

    def replace_all(self, items: list[Equipment]) -> None:
        """Install a freshly loaded collection; the caller has checked it against open rentals."""
        with self.lock:
            self._equipment = {item.id: item for item in items}
            self._unsaved = False
        EQUIPMENT_LOGGER.info("Loaded equipment count=%s", len(self._equipment))

    @property
    def has_unsaved_changes(self) -> bool:
        return self._unsaved

    def _seed_defaults(self) -> None:
        with self.lock:
            for equipment_id, name, rate, category in DEFAULT_EQUIPMENT:
                self._equipment[equipment_id] = Equipment(id=equipment_id, name=name, daily_rate=rate, category=category)
            EQUIPMENT_LOGGER.info("Created default equipment count=%s", len(DEFAULT_EQUIPMENT))
            self._save()

    def bind_usage_check(self, guard: ContextManager[Any], in_use: Callable[[str], bool]) -> None:
        """Register the rental ledger's lock and its open-rental lookup.

        ``in_use`` is called with ``guard`` held, so it must not take the lock again
        in a non-reentrant way.
        """
        self._usage_guard = guard
        self._in_use = in_use

    def _save(self) -> str | None:
        try:
            self._repository.save_all(list(self._equipment.values()))
        except PersistenceError as exc:
            self._unsaved = True
            EQUIPMENT_LOGGER.exception("Equipment save failed")
            return str(exc)
        self._unsaved = False
        return None

    def persist(self) -> str | None:
        with self.lock:
            return self._save()

    def _commit(self, result: OperationResult) -> OperationResult:
        error = self._save()
        return result.unsaved(error) if error else result

    def apply_status(self, equipment_id: str, status: EquipmentStatus) -> Equipment | None:
        """Set status without access checks or saving; the rental ledger drives this."""
        with self.lock:
            item = self._equipment.get(equipment_id)
            if item is None:
                return None
            updated = item.model_copy(update={"status": status})
            self._equipment[equipment_id] = updated
            return updated

    def add(self, name: str, daily_rate: float, category: str | None = None) -> OperationResult:
        check = authorize(self._session, UserRole.ADMIN)
        if not check:
            return check

        name = sanitize_input(name)
        category = sanitize_input(category) or DEFAULT_CATEGORY
        if is_blank(name):
            return OperationResult.fail(ErrorKind.INVALID_INPUT, "Equipment name cannot be empty.")
        try:
            rate = float(daily_rate)
        except (TypeError, ValueError):
            return OperationResult.fail(ErrorKind.INVALID_INPUT, "Daily rate must be a number.")
        if not is_valid_daily_rate(rate, self.max_daily_rate):
            return OperationResult.fail(
                ErrorKind.INVALID_INPUT,
                f"Daily rate must be greater than 0 and at most {self.max_daily_rate:.2f}.",
            )

        with self.lock:
            equipment_id = next_identifier(self._equipment.keys(), EQUIPMENT_PREFIX, floor=self.id_floor)
            item = Equipment(id=equipment_id, name=name, daily_rate=rate, category=category)
            self._equipment[equipment_id] = item
            EQUIPMENT_LOGGER.info("Equipment added id=%s name=%s rate=%.2f", equipment_id, name, rate)
            return self._commit(OperationResult.ok(f"Equipment added. ID: {equipment_id}", item))

    def find_by_id(self, equipment_id: str | None) -> Equipment | None:
        with self.lock:
            return self._equipment.get((equipment_id or "").strip())

    def set_status(self, equipment_id: str, new_status: EquipmentStatus | str) -> OperationResult:
        check = authorize(self._session, UserRole.ADMIN)
        if not check:
            return check

        status = parse_status(new_status)
        if status is None:
            return OperationResult.fail(ErrorKind.INVALID_INPUT, f"Unknown equipment status: {new_status}")
        if status == EquipmentStatus.RENTED:
            return OperationResult.fail(ErrorKind.INVALID_INPUT, "Equipment becomes Rented only through a rental.")

        with self._usage_guard, self.lock:
            item = self._equipment.get((equipment_id or "").strip())
            if item is None:
                return OperationResult.fail(ErrorKind.NOT_FOUND, "Equipment not found.")
            if self._in_use(item.id):
                return OperationResult.fail(ErrorKind.CONFLICT, "Equipment is currently rented.")
            updated = self.apply_status(item.id, status)
            EQUIPMENT_LOGGER.info("Equipment status changed id=%s status=%s", item.id, status.value)
            return self._commit(OperationResult.ok(f"Equipment {item.id} is now {status.value}.", updated))

    def remove(self, equipment_id: str) -> OperationResult:
        check = authorize(self._session, UserRole.ADMIN)
        if not check:
            return check

        with self._usage_guard, self.lock:
            item = self._equipment.get((equipment_id or "").strip())
            if item is None:
                return OperationResult.fail(ErrorKind.NOT_FOUND, "Equipment not found.")
            if self._in_use(item.id):
                EQUIPMENT_LOGGER.warning("Equipment removal rejected id=%s reason=in_use", item.id)
                return OperationResult.fail(ErrorKind.CONFLICT, "Cannot remove equipment that is currently rented.")
            del self._equipment[item.id]
            EQUIPMENT_LOGGER.info("Equipment removed id=%s", item.id)
            return self._commit(OperationResult.ok(f"Equipment {item.id} removed.", item))

    def list_all(self) -> tuple[Equipment, ...]:
        with self.lock:
            return tuple(self._equipment.values())

    def list_available(self) -> tuple[Equipment, ...]:
        return tuple(item for item in self.list_all() if item.is_available)

    def list_categories(self) -> tuple[str, ...]:
        return tuple(sorted({item.category for item in self.list_all()}))

    def list_by_category(self, category: str) -> tuple[Equipment, ...]:
        key = (category or "").strip().lower()
        items = [item for item in self.list_all() if item.category.lower() == key]
        if self._session.has_role(UserRole.CUSTOMER):
            items = [item for item in items if item.is_available]
        return tuple(items)

    def search(self, term: str) -> tuple[Equipment, ...]:
        needle = (term or "").strip().lower()
        return tuple(
            item
            for item in self.list_all()
            if needle in item.id.lower() or needle in item.name.lower() or needle in item.category.lower()
        )

    def sorted_by_rate(self, ascending: bool = True) -> tuple[Equipment, ...]:
        return tuple(sorted(self.list_all(), key=lambda item: item.daily_rate, reverse=not ascending))

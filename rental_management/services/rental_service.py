from __future__ import annotations

import calendar
import logging
import threading
from collections import defaultdict
from datetime import date
from typing import Any, Callable

from rental_management.db.repository import PersistenceError, Repository
from rental_management.schemas.equipment import Equipment, EquipmentStatus
from rental_management.schemas.rentals import DEFAULT_RETURN_CONDITION, Rental, ReturnRecord
from rental_management.schemas.users import UserRole
from rental_management.services.equipment_service import EquipmentCatalog
from rental_management.services.identifiers import RENTAL_PREFIX, format_identifier, max_sequence
from rental_management.services.results import ErrorKind, OperationResult
from rental_management.services.session_service import AuthenticationSession, authorize
from rental_management.services.validation import is_valid_rent_days, sanitize_input

RENTAL_LOGGER = logging.getLogger("rental_management.rentals")

LATE_FEE_PER_DAY = 50.0
MAX_RENTAL_DAYS = 365
MAINTENANCE_CONDITIONS = {"damage", "lost"}


def _money(value: float) -> float:
    return round(value, 2)


def _align_equipment_status(equipment: list[Equipment], rentals: list[Rental]) -> tuple[list[Equipment], list[str]]:
    """Mark equipment Rented exactly when an open rental references it."""
    rented_ids = {rental.equipment_id for rental in rentals}
    aligned: list[Equipment] = []
    repaired: list[str] = []
    for item in equipment:
        if item.id in rented_ids and item.status != EquipmentStatus.RENTED:
            status = EquipmentStatus.RENTED
        elif item.id not in rented_ids and item.status == EquipmentStatus.RENTED:
            status = EquipmentStatus.AVAILABLE
        else:
            aligned.append(item)
            continue
        RENTAL_LOGGER.warning(
            "Equipment status repaired id=%s stored=%s status=%s",
            item.id,
            item.status.value,
            status.value,
        )
        aligned.append(item.model_copy(update={"status": status}))
        repaired.append(item.id)
    return aligned, repaired


class RentalLedger:
    """Open rentals, return history, and the rent/return transitions between them.

    Rentals and returns are guarded by one lock; transitions also take the
    catalog lock (always ledger first, then catalog) so equipment status,
    the open-rental set and the history change together.
    """

    def __init__(
        self,
        session: AuthenticationSession,
        catalog: EquipmentCatalog,
        rentals_repository: Repository[Rental],
        returns_repository: Repository[ReturnRecord],
        *,
        late_fee_per_day: float = LATE_FEE_PER_DAY,
        max_rental_days: int = MAX_RENTAL_DAYS,
        clock: Callable[[], date] = date.today,
    ):
        self._session = session
        self._catalog = catalog
        self._rentals_repository = rentals_repository
        self._returns_repository = returns_repository
        self.late_fee_per_day = late_fee_per_day
        self.max_rental_days = max_rental_days
        self._clock = clock
        self._lock = threading.RLock()
        self._rentals: dict[str, Rental] = {}
        self._returns: list[ReturnRecord] = []
        self._unsaved: set[str] = set()
        self._next_rental_number = 1

        self._load()
        catalog.bind_usage_check(self._lock, self.has_open_rental_for)

    def _load(self) -> bool:
        try:
            rentals = self._rentals_repository.load_all()
            returns = self._returns_repository.load_all()
        except PersistenceError:
            RENTAL_LOGGER.exception("Rental load failed; keeping current rentals and history")
            return False
        self._install(rentals, returns)
        return True

    def _install(self, rentals: list[Rental], returns: list[ReturnRecord]) -> None:
        with self._lock:
            self._rentals = {rental.rental_id: rental for rental in rentals}
            self._returns = list(returns)
            self._unsaved.clear()
            observed = max_sequence(
                [*self._rentals.keys(), *(record.rental_id for record in self._returns)],
                RENTAL_PREFIX,
            )
            self._next_rental_number = max(self._next_rental_number, observed + 1)
        RENTAL_LOGGER.info(
            "Loaded rentals open=%s returns=%s next_id=%s",
            len(self._rentals),
            len(self._returns),
            format_identifier(RENTAL_PREFIX, self._next_rental_number),
        )

    def _save(self, *, rentals: bool = False, returns: bool = False, equipment: bool = False) -> str | None:
        errors: list[str] = []
        if returns:
            try:
                self._returns_repository.save_all(list(self._returns))
                self._unsaved.discard("returns")
            except PersistenceError as exc:
                self._unsaved.add("returns")
                RENTAL_LOGGER.exception("Return history save failed")
                errors.append(str(exc))
        if rentals:
            try:
                self._rentals_repository.save_all(list(self._rentals.values()))
                self._unsaved.discard("rentals")
            except PersistenceError as exc:
                self._unsaved.add("rentals")
                RENTAL_LOGGER.exception("Rental save failed")
                errors.append(str(exc))
        if equipment:
            error = self._catalog.persist()
            if error:
                errors.append(error)
        return "; ".join(errors) or None

    def _commit(self, result: OperationResult, **collections: bool) -> OperationResult:
        error = self._save(**collections)
        return result.unsaved(error) if error else result

    def refresh(self) -> OperationResult:
        """Replace equipment, rentals and history with what storage holds.

        Refused while any of them has a change that failed to save. The three
        collections are read first and swapped together; equipment status is
        then aligned with the open rentals.
        """
        check = authorize(self._session, UserRole.ADMIN)
        if not check:
            return check
        with self._lock, self._catalog.lock:
            if self._unsaved or self._catalog.has_unsaved_changes:
                RENTAL_LOGGER.warning("Refresh rejected reason=unsaved_changes pending=%s", sorted(self._unsaved))
                return OperationResult.fail(
                    ErrorKind.CONFLICT,
                    "Cannot refresh while changes are waiting to be saved.",
                )
            try:
                equipment = self._catalog.read_storage()
                rentals = self._rentals_repository.load_all()
                returns = self._returns_repository.load_all()
            except PersistenceError:
                RENTAL_LOGGER.exception("Refresh failed; keeping current data")
                return OperationResult.fail(ErrorKind.PERSISTENCE_FAILURE, "Could not reload data from storage.")

            equipment, repaired = _align_equipment_status(equipment, rentals)
            self._catalog.replace_all(equipment)
            self._install(rentals, returns)
            error = self._catalog.persist() if repaired else None
        result = OperationResult.ok("Data refreshed from storage.", repaired)
        return result.unsaved(error) if error else result

    def has_open_rental_for(self, equipment_id: str) -> bool:
        with self._lock:
            return any(rental.equipment_id == equipment_id for rental in self._rentals.values())

    def days_overdue(self, rental: Rental) -> int:
        return rental.days_overdue(self._clock())

    def late_fee_for(self, rental: Rental) -> float:
        return _money(self.days_overdue(rental) * self.late_fee_per_day)

    def find_rental(self, rental_id: str | None) -> Rental | None:
        with self._lock:
            return self._rentals.get((rental_id or "").strip())

    def _snapshot(self) -> tuple[tuple[Rental, ...], tuple[ReturnRecord, ...]]:
        with self._lock:
            return tuple(self._rentals.values()), tuple(self._returns)

    def _close_rental(self, rental: Rental, condition: str, equipment_status: EquipmentStatus) -> ReturnRecord:
        record = ReturnRecord(
            rental_id=rental.rental_id,
            equipment_id=rental.equipment_id,
            customer_id=rental.customer_id,
            start_date=rental.start_date,
            end_date=self._clock(),
            total_cost=rental.total_cost,
            late_fee=self.late_fee_for(rental),
            condition=condition,
        )
        self._returns.append(record)
        del self._rentals[rental.rental_id]
        self._catalog.apply_status(rental.equipment_id, equipment_status)
        return record

    def rent(self, equipment_id: str, days: int) -> OperationResult:
        check = authorize(self._session, UserRole.CUSTOMER)
        if not check:
            return check
        customer = check.data

        with self._lock, self._catalog.lock:
            item = self._catalog.find_by_id(equipment_id)
            if item is None:
                return OperationResult.fail(ErrorKind.NOT_FOUND, "Equipment not found.")
            if not item.is_available:
                return OperationResult.fail(ErrorKind.NOT_AVAILABLE, "Equipment is not available for rent.")
            if not is_valid_rent_days(days, self.max_rental_days):
                return OperationResult.fail(ErrorKind.INVALID_INPUT, f"Invalid rental days: {days}")

            total_cost = _money(item.daily_rate * days)
            rental_id = format_identifier(RENTAL_PREFIX, self._next_rental_number)
            self._next_rental_number += 1
            rental = Rental(
                rental_id=rental_id,
                equipment_id=item.id,
                customer_id=customer.user_id,
                start_date=self._clock(),
                days_rented=days,
                total_cost=total_cost,
            )
            self._rentals[rental_id] = rental
            self._catalog.apply_status(item.id, EquipmentStatus.RENTED)
            RENTAL_LOGGER.info(
                "Rental created rental_id=%s equipment_id=%s customer_id=%s days=%s total=%.2f",
                rental_id,
                item.id,
                customer.user_id,
                days,
                total_cost,
            )
            message = f"Equipment rented successfully. Rental ID: {rental_id}, Total Cost: ${total_cost:.2f}"
            return self._commit(OperationResult.ok(message, rental), rentals=True, equipment=True)

    def return_equipment(self, rental_id: str) -> OperationResult:
        check = authorize(self._session)
        if not check:
            return check
        user = check.data

        with self._lock, self._catalog.lock:
            rental = self._rentals.get((rental_id or "").strip())
            if rental is None:
                return OperationResult.fail(ErrorKind.NOT_FOUND, "Rental not found.")
            if user.is_customer and rental.customer_id != user.user_id:
                RENTAL_LOGGER.warning("Return rejected rental_id=%s user_id=%s reason=not_owner", rental.rental_id, user.user_id)
                return OperationResult.fail(ErrorKind.FORBIDDEN, "You can only return your own rentals.")
            if self._catalog.find_by_id(rental.equipment_id) is None:
                return OperationResult.fail(ErrorKind.NOT_FOUND, "Equipment not found.")

            record = self._close_rental(rental, DEFAULT_RETURN_CONDITION, EquipmentStatus.AVAILABLE)
            RENTAL_LOGGER.info(
                "Rental returned rental_id=%s late_fee=%.2f total=%.2f",
                record.rental_id,
                record.late_fee,
                record.final_amount,
            )
            message = (
                f"Equipment returned successfully. Late fee: ${record.late_fee:.2f}. "
                f"Total amount: ${record.final_amount:.2f}"
            )
            return self._commit(OperationResult.ok(message, record), returns=True, rentals=True, equipment=True)

    def force_return(self, rental_id: str, condition: str | None = None, additional_fees: float = 0.0) -> OperationResult:
        check = authorize(self._session, UserRole.ADMIN)
        if not check:
            return check

        condition = sanitize_input(condition) or DEFAULT_RETURN_CONDITION
        try:
            extra = float(additional_fees or 0.0)
        except (TypeError, ValueError):
            return OperationResult.fail(ErrorKind.INVALID_INPUT, "Additional fees must be a number.")
        if extra < 0:
            return OperationResult.fail(ErrorKind.INVALID_INPUT, "Additional fees cannot be negative.")

        with self._lock, self._catalog.lock:
            rental = self._rentals.get((rental_id or "").strip())
            if rental is None:
                return OperationResult.fail(ErrorKind.NOT_FOUND, "Rental not found.")
            if self._catalog.find_by_id(rental.equipment_id) is None:
                return OperationResult.fail(ErrorKind.NOT_FOUND, "Equipment not found.")

            if condition.lower() in MAINTENANCE_CONDITIONS:
                equipment_status = EquipmentStatus.MAINTENANCE
            else:
                equipment_status = EquipmentStatus.AVAILABLE
            # additional_fees is reported only; the record keeps the computed late fee.
            record = self._close_rental(rental, condition, equipment_status)
            RENTAL_LOGGER.info(
                "Rental force-returned rental_id=%s condition=%s equipment_status=%s late_fee=%.2f additional_fees=%.2f",
                record.rental_id,
                condition,
                equipment_status.value,
                record.late_fee,
                extra,
            )
            message = f"Equipment force-returned. Condition: {condition}"
            if record.late_fee > 0 or extra > 0:
                message += f" Total fees: ${record.late_fee + extra:.2f}"
            return self._commit(OperationResult.ok(message, record), returns=True, rentals=True, equipment=True)

    def active_rentals(self) -> OperationResult:
        check = authorize(self._session)
        if not check:
            return check
        user = check.data
        rentals, _ = self._snapshot()
        if user.is_customer:
            rentals = tuple(rental for rental in rentals if rental.customer_id == user.user_id)
        return OperationResult.ok(data=rentals)

    def all_active_rentals(self) -> OperationResult:
        check = authorize(self._session, UserRole.ADMIN)
        if not check:
            return check
        rentals, _ = self._snapshot()
        return OperationResult.ok(data=rentals)

    def all_returns(self) -> OperationResult:
        check = authorize(self._session, UserRole.ADMIN)
        if not check:
            return check
        _, returns = self._snapshot()
        return OperationResult.ok(data=returns)

    def rentals_by_date_range(self, start: date, end: date) -> OperationResult:
        check = authorize(self._session, UserRole.ADMIN)
        if not check:
            return check
        if start > end:
            return OperationResult.fail(ErrorKind.INVALID_INPUT, "Start date must not be after end date.")
        rentals, _ = self._snapshot()
        return OperationResult.ok(data=tuple(r for r in rentals if start <= r.start_date <= end))

    def returns_by_date_range(self, start: date, end: date) -> OperationResult:
        check = authorize(self._session, UserRole.ADMIN)
        if not check:
            return check
        if start > end:
            return OperationResult.fail(ErrorKind.INVALID_INPUT, "Start date must not be after end date.")
        _, returns = self._snapshot()
        return OperationResult.ok(data=tuple(r for r in returns if start <= r.end_date <= end))

    def daily_rentals(self, day: date) -> OperationResult:
        check = authorize(self._session, UserRole.ADMIN)
        if not check:
            return check
        rentals, _ = self._snapshot()
        return OperationResult.ok(data=tuple(r for r in rentals if r.start_date == day))

    def customer_rentals(self, customer_id: str | None = None) -> OperationResult:
        check = authorize(self._session)
        if not check:
            return check
        user = check.data
        target = user.user_id if user.is_customer else (customer_id or "").strip()
        rentals, _ = self._snapshot()
        return OperationResult.ok(data=tuple(r for r in rentals if r.customer_id == target))

    def customer_history(self, customer_id: str | None = None) -> OperationResult:
        check = authorize(self._session)
        if not check:
            return check
        user = check.data
        target = user.user_id if user.is_customer else (customer_id or "").strip()
        _, returns = self._snapshot()
        return OperationResult.ok(data=tuple(r for r in returns if r.customer_id == target))

    def overdue_rentals(self) -> OperationResult:
        check = authorize(self._session, UserRole.ADMIN)
        if not check:
            return check
        rentals, _ = self._snapshot()
        return OperationResult.ok(data=tuple(r for r in rentals if self.days_overdue(r) > 0))

    def potential_late_fees(self, customer_id: str) -> OperationResult:
        check = authorize(self._session)
        if not check:
            return check
        user = check.data
        if user.is_customer and user.user_id != customer_id:
            return OperationResult.fail(ErrorKind.FORBIDDEN, "You can only view your own late fees.")
        rentals, _ = self._snapshot()
        total = sum(self.late_fee_for(r) for r in rentals if r.customer_id == customer_id)
        return OperationResult.ok(data=_money(total))

    def total_revenue(self) -> OperationResult:
        check = authorize(self._session, UserRole.ADMIN)
        if not check:
            return check
        _, returns = self._snapshot()
        return OperationResult.ok(data=_money(sum(r.final_amount for r in returns)))

    def daily_revenue(self, day: date) -> OperationResult:
        check = authorize(self._session, UserRole.ADMIN)
        if not check:
            return check
        _, returns = self._snapshot()
        return OperationResult.ok(data=_money(sum(r.final_amount for r in returns if r.end_date == day)))

    def monthly_summary(self, year: int, month: int) -> OperationResult:
        check = authorize(self._session, UserRole.ADMIN)
        if not check:
            return check
        if not 1 <= month <= 12:
            return OperationResult.fail(ErrorKind.INVALID_INPUT, f"Invalid month: {month}")

        start = date(year, month, 1)
        end = date(year, month, calendar.monthrange(year, month)[1])
        _, returns = self._snapshot()
        monthly = [r for r in returns if start <= r.end_date <= end]

        usage: dict[str, dict[str, Any]] = {}
        for record in monthly:
            item = self._catalog.find_by_id(record.equipment_id)
            if item is None:
                continue
            entry = usage.setdefault(item.id, {"equipmentID": item.id, "name": item.name, "rentals": 0, "revenue": 0.0})
            entry["rentals"] += 1
            entry["revenue"] = _money(entry["revenue"] + record.final_amount)

        base = sum(r.total_cost for r in monthly)
        late = sum(r.late_fee for r in monthly)
        return OperationResult.ok(
            data={
                "year": year,
                "month": month,
                "startDate": start,
                "endDate": end,
                "rentalsCompleted": len(monthly),
                "baseRevenue": _money(base),
                "lateFees": _money(late),
                "totalRevenue": _money(base + late),
                "equipment": sorted(usage.values(), key=lambda row: (-row["rentals"], row["name"])),
            }
        )

    def customer_revenue(self) -> OperationResult:
        check = authorize(self._session, UserRole.ADMIN)
        if not check:
            return check
        rentals, returns = self._snapshot()
        identity = self._session.identity

        counts: dict[str, int] = defaultdict(int)
        spent: dict[str, float] = defaultdict(float)
        overdue: dict[str, int] = defaultdict(int)
        for record in returns:
            counts[record.customer_id] += 1
            spent[record.customer_id] += record.final_amount
        for rental in rentals:
            if self.days_overdue(rental) > 0:
                overdue[rental.customer_id] += 1

        rows = []
        for customer_id in sorted(set(counts) | set(overdue)):
            customer = identity.find_by_id(customer_id)
            rows.append(
                {
                    "customerID": customer_id,
                    "fullName": customer.full_name if customer else "Unknown",
                    "rentals": counts.get(customer_id, 0),
                    "totalSpent": _money(spent.get(customer_id, 0.0)),
                    "overdueRentals": overdue.get(customer_id, 0),
                }
            )
        rows.sort(key=lambda row: -row["totalSpent"])
        return OperationResult.ok(
            data={
                "totalCustomers": sum(1 for user in identity.all_users() if user.is_customer),
                "activeCustomers": len(counts),
                "customers": rows,
            }
        )

    def equipment_usage_stats(self) -> OperationResult:
        check = authorize(self._session, UserRole.ADMIN)
        if not check:
            return check
        _, returns = self._snapshot()
        stats: dict[str, int] = defaultdict(int)
        for record in returns:
            item = self._catalog.find_by_id(record.equipment_id)
            if item is not None:
                stats[item.name] += 1
        return OperationResult.ok(data=dict(stats))

    def equipment_statistics(self, equipment_id: str) -> OperationResult:
        check = authorize(self._session, UserRole.ADMIN)
        if not check:
            return check
        item = self._catalog.find_by_id(equipment_id)
        if item is None:
            return OperationResult.fail(ErrorKind.NOT_FOUND, "Equipment not found.")

        _, returns = self._snapshot()
        history = [r for r in returns if r.equipment_id == item.id]
        revenue = sum(r.final_amount for r in history)
        return OperationResult.ok(
            data={
                "equipmentID": item.id,
                "equipmentName": item.name,
                "totalRentals": len(history),
                "totalRevenue": _money(revenue),
                "totalDaysRented": sum(r.days_held for r in history),
                "currentlyRented": self.has_open_rental_for(item.id),
                "averageRevenuePerRental": _money(revenue / len(history)) if history else 0.0,
            }
        )

    def financial_summary(self, year: int | None = None) -> OperationResult:
        check = authorize(self._session, UserRole.ADMIN)
        if not check:
            return check
        _, returns = self._snapshot()
        year = year or self._clock().year

        count = len(returns)
        base = sum(r.total_cost for r in returns)
        late = sum(r.late_fee for r in returns)
        late_count = sum(1 for r in returns if r.late_fee > 0)

        monthly = []
        for month in range(1, 13):
            in_month = [r for r in returns if r.end_date.year == year and r.end_date.month == month]
            if in_month:
                monthly.append(
                    {
                        "month": month,
                        "rentals": len(in_month),
                        "revenue": _money(sum(r.final_amount for r in in_month)),
                    }
                )

        return OperationResult.ok(
            data={
                "totalRentals": count,
                "baseRevenue": _money(base),
                "lateFees": _money(late),
                "totalRevenue": _money(base + late),
                "averageRentalValue": _money(base / count) if count else 0.0,
                "averageLateFee": _money(late / count) if count else 0.0,
                "rentalsWithLateFee": late_count,
                "lateFeePercentage": round(late_count / count * 100, 1) if count else 0.0,
                "averageLateFeeForLateRentals": _money(late / late_count) if late_count else 0.0,
                "year": year,
                "monthly": monthly,
            }
        )

    def rental_summary(self) -> OperationResult:
        check = authorize(self._session)
        if not check:
            return check
        user = check.data
        rentals, returns = self._snapshot()
        own_rentals = [r for r in rentals if r.customer_id == user.user_id]
        own_returns = [r for r in returns if r.customer_id == user.user_id]
        return OperationResult.ok(
            data={
                "userID": user.user_id,
                "fullName": user.full_name,
                "activeRentals": len(own_rentals),
                "rentalHistory": len(own_returns),
                "totalSpent": _money(sum(r.final_amount for r in own_returns)),
                "overdueRentals": sum(1 for r in own_rentals if self.days_overdue(r) > 0),
            }
        )

    def system_status(self) -> OperationResult:
        check = authorize(self._session, UserRole.ADMIN)
        if not check:
            return check
        rentals, returns = self._snapshot()
        equipment = self._catalog.list_all()
        return OperationResult.ok(
            data={
                "totalEquipment": len(equipment),
                "availableEquipment": sum(1 for item in equipment if item.is_available),
                "activeRentals": len(rentals),
                "overdueRentals": sum(1 for r in rentals if self.days_overdue(r) > 0),
                "totalReturns": len(returns),
                "totalUsers": len(self._session.identity.all_users()),
                "totalRevenue": _money(sum(r.final_amount for r in returns)),
            }
        )

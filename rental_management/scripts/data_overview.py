#!/usr/bin/env python3
"""Collection counts and integrity checks for rental storage."""

from __future__ import annotations

import argparse
import sys
from collections import Counter
from dataclasses import dataclass
from typing import Iterable

from rental_management.app import Repositories, build_repositories
from rental_management.db.repository import PersistenceError
from rental_management.schemas.equipment import Equipment, EquipmentStatus
from rental_management.schemas.rentals import Rental, ReturnRecord
from rental_management.schemas.users import AccountStatus, User
from rental_management.scripts.storage_options import add_storage_arguments, settings_from_args


@dataclass
class CheckResult:
    name: str
    ok: bool
    detail: str


@dataclass
class StorageSnapshot:
    users: list[User]
    equipment: list[Equipment]
    rentals: list[Rental]
    returns: list[ReturnRecord]


def load_snapshot(repositories: Repositories) -> StorageSnapshot:
    return StorageSnapshot(
        users=repositories.users.load_all(),
        equipment=repositories.equipment.load_all(),
        rentals=repositories.rentals.load_all(),
        returns=repositories.returns.load_all(),
    )


def _duplicates(values: Iterable[str]) -> list[str]:
    return sorted(value for value, count in Counter(values).items() if count > 1)


def _check(name: str, problems: list[str]) -> CheckResult:
    if not problems:
        return CheckResult(name, True, "count=0")
    return CheckResult(name, False, f"count={len(problems)} ids={','.join(problems)}")


def run_integrity_checks(snapshot: StorageSnapshot, max_failed_logins: int = 3) -> list[CheckResult]:
    checks: list[CheckResult] = []
    equipment_ids = {item.id for item in snapshot.equipment}
    user_ids = {user.user_id for user in snapshot.users}
    rented_by_rental = {rental.equipment_id for rental in snapshot.rentals}
    status_by_id = {item.id: item.status for item in snapshot.equipment}

    checks.append(_check("users:duplicate_id", _duplicates(u.user_id for u in snapshot.users)))
    checks.append(_check("users:duplicate_username", _duplicates(u.username.lower() for u in snapshot.users)))
    checks.append(
        _check(
            "users:active_over_failed_threshold",
            sorted(
                u.user_id
                for u in snapshot.users
                if u.status == AccountStatus.ACTIVE and u.failed_login_count >= max_failed_logins
            ),
        )
    )
    checks.append(_check("equipment:duplicate_id", _duplicates(item.id for item in snapshot.equipment)))
    checks.append(
        _check(
            "equipment:rented_without_open_rental",
            sorted(
                item.id
                for item in snapshot.equipment
                if item.status == EquipmentStatus.RENTED and item.id not in rented_by_rental
            ),
        )
    )
    checks.append(
        _check(
            "rentals:equipment_not_rented",
            sorted(
                r.rental_id
                for r in snapshot.rentals
                if r.equipment_id in status_by_id and status_by_id[r.equipment_id] != EquipmentStatus.RENTED
            ),
        )
    )
    checks.append(_check("rentals:duplicate_id", _duplicates(r.rental_id for r in snapshot.rentals)))
    checks.append(_check("rentals:equipment_rented_twice", _duplicates(r.equipment_id for r in snapshot.rentals)))
    checks.append(
        _check("rentals:missing_equipment", sorted(r.rental_id for r in snapshot.rentals if r.equipment_id not in equipment_ids))
    )
    checks.append(
        _check("rentals:missing_customer", sorted(r.rental_id for r in snapshot.rentals if r.customer_id not in user_ids))
    )
    closed_ids = {record.rental_id for record in snapshot.returns}
    checks.append(
        _check("rentals:also_returned", sorted(r.rental_id for r in snapshot.rentals if r.rental_id in closed_ids))
    )
    checks.append(_check("returns:duplicate_id", _duplicates(record.rental_id for record in snapshot.returns)))
    return checks


def _print_section(title: str) -> None:
    print(f"\n=== {title} ===")


def _print_results(title: str, rows: Iterable[CheckResult]) -> None:
    _print_section(title)
    for row in rows:
        status = "OK" if row.ok else "FAIL"
        print(f"[{status}] {row.name} :: {row.detail}")


def _print_counts(snapshot: StorageSnapshot) -> None:
    _print_section("Collection Counts")
    print(f"Users: {len(snapshot.users)}")
    print(f"Equipment: {len(snapshot.equipment)}")
    for status in EquipmentStatus:
        print(f"  {status.value}: {sum(1 for item in snapshot.equipment if item.status == status)}")
    print(f"Open rentals: {len(snapshot.rentals)}")
    print(f"Returns: {len(snapshot.returns)}")
    print(f"Revenue: ${sum(record.final_amount for record in snapshot.returns):.2f}")


def main() -> int:
    parser = argparse.ArgumentParser(description="Rental storage overview")
    add_storage_arguments(parser)
    args = parser.parse_args()
    settings = settings_from_args(args)

    try:
        snapshot = load_snapshot(build_repositories(settings))
    except PersistenceError as exc:
        print(f"Could not read storage: {exc}")
        return 3

    checks = run_integrity_checks(snapshot, settings.max_failed_logins)
    _print_counts(snapshot)
    _print_results("Integrity Checks", checks)
    return 0 if all(check.ok for check in checks) else 1


if __name__ == "__main__":
    sys.exit(main())

import argparse
import json
import os
import tempfile
import unittest
from datetime import date, datetime
from pathlib import Path
from unittest import mock

from rental_management.app import build_repositories
from rental_management.config import RentalSettings
from rental_management.db.json_store import JsonFileRepository
from rental_management.db.repository import PersistenceError
from rental_management.db.session import build_engine, build_session_factory
from rental_management.db.sql_store import SqlRepository
from rental_management.models.rental_models import EquipmentRow, UserRow
from rental_management.schemas.equipment import Equipment, EquipmentStatus
from rental_management.schemas.rentals import Rental
from rental_management.schemas.users import AccountStatus, User, UserRole
from rental_management.scripts.data_overview import StorageSnapshot, load_snapshot, run_integrity_checks
from rental_management.scripts.storage_options import add_storage_arguments, settings_from_args
from rental_management.tests.support import JOHN, build_system, login_as


class JsonStorageTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.data_dir = Path(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()

    def test_missing_file_loads_as_empty(self):
        self.assertEqual(JsonFileRepository(self.data_dir / "equipment.json", Equipment).load_all(), [])

    def test_malformed_records_are_skipped(self):
        path = self.data_dir / "equipment.json"
        path.write_text(
            json.dumps(
                [
                    {"id": "E101", "name": "Projector", "daily_rate": 20.0, "status": "Available", "category": "Electronics"},
                    {"id": "E102", "name": "Sound System", "daily_rate": "fifty", "status": "Available"},
                    {"id": "E103", "name": "Laptop", "daily_rate": 30.0, "status": "Borrowed"},
                    "not-a-record",
                ]
            ),
            encoding="utf-8",
        )

        with self.assertLogs("rental_management.storage", level="WARNING") as logs:
            items = JsonFileRepository(path, Equipment).load_all()

        self.assertEqual([item.id for item in items], ["E101"])
        self.assertEqual(len(logs.records), 3)

    def test_unreadable_file_raises_persistence_error(self):
        path = self.data_dir / "users.json"
        path.write_text("{not json", encoding="utf-8")
        with self.assertRaises(PersistenceError):
            JsonFileRepository(path, User).load_all()

        path.write_text('{"users": []}', encoding="utf-8")
        with self.assertRaises(PersistenceError):
            JsonFileRepository(path, User).load_all()

    def test_save_replaces_whole_file(self):
        repository = JsonFileRepository(self.data_dir / "nested" / "equipment.json", Equipment)
        repository.save_all([Equipment(id="E101", name="Projector", daily_rate=20.0)])
        repository.save_all([Equipment(id="E102", name="Sound System", daily_rate=50.0, status=EquipmentStatus.RENTED)])

        payload = json.loads(repository.path.read_text(encoding="utf-8"))
        self.assertEqual([row["id"] for row in payload], ["E102"])
        self.assertEqual(payload[0]["status"], "Rented")
        self.assertFalse(repository.path.with_suffix(".json.tmp").exists())

    def test_system_over_json_directory(self):
        settings = RentalSettings(data_dir=self.data_dir)
        system = build_system(build_repositories(settings), settings=settings)
        login_as(system, JOHN)
        system.ledger.rent("E101", 3)

        for name in ("users.json", "equipment.json", "rentals.json"):
            self.assertTrue((self.data_dir / name).exists(), name)
        rentals = json.loads((self.data_dir / "rentals.json").read_text(encoding="utf-8"))
        self.assertEqual(rentals[0]["rental_id"], "R001")
        self.assertEqual(rentals[0]["start_date"], "2024-03-01")

        snapshot = load_snapshot(build_repositories(settings))
        self.assertTrue(all(check.ok for check in run_integrity_checks(snapshot)))


class SqlStorageTests(unittest.TestCase):
    def setUp(self):
        self.session_factory = build_session_factory(build_engine("sqlite+pysqlite:///:memory:"))

    def test_users_round_trip_with_enums_and_timestamps(self):
        repository = SqlRepository(self.session_factory, UserRow, User)
        user = User(
            user_id="C001",
            username="john.doe",
            credential_hash="pbkdf2_sha256$1$salt$digest",
            full_name="John Doe",
            role=UserRole.CUSTOMER,
            status=AccountStatus.LOCKED,
            created_time=datetime(2024, 1, 1, 8, 0),
            failed_login_count=3,
        )

        repository.save_all([user])
        loaded = repository.load_all()

        self.assertEqual(loaded, [user])
        db = self.session_factory()
        try:
            self.assertEqual(db.get(UserRow, "C001").Status, "Locked")
        finally:
            db.close()

    def test_save_all_replaces_table(self):
        repository = SqlRepository(self.session_factory, EquipmentRow, Equipment)
        repository.save_all([Equipment(id="E101", name="Projector", daily_rate=20.0)])
        repository.save_all([Equipment(id="E102", name="Sound System", daily_rate=50.0)])

        self.assertEqual([item.id for item in repository.load_all()], ["E102"])

    def test_system_over_sql_backend(self):
        settings = RentalSettings(storage_backend="sql", database_url="sqlite+pysqlite:///:memory:")
        repositories = build_repositories(settings)
        system = build_system(repositories, settings=settings)
        login_as(system, JOHN)
        system.ledger.rent("E102", 2)

        rentals = repositories.rentals.load_all()
        self.assertEqual(rentals[0].rental_id, "R001")
        self.assertEqual(rentals[0].start_date, date(2024, 3, 1))
        equipment = {item.id: item for item in repositories.equipment.load_all()}
        self.assertEqual(equipment["E102"].status, EquipmentStatus.RENTED)


class SettingsTests(unittest.TestCase):
    def test_defaults(self):
        settings = RentalSettings()
        self.assertEqual(settings.late_fee_per_day, 50.0)
        self.assertEqual(settings.max_failed_logins, 3)
        self.assertEqual(settings.equipment_id_floor, 100)

    def test_from_env(self):
        env = {
            "RENTAL_DATA_DIR": "/tmp/rental-data",
            "RENTAL_STORAGE_BACKEND": "SQL",
            "RENTAL_LATE_FEE_PER_DAY": "12.5",
            "RENTAL_MAX_FAILED_LOGINS": "5",
            "RENTAL_SEED_DEFAULTS": "no",
        }
        with mock.patch.dict(os.environ, env):
            settings = RentalSettings.from_env()

        self.assertEqual(settings.data_dir, Path("/tmp/rental-data"))
        self.assertEqual(settings.storage_backend, "sql")
        self.assertEqual(settings.late_fee_per_day, 12.5)
        self.assertEqual(settings.max_failed_logins, 5)
        self.assertFalse(settings.seed_defaults)

    def test_invalid_values_fail_fast(self):
        with self.assertRaises(ValueError):
            RentalSettings(storage_backend="xml")
        with self.assertRaises(ValueError):
            RentalSettings(max_failed_logins=0)
        with mock.patch.dict(os.environ, {"RENTAL_MAX_RENTAL_DAYS": "a year"}):
            with self.assertRaises(ValueError):
                RentalSettings.from_env()

    def test_configured_late_fee_and_threshold_are_used(self):
        settings = RentalSettings(late_fee_per_day=10.0, max_failed_logins=2)
        system = build_system(settings=settings)

        system.session.login("jane.doe", "bad-pass")
        second = system.session.login("jane.doe", "bad-pass")
        self.assertIn("locked", second.message)

        self.assertEqual(system.ledger.late_fee_per_day, 10.0)

    def test_script_storage_options_override_settings(self):
        parser = argparse.ArgumentParser()
        add_storage_arguments(parser)
        base = RentalSettings(max_failed_logins=4)

        args = parser.parse_args(["--data-dir", "/tmp/rental-json", "--backend", "sql", "--db-url", " sqlite:///x.db "])
        settings = settings_from_args(args, base)
        self.assertEqual(settings.data_dir, Path("/tmp/rental-json"))
        self.assertEqual(settings.storage_backend, "sql")
        self.assertEqual(settings.database_url, "sqlite:///x.db")
        self.assertEqual(settings.max_failed_logins, 4)

        self.assertIs(settings_from_args(parser.parse_args([]), base), base)


class IntegrityCheckTests(unittest.TestCase):
    def test_detects_rented_equipment_without_rental(self):
        snapshot = StorageSnapshot(
            users=[],
            equipment=[Equipment(id="E101", name="Projector", daily_rate=20.0, status=EquipmentStatus.RENTED)],
            rentals=[
                Rental(
                    rental_id="R001",
                    equipment_id="E404",
                    customer_id="C001",
                    start_date=date(2024, 3, 1),
                    days_rented=1,
                    total_cost=20.0,
                )
            ],
            returns=[],
        )

        failed = {check.name for check in run_integrity_checks(snapshot) if not check.ok}

        self.assertEqual(
            failed,
            {"equipment:rented_without_open_rental", "rentals:missing_equipment", "rentals:missing_customer"},
        )


if __name__ == "__main__":
    unittest.main()

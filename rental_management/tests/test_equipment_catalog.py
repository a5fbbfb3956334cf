import unittest

from pydantic import ValidationError

from rental_management.db.memory_store import InMemoryRepository
from rental_management.schemas.equipment import Equipment, EquipmentStatus
from rental_management.services.equipment_service import EquipmentCatalog, parse_status
from rental_management.services.results import ErrorKind
from rental_management.tests.support import ADMIN, JOHN, build_system, login_as


class EquipmentCatalogTests(unittest.TestCase):
    def setUp(self):
        self.system = build_system()
        self.catalog = self.system.catalog

    def test_default_equipment_is_seeded(self):
        ids = [item.id for item in self.catalog.list_all()]
        self.assertEqual(ids, ["E101", "E102", "E103", "E104", "E105"])
        self.assertEqual(self.catalog.find_by_id("E102").daily_rate, 50.0)
        self.assertTrue(all(item.is_available for item in self.catalog.list_all()))

    def test_add_requires_admin(self):
        self.assertEqual(self.catalog.add("Tripod", 5).error, ErrorKind.UNAUTHENTICATED)
        login_as(self.system, JOHN)
        self.assertEqual(self.catalog.add("Tripod", 5).error, ErrorKind.WRONG_ROLE)
        self.assertEqual(len(self.catalog.list_all()), 5)

    def test_add_allocates_ids_after_highest_existing(self):
        login_as(self.system, ADMIN)

        first = self.catalog.add("Tripod", 5, "Photography")
        second = self.catalog.add("Speaker", 15.5, "  ")

        self.assertEqual(first.data.id, "E106")
        self.assertEqual(first.message, "Equipment added. ID: E106")
        self.assertEqual(second.data.id, "E107")
        self.assertEqual(second.data.category, "General")
        self.assertEqual(second.data.status, EquipmentStatus.AVAILABLE)

    def test_add_starts_above_reserved_range_in_an_empty_catalog(self):
        login_as(self.system, ADMIN)
        catalog = EquipmentCatalog(InMemoryRepository(Equipment), self.system.session, seed_defaults=False)

        self.assertEqual(catalog.add("Drone", 80).data.id, "E101")

    def test_add_rejects_bad_rates_and_names(self):
        login_as(self.system, ADMIN)
        self.assertEqual(self.catalog.add("Tripod", 0).error, ErrorKind.INVALID_INPUT)
        self.assertEqual(self.catalog.add("Tripod", -3).error, ErrorKind.INVALID_INPUT)
        self.assertEqual(self.catalog.add("Tripod", "cheap").error, ErrorKind.INVALID_INPUT)
        self.assertEqual(self.catalog.add("Tripod", 10001).error, ErrorKind.INVALID_INPUT)
        self.assertEqual(self.catalog.add("   ", 5).error, ErrorKind.INVALID_INPUT)
        self.assertEqual(len(self.catalog.list_all()), 5)

    def test_set_status(self):
        login_as(self.system, ADMIN)

        result = self.catalog.set_status("E103", "maintenance")

        self.assertTrue(result)
        self.assertEqual(self.catalog.find_by_id("E103").status, EquipmentStatus.MAINTENANCE)
        self.assertTrue(self.catalog.set_status("E103", EquipmentStatus.AVAILABLE))
        self.assertEqual(self.catalog.set_status("E999", "Available").error, ErrorKind.NOT_FOUND)
        self.assertEqual(self.catalog.set_status("E103", "Broken").error, ErrorKind.INVALID_INPUT)
        self.assertEqual(self.catalog.set_status("E103", "Rented").error, ErrorKind.INVALID_INPUT)

    def test_remove_unknown_and_free_equipment(self):
        login_as(self.system, ADMIN)
        self.assertEqual(self.catalog.remove("E999").error, ErrorKind.NOT_FOUND)
        self.assertTrue(self.catalog.remove("E105"))
        self.assertIsNone(self.catalog.find_by_id("E105"))
        self.assertNotIn("E105", [row["id"] for row in self.catalog._repository.rows])

    def test_listings_return_snapshots(self):
        everything = self.catalog.list_all()
        self.assertIsInstance(everything, tuple)
        with self.assertRaises(ValidationError):
            everything[0].status = EquipmentStatus.RENTED
        self.assertEqual(self.catalog.find_by_id("E101").status, EquipmentStatus.AVAILABLE)

    def test_search_matches_id_name_and_category(self):
        self.assertEqual([item.id for item in self.catalog.search("AUDIO")], ["E102", "E105"])
        self.assertEqual([item.id for item in self.catalog.search("lap")], ["E103"])
        self.assertEqual([item.id for item in self.catalog.search("e104")], ["E104"])

    def test_categories_and_category_listing(self):
        self.assertEqual(self.catalog.list_categories(), ("Audio", "Electronics", "Photography"))

        login_as(self.system, ADMIN)
        self.catalog.set_status("E101", "Maintenance")
        self.assertEqual([item.id for item in self.catalog.list_by_category("electronics")], ["E101", "E103"])

        login_as(self.system, JOHN)
        self.assertEqual([item.id for item in self.catalog.list_by_category("Electronics")], ["E103"])
        self.assertEqual([item.id for item in self.catalog.list_available()], ["E102", "E103", "E104", "E105"])

    def test_sorted_by_rate(self):
        ascending = [item.name for item in self.catalog.sorted_by_rate()]
        descending = [item.name for item in self.catalog.sorted_by_rate(ascending=False)]
        self.assertEqual(ascending[0], "Microphone")
        self.assertEqual(descending[0], "Sound System")

    def test_parse_status(self):
        self.assertEqual(parse_status(" rented "), EquipmentStatus.RENTED)
        self.assertIsNone(parse_status("lost"))
        self.assertIsNone(parse_status(None))


if __name__ == "__main__":
    unittest.main()

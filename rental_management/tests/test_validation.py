import unittest

from rental_management.services import identifiers, validation
from rental_management.services.results import ErrorKind, OperationResult


class ValidationTests(unittest.TestCase):
    def test_rent_days_bounds(self):
        self.assertTrue(validation.is_valid_rent_days(1))
        self.assertTrue(validation.is_valid_rent_days(365))
        self.assertFalse(validation.is_valid_rent_days(0))
        self.assertFalse(validation.is_valid_rent_days(366))
        self.assertFalse(validation.is_valid_rent_days(True))
        self.assertTrue(validation.is_valid_rent_days(30, max_days=30))

    def test_registration_rules(self):
        self.assertIsNone(validation.validate_registration("mary_k", "secret1", "Mary K", "mary@example.com"))
        self.assertIn("Username", validation.validate_registration("m k", "secret1", "Mary K", "mary@example.com"))
        self.assertIn("Full name", validation.validate_registration("mary_k", "secret1", "M", "mary@example.com"))

    def test_sanitize_input_strips_separators(self):
        self.assertEqual(validation.sanitize_input("  Sound,\nSystem  "), "Sound System")
        self.assertEqual(validation.sanitize_input(None), "")


class IdentifierTests(unittest.TestCase):
    def test_next_identifier_uses_highest_suffix(self):
        self.assertEqual(identifiers.next_identifier(["C001", "C009", "A004", "bogus"], "C"), "C010")
        self.assertEqual(identifiers.next_identifier([], "R"), "R001")
        self.assertEqual(identifiers.next_identifier(["E003"], "E", floor=100), "E101")
        self.assertEqual(identifiers.next_identifier(["E1200"], "E", floor=100), "E1201")

    def test_parse_sequence(self):
        self.assertEqual(identifiers.parse_sequence("R042", "R"), 42)
        self.assertIsNone(identifiers.parse_sequence("R04x", "R"))
        self.assertIsNone(identifiers.parse_sequence("E042", "R"))


class OperationResultTests(unittest.TestCase):
    def test_truthiness_and_unsaved(self):
        ok = OperationResult.ok("Done.", data=1)
        self.assertTrue(ok)
        self.assertFalse(OperationResult.fail(ErrorKind.NOT_FOUND, "Missing."))

        unsaved = ok.unsaved("disk full")
        self.assertTrue(unsaved)
        self.assertFalse(unsaved.saved)
        self.assertEqual(unsaved.error, ErrorKind.PERSISTENCE_FAILURE)
        self.assertEqual(unsaved.message, "Done. (warning: changes could not be saved: disk full)")
        self.assertEqual(unsaved.data, 1)


if __name__ == "__main__":
    unittest.main()

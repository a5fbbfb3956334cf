import threading
import unittest

from rental_management.services.results import ErrorKind
from rental_management.tests.support import ADMIN, JOHN, build_system, login_as


def _run_together(worker, count):
    barrier = threading.Barrier(count)
    results = []
    results_lock = threading.Lock()

    def _target(index):
        barrier.wait()
        outcome = worker(index)
        with results_lock:
            results.append(outcome)

    threads = [threading.Thread(target=_target, args=(index,)) for index in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)
    return results


class ConcurrencyTests(unittest.TestCase):
    def test_parallel_adds_allocate_unique_ids(self):
        system = build_system()
        login_as(system, ADMIN)

        def _add_many(index):
            return [system.catalog.add(f"Item {index}-{n}", 5 + n).data.id for n in range(5)]

        results = _run_together(_add_many, 8)
        ids = [equipment_id for batch in results for equipment_id in batch]

        self.assertEqual(len(ids), 40)
        self.assertEqual(len(set(ids)), 40)
        self.assertEqual(sorted(ids)[0], "E106")
        self.assertEqual(sorted(ids)[-1], "E145")

    def test_parallel_rents_of_one_item_let_exactly_one_through(self):
        system = build_system()
        login_as(system, JOHN)

        results = _run_together(lambda index: system.ledger.rent("E101", 2), 10)

        successes = [result for result in results if result]
        self.assertEqual(len(successes), 1)
        self.assertTrue(all(result.error == ErrorKind.NOT_AVAILABLE for result in results if not result))
        self.assertIsNotNone(system.ledger.find_rental("R001"))
        self.assertIsNone(system.ledger.find_rental("R002"))

    def test_parallel_registrations_get_distinct_customer_ids(self):
        system = build_system()

        def _register(index):
            return system.identity.register_customer(f"user{index:02d}", "secret1", f"User {index}", f"u{index}@example.com")

        results = _run_together(_register, 12)

        ids = sorted(result.data.user_id for result in results)
        self.assertEqual(len(set(ids)), 12)
        self.assertEqual(ids[0], "C003")
        self.assertEqual(ids[-1], "C014")


if __name__ == "__main__":
    unittest.main()

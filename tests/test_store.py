import unittest

from connector.records import AppointmentStatus, VisitMode
from connector.store import InMemoryStore, WriteConflictError
from tests.support import SATURDAY, WEDNESDAY, make_appointment, make_practitioner


class InMemoryStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = InMemoryStore(
            practitioners=[make_practitioner("dr-a"), make_practitioner("dr-b", status="pending")],
            appointments=[
                make_appointment("a1"),
                make_appointment("a2", doctor_id="dr-a", status=AppointmentStatus.CONFIRMED),
                make_appointment("a3", doctor_id="dr-a", status=AppointmentStatus.CANCELLED),
                make_appointment("a4", doctor_id="dr-a", on_date=SATURDAY),
            ],
        )

    def test_lists_only_approved_practitioners(self) -> None:
        approved = self.store.list_approved_practitioners()

        self.assertEqual([p.practitioner_id for p in approved], ["dr-a"])

    def test_appointments_for_practitioner_skips_cancelled_and_other_dates(self) -> None:
        booked = self.store.appointments_for_practitioner("dr-a", WEDNESDAY)

        self.assertEqual([a.appointment_id for a in booked], ["a2"])
        self.assertEqual(self.store.appointments_for_practitioner("dr-a", WEDNESDAY, exclude_id="a2"), [])

    def test_pending_unassigned(self) -> None:
        self.assertEqual([a.appointment_id for a in self.store.pending_unassigned()], ["a1"])

    def test_conditional_update_succeeds_when_unchanged(self) -> None:
        updated = self.store.update_appointment(
            "a1",
            {"doctor_id": "dr-a", "doctor_name": "Dr. dr-a", "status": AppointmentStatus.CONFIRMED},
            expected_doctor_id=None,
        )

        self.assertEqual(updated.doctor_id, "dr-a")
        self.assertEqual(self.store.get_appointment("a1").status, AppointmentStatus.CONFIRMED)

    def test_conditional_update_rejects_concurrent_change(self) -> None:
        with self.assertRaises(WriteConflictError):
            self.store.update_appointment("a2", {"doctor_id": "dr-b"}, expected_doctor_id=None)

        self.assertEqual(self.store.get_appointment("a2").doctor_id, "dr-a")

    def test_update_rejects_non_assignment_fields(self) -> None:
        with self.assertRaises(ValueError):
            self.store.update_appointment("a1", {"visit_mode": VisitMode.HOME})

    def test_update_missing_appointment(self) -> None:
        with self.assertRaises(KeyError):
            self.store.update_appointment("missing", {"doctor_id": "dr-a"})

    def test_practitioner_lock_is_shared_per_practitioner(self) -> None:
        self.assertIs(self.store.practitioner_lock("dr-a"), self.store.practitioner_lock("dr-a"))
        self.assertIsNot(self.store.practitioner_lock("dr-a"), self.store.practitioner_lock("dr-b"))


if __name__ == "__main__":
    unittest.main()

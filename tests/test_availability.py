import unittest

from connector.records import AppointmentStatus, VisitMode
from connector.store import InMemoryStore
from scheduling.availability import (
    check_schedule,
    evaluate_practitioner,
    filter_available,
    is_within_schedule,
)
from tests.support import SATURDAY, WEDNESDAY, make_appointment, make_practitioner, make_schedule


class CheckScheduleTests(unittest.TestCase):
    def setUp(self) -> None:
        self.schedule = make_schedule("dr-a", break_start="13:00", break_end="14:00")

    def test_day_off(self) -> None:
        self.assertEqual(
            check_schedule(self.schedule, SATURDAY, "10:00"), "Not scheduled to work on Saturday"
        )

    def test_working_hours_are_inclusive(self) -> None:
        self.assertTrue(is_within_schedule(self.schedule, WEDNESDAY, "09:00"))
        self.assertTrue(is_within_schedule(self.schedule, WEDNESDAY, "17:00"))
        self.assertIn("Outside working hours", check_schedule(self.schedule, WEDNESDAY, "08:59"))
        self.assertIn("Outside working hours", check_schedule(self.schedule, WEDNESDAY, "17:01"))

    def test_break_is_inclusive(self) -> None:
        for clock_time in ("13:00", "13:30", "14:00"):
            with self.subTest(clock_time=clock_time):
                self.assertEqual(
                    check_schedule(self.schedule, WEDNESDAY, clock_time), "During break 13:00-14:00"
                )
        self.assertIsNone(check_schedule(self.schedule, WEDNESDAY, "14:01"))
        self.assertIsNone(check_schedule(self.schedule, WEDNESDAY, "12:59"))


class FilterAvailableTests(unittest.TestCase):
    def setUp(self) -> None:
        self.practitioners = [
            make_practitioner("dr-a"),
            make_practitioner("dr-b"),
            make_practitioner("dr-c"),
            make_practitioner("dr-d"),
        ]
        self.store = InMemoryStore(
            practitioners=self.practitioners,
            schedules=[make_schedule("dr-a"), make_schedule("dr-c")],
            appointments=[
                make_appointment(
                    "busy-c",
                    time="09:00",
                    mode=VisitMode.HOME,
                    doctor_id="dr-c",
                    status=AppointmentStatus.CONFIRMED,
                ),
                make_appointment(
                    "busy-d",
                    time="10:00",
                    mode=VisitMode.CLINIC,
                    doctor_id="dr-d",
                    status=AppointmentStatus.CONFIRMED,
                ),
            ],
        )

    def test_splits_into_buckets(self) -> None:
        buckets = filter_available(
            self.practitioners,
            self.store.list_schedules(),
            self.store.appointments_for_practitioner,
            WEDNESDAY,
            "10:00",
            VisitMode.VIRTUAL,
        )

        self.assertEqual([p.practitioner_id for p in buckets.available], ["dr-a"])
        self.assertEqual([p.practitioner_id for p in buckets.no_schedule], ["dr-b"])
        self.assertEqual(
            sorted(result.practitioner.practitioner_id for result in buckets.unavailable),
            ["dr-c", "dr-d"],
        )
        self.assertFalse(buckets.is_empty)

    def test_schedule_checked_before_conflicts(self) -> None:
        result = evaluate_practitioner(
            self.practitioners[2],
            make_schedule("dr-c"),
            self.store.appointments_for_practitioner,
            SATURDAY,
            "10:00",
            VisitMode.VIRTUAL,
        )

        self.assertFalse(result.is_available)
        self.assertTrue(result.has_schedule)
        self.assertEqual(result.reason, "Not scheduled to work on Saturday")
        self.assertFalse(result.conflict.has_conflict)

    def test_excluded_appointment_does_not_conflict_with_itself(self) -> None:
        result = evaluate_practitioner(
            self.practitioners[3],
            None,
            self.store.appointments_for_practitioner,
            WEDNESDAY,
            "10:00",
            VisitMode.CLINIC,
            exclude_appointment_id="busy-d",
        )

        self.assertTrue(result.is_available)
        self.assertFalse(result.has_schedule)

    def test_everyone_busy_leaves_empty_buckets(self) -> None:
        buckets = filter_available(
            [self.practitioners[0]],
            self.store.list_schedules(),
            self.store.appointments_for_practitioner,
            SATURDAY,
            "10:00",
            VisitMode.VIRTUAL,
        )

        self.assertTrue(buckets.is_empty)
        self.assertEqual(len(buckets.unavailable), 1)


if __name__ == "__main__":
    unittest.main()

import json
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

from agents.assignment import AssignmentAgent, SlotTakenError
from api.app import create_app
from connector.records import AppointmentStatus, Specialization, VisitMode
from connector.repository import JsonDataRepository
from connector.store import InMemoryStore
from orchestrator.main import TaskLogger
from tests.support import make_appointment, make_practitioner, make_schedule


class AssignmentApiTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp_path = Path(self._tmp.name)
        self.store = InMemoryStore(
            practitioners=[
                make_practitioner("dr-a", "Dr. A", specialization=Specialization.ORTHODONTIST, area="Koramangala"),
                make_practitioner("dr-b", "Dr. B"),
            ],
            schedules=[make_schedule("dr-a"), make_schedule("dr-b")],
            appointments=[
                make_appointment("a1", symptoms="braces", area="Koramangala"),
                make_appointment(
                    "h1",
                    time="13:00",
                    mode=VisitMode.HOME,
                    doctor_id="dr-b",
                    status=AppointmentStatus.CONFIRMED,
                ),
            ],
        )
        self.repository = JsonDataRepository(self.tmp_path / "data")
        self.task_logger = TaskLogger(self.tmp_path / "task_log.json")
        self.agent = AssignmentAgent(self.store, notifier=MagicMock())
        app = create_app(
            self.agent, store=self.store, repository=self.repository, task_logger=self.task_logger
        )
        app.testing = True
        self.client = app.test_client()

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_available_doctors(self) -> None:
        response = self.client.get(
            "/doctors/available?date=2024-01-10&time=10:00&consultationType=virtual"
            "&symptoms=braces&area=Koramangala"
        )

        self.assertEqual(response.status_code, 200)
        payload = response.get_json()
        self.assertEqual(payload["count"], 2)
        self.assertEqual(payload["doctors"][0]["practitioner_id"], "dr-a")

    def test_available_doctors_validates_query(self) -> None:
        missing = self.client.get("/doctors/available?time=11:00&consultationType=virtual")
        self.assertEqual(missing.status_code, 400)
        self.assertEqual(missing.get_json()["success"], False)

        bad_mode = self.client.get("/doctors/available?date=2024-01-10&time=11:00&consultationType=walk-in")
        self.assertEqual(bad_mode.status_code, 400)

        bad_date = self.client.get("/doctors/available?date=10-01-2024&time=11:00&consultationType=virtual")
        self.assertEqual(bad_date.status_code, 400)

    def test_no_doctors_free(self) -> None:
        response = self.client.get("/doctors/available?date=2024-01-13&time=11:00&consultationType=clinic")

        self.assertEqual(response.status_code, 422)
        self.assertIn("No doctors available", response.get_json()["message"])

    def test_availability_report(self) -> None:
        response = self.client.get("/availability?date=2024-01-10&time=12:00&consultationType=clinic")

        payload = response.get_json()
        self.assertEqual(response.status_code, 200)
        self.assertEqual((payload["available"], payload["unavailable"]), (1, 1))

    def test_auto_assign_persists_and_logs(self) -> None:
        response = self.client.post("/appointments/a1/assign")

        self.assertEqual(response.status_code, 200)
        payload = response.get_json()
        self.assertTrue(payload["success"])
        self.assertEqual(payload["doctor_id"], "dr-a")

        saved = json.loads((self.tmp_path / "data" / "appointments.json").read_text(encoding="utf-8"))
        self.assertEqual({row["id"]: row.get("doctorId") for row in saved}["a1"], "dr-a")

        tasks = self.client.get("/tasks").get_json()
        self.assertEqual(tasks[-1]["task"], "auto_assign")
        self.assertEqual(tasks[-1]["status"], "success")

    def test_unknown_appointment_is_404(self) -> None:
        response = self.client.post("/appointments/missing/assign")

        self.assertEqual(response.status_code, 404)
        self.assertEqual(self.client.get("/tasks").get_json()[-1]["status"], "failed")

    def test_slot_taken_is_409(self) -> None:
        with patch.object(self.agent, "auto_assign", side_effect=SlotTakenError("Requested slot was just taken")):
            response = self.client.post("/appointments/a1/assign")

        self.assertEqual(response.status_code, 409)

    def test_manual_assign(self) -> None:
        response = self.client.post(
            "/appointments/a1/manual-assign", json={"doctorId": "dr-b", "adminId": "admin-1"}
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.store.get_appointment("a1").assigned_by, "admin-1")

    def test_manual_assign_requires_fields(self) -> None:
        response = self.client.post("/appointments/a1/manual-assign", json={"doctorId": "dr-b"})

        self.assertEqual(response.status_code, 400)
        self.assertIn("adminId", response.get_json()["message"])

    def test_manual_assign_conflict_is_422(self) -> None:
        self.store.add_appointment(make_appointment("a2", time="12:00"))

        response = self.client.post(
            "/appointments/a2/manual-assign", json={"doctorId": "dr-b", "adminId": "admin-1"}
        )

        self.assertEqual(response.status_code, 422)

    def test_unknown_practitioner_is_404(self) -> None:
        response = self.client.post(
            "/appointments/a1/manual-assign", json={"doctorId": "dr-x", "adminId": "admin-1"}
        )

        self.assertEqual(response.status_code, 404)

    def test_reassign(self) -> None:
        self.client.post("/appointments/a1/assign")

        response = self.client.post(
            "/appointments/a1/reassign",
            json={"newDoctorId": "dr-b", "adminId": "admin-1", "reason": "Leave"},
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["previous_doctor_id"], "dr-a")
        self.assertEqual(self.store.get_appointment("a1").reassignment_reason, "Leave")

    def test_assign_pending(self) -> None:
        response = self.client.post("/appointments/assign-pending")

        payload = response.get_json()
        self.assertEqual(response.status_code, 200)
        self.assertEqual((payload["total"], payload["successful"]), (1, 1))

    def test_eligibility(self) -> None:
        payload = self.client.get("/appointments/a1/eligibility/dr-b").get_json()

        self.assertTrue(payload["eligible"])

    def test_statistics(self) -> None:
        payload = self.client.get("/statistics").get_json()

        self.assertEqual(payload["stats"]["total_doctors"], 2)
        self.assertEqual(payload["stats"]["pending_unassigned"], 1)


if __name__ == "__main__":
    unittest.main()

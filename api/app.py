"""HTTP surface for the assignment engine.

This module exposes a small Flask application over an
:class:`~agents.assignment.AssignmentAgent`. Writes are persisted through the
JSON repository when one is configured, and every write is recorded in the
task log so ``GET /tasks`` mirrors the command-line history.
"""
from __future__ import annotations

import logging
import os
import sys
from datetime import date, datetime
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple

from flask import Flask, Response, jsonify, request

if __package__ is None or __package__ == "":  # pragma: no cover - runtime safety for script execution
    sys.path.append(str(Path(__file__).resolve().parent.parent))

from agents.assignment import (
    AppointmentNotFoundError,
    AssignmentAgent,
    AssignmentError,
    IneligiblePractitionerError,
    NoCandidatesError,
    PractitionerNotFoundError,
    SlotTakenError,
)
from connector.records import LocationInfo
from connector.repository import JsonDataRepository
from connector.store import InMemoryStore, WriteConflictError
from orchestrator.main import LOG_PATH, TaskLogger, build_agent, execute_with_logging

DATE_FORMAT = "%Y-%m-%d"

logger = logging.getLogger(__name__)

ERROR_STATUS: Tuple[Tuple[type, int], ...] = (
    (AppointmentNotFoundError, 404),
    (PractitionerNotFoundError, 404),
    (IneligiblePractitionerError, 422),
    (NoCandidatesError, 422),
    (SlotTakenError, 409),
    (WriteConflictError, 409),
)


class BadRequest(ValueError):
    """Raised for malformed query strings or JSON bodies."""


def parse_iso_date(value: str | None) -> date:
    if not value:
        raise BadRequest("Query parameter 'date' is required")
    try:
        return datetime.strptime(value, DATE_FORMAT).date()
    except ValueError as exc:
        raise BadRequest(f"Invalid date '{value}', expected YYYY-MM-DD") from exc


def _required_arg(name: str) -> str:
    value = (request.args.get(name) or "").strip()
    if not value:
        raise BadRequest(f"Query parameter '{name}' is required")
    return value


def _json_body() -> Dict[str, object]:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise BadRequest("Request body must be a JSON object")
    return payload


def _required_field(payload: Dict[str, object], name: str) -> str:
    value = payload.get(name)
    if not isinstance(value, str) or not value.strip():
        raise BadRequest(f"Field '{name}' is required")
    return value.strip()


def _error_response(message: str, status: int) -> Tuple[Response, int]:
    return jsonify({"success": False, "message": message}), status


def status_for(exc: Exception) -> int:
    for error_type, status in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status
    return 500


def create_app(
    agent: AssignmentAgent,
    *,
    store: Optional[InMemoryStore] = None,
    repository: Optional[JsonDataRepository] = None,
    task_logger: Optional[TaskLogger] = None,
) -> Flask:
    """Build the Flask application around ``agent``.

    When both ``store`` and ``repository`` are given, appointments are saved
    back to disk after each successful write.
    """

    app = Flask(__name__)
    task_log = task_logger or TaskLogger(LOG_PATH)

    def persist() -> None:
        if store is not None and repository is not None:
            repository.save_appointments(store)

    def run_write(task_name: str, operation: Callable[[], Dict[str, object]]) -> Response:
        def action() -> Dict[str, object]:
            result = operation()
            persist()
            return result

        return jsonify(execute_with_logging(task_name, action, task_log))

    @app.errorhandler(BadRequest)
    def handle_bad_request(exc: BadRequest) -> Tuple[Response, int]:
        return _error_response(str(exc), 400)

    @app.errorhandler(ValueError)
    def handle_value_error(exc: ValueError) -> Tuple[Response, int]:
        return _error_response(str(exc), 400)

    @app.errorhandler(AssignmentError)
    def handle_assignment_error(exc: AssignmentError) -> Tuple[Response, int]:
        status = status_for(exc)
        logger.info("Request %s %s failed with %d: %s", request.method, request.path, status, exc.reason)
        return _error_response(exc.reason, status)

    @app.errorhandler(WriteConflictError)
    def handle_write_conflict(exc: WriteConflictError) -> Tuple[Response, int]:
        return _error_response(str(exc), 409)

    @app.route("/doctors/available", methods=["GET"])
    def available_doctors() -> Response:
        on_date = parse_iso_date(request.args.get("date"))
        clock_time = _required_arg("time")
        visit_mode = _required_arg("consultationType")
        location = LocationInfo(
            area=request.args.get("area") or None,
            full_address=request.args.get("address") or None,
        )
        matches = agent.available_practitioners(
            on_date,
            clock_time,
            visit_mode,
            symptoms=request.args.get("symptoms") or None,
            patient_location=location,
        )
        return jsonify(
            {
                "success": True,
                "count": len(matches),
                "doctors": [match.to_dict() for match in matches],
            }
        )

    @app.route("/availability", methods=["GET"])
    def availability() -> Response:
        on_date = parse_iso_date(request.args.get("date"))
        report = agent.availability_report(on_date, _required_arg("time"), _required_arg("consultationType"))
        return jsonify({"success": True, **report})

    @app.route("/appointments/<appointment_id>/assign", methods=["POST"])
    def auto_assign(appointment_id: str) -> Response:
        return run_write("auto_assign", lambda: agent.auto_assign(appointment_id).to_dict())

    @app.route("/appointments/<appointment_id>/manual-assign", methods=["POST"])
    def manual_assign(appointment_id: str) -> Response:
        payload = _json_body()
        practitioner_id = _required_field(payload, "doctorId")
        actor_id = _required_field(payload, "adminId")
        return run_write(
            "manual_assign",
            lambda: agent.manual_assign(appointment_id, practitioner_id, actor_id).to_dict(),
        )

    @app.route("/appointments/<appointment_id>/reassign", methods=["POST"])
    def reassign(appointment_id: str) -> Response:
        payload = _json_body()
        practitioner_id = _required_field(payload, "newDoctorId")
        actor_id = _required_field(payload, "adminId")
        reason = payload.get("reason")
        return run_write(
            "reassign",
            lambda: agent.reassign(
                appointment_id,
                practitioner_id,
                actor_id,
                reason if isinstance(reason, str) and reason.strip() else None,
            ).to_dict(),
        )

    @app.route("/appointments/assign-pending", methods=["POST"])
    def assign_pending() -> Response:
        return run_write(
            "assign_pending", lambda: {"success": True, **agent.batch_assign().to_dict()}
        )

    @app.route("/appointments/<appointment_id>/eligibility/<practitioner_id>", methods=["GET"])
    def eligibility(appointment_id: str, practitioner_id: str) -> Response:
        return jsonify(agent.validate_eligibility(appointment_id, practitioner_id))

    @app.route("/statistics", methods=["GET"])
    def statistics() -> Response:
        return jsonify({"success": True, "stats": agent.assignment_statistics()})

    @app.route("/tasks", methods=["GET"])
    def tasks() -> Response:
        """Return task log entries as JSON."""
        return jsonify(task_log.history())

    return app


def create_app_from_disk(data_dir: Optional[Path] = None) -> Flask:
    repository = JsonDataRepository(data_dir)
    store = repository.load_store()
    return create_app(build_agent(store), store=store, repository=repository)


if __name__ == "__main__":
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO"),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    create_app_from_disk().run(
        host="0.0.0.0",
        port=int(os.environ.get("PORT", "5000")),
        debug=False,
    )

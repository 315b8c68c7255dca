"""Command-line entry point for practitioner assignment workflows."""
from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import threading
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional

if __package__ is None or __package__ == "":  # pragma: no cover - runtime safety for script execution
    sys.path.append(str(Path(__file__).resolve().parent.parent))

from agents.assignment import AssignmentAgent, AssignmentError
from connector.geocoding import NominatimClient
from connector.records import LocationInfo, VisitMode
from connector.repository import JsonDataRepository
from connector.store import InMemoryStore
from matching.location import LocationResolver
from matching.ranking import MatchRanker
from scheduling.conflicts import describe_blocking_period

logger = logging.getLogger(__name__)

LOG_PATH = Path(os.getenv("TASK_LOG_PATH", str(Path(__file__).resolve().parent / "task_log.json")))
RULES_SAMPLE_TIME = "10:00"


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _format_timestamp(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC).isoformat().replace("+00:00", "Z")


class TaskLogger:
    """Persists orchestration events into a JSON log."""

    def __init__(self, log_path: Path) -> None:
        self._log_path = log_path
        self._lock = threading.Lock()
        self._log_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def log_path(self) -> Path:
        return self._log_path

    def log(
        self,
        task_name: str,
        status: str,
        *,
        start_time: Optional[datetime] = None,
        message: Optional[str] = None,
        details: Optional[Dict[str, object]] = None,
    ) -> None:
        completed_at = _utc_now()
        started_at = start_time or completed_at
        entry: Dict[str, object] = {
            "task": task_name,
            "status": status,
            "started_at": _format_timestamp(started_at),
            "completed_at": _format_timestamp(completed_at),
        }
        if message:
            entry["message"] = message
        if details is not None:
            entry["details"] = details

        with self._lock:
            history = self._read_history()
            history.append(entry)
            serialized = json.dumps(history, indent=2, default=str)
            self._log_path.write_text(f"{serialized}\n", encoding="utf-8")

    def history(self) -> List[Dict[str, object]]:
        with self._lock:
            return self._read_history()

    def _read_history(self) -> List[Dict[str, object]]:
        if not self._log_path.exists():
            return []
        raw_content = self._log_path.read_text(encoding="utf-8").strip()
        if not raw_content:
            return []
        try:
            data = json.loads(raw_content)
        except json.JSONDecodeError as exc:
            raise ValueError(
                f"Task log is corrupted and cannot be parsed: {exc.msg}"
            ) from exc
        if not isinstance(data, list):
            raise ValueError("Task log must contain a JSON list of entries.")
        return data


def execute_with_logging(
    task_name: str, action: Callable[[], Optional[Dict[str, object]]], logger: TaskLogger
) -> Optional[Dict[str, object]]:
    """Run ``action`` while emitting structured log entries."""

    start_time = _utc_now()
    details: Optional[Dict[str, object]] = None
    status = "success"
    message: Optional[str] = None

    try:
        result = action()
        if isinstance(result, dict):
            details = result
        return result
    except Exception as exc:
        status = "failed"
        message = str(exc)
        raise
    finally:
        logger.log(
            task_name,
            status,
            start_time=start_time,
            message=message,
            details=details,
        )


def build_agent(store: InMemoryStore) -> AssignmentAgent:
    """Wire the agent with the live geocoder for distance scoring."""

    resolver = LocationResolver(NominatimClient())
    return AssignmentAgent(store, ranker=MatchRanker(resolver))


def blocking_rules(sample_time: str = RULES_SAMPLE_TIME) -> Dict[str, object]:
    return {mode.value: describe_blocking_period(mode, sample_time) for mode in VisitMode}


def _iso_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid date '{value}', expected YYYY-MM-DD") from exc


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Dental practitioner assignment controller")
    parser.add_argument("--data-dir", type=Path, default=None, help="Directory holding the JSON datasets")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("assign-pending", help="Auto-assign every pending appointment")

    auto = subparsers.add_parser("auto-assign", help="Auto-assign a single appointment")
    auto.add_argument("appointment_id")

    manual = subparsers.add_parser("manual-assign", help="Assign a chosen practitioner")
    manual.add_argument("appointment_id")
    manual.add_argument("practitioner_id")
    manual.add_argument("--actor", required=True, help="Identifier of the admin making the change")

    reassign = subparsers.add_parser("reassign", help="Move an appointment to another practitioner")
    reassign.add_argument("appointment_id")
    reassign.add_argument("practitioner_id")
    reassign.add_argument("--actor", required=True, help="Identifier of the admin making the change")
    reassign.add_argument("--reason", default=None)

    available = subparsers.add_parser("available", help="List practitioners free at a slot")
    available.add_argument("date", type=_iso_date)
    available.add_argument("time")
    available.add_argument("mode", choices=[mode.value for mode in VisitMode])
    available.add_argument("--symptoms", default=None)
    available.add_argument("--area", default=None, help="Patient area used for ranking")
    available.add_argument("--address", default=None, help="Patient address used for ranking")

    subparsers.add_parser("statistics", help="Print assignment statistics")
    subparsers.add_parser("rules", help="Print the blocking rules per visit mode")
    return parser.parse_args(argv)


def _run_command(
    args: argparse.Namespace, repository: JsonDataRepository
) -> Callable[[], Optional[Dict[str, object]]]:
    """Build the action for ``args.command``; writes are saved back to disk."""

    def with_agent(
        operation: Callable[[AssignmentAgent], Dict[str, object]], *, persist: bool
    ) -> Callable[[], Dict[str, object]]:
        def action() -> Dict[str, object]:
            store = repository.load_store()
            result = operation(build_agent(store))
            if persist:
                repository.save_appointments(store)
            return result

        return action

    command = args.command
    if command == "assign-pending":
        return with_agent(lambda agent: agent.batch_assign().to_dict(), persist=True)
    if command == "auto-assign":
        return with_agent(lambda agent: agent.auto_assign(args.appointment_id).to_dict(), persist=True)
    if command == "manual-assign":
        return with_agent(
            lambda agent: agent.manual_assign(args.appointment_id, args.practitioner_id, args.actor).to_dict(),
            persist=True,
        )
    if command == "reassign":
        return with_agent(
            lambda agent: agent.reassign(
                args.appointment_id, args.practitioner_id, args.actor, args.reason
            ).to_dict(),
            persist=True,
        )
    if command == "available":

        def list_available(agent: AssignmentAgent) -> Dict[str, object]:
            location = LocationInfo(area=args.area, full_address=args.address)
            matches = agent.available_practitioners(
                args.date,
                args.time,
                args.mode,
                symptoms=args.symptoms,
                patient_location=location,
            )
            return {"count": len(matches), "doctors": [match.to_dict() for match in matches]}

        return with_agent(list_available, persist=False)
    if command == "statistics":
        return with_agent(lambda agent: dict(agent.assignment_statistics()), persist=False)
    return blocking_rules


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO"),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    args = parse_args(argv)
    task_logger = TaskLogger(LOG_PATH)
    repository = JsonDataRepository(args.data_dir)

    try:
        result = execute_with_logging(args.command, _run_command(args, repository), task_logger)
    except (AssignmentError, ValueError) as exc:
        logger.error("%s failed: %s", args.command, exc)
        print(json.dumps({"success": False, "message": str(exc)}, indent=2))
        return 1

    print(json.dumps(result, indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())

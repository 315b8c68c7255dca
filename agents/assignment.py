"""Assignment agent choosing and committing a practitioner per appointment.

The agent reads practitioners, schedules and appointments from a store,
filters practitioners free at the requested slot, ranks them, and commits a
single assignment. The final "re-check conflicts + write" step runs under
the practitioner's lock and is a compare-and-set on the appointment, so two
concurrent requests cannot both book the same practitioner into
conflicting slots.
"""
from __future__ import annotations

import logging
import os
from concurrent.futures import Executor
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from threading import Lock
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol

from connector.records import (
    Appointment,
    AppointmentStatus,
    AssignmentType,
    LocationInfo,
    Practitioner,
    VisitMode,
    WorkingSchedule,
)
from connector.store import WriteConflictError
from matching.ranking import MatchRanker, MatchResult, neutral_match
from scheduling.availability import evaluate_practitioner, filter_available
from scheduling.conflicts import check_conflict
from scheduling.time_math import parse_clock_time

from .notifications import LoggingNotifier, Notifier, dispatch_assignment_notifications

logger = logging.getLogger(__name__)

MAX_WRITE_RETRIES = int(os.getenv("ASSIGNMENT_MAX_RETRIES", "3"))
NO_SCHEDULE_WARNING = "Doctor has no schedule set. Please verify availability manually."


class AssignmentError(RuntimeError):
    """Base exception for assignment failures; the message is the reason."""

    @property
    def reason(self) -> str:
        return str(self)


class AppointmentNotFoundError(AssignmentError):
    """Raised when the appointment id does not exist."""


class PractitionerNotFoundError(AssignmentError):
    """Raised when the practitioner id does not exist."""


class IneligiblePractitionerError(AssignmentError):
    """Raised when a practitioner or request cannot be used for the slot."""


class NoCandidatesError(AssignmentError):
    """Raised when no practitioner, fallback included, can take the slot."""


class SlotTakenError(AssignmentError):
    """Raised when concurrent writers kept winning the slot after all retries."""


class AssignmentStore(Protocol):
    """Protocol describing the store operations the agent relies on."""

    def get_practitioner(self, practitioner_id: str) -> Optional[Practitioner]:
        ...

    def list_practitioners(self) -> List[Practitioner]:
        ...

    def list_approved_practitioners(self) -> List[Practitioner]:
        ...

    def get_schedule(self, practitioner_id: str) -> Optional[WorkingSchedule]:
        ...

    def list_schedules(self) -> Dict[str, WorkingSchedule]:
        ...

    def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        ...

    def list_appointments(self) -> List[Appointment]:
        ...

    def appointments_for_practitioner(
        self, practitioner_id: str, on_date: date, *, exclude_id: Optional[str] = None
    ) -> List[Appointment]:
        ...

    def pending_unassigned(self) -> List[Appointment]:
        ...

    def practitioner_lock(self, practitioner_id: str) -> Lock:
        ...

    def update_appointment(
        self, appointment_id: str, changes: Mapping[str, Any], *, expected_doctor_id: Any = ...
    ) -> Appointment:
        ...


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class AssignmentOutcome:
    appointment_id: str
    practitioner_id: str
    practitioner_name: str
    assignment_type: Optional[AssignmentType]
    message: str
    match: Optional[MatchResult] = None
    warning: Optional[str] = None
    already_assigned: bool = False
    previous_practitioner_id: Optional[str] = None
    previous_practitioner_name: Optional[str] = None

    def to_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {
            "success": True,
            "message": self.message,
            "appointment_id": self.appointment_id,
            "doctor_id": self.practitioner_id,
            "doctor_name": self.practitioner_name,
            "assignment_type": self.assignment_type.value if self.assignment_type else None,
        }
        if self.match is not None:
            payload["match"] = self.match.to_dict()
        if self.warning:
            payload["warning"] = self.warning
        if self.previous_practitioner_id or self.previous_practitioner_name:
            payload["previous_doctor_id"] = self.previous_practitioner_id
            payload["previous_doctor_name"] = self.previous_practitioner_name
        return payload


@dataclass
class BatchItemResult:
    appointment_id: str
    success: bool
    message: str
    match_score: Optional[float] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.appointment_id,
            "success": self.success,
            "message": self.message,
            "match_score": self.match_score,
        }


@dataclass
class BatchSummary:
    details: List[BatchItemResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.details)

    @property
    def successful(self) -> int:
        return sum(1 for item in self.details if item.success)

    @property
    def failed(self) -> int:
        return sum(1 for item in self.details if not item.success)

    def to_dict(self) -> Dict[str, object]:
        return {
            "total": self.total,
            "successful": self.successful,
            "failed": self.failed,
            "details": [item.to_dict() for item in self.details],
        }


class AssignmentAgent:
    """Coordinates availability filtering, ranking and committing assignments."""

    def __init__(
        self,
        store: AssignmentStore,
        *,
        ranker: Optional[MatchRanker] = None,
        notifier: Optional[Notifier] = None,
        executor: Optional[Executor] = None,
        max_write_retries: int = MAX_WRITE_RETRIES,
        timestamp: Callable[[], str] = _utc_timestamp,
    ) -> None:
        self._store = store
        self._ranker = ranker or MatchRanker()
        self._notifier = notifier or LoggingNotifier()
        self._executor = executor
        self._max_write_retries = max(1, max_write_retries)
        self._timestamp = timestamp

    # -- loading and validation -------------------------------------------------

    def _load_appointment(self, appointment_id: str) -> Appointment:
        appointment = self._store.get_appointment(appointment_id)
        if appointment is None:
            raise AppointmentNotFoundError(f"Appointment '{appointment_id}' not found")
        return appointment

    @staticmethod
    def _require_assignable(appointment: Appointment) -> None:
        if appointment.status in (AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED):
            raise IneligiblePractitionerError(
                f"Appointment '{appointment.appointment_id}' is {appointment.status.value} "
                "and cannot be assigned"
            )
        _require_clock_time(appointment.time)

    def _eligible_practitioner(self, appointment: Appointment, practitioner_id: str) -> Practitioner:
        practitioner = self._store.get_practitioner(practitioner_id)
        if practitioner is None:
            raise PractitionerNotFoundError(f"Doctor '{practitioner_id}' not found")
        if not practitioner.is_approved:
            raise IneligiblePractitionerError(f"Doctor {practitioner.name} is not available for assignments")

        result = evaluate_practitioner(
            practitioner,
            self._store.get_schedule(practitioner_id),
            self._store.appointments_for_practitioner,
            appointment.appointment_date,
            appointment.time,
            appointment.visit_mode,
            exclude_appointment_id=appointment.appointment_id,
        )
        if not result.is_available:
            raise IneligiblePractitionerError(
                f"Doctor {practitioner.name} is not available at the requested time: {result.reason}"
            )
        return practitioner

    # -- commit ----------------------------------------------------------------

    def _commit(
        self,
        appointment: Appointment,
        practitioner: Practitioner,
        assignment_type: AssignmentType,
        *,
        extra: Optional[Mapping[str, Any]] = None,
        send_email: bool = False,
    ) -> Appointment:
        """Re-check conflicts and write the assignment under the practitioner's lock."""

        with self._store.practitioner_lock(practitioner.practitioner_id):
            booked = self._store.appointments_for_practitioner(
                practitioner.practitioner_id,
                appointment.appointment_date,
                exclude_id=appointment.appointment_id,
            )
            conflict = check_conflict(booked, appointment.time, appointment.visit_mode)
            if conflict.has_conflict:
                raise WriteConflictError(
                    f"Slot for {practitioner.name} was taken before commit: {conflict.reason}"
                )

            now = self._timestamp()
            changes: Dict[str, Any] = {
                "doctor_id": practitioner.practitioner_id,
                "doctor_name": practitioner.name,
                "specialization": practitioner.specialization.value,
                "status": AppointmentStatus.CONFIRMED,
                "assignment_type": assignment_type,
                "assigned_at": now,
                "updated_at": now,
                "assignment_warning": None,
            }
            if extra:
                changes.update(extra)
            updated = self._store.update_appointment(
                appointment.appointment_id,
                changes,
                expected_doctor_id=appointment.doctor_id,
            )

        logger.info(
            "Assigned appointment %s to %s (%s, %s)",
            updated.appointment_id,
            practitioner.name,
            practitioner.practitioner_id,
            assignment_type.value,
        )
        dispatch_assignment_notifications(
            self._notifier,
            updated,
            practitioner,
            send_email=send_email,
            executor=self._executor,
        )
        return updated

    # -- operations --------------------------------------------------------------

    def auto_assign(self, appointment_id: str) -> AssignmentOutcome:
        """Pick and commit the best free practitioner for a pending appointment."""

        for attempt in range(1, self._max_write_retries + 1):
            appointment = self._load_appointment(appointment_id)
            if appointment.is_assigned:
                return AssignmentOutcome(
                    appointment_id=appointment.appointment_id,
                    practitioner_id=appointment.doctor_id or "",
                    practitioner_name=appointment.doctor_name or "",
                    assignment_type=appointment.assignment_type,
                    message="Doctor already assigned",
                    already_assigned=True,
                )
            self._require_assignable(appointment)

            try:
                return self._auto_assign_once(appointment)
            except WriteConflictError as exc:
                logger.warning(
                    "Write conflict assigning appointment %s (attempt %d/%d): %s",
                    appointment_id,
                    attempt,
                    self._max_write_retries,
                    exc,
                )
        raise SlotTakenError(f"Requested slot was just taken for appointment '{appointment_id}'")

    def _auto_assign_once(self, appointment: Appointment) -> AssignmentOutcome:
        practitioners = self._store.list_approved_practitioners()
        if not practitioners:
            raise NoCandidatesError("No doctors available: there are no approved doctors")

        buckets = filter_available(
            practitioners,
            self._store.list_schedules(),
            self._store.appointments_for_practitioner,
            appointment.appointment_date,
            appointment.time,
            appointment.visit_mode,
            exclude_appointment_id=appointment.appointment_id,
        )
        if buckets.is_empty:
            raise NoCandidatesError("No doctors available at the requested time")

        if not buckets.available:
            fallback = buckets.no_schedule[0]
            logger.warning(
                "No scheduled doctor free for appointment %s; falling back to %s without a schedule",
                appointment.appointment_id,
                fallback.name,
            )
            self._commit(
                appointment,
                fallback,
                AssignmentType.AUTO,
                extra={"assignment_warning": NO_SCHEDULE_WARNING},
            )
            return AssignmentOutcome(
                appointment_id=appointment.appointment_id,
                practitioner_id=fallback.practitioner_id,
                practitioner_name=fallback.name,
                assignment_type=AssignmentType.AUTO,
                message="Doctor assigned (no schedule set, please verify availability)",
                warning=NO_SCHEDULE_WARNING,
            )

        ranked = self._ranker.rank(buckets.available, appointment.symptoms, appointment.patient_location)
        best = ranked[0]
        self._commit(appointment, best.practitioner, AssignmentType.AUTO)
        return AssignmentOutcome(
            appointment_id=appointment.appointment_id,
            practitioner_id=best.practitioner.practitioner_id,
            practitioner_name=best.practitioner.name,
            assignment_type=AssignmentType.AUTO,
            message="Doctor assigned successfully using intelligent matching",
            match=best,
        )

    def manual_assign(self, appointment_id: str, practitioner_id: str, actor_id: str) -> AssignmentOutcome:
        """Assign a chosen practitioner after validating approval, conflicts and schedule."""

        return self._assign_manually(appointment_id, practitioner_id, actor_id)

    def reassign(
        self,
        appointment_id: str,
        new_practitioner_id: str,
        actor_id: str,
        reason: Optional[str] = None,
    ) -> AssignmentOutcome:
        """Move an appointment to another practitioner, keeping the previous one for audit."""

        return self._assign_manually(
            appointment_id,
            new_practitioner_id,
            actor_id,
            reassignment=True,
            reason=reason,
        )

    def _assign_manually(
        self,
        appointment_id: str,
        practitioner_id: str,
        actor_id: str,
        *,
        reassignment: bool = False,
        reason: Optional[str] = None,
    ) -> AssignmentOutcome:
        actor_id = _validate_identifier(actor_id, "actor_id")
        practitioner_id = _validate_identifier(practitioner_id, "practitioner_id")

        for attempt in range(1, self._max_write_retries + 1):
            appointment = self._load_appointment(appointment_id)
            self._require_assignable(appointment)
            if appointment.doctor_id and not reassignment:
                raise IneligiblePractitionerError(
                    f"Appointment '{appointment.appointment_id}' is already assigned to "
                    f"{appointment.doctor_name or appointment.doctor_id}; use reassign"
                )
            practitioner = self._eligible_practitioner(appointment, practitioner_id)

            extra: Dict[str, Any] = {"assigned_by": actor_id}
            if reassignment:
                extra.update(
                    {
                        "previous_doctor_id": appointment.doctor_id,
                        "previous_doctor_name": appointment.doctor_name,
                        "reassignment_reason": reason,
                        "reassigned_at": self._timestamp(),
                        "reassigned_by": actor_id,
                    }
                )

            try:
                self._commit(
                    appointment,
                    practitioner,
                    AssignmentType.MANUAL,
                    extra=extra,
                    send_email=True,
                )
            except WriteConflictError as exc:
                logger.warning(
                    "Write conflict assigning %s to appointment %s (attempt %d/%d): %s",
                    practitioner_id,
                    appointment_id,
                    attempt,
                    self._max_write_retries,
                    exc,
                )
                continue

            return AssignmentOutcome(
                appointment_id=appointment.appointment_id,
                practitioner_id=practitioner.practitioner_id,
                practitioner_name=practitioner.name,
                assignment_type=AssignmentType.MANUAL,
                message="Doctor reassigned successfully" if reassignment else "Doctor assigned manually",
                previous_practitioner_id=appointment.doctor_id if reassignment else None,
                previous_practitioner_name=appointment.doctor_name if reassignment else None,
            )
        raise SlotTakenError(f"Requested slot was just taken for appointment '{appointment_id}'")

    def batch_assign(self) -> BatchSummary:
        """Auto-assign every pending, unassigned appointment one after another."""

        summary = BatchSummary()
        for appointment in self._store.pending_unassigned():
            try:
                outcome = self.auto_assign(appointment.appointment_id)
            except AssignmentError as exc:
                logger.warning("Could not assign appointment %s: %s", appointment.appointment_id, exc)
                summary.details.append(BatchItemResult(appointment.appointment_id, False, exc.reason))
                continue
            except Exception as exc:  # noqa: BLE001
                logger.exception("Unexpected failure assigning appointment %s", appointment.appointment_id)
                summary.details.append(BatchItemResult(appointment.appointment_id, False, str(exc)))
                continue

            summary.details.append(
                BatchItemResult(
                    appointment.appointment_id,
                    True,
                    f"Assigned to {outcome.practitioner_name}",
                    match_score=outcome.match.score if outcome.match else None,
                )
            )

        logger.info(
            "Batch assignment finished: %d total, %d successful, %d failed",
            summary.total,
            summary.successful,
            summary.failed,
        )
        return summary

    # -- read-only views ----------------------------------------------------------

    def available_practitioners(
        self,
        on_date: date,
        clock_time: str,
        visit_mode: VisitMode | str,
        *,
        symptoms: Optional[str] = None,
        patient_location: Optional[LocationInfo] = None,
    ) -> List[MatchResult]:
        """Practitioners with a schedule who are free at the slot, ranked when possible."""

        _require_clock_time(clock_time)
        visit_mode = VisitMode.parse(visit_mode)
        practitioners = self._store.list_approved_practitioners()
        if not practitioners:
            raise NoCandidatesError("No doctors available: there are no approved doctors")

        buckets = filter_available(
            practitioners,
            self._store.list_schedules(),
            self._store.appointments_for_practitioner,
            on_date,
            clock_time,
            visit_mode,
        )
        if not buckets.available:
            raise NoCandidatesError("No doctors available at the requested time")

        if symptoms and patient_location is not None and not patient_location.is_empty():
            return self._ranker.rank(buckets.available, symptoms, patient_location)
        return [neutral_match(practitioner) for practitioner in buckets.available]

    def availability_report(self, on_date: date, clock_time: str, visit_mode: VisitMode | str) -> Dict[str, object]:
        """Per-practitioner availability for the slot, available practitioners first."""

        _require_clock_time(clock_time)
        visit_mode = VisitMode.parse(visit_mode)
        schedules = self._store.list_schedules()
        results = [
            evaluate_practitioner(
                practitioner,
                schedules.get(practitioner.practitioner_id),
                self._store.appointments_for_practitioner,
                on_date,
                clock_time,
                visit_mode,
            )
            for practitioner in self._store.list_approved_practitioners()
        ]
        results.sort(key=lambda result: not result.is_available)
        available = sum(1 for result in results if result.is_available)
        return {
            "date": on_date.isoformat(),
            "time": clock_time,
            "visit_mode": visit_mode.value,
            "total": len(results),
            "available": available,
            "unavailable": len(results) - available,
            "practitioners": [result.to_dict() for result in results],
        }

    def validate_eligibility(self, appointment_id: str, practitioner_id: str) -> Dict[str, object]:
        """Dry-run of a manual assignment: ``{eligible, reasons, warnings}``."""

        reasons: List[str] = []
        warnings: List[str] = []
        try:
            appointment = self._load_appointment(appointment_id)
            self._require_assignable(appointment)
            practitioner = self._eligible_practitioner(appointment, practitioner_id)
        except AssignmentError as exc:
            reasons.append(exc.reason)
        else:
            if appointment.is_assigned:
                warnings.append(f"Appointment is already assigned to {appointment.doctor_name}")
            if self._store.get_schedule(practitioner.practitioner_id) is None:
                warnings.append(f"Doctor {practitioner.name} has no schedule set")
        return {"eligible": not reasons, "reasons": reasons, "warnings": warnings}

    def assignment_statistics(self) -> Dict[str, int]:
        practitioners = self._store.list_practitioners()
        appointments = self._store.list_appointments()
        return {
            "total_doctors": len(practitioners),
            "active_doctors": sum(1 for practitioner in practitioners if practitioner.is_approved),
            "total_appointments": len(appointments),
            "assigned_appointments": sum(1 for appointment in appointments if appointment.is_assigned),
            "pending_unassigned": len(self._store.pending_unassigned()),
            "auto_assignments": sum(
                1 for appointment in appointments if appointment.assignment_type is AssignmentType.AUTO
            ),
            "manual_assignments": sum(
                1 for appointment in appointments if appointment.assignment_type is AssignmentType.MANUAL
            ),
            "reassignments": sum(1 for appointment in appointments if appointment.reassigned_at),
        }


def _validate_identifier(value: str, label: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{label} must be a non-empty string")
    return value.strip()


def _require_clock_time(clock_time: str) -> int:
    try:
        return parse_clock_time(clock_time)
    except ValueError as exc:
        raise IneligiblePractitionerError(f"Invalid appointment time: {exc}") from exc


__all__ = [
    "AppointmentNotFoundError",
    "AssignmentAgent",
    "AssignmentError",
    "AssignmentOutcome",
    "AssignmentStore",
    "BatchItemResult",
    "BatchSummary",
    "IneligiblePractitionerError",
    "MAX_WRITE_RETRIES",
    "NO_SCHEDULE_WARNING",
    "NoCandidatesError",
    "PractitionerNotFoundError",
    "SlotTakenError",
]

"""In-memory store for practitioners, schedules and appointments.

All reads hand out immutable records; writes go through
:meth:`InMemoryStore.update_appointment`, which is a compare-and-set on the
appointment's assigned practitioner.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import replace
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .records import (
    ASSIGNMENT_FIELDS,
    Appointment,
    AppointmentStatus,
    Practitioner,
    WorkingSchedule,
)

logger = logging.getLogger(__name__)

_UNSET = object()


class StoreError(RuntimeError):
    """Base exception for store failures."""


class WriteConflictError(StoreError):
    """Raised when a conditional write loses a race with another writer."""


class InMemoryStore:
    """Thread-safe record store used by the assignment engine."""

    def __init__(
        self,
        practitioners: Iterable[Practitioner] = (),
        schedules: Iterable[WorkingSchedule] = (),
        appointments: Iterable[Appointment] = (),
    ) -> None:
        self._lock = threading.RLock()
        self._practitioners: Dict[str, Practitioner] = {}
        self._schedules: Dict[str, WorkingSchedule] = {}
        self._appointments: Dict[str, Appointment] = {}
        self._practitioner_locks: Dict[str, threading.Lock] = {}

        for practitioner in practitioners:
            self.add_practitioner(practitioner)
        for schedule in schedules:
            self.add_schedule(schedule)
        for appointment in appointments:
            self.add_appointment(appointment)

    def add_practitioner(self, practitioner: Practitioner) -> None:
        with self._lock:
            self._practitioners[practitioner.practitioner_id] = practitioner

    def add_schedule(self, schedule: WorkingSchedule) -> None:
        with self._lock:
            self._schedules[schedule.practitioner_id] = schedule

    def add_appointment(self, appointment: Appointment) -> None:
        with self._lock:
            self._appointments[appointment.appointment_id] = appointment

    def get_practitioner(self, practitioner_id: str) -> Optional[Practitioner]:
        with self._lock:
            return self._practitioners.get(practitioner_id)

    def list_practitioners(self) -> List[Practitioner]:
        with self._lock:
            return list(self._practitioners.values())

    def list_approved_practitioners(self) -> List[Practitioner]:
        return [practitioner for practitioner in self.list_practitioners() if practitioner.is_approved]

    def get_schedule(self, practitioner_id: str) -> Optional[WorkingSchedule]:
        with self._lock:
            return self._schedules.get(practitioner_id)

    def list_schedules(self) -> Dict[str, WorkingSchedule]:
        with self._lock:
            return dict(self._schedules)

    def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        with self._lock:
            return self._appointments.get(appointment_id)

    def list_appointments(self) -> List[Appointment]:
        with self._lock:
            return list(self._appointments.values())

    def appointments_for_practitioner(
        self,
        practitioner_id: str,
        on_date: date,
        *,
        exclude_id: Optional[str] = None,
    ) -> List[Appointment]:
        """Active appointments of one practitioner on one calendar date."""

        with self._lock:
            return [
                appointment
                for appointment in self._appointments.values()
                if appointment.doctor_id == practitioner_id
                and appointment.appointment_date == on_date
                and appointment.is_active
                and appointment.appointment_id != exclude_id
            ]

    def pending_unassigned(self) -> List[Appointment]:
        with self._lock:
            return [
                appointment
                for appointment in self._appointments.values()
                if appointment.status is AppointmentStatus.PENDING and not appointment.doctor_id
            ]

    def practitioner_lock(self, practitioner_id: str) -> threading.Lock:
        """Return the lock that serializes assignment commits for a practitioner."""

        with self._lock:
            lock = self._practitioner_locks.get(practitioner_id)
            if lock is None:
                lock = threading.Lock()
                self._practitioner_locks[practitioner_id] = lock
            return lock

    def update_appointment(
        self,
        appointment_id: str,
        changes: Mapping[str, Any],
        *,
        expected_doctor_id: Any = _UNSET,
    ) -> Appointment:
        """Apply ``changes`` atomically.

        When ``expected_doctor_id`` is given the write only happens if the
        stored appointment still carries that practitioner (``None`` meaning
        unassigned); otherwise :class:`WriteConflictError` is raised.
        """

        unknown = set(changes) - ASSIGNMENT_FIELDS
        if unknown:
            raise ValueError(f"Fields {sorted(unknown)} cannot be written by the assignment engine")

        with self._lock:
            current = self._appointments.get(appointment_id)
            if current is None:
                raise KeyError(appointment_id)
            if expected_doctor_id is not _UNSET and current.doctor_id != expected_doctor_id:
                logger.warning(
                    "Conditional write on appointment %s rejected: expected practitioner %s, found %s",
                    appointment_id,
                    expected_doctor_id,
                    current.doctor_id,
                )
                raise WriteConflictError(
                    f"Appointment {appointment_id} was modified by another writer"
                )
            updated = replace(current, **changes)
            self._appointments[appointment_id] = updated
            return updated


__all__ = ["InMemoryStore", "StoreError", "WriteConflictError"]

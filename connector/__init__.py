"""Connector interfaces for the practitioner assignment engine."""

from __future__ import annotations

from .records import (
    Appointment,
    AppointmentStatus,
    AssignmentType,
    LocationInfo,
    Practitioner,
    Specialization,
    VisitMode,
    WorkingSchedule,
)
from .store import InMemoryStore, StoreError, WriteConflictError

__all__ = [
    "Appointment",
    "AppointmentStatus",
    "AssignmentType",
    "InMemoryStore",
    "LocationInfo",
    "Practitioner",
    "Specialization",
    "StoreError",
    "VisitMode",
    "WorkingSchedule",
    "WriteConflictError",
]

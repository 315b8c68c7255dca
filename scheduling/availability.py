"""Availability filtering against declared schedules and booked appointments."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from connector.records import Appointment, Practitioner, VisitMode, WorkingSchedule

from .conflicts import NO_CONFLICT, ConflictResult, check_conflict
from .time_math import to_minutes, weekday_name

logger = logging.getLogger(__name__)

AppointmentLookup = Callable[[str, date], Sequence[Appointment]]


@dataclass(frozen=True)
class AvailabilityResult:
    practitioner: Practitioner
    is_available: bool
    has_schedule: bool
    reason: Optional[str] = None
    conflict: ConflictResult = NO_CONFLICT

    def to_dict(self) -> Dict[str, object]:
        practitioner = self.practitioner
        return {
            "practitioner_id": practitioner.practitioner_id,
            "practitioner_name": practitioner.name,
            "specialization": practitioner.specialization.value,
            "locality": practitioner.location.area or practitioner.location.city or "",
            "is_available": self.is_available,
            "has_schedule": self.has_schedule,
            "reason": self.reason,
            "conflict": self.conflict.to_dict(),
        }


@dataclass
class AvailabilityBuckets:
    available: List[Practitioner] = field(default_factory=list)
    no_schedule: List[Practitioner] = field(default_factory=list)
    unavailable: List[AvailabilityResult] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.available and not self.no_schedule


def check_schedule(schedule: WorkingSchedule, on_date: date, clock_time: str) -> Optional[str]:
    """Return why ``clock_time`` on ``on_date`` falls outside ``schedule``, or ``None``."""

    day = weekday_name(on_date)
    if not schedule.works_on(day):
        return f"Not scheduled to work on {day.capitalize()}"

    minutes = to_minutes(clock_time)
    if minutes < schedule.start_minutes or minutes > schedule.end_minutes:
        return f"Outside working hours {schedule.start_time}-{schedule.end_time}"

    window = schedule.break_window
    if window and window[0] <= minutes <= window[1]:
        return f"During break {schedule.break_start}-{schedule.break_end}"
    return None


def is_within_schedule(schedule: WorkingSchedule, on_date: date, clock_time: str) -> bool:
    return check_schedule(schedule, on_date, clock_time) is None


def evaluate_practitioner(
    practitioner: Practitioner,
    schedule: Optional[WorkingSchedule],
    appointments_for: AppointmentLookup,
    on_date: date,
    clock_time: str,
    visit_mode: VisitMode,
    *,
    exclude_appointment_id: Optional[str] = None,
) -> AvailabilityResult:
    """Evaluate one practitioner for a slot: declared schedule first, then conflicts."""

    if schedule is not None:
        reason = check_schedule(schedule, on_date, clock_time)
        if reason:
            return AvailabilityResult(practitioner, is_available=False, has_schedule=True, reason=reason)

    booked = [
        appointment
        for appointment in appointments_for(practitioner.practitioner_id, on_date)
        if appointment.appointment_id != exclude_appointment_id
    ]
    conflict = check_conflict(
        booked,
        clock_time,
        visit_mode,
        practitioner_id=practitioner.practitioner_id,
        on_date=on_date,
    )
    if conflict.has_conflict:
        return AvailabilityResult(
            practitioner,
            is_available=False,
            has_schedule=schedule is not None,
            reason=conflict.reason,
            conflict=conflict,
        )
    return AvailabilityResult(practitioner, is_available=True, has_schedule=schedule is not None)


def filter_available(
    practitioners: Sequence[Practitioner],
    schedules: Mapping[str, WorkingSchedule],
    appointments_for: AppointmentLookup,
    on_date: date,
    clock_time: str,
    visit_mode: VisitMode,
    *,
    exclude_appointment_id: Optional[str] = None,
) -> AvailabilityBuckets:
    """Split ``practitioners`` into available, no-schedule and unavailable buckets.

    Practitioners without a declared schedule are kept apart as a last-resort
    fallback, but only when they have no conflicting appointment.
    """

    buckets = AvailabilityBuckets()
    for practitioner in practitioners:
        schedule = schedules.get(practitioner.practitioner_id)
        result = evaluate_practitioner(
            practitioner,
            schedule,
            appointments_for,
            on_date,
            clock_time,
            visit_mode,
            exclude_appointment_id=exclude_appointment_id,
        )
        if not result.is_available:
            logger.debug("Practitioner %s unavailable: %s", practitioner.name, result.reason)
            buckets.unavailable.append(result)
        elif result.has_schedule:
            buckets.available.append(practitioner)
        else:
            logger.debug("Practitioner %s has no schedule; keeping as fallback", practitioner.name)
            buckets.no_schedule.append(practitioner)

    logger.info(
        "Found %d available practitioners and %d without a schedule for %s %s",
        len(buckets.available),
        len(buckets.no_schedule),
        on_date.isoformat(),
        clock_time,
    )
    return buckets


__all__ = [
    "AvailabilityBuckets",
    "AvailabilityResult",
    "check_schedule",
    "evaluate_practitioner",
    "filter_available",
    "is_within_schedule",
]

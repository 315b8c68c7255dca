"""Schedule conflict detection between an existing and a requested appointment.

Rules are evaluated per existing appointment in strict priority order:

1. Exact-time collision: the same clock time always conflicts, whatever the
   visit modes.
2. Buffer collision: a visit mode with a non-zero buffer blocks the window
   ``[time - block_before, time + block_after]`` (inclusive, clamped to the
   day). The requested slot conflicts when either appointment's time falls
   inside the other's blocked window. Two zero-buffer modes never reach this
   rule, so virtual and clinic visits may be booked back-to-back.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, Optional

from connector.records import Appointment, VisitMode

from .time_math import clamp_to_day, minutes_to_clock, to_minutes

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConflictRule:
    visit_mode: VisitMode
    block_before: int
    block_after: int

    @property
    def has_buffer(self) -> bool:
        return self.block_before > 0 or self.block_after > 0


CONFLICT_RULES: Dict[VisitMode, ConflictRule] = {
    VisitMode.HOME: ConflictRule(VisitMode.HOME, block_before=120, block_after=120),
    VisitMode.VIRTUAL: ConflictRule(VisitMode.VIRTUAL, block_before=0, block_after=0),
    VisitMode.CLINIC: ConflictRule(VisitMode.CLINIC, block_before=0, block_after=0),
}


@dataclass(frozen=True)
class ConflictResult:
    has_conflict: bool
    reason: Optional[str] = None
    appointment_id: Optional[str] = None
    appointment_time: Optional[str] = None
    appointment_mode: Optional[VisitMode] = None

    def to_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {"has_conflict": self.has_conflict}
        if self.has_conflict:
            payload.update(
                {
                    "reason": self.reason,
                    "conflicting_appointment_id": self.appointment_id,
                    "conflicting_appointment_time": self.appointment_time,
                    "conflicting_appointment_mode": self.appointment_mode.value
                    if self.appointment_mode
                    else None,
                }
            )
        return payload


NO_CONFLICT = ConflictResult(has_conflict=False)


def get_conflict_rule(visit_mode: VisitMode) -> ConflictRule:
    try:
        return CONFLICT_RULES[VisitMode.parse(visit_mode)]
    except KeyError as exc:
        raise ValueError(f"No conflict rule found for visit mode: {visit_mode}") from exc


def blocked_window(clock_time: str, visit_mode: VisitMode) -> tuple[int, int]:
    """Minutes ``(start, end)`` reserved around an appointment of ``visit_mode``."""

    rule = get_conflict_rule(visit_mode)
    minutes = to_minutes(clock_time)
    return clamp_to_day(minutes - rule.block_before), clamp_to_day(minutes + rule.block_after)


def describe_blocking_period(visit_mode: VisitMode, clock_time: str) -> Dict[str, object]:
    rule = get_conflict_rule(visit_mode)
    start, end = blocked_window(clock_time, rule.visit_mode)
    return {
        "visit_mode": rule.visit_mode.value,
        "time": clock_time,
        "block_before": rule.block_before,
        "block_after": rule.block_after,
        "start": minutes_to_clock(start),
        "end": minutes_to_clock(end),
        "duration_minutes": end - start,
    }


def compare_appointment(
    existing: Appointment, requested_time: str, requested_mode: VisitMode
) -> ConflictResult:
    """Check a single existing appointment against the requested slot."""

    requested_minutes = to_minutes(requested_time)
    existing_minutes = to_minutes(existing.time)

    if existing_minutes == requested_minutes:
        return ConflictResult(
            has_conflict=True,
            reason=(
                f"Doctor already has an appointment at exactly {existing.time} "
                f"({existing.status.value})"
            ),
            appointment_id=existing.appointment_id,
            appointment_time=existing.time,
            appointment_mode=existing.visit_mode,
        )

    existing_rule = get_conflict_rule(existing.visit_mode)
    requested_rule = get_conflict_rule(requested_mode)
    if not existing_rule.has_buffer and not requested_rule.has_buffer:
        return NO_CONFLICT

    if existing_rule.has_buffer:
        start, end = blocked_window(existing.time, existing.visit_mode)
        if start <= requested_minutes <= end:
            return ConflictResult(
                has_conflict=True,
                reason=(
                    f"Doctor has a {existing.visit_mode.value} visit at {existing.time}, "
                    f"blocking {minutes_to_clock(start)}-{minutes_to_clock(end)}"
                ),
                appointment_id=existing.appointment_id,
                appointment_time=existing.time,
                appointment_mode=existing.visit_mode,
            )

    if requested_rule.has_buffer:
        start, end = blocked_window(requested_time, requested_rule.visit_mode)
        if start <= existing_minutes <= end:
            return ConflictResult(
                has_conflict=True,
                reason=(
                    f"Requested {requested_rule.visit_mode.value} visit at {requested_time} would block "
                    f"{minutes_to_clock(start)}-{minutes_to_clock(end)}, conflicting with existing "
                    f"{existing.visit_mode.value} at {existing.time}"
                ),
                appointment_id=existing.appointment_id,
                appointment_time=existing.time,
                appointment_mode=existing.visit_mode,
            )

    return NO_CONFLICT


def check_conflict(
    existing_appointments: Iterable[Appointment],
    requested_time: str,
    requested_mode: VisitMode,
    *,
    practitioner_id: Optional[str] = None,
    on_date: Optional[date] = None,
) -> ConflictResult:
    """Return the first conflict among ``existing_appointments``.

    Cancelled appointments are ignored, as are appointments for another
    practitioner or date when ``practitioner_id``/``on_date`` are supplied.
    """

    requested_mode = VisitMode.parse(requested_mode)
    for existing in existing_appointments:
        if not existing.is_active:
            continue
        if practitioner_id is not None and existing.doctor_id != practitioner_id:
            continue
        if on_date is not None and existing.appointment_date != on_date:
            continue

        result = compare_appointment(existing, requested_time, requested_mode)
        if result.has_conflict:
            logger.debug(
                "Conflict for practitioner %s at %s: %s",
                existing.doctor_id,
                requested_time,
                result.reason,
            )
            return result
    return NO_CONFLICT


__all__ = [
    "CONFLICT_RULES",
    "ConflictResult",
    "ConflictRule",
    "NO_CONFLICT",
    "blocked_window",
    "check_conflict",
    "compare_appointment",
    "describe_blocking_period",
    "get_conflict_rule",
]

"""Record shapes shared by the assignment engine.

Practitioner and WorkingSchedule rows are maintained by the administrative
workflow and only read here. Appointment rows are created by the booking flow
in ``pending`` state; the engine writes the assignment fields and the
``confirmed`` transition.
"""
from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Sequence

from scheduling.time_math import WEEKDAY_NAMES, parse_clock_time


class VisitMode(str, Enum):
    VIRTUAL = "virtual"
    HOME = "home"
    CLINIC = "clinic"

    @classmethod
    def parse(cls, value: Any) -> "VisitMode":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            allowed = ", ".join(mode.value for mode in cls)
            raise ValueError(f"Visit mode must be one of: {allowed}") from exc


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class AssignmentType(str, Enum):
    AUTO = "auto"
    MANUAL = "manual"


class Specialization(str, Enum):
    ORTHODONTIST = "Orthodontist"
    PEDIATRIC_DENTIST = "Pediatric Dentist"
    ORAL_SURGEON = "Oral Surgeon"
    PERIODONTIST = "Periodontist"
    ENDODONTIST = "Endodontist"
    PROSTHODONTIST = "Prosthodontist"
    COSMETIC_DENTIST = "Cosmetic Dentist"
    GENERAL = "General"

    @classmethod
    def from_label(cls, label: Optional[str]) -> "Specialization":
        """Map a free-text label onto the enumeration, defaulting to General."""

        if isinstance(label, cls):
            return label
        normalized = str(label or "").strip().lower()
        for member in cls:
            if member.value.lower() == normalized:
                return member
        return cls.GENERAL


APPROVED_STATUS = "approved"
PRACTITIONER_ROLE = "practitioner"
# Accepted role names for a practitioner account.
PRACTITIONER_ROLE_ALIASES = {PRACTITIONER_ROLE, "doctor"}


def _extract_first(
    row: Mapping[str, Any],
    keys: Sequence[str],
    *,
    allow_missing: bool = False,
) -> Any:
    for key in keys:
        if key in row and row[key] is not None:
            return row[key]
    if allow_missing:
        return None
    raise KeyError(f"Expected one of {keys!r} in row but none were present")


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _coerce_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError as exc:
            raise ValueError(f"Appointment dates must be ISO formatted, got {value!r}") from exc
    raise ValueError("Unsupported appointment date format")


@dataclass(frozen=True)
class LocationInfo:
    """Free-text location descriptor; any subset of the fields may be set."""

    area: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None
    full_address: Optional[str] = None

    def address_string(self) -> str:
        """Prefer the full address, otherwise join area, city, state and pincode."""

        if self.full_address:
            return self.full_address
        parts = [part for part in (self.area, self.city, self.state, self.pincode) if part]
        return ", ".join(parts)

    def is_empty(self) -> bool:
        return not self.address_string()

    @classmethod
    def from_mapping(
        cls, payload: Optional[Mapping[str, Any]], *, area: Optional[str] = None
    ) -> "LocationInfo":
        payload = payload or {}
        return cls(
            area=_optional_text(area) or _optional_text(payload.get("area")),
            city=_optional_text(payload.get("city")),
            state=_optional_text(payload.get("state")),
            pincode=_optional_text(payload.get("pincode") or payload.get("postal_code")),
            full_address=_optional_text(payload.get("fullAddress") or payload.get("full_address")),
        )

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "area": self.area,
            "city": self.city,
            "state": self.state,
            "pincode": self.pincode,
            "fullAddress": self.full_address,
        }


@dataclass(frozen=True)
class Practitioner:
    practitioner_id: str
    name: str
    specialization: Specialization = Specialization.GENERAL
    status: str = "pending"
    location: LocationInfo = field(default_factory=LocationInfo)
    role: str = PRACTITIONER_ROLE
    email: Optional[str] = None

    @property
    def is_approved(self) -> bool:
        return self.role in PRACTITIONER_ROLE_ALIASES and self.status == APPROVED_STATUS

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Practitioner":
        if not row:
            raise ValueError("Practitioner row payload is empty")

        practitioner_id = _extract_first(row, ("id", "practitioner_id", "doctorId", "uid"))
        name = _extract_first(row, ("fullName", "name", "display_name"), allow_missing=True)
        address = row.get("address") if isinstance(row.get("address"), Mapping) else {}

        return cls(
            practitioner_id=str(practitioner_id),
            name=str(name) if name else "Dr. Unknown",
            specialization=Specialization.from_label(row.get("specialization")),
            status=str(row.get("status") or "pending").strip().lower(),
            location=LocationInfo.from_mapping(address, area=row.get("area")),
            role=str(row.get("role") or PRACTITIONER_ROLE).strip().lower(),
            email=_optional_text(row.get("email")),
        )

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.practitioner_id,
            "fullName": self.name,
            "specialization": self.specialization.value,
            "status": self.status,
            "role": self.role,
            "email": self.email,
            "area": self.location.area,
            "address": self.location.to_dict(),
        }


@dataclass(frozen=True)
class WorkingSchedule:
    """Declared weekly hours of one practitioner.

    ``slot_duration`` is informational; conflict detection never reads it.
    """

    practitioner_id: str
    days: frozenset
    start_time: str
    end_time: str
    break_start: Optional[str] = None
    break_end: Optional[str] = None
    slot_duration: int = 30

    def __post_init__(self) -> None:
        unknown = set(self.days) - set(WEEKDAY_NAMES)
        if unknown:
            raise ValueError(f"Unknown weekday names in schedule: {sorted(unknown)}")

        start = parse_clock_time(self.start_time)
        end = parse_clock_time(self.end_time)
        if start >= end:
            raise ValueError(
                f"Schedule for {self.practitioner_id} must start before it ends "
                f"({self.start_time} >= {self.end_time})"
            )

        if (self.break_start is None) != (self.break_end is None):
            raise ValueError("Break window needs both a start and an end")
        if self.break_start is not None:
            break_start = parse_clock_time(self.break_start)
            break_end = parse_clock_time(self.break_end)
            if not start <= break_start < break_end <= end:
                raise ValueError(
                    f"Break {self.break_start}-{self.break_end} must sit inside "
                    f"{self.start_time}-{self.end_time}"
                )

    @property
    def start_minutes(self) -> int:
        return parse_clock_time(self.start_time)

    @property
    def end_minutes(self) -> int:
        return parse_clock_time(self.end_time)

    @property
    def break_window(self) -> Optional[tuple[int, int]]:
        if self.break_start is None or self.break_end is None:
            return None
        return parse_clock_time(self.break_start), parse_clock_time(self.break_end)

    def works_on(self, weekday: str) -> bool:
        return weekday in self.days

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "WorkingSchedule":
        if not row:
            raise ValueError("Schedule row payload is empty")

        practitioner_id = _extract_first(row, ("doctorId", "practitioner_id", "practitionerId"))
        raw_days = row.get("days") or {}
        if isinstance(raw_days, Mapping):
            days = frozenset(str(day).lower() for day, enabled in raw_days.items() if enabled)
        else:
            days = frozenset(str(day).lower() for day in raw_days)

        return cls(
            practitioner_id=str(practitioner_id),
            days=days,
            start_time=str(_extract_first(row, ("startTime", "start_time"))),
            end_time=str(_extract_first(row, ("endTime", "end_time"))),
            break_start=_optional_text(row.get("breakStartTime") or row.get("break_start")),
            break_end=_optional_text(row.get("breakEndTime") or row.get("break_end")),
            slot_duration=int(row.get("slotDuration") or row.get("slot_duration") or 30),
        )

    def to_row(self) -> Dict[str, Any]:
        return {
            "doctorId": self.practitioner_id,
            "days": {day: day in self.days for day in WEEKDAY_NAMES},
            "startTime": self.start_time,
            "endTime": self.end_time,
            "breakStartTime": self.break_start,
            "breakEndTime": self.break_end,
            "slotDuration": self.slot_duration,
        }


# Attribute name -> stored key for the assignment-related fields.
_ASSIGNMENT_FIELD_KEYS = {
    "doctor_id": "doctorId",
    "doctor_name": "doctorName",
    "specialization": "specialization",
    "assignment_type": "assignmentType",
    "assigned_by": "assignedBy",
    "assigned_at": "assignedAt",
    "assignment_warning": "assignmentWarning",
    "previous_doctor_id": "previousDoctorId",
    "previous_doctor_name": "previousDoctorName",
    "reassignment_reason": "reassignmentReason",
    "reassigned_at": "reassignedAt",
    "reassigned_by": "reassignedBy",
    "updated_at": "updatedAt",
}


@dataclass(frozen=True)
class Appointment:
    appointment_id: str
    patient_id: str
    patient_name: str
    appointment_date: date
    time: str
    visit_mode: VisitMode
    symptoms: str = ""
    status: AppointmentStatus = AppointmentStatus.PENDING
    patient_location: LocationInfo = field(default_factory=LocationInfo)
    patient_email: Optional[str] = None
    doctor_id: Optional[str] = None
    doctor_name: Optional[str] = None
    specialization: Optional[str] = None
    assignment_type: Optional[AssignmentType] = None
    assigned_by: Optional[str] = None
    assigned_at: Optional[str] = None
    assignment_warning: Optional[str] = None
    previous_doctor_id: Optional[str] = None
    previous_doctor_name: Optional[str] = None
    reassignment_reason: Optional[str] = None
    reassigned_at: Optional[str] = None
    reassigned_by: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def is_assigned(self) -> bool:
        return bool(self.doctor_id and self.doctor_name)

    @property
    def is_active(self) -> bool:
        return self.status is not AppointmentStatus.CANCELLED

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Appointment":
        if not row:
            raise ValueError("Appointment row payload is empty")

        appointment_id = _extract_first(row, ("id", "appointment_id", "appointmentId"))
        address = row.get("userAddress") if isinstance(row.get("userAddress"), Mapping) else {}
        assignment_type = row.get("assignmentType")
        values: Dict[str, Any] = {
            attribute: row.get(key) for attribute, key in _ASSIGNMENT_FIELD_KEYS.items()
        }
        values["assignment_type"] = AssignmentType(assignment_type) if assignment_type else None

        return cls(
            appointment_id=str(appointment_id),
            patient_id=str(_extract_first(row, ("userId", "patient_id", "patientId"))),
            patient_name=str(row.get("userName") or row.get("patient_name") or ""),
            appointment_date=_coerce_date(_extract_first(row, ("date", "appointment_date"))),
            time=str(_extract_first(row, ("time", "appointment_time"))),
            visit_mode=VisitMode.parse(row.get("consultationType") or row.get("visit_mode") or "clinic"),
            symptoms=str(row.get("symptoms") or ""),
            status=AppointmentStatus(str(row.get("status") or "pending").lower()),
            patient_location=LocationInfo.from_mapping(address, area=row.get("userArea")),
            patient_email=_optional_text(row.get("userEmail")),
            **values,
        )

    def to_row(self) -> Dict[str, Any]:
        row: Dict[str, Any] = {
            "id": self.appointment_id,
            "userId": self.patient_id,
            "userName": self.patient_name,
            "userEmail": self.patient_email,
            "date": self.appointment_date.isoformat(),
            "time": self.time,
            "consultationType": self.visit_mode.value,
            "symptoms": self.symptoms,
            "status": self.status.value,
            "userArea": self.patient_location.area,
            "userAddress": self.patient_location.to_dict(),
        }
        for attribute, key in _ASSIGNMENT_FIELD_KEYS.items():
            value = getattr(self, attribute)
            if isinstance(value, Enum):
                value = value.value
            if value is not None:
                row[key] = value
        return row


ASSIGNMENT_FIELDS = frozenset(_ASSIGNMENT_FIELD_KEYS) | {"status"}
APPOINTMENT_FIELDS = frozenset(item.name for item in fields(Appointment))


__all__ = [
    "APPOINTMENT_FIELDS",
    "APPROVED_STATUS",
    "ASSIGNMENT_FIELDS",
    "Appointment",
    "AppointmentStatus",
    "AssignmentType",
    "LocationInfo",
    "PRACTITIONER_ROLE",
    "Practitioner",
    "Specialization",
    "VisitMode",
    "WorkingSchedule",
]

"""Record builders shared by the test modules."""
from __future__ import annotations

from datetime import date
from typing import Iterable, Optional

from connector.records import (
    Appointment,
    AppointmentStatus,
    LocationInfo,
    Practitioner,
    Specialization,
    VisitMode,
    WorkingSchedule,
)

WEDNESDAY = date(2024, 1, 10)
SATURDAY = date(2024, 1, 13)
WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday")


def make_practitioner(
    practitioner_id: str,
    name: Optional[str] = None,
    *,
    specialization: Specialization = Specialization.GENERAL,
    area: Optional[str] = None,
    city: Optional[str] = None,
    pincode: Optional[str] = None,
    status: str = "approved",
    email: Optional[str] = None,
) -> Practitioner:
    return Practitioner(
        practitioner_id=practitioner_id,
        name=name or f"Dr. {practitioner_id}",
        specialization=specialization,
        status=status,
        location=LocationInfo(area=area, city=city, pincode=pincode),
        email=email,
    )


def make_schedule(
    practitioner_id: str,
    *,
    days: Iterable[str] = WEEKDAYS,
    start: str = "09:00",
    end: str = "17:00",
    break_start: Optional[str] = None,
    break_end: Optional[str] = None,
) -> WorkingSchedule:
    return WorkingSchedule(
        practitioner_id=practitioner_id,
        days=frozenset(days),
        start_time=start,
        end_time=end,
        break_start=break_start,
        break_end=break_end,
    )


def make_appointment(
    appointment_id: str,
    *,
    time: str = "10:00",
    mode: VisitMode = VisitMode.VIRTUAL,
    on_date: date = WEDNESDAY,
    doctor_id: Optional[str] = None,
    doctor_name: Optional[str] = None,
    status: AppointmentStatus = AppointmentStatus.PENDING,
    symptoms: str = "",
    area: Optional[str] = None,
) -> Appointment:
    return Appointment(
        appointment_id=appointment_id,
        patient_id=f"patient-{appointment_id}",
        patient_name=f"Patient {appointment_id}",
        appointment_date=on_date,
        time=time,
        visit_mode=mode,
        symptoms=symptoms,
        status=status,
        patient_location=LocationInfo(area=area),
        doctor_id=doctor_id,
        doctor_name=doctor_name or (f"Dr. {doctor_id}" if doctor_id else None),
    )

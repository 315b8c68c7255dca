"""Notification hooks fired after an assignment is committed.

Delivery (in-app, email, WhatsApp, push) belongs to external dispatchers;
this module only decides which notifications fire and makes sure a failing
dispatcher can never undo a committed assignment.
"""
from __future__ import annotations

import logging
from concurrent.futures import Executor
from typing import Callable, List, Optional, Protocol

from connector.records import Appointment, Practitioner

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """Protocol describing the outbound notification interface."""

    def notify_practitioner_assigned(
        self,
        practitioner_id: str,
        practitioner_name: str,
        appointment_id: str,
        patient_name: str,
        date: str,
        time: str,
    ) -> None:
        """Tell the practitioner a new appointment was assigned to them."""

    def notify_patient_confirmed(
        self,
        patient_id: str,
        appointment_id: str,
        practitioner_name: str,
        date: str,
        time: str,
    ) -> None:
        """Tell the patient their appointment is confirmed."""

    def email_practitioner_assignment(
        self,
        practitioner_name: str,
        practitioner_email: str,
        appointment: Appointment,
    ) -> None:
        """Request an assignment email for the practitioner."""


class LoggingNotifier:
    """Stub notifier that only records the intent to notify.

    In production this would hand off to the messaging services.
    """

    def notify_practitioner_assigned(
        self,
        practitioner_id: str,
        practitioner_name: str,
        appointment_id: str,
        patient_name: str,
        date: str,
        time: str,
    ) -> None:
        logger.info(
            "Notifying %s (%s) of appointment %s with %s on %s at %s",
            practitioner_name,
            practitioner_id,
            appointment_id,
            patient_name or "a patient",
            date,
            time,
        )

    def notify_patient_confirmed(
        self,
        patient_id: str,
        appointment_id: str,
        practitioner_name: str,
        date: str,
        time: str,
    ) -> None:
        logger.info(
            "Confirming appointment %s for patient %s with %s on %s at %s",
            appointment_id,
            patient_id,
            practitioner_name,
            date,
            time,
        )

    def email_practitioner_assignment(
        self,
        practitioner_name: str,
        practitioner_email: str,
        appointment: Appointment,
    ) -> None:
        logger.info(
            "Queueing assignment email to %s <%s> for appointment %s",
            practitioner_name,
            practitioner_email,
            appointment.appointment_id,
        )


def _guarded(label: str, appointment_id: str, call: Callable[[], None]) -> Callable[[], None]:
    def run() -> None:
        try:
            call()
        except Exception:  # noqa: BLE001
            logger.exception("Failed to send %s notification for appointment %s", label, appointment_id)

    return run


def dispatch_assignment_notifications(
    notifier: Notifier,
    appointment: Appointment,
    practitioner: Practitioner,
    *,
    send_email: bool = False,
    executor: Optional[Executor] = None,
) -> None:
    """Fire the post-commit notifications for ``appointment``.

    Each notification runs independently; with an ``executor`` they are
    submitted fire-and-forget, otherwise they run inline.
    """

    date_text = appointment.appointment_date.isoformat()
    tasks: List[Callable[[], None]] = [
        _guarded(
            "practitioner-assigned",
            appointment.appointment_id,
            lambda: notifier.notify_practitioner_assigned(
                practitioner.practitioner_id,
                practitioner.name,
                appointment.appointment_id,
                appointment.patient_name,
                date_text,
                appointment.time,
            ),
        ),
        _guarded(
            "patient-confirmed",
            appointment.appointment_id,
            lambda: notifier.notify_patient_confirmed(
                appointment.patient_id,
                appointment.appointment_id,
                practitioner.name,
                date_text,
                appointment.time,
            ),
        ),
    ]
    if send_email and practitioner.email:
        tasks.append(
            _guarded(
                "assignment-email",
                appointment.appointment_id,
                lambda: notifier.email_practitioner_assignment(
                    practitioner.name, practitioner.email, appointment
                ),
            )
        )

    for task in tasks:
        if executor is None:
            task()
            continue
        try:
            executor.submit(task)
        except Exception:  # noqa: BLE001
            logger.exception(
                "Notification executor rejected a task for appointment %s; running it inline",
                appointment.appointment_id,
            )
            task()


__all__ = ["LoggingNotifier", "Notifier", "dispatch_assignment_notifications"]

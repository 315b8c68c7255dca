"""Agent package exposing the assignment workflow."""

from .assignment import (
    AppointmentNotFoundError,
    AssignmentAgent,
    AssignmentError,
    AssignmentOutcome,
    BatchSummary,
    IneligiblePractitionerError,
    NoCandidatesError,
    PractitionerNotFoundError,
    SlotTakenError,
)
from .notifications import LoggingNotifier, Notifier

__all__ = [
    "AppointmentNotFoundError",
    "AssignmentAgent",
    "AssignmentError",
    "AssignmentOutcome",
    "BatchSummary",
    "IneligiblePractitionerError",
    "LoggingNotifier",
    "NoCandidatesError",
    "Notifier",
    "PractitionerNotFoundError",
    "SlotTakenError",
]

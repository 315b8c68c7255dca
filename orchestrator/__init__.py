"""Command-line orchestration for the practitioner assignment engine."""

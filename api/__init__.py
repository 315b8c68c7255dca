"""HTTP API for the practitioner assignment engine."""

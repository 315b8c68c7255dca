"""Area, postal-code and distance heuristics for practitioner proximity."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from connector.records import LocationInfo


@dataclass(frozen=True)
class ProximityScore:
    score: int
    reason: str


def _normalized(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    return value.strip().lower() or None


def pincode_proximity(patient_pincode: Optional[str], practitioner_pincode: Optional[str]) -> int:
    """Score two postal codes by their shared prefix length."""

    patient_pincode = (patient_pincode or "").strip()
    practitioner_pincode = (practitioner_pincode or "").strip()
    if not patient_pincode or not practitioner_pincode:
        return 0
    if patient_pincode == practitioner_pincode:
        return 10
    if patient_pincode[:3] == practitioner_pincode[:3]:
        return 7
    if patient_pincode[:2] == practitioner_pincode[:2]:
        return 4
    if patient_pincode[:1] == practitioner_pincode[:1]:
        return 2
    return 0


def area_score(patient: LocationInfo, practitioner: LocationInfo) -> ProximityScore:
    """Score how close two locations are by name.

    Checks run in a fixed order and the first hit wins: same area (10), same
    city (6), then postal-code prefix (10/7/4/2). A same-city pair therefore
    scores below a 3-digit pincode match.
    """

    patient_area = _normalized(patient.area)
    if patient_area and patient_area == _normalized(practitioner.area):
        return ProximityScore(10, "Same area")

    patient_city = _normalized(patient.city)
    if patient_city and patient_city == _normalized(practitioner.city):
        return ProximityScore(6, "Same city")

    pincode = pincode_proximity(patient.pincode, practitioner.pincode)
    if pincode > 0:
        return ProximityScore(pincode, f"Pincode proximity ({patient.pincode} - {practitioner.pincode})")

    return ProximityScore(0, "No area/location match")


# (upper bound in km, score, label); the first bound that fits wins.
DISTANCE_BANDS = (
    (5.0, 10, "Excellent proximity"),
    (10.0, 8, "Very good proximity"),
    (20.0, 6, "Good proximity"),
    (50.0, 4, "Fair proximity"),
    (100.0, 2, "Poor proximity"),
)


def distance_score(distance_km: Optional[float]) -> ProximityScore:
    if distance_km is None:
        return ProximityScore(1, "Distance unknown")
    for limit, score, label in DISTANCE_BANDS:
        if distance_km <= limit:
            return ProximityScore(score, f"{label} ({distance_km:.1f}km)")
    return ProximityScore(1, f"Very poor proximity ({distance_km:.1f}km)")


__all__ = ["DISTANCE_BANDS", "ProximityScore", "area_score", "distance_score", "pincode_proximity"]

"""Composite scoring and ranking of available practitioners."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from connector.records import LocationInfo, Practitioner

from .location import LocationResolver
from .proximity import area_score, distance_score
from .specialization import score_specialization

logger = logging.getLogger(__name__)

SPECIALIZATION_WEIGHT = 0.4
AREA_WEIGHT = 0.3
DISTANCE_WEIGHT = 0.3


def composite_score(specialization: float, area: float, distance: float) -> float:
    return (
        specialization * SPECIALIZATION_WEIGHT
        + area * AREA_WEIGHT
        + distance * DISTANCE_WEIGHT
    )


@dataclass(frozen=True)
class MatchResult:
    practitioner: Practitioner
    specialization_score: int
    area_score: int
    distance_km: Optional[float]
    distance_score: int
    score: float
    specialization_reason: str = ""
    location_reason: str = ""
    distance_reason: str = ""

    def to_dict(self) -> Dict[str, object]:
        return {
            "practitioner_id": self.practitioner.practitioner_id,
            "practitioner_name": self.practitioner.name,
            "specialization": self.practitioner.specialization.value,
            "score": round(self.score, 3),
            "specialization_score": self.specialization_score,
            "area_score": self.area_score,
            "distance_km": round(self.distance_km, 2) if self.distance_km is not None else None,
            "distance_score": self.distance_score,
            "details": {
                "specialization": self.specialization_reason,
                "location": self.location_reason,
                "distance": self.distance_reason,
            },
        }


def neutral_match(practitioner: Practitioner) -> MatchResult:
    """Placeholder match used when there is nothing to score against."""

    return MatchResult(
        practitioner=practitioner,
        specialization_score=1,
        area_score=1,
        distance_km=None,
        distance_score=1,
        score=1.0,
    )


class MatchRanker:
    """Scores practitioners for a request and orders them best first."""

    def __init__(self, resolver: Optional[LocationResolver] = None) -> None:
        self._resolver = resolver

    def score(self, practitioner: Practitioner, symptoms: str, patient_location: LocationInfo) -> MatchResult:
        specialization = score_specialization(practitioner.specialization, symptoms)
        area = area_score(patient_location, practitioner.location)

        distance_km: Optional[float] = None
        if self._resolver is not None:
            distance_km = self._resolver.distance_km(patient_location, practitioner.location)
        distance = distance_score(distance_km)

        return MatchResult(
            practitioner=practitioner,
            specialization_score=specialization.score,
            area_score=area.score,
            distance_km=distance_km,
            distance_score=distance.score,
            score=composite_score(specialization.score, area.score, distance.score),
            specialization_reason=specialization.reason,
            location_reason=area.reason,
            distance_reason=distance.reason,
        )

    def rank(
        self,
        practitioners: Sequence[Practitioner],
        symptoms: str,
        patient_location: LocationInfo,
    ) -> List[MatchResult]:
        """Return one match per practitioner, highest score first.

        ``sorted`` is stable, so equal scores keep the input order.
        """

        matches = [self.score(practitioner, symptoms, patient_location) for practitioner in practitioners]
        ranked = sorted(matches, key=lambda match: match.score, reverse=True)
        for match in ranked:
            logger.debug(
                "Candidate %s scored %.2f (specialization=%d area=%d distance=%d)",
                match.practitioner.name,
                match.score,
                match.specialization_score,
                match.area_score,
                match.distance_score,
            )
        return ranked


__all__ = [
    "AREA_WEIGHT",
    "DISTANCE_WEIGHT",
    "MatchRanker",
    "MatchResult",
    "SPECIALIZATION_WEIGHT",
    "composite_score",
    "neutral_match",
]

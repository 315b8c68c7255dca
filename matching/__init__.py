"""Practitioner fitness scoring: specialization, proximity and distance."""

from .location import CoordinateCache, LocationResolver, haversine_km
from .proximity import area_score, distance_score, pincode_proximity
from .ranking import MatchRanker, MatchResult, composite_score
from .specialization import SPECIALIZATION_KEYWORDS, score_specialization

__all__ = [
    "CoordinateCache",
    "LocationResolver",
    "MatchRanker",
    "MatchResult",
    "SPECIALIZATION_KEYWORDS",
    "area_score",
    "composite_score",
    "distance_score",
    "haversine_km",
    "pincode_proximity",
    "score_specialization",
]

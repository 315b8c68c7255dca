"""Symptom keyword matching against practitioner specializations."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple

from connector.records import Specialization


@dataclass(frozen=True)
class KeywordProfile:
    keywords: Tuple[str, ...]
    weight: int


SPECIALIZATION_KEYWORDS: Dict[Specialization, KeywordProfile] = {
    Specialization.ORTHODONTIST: KeywordProfile(
        keywords=(
            "braces",
            "alignment",
            "crooked",
            "bite",
            "jaw",
            "overbite",
            "underbite",
            "malocclusion",
            "teeth straightening",
            "misaligned",
        ),
        weight=5,
    ),
    Specialization.PEDIATRIC_DENTIST: KeywordProfile(
        keywords=("child", "baby", "kid", "children", "infant", "toddler", "pediatric", "young", "minor"),
        weight=5,
    ),
    Specialization.ORAL_SURGEON: KeywordProfile(
        keywords=(
            "surgery",
            "extraction",
            "wisdom",
            "implant",
            "trauma",
            "oral surgery",
            "surgical",
            "remove",
            "cut",
            "wisdom tooth",
        ),
        weight=5,
    ),
    Specialization.PERIODONTIST: KeywordProfile(
        keywords=(
            "gum",
            "bleeding",
            "gingivitis",
            "periodontitis",
            "gum disease",
            "swollen gums",
            "receding",
            "gum infection",
        ),
        weight=4,
    ),
    Specialization.ENDODONTIST: KeywordProfile(
        keywords=(
            "root canal",
            "nerve",
            "pulp",
            "abscess",
            "tooth pain",
            "severe pain",
            "infection",
            "tooth infection",
        ),
        weight=4,
    ),
    Specialization.PROSTHODONTIST: KeywordProfile(
        keywords=(
            "denture",
            "crown",
            "bridge",
            "prosthetic",
            "artificial teeth",
            "replacement",
            "missing teeth",
            "partial denture",
        ),
        weight=4,
    ),
    Specialization.COSMETIC_DENTIST: KeywordProfile(
        keywords=("whitening", "bleaching", "veneers", "cosmetic", "smile makeover", "aesthetic", "teeth whitening"),
        weight=3,
    ),
    Specialization.GENERAL: KeywordProfile(
        keywords=("cleaning", "checkup", "routine", "cavity", "filling", "general", "maintenance", "polish"),
        weight=2,
    ),
}


@dataclass(frozen=True)
class SpecializationScore:
    score: int
    matched_keywords: Tuple[str, ...]
    reason: str


def score_specialization(specialization: Specialization | str | None, symptoms: str) -> SpecializationScore:
    """Score ``symptoms`` against the keyword profile of ``specialization``.

    Every keyword found (case-insensitive substring) adds the profile weight.
    Overlapping keywords such as "gum" and "gum disease" each count.
    """

    resolved = Specialization.from_label(specialization)
    profile = SPECIALIZATION_KEYWORDS.get(resolved, SPECIALIZATION_KEYWORDS[Specialization.GENERAL])
    text = (symptoms or "").lower()

    matched = tuple(keyword for keyword in profile.keywords if keyword.lower() in text)
    if matched:
        reason = f"Matched keywords: {', '.join(matched)}"
    else:
        reason = f"No specific keywords matched for {resolved.value}"
    return SpecializationScore(score=profile.weight * len(matched), matched_keywords=matched, reason=reason)


__all__ = ["KeywordProfile", "SPECIALIZATION_KEYWORDS", "SpecializationScore", "score_specialization"]

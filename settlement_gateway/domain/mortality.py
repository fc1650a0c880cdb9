"""Survival weighting for life-contingent payments"""

import math
from typing import Callable, Dict, Iterable, List, Optional, Protocol

SurvivalCurve = Callable[[float], float]


class SurvivalModel(Protocol):
    """Source of per-period survival weights for a set of life-contingent keys"""

    def survival_curve(self, keys: Iterable[str]) -> SurvivalCurve:
        """Return weight(years_from_valuation) in [0, 1], non-increasing in time"""
        ...


# Additional annual mortality hazard per profile key. Keys not listed
# (e.g. plain person identifiers) add nothing beyond the baseline.
HAZARD_ADJUSTMENTS: Dict[str, float] = {
    "age-18-25": 0.0000,
    "age-26-35": 0.0005,
    "age-36-45": 0.0015,
    "age-46-50": 0.0030,
    "age-51-56": 0.0050,
    "age-57-65": 0.0090,
    "gender-male": 0.0020,
    "gender-female": 0.0000,
    "build-small": 0.0005,
    "build-medium": 0.0000,
    "build-tall": 0.0005,
    "underweight": 0.0020,
    "normal": 0.0000,
    "overweight": 0.0015,
    "obese": 0.0040,
    "severe-obese": 0.0080,
    "smoke-yes": 0.0100,
    "smoke-no": 0.0000,
    "health-great": 0.0000,
    "health-normal": 0.0010,
    "health-fair": 0.0040,
    "health-belowfair": 0.0100,
    "cardiac-normal": 0.0000,
    "cardiac-medicated": 0.0040,
    "cardiac-high": 0.0080,
    "cardiac-unsure": 0.0020,
}

# Questionnaire answers -> profile keys
PROFILE_ANSWER_KEYS: Dict[str, Dict[str, str]] = {
    "age_range": {
        "18-25": "age-18-25",
        "26-35": "age-26-35",
        "36-45": "age-36-45",
        "46-50": "age-46-50",
        "51-56": "age-51-56",
        "57-65": "age-57-65",
    },
    "gender": {"male": "gender-male", "female": "gender-female", "other": "gender-female"},
    "body_frame": {"small": "build-small", "medium": "build-medium", "large": "build-tall"},
    "weight": {
        "underweight": "underweight",
        "normal weight": "normal",
        "overweight": "overweight",
        "obesity": "obese",
        "severe obesity": "severe-obese",
    },
    "smoke": {"yes": "smoke-yes", "no": "smoke-no"},
    "health": {"great": "health-great", "normal": "health-normal", "fair": "health-fair", "below fair": "health-belowfair"},
    "cardiac": {"normal": "cardiac-normal", "medicated": "cardiac-medicated", "high": "cardiac-high", "not sure": "cardiac-unsure"},
}


def _normalize_answer(value: str) -> str:
    return " ".join(value.replace("–", "-").replace("—", "-").lower().split())


def map_profile_answers(answers: Dict[str, str]) -> List[str]:
    """
    Convert questionnaire answers (age range, gender, body frame, weight,
    smoking, health, cardiac) to profile keys. Unknown answers are skipped.
    """
    keys = []
    for question, mapping in PROFILE_ANSWER_KEYS.items():
        answer = answers.get(question)
        if not isinstance(answer, str):
            continue
        key = mapping.get(_normalize_answer(answer))
        if key:
            keys.append(key)
    return keys


def resolve_key(token: str) -> str:
    """
    Map a free-text token to a profile key where one matches ("Male" ->
    "gender-male", "36-45" -> "age-36-45"); otherwise keep it as an identifier.
    """
    normalized = _normalize_answer(token)
    if normalized in HAZARD_ADJUSTMENTS:
        return normalized
    for mapping in PROFILE_ANSWER_KEYS.values():
        if normalized in mapping:
            return mapping[normalized]
    return token.strip()


class HazardSurvivalModel:
    """
    Constant-hazard survival: weight(t) = exp(-(baseline + sum(adjustments)) * t).

    Adjustments are non-negative, so every curve starts at 1 and never rises.
    """

    def __init__(self, baseline_hazard: float = 0.005, adjustments: Optional[Dict[str, float]] = None):
        if baseline_hazard < 0:
            raise ValueError("baseline_hazard must not be negative")
        self.baseline_hazard = baseline_hazard
        self.adjustments = HAZARD_ADJUSTMENTS if adjustments is None else adjustments

    def hazard_for(self, keys: Iterable[str]) -> float:
        return self.baseline_hazard + sum(max(self.adjustments.get(key, 0.0), 0.0) for key in set(keys))

    def survival_curve(self, keys: Iterable[str]) -> SurvivalCurve:
        hazard = self.hazard_for(keys)

        def weight(years: float) -> float:
            return math.exp(-hazard * max(years, 0.0))

        return weight

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import AbstractSet, Dict

from rapidfuzz.distance import Levenshtein

from .normalize import normalize_plate

MAX_SCORE = 100
MIN_CONTAINED_PLATE_LENGTH = 4


@dataclass(frozen=True)
class RelevanceBreakdown:
    score: int
    contributions: Dict[str, int]


_EXACT_WEIGHTS = {
    "plate": 50,
    "customer_phone": 40,
    "customer_name": 30,
}

_PARTIAL_WEIGHTS = {
    "plate": 30,
    "customer_phone": 25,
    "customer_name": 20,
    "car_make": 15,
    "car_model": 15,
    "status": 10,
    "repair_status": 10,
}


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def levenshtein_distance(a: str, b: str) -> int:
    """Insert/delete/substitute edit distance, each operation costing 1."""
    return Levenshtein.distance(a or "", b or "")


def similarity(a: str, b: str) -> int:
    """Plate closeness on a 0-100 scale; 100 only for identical normalized plates."""

    left = normalize_plate(a)
    right = normalize_plate(b)
    if not left or not right:
        return 0
    if left == right:
        return MAX_SCORE
    distance = levenshtein_distance(left, right)
    score = _round_half_up((1 - distance / max(len(left), len(right))) * MAX_SCORE)
    # Rounding must not promote a non-identical pair to a perfect score.
    return min(score, MAX_SCORE - 1)


def plates_match(a: str, b: str) -> bool:
    left = normalize_plate(a)
    right = normalize_plate(b)
    if not left or not right:
        return False
    if left == right:
        return True
    if left in right or right in left:
        return min(len(left), len(right)) >= MIN_CONTAINED_PLATE_LENGTH
    return False


def score_relevance(
    matched_fields: AbstractSet[str],
    exact_matches: AbstractSet[str],
) -> RelevanceBreakdown:
    """Turn matched fields into a single weighted confidence, capped at 100."""

    contributions: Dict[str, int] = {}
    for name, weight in _EXACT_WEIGHTS.items():
        if name in exact_matches and name in matched_fields:
            contributions[name] = weight

    for name, weight in _PARTIAL_WEIGHTS.items():
        if name in matched_fields and name not in contributions:
            contributions[name] = weight

    score = min(sum(contributions.values()), MAX_SCORE)
    return RelevanceBreakdown(score=score, contributions=contributions)

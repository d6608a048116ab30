from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from .normalize import is_phone_like, normalize_phone, normalize_plate, normalize_text
from .records import SEARCHABLE_FIELDS, CaseRecord, FieldMatch, SearchResult
from .scorer import plates_match, score_relevance, similarity

MIN_QUERY_LENGTH = 2
MIN_PLATE_QUERY_LENGTH = 3


def _canonical_forms(query: str) -> dict:
    forms = {}
    plate_query = normalize_plate(query)
    if len(plate_query) >= MIN_QUERY_LENGTH:
        forms["plate"] = (normalize_plate, plate_query)
    if is_phone_like(query):
        phone_query = normalize_phone(query)
        if len(phone_query) >= MIN_QUERY_LENGTH:
            forms["customer_phone"] = (normalize_phone, phone_query)
    return forms


def match_fields(query: str, record: CaseRecord) -> FieldMatch:
    """Test every searchable field of ``record`` for containment of ``query``.

    ``query`` must already be passed through ``normalize_text``. Plates and
    phone numbers are also compared in their own canonical form so that
    ``aa123bb`` finds ``AA-123-BB``.
    """

    if len(query) < MIN_QUERY_LENGTH:
        return FieldMatch()

    canonical = _canonical_forms(query)
    matched = []
    exact = []
    for name in SEARCHABLE_FIELDS:
        raw = record.field_value(name)
        if not raw:
            continue
        value = normalize_text(raw)
        contains = query in value
        equals = query == value
        if name in canonical:
            normalizer, canonical_query = canonical[name]
            canonical_value = normalizer(raw)
            contains = contains or canonical_query in canonical_value
            equals = equals or canonical_query == canonical_value
        if contains:
            matched.append(name)
            if equals:
                exact.append(name)

    return FieldMatch(matched_fields=frozenset(matched), exact_matches=frozenset(exact))


class MatchingStrategy(ABC):
    name: str

    @abstractmethod
    def prepare(self, query: str) -> Optional[str]:
        """Return the normalized query, or ``None`` when it is too short to search."""
        raise NotImplementedError

    @abstractmethod
    def evaluate(self, query: str, record: CaseRecord) -> Optional[SearchResult]:
        raise NotImplementedError

    def generate(self, query: str, records: Iterable[CaseRecord]) -> List[SearchResult]:
        results: List[SearchResult] = []
        for record in records:
            result = self.evaluate(query, record)
            if result is not None:
                results.append(result)
        return results


class FieldContainmentStrategy(MatchingStrategy):
    name = "fields"

    def __init__(self, min_relevance: int = 10) -> None:
        self.min_relevance = min_relevance

    def prepare(self, query: str) -> Optional[str]:
        normalized = normalize_text(query)
        if len(normalized) < MIN_QUERY_LENGTH:
            return None
        return normalized

    def evaluate(self, query: str, record: CaseRecord) -> Optional[SearchResult]:
        field_match = match_fields(query, record)
        if not field_match:
            return None
        breakdown = score_relevance(field_match.matched_fields, field_match.exact_matches)
        if breakdown.score < self.min_relevance:
            return None
        plate_similarity = None
        if "plate" in field_match.matched_fields:
            plate_similarity = similarity(query, record.plate)
        return SearchResult(
            record=record,
            matched_fields=field_match.matched_fields,
            exact_matches=field_match.exact_matches,
            relevance_score=breakdown.score,
            similarity=plate_similarity,
            contributions=breakdown.contributions,
        )


class PlateSimilarityStrategy(MatchingStrategy):
    name = "plate"

    def __init__(self, min_similarity: int = 70) -> None:
        self.min_similarity = min_similarity

    def prepare(self, query: str) -> Optional[str]:
        normalized = normalize_plate(query)
        if len(normalized) < MIN_PLATE_QUERY_LENGTH:
            return None
        return normalized

    def evaluate(self, query: str, record: CaseRecord) -> Optional[SearchResult]:
        if not record.plate:
            return None
        score = similarity(query, record.plate)
        # A partial plate contained in the record plate stays a hit below the threshold.
        contained = self.min_similarity < 100 and plates_match(query, record.plate)
        if score < self.min_similarity and not contained:
            return None
        exact = frozenset({"plate"}) if score == 100 else frozenset()
        return SearchResult(
            record=record,
            matched_fields=frozenset({"plate"}),
            exact_matches=exact,
            relevance_score=score,
            similarity=score,
        )

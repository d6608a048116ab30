from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

import requests

from .adapters import PrimaryStoreAdapter, SecondaryStoreAdapter, SourceAdapter
from .cache import TTLCache
from .config import Settings
from .errors import AllSourcesUnavailable, SourceUnavailable
from .parser import extract_plate_from_ocr
from .reconcile import RecordPredicate, compute_statistics, dedupe_results, reconcile
from .records import CaseRecord, CaseStatistics, SearchResult
from .strategies import FieldContainmentStrategy, MatchingStrategy, PlateSimilarityStrategy

logger = logging.getLogger(__name__)


@dataclass
class EngineConfig:
    primary: Optional[SourceAdapter] = None
    secondary: Optional[SourceAdapter] = None
    # Caps primary-store reads during searches; None pages the store to the end.
    fetch_limit: Optional[int] = None


@dataclass(frozen=True)
class SearchOptions:
    limit: int = 20
    min_relevance: int = 10
    include_primary: bool = True
    include_secondary: bool = True


@dataclass
class SourceSnapshot:
    """Canonical records read from both stores during one call."""

    primary: List[CaseRecord] = field(default_factory=list)
    secondary: List[CaseRecord] = field(default_factory=list)
    failures: List[SourceUnavailable] = field(default_factory=list)


class CaseSearchEngine:
    """Searches and reconciles cases held in the primary and secondary stores.

    The engine keeps no state between calls: every search re-reads both
    stores (subject to adapter caching) and recomputes the reconciled view.
    """

    def __init__(self, config: EngineConfig | None = None) -> None:
        self.config = config or EngineConfig()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        secondary_loader: Optional[Callable[[], Iterable[Mapping[str, Any]]]] = None,
        session: requests.Session | None = None,
    ) -> "CaseSearchEngine":
        primary = None
        if settings.primary_configured:
            primary = PrimaryStoreAdapter(
                base_url=settings.primary_store_url,
                api_key=settings.primary_store_api_key,
                endpoint=settings.primary_store_endpoint,
                timeout=settings.primary_store_timeout,
                session=session,
            )
        else:
            logger.warning("Primary store is not configured; searching the secondary store only")

        secondary = None
        if secondary_loader is not None:
            secondary = SecondaryStoreAdapter(
                loader=secondary_loader,
                timeout=settings.secondary_store_timeout,
                cache=TTLCache(ttl=settings.secondary_cache_ttl),
            )
        return cls(EngineConfig(primary=primary, secondary=secondary, fetch_limit=settings.fetch_limit))

    def fetch_sources(
        self,
        include_primary: bool = True,
        include_secondary: bool = True,
        primary_limit: Optional[int] = None,
    ) -> SourceSnapshot:
        """Read the enabled stores concurrently, each under its own timeout.

        The secondary store is always read in full; ``primary_limit`` caps the
        paged primary store. A failing store degrades to an empty list.
        ``AllSourcesUnavailable`` is raised only when every enabled store failed.
        """

        adapters: List[Tuple[str, SourceAdapter, Optional[int]]] = []
        if include_primary and self.config.primary is not None:
            adapters.append(("primary", self.config.primary, primary_limit))
        if include_secondary and self.config.secondary is not None:
            adapters.append(("secondary", self.config.secondary, None))

        snapshot = SourceSnapshot()
        if not adapters:
            return snapshot

        executor = ThreadPoolExecutor(max_workers=len(adapters), thread_name_prefix="case-fetch")
        try:
            started = time.monotonic()
            futures: Dict[str, Tuple[SourceAdapter, Future]] = {
                slot: (adapter, executor.submit(adapter.fetch_all, limit))
                for slot, adapter, limit in adapters
            }
            for slot, (adapter, future) in futures.items():
                remaining = max(0.0, started + adapter.timeout - time.monotonic())
                try:
                    records = future.result(timeout=remaining)
                except FutureTimeout:
                    failure = SourceUnavailable.for_source(
                        adapter.name, f"timed out after {adapter.timeout:g}s"
                    )
                except SourceUnavailable as exc:
                    failure = exc
                except Exception as exc:
                    failure = SourceUnavailable.for_source(adapter.name, str(exc) or type(exc).__name__)
                else:
                    setattr(snapshot, slot, records)
                    continue
                logger.warning("Source %s unavailable, continuing without it: %s", adapter.name, failure.message)
                snapshot.failures.append(failure)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        if len(snapshot.failures) == len(adapters):
            raise AllSourcesUnavailable.from_failures(snapshot.failures)
        return snapshot

    def _rank(
        self,
        strategy: MatchingStrategy,
        query: str,
        snapshot: SourceSnapshot,
        limit: int,
    ) -> List[SearchResult]:
        candidates = strategy.generate(query, snapshot.primary)
        candidates.extend(strategy.generate(query, snapshot.secondary))
        unique = dedupe_results(candidates)
        ranked = sorted(unique, key=lambda r: (r.relevance_score, r.created_at), reverse=True)
        logger.info(
            "Query %r matched %d candidates (%d after dedup) via %s strategy",
            query,
            len(candidates),
            len(unique),
            strategy.name,
        )
        return ranked[: max(limit, 0)]

    def search(self, query: str, options: SearchOptions | None = None) -> List[SearchResult]:
        """Free-text search across every searchable field of both stores."""

        options = options or SearchOptions()
        strategy = FieldContainmentStrategy(min_relevance=options.min_relevance)
        normalized = strategy.prepare(query)
        if normalized is None:
            logger.debug("Search query too short: %r", query)
            return []

        snapshot = self.fetch_sources(
            options.include_primary, options.include_secondary, primary_limit=self.config.fetch_limit
        )
        return self._rank(strategy, normalized, snapshot, options.limit)

    def search_by_plate(
        self, plate: str, min_similarity: int = 70, limit: int = 10
    ) -> List[SearchResult]:
        """Fuzzy plate lookup ranked by edit-distance similarity."""

        strategy = PlateSimilarityStrategy(min_similarity=min_similarity)
        normalized = strategy.prepare(plate)
        if normalized is None:
            logger.debug("Plate query too short: %r", plate)
            return []

        snapshot = self.fetch_sources(primary_limit=self.config.fetch_limit)
        return self._rank(strategy, normalized, snapshot, limit)

    def find_exact_plate_match(self, plate: str) -> Optional[SearchResult]:
        results = self.search_by_plate(plate, min_similarity=100, limit=1)
        return results[0] if results else None

    def search_by_ocr_text(
        self, ocr_text: str, min_similarity: int = 70, limit: int = 10
    ) -> List[SearchResult]:
        """Extract a plate from a camera/OCR reading and search for it."""

        plate = extract_plate_from_ocr(ocr_text)
        if plate is None:
            logger.info("No plate found in OCR text %r", ocr_text)
            return []
        return self.search_by_plate(plate, min_similarity=min_similarity, limit=limit)

    def reconciled_view(self, predicate: Optional[RecordPredicate] = None) -> List[CaseRecord]:
        """The deduplicated union of both stores, newest first, optionally filtered."""

        snapshot = self.fetch_sources()
        unified = reconcile(snapshot.primary, snapshot.secondary)
        if predicate is not None:
            unified = [record for record in unified if predicate(record)]
        return sorted(unified, key=lambda record: record.created_at, reverse=True)

    def statistics(
        self,
        predicate: Optional[RecordPredicate] = None,
        period: str = "month",
        now: Optional[datetime] = None,
    ) -> CaseStatistics:
        return compute_statistics(self.reconciled_view(), predicate, period=period, now=now)

"""Cross-store case reconciliation and fuzzy search engine."""

from .adapters import FetchFilters, PrimaryStoreAdapter, SecondaryStoreAdapter, SourceAdapter
from .engine import CaseSearchEngine, EngineConfig, SearchOptions
from .errors import AllSourcesUnavailable, CaseReconciliationError, SourceUnavailable
from .reconcile import categorize_status, compute_statistics, reconcile
from .records import CaseRecord, CaseStatistics, CustomerTotal, SearchResult, StatusShare

__all__ = [
    "CaseSearchEngine",
    "EngineConfig",
    "SearchOptions",
    "CaseRecord",
    "CaseStatistics",
    "CustomerTotal",
    "StatusShare",
    "SearchResult",
    "FetchFilters",
    "PrimaryStoreAdapter",
    "SecondaryStoreAdapter",
    "SourceAdapter",
    "AllSourcesUnavailable",
    "CaseReconciliationError",
    "SourceUnavailable",
    "categorize_status",
    "compute_statistics",
    "reconcile",
]

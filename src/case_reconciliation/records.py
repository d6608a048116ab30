from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, FrozenSet, List, Optional

from .normalize import EPOCH, normalize_plate

PRIMARY = "primary"
SECONDARY = "secondary"

CATEGORY_COMPLETED = "completed"
CATEGORY_IN_SERVICE = "in-service"
CATEGORY_PENDING = "pending"

SEARCHABLE_FIELDS = (
    "plate",
    "customer_name",
    "customer_phone",
    "car_make",
    "car_model",
    "status",
    "repair_status",
    "id",
)


@dataclass(frozen=True)
class CaseRecord:
    """Unified representation of one case/invoice from either store."""

    id: str
    origin_tag: str
    cross_reference_id: Optional[str] = None
    plate: str = ""
    customer_name: str = ""
    customer_phone: str = ""
    car_make: str = ""
    car_model: str = ""
    status: str = ""
    status_code: Optional[int] = None
    repair_status: str = ""
    total_price: float = 0.0
    created_at: datetime = EPOCH
    updated_at: datetime = EPOCH

    @property
    def normalized_plate(self) -> str:
        return normalize_plate(self.plate)

    @property
    def is_primary(self) -> bool:
        return self.origin_tag == PRIMARY

    def field_value(self, name: str) -> str:
        return str(getattr(self, name) or "")

    def as_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "origin_tag": self.origin_tag,
            "cross_reference_id": self.cross_reference_id,
            "plate": self.plate,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "car_make": self.car_make,
            "car_model": self.car_model,
            "status": self.status,
            "status_code": self.status_code,
            "repair_status": self.repair_status,
            "total_price": self.total_price,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass(frozen=True)
class FieldMatch:
    """Fields of one record that contain the query."""

    matched_fields: FrozenSet[str] = frozenset()
    exact_matches: FrozenSet[str] = frozenset()

    def __bool__(self) -> bool:
        return bool(self.matched_fields)


@dataclass(frozen=True)
class SearchResult:
    record: CaseRecord
    matched_fields: FrozenSet[str]
    relevance_score: int
    exact_matches: FrozenSet[str] = frozenset()
    similarity: Optional[int] = None
    contributions: Dict[str, int] = field(default_factory=dict)

    @property
    def origin_tag(self) -> str:
        return self.record.origin_tag

    @property
    def created_at(self) -> datetime:
        return self.record.created_at


@dataclass(frozen=True)
class CustomerTotal:
    name: str
    phone: str
    total_spent: float
    cases_count: int


@dataclass(frozen=True)
class StatusShare:
    status: str
    count: int
    percentage: float


@dataclass(frozen=True)
class CaseStatistics:
    """Aggregates over a reconciled set; recomputed on every request.

    Rates and percentages are on a 0-100 scale rounded to one decimal, money
    to two. The period fields compare the window ending now against the one
    before it.
    """

    count: int = 0
    total_price: float = 0.0
    average_ticket: float = 0.0
    by_category: Dict[str, int] = field(default_factory=dict)
    by_status: Dict[str, int] = field(default_factory=dict)
    by_origin: Dict[str, int] = field(default_factory=dict)
    active_cases: int = 0
    completed_cases: int = 0
    cancelled_cases: int = 0
    preliminary_assessment_cases: int = 0
    completion_rate: float = 0.0
    unique_customers: int = 0
    repeat_customers: int = 0
    repeat_customer_rate: float = 0.0
    period: str = "month"
    revenue_this_period: float = 0.0
    revenue_previous_period: float = 0.0
    cases_this_period: int = 0
    cases_previous_period: int = 0
    revenue_growth: float = 0.0
    top_customers: List[CustomerTotal] = field(default_factory=list)
    status_breakdown: List[StatusShare] = field(default_factory=list)


@dataclass(frozen=True)
class FetchPage:
    """One page of raw primary-store records."""

    success: bool
    records: List[dict] = field(default_factory=list)
    total: int = 0
    has_more: bool = False

from __future__ import annotations

import calendar
import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .normalize import (
    CANCELLED_STATUSES,
    COMPLETED_STATUSES,
    IN_SERVICE_STATUS_CODE,
    IN_SERVICE_STATUSES,
    PRELIMINARY_ASSESSMENT_STATUSES,
    normalize_phone,
    normalize_status,
)
from .records import (
    CATEGORY_COMPLETED,
    CATEGORY_IN_SERVICE,
    CATEGORY_PENDING,
    CaseRecord,
    CaseStatistics,
    CustomerTotal,
    SearchResult,
    StatusShare,
)

logger = logging.getLogger(__name__)

RecordPredicate = Callable[[CaseRecord], bool]

PERIODS = ("week", "month", "year")
TOP_CUSTOMER_LIMIT = 10


class PrimaryIndex:
    """Identity keys of the authoritative records a secondary record is checked against."""

    def __init__(self, primary: Iterable[CaseRecord]) -> None:
        self.ids: Set[str] = set()
        self.cross_references: Set[str] = set()
        self.plates: Set[str] = set()
        for record in primary:
            self.add(record)

    def add(self, record: CaseRecord) -> None:
        self.ids.add(record.id)
        if record.cross_reference_id:
            self.cross_references.add(record.cross_reference_id)
        plate = record.normalized_plate
        if plate:
            self.plates.add(plate)

    def duplicate_reason(self, record: CaseRecord) -> Optional[str]:
        if record.cross_reference_id and record.cross_reference_id in self.ids:
            return "cross_reference"
        if record.id in self.cross_references:
            return "cross_reference"
        plate = record.normalized_plate
        if plate and plate in self.plates:
            return "plate"
        return None


def reconcile(primary: Sequence[CaseRecord], secondary: Sequence[CaseRecord]) -> List[CaseRecord]:
    """Merge both stores, keeping every primary record and only unmatched secondary ones.

    A secondary record is dropped when it links to a primary record (either
    side's cross-reference id) or, failing that, shares its normalized plate
    with one. Plate equality is global, not scoped per customer.
    """

    index = PrimaryIndex(primary)
    unified: List[CaseRecord] = list(primary)
    suppressed = 0
    for record in secondary:
        if index.duplicate_reason(record):
            suppressed += 1
            continue
        unified.append(record)

    logger.debug(
        "Reconciled %d primary + %d secondary records into %d (%d suppressed)",
        len(primary),
        len(secondary),
        len(unified),
        suppressed,
    )
    return unified


def dedupe_results(results: Sequence[SearchResult]) -> List[SearchResult]:
    """Apply the reconciliation rules to a candidate result set."""

    index = PrimaryIndex(result.record for result in results if result.record.is_primary)
    return [
        result
        for result in results
        if result.record.is_primary or not index.duplicate_reason(result.record)
    ]


def categorize_status(record: CaseRecord) -> str:
    """Place a record in exactly one of completed / in-service / pending.

    Completion text wins over the numeric code, which upstream can leave stale
    after a manual status edit.
    """

    status = normalize_status(record.status)
    if status in COMPLETED_STATUSES:
        return CATEGORY_COMPLETED
    if record.status_code == IN_SERVICE_STATUS_CODE or status in IN_SERVICE_STATUSES:
        return CATEGORY_IN_SERVICE
    return CATEGORY_PENDING


def is_completed(record: CaseRecord) -> bool:
    return categorize_status(record) == CATEGORY_COMPLETED


def is_in_service(record: CaseRecord) -> bool:
    return categorize_status(record) == CATEGORY_IN_SERVICE


def is_cancelled(record: CaseRecord) -> bool:
    return normalize_status(record.status) in CANCELLED_STATUSES


def is_active(record: CaseRecord) -> bool:
    return not is_completed(record) and not is_cancelled(record)


def _midnight(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def _shift_months(value: datetime, months: int) -> datetime:
    index = value.year * 12 + value.month - 1 - months
    year, month = divmod(index, 12)
    month += 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def period_bounds(now: datetime, period: str = "month") -> Tuple[datetime, datetime]:
    """Start of the current and of the previous reporting window, at midnight."""

    if period == "week":
        start, previous = now - timedelta(days=7), now - timedelta(days=14)
    elif period == "month":
        start, previous = _shift_months(now, 1), _shift_months(now, 2)
    elif period == "year":
        start, previous = _shift_months(now, 12), _shift_months(now, 24)
    else:
        raise ValueError(f"Unknown statistics period {period!r}; expected one of {', '.join(PERIODS)}")
    return _midnight(start), _midnight(previous)


def _percent(part: float, whole: float) -> float:
    return round(part / whole * 100, 1) if whole else 0.0


def _revenue(records: Iterable[CaseRecord]) -> float:
    return round(sum(record.total_price for record in records), 2)


def _top_customers(selected: Sequence[CaseRecord]) -> Tuple[Dict[str, List[CaseRecord]], List[CustomerTotal]]:
    by_phone: Dict[str, List[CaseRecord]] = {}
    for record in selected:
        phone = normalize_phone(record.customer_phone)
        if phone:
            by_phone.setdefault(phone, []).append(record)

    totals = [
        CustomerTotal(
            name=next((case.customer_name for case in cases if case.customer_name), ""),
            phone=phone,
            total_spent=_revenue(cases),
            cases_count=len(cases),
        )
        for phone, cases in by_phone.items()
    ]
    totals.sort(key=lambda customer: customer.total_spent, reverse=True)
    return by_phone, totals[:TOP_CUSTOMER_LIMIT]


def compute_statistics(
    records: Iterable[CaseRecord],
    predicate: Optional[RecordPredicate] = None,
    period: str = "month",
    now: Optional[datetime] = None,
) -> CaseStatistics:
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    start, previous_start = period_bounds(now, period)

    selected = [record for record in records if predicate is None or predicate(record)]
    if not selected:
        return CaseStatistics(
            by_category={CATEGORY_COMPLETED: 0, CATEGORY_IN_SERVICE: 0, CATEGORY_PENDING: 0},
            period=period,
        )

    categories = Counter({CATEGORY_COMPLETED: 0, CATEGORY_IN_SERVICE: 0, CATEGORY_PENDING: 0})
    categories.update(categorize_status(record) for record in selected)
    statuses = Counter(record.status or "Unknown" for record in selected)
    origins = Counter(record.origin_tag for record in selected)
    customers, top_customers = _top_customers(selected)
    repeat_customers = sum(1 for cases in customers.values() if len(cases) > 1)

    this_period = [record for record in selected if record.created_at >= start]
    previous_period = [record for record in selected if previous_start <= record.created_at < start]
    revenue_this_period = _revenue(this_period)
    revenue_previous_period = _revenue(previous_period)
    if revenue_previous_period > 0:
        growth = round((revenue_this_period - revenue_previous_period) / revenue_previous_period * 100, 1)
    else:
        growth = 100.0 if revenue_this_period > 0 else 0.0

    total_price = _revenue(selected)
    return CaseStatistics(
        count=len(selected),
        total_price=total_price,
        average_ticket=round(total_price / len(selected), 2),
        by_category=dict(categories),
        by_status=dict(statuses),
        by_origin=dict(origins),
        active_cases=sum(1 for record in selected if is_active(record)),
        completed_cases=categories[CATEGORY_COMPLETED],
        cancelled_cases=sum(1 for record in selected if is_cancelled(record)),
        preliminary_assessment_cases=sum(
            1 for record in selected if normalize_status(record.status) in PRELIMINARY_ASSESSMENT_STATUSES
        ),
        completion_rate=_percent(categories[CATEGORY_COMPLETED], len(selected)),
        unique_customers=len(customers),
        repeat_customers=repeat_customers,
        repeat_customer_rate=_percent(repeat_customers, len(customers)),
        period=period,
        revenue_this_period=revenue_this_period,
        revenue_previous_period=revenue_previous_period,
        cases_this_period=len(this_period),
        cases_previous_period=len(previous_period),
        revenue_growth=growth,
        top_customers=top_customers,
        status_breakdown=[
            StatusShare(status=status, count=count, percentage=_percent(count, len(selected)))
            for status, count in statuses.most_common()
        ],
    )

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import requests

from .cache import TTLCache
from .errors import SourceUnavailable
from .normalize import coerce_price, coerce_status_code, coerce_text, coerce_timestamp
from .records import PRIMARY, SECONDARY, CaseRecord, FetchPage

logger = logging.getLogger(__name__)

AliasTable = Mapping[str, Tuple[str, ...]]

PRIMARY_ALIASES: AliasTable = {
    "id": ("cpanelId", "id", "transfer_id", "invoiceId", "invoice_id"),
    "cross_reference_id": ("firebaseId", "firebase_id"),
    "plate": ("plate", "vehicle_plate", "vehiclePlate"),
    "customer_name": ("customerName", "customer_name"),
    "customer_phone": ("customerPhone", "customer_phone", "phone"),
    "car_make": ("carMake", "vehicleMake", "vehicle_make"),
    "car_model": ("carModel", "vehicleModel", "vehicle_model"),
    "status": ("status",),
    "status_code": ("status_id", "statusId"),
    "repair_status": ("repair_status", "repairStatus"),
    "total_price": ("totalPrice", "total_price", "amount"),
    "created_at": ("createdAt", "created_at", "service_date", "serviceDate"),
    "updated_at": ("updatedAt", "updated_at"),
}

SECONDARY_ALIASES: AliasTable = {
    "id": ("id", "docId"),
    "cross_reference_id": ("cpanelInvoiceId", "cpanel_invoice_id"),
    "plate": ("plate", "vehiclePlate", "vehicle_plate"),
    "customer_name": ("customerName", "customer_name"),
    "customer_phone": ("customerPhone", "customer_phone", "phone"),
    "car_make": ("carMake", "vehicleMake"),
    "car_model": ("carModel", "vehicleModel"),
    "status": ("status",),
    "status_code": ("status_id", "statusId"),
    "repair_status": ("repair_status", "repairStatus"),
    "total_price": ("totalPrice", "total_price"),
    "created_at": ("createdAt", "serviceDate", "created_at"),
    "updated_at": ("updatedAt", "updated_at"),
}


@dataclass(frozen=True)
class FetchFilters:
    offset: int = 0
    only_unlinked: bool = False


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def resolve_aliases(raw: Mapping[str, Any], aliases: AliasTable) -> Dict[str, Any]:
    """Map source-specific keys onto canonical field names (first non-blank alias wins)."""

    resolved: Dict[str, Any] = {}
    for canonical, candidates in aliases.items():
        resolved[canonical] = None
        for key in candidates:
            value = raw.get(key)
            if not _is_blank(value):
                resolved[canonical] = value
                break
    return resolved


def to_case_record(
    raw: Mapping[str, Any], aliases: AliasTable, origin_tag: str
) -> Optional[CaseRecord]:
    fields = resolve_aliases(raw, aliases)
    record_id = coerce_text(fields["id"])
    if not record_id:
        return None
    cross_reference = coerce_text(fields["cross_reference_id"]) or None
    return CaseRecord(
        id=record_id,
        origin_tag=origin_tag,
        cross_reference_id=cross_reference,
        plate=coerce_text(fields["plate"]),
        customer_name=coerce_text(fields["customer_name"]),
        customer_phone=coerce_text(fields["customer_phone"]),
        car_make=coerce_text(fields["car_make"]),
        car_model=coerce_text(fields["car_model"]),
        status=coerce_text(fields["status"]),
        status_code=coerce_status_code(fields["status_code"]),
        repair_status=coerce_text(fields["repair_status"]),
        total_price=coerce_price(fields["total_price"]),
        created_at=coerce_timestamp(fields["created_at"]),
        updated_at=coerce_timestamp(fields["updated_at"] or fields["created_at"]),
    )


class SourceAdapter(ABC):
    name: str
    origin_tag: str
    aliases: AliasTable

    def __init__(self, timeout: float = 10.0) -> None:
        self.timeout = timeout

    @abstractmethod
    def fetch_raw(self, limit: Optional[int], filters: FetchFilters) -> Sequence[Mapping[str, Any]]:
        raise NotImplementedError

    def fetch_all(
        self, limit: Optional[int] = None, filters: FetchFilters | None = None
    ) -> List[CaseRecord]:
        """Fetch raw records and resolve them into canonical records.

        ``limit=None`` reads the whole store. Raises ``SourceUnavailable`` when
        the store cannot be read.
        """

        raw_records = self.fetch_raw(limit, filters or FetchFilters())
        records = self.canonicalize(raw_records)
        logger.info("Fetched %d records from %s store", len(records), self.name)
        return records[:limit]

    def canonicalize(self, raw_records: Iterable[Mapping[str, Any]]) -> List[CaseRecord]:
        records: List[CaseRecord] = []
        skipped = 0
        for raw in raw_records:
            if not isinstance(raw, Mapping):
                skipped += 1
                continue
            record = to_case_record(raw, self.aliases, self.origin_tag)
            if record is None:
                skipped += 1
                continue
            records.append(record)
        if skipped:
            logger.warning("Skipped %d %s records without a usable id", skipped, self.name)
        return records


def _extract_invoice_list(payload: Mapping[str, Any]) -> List[Mapping[str, Any]]:
    candidates = [payload.get("invoices")]
    data = payload.get("data")
    if isinstance(data, Mapping):
        candidates.append(data.get("invoices"))
    candidates.append(data)
    for candidate in candidates:
        if isinstance(candidate, list):
            return candidate
    return []


def _page_metadata(payload: Mapping[str, Any], key: str, default: Any) -> Any:
    if key in payload:
        return payload[key]
    data = payload.get("data")
    if isinstance(data, Mapping) and key in data:
        return data[key]
    return default


class PrimaryStoreAdapter(SourceAdapter):
    """Reads invoices from the hosted primary database over its HTTP API."""

    name = "primary"
    origin_tag = PRIMARY
    aliases = PRIMARY_ALIASES

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        endpoint: str = "get-invoices.php",
        timeout: float = 10.0,
        page_size: int = 100,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(timeout=timeout)
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.endpoint = endpoint.lstrip("/")
        self.page_size = page_size
        self.session = session or requests.Session()

    def fetch_page(self, limit: int, offset: int = 0, only_unlinked: bool = False) -> FetchPage:
        params = {
            "limit": limit,
            "offset": offset,
            "onlyCPanelOnly": "true" if only_unlinked else "false",
        }
        headers = {"X-API-Key": self.api_key, "Accept": "application/json"}
        url = f"{self.base_url}/{self.endpoint}"
        try:
            response = self.session.get(url, params=params, headers=headers, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as exc:
            raise SourceUnavailable.for_source(self.name, f"request to {url} failed: {exc}") from exc
        except ValueError as exc:
            raise SourceUnavailable.for_source(self.name, f"invalid JSON from {url}") from exc

        if not isinstance(payload, Mapping) or not payload.get("success"):
            message = payload.get("message") if isinstance(payload, Mapping) else None
            raise SourceUnavailable.for_source(self.name, message or "store reported failure")

        records = _extract_invoice_list(payload)
        total = _page_metadata(payload, "total", len(records))
        has_more = _page_metadata(payload, "hasMore", False)
        try:
            total = int(total)
        except (TypeError, ValueError):
            total = len(records)
        return FetchPage(success=True, records=list(records), total=total, has_more=bool(has_more))

    def fetch_raw(self, limit: Optional[int], filters: FetchFilters) -> List[Mapping[str, Any]]:
        collected: List[Mapping[str, Any]] = []
        offset = filters.offset
        while limit is None or len(collected) < limit:
            page_limit = self.page_size if limit is None else min(self.page_size, limit - len(collected))
            page = self.fetch_page(page_limit, offset=offset, only_unlinked=filters.only_unlinked)
            collected.extend(page.records)
            offset += len(page.records)
            if not page.has_more or not page.records:
                return collected
        logger.warning("Stopped reading the %s store at %d records; more are available", self.name, limit)
        return collected


class SecondaryStoreAdapter(SourceAdapter):
    """Reads case documents from the mobile document store through an injected loader."""

    name = "secondary"
    origin_tag = SECONDARY
    aliases = SECONDARY_ALIASES

    CACHE_KEY = "documents"

    def __init__(
        self,
        loader: Callable[[], Iterable[Mapping[str, Any]]],
        timeout: float = 10.0,
        cache: TTLCache | None = None,
    ) -> None:
        super().__init__(timeout=timeout)
        self.loader = loader
        self.cache = cache if cache is not None else TTLCache()

    def _load(self) -> List[Mapping[str, Any]]:
        try:
            return list(self.loader())
        except Exception as exc:
            raise SourceUnavailable.for_source(self.name, f"document load failed: {exc}") from exc

    def _is_linked(self, document: Any) -> bool:
        if not isinstance(document, Mapping):
            return False
        return any(not _is_blank(document.get(key)) for key in self.aliases["cross_reference_id"])

    def fetch_raw(self, limit: Optional[int], filters: FetchFilters) -> List[Mapping[str, Any]]:
        documents = self.cache.get_or_load(self.CACHE_KEY, self._load)
        if filters.only_unlinked:
            documents = [doc for doc in documents if not self._is_linked(doc)]
        if limit is None:
            return documents[filters.offset :]
        return documents[filters.offset : filters.offset + limit]

    def invalidate(self) -> None:
        self.cache.clear()

"""Fakes for the two record stores so tests never touch the network."""
from __future__ import annotations

import time
from typing import Any, Callable, List, Optional

import pytest
import requests

from case_reconciliation.adapters import PrimaryStoreAdapter, SecondaryStoreAdapter
from case_reconciliation.cache import TTLCache


class FakeResponse:
    def __init__(self, payload: Any, status_code: int = 200) -> None:
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")

    def json(self) -> Any:
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class FakeSession:
    """Replays queued responses; the last one repeats once the queue is drained."""

    def __init__(self, responses: List[Any]) -> None:
        self.responses = list(responses)
        self.calls: List[dict] = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": params, "headers": headers, "timeout": timeout})
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        return item


class PagedSession(FakeSession):
    """Serves ``invoices`` page by page according to the requested offset and limit."""

    def __init__(self, invoices: List[dict]) -> None:
        super().__init__([])
        self.invoices = list(invoices)

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": params, "headers": headers, "timeout": timeout})
        offset, limit = params["offset"], params["limit"]
        page = self.invoices[offset : offset + limit]
        has_more = offset + limit < len(self.invoices)
        return FakeResponse({"success": True, "invoices": page, "total": len(self.invoices), "hasMore": has_more})


class CountingLoader:
    def __init__(self, documents: Optional[List[dict]] = None, error: Exception | None = None, delay: float = 0.0):
        self.documents = documents or []
        self.error = error
        self.delay = delay
        self.calls = 0

    def __call__(self) -> List[dict]:
        self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.documents)


@pytest.fixture
def make_primary() -> Callable[..., PrimaryStoreAdapter]:
    """Build a primary adapter serving ``invoices`` (or raising ``error``)."""

    def _make(invoices=None, error: Exception | None = None, responses=None, **kwargs) -> PrimaryStoreAdapter:
        if responses is None:
            if error is not None:
                responses = [error]
            else:
                responses = [FakeResponse({"success": True, "invoices": invoices or [], "hasMore": False})]
        session = FakeSession(responses)
        return PrimaryStoreAdapter("https://store.test/api", api_key="secret", session=session, **kwargs)

    return _make


@pytest.fixture
def make_paged_primary() -> Callable[..., PrimaryStoreAdapter]:
    """Build a primary adapter that pages through ``invoices``."""

    def _make(invoices, page_size: int = 2, **kwargs) -> PrimaryStoreAdapter:
        session = PagedSession(invoices)
        return PrimaryStoreAdapter("https://store.test/api", api_key="secret", session=session, page_size=page_size, **kwargs)

    return _make


@pytest.fixture
def make_secondary() -> Callable[..., SecondaryStoreAdapter]:
    """Build a secondary adapter over an in-memory document list."""

    def _make(documents=None, error: Exception | None = None, delay: float = 0.0, **kwargs) -> SecondaryStoreAdapter:
        loader = CountingLoader(documents, error=error, delay=delay)
        kwargs.setdefault("cache", TTLCache(ttl=0))
        return SecondaryStoreAdapter(loader=loader, **kwargs)

    return _make


@pytest.fixture
def fake_response():
    return FakeResponse


@pytest.fixture
def fake_session():
    return FakeSession

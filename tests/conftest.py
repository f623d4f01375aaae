"""Fixtures compartidos: Redis falso, store en memoria y gateway falso."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

import fakeredis
import pytest

from price_checker.base import PriceGateway, TrackedProductStore
from price_checker.models import PriceHistoryEntry, ProductSnapshot, Source, TrackedProduct
from price_checker.queue import PriceCheckQueue

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def make_product(
    index: int,
    last_checked_at: Optional[datetime] = None,
    reference_url: Optional[str] = "default",
    price: str = "100.00",
    source: Source = Source.AMAZON
) -> TrackedProduct:
    if reference_url == "default":
        reference_url = f"https://www.amazon.com.mx/dp/B0{index:08d}"
    return TrackedProduct(
        id=str(index),
        external_product_id=f"B0{index:08d}",
        source=source,
        reference_url=reference_url,
        current_price=Decimal(price),
        last_checked_at=last_checked_at,
    )


class InMemoryStore(TrackedProductStore):
    """Store en memoria con las mismas reglas que Supabase (last_checked no retrocede)."""

    def __init__(self, products: Sequence[TrackedProduct] = ()):
        self.products: Dict[str, TrackedProduct] = {p.id: p for p in products}
        self.history: List[PriceHistoryEntry] = []
        self.list_error: Optional[Exception] = None
        self.fail_update_on: Optional[str] = None

    def list_all_tracked_products(self) -> List[TrackedProduct]:
        if self.list_error is not None:
            raise self.list_error
        return list(self.products.values())

    def update_tracked_product_price(self, tracked_product_id, price, checked_at=None):
        if tracked_product_id == self.fail_update_on:
            raise RuntimeError(f"write failed for {tracked_product_id}")
        product = self.products[tracked_product_id]
        if product.last_checked_at is not None and checked_at < product.last_checked_at:
            return
        self.products[tracked_product_id] = product.model_copy(
            update={"current_price": price, "last_checked_at": checked_at}
        )

    def append_price_history(self, tracked_product_id, price, recorded_at=None):
        self.history.append(
            PriceHistoryEntry(tracked_product_id=tracked_product_id, price=price, recorded_at=recorded_at)
        )

    def history_for(self, tracked_product_id: str) -> List[PriceHistoryEntry]:
        return [entry for entry in self.history if entry.tracked_product_id == tracked_product_id]


class FakeGateway(PriceGateway):
    """Devuelve items preconfigurados por URL y registra cada llamada."""

    def __init__(self, items_by_url: Optional[Dict[str, Dict[str, Any]]] = None, error: Optional[Exception] = None):
        self.items_by_url = items_by_url or {}
        self.error = error
        self.calls: List[List[str]] = []

    def fetch_batch(self, urls: Sequence[str]) -> List[Dict[str, Any]]:
        self.calls.append(list(urls))
        if self.error is not None:
            raise self.error
        return [self.items_by_url[url] for url in urls if url in self.items_by_url]


class SpyQueue:
    """Registra los enqueue del scheduler sin Redis."""

    def __init__(self):
        self.calls: List[Dict[str, Any]] = []

    def enqueue(self, products: Sequence[ProductSnapshot], delay: int = 0, job_id: Optional[str] = None):
        self.calls.append({"products": list(products), "delay": delay, "job_id": job_id})


class FixedClock:
    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def redis_conn():
    connection = fakeredis.FakeRedis()
    yield connection
    connection.flushall()


@pytest.fixture
def queue(redis_conn) -> PriceCheckQueue:
    return PriceCheckQueue(redis_conn, name="price-check-test", keep_completed=100, keep_failed=500)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()

import json
from datetime import datetime, timezone
from decimal import Decimal

import httpx
import pytest

from api.cache import ResultCache, price_history_key
from api.supabase_client import TRACKED_COLUMNS, SupabaseStore
from price_checker.models import Source

CHECKED_AT = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def recording_transport(requests, rows=None, status_code=200):
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.method == "GET":
            return httpx.Response(status_code, json=rows or [])
        return httpx.Response(status_code if status_code != 200 else 204)

    return httpx.MockTransport(handler)


def make_store(transport, cache=None):
    return SupabaseStore(url="https://proj.supabase.test/", api_key="service-key", cache=cache, transport=transport)


class TestListTrackedProducts:
    def test_parses_rows_and_skips_invalid(self):
        requests = []
        rows = [
            {"id": 1, "product_id": "B0001", "source": "amazon",
             "product_url": "https://www.amazon.com.mx/dp/B0001", "current_price": "10.50",
             "last_checked": "2026-10-19T10:00:00+00:00"},
            {"id": 2, "product_id": "MLM2", "source": "mercadolibre", "product_url": None,
             "current_price": None, "last_checked": None},
            {"id": 3, "product_id": "X3", "source": "ebay"},
        ]
        store = make_store(recording_transport(requests, rows))

        products = store.list_all_tracked_products()

        assert [p.id for p in products] == ["1", "2"]
        assert products[0].source == Source.AMAZON
        assert products[0].current_price == Decimal("10.50")
        assert products[0].last_checked_at == datetime(2026, 10, 19, 10, 0, tzinfo=timezone.utc)
        assert products[1].reference_url is None
        assert products[1].last_checked_at is None

        request = requests[0]
        assert request.url.path == "/rest/v1/tracked_products"
        assert request.url.params["select"] == TRACKED_COLUMNS
        assert request.headers["apikey"] == "service-key"
        assert request.headers["Authorization"] == "Bearer service-key"

    def test_read_error_propagates(self):
        store = make_store(recording_transport([], status_code=500))
        with pytest.raises(httpx.HTTPStatusError):
            store.list_all_tracked_products()


class TestWrites:
    def test_update_is_conditional_on_last_checked(self):
        requests = []
        store = make_store(recording_transport(requests))

        store.update_tracked_product_price("7", Decimal("99.90"), checked_at=CHECKED_AT)

        request = requests[0]
        assert request.method == "PATCH"
        assert request.url.params["id"] == "eq.7"
        assert request.url.params["or"] == f'(last_checked.is.null,last_checked.lte."{CHECKED_AT.isoformat()}")'
        assert json.loads(request.content) == {"current_price": "99.90", "last_checked": CHECKED_AT.isoformat()}
        assert request.headers["Prefer"] == "return=minimal"

    def test_append_history_invalidates_cached_history(self, redis_conn):
        requests = []
        cache = ResultCache(redis_conn)
        cache.set(price_history_key("7", "7d"), [1])
        cache.set(price_history_key("8", "7d"), [2])
        store = make_store(recording_transport(requests), cache=cache)

        store.append_price_history("7", Decimal("99.90"), recorded_at=CHECKED_AT)

        request = requests[0]
        assert request.method == "POST"
        assert request.url.path == "/rest/v1/price_history"
        assert json.loads(request.content) == {
            "tracked_product_id": "7", "price": "99.90", "recorded_at": CHECKED_AT.isoformat()
        }
        assert cache.get(price_history_key("7", "7d")) is None
        assert cache.get(price_history_key("8", "7d")) == [2]

    def test_write_error_propagates(self):
        store = make_store(recording_transport([], status_code=503))
        with pytest.raises(httpx.HTTPStatusError):
            store.update_tracked_product_price("7", Decimal("1"), checked_at=CHECKED_AT)


def test_missing_configuration_is_rejected(monkeypatch):
    from api import supabase_client
    monkeypatch.setattr(supabase_client.settings, "supabase_url", None)
    with pytest.raises(ValueError):
        SupabaseStore(api_key="key")

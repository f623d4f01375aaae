import asyncio

import httpx
import pytest

from api.apify_client import ApifyClient, GatewayRunError, GatewayTimeoutError
from api.cache import ResultCache, scrape_key

URLS = ["https://www.amazon.com.mx/dp/B01", "https://www.amazon.com.mx/dp/B02"]
ITEMS = [{"id": "B01", "price": "10.00"}, {"id": "B02", "price": 20}]


def apify_transport(statuses, items=ITEMS, requests=None):
    """Simula la API de Apify: el POST devuelve statuses[0], cada poll el siguiente."""
    remaining = list(statuses)

    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        path = request.url.path
        if request.method == "POST" and path.endswith("/acts/actor-1/runs"):
            return httpx.Response(201, json={"data": {"id": "run-1", "status": remaining.pop(0), "defaultDatasetId": "ds-1"}})
        if path.endswith("/actor-runs/run-1"):
            return httpx.Response(200, json={"data": {"id": "run-1", "status": remaining.pop(0), "defaultDatasetId": "ds-1"}})
        if path.endswith("/datasets/ds-1/items"):
            return httpx.Response(200, json=items)
        return httpx.Response(404)

    return httpx.MockTransport(handler)


def make_client(transport, **kwargs):
    return ApifyClient(
        token="token-123",
        actor_id="actor-1",
        base_url="https://api.apify.test/v2",
        transport=transport,
        **kwargs
    )


class TestFetchBatch:
    def test_polls_until_succeeded_and_returns_items(self):
        requests = []
        client = make_client(apify_transport(["RUNNING", "RUNNING", "SUCCEEDED"], requests=requests))

        assert client.fetch_batch(URLS) == ITEMS

        start = requests[0]
        assert start.headers["Authorization"] == "Bearer token-123"
        assert start.url.params["build"] == "1.0.4"
        body = httpx.Response(200, content=start.content).json()
        assert body == {"source": "all", "query": "", "productUrls": URLS, "maxResults": 2}
        assert [r.url.path.split("/")[-1] for r in requests] == ["runs", "run-1", "run-1", "items"]

    def test_failed_run_raises(self):
        client = make_client(apify_transport(["RUNNING", "FAILED"]))
        with pytest.raises(GatewayRunError) as exc_info:
            client.fetch_batch(URLS)
        assert exc_info.value.status == "FAILED"

    def test_wait_budget_exhausted_raises(self):
        client = make_client(apify_transport(["RUNNING"]), wait_seconds=0)
        with pytest.raises(GatewayTimeoutError):
            client.fetch_batch(URLS)

    def test_http_error_raises(self):
        client = make_client(httpx.MockTransport(lambda request: httpx.Response(502)))
        with pytest.raises(httpx.HTTPStatusError):
            client.fetch_batch(URLS)

    def test_empty_urls_make_no_requests(self):
        requests = []
        client = make_client(apify_transport([], requests=requests))
        assert client.fetch_batch([]) == []
        assert requests == []

    def test_rechecks_skip_cache_by_default(self, redis_conn):
        cache = ResultCache(redis_conn)
        cache.set(scrape_key(product_urls=URLS), [{"id": "stale", "price": 1}])
        client = make_client(apify_transport(["SUCCEEDED"]), cache=cache)

        assert client.fetch_batch(URLS) == ITEMS

    def test_rechecks_use_cache_when_enabled(self, redis_conn):
        cache = ResultCache(redis_conn)
        requests = []
        client = make_client(apify_transport(["SUCCEEDED"], requests=requests), cache=cache, use_cache_for_rechecks=True)

        assert client.fetch_batch(URLS) == ITEMS
        assert client.fetch_batch(URLS) == ITEMS
        assert len([r for r in requests if r.method == "POST"]) == 1


class TestScrapeProducts:
    def test_mercadolibre_is_disabled(self):
        requests = []
        client = make_client(apify_transport([], requests=requests))
        assert asyncio.run(client.scrape_products(source="mercadolibre", query="laptop")) == []
        assert requests == []

    def test_search_is_cached_and_invalidated(self, redis_conn):
        cache = ResultCache(redis_conn)
        requests = []
        client = make_client(apify_transport(["SUCCEEDED", "SUCCEEDED"], requests=requests), cache=cache)

        assert asyncio.run(client.scrape_products(source="all", query="laptop")) == ITEMS
        assert cache.get(scrape_key("amazon", "laptop")) == ITEMS
        assert asyncio.run(client.scrape_products(source="amazon", query="laptop")) == ITEMS
        assert len([r for r in requests if r.method == "POST"]) == 1

        client.invalidate_cache("amazon", "laptop")
        assert cache.get(scrape_key("amazon", "laptop")) is None


def test_missing_token_is_rejected(monkeypatch):
    from api import apify_client
    monkeypatch.setattr(apify_client.settings, "apify_token", None)
    with pytest.raises(ValueError):
        ApifyClient()

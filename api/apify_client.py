"""
Cliente del actor ShopSavvy-Price-Tracker en Apify (Price Fetch Gateway).

Usa la API REST de Apify:
    POST /acts/{actor}/runs          -> inicia el run
    GET  /actor-runs/{run_id}        -> estado (waitForFinish máx 60s por request)
    GET  /datasets/{dataset}/items   -> resultados
"""

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional, Sequence

import httpx

from api.cache import ResultCache, scrape_key
from api.config import settings
from price_checker.base import PriceGateway

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = {"SUCCEEDED", "FAILED", "ABORTED", "TIMED-OUT"}
MAX_WAIT_PER_REQUEST = 60


class GatewayError(Exception):
    """Falla transitoria del gateway; la cola reintenta el batch."""

    def __init__(self, message: str, run_id: str, status: str):
        super().__init__(message)
        self.run_id = run_id
        self.status = status


class GatewayRunError(GatewayError):
    """El run del actor terminó con un estado distinto de SUCCEEDED."""

    def __init__(self, run_id: str, status: str):
        super().__init__(f"Apify run {run_id} terminó con estado {status}", run_id, status)


class GatewayTimeoutError(GatewayError):
    """El run no terminó dentro del presupuesto de espera."""

    def __init__(self, run_id: str, status: str, waited: float):
        super().__init__(f"Apify run {run_id} sigue en {status} después de {waited:.0f}s", run_id, status)


class ApifyClient(PriceGateway):
    """Cliente para el actor de scraping de precios."""

    def __init__(
        self,
        token: str = None,
        actor_id: str = None,
        base_url: str = None,
        build: str = None,
        memory_mb: int = None,
        wait_seconds: int = None,
        cache: Optional[ResultCache] = None,
        use_cache_for_rechecks: bool = False,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Inicializa el cliente Apify.

        Args:
            token: API token (default: settings.apify_token)
            actor_id: ID del actor (default: settings.apify_actor_id)
            base_url: URL base de la API (default: settings.apify_base_url)
            build: Build del actor
            memory_mb: Memoria del run
            wait_seconds: Presupuesto total de espera por run
            cache: Cache de resultados (opcional)
            use_cache_for_rechecks: Si True, los re-chequeos también usan cache
            transport: Transport httpx alternativo (tests)
        """
        self.token = token or settings.apify_token
        if not self.token:
            raise ValueError("APIFY_TOKEN no está configurado")
        self.actor_id = actor_id or settings.apify_actor_id
        self.base_url = (base_url or settings.apify_base_url).rstrip("/")
        self.build = build or settings.apify_build
        self.memory_mb = memory_mb or settings.apify_memory_mb
        self.wait_seconds = wait_seconds if wait_seconds is not None else settings.apify_wait_seconds
        self.cache = cache
        self.use_cache_for_rechecks = use_cache_for_rechecks
        self.transport = transport
        self.headers = {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/json"
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=self.headers,
            timeout=MAX_WAIT_PER_REQUEST + 30.0,
            transport=self.transport
        )

    async def run_actor(self, actor_input: Dict[str, Any]) -> List[Dict[str, Any]]:
        """
        Inicia un run del actor, espera a que termine y devuelve los items del dataset.

        Args:
            actor_input: Input del actor ({source, query, productUrls, maxResults})

        Returns:
            Items del dataset del run

        Raises:
            GatewayRunError: Si el run termina con estado != SUCCEEDED
            GatewayTimeoutError: Si el run no termina dentro de wait_seconds
            httpx.HTTPStatusError: Si alguna petición falla
        """
        started = time.monotonic()

        async with self._client() as client:
            response = await client.post(
                f"/acts/{self.actor_id}/runs",
                params={
                    "build": self.build,
                    "memory": self.memory_mb,
                    "waitForFinish": min(MAX_WAIT_PER_REQUEST, self.wait_seconds),
                },
                json=actor_input
            )
            response.raise_for_status()
            run = response.json()["data"]

            while run["status"] not in TERMINAL_STATUSES:
                waited = time.monotonic() - started
                remaining = self.wait_seconds - waited
                if remaining <= 0:
                    raise GatewayTimeoutError(run["id"], run["status"], waited)

                response = await client.get(
                    f"/actor-runs/{run['id']}",
                    params={"waitForFinish": int(min(MAX_WAIT_PER_REQUEST, max(1, remaining)))}
                )
                response.raise_for_status()
                run = response.json()["data"]

            duration = time.monotonic() - started
            logger.info("🕷️  Apify run %s terminó en %.2fs con estado %s", run["id"], duration, run["status"])

            if run["status"] != "SUCCEEDED":
                raise GatewayRunError(run["id"], run["status"])

            response = await client.get(
                f"/datasets/{run['defaultDatasetId']}/items",
                params={"clean": "true", "format": "json"}
            )
            response.raise_for_status()
            items = response.json()

        logger.info("✅ Apify devolvió %d items", len(items))
        return items

    async def recheck_prices(self, product_urls: Sequence[str]) -> List[Dict[str, Any]]:
        """
        Re-chequea precios de productos ya seguidos.

        Por defecto no usa cache: un re-chequeo siempre quiere datos frescos.
        """
        if not product_urls:
            return []

        urls = list(product_urls)
        key = scrape_key(product_urls=urls)
        if self.cache is not None and self.use_cache_for_rechecks:
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        logger.info("Re-chequeando precios para %d productos...", len(urls))
        items = await self.run_actor(
            {"source": "all", "query": "", "productUrls": urls, "maxResults": len(urls)}
        )

        if self.cache is not None and self.use_cache_for_rechecks and items:
            self.cache.set(key, items)
        return items

    async def scrape_products(
        self,
        source: str = "all",
        query: str = "",
        product_urls: Optional[Sequence[str]] = None,
        max_results: int = 20
    ) -> List[Dict[str, Any]]:
        """
        Búsqueda general en el actor, con cache de resultados.

        Args:
            source: 'amazon' | 'mercadolibre' | 'all'
            query: Palabra clave
            product_urls: URLs directas (opcional)
            max_results: Máximo de productos por fuente

        Returns:
            Productos scrapeados (lista vacía si la fuente no está disponible)
        """
        # Mercado Libre requiere scraping con navegador; por ahora solo Amazon
        if source == "all":
            source = "amazon"
        if source == "mercadolibre":
            logger.warning("⚠️  Scraper de Mercado Libre deshabilitado temporalmente")
            return []

        urls = list(product_urls or [])
        key = scrape_key(source, query, urls)
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                logger.info("✅ Cache hit: %d productos", len(cached))
                return cached

        items = await self.run_actor(
            {"source": source, "query": query, "productUrls": urls, "maxResults": max_results}
        )

        if self.cache is not None:
            if items:
                self.cache.set(key, items)
            else:
                logger.warning("⚠️  Sin productos, no se guarda en cache")
        return items

    def invalidate_cache(self, source: str = "all", query: str = "", product_urls: Optional[Sequence[str]] = None) -> None:
        if self.cache is not None:
            key = scrape_key(source, query, list(product_urls or []))
            self.cache.delete(key)
            logger.info("Cache invalidada: %s", key)

    def fetch_batch(self, urls: Sequence[str]) -> List[Dict[str, Any]]:
        """Versión sincrónica de recheck_prices (la usa el worker RQ)."""
        return asyncio.run(self.recheck_prices(urls))

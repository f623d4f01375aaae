"""
Store de productos seguidos sobre Supabase (PostgREST vía HTTP).

Tablas:
    tracked_products (id, product_id, source, product_url, current_price, last_checked, created_at, ...)
    price_history    (tracked_product_id, price, recorded_at)
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

import httpx
from pydantic import ValidationError

from api.cache import ResultCache, price_history_key
from api.config import settings
from price_checker.base import TrackedProductStore
from price_checker.models import TrackedProduct

logger = logging.getLogger(__name__)

TRACKED_COLUMNS = "id,product_id,source,product_url,current_price,last_checked"


class SupabaseStore(TrackedProductStore):
    """Cliente PostgREST para tracked_products y price_history."""

    def __init__(
        self,
        url: str = None,
        api_key: str = None,
        cache: Optional[ResultCache] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None
    ):
        """
        Inicializa el store.

        Args:
            url: URL del proyecto Supabase (default: settings.supabase_url)
            api_key: Service role o anon key (default: settings.supabase_key)
            cache: Cache donde invalidar historiales al agregar precios
            timeout: Timeout por request en segundos
            transport: Transport httpx alternativo (tests)
        """
        url = url or settings.supabase_url
        api_key = api_key or settings.supabase_key
        if not url or not api_key:
            raise ValueError("Faltan SUPABASE_URL o SUPABASE_SERVICE_ROLE_KEY/SUPABASE_ANON_KEY")

        self.cache = cache
        self.client = httpx.Client(
            base_url=f"{url.rstrip('/')}/rest/v1",
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport
        )

    def list_all_tracked_products(self) -> List[TrackedProduct]:
        """
        Todos los productos seguidos, más viejos primero.

        Raises:
            httpx.HTTPStatusError: Si la consulta falla
        """
        response = self.client.get(
            "/tracked_products",
            params={"select": TRACKED_COLUMNS, "order": "created_at.asc"}
        )
        response.raise_for_status()

        products = []
        for row in response.json():
            try:
                products.append(TrackedProduct.model_validate(row))
            except ValidationError as e:
                logger.warning("Producto %s ignorado: fila inválida (%s)", row.get("id"), e.errors()[0].get("msg"))
        return products

    def update_tracked_product_price(
        self,
        tracked_product_id: str,
        price: Decimal,
        checked_at: Optional[datetime] = None
    ) -> None:
        """
        Actualiza current_price y last_checked.

        La condición sobre last_checked evita que un chequeo viejo (reintento
        atrasado) pise uno más nuevo: last_checked nunca retrocede.
        """
        checked_at = checked_at or datetime.now(timezone.utc)
        stamp = checked_at.isoformat()
        response = self.client.patch(
            "/tracked_products",
            params={
                "id": f"eq.{tracked_product_id}",
                # Valores con ":" y "." van entre comillas dentro de or=()
                "or": f'(last_checked.is.null,last_checked.lte."{stamp}")',
            },
            json={"current_price": str(price), "last_checked": stamp},
            headers={"Prefer": "return=minimal"}
        )
        response.raise_for_status()

    def append_price_history(
        self,
        tracked_product_id: str,
        price: Decimal,
        recorded_at: Optional[datetime] = None
    ) -> None:
        recorded_at = recorded_at or datetime.now(timezone.utc)
        response = self.client.post(
            "/price_history",
            json={
                "tracked_product_id": tracked_product_id,
                "price": str(price),
                "recorded_at": recorded_at.isoformat(),
            },
            headers={"Prefer": "return=minimal"}
        )
        response.raise_for_status()

        # El historial cacheado de este producto quedó viejo (todos los períodos)
        if self.cache is not None:
            self.cache.delete_pattern(price_history_key(tracked_product_id, "*"))

    def close(self) -> None:
        self.client.close()

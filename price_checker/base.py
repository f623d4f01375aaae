"""
Interfaces de los colaboradores externos del worker.
Define lo que deben implementar el gateway de precios y el store de productos.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from price_checker.models import TrackedProduct


class PriceGateway:
    """Servicio externo que consulta precios actuales en los marketplaces."""

    def fetch_batch(self, urls: Sequence[str]) -> List[Dict[str, Any]]:
        """
        Consulta precio/título/disponibilidad para un conjunto de URLs.

        Es best-effort: puede omitir productos no disponibles.

        Args:
            urls: URLs de producto

        Returns:
            Lista de resultados crudos ({id?, url?, price, ...})
        """
        raise NotImplementedError("Cada gateway debe implementar fetch_batch")


class TrackedProductStore:
    """Store durable de productos seguidos + historial de precios."""

    def list_all_tracked_products(self) -> List[TrackedProduct]:
        raise NotImplementedError("Cada store debe implementar list_all_tracked_products")

    def update_tracked_product_price(
        self,
        tracked_product_id: str,
        price: Decimal,
        checked_at: Optional[datetime] = None
    ) -> None:
        """
        Actualiza current_price y last_checked de un producto.

        Args:
            tracked_product_id: ID interno del producto
            price: Nuevo precio
            checked_at: Timestamp del chequeo (default: ahora)
        """
        raise NotImplementedError("Cada store debe implementar update_tracked_product_price")

    def append_price_history(
        self,
        tracked_product_id: str,
        price: Decimal,
        recorded_at: Optional[datetime] = None
    ) -> None:
        raise NotImplementedError("Cada store debe implementar append_price_history")

    def close(self) -> None:
        """Libera recursos del store (conexiones HTTP). Por defecto no hace nada."""

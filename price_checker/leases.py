"""
Leases por producto en Redis.

Evitan que el mismo producto quede en dos batches en vuelo cuando el
scheduler corre dos veces seguidas (tick horario + trigger manual).
El lease se toma al encolar y se libera cuando el batch termina bien;
si el job falla definitivamente, el lease expira solo.
"""

import logging
from typing import Iterable

from redis import Redis

logger = logging.getLogger(__name__)


class ProductLeases:
    """Lease SET NX EX por tracked product."""

    def __init__(self, connection: Redis, ttl_seconds: int = 30 * 60, prefix: str = "price-check:lease"):
        self.connection = connection
        self.ttl_seconds = ttl_seconds
        self.prefix = prefix

    def _key(self, tracked_product_id: str) -> str:
        return f"{self.prefix}:{tracked_product_id}"

    def claim(self, tracked_product_id: str, owner: str = "scheduler") -> bool:
        """
        Intenta tomar el lease de un producto.

        Returns:
            True si el lease quedó tomado, False si otro chequeo ya lo tiene
        """
        claimed = self.connection.set(
            self._key(tracked_product_id), owner, nx=True, ex=self.ttl_seconds
        )
        return bool(claimed)

    def is_held(self, tracked_product_id: str) -> bool:
        return bool(self.connection.exists(self._key(tracked_product_id)))

    def release(self, tracked_product_ids: Iterable[str]) -> int:
        keys = [self._key(product_id) for product_id in tracked_product_ids]
        if not keys:
            return 0
        released = self.connection.delete(*keys)
        logger.debug("Leases liberados: %d/%d", released, len(keys))
        return released

"""
Cache de resultados en Redis (TTL corto).

Evita repetir llamadas al gateway dentro de la ventana de cache y guarda
historiales de precio ya consultados. Un error de Redis nunca rompe al
llamador: se loguea y se trata como miss.
"""

import json
import logging
from typing import Any, Optional, Sequence

from redis import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL = 30 * 60


def scrape_key(source: str = "all", query: str = "", product_urls: Optional[Sequence[str]] = None) -> str:
    """Clave de cache para un request al gateway."""
    if product_urls:
        return f"apify:urls:{','.join(product_urls)}"
    return f"apify:search:{source}:{query}"


def price_history_key(tracked_product_id: str, period: str = "30d") -> str:
    return f"price-history:{tracked_product_id}:{period}"


class ResultCache:
    """Cache JSON clave/valor sobre Redis."""

    def __init__(self, connection: Redis, default_ttl: int = DEFAULT_CACHE_TTL):
        self.connection = connection
        self.default_ttl = default_ttl

    def get(self, key: str) -> Optional[Any]:
        try:
            data = self.connection.get(key)
        except RedisError as e:
            logger.error("Cache get error (%s): %s", key, e)
            return None

        if data is None:
            logger.debug("Cache MISS: %s", key)
            return None
        logger.debug("Cache HIT: %s", key)
        return json.loads(data)

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        ttl = ttl or self.default_ttl
        try:
            self.connection.set(key, json.dumps(value, default=str), ex=ttl)
        except RedisError as e:
            logger.error("Cache set error (%s): %s", key, e)
            return False
        logger.debug("Cache SET: %s (TTL: %ss)", key, ttl)
        return True

    def delete(self, key: str) -> bool:
        try:
            self.connection.delete(key)
        except RedisError as e:
            logger.error("Cache delete error (%s): %s", key, e)
            return False
        return True

    def delete_pattern(self, pattern: str) -> int:
        """
        Borra todas las claves que coinciden con un patrón (ej: "price-history:42:*").

        Usa SCAN en vez de KEYS para no bloquear Redis.

        Returns:
            Cantidad de claves borradas (0 si hubo error)
        """
        try:
            keys = list(self.connection.scan_iter(match=pattern, count=100))
            if not keys:
                return 0
            deleted = self.connection.delete(*keys)
        except RedisError as e:
            logger.error("Cache pattern delete error (%s): %s", pattern, e)
            return 0
        logger.debug("Cache: %d claves borradas para %s", deleted, pattern)
        return deleted

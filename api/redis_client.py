"""
Conexión a Redis compartida por la cola RQ, la cache y los leases.
"""

import logging

from redis import Redis

logger = logging.getLogger(__name__)


def normalize_redis_url(redis_url: str) -> str:
    """
    Upstash requiere SSL - convierte redis:// a rediss:// solo para Upstash.

    Args:
        redis_url: URL de Redis tal como viene del entorno

    Returns:
        URL lista para Redis.from_url
    """
    if redis_url.startswith('redis://') and 'upstash.io' in redis_url:
        return redis_url.replace('redis://', 'rediss://', 1)
    return redis_url


def create_redis_connection(redis_url: str, decode_responses: bool = False) -> Redis:
    """
    Crea una conexión a Redis con los parámetros usados por el worker.

    RQ necesita decode_responses=False (los payloads de los jobs son binarios).

    Args:
        redis_url: URL de Redis
        decode_responses: Si True, devuelve str en vez de bytes

    Returns:
        Cliente Redis (la conexión es lazy, no hace ping)
    """
    url = normalize_redis_url(redis_url)
    if url.startswith('rediss://'):
        logger.info("🔒 Usando SSL para conexión a Upstash Redis")

    return Redis.from_url(
        url,
        decode_responses=decode_responses,
        socket_keepalive=True,
        health_check_interval=30,
        socket_connect_timeout=10,
        retry_on_timeout=True
    )

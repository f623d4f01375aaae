"""
Task RQ que ejecuta un batch de re-chequeo de precios.

Los workers del pool importan `run_price_check_batch` por nombre
(ver price_checker.queue.JOB_FUNC). Cada ejecución arma sus propios
clientes desde settings: el processor no guarda estado entre jobs.
"""

import logging
from typing import Any, Dict, List, Optional

from redis import Redis
from rq import get_current_job

from api.apify_client import ApifyClient
from api.cache import ResultCache
from api.config import settings
from api.redis_client import create_redis_connection
from api.supabase_client import SupabaseStore
from price_checker.leases import ProductLeases
from price_checker.models import ProductSnapshot
from price_checker.processor import BatchProcessor

logger = logging.getLogger(__name__)


def build_leases(connection: Redis) -> Optional[ProductLeases]:
    if not settings.price_check_lease_enabled:
        return None
    return ProductLeases(connection, ttl_seconds=settings.price_check_lease_minutes * 60)


def build_processor(connection: Optional[Redis] = None) -> BatchProcessor:
    """
    Arma el processor con gateway, store, cache y leases configurados.

    Args:
        connection: Conexión Redis a reutilizar (default: nueva desde settings)
    """
    redis_conn = connection or create_redis_connection(settings.redis_url)
    cache = ResultCache(redis_conn, default_ttl=settings.cache_ttl_seconds)
    gateway = ApifyClient(cache=cache, use_cache_for_rechecks=settings.price_check_use_cache)
    store = SupabaseStore(cache=cache)
    return BatchProcessor(gateway, store, leases=build_leases(redis_conn))


def _close_store(processor: BatchProcessor) -> None:
    # Un error al cerrar no debe tapar el error real del batch
    try:
        processor.store.close()
    except Exception as e:
        logger.warning("⚠️  Error cerrando el store: %s", e)


def run_price_check_batch(products: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Procesa un batch encolado por el scheduler.

    Cualquier excepción se propaga: RQ reintenta el batch completo con
    backoff y, al agotar los intentos, lo deja en el registro de fallidos.

    Args:
        products: Snapshots serializados ({tracked_product_id, external_product_id, source, reference_url})

    Returns:
        {updated, skipped, timestamp, job_id}
    """
    job = get_current_job()
    if job is not None:
        job.meta["attempts"] = job.meta.get("attempts", 0) + 1
        job.save_meta()
        logger.info("🚀 Job %s, intento %d", job.id, job.meta["attempts"])

    snapshots = [ProductSnapshot.model_validate(product) for product in products]
    processor = build_processor(job.connection if job is not None else None)

    try:
        result = processor.process(snapshots, job_id=job.id if job is not None else None)
    finally:
        _close_store(processor)

    return result.model_dump(mode="json")

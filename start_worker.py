#!/usr/bin/env python3
"""
Script de inicio del worker de precios (RQ) con soporte SSL para Upstash Redis.
"""

import logging
import sys

from api.config import settings
from api.redis_client import create_redis_connection
from api.supabase_client import SupabaseStore
from api.tasks import build_leases
from price_checker.queue import PriceCheckQueue
from price_checker.scheduler import BatchScheduler
from price_checker.worker import PriceCheckWorker

logger = logging.getLogger("start_worker")


def main() -> int:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
    )

    if not settings.enable_price_worker:
        logger.info("Worker de precios deshabilitado (ENABLE_PRICE_WORKER=true para habilitar)")
        return 0

    if not settings.gateway_configured or not settings.store_configured:
        logger.warning("Falta APIFY_TOKEN o credenciales de Supabase, el worker no arranca")
        return 0

    redis_conn = create_redis_connection(settings.redis_url)

    # Verificar conexión
    try:
        redis_conn.ping()
        logger.info("✅ Connected to Redis successfully")
    except Exception as e:
        logger.error("❌ Failed to connect to Redis: %s", e)
        raise

    queue = PriceCheckQueue.from_settings(redis_conn, settings)
    scheduler = BatchScheduler.from_settings(
        SupabaseStore(), queue, settings, leases=build_leases(redis_conn)
    )
    worker = PriceCheckWorker(
        redis_conn,
        queue,
        scheduler,
        interval_minutes=settings.price_check_interval_minutes,
        concurrency=settings.price_check_concurrency
    )
    worker.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())

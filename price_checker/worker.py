"""
Runtime del worker de precios.

Arranque: conexión Redis -> cola -> scheduler -> chequeo inicial ->
tick periódico (APScheduler) -> pool de workers RQ con scheduler
(necesario para jobs diferidos y backoff de reintentos).
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from redis import Redis
from rq.worker_pool import WorkerPool

from price_checker.queue import PriceCheckQueue
from price_checker.scheduler import BatchScheduler

logger = logging.getLogger(__name__)


class PriceCheckWorker:
    """Dueño de la cola, el scheduler y el pool durante la vida del proceso."""

    def __init__(
        self,
        connection: Redis,
        queue: PriceCheckQueue,
        scheduler: BatchScheduler,
        interval_minutes: int = 60,
        concurrency: int = 5
    ):
        self.connection = connection
        self.queue = queue
        self.scheduler = scheduler
        self.interval_minutes = interval_minutes
        self.concurrency = concurrency
        self._timer: Optional[BackgroundScheduler] = None

    def tick(self) -> int:
        """
        Un ciclo de scheduling + poda de jobs viejos.

        Nunca lanza: un error acá no debe tirar el proceso, se reintenta
        en el próximo tick.

        Returns:
            Batches encolados (0 si hubo error)
        """
        try:
            scheduled = self.scheduler.schedule_all()
        except Exception:
            logger.exception("❌ Error programando re-chequeos")
            return 0

        try:
            self.queue.prune()
        except Exception:
            logger.exception("❌ Error podando jobs viejos")
        return scheduled

    def start_timer(self) -> BackgroundScheduler:
        timer = BackgroundScheduler(timezone=timezone.utc)
        timer.add_job(
            self.tick,
            "interval",
            minutes=self.interval_minutes,
            id="price-check-schedule",
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now(timezone.utc),
        )
        timer.start()
        self._timer = timer
        logger.info("⏰ Chequeo de precios cada %d minutos", self.interval_minutes)
        return timer

    def run(self) -> None:
        """Bloquea hasta recibir SIGINT/SIGTERM (los maneja el pool de RQ)."""
        logger.info("🚀 Iniciando worker de precios (%d workers)...", self.concurrency)

        # El primer tick corre apenas arranca el timer
        self.start_timer()

        pool = WorkerPool([self.queue.name], connection=self.connection, num_workers=self.concurrency)
        try:
            logger.info("👷 Workers iniciados, esperando jobs...")
            pool.start()
        finally:
            self.shutdown()

    def shutdown(self) -> None:
        logger.info("Cerrando worker de precios...")
        if self._timer is not None and self._timer.running:
            self._timer.shutdown(wait=False)
        self._timer = None
        self.queue.close()
        logger.info("✓ Worker cerrado")

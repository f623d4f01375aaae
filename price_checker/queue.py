"""
Cola de jobs de re-chequeo de precios sobre RQ.

Envoltorio delgado: política de reintentos, retención acotada de jobs
terminados y consultas de estado para monitoreo. La instancia se crea
explícitamente en el arranque del worker (o de la API) y se inyecta.
"""

import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional, Sequence

from redis import Redis
from rq import Queue, Retry
from rq.job import Job
from rq.registry import (
    FailedJobRegistry,
    FinishedJobRegistry,
    ScheduledJobRegistry,
    StartedJobRegistry,
)
from rq.results import Result
from rq.suspension import is_suspended, resume, suspend

from price_checker.models import JobRecord, ProductSnapshot, QueueCounts, QueueStatus, RecentJobs

logger = logging.getLogger(__name__)

JOB_FUNC = "api.tasks.run_price_check_batch"


class PriceCheckQueue:
    """Cola persistente de batches de re-chequeo."""

    def __init__(
        self,
        connection: Redis,
        name: str = "price-check",
        attempts: int = 3,
        backoff_seconds: int = 5,
        job_timeout_seconds: int = 10 * 60,
        keep_completed: int = 100,
        keep_failed: int = 500,
        result_ttl_seconds: int = 7 * 24 * 3600,
        is_async: bool = True
    ):
        """
        Args:
            connection: Conexión Redis (decode_responses=False)
            name: Nombre de la cola
            attempts: Intentos totales por job (1 = sin reintentos)
            backoff_seconds: Primer delay de reintento, luego se duplica
            job_timeout_seconds: Tiempo máximo de un job antes de darlo por colgado
            keep_completed: Jobs completados a retener
            keep_failed: Jobs fallidos a retener
            result_ttl_seconds: TTL de los registros terminados
            is_async: False ejecuta los jobs en el mismo proceso (tests)
        """
        self.connection = connection
        self.name = name
        self.attempts = max(1, attempts)
        self.backoff_seconds = backoff_seconds
        self.job_timeout_seconds = job_timeout_seconds
        self.keep_completed = keep_completed
        self.keep_failed = keep_failed
        self.result_ttl_seconds = result_ttl_seconds
        self.queue = Queue(name, connection=connection, is_async=is_async)

    @classmethod
    def from_settings(cls, connection: Redis, settings) -> "PriceCheckQueue":
        return cls(
            connection,
            name=settings.price_check_queue_name,
            attempts=settings.price_check_max_retries,
            backoff_seconds=settings.price_check_backoff_seconds,
            job_timeout_seconds=settings.price_check_job_timeout_minutes * 60,
            keep_completed=settings.price_check_keep_completed,
            keep_failed=settings.price_check_keep_failed,
            result_ttl_seconds=settings.price_check_result_ttl_hours * 3600,
        )

    def retry_policy(self) -> Optional[Retry]:
        """Backoff exponencial: 5s, 10s, 20s... entre intentos."""
        retries = self.attempts - 1
        if retries < 1:
            return None
        return Retry(
            max=retries,
            interval=[self.backoff_seconds * 2 ** n for n in range(retries)]
        )

    def enqueue(self, products: Sequence[ProductSnapshot], delay: int = 0, job_id: Optional[str] = None) -> Job:
        """
        Encola un batch. El payload es una copia JSON de los snapshots.

        Args:
            products: Snapshots del batch
            delay: Segundos antes de que el job sea elegible
            job_id: ID del job (default: lo genera RQ)

        Returns:
            Job de RQ
        """
        payload = [product.model_dump(mode="json") for product in products]
        options: Dict[str, Any] = dict(
            job_id=job_id,
            retry=self.retry_policy(),
            job_timeout=self.job_timeout_seconds,
            result_ttl=self.result_ttl_seconds,
            failure_ttl=self.result_ttl_seconds,
            description=f"price-check batch ({len(payload)} productos)",
        )
        if delay > 0:
            job = self.queue.enqueue_in(timedelta(seconds=delay), JOB_FUNC, payload, **options)
        else:
            job = self.queue.enqueue(JOB_FUNC, payload, **options)

        logger.debug("Job %s encolado (%d productos, delay %ss)", job.id, len(payload), delay)
        return job

    def _registries(self):
        return {
            "active": StartedJobRegistry(queue=self.queue),
            "completed": FinishedJobRegistry(queue=self.queue),
            "failed": FailedJobRegistry(queue=self.queue),
            "delayed": ScheduledJobRegistry(queue=self.queue),
        }

    def get_status(self) -> QueueStatus:
        registries = self._registries()
        counts = QueueCounts(
            waiting=self.queue.count,
            active=registries["active"].count,
            completed=registries["completed"].count,
            failed=registries["failed"].count,
            delayed=registries["delayed"].count,
        )
        return QueueStatus(
            queue_name=self.name,
            # Bandera global de la instancia Redis, no por cola
            paused=bool(is_suspended(self.connection)),
            counts=counts,
        )

    def pause(self) -> None:
        """
        Suspende los workers (los jobs en curso terminan).

        La suspensión de RQ es una bandera de toda la instancia Redis: afecta
        a cualquier worker RQ conectado, no solo a esta cola. Por eso el worker
        de precios debe tener su propio Redis (o base lógica) si convive con
        otras colas.
        """
        suspend(self.connection)
        logger.info("⏸️  Cola %s pausada", self.name)

    def resume(self) -> None:
        """Levanta la suspensión global de workers RQ (ver pause)."""
        resume(self.connection)
        logger.info("▶️  Cola %s reanudada", self.name)

    def prune(self) -> int:
        """
        Borra los jobs terminados más viejos, dejando keep_completed
        completados y keep_failed fallidos.

        Returns:
            Cantidad de jobs borrados
        """
        removed = 0
        registries = self._registries()
        for registry, keep in ((registries["completed"], self.keep_completed),
                               (registries["failed"], self.keep_failed)):
            # Los registros están ordenados por expiración = fin + TTL (TTL fijo)
            job_ids = registry.get_job_ids()
            excess = len(job_ids) - max(0, keep)
            for job_id in job_ids[:max(0, excess)]:
                registry.remove(job_id, delete_job=True)
                removed += 1

        if removed:
            logger.info("🧹 %d jobs viejos eliminados de %s", removed, self.name)
        return removed

    def get_recent_jobs(self, limit: int = 10) -> RecentJobs:
        """Últimos `limit` jobs por estado (más nuevos primero)."""
        registries = self._registries()
        recent = {}
        for state in ("active", "completed", "failed"):
            job_ids = list(reversed(registries[state].get_job_ids()))[:limit]
            jobs = Job.fetch_many(job_ids, connection=self.connection)
            recent[state] = [self._format_job(job) for job in jobs if job is not None]
        return RecentJobs(**recent)

    @staticmethod
    def _format_job(job: Job) -> JobRecord:
        result_value = None
        failure_reason = None
        latest = job.latest_result()
        if latest is not None:
            if latest.type == Result.Type.SUCCESSFUL and isinstance(latest.return_value, dict):
                result_value = latest.return_value
            elif latest.type == Result.Type.FAILED and latest.exc_string:
                failure_reason = latest.exc_string.strip().splitlines()[-1]

        return JobRecord(
            id=job.id,
            attempts=job.meta.get("attempts", 0),
            enqueued_at=job.enqueued_at,
            started_at=job.started_at,
            ended_at=job.ended_at,
            result=result_value,
            failure_reason=failure_reason,
        )

    def get_job_payloads(self) -> List[List[Dict[str, Any]]]:
        """Payloads de los jobs pendientes (esperando + diferidos), en orden de ejecución."""
        job_ids = list(self.queue.job_ids) + ScheduledJobRegistry(queue=self.queue).get_job_ids()
        jobs = Job.fetch_many(job_ids, connection=self.connection)
        return [list(job.args[0]) for job in jobs if job is not None]

    def close(self) -> None:
        self.connection.close()
        logger.info("Conexión de la cola %s cerrada", self.name)

"""
Scheduler de re-chequeos: elige productos vencidos y los encola en batches.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Sequence, TypeVar

from price_checker.base import TrackedProductStore
from price_checker.leases import ProductLeases
from price_checker.models import TrackedProduct
from price_checker.queue import PriceCheckQueue

logger = logging.getLogger(__name__)

T = TypeVar("T")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_stale(product: TrackedProduct, now: datetime, threshold: timedelta) -> bool:
    """Vencido si nunca se chequeó o si pasó al menos `threshold` desde el último chequeo."""
    if product.last_checked_at is None:
        return True
    return now - product.last_checked_at >= threshold


def partition(items: Sequence[T], size: int) -> List[List[T]]:
    """Divide en bloques consecutivos de `size` (el último puede ser menor)."""
    if size < 1:
        raise ValueError("batch size debe ser >= 1")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


class BatchScheduler:
    """Selecciona productos vencidos y encola un job por batch, escalonados."""

    def __init__(
        self,
        store: TrackedProductStore,
        queue: PriceCheckQueue,
        stale_after: timedelta = timedelta(minutes=30),
        batch_size: int = 20,
        batch_delay_seconds: int = 5,
        leases: Optional[ProductLeases] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        self.store = store
        self.queue = queue
        self.stale_after = stale_after
        self.batch_size = batch_size
        self.batch_delay_seconds = batch_delay_seconds
        self.leases = leases
        self.clock = clock

    @classmethod
    def from_settings(cls, store, queue, settings, leases=None) -> "BatchScheduler":
        return cls(
            store,
            queue,
            stale_after=timedelta(minutes=settings.price_check_stale_minutes),
            batch_size=settings.price_check_batch_size,
            batch_delay_seconds=settings.price_check_batch_delay_seconds,
            leases=leases,
        )

    def select_stale(self, products: Sequence[TrackedProduct], now: datetime) -> List[TrackedProduct]:
        return [p for p in products if is_stale(p, now, self.stale_after)]

    def _claim(self, products: Sequence[TrackedProduct]) -> List[TrackedProduct]:
        if self.leases is None:
            return list(products)
        claimed = [p for p in products if self.leases.claim(p.id)]
        in_flight = len(products) - len(claimed)
        if in_flight:
            logger.info("⏭️  %d productos ya tienen un chequeo en vuelo, se omiten", in_flight)
        return claimed

    def _release(self, products: Sequence[TrackedProduct]) -> None:
        if self.leases is not None:
            self.leases.release(p.id for p in products)

    def schedule_all(self) -> int:
        """
        Encola re-chequeos para todos los productos vencidos.

        Si la lectura del store falla, el error se propaga y no se encola nada.

        Returns:
            Cantidad de batches encolados
        """
        logger.info("Buscando productos para re-chequear...")
        products = self.store.list_all_tracked_products()

        if not products:
            logger.info("No hay productos seguidos")
            return 0

        now = self.clock()
        stale = self.select_stale(products, now)
        logger.info("%d productos seguidos, %d vencidos", len(products), len(stale))

        eligible = self._claim(stale)
        if not eligible:
            return 0

        batches = partition(eligible, self.batch_size)
        timestamp = int(now.timestamp() * 1000)

        for index, batch in enumerate(batches):
            try:
                self.queue.enqueue(
                    [product.snapshot() for product in batch],
                    delay=index * self.batch_delay_seconds,
                    job_id=f"price-check-batch-{index}-{timestamp}",
                )
            except Exception:
                # Los batches que no llegaron a la cola no deben quedar bloqueados
                self._release([p for pending in batches[index:] for p in pending])
                logger.error("❌ Falló el encolado del batch %d/%d", index + 1, len(batches))
                raise

        logger.info(
            "✅ %d batches encolados (%d productos, %d por batch)",
            len(batches), len(eligible), self.batch_size
        )
        return len(batches)

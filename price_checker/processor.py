"""Procesamiento de un batch: una llamada al gateway, reconciliación y persistencia."""

import logging
from datetime import datetime
from typing import Callable, List, Optional, Sequence

from price_checker.base import PriceGateway, TrackedProductStore
from price_checker.leases import ProductLeases
from price_checker.models import BatchResult, ProductSnapshot
from price_checker.reconcile import ResultMatcher, parse_gateway_items
from price_checker.scheduler import utcnow

logger = logging.getLogger(__name__)


def gather_urls(products: Sequence[ProductSnapshot]) -> List[str]:
    """URLs de referencia presentes, sin repetir, en el orden del batch."""
    seen = set()
    urls = []
    for product in products:
        url = (product.reference_url or "").strip()
        if url and url not in seen:
            seen.add(url)
            urls.append(url)
    return urls


class BatchProcessor:
    """
    Ejecuta un job de batch. No guarda estado propio.

    Cualquier excepción (gateway o store) se propaga para que la cola
    reintente el batch completo; las escrituras son idempotentes salvo
    por una entrada extra de historial.
    """

    def __init__(
        self,
        gateway: PriceGateway,
        store: TrackedProductStore,
        leases: Optional[ProductLeases] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        self.gateway = gateway
        self.store = store
        self.leases = leases
        self.clock = clock

    def process(self, products: Sequence[ProductSnapshot], job_id: Optional[str] = None) -> BatchResult:
        """
        Args:
            products: Snapshots del batch (<= batch size)
            job_id: ID del job, solo para logs y resultado

        Returns:
            BatchResult con updated/skipped
        """
        label = job_id or "local"
        urls = gather_urls(products)

        if not urls:
            logger.info("[%s] Ningún producto tiene URL, no se llama al gateway", label)
            self._release(products)
            return BatchResult(updated=0, skipped=len(products), timestamp=self.clock(), job_id=job_id)

        logger.info("[%s] Re-chequeando %d URLs (%d productos)", label, len(urls), len(products))
        raw_items = self.gateway.fetch_batch(urls)
        items = parse_gateway_items(raw_items)
        matcher = ResultMatcher(items)
        logger.info("[%s] Gateway devolvió %d resultados (%d válidos)", label, len(raw_items), len(items))

        updated = 0
        skipped = 0
        for product in products:
            if not product.reference_url:
                skipped += 1
                continue

            item = matcher.match(product)
            if item is None:
                logger.info("[%s] Sin resultado para %s, queda pendiente", label, product.external_product_id)
                skipped += 1
                continue

            checked_at = self.clock()
            self.store.update_tracked_product_price(product.tracked_product_id, item.price, checked_at=checked_at)
            self.store.append_price_history(product.tracked_product_id, item.price, recorded_at=checked_at)
            updated += 1
            logger.debug("[%s] ✓ %s: %s", label, product.external_product_id, item.price)

        self._release(products)
        result = BatchResult(updated=updated, skipped=skipped, timestamp=self.clock(), job_id=job_id)
        logger.info("[%s] ✅ Batch completo: %d actualizados, %d omitidos", label, updated, skipped)
        return result

    def _release(self, products: Sequence[ProductSnapshot]) -> None:
        if self.leases is not None:
            self.leases.release(p.tracked_product_id for p in products)

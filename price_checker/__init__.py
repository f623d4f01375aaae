"""
Re-chequeo periódico de precios de productos seguidos.

Componentes:
- scheduler: elige productos vencidos y encola batches escalonados
- queue: cola RQ con reintentos, retención acotada y estado
- processor: una llamada al gateway por batch, reconciliación y persistencia
- reconcile: parseo estricto de resultados y match por ID/URL
- leases: evita chequeos duplicados en vuelo
- worker: arranque, tick periódico y cierre
"""

from price_checker.models import (
    BatchResult,
    GatewayItem,
    ProductSnapshot,
    QueueStatus,
    Source,
    TrackedProduct,
)
from price_checker.processor import BatchProcessor
from price_checker.queue import PriceCheckQueue
from price_checker.scheduler import BatchScheduler

__all__ = [
    "BatchProcessor",
    "BatchResult",
    "BatchScheduler",
    "GatewayItem",
    "PriceCheckQueue",
    "ProductSnapshot",
    "QueueStatus",
    "Source",
    "TrackedProduct",
]

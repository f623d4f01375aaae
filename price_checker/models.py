"""Modelos de datos del worker de re-chequeo de precios."""

import logging
import re
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)

_NON_NUMERIC = re.compile(r"[^\d.\-]")


class Source(str, Enum):
    """Marketplaces soportados."""
    AMAZON = "amazon"
    MERCADOLIBRE = "mercadolibre"


class TrackedProduct(BaseModel):
    """Fila de la tabla tracked_products (solo los campos que usa el worker)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    external_product_id: str = Field(alias="product_id")
    source: Source
    reference_url: Optional[str] = Field(default=None, alias="product_url")
    current_price: Optional[Decimal] = None
    last_checked_at: Optional[datetime] = Field(default=None, alias="last_checked")

    @field_validator("id", "external_product_id", mode="before")
    @classmethod
    def _coerce_str(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        return value

    @field_validator("last_checked_at")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def snapshot(self) -> "ProductSnapshot":
        """Copia inmutable para el payload de un job."""
        return ProductSnapshot(
            tracked_product_id=self.id,
            external_product_id=self.external_product_id,
            source=self.source,
            reference_url=self.reference_url,
        )


class ProductSnapshot(BaseModel):
    """Producto copiado al momento de encolar (no es una referencia viva)."""

    model_config = ConfigDict(frozen=True)

    tracked_product_id: str
    external_product_id: str
    source: Source
    reference_url: Optional[str] = None


class PriceHistoryEntry(BaseModel):
    """Fila append-only de price_history."""
    tracked_product_id: str
    price: Decimal
    recorded_at: datetime


class GatewayItem(BaseModel):
    """
    Resultado validado del gateway.

    El actor devuelve campos opcionales y precios como número o string
    ("$1,299.00"); acá se normaliza todo antes de reconciliar.
    """

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    url: Optional[str] = None
    price: Decimal = Field(..., gt=0)
    title: Optional[str] = None
    source: Optional[str] = None
    available_quantity: Optional[int] = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("url", mode="before")
    @classmethod
    def _blank_url(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("price", mode="before")
    @classmethod
    def _coerce_price(cls, value: Any) -> Any:
        if isinstance(value, str):
            cleaned = _NON_NUMERIC.sub("", value)
            if not cleaned:
                raise ValueError(f"precio no numérico: {value!r}")
            try:
                return Decimal(cleaned)
            except InvalidOperation:
                raise ValueError(f"precio no numérico: {value!r}")
        return value

    @field_validator("available_quantity", mode="before")
    @classmethod
    def _lenient_quantity(cls, value: Any) -> Any:
        try:
            return int(value) if value is not None else None
        except (TypeError, ValueError):
            return None


class BatchResult(BaseModel):
    """Resultado de procesar un batch."""
    updated: int = 0
    skipped: int = 0
    timestamp: datetime
    job_id: Optional[str] = None


class QueueCounts(BaseModel):
    waiting: int = 0
    active: int = 0
    completed: int = 0
    failed: int = 0
    delayed: int = 0


class QueueStatus(BaseModel):
    """Estado de la cola para monitoreo externo."""
    initialized: bool = True
    queue_name: str
    paused: bool = False
    counts: QueueCounts = Field(default_factory=QueueCounts)


class JobRecord(BaseModel):
    """Un job reciente tal como se expone en /queue-status."""
    id: str
    attempts: int = 0
    enqueued_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    result: Optional[Dict[str, Any]] = None
    failure_reason: Optional[str] = None


class RecentJobs(BaseModel):
    active: List[JobRecord] = Field(default_factory=list)
    completed: List[JobRecord] = Field(default_factory=list)
    failed: List[JobRecord] = Field(default_factory=list)

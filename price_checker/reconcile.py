"""
Parseo de resultados del gateway y reconciliación contra productos seguidos.

El gateway no garantiza que su "id" coincida con el product_id del store,
por eso el match es en dos fases: primero por ID externo, después por URL.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urlsplit, urlunsplit

from pydantic import ValidationError

from price_checker.models import GatewayItem, ProductSnapshot

logger = logging.getLogger(__name__)

AMAZON_ID_PREFIX = "AMZN-"


def normalize_product_id(value: Optional[str]) -> Optional[str]:
    """Quita el prefijo AMZN- que usa el store para ASINs."""
    if not value:
        return None
    value = value.strip()
    if value.upper().startswith(AMAZON_ID_PREFIX):
        value = value[len(AMAZON_ID_PREFIX):]
    return value or None


def normalize_url(value: Optional[str]) -> Optional[str]:
    """Normaliza una URL para comparar: sin fragmento, sin slash final, host en minúsculas."""
    if not value:
        return None
    value = value.strip()
    if not value:
        return None
    parts = urlsplit(value)
    path = parts.path.rstrip("/")
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), path, parts.query, ""))


def parse_gateway_items(raw_items: Iterable[Any]) -> List[GatewayItem]:
    """
    Valida los resultados crudos del gateway.

    Las entradas inválidas (sin precio, precio no numérico o <= 0, o que
    no son objetos) se descartan con un warning.

    Args:
        raw_items: Lista devuelta por el gateway

    Returns:
        Items validados en el mismo orden
    """
    items = []
    for index, raw in enumerate(raw_items or []):
        if not isinstance(raw, dict):
            logger.warning("Resultado #%d del gateway descartado: no es un objeto (%r)", index, type(raw))
            continue
        try:
            items.append(GatewayItem.model_validate(raw))
        except ValidationError as e:
            logger.warning(
                "Resultado #%d del gateway descartado (id=%s url=%s): %s",
                index, raw.get("id"), raw.get("url"), e.errors()[0].get("msg")
            )
    return items


class ResultMatcher:
    """
    Índice de resultados del gateway por ID y por URL.

    Precedencia: ID externo primero; URL solo si el ID no encuentra nada.
    Si el gateway repite un ID o URL gana la primera aparición.
    """

    def __init__(self, items: Iterable[GatewayItem]):
        self._by_id: Dict[str, GatewayItem] = {}
        self._by_url: Dict[str, GatewayItem] = {}
        for item in items:
            item_id = normalize_product_id(item.id)
            if item_id:
                self._by_id.setdefault(item_id, item)
            item_url = normalize_url(item.url)
            if item_url:
                self._by_url.setdefault(item_url, item)

    def match(self, product: ProductSnapshot) -> Optional[GatewayItem]:
        item = self._by_id.get(normalize_product_id(product.external_product_id) or "")
        if item is not None:
            return item

        url = normalize_url(product.reference_url)
        if url:
            return self._by_url.get(url)
        return None

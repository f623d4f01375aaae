"""
FastAPI application de operación del worker de precios.

Expone endpoints REST para:
- Health check
- Estado de la cola de re-chequeo y jobs recientes
- Trigger manual de un ciclo de scheduling
- Pausar / reanudar los workers
"""

import logging
from contextlib import asynccontextmanager
from typing import Iterator

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from redis import Redis
from redis.exceptions import RedisError

from api import __version__
from api.config import settings
from api.models import (
    ErrorResponse,
    HealthResponse,
    QueueActionResponse,
    QueueStatusResponse,
    TriggerResponse,
)
from api.redis_client import create_redis_connection
from api.supabase_client import SupabaseStore
from api.tasks import build_leases
from price_checker.queue import PriceCheckQueue
from price_checker.scheduler import BatchScheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # La cola se crea acá y vive en app.state: nada de singletons de módulo
    redis_conn = create_redis_connection(settings.redis_url)
    app.state.redis = redis_conn
    app.state.queue = PriceCheckQueue.from_settings(redis_conn, settings)
    try:
        yield
    finally:
        app.state.queue.close()


# Inicializar FastAPI
app = FastAPI(
    title="Price Checker API",
    description="Operación del worker de re-chequeo de precios: estado de la cola y triggers manuales",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)


# Dependency: Verificar API Key
async def verify_api_key(x_api_key: str = Header(..., description="API Key para autenticación")):
    """
    Dependency que verifica el API key en el header X-API-Key.

    Raises:
        HTTPException: Si el API key es inválido
    """
    if x_api_key != settings.api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key"
        )
    return x_api_key


def get_redis(request: Request) -> Redis:
    return request.app.state.redis


def get_queue(request: Request) -> PriceCheckQueue:
    return request.app.state.queue


def get_scheduler(
    queue: PriceCheckQueue = Depends(get_queue),
    redis_conn: Redis = Depends(get_redis)
) -> Iterator[BatchScheduler]:
    if not settings.store_configured:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Store de productos no configurado"
        )
    store = SupabaseStore()
    try:
        yield BatchScheduler.from_settings(store, queue, settings, leases=build_leases(redis_conn))
    finally:
        store.close()


# Healthcheck endpoint (sin autenticación)
@app.get(
    "/healthz",
    response_model=HealthResponse,
    tags=["Health"],
    summary="Health check",
    description="Verifica que la API está funcionando y tiene conexión a Redis"
)
def health_check(redis_conn: Redis = Depends(get_redis)):
    redis_connected = False
    try:
        redis_conn.ping()
        redis_connected = True
    except RedisError as e:
        logger.warning("Redis no responde: %s", e)

    return HealthResponse(
        status="healthy" if redis_connected else "degraded",
        version=__version__,
        redis_connected=redis_connected
    )


# ====================================================================
# ENDPOINTS DE ADMINISTRACIÓN
# ====================================================================

@app.get(
    "/api/admin/queue-status",
    response_model=QueueStatusResponse,
    responses={500: {"model": ErrorResponse}},
    tags=["Admin"],
    summary="Estado de la cola de re-chequeo",
    dependencies=[Depends(verify_api_key)]
)
def queue_status(
    limit: int = Query(10, ge=1, le=100, description="Jobs recientes por estado"),
    queue: PriceCheckQueue = Depends(get_queue)
):
    try:
        return QueueStatusResponse(
            status=queue.get_status(),
            recent_jobs=queue.get_recent_jobs(limit)
        )
    except RedisError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error al consultar la cola: {str(e)}"
        )


@app.post(
    "/api/admin/trigger-price-check",
    response_model=TriggerResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={500: {"model": ErrorResponse}},
    tags=["Admin"],
    summary="Gatilla un ciclo de re-chequeo",
    description="Selecciona productos vencidos y encola sus batches. No espera a que se procesen.",
    dependencies=[Depends(verify_api_key)]
)
def trigger_price_check(scheduler: BatchScheduler = Depends(get_scheduler)):
    try:
        scheduled = scheduler.schedule_all()
    except Exception as e:
        logger.exception("Error en trigger manual")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error al programar re-chequeos: {str(e)}"
        )

    return TriggerResponse(
        batches_scheduled=scheduled,
        message="Re-chequeo encolado" if scheduled else "No hay productos vencidos"
    )


@app.post(
    "/api/admin/queue/pause",
    response_model=QueueActionResponse,
    tags=["Admin"],
    dependencies=[Depends(verify_api_key)]
)
def pause_queue(queue: PriceCheckQueue = Depends(get_queue)):
    queue.pause()
    return QueueActionResponse(queue_name=queue.name, paused=True)


@app.post(
    "/api/admin/queue/resume",
    response_model=QueueActionResponse,
    tags=["Admin"],
    dependencies=[Depends(verify_api_key)]
)
def resume_queue(queue: PriceCheckQueue = Depends(get_queue)):
    queue.resume()
    return QueueActionResponse(queue_name=queue.name, paused=False)


# Root endpoint
@app.get("/", include_in_schema=False)
async def root():
    return JSONResponse({
        "message": "Price Checker API",
        "version": __version__,
        "docs": "/docs"
    })

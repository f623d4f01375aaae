"""
Modelos de datos (DTOs) para la API de operación.
Define request/response schemas usando Pydantic.
"""

from pydantic import BaseModel, Field

from price_checker.models import QueueStatus, RecentJobs


class HealthResponse(BaseModel):
    """Response del endpoint /healthz."""

    status: str = Field(..., description="Estado del servicio")
    version: str = Field(..., description="Versión de la API")
    redis_connected: bool = Field(..., description="Conexión a Redis OK")

    model_config = {
        "json_schema_extra": {
            "example": {
                "status": "healthy",
                "version": "1.0.0",
                "redis_connected": True
            }
        }
    }


class QueueStatusResponse(BaseModel):
    """Response de /api/admin/queue-status."""

    status: QueueStatus
    recent_jobs: RecentJobs

    model_config = {
        "json_schema_extra": {
            "example": {
                "status": {
                    "initialized": True,
                    "queue_name": "price-check",
                    "paused": False,
                    "counts": {"waiting": 0, "active": 1, "completed": 42, "failed": 2, "delayed": 3}
                },
                "recent_jobs": {"active": [], "completed": [], "failed": []}
            }
        }
    }


class TriggerResponse(BaseModel):
    """Response del endpoint /trigger-price-check."""

    batches_scheduled: int = Field(..., description="Cantidad de batches encolados")
    message: str = Field(..., description="Mensaje descriptivo")


class QueueActionResponse(BaseModel):
    """Response de pause/resume."""

    queue_name: str
    paused: bool


class ErrorResponse(BaseModel):
    """Response estándar de error."""

    detail: str = Field(..., description="Mensaje de error")

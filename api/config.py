"""
Configuración del worker de precios usando Pydantic Settings.
Lee variables de entorno o .env file.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class Settings(BaseSettings):
    """Settings del worker de re-chequeo de precios."""

    # API Configuration
    api_key: str = "development-key-change-in-production"
    environment: str = "development"  # development | production
    log_level: str = "INFO"

    # Redis / RQ
    redis_url: str = "redis://localhost:6379"

    # Price checker
    enable_price_worker: bool = False
    price_check_queue_name: str = "price-check"
    price_check_stale_minutes: int = 30
    price_check_batch_size: int = 20
    price_check_batch_delay_seconds: int = 5
    price_check_max_retries: int = 3  # intentos totales por job
    price_check_backoff_seconds: int = 5
    price_check_concurrency: int = 5
    price_check_interval_minutes: int = 60
    price_check_job_timeout_minutes: int = 10
    price_check_keep_completed: int = 100
    price_check_keep_failed: int = 500
    price_check_result_ttl_hours: int = 168
    price_check_lease_enabled: bool = True
    price_check_lease_minutes: int = 30
    price_check_use_cache: bool = False

    # Apify (Price Fetch Gateway)
    apify_token: Optional[str] = None
    apify_actor_id: str = "f5pjkmpD15S3cqunX"  # ShopSavvy-Price-Tracker
    apify_build: str = "1.0.4"
    apify_memory_mb: int = 512
    apify_wait_seconds: int = 300  # 5 minutos
    apify_base_url: str = "https://api.apify.com/v2"

    # Supabase (Tracked-Product Store)
    supabase_url: Optional[str] = None
    supabase_service_role_key: Optional[str] = None
    supabase_anon_key: Optional[str] = None

    # Cache
    cache_ttl_seconds: int = 30 * 60

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @property
    def supabase_key(self) -> Optional[str]:
        """Prefiere la service role key (bypassa RLS) sobre la anon key."""
        return self.supabase_service_role_key or self.supabase_anon_key

    @property
    def gateway_configured(self) -> bool:
        return bool(self.apify_token)

    @property
    def store_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)


# Singleton
settings = Settings()

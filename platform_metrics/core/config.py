from functools import lru_cache
from typing import List, Optional
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # APP
    APP_NAME: str = "Platform Metrics API"
    ENV: str = "development"
    DEBUG: bool = True

    # Banco de Dados (registry em public, um schema por tenant)
    DATABASE_URL: str
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    TENANT_SCHEMA_PREFIX: str = "tenant_"

    # Fan-out por tenant
    TENANT_BATCH_SIZE: int = 25
    TENANT_QUERY_TIMEOUT_MS: int = 5000
    TOP_TENANTS_LIMIT: int = 10
    MAX_WINDOW_DAYS: int = 366

    # CORS (aceita string separada por vírgulas no .env)
    CORS_ORIGINS: Optional[str] = None

    # CACHE (TTL por tipo de relatório, em segundos)
    CACHE_TTL_KPI_SECONDS: int = 60
    CACHE_TTL_ANALYTICS_SECONDS: int = 300
    CACHE_TTL_LISTING_SECONDS: int = 30
    CACHE_CLEANUP_INTERVAL_SECONDS: float = 60.0
    CACHE_SWR: int = 300

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_TO_FILE: bool = False
    LOG_FILE_PATH: Optional[str] = None

    @field_validator("TENANT_BATCH_SIZE", "TOP_TENANTS_LIMIT", "MAX_WINDOW_DAYS")
    @classmethod
    def _at_least_one(cls, v: int) -> int:
        if v < 1:
            raise ValueError("valor deve ser >= 1.")
        return v

    @field_validator("TENANT_QUERY_TIMEOUT_MS", "CACHE_CLEANUP_INTERVAL_SECONDS")
    @classmethod
    def _positive(cls, v):
        if v <= 0:
            raise ValueError("valor deve ser positivo.")
        return v

    @property
    def CORS_ORIGINS_LIST(self) -> List[str]:
        v = self.CORS_ORIGINS
        if not v:
            return []
        if isinstance(v, str):
            return [s.strip() for s in v.split(",") if s.strip()]
        return v

    @property
    def TENANT_QUERY_TIMEOUT_SECONDS(self) -> float:
        return self.TENANT_QUERY_TIMEOUT_MS / 1000.0

    # Pydantic v2 settings configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # ignora chaves extras no .env
    )

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()

settings = get_settings()

#!/usr/bin/env python3
"""
Configuration management for the castbid API.
"""

from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with environment-based configuration"""

    # API settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    # Storage
    database_url: str = "postgresql://postgres@localhost:5432/castbid"
    redis_url: str = "redis://localhost:6379"
    sql_debug: bool = False

    # Profile enrichment
    neynar_api_key: Optional[str] = None
    neynar_base_url: str = "https://api.neynar.com/v2"

    # Cache lifetimes in seconds
    result_cache_ttl: int = 240
    profile_cache_ttl: int = 3600

    # Manual sync trigger
    sync_token: Optional[str] = None
    indexer_config: Optional[str] = None

    @field_validator('sync_token', 'neynar_api_key', 'indexer_config', mode='before')
    @classmethod
    def empty_as_none(cls, v):
        """Treat empty env values as unset"""
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        return v

    @property
    def async_database_url(self) -> str:
        if self.database_url.startswith("postgresql://"):
            return self.database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return self.database_url

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "case_sensitive": False, "extra": "ignore"}


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get application settings"""
    return settings


def get_cors_origins() -> list:
    """Get CORS origins as a list"""
    return [origin.strip() for origin in settings.cors_origins.split(",") if origin.strip()]

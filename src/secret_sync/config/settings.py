"""Configuration Settings for Secret Sync

Manages environment variables and application configuration.
Identity-provider connection parameters live with their backends
(see core/provider/keycloak.py and core/provider/authentik.py).
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # Service info
    service_name: str = "secret-sync-central"
    service_version: str = "1.0.0"
    environment: str = "development"

    # Server configuration
    host: str = "0.0.0.0"
    port: int = 8080
    debug: bool = False

    # Identity provider selection
    # Explicit discriminator; when unset, every known backend schema is probed in priority order
    oidc_provider: Optional[Literal["keycloak", "authentik"]] = None
    # Refuse to start when no backend is configured (False serves 503 on client routes instead)
    require_provider: bool = True
    http_timeout_seconds: float = 10.0

    # Shared key callers must present as a Bearer token (disabled when unset)
    api_key: Optional[str] = None

    # Logging
    log_level: str = "INFO"

    @field_validator("oidc_provider", mode="before")
    @classmethod
    def normalize_provider(cls, v):
        """Accept OIDC_PROVIDER in any case; treat an empty value as unset"""
        if isinstance(v, str):
            return v.strip().lower() or None
        return v

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance

    Returns:
        Settings instance
    """
    return Settings()

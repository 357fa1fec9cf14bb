"""
Shared configuration management for the Homi journal gateway.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_JWKS_URL = "https://www.googleapis.com/service_accounts/v1/jwk/securetoken@system.gserviceaccount.com"
DEFAULT_OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"
DEFAULT_OPENROUTER_MODEL = "mistralai/mistral-7b-instruct"

LOCAL_ORIGINS = [
    "http://localhost:5173",  # Vite default
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Environment
    env: str = Field(default="local", validation_alias="JOURNAL_ENV")
    log_level: str = Field(default="info", validation_alias="JOURNAL_LOG_LEVEL")
    host: str = "0.0.0.0"
    port: int = 8080

    # Identity provider
    firebase_project_id: Optional[str] = None
    firebase_client_email: Optional[str] = None
    firebase_private_key: Optional[str] = None
    firebase_jwks_url: str = DEFAULT_JWKS_URL

    # Persistent store
    mongodb_uri: Optional[str] = None
    mongodb_db_name: str = "homi"

    # Counter store for rate limiting (optional)
    rate_limit_redis_url: Optional[str] = None
    rate_limit_redis_token: Optional[str] = None

    # Upstream completion oracle
    openrouter_api_key: Optional[str] = None
    openrouter_model: str = DEFAULT_OPENROUTER_MODEL
    openrouter_url: str = DEFAULT_OPENROUTER_URL
    openrouter_timeout_seconds: float = 30.0

    # CORS
    frontend_origin: Optional[str] = None

    @property
    def service_account_private_key(self) -> Optional[str]:
        """Private key with escaped newlines restored."""
        key = self.firebase_private_key
        if key and "\\n" in key:
            key = key.replace("\\n", "\n")
        return key

    @property
    def has_service_account(self) -> bool:
        return bool(self.firebase_project_id and self.firebase_client_email and self.firebase_private_key)

    @property
    def allowed_origins(self) -> List[str]:
        origins = list(LOCAL_ORIGINS)
        if self.frontend_origin:
            origins.append(self.frontend_origin)
        return origins


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str = "journal-gateway"


@lru_cache()
def get_config(service_name: str = "journal-gateway") -> ServiceConfig:
    """Get configuration for a specific service, loaded once per process."""
    return ServiceConfig(service_name=service_name)

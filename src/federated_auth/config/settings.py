"""Configuration Settings for Federated Auth Service

Manages environment variables and application configuration.
"""

from functools import lru_cache
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings"""

    # Service info
    service_name: str = "federated-auth-service"
    service_version: str = "1.0.0"
    environment: str = "development"

    # Server configuration
    host: str = "0.0.0.0"
    port: int = 3000
    debug: bool = False

    # Public URL the service is reachable at; provider callbacks are derived from it
    public_base_url: str = "http://localhost:3000"

    # Session store
    session_backend: str = "memory"  # memory or redis
    session_cookie_name: str = "_gothic_session"
    session_max_age_seconds: int = 86400 * 30
    session_invalidation_grace_seconds: int = 100
    session_cookie_secure: bool = False
    session_cookie_samesite: str = "lax"

    # Redis configuration
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: Optional[str] = None

    @property
    def redis_url(self) -> str:
        """Construct Redis URL from components"""
        if self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}/{self.redis_db}"
        return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"

    # Where /logout/{provider} sends the browser afterwards
    logout_redirect_url: str = "/"

    # Providers
    faux_enabled: bool = False

    openid_connect_key: Optional[str] = None
    openid_connect_secret: Optional[str] = None
    openid_connect_discovery_url: Optional[str] = None
    openid_connect_scopes: str = "openid email profile"

    github_key: Optional[str] = None
    github_secret: Optional[str] = None
    github_scopes: str = "read:user user:email"

    def callback_url(self, provider_name: str) -> str:
        """Callback URL registered with the identity provider"""
        return f"{self.public_base_url.rstrip('/')}/auth/{provider_name}/callback"

    # CORS configuration
    cors_origins: list[str] = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance

    Returns:
        Settings instance
    """
    return Settings()

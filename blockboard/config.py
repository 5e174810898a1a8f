"""
Configuration and settings for the blockboard backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env.local",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Database (Postgres expected)
    database_url: Optional[str] = Field(
        default=None, validation_alias="DATABASE_URL"
    )
    db_host: Optional[str] = Field(default=None, validation_alias="DB_HOST")
    db_port: int = Field(default=5432, validation_alias="DB_PORT")
    db_user: Optional[str] = Field(default=None, validation_alias="DB_USER")
    db_password: Optional[str] = Field(default=None, validation_alias="DB_PASSWORD")
    db_name: Optional[str] = Field(default=None, validation_alias="DB_NAME")

    # Auth0-style token issuer
    auth0_domain: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("VITE_AUTH0_DOMAIN", "AUTH0_DOMAIN"),
    )
    api_audience: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("VITE_API_URL", "AUTH0_AUDIENCE"),
    )
    jwks_requests_per_minute: int = Field(
        default=5, validation_alias="JWKS_REQUESTS_PER_MINUTE"
    )

    # GitHub OAuth app
    github_client_id: str = Field(default="", validation_alias="GITHUB_CLIENT_ID")
    github_client_secret: str = Field(
        default="", validation_alias="GITHUB_CLIENT_SECRET"
    )
    web_url: str = Field(default="http://localhost:3000", validation_alias="WEB_URL")

    # Upstream response cache (Redis)
    redis_url: Optional[str] = Field(default=None, validation_alias="REDIS_URL")
    cache_ttl_seconds: int = Field(default=60 * 60, validation_alias="CACHE_TTL_SECONDS")

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False, validation_alias="BLOCKBOARD_USE_IN_MEMORY_BACKENDS"
    )
    cors_origins: list[str] = Field(default=["*"], validation_alias="CORS_ORIGINS")
    port: int = Field(default=8000, validation_alias="PORT")

    @property
    def issuer(self) -> Optional[str]:
        if not self.auth0_domain:
            return None
        return f"https://{self.auth0_domain}/"

    @property
    def jwks_uri(self) -> Optional[str]:
        if not self.auth0_domain:
            return None
        return f"https://{self.auth0_domain}/.well-known/jwks.json"

    @property
    def sqlalchemy_url(self) -> Optional[str]:
        """Explicit DATABASE_URL wins, otherwise build one from the DB_* parts."""
        if self.database_url:
            return self.database_url
        if not self.db_host or not self.db_name:
            return None
        url = URL.create(
            "postgresql+psycopg2",
            username=self.db_user,
            password=self.db_password,
            host=self.db_host,
            port=self.db_port,
            database=self.db_name,
        )
        return url.render_as_string(hide_password=False)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()

"""Pydantic models for parsing the config.yaml configuration file.

This module contains Pydantic models that correspond to the structure of config.yaml.
These models handle validation and type conversion of the YAML configuration data.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class CORSConfig(BaseModel):
    """CORS configuration for the application."""

    origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"]
    )
    allow_credentials: bool = True
    allow_methods: list[str] = Field(default=["GET", "POST", "OPTIONS"])
    allow_headers: list[str] = Field(default=["*"])


class TenantConfig(BaseModel):
    """Token verification settings for one audience context."""

    issuer: str = Field(description="Expected token issuer URL")
    jwks_uri: str = Field(description="JWKS endpoint for JWT validation")
    client_id: str = Field(description="Client ID registered with the provider")
    audiences: list[str] = Field(
        default_factory=list,
        description="Accepted audiences (empty = fall back to client_id)",
    )
    enabled: bool = Field(default=True, description="Accept tokens for this tenant")

    @property
    def expected_audiences(self) -> list[str]:
        return self.audiences or [self.client_id]


class OIDCConfig(BaseModel):
    """OIDC configuration model."""

    tenants: dict[str, TenantConfig] = Field(
        default_factory=dict,
        description="Audience contexts keyed by name ('external', 'internal')",
    )


class JWTClaimsConfig(BaseModel):
    """JWT claims mapping configuration."""

    user_id: str = Field(
        default="sub", description="Claim name for user ID (usually 'sub')"
    )
    email: str = Field(default="email", description="Claim name for email address")
    preferred_username: str = Field(
        default="preferred_username", description="Claim name for username"
    )


class JWTConfig(BaseModel):
    """JWT validation configuration."""

    allowed_algorithms: list[str] = Field(
        default_factory=lambda: ["RS256", "RS512", "ES256", "ES384"],
        description="JWT algorithms allowed for token validation",
    )
    clock_skew: int = Field(default=60, description="Clock skew tolerance in seconds")
    claims: JWTClaimsConfig = Field(
        default_factory=JWTClaimsConfig, description="JWT claims mapping configuration"
    )


class LoggingConfig(BaseModel):
    """Where and how loguru writes."""

    level: str = "INFO"
    format: Literal["json", "plain"] = "json"
    # None keeps logging on stderr only
    file: str | None = "logs/app.log"
    max_size_mb: int = Field(default=10, gt=0)
    backup_count: int = Field(default=5, ge=0)


class DatabaseConfig(BaseModel):
    """Connection settings for the users store.

    Pool settings are ignored for SQLite URLs.
    """

    url: str = "sqlite:///./finstream.db"
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800
    create_tables_on_startup: bool = True


class AppConfig(BaseModel):
    """Application configuration model."""

    environment: Literal["development", "production", "test"] = "development"
    host: str = "localhost"
    port: int = 8080
    cors: CORSConfig = Field(default_factory=CORSConfig)


class ConfigData(BaseModel):
    """Root of the ``config:`` section in config.yaml."""

    oidc: OIDCConfig = Field(default_factory=OIDCConfig)
    jwt: JWTConfig = Field(default_factory=JWTConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    app: AppConfig = Field(default_factory=AppConfig)

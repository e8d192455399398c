"""Authentication chain configuration using pydantic-settings"""

from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configuration from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Chain assembly
    auth_schemes: str = Field(
        default="Bearer",
        description="Comma-separated auth schemes, in chain order (Bearer, Basic)",
    )
    opt_in_schemes: str = Field(
        default="",
        description="Comma-separated schemes to apply even if not included by default",
    )
    force_ssl: bool = Field(
        default=False,
        description="Only authenticate requests made over HTTPS",
    )

    # Bearer scheme
    jwks_url: Optional[str] = Field(
        default=None,
        description="JWKS endpoint used to validate bearer tokens",
    )
    jwt_audience: Optional[str] = Field(
        default=None,
        description="Expected token audience (not checked when unset)",
    )
    jwt_issuer: Optional[str] = Field(
        default=None,
        description="Expected token issuer (not checked when unset)",
    )
    jwk_cache_ttl: int = Field(
        default=300,
        description="JWK cache TTL in seconds (5 minutes)",
    )

    # Basic scheme
    basic_realm: str = Field(
        default="authchain",
        description="Realm announced in Basic challenges",
    )

    # Server
    gateway_host: str = Field(
        default="0.0.0.0",
        description="Bind host",
    )
    gateway_port: int = Field(
        default=8080,
        description="Bind port",
    )

    # CORS Configuration
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173,http://localhost:8080",
        description="Comma-separated list of allowed CORS origins",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )

    @property
    def auth_schemes_list(self) -> list[str]:
        """Parse auth schemes into list"""
        return _split(self.auth_schemes)

    @property
    def opt_in_schemes_list(self) -> list[str]:
        """Parse opt-in schemes into list"""
        return _split(self.opt_in_schemes)

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins into list"""
        return _split(self.cors_origins)


def _split(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


# Singleton settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create settings singleton"""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings

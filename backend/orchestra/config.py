"""Application configuration using Pydantic settings."""

import base64
import binascii
from functools import lru_cache
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Orchestra"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"  # development, staging, production

    # Database
    DATABASE_URL: str
    DB_ECHO: bool = False
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10

    # Access token
    # BASE64-encoded HMAC key, generate with: openssl rand -base64 64
    ACCESS_TOKEN_SIGNING_KEY: str
    ACCESS_TOKEN_ALGORITHM: str = "HS512"
    ACCESS_TOKEN_VALIDITY_SECONDS: int = 300
    ACCESS_TOKEN_CARRIER: str = "header"  # header, cookie
    ACCESS_TOKEN_COOKIE_NAME: str = "access_token"
    APPLICATION_DOMAIN: Optional[str] = None  # Cookie domain, e.g. "orchestra.app"
    ADMIN_AUTHORITY: str = "ADMIN"

    # OAuth2 login
    # Redirects back to the client are only allowed when the URI matches this glob
    CLIENT_REDIRECT_URI_TEMPLATE: str = "http://localhost:4200/*"
    CLIENT_REDIRECT_URI_PARAMETER_NAME: str = "client-redirect-uri"
    AUTHORIZATION_REQUEST_COOKIE_NAME: str = "oauth2-authorization-request"
    AUTHORIZATION_REQUEST_COOKIE_MAX_AGE: int = 180
    # Base URL the providers call back to: {base}/api/v1/auth/oauth2/code/{provider}
    OAUTH2_REDIRECT_BASE_URL: str = "http://localhost:8000"
    OAUTH2_HTTP_TIMEOUT_SECONDS: float = 10.0
    OAUTH2_RECONCILE_MAX_ATTEMPTS: int = 3

    # Providers are registered only when their client id is set
    OAUTH2_GOOGLE_CLIENT_ID: Optional[str] = None
    OAUTH2_GOOGLE_CLIENT_SECRET: Optional[str] = None
    OAUTH2_FACEBOOK_CLIENT_ID: Optional[str] = None
    OAUTH2_FACEBOOK_CLIENT_SECRET: Optional[str] = None
    OAUTH2_GITHUB_CLIENT_ID: Optional[str] = None
    OAUTH2_GITHUB_CLIENT_SECRET: Optional[str] = None
    OAUTH2_VK_CLIENT_ID: Optional[str] = None
    OAUTH2_VK_CLIENT_SECRET: Optional[str] = None

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:4200"]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "text"  # 'text' or 'json' (json for production)

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    @field_validator("ACCESS_TOKEN_SIGNING_KEY")
    @classmethod
    def validate_signing_key(cls, v: str) -> str:
        """Validate the signing key is BASE64 and long enough for HS512 in production."""
        try:
            decoded = base64.b64decode(v, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValueError("ACCESS_TOKEN_SIGNING_KEY must be BASE64-encoded") from exc

        import os

        environment = os.getenv("ENVIRONMENT", "development")

        if environment == "production" and len(decoded) < 64:
            raise ValueError(
                "Insecure ACCESS_TOKEN_SIGNING_KEY detected in production! "
                "Generate a secure key with: openssl rand -base64 64"
            )

        return v

    @field_validator("ACCESS_TOKEN_CARRIER")
    @classmethod
    def validate_carrier(cls, v: str) -> str:
        """Only one carrier convention is supported per deployment."""
        v = v.strip().lower()
        if v not in ("header", "cookie"):
            raise ValueError("ACCESS_TOKEN_CARRIER must be 'header' or 'cookie'")
        return v

    @field_validator("ACCESS_TOKEN_VALIDITY_SECONDS")
    @classmethod
    def validate_validity(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("ACCESS_TOKEN_VALIDITY_SECONDS must be positive")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()

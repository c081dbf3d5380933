# readiness_auth/adapters/configuration/config.py

import hashlib
import hmac
from typing import Optional, List, Union
from logging import getLevelName
from pydantic import field_validator, ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Logging
    LOG_LEVEL: str = "INFO"

    # Environment
    ENVIRONMENT: str = "development"  # "development", "production", "testing"
    DEBUG: bool = False

    # Database
    DB_DRIVER: str = "asyncpg"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "readiness"
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    DATABASE_URL: Optional[str] = None

    # Key/value store for the refresh-token registry
    REDIS_URL: Optional[str] = None
    REDIS_SOCKET_TIMEOUT: float = 5.0
    USE_MEMORY_STORE: bool = False

    # Tokens
    JWT_SECRET: str
    REFRESH_TOKEN_SECRET: Optional[str] = None
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    ROTATE_REFRESH_ON_USE: bool = False

    # Password security
    ARGON2_MEMORY_COST: int = 65536  # KiB
    ARGON2_TIME_COST: int = 3
    ARGON2_PARALLELISM: int = 1
    PASSWORD_HISTORY_LIMIT: int = 12
    PASSWORD_MAX_AGE_DAYS: int = 90
    PASSWORD_RESET_EXPIRE_MINUTES: int = 30

    # Federated login
    GOOGLE_CLIENT_ID: Optional[str] = None
    MICROSOFT_CLIENT_ID: Optional[str] = None
    # Tenant ids (tid) whose Microsoft accounts are treated as email-verified
    MICROSOFT_TRUSTED_TENANTS: List[str] = []
    OIDC_HTTP_TIMEOUT: float = 5.0

    # Teams assigned on account creation
    DEFAULT_TEAM_NAME: str = "Client"
    INTERNAL_TEAM_NAME: str = "Internal"
    INTERNAL_EMAIL_DOMAIN: Optional[str] = None
    DEFAULT_ROLE: str = "client"

    # Lockout
    MAX_LOGIN_ATTEMPTS: int = 5
    LOCKOUT_DURATION_MINUTES: int = 30

    # CORS and CSRF Protection
    FRONTEND_URL: str = "http://localhost:5000"
    ALLOWED_ORIGINS: List[str] = ["http://localhost:5000", "http://127.0.0.1:5000"]
    CSRF_EXEMPT_ROUTES: List[str] = [
        "/api/auth/login",
        "/api/auth/register",
        "/api/auth/google/login",
        "/api/auth/microsoft/login",
        "/docs",
        "/redoc",
        "/openapi.json",
    ]

    # Reverse proxy
    # X-Forwarded-For is honored only when set; the last hop is the one the proxy appended
    TRUST_PROXY_HEADERS: bool = False

    @field_validator("DATABASE_URL", mode="before")
    def assemble_db_url(cls, value, info):
        if value:
            return value

        data = info.data
        return (
            f"postgresql+{data.get('DB_DRIVER', 'asyncpg')}://"
            f"{data['POSTGRES_USER']}:{data['POSTGRES_PASSWORD']}@"
            f"{data['POSTGRES_HOST']}:{data['POSTGRES_PORT']}/{data['POSTGRES_DB']}"
        )

    @field_validator("JWT_SECRET")
    def validate_jwt_secret(cls, v: str) -> str:
        if len(v) < 32:
            raise ValueError("JWT_SECRET must be at least 32 characters")
        return v

    @field_validator("REFRESH_TOKEN_SECRET")
    def validate_refresh_secret(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and len(v) < 32:
            raise ValueError("REFRESH_TOKEN_SECRET must be at least 32 characters")
        return v

    @field_validator("ALLOWED_ORIGINS", "CSRF_EXEMPT_ROUTES", "MICROSOFT_TRUSTED_TENANTS", mode="before")
    def assemble_list(cls, v: Union[str, List[str]]) -> List[str]:
        """
        Accept a CSV string ('a,b,c') as well as a list or JSON array.
        """
        if isinstance(v, str) and not v.startswith("["):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @field_validator("LOG_LEVEL", mode="before")
    def validate_log_level(cls, v: str) -> str:
        """Make sure the value is a valid logging level."""
        lvl = v.upper()
        if not isinstance(getLevelName(lvl), int):
            raise ValueError(f"Invalid LOG_LEVEL: {v!r}")
        return lvl

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    def _derive_secret(self, purpose: bytes) -> str:
        return hmac.new(self.JWT_SECRET.encode(), purpose, hashlib.sha256).hexdigest()

    @property
    def access_token_secret(self) -> Optional[str]:
        """Signing key for access tokens, derived from JWT_SECRET when there is no separate refresh secret."""
        if not self.JWT_SECRET:
            return None
        if self.REFRESH_TOKEN_SECRET:
            return self.JWT_SECRET
        return self._derive_secret(b"readiness-auth access token")

    @property
    def refresh_token_secret(self) -> Optional[str]:
        if self.REFRESH_TOKEN_SECRET:
            return self.REFRESH_TOKEN_SECRET
        return self._derive_secret(b"readiness-auth refresh token") if self.JWT_SECRET else None

    model_config = ConfigDict(env_file=".env", extra="ignore")


settings = Settings()

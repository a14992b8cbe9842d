"""Configuration management. All settings from environment variables with sensible defaults."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DatabaseConfig:
    host: str = "localhost"
    port: int = 5432
    name: str = "sienna"
    user: str = "sienna"
    password: str = "sienna-dev-password"
    pool_min_size: int = 2
    pool_max_size: int = 10

    @property
    def dsn(self) -> str:
        return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.name}"


@dataclass(frozen=True)
class LLMConfig:
    backend: str = "gemini"  # "gemini", "openai", or registered name

    # Gemini settings
    gemini_model: str = "gemini-2.0-flash"
    gemini_api_key: str = ""

    # OpenAI-compatible settings (works with OpenAI, Groq, Together, LM Studio, vLLM)
    openai_base_url: str = "https://api.openai.com"
    openai_model: str = "gpt-4o-mini"
    openai_api_key: str = ""


@dataclass(frozen=True)
class StorageConfig:
    bucket: str = ""                 # empty = uploads disabled
    region: str = "us-east-1"
    prefix: str = "uploads"
    public_base_url: str = ""        # empty = https://{bucket}.s3.{region}.amazonaws.com
    endpoint_url: str = ""           # S3-compatible endpoint (MinIO, R2); empty = AWS


@dataclass(frozen=True)
class IdentityConfig:
    api_url: str = "https://api.clerk.com/v1"
    secret_key: str = ""             # empty = team management disabled
    timeout: int = 30


@dataclass(frozen=True)
class AuthConfig:
    enabled: bool = False
    api_key: str | None = None  # Static API key (checked via X-API-Key header)
    header_name: str = "X-API-Key"  # Header to check for auth token
    user_header: str = "X-User-Id"  # Header carrying the acting admin's identity-provider ID


@dataclass(frozen=True)
class Config:
    db: DatabaseConfig = field(default_factory=DatabaseConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    identity: IdentityConfig = field(default_factory=IdentityConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    env: str = "development"  # "development" or "production"
    http_host: str = "0.0.0.0"
    http_port: int = 8000
    cors_origins: list[str] = field(default_factory=lambda: ["*"])
    run_migrations: bool = True

    @property
    def is_production(self) -> bool:
        return self.env == "production"


def _parse_cors_origins(raw: str) -> list[str]:
    """Parse comma-separated CORS origins. '*' means allow all."""
    origins = [o.strip() for o in raw.split(",") if o.strip()]
    return origins or ["*"]


_BOOL_TRUTHY = {"true", "1", "yes"}


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in _BOOL_TRUTHY


def load_config() -> Config:
    """Load configuration from environment variables."""
    env = os.getenv("SIENNA_ENV", "development").lower().strip()
    if env not in ("development", "production"):
        logger.warning("Unknown SIENNA_ENV '%s' (valid: development, production)", env)
        env = "development"

    return Config(
        db=DatabaseConfig(
            host=os.getenv("SIENNA_DB_HOST", "localhost"),
            port=int(os.getenv("SIENNA_DB_PORT", "5432")),
            name=os.getenv("SIENNA_DB_NAME", "sienna"),
            user=os.getenv("SIENNA_DB_USER", "sienna"),
            password=os.getenv("SIENNA_DB_PASS", "sienna-dev-password"),
            pool_min_size=int(os.getenv("SIENNA_DB_POOL_MIN", "2")),
            pool_max_size=int(os.getenv("SIENNA_DB_POOL_MAX", "10")),
        ),
        llm=LLMConfig(
            backend=os.getenv("SIENNA_LLM_BACKEND", "gemini"),
            gemini_model=os.getenv("SIENNA_GEMINI_MODEL", "gemini-2.0-flash"),
            gemini_api_key=os.getenv("SIENNA_GEMINI_API_KEY", ""),
            openai_base_url=os.getenv("SIENNA_OPENAI_BASE_URL", "https://api.openai.com"),
            openai_model=os.getenv("SIENNA_OPENAI_MODEL", "gpt-4o-mini"),
            openai_api_key=os.getenv("SIENNA_OPENAI_API_KEY", ""),
        ),
        storage=StorageConfig(
            bucket=os.getenv("SIENNA_STORAGE_BUCKET", ""),
            region=os.getenv("SIENNA_STORAGE_REGION", os.getenv("AWS_DEFAULT_REGION", "us-east-1")),
            prefix=os.getenv("SIENNA_STORAGE_PREFIX", "uploads"),
            public_base_url=os.getenv("SIENNA_STORAGE_PUBLIC_URL", ""),
            endpoint_url=os.getenv("SIENNA_STORAGE_ENDPOINT", ""),
        ),
        identity=IdentityConfig(
            api_url=os.getenv("SIENNA_CLERK_API_URL", "https://api.clerk.com/v1"),
            secret_key=os.getenv("SIENNA_CLERK_SECRET_KEY", ""),
            timeout=int(os.getenv("SIENNA_CLERK_TIMEOUT", "30")),
        ),
        auth=AuthConfig(
            enabled=_env_bool("SIENNA_AUTH_ENABLED", "false"),
            api_key=os.getenv("SIENNA_API_KEY") or None,
            header_name=os.getenv("SIENNA_AUTH_HEADER", "X-API-Key"),
            user_header=os.getenv("SIENNA_USER_HEADER", "X-User-Id"),
        ),
        env=env,
        http_host=os.getenv("SIENNA_HTTP_HOST", "0.0.0.0"),
        http_port=int(os.getenv("SIENNA_HTTP_PORT", "8000")),
        cors_origins=_parse_cors_origins(os.getenv("SIENNA_CORS_ORIGINS", "*")),
        run_migrations=_env_bool("SIENNA_RUN_MIGRATIONS", "true"),
    )

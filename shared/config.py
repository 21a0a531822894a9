"""
Shared configuration management for tracker-proxy.
"""

from typing import Literal

from pydantic import Field, ValidationError, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.errors import ConfigError


DEFAULT_UPSTREAM_URL = "https://tracker.israeli.ovh"
DEFAULT_ALLOWED_ORIGIN_SUFFIX = ".artistgrid."
DEFAULT_ALLOWED_ORIGIN_EXACT = "artistgrid.cx"


class ProxyConfig(BaseSettings):
    """Process configuration, read once at startup and never mutated."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # Upstream
    api_key: str = Field(min_length=1, repr=False)
    upstream_url: str = DEFAULT_UPSTREAM_URL

    # Listener
    host: str = "0.0.0.0"
    port: int = Field(default=3000, ge=1, le=65535)

    # Cache
    cache_ttl_seconds: int = Field(default=600, gt=0)
    cache_max_capacity: int = Field(default=10_000, gt=0)

    # CORS
    allowed_origin_suffix: str = DEFAULT_ALLOWED_ORIGIN_SUFFIX
    allowed_origin_exact: str = DEFAULT_ALLOWED_ORIGIN_EXACT

    # Observability
    log_level: Literal["debug", "info", "warning", "error", "critical"] = "info"

    @field_validator("port", "cache_ttl_seconds", "cache_max_capacity", mode="before")
    @classmethod
    def _default_when_unparseable(cls, value, info: ValidationInfo):
        """Non-numeric or empty values fall back to the field default; range checks still apply."""
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError:
                return cls.model_fields[info.field_name].default
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value):
        return value.lower() if isinstance(value, str) else value


def _describe(exc: ValidationError) -> str:
    """Turn the first validation failure into a one-line operator message."""
    error = exc.errors()[0]
    field = str(error["loc"][0]) if error.get("loc") else "configuration"
    env_name = field.upper()

    if field == "api_key":
        if error["type"] == "missing":
            return "API_KEY environment variable is required"
        return "API_KEY cannot be empty"

    return f"{env_name}: {error['msg']}"


def load_config(**overrides) -> ProxyConfig:
    """Build the process configuration from the environment (and .env).

    Keyword overrides take precedence over the environment; tests use them to
    avoid touching ``os.environ``.
    """
    try:
        return ProxyConfig(**overrides)
    except ValidationError as exc:
        raise ConfigError(_describe(exc), details={"error_count": exc.error_count()}) from exc

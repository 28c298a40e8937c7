import re
from typing import Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _parse_proxy_urls(raw: Any) -> str:
    if raw is None:
        return ""
    if isinstance(raw, (list, tuple)):
        items = [str(v).strip() for v in raw]
        return ",".join(v for v in items if v)

    # Tolerate whitespace- or newline-separated values from misconfigured
    # deployments; downstream parsing only splits on commas.
    parts = [p for p in re.split(r"[,\s]+", str(raw).strip()) if p]
    return ",".join(parts)


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    """

    # Debug mode - logs rejected request bodies and returns error details
    debug: bool = False

    # Upstream JSON-RPC endpoint used when no proxy is configured
    api_url: str = "https://www2.deepl.com/jsonrpc"

    # Comma separated egress proxy URLs, e.g. "https://p1.example/jsonrpc,https://p2.example/jsonrpc"
    proxy_urls: str = ""

    # Rate limiting settings (token bucket per identity)
    rate_limit_capacity: int = 60  # Bucket size, refilled over one minute
    rate_limit_cache_ttl_seconds: float = 15.0  # Local cache freshness window
    rate_limit_kv_ttl_seconds: int = 3600  # Expiration of durable records

    # Payload limits
    max_text_length: int = 5000  # Characters
    max_request_size: int = 32768  # Bytes of the serialized JSON-RPC body

    # Upstream request timeout in seconds
    request_timeout: float = 10.0

    # Retry settings
    retry_max_attempts: int = 3
    retry_base_delay: float = 1.0
    retry_max_delay: float = 5.0
    retry_jitter: float = 0.1

    # HTTP Client connection pool settings
    httpx_connect_timeout: float = 5.0
    httpx_pool_timeout: float = 5.0
    httpx_keepalive_expiry: float = 30.0
    httpx_max_connections: int = 100
    httpx_max_keepalive_connections: int = 20

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    # Redis settings (optional durable store for rate-limit counters)
    redis_enabled: bool = False
    redis_url: str = "redis://localhost:6379/0"

    @field_validator("proxy_urls", mode="before")
    @classmethod
    def decode_proxy_urls(cls, v: Any) -> str:
        return _parse_proxy_urls(v)

    @field_validator(
        "rate_limit_capacity",
        "rate_limit_kv_ttl_seconds",
        "max_text_length",
        "max_request_size",
        "retry_max_attempts",
    )
    @classmethod
    def validate_positive_int(cls, v: int) -> int:
        """Validate limits are at least 1."""
        if v < 1:
            raise ValueError("limit values must be at least 1")
        return v

    @field_validator("request_timeout", "rate_limit_cache_ttl_seconds", "httpx_connect_timeout")
    @classmethod
    def validate_timeout_positive(cls, v: float) -> float:
        """Validate timeout values are positive."""
        if v <= 0:
            raise ValueError("Timeout values must be positive")
        return v

    @field_validator("retry_base_delay", "retry_max_delay", "retry_jitter")
    @classmethod
    def validate_delay_non_negative(cls, v: float) -> float:
        """Validate retry delays are not negative."""
        if v < 0:
            raise ValueError("retry delays must not be negative")
        return v

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Global settings instance
settings = Settings()

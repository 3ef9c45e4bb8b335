"""Configuration management for TaskDesk: AppConfig reads settings from environment variables."""

import os
from pathlib import Path

# Principal used for callers that present no identity.
ANONYMOUS_PRINCIPAL = "2vxsx-fae"


def _split_csv_env(name: str, default: str = "") -> list[str]:
    raw = os.getenv(name, default)
    return [p.strip() for p in raw.split(",") if p.strip()]


class AppConfig:
    """Application-level configuration loaded from environment variables.

    All env vars have sensible defaults so the application works out of the
    box without any configuration.

    Environment variables:
        APP_DB_PATH: Path to the SQLite database file (default: taskdesk.sqlite)
        APP_PORT: API server port (default: 8000)
        APP_HOST: API server bind address (default: 127.0.0.1)
        APP_LOG_FORMAT: Logging format, "text" or "json" (default: text)
        APP_CORS_ORIGINS: Comma-separated allowed origins (default: *)
        RATE_LIMIT_PUBLIC: Max public search requests per minute per IP (default: 60)
        RATE_LIMIT_DOWNLOAD: Max download requests per minute per IP (default: 10)
        RATE_LIMIT_DEFAULT: Max requests per minute for other endpoints (default: 240)
        TRUSTED_PROXIES: Comma-separated proxy IP addresses to trust for forwarded IPs
        APP_ADMIN_PRINCIPALS: Comma-separated principals that are always admin
        APP_DASHBOARD_CACHE_TTL: Seconds to cache dashboard aggregates (default: 60)
    """

    def __init__(self) -> None:
        self.db_path = Path(os.getenv("APP_DB_PATH", "taskdesk.sqlite"))
        self.api_port = int(os.getenv("APP_PORT", "8000"))
        self.api_host = os.getenv("APP_HOST", "127.0.0.1")
        self.log_format = os.getenv("APP_LOG_FORMAT", "text")
        raw_origins = os.getenv("APP_CORS_ORIGINS", "*")
        self.cors_origins: list[str] = (
            ["*"] if raw_origins == "*"
            else [o.strip() for o in raw_origins.split(",") if o.strip()]
        )
        self.rate_limit_public = int(os.getenv("RATE_LIMIT_PUBLIC", "60"))
        self.rate_limit_download = int(os.getenv("RATE_LIMIT_DOWNLOAD", "10"))
        self.rate_limit_default = int(os.getenv("RATE_LIMIT_DEFAULT", "240"))
        self.trusted_proxies: set[str] = set(_split_csv_env("TRUSTED_PROXIES"))
        self.admin_principals: set[str] = set(_split_csv_env("APP_ADMIN_PRINCIPALS"))
        self.dashboard_cache_ttl = float(os.getenv("APP_DASHBOARD_CACHE_TTL", "60"))

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Create an AppConfig instance populated from environment variables."""
        return cls()

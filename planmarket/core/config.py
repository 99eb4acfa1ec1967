"""
planmarket/core/config.py

Application settings, read from the environment and an optional .env file.

validate_config only reports missing keys (or raises in strict mode); the
range and production rules live in core/validation.py.
"""

import logging

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import Optional

class Settings(BaseSettings):
    # Environment
    ENV: str = "development"
    CONFIG_STRICT: bool = False

    # Database
    DATABASE_URL: Optional[str] = None
    TEST_DATABASE_URL: Optional[str] = None
    DB_POOL_TIMEOUT: int = 30

    # Plan documents
    MAX_DOCUMENT_BYTES: int = 50 * 1024 * 1024
    PREVIEW_CACHE_SECONDS: int = 3600

    # Catalog pagination
    DEFAULT_PAGE_SIZE: int = 12
    MAX_PAGE_SIZE: int = 100

    # Entitlements: "open" grants every download, "ledger" requires a purchase row
    ENTITLEMENT_MODE: str = "open"

    # Outbound mail (contact form / order notifications)
    MAIL_ENABLED: bool = False
    MAIL_FROM: Optional[str] = None
    MAIL_TO: Optional[str] = None
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USERNAME: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_SECURITY: str = "starttls"  # starttls | ssl | none
    SMTP_TIMEOUT: int = 30

    # HTTP
    CORS_ORIGINS: str = "http://localhost:3000"  # comma-separated

    # Observability / Tracing
    OTEL_ENABLED: bool = False
    OTEL_EXPORTER: str = "console"  # console | memory

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Validate required configuration.

    In strict mode raise RuntimeError; otherwise emit warnings only.
    Secrets are not logged, only missing keys.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("planmarket")
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    required_keys = ["DATABASE_URL"]
    if cfg.MAIL_ENABLED:
        required_keys.extend(["SMTP_HOST", "MAIL_FROM", "MAIL_TO"])

    missing = [key for key in required_keys if not getattr(cfg, key, None)]
    if missing:
        message = f"Missing required configuration: {', '.join(missing)}"
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)

    return True

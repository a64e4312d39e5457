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

    # Session auth
    SESSION_SECRET: Optional[str] = None
    SESSION_ALGORITHMS: str = "HS256"  # comma-separated
    AUTH_ALLOW_USER_HEADER: bool = True  # X-User-Id fallback, disabled by validate_env in production

    # Public hosting
    PUBLIC_DOMAIN: str = "vercel.pub"
    REVALIDATE_SCHEME: str = "https"
    REVALIDATE_SECRET: Optional[str] = None
    REVALIDATE_TIMEOUT_SECONDS: float = 5.0

    # Cover images
    IMAGE_PROXY_URL: str = "https://wsrv.nl/"
    IMAGE_PLACEHOLDER_TIMEOUT_SECONDS: float = 5.0

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"  # comma-separated

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
settings = Settings()


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Validate required configuration.

    In strict mode raise RuntimeError; otherwise emit warnings only.
    Secrets are not logged, only missing keys.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("sitepress")
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    required_keys = [
        "DATABASE_URL",
        "SESSION_SECRET",
        "REVALIDATE_SECRET",
    ]

    missing = [key for key in required_keys if not getattr(cfg, key, None)]
    if missing:
        message = f"Missing required configuration: {', '.join(missing)}"
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)

    return True

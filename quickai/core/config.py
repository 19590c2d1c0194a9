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

    # Clerk Auth
    CLERK_SECRET_KEY: Optional[str] = None  # Backend API key (user metadata reads/writes)
    CLERK_JWT_SECRET: Optional[str] = None  # HS256 session verification (dev/test only)
    CLERK_ISSUER: Optional[str] = None  # e.g. https://your-instance.clerk.accounts.dev
    CLERK_AUDIENCE: Optional[str] = None
    CLERK_JWKS_URL: Optional[str] = None
    CLERK_API_BASE: str = "https://api.clerk.com/v1"
    IDENTITY_BACKEND: str = "clerk"  # "clerk" | "memory"

    # LLM (Groq chat completions)
    GROQ_API_KEY: Optional[str] = None
    ARTICLE_MODEL: str = "llama-3.3-70b-versatile"
    BLOG_TITLE_MODEL: str = "llama-3.1-8b-instant"
    RESUME_MODEL: str = "llama-3.3-70b-versatile"

    # Text-to-image
    CLIPDROP_API_KEY: Optional[str] = None
    CLIPDROP_API_URL: str = "https://clipdrop-api.co/text-to-image/v1"

    # Media hosting / image editing
    CLOUDINARY_CLOUD_NAME: Optional[str] = None
    CLOUDINARY_API_KEY: Optional[str] = None
    CLOUDINARY_API_SECRET: Optional[str] = None

    # Quota and uploads
    FREE_USAGE_LIMIT: int = 10
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024
    PROVIDER_TIMEOUT_SECONDS: float = 60.0

    # App
    CORS_ORIGINS: str = "http://localhost:5173"  # comma-separated

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


settings = Settings()


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Validate required configuration.

    In strict mode raise RuntimeError; otherwise emit warnings only.
    Secrets are not logged, only missing keys.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("quickai")
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    required_keys = [
        "DATABASE_URL",
        "CLERK_SECRET_KEY",
        "GROQ_API_KEY",
        "CLIPDROP_API_KEY",
        "CLOUDINARY_CLOUD_NAME",
        "CLOUDINARY_API_KEY",
        "CLOUDINARY_API_SECRET",
    ]

    missing = [key for key in required_keys if not getattr(cfg, key, None)]
    if missing:
        message = f"Missing required configuration: {', '.join(missing)}"
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)

    return True

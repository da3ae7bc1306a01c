import os
from pathlib import Path
from typing import List, Optional

# Basic settings helper to read environment configuration.

BACKEND_ROOT = Path(__file__).resolve().parent
DEFAULT_DATABASE_URL = f"sqlite:///{BACKEND_ROOT / 'app.db'}"


def _as_bool(val: str | None, default: bool = False) -> bool:
    if val is None:
        return default
    return val.lower() in ("1", "true", "yes", "on")


def _as_int(val: str | None, default: Optional[int]) -> Optional[int]:
    if val is None:
        return default
    val = val.strip()
    if not val:
        return None
    return int(val)


def _as_list(val: str | None, default: List[str]) -> List[str]:
    if not val:
        return default
    return [item.strip() for item in val.split(",") if item.strip()]


class Settings:
    def __init__(self) -> None:
        self.APP_ENV: str = os.getenv("APP_ENV", "development")
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
        self.DATABASE_URL: str = os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)
        self.CORS_ALLOW_ORIGINS: List[str] = _as_list(os.getenv("CORS_ALLOW_ORIGINS"), ["*"])

        # Generation providers are picked here, never per request.
        self.TEXT_PROVIDER: str = os.getenv("TEXT_PROVIDER", "openai").lower()
        self.IMAGE_PROVIDER: str = os.getenv("IMAGE_PROVIDER", "openai").lower()
        self.PROVIDER_TIMEOUT_SECONDS: float = float(os.getenv("PROVIDER_TIMEOUT_SECONDS", "120"))

        self.OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
        self.OPENAI_BASE_URL: str = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
        self.OPENAI_TEXT_MODEL: str = os.getenv("OPENAI_TEXT_MODEL", "gpt-4o")
        self.OPENAI_IMAGE_MODEL: str = os.getenv("OPENAI_IMAGE_MODEL", "gpt-image-1")

        self.ANTHROPIC_API_KEY: str = os.getenv("ANTHROPIC_API_KEY", "")
        self.ANTHROPIC_BASE_URL: str = os.getenv("ANTHROPIC_BASE_URL", "https://api.anthropic.com")
        self.ANTHROPIC_MODEL: str = os.getenv("ANTHROPIC_MODEL", "claude-3-5-sonnet-20241022")
        self.ANTHROPIC_MAX_TOKENS: int = int(os.getenv("ANTHROPIC_MAX_TOKENS", "8192"))

        # "chained" = draft -> refine -> compliance check, "single" = draft only
        self.CHAPTER_PIPELINE: str = os.getenv("CHAPTER_PIPELINE", "chained").lower()
        # Listing this book's chapters while it has none triggers chapter generation.
        self.BOOTSTRAP_BOOK_ID: Optional[int] = _as_int(os.getenv("BOOTSTRAP_BOOK_ID"), 2)
        self.BOOTSTRAP_CHAPTER_COUNT: int = int(os.getenv("BOOTSTRAP_CHAPTER_COUNT", "15"))

        self.SEED_DEMO_DATA: bool = _as_bool(
            os.getenv("SEED_DEMO_DATA"), self.APP_ENV != "production"
        )


settings = Settings()

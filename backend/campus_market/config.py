"""
Application configuration and settings management.
"""
import os

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Application configuration."""

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./campus_market.db")

    # API settings
    API_TITLE: str = "Campus Market API"
    API_VERSION: str = "1.0.0"
    API_DESCRIPTION: str = "REST API for the Campus Market student marketplace"

    # Auth
    SECRET_KEY: str = os.getenv("SECRET_KEY", "campus-market-dev-secret")
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "1440"))

    # CORS settings
    CORS_ORIGINS: list = os.getenv("CORS_ORIGINS", "*").split(",")
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_ALLOW_METHODS: list = ["*"]
    CORS_ALLOW_HEADERS: list = ["*"]

    # Uploads
    UPLOAD_DIR: str = os.getenv("UPLOAD_DIR", "./uploads")
    MAX_UPLOAD_BYTES: int = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))
    MAX_LISTING_FILES: int = 5

    # Pagination defaults
    DEFAULT_LISTING_LIMIT: int = 100
    MAX_LISTING_LIMIT: int = 500

    # Payments
    STRIPE_SECRET_KEY: str = os.getenv("STRIPE_SECRET_KEY", "")
    STRIPE_CURRENCY: str = os.getenv("STRIPE_CURRENCY", "inr")
    ALLOW_SIMULATED_DEPOSITS: bool = _env_bool("ALLOW_SIMULATED_DEPOSITS", "true")

    # Chatbot
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    @classmethod
    def validate(cls) -> None:
        """Validate configuration on startup."""
        if not cls.DATABASE_URL:
            raise ValueError("DATABASE_URL is not configured")
        if cls.MAX_UPLOAD_BYTES <= 0:
            raise ValueError("MAX_UPLOAD_BYTES must be positive")


# Global config instance
config = Config()

"""Runtime configuration for the shop API (read from the environment, overridable in tests)."""
import os
from typing import NamedTuple


class Settings(NamedTuple):
    database_url: str
    api_url: str
    jwt_secret: str
    jwt_expires_seconds: int
    upload_dir: str
    stripe_secret_key: str | None
    checkout_currency: str
    checkout_success_url: str
    checkout_cancel_url: str
    log_level: str
    cors_origins: tuple


def load_settings() -> Settings:
    origins = os.getenv("CORS_ORIGINS", "*")
    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///./eshop.db"),
        api_url=os.getenv("API_URL", "/api/v1").rstrip("/"),
        jwt_secret=os.getenv("JWT_SECRET", "dev-secret"),
        jwt_expires_seconds=int(os.getenv("JWT_EXPIRES_SECONDS", str(60 * 60 * 24))),
        upload_dir=os.getenv("UPLOAD_DIR", os.path.join("public", "uploads")),
        stripe_secret_key=os.getenv("STRIPE_SECRET_KEY") or None,
        checkout_currency=os.getenv("CHECKOUT_CURRENCY", "usd"),
        checkout_success_url=os.getenv("CHECKOUT_SUCCESS_URL", "http://localhost:4200/success"),
        checkout_cancel_url=os.getenv("CHECKOUT_CANCEL_URL", "http://localhost:4200/error"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
    )


state = load_settings()


def get_settings() -> Settings:
    return state


def configure(**overrides) -> Settings:
    """Replace selected settings at runtime (used by tests and the admin CLI)."""
    global state
    state = state._replace(**overrides)
    return state

# backend/marketplace/config.py
from __future__ import annotations
import os


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


# Settlement contexts (see services/commission_service.py)
COMMISSION_CONTEXT_PRODUCT_ORDER = "product_order"
COMMISSION_CONTEXT_TAILORING_INVOICE = "tailoring_invoice"
COMMISSION_CONTEXT_TAILOR_BATCH = "tailor_batch"


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/marketplace.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",  # optional alternative location (postgresql+psycopg2://...)
        "sqlite:///marketplace.sqlite3",  # default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Platform commission per settlement context, in basis points (500 = 5%).
    # The tailor batch rate intentionally differs from the per-invoice rate.
    COMMISSION_RATES_BPS = {
        COMMISSION_CONTEXT_PRODUCT_ORDER: _env_int("COMMISSION_BPS_PRODUCT_ORDER", 500),
        COMMISSION_CONTEXT_TAILORING_INVOICE: _env_int("COMMISSION_BPS_TAILORING_INVOICE", 500),
        COMMISSION_CONTEXT_TAILOR_BATCH: _env_int("COMMISSION_BPS_TAILOR_BATCH", 1000),
    }

    # Transactions
    DB_LOCK_TIMEOUT_SECONDS = _env_int("DB_LOCK_TIMEOUT_SECONDS", 10)
    TRANSACTION_RETRY_ATTEMPTS = _env_int("TRANSACTION_RETRY_ATTEMPTS", 3)
    TRANSACTION_RETRY_BACKOFF = float(os.environ.get("TRANSACTION_RETRY_BACKOFF", "0.1"))

    # Session tokens
    SESSION_ABSOLUTE_TIMEOUT_HOURS = _env_int("SESSION_ABSOLUTE_TIMEOUT_HOURS", 24)
    SESSION_IDLE_TIMEOUT_HOURS = _env_int("SESSION_IDLE_TIMEOUT_HOURS", 2)

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    CORS_ALLOWED_ORIGINS = {
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173",
        ).split(",")
        if origin.strip()
    }

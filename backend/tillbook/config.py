# backend/tillbook/config.py
from __future__ import annotations
import os


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/tillbook.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///tillbook.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Object storage (directory-backed bucket). None means <instance_path>/storage.
    STORAGE_ROOT = os.environ.get("STORAGE_ROOT")
    STORAGE_BUCKET = os.environ.get("STORAGE_BUCKET", "invoice-files")
    FILE_RETENTION_DAYS = _env_int("FILE_RETENTION_DAYS", 14)

    # "aggregate" compares total units; "strict" requires every line fulfilled
    DELIVERY_COMPLETION_MODE = os.environ.get("DELIVERY_COMPLETION_MODE", "aggregate")
    # "line" matches batch items to order lines by id; "name" by product name
    DELIVERY_MATCH_KEY = os.environ.get("DELIVERY_MATCH_KEY", "line")

    PROMPTPAY_ID = os.environ.get("PROMPTPAY_ID", "0987654321")

    # Shared secret for the scheduled cleanup endpoint (unset = open)
    CLEANUP_TOKEN = os.environ.get("CLEANUP_TOKEN")

    BCRYPT_ROUNDS = _env_int("BCRYPT_ROUNDS", 12)

    CORS_ALLOWED_ORIGINS = [
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
        ).split(",")
        if origin.strip()
    ]

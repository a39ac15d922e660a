# backend/shopledger/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored next to the backend by default
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///shopledger.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Optimistic transaction retries: attempts before a StoreConflict is
    # surfaced, and the base of the exponential backoff (seconds).
    LEDGER_TXN_ATTEMPTS = int(os.environ.get("LEDGER_TXN_ATTEMPTS", "5"))
    LEDGER_TXN_BACKOFF = float(os.environ.get("LEDGER_TXN_BACKOFF", "0.05"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

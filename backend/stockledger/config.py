# backend/stockledger/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    return os.environ.get(name, str(default)).strip().lower() in ("1", "true", "yes", "on")


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/stockledger.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///stockledger.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Downstream ERP/accounting sync (fire-and-forget, after commit)
    SYNC_NOTIFIER_ASYNC = _env_bool("SYNC_NOTIFIER_ASYNC", True)
    SYNC_NOTIFIER_WORKERS = int(os.environ.get("SYNC_NOTIFIER_WORKERS", "2"))
    SYNC_WEBHOOK_URL = os.environ.get("SYNC_WEBHOOK_URL", "")
    SYNC_WEBHOOK_TIMEOUT = float(os.environ.get("SYNC_WEBHOOK_TIMEOUT", "5"))

    # ShipStation inventory feed
    SHIPSTATION_BASE_URL = os.environ.get("SHIPSTATION_BASE_URL", "https://api.shipstation.com")
    SHIPSTATION_API_KEY = os.environ.get("SHIPSTATION_API_KEY", "")
    SHIPSTATION_TIMEOUT = float(os.environ.get("SHIPSTATION_TIMEOUT", "30"))

    # Optional callable(permission_key: str) -> bool; None allows every request.
    PERMISSION_CHECKER = None

# backend/numberflow/config.py
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

    # SQLite DB stored in backend/instance/numberflow.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///numberflow.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Background consistency sweeps
    SWEEPS_ENABLED = os.environ.get("SWEEPS_ENABLED", "false").lower() == "true"
    RTS_SWEEP_INTERVAL_SECONDS = _env_int("RTS_SWEEP_INTERVAL_SECONDS", 60)
    SAFE_CUSTODY_SWEEP_INTERVAL_SECONDS = _env_int("SAFE_CUSTODY_SWEEP_INTERVAL_SECONDS", 60 * 60)
    REMINDER_PRUNE_INTERVAL_SECONDS = _env_int("REMINDER_PRUNE_INTERVAL_SECONDS", 24 * 60 * 60)
    REMINDER_RETENTION_DAYS = _env_int("REMINDER_RETENTION_DAYS", 7)
    AUTO_RTS_HIGHLIGHT_SECONDS = _env_int("AUTO_RTS_HIGHLIGHT_SECONDS", 5 * 60)

    # Vendors offered in sale forms before any sale has been recorded
    DEFAULT_VENDORS = (
        "lifetimenumber",
        "vipnumberstore",
        "vipnumbershop",
        "numberwale",
        "numberspoint",
        "vipfancynumber",
        "numberatm",
        "numbersolution",
    )

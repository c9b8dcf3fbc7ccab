# backend/tablesync/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/tablesync.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///tablesync.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Upper bound on fixes applied by a single reconciliation pass
    RECONCILE_MAX_FIXES = int(os.environ.get("RECONCILE_MAX_FIXES", "25"))

    # Conflict log rows older than this are removed by `flask consistency cleanup-conflicts`
    CONFLICT_RETENTION_DAYS = int(os.environ.get("CONFLICT_RETENTION_DAYS", "90"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

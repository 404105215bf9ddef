"""
Runtime settings read from the environment.

Every setting has a default except DATABASE_URL.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 5050
DEFAULT_SCHEMA_PATH = Path(__file__).resolve().parent.parent / "users" / "schema.sql"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def database_url() -> str:
    return os.environ.get("DATABASE_URL", "").strip()


def host() -> str:
    return os.environ.get("HOST", DEFAULT_HOST).strip() or DEFAULT_HOST


def port() -> int:
    return _env_int("PORT", DEFAULT_PORT)


def schema_path() -> Path:
    raw = os.environ.get("SCHEMA_PATH", "").strip()
    return Path(raw) if raw else DEFAULT_SCHEMA_PATH


def log_level() -> str:
    return os.environ.get("LOG_LEVEL", "INFO").strip().upper() or "INFO"


def configure_logging() -> None:
    logging.basicConfig(level=log_level(), format=LOG_FORMAT)

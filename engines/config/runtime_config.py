"""Runtime configuration helpers for engines."""
from __future__ import annotations

import logging
import os
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_EXPIRY_WINDOW_DAYS = 30
DEFAULT_QUOTA_WARNING_RATIO = 0.9


def _get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(name, default)


def get_env() -> Optional[str]:
    return _get_env("ENV") or _get_env("APP_ENV")


def get_rights_backend() -> str:
    return (_get_env("RIGHTS_BACKEND") or "memory").lower()


def get_firestore_project() -> Optional[str]:
    return _get_env("FIRESTORE_PROJECT") or _get_env("GCP_PROJECT")


def get_expiry_window_days() -> int:
    raw = _get_env("RIGHTS_EXPIRY_WINDOW_DAYS")
    if not raw:
        return DEFAULT_EXPIRY_WINDOW_DAYS
    try:
        value = int(raw)
    except ValueError:
        logger.warning("invalid RIGHTS_EXPIRY_WINDOW_DAYS=%r, using %s", raw, DEFAULT_EXPIRY_WINDOW_DAYS)
        return DEFAULT_EXPIRY_WINDOW_DAYS
    return value if value >= 0 else DEFAULT_EXPIRY_WINDOW_DAYS


def get_quota_warning_ratio() -> float:
    raw = _get_env("RIGHTS_QUOTA_WARNING_RATIO")
    if not raw:
        return DEFAULT_QUOTA_WARNING_RATIO
    try:
        value = float(raw)
    except ValueError:
        logger.warning("invalid RIGHTS_QUOTA_WARNING_RATIO=%r, using %s", raw, DEFAULT_QUOTA_WARNING_RATIO)
        return DEFAULT_QUOTA_WARNING_RATIO
    if not 0 < value <= 1:
        return DEFAULT_QUOTA_WARNING_RATIO
    return value


def audit_strict() -> bool:
    return _get_env("AUDIT_STRICT") == "1"

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_DB_PATH_ENV = "QC_DB_PATH"
_LOG_LEVEL_ENV = "QC_LOG_LEVEL"
_RETENTION_DAYS_ENV = "QC_RETENTION_DAYS"
_EMAIL_DOMAIN_ENV = "QC_EMAIL_DOMAIN"
_ADMIN_EMAIL_ENV = "QC_ADMIN_EMAIL"
_ADMIN_PASSWORD_ENV = "QC_ADMIN_PASSWORD"
_ADMIN_NAME_ENV = "QC_ADMIN_NAME"


@dataclass(frozen=True)
class Settings:
    db_path: str
    log_level: str
    retention_days: int
    email_domain: str
    admin_email: str
    admin_password: Optional[str]
    admin_name: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_log_level(default: str) -> str:
    return _read_str_env(_LOG_LEVEL_ENV, default).upper()


@lru_cache
def get_settings() -> Settings:
    domain = _read_str_env(_EMAIL_DOMAIN_ENV, "ind.com.br").lstrip("@")
    return Settings(
        db_path=_read_str_env(_DB_PATH_ENV, "./data/qc.db"),
        log_level=_read_log_level("INFO"),
        retention_days=_read_positive_int(_RETENTION_DAYS_ENV, 30),
        email_domain=domain,
        admin_email=_read_str_env(_ADMIN_EMAIL_ENV, f"cq.admin@{domain}").lower(),
        admin_password=_read_optional_env(_ADMIN_PASSWORD_ENV, None),
        admin_name=_read_str_env(_ADMIN_NAME_ENV, "QC Admin"),
    )

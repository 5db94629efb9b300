import logging

import pytest

from logging_config import ContextualFormatter
from settings import get_settings


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


_ENV_NAMES = (
    "QC_DB_PATH",
    "QC_LOG_LEVEL",
    "QC_RETENTION_DAYS",
    "QC_EMAIL_DOMAIN",
    "QC_ADMIN_EMAIL",
    "QC_ADMIN_PASSWORD",
    "QC_ADMIN_NAME",
)


def test_defaults(monkeypatch: pytest.MonkeyPatch):
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)

    settings = get_settings()
    assert settings.db_path == "./data/qc.db"
    assert settings.log_level == "INFO"
    assert settings.retention_days == 30
    assert settings.email_domain == "ind.com.br"
    assert settings.admin_email == "cq.admin@ind.com.br"
    assert settings.admin_password is None
    assert settings.admin_name == "QC Admin"


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("QC_DB_PATH", "/srv/qc/qc.db")
    monkeypatch.setenv("QC_LOG_LEVEL", "debug")
    monkeypatch.setenv("QC_RETENTION_DAYS", "90")
    monkeypatch.setenv("QC_EMAIL_DOMAIN", "@plant.example")
    monkeypatch.delenv("QC_ADMIN_EMAIL", raising=False)
    monkeypatch.setenv("QC_ADMIN_PASSWORD", "  s3cret!  ")

    settings = get_settings()
    assert settings.db_path == "/srv/qc/qc.db"
    assert settings.log_level == "DEBUG"
    assert settings.retention_days == 90
    assert settings.email_domain == "plant.example"
    assert settings.admin_email == "cq.admin@plant.example"
    assert settings.admin_password == "s3cret!"


@pytest.mark.parametrize("raw", ["", "abc", "0", "-5"])
def test_invalid_retention_falls_back(monkeypatch: pytest.MonkeyPatch, raw):
    monkeypatch.setenv("QC_RETENTION_DAYS", raw)
    assert get_settings().retention_days == 30


def test_settings_are_cached(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("QC_ADMIN_NAME", "First")
    first = get_settings()
    monkeypatch.setenv("QC_ADMIN_NAME", "Second")
    assert get_settings() is first
    get_settings.cache_clear()
    assert get_settings().admin_name == "Second"


def test_contextual_formatter_appends_known_extras():
    formatter = ContextualFormatter(fmt="%(levelname)s %(message)s", extra_keys=["user_id", "count"])
    record = logging.LogRecord("db", logging.INFO, __file__, 1, "Retention sweep", None, None)
    record.count = 3
    record.cutoff = "2026-01-01T00:00"

    assert formatter.format(record) == "INFO Retention sweep | count=3"

"""Tests for application settings."""
import importlib


def test_database_url_respects_env_var(monkeypatch):
    """DATABASE_URL uses the env var when set."""
    monkeypatch.setenv("DATABASE_URL", "sqlite:////var/data/biomech.db")

    import backend.app.settings as settings
    importlib.reload(settings)

    assert settings.DATABASE_URL == "sqlite:////var/data/biomech.db"


def test_database_url_defaults_to_local_sqlite(monkeypatch):
    """DATABASE_URL falls back to repo-root biomech.db when env var is unset."""
    monkeypatch.delenv("DATABASE_URL", raising=False)

    import backend.app.settings as settings
    importlib.reload(settings)

    assert settings.DATABASE_URL.startswith("sqlite:///")
    assert settings.DATABASE_URL.endswith("biomech.db")


def test_subject_and_report_defaults(monkeypatch):
    """Anonymous subject and report window defaults apply without env vars."""
    for name in ("DEFAULT_SUBJECT_ID", "REPORT_WINDOW", "MAX_PLAUSIBLE_FORWARD_HEAD"):
        monkeypatch.delenv(name, raising=False)

    import backend.app.settings as settings
    importlib.reload(settings)

    assert settings.DEFAULT_SUBJECT_ID == "anonymous-user"
    assert settings.REPORT_WINDOW == 10
    assert settings.MAX_PLAUSIBLE_FORWARD_HEAD == 30.0

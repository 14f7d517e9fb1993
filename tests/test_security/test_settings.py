from __future__ import annotations

from campuspass.settings import Settings


def test_defaults_resolve_inside_the_repo(monkeypatch):
    monkeypatch.delenv("APP_DB_URL", raising=False)
    monkeypatch.delenv("APP_SECURITY_CONFIG_PATH", raising=False)
    settings = Settings()
    assert settings.resolved_db_url().startswith("sqlite:///")
    assert settings.resolved_db_url().endswith("campuspass.db")
    assert settings.resolved_security_config_path().name == "security_config.yaml"
    assert settings.resolved_security_config_path().exists()


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("APP_DB_URL", "sqlite:///:memory:")
    monkeypatch.setenv("APP_OVERDUE_SWEEP_INTERVAL_SECONDS", "0")
    settings = Settings()
    assert settings.resolved_db_url() == "sqlite:///:memory:"
    assert settings.overdue_sweep_interval_seconds == 0


def test_passcode_secret_falls_back_to_jwt_secret(monkeypatch):
    monkeypatch.delenv("APP_PASSCODE_SECRET", raising=False)
    assert Settings(jwt_secret="a" * 32).resolved_passcode_secret() == "a" * 32
    assert Settings(jwt_secret="a" * 32, passcode_secret="b" * 32).resolved_passcode_secret() == "b" * 32

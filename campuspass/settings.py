from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    App settings.

    Notes:
    - Defaults are local and deterministic so the service starts without setup.
    - Every field can be overridden with an `APP_`-prefixed env var.
    - The secrets below are development placeholders; set real values in deployment.
    """

    model_config = SettingsConfigDict(env_prefix="APP_", extra="ignore")

    db_url: str | None = None
    security_config_path: str | None = None
    log_level: str = "INFO"

    jwt_secret: str = "campuspass-dev-secret-change-me-0123456789"
    jwt_algorithm: str = "HS256"
    access_token_ttl_minutes: int = 60 * 24 * 7
    passcode_secret: str | None = None

    overdue_sweep_interval_seconds: float = 60.0
    internal_api_key: str = "campuspass-internal-key-change-me"

    collaborator_webhook_url: str | None = None
    collaborator_webhook_timeout_seconds: float = 5.0

    seed_demo_data: bool = True

    def resolved_db_url(self) -> str:
        if self.db_url:
            return self.db_url

        repo_root = Path(__file__).resolve().parents[1]
        db_path = repo_root / "campuspass.db"
        return f"sqlite:///{db_path}"

    def resolved_security_config_path(self) -> Path:
        if self.security_config_path:
            return Path(self.security_config_path)

        repo_root = Path(__file__).resolve().parents[1]
        return repo_root / "config" / "security_config.yaml"

    def resolved_passcode_secret(self) -> str:
        return self.passcode_secret or self.jwt_secret


@lru_cache
def get_settings() -> Settings:
    return Settings()

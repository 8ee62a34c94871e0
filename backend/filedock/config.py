"""Configuration from environment (no hardcoded secrets)."""

from pathlib import Path
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Backend settings from env."""

    model_config = SettingsConfigDict(env_prefix="FILEDOCK_", extra="ignore")

    # Storage
    storage_base_path: Path = Path("data/files")
    db_path: Path = Path("data/database.sqlite")
    max_upload_bytes: int = 100 * 1024 * 1024
    # Rescan storage_base_path into the catalog when the server starts
    sync_on_startup: bool = True

    # JWT
    jwt_secret: str = ""
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60
    refresh_token_expire_hours: int = 24

    # Auth cookies (the SPA reads access_token, so it is not httponly)
    cookie_secure: bool = False
    cookie_httponly: bool = False

    # Open self-registration via POST /api/auth/register
    allow_registration: bool = True

    # First admin (bootstrap)
    admin_username: str = ""
    admin_initial_password: str = ""

    # CORS: set as comma-separated string in env (e.g. https://files.example.com)
    # so pydantic-settings does not try to JSON-decode it
    cors_origins: str = "http://localhost:8081"

    @property
    def cors_origins_list(self) -> List[str]:
        """CORS origins as a list (split on comma)."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()] or [
            "http://localhost:8081"
        ]

    # Server
    host: str = "0.0.0.0"
    port: int = 3001

    # Logging (empty log_file = stderr only; level DEBUG|INFO|WARNING|ERROR)
    log_level: str = "INFO"
    log_file: str = ""


def get_settings() -> Settings:
    """Return application settings."""
    return Settings()

"""
Application Configuration — Environment & Settings
Centralizes all config from .env with Pydantic Settings for validation.
"""
from pathlib import Path
from functools import lru_cache
from pydantic_settings import BaseSettings

# Resolve paths relative to backend/ directory
BASE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # --- Core ---
    APP_NAME: str = "USSD Menu Session Engine"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # --- Database ---
    DATABASE_URL: str = f"sqlite:///{BASE_DIR / 'data' / 'ussd_sessions.db'}"

    # --- USSD Session ---
    USSD_TIMEOUT_SECONDS: int = 300          # inactivity window before a session expires
    USSD_BACK_SENTINEL: str = "00"
    USSD_INPUT_SEPARATOR: str = "*"
    USSD_HISTORY_LIMIT: int = 50
    DEFAULT_LANGUAGE: str = "en"
    SUPPORTED_ROLE: str = "beneficiary"

    GOALS_LIST_LIMIT: int = 5
    CONTACTS_LIST_LIMIT: int = 5
    PRIMARY_CONTACT_LIST_LIMIT: int = 10

    # --- Case-management collaborators ---
    GATEWAY_BACKEND: str = "memory"          # memory | http
    CASE_API_BASE_URL: str = "http://localhost:3000/api/v1"
    CASE_API_TOKEN: str = ""
    CASE_API_TIMEOUT_SECONDS: float = 10.0
    MEMORY_SEED_DEMO: bool = False

    # --- Housekeeping ---
    SWEEP_INTERVAL_SECONDS: int = 0          # 0 disables the background sweep

    # --- Logging ---
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    CORS_ORIGINS: list[str] = ["*"]

    class Config:
        env_file = str(BASE_DIR / ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()

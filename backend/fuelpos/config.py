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
    APP_NAME: str = "FuelPOS Station API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # --- Database ---
    DATABASE_URL: str = f"sqlite:///{BASE_DIR / 'data' / 'fuelpos.db'}"

    # --- Security ---
    CORS_ORIGINS: list[str] = ["*"]
    LOGIN_RATE_LIMIT: int = 5
    LOGIN_RATE_WINDOW_SECONDS: int = 60

    # --- Bootstrap ---
    DEFAULT_ADMIN_PIN: str = "1234"
    DEFAULT_ADMIN_NAME: str = "Station Admin"

    # --- Merchant (single station) ---
    MERCHANT_NAME: str = "FuelPOS Station"
    PROMPTPAY_ID: str = "0105558555555"
    QR30_MERCHANT_ID: str = "010555855555501"
    QR30_TERMINAL_ID: str = "POS01"
    RECEIPT_PREFIX: str = "GS"

    # --- QR payment timing ---
    QR_TIMEOUT_SECONDS: float = 300
    QR_POLL_INTERVAL_SECONDS: float = 3
    QR_COUNTDOWN_TICK_SECONDS: float = 1
    QR_SESSION_HISTORY: int = 100

    # --- Bank status gateway ---
    BANK_STATUS_URL: str = ""            # empty -> simulated gateway
    BANK_STATUS_API_KEY: str = ""
    BANK_STATUS_TIMEOUT_SECONDS: float = 5
    SIMULATED_SUCCESS_RATE: float = 0.2

    # --- Logging ---
    LOG_DIR: str = str(BASE_DIR / "logs")
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = str(BASE_DIR / ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()

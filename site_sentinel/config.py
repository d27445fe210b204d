# site_sentinel/config.py
import os
from typing import List, Dict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # --- Generative AI Configuration ---
    AI_API_URL: str = "https://generativelanguage.googleapis.com/v1beta"
    AI_MODEL_NAME: str = "gemini-3-pro-preview"
    AI_API_KEY: str = os.getenv("API_KEY", "")
    AI_REQUEST_TIMEOUT: float = 120.0  # seconds

    # --- Remediation Simulation ---
    FIX_DELAY_SECONDS: float = 3.0
    FIX_ALL_STEP_SECONDS: float = 1.2

    # --- Default Administrator ---
    ADMIN_EMAIL: str = "admin@gmtsss.io"
    ADMIN_PASSWORD: str = "sentinel-admin"
    ADMIN_NAME: str = "Global Admin"
    ADMIN_WALLET_BALANCE: float = 10.0
    PASSWORD_MIN_LENGTH: int = 8
    PASSWORD_RESET_TOKEN: str = "123456"
    BCRYPT_ROUNDS: int = 12

    # --- Sites ---
    FREE_PLAN_SITE_LIMIT: int = 3
    DEFAULT_LATENCY_THRESHOLD_MS: int = 500
    DEFAULT_ERROR_RATE_PERCENT: float = 1.0
    DEFAULT_UPTIME_THRESHOLD: float = 99.0
    DEFAULT_UPTIME_SLA: float = 99.9

    # --- Plans ---
    PLAN_PRICES: Dict[str, float] = {
        "free": 0.0, "weekly": 2.0, "monthly": 5.0, "yearly": 25.0
    }
    PLAN_PERIOD_DAYS: Dict[str, int] = {
        "weekly": 7, "monthly": 30, "yearly": 365
    }
    SCAN_PLANS: List[str] = ["monthly", "yearly"]
    REPORT_PLANS: List[str] = ["monthly", "yearly"]

    # --- File Paths ---
    STORE_FILE: str = "sentinel_store.json"

    class Config:
        env_file = '.env'
        env_file_encoding = 'utf-8'
        extra = 'ignore'


# --- Create the settings instance ---
settings = Settings()

import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        token_secret: str,
        token_max_age_days: int,
        log_level: str,
        default_currency: str,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.token_secret = token_secret
        self.token_max_age_days = token_max_age_days
        self.log_level = log_level
        self.default_currency = default_currency


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("DASHBOARD_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "dashboard.db"
    database_url = os.getenv("DASHBOARD_DATABASE_URL", f"sqlite:///{default_db}")
    timezone = os.getenv("DASHBOARD_TIMEZONE", "UTC")
    token_secret = os.getenv(
        "DASHBOARD_TOKEN_SECRET",
        "5f0c2d8e91a64b7f3c1e8a2d4b6f9e0c7a3d5b1f8e2c4a6d9b0f3e7c1a5d8b2e",
    )
    token_max_age_days = int(os.getenv("DASHBOARD_TOKEN_MAX_AGE_DAYS", "30"))
    log_level = os.getenv("DASHBOARD_LOG_LEVEL", "INFO").upper()
    default_currency = os.getenv("DASHBOARD_DEFAULT_CURRENCY", "USD").upper()
    return Settings(
        database_url=database_url,
        timezone=timezone,
        token_secret=token_secret,
        token_max_age_days=token_max_age_days,
        log_level=log_level,
        default_currency=default_currency,
    )

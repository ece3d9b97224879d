import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        jwt_secret: str,
        jwt_algorithm: str,
        jwt_expiry_hours: int,
        db_timeout_secs: float,
        weekly_window_weeks: int,
        audit_interval_minutes: int,
        cors_origins: list[str],
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.jwt_secret = jwt_secret
        self.jwt_algorithm = jwt_algorithm
        self.jwt_expiry_hours = jwt_expiry_hours
        self.db_timeout_secs = db_timeout_secs
        self.weekly_window_weeks = weekly_window_weeks
        self.audit_interval_minutes = audit_interval_minutes
        self.cors_origins = cors_origins


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("PENNYWISE_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "pennywise.db"
    database_url = os.getenv("PENNYWISE_DATABASE_URL", f"sqlite:///{default_db}")
    if database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql://", 1)
    timezone = os.getenv("PENNYWISE_TIMEZONE", "UTC")
    jwt_secret = os.getenv(
        "PENNYWISE_JWT_SECRET",
        "5f0c7e0b2d8a4c1e9b3f6a7d2e4c8b1a0f9e3d7c6b5a4f3e2d1c0b9a8f7e6d5c",
    )
    jwt_algorithm = os.getenv("PENNYWISE_JWT_ALGORITHM", "HS256")
    jwt_expiry_hours = int(os.getenv("PENNYWISE_JWT_EXPIRY_HOURS", "24"))
    db_timeout_secs = float(os.getenv("PENNYWISE_DB_TIMEOUT_SECS", "5"))
    weekly_window_weeks = int(os.getenv("PENNYWISE_WEEKLY_WINDOW_WEEKS", "6"))
    audit_interval_minutes = int(os.getenv("PENNYWISE_AUDIT_INTERVAL_MINUTES", "60"))
    cors_origins = [
        origin.strip()
        for origin in os.getenv(
            "PENNYWISE_CORS_ORIGINS", "http://localhost:5173"
        ).split(",")
        if origin.strip()
    ]
    return Settings(
        database_url=database_url,
        timezone=timezone,
        jwt_secret=jwt_secret,
        jwt_algorithm=jwt_algorithm,
        jwt_expiry_hours=jwt_expiry_hours,
        db_timeout_secs=db_timeout_secs,
        weekly_window_weeks=weekly_window_weeks,
        audit_interval_minutes=audit_interval_minutes,
        cors_origins=cors_origins,
    )

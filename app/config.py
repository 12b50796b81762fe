"""
Application configuration. Loads from environment variables.
Secrets and sensitive config must never be hardcoded.
"""

import os
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

load_dotenv()
from functools import lru_cache
from typing import Optional


@lru_cache(maxsize=1)
def get_settings() -> "Settings":
    """Return cached settings instance."""
    return Settings()


class Settings:
    """Application settings loaded from environment."""

    # App
    app_name: str = "CadenceEngine"
    debug: bool = False

    # Database (postgresql+psycopg for psycopg3; use postgresql:// for psycopg2)
    database_url: str = "postgresql+psycopg://localhost:5432/cadence_dev"
    db_connect_timeout: int = 10  # seconds

    # Security
    secret_key: str = ""
    internal_job_token: str = ""  # Required for /internal/* endpoints

    # Civil calendar: every "today" / "tomorrow" is evaluated in this zone
    reference_timezone: str = "America/New_York"

    # Cadence table (YAML). Business policy lives outside the repo; no default path.
    cadence_table_path: Optional[str] = None

    # Query side
    engagement_query_default_limit: int = 100
    engagement_query_max_limit: int = 500  # server-enforced cap on a single read

    # Batch recalculation guards. 0 = disabled.
    workspace_job_rate_limit_per_hour: int = 10
    recalc_running_guard_minutes: int = 30

    def __init__(self) -> None:
        self.app_name = os.getenv("APP_NAME", self.app_name)
        self.debug = os.getenv("DEBUG", "false").lower() == "true"

        default_user = os.getenv("PGUSER") or os.getenv("USER") or "postgres"
        default_url = (
            f"postgresql+psycopg://{default_user}:"
            f"{os.getenv('PGPASSWORD', '')}@"
            f"{os.getenv('PGHOST', 'localhost')}:"
            f"{os.getenv('PGPORT', '5432')}/"
            f"{os.getenv('PGDATABASE', 'cadence_dev')}"
        )
        raw_url = os.getenv("DATABASE_URL", default_url)
        # Ensure psycopg3 driver if URL uses generic postgresql://
        if raw_url.startswith("postgresql://") and not raw_url.startswith("postgresql+psycopg"):
            raw_url = raw_url.replace("postgresql://", "postgresql+psycopg://", 1)
        self.database_url = raw_url
        self.db_connect_timeout = int(os.getenv("DB_CONNECT_TIMEOUT", str(self.db_connect_timeout)))

        self.secret_key = os.getenv("SECRET_KEY", "")
        self.internal_job_token = os.getenv("INTERNAL_JOB_TOKEN", "")

        tz_name = os.getenv("REFERENCE_TIMEZONE", self.reference_timezone).strip()
        try:
            ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"REFERENCE_TIMEZONE is not a known IANA zone: {tz_name!r}") from exc
        self.reference_timezone = tz_name

        self.cadence_table_path = os.getenv("CADENCE_TABLE_PATH") or None

        self.engagement_query_default_limit = int(
            os.getenv(
                "ENGAGEMENT_QUERY_DEFAULT_LIMIT",
                str(self.engagement_query_default_limit),
            )
        )
        self.engagement_query_max_limit = int(
            os.getenv("ENGAGEMENT_QUERY_MAX_LIMIT", str(self.engagement_query_max_limit))
        )
        # Default never exceeds the cap
        self.engagement_query_default_limit = min(
            self.engagement_query_default_limit, self.engagement_query_max_limit
        )

        self.workspace_job_rate_limit_per_hour = int(
            os.getenv(
                "WORKSPACE_JOB_RATE_LIMIT_PER_HOUR",
                str(self.workspace_job_rate_limit_per_hour),
            )
        )
        self.recalc_running_guard_minutes = int(
            os.getenv("RECALC_RUNNING_GUARD_MINUTES", str(self.recalc_running_guard_minutes))
        )

"""Engine configuration read from environment variables."""

from __future__ import annotations

import logging
import os
from datetime import timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)


class Settings:
    """Runtime settings; every value can be overridden from the environment."""

    # Local zone used for tag windows and "today" boundaries
    TIMEZONE: str = os.environ.get("PERSPECTIVE_TIMEZONE", "UTC")

    LOG_LEVEL: str = os.environ.get("PERSPECTIVE_LOG_LEVEL", "INFO")

    # Used by scripts that open a sqlite-backed store
    DB_PATH: str = os.environ.get("PERSPECTIVE_DB_PATH", "perspectives.db")

    def __init__(self, timezone_name: str | None = None, log_level: str | None = None, db_path: str | None = None):
        if timezone_name is not None:
            self.TIMEZONE = timezone_name
        if log_level is not None:
            self.LOG_LEVEL = log_level
        if db_path is not None:
            self.DB_PATH = db_path

    @property
    def tz(self) -> tzinfo:
        if self.TIMEZONE.upper() == "UTC":
            return timezone.utc
        try:
            return ZoneInfo(self.TIMEZONE)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown timezone %r, falling back to UTC", self.TIMEZONE)
            return timezone.utc


settings = Settings()


def configure_logging(level: str | None = None) -> None:
    """Configure root logging for scripts and the demo app."""

    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

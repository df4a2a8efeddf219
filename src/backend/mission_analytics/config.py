"""
Runtime settings for the mission analytics backend.
"""

from __future__ import annotations

import logging
import os
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel


class DatabaseConfig(BaseModel):
    url: Optional[str] = None
    user_table: str = "user_analytics"
    progress_table: str = "mission_progress"


class AnalyticsSettings(BaseModel):
    timezone: str = "UTC"
    """IANA zone that decides which calendar day a timestamp belongs to"""

    default_period_days: int = 7
    default_num_weeks: int = 8

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    database: DatabaseConfig = DatabaseConfig()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_log_level(name: str, default: str) -> str:
    raw = (os.getenv(name) or "").upper()
    if raw in {"DEBUG", "INFO", "WARNING", "ERROR"}:
        return raw
    return default


def load_settings(dotenv: bool = True) -> AnalyticsSettings:
    if dotenv:
        load_dotenv()

    cfg = AnalyticsSettings()
    cfg.database = DatabaseConfig(
        url=os.getenv("MISSION_ANALYTICS_DATABASE_URL", cfg.database.url),
        user_table=os.getenv("MISSION_ANALYTICS_USER_TABLE", cfg.database.user_table),
        progress_table=os.getenv("MISSION_ANALYTICS_PROGRESS_TABLE", cfg.database.progress_table),
    )
    cfg.timezone = os.getenv("MISSION_ANALYTICS_TIMEZONE", cfg.timezone)
    cfg.default_period_days = _env_int("MISSION_ANALYTICS_PERIOD_DAYS", cfg.default_period_days)
    cfg.default_num_weeks = _env_int("MISSION_ANALYTICS_NUM_WEEKS", cfg.default_num_weeks)
    cfg.log_level = _env_log_level("MISSION_ANALYTICS_LOG_LEVEL", cfg.log_level)
    return cfg


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

"""
Settings for the semester report engine.
"""

from __future__ import annotations

import logging
import os
from typing import Dict, Optional

from pydantic import BaseModel, Field

ENV_PREFIX = "SEMESTER_REPORT_"

# Points each member must earn per category over a semester.
DEFAULT_POINT_REQUIREMENTS: Dict[str, float] = {
    "brotherhood": 20,
    "professional": 4,
    "service": 4,
    "scholarship": 4,
    "health": 3,
    "fundraising": 3,
    "dei": 3,
}


class ThresholdConfig(BaseModel):
    at_risk_points_factor: float = 0.5
    """Below ``average * factor`` points a member is flagged at risk."""

    low_attendance_rate: float = 50.0
    """Attendance percentage under which a member counts as low attendance / at risk."""

    high_engagement_attendance_rate: float = 80.0
    high_engagement_points_factor: float = 1.2

    on_track_points_factor: float = 0.7
    struggling_points_factor: float = 0.5

    leaderboard_size: int = 10
    retention_list_size: int = 10
    rated_events_size: int = 5


class ReportSettings(BaseModel):
    """Configuration for the semester report engine and its HTTP surface."""

    database_url: Optional[str] = None
    log_level: str = "INFO"
    thresholds: ThresholdConfig = ThresholdConfig()
    point_requirements: Dict[str, float] = Field(default_factory=lambda: dict(DEFAULT_POINT_REQUIREMENTS))


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def load_settings() -> ReportSettings:
    """
    Build settings from ``SEMESTER_REPORT_*`` environment variables.

    Every threshold field can be overridden with its upper-cased name, e.g.
    ``SEMESTER_REPORT_LOW_ATTENDANCE_RATE=40``. Unparseable values keep the
    default.
    """

    defaults = ThresholdConfig()
    overrides = {}
    for name, info in ThresholdConfig.model_fields.items():
        env_name = f"{ENV_PREFIX}{name.upper()}"
        current = getattr(defaults, name)
        if info.annotation is int:
            overrides[name] = _env_int(env_name, current)
        else:
            overrides[name] = _env_float(env_name, current)

    return ReportSettings(
        database_url=os.getenv(f"{ENV_PREFIX}DATABASE_URL"),
        log_level=os.getenv(f"{ENV_PREFIX}LOG_LEVEL", "INFO").upper(),
        thresholds=ThresholdConfig(**overrides),
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

"""Configuration: user settings, engine options and logging setup.

Values come from the environment (a ``.env`` file is honoured) and are
validated with Pydantic so a bad value fails at startup, not halfway
through a computation.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import tzinfo
from functools import lru_cache
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from pulselog.errors import ConfigError

load_dotenv()

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class UserSettings(BaseModel):
    """Per-user settings the engine reads (height, goals, habits)."""

    model_config = ConfigDict(frozen=True)

    user_height_cm: float | None = Field(default=None, gt=0.0, description="Height in cm, enables BMI")
    goal_weight_kg: float | None = Field(default=None, gt=0.0, description="Target weight in kg")
    drinks_alcohol: bool = Field(default=False, description="Track alcohol as a factor")
    protein_per_kg: float | None = Field(
        default=None, gt=0.0, description="Daily protein target in g per kg body weight"
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(default="INFO", description="Logging level")
    format: Literal["json", "console"] = Field(default="console", description="Logging format")


class EngineConfig(BaseModel):
    """Options for loading data and running the analytics."""

    timezone: str | None = Field(default=None, description="IANA zone; None = system local")
    horizon_days: int = Field(default=90, gt=0, le=3650, description="Trigger horizon in days")
    fetch_limit: int = Field(default=5000, gt=0, description="Max events pulled per event type")
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str | None) -> str | None:
        if v is None or v.strip() == "":
            return None
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"unknown timezone: {v}") from None
        return v

    @property
    def tzinfo(self) -> tzinfo | None:
        return ZoneInfo(self.timezone) if self.timezone else None


def _level(val: str) -> LogLevel:
    v = val.strip().upper()
    return v if v in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"} else "INFO"  # type: ignore[return-value]


def load_config_from_env() -> EngineConfig:
    """Load engine configuration from ``PULSELOG_*`` / ``LOG_*`` variables.

    Raises:
        ConfigError: If a value is present but invalid.
    """
    try:
        return EngineConfig(
            timezone=os.getenv("PULSELOG_TIMEZONE") or None,
            horizon_days=int(os.getenv("PULSELOG_HORIZON_DAYS", "90")),
            fetch_limit=int(os.getenv("PULSELOG_FETCH_LIMIT", "5000")),
            logging=LoggingConfig(
                level=_level(os.getenv("LOG_LEVEL", "INFO")),
                format="json" if os.getenv("LOG_FORMAT", "").lower() == "json" else "console",
            ),
        )
    except (ValidationError, ValueError) as e:
        raise ConfigError(f"invalid configuration: {e}") from e


@lru_cache
def get_config() -> EngineConfig:
    """Get cached engine configuration."""
    return load_config_from_env()


def configure_logging(config: LoggingConfig | None = None) -> None:
    """Configure structlog for the CLI (console or JSON lines on stderr)."""
    config = config or LoggingConfig()
    renderer = (
        structlog.processors.JSONRenderer()
        if config.format == "json"
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, config.level)),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )

"""
Configuration management with environment variable support and validation.

Design principles:
- Environment-specific configs (dev, staging, prod)
- Validation at startup (fail fast)
- Type safety with Pydantic
"""

import os
from functools import lru_cache
from typing import Literal, cast

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

# Load environment variables from .env file
load_dotenv()


class AggregatorConfig(BaseModel):
    """Retention and labelling for the heart-rate aggregator."""

    max_history: int | None = Field(
        default=None,
        gt=0,
        description="Readings retained for statistics; None keeps every reading",
    )
    label_format: str = Field(
        default="%H:%M:%S", description="strftime pattern for the last-update label"
    )


class MonitoringConfig(BaseModel):
    """Heart-rate monitor service configuration."""

    clear_history_on_stop: bool = Field(
        default=False, description="Discard history when monitoring stops"
    )
    queue_maxsize: int = Field(
        default=0, ge=0, description="Pending sample queue size (0 means unbounded)"
    )


class SimulationConfig(BaseModel):
    """Settings for the simulated heart-rate source."""

    baseline_bpm: float = Field(default=72.0, gt=0.0, description="Resting heart rate")
    variability_bpm: float = Field(
        default=4.0, ge=0.0, description="Maximum bpm change between samples"
    )
    min_interval_seconds: float = Field(
        default=0.5, gt=0.0, description="Shortest delay between samples"
    )
    max_interval_seconds: float = Field(
        default=2.0, gt=0.0, description="Longest delay between samples"
    )

    @model_validator(mode="after")
    def interval_bounds_ordered(self) -> "SimulationConfig":
        if self.min_interval_seconds > self.max_interval_seconds:
            raise ValueError("min_interval_seconds must not exceed max_interval_seconds")
        return self


class DisplayConfig(BaseModel):
    """Dashboard rendering configuration."""

    history_label_format: str = Field(
        default="%d/%m/%y %H:%M", description="strftime pattern for history rows"
    )
    history_rows: int = Field(default=20, gt=0, description="History rows shown on the dashboard")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    format: Literal["json", "console"] = Field(default="json", description="Logging format")


class AppConfig(BaseModel):
    """Main application configuration combining all subsystems."""

    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    aggregator: AggregatorConfig = Field(default_factory=AggregatorConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)
    simulation: SimulationConfig = Field(default_factory=SimulationConfig)
    display: DisplayConfig = Field(default_factory=DisplayConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def debug_only_in_dev(self) -> "AppConfig":
        """Ensure debug mode is only allowed in development environment."""
        if self.debug and self.environment != "development":
            raise ValueError("debug mode is only allowed in development environment")
        return self


def load_config_from_env() -> AppConfig:
    """Load configuration from environment variables with validation."""

    def _env_to_literal(val: str) -> Literal["development", "staging", "production"]:
        v = val.strip().lower()
        if v in {"dev", "development"}:
            return "development"
        if v in {"stage", "staging"}:
            return "staging"
        return "production"

    def _level_to_literal(val: str) -> Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
        v = val.strip().upper()
        return cast(
            Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            v if v in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"} else "INFO",
        )

    def _parse_bool(val: str | None, default: bool) -> bool:
        if val is None:
            return default
        return val.strip().lower() in {"1", "true", "yes", "on"}

    def _parse_optional_int(val: str | None) -> int | None:
        if val is None or val.strip().lower() in {"", "none", "unbounded"}:
            return None
        return int(val)

    environment = _env_to_literal(os.getenv("ENVIRONMENT", "development"))
    debug = environment == "development"

    aggregator_config = AggregatorConfig(
        max_history=_parse_optional_int(os.getenv("MAX_HISTORY")),
        label_format=os.getenv("LABEL_FORMAT", "%H:%M:%S"),
    )

    monitoring_config = MonitoringConfig(
        clear_history_on_stop=_parse_bool(os.getenv("CLEAR_HISTORY_ON_STOP"), False),
    )

    simulation_config = SimulationConfig(
        baseline_bpm=float(os.getenv("SIM_BASELINE_BPM", "72.0")),
        variability_bpm=float(os.getenv("SIM_VARIABILITY_BPM", "4.0")),
        min_interval_seconds=float(os.getenv("SIM_MIN_INTERVAL_SECONDS", "0.5")),
        max_interval_seconds=float(os.getenv("SIM_MAX_INTERVAL_SECONDS", "2.0")),
    )

    display_config = DisplayConfig(
        history_label_format=os.getenv("HISTORY_LABEL_FORMAT", "%d/%m/%y %H:%M"),
        history_rows=int(os.getenv("HISTORY_ROWS", "20")),
    )

    logging_config = LoggingConfig(
        level=_level_to_literal(os.getenv("LOG_LEVEL", "INFO")),
        format="console" if debug else "json",
    )

    return AppConfig(
        environment=environment,
        debug=debug,
        aggregator=aggregator_config,
        monitoring=monitoring_config,
        simulation=simulation_config,
        display=display_config,
        logging=logging_config,
    )


@lru_cache
def get_config() -> AppConfig:
    """Get cached application configuration."""
    return load_config_from_env()

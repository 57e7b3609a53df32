"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.exceptions import InvalidInterval
from .domain.models import TimeSlot, parse_hhmm
from .domain.service_rules import BUFFER_TIME_MINUTES


class StoreConfig(BaseModel):
    """Where booking snapshots are read from."""
    kind: Literal["memory", "json", "http"] = "json"
    path: Optional[Path] = None  # json: mock bookings file
    base_url: Optional[str] = None  # http: booking API root
    api_token: Optional[str] = None

    @model_validator(mode="after")
    def validate_backend_settings(self) -> "StoreConfig":
        """Ensure the selected backend has what it needs."""
        if self.kind == "http" and not self.base_url:
            raise ValueError("store.base_url is required when store.kind is 'http'")
        return self


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = "America/Chicago"
    day_start: str = "08:00"
    day_end: str = "23:00"
    buffer_minutes: int = BUFFER_TIME_MINUTES
    enforce_setup_time: bool = True
    cache_ttl_seconds: int = 300
    poll_interval_seconds: float = 30
    store_timeout_seconds: float = 5
    max_alternatives: int = 3
    store: StoreConfig = Field(default_factory=StoreConfig)

    @field_validator("day_start", "day_end")
    @classmethod
    def validate_time_of_day(cls, value: str) -> str:
        """Validate ``HH:MM`` 24-hour times."""
        try:
            parse_hhmm(value)
        except InvalidInterval as exc:
            raise ValueError(str(exc)) from exc
        return value

    @field_validator("buffer_minutes", "cache_ttl_seconds")
    @classmethod
    def validate_not_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError(f"Value must not be negative, got {value}")
        return value

    @field_validator("poll_interval_seconds", "store_timeout_seconds", "max_alternatives")
    @classmethod
    def validate_positive(cls, value):
        if value <= 0:
            raise ValueError(f"Value must be greater than zero, got {value}")
        return value

    @model_validator(mode="after")
    def validate_day_window(self) -> "AppConfig":
        """Ensure the booking window opens before it closes."""
        if parse_hhmm(self.day_end) <= parse_hhmm(self.day_start):
            raise ValueError("day_end must be later than day_start")
        return self

    def day_bounds(self) -> TimeSlot:
        """Window in which events may be booked."""
        return TimeSlot.parse(self.day_start, self.day_end)

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        config = cls(**data)

        # Relative store paths are relative to the config file
        if config.store.path is not None and not config.store.path.is_absolute():
            config.store.path = config_path.parent / config.store.path

        return config


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path

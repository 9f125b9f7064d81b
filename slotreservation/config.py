"""
Configuration management using Pydantic models loaded from YAML.
"""

from datetime import time, timedelta
from pathlib import Path
from typing import List, Optional

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator, model_validator


class ReservationConfig(BaseModel):
    """Hold and ledger settings."""
    hold_minutes: int = 10
    lock_timeout_seconds: float = 2.0
    archive_limit: int = 1000
    expiring_soon_seconds: int = 120

    @field_validator("hold_minutes", "archive_limit")
    @classmethod
    def validate_positive_int(cls, value: int) -> int:
        if value <= 0:
            raise ValueError(f"must be greater than zero, got {value}")
        return value

    @field_validator("lock_timeout_seconds")
    @classmethod
    def validate_lock_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("lock_timeout_seconds must be greater than zero")
        return value

    @field_validator("expiring_soon_seconds")
    @classmethod
    def validate_warning(cls, value: int) -> int:
        """Zero disables expiry warnings."""
        if value < 0:
            raise ValueError("expiring_soon_seconds cannot be negative")
        return value

    def hold_duration(self) -> timedelta:
        return timedelta(minutes=self.hold_minutes)


class CatalogConfig(BaseModel):
    """Default slot grid used when a doctor has no weekly schedule."""
    slot_minutes: int = 15
    start_hour: int = 9
    end_hour: int = 17
    exclude_days: List[int] = Field(default_factory=lambda: [6])  # Sunday
    horizon_days: int = 90
    lead_time_minutes: int = 30

    @field_validator("slot_minutes", "horizon_days")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError(f"must be greater than zero, got {value}")
        return value

    @field_validator("lead_time_minutes")
    @classmethod
    def validate_lead_time(cls, value: int) -> int:
        if value < 0:
            raise ValueError("lead_time_minutes cannot be negative")
        return value

    @field_validator("start_hour", "end_hour")
    @classmethod
    def validate_hour(cls, v: int) -> int:
        """Validate hour is between 0 and 23."""
        if not 0 <= v <= 23:
            raise ValueError(f"Hour must be between 0 and 23, got {v}")
        return v

    @field_validator("exclude_days")
    @classmethod
    def validate_exclude_days(cls, value: List[int]) -> List[int]:
        """Ensure weekdays are in valid range and deduplicated."""
        invalid_days = [day for day in value if day not in range(7)]
        if invalid_days:
            raise ValueError(f"exclude_days must be between 0 and 6, got {invalid_days}")
        return list(dict.fromkeys(value))

    @model_validator(mode="after")
    def validate_hours_order(self) -> "CatalogConfig":
        """Ensure the configured window opens before it closes."""
        if self.end_hour <= self.start_hour:
            raise ValueError("end_hour must be later than start_hour")
        return self

    def get_start_time(self) -> time:
        """Get start time as time object."""
        return time(hour=self.start_hour, minute=0)

    def get_end_time(self) -> time:
        """Get end time as time object."""
        return time(hour=self.end_hour, minute=0)


class SweeperConfig(BaseModel):
    """Background expiry sweeper settings."""
    interval_seconds: float = 5.0

    @field_validator("interval_seconds")
    @classmethod
    def validate_interval(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("interval_seconds must be greater than zero")
        return value


class AvailabilityConfig(BaseModel):
    """Where doctor schedules come from. Without ``base_url`` the mock data is used."""
    base_url: Optional[str] = None
    timeout_seconds: float = 10
    access_token: Optional[str] = None
    mock_data_file: Optional[Path] = None


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = "UTC"
    reservation: ReservationConfig = Field(default_factory=ReservationConfig)
    catalog: CatalogConfig = Field(default_factory=CatalogConfig)
    sweeper: SweeperConfig = Field(default_factory=SweeperConfig)
    availability: AvailabilityConfig = Field(default_factory=AvailabilityConfig)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        try:
            pendulum.timezone(value)
        except Exception as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

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

        return cls(**data)


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


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load the given or default config file, falling back to defaults if none exists."""
    path = config_path or get_default_config_path()
    if config_path is None and not path.exists():
        return AppConfig()
    return AppConfig.load_from_yaml(path)

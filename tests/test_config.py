"""
Tests for configuration loading.
"""

from datetime import time, timedelta

import pytest
from pydantic import ValidationError

from slotreservation.config import AppConfig, CatalogConfig, ReservationConfig, load_config


def test_defaults():
    config = AppConfig()

    assert config.timezone == "UTC"
    assert config.reservation.hold_duration() == timedelta(minutes=10)
    assert config.catalog.slot_minutes == 15
    assert config.catalog.get_start_time() == time(9, 0)
    assert config.catalog.get_end_time() == time(17, 0)
    assert config.catalog.exclude_days == [6]
    assert config.catalog.horizon_days == 90
    assert config.catalog.lead_time_minutes == 30
    assert config.availability.base_url is None


def test_load_from_yaml(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text(
        "timezone: Asia/Colombo\n"
        "reservation:\n"
        "  hold_minutes: 5\n"
        "catalog:\n"
        "  exclude_days: [6, 6, 5]\n"
        "availability:\n"
        "  base_url: http://localhost:5000/api\n",
        encoding="utf-8",
    )

    config = load_config(config_file)

    assert config.timezone == "Asia/Colombo"
    assert config.reservation.hold_minutes == 5
    assert config.catalog.exclude_days == [6, 5]
    assert config.availability.base_url == "http://localhost:5000/api"


def test_explicit_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError, match="config.example.yaml"):
        load_config(tmp_path / "missing.yaml")


def test_invalid_yaml(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("reservation: [unclosed\n", encoding="utf-8")

    with pytest.raises(ValueError, match="Invalid YAML"):
        AppConfig.load_from_yaml(config_file)


def test_root_must_be_mapping(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ValueError, match="mapping"):
        AppConfig.load_from_yaml(config_file)


def test_unknown_timezone():
    with pytest.raises(ValidationError, match="Unknown timezone"):
        AppConfig(timezone="Mars/Olympus_Mons")


@pytest.mark.parametrize(
    "values",
    [
        {"start_hour": 17, "end_hour": 9},
        {"start_hour": 24},
        {"exclude_days": [7]},
        {"slot_minutes": 0},
        {"lead_time_minutes": -1},
    ],
)
def test_invalid_catalog(values):
    with pytest.raises(ValidationError):
        CatalogConfig(**values)


@pytest.mark.parametrize(
    "values",
    [
        {"hold_minutes": 0},
        {"lock_timeout_seconds": 0},
        {"expiring_soon_seconds": -5},
    ],
)
def test_invalid_reservation(values):
    with pytest.raises(ValidationError):
        ReservationConfig(**values)

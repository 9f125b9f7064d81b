"""
Tests for the command line interface using the bundled mock schedules.
"""

import pendulum
from typer.testing import CliRunner

from slotreservation import __version__
from slotreservation.cli.app import app

runner = CliRunner()


def _next_monday() -> str:
    today = pendulum.now("UTC").date()
    return today.add(days=7 - today.weekday()).isoformat()


def test_doctors_lists_mock_doctors():
    result = runner.invoke(app, ["doctors", "--mock"])

    assert result.exit_code == 0
    assert "doc-perera" in result.output
    assert "Cardiology" in result.output


def test_slots_for_working_day():
    result = runner.invoke(app, ["slots", "doc-perera", "--date", _next_monday(), "--mock"])

    assert result.exit_code == 0
    assert "free slot(s)" in result.output
    assert "09:00" in result.output


def test_slots_unknown_doctor():
    result = runner.invoke(app, ["slots", "doc-nobody", "--date", _next_monday(), "--mock"])

    assert result.exit_code == 1
    assert "Error" in result.output


def test_slots_bad_date():
    result = runner.invoke(app, ["slots", "doc-perera", "--date", "next week", "--mock"])

    assert result.exit_code == 1
    assert "Could not parse date" in result.output


def test_missing_config_file(tmp_path):
    result = runner.invoke(app, ["doctors", "--config", str(tmp_path / "nope.yaml")])

    assert result.exit_code == 1
    assert "Config file not found" in result.output


def test_simulate_race():
    """Second patient is refused, then wins after the first hold expires."""
    result = runner.invoke(app, ["simulate", "--doctor", "doc-perera", "--date", _next_monday()])

    assert result.exit_code == 0
    assert "SlotUnavailable" in result.output
    assert "ReservationExpired" in result.output
    assert "APT-" in result.output


def test_version():
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert __version__ in result.output

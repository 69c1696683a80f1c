"""Tests for configuration loading."""

from pathlib import Path

import pytest

from circdesk.config import Config, get_config, reset_config
from circdesk.patrons import CirculationPolicy


@pytest.fixture(autouse=True)
def clean_config(monkeypatch):
    """Start every test without cached config or CIRCDESK_* variables."""
    for var in (
        "CIRCDESK_DB_PATH",
        "CIRCDESK_BORROW_LIMIT_BASE",
        "CIRCDESK_BASE_WINDOW_DAYS",
        "CIRCDESK_EXTENDED_WINDOW_DAYS",
        "CIRCDESK_LATE_FEE_CENTS",
        "CIRCDESK_HOLD_DAYS",
        "CIRCDESK_LOG_LEVEL",
    ):
        monkeypatch.delenv(var, raising=False)
    reset_config()
    yield
    reset_config()


class TestFromEnv:
    """Tests for reading the environment."""

    def test_defaults(self):
        """Test the default policy matches the standard circulation rules."""
        config = Config.from_env()

        assert config.policy == CirculationPolicy()
        assert config.policy.late_fee_cents_per_day == 50
        assert config.policy.hold_days == 3
        assert config.log_level == "WARNING"
        assert config.db_path.name == "circulation.db"

    def test_overrides(self, monkeypatch, tmp_path: Path):
        monkeypatch.setenv("CIRCDESK_DB_PATH", str(tmp_path / "circ.db"))
        monkeypatch.setenv("CIRCDESK_BORROW_LIMIT_BASE", "3")
        monkeypatch.setenv("CIRCDESK_LATE_FEE_CENTS", "25")
        monkeypatch.setenv("CIRCDESK_HOLD_DAYS", "0")
        monkeypatch.setenv("CIRCDESK_LOG_LEVEL", "debug")

        config = Config.from_env()

        assert config.db_path == tmp_path / "circ.db"
        assert config.policy.borrow_limit_base == 3
        assert config.policy.late_fee_cents_per_day == 25
        assert config.policy.hold_days == 0
        assert config.log_level == "DEBUG"

    def test_get_config_is_cached(self, monkeypatch):
        first = get_config()
        monkeypatch.setenv("CIRCDESK_HOLD_DAYS", "7")
        assert get_config() is first
        reset_config()
        assert get_config().policy.hold_days == 7


class TestValidate:
    """Tests for configuration validation."""

    def test_valid(self, tmp_path: Path):
        assert Config(db_path=tmp_path / "circ.db").validate() == []

    def test_invalid_policy(self, tmp_path: Path):
        config = Config(
            db_path=tmp_path / "circ.db",
            policy=CirculationPolicy(borrow_limit_base=0, late_fee_cents_per_day=-1, hold_days=-2),
        )
        errors = config.validate()
        assert len(errors) == 3

"""Configuration management for circdesk.

Loads configuration from environment variables and provides defaults.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .patrons.policy import CirculationPolicy

# Load .env file if present
load_dotenv()

DEFAULT_DB_PATH = str(Path.home() / ".circdesk" / "circulation.db")


@dataclass
class Config:
    """Application configuration."""

    # Database
    db_path: Path

    # Circulation policy
    policy: CirculationPolicy = field(default_factory=CirculationPolicy)

    # Logging
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        db_path_str = os.environ.get("CIRCDESK_DB_PATH", DEFAULT_DB_PATH)
        db_path = Path(db_path_str).expanduser()

        defaults = CirculationPolicy()
        policy = CirculationPolicy(
            borrow_limit_base=int(
                os.environ.get("CIRCDESK_BORROW_LIMIT_BASE", defaults.borrow_limit_base)
            ),
            base_window_days=int(
                os.environ.get("CIRCDESK_BASE_WINDOW_DAYS", defaults.base_window_days)
            ),
            extended_window_days=int(
                os.environ.get("CIRCDESK_EXTENDED_WINDOW_DAYS", defaults.extended_window_days)
            ),
            late_fee_cents_per_day=int(
                os.environ.get("CIRCDESK_LATE_FEE_CENTS", defaults.late_fee_cents_per_day)
            ),
            hold_days=int(os.environ.get("CIRCDESK_HOLD_DAYS", defaults.hold_days)),
        )

        return cls(
            db_path=db_path,
            policy=policy,
            log_level=os.environ.get("CIRCDESK_LOG_LEVEL", "WARNING").upper(),
        )

    def validate(self) -> list[str]:
        """Validate configuration, return list of errors."""
        errors = []

        if str(self.db_path) != ":memory:" and not self.db_path.parent.exists():
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            except PermissionError:
                errors.append(f"Cannot create database directory: {self.db_path.parent}")

        policy = self.policy
        if policy.borrow_limit_base < 1:
            errors.append("Borrow limit base must be at least 1")
        if policy.base_window_days < 1 or policy.extended_window_days < 1:
            errors.append("Borrow windows must be at least 1 day")
        if policy.late_fee_cents_per_day < 0:
            errors.append("Late fee rate cannot be negative")
        if policy.hold_days < 0:
            errors.append("Hold days cannot be negative")

        return errors


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reset_config() -> None:
    """Reset the global config instance. Used for testing."""
    global _config
    _config = None

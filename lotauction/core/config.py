"""
Auction configuration parameters for lotauction.

Defines timing rules, validation batch size and operational paths.
Values can be overridden through LOTAUCTION_* environment variables,
optionally loaded from a .env file.
"""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

MINUTE = 60
HOUR = 60 * MINUTE
DAY = 24 * HOUR
WEEK = 7 * DAY

ENV_PREFIX = "LOTAUCTION_"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class AuctionConfig(BaseModel):
    """Auction-wide configuration parameters"""

    # Timing (seconds)
    min_auction_period: int = Field(default=1 * HOUR, gt=0)  # Shortest allowed bidding window
    max_auction_period: int = Field(default=30 * DAY, gt=0)  # Longest window, extensions included
    safety_timeout_period: int = Field(default=1 * WEEK, gt=0)  # Grace period after bidding end

    # Price validation
    default_max_validation_iterations: int = Field(default=500, gt=0)  # Bidders scanned per validate()

    # Paths
    data_dir: Path = Path("data")
    log_dir: Path = Path("logs")

    # Logging
    log_level: str = "INFO"
    log_to_file: bool = False  # Also write $log_dir/lotauction.log

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}, got {value!r}")
        return level

    @model_validator(mode="after")
    def _check_periods(self) -> "AuctionConfig":
        if self.min_auction_period > self.max_auction_period:
            raise ValueError(
                f"min_auction_period ({self.min_auction_period}) must not exceed "
                f"max_auction_period ({self.max_auction_period})"
            )
        return self

    def ensure_dirs(self) -> None:
        """Create data and log directories"""
        self.data_dir.mkdir(exist_ok=True, parents=True)
        self.log_dir.mkdir(exist_ok=True, parents=True)


# Global config instance (can be overridden)
config = AuctionConfig()


def load_config(env_file: Optional[str] = None) -> AuctionConfig:
    """
    Load configuration from the environment.

    Every field can be set with an upper-case LOTAUCTION_ variable, e.g.
    LOTAUCTION_SAFETY_TIMEOUT_PERIOD=86400.

    Args:
        env_file: Optional path to a .env file read before the environment

    Returns:
        AuctionConfig instance

    Raises:
        pydantic.ValidationError: if a value is out of range
    """
    if env_file:
        load_dotenv(env_file, override=False)

    overrides = {}
    for name in AuctionConfig.model_fields:
        value = os.getenv(ENV_PREFIX + name.upper())
        if value is not None:
            overrides[name] = value

    return AuctionConfig(**overrides)

"""Base configuration with Pydantic validation.

This module provides the configuration system for the trade journal
ingestion pipeline, loaded from environment variables and ``.env``.
"""

from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ColumnMapping(BaseModel):
    """Broker CSV header names for each canonical fill field.

    Swap these values to read another broker's export without touching
    the parser.
    """

    raw_fill_id: str = Field(default="Fill ID")
    raw_order_id: str = Field(default="Order ID")
    raw_instrument: str = Field(default="Contract")
    root_symbol: str = Field(default="Product")
    side: str = Field(default="B/S")
    quantity: str = Field(default="Quantity")
    price: str = Field(default="Price")
    fill_time: str = Field(
        default="_timestamp", description="ISO UTC timestamp column"
    )
    trading_day: str = Field(
        default="_tradeDate", description="Broker trading day, YYYY-MM-DD"
    )
    commission: str = Field(default="commission")
    account_external_id: str = Field(default="Account")
    active: str = Field(
        default="_active", description="Filter-only column, not stored"
    )


class Config(BaseSettings):
    """Main application configuration with validation.

    Example:
        >>> config = Config()
        >>> config.default_broker
        'Tradeovate'
        >>> config.column_map.side
        'B/S'
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Database
    database_url: str = Field(
        default="sqlite:///data/databases/journal.db",
        description="Database connection URL (PostgreSQL for production, SQLite for testing)",
    )

    # Logging
    log_level: str = Field(default="INFO")
    log_file: str = Field(default="logs/app.log")

    # Import defaults
    journal_user_id: str | None = Field(
        default=None, description="Default owning user for CLI imports"
    )
    default_broker: str = Field(
        default="Tradeovate", description="Broker label for auto-created accounts"
    )
    column_map: ColumnMapping = Field(default_factory=ColumnMapping)

    # Analytics
    profit_factor_cap: float = Field(
        default=9999.0,
        gt=0.0,
        description="Profit factor reported for days with wins and no losses",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the loguru levels."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v_upper

    def ensure_directories(self) -> None:
        """Ensure all required directories exist."""
        directories = [Path(self.log_file).parent]
        if self.database_url.startswith("sqlite:///") and ":memory:" not in self.database_url:
            directories.append(Path(self.database_url.removeprefix("sqlite:///")).parent)

        for directory in directories:
            directory.mkdir(parents=True, exist_ok=True)


# Global config instance
_config: Config | None = None


def get_config() -> Config:
    """Get or create the global configuration instance.

    Returns:
        Config: The global configuration object
    """
    global _config
    if _config is None:
        _config = Config()
        _config.ensure_directories()
    return _config


def reset_config() -> None:
    """Reset the global configuration instance.

    Useful for testing when you need to reload configuration.
    """
    global _config
    _config = None

"""Unit tests for configuration system."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from src.config.base import ColumnMapping, Config, get_config, reset_config


class TestColumnMapping:
    """Tests for the broker CSV header mapping."""

    def test_default_values(self) -> None:
        """Test default header names match the broker export."""
        cols = ColumnMapping()
        assert cols.raw_fill_id == "Fill ID"
        assert cols.side == "B/S"
        assert cols.fill_time == "_timestamp"
        assert cols.trading_day == "_tradeDate"
        assert cols.active == "_active"

    def test_custom_values(self) -> None:
        """Test overriding a subset of headers."""
        cols = ColumnMapping(side="Side", quantity="Qty")
        assert cols.side == "Side"
        assert cols.quantity == "Qty"
        assert cols.price == "Price"


class TestConfig:
    """Tests for main configuration."""

    def test_config_initialization(self, monkeypatch) -> None:
        """Test configuration defaults."""
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        monkeypatch.delenv("DATABASE_URL", raising=False)

        config = Config(_env_file=None)
        assert config.database_url == "sqlite:///data/databases/journal.db"
        assert config.log_level == "INFO"
        assert config.default_broker == "Tradeovate"
        assert config.journal_user_id is None
        assert config.profit_factor_cap == 9999.0
        assert isinstance(config.column_map, ColumnMapping)

    def test_env_overrides(self, monkeypatch) -> None:
        """Test values are read from the environment."""
        monkeypatch.setenv("JOURNAL_USER_ID", "user-42")
        monkeypatch.setenv("DEFAULT_BROKER", "NinjaTrader")
        monkeypatch.setenv("PROFIT_FACTOR_CAP", "100")

        config = Config(_env_file=None)
        assert config.journal_user_id == "user-42"
        assert config.default_broker == "NinjaTrader"
        assert config.profit_factor_cap == 100.0

    def test_nested_column_map_from_env(self, monkeypatch) -> None:
        """Test column headers can be remapped with the __ delimiter."""
        monkeypatch.setenv("COLUMN_MAP__SIDE", "Side")

        config = Config(_env_file=None)
        assert config.column_map.side == "Side"
        assert config.column_map.price == "Price"

    def test_log_level_validation(self) -> None:
        """Test log level validation."""
        config = Config(log_level="debug")
        assert config.log_level == "DEBUG"  # Should be uppercase

        with pytest.raises(ValidationError):
            Config(log_level="VERBOSE")

    def test_profit_factor_cap_must_be_positive(self) -> None:
        """Test profit factor cap validation."""
        with pytest.raises(ValidationError):
            Config(profit_factor_cap=0)

    def test_ensure_directories(self, tmp_path) -> None:
        """Test directory creation for log file and SQLite database."""
        db_path = tmp_path / "db" / "journal.db"
        log_path = tmp_path / "logs" / "app.log"
        config = Config(database_url=f"sqlite:///{db_path}", log_file=str(log_path))

        config.ensure_directories()

        assert (tmp_path / "db").is_dir()
        assert (tmp_path / "logs").is_dir()

    def test_in_memory_database_creates_no_directory(self, tmp_path) -> None:
        """Test an in-memory URL is not treated as a path."""
        config = Config(database_url="sqlite:///:memory:", log_file=str(tmp_path / "app.log"))
        config.ensure_directories()
        assert not Path(":memory:").exists()


class TestGetConfig:
    """Tests for the configuration singleton."""

    def test_singleton(self) -> None:
        """Test the same instance is returned until reset."""
        first = get_config()
        assert get_config() is first

        reset_config()
        assert get_config() is not first

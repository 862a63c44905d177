"""Pytest configuration and fixtures."""

import os
import sys
from pathlib import Path

import pytest

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment(tmp_path_factory):
    """Setup test environment before all tests."""
    log_dir = tmp_path_factory.mktemp("logs")
    os.environ["DATABASE_URL"] = "sqlite:///:memory:"
    os.environ["LOG_LEVEL"] = "ERROR"  # Reduce noise during tests
    os.environ["LOG_FILE"] = str(log_dir / "app.log")
    os.environ.pop("JOURNAL_USER_ID", None)

    yield


@pytest.fixture(autouse=True)
def _reset_config_singleton():
    """Ensure each test gets a fresh Config singleton.

    Without this, monkeypatch.setenv in individual tests would be
    ignored because get_config() returns the cached singleton from
    a previous test.
    """
    from src.config.base import reset_config

    reset_config()
    yield
    reset_config()


@pytest.fixture
def db_session():
    """In-memory SQLite session with every journal table created."""
    from sqlalchemy.orm import sessionmaker

    from src.data.database import create_db_engine
    from src.data.models import Base

    engine = create_db_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine)
    session = factory()

    yield session

    session.close()
    engine.dispose()


USER_ID = "user-test-0001"

FILL_CSV_HEADER = (
    "Fill ID,Order ID,Contract,Product,B/S,Quantity,Price,_timestamp,_tradeDate,commission,Account,_active"
)


def make_csv_row(
    fill_id: str,
    side: str,
    qty: str,
    price: str,
    timestamp: str,
    trading_day: str = "2026-02-10",
    product: str = "MNQ",
    contract: str = "MNQH6",
    commission: str = "0",
    account: str = "LFE0506373520003",
    active: str = "true",
    order_id: str = "",
) -> str:
    """One CSV data line in the default broker layout."""
    return ",".join(
        [
            fill_id,
            order_id or f"ord-{fill_id}",
            contract,
            product,
            side,
            qty,
            price,
            timestamp,
            trading_day,
            commission,
            account,
            active,
        ]
    )


def make_csv(*rows: str) -> str:
    return "\n".join([FILL_CSV_HEADER, *rows]) + "\n"


@pytest.fixture
def user_id() -> str:
    return USER_ID


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")

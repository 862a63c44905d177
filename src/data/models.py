"""SQLAlchemy models for the trading journal ledger.

Reference entities (accounts, instruments) and the derived ledger
(trades, daily summaries). Raw import records live in
``src.journal.models``.

Every table carries an explicit ``user_id``. Rows are always written with
the owning user supplied by the caller.
"""

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class Account(Base):
    """A broker account, created on first sight of its external id."""

    __tablename__ = "accounts"
    __table_args__ = (
        UniqueConstraint("user_id", "external_id", name="accounts_user_external_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, index=True)

    name = Column(String(100), nullable=False)
    external_id = Column(String(255), nullable=False)
    broker = Column(String(50), nullable=False)
    starting_balance = Column(Float, nullable=False, default=0.0)
    currency = Column(String(3), nullable=False, default="USD")
    is_archived = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    def __repr__(self) -> str:
        return f"<Account(id={self.id}, external_id={self.external_id}, name={self.name})>"


class Instrument(Base):
    """A tradable root symbol and its contract economics.

    The multiplier (tick_value / tick_size) converts a price delta into
    money and is read live whenever trades are built.
    """

    __tablename__ = "instruments"
    __table_args__ = (
        UniqueConstraint("user_id", "root_symbol", name="instruments_user_root_symbol"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, index=True)

    root_symbol = Column(String(10), nullable=False)
    display_name = Column(String(50), nullable=False)
    tick_size = Column(Float, nullable=False, default=0.0)
    tick_value = Column(Float, nullable=False, default=0.0)
    multiplier = Column(Float, nullable=False, default=1.0)
    commission_per_side = Column(Float, nullable=False, default=0.0)
    currency = Column(String(3), nullable=False, default="USD")
    is_micro = Column(Boolean, nullable=False, default=False)

    # Unknown symbols are created with neutral economics until the user fills them in
    needs_configuration = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    def __repr__(self) -> str:
        return (
            f"<Instrument(id={self.id}, {self.root_symbol}, "
            f"multiplier={self.multiplier}, needs_configuration={self.needs_configuration})>"
        )


class Trade(Base):
    """A reconstructed round trip (flat to flat) or a still-open position."""

    __tablename__ = "trades"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, index=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    instrument_id = Column(Integer, ForeignKey("instruments.id"), nullable=True)
    root_symbol = Column(String(10), nullable=False)

    # Timing
    trading_day = Column(Date, nullable=False, index=True)
    entry_time = Column(DateTime, nullable=False)
    exit_time = Column(DateTime, nullable=True)
    duration_seconds = Column(Integer, nullable=True)

    # Position
    side = Column(String(5), nullable=False)  # LONG or SHORT
    entry_qty = Column(Integer, nullable=False)
    exit_qty = Column(Integer, nullable=False, default=0)
    avg_entry_price = Column(Float, nullable=False)
    avg_exit_price = Column(Float, nullable=True)
    is_open = Column(Boolean, nullable=False, default=True, index=True)

    # P&L
    gross_pnl = Column(Float, nullable=False, default=0.0)
    commission_total = Column(Float, nullable=False, default=0.0)
    fees_total = Column(Float, nullable=False, default=0.0)
    net_pnl = Column(Float, nullable=False, default=0.0)

    # R-multiple (entered by the user after import)
    initial_stop_price = Column(Float, nullable=True)
    r_multiple = Column(Float, nullable=True)

    outcome = Column(String(10), nullable=True)  # WIN, LOSS, BREAKEVEN
    grouping_method = Column(String(20), nullable=False, default="flat_to_flat")

    created_at = Column(DateTime, server_default=func.now())

    account = relationship("Account")
    instrument = relationship("Instrument")

    def __repr__(self) -> str:
        state = "open" if self.is_open else self.outcome
        return (
            f"<Trade(id={self.id}, {self.root_symbol} {self.side} x{self.entry_qty} "
            f"@ {self.avg_entry_price}, {state}, net={self.net_pnl})>"
        )


class DailySummary(Base):
    """Per (account, trading day) rollup of closed trades.

    ``cumulative_pnl`` is a prefix sum over the account's days and is only
    ever written by the recalculator's ascending fold.
    """

    __tablename__ = "daily_summaries"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "account_id", "trading_day", name="daily_summaries_user_account_day"
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, index=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    trading_day = Column(Date, nullable=False)

    # Counts
    trade_count = Column(Integer, nullable=False, default=0)
    win_count = Column(Integer, nullable=False, default=0)
    loss_count = Column(Integer, nullable=False, default=0)
    breakeven_count = Column(Integer, nullable=False, default=0)

    # Money
    gross_pnl = Column(Float, nullable=False, default=0.0)
    net_pnl = Column(Float, nullable=False, default=0.0)
    commission_total = Column(Float, nullable=False, default=0.0)
    fees_total = Column(Float, nullable=False, default=0.0)

    # Statistics
    win_rate = Column(Float, nullable=True)
    profit_factor = Column(Float, nullable=True)
    avg_win = Column(Float, nullable=True)
    avg_loss = Column(Float, nullable=True)
    largest_win = Column(Float, nullable=True)
    largest_loss = Column(Float, nullable=True)
    avg_r = Column(Float, nullable=True)
    total_r = Column(Float, nullable=True)
    max_contracts = Column(Integer, nullable=True)

    # Equity
    cumulative_pnl = Column(Float, nullable=False, default=0.0)

    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    def __repr__(self) -> str:
        return (
            f"<DailySummary(account={self.account_id}, day={self.trading_day}, "
            f"trades={self.trade_count}, net={self.net_pnl}, cum={self.cumulative_pnl})>"
        )

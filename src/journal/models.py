"""SQLAlchemy models for raw import data.

- ImportBatch: one ingestion run of one uploaded file
- Fill: one broker execution exactly as reported, plus its fingerprint
"""

from sqlalchemy import (
    JSON,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from src.data.models import Base


class ImportBatch(Base):
    """Tracks each import run with its counts and structured errors.

    Created in ``processing`` state before any work and finalized exactly
    once as ``complete`` or ``failed``.
    """

    __tablename__ = "import_batches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, index=True)

    filename = Column(String(255), nullable=False)
    file_hash = Column(String(64), nullable=True, index=True)
    status = Column(String(20), nullable=False, default="processing")  # processing, complete, failed

    # Date range covered by this import
    date_range_start = Column(Date, nullable=True)
    date_range_end = Column(Date, nullable=True)

    # Statistics
    total_rows = Column(Integer, nullable=False, default=0)
    new_fills = Column(Integer, nullable=False, default=0)
    duplicate_fills = Column(Integer, nullable=False, default=0)
    trades_created = Column(Integer, nullable=False, default=0)
    error_rows = Column(Integer, nullable=False, default=0)
    error_details = Column(JSON, nullable=True)  # [{"row": 12, "message": "..."}]

    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    def __repr__(self) -> str:
        return (
            f"<ImportBatch(id={self.id}, file={self.filename}, status={self.status}, "
            f"new={self.new_fills}, dupes={self.duplicate_fills})>"
        )


class Fill(Base):
    """One execution from a broker export.

    Immutable once written except ``trade_id``, which trade reconstruction
    sets exactly once.
    """

    __tablename__ = "fills"
    __table_args__ = (UniqueConstraint("user_id", "fill_hash", name="fills_user_hash"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    import_batch_id = Column(Integer, ForeignKey("import_batches.id"), nullable=False, index=True)
    user_id = Column(String(64), nullable=False)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    instrument_id = Column(Integer, ForeignKey("instruments.id"), nullable=True)
    fill_hash = Column(String(64), nullable=False)

    # Broker fields
    raw_fill_id = Column(String(100), nullable=True)
    raw_order_id = Column(String(100), nullable=True)
    raw_instrument = Column(String(200), nullable=True)
    root_symbol = Column(String(10), nullable=False)
    side = Column(String(4), nullable=False)  # BUY or SELL
    quantity = Column(Integer, nullable=False)
    price = Column(Float, nullable=False)
    fill_time = Column(DateTime, nullable=False)  # naive UTC
    commission = Column(Float, nullable=False, default=0.0)
    fee = Column(Float, nullable=False, default=0.0)

    # Derived
    trading_day = Column(Date, nullable=False, index=True)
    trade_id = Column(Integer, ForeignKey("trades.id"), nullable=True, index=True)

    created_at = Column(DateTime, server_default=func.now())

    trade = relationship("Trade")

    def __repr__(self) -> str:
        return (
            f"<Fill(id={self.id}, {self.root_symbol} {self.side} x{self.quantity} "
            f"@ {self.price}, time={self.fill_time}, raw_id={self.raw_fill_id})>"
        )

    @property
    def signed_quantity(self) -> int:
        """Quantity with BUY positive and SELL negative."""
        return self.quantity if self.side == "BUY" else -self.quantity

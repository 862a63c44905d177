"""Parse broker fill-export CSV into canonical fill candidates.

Key rules:
- Only rows whose active column is literally "true" are live (cancelled
  and replaced executions are skipped silently)
- Header names come from a ColumnMapping, one per broker format
- Row numbers count the header as row 1, so the first data row is row 2
- A bad row produces a RowError and is dropped; the batch continues
- Trading day is taken from its own column, never derived from the timestamp
"""

import csv
import io
import math
from dataclasses import dataclass, field
from datetime import date, datetime

from loguru import logger

from src.config.base import ColumnMapping, get_config
from src.utils.timezone import parse_utc_timestamp


@dataclass
class ParsedFill:
    """A single validated fill row from a broker export."""

    row: int

    # Identity
    raw_fill_id: str
    raw_order_id: str
    account_external_id: str

    # Instrument
    raw_instrument: str
    root_symbol: str

    # Execution
    side: str  # BUY or SELL
    quantity: int
    price: float
    fill_time: datetime  # naive UTC
    trading_day: date
    commission: float

    # Set by the deduplicator
    fingerprint: str = ""


@dataclass(frozen=True)
class RowError:
    """A problem tied to one input row (row is None for batch-level errors)."""

    row: int | None
    message: str

    def to_dict(self) -> dict:
        return {"row": self.row, "message": self.message}


@dataclass
class ParseResult:
    """Fills that passed validation plus the rows that did not."""

    fills: list[ParsedFill] = field(default_factory=list)
    errors: list[RowError] = field(default_factory=list)
    total_rows: int = 0


def _cell(row: dict, column: str) -> str:
    """Trimmed cell value; missing columns and short rows read as empty."""
    value = row.get(column)
    return value.strip() if value else ""


def _parse_quantity(value: str) -> int | None:
    """Parse a positive whole-contract quantity ("2" and "2.0" both pass)."""
    try:
        qty = int(value)
    except ValueError:
        try:
            as_float = float(value)
        except ValueError:
            return None
        if not math.isfinite(as_float) or not as_float.is_integer():
            return None
        qty = int(as_float)
    return qty if qty > 0 else None


def _parse_price(value: str) -> float | None:
    """Parse a finite price."""
    try:
        price = float(value)
    except ValueError:
        return None
    return price if math.isfinite(price) else None


def _parse_commission(value: str) -> float:
    """Commission is optional; blank or non-numeric reads as 0."""
    if not value:
        return 0.0
    try:
        commission = float(value)
    except ValueError:
        return 0.0
    return commission if math.isfinite(commission) else 0.0


def _parse_trading_day(value: str) -> date | None:
    """Parse a YYYY-MM-DD trading day."""
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def _parse_row(row: dict, row_num: int, cols: ColumnMapping) -> ParsedFill | RowError | None:
    """Validate one CSV row.

    Returns:
        ParsedFill for a good row, RowError for a bad one, None for an
        inactive row that should be skipped silently.
    """
    if _cell(row, cols.active).lower() != "true":
        return None

    required = [
        (cols.root_symbol, "symbol"),
        (cols.side, "side"),
        (cols.quantity, "quantity"),
        (cols.price, "price"),
        (cols.fill_time, "timestamp"),
    ]
    missing = [label for column, label in required if not _cell(row, column)]
    if missing:
        return RowError(row_num, f"Missing required fields: {', '.join(missing)}")

    side = _cell(row, cols.side).upper()
    if side not in ("BUY", "SELL"):
        return RowError(row_num, f"Invalid side: {row.get(cols.side)!r}")

    quantity = _parse_quantity(_cell(row, cols.quantity))
    if quantity is None:
        return RowError(row_num, f"Invalid quantity: {row.get(cols.quantity)!r}")

    price = _parse_price(_cell(row, cols.price))
    if price is None:
        return RowError(row_num, f"Invalid price: {row.get(cols.price)!r}")

    fill_time = parse_utc_timestamp(_cell(row, cols.fill_time))
    if fill_time is None:
        return RowError(row_num, f"Unparseable timestamp: {_cell(row, cols.fill_time)!r}")

    trading_day_raw = _cell(row, cols.trading_day)
    if not trading_day_raw:
        return RowError(row_num, "Missing trading day")
    trading_day = _parse_trading_day(trading_day_raw)
    if trading_day is None:
        return RowError(row_num, f"Invalid trading day: {trading_day_raw!r}")

    return ParsedFill(
        row=row_num,
        raw_fill_id=_cell(row, cols.raw_fill_id),
        raw_order_id=_cell(row, cols.raw_order_id),
        account_external_id=_cell(row, cols.account_external_id),
        raw_instrument=_cell(row, cols.raw_instrument),
        root_symbol=_cell(row, cols.root_symbol),
        side=side,
        quantity=quantity,
        price=price,
        fill_time=fill_time,
        trading_day=trading_day,
        commission=_parse_commission(_cell(row, cols.commission)),
    )


def parse_csv(text: str, column_map: ColumnMapping | None = None) -> ParseResult:
    """Parse a broker CSV export into fill candidates.

    Args:
        text: Raw CSV text with a header row.
        column_map: Header names to read. Defaults to the configured mapping.

    Returns:
        ParseResult with valid fills, per-row errors and the data row count.
        A record the csv module cannot read becomes a row error like any
        other; rows around it are still parsed.
    """
    cols = column_map or get_config().column_map
    result = ParseResult()

    # utf-8-sig exports carry a BOM that would otherwise end up in the first header
    reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))

    # DictReader skips blank lines, so row numbers follow data rows + header
    row_num = 1
    while True:
        try:
            row = next(reader)
        except StopIteration:
            break
        except csv.Error as e:
            # The reader drops the offending record and resumes on the next line
            row_num += 1
            result.total_rows += 1
            logger.warning(f"Row {row_num}: CSV parse error: {e}")
            result.errors.append(RowError(row_num, f"CSV parse error: {e}"))
            continue

        row_num += 1
        result.total_rows += 1
        outcome = _parse_row(row, row_num, cols)
        if outcome is None:
            logger.debug(f"Row {row_num}: inactive, skipped")
        elif isinstance(outcome, RowError):
            logger.debug(f"Row {row_num}: {outcome.message}")
            result.errors.append(outcome)
        else:
            result.fills.append(outcome)

    logger.info(
        f"Parsed {len(result.fills)} fills from {result.total_rows} rows "
        f"({len(result.errors)} rejected)"
    )
    return result

"""Tests for the broker CSV parser."""

import pytest
from datetime import date, datetime

from conftest import FILL_CSV_HEADER, make_csv, make_csv_row
from src.config.base import ColumnMapping
from src.journal.csv_parser import (
    ParsedFill,
    RowError,
    _parse_commission,
    _parse_price,
    _parse_quantity,
    parse_csv,
)


# ============================================================
# Field helpers
# ============================================================


class TestParseQuantity:
    def test_integer(self):
        assert _parse_quantity("3") == 3

    def test_integral_float(self):
        assert _parse_quantity("2.0") == 2

    def test_fractional_rejected(self):
        assert _parse_quantity("2.5") is None

    def test_zero_rejected(self):
        assert _parse_quantity("0") is None

    def test_negative_rejected(self):
        assert _parse_quantity("-1") is None

    def test_garbage_rejected(self):
        assert _parse_quantity("two") is None


class TestParsePrice:
    def test_valid(self):
        assert _parse_price("21500.25") == 21500.25

    def test_invalid(self):
        assert _parse_price("abc") is None

    def test_not_finite(self):
        assert _parse_price("nan") is None
        assert _parse_price("inf") is None


class TestParseCommission:
    def test_blank_is_zero(self):
        assert _parse_commission("") == 0.0

    def test_non_numeric_is_zero(self):
        assert _parse_commission("n/a") == 0.0

    def test_value(self):
        assert _parse_commission("0.52") == 0.52


# ============================================================
# Full CSV parsing
# ============================================================


class TestParseCsv:
    def test_valid_row(self):
        text = make_csv(
            make_csv_row("f1", " Buy", "2", "21500.25", "2026-02-10 15:01:01.116Z", commission="0.52")
        )
        result = parse_csv(text)

        assert result.total_rows == 1
        assert result.errors == []
        assert len(result.fills) == 1

        fill = result.fills[0]
        assert isinstance(fill, ParsedFill)
        assert fill.row == 2
        assert fill.raw_fill_id == "f1"
        assert fill.raw_order_id == "ord-f1"
        assert fill.raw_instrument == "MNQH6"
        assert fill.root_symbol == "MNQ"
        assert fill.side == "BUY"
        assert fill.quantity == 2
        assert fill.price == 21500.25
        assert fill.fill_time == datetime(2026, 2, 10, 15, 1, 1, 116000)
        assert fill.trading_day == date(2026, 2, 10)
        assert fill.commission == 0.52
        assert fill.account_external_id == "LFE0506373520003"
        assert fill.fingerprint == ""

    def test_t_separator_and_offset(self):
        text = make_csv(make_csv_row("f1", "Sell", "1", "100", "2026-02-10T10:00:00-05:00"))
        fill = parse_csv(text).fills[0]
        assert fill.fill_time == datetime(2026, 2, 10, 15, 0, 0)
        assert fill.side == "SELL"

    def test_trading_day_not_derived_from_timestamp(self):
        """Evening session fills belong to the next broker trading day."""
        text = make_csv(
            make_csv_row("f1", "Buy", "1", "100", "2026-02-10 23:30:00Z", trading_day="2026-02-11")
        )
        fill = parse_csv(text).fills[0]
        assert fill.fill_time.date() == date(2026, 2, 10)
        assert fill.trading_day == date(2026, 2, 11)

    @pytest.mark.parametrize("active", ["false", "", "FALSE ", "yes"])
    def test_inactive_rows_skipped_silently(self, active):
        text = make_csv(make_csv_row("f1", "Buy", "1", "100", "2026-02-10 15:00:00Z", active=active))
        result = parse_csv(text)
        assert result.fills == []
        assert result.errors == []
        assert result.total_rows == 1

    def test_active_marker_trimmed_and_case_folded(self):
        text = make_csv(make_csv_row("f1", "Buy", "1", "100", "2026-02-10 15:00:00Z", active=" True"))
        assert len(parse_csv(text).fills) == 1

    def test_missing_required_fields_listed(self):
        text = make_csv(make_csv_row("f1", "", "1", "", "2026-02-10 15:00:00Z"))
        result = parse_csv(text)
        assert result.fills == []
        assert result.errors == [RowError(2, "Missing required fields: side, price")]

    def test_invalid_side(self):
        text = make_csv(make_csv_row("f1", "Hold", "1", "100", "2026-02-10 15:00:00Z"))
        error = parse_csv(text).errors[0]
        assert error.row == 2
        assert "Invalid side" in error.message

    def test_invalid_quantity(self):
        text = make_csv(make_csv_row("f1", "Buy", "-3", "100", "2026-02-10 15:00:00Z"))
        assert "Invalid quantity" in parse_csv(text).errors[0].message

    def test_invalid_price(self):
        text = make_csv(make_csv_row("f1", "Buy", "1", "abc", "2026-02-10 15:00:00Z"))
        assert "Invalid price" in parse_csv(text).errors[0].message

    def test_unparseable_timestamp(self):
        text = make_csv(make_csv_row("f1", "Buy", "1", "100", "10/02/2026 3pm"))
        assert "Unparseable timestamp" in parse_csv(text).errors[0].message

    def test_missing_trading_day(self):
        text = make_csv(make_csv_row("f1", "Buy", "1", "100", "2026-02-10 15:00:00Z", trading_day=""))
        assert parse_csv(text).errors[0].message == "Missing trading day"

    def test_invalid_trading_day(self):
        text = make_csv(
            make_csv_row("f1", "Buy", "1", "100", "2026-02-10 15:00:00Z", trading_day="2026-02-30")
        )
        assert "Invalid trading day" in parse_csv(text).errors[0].message

    def test_non_numeric_commission_defaults_to_zero(self):
        text = make_csv(
            make_csv_row("f1", "Buy", "1", "100", "2026-02-10 15:00:00Z", commission="free")
        )
        assert parse_csv(text).fills[0].commission == 0.0

    def test_malformed_row_does_not_affect_others(self):
        rows = [
            make_csv_row(f"f{i}", "Buy", "1", "100", f"2026-02-10 15:00:{i % 60:02d}Z")
            for i in range(100)
        ]
        rows.insert(37, make_csv_row("bad", "Buy", "1", "", "2026-02-10 16:00:00Z"))
        result = parse_csv(make_csv(*rows))

        assert result.total_rows == 101
        assert len(result.fills) == 100
        assert len(result.errors) == 1
        # header is row 1, the 38th data row is row 39
        assert result.errors[0].row == 39
        assert "price" in result.errors[0].message
        assert [f.raw_fill_id for f in result.fills] == [f"f{i}" for i in range(100)]

    def test_unreadable_record_is_a_row_error(self):
        """A field over the csv size limit rejects only its own row."""
        rows = [
            make_csv_row(f"f{i}", "Buy", "1", "100", f"2026-02-10 15:00:0{i}Z")
            for i in range(5)
        ]
        rows.insert(3, make_csv_row("huge", "Buy", "1", "100", "2026-02-10 16:00:00Z", contract="X" * 200_000))

        result = parse_csv(make_csv(*rows))

        assert result.total_rows == 6
        assert [f.raw_fill_id for f in result.fills] == ["f0", "f1", "f2", "f3", "f4"]
        assert len(result.errors) == 1
        assert result.errors[0].row == 5
        assert result.errors[0].message.startswith("CSV parse error:")
        # rows after the bad one keep their numbering
        assert [f.row for f in result.fills] == [2, 3, 4, 6, 7]

    def test_blank_lines_ignored(self):
        text = "\n".join(
            [
                FILL_CSV_HEADER,
                make_csv_row("f1", "Buy", "1", "100", "2026-02-10 15:00:00Z"),
                "",
                make_csv_row("f2", "Sell", "1", "101", "2026-02-10 15:01:00Z"),
            ]
        )
        result = parse_csv(text)
        assert result.total_rows == 2
        assert [f.row for f in result.fills] == [2, 3]

    def test_byte_order_mark_stripped(self):
        text = "\ufeff" + make_csv(make_csv_row("f1", "Buy", "1", "100", "2026-02-10 15:00:00Z"))
        result = parse_csv(text)
        assert len(result.fills) == 1
        assert result.fills[0].raw_fill_id == "f1"

    def test_header_only(self):
        result = parse_csv(FILL_CSV_HEADER + "\n")
        assert result.total_rows == 0
        assert result.fills == []

    def test_custom_column_mapping(self):
        cols = ColumnMapping(
            raw_fill_id="id",
            raw_order_id="order",
            raw_instrument="contract",
            root_symbol="symbol",
            side="side",
            quantity="qty",
            price="px",
            fill_time="time",
            trading_day="day",
            commission="fee",
            account_external_id="acct",
            active="live",
        )
        text = (
            "id,order,contract,symbol,side,qty,px,time,day,fee,acct,live\n"
            "x1,o1,ESH6,ES,SELL,1,6000.5,2026-02-10T14:00:00Z,2026-02-10,2.05,ACC1,true\n"
        )
        fill = parse_csv(text, cols).fills[0]
        assert fill.root_symbol == "ES"
        assert fill.side == "SELL"
        assert fill.price == 6000.5
        assert fill.commission == 2.05
        assert fill.account_external_id == "ACC1"

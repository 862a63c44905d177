"""Tests for P&L calculation helpers."""

import pytest

from src.utils.calc import (
    calc_gross_pnl,
    calc_profit_factor,
    classify_outcome,
    fmt_money,
    weighted_average_price,
)


class TestWeightedAveragePrice:
    def test_single_leg(self):
        assert weighted_average_price([(100.0, 2)]) == 100.0

    def test_weighted(self):
        assert weighted_average_price([(105.0, 1), (110.0, 1)]) == 107.5
        assert weighted_average_price([(100.0, 3), (104.0, 1)]) == 101.0

    def test_no_quantity(self):
        assert weighted_average_price([]) is None


class TestGrossPnl:
    def test_long(self):
        assert calc_gross_pnl("LONG", 100.0, 107.5, 2, 1.0) == 15.0

    def test_short(self):
        assert calc_gross_pnl("SHORT", 110.0, 100.0, 1, 2.0) == 20.0

    def test_rounded_to_cents(self):
        assert calc_gross_pnl("LONG", 0.1, 0.3, 1, 1.0) == 0.2


class TestClassifyOutcome:
    @pytest.mark.parametrize(
        "net, expected",
        [(0.01, "WIN"), (-0.01, "LOSS"), (0.0, "BREAKEVEN")],
    )
    def test_sign(self, net, expected):
        assert classify_outcome(net) == expected


class TestProfitFactor:
    def test_ratio(self):
        assert calc_profit_factor(150.0, -50.0, 9999.0) == 3.0

    def test_wins_only_capped(self):
        assert calc_profit_factor(10.0, 0.0, 9999.0) == 9999.0

    def test_losses_only(self):
        assert calc_profit_factor(0.0, -10.0, 9999.0) == 0.0

    def test_nothing(self):
        assert calc_profit_factor(0.0, 0.0, 9999.0) is None


class TestFmtMoney:
    def test_none(self):
        assert fmt_money(None) == "N/A"

    def test_negative(self):
        assert fmt_money(-12.5) == "-12.50"

    def test_thousands(self):
        assert fmt_money(1234.4, decimals=0) == "1,234"
